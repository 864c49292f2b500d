"""Bulk user import from CSV uploads."""

from services.user_service.app.imports.artifact import (
    EnqueueReceipt,
    ImportOutcome,
    RowError,
    UploadArtifact,
)
from services.user_service.app.imports.dispatcher import BulkImportDispatcher
from services.user_service.app.imports.errors import (
    BulkImportError,
    DispatchError,
    EnqueueFailure,
    ImportExecutionFailure,
    InvalidMediaType,
)
from services.user_service.app.imports.importer import UserCsvImporter
from services.user_service.app.imports.queue import ImportQueue, SQSImportQueue
from services.user_service.app.imports.routing import ImportPath, select_import_path

__all__ = [
    "BulkImportDispatcher",
    "BulkImportError",
    "DispatchError",
    "EnqueueFailure",
    "EnqueueReceipt",
    "ImportExecutionFailure",
    "ImportOutcome",
    "ImportPath",
    "ImportQueue",
    "InvalidMediaType",
    "RowError",
    "SQSImportQueue",
    "UploadArtifact",
    "UserCsvImporter",
    "select_import_path",
]
