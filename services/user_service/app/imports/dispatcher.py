"""Bulk import dispatch: validate an upload, pick a path, run it.

Per call the sequence is linear::

    Received -> Validating -> Rejected
                           -> Validated -> Routed(sync)  -> Completed | Failed
                                        -> Routed(async) -> Enqueued  | Failed

``Rejected`` surfaces as InvalidMediaType. Every failure after validation
surfaces as DispatchError, whichever step produced it.
"""

from typing import Awaitable, Callable

from services.user_service.app.imports.artifact import (
    EnqueueReceipt,
    ImportOutcome,
    UploadArtifact,
)
from services.user_service.app.imports.errors import (
    DispatchError,
    EnqueueFailure,
    ImportExecutionFailure,
    InvalidMediaType,
)
from services.user_service.app.imports.queue import ImportQueue
from services.user_service.app.imports.routing import (
    DEFAULT_SYNC_THRESHOLD_BYTES,
    ImportPath,
    select_import_path,
)
from services.user_service.app.imports.validator import DEFAULT_CSV_MEDIA_TYPE, UploadValidator
from shared.utils.logging import get_logger
from shared.utils.metrics import create_counter

logger = get_logger(__name__)

DEFAULT_IMPORT_QUEUE = "createUserByCsv"

IMPORT_DISPATCH_TOTAL = create_counter(
    "user_import_dispatch_total",
    "Bulk user import dispatch results",
    ["path", "result"],
)

BulkCreate = Callable[[UploadArtifact], Awaitable[ImportOutcome]]


class BulkImportDispatcher:
    """Routes validated CSV uploads to an inline import or the import queue."""

    def __init__(
        self,
        bulk_create: BulkCreate,
        queue: ImportQueue,
        *,
        threshold_bytes: int = DEFAULT_SYNC_THRESHOLD_BYTES,
        accepted_media_type: str = DEFAULT_CSV_MEDIA_TYPE,
        queue_name: str = DEFAULT_IMPORT_QUEUE,
    ):
        """Initialize the dispatcher.

        Args:
            bulk_create: Inline importer, awaited for large files
            queue: Queue collaborator for small files
            threshold_bytes: Files strictly larger than this import inline
            accepted_media_type: Exact content type uploads must declare
            queue_name: Logical queue receiving asynchronous jobs
        """
        self.bulk_create = bulk_create
        self.queue = queue
        self.threshold_bytes = threshold_bytes
        self.queue_name = queue_name
        self.validator = UploadValidator(accepted_media_type)

    async def dispatch(self, artifact: UploadArtifact) -> ImportOutcome | EnqueueReceipt:
        """Run one upload through validation, routing and execution.

        Raises:
            InvalidMediaType: The upload was rejected before any import work
            DispatchError: Any failure after validation
        """
        try:
            self.validator.validate(artifact)
        except InvalidMediaType:
            IMPORT_DISPATCH_TOTAL.labels(path="none", result="rejected").inc()
            logger.info(
                "import_upload_rejected",
                filename=artifact.filename,
                content_type=artifact.content_type,
            )
            raise

        path = select_import_path(artifact.size_bytes, self.threshold_bytes)
        logger.info(
            "import_upload_routed",
            filename=artifact.filename,
            size_bytes=artifact.size_bytes,
            path=path.value,
        )

        try:
            if path is ImportPath.SYNC:
                result: ImportOutcome | EnqueueReceipt = await self._run_inline(artifact)
            else:
                result = await self._enqueue(artifact)
        except ImportExecutionFailure as e:
            raise self._fail(path, "execution_failed", e) from e
        except EnqueueFailure as e:
            raise self._fail(path, "enqueue_failed", e) from e
        except Exception as e:
            raise self._fail(path, "unexpected", e) from e

        IMPORT_DISPATCH_TOTAL.labels(path=path.value, result="ok").inc()
        return result

    async def _run_inline(self, artifact: UploadArtifact) -> ImportOutcome:
        try:
            outcome = await self.bulk_create(artifact)
        except Exception as e:
            raise ImportExecutionFailure(str(e)) from e
        if not isinstance(outcome, ImportOutcome):
            raise ImportExecutionFailure("bulk create returned no outcome")

        logger.info(
            "import_completed_inline",
            filename=artifact.filename,
            created=outcome.created,
            skipped=outcome.skipped,
            failed=outcome.failed,
        )
        return outcome

    async def _enqueue(self, artifact: UploadArtifact) -> EnqueueReceipt:
        try:
            return await self.queue.enqueue(self.queue_name, artifact)
        except Exception as e:
            raise EnqueueFailure(str(e)) from e

    def _fail(self, path: ImportPath, reason: str, error: Exception) -> DispatchError:
        IMPORT_DISPATCH_TOTAL.labels(path=path.value, result=reason).inc()
        logger.error(
            "import_dispatch_failed",
            path=path.value,
            reason=reason,
            error=str(error),
            error_type=type(error.__cause__ or error).__name__,
        )
        return DispatchError(reason)
