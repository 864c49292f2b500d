"""Bulk import error taxonomy."""


class BulkImportError(Exception):
    """Base class for bulk import failures."""


class InvalidMediaType(BulkImportError):
    """Uploaded file's declared type is not the accepted CSV type."""

    def __init__(self, content_type: str | None, accepted: str):
        super().__init__(f"Unsupported media type {content_type!r}; expected {accepted!r}")
        self.content_type = content_type
        self.accepted = accepted


class ImportExecutionFailure(BulkImportError):
    """The synchronous bulk-create collaborator failed."""


class EnqueueFailure(BulkImportError):
    """The queue collaborator did not accept the job."""


class DispatchError(BulkImportError):
    """The single failure callers see once an upload has passed validation.

    ``reason`` is for operators only and must not be rendered to callers.
    """

    public_message = "Bulk import could not be completed"

    def __init__(self, reason: str):
        super().__init__(self.public_message)
        self.reason = reason
