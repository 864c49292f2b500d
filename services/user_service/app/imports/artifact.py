"""Values passed through the bulk import pipeline."""

from dataclasses import dataclass, field, replace

from pydantic import BaseModel, Field


@dataclass(frozen=True)
class UploadArtifact:
    """One received CSV upload.

    ``size_bytes`` is what the upload layer reported; routing relies on it
    and never on the content itself.
    """

    filename: str
    content_type: str | None
    size_bytes: int
    content: bytes = field(repr=False)
    storage_key: str | None = None

    @classmethod
    def from_bytes(
        cls,
        content: bytes,
        filename: str,
        content_type: str | None,
    ) -> "UploadArtifact":
        return cls(
            filename=filename,
            content_type=content_type,
            size_bytes=len(content),
            content=content,
        )

    def stored_at(self, storage_key: str) -> "UploadArtifact":
        """Copy of this artifact that records where its bytes were persisted."""
        return replace(self, storage_key=storage_key)


class RowError(BaseModel):
    """A CSV row that could not be imported."""

    row_number: int = Field(..., description="1-based line number; the header is row 1")
    message: str
    email: str | None = None


class ImportOutcome(BaseModel):
    """Result of a synchronous bulk import."""

    created: int = 0
    skipped: int = 0
    failed: int = 0
    errors: list[RowError] = Field(default_factory=list)


class EnqueueReceipt(BaseModel):
    """Acknowledgement that an import job was accepted by the queue.

    ``job_id`` is the id the worker logs the job under.
    """

    job_id: str
    queue_name: str
