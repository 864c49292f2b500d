"""Queue submission for asynchronous CSV imports."""

import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import PurePath

from pydantic import BaseModel, Field

from services.user_service.app.imports.artifact import EnqueueReceipt, UploadArtifact
from shared.utils.logging import get_correlation_id, get_logger
from shared.utils.sqs import SQSClient
from shared.utils.storage import StorageClient

logger = get_logger(__name__)


class CsvImportJob(BaseModel):
    """Queue message describing one stored CSV awaiting import."""

    job_id: str
    queue_name: str
    storage_key: str
    filename: str
    content_type: str | None = None
    size_bytes: int
    correlation_id: str = ""
    enqueued_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class ImportQueue(ABC):
    """Accepts upload artifacts for later processing."""

    @abstractmethod
    async def enqueue(self, queue_name: str, artifact: UploadArtifact) -> EnqueueReceipt:
        """Submit a durable job and return once the backend acknowledges it."""


def storage_key_for(job_id: str, filename: str) -> str:
    """Storage location for a queued CSV; keeps only the base filename."""
    safe_name = PurePath(filename.replace("\\", "/")).name or "upload.csv"
    return f"imports/{job_id}/{safe_name}"


class SQSImportQueue(ImportQueue):
    """Persists the CSV to object storage and publishes a job to SQS."""

    def __init__(self, sqs_client: SQSClient, storage_client: StorageClient):
        """Initialize the queue.

        Args:
            sqs_client: SQS client that knows the logical queue names
            storage_client: Storage backend holding the CSV until the worker reads it
        """
        self.sqs_client = sqs_client
        self.storage_client = storage_client

    async def enqueue(self, queue_name: str, artifact: UploadArtifact) -> EnqueueReceipt:
        job_id = str(uuid.uuid4())
        storage_key = storage_key_for(job_id, artifact.filename)

        await self.storage_client.put_object(
            key=storage_key,
            data=artifact.content,
            content_type=artifact.content_type or "text/csv",
            metadata={"job_id": job_id, "original_filename": artifact.filename},
        )

        job = CsvImportJob(
            job_id=job_id,
            queue_name=queue_name,
            storage_key=storage_key,
            filename=artifact.filename,
            content_type=artifact.content_type,
            size_bytes=artifact.size_bytes,
            correlation_id=get_correlation_id(),
        )
        try:
            message_id = await self.sqs_client.send_message(queue_name, job)
        except Exception as e:
            logger.error("import_job_send_failed", job_id=job_id, queue=queue_name, error=str(e))
            await self._discard(storage_key)
            raise

        logger.info(
            "import_job_enqueued",
            job_id=job_id,
            message_id=message_id,
            queue=queue_name,
            size_bytes=artifact.size_bytes,
        )

        return EnqueueReceipt(job_id=job_id, queue_name=queue_name)

    async def _discard(self, storage_key: str) -> None:
        """Remove a stored CSV that no job refers to."""
        try:
            await self.storage_client.delete_object(storage_key)
        except Exception as e:
            logger.error("orphaned_import_file", storage_key=storage_key, error=str(e))
        else:
            logger.info("import_file_discarded", storage_key=storage_key)
