"""Worker consuming queued CSV import jobs."""

import asyncio
import json
import signal
import uuid
from datetime import datetime, timezone
from typing import Any

from pydantic import ValidationError

from services.user_service.app.config import Settings, get_settings
from services.user_service.app.imports.artifact import UploadArtifact
from services.user_service.app.imports.csv_parser import CsvFormatError
from services.user_service.app.imports.dispatcher import BulkCreate
from services.user_service.app.imports.importer import UserCsvImporter
from services.user_service.app.imports.queue import CsvImportJob
from shared.utils.db import close_db, init_db
from shared.utils.logging import configure_logging, get_logger, set_correlation_id
from shared.utils.metrics import create_counter
from shared.utils.sqs import SQSClient
from shared.utils.storage import ObjectNotFoundError, StorageClient, get_storage_client

logger = get_logger(__name__)

IMPORT_JOBS_TOTAL = create_counter(
    "user_import_jobs_total",
    "Queued CSV import jobs by result",
    ["result"],
)

MAX_RETRY_DELAY_SECONDS = 600


class ImportWorker:
    """Polls the import queue and runs each job through the CSV importer."""

    def __init__(
        self,
        sqs_client: SQSClient,
        storage_client: StorageClient,
        importer: BulkCreate,
        *,
        queue: str = "createUserByCsv",
        dlq_url: str = "",
        worker_id: str | None = None,
        max_concurrent: int = 5,
        max_retries: int = 3,
        retry_delay: int = 30,
        visibility_timeout: int = 300,
    ):
        """Initialize import worker.

        Args:
            sqs_client: SQS client resolving the queue name
            storage_client: Storage holding the queued CSV files
            importer: Callable creating users from an artifact
            queue: Logical queue name to consume
            dlq_url: Dead-letter queue URL (empty disables it)
            worker_id: Unique worker identifier
            max_concurrent: Maximum jobs processed at once
            max_retries: Receives after which a failing job is abandoned
            retry_delay: Base delay in seconds for retry backoff
            visibility_timeout: Visibility timeout for received messages
        """
        self.sqs_client = sqs_client
        self.storage_client = storage_client
        self.importer = importer
        self.queue = queue
        self.dlq_url = dlq_url
        self.worker_id = worker_id or f"worker-{uuid.uuid4().hex[:8]}"
        self.max_concurrent = max_concurrent
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.visibility_timeout = visibility_timeout
        self.running = False
        self.semaphore = asyncio.Semaphore(max_concurrent)
        self._tasks: set[asyncio.Task] = set()

    async def start(self) -> None:
        """Start polling until stopped."""
        logger.info("worker_starting", worker_id=self.worker_id, queue=self.queue)
        self.running = True

        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, lambda: asyncio.create_task(self.stop()))

        await self._poll_loop()

    async def stop(self) -> None:
        """Stop polling and wait for in-flight jobs."""
        logger.info("worker_stopping", worker_id=self.worker_id)
        self.running = False

        if self._tasks:
            logger.info("waiting_for_tasks", count=len(self._tasks))
            await asyncio.gather(*self._tasks, return_exceptions=True)

        logger.info("worker_stopped", worker_id=self.worker_id)

    async def _poll_loop(self) -> None:
        while self.running:
            try:
                messages = await self.sqs_client.receive_messages(
                    self.queue,
                    max_messages=min(self.max_concurrent, 10),
                    visibility_timeout=self.visibility_timeout,
                    wait_time=20,
                )
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("poll_error", error=str(e))
                await asyncio.sleep(5)
                continue

            for message in messages:
                task = asyncio.create_task(self.process_message(message))
                self._tasks.add(task)
                task.add_done_callback(self._tasks.discard)

    async def process_message(self, message: dict[str, Any]) -> None:
        """Run one queued job and settle its message."""
        message_id = message.get("MessageId")

        async with self.semaphore:
            try:
                job = CsvImportJob.model_validate(json.loads(message.get("Body", "{}")))
            except (json.JSONDecodeError, ValidationError) as e:
                logger.error("message_parse_error", error=str(e), message_id=message_id)
                IMPORT_JOBS_TOTAL.labels(result="invalid_message").inc()
                await self._move_to_dlq(message, f"Parse error: {e}")
                return

            set_correlation_id(job.correlation_id or None)
            logger.info(
                "import_job_started",
                worker_id=self.worker_id,
                job_id=job.job_id,
                message_id=message_id,
            )

            try:
                content = await self.storage_client.get_object(job.storage_key)
                artifact = UploadArtifact(
                    filename=job.filename,
                    content_type=job.content_type,
                    size_bytes=job.size_bytes,
                    content=content,
                    storage_key=job.storage_key,
                )
                outcome = await self.importer(artifact)
            except (CsvFormatError, ObjectNotFoundError) as e:
                logger.error("import_job_rejected", job_id=job.job_id, error=str(e))
                IMPORT_JOBS_TOTAL.labels(result="rejected").inc()
                await self._move_to_dlq(message, str(e))
                return
            except Exception as e:
                logger.error("import_job_error", job_id=job.job_id, error=str(e))
                await self._handle_failure(message, str(e))
                return

            IMPORT_JOBS_TOTAL.labels(result="completed").inc()
            try:
                await self.sqs_client.delete_message(self.queue, message["ReceiptHandle"])
                await self.storage_client.delete_object(job.storage_key)
            except Exception as e:
                # Redelivery is harmless: existing emails are skipped
                logger.error("import_job_cleanup_error", job_id=job.job_id, error=str(e))
            logger.info(
                "import_job_completed",
                job_id=job.job_id,
                created=outcome.created,
                skipped=outcome.skipped,
                failed=outcome.failed,
            )

    async def _handle_failure(self, message: dict[str, Any], error: str) -> None:
        attributes = message.get("Attributes", {})
        receive_count = int(attributes.get("ApproximateReceiveCount", "1"))

        if receive_count >= self.max_retries:
            logger.warning(
                "max_retries_exceeded",
                message_id=message.get("MessageId"),
                receive_count=receive_count,
            )
            IMPORT_JOBS_TOTAL.labels(result="abandoned").inc()
            await self._move_to_dlq(message, error)
            return

        delay = min(self.retry_delay * (2 ** (receive_count - 1)), MAX_RETRY_DELAY_SECONDS)
        logger.info(
            "scheduling_retry",
            message_id=message.get("MessageId"),
            retry_count=receive_count,
            delay_seconds=delay,
        )
        IMPORT_JOBS_TOTAL.labels(result="retried").inc()
        await self.sqs_client.change_visibility(
            self.queue,
            message["ReceiptHandle"],
            visibility_timeout=delay,
        )

    async def _move_to_dlq(self, message: dict[str, Any], error: str) -> None:
        """Park the message in the DLQ (if configured) and remove it from the queue."""
        try:
            if self.dlq_url:
                await self.sqs_client.send_message(
                    self.dlq_url,
                    {
                        "original_body": message.get("Body"),
                        "original_message_id": message.get("MessageId"),
                        "error": error,
                        "timestamp": datetime.now(timezone.utc).isoformat(),
                        "worker_id": self.worker_id,
                    },
                )
            else:
                logger.warning("dlq_not_configured", message_id=message.get("MessageId"))

            await self.sqs_client.delete_message(self.queue, message["ReceiptHandle"])
            logger.info("moved_to_dlq", message_id=message.get("MessageId"))
        except Exception as e:
            logger.error("dlq_move_error", error=str(e))


def build_worker(settings: Settings) -> ImportWorker:
    """Construct a worker and its collaborators from settings."""
    session_factory = init_db(
        database_url=settings.database_url,
        pool_size=settings.worker_max_concurrent + 2,
        max_overflow=settings.db_max_overflow,
    )
    return ImportWorker(
        sqs_client=SQSClient(
            queue_urls=settings.sqs_queue_urls,
            region=settings.sqs_region,
            endpoint_url=settings.sqs_endpoint_url,
        ),
        storage_client=get_storage_client(
            storage_type=settings.storage_type,
            bucket=settings.storage_bucket,
            region=settings.s3_region,
            endpoint_url=settings.s3_endpoint_url,
            local_path=settings.local_storage_path,
            serve_url=settings.storage_serve_url,
        ),
        importer=UserCsvImporter(session_factory),
        queue=settings.import_queue_name,
        dlq_url=settings.sqs_dlq_url,
        max_concurrent=settings.worker_max_concurrent,
        max_retries=settings.worker_max_retries,
        retry_delay=settings.worker_retry_delay_seconds,
        visibility_timeout=settings.worker_visibility_timeout_seconds,
    )


async def run_worker() -> None:
    """Run the import worker until signalled."""
    settings = get_settings()
    configure_logging(
        service_name=f"{settings.service_name}-worker",
        log_level=settings.log_level,
        json_format=settings.log_json,
    )
    worker = build_worker(settings)
    try:
        await worker.start()
    finally:
        await close_db()


if __name__ == "__main__":
    asyncio.run(run_worker())
