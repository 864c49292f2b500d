"""SQS publisher/consumer helpers addressed by logical queue name."""

import json
from typing import Any

from aiobotocore.session import get_session
from pydantic import BaseModel

from shared.utils.logging import get_logger

logger = get_logger(__name__)


class QueueNotConfiguredError(LookupError):
    """Raised when a logical queue name has no configured URL."""

    def __init__(self, queue: str):
        super().__init__(f"No SQS queue URL configured for '{queue}'")
        self.queue = queue


class SQSClient:
    """Async SQS client wrapper.

    Queues are addressed either by a logical name registered in
    ``queue_urls`` (for example ``createUserByCsv``) or by a full queue URL.
    """

    def __init__(
        self,
        queue_urls: dict[str, str] | None = None,
        region: str = "us-east-1",
        endpoint_url: str | None = None,
        access_key: str | None = None,
        secret_key: str | None = None,
    ):
        """Initialize SQS client.

        Args:
            queue_urls: Mapping of logical queue names to queue URLs
            region: AWS region
            endpoint_url: Custom endpoint (for LocalStack/ElasticMQ)
            access_key: AWS access key (or fake for LocalStack)
            secret_key: AWS secret key (or fake for LocalStack)
        """
        self.queue_urls = dict(queue_urls or {})
        self.region = region
        self.endpoint_url = endpoint_url
        self.access_key = access_key or ("test" if endpoint_url else None)
        self.secret_key = secret_key or ("test" if endpoint_url else None)
        self._session = get_session()

    def resolve_queue_url(self, queue: str) -> str:
        """Map a logical queue name (or a URL) to a queue URL.

        Raises:
            QueueNotConfiguredError: If the name is unknown and not a URL
        """
        if queue in self.queue_urls:
            return self.queue_urls[queue]
        if queue.startswith(("http://", "https://")):
            return queue
        raise QueueNotConfiguredError(queue)

    def _client(self):
        return self._session.create_client(
            "sqs",
            region_name=self.region,
            endpoint_url=self.endpoint_url,
            aws_access_key_id=self.access_key,
            aws_secret_access_key=self.secret_key,
        )

    async def send_message(
        self,
        queue: str,
        message: BaseModel | dict[str, Any],
        message_group_id: str | None = None,
        deduplication_id: str | None = None,
    ) -> str:
        """Send a message to a queue.

        Args:
            queue: Logical queue name or queue URL
            message: Message body (Pydantic model or dict)
            message_group_id: Message group ID for FIFO queues
            deduplication_id: Deduplication ID for FIFO queues

        Returns:
            Message ID from SQS
        """
        url = self.resolve_queue_url(queue)
        if isinstance(message, BaseModel):
            body = message.model_dump_json()
        else:
            body = json.dumps(message)

        kwargs: dict[str, Any] = {
            "QueueUrl": url,
            "MessageBody": body,
        }
        if message_group_id:
            kwargs["MessageGroupId"] = message_group_id
        if deduplication_id:
            kwargs["MessageDeduplicationId"] = deduplication_id

        async with self._client() as client:
            response = await client.send_message(**kwargs)

        message_id = response["MessageId"]
        logger.info("sqs_message_sent", message_id=message_id, queue=queue)
        return message_id

    async def receive_messages(
        self,
        queue: str,
        max_messages: int = 10,
        visibility_timeout: int = 30,
        wait_time: int = 20,
    ) -> list[dict[str, Any]]:
        """Receive messages from a queue using long polling.

        Args:
            queue: Logical queue name or queue URL
            max_messages: Maximum messages to receive (1-10)
            visibility_timeout: Visibility timeout in seconds
            wait_time: Long polling wait time in seconds

        Returns:
            List of raw SQS messages
        """
        url = self.resolve_queue_url(queue)

        async with self._client() as client:
            response = await client.receive_message(
                QueueUrl=url,
                MaxNumberOfMessages=min(max_messages, 10),
                VisibilityTimeout=visibility_timeout,
                WaitTimeSeconds=wait_time,
                AttributeNames=["All"],
                MessageAttributeNames=["All"],
            )

        messages = response.get("Messages", [])
        if messages:
            logger.info("sqs_messages_received", count=len(messages), queue=queue)
        return messages

    async def delete_message(self, queue: str, receipt_handle: str) -> None:
        """Delete a message from a queue."""
        url = self.resolve_queue_url(queue)

        async with self._client() as client:
            await client.delete_message(QueueUrl=url, ReceiptHandle=receipt_handle)
        logger.info("sqs_message_deleted", queue=queue)

    async def change_visibility(
        self,
        queue: str,
        receipt_handle: str,
        visibility_timeout: int,
    ) -> None:
        """Change message visibility timeout (used to delay a retry)."""
        url = self.resolve_queue_url(queue)

        async with self._client() as client:
            await client.change_message_visibility(
                QueueUrl=url,
                ReceiptHandle=receipt_handle,
                VisibilityTimeout=visibility_timeout,
            )
        logger.info(
            "sqs_visibility_changed",
            queue=queue,
            new_timeout=visibility_timeout,
        )
