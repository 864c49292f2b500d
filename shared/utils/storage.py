"""Object storage clients for S3 and the local filesystem."""

from abc import ABC, abstractmethod
from pathlib import Path

import aiofiles
import aiofiles.os
from aiobotocore.session import get_session

from shared.utils.logging import get_logger

logger = get_logger(__name__)


class ObjectNotFoundError(KeyError):
    """Raised when a stored object does not exist."""


class StorageClient(ABC):
    """Abstract base class for storage clients."""

    bucket: str

    @abstractmethod
    async def put_object(
        self,
        key: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        metadata: dict[str, str] | None = None,
    ) -> None:
        """Store bytes under a key."""

    @abstractmethod
    async def get_object(self, key: str) -> bytes:
        """Read the bytes stored under a key."""

    @abstractmethod
    async def delete_object(self, key: str) -> None:
        """Remove a stored object. Missing keys are ignored."""

    @abstractmethod
    async def generate_download_url(self, key: str, expires_in: int = 3600) -> str:
        """Build a URL a client can use to fetch the object."""


class LocalStorageClient(StorageClient):
    """Filesystem storage with the same interface as S3Client."""

    def __init__(
        self,
        base_path: str,
        bucket: str = "user-service",
        serve_url: str = "http://localhost:8080/files",
    ):
        """Initialize local storage client.

        Args:
            base_path: Base directory for file storage
            bucket: Virtual bucket name (used as subdirectory)
            serve_url: Base URL the files are served from
        """
        self.base_path = Path(base_path)
        self.bucket = bucket
        self.serve_url = serve_url.rstrip("/")
        self._storage_dir = self.base_path / bucket
        self._storage_dir.mkdir(parents=True, exist_ok=True)

    def _get_full_path(self, key: str) -> Path:
        path = (self._storage_dir / key).resolve()
        if self._storage_dir.resolve() not in path.parents:
            raise ValueError(f"Key escapes storage directory: {key}")
        return path

    async def put_object(
        self,
        key: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        metadata: dict[str, str] | None = None,
    ) -> None:
        full_path = self._get_full_path(key)
        full_path.parent.mkdir(parents=True, exist_ok=True)

        async with aiofiles.open(full_path, "wb") as f:
            await f.write(data)

        logger.info("local_storage_put", bucket=self.bucket, key=key, size_bytes=len(data))

    async def get_object(self, key: str) -> bytes:
        full_path = self._get_full_path(key)
        try:
            async with aiofiles.open(full_path, "rb") as f:
                return await f.read()
        except FileNotFoundError as e:
            raise ObjectNotFoundError(key) from e

    async def delete_object(self, key: str) -> None:
        full_path = self._get_full_path(key)
        if await aiofiles.os.path.exists(full_path):
            await aiofiles.os.remove(full_path)
            logger.info("local_storage_delete", bucket=self.bucket, key=key)

    async def generate_download_url(self, key: str, expires_in: int = 3600) -> str:
        return f"{self.serve_url}/{self.bucket}/{key}"


class S3Client(StorageClient):
    """Async S3 client wrapper."""

    def __init__(
        self,
        bucket: str,
        region: str = "us-east-1",
        endpoint_url: str | None = None,
        access_key: str | None = None,
        secret_key: str | None = None,
    ):
        """Initialize S3 client.

        Args:
            bucket: S3 bucket name
            region: AWS region
            endpoint_url: Custom endpoint (for LocalStack/MinIO)
            access_key: AWS access key (or fake for LocalStack)
            secret_key: AWS secret key (or fake for LocalStack)
        """
        self.bucket = bucket
        self.region = region
        self.endpoint_url = endpoint_url
        self.access_key = access_key or ("test" if endpoint_url else None)
        self.secret_key = secret_key or ("test" if endpoint_url else None)
        self._session = get_session()

    def _client(self):
        return self._session.create_client(
            "s3",
            region_name=self.region,
            endpoint_url=self.endpoint_url,
            aws_access_key_id=self.access_key,
            aws_secret_access_key=self.secret_key,
        )

    async def put_object(
        self,
        key: str,
        data: bytes,
        content_type: str = "application/octet-stream",
        metadata: dict[str, str] | None = None,
    ) -> None:
        put_params = {
            "Bucket": self.bucket,
            "Key": key,
            "Body": data,
            "ContentType": content_type,
        }
        if metadata:
            put_params["Metadata"] = metadata

        async with self._client() as client:
            await client.put_object(**put_params)
        logger.info("s3_put", bucket=self.bucket, key=key, size_bytes=len(data))

    async def get_object(self, key: str) -> bytes:
        async with self._client() as client:
            try:
                response = await client.get_object(Bucket=self.bucket, Key=key)
            except client.exceptions.NoSuchKey as e:
                raise ObjectNotFoundError(key) from e
            async with response["Body"] as stream:
                return await stream.read()

    async def delete_object(self, key: str) -> None:
        async with self._client() as client:
            await client.delete_object(Bucket=self.bucket, Key=key)
        logger.info("s3_delete", bucket=self.bucket, key=key)

    async def generate_download_url(self, key: str, expires_in: int = 3600) -> str:
        async with self._client() as client:
            return await client.generate_presigned_url(
                "get_object",
                Params={"Bucket": self.bucket, "Key": key},
                ExpiresIn=expires_in,
            )


def get_storage_client(
    storage_type: str = "local",
    bucket: str = "user-service",
    region: str = "us-east-1",
    endpoint_url: str | None = None,
    local_path: str | None = None,
    serve_url: str = "http://localhost:8080/files",
) -> StorageClient:
    """Create the storage client for the configured backend.

    Raises:
        ValueError: If storage_type is invalid or required params are missing
    """
    storage_type = storage_type.lower()

    if storage_type == "local":
        if not local_path:
            raise ValueError("local_path is required for local storage")
        logger.info("creating_storage_client", storage_type="local", local_path=local_path)
        return LocalStorageClient(base_path=local_path, bucket=bucket, serve_url=serve_url)

    if storage_type == "s3":
        logger.info("creating_storage_client", storage_type="s3", bucket=bucket)
        return S3Client(bucket=bucket, region=region, endpoint_url=endpoint_url)

    raise ValueError(f"Invalid storage_type: {storage_type}. Must be 's3' or 'local'")
