"""
Object storage with backend abstraction.

Supports any S3-compatible store (default) and a local directory for
development. The backend is selected via configuration.

Bucket rules for ``post-media``:
  - public read
  - 5 MB per object
  - png / jpeg / gif only
  - a user may only write or delete under their own ``{user_id}/`` prefix
"""

from __future__ import annotations

import asyncio
import json
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path

import structlog

from idolyst.config import get_settings
from idolyst.errors import StorageError

logger = structlog.get_logger()

_EXTENSIONS = {"image/png": ".png", "image/jpeg": ".jpg", "image/gif": ".gif"}


@dataclass(frozen=True)
class BucketPolicy:
    name: str
    public: bool
    file_size_limit: int
    allowed_mime_types: frozenset[str]

    def owns(self, user_id: str, path: str) -> bool:
        """True when ``path`` lies in ``user_id``'s top-level folder."""
        folder, _, rest = path.partition("/")
        return folder == user_id and bool(rest) and ".." not in rest.split("/")

    def check_upload(self, user_id: str, path: str, size: int, content_type: str) -> None:
        """Raises StorageError when the upload breaks a bucket rule."""
        if not self.owns(user_id, path):
            msg = "Uploads must go to your own folder"
            raise StorageError(msg)
        if size <= 0:
            msg = "File is empty"
            raise StorageError(msg)
        if size > self.file_size_limit:
            msg = f"File exceeds {self.file_size_limit // (1024 * 1024)} MB limit"
            raise StorageError(msg)
        if content_type.lower() not in self.allowed_mime_types:
            msg = f"Unsupported file type: {content_type}"
            raise StorageError(msg)

    def check_delete(self, user_id: str, path: str) -> None:
        if not self.owns(user_id, path):
            msg = "You can only delete files in your own folder"
            raise StorageError(msg)


MEDIA_BUCKET = BucketPolicy(
    name="post-media",
    public=True,
    file_size_limit=5 * 1024 * 1024,
    allowed_mime_types=frozenset({"image/png", "image/jpeg", "image/gif"}),
)


def build_object_path(user_id: str, content_type: str, prefix: str = "") -> str:
    """``{user_id}/{prefix/}{random}.{ext}``"""
    ext = _EXTENSIONS.get(content_type.lower(), "")
    middle = f"{prefix.strip('/')}/" if prefix else ""
    return f"{user_id}/{middle}{uuid.uuid4().hex}{ext}"


def public_read_policy(bucket: str) -> dict:
    """S3 bucket policy document granting anonymous GetObject."""
    return {
        "Version": "2012-10-17",
        "Statement": [
            {
                "Sid": "PublicRead",
                "Effect": "Allow",
                "Principal": "*",
                "Action": ["s3:GetObject"],
                "Resource": [f"arn:aws:s3:::{bucket}/*"],
            }
        ],
    }


class BaseStorageBackend(ABC):
    """Abstract base class for object storage backends."""

    def __init__(self, bucket: str, public_base_url: str) -> None:
        self.bucket = bucket
        self.public_base_url = public_base_url.rstrip("/")

    def public_url(self, path: str) -> str:
        return f"{self.public_base_url}/{path}"

    @abstractmethod
    async def put(self, path: str, data: bytes, content_type: str) -> None:
        """Store ``data`` at ``path``."""
        ...

    @abstractmethod
    async def delete(self, path: str) -> None: ...

    @abstractmethod
    async def provision(self, policy: BucketPolicy) -> None:
        """Create the bucket if needed and apply its access policy."""
        ...


class S3StorageBackend(BaseStorageBackend):
    """S3-compatible storage via aioboto3."""

    def __init__(
        self,
        bucket: str,
        public_base_url: str,
        region: str,
        endpoint_url: str | None = None,
    ) -> None:
        super().__init__(bucket, public_base_url)
        self.region = region
        self.endpoint_url = endpoint_url

    def _client(self):  # noqa: ANN202
        import aioboto3

        session = aioboto3.Session()
        return session.client("s3", region_name=self.region, endpoint_url=self.endpoint_url)

    async def put(self, path: str, data: bytes, content_type: str) -> None:
        try:
            async with self._client() as s3:
                await s3.put_object(Bucket=self.bucket, Key=path, Body=data, ContentType=content_type)
        except Exception as e:
            logger.exception("storage_upload_failed", bucket=self.bucket, path=path)
            msg = "Upload failed"
            raise StorageError(msg) from e

    async def delete(self, path: str) -> None:
        try:
            async with self._client() as s3:
                await s3.delete_object(Bucket=self.bucket, Key=path)
        except Exception as e:
            logger.exception("storage_delete_failed", bucket=self.bucket, path=path)
            msg = "Delete failed"
            raise StorageError(msg) from e

    async def provision(self, policy: BucketPolicy) -> None:
        async with self._client() as s3:
            existing = await s3.list_buckets()
            names = {b["Name"] for b in existing.get("Buckets", [])}
            if self.bucket not in names:
                kwargs: dict = {"Bucket": self.bucket}
                if self.region != "us-east-1":
                    kwargs["CreateBucketConfiguration"] = {"LocationConstraint": self.region}
                await s3.create_bucket(**kwargs)
                logger.info("storage_bucket_created", bucket=self.bucket)
            if policy.public:
                await s3.put_bucket_policy(Bucket=self.bucket, Policy=json.dumps(public_read_policy(self.bucket)))


class LocalStorageBackend(BaseStorageBackend):
    """Files under a local directory; for development without an object store."""

    def __init__(self, bucket: str, public_base_url: str, root: str) -> None:
        super().__init__(bucket, public_base_url)
        self.root = Path(root) / bucket

    def _resolve(self, path: str) -> Path:
        target = (self.root / path).resolve()
        if self.root.resolve() not in target.parents:
            msg = f"Invalid object path: {path}"
            raise StorageError(msg)
        return target

    async def put(self, path: str, data: bytes, content_type: str) -> None:
        target = self._resolve(path)

        def _write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)

        await asyncio.to_thread(_write)

    async def delete(self, path: str) -> None:
        target = self._resolve(path)
        await asyncio.to_thread(target.unlink, True)

    async def provision(self, policy: BucketPolicy) -> None:
        await asyncio.to_thread(self.root.mkdir, parents=True, exist_ok=True)


def _create_backend() -> BaseStorageBackend:
    """Create storage backend based on configuration."""
    settings = get_settings()
    backend = settings.storage_backend.lower()

    if backend == "s3":
        return S3StorageBackend(
            bucket=settings.storage_bucket,
            public_base_url=settings.storage_public_base_url,
            region=settings.storage_region,
            endpoint_url=settings.storage_endpoint_url,
        )
    if backend == "local":
        return LocalStorageBackend(
            bucket=settings.storage_bucket,
            public_base_url=settings.storage_public_base_url,
            root=settings.storage_local_root,
        )
    msg = f"Unsupported storage backend: {backend}"
    raise ValueError(msg)


class StorageService:
    """Policy-checked uploads into one bucket."""

    def __init__(self, backend: BaseStorageBackend | None = None, policy: BucketPolicy = MEDIA_BUCKET) -> None:
        self.backend = backend or _create_backend()
        self.policy = policy

    async def upload(self, user_id: str, path: str, data: bytes, content_type: str) -> str:
        """Store ``data`` and return its public URL.

        Raises:
            StorageError: if the upload breaks a bucket rule or the backend fails.
        """
        self.policy.check_upload(user_id, path, len(data), content_type)
        await self.backend.put(path, data, content_type)
        logger.info("storage_uploaded", bucket=self.backend.bucket, path=path, size=len(data))
        return self.backend.public_url(path)

    async def delete(self, user_id: str, path: str) -> None:
        self.policy.check_delete(user_id, path)
        await self.backend.delete(path)


_service: StorageService | None = None


def get_storage_service() -> StorageService:
    """Get or create the process-wide storage service."""
    global _service  # noqa: PLW0603
    if _service is None:
        _service = StorageService()
    return _service


async def provision_bucket(service: StorageService | None = None) -> None:
    """Create the media bucket and apply its public-read policy."""
    service = service or get_storage_service()
    await service.backend.provision(service.policy)
