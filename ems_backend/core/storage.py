import mimetypes
import uuid
from functools import lru_cache
from typing import Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError
from starlette.concurrency import run_in_threadpool

from .config import settings


class StorageError(Exception):
    """Raised when the object store rejects or fails an upload."""


def build_object_key(folder: str, filename: Optional[str]) -> str:
    """uploads land under <folder>/<uuid><ext>, keeping only the original extension"""
    ext = ""
    if filename and "." in filename:
        ext = "." + filename.rsplit(".", 1)[-1].lower()
    return f"{folder}/{uuid.uuid4().hex}{ext}"


class ObjectStorage:
    """S3-compatible object storage: bytes in, public URL out."""

    def __init__(
        self,
        bucket: str,
        region: str,
        endpoint_url: Optional[str] = None,
        public_base_url: Optional[str] = None,
        client=None,
    ):
        self.bucket = bucket
        self.region = region
        self.public_base_url = (
            public_base_url or f"https://{bucket}.s3.{region}.amazonaws.com"
        ).rstrip("/")
        self._client = client or boto3.client(
            "s3",
            region_name=region,
            endpoint_url=endpoint_url,
            aws_access_key_id=settings.aws_access_key_id,
            aws_secret_access_key=settings.aws_secret_access_key,
        )

    def url_for(self, key: str) -> str:
        return f"{self.public_base_url}/{key}"

    def put_bytes(
        self,
        data: bytes,
        *,
        folder: str,
        filename: Optional[str] = None,
        content_type: Optional[str] = None,
    ) -> str:
        key = build_object_key(folder, filename)
        if not content_type:
            guessed, _ = mimetypes.guess_type(filename or "")
            content_type = guessed or "application/octet-stream"
        try:
            self._client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
            )
        except (BotoCoreError, ClientError) as e:
            raise StorageError(str(e)) from e
        return self.url_for(key)

    async def upload(
        self,
        data: bytes,
        *,
        folder: str,
        filename: Optional[str] = None,
        content_type: Optional[str] = None,
    ) -> str:
        """Upload without blocking the event loop; returns the public URL."""
        return await run_in_threadpool(
            self.put_bytes,
            data,
            folder=folder,
            filename=filename,
            content_type=content_type,
        )


@lru_cache
def _default_storage() -> ObjectStorage:
    return ObjectStorage(
        bucket=settings.s3_bucket,
        region=settings.s3_region,
        endpoint_url=settings.s3_endpoint_url,
        public_base_url=settings.s3_public_base_url,
    )


def get_object_storage() -> ObjectStorage:
    """Dependency returning the process-wide object storage client"""
    return _default_storage()
