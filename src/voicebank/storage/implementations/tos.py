"""Volcengine TOS storage provider for recorded audio."""

import asyncio
import functools
from datetime import UTC, datetime
from typing import Any

from tos import TosClientV2

from ...logging import get_logger
from ..base import (
    StorageConfigurationError,
    StorageFile,
    StorageProvider,
    StorageUploadResult,
    approximate,
)
from ..config import S3_ENDPOINT_MARKER
from ..pacing import NO_RETRY, RetryPolicy, upload_parallel

logger = get_logger(__name__)


def normalize_endpoint(endpoint: str | None) -> str | None:
    """Validate and normalize a TOS endpoint.

    Rejects the S3-compatible form, prefixes ``https://`` when no scheme is
    given and trims a trailing slash.

    Raises:
        StorageConfigurationError: If the endpoint uses the S3-compatible form
    """
    if not endpoint:
        return None

    if S3_ENDPOINT_MARKER in endpoint:
        raise StorageConfigurationError(
            "TOS SDK does not support the S3-compatible endpoint format.\n"
            f"Current endpoint: {endpoint}\n"
            "Use the TOS-native form, e.g. https://tos-cn-guangzhou.volces.com,\n"
            "or change the TOS_ENDPOINT environment variable accordingly"
        )

    if not endpoint.startswith(("http://", "https://")):
        endpoint = f"https://{endpoint}"
    return endpoint.rstrip("/")


class TOSStorageProvider(StorageProvider):
    """TOS bucket accessed through the synchronous TOS SDK in a worker thread."""

    name = "tos"

    def __init__(
        self,
        region: str,
        access_key_id: str | None,
        access_key_secret: str | None,
        bucket_name: str,
        endpoint: str | None = None,
        max_concurrency: int | None = None,
    ):
        normalized = normalize_endpoint(endpoint)

        if not region:
            raise StorageConfigurationError("TOS storage requires 'region' in configuration")
        if not bucket_name:
            raise StorageConfigurationError("TOS storage requires 'bucket_name' in configuration")
        if not access_key_id or not access_key_secret:
            raise StorageConfigurationError(
                "TOS storage requires 'access_key_id' and 'access_key_secret' in configuration"
            )

        self.region = region
        self.bucket = bucket_name
        self.endpoint = normalized
        self.max_concurrency = max_concurrency

        client_endpoint = normalized or f"tos-{self.region}.volces.com"
        self.client = TosClientV2(access_key_id, access_key_secret, client_endpoint, self.region)

        logger.info(
            "TOS storage provider initialized",
            region=self.region,
            bucket=self.bucket,
            original_endpoint=endpoint,
            endpoint=normalized,
            has_access_key=True,
        )

    async def _run_sync(self, func, *args, **kwargs) -> Any:
        """Run a blocking SDK call in the default thread pool."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(func, *args, **kwargs))

    async def upload(self, file: StorageFile, key: str) -> StorageUploadResult:
        logger.info(
            "Uploading to TOS",
            key=key,
            filename=file.filename,
            size=file.size,
            content_type=file.content_type,
            bucket=self.bucket,
        )
        try:
            body = bytes(file.content)
            await self._run_sync(
                self.client.put_object,
                self.bucket,
                key,
                content_length=len(body),
                content_type=file.content_type,
                content=body,
            )
        except Exception as e:
            logger.error("TOS upload failed", key=key, error=str(e))
            return StorageUploadResult.failed(key, str(e) or "TOS upload failed")

        return StorageUploadResult(
            success=True, key=key, url=self.get_public_url(key), size=file.size
        )

    def get_public_url(self, key: str) -> str:
        if self.endpoint:
            return f"{self.endpoint}/{self.bucket}/{key}"
        return f"https://{self.bucket}.tos-{self.region}.volces.com/{key}"

    async def delete(self, key: str) -> bool:
        try:
            await self._run_sync(self.client.delete_object, self.bucket, key)
        except Exception as e:
            logger.error("TOS delete failed", key=key, error=str(e))
            return False

        logger.info("Deleted object from TOS", key=key)
        return True

    async def upload_multiple(
        self,
        items: list[tuple[StorageFile, str]],
        retry_policy: RetryPolicy = NO_RETRY,
    ) -> list[StorageUploadResult]:
        """Upload every item concurrently."""
        return await upload_parallel(self, items, self.max_concurrency, retry_policy)

    # The capabilities below are placeholders: they do not call the backend.

    @approximate
    async def get_presigned_upload_url(self, key: str, expires: int = 3600) -> str:
        """Returns the plain public URL, not a signed one."""
        _ = expires
        return self.get_public_url(key)

    @approximate
    async def get_object_metadata(self, key: str) -> dict[str, Any]:
        """Returns static placeholder values."""
        _ = key
        return {
            "size": 0,
            "content_type": "application/octet-stream",
            "last_modified": datetime.now(UTC).isoformat(),
            "metadata": {},
        }

    @approximate
    async def list_objects(self, prefix: str, max_keys: int = 100) -> list[dict[str, Any]]:
        """Always empty."""
        _ = prefix, max_keys
        return []

    @approximate
    async def bucket_exists(self) -> bool:
        """Always reports the bucket as present."""
        return True

    @approximate
    async def create_bucket_if_not_exists(self) -> bool:
        """Assumes the bucket exists; never creates one."""
        return True
