"""Supabase storage provider for recorded audio."""

from typing import TYPE_CHECKING, Any

from supabase import create_async_client

from ...logging import get_logger
from ..base import (
    StorageConfigurationError,
    StorageException,
    StorageFile,
    StorageProvider,
    StorageUploadResult,
)
from ..config import DEFAULT_SUPABASE_BUCKET
from ..pacing import NO_RETRY, RetryPolicy, UploadPacer, upload_serial

if TYPE_CHECKING:
    from supabase import AsyncClient

logger = get_logger(__name__)

# Pause between serial batch items to stay under the storage API rate limit
BATCH_UPLOAD_INTERVAL = 0.2


class SupabaseStorageProvider(StorageProvider):
    """Supabase Storage bucket with lazily created async client."""

    name = "supabase"

    def __init__(
        self,
        url: str | None,
        key: str | None,
        bucket: str = DEFAULT_SUPABASE_BUCKET,
        pacer: UploadPacer | None = None,
    ):
        if not url:
            raise StorageConfigurationError("Supabase storage requires 'url' in configuration")
        if not key:
            raise StorageConfigurationError("Supabase storage requires 'key' in configuration")

        self.url = url.rstrip("/")
        self.key = key
        self.bucket = bucket or DEFAULT_SUPABASE_BUCKET
        self.pacer = pacer or UploadPacer(BATCH_UPLOAD_INTERVAL)
        self._client: AsyncClient | None = None

        logger.info("Supabase storage provider initialized", url=self.url, bucket=self.bucket)

    async def _get_client(self) -> "AsyncClient":
        """Get or create the async Supabase client."""
        if self._client is None:
            self._client = await create_async_client(self.url, self.key)
        return self._client

    async def _bucket_api(self) -> Any:
        client = await self._get_client()
        return client.storage.from_(self.bucket)

    async def upload(self, file: StorageFile, key: str) -> StorageUploadResult:
        logger.info(
            "Uploading to Supabase", key=key, size=file.size, content_type=file.content_type
        )
        try:
            bucket = await self._bucket_api()
            await bucket.upload(
                path=key,
                file=file.content,
                file_options={"content-type": file.content_type, "upsert": "false"},
            )
        except Exception as e:
            logger.error("Supabase upload failed", key=key, error=str(e))
            return StorageUploadResult.failed(key, str(e) or "Supabase upload failed")

        return StorageUploadResult(
            success=True, key=key, url=self.get_public_url(key), size=file.size
        )

    def get_public_url(self, key: str) -> str:
        return f"{self.url}/storage/v1/object/public/{self.bucket}/{key}"

    async def delete(self, key: str) -> bool:
        try:
            bucket = await self._bucket_api()
            await bucket.remove([key])
        except Exception as e:
            logger.error("Supabase delete failed", key=key, error=str(e))
            return False

        logger.info("Deleted object from Supabase", key=key)
        return True

    async def upload_multiple(
        self,
        items: list[tuple[StorageFile, str]],
        retry_policy: RetryPolicy = NO_RETRY,
    ) -> list[StorageUploadResult]:
        """Upload sequentially, pausing between items for the backend rate limit."""
        return await upload_serial(self, items, self.pacer, retry_policy)

    async def get_object_metadata(self, key: str) -> dict[str, Any]:
        """Look up size, type and modification time by listing the parent prefix."""
        prefix, _, filename = key.rpartition("/")
        try:
            bucket = await self._bucket_api()
            entries = await bucket.list(prefix, {"search": filename})
        except Exception as e:
            logger.error("Failed to get metadata from Supabase", key=key, error=str(e))
            raise StorageException(f"Get metadata failed: {e}") from e

        for entry in entries or []:
            if entry.get("name") == filename:
                metadata = entry.get("metadata") or {}
                return {
                    "size": metadata.get("size"),
                    "content_type": metadata.get("mimetype"),
                    "last_modified": entry.get("updated_at"),
                    "metadata": metadata,
                }

        raise StorageException(f"File not found: {key}")

    async def list_objects(self, prefix: str, max_keys: int = 100) -> list[dict[str, Any]]:
        try:
            bucket = await self._bucket_api()
            entries = await bucket.list(prefix, {"limit": max_keys})
        except Exception as e:
            logger.error("Failed to list Supabase objects", prefix=prefix, error=str(e))
            raise StorageException(f"List objects failed: {e}") from e
        return list(entries or [])

    async def create_signed_url(self, key: str, expires_in: int = 3600) -> str:
        """Create a time-limited download URL."""
        try:
            bucket = await self._bucket_api()
            response = await bucket.create_signed_url(key, expires_in)
        except Exception as e:
            logger.error("Failed to create signed URL", key=key, error=str(e))
            raise StorageException(f"Signed URL creation failed: {e}") from e

        signed_url = response.get("signedURL") or response.get("signedUrl")
        if not signed_url:
            raise StorageException(f"Signed URL missing from response for {key}")
        return signed_url
