"""Tests for Supabase storage provider."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from voicebank.storage.base import StorageConfigurationError, StorageException, StorageFile
from voicebank.storage.implementations.supabase import SupabaseStorageProvider
from voicebank.storage.pacing import RetryPolicy, UploadPacer


class TestSupabaseStorageProvider:
    """Test Supabase storage provider functionality."""

    @pytest.fixture
    def sleeps(self):
        return []

    @pytest.fixture
    def provider(self, sleeps):
        async def sleep(seconds):
            sleeps.append(seconds)

        return SupabaseStorageProvider(
            url="https://project.supabase.co/",
            key="anon-key",
            bucket="audio-recordings",
            pacer=UploadPacer(0.2, sleep=sleep),
        )

    @pytest.fixture
    def bucket_api(self, provider):
        """Install a mocked client whose bucket API records calls."""
        bucket = MagicMock()
        bucket.upload = AsyncMock(return_value={"Key": "ok"})
        bucket.remove = AsyncMock(return_value=[])
        bucket.list = AsyncMock(return_value=[])
        bucket.create_signed_url = AsyncMock()

        client = MagicMock()
        client.storage.from_.return_value = bucket
        provider._client = client
        return bucket

    def test_requires_url_and_key(self):
        with pytest.raises(StorageConfigurationError, match="'url'"):
            SupabaseStorageProvider(url=None, key="k")
        with pytest.raises(StorageConfigurationError, match="'key'"):
            SupabaseStorageProvider(url="https://p.supabase.co", key="")

    def test_default_bucket(self):
        provider = SupabaseStorageProvider(url="https://p.supabase.co", key="k", bucket="")

        assert provider.bucket == "audio-recordings"

    def test_public_url(self, provider):
        url = provider.get_public_url("0xabc/test_001.wav")

        assert url == (
            "https://project.supabase.co/storage/v1/object/public/"
            "audio-recordings/0xabc/test_001.wav"
        )

    @pytest.mark.asyncio
    async def test_upload_success(self, provider, bucket_api, wav_file):
        key = "0xabc/test_001.wav"

        result = await provider.upload(wav_file, key)

        assert result.success is True
        assert result.key == key
        assert result.size == 1024
        assert "audio-recordings" in result.url
        assert result.error is None

        call_kwargs = bucket_api.upload.call_args.kwargs
        assert call_kwargs["path"] == key
        assert call_kwargs["file"] == wav_file.content
        assert call_kwargs["file_options"]["content-type"] == "audio/wav"

    @pytest.mark.asyncio
    async def test_upload_failure_is_reported(self, provider, bucket_api, wav_file):
        bucket_api.upload.side_effect = Exception("The resource already exists")

        result = await provider.upload(wav_file, "k.wav")

        assert result.success is False
        assert result.url == ""
        assert result.size == 0
        assert result.error == "The resource already exists"

    @pytest.mark.asyncio
    async def test_client_created_lazily(self, provider):
        client = MagicMock()
        client.storage.from_.return_value.upload = AsyncMock()

        with patch(
            "voicebank.storage.implementations.supabase.create_async_client",
            AsyncMock(return_value=client),
        ) as create:
            await provider.upload(StorageFile(content=b"a"), "a")
            await provider.upload(StorageFile(content=b"b"), "b")

        create.assert_awaited_once_with("https://project.supabase.co", "anon-key")
        client.storage.from_.assert_called_with("audio-recordings")

    @pytest.mark.asyncio
    async def test_delete(self, provider, bucket_api):
        assert await provider.delete("a/b.wav") is True
        bucket_api.remove.assert_awaited_once_with(["a/b.wav"])

    @pytest.mark.asyncio
    async def test_delete_failure_returns_false(self, provider, bucket_api):
        bucket_api.remove.side_effect = Exception("network down")

        assert await provider.delete("a/b.wav") is False

    @pytest.mark.asyncio
    async def test_upload_multiple_is_serial_and_paced(self, provider, bucket_api, sleeps):
        items = [(StorageFile(content=b"x" * n), f"batch/{n}.wav") for n in (1, 2, 3)]

        results = await provider.upload_multiple(items)

        assert [r.key for r in results] == ["batch/1.wav", "batch/2.wav", "batch/3.wav"]
        assert [r.size for r in results] == [1, 2, 3]
        assert [c.kwargs["path"] for c in bucket_api.upload.call_args_list] == [
            "batch/1.wav",
            "batch/2.wav",
            "batch/3.wav",
        ]
        assert sleeps == [0.2, 0.2]

    @pytest.mark.asyncio
    async def test_upload_multiple_with_retry(self, provider, bucket_api, sleeps):
        bucket_api.upload.side_effect = [Exception("rate limited"), {"Key": "ok"}]

        with patch("voicebank.storage.pacing.asyncio.sleep", AsyncMock()) as retry_sleep:
            results = await provider.upload_multiple(
                [(StorageFile(content=b"a"), "a.wav")],
                retry_policy=RetryPolicy(max_attempts=2, base_delay=0.5),
            )

        assert results[0].success is True
        assert bucket_api.upload.await_count == 2
        retry_sleep.assert_awaited_once_with(0.5)
        assert sleeps == []

    @pytest.mark.asyncio
    async def test_get_object_metadata(self, provider, bucket_api):
        bucket_api.list.return_value = [
            {"name": "other.wav", "metadata": {"size": 1}},
            {
                "name": "clip.wav",
                "updated_at": "2024-01-01T00:00:00Z",
                "metadata": {"size": 2048, "mimetype": "audio/wav"},
            },
        ]

        metadata = await provider.get_object_metadata("0xabc/clip.wav")

        bucket_api.list.assert_awaited_once_with("0xabc", {"search": "clip.wav"})
        assert metadata["size"] == 2048
        assert metadata["content_type"] == "audio/wav"
        assert metadata["last_modified"] == "2024-01-01T00:00:00Z"

    @pytest.mark.asyncio
    async def test_get_object_metadata_missing(self, provider, bucket_api):
        with pytest.raises(StorageException, match="File not found"):
            await provider.get_object_metadata("0xabc/missing.wav")

    @pytest.mark.asyncio
    async def test_list_objects(self, provider, bucket_api):
        bucket_api.list.return_value = [{"name": "a.wav"}]

        assert await provider.list_objects("0xabc", max_keys=5) == [{"name": "a.wav"}]
        bucket_api.list.assert_awaited_once_with("0xabc", {"limit": 5})

    @pytest.mark.asyncio
    async def test_create_signed_url(self, provider, bucket_api):
        bucket_api.create_signed_url.return_value = {"signedURL": "https://signed/url"}

        assert await provider.create_signed_url("a.wav", 60) == "https://signed/url"
        bucket_api.create_signed_url.assert_awaited_once_with("a.wav", 60)

    @pytest.mark.asyncio
    async def test_create_signed_url_error(self, provider, bucket_api):
        bucket_api.create_signed_url.side_effect = Exception("denied")

        with pytest.raises(StorageException, match="denied"):
            await provider.create_signed_url("a.wav")

    def test_all_capabilities_are_real(self, provider):
        for capability in ("upload", "delete", "get_object_metadata", "list_objects"):
            assert provider.is_approximate(capability) is False
