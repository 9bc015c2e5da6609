"""Tests for TOS configuration validator."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from voicebank.storage.base import StorageUploadResult
from voicebank.storage.implementations.tos import TOSStorageProvider
from voicebank.storage.validator import REQUIRED_ENV_VARS, TOSConfigValidator

TOS_ENV = {
    "TOS_REGION": "cn-beijing",
    "TOS_ACCESS_KEY_ID": "ak",
    "TOS_ACCESS_KEY_SECRET": "sk",
    "TOS_BUCKET_NAME": "voices",
}


@pytest.fixture
def tos_client():
    with patch("voicebank.storage.implementations.tos.TosClientV2") as client_cls:
        yield client_cls.return_value


def _mock_provider_cls(**provider_attrs):
    """A provider class returning a single mocked provider instance."""
    provider = MagicMock()
    provider.bucket_exists = AsyncMock(return_value=True)
    provider.create_bucket_if_not_exists = AsyncMock(return_value=True)
    provider.upload = AsyncMock()
    provider.get_object_metadata = AsyncMock(return_value={"size": 0})
    provider.delete = AsyncMock(return_value=True)
    for name, value in provider_attrs.items():
        setattr(provider, name, value)
    return MagicMock(return_value=provider), provider


class TestValidateConfiguration:
    @pytest.mark.asyncio
    async def test_all_keys_missing(self):
        result = await TOSConfigValidator(environ={}).validate_configuration()

        assert result.is_valid is False
        assert result.errors == [
            f"Missing environment variable: {name}" for name in REQUIRED_ENV_VARS
        ]
        assert result.warnings == []
        assert result.info == {}

    @pytest.mark.asyncio
    async def test_empty_value_counts_as_missing(self):
        env = {**TOS_ENV, "TOS_ACCESS_KEY_SECRET": ""}

        result = await TOSConfigValidator(environ=env).validate_configuration()

        assert result.errors == ["Missing environment variable: TOS_ACCESS_KEY_SECRET"]

    @pytest.mark.asyncio
    async def test_valid_configuration(self, tos_client):
        result = await TOSConfigValidator(environ=TOS_ENV).validate_configuration()

        assert result.is_valid is True
        assert result.errors == []
        assert result.info["bucket_exists"] is True
        assert result.info["storage_config"] == {
            "provider": "tos",
            "bucket_name": "voices",
            "region": "cn-beijing",
            "endpoint": None,
        }

    @pytest.mark.asyncio
    async def test_s3_endpoint_reported(self, tos_client):
        env = {**TOS_ENV, "TOS_ENDPOINT": "tos-s3-cn-beijing.volces.com"}

        result = await TOSConfigValidator(environ=env).validate_configuration()

        assert result.is_valid is False
        assert len(result.errors) == 1
        assert result.errors[0].startswith("TOS configuration validation failed:")
        assert "S3-compatible" in result.errors[0]

    @pytest.mark.asyncio
    async def test_missing_bucket_is_created(self):
        provider_cls, provider = _mock_provider_cls(bucket_exists=AsyncMock(return_value=False))

        result = await TOSConfigValidator(
            environ=TOS_ENV, provider_cls=provider_cls
        ).validate_configuration()

        assert result.is_valid is True
        assert result.warnings == ['Bucket "voices" does not exist; attempting to create it']
        assert result.info["bucket_created"] is True
        provider.create_bucket_if_not_exists.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_bucket_creation_failure(self):
        provider_cls, _ = _mock_provider_cls(
            bucket_exists=AsyncMock(return_value=False),
            create_bucket_if_not_exists=AsyncMock(return_value=False),
        )

        result = await TOSConfigValidator(
            environ=TOS_ENV, provider_cls=provider_cls
        ).validate_configuration()

        assert result.is_valid is False
        assert result.errors == ['Unable to create bucket "voices"']

    @pytest.mark.asyncio
    async def test_reads_process_environment(self, clean_storage_env, monkeypatch, tos_client):
        for name, value in TOS_ENV.items():
            monkeypatch.setenv(name, value)

        result = await TOSConfigValidator().validate_configuration()

        assert result.is_valid is True


class TestUploadRoundTrip:
    @pytest.mark.asyncio
    async def test_success(self, tos_client):
        result = await TOSConfigValidator(environ=TOS_ENV).test_upload()

        assert result.success is True
        assert result.message == "TOS storage test succeeded"
        key = result.details["upload_key"]
        assert key.startswith("test/") and key.endswith("-test-file.txt")
        assert result.details["upload_url"] == f"https://voices.tos-cn-beijing.volces.com/{key}"
        assert result.details["file_size"] > 0
        assert result.details["deleted"] is True

        put_kwargs = tos_client.put_object.call_args.kwargs
        assert put_kwargs["content_type"] == "text/plain"
        tos_client.delete_object.assert_called_once_with("voices", key)

    @pytest.mark.asyncio
    async def test_upload_failure(self):
        provider_cls, provider = _mock_provider_cls()
        provider.upload.return_value = StorageUploadResult.failed("k", "AccessDenied")

        result = await TOSConfigValidator(environ=TOS_ENV, provider_cls=provider_cls).test_upload()

        assert result.success is False
        assert result.message == "Upload test failed: AccessDenied"
        assert result.details is None
        provider.delete.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_exception_is_reported(self):
        result = await TOSConfigValidator(environ={}).test_upload()

        assert result.success is False
        assert result.message.startswith("TOS test failed:")


def test_configuration_guide_mentions_every_key():
    guide = "\n".join(TOSConfigValidator.get_configuration_guide())

    for name in (*REQUIRED_ENV_VARS, "TOS_ENDPOINT", "STORAGE_PROVIDER"):
        assert name in guide


def test_default_provider_class():
    assert TOSConfigValidator()._provider_cls is TOSStorageProvider
