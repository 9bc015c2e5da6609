"""
Shared pytest fixtures and configuration for all tests.
"""

from collections.abc import Generator

import pytest

from voicebank.storage.base import StorageFile, StorageProvider, StorageUploadResult

WALLET = "0x" + "ab" * 20

STORAGE_ENV_VARS = (
    "STORAGE_PROVIDER",
    "SUPABASE_URL",
    "SUPABASE_ANON_KEY",
    "SUPABASE_BUCKET",
    "TOS_REGION",
    "TOS_ACCESS_KEY_ID",
    "TOS_ACCESS_KEY_SECRET",
    "TOS_BUCKET_NAME",
    "TOS_ENDPOINT",
)


class FakeStorageProvider(StorageProvider):
    """In-memory provider recording every call, for tests of callers."""

    name = "fake"

    def __init__(self, fail_keys: set[str] | None = None, bucket: str = "fake-bucket"):
        self.bucket = bucket
        self.fail_keys = fail_keys or set()
        self.objects: dict[str, bytes] = {}
        self.upload_calls: list[str] = []
        self.deleted: list[str] = []

    async def upload(self, file: StorageFile, key: str) -> StorageUploadResult:
        self.upload_calls.append(key)
        if key in self.fail_keys:
            return StorageUploadResult.failed(key, "simulated failure")
        self.objects[key] = file.content
        return StorageUploadResult(
            success=True, key=key, url=self.get_public_url(key), size=file.size
        )

    def get_public_url(self, key: str) -> str:
        return f"https://fake.example.com/{self.bucket}/{key}"

    async def delete(self, key: str) -> bool:
        self.deleted.append(key)
        return self.objects.pop(key, None) is not None

    async def upload_multiple(self, items):
        return [await self.upload(file, key) for file, key in items]


@pytest.fixture
def clean_storage_env(monkeypatch: pytest.MonkeyPatch) -> Generator[None, None, None]:
    """Remove every storage-related variable from the process environment."""
    for name in STORAGE_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture
def fake_provider() -> FakeStorageProvider:
    return FakeStorageProvider()


@pytest.fixture
def wav_file() -> StorageFile:
    return StorageFile(content=b"\x00" * 1024, content_type="audio/wav", filename="test_001.wav")


@pytest.fixture
def wallet() -> str:
    return WALLET


@pytest.fixture
def make_provider():
    """Build fake providers with custom failing keys or bucket."""
    return FakeStorageProvider
