"""Core storage interfaces shared by every audio storage backend."""

from abc import ABC, abstractmethod
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Literal

from ..logging import get_logger

logger = get_logger(__name__)

ProviderName = Literal["supabase", "tos"]


@dataclass(frozen=True)
class StorageConfig:
    """Selected backend plus its backend-specific settings."""

    provider: ProviderName
    settings: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        # Freeze the settings map so a loaded config cannot drift
        object.__setattr__(self, "settings", MappingProxyType(dict(self.settings)))


@dataclass
class StorageFile:
    """An uploaded file held fully in memory."""

    content: bytes
    content_type: str = "application/octet-stream"
    filename: str = ""

    @property
    def size(self) -> int:
        return len(self.content)


@dataclass
class StorageUploadResult:
    """Outcome of a single upload attempt, produced for success and failure alike."""

    success: bool
    key: str
    url: str = ""
    size: int = 0
    error: str | None = None

    @classmethod
    def failed(cls, key: str, error: str) -> "StorageUploadResult":
        return cls(success=False, key=key, url="", size=0, error=error)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "success": self.success,
            "key": self.key,
            "url": self.url,
            "size": self.size,
        }
        if self.error is not None:
            data["error"] = self.error
        return data


class StorageException(Exception):
    """Base exception for storage operations."""

    pass


class StorageConfigurationError(StorageException, ValueError):
    """Invalid or missing storage configuration, detected at construction time."""

    pass


class UnsupportedStorageProvider(StorageConfigurationError):
    """The configured provider selector names no known backend."""

    pass


def approximate(func: Callable) -> Callable:
    """Mark a provider capability as a simplified stand-in for the real operation."""
    func.__approximate__ = True  # type: ignore[attr-defined]
    return func


class StorageProvider(ABC):
    """Abstract base class for audio storage backends."""

    name: str = "base"
    bucket: str

    @abstractmethod
    async def upload(self, file: StorageFile, key: str) -> StorageUploadResult:
        """Store the file's bytes under ``key``.

        Transport and backend failures are reported through the result
        (``success=False`` plus ``error``), never raised.
        """
        pass

    @abstractmethod
    def get_public_url(self, key: str) -> str:
        """Derive the public URL for ``key`` without touching the network."""
        pass

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Delete ``key``; returns False on any failure."""
        pass

    @abstractmethod
    async def upload_multiple(
        self, items: list[tuple[StorageFile, str]]
    ) -> list[StorageUploadResult]:
        """Upload several files using the backend's batch policy."""
        pass

    def is_approximate(self, capability: str) -> bool:
        """Whether ``capability`` is a placeholder rather than a real backend call."""
        method = getattr(type(self), capability, None)
        if method is None:
            raise AttributeError(f"{type(self).__name__} has no capability {capability!r}")
        return bool(getattr(method, "__approximate__", False))
