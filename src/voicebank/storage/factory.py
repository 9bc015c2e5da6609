"""Factory for creating the configured storage provider."""

from collections.abc import Callable, Mapping

from ..logging import get_logger
from .base import StorageConfig, StorageProvider, UnsupportedStorageProvider
from .config import load_storage_config
from .implementations.supabase import SupabaseStorageProvider
from .implementations.tos import TOSStorageProvider

logger = get_logger(__name__)


def create_storage_provider(config: StorageConfig) -> StorageProvider:
    """Create a storage provider instance from configuration.

    Raises:
        UnsupportedStorageProvider: If the provider type is unknown
        StorageConfigurationError: If the provider rejects its settings
    """
    settings = dict(config.settings)

    if config.provider == "tos":
        return TOSStorageProvider(
            region=settings.get("region"),
            access_key_id=settings.get("access_key_id"),
            access_key_secret=settings.get("access_key_secret"),
            bucket_name=settings.get("bucket_name"),
            endpoint=settings.get("endpoint"),
        )
    elif config.provider == "supabase":
        return SupabaseStorageProvider(
            url=settings.get("url"),
            key=settings.get("key"),
            bucket=settings.get("bucket"),
        )
    else:
        raise UnsupportedStorageProvider(f"Unknown storage provider type: {config.provider}")


class StorageFactory:
    """Owns the single live storage provider for an application.

    The provider is built on first request from the current environment and
    returned unchanged afterwards. ``reset_instance`` empties the slot so the
    next request re-reads configuration. Concurrent first requests from
    different threads are not serialized.
    """

    def __init__(
        self,
        environ: Mapping[str, str] | None = None,
        config_loader: Callable[[Mapping[str, str] | None], StorageConfig] = load_storage_config,
        builder: Callable[[StorageConfig], StorageProvider] = create_storage_provider,
    ):
        self.environ = environ
        self._config_loader = config_loader
        self._builder = builder
        self._instance: StorageProvider | None = None
        self.build_count = 0

    @property
    def instance(self) -> StorageProvider | None:
        return self._instance

    def get_storage_provider(self) -> StorageProvider:
        if self._instance is None:
            config = self._config_loader(self.environ)
            # A construction failure propagates and leaves the slot empty
            provider = self._builder(config)
            self.build_count += 1
            self._instance = provider
            logger.info(
                "Storage provider created",
                provider=config.provider,
                bucket=getattr(provider, "bucket", None),
            )
        return self._instance

    def reset_instance(self) -> None:
        self._instance = None
        logger.info("Storage provider reset; next request will reload configuration")
