"""Audio storage for voicebank recordings.

This module provides a pluggable storage layer with two backends:
- Supabase Storage
- Volcengine TOS

Main components:
- StorageProvider: Abstract base class for storage backends
- StorageFactory: Owner of the single live provider, with explicit reset
- TOSConfigValidator: Configuration and round-trip diagnostics for TOS
"""

from .base import (
    StorageConfig,
    StorageConfigurationError,
    StorageException,
    StorageFile,
    StorageProvider,
    StorageUploadResult,
    UnsupportedStorageProvider,
)
from .config import get_storage_info, load_storage_config
from .factory import StorageFactory, create_storage_provider
from .pacing import RetryPolicy, UploadPacer, upload_parallel, upload_serial
from .validator import TOSConfigValidator

__all__ = [
    # Base classes and exceptions
    "StorageProvider",
    "StorageConfig",
    "StorageFile",
    "StorageUploadResult",
    "StorageException",
    "StorageConfigurationError",
    "UnsupportedStorageProvider",
    # Factory
    "StorageFactory",
    "create_storage_provider",
    # Configuration
    "load_storage_config",
    "get_storage_info",
    # Batch policies
    "RetryPolicy",
    "UploadPacer",
    "upload_serial",
    "upload_parallel",
    # Diagnostics
    "TOSConfigValidator",
]
