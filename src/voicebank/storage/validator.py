"""
Operator diagnostics for the TOS storage backend.

Two independent checks run on demand: a configuration check (required
environment keys, bucket existence and auto-creation) and a live round trip
(upload a small object, read its metadata, delete it).
"""

from __future__ import annotations

import os
import time
from collections.abc import Mapping
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from typing import Any

from ..logging import get_logger
from .base import StorageFile
from .config import get_storage_info
from .implementations.tos import TOSStorageProvider

logger = get_logger(__name__)

REQUIRED_ENV_VARS = (
    "TOS_REGION",
    "TOS_ACCESS_KEY_ID",
    "TOS_ACCESS_KEY_SECRET",
    "TOS_BUCKET_NAME",
)


@dataclass
class ConfigValidationResult:
    is_valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    info: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class UploadTestResult:
    success: bool
    message: str
    details: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        data = {"success": self.success, "message": self.message}
        if self.details is not None:
            data["details"] = self.details
        return data


class TOSConfigValidator:
    """Checks TOS configuration against the live backend.

    The provider is built straight from the environment, so the factory's
    S3-endpoint rewrite does not apply here and an S3-style ``TOS_ENDPOINT``
    is reported as an error.
    """

    def __init__(
        self,
        environ: Mapping[str, str] | None = None,
        provider_cls: type[TOSStorageProvider] = TOSStorageProvider,
    ):
        self._environ = environ
        self._provider_cls = provider_cls

    @property
    def environ(self) -> Mapping[str, str]:
        return os.environ if self._environ is None else self._environ

    def missing_env_vars(self) -> list[str]:
        return [name for name in REQUIRED_ENV_VARS if not self.environ.get(name)]

    def _build_provider(self) -> TOSStorageProvider:
        env = self.environ
        return self._provider_cls(
            region=env.get("TOS_REGION"),
            access_key_id=env.get("TOS_ACCESS_KEY_ID"),
            access_key_secret=env.get("TOS_ACCESS_KEY_SECRET"),
            bucket_name=env.get("TOS_BUCKET_NAME"),
            endpoint=env.get("TOS_ENDPOINT"),
        )

    async def validate_configuration(self) -> ConfigValidationResult:
        result = ConfigValidationResult(is_valid=False)

        missing = self.missing_env_vars()
        if missing:
            result.errors.extend(f"Missing environment variable: {name}" for name in missing)
            logger.warning("TOS configuration incomplete", missing=missing)
            return result

        bucket_name = self.environ.get("TOS_BUCKET_NAME")
        try:
            provider = self._build_provider()
            tos_env = {**self.environ, "STORAGE_PROVIDER": "tos"}
            result.info["storage_config"] = get_storage_info(tos_env)

            bucket_exists = await provider.bucket_exists()
            result.info["bucket_exists"] = bucket_exists

            if not bucket_exists:
                result.warnings.append(
                    f'Bucket "{bucket_name}" does not exist; attempting to create it'
                )
                created = await provider.create_bucket_if_not_exists()
                result.info["bucket_created"] = created
                if not created:
                    result.errors.append(f'Unable to create bucket "{bucket_name}"')

        except Exception as e:
            logger.error("TOS configuration validation failed", error=str(e))
            result.errors.append(f"TOS configuration validation failed: {e}")

        result.is_valid = not result.errors
        logger.info(
            "TOS configuration validated",
            is_valid=result.is_valid,
            errors=len(result.errors),
            warnings=len(result.warnings),
        )
        return result

    async def test_upload(self) -> UploadTestResult:
        try:
            content = f"TOS test file - {datetime.now(UTC).isoformat()}".encode()
            test_file = StorageFile(
                content=content, content_type="text/plain", filename="test-file.txt"
            )
            provider = self._build_provider()
            test_key = f"test/{int(time.time() * 1000)}-test-file.txt"

            upload_result = await provider.upload(test_file, test_key)
            if not upload_result.success:
                return UploadTestResult(
                    success=False, message=f"Upload test failed: {upload_result.error}"
                )

            metadata = await provider.get_object_metadata(test_key)
            deleted = await provider.delete(test_key)

            return UploadTestResult(
                success=True,
                message="TOS storage test succeeded",
                details={
                    "upload_key": test_key,
                    "upload_url": upload_result.url,
                    "file_size": upload_result.size,
                    "metadata": metadata,
                    "deleted": deleted,
                },
            )

        except Exception as e:
            logger.error("TOS upload test failed", error=str(e))
            return UploadTestResult(success=False, message=f"TOS test failed: {e}")

    @staticmethod
    def get_configuration_guide() -> list[str]:
        return [
            "1. Create a TOS bucket in the Volcengine console",
            "2. Obtain an access key (Access Key ID and Access Key Secret)",
            "3. Set the following environment variables:",
            "   - TOS_REGION=cn-beijing (or another region)",
            "   - TOS_ACCESS_KEY_ID=your_access_key_id",
            "   - TOS_ACCESS_KEY_SECRET=your_access_key_secret",
            "   - TOS_BUCKET_NAME=your_bucket_name",
            "   - TOS_ENDPOINT=https://tos-cn-beijing.volces.com (optional)",
            "4. Set STORAGE_PROVIDER=tos",
            "5. Make sure the bucket grants the access the application needs",
        ]
