"""Storage configuration loaded from the process environment."""

from collections.abc import Mapping
from typing import Any

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..logging import get_logger
from .base import ProviderName, StorageConfig

logger = get_logger(__name__)

S3_ENDPOINT_MARKER = "tos-s3-"
TOS_ENDPOINT_MARKER = "tos-"

DEFAULT_SUPABASE_BUCKET = "audio-recordings"
DEFAULT_TOS_REGION = "cn-beijing"
DEFAULT_TOS_BUCKET = "yue-voice-audio"


class StorageSettings(BaseSettings):
    """Storage-related environment variables (no prefix)."""

    storage_provider: str = "supabase"

    supabase_url: str | None = None
    supabase_anon_key: str | None = None
    supabase_bucket: str = DEFAULT_SUPABASE_BUCKET

    tos_region: str = DEFAULT_TOS_REGION
    tos_access_key_id: str | None = None
    tos_access_key_secret: str | None = Field(default=None, repr=False)
    tos_bucket_name: str = DEFAULT_TOS_BUCKET
    tos_endpoint: str | None = None

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")


def _read_settings(environ: Mapping[str, str] | None) -> StorageSettings:
    if environ is None:
        return StorageSettings()
    # Validating directly skips the env and .env sources, so the mapping is all there is
    values = {k.lower(): v for k, v in environ.items() if k.lower() in StorageSettings.model_fields}
    return StorageSettings.model_validate(values)


def rewrite_s3_endpoint(endpoint: str | None) -> str | None:
    """Convert an S3-compatible TOS endpoint to the TOS-native form.

    ``tos-s3-cn-guangzhou.volces.com`` becomes ``tos-cn-guangzhou.volces.com``.
    """
    if endpoint and S3_ENDPOINT_MARKER in endpoint:
        rewritten = endpoint.replace(S3_ENDPOINT_MARKER, TOS_ENDPOINT_MARKER)
        logger.info("Rewrote S3-style TOS endpoint", original=endpoint, rewritten=rewritten)
        return rewritten
    return endpoint


def _selected_provider(env: StorageSettings) -> ProviderName:
    selector = (env.storage_provider or "supabase").strip().lower()
    if selector == "tos":
        return "tos"
    if selector != "supabase":
        logger.warning("Unknown storage provider, falling back to supabase", provider=selector)
    return "supabase"


def load_storage_config(environ: Mapping[str, str] | None = None) -> StorageConfig:
    """Read the storage provider selection and its settings.

    Args:
        environ: Optional mapping used instead of the process environment

    Returns:
        StorageConfig for the selected provider

    Any selector other than ``tos`` selects Supabase; an unrecognized value
    is logged as a warning.
    """
    env = _read_settings(environ)
    provider = _selected_provider(env)

    if provider == "tos":
        return StorageConfig(
            provider="tos",
            settings={
                "region": env.tos_region,
                "access_key_id": env.tos_access_key_id,
                "access_key_secret": env.tos_access_key_secret,
                "bucket_name": env.tos_bucket_name,
                "endpoint": rewrite_s3_endpoint(env.tos_endpoint),
            },
        )

    return StorageConfig(
        provider="supabase",
        settings={
            "url": env.supabase_url,
            "key": env.supabase_anon_key,
            "bucket": env.supabase_bucket,
        },
    )


def get_storage_info(environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    """Non-secret description of the configured storage, for diagnostics."""
    env = _read_settings(environ)

    if _selected_provider(env) == "tos":
        return {
            "provider": "tos",
            "bucket_name": env.tos_bucket_name,
            "region": env.tos_region,
            "endpoint": env.tos_endpoint,
        }

    return {"provider": "supabase", "bucket_name": env.supabase_bucket}
