"""
Configuration management for the voicebank backend
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API Settings
    api_host: str = "0.0.0.0"
    api_port: int = 8088
    api_reload: bool = False
    cors_origins: list[str] = ["http://localhost:3000"]

    # Environment
    environment: str = "development"  # 'development', 'staging', 'production'
    debug: bool = True
    log_level: str = "INFO"

    # Audio Upload Settings
    max_upload_size: int = 10 * 1024 * 1024  # 10MB
    allowed_audio_types: list[str] = [
        "audio/wav",
        "audio/webm",
        "audio/mp3",
        "audio/mpeg",
        "audio/ogg",
    ]
    default_language: str = "yue"

    model_config = SettingsConfigDict(
        env_file=".env",
        env_prefix="VOICEBANK_",
        case_sensitive=False,
        extra="ignore",
    )


# Global settings instance
settings = Settings()
