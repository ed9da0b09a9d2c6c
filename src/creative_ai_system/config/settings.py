"""Settings configuration"""
from typing import Optional
from pydantic import Field, field_validator, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    """Application settings"""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore", case_sensitive=False,
        validate_assignment=True
    )

    # Application
    app_name: str = Field(default="Creative AI System", validation_alias="APP_NAME")
    version: str = "1.0.0"
    environment: str = Field(default="development", validation_alias="ENVIRONMENT")
    debug: bool = Field(default=False, validation_alias="DEBUG")
    api_prefix: str = Field(default="/api/ai", validation_alias="API_PREFIX")

    # Server
    host: str = Field(default="0.0.0.0", validation_alias="HOST")
    port: int = Field(default=8000, validation_alias="PORT", ge=1, le=65535)

    # Provider credentials
    gemini_api_key: Optional[SecretStr] = Field(default=None, validation_alias="GEMINI_API_KEY")
    fal_key: Optional[SecretStr] = Field(default=None, validation_alias="FAL_KEY")
    fal_base_url: str = Field(default="https://fal.run", validation_alias="FAL_BASE_URL")
    provider_timeout_seconds: float = Field(default=600.0, validation_alias="PROVIDER_TIMEOUT_SECONDS", gt=0)

    # Retry policy for synchronous provider calls
    retry_max_attempts: int = Field(default=3, validation_alias="RETRY_MAX_ATTEMPTS", ge=1)
    retry_base_delay_ms: int = Field(default=1000, validation_alias="RETRY_BASE_DELAY_MS", ge=0)

    # Long-running video jobs
    video_poll_interval_ms: int = Field(default=10_000, validation_alias="VIDEO_POLL_INTERVAL_MS", gt=0)
    video_poll_deadline_ms: int = Field(default=300_000, validation_alias="VIDEO_POLL_DEADLINE_MS", gt=0)

    # Durable storage
    blob_read_write_token: Optional[SecretStr] = Field(default=None, validation_alias="BLOB_READ_WRITE_TOKEN")
    blob_base_url: str = Field(default="https://blob.vercel-storage.com", validation_alias="BLOB_BASE_URL")

    # Usage ledger storage
    database_url: Optional[str] = Field(default=None, validation_alias="DATABASE_URL")

    # Generation defaults
    default_image_size: str = Field(default="1K", validation_alias="DEFAULT_IMAGE_SIZE")

    # Logging
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")
    log_format: str = Field(default="json", validation_alias="LOG_FORMAT")

    @field_validator("default_image_size", mode="before")
    @classmethod
    def normalize_image_size(cls, v):
        if isinstance(v, str):
            v = v.strip().upper()
        if v not in ("1K", "2K", "4K"):
            raise ValueError("DEFAULT_IMAGE_SIZE must be one of 1K, 2K, 4K")
        return v

    @field_validator("log_format", mode="before")
    @classmethod
    def normalize_log_format(cls, v):
        if isinstance(v, str):
            v = v.strip().lower()
        if v not in ("json", "console"):
            raise ValueError("LOG_FORMAT must be 'json' or 'console'")
        return v

    # Properties
    @property
    def is_development(self) -> bool:
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def has_gemini_key(self) -> bool:
        return bool(self.gemini_api_key)

    @property
    def has_fal_key(self) -> bool:
        return bool(self.fal_key)


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance"""
    return Settings()
