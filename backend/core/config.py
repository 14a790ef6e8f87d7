"""
Configuration Management

Centralized configuration using Pydantic Settings.
All settings loaded from environment variables with sensible defaults.
"""
from typing import Optional, List
from pydantic_settings import BaseSettings
from pydantic import Field, ConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Ignore extra environment variables that aren't defined in the model
    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Per-device *_PUBLIC_KEY vars are read by the key resolver
        populate_by_name=True,
    )

    # ============================================================
    # Runtime Environment
    # ============================================================
    environment: str = Field(
        "production",
        validation_alias="NODE_ENV",
        description="Runtime environment (development/production/test)"
    )

    # ============================================================
    # Device Authentication
    # ============================================================
    known_devices: str = Field(
        "pi-user,pi-motion,pi-feeder,lambda-s3",
        description="Comma-separated device IDs allowed to sign requests"
    )
    device_keys_secret_name: Optional[str] = Field(
        None,
        description="Secrets Manager secret holding a JSON map of <DEVICE>_PUBLIC_KEY values"
    )
    timestamp_tolerance_ms: int = Field(
        5 * 60 * 1000,
        description="Accepted clock difference for x-timestamp (milliseconds, both directions)"
    )

    # ============================================================
    # AWS Configuration
    # ============================================================
    aws_region: str = Field("us-west-2", description="AWS region for S3 and Secrets Manager")
    secrets_timeout_seconds: float = Field(5.0, description="Connect/read timeout for Secrets Manager")
    s3_bucket_name: Optional[str] = Field(None, description="Bucket receiving device uploads")
    upload_url_expires_seconds: int = Field(900, description="Lifetime of presigned upload URLs")

    # ============================================================
    # API Configuration
    # ============================================================
    allowed_origins: str = Field(
        "http://localhost:3000,http://localhost:8000",
        description="Comma-separated CORS allowed origins"
    )
    api_port: int = Field(3000, description="API server port")

    # ============================================================
    # Logging Configuration
    # ============================================================
    log_level: str = Field("INFO", description="Logging level (DEBUG/INFO/WARNING/ERROR)")
    log_format: str = Field(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format string"
    )

    @property
    def allowed_origins_list(self) -> List[str]:
        """Parse allowed origins into list."""
        return [origin.strip() for origin in self.allowed_origins.split(",")]

    @property
    def known_devices_list(self) -> List[str]:
        """Parse known device IDs into list."""
        return [device.strip() for device in self.known_devices.split(",") if device.strip()]

    @property
    def is_development(self) -> bool:
        """True only for the local development environment."""
        return self.environment.strip().lower() == "development"


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Get application settings (singleton).

    Returns:
        Settings instance
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings():
    """Reload settings from environment (useful for testing)."""
    global _settings
    _settings = Settings()
    return _settings
