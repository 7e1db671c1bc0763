"""
Centralized configuration management for the property management core.

This module provides a unified configuration system with support for:
- Environment variables
- Per-concern sections (database, logging, notifications, storage, OCR)
- Validation using Pydantic
"""

import os
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator

from .constants import EnvironmentVariable, Limits, LogLevel, QueueName


class DatabaseConfig(BaseModel):
    """Database connection configuration."""

    connection_string: str = Field(
        default_factory=lambda: os.getenv(
            EnvironmentVariable.DATABASE_URL.value, "sqlite:///./property_core.db"
        ),
        description="Database connection string",
    )
    pool_size: int = Field(default=5, description="Connection pool size")
    max_overflow: int = Field(default=10, description="Maximum overflow connections")
    echo: bool = Field(default=False, description="Echo SQL statements")


class QueueConfig(BaseModel):
    """Azure Storage queue used for shipping structured logs."""

    connection_string: str = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.AZURE_STORAGE_CONNECTION.value, ""),
        description="Azure Storage connection string",
    )
    logs_queue_name: str = Field(default=QueueName.LOGS.value, description="Logs queue name")
    batch_size: int = Field(default=10, description="Log entries buffered before a flush")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.LOG_LEVEL.value, LogLevel.INFO.value),
        description="Logging level",
    )
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log format string",
    )
    service_name: str = Field(
        default_factory=lambda: os.getenv(
            EnvironmentVariable.SERVICE_NAME.value, "property-core"
        ),
        description="Name attached to every log record",
    )

    @field_validator("level")
    def validate_log_level(cls, v: str) -> str:
        """Validate log level is valid."""
        valid_levels = {level.value for level in LogLevel}
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}. Must be one of {valid_levels}")
        return v.upper()


class FeatureFlags(BaseModel):
    """Feature flags for controlling runtime behavior."""

    enable_logs_queue: bool = Field(
        default=False, description="Ship structured logs to the Azure logs queue"
    )
    enable_audit_logging: bool = Field(default=True, description="Persist audit log events")
    enable_welcome_emails: bool = Field(
        default=True, description="Send a welcome email when an admin creates a user"
    )


class SecurityConfig(BaseModel):
    """Login and password-reset throttling configuration."""

    max_login_attempts: int = Field(
        default=Limits.MAX_LOGIN_ATTEMPTS, description="Failed attempts before a key is blocked"
    )
    login_attempt_ttl_minutes: int = Field(
        default=Limits.LOGIN_ATTEMPT_TTL_MINUTES,
        description="Lifetime of a failed-attempt counter, measured from its first write",
    )
    password_reset_max_requests: int = Field(
        default=3, description="Reset requests allowed per email within the window"
    )
    password_reset_window_minutes: int = Field(default=60)
    redis_url: Optional[str] = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.REDIS_URL.value),
        description="Redis URL for the shared attempt store; in-memory when unset",
    )


class NotificationConfig(BaseModel):
    """Email notification and retry configuration."""

    max_retries: int = Field(default=Limits.MAX_NOTIFICATION_RETRIES, ge=0)
    retry_base_minutes: float = Field(default=1.0, gt=0, description="Delay after first failure")
    retry_multiplier: float = Field(default=5.0, ge=1, description="Growth factor per failure")
    retry_max_minutes: float = Field(default=1440.0, gt=0, description="Upper bound on delay")
    from_address: str = Field(
        default_factory=lambda: os.getenv(
            EnvironmentVariable.MAIL_FROM.value, "noreply@property-core.local"
        )
    )
    company_name: str = Field(default="Property Management")
    support_email: str = Field(default="support@property-core.local")
    frontend_url: str = Field(
        default_factory=lambda: os.getenv(
            EnvironmentVariable.FRONTEND_URL.value, "http://localhost:3000"
        )
    )
    password_reset_expiration_minutes: int = Field(default=15)


class SmtpConfig(BaseModel):
    """SMTP transport configuration."""

    host: str = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.SMTP_HOST.value, "localhost")
    )
    port: int = Field(
        default_factory=lambda: int(os.getenv(EnvironmentVariable.SMTP_PORT.value, "25"))
    )
    username: Optional[str] = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.SMTP_USERNAME.value)
    )
    password: Optional[str] = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.SMTP_PASSWORD.value)
    )
    use_tls: bool = Field(default=False)
    timeout: int = Field(default=30, description="Socket timeout in seconds")


class StorageConfig(BaseModel):
    """Blob storage configuration."""

    base_path: str = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.STORAGE_PATH.value, "./storage")
    )
    public_url_base: str = Field(default="/files/")
    download_url_expiry_seconds: int = Field(default=3600)


class OcrConfig(BaseModel):
    """Identity and cheque OCR configuration."""

    aws_region: str = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.AWS_REGION.value, "me-central-1")
    )
    max_file_size_bytes: int = Field(default=Limits.MAX_IDENTITY_IMAGE_BYTES)
    allowed_content_types: List[str] = Field(
        default_factory=lambda: ["image/jpeg", "image/jpg", "image/png"]
    )


class DashboardConfig(BaseModel):
    """Defaults for dashboard aggregation."""

    transaction_threshold: float = Field(default=10000.0)
    transaction_limit: int = Field(default=10)
    lease_expiry_days: int = Field(default=100)
    activity_limit: int = Field(default=10)
    expiration_list_limit: int = Field(default=10)


class AppConfig(BaseModel):
    """Main application configuration."""

    environment: str = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.APP_ENV.value, "development"),
        description="Application environment",
    )
    debug: bool = Field(
        default_factory=lambda: os.getenv(EnvironmentVariable.DEBUG.value, "false").lower()
        == "true",
        description="Debug mode",
    )

    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    queue: QueueConfig = Field(default_factory=QueueConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    features: FeatureFlags = Field(default_factory=FeatureFlags)
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    notifications: NotificationConfig = Field(default_factory=NotificationConfig)
    smtp: SmtpConfig = Field(default_factory=SmtpConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    ocr: OcrConfig = Field(default_factory=OcrConfig)
    dashboards: DashboardConfig = Field(default_factory=DashboardConfig)

    custom: Dict[str, Any] = Field(default_factory=dict, description="Custom configuration values")

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Create configuration from environment variables."""
        return cls()

    def get_custom(self, key: str, default: Any = None) -> Any:
        """Get a custom configuration value."""
        return self.custom.get(key, default)

    def set_custom(self, key: str, value: Any) -> None:
        """Set a custom configuration value."""
        self.custom[key] = value


# Global configuration instance
_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def set_config(config: AppConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config


def reset_config() -> None:
    """Reset the global configuration instance."""
    global _config
    _config = None
