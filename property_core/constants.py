"""
Constants shared across the property management core.

Centralizes environment variable names, log context keys, and numeric
limits so services and configuration agree on them.
"""

from enum import Enum


class QueueName(str, Enum):
    """Storage queue names."""

    LOGS = "logs-queue"


class LogLevel(str, Enum):
    """Standard logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class EnvironmentVariable(str, Enum):
    """Standard environment variable names."""

    AZURE_STORAGE_CONNECTION = "AzureWebJobsStorage"
    DATABASE_URL = "DATABASE_URL"
    APP_ENV = "APP_ENV"
    LOG_LEVEL = "LOG_LEVEL"
    DEBUG = "DEBUG"
    SERVICE_NAME = "SERVICE_NAME"
    REDIS_URL = "REDIS_URL"
    SMTP_HOST = "SMTP_HOST"
    SMTP_PORT = "SMTP_PORT"
    SMTP_USERNAME = "SMTP_USERNAME"
    SMTP_PASSWORD = "SMTP_PASSWORD"
    MAIL_FROM = "MAIL_FROM"
    FRONTEND_URL = "FRONTEND_URL"
    STORAGE_PATH = "STORAGE_PATH"
    AWS_REGION = "AWS_REGION"


class LogContextKey(str, Enum):
    """Standard keys for logging context."""

    OPERATION_ID = "operation_id"
    CORRELATION_ID = "correlation_id"
    USER_ID = "user_id"
    DURATION_MS = "duration_ms"
    STATUS = "status"
    ERROR_CODE = "error_code"
    OPERATION = "operation"


class Limits:
    """System limits and thresholds."""

    DEFAULT_PAGE_SIZE = 20
    MAX_PAGE_SIZE = 500
    MAX_LOGIN_ATTEMPTS = 5
    LOGIN_ATTEMPT_TTL_MINUTES = 15
    MAX_NOTIFICATION_RETRIES = 3
    MAX_LEAD_DOCUMENT_BYTES = 5 * 1024 * 1024
    MAX_IDENTITY_IMAGE_BYTES = 5 * 1024 * 1024
    MAX_DOCUMENT_BYTES = 10 * 1024 * 1024
    MINIMUM_TENANT_AGE = 18
    DEFAULT_CHEQUE_COUNT = 12
    DOCUMENT_EXPIRY_WARNING_DAYS = 30
