"""Utility modules for the property management core."""

from .backoff import calculate_exponential_backoff
from .json_utils import dumps, loads
from .logger import (
    AzureQueueHandler,
    ContextAwareLogger,
    configure_logging,
    get_logger,
)

__all__ = [
    "calculate_exponential_backoff",
    "dumps",
    "loads",
    "ContextAwareLogger",
    "AzureQueueHandler",
    "configure_logging",
    "get_logger",
]
