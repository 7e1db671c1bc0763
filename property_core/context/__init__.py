"""Context management for service operations."""

from .operation_context import OperationContext, OperationHandler, operation

__all__ = [
    "operation",
    "OperationContext",
    "OperationHandler",
]
