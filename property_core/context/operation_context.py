"""
Operation context for cross-cutting concerns of service calls.

Every public service method is wrapped with ``@operation()``, which logs
ENTER/EXIT/ERROR lines with timing and keeps a correlation id on the thread
so nested calls and raised errors share it.
"""

import logging
import time
import uuid
from contextlib import contextmanager
from functools import wraps
from typing import Any, Callable, Dict, Optional, TypeVar, Union, cast

from ..exceptions import BaseError, get_correlation_id, set_correlation_id
from ..utils.logger import ContextAwareLogger, get_logger

_SENSITIVE_PARAMS = frozenset(
    [
        "password",
        "temporary_password",
        "temporaryPassword",
        "token",
        "reset_token",
        "resetToken",
        "resetLink",
        "content",
    ]
)


class OperationContext:
    """Context for a specific operation."""

    def __init__(self, operation_name: str, correlation_id: Optional[str] = None, **context):
        self.operation_name = operation_name
        self.operation_id = str(uuid.uuid4())

        self.correlation_id = correlation_id or get_correlation_id() or str(uuid.uuid4())
        set_correlation_id(self.correlation_id)

        self.context = context
        self.context["operation_id"] = self.operation_id
        self.context["correlation_id"] = self.correlation_id

        self.start_time = time.time()
        self.metrics: Dict[str, Union[int, float]] = {}

    @property
    def duration_ms(self) -> float:
        """Get the operation duration in milliseconds."""
        return (time.time() - self.start_time) * 1000

    def add_context(self, **kwargs) -> None:
        self.context.update(kwargs)

    def add_metric(self, name: str, value: Union[int, float]) -> None:
        self.metrics[name] = value


class OperationHandler:
    """Handles operation logging and error enrichment."""

    def __init__(self, logger: Optional[Union[logging.Logger, ContextAwareLogger]] = None):
        self.logger = logger if logger is not None else get_logger()

    @contextmanager
    def operation(self, name: str, **context):
        """Context manager for operations."""
        op_ctx = OperationContext(name, **context)
        ids = {"operation_id": op_ctx.operation_id, "correlation_id": op_ctx.correlation_id}

        self.logger.debug(f"ENTER: {name}", extra={**context, **ids})

        try:
            yield op_ctx

            self.logger.info(
                f"EXIT: {name}",
                extra={
                    **context,
                    **ids,
                    "duration_ms": round(op_ctx.duration_ms, 2),
                    "status": "success",
                    **op_ctx.metrics,
                },
            )

        except BaseError as e:
            e.add_context(
                operation_name=name,
                operation_id=op_ctx.operation_id,
                operation_duration_ms=op_ctx.duration_ms,
            )
            # BaseError already logged itself; this line ties it to the operation
            self.logger.warning(
                f"ERROR: {name} -> {e.error_code.value}: {e.message}",
                extra={
                    **context,
                    **ids,
                    "duration_ms": round(op_ctx.duration_ms, 2),
                    "error_id": e.error_id,
                    "error_code": e.error_code.value,
                    "status": "error",
                },
            )
            raise

        except Exception as e:
            self.logger.exception(
                f"ERROR: {name} -> {type(e).__name__}: {str(e)}",
                extra={
                    **context,
                    **ids,
                    "duration_ms": round(op_ctx.duration_ms, 2),
                    "error_type": type(e).__name__,
                    "status": "error",
                },
            )
            raise


F = TypeVar("F", bound=Callable[..., Any])


def _sanitize_param(param, key: Optional[str] = None):
    """Sanitize a parameter for logging to avoid secrets or huge objects."""
    if key in _SENSITIVE_PARAMS:
        return "***"
    if param is None:
        return None
    elif isinstance(param, (str, int, float, bool)):
        return param
    elif isinstance(param, dict) and len(param) < 10:
        return {k: _sanitize_param(v, k) for k, v in param.items()}
    elif isinstance(param, (list, tuple)) and len(param) < 10:
        return [_sanitize_param(x) for x in param]
    else:
        return f"{type(param).__name__}"


def operation(name: Union[Optional[str], Callable] = None):
    """
    Decorator for service operations.

    Args:
        name: Optional operation name. Defaults to ``module.Class.method``.
    """

    def decorator(func: F) -> F:
        @wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            logger = get_logger()
            is_method = bool(args) and hasattr(args[0], func.__name__)

            if name is not None:
                op_name = name
            else:
                op_name = func.__name__
                if is_method:
                    op_name = f"{args[0].__class__.__name__}.{op_name}"
                op_name = f"{func.__module__.split('.')[-1]}.{op_name}"

            context: Dict[str, Any] = {"source_module": func.__module__}
            if is_method:
                context["class"] = args[0].__class__.__name__

            positional = args[1:] if is_method else args
            sanitized_args = [_sanitize_param(arg) for arg in positional]
            sanitized_kwargs = {k: _sanitize_param(v, k) for k, v in kwargs.items()}
            logger.debug(f"{op_name} args: {sanitized_args}, kwargs: {sanitized_kwargs}")

            handler = OperationHandler(logger=logger)
            with handler.operation(op_name, **context):
                return func(*args, **kwargs)

        return cast(F, wrapper)

    # Decorator used without parentheses
    if callable(name):
        func, name = name, None
        return decorator(func)

    return decorator
