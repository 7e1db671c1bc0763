"""
Base class for the read-only reporting repositories.

Repositories receive a session from the service that owns it and never
commit or roll back. Database errors are converted into RepositoryError.
"""

import logging
from contextlib import contextmanager
from typing import NoReturn, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..exceptions import BaseError, ErrorCode, RepositoryError


class BaseRepository:
    """Common session handling and error mapping."""

    def __init__(self, session: Session, logger: Optional[logging.Logger] = None):
        """
        Args:
            session: SQLAlchemy session for database operations
            logger: Optional logger instance
        """
        self.session = session
        self.logger = logger or logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    def _handle_db_error(self, e: Exception, operation_name: str, **context) -> NoReturn:
        if isinstance(e, BaseError):
            raise e

        error_context = {"operation_name": operation_name, "repository": type(self).__name__}
        error_context.update(context)

        if isinstance(e, SQLAlchemyError):
            self.logger.error(f"Database error in {operation_name}: {str(e)}", extra=error_context)
            raise RepositoryError(
                f"Database error in {operation_name}: {str(e)}",
                error_code=ErrorCode.DATABASE_ERROR,
                cause=e,
                **error_context,
            )

        self.logger.error(f"Unexpected error in {operation_name}: {str(e)}", extra=error_context)
        raise RepositoryError(
            f"Unexpected error in {operation_name}: {str(e)}",
            error_code=ErrorCode.INTERNAL_ERROR,
            cause=e,
            **error_context,
        )

    @contextmanager
    def _session_operation(self, operation_name: str, **context):
        """
        Yield the borrowed session, mapping failures to RepositoryError.

        Reporting queries never flush.
        """
        try:
            yield self.session
        except Exception as e:
            self._handle_db_error(e, operation_name, **context)
