"""
Base service implementation with common functionality for all services.

Services work on a SQLAlchemy session. When one is passed in, the caller owns
the transaction and the service only flushes; otherwise the service opens a
session from the global DatabaseManager and commits it itself.
"""

import logging
from contextlib import contextmanager
from typing import Any, Dict, List, NoReturn, Optional, Type, TypeVar

from pydantic import BaseModel
from sqlalchemy.orm import Query, Session

from ..db.db_config import get_db_manager
from ..exceptions import BaseError, ErrorCode, ServiceError
from ..utils.logger import get_logger

TRead = TypeVar("TRead", bound=BaseModel)


class BaseService:
    """Shared error handling and pagination for all services."""

    def __init__(
        self,
        read_schema_class: Optional[Type[BaseModel]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.read_schema_class = read_schema_class
        self.logger = logger or get_logger()

    def _handle_service_exception(
        self, operation: str, exception: Exception, entity_id: Optional[str] = None
    ) -> NoReturn:
        """
        Log and convert an unexpected exception into a ServiceError.

        BaseError subclasses raised on purpose by the service pass through
        unchanged, so callers can match on their error code.
        """
        if isinstance(exception, BaseError):
            raise exception

        error_msg = f"Error in {operation}: {str(exception)}"
        self.logger.error(
            error_msg,
            extra={
                "operation": operation,
                "entity_id": entity_id,
                "error_type": type(exception).__name__,
                "error_details": str(exception),
            },
            exc_info=True,
        )
        raise ServiceError(
            error_msg,
            error_code=ErrorCode.INTERNAL_ERROR,
            operation=operation,
            entity_id=entity_id,
            cause=exception,
        )

    def _entity_to_schema(self, entity: Any) -> BaseModel:
        return self.read_schema_class.model_validate(entity)

    def _entities_to_schemas(self, entities: List[Any]) -> List[BaseModel]:
        return [self._entity_to_schema(entity) for entity in entities]

    def paginate_results(
        self, results: List[Any], total_count: int, page: int, page_size: int
    ) -> Dict[str, Any]:
        """
        Create a standardized pagination response.

        Returns:
            ``{"data": [...], "pagination": {...}}``
        """
        total_pages = (total_count + page_size - 1) // page_size if page_size > 0 else 0

        return {
            "data": results,
            "pagination": {
                "page": page,
                "page_size": page_size,
                "total_count": total_count,
                "total_pages": total_pages,
                "has_previous": page > 1,
                "has_next": page < total_pages,
            },
        }

    def paginate_query(
        self,
        query: Query,
        page: int,
        page_size: int,
        schema_class: Optional[Type[BaseModel]] = None,
    ) -> Dict[str, Any]:
        """Run ``query`` for one page and wrap the rows with paginate_results."""
        page = max(page, 1)
        page_size = max(page_size, 1)
        total_count = query.order_by(None).count()
        rows = query.offset((page - 1) * page_size).limit(page_size).all()
        schema = schema_class or self.read_schema_class
        results = [schema.model_validate(row) for row in rows] if schema else rows
        return self.paginate_results(results, total_count, page, page_size)


class SessionManagedService(BaseService):
    """Service bound to a database session, owned or borrowed."""

    def __init__(
        self,
        read_schema_class: Optional[Type[BaseModel]] = None,
        logger: Optional[logging.Logger] = None,
        session: Optional[Session] = None,
    ):
        """
        Args:
            read_schema_class: Pydantic schema used by the generic helpers
            logger: Optional logger instance
            session: Existing session; the caller then owns the transaction
        """
        if session is not None:
            self.session = session
            self._owns_session = False
        else:
            self.session = self._create_session()
            self._owns_session = True

        super().__init__(read_schema_class=read_schema_class, logger=logger)

    def _create_session(self) -> Session:
        return get_db_manager().session_factory()

    @contextmanager
    def transaction(self):
        """
        Context manager for transactional operations.

        Usage:
            with service.transaction():
                service.create_property(...)
                service.add_unit(...)
        """
        try:
            yield self.session
            if self._owns_session:
                self.session.commit()
        except Exception:
            if self._owns_session:
                self.session.rollback()
            raise

    def commit(self):
        if self._owns_session:
            self.session.commit()

    def rollback(self):
        if self._owns_session:
            self.session.rollback()

    def close(self):
        if self._owns_session and self.session:
            self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type:
            self.rollback()
        else:
            self.commit()
        self.close()
