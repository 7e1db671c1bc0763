"""
Base column types and mixins shared by all models.

Keeps cross-database compatibility (SQLite for development and tests,
PostgreSQL in production).
"""

import json
import uuid
from datetime import UTC, datetime

from pydantic_core import to_jsonable_python
from sqlalchemy import Boolean, Column, DateTime, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.types import TypeDecorator


def utc_now():
    """Return current UTC time with timezone info attached."""
    return datetime.now(UTC)


class JSON(TypeDecorator):
    """Cross-database JSON type for SQLite/PostgreSQL compatibility."""

    impl = Text
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "postgresql":
            return dialect.type_descriptor(JSONB())
        return dialect.type_descriptor(Text())

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if dialect.name == "postgresql":
            return to_jsonable_python(value)
        return json.dumps(to_jsonable_python(value))

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if dialect.name == "postgresql":
            return value
        return json.loads(value)


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware DateTime that always hands back UTC values.

    SQLite drops tzinfo on the way out; values read back are re-tagged as
    UTC so they compare cleanly with ``utc_now()``.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value

    def process_result_value(self, value, dialect):
        if value is not None and value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value


class TimestampMixin:
    """created_at/updated_at timestamps."""

    created_at = Column(UTCDateTime, default=utc_now, nullable=False)
    updated_at = Column(UTCDateTime, default=utc_now, onupdate=utc_now, nullable=False)


class UUIDMixin:
    """UUID primary keys stored as strings."""

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))


class SoftDeleteMixin:
    """Rows are hidden by flag instead of being removed."""

    is_deleted = Column(Boolean, nullable=False, default=False, index=True)
    deleted_at = Column(UTCDateTime, nullable=True)
    deleted_by = Column(String(36), nullable=True)

    def mark_deleted(self, deleted_by=None):
        self.is_deleted = True
        self.deleted_at = utc_now()
        self.deleted_by = deleted_by

    def restore(self):
        self.is_deleted = False
        self.deleted_at = None
        self.deleted_by = None
