"""
Generic query helpers shared by the domain services.

These never commit; the caller owns the transaction.
"""

from typing import Any, Dict, Optional, Type, TypeVar

from sqlalchemy import func
from sqlalchemy.orm import Session

T = TypeVar("T")


def get_record(
    session: Session,
    model_class: Type[T],
    filters: Dict[str, Any],
    include_deleted: bool = False,
) -> Optional[T]:
    """
    First record matching all ``filters`` (None values are ignored).

    Soft-deleted rows are skipped unless ``include_deleted`` is set.
    """
    query = session.query(model_class)

    if not include_deleted and hasattr(model_class, "is_deleted"):
        query = query.filter(model_class.is_deleted.is_(False))  # type: ignore[attr-defined]

    for key, value in filters.items():
        if hasattr(model_class, key) and value is not None:
            query = query.filter(getattr(model_class, key) == value)

    return query.first()


def get_record_by_id(
    session: Session, model_class: Type[T], record_id: str, include_deleted: bool = False
) -> Optional[T]:
    if not record_id:
        return None
    return get_record(session, model_class, {"id": record_id}, include_deleted)


def record_exists(
    session: Session,
    model_class: Type[T],
    filters: Dict[str, Any],
    exclude_id: Optional[str] = None,
) -> bool:
    """True when a live record matches ``filters``, ignoring ``exclude_id``."""
    query = session.query(model_class.id)  # type: ignore[attr-defined]

    if hasattr(model_class, "is_deleted"):
        query = query.filter(model_class.is_deleted.is_(False))  # type: ignore[attr-defined]

    for key, value in filters.items():
        query = query.filter(getattr(model_class, key) == value)

    if exclude_id:
        query = query.filter(model_class.id != exclude_id)  # type: ignore[attr-defined]

    return query.first() is not None


def apply_updates(record: Any, data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Copy changed values from ``data`` onto ``record``.

    Returns a ``{field: {"old": ..., "new": ...}}`` map of what changed.
    """
    changes: Dict[str, Any] = {}
    for key, value in data.items():
        if not hasattr(record, key):
            continue
        if hasattr(value, "value") and isinstance(getattr(value, "value"), str):
            value = value.value
        old_value = getattr(record, key)
        if old_value != value:
            changes[key] = {"old": old_value, "new": value}
            setattr(record, key, value)
    return changes


def next_sequence_number(
    session: Session, model_class: Type[T], column_name: str, prefix: str, year: int
) -> str:
    """
    Next ``PREFIX-YYYY-NNNN`` number for the given year.

    The sequence restarts every year. Soft-deleted rows still count so
    numbers are never reused.
    """
    column = getattr(model_class, column_name)
    year_prefix = f"{prefix}-{year}-"
    count = (
        session.query(func.count(model_class.id))  # type: ignore[attr-defined]
        .filter(column.like(f"{year_prefix}%"))
        .scalar()
    )
    return f"{year_prefix}{(count or 0) + 1:04d}"
