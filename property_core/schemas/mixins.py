"""
Common Pydantic schema mixins.

Reusable pieces for read schemas and filter schemas across domains.
"""

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class ORMModel(BaseModel):
    """Base for read schemas built from SQLAlchemy rows."""

    model_config = ConfigDict(from_attributes=True, extra="ignore")


class IdMixin(BaseModel):
    """Mixin for schemas that include a unique identifier."""

    id: str = Field(..., description="Unique identifier for the record")


class TimestampMixin(BaseModel):
    """Mixin for schemas that include creation and update timestamps."""

    created_at: datetime = Field(..., description="Timestamp when the record was created")
    updated_at: datetime = Field(..., description="Timestamp when the record was last updated")


class SoftDeleteMixin(BaseModel):
    is_deleted: bool = False
    deleted_at: Optional[datetime] = None
    deleted_by: Optional[str] = None


class PaginationMixin(BaseModel):
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=20, ge=1, le=500)


class DateRangeFilterMixin(BaseModel):
    """Mixin for filter schemas that support date range queries."""

    from_date: Optional[date] = Field(None, description="Inclusive lower bound")
    to_date: Optional[date] = Field(None, description="Inclusive upper bound")
