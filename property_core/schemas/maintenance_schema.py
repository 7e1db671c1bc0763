"""Schemas for maintenance work orders."""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..enums import WorkOrderCategory, WorkOrderStatus
from .mixins import IdMixin, ORMModel, TimestampMixin


class WorkOrderCreate(BaseModel):
    property_id: str
    unit_id: Optional[str] = None
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    category: WorkOrderCategory
    estimated_cost: Optional[Decimal] = Field(default=None, ge=0)

    model_config = ConfigDict(extra="ignore")


class WorkOrderRead(ORMModel, IdMixin, TimestampMixin):
    work_order_number: str
    property_id: str
    unit_id: Optional[str] = None
    title: str
    description: Optional[str] = None
    category: WorkOrderCategory
    status: WorkOrderStatus
    estimated_cost: Optional[Decimal] = None
    actual_cost: Optional[Decimal] = None
    assigned_vendor_id: Optional[str] = None
    completed_at: Optional[datetime] = None
