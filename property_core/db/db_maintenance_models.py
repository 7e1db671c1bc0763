"""Maintenance work orders, kept here as a source of expenses."""

from sqlalchemy import Column, Numeric, String, Text

from ..enums import WorkOrderStatus
from .db_base import TimestampMixin, UTCDateTime, UUIDMixin
from .db_config import Base


class WorkOrder(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "work_order"

    work_order_number = Column(String(20), nullable=False, unique=True)
    property_id = Column(String(36), nullable=False, index=True)
    unit_id = Column(String(36), nullable=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(30), nullable=False)
    status = Column(String(20), nullable=False, default=WorkOrderStatus.OPEN.value)
    estimated_cost = Column(Numeric(12, 2), nullable=True)
    actual_cost = Column(Numeric(12, 2), nullable=True)
    assigned_vendor_id = Column(String(36), nullable=True)
    completed_at = Column(UTCDateTime, nullable=True)
