"""Properties and the units they contain."""

from sqlalchemy import Boolean, Column, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from ..enums import PropertyStatus, UnitStatus
from .db_base import SoftDeleteMixin, TimestampMixin, UUIDMixin
from .db_config import Base


class Property(Base, UUIDMixin, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "property"

    name = Column(String(200), nullable=False, index=True)
    address = Column(String(500), nullable=False)
    city = Column(String(100), nullable=True)
    property_type = Column(String(30), nullable=False)
    status = Column(String(30), nullable=False, default=PropertyStatus.ACTIVE.value)
    total_units_count = Column(Integer, nullable=False, default=0)
    total_square_footage = Column(Numeric(12, 2), nullable=True)
    year_built = Column(Integer, nullable=True)
    amenities = Column(Text, nullable=True)
    manager_id = Column(String(36), nullable=True, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    created_by = Column(String(36), nullable=True)

    units = relationship("Unit", back_populates="property", lazy="select")


class Unit(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "unit"

    property_id = Column(String(36), ForeignKey("property.id"), nullable=False, index=True)
    unit_number = Column(String(20), nullable=False)
    floor = Column(Integer, nullable=True)
    bedroom_count = Column(Integer, nullable=True)
    bathroom_count = Column(Integer, nullable=True)
    square_footage = Column(Numeric(10, 2), nullable=True)
    monthly_rent = Column(Numeric(12, 2), nullable=True)
    status = Column(String(30), nullable=False, default=UnitStatus.AVAILABLE.value, index=True)

    property = relationship("Property", back_populates="units")

    __table_args__ = (Index("ix_unit_property_number", "property_id", "unit_number", unique=True),)
