"""Regulatory requirements that apply to some or all properties."""

from sqlalchemy import Column, String, Text

from ..enums import RequirementStatus
from .db_base import JSON, SoftDeleteMixin, TimestampMixin, UUIDMixin
from .db_config import Base


class ComplianceRequirement(Base, UUIDMixin, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "compliance_requirement"

    requirement_number = Column(String(20), nullable=False, unique=True)
    requirement_name = Column(String(200), nullable=False)
    category = Column(String(30), nullable=False, index=True)
    description = Column(Text, nullable=True)
    # None or empty list means every property
    applicable_properties = Column(JSON, nullable=True)
    frequency = Column(String(20), nullable=False)
    authority_agency = Column(String(200), nullable=True)
    penalty_description = Column(Text, nullable=True)
    status = Column(String(20), nullable=False, default=RequirementStatus.ACTIVE.value)
