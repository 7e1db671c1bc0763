"""Tenants and their lease terms."""

from sqlalchemy import Boolean, Column, Date, Index, Integer, Numeric, String

from ..enums import TenantStatus
from .db_base import TimestampMixin, UTCDateTime, UUIDMixin
from .db_config import Base


class Tenant(Base, UUIDMixin, TimestampMixin):
    """A person renting a unit, together with the lease they signed."""

    __tablename__ = "tenant"

    tenant_number = Column(String(20), nullable=False, unique=True)
    user_id = Column(String(36), nullable=False, index=True)

    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False, unique=True)
    phone = Column(String(30), nullable=False)
    date_of_birth = Column(Date, nullable=False)
    national_id = Column(String(50), nullable=True)
    nationality = Column(String(60), nullable=True)
    emergency_contact_name = Column(String(100), nullable=True)
    emergency_contact_phone = Column(String(30), nullable=True)

    property_id = Column(String(36), nullable=False, index=True)
    unit_id = Column(String(36), nullable=False, index=True)

    lease_start_date = Column(Date, nullable=False)
    lease_end_date = Column(Date, nullable=False, index=True)
    lease_duration_months = Column(Integer, nullable=False)
    base_rent = Column(Numeric(12, 2), nullable=False)
    admin_fee = Column(Numeric(12, 2), nullable=False, default=0)
    service_charge = Column(Numeric(12, 2), nullable=False, default=0)
    security_deposit = Column(Numeric(12, 2), nullable=False, default=0)
    parking_spots = Column(Integer, nullable=False, default=0)
    parking_fee_per_spot = Column(Numeric(12, 2), nullable=False, default=0)
    total_monthly_rent = Column(Numeric(12, 2), nullable=False)

    payment_frequency = Column(String(20), nullable=False)
    payment_due_day = Column(Integer, nullable=False, default=1)
    payment_method = Column(String(20), nullable=False)
    pdc_cheque_count = Column(Integer, nullable=True)

    status = Column(String(20), nullable=False, default=TenantStatus.ACTIVE.value)
    active = Column(Boolean, nullable=False, default=True)
    terminated_at = Column(UTCDateTime, nullable=True)

    lead_id = Column(String(36), nullable=True)
    quotation_id = Column(String(36), nullable=True)
    created_by = Column(String(36), nullable=True)

    __table_args__ = (Index("ix_tenant_property_active", "property_id", "active"),)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"
