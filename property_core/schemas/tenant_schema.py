"""Schemas for tenant onboarding."""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..enums import PaymentFrequency, PaymentMethod, TenantStatus
from ..exceptions import ErrorCode, ValidationError
from .mixins import IdMixin, ORMModel, TimestampMixin


class TenantCreate(BaseModel):
    """
    Everything needed to onboard a tenant into a unit.

    Cross-field rules (age, lease dates, PDC cheque count) are checked by
    TenantService so they can report business-friendly messages.
    """

    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    email: str = Field(min_length=3, max_length=255)
    phone: str = Field(min_length=5, max_length=30)
    date_of_birth: date
    national_id: Optional[str] = Field(default=None, max_length=50)
    nationality: Optional[str] = Field(default=None, max_length=60)
    emergency_contact_name: Optional[str] = Field(default=None, max_length=100)
    emergency_contact_phone: Optional[str] = Field(default=None, max_length=30)

    property_id: str
    unit_id: str

    lease_start_date: date
    lease_end_date: date
    base_rent: Decimal = Field(gt=0)
    admin_fee: Decimal = Field(default=Decimal("0"), ge=0)
    service_charge: Decimal = Field(default=Decimal("0"), ge=0)
    security_deposit: Decimal = Field(default=Decimal("0"), ge=0)
    parking_spots: int = Field(default=0, ge=0)
    parking_fee_per_spot: Decimal = Field(default=Decimal("0"), ge=0)

    payment_frequency: PaymentFrequency = PaymentFrequency.MONTHLY
    payment_due_day: int = Field(default=1, ge=1, le=28)
    payment_method: PaymentMethod = PaymentMethod.BANK_TRANSFER
    pdc_cheque_count: Optional[int] = None

    lead_id: Optional[str] = None
    quotation_id: Optional[str] = None

    model_config = ConfigDict(extra="ignore")

    @field_validator("email")
    def validate_email(cls, v: str) -> str:
        if "@" not in v:
            raise ValidationError(
                "Invalid email address", error_code=ErrorCode.INVALID_FORMAT, field="email", value=v
            )
        return v.strip().lower()


class TenantRead(ORMModel, IdMixin, TimestampMixin):
    tenant_number: str
    user_id: str
    first_name: str
    last_name: str
    email: str
    phone: str
    date_of_birth: date
    national_id: Optional[str] = None
    nationality: Optional[str] = None
    property_id: str
    unit_id: str
    lease_start_date: date
    lease_end_date: date
    lease_duration_months: int
    base_rent: Decimal
    admin_fee: Decimal
    service_charge: Decimal
    security_deposit: Decimal
    parking_spots: int
    parking_fee_per_spot: Decimal
    total_monthly_rent: Decimal
    payment_frequency: PaymentFrequency
    payment_method: PaymentMethod
    pdc_cheque_count: Optional[int] = None
    status: TenantStatus
    active: bool
    terminated_at: Optional[datetime] = None
    lead_id: Optional[str] = None
    quotation_id: Optional[str] = None
