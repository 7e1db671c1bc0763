"""Schemas for leads, their history and documents, and quotations."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..enums import (
    LeadDocumentType,
    LeadEventType,
    LeadSource,
    LeadStatus,
    PaymentMethod,
    QuotationStatus,
    StayType,
)
from ..exceptions import ErrorCode, ValidationError
from .mixins import IdMixin, ORMModel, TimestampMixin


class LeadCreate(BaseModel):
    full_name: str = Field(min_length=2, max_length=200)
    emirates_id: str = Field(min_length=15, max_length=20)
    passport_number: str = Field(min_length=6, max_length=20)
    passport_expiry_date: date
    home_country: str = Field(min_length=2, max_length=100)
    email: str = Field(min_length=3, max_length=255)
    contact_number: str = Field(min_length=5, max_length=30)
    lead_source: LeadSource
    notes: Optional[str] = None
    property_interest: Optional[str] = Field(default=None, max_length=200)

    model_config = ConfigDict(extra="ignore")

    @field_validator("email")
    def validate_email(cls, v: str) -> str:
        if "@" not in v:
            raise ValidationError(
                "Invalid email address", error_code=ErrorCode.INVALID_FORMAT, field="email", value=v
            )
        return v.strip().lower()

    @field_validator("passport_number")
    def normalize_passport(cls, v: str) -> str:
        return v.strip().upper()


class LeadUpdate(BaseModel):
    full_name: Optional[str] = Field(default=None, min_length=2, max_length=200)
    emirates_id: Optional[str] = Field(default=None, min_length=15, max_length=20)
    passport_number: Optional[str] = Field(default=None, min_length=6, max_length=20)
    passport_expiry_date: Optional[date] = None
    home_country: Optional[str] = Field(default=None, min_length=2, max_length=100)
    email: Optional[str] = Field(default=None, min_length=3, max_length=255)
    contact_number: Optional[str] = Field(default=None, min_length=5, max_length=30)
    lead_source: Optional[LeadSource] = None
    notes: Optional[str] = None
    property_interest: Optional[str] = Field(default=None, max_length=200)

    model_config = ConfigDict(extra="ignore")

    @field_validator("passport_number")
    def normalize_passport(cls, v: Optional[str]) -> Optional[str]:
        return v.strip().upper() if v else v


class LeadRead(ORMModel, IdMixin, TimestampMixin):
    lead_number: str
    full_name: str
    emirates_id: str
    passport_number: str
    passport_expiry_date: date
    home_country: str
    email: str
    contact_number: str
    lead_source: LeadSource
    status: LeadStatus
    notes: Optional[str] = None
    property_interest: Optional[str] = None
    created_by: Optional[str] = None


class LeadHistoryRead(ORMModel, IdMixin):
    lead_id: str
    event_type: LeadEventType
    event_data: Optional[Dict[str, Any]] = None
    created_by: Optional[str] = None
    created_at: datetime


class LeadDocumentRead(ORMModel, IdMixin):
    lead_id: str
    document_type: LeadDocumentType
    file_name: str
    file_path: str
    file_size: int
    content_type: Optional[str] = None
    uploaded_by: Optional[str] = None
    created_at: datetime


class QuotationCreate(BaseModel):
    lead_id: str
    property_id: Optional[str] = None
    unit_id: Optional[str] = None
    stay_type: Optional[StayType] = None
    issue_date: date
    validity_date: date
    base_rent: Decimal = Field(gt=0)
    service_charges: Decimal = Field(default=Decimal("0"), ge=0)
    parking_spots: int = Field(default=0, ge=0)
    parking_fee: Decimal = Field(default=Decimal("0"), ge=0)
    security_deposit: Decimal = Field(default=Decimal("0"), ge=0)
    admin_fee: Decimal = Field(default=Decimal("0"), ge=0)
    number_of_cheques: Optional[int] = Field(default=None, ge=1, le=12)
    first_month_payment_method: Optional[PaymentMethod] = None
    payment_terms: Optional[str] = None
    special_terms: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


class QuotationUpdate(BaseModel):
    property_id: Optional[str] = None
    unit_id: Optional[str] = None
    stay_type: Optional[StayType] = None
    issue_date: Optional[date] = None
    validity_date: Optional[date] = None
    base_rent: Optional[Decimal] = Field(default=None, gt=0)
    service_charges: Optional[Decimal] = Field(default=None, ge=0)
    parking_spots: Optional[int] = Field(default=None, ge=0)
    parking_fee: Optional[Decimal] = Field(default=None, ge=0)
    security_deposit: Optional[Decimal] = Field(default=None, ge=0)
    admin_fee: Optional[Decimal] = Field(default=None, ge=0)
    number_of_cheques: Optional[int] = Field(default=None, ge=1, le=12)
    first_month_payment_method: Optional[PaymentMethod] = None
    payment_terms: Optional[str] = None
    special_terms: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


class QuotationRead(ORMModel, IdMixin, TimestampMixin):
    quotation_number: str
    lead_id: str
    property_id: Optional[str] = None
    unit_id: Optional[str] = None
    stay_type: Optional[StayType] = None
    issue_date: date
    validity_date: date
    base_rent: Decimal
    service_charges: Decimal
    parking_spots: int
    parking_fee: Decimal
    security_deposit: Decimal
    admin_fee: Decimal
    total_first_payment: Decimal
    number_of_cheques: Optional[int] = None
    first_month_payment_method: Optional[PaymentMethod] = None
    payment_terms: Optional[str] = None
    special_terms: Optional[str] = None
    status: QuotationStatus
    sent_at: Optional[datetime] = None
    accepted_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    converted_at: Optional[datetime] = None


class QuotationDashboard(BaseModel):
    new_leads: int
    active_quotes: int
    quotes_issued: int
    quotes_converted: int
    conversion_rate: float


class LeadConversion(BaseModel):
    """Data handed to tenant onboarding after a quotation is converted."""

    lead_id: str
    quotation_id: str
    lead_number: str
    quotation_number: str
    full_name: str
    email: str
    contact_number: str
    emirates_id: str
    passport_number: str
    passport_expiry_date: date
    nationality: str
    property_id: Optional[str] = None
    unit_id: Optional[str] = None
    base_rent: Decimal
    service_charge: Decimal
    admin_fee: Decimal
    security_deposit: Decimal
    parking_spots: int
    parking_fee_per_spot: Decimal
    number_of_cheques: Optional[int] = None
    first_month_payment_method: Optional[PaymentMethod] = None
    message: str
