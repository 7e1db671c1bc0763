"""Schemas for tenant invoices, their payments and post-dated cheques."""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..enums import InvoiceStatus, PaymentMethod, PdcStatus
from .mixins import IdMixin, ORMModel, TimestampMixin


class InvoiceCreate(BaseModel):
    tenant_id: str
    issue_date: date
    due_date: date
    total_amount: Decimal = Field(gt=0)
    vat_amount: Decimal = Field(default=Decimal("0"), ge=0)
    description: Optional[str] = Field(default=None, max_length=1000)

    model_config = ConfigDict(extra="ignore")


class InvoiceRead(ORMModel, IdMixin, TimestampMixin):
    invoice_number: str
    tenant_id: str
    property_id: Optional[str] = None
    issue_date: date
    due_date: date
    total_amount: Decimal
    vat_amount: Decimal
    paid_amount: Decimal
    balance_due: Decimal
    status: InvoiceStatus
    description: Optional[str] = None
    sent_at: Optional[datetime] = None


class PaymentCreate(BaseModel):
    amount: Decimal = Field(gt=0)
    payment_date: date
    payment_method: PaymentMethod
    reference: Optional[str] = Field(default=None, max_length=100)


class PaymentRead(ORMModel, IdMixin, TimestampMixin):
    payment_number: str
    invoice_id: Optional[str] = None
    tenant_id: str
    property_id: Optional[str] = None
    amount: Decimal
    payment_date: date
    payment_method: PaymentMethod
    reference: Optional[str] = None


class ChequeCreate(BaseModel):
    tenant_id: str
    cheque_number: str = Field(min_length=1, max_length=20)
    bank_name: str = Field(min_length=1, max_length=100)
    amount: Decimal = Field(gt=0)
    cheque_date: date
    invoice_id: Optional[str] = None
    notes: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


class ChequeRead(ORMModel, IdMixin, TimestampMixin):
    cheque_number: str
    tenant_id: str
    property_id: Optional[str] = None
    invoice_id: Optional[str] = None
    bank_name: str
    amount: Decimal
    cheque_date: date
    status: PdcStatus
    deposit_date: Optional[date] = None
    cleared_date: Optional[date] = None
    bounced_date: Optional[date] = None
    bounce_reason: Optional[str] = None
    replacement_cheque_id: Optional[str] = None
    notes: Optional[str] = None
