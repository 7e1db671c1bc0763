"""Finance records: vendors, expenses, invoices, payments and post-dated cheques."""

from sqlalchemy import Boolean, Column, Date, Index, Numeric, String, Text

from ..enums import ExpensePaymentStatus, InvoiceStatus, PdcStatus
from .db_base import SoftDeleteMixin, TimestampMixin, UTCDateTime, UUIDMixin
from .db_config import Base


class Vendor(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "vendor"

    vendor_number = Column(String(20), nullable=False, unique=True)
    company_name = Column(String(200), nullable=False)
    contact_name = Column(String(100), nullable=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(30), nullable=True)
    is_deleted = Column(Boolean, nullable=False, default=False)


class Expense(Base, UUIDMixin, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "expense"

    expense_number = Column(String(20), nullable=False, unique=True)
    category = Column(String(30), nullable=False, index=True)
    property_id = Column(String(36), nullable=True, index=True)
    vendor_id = Column(String(36), nullable=True, index=True)
    work_order_id = Column(String(36), nullable=True, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    vat_amount = Column(Numeric(12, 2), nullable=False, default=0)
    expense_date = Column(Date, nullable=False, index=True)
    description = Column(Text, nullable=False)
    payment_status = Column(
        String(20), nullable=False, default=ExpensePaymentStatus.PENDING.value, index=True
    )
    payment_method = Column(String(20), nullable=True)
    payment_date = Column(Date, nullable=True)
    transaction_reference = Column(String(100), nullable=True)
    receipt_file_path = Column(String(500), nullable=True)
    recorded_by = Column(String(36), nullable=True)


class Invoice(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "invoice"

    invoice_number = Column(String(20), nullable=False, unique=True)
    tenant_id = Column(String(36), nullable=False, index=True)
    property_id = Column(String(36), nullable=True, index=True)
    issue_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False, index=True)
    total_amount = Column(Numeric(12, 2), nullable=False)
    vat_amount = Column(Numeric(12, 2), nullable=False, default=0)
    paid_amount = Column(Numeric(12, 2), nullable=False, default=0)
    status = Column(String(20), nullable=False, default=InvoiceStatus.DRAFT.value, index=True)
    description = Column(Text, nullable=True)
    sent_at = Column(UTCDateTime, nullable=True)

    @property
    def balance_due(self):
        return self.total_amount - (self.paid_amount or 0)


class Payment(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "payment"

    payment_number = Column(String(20), nullable=False, unique=True)
    invoice_id = Column(String(36), nullable=True, index=True)
    tenant_id = Column(String(36), nullable=False, index=True)
    property_id = Column(String(36), nullable=True, index=True)
    amount = Column(Numeric(12, 2), nullable=False)
    payment_date = Column(Date, nullable=False, index=True)
    payment_method = Column(String(20), nullable=False)
    reference = Column(String(100), nullable=True)


class PostDatedCheque(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "post_dated_cheque"

    cheque_number = Column(String(20), nullable=False)
    tenant_id = Column(String(36), nullable=False, index=True)
    property_id = Column(String(36), nullable=True, index=True)
    bank_name = Column(String(100), nullable=False)
    amount = Column(Numeric(12, 2), nullable=False)
    cheque_date = Column(Date, nullable=False, index=True)
    invoice_id = Column(String(36), nullable=True, index=True)
    status = Column(String(20), nullable=False, default=PdcStatus.RECEIVED.value)
    deposit_date = Column(Date, nullable=True)
    cleared_date = Column(Date, nullable=True)
    bounced_date = Column(Date, nullable=True)
    bounce_reason = Column(String(255), nullable=True)
    replacement_cheque_id = Column(String(36), nullable=True)
    notes = Column(Text, nullable=True)

    __table_args__ = (Index("ix_pdc_status_date", "status", "cheque_date"),)
