"""Schemas for expenses, batch payment and expense reporting."""

from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..enums import ExpenseCategory, ExpensePaymentStatus, PaymentMethod
from .mixins import IdMixin, ORMModel, SoftDeleteMixin, TimestampMixin


class ExpenseCreate(BaseModel):
    category: ExpenseCategory
    property_id: Optional[str] = None
    vendor_id: Optional[str] = None
    work_order_id: Optional[str] = None
    amount: Decimal = Field(gt=0)
    vat_amount: Decimal = Field(default=Decimal("0"), ge=0)
    expense_date: date
    description: str = Field(min_length=1, max_length=1000)
    receipt_file_path: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


class ExpenseUpdate(BaseModel):
    category: Optional[ExpenseCategory] = None
    property_id: Optional[str] = None
    vendor_id: Optional[str] = None
    amount: Optional[Decimal] = Field(default=None, gt=0)
    vat_amount: Optional[Decimal] = Field(default=None, ge=0)
    expense_date: Optional[date] = None
    description: Optional[str] = Field(default=None, min_length=1, max_length=1000)
    receipt_file_path: Optional[str] = None

    model_config = ConfigDict(extra="ignore")


class ExpensePayment(BaseModel):
    payment_method: PaymentMethod
    payment_date: date
    transaction_reference: Optional[str] = Field(default=None, max_length=100)


class ExpenseRead(ORMModel, IdMixin, TimestampMixin, SoftDeleteMixin):
    expense_number: str
    category: ExpenseCategory
    property_id: Optional[str] = None
    vendor_id: Optional[str] = None
    work_order_id: Optional[str] = None
    amount: Decimal
    vat_amount: Decimal
    expense_date: date
    description: str
    payment_status: ExpensePaymentStatus
    payment_method: Optional[PaymentMethod] = None
    payment_date: Optional[date] = None
    transaction_reference: Optional[str] = None
    receipt_file_path: Optional[str] = None
    recorded_by: Optional[str] = None


class FailedPaymentItem(BaseModel):
    expense_id: str
    expense_number: Optional[str] = None
    reason: str


class BatchPaymentResult(BaseModel):
    total_processed: int
    success_count: int
    failed_count: int
    total_amount: Decimal
    paid_expense_ids: List[str] = Field(default_factory=list)
    failed_items: List[FailedPaymentItem] = Field(default_factory=list)


class VendorPendingPayments(BaseModel):
    vendor_id: Optional[str] = None
    vendor_name: str
    expense_count: int
    total_amount: Decimal
    expenses: List[ExpenseRead]


class CategoryBreakdown(BaseModel):
    category: ExpenseCategory
    amount: Decimal
    count: int
    percentage: float


class MonthlyExpenseTrend(BaseModel):
    month: str  # YYYY-MM
    amount: Decimal
    count: int


class ExpenseSummary(BaseModel):
    from_date: date
    to_date: date
    total_expenses: Decimal
    total_pending: Decimal
    total_paid: Decimal
    expense_count: int
    pending_count: int
    paid_count: int
    category_breakdown: List[CategoryBreakdown]
    monthly_trend: List[MonthlyExpenseTrend]
    totals_by_status: Dict[str, Decimal] = Field(default_factory=dict)
