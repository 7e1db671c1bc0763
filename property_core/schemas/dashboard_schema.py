"""Response shapes for the finance and occupancy dashboards."""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field


# Finance dashboard


class FinanceKpis(BaseModel):
    total_income: Decimal
    total_expenses: Decimal
    net_profit: Decimal
    vat_paid: Decimal
    profit_margin_percentage: Optional[float] = None
    income_trend_percentage: Optional[float] = None
    expense_trend_percentage: Optional[float] = None
    vat_trend_percentage: Optional[float] = None
    net_profit_trend_percentage: Optional[float] = None
    period_start: date
    period_end: date


class MonthlyIncomeExpense(BaseModel):
    month: str  # YYYY-MM
    month_label: str  # "Jan 2026"
    income: Decimal
    expenses: Decimal
    net: Decimal


class ExpenseCategorySlice(BaseModel):
    category: str
    amount: Decimal
    count: int
    percentage: float
    color: str


class AgingBucket(BaseModel):
    bucket: str
    label: str
    amount: Decimal
    invoice_count: int
    percentage: float


class OutstandingReceivables(BaseModel):
    total_outstanding: Decimal
    buckets: List[AgingBucket]


class RecentTransaction(BaseModel):
    transaction_type: str  # INCOME or EXPENSE
    reference_id: str
    reference_number: str
    description: str
    amount: Decimal
    transaction_date: date


class PdcStatusSummary(BaseModel):
    due_this_week_count: int
    due_this_week_amount: Decimal
    due_this_month_count: int
    due_this_month_amount: Decimal
    awaiting_clearance_count: int
    awaiting_clearance_amount: Decimal
    total_outstanding_count: int
    total_outstanding_amount: Decimal


class FinanceDashboard(BaseModel):
    kpis: FinanceKpis
    income_vs_expense: List[MonthlyIncomeExpense]
    expense_categories: List[ExpenseCategorySlice]
    outstanding_receivables: OutstandingReceivables
    recent_transactions: List[RecentTransaction]
    pdc_status: PdcStatusSummary
    property_id: Optional[str] = None
    generated_at: datetime


# Occupancy dashboard


class OccupancyKpis(BaseModel):
    total_units: int
    occupied_units: int
    vacant_units: int
    occupancy_rate: float
    leases_expiring: int
    expiry_period_days: int
    average_rent_per_sqft: Optional[Decimal] = None


class OccupancySegment(BaseModel):
    status: str
    label: str
    count: int
    percentage: float
    color: str


class OccupancyChart(BaseModel):
    total_units: int
    segments: List[OccupancySegment]


class LeaseExpirationMonth(BaseModel):
    month: str
    month_label: str
    count: int


class LeaseExpiration(BaseModel):
    tenant_id: str
    tenant_number: str
    tenant_name: str
    property_id: str
    property_name: Optional[str] = None
    unit_id: str
    unit_number: Optional[str] = None
    lease_end_date: date
    days_remaining: int
    monthly_rent: Decimal


class LeaseActivity(BaseModel):
    activity_type: str  # NEW_LEASE or TERMINATION
    tenant_id: str
    tenant_name: str
    property_name: Optional[str] = None
    unit_number: Optional[str] = None
    occurred_at: datetime
    description: str


class OccupancyDashboard(BaseModel):
    kpis: OccupancyKpis
    occupancy_chart: OccupancyChart
    lease_expiration_chart: List[LeaseExpirationMonth]
    upcoming_expirations: List[LeaseExpiration] = Field(default_factory=list)
    recent_activity: List[LeaseActivity] = Field(default_factory=list)
    property_id: Optional[str] = None
    generated_at: datetime
