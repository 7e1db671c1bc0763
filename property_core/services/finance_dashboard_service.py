"""
Finance dashboard: year-to-date KPIs, monthly income against expenses,
expense breakdown, receivables aging, large transactions and cheque status.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from ..config import DashboardConfig, get_config
from ..context.operation_context import operation
from ..db.db_base import utc_now
from ..enums import PdcStatus
from ..exceptions import BaseError
from ..repositories.finance_dashboard_repository import FinanceDashboardRepository
from ..schemas.dashboard_schema import (
    AgingBucket,
    ExpenseCategorySlice,
    FinanceDashboard,
    FinanceKpis,
    MonthlyIncomeExpense,
    OutstandingReceivables,
    PdcStatusSummary,
    RecentTransaction,
)
from ..utils.date_utils import add_months, month_end, month_key, month_label, month_start
from ..utils.logger import get_logger
from ..utils.report_utils import calculate_percentage, calculate_trend_percentage
from .base_service import SessionManagedService

CATEGORY_COLORS: Dict[str, str] = {
    "MAINTENANCE": "#3b82f6",
    "UTILITIES": "#f59e0b",
    "SALARIES": "#8b5cf6",
    "SUPPLIES": "#ec4899",
    "INSURANCE": "#10b981",
    "TAXES": "#6366f1",
    "OTHER": "#6b7280",
}
DEFAULT_COLOR = "#94a3b8"

# (bucket, label, upper bound in days past due; None is open-ended)
AGING_BUCKETS = (
    ("CURRENT", "0-30 Days", 30),
    ("THIRTY_PLUS", "31-60 Days", 60),
    ("SIXTY_PLUS", "61-90 Days", 90),
    ("NINETY_PLUS", "90+ Days", None),
)

PENDING_CHEQUE_STATUSES = (PdcStatus.RECEIVED.value, PdcStatus.DUE.value)


def aging_bucket_for(days_past_due: int) -> str:
    for bucket, _label, upper in AGING_BUCKETS:
        if upper is None or days_past_due <= upper:
            return bucket
    return AGING_BUCKETS[-1][0]


class FinanceDashboardService(SessionManagedService):
    def __init__(
        self,
        session: Optional[Session] = None,
        config: Optional[DashboardConfig] = None,
        today: Callable[[], date] = date.today,
    ):
        super().__init__(logger=get_logger(), session=session)
        self.repository = FinanceDashboardRepository(self.session, logger=self.logger)
        self.config = config or get_config().dashboards
        self.today = today

    @operation()
    def get_finance_kpis(self, property_id: Optional[str] = None) -> FinanceKpis:
        """Year to date against the same span of last year."""
        try:
            today = self.today()
            start = date(today.year, 1, 1)
            previous_start = date(today.year - 1, 1, 1)
            previous_end = add_months(today, -12)

            income = self.repository.total_income(start, today, property_id)
            expenses, vat = self.repository.total_expenses_and_vat(start, today, property_id)
            previous_income = self.repository.total_income(
                previous_start, previous_end, property_id
            )
            previous_expenses, previous_vat = self.repository.total_expenses_and_vat(
                previous_start, previous_end, property_id
            )

            net_profit = income - expenses
            previous_net = previous_income - previous_expenses

            return FinanceKpis(
                total_income=income,
                total_expenses=expenses,
                net_profit=net_profit,
                vat_paid=vat,
                profit_margin_percentage=(
                    calculate_percentage(net_profit, income) if income > 0 else None
                ),
                income_trend_percentage=calculate_trend_percentage(income, previous_income),
                expense_trend_percentage=calculate_trend_percentage(expenses, previous_expenses),
                vat_trend_percentage=calculate_trend_percentage(vat, previous_vat),
                net_profit_trend_percentage=calculate_trend_percentage(net_profit, previous_net),
                period_start=start,
                period_end=today,
            )
        except Exception as e:
            if isinstance(e, BaseError):
                raise
            self._handle_service_exception("get_finance_kpis", e, property_id)

    @operation()
    def get_income_vs_expense(self, property_id: Optional[str] = None) -> List[MonthlyIncomeExpense]:
        """Twelve months ending with the current one, oldest first."""
        today = self.today()
        first_month = month_start(add_months(today, -11))
        last_day = month_end(today)

        months = [add_months(first_month, offset) for offset in range(12)]
        income: Dict[str, Decimal] = {month_key(m): Decimal("0") for m in months}
        expenses: Dict[str, Decimal] = {month_key(m): Decimal("0") for m in months}

        for paid_on, amount in self.repository.income_rows(first_month, last_day, property_id):
            income[month_key(paid_on)] += amount
        for spent_on, amount in self.repository.expense_rows(first_month, last_day, property_id):
            expenses[month_key(spent_on)] += amount

        return [
            MonthlyIncomeExpense(
                month=month_key(m),
                month_label=month_label(m),
                income=income[month_key(m)],
                expenses=expenses[month_key(m)],
                net=income[month_key(m)] - expenses[month_key(m)],
            )
            for m in months
        ]

    @operation()
    def get_expense_categories(self, property_id: Optional[str] = None) -> List[ExpenseCategorySlice]:
        today = self.today()
        rows = self.repository.expense_category_totals(
            date(today.year, 1, 1), today, property_id
        )
        total = sum((amount for _category, amount, _count in rows), Decimal("0"))
        return [
            ExpenseCategorySlice(
                category=category,
                amount=amount,
                count=count,
                percentage=calculate_percentage(amount, total),
                color=CATEGORY_COLORS.get(category, DEFAULT_COLOR),
            )
            for category, amount, count in rows
        ]

    @operation()
    def get_outstanding_receivables(
        self, property_id: Optional[str] = None
    ) -> OutstandingReceivables:
        today = self.today()
        amounts = {bucket: Decimal("0") for bucket, _label, _upper in AGING_BUCKETS}
        counts = {bucket: 0 for bucket, _label, _upper in AGING_BUCKETS}

        for due_date, balance in self.repository.outstanding_invoices(property_id):
            bucket = aging_bucket_for((today - due_date).days)
            amounts[bucket] += balance
            counts[bucket] += 1

        total = sum(amounts.values(), Decimal("0"))
        return OutstandingReceivables(
            total_outstanding=total,
            buckets=[
                AgingBucket(
                    bucket=bucket,
                    label=label,
                    amount=amounts[bucket],
                    invoice_count=counts[bucket],
                    percentage=calculate_percentage(amounts[bucket], total),
                )
                for bucket, label, _upper in AGING_BUCKETS
            ],
        )

    @operation()
    def get_recent_transactions(
        self, threshold: Optional[Decimal] = None, property_id: Optional[str] = None
    ) -> List[RecentTransaction]:
        """Payments and paid expenses at or above ``threshold``, newest first."""
        if threshold is None:
            threshold = Decimal(str(self.config.transaction_threshold))
        limit = self.config.transaction_limit

        transactions = [
            RecentTransaction(
                transaction_type="INCOME",
                reference_id=payment.id,
                reference_number=payment.payment_number,
                description=tenant.full_name if tenant else "Payment",
                amount=payment.amount,
                transaction_date=payment.payment_date,
            )
            for payment, tenant in self.repository.large_payments(threshold, limit, property_id)
        ]
        transactions.extend(
            RecentTransaction(
                transaction_type="EXPENSE",
                reference_id=expense.id,
                reference_number=expense.expense_number,
                description=expense.description,
                amount=expense.amount,
                transaction_date=expense.expense_date,
            )
            for expense in self.repository.large_expenses(threshold, limit, property_id)
        )
        transactions.sort(key=lambda t: t.transaction_date, reverse=True)
        return transactions[:limit]

    @operation()
    def get_pdc_status(self, property_id: Optional[str] = None) -> PdcStatusSummary:
        """
        Cheques due this week (today through Sunday), due later this month,
        and deposited but not yet cleared.
        """
        today = self.today()
        week_end = today + timedelta(days=6 - today.weekday())
        this_month_end = month_end(today)

        week_count, week_amount = self.repository.cheque_totals(
            PENDING_CHEQUE_STATUSES, today, week_end, property_id
        )
        if week_end < this_month_end:
            month_count, month_amount = self.repository.cheque_totals(
                PENDING_CHEQUE_STATUSES, week_end + timedelta(days=1), this_month_end, property_id
            )
        else:
            month_count, month_amount = 0, Decimal("0")
        deposited_count, deposited_amount = self.repository.cheque_totals(
            (PdcStatus.DEPOSITED.value,), property_id=property_id
        )

        return PdcStatusSummary(
            due_this_week_count=week_count,
            due_this_week_amount=week_amount,
            due_this_month_count=month_count,
            due_this_month_amount=month_amount,
            awaiting_clearance_count=deposited_count,
            awaiting_clearance_amount=deposited_amount,
            total_outstanding_count=week_count + month_count + deposited_count,
            total_outstanding_amount=week_amount + month_amount + deposited_amount,
        )

    @operation()
    def get_finance_dashboard(self, property_id: Optional[str] = None) -> FinanceDashboard:
        self.logger.info(f"Building finance dashboard: property_id={property_id}")
        return FinanceDashboard(
            kpis=self.get_finance_kpis(property_id),
            income_vs_expense=self.get_income_vs_expense(property_id),
            expense_categories=self.get_expense_categories(property_id),
            outstanding_receivables=self.get_outstanding_receivables(property_id),
            recent_transactions=self.get_recent_transactions(property_id=property_id),
            pdc_status=self.get_pdc_status(property_id),
            property_id=property_id,
            generated_at=utc_now(),
        )
