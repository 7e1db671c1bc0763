"""
Queries behind the finance dashboard.

Every method takes an optional ``property_id``; None means the whole
portfolio. Date bucketing is left to the service so the SQL stays portable.
"""

from datetime import date
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple

from sqlalchemy import func

from ..db.db_finance_models import Expense, Invoice, Payment, PostDatedCheque
from ..db.db_tenant_models import Tenant
from ..enums import ExpensePaymentStatus, InvoiceStatus
from .base_repository import BaseRepository

OUTSTANDING_INVOICE_STATUSES = (
    InvoiceStatus.SENT.value,
    InvoiceStatus.PARTIALLY_PAID.value,
    InvoiceStatus.OVERDUE.value,
)


def _decimal(value) -> Decimal:
    return Decimal(str(value)) if value is not None else Decimal("0")


class FinanceDashboardRepository(BaseRepository):
    def _payments(self, session, property_id: Optional[str]):
        query = session.query(Payment).outerjoin(Invoice, Payment.invoice_id == Invoice.id)
        if property_id:
            # the invoice decides the property; standalone payments fall back to their own
            query = query.filter(
                func.coalesce(Invoice.property_id, Payment.property_id) == property_id
            )
        return query

    def _paid_expenses(self, session, property_id: Optional[str]):
        query = session.query(Expense).filter(
            Expense.is_deleted.is_(False),
            Expense.payment_status == ExpensePaymentStatus.PAID.value,
        )
        if property_id:
            query = query.filter(Expense.property_id == property_id)
        return query

    def total_income(self, start: date, end: date, property_id: Optional[str] = None) -> Decimal:
        with self._session_operation("total_income", property_id=property_id) as session:
            total = (
                self._payments(session, property_id)
                .filter(Payment.payment_date >= start, Payment.payment_date <= end)
                .with_entities(func.coalesce(func.sum(Payment.amount), 0))
                .scalar()
            )
            return _decimal(total)

    def total_expenses_and_vat(
        self, start: date, end: date, property_id: Optional[str] = None
    ) -> Tuple[Decimal, Decimal]:
        """Amount and VAT of PAID expenses dated within the period."""
        with self._session_operation("total_expenses_and_vat", property_id=property_id) as session:
            amount, vat = (
                self._paid_expenses(session, property_id)
                .filter(Expense.expense_date >= start, Expense.expense_date <= end)
                .with_entities(
                    func.coalesce(func.sum(Expense.amount), 0),
                    func.coalesce(func.sum(Expense.vat_amount), 0),
                )
                .one()
            )
            return _decimal(amount), _decimal(vat)

    def income_rows(
        self, start: date, end: date, property_id: Optional[str] = None
    ) -> List[Tuple[date, Decimal]]:
        with self._session_operation("income_rows", property_id=property_id) as session:
            rows = (
                self._payments(session, property_id)
                .filter(Payment.payment_date >= start, Payment.payment_date <= end)
                .with_entities(Payment.payment_date, Payment.amount)
                .all()
            )
            return [(row[0], _decimal(row[1])) for row in rows]

    def expense_rows(
        self, start: date, end: date, property_id: Optional[str] = None
    ) -> List[Tuple[date, Decimal]]:
        with self._session_operation("expense_rows", property_id=property_id) as session:
            rows = (
                self._paid_expenses(session, property_id)
                .filter(Expense.expense_date >= start, Expense.expense_date <= end)
                .with_entities(Expense.expense_date, Expense.amount)
                .all()
            )
            return [(row[0], _decimal(row[1])) for row in rows]

    def expense_category_totals(
        self, start: date, end: date, property_id: Optional[str] = None
    ) -> List[Tuple[str, Decimal, int]]:
        """(category, amount, count) for PAID expenses, largest amount first."""
        with self._session_operation("expense_category_totals", property_id=property_id) as session:
            amount = func.coalesce(func.sum(Expense.amount), 0)
            rows = (
                self._paid_expenses(session, property_id)
                .filter(Expense.expense_date >= start, Expense.expense_date <= end)
                .with_entities(Expense.category, amount, func.count(Expense.id))
                .group_by(Expense.category)
                .order_by(amount.desc())
                .all()
            )
            return [(row[0], _decimal(row[1]), int(row[2])) for row in rows]

    def outstanding_invoices(
        self, property_id: Optional[str] = None
    ) -> List[Tuple[date, Decimal]]:
        """(due_date, balance) for every invoice still awaiting payment."""
        with self._session_operation("outstanding_invoices", property_id=property_id) as session:
            query = session.query(Invoice.due_date, Invoice.total_amount, Invoice.paid_amount).filter(
                Invoice.status.in_(OUTSTANDING_INVOICE_STATUSES)
            )
            if property_id:
                query = query.filter(Invoice.property_id == property_id)
            return [
                (due_date, _decimal(total) - _decimal(paid))
                for due_date, total, paid in query.all()
            ]

    def large_payments(
        self, threshold: Decimal, limit: int, property_id: Optional[str] = None
    ) -> List[Tuple[Payment, Optional[Tenant]]]:
        with self._session_operation("large_payments", property_id=property_id) as session:
            return (
                self._payments(session, property_id)
                .outerjoin(Tenant, Payment.tenant_id == Tenant.id)
                .filter(Payment.amount >= threshold)
                .with_entities(Payment, Tenant)
                .order_by(Payment.payment_date.desc())
                .limit(limit)
                .all()
            )

    def large_expenses(
        self, threshold: Decimal, limit: int, property_id: Optional[str] = None
    ) -> List[Expense]:
        with self._session_operation("large_expenses", property_id=property_id) as session:
            return (
                self._paid_expenses(session, property_id)
                .filter(Expense.amount >= threshold)
                .order_by(Expense.expense_date.desc())
                .limit(limit)
                .all()
            )

    def cheque_totals(
        self,
        statuses: Sequence[str],
        start: Optional[date] = None,
        end: Optional[date] = None,
        property_id: Optional[str] = None,
    ) -> Tuple[int, Decimal]:
        """Count and amount of cheques in ``statuses`` dated within the optional range."""
        with self._session_operation("cheque_totals", property_id=property_id) as session:
            query = session.query(
                func.count(PostDatedCheque.id),
                func.coalesce(func.sum(PostDatedCheque.amount), 0),
            ).filter(PostDatedCheque.status.in_(list(statuses)))
            if start is not None:
                query = query.filter(PostDatedCheque.cheque_date >= start)
            if end is not None:
                query = query.filter(PostDatedCheque.cheque_date <= end)
            if property_id:
                query = query.filter(PostDatedCheque.property_id == property_id)
            count, amount = query.one()
            return int(count or 0), _decimal(amount)
