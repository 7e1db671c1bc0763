"""
Operating expenses, vendor payments and expense reporting.

Expenses can only be edited, deleted or paid while PENDING. Batch payment
processes each expense on its own; one bad id never blocks the others.
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ..context.operation_context import operation
from ..db.db_finance_models import Expense, Vendor
from ..db.db_maintenance_models import WorkOrder
from ..db.db_property_models import Property
from ..enums import ExpenseCategory, ExpensePaymentStatus
from ..exceptions import BaseError, invalid_state, not_found
from ..schemas.expense_schema import (
    BatchPaymentResult,
    CategoryBreakdown,
    ExpenseCreate,
    ExpensePayment,
    ExpenseRead,
    ExpenseSummary,
    ExpenseUpdate,
    FailedPaymentItem,
    MonthlyExpenseTrend,
    VendorPendingPayments,
)
from ..utils.crud_helpers import apply_updates, get_record, get_record_by_id, next_sequence_number
from ..utils.date_utils import month_key
from ..utils.logger import get_logger
from .base_service import SessionManagedService

_SORT_COLUMNS = {
    "expense_number": Expense.expense_number,
    "amount": Expense.amount,
    "category": Expense.category,
    "payment_status": Expense.payment_status,
    "created_at": Expense.created_at,
    "expense_date": Expense.expense_date,
}


def expense_category_for_work_order(work_order_category: Optional[str]) -> ExpenseCategory:
    """Every kind of work order is booked as a maintenance expense."""
    return ExpenseCategory.MAINTENANCE


def _percentage(part: Decimal, total: Decimal) -> float:
    return round(float(part / total * 100), 2) if total else 0.0


class ExpenseService(SessionManagedService):
    def __init__(self, session: Optional[Session] = None, today: Callable[[], date] = date.today):
        super().__init__(read_schema_class=ExpenseRead, logger=get_logger(), session=session)
        self.today = today

    def _get_expense_or_raise(self, expense_id: str) -> Expense:
        expense = get_record_by_id(self.session, Expense, expense_id)
        if expense is None:
            raise not_found("Expense", expense_id=expense_id)
        return expense

    @staticmethod
    def _require_pending(expense: Expense, action: str) -> None:
        if expense.payment_status != ExpensePaymentStatus.PENDING.value:
            raise invalid_state(
                f"Cannot {action} expense with status: {expense.payment_status}",
                expense_id=expense.id,
                status=expense.payment_status,
            )

    def _check_references(self, property_id: Optional[str], vendor_id: Optional[str]) -> None:
        if property_id and get_record_by_id(self.session, Property, property_id) is None:
            raise not_found("Property", property_id=property_id)
        if vendor_id and get_record_by_id(self.session, Vendor, vendor_id) is None:
            raise not_found("Vendor", vendor_id=vendor_id)

    def _new_expense_number(self) -> str:
        return next_sequence_number(
            self.session, Expense, "expense_number", "EXP", self.today().year
        )

    @operation()
    def create_expense(self, data: ExpenseCreate, recorded_by: Optional[str] = None) -> ExpenseRead:
        try:
            self._check_references(data.property_id, data.vendor_id)
            expense = Expense(
                **data.model_dump(exclude={"category"}),
                category=data.category.value,
                expense_number=self._new_expense_number(),
                payment_status=ExpensePaymentStatus.PENDING.value,
                recorded_by=recorded_by,
            )
            self.session.add(expense)
            self.session.flush()
            self.logger.info(
                f"Created expense: id={expense.id}, number={expense.expense_number}, "
                f"amount={expense.amount}"
            )
            return ExpenseRead.model_validate(expense)
        except Exception as e:
            if isinstance(e, BaseError):
                raise
            self._handle_service_exception("create_expense", e)

    @operation()
    def get_expense(self, expense_id: str) -> ExpenseRead:
        return ExpenseRead.model_validate(self._get_expense_or_raise(expense_id))

    @operation()
    def list_expenses(
        self,
        search: Optional[str] = None,
        category: Optional[ExpenseCategory] = None,
        payment_status: Optional[ExpensePaymentStatus] = None,
        property_id: Optional[str] = None,
        vendor_id: Optional[str] = None,
        work_order_id: Optional[str] = None,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
        sort_by: str = "expense_date",
        sort_desc: bool = True,
        page: int = 1,
        page_size: int = 20,
    ) -> Dict[str, Any]:
        try:
            query = self.session.query(Expense).filter(Expense.is_deleted.is_(False))
            if search:
                pattern = f"%{search.strip()}%"
                query = query.filter(
                    or_(Expense.expense_number.ilike(pattern), Expense.description.ilike(pattern))
                )
            if category:
                query = query.filter(Expense.category == ExpenseCategory(category).value)
            if payment_status:
                query = query.filter(
                    Expense.payment_status == ExpensePaymentStatus(payment_status).value
                )
            if property_id:
                query = query.filter(Expense.property_id == property_id)
            if vendor_id:
                query = query.filter(Expense.vendor_id == vendor_id)
            if work_order_id:
                query = query.filter(Expense.work_order_id == work_order_id)
            if from_date:
                query = query.filter(Expense.expense_date >= from_date)
            if to_date:
                query = query.filter(Expense.expense_date <= to_date)

            column = _SORT_COLUMNS.get(sort_by, Expense.expense_date)
            query = query.order_by(column.desc() if sort_desc else column.asc())
            return self.paginate_query(query, page, page_size)
        except Exception as e:
            if isinstance(e, BaseError):
                raise
            self._handle_service_exception("list_expenses", e)

    @operation()
    def update_expense(self, expense_id: str, data: ExpenseUpdate) -> ExpenseRead:
        try:
            expense = self._get_expense_or_raise(expense_id)
            self._require_pending(expense, "update")
            updates = data.model_dump(exclude_unset=True, exclude_none=True)
            self._check_references(updates.get("property_id"), updates.get("vendor_id"))
            changes = apply_updates(expense, updates)
            self.session.flush()
            self.logger.info(f"Updated expense: id={expense.id}, fields={sorted(changes)}")
            return ExpenseRead.model_validate(expense)
        except Exception as e:
            if isinstance(e, BaseError):
                raise
            self._handle_service_exception("update_expense", e, expense_id)

    @operation()
    def delete_expense(self, expense_id: str, deleted_by: Optional[str] = None) -> None:
        expense = self._get_expense_or_raise(expense_id)
        self._require_pending(expense, "delete")
        expense.mark_deleted(deleted_by)
        self.session.flush()
        self.logger.info(f"Deleted expense: id={expense.id}")

    @staticmethod
    def _apply_payment(expense: Expense, payment: ExpensePayment) -> None:
        expense.payment_status = ExpensePaymentStatus.PAID.value
        expense.payment_method = payment.payment_method.value
        expense.payment_date = payment.payment_date
        expense.transaction_reference = payment.transaction_reference

    @operation()
    def mark_as_paid(self, expense_id: str, payment: ExpensePayment) -> ExpenseRead:
        expense = self._get_expense_or_raise(expense_id)
        self._require_pending(expense, "pay")
        self._apply_payment(expense, payment)
        self.session.flush()
        self.logger.info(f"Expense paid: id={expense.id}, amount={expense.amount}")
        return ExpenseRead.model_validate(expense)

    @operation()
    def batch_mark_as_paid(
        self, expense_ids: List[str], payment: ExpensePayment
    ) -> BatchPaymentResult:
        """
        Pay several expenses with one payment reference.

        Each expense is checked and paid in turn. Unknown, deleted and
        non-PENDING expenses are reported in ``failed_items`` and do not stop
        the rest of the batch.
        """
        paid_ids: List[str] = []
        failed: List[FailedPaymentItem] = []
        total_amount = Decimal("0")

        for expense_id in expense_ids:
            expense = get_record_by_id(self.session, Expense, expense_id)
            if expense is None:
                failed.append(FailedPaymentItem(expense_id=expense_id, reason="Expense not found"))
                continue
            if expense.payment_status != ExpensePaymentStatus.PENDING.value:
                failed.append(
                    FailedPaymentItem(
                        expense_id=expense_id,
                        expense_number=expense.expense_number,
                        reason=f"Cannot pay expense with status: {expense.payment_status}",
                    )
                )
                continue

            self._apply_payment(expense, payment)
            paid_ids.append(expense.id)
            total_amount += Decimal(expense.amount)

        self.session.flush()
        self.logger.info(
            f"Batch payment processed: success={len(paid_ids)}, failed={len(failed)}, "
            f"total_amount={total_amount}"
        )
        return BatchPaymentResult(
            total_processed=len(expense_ids),
            success_count=len(paid_ids),
            failed_count=len(failed),
            total_amount=total_amount,
            paid_expense_ids=paid_ids,
            failed_items=failed,
        )

    @operation()
    def get_pending_payments_by_vendor(
        self, vendor_id: Optional[str] = None
    ) -> List[VendorPendingPayments]:
        query = self.session.query(Expense).filter(
            Expense.is_deleted.is_(False),
            Expense.payment_status == ExpensePaymentStatus.PENDING.value,
        )
        if vendor_id:
            query = query.filter(Expense.vendor_id == vendor_id)
        expenses = query.order_by(Expense.expense_date).all()

        vendor_names = {
            v.id: v.company_name
            for v in self.session.query(Vendor).filter(
                Vendor.id.in_(sorted({e.vendor_id for e in expenses if e.vendor_id}))
            )
        }

        grouped: Dict[Optional[str], List[Expense]] = defaultdict(list)
        for expense in expenses:
            grouped[expense.vendor_id].append(expense)

        groups = [
            VendorPendingPayments(
                vendor_id=group_vendor_id,
                vendor_name=vendor_names.get(group_vendor_id, "No Vendor"),
                expense_count=len(items),
                total_amount=sum((Decimal(e.amount) for e in items), Decimal("0")),
                expenses=[ExpenseRead.model_validate(e) for e in items],
            )
            for group_vendor_id, items in grouped.items()
        ]
        return sorted(groups, key=lambda g: g.total_amount, reverse=True)

    @operation()
    def get_expense_summary(self, from_date: date, to_date: date) -> ExpenseSummary:
        """
        Totals and breakdowns for expenses dated within the period.

        ``total_pending`` and the counts cover every live expense regardless
        of date, since pending bills matter whenever they were incurred.
        """
        live = self.session.query(Expense).filter(Expense.is_deleted.is_(False))
        in_period = live.filter(
            Expense.expense_date >= from_date, Expense.expense_date <= to_date
        ).all()

        total_expenses = sum((Decimal(e.amount) for e in in_period), Decimal("0"))

        status_totals = dict(
            live.with_entities(Expense.payment_status, func.coalesce(func.sum(Expense.amount), 0))
            .group_by(Expense.payment_status)
            .all()
        )
        status_counts = dict(
            live.with_entities(Expense.payment_status, func.count(Expense.id))
            .group_by(Expense.payment_status)
            .all()
        )
        total_paid = live.filter(
            Expense.payment_status == ExpensePaymentStatus.PAID.value,
            Expense.payment_date >= from_date,
            Expense.payment_date <= to_date,
        ).with_entities(func.coalesce(func.sum(Expense.amount), 0)).scalar()

        by_category: Dict[str, List[Expense]] = defaultdict(list)
        by_month: Dict[str, List[Expense]] = defaultdict(list)
        for expense in in_period:
            by_category[expense.category].append(expense)
            by_month[month_key(expense.expense_date)].append(expense)

        category_breakdown = []
        for category, items in by_category.items():
            amount = sum((Decimal(e.amount) for e in items), Decimal("0"))
            category_breakdown.append(
                CategoryBreakdown(
                    category=category,
                    amount=amount,
                    count=len(items),
                    percentage=_percentage(amount, total_expenses),
                )
            )
        category_breakdown.sort(key=lambda c: c.amount, reverse=True)

        monthly_trend = [
            MonthlyExpenseTrend(
                month=month,
                amount=sum((Decimal(e.amount) for e in by_month[month]), Decimal("0")),
                count=len(by_month[month]),
            )
            for month in sorted(by_month)
        ]

        pending_count = status_counts.get(ExpensePaymentStatus.PENDING.value, 0)
        paid_count = status_counts.get(ExpensePaymentStatus.PAID.value, 0)
        return ExpenseSummary(
            from_date=from_date,
            to_date=to_date,
            total_expenses=total_expenses,
            total_pending=Decimal(status_totals.get(ExpensePaymentStatus.PENDING.value, 0)),
            total_paid=Decimal(total_paid or 0),
            expense_count=pending_count + paid_count,
            pending_count=pending_count,
            paid_count=paid_count,
            category_breakdown=category_breakdown,
            monthly_trend=monthly_trend,
            totals_by_status={k: Decimal(v) for k, v in status_totals.items()},
        )

    @operation()
    def create_expense_from_work_order(
        self, work_order_id: str, recorded_by: Optional[str] = None
    ) -> Optional[ExpenseRead]:
        """
        Book the actual cost of a completed work order as an expense.

        Returns the existing expense when one was already created for the
        work order, and None when the work order has no positive cost.
        """
        try:
            existing = get_record(self.session, Expense, {"work_order_id": work_order_id})
            if existing is not None:
                self.logger.info(f"Expense already exists for work order: {work_order_id}")
                return ExpenseRead.model_validate(existing)

            work_order = self.session.get(WorkOrder, work_order_id) if work_order_id else None
            if work_order is None:
                raise not_found("WorkOrder", work_order_id=work_order_id)
            if work_order.actual_cost is None or work_order.actual_cost <= 0:
                self.logger.info(f"Work order has no actual cost, skipping: {work_order_id}")
                return None

            property_id = (
                work_order.property_id
                if get_record_by_id(self.session, Property, work_order.property_id)
                else None
            )
            vendor = (
                self.session.query(Vendor)
                .filter(Vendor.id == work_order.assigned_vendor_id, Vendor.is_deleted.is_(False))
                .first()
                if work_order.assigned_vendor_id
                else None
            )

            expense = Expense(
                expense_number=self._new_expense_number(),
                category=expense_category_for_work_order(work_order.category).value,
                amount=work_order.actual_cost,
                expense_date=self.today(),
                description=f"Work Order {work_order.work_order_number}: {work_order.title}",
                payment_status=ExpensePaymentStatus.PENDING.value,
                work_order_id=work_order.id,
                property_id=property_id,
                vendor_id=vendor.id if vendor else None,
                recorded_by=recorded_by,
            )
            self.session.add(expense)
            self.session.flush()
            self.logger.info(
                f"Created expense from work order: {work_order_id} -> {expense.expense_number}"
            )
            return ExpenseRead.model_validate(expense)
        except Exception as e:
            if isinstance(e, BaseError):
                raise
            self._handle_service_exception("create_expense_from_work_order", e, work_order_id)
