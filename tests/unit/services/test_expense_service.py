"""Tests for ExpenseService."""

from datetime import date
from decimal import Decimal

import pytest

from property_core.enums import ExpenseCategory, ExpensePaymentStatus, PaymentMethod
from property_core.exceptions import ErrorCode, RepositoryError, ServiceError
from property_core.schemas.expense_schema import ExpenseCreate, ExpensePayment, ExpenseUpdate
from tests.fixtures.factories import PropertyFactory, VendorFactory, WorkOrderFactory

PAYMENT = ExpensePayment(
    payment_method=PaymentMethod.BANK_TRANSFER,
    payment_date=date(2026, 3, 18),
    transaction_reference="TRX-991",
)


def _expense(amount="1000", category=ExpenseCategory.UTILITIES, expense_date=date(2026, 3, 1), **kw):
    return ExpenseCreate(
        category=category,
        amount=Decimal(amount),
        expense_date=expense_date,
        description=kw.pop("description", "DEWA bill"),
        **kw,
    )


class TestExpenseCrud:
    def test_create_expense(self, expense_service):
        prop = PropertyFactory()
        vendor = VendorFactory()

        result = expense_service.create_expense(
            _expense(property_id=prop.id, vendor_id=vendor.id), recorded_by="finance-1"
        )

        assert result.expense_number == "EXP-2026-0001"
        assert result.payment_status == ExpensePaymentStatus.PENDING
        assert result.recorded_by == "finance-1"

    @pytest.mark.parametrize("field", ["property_id", "vendor_id"])
    def test_unknown_reference(self, expense_service, field):
        with pytest.raises(RepositoryError) as exc_info:
            expense_service.create_expense(_expense(**{field: "missing"}))

        assert exc_info.value.error_code == ErrorCode.NOT_FOUND

    def test_deleted_vendor_is_unknown(self, expense_service):
        vendor = VendorFactory(is_deleted=True)

        with pytest.raises(RepositoryError):
            expense_service.create_expense(_expense(vendor_id=vendor.id))

    def test_update_pending_expense(self, expense_service):
        expense = expense_service.create_expense(_expense())

        result = expense_service.update_expense(
            expense.id, ExpenseUpdate(amount=Decimal("1200"), category=ExpenseCategory.SUPPLIES)
        )

        assert result.amount == Decimal("1200")
        assert result.category == ExpenseCategory.SUPPLIES

    def test_paid_expense_is_locked(self, expense_service):
        expense = expense_service.create_expense(_expense())
        expense_service.mark_as_paid(expense.id, PAYMENT)

        with pytest.raises(ServiceError) as exc_info:
            expense_service.update_expense(expense.id, ExpenseUpdate(description="changed"))
        assert exc_info.value.message == "Cannot update expense with status: PAID"

        with pytest.raises(ServiceError):
            expense_service.delete_expense(expense.id)

    def test_soft_delete(self, expense_service):
        expense = expense_service.create_expense(_expense())

        expense_service.delete_expense(expense.id, deleted_by="finance-1")

        with pytest.raises(RepositoryError):
            expense_service.get_expense(expense.id)
        assert expense_service.list_expenses()["pagination"]["total_count"] == 0


class TestExpenseListing:
    def test_filters_and_sorting(self, expense_service):
        prop = PropertyFactory()
        expense_service.create_expense(_expense("300", expense_date=date(2026, 1, 5)))
        expense_service.create_expense(
            _expense(
                "900",
                category=ExpenseCategory.MAINTENANCE,
                expense_date=date(2026, 2, 5),
                property_id=prop.id,
                description="Lift service",
            )
        )
        expense_service.create_expense(_expense("600", expense_date=date(2026, 3, 5)))

        by_date = expense_service.list_expenses()["data"]
        by_amount = expense_service.list_expenses(sort_by="amount", sort_desc=False)["data"]

        assert [e.expense_date.month for e in by_date] == [3, 2, 1]
        assert [e.amount for e in by_amount] == [Decimal("300"), Decimal("600"), Decimal("900")]

        assert len(expense_service.list_expenses(category=ExpenseCategory.MAINTENANCE)["data"]) == 1
        assert len(expense_service.list_expenses(property_id=prop.id)["data"]) == 1
        assert len(expense_service.list_expenses(search="lift")["data"]) == 1
        in_range = expense_service.list_expenses(
            from_date=date(2026, 2, 1), to_date=date(2026, 3, 31)
        )
        assert in_range["pagination"]["total_count"] == 2


class TestExpensePayments:
    def test_mark_as_paid(self, expense_service):
        expense = expense_service.create_expense(_expense())

        result = expense_service.mark_as_paid(expense.id, PAYMENT)

        assert result.payment_status == ExpensePaymentStatus.PAID
        assert result.payment_method == PaymentMethod.BANK_TRANSFER
        assert result.payment_date == date(2026, 3, 18)
        assert result.transaction_reference == "TRX-991"

    def test_pay_twice(self, expense_service):
        expense = expense_service.create_expense(_expense())
        expense_service.mark_as_paid(expense.id, PAYMENT)

        with pytest.raises(ServiceError) as exc_info:
            expense_service.mark_as_paid(expense.id, PAYMENT)

        assert exc_info.value.message == "Cannot pay expense with status: PAID"

    def test_batch_payment_reports_failures(self, expense_service):
        """Bad ids are reported individually; the valid expenses are still paid."""
        first = expense_service.create_expense(_expense("1000"))
        second = expense_service.create_expense(_expense("250"))
        already_paid = expense_service.create_expense(_expense("75"))
        expense_service.mark_as_paid(already_paid.id, PAYMENT)

        result = expense_service.batch_mark_as_paid(
            [first.id, "missing", second.id, already_paid.id], PAYMENT
        )

        assert result.total_processed == 4
        assert result.success_count == 2
        assert result.failed_count == 2
        assert result.total_amount == Decimal("1250")
        assert result.paid_expense_ids == [first.id, second.id]
        reasons = {item.expense_id: item.reason for item in result.failed_items}
        assert reasons == {
            "missing": "Expense not found",
            already_paid.id: "Cannot pay expense with status: PAID",
        }

    def test_pending_payments_by_vendor(self, expense_service):
        vendor = VendorFactory(company_name="Blue Pools")
        expense_service.create_expense(_expense("100", vendor_id=vendor.id))
        expense_service.create_expense(_expense("200", vendor_id=vendor.id))
        expense_service.create_expense(_expense("1000"))
        paid = expense_service.create_expense(_expense("5000", vendor_id=vendor.id))
        expense_service.mark_as_paid(paid.id, PAYMENT)

        groups = expense_service.get_pending_payments_by_vendor()

        assert [(g.vendor_name, g.expense_count, g.total_amount) for g in groups] == [
            ("No Vendor", 1, Decimal("1000")),
            ("Blue Pools", 2, Decimal("300")),
        ]
        only_vendor = expense_service.get_pending_payments_by_vendor(vendor_id=vendor.id)
        assert [g.vendor_id for g in only_vendor] == [vendor.id]


class TestExpenseSummary:
    def test_summary(self, expense_service):
        january = expense_service.create_expense(_expense("1000", expense_date=date(2026, 1, 10)))
        expense_service.create_expense(
            _expense("3000", category=ExpenseCategory.MAINTENANCE, expense_date=date(2026, 2, 15))
        )
        expense_service.create_expense(
            _expense("500", category=ExpenseCategory.OTHER, expense_date=date(2025, 12, 20))
        )
        expense_service.mark_as_paid(
            january.id,
            ExpensePayment(payment_method=PaymentMethod.CASH, payment_date=date(2026, 2, 5)),
        )

        summary = expense_service.get_expense_summary(date(2026, 1, 1), date(2026, 3, 31))

        assert summary.total_expenses == Decimal("4000")
        assert summary.total_pending == Decimal("3500")
        assert summary.total_paid == Decimal("1000")
        assert (summary.expense_count, summary.pending_count, summary.paid_count) == (3, 2, 1)
        assert [(c.category, c.percentage) for c in summary.category_breakdown] == [
            (ExpenseCategory.MAINTENANCE, 75.0),
            (ExpenseCategory.UTILITIES, 25.0),
        ]
        assert [(m.month, m.amount) for m in summary.monthly_trend] == [
            ("2026-01", Decimal("1000")),
            ("2026-02", Decimal("3000")),
        ]

    def test_empty_period(self, expense_service):
        summary = expense_service.get_expense_summary(date(2026, 1, 1), date(2026, 1, 31))

        assert summary.total_expenses == Decimal("0")
        assert summary.category_breakdown == []


class TestExpenseFromWorkOrder:
    def test_creates_maintenance_expense(
        self, expense_service
    ):
        prop = PropertyFactory()
        vendor = VendorFactory()
        work_order = WorkOrderFactory(property_id=prop.id, assigned_vendor_id=vendor.id)

        result = expense_service.create_expense_from_work_order(work_order.id, recorded_by="pm-1")

        assert result.category == ExpenseCategory.MAINTENANCE
        assert result.amount == Decimal("850")
        assert result.description == "Work Order WO-2026-0001: Replace AC compressor"
        assert result.property_id == prop.id
        assert result.vendor_id == vendor.id
        assert result.expense_date == date(2026, 3, 18)

    def test_is_idempotent(self, expense_service):
        work_order = WorkOrderFactory()

        first = expense_service.create_expense_from_work_order(work_order.id)
        second = expense_service.create_expense_from_work_order(work_order.id)

        assert first.id == second.id

    @pytest.mark.parametrize("cost", [None, Decimal("0")])
    def test_no_cost_means_no_expense(self, expense_service, cost):
        work_order = WorkOrderFactory(actual_cost=cost)

        assert expense_service.create_expense_from_work_order(work_order.id) is None

    def test_deleted_vendor_is_dropped(
        self, expense_service
    ):
        work_order = WorkOrderFactory(assigned_vendor_id=VendorFactory(is_deleted=True).id)

        assert expense_service.create_expense_from_work_order(work_order.id).vendor_id is None

    def test_unknown_work_order(self, expense_service):
        with pytest.raises(RepositoryError):
            expense_service.create_expense_from_work_order("missing")
