"""
Tests for FinanceDashboardService.

Invoices, payments, expenses and cheques are seeded directly; "today" is
Wednesday 2026-03-18.
"""

from datetime import date
from decimal import Decimal

import pytest

from property_core.config import DashboardConfig
from property_core.db import Expense, Invoice, Payment, PostDatedCheque
from property_core.enums import ExpensePaymentStatus, InvoiceStatus, PdcStatus
from property_core.services import FinanceDashboardService
from property_core.services.finance_dashboard_service import aging_bucket_for
from tests.fixtures.factories import PropertyFactory, TenantFactory, UnitFactory


@pytest.fixture
def seed(db_session):
    counters = {"payment": 0, "expense": 0, "invoice": 0, "cheque": 0}

    def _next(kind):
        counters[kind] += 1
        return counters[kind]

    class Seed:
        @staticmethod
        def payment(amount, paid_on, property_id=None, invoice=None, tenant_id="tenant-x"):
            payment = Payment(
                payment_number=f"PAY-{_next('payment'):04d}",
                invoice_id=invoice.id if invoice else None,
                tenant_id=tenant_id,
                property_id=property_id,
                amount=Decimal(amount),
                payment_date=paid_on,
                payment_method="BANK_TRANSFER",
            )
            db_session.add(payment)
            db_session.flush()
            return payment

        @staticmethod
        def expense(
            amount,
            spent_on,
            category="MAINTENANCE",
            vat="0",
            status=ExpensePaymentStatus.PAID,
            property_id=None,
        ):
            expense = Expense(
                expense_number=f"EXP-2026-{_next('expense'):04d}",
                category=category,
                amount=Decimal(amount),
                vat_amount=Decimal(vat),
                expense_date=spent_on,
                description=f"{category.title()} expense",
                payment_status=status.value,
                payment_date=spent_on if status == ExpensePaymentStatus.PAID else None,
                property_id=property_id,
            )
            db_session.add(expense)
            db_session.flush()
            return expense

        @staticmethod
        def invoice(total, due_on, status=InvoiceStatus.SENT, paid="0", property_id=None):
            invoice = Invoice(
                invoice_number=f"INV-{_next('invoice'):04d}",
                tenant_id="tenant-x",
                property_id=property_id,
                issue_date=date(2025, 11, 1),
                due_date=due_on,
                total_amount=Decimal(total),
                paid_amount=Decimal(paid),
                status=status.value,
            )
            db_session.add(invoice)
            db_session.flush()
            return invoice

        @staticmethod
        def cheque(amount, dated, status=PdcStatus.RECEIVED, property_id=None):
            cheque = PostDatedCheque(
                cheque_number=f"{_next('cheque'):06d}",
                tenant_id="tenant-x",
                property_id=property_id,
                bank_name="Emirates NBD",
                amount=Decimal(amount),
                cheque_date=dated,
                status=status.value,
            )
            db_session.add(cheque)
            db_session.flush()
            return cheque

    return Seed


class TestFinanceKpis:
    def test_year_to_date_against_last_year(self, finance_dashboard_service, seed):
        seed.payment("8000", date(2026, 1, 15))
        seed.payment("12000", date(2026, 3, 1))
        seed.payment("16000", date(2025, 2, 10))
        seed.payment("5000", date(2025, 6, 1))  # after the comparable span
        seed.expense("4000", date(2026, 2, 1), vat="200")
        seed.expense("9999", date(2026, 2, 2), status=ExpensePaymentStatus.PENDING)
        seed.expense("2000", date(2025, 3, 1), vat="100")

        kpis = finance_dashboard_service.get_finance_kpis()

        assert kpis.total_income == Decimal("20000")
        assert kpis.total_expenses == Decimal("4000")
        assert kpis.net_profit == Decimal("16000")
        assert kpis.vat_paid == Decimal("200")
        assert kpis.profit_margin_percentage == 80.0
        assert kpis.income_trend_percentage == 25.0
        assert kpis.expense_trend_percentage == 100.0
        assert kpis.vat_trend_percentage == 100.0
        assert kpis.net_profit_trend_percentage == 14.29
        assert (kpis.period_start, kpis.period_end) == (date(2026, 1, 1), date(2026, 3, 18))

    def test_no_history(self, finance_dashboard_service):
        kpis = finance_dashboard_service.get_finance_kpis()

        assert kpis.total_income == Decimal("0")
        assert kpis.profit_margin_percentage is None
        assert kpis.income_trend_percentage is None

    def test_invoice_property_wins_over_payment_property(
        self, finance_dashboard_service, seed
    ):
        """Income follows the invoice's property; standalone payments use their own."""
        tower = PropertyFactory(name="Tower")
        villa = PropertyFactory(name="Villa")
        invoice = seed.invoice("3000", date(2026, 2, 1), property_id=tower.id)
        seed.payment("3000", date(2026, 2, 1), property_id=villa.id, invoice=invoice)
        seed.payment("700", date(2026, 2, 2), property_id=villa.id)

        assert finance_dashboard_service.get_finance_kpis(tower.id).total_income == Decimal("3000")
        assert finance_dashboard_service.get_finance_kpis(villa.id).total_income == Decimal("700")


class TestIncomeVsExpense:
    def test_twelve_months_oldest_first(self, finance_dashboard_service, seed):
        seed.payment("12000", date(2026, 3, 1))
        seed.payment("1000", date(2025, 4, 30))
        seed.payment("999", date(2025, 3, 31))  # outside the window
        seed.expense("2500", date(2026, 3, 5))

        months = finance_dashboard_service.get_income_vs_expense()

        assert len(months) == 12
        assert (months[0].month, months[0].month_label) == ("2025-04", "Apr 2025")
        assert months[0].income == Decimal("1000")
        last = months[-1]
        assert (last.month, last.month_label) == ("2026-03", "Mar 2026")
        assert (last.income, last.expenses, last.net) == (
            Decimal("12000"),
            Decimal("2500"),
            Decimal("9500"),
        )
        assert sum(m.income for m in months) == Decimal("13000")


class TestExpenseCategories:
    def test_paid_expenses_by_category(self, finance_dashboard_service, seed):
        seed.expense("3000", date(2026, 2, 1), category="MAINTENANCE")
        seed.expense("1000", date(2026, 2, 3), category="UTILITIES")
        seed.expense("800", date(2026, 2, 4), category="MARKETING", status=ExpensePaymentStatus.PENDING)

        slices = finance_dashboard_service.get_expense_categories()

        assert [(s.category, s.percentage, s.color) for s in slices] == [
            ("MAINTENANCE", 75.0, "#3b82f6"),
            ("UTILITIES", 25.0, "#f59e0b"),
        ]


class TestOutstandingReceivables:
    def test_aging_buckets(self, finance_dashboard_service, seed):
        seed.invoice("1000", date(2026, 3, 1))
        seed.invoice("2000", date(2026, 1, 20), status=InvoiceStatus.OVERDUE, paid="500")
        seed.invoice("2500", date(2025, 12, 1), status=InvoiceStatus.PARTIALLY_PAID)
        seed.invoice("4000", date(2025, 12, 1), status=InvoiceStatus.PAID, paid="4000")

        result = finance_dashboard_service.get_outstanding_receivables()

        assert result.total_outstanding == Decimal("5000")
        summary = [(b.bucket, b.label, b.amount, b.invoice_count, b.percentage) for b in result.buckets]
        assert summary == [
            ("CURRENT", "0-30 Days", Decimal("1000"), 1, 20.0),
            ("THIRTY_PLUS", "31-60 Days", Decimal("1500"), 1, 30.0),
            ("SIXTY_PLUS", "61-90 Days", Decimal("0"), 0, 0.0),
            ("NINETY_PLUS", "90+ Days", Decimal("2500"), 1, 50.0),
        ]

    @pytest.mark.parametrize(
        "days,bucket",
        [
            (-5, "CURRENT"),
            (0, "CURRENT"),
            (30, "CURRENT"),
            (31, "THIRTY_PLUS"),
            (60, "THIRTY_PLUS"),
            (61, "SIXTY_PLUS"),
            (90, "SIXTY_PLUS"),
            (91, "NINETY_PLUS"),
        ],
    )
    def test_aging_bucket_for(self, days, bucket):
        assert aging_bucket_for(days) == bucket


class TestRecentTransactions:
    def test_large_transactions_newest_first(
        self, finance_dashboard_service, seed
    ):
        prop = PropertyFactory()
        tenant = TenantFactory(unit=UnitFactory(property=prop), first_name="Yara")
        payment = seed.payment("12000", date(2026, 3, 1), tenant_id=tenant.id)
        expense = seed.expense("15000", date(2026, 2, 10))
        seed.expense("20000", date(2026, 3, 10), status=ExpensePaymentStatus.PENDING)
        seed.payment("500", date(2026, 3, 12))

        result = finance_dashboard_service.get_recent_transactions()

        assert [(t.transaction_type, t.reference_id) for t in result] == [
            ("INCOME", payment.id),
            ("EXPENSE", expense.id),
        ]
        assert result[0].description == "Yara Mansour"

    def test_threshold_and_limit(self, db_session, seed):
        service = FinanceDashboardService(
            session=db_session,
            config=DashboardConfig(transaction_threshold=100, transaction_limit=2),
            today=lambda: date(2026, 3, 18),
        )
        for day in (1, 2, 3):
            seed.payment("150", date(2026, 3, day))

        result = service.get_recent_transactions()

        assert [t.transaction_date.day for t in result] == [3, 2]
        assert result[0].description == "Payment"
        assert len(service.get_recent_transactions(threshold=Decimal("1000"))) == 0


class TestPdcStatus:
    def test_cheque_windows(self, finance_dashboard_service, seed):
        seed.cheque("1000", date(2026, 3, 18))
        seed.cheque("2000", date(2026, 3, 22), status=PdcStatus.DUE)
        seed.cheque("3000", date(2026, 3, 23))
        seed.cheque("9000", date(2026, 4, 1))
        seed.cheque("9000", date(2026, 3, 10))
        seed.cheque("4000", date(2026, 2, 1), status=PdcStatus.DEPOSITED)
        seed.cheque("9000", date(2026, 3, 19), status=PdcStatus.CLEARED)
        seed.cheque("9000", date(2026, 3, 19), status=PdcStatus.BOUNCED)

        result = finance_dashboard_service.get_pdc_status()

        assert (result.due_this_week_count, result.due_this_week_amount) == (2, Decimal("3000"))
        assert (result.due_this_month_count, result.due_this_month_amount) == (1, Decimal("3000"))
        assert (result.awaiting_clearance_count, result.awaiting_clearance_amount) == (
            1,
            Decimal("4000"),
        )
        assert (result.total_outstanding_count, result.total_outstanding_amount) == (
            4,
            Decimal("10000"),
        )


def test_full_dashboard(finance_dashboard_service, seed):
    seed.payment("12000", date(2026, 3, 1))

    dashboard = finance_dashboard_service.get_finance_dashboard()

    assert dashboard.property_id is None
    assert dashboard.kpis.total_income == Decimal("12000")
    assert len(dashboard.income_vs_expense) == 12
    assert dashboard.generated_at is not None
