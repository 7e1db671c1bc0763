"""Tests for PdcService: cheque registration and status transitions."""

from datetime import date
from decimal import Decimal

import pytest

from property_core.db import EmailNotification, Payment
from property_core.enums import InvoiceStatus, NotificationType, PaymentMethod, PdcStatus
from property_core.exceptions import ErrorCode, RepositoryError, ServiceError, ValidationError
from property_core.schemas.finance_schema import ChequeCreate, InvoiceCreate
from tests.fixtures.factories import TenantFactory, UnitFactory


@pytest.fixture
def tenant():
    return TenantFactory(unit=UnitFactory())


def _cheque(tenant_id, number="000123", cheque_date=date(2026, 4, 1), **overrides):
    values = dict(
        tenant_id=tenant_id,
        cheque_number=number,
        bank_name="Emirates NBD",
        amount=Decimal("5000"),
        cheque_date=cheque_date,
    )
    values.update(overrides)
    return ChequeCreate(**values)


@pytest.fixture
def cheque(pdc_service, tenant):
    return pdc_service.register_cheque(_cheque(tenant.id))


class TestRegisterCheque:
    def test_register(self, pdc_service, tenant):
        result = pdc_service.register_cheque(_cheque(tenant.id))

        assert result.status == PdcStatus.RECEIVED
        assert result.property_id == tenant.property_id
        assert result.deposit_date is None

    def test_cheque_number_unique_per_tenant(self, pdc_service, tenant, cheque):
        with pytest.raises(RepositoryError) as exc_info:
            pdc_service.register_cheque(_cheque(tenant.id))
        assert exc_info.value.error_code == ErrorCode.DUPLICATE

    def test_same_number_for_another_tenant(self, pdc_service, cheque):
        other = TenantFactory(unit=UnitFactory(unit_number="102"))

        result = pdc_service.register_cheque(_cheque(other.id))

        assert result.cheque_number == cheque.cheque_number

    def test_unknown_tenant(self, pdc_service):
        with pytest.raises(RepositoryError) as exc_info:
            pdc_service.register_cheque(_cheque("missing"))
        assert exc_info.value.error_code == ErrorCode.NOT_FOUND

    def test_invoice_of_another_tenant(self, pdc_service, invoice_service, tenant):
        other = TenantFactory(unit=UnitFactory(unit_number="102"))
        invoice = invoice_service.create_invoice(
            InvoiceCreate(
                tenant_id=other.id,
                issue_date=date(2026, 3, 1),
                due_date=date(2026, 4, 1),
                total_amount=Decimal("5000"),
            )
        )

        with pytest.raises(RepositoryError):
            pdc_service.register_cheque(_cheque(tenant.id, invoice_id=invoice.id))


class TestChequeTransitions:
    def test_deposit_then_clear(self, pdc_service, cheque):
        deposited = pdc_service.deposit_cheque(cheque.id, date(2026, 3, 17))
        assert deposited.status == PdcStatus.DEPOSITED
        assert deposited.deposit_date == date(2026, 3, 17)

        cleared = pdc_service.clear_cheque(cheque.id)

        assert cleared.status == PdcStatus.CLEARED
        assert cleared.cleared_date == date(2026, 3, 18)

    def test_deposit_then_bounce(self, pdc_service, cheque):
        pdc_service.deposit_cheque(cheque.id)

        bounced = pdc_service.bounce_cheque(cheque.id, "  Insufficient funds ")

        assert bounced.status == PdcStatus.BOUNCED
        assert bounced.bounce_reason == "Insufficient funds"
        assert bounced.bounced_date == date(2026, 3, 18)

    def test_due_cheque_can_be_deposited(self, pdc_service, tenant):
        cheque = pdc_service.register_cheque(_cheque(tenant.id, cheque_date=date(2026, 3, 20)))
        pdc_service.mark_due_cheques()

        assert pdc_service.deposit_cheque(cheque.id).status == PdcStatus.DEPOSITED

    @pytest.mark.parametrize("action", ["clear_cheque", "bounce_cheque"])
    def test_received_cheque_must_be_deposited_first(self, pdc_service, cheque, action):
        args = ("Stopped",) if action == "bounce_cheque" else ()

        with pytest.raises(ServiceError) as exc_info:
            getattr(pdc_service, action)(cheque.id, *args)
        assert exc_info.value.error_code == ErrorCode.INVALID_STATE_TRANSITION
        assert pdc_service.get_cheque(cheque.id).status == PdcStatus.RECEIVED

    def test_cleared_cheque_is_final(self, pdc_service, cheque):
        pdc_service.deposit_cheque(cheque.id)
        pdc_service.clear_cheque(cheque.id)

        for action in (pdc_service.deposit_cheque, pdc_service.cancel_cheque):
            with pytest.raises(ServiceError):
                action(cheque.id)

    def test_future_deposit_date_rejected(self, pdc_service, cheque):
        with pytest.raises(ValidationError) as exc_info:
            pdc_service.deposit_cheque(cheque.id, date(2026, 3, 19))
        assert exc_info.value.context["field"] == "deposit_date"

    def test_bounce_requires_reason(self, pdc_service, cheque):
        pdc_service.deposit_cheque(cheque.id)

        with pytest.raises(ValidationError):
            pdc_service.bounce_cheque(cheque.id, " ")

    def test_cancel_only_when_received(self, pdc_service, cheque):
        pdc_service.deposit_cheque(cheque.id)

        with pytest.raises(ServiceError):
            pdc_service.cancel_cheque(cheque.id)

    def test_withdraw(self, pdc_service, cheque):
        assert pdc_service.withdraw_cheque(cheque.id).status == PdcStatus.WITHDRAWN

    def test_replace_bounced_cheque(self, pdc_service, tenant, cheque):
        pdc_service.deposit_cheque(cheque.id)
        pdc_service.bounce_cheque(cheque.id, "Signature mismatch")

        replacement = pdc_service.replace_cheque(
            cheque.id, _cheque(tenant.id, number="000999", cheque_date=date(2026, 3, 25))
        )

        assert replacement.status == PdcStatus.RECEIVED
        original = pdc_service.get_cheque(cheque.id)
        assert original.status == PdcStatus.REPLACED
        assert original.replacement_cheque_id == replacement.id

    def test_only_bounced_cheques_are_replaced(self, pdc_service, tenant, cheque):
        with pytest.raises(ServiceError):
            pdc_service.replace_cheque(cheque.id, _cheque(tenant.id, number="000999"))


class TestMarkDueCheques:
    def test_received_cheques_within_a_week_become_due(self, pdc_service, tenant):
        soon = pdc_service.register_cheque(_cheque(tenant.id, "1", date(2026, 3, 25)))
        later = pdc_service.register_cheque(_cheque(tenant.id, "2", date(2026, 3, 26)))
        past = pdc_service.register_cheque(_cheque(tenant.id, "3", date(2026, 3, 17)))

        assert pdc_service.mark_due_cheques() == 1

        assert pdc_service.get_cheque(soon.id).status == PdcStatus.DUE
        assert pdc_service.get_cheque(later.id).status == PdcStatus.RECEIVED
        assert pdc_service.get_cheque(past.id).status == PdcStatus.RECEIVED

    def test_list_by_status(self, pdc_service, tenant):
        pdc_service.register_cheque(_cheque(tenant.id, "1", date(2026, 3, 20)))
        pdc_service.register_cheque(_cheque(tenant.id, "2", date(2026, 5, 1)))
        pdc_service.mark_due_cheques()

        result = pdc_service.list_cheques(tenant_id=tenant.id, status=PdcStatus.DUE)

        assert [c.cheque_number for c in result["data"]] == ["1"]


class TestClearingPaysInvoice:
    @pytest.fixture
    def invoice(self, invoice_service, tenant):
        invoice = invoice_service.create_invoice(
            InvoiceCreate(
                tenant_id=tenant.id,
                issue_date=date(2026, 3, 1),
                due_date=date(2026, 4, 1),
                total_amount=Decimal("8000"),
            )
        )
        return invoice_service.send_invoice(invoice.id)

    def test_clearing_records_pdc_payment(
        self, pdc_service, invoice_service, tenant, invoice, db_session
    ):
        cheque = pdc_service.register_cheque(_cheque(tenant.id, invoice_id=invoice.id))
        pdc_service.deposit_cheque(cheque.id)

        pdc_service.clear_cheque(cheque.id)

        payment = db_session.query(Payment).one()
        assert payment.invoice_id == invoice.id
        assert payment.amount == Decimal("5000")
        assert payment.payment_method == PaymentMethod.PDC.value
        assert payment.reference == cheque.cheque_number
        updated = invoice_service.get_invoice(invoice.id)
        assert updated.status == InvoiceStatus.PARTIALLY_PAID
        assert updated.balance_due == Decimal("3000")
        assert (
            db_session.query(EmailNotification)
            .filter_by(notification_type=NotificationType.PAYMENT_RECEIVED.value)
            .count()
            == 1
        )

    def test_payment_capped_at_balance(self, pdc_service, invoice_service, tenant, invoice):
        first = pdc_service.register_cheque(_cheque(tenant.id, "1", invoice_id=invoice.id))
        second = pdc_service.register_cheque(_cheque(tenant.id, "2", invoice_id=invoice.id))
        for cheque in (first, second):
            pdc_service.deposit_cheque(cheque.id)
            pdc_service.clear_cheque(cheque.id)

        updated = invoice_service.get_invoice(invoice.id)
        assert updated.status == InvoiceStatus.PAID
        assert updated.paid_amount == Decimal("8000")

    def test_bounce_records_no_payment(self, pdc_service, tenant, invoice, db_session):
        cheque = pdc_service.register_cheque(_cheque(tenant.id, invoice_id=invoice.id))
        pdc_service.deposit_cheque(cheque.id)

        pdc_service.bounce_cheque(cheque.id, "Account closed")

        assert db_session.query(Payment).count() == 0
