"""
Tenant invoices and the payments recorded against them.

Lifecycle: DRAFT -> SENT -> PARTIALLY_PAID -> PAID, with SENT and
PARTIALLY_PAID invoices moving to OVERDUE once their due date passes.
Only DRAFT invoices, or SENT ones nothing has been paid on, can be
cancelled. Sending an invoice and recording a payment both email the tenant.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.orm import Session

from ..context.operation_context import operation
from ..db.db_base import utc_now
from ..db.db_finance_models import Invoice, Payment
from ..db.db_tenant_models import Tenant
from ..enums import InvoiceStatus, TenantStatus
from ..exceptions import BaseError, ValidationError, invalid_state, not_found
from ..schemas.finance_schema import InvoiceCreate, InvoiceRead, PaymentCreate, PaymentRead
from ..utils.crud_helpers import next_sequence_number
from ..utils.logger import get_logger
from .base_service import SessionManagedService
from .notification_service import NotificationService

PAYABLE_STATUSES = (
    InvoiceStatus.SENT.value,
    InvoiceStatus.PARTIALLY_PAID.value,
    InvoiceStatus.OVERDUE.value,
)


class InvoiceService(SessionManagedService):
    def __init__(
        self,
        session: Optional[Session] = None,
        notification_service: Optional[NotificationService] = None,
        today: Callable[[], date] = date.today,
    ):
        super().__init__(read_schema_class=InvoiceRead, logger=get_logger(), session=session)
        self._notification_service = notification_service
        self.today = today

    @property
    def notifications(self) -> NotificationService:
        if self._notification_service is None:
            self._notification_service = NotificationService(session=self.session)
        return self._notification_service

    def _get_invoice_or_raise(self, invoice_id: str) -> Invoice:
        invoice = self.session.get(Invoice, invoice_id) if invoice_id else None
        if invoice is None:
            raise not_found("Invoice", invoice_id=invoice_id)
        return invoice

    def _get_tenant_or_raise(self, tenant_id: str) -> Tenant:
        tenant = self.session.get(Tenant, tenant_id) if tenant_id else None
        if tenant is None:
            raise not_found("Tenant", tenant_id=tenant_id)
        return tenant

    @operation()
    def create_invoice(self, data: InvoiceCreate) -> InvoiceRead:
        """Create a DRAFT invoice for an active tenant, billed to the tenant's property."""
        try:
            tenant = self._get_tenant_or_raise(data.tenant_id)
            if tenant.status != TenantStatus.ACTIVE.value or not tenant.active:
                raise invalid_state(
                    "Invoices can only be raised for active tenants",
                    tenant_id=tenant.id,
                    status=tenant.status,
                )
            if data.due_date < data.issue_date:
                raise ValidationError(
                    "Due date cannot be before the issue date",
                    field="due_date",
                    value=str(data.due_date),
                )

            invoice = Invoice(
                **data.model_dump(),
                invoice_number=next_sequence_number(
                    self.session, Invoice, "invoice_number", "INV", self.today().year
                ),
                property_id=tenant.property_id,
                paid_amount=Decimal("0"),
                status=InvoiceStatus.DRAFT.value,
            )
            self.session.add(invoice)
            self.session.flush()
            self.logger.info(
                f"Created invoice: id={invoice.id}, number={invoice.invoice_number}, "
                f"total={invoice.total_amount}"
            )
            return InvoiceRead.model_validate(invoice)
        except Exception as e:
            if isinstance(e, BaseError):
                raise
            self._handle_service_exception("create_invoice", e)

    @operation()
    def get_invoice(self, invoice_id: str) -> InvoiceRead:
        return InvoiceRead.model_validate(self._get_invoice_or_raise(invoice_id))

    @operation()
    def list_invoices(
        self,
        tenant_id: Optional[str] = None,
        property_id: Optional[str] = None,
        status: Optional[InvoiceStatus] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Dict[str, Any]:
        try:
            query = self.session.query(Invoice)
            if tenant_id:
                query = query.filter(Invoice.tenant_id == tenant_id)
            if property_id:
                query = query.filter(Invoice.property_id == property_id)
            if status:
                query = query.filter(Invoice.status == InvoiceStatus(status).value)
            query = query.order_by(Invoice.issue_date.desc(), Invoice.invoice_number.desc())
            return self.paginate_query(query, page, page_size)
        except Exception as e:
            if isinstance(e, BaseError):
                raise
            self._handle_service_exception("list_invoices", e)

    @operation()
    def send_invoice(self, invoice_id: str) -> InvoiceRead:
        try:
            invoice = self._get_invoice_or_raise(invoice_id)
            if invoice.status != InvoiceStatus.DRAFT.value:
                raise invalid_state(
                    "Only DRAFT invoices can be sent",
                    invoice_id=invoice_id,
                    status=invoice.status,
                )
            tenant = self._get_tenant_or_raise(invoice.tenant_id)

            invoice.status = InvoiceStatus.SENT.value
            invoice.sent_at = utc_now()
            self.session.flush()

            # Delivery outcome is recorded on the notification itself
            self.notifications.send_invoice_email(invoice, tenant)
            self.logger.info(f"Invoice sent: id={invoice.id}, number={invoice.invoice_number}")
            return InvoiceRead.model_validate(invoice)
        except Exception as e:
            if isinstance(e, BaseError):
                raise
            self._handle_service_exception("send_invoice", e, invoice_id)

    @operation()
    def cancel_invoice(self, invoice_id: str) -> InvoiceRead:
        invoice = self._get_invoice_or_raise(invoice_id)
        cancellable = invoice.status == InvoiceStatus.DRAFT.value or (
            invoice.status == InvoiceStatus.SENT.value and not invoice.paid_amount
        )
        if not cancellable:
            raise invalid_state(
                f"Cannot cancel invoice with status: {invoice.status}",
                invoice_id=invoice_id,
                status=invoice.status,
            )
        invoice.status = InvoiceStatus.CANCELLED.value
        self.session.flush()
        self.logger.info(f"Invoice cancelled: id={invoice.id}")
        return InvoiceRead.model_validate(invoice)

    @operation()
    def record_payment(self, invoice_id: str, data: PaymentCreate) -> PaymentRead:
        """
        Record a payment against a sent invoice and email the tenant a receipt.

        The amount may not exceed the balance due and the payment date may
        not be in the future. The invoice becomes PAID once nothing is left
        to pay, PARTIALLY_PAID otherwise.
        """
        try:
            invoice = self._get_invoice_or_raise(invoice_id)
            if invoice.status not in PAYABLE_STATUSES:
                raise invalid_state(
                    f"Cannot record payment for invoice with status: {invoice.status}",
                    invoice_id=invoice_id,
                    status=invoice.status,
                )
            if data.amount > invoice.balance_due:
                raise ValidationError(
                    f"Payment amount exceeds the balance due of {invoice.balance_due}",
                    field="amount",
                    value=str(data.amount),
                )
            if data.payment_date > self.today():
                raise ValidationError(
                    "Payment date cannot be in the future",
                    field="payment_date",
                    value=str(data.payment_date),
                )
            tenant = self._get_tenant_or_raise(invoice.tenant_id)

            payment = Payment(
                payment_number=next_sequence_number(
                    self.session, Payment, "payment_number", "PAY", self.today().year
                ),
                invoice_id=invoice.id,
                tenant_id=invoice.tenant_id,
                property_id=invoice.property_id,
                amount=data.amount,
                payment_date=data.payment_date,
                payment_method=data.payment_method.value,
                reference=data.reference,
            )
            self.session.add(payment)

            invoice.paid_amount = Decimal(invoice.paid_amount or 0) + data.amount
            invoice.status = (
                InvoiceStatus.PAID.value
                if invoice.balance_due <= 0
                else InvoiceStatus.PARTIALLY_PAID.value
            )
            self.session.flush()

            self.notifications.send_payment_received_email(payment, invoice, tenant)
            self.logger.info(
                f"Payment recorded: invoice={invoice.invoice_number}, "
                f"payment={payment.payment_number}, amount={payment.amount}, "
                f"status={invoice.status}"
            )
            return PaymentRead.model_validate(payment)
        except Exception as e:
            if isinstance(e, BaseError):
                raise
            self._handle_service_exception("record_payment", e, invoice_id)

    @operation()
    def get_invoice_payments(self, invoice_id: str) -> List[PaymentRead]:
        self._get_invoice_or_raise(invoice_id)
        payments = (
            self.session.query(Payment)
            .filter(Payment.invoice_id == invoice_id)
            .order_by(Payment.payment_date, Payment.payment_number)
            .all()
        )
        return [PaymentRead.model_validate(p) for p in payments]

    @operation()
    def get_outstanding_invoices(self, tenant_id: str) -> List[InvoiceRead]:
        """Unpaid invoices for a tenant, oldest due date first."""
        invoices = (
            self.session.query(Invoice)
            .filter(Invoice.tenant_id == tenant_id, Invoice.status.in_(PAYABLE_STATUSES))
            .order_by(Invoice.due_date)
            .all()
        )
        return [InvoiceRead.model_validate(i) for i in invoices]

    @operation()
    def mark_overdue_invoices(self) -> int:
        """Move SENT and PARTIALLY_PAID invoices past their due date to OVERDUE."""
        invoices = (
            self.session.query(Invoice)
            .filter(
                Invoice.status.in_(
                    [InvoiceStatus.SENT.value, InvoiceStatus.PARTIALLY_PAID.value]
                ),
                Invoice.due_date < self.today(),
            )
            .all()
        )
        for invoice in invoices:
            invoice.status = InvoiceStatus.OVERDUE.value
        self.session.flush()
        if invoices:
            self.logger.info(f"Marked {len(invoices)} invoices as overdue")
        return len(invoices)
