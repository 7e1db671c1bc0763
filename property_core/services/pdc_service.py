"""
Post-dated cheques collected from tenants.

A cheque is RECEIVED when collected, becomes DUE shortly before its date,
is DEPOSITED at the bank and ends CLEARED or BOUNCED. A bounced cheque is
closed by registering its replacement. Allowed moves are listed in
``PDC_TRANSITIONS``. Clearing a cheque linked to an invoice records the
payment on that invoice.
"""

from datetime import date, timedelta
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from ..context.operation_context import operation
from ..db.db_finance_models import Invoice, PostDatedCheque
from ..db.db_tenant_models import Tenant
from ..enums import PaymentMethod, PdcStatus, can_transition_pdc
from ..exceptions import BaseError, ValidationError, duplicate, invalid_state, not_found
from ..schemas.finance_schema import ChequeCreate, ChequeRead, PaymentCreate
from ..utils.crud_helpers import record_exists
from ..utils.logger import get_logger
from .base_service import SessionManagedService
from .invoice_service import PAYABLE_STATUSES, InvoiceService

DUE_WINDOW_DAYS = 7


class PdcService(SessionManagedService):
    def __init__(
        self,
        session: Optional[Session] = None,
        invoice_service: Optional[InvoiceService] = None,
        today: Callable[[], date] = date.today,
    ):
        super().__init__(read_schema_class=ChequeRead, logger=get_logger(), session=session)
        self._invoice_service = invoice_service
        self.today = today

    @property
    def invoices(self) -> InvoiceService:
        if self._invoice_service is None:
            self._invoice_service = InvoiceService(session=self.session, today=self.today)
        return self._invoice_service

    def _get_cheque_or_raise(self, cheque_id: str) -> PostDatedCheque:
        cheque = self.session.get(PostDatedCheque, cheque_id) if cheque_id else None
        if cheque is None:
            raise not_found("PostDatedCheque", cheque_id=cheque_id)
        return cheque

    def _require_transition(self, cheque: PostDatedCheque, target: PdcStatus) -> None:
        if not can_transition_pdc(cheque.status, target):
            raise invalid_state(
                f"Cannot move cheque from {cheque.status} to {target.value}",
                cheque_id=cheque.id,
                status=cheque.status,
            )

    def _move(self, cheque: PostDatedCheque, target: PdcStatus) -> None:
        self._require_transition(cheque, target)
        cheque.status = target.value

    def _check_not_future(self, value: date, field: str) -> None:
        if value > self.today():
            raise ValidationError(
                f"{field.replace('_', ' ').capitalize()} cannot be in the future",
                field=field,
                value=str(value),
            )

    def _new_cheque(self, data: ChequeCreate) -> PostDatedCheque:
        tenant = self.session.get(Tenant, data.tenant_id) if data.tenant_id else None
        if tenant is None:
            raise not_found("Tenant", tenant_id=data.tenant_id)
        if record_exists(
            self.session,
            PostDatedCheque,
            {"tenant_id": data.tenant_id, "cheque_number": data.cheque_number},
        ):
            raise duplicate(
                "PostDatedCheque", cheque_number=data.cheque_number, tenant_id=data.tenant_id
            )
        if data.invoice_id:
            invoice = self.session.get(Invoice, data.invoice_id)
            if invoice is None or invoice.tenant_id != tenant.id:
                raise not_found("Invoice", invoice_id=data.invoice_id, tenant_id=tenant.id)

        cheque = PostDatedCheque(
            **data.model_dump(),
            property_id=tenant.property_id,
            status=PdcStatus.RECEIVED.value,
        )
        self.session.add(cheque)
        return cheque

    @operation()
    def register_cheque(self, data: ChequeCreate) -> ChequeRead:
        try:
            cheque = self._new_cheque(data)
            self.session.flush()
            self.logger.info(
                f"Registered cheque: id={cheque.id}, number={cheque.cheque_number}, "
                f"date={cheque.cheque_date}"
            )
            return ChequeRead.model_validate(cheque)
        except Exception as e:
            if isinstance(e, BaseError):
                raise
            self._handle_service_exception("register_cheque", e)

    @operation()
    def get_cheque(self, cheque_id: str) -> ChequeRead:
        return ChequeRead.model_validate(self._get_cheque_or_raise(cheque_id))

    @operation()
    def list_cheques(
        self,
        tenant_id: Optional[str] = None,
        property_id: Optional[str] = None,
        status: Optional[PdcStatus] = None,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Dict[str, Any]:
        try:
            query = self.session.query(PostDatedCheque)
            if tenant_id:
                query = query.filter(PostDatedCheque.tenant_id == tenant_id)
            if property_id:
                query = query.filter(PostDatedCheque.property_id == property_id)
            if status:
                query = query.filter(PostDatedCheque.status == PdcStatus(status).value)
            if from_date:
                query = query.filter(PostDatedCheque.cheque_date >= from_date)
            if to_date:
                query = query.filter(PostDatedCheque.cheque_date <= to_date)
            query = query.order_by(PostDatedCheque.cheque_date, PostDatedCheque.cheque_number)
            return self.paginate_query(query, page, page_size)
        except Exception as e:
            if isinstance(e, BaseError):
                raise
            self._handle_service_exception("list_cheques", e)

    @operation()
    def mark_due_cheques(self, window_days: int = DUE_WINDOW_DAYS) -> int:
        """Move RECEIVED cheques dated within the next ``window_days`` to DUE."""
        today = self.today()
        cheques = (
            self.session.query(PostDatedCheque)
            .filter(
                PostDatedCheque.status == PdcStatus.RECEIVED.value,
                PostDatedCheque.cheque_date >= today,
                PostDatedCheque.cheque_date <= today + timedelta(days=window_days),
            )
            .all()
        )
        for cheque in cheques:
            cheque.status = PdcStatus.DUE.value
        self.session.flush()
        if cheques:
            self.logger.info(f"Marked {len(cheques)} cheques as due")
        return len(cheques)

    @operation()
    def deposit_cheque(self, cheque_id: str, deposit_date: Optional[date] = None) -> ChequeRead:
        cheque = self._get_cheque_or_raise(cheque_id)
        deposit_date = deposit_date or self.today()
        self._check_not_future(deposit_date, "deposit_date")
        self._move(cheque, PdcStatus.DEPOSITED)
        cheque.deposit_date = deposit_date
        self.session.flush()
        self.logger.info(f"Cheque deposited: id={cheque.id}, number={cheque.cheque_number}")
        return ChequeRead.model_validate(cheque)

    @operation()
    def clear_cheque(self, cheque_id: str, cleared_date: Optional[date] = None) -> ChequeRead:
        """
        Mark a deposited cheque as cleared.

        When the cheque is linked to an invoice that still has a balance,
        a PDC payment for the cheque amount (capped at the balance) is
        recorded on it.
        """
        try:
            cheque = self._get_cheque_or_raise(cheque_id)
            cleared_date = cleared_date or self.today()
            self._check_not_future(cleared_date, "cleared_date")
            self._move(cheque, PdcStatus.CLEARED)
            cheque.cleared_date = cleared_date
            self.session.flush()

            invoice = self.session.get(Invoice, cheque.invoice_id) if cheque.invoice_id else None
            if invoice is not None and invoice.status in PAYABLE_STATUSES:
                self.invoices.record_payment(
                    invoice.id,
                    PaymentCreate(
                        amount=min(cheque.amount, invoice.balance_due),
                        payment_date=cleared_date,
                        payment_method=PaymentMethod.PDC,
                        reference=cheque.cheque_number,
                    ),
                )

            self.logger.info(f"Cheque cleared: id={cheque.id}, number={cheque.cheque_number}")
            return ChequeRead.model_validate(cheque)
        except Exception as e:
            if isinstance(e, BaseError):
                raise
            self._handle_service_exception("clear_cheque", e, cheque_id)

    @operation()
    def bounce_cheque(
        self, cheque_id: str, reason: str, bounced_date: Optional[date] = None
    ) -> ChequeRead:
        if not reason or not reason.strip():
            raise ValidationError("A bounce reason is required", field="reason")
        cheque = self._get_cheque_or_raise(cheque_id)
        bounced_date = bounced_date or self.today()
        self._check_not_future(bounced_date, "bounced_date")
        self._move(cheque, PdcStatus.BOUNCED)
        cheque.bounced_date = bounced_date
        cheque.bounce_reason = reason.strip()
        self.session.flush()
        self.logger.warning(
            f"Cheque bounced: id={cheque.id}, number={cheque.cheque_number}",
            extra={"tenant_id": cheque.tenant_id, "reason": cheque.bounce_reason},
        )
        return ChequeRead.model_validate(cheque)

    @operation()
    def replace_cheque(self, cheque_id: str, replacement: ChequeCreate) -> ChequeRead:
        """Register the replacement for a bounced cheque and return it."""
        try:
            cheque = self._get_cheque_or_raise(cheque_id)
            if replacement.tenant_id != cheque.tenant_id:
                raise ValidationError(
                    "Replacement cheque must belong to the same tenant",
                    field="tenant_id",
                    value=replacement.tenant_id,
                )
            self._require_transition(cheque, PdcStatus.REPLACED)
            if replacement.invoice_id is None:
                replacement = replacement.model_copy(update={"invoice_id": cheque.invoice_id})
            new_cheque = self._new_cheque(replacement)
            self.session.flush()
            cheque.status = PdcStatus.REPLACED.value
            cheque.replacement_cheque_id = new_cheque.id
            self.session.flush()
            self.logger.info(
                f"Cheque replaced: {cheque.cheque_number} -> {new_cheque.cheque_number}"
            )
            return ChequeRead.model_validate(new_cheque)
        except Exception as e:
            if isinstance(e, BaseError):
                raise
            self._handle_service_exception("replace_cheque", e, cheque_id)

    @operation()
    def withdraw_cheque(self, cheque_id: str) -> ChequeRead:
        """Hand a not-yet-deposited cheque back to the tenant."""
        cheque = self._get_cheque_or_raise(cheque_id)
        self._move(cheque, PdcStatus.WITHDRAWN)
        self.session.flush()
        self.logger.info(f"Cheque withdrawn: id={cheque.id}")
        return ChequeRead.model_validate(cheque)

    @operation()
    def cancel_cheque(self, cheque_id: str) -> ChequeRead:
        cheque = self._get_cheque_or_raise(cheque_id)
        self._move(cheque, PdcStatus.CANCELLED)
        self.session.flush()
        self.logger.info(f"Cheque cancelled: id={cheque.id}")
        return ChequeRead.model_validate(cheque)
