"""
Quotations issued to leads and their conversion into tenants.

Lifecycle: DRAFT -> SENT -> ACCEPTED | REJECTED | EXPIRED, and ACCEPTED ->
CONVERTED once the lead is handed over to tenant onboarding.
"""

from datetime import date
from decimal import Decimal
from typing import Any, Callable, Dict, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from ..context.operation_context import operation
from ..db.db_base import utc_now
from ..db.db_lead_models import Lead, Quotation
from ..db.db_property_models import Unit
from ..enums import (
    LeadEventType,
    LeadStatus,
    QuotationStatus,
    UnitStatus,
    can_transition_quotation,
)
from ..exceptions import BaseError, ValidationError, invalid_state, not_found
from ..schemas.lead_schema import (
    LeadConversion,
    QuotationCreate,
    QuotationDashboard,
    QuotationRead,
    QuotationUpdate,
)
from ..utils.crud_helpers import apply_updates, next_sequence_number
from ..utils.logger import get_logger
from .base_service import SessionManagedService
from .lead_service import record_lead_event
from .notification_service import NotificationService


def calculate_total_first_payment(
    base_rent: Decimal,
    service_charges: Decimal,
    parking_fee: Decimal,
    parking_spots: int,
    security_deposit: Decimal,
    admin_fee: Decimal,
) -> Decimal:
    """First payment due on acceptance; ``parking_fee`` is charged per spot."""
    return base_rent + service_charges + parking_fee * parking_spots + security_deposit + admin_fee


class QuotationService(SessionManagedService):
    def __init__(
        self,
        session: Optional[Session] = None,
        notification_service: Optional[NotificationService] = None,
        today: Callable[[], date] = date.today,
    ):
        super().__init__(read_schema_class=QuotationRead, logger=get_logger(), session=session)
        self._notification_service = notification_service
        self.today = today

    @property
    def notifications(self) -> NotificationService:
        if self._notification_service is None:
            self._notification_service = NotificationService(session=self.session)
        return self._notification_service

    def _get_quotation_or_raise(self, quotation_id: str) -> Quotation:
        quotation = self.session.get(Quotation, quotation_id) if quotation_id else None
        if quotation is None:
            raise not_found("Quotation", quotation_id=quotation_id)
        return quotation

    def _get_lead_or_raise(self, lead_id: str) -> Lead:
        lead = self.session.get(Lead, lead_id) if lead_id else None
        if lead is None:
            raise not_found("Lead", lead_id=lead_id)
        return lead

    @staticmethod
    def _check_dates(issue_date: date, validity_date: date) -> None:
        if validity_date <= issue_date:
            raise ValidationError("Validity date must be after issue date", field="validity_date")

    @staticmethod
    def _recalculate_total(quotation: Quotation) -> None:
        quotation.total_first_payment = calculate_total_first_payment(
            Decimal(quotation.base_rent),
            Decimal(quotation.service_charges or 0),
            Decimal(quotation.parking_fee or 0),
            quotation.parking_spots or 0,
            Decimal(quotation.security_deposit or 0),
            Decimal(quotation.admin_fee or 0),
        )

    @operation()
    def create_quotation(
        self, data: QuotationCreate, created_by: Optional[str] = None
    ) -> QuotationRead:
        try:
            lead = self._get_lead_or_raise(data.lead_id)
            self._check_dates(data.issue_date, data.validity_date)

            quotation = Quotation(
                **data.model_dump(exclude={"stay_type", "first_month_payment_method"}),
                stay_type=data.stay_type.value if data.stay_type else None,
                first_month_payment_method=(
                    data.first_month_payment_method.value
                    if data.first_month_payment_method
                    else None
                ),
                quotation_number=next_sequence_number(
                    self.session, Quotation, "quotation_number", "QUOT", self.today().year
                ),
                status=QuotationStatus.DRAFT.value,
                created_by=created_by,
            )
            self._recalculate_total(quotation)
            self.session.add(quotation)
            self.session.flush()

            record_lead_event(
                self.session,
                lead.id,
                LeadEventType.QUOTATION_CREATED,
                {
                    "quotationId": quotation.id,
                    "quotationNumber": quotation.quotation_number,
                    "totalFirstPayment": quotation.total_first_payment,
                },
                created_by,
            )
            self.session.flush()
            self.logger.info(
                f"Created quotation: id={quotation.id}, number={quotation.quotation_number}"
            )
            return QuotationRead.model_validate(quotation)
        except Exception as e:
            if isinstance(e, BaseError):
                raise
            self._handle_service_exception("create_quotation", e)

    @operation()
    def get_quotation(self, quotation_id: str) -> QuotationRead:
        return QuotationRead.model_validate(self._get_quotation_or_raise(quotation_id))

    @operation()
    def update_quotation(self, quotation_id: str, data: QuotationUpdate) -> QuotationRead:
        try:
            quotation = self._get_quotation_or_raise(quotation_id)
            if quotation.status != QuotationStatus.DRAFT.value:
                raise invalid_state(
                    "Only DRAFT quotations can be updated",
                    quotation_id=quotation_id,
                    status=quotation.status,
                )
            updates = data.model_dump(exclude_unset=True, exclude_none=True)
            self._check_dates(
                updates.get("issue_date", quotation.issue_date),
                updates.get("validity_date", quotation.validity_date),
            )
            apply_updates(quotation, updates)
            self._recalculate_total(quotation)
            self.session.flush()
            return QuotationRead.model_validate(quotation)
        except Exception as e:
            if isinstance(e, BaseError):
                raise
            self._handle_service_exception("update_quotation", e, quotation_id)

    @operation()
    def search_quotations(
        self,
        status: Optional[QuotationStatus] = None,
        lead_id: Optional[str] = None,
        search: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Dict[str, Any]:
        query = self.session.query(Quotation)
        if status:
            query = query.filter(Quotation.status == QuotationStatus(status).value)
        if lead_id:
            query = query.filter(Quotation.lead_id == lead_id)
        if search:
            pattern = f"%{search.strip()}%"
            query = query.join(Lead, Lead.id == Quotation.lead_id).filter(
                or_(
                    Quotation.quotation_number.ilike(pattern),
                    Lead.full_name.ilike(pattern),
                    Lead.email.ilike(pattern),
                )
            )
        return self.paginate_query(query.order_by(Quotation.created_at.desc()), page, page_size)

    def _set_lead_status(
        self, lead: Lead, status: LeadStatus, updated_by: Optional[str], **event_data
    ) -> None:
        old_status = lead.status
        lead.status = status.value
        record_lead_event(
            self.session,
            lead.id,
            LeadEventType.STATUS_CHANGED,
            {"oldStatus": old_status, "newStatus": status.value, **event_data},
            updated_by,
        )

    @operation()
    def update_quotation_status(
        self,
        quotation_id: str,
        status: QuotationStatus,
        rejection_reason: Optional[str] = None,
        updated_by: Optional[str] = None,
    ) -> QuotationRead:
        """
        Move a quotation along its lifecycle and mirror the change on the lead.

        Raises:
            ServiceError: INVALID_STATE_TRANSITION for a move outside
                ``QUOTATION_TRANSITIONS``
        """
        try:
            quotation = self._get_quotation_or_raise(quotation_id)
            new_status = QuotationStatus(status)
            if not can_transition_quotation(quotation.status, new_status):
                raise invalid_state(
                    f"Cannot move quotation from {quotation.status} to {new_status.value}",
                    quotation_id=quotation_id,
                    status=quotation.status,
                )
            lead = self._get_lead_or_raise(quotation.lead_id)
            now = utc_now()

            quotation.status = new_status.value
            if new_status == QuotationStatus.SENT:
                quotation.sent_at = now
                lead.status = LeadStatus.QUOTATION_SENT.value
                record_lead_event(
                    self.session,
                    lead.id,
                    LeadEventType.QUOTATION_SENT,
                    {"quotationId": quotation.id, "quotationNumber": quotation.quotation_number},
                    updated_by,
                )
            elif new_status == QuotationStatus.ACCEPTED:
                quotation.accepted_at = now
                self._set_lead_status(
                    lead, LeadStatus.ACCEPTED, updated_by, quotationId=quotation.id
                )
            elif new_status == QuotationStatus.REJECTED:
                quotation.rejected_at = now
                quotation.rejection_reason = rejection_reason
            self.session.flush()

            if new_status == QuotationStatus.ACCEPTED:
                # Delivery outcome is recorded on the notification itself
                self.notifications.send_quotation_accepted_notification(lead, quotation)

            self.logger.info(f"Quotation status changed: id={quotation.id}, status={new_status.value}")
            return QuotationRead.model_validate(quotation)
        except Exception as e:
            if isinstance(e, BaseError):
                raise
            self._handle_service_exception("update_quotation_status", e, quotation_id)

    @operation()
    def send_quotation(self, quotation_id: str, sent_by: Optional[str] = None) -> QuotationRead:
        quotation = self._get_quotation_or_raise(quotation_id)
        if quotation.status != QuotationStatus.DRAFT.value:
            raise invalid_state(
                "Only DRAFT quotations can be sent",
                quotation_id=quotation_id,
                status=quotation.status,
            )
        return self.update_quotation_status(quotation_id, QuotationStatus.SENT, updated_by=sent_by)

    @operation()
    def get_dashboard_statistics(self) -> QuotationDashboard:
        counts = dict(
            self.session.query(Quotation.status, func.count(Quotation.id))
            .group_by(Quotation.status)
            .all()
        )
        new_leads = (
            self.session.query(func.count(Lead.id))
            .filter(Lead.status == LeadStatus.NEW.value)
            .scalar()
        )
        total = sum(counts.values())
        converted = counts.get(QuotationStatus.ACCEPTED.value, 0) + counts.get(
            QuotationStatus.CONVERTED.value, 0
        )
        return QuotationDashboard(
            new_leads=new_leads or 0,
            active_quotes=counts.get(QuotationStatus.SENT.value, 0),
            quotes_issued=counts.get(QuotationStatus.DRAFT.value, 0)
            + counts.get(QuotationStatus.SENT.value, 0),
            quotes_converted=converted,
            conversion_rate=round(converted / total * 100, 2) if total else 0.0,
        )

    @operation()
    def convert_lead_to_tenant(
        self, quotation_id: str, converted_by: Optional[str] = None
    ) -> LeadConversion:
        """
        Hand an accepted quotation over to tenant onboarding.

        The unit is RESERVED until the tenant is created.

        Raises:
            ServiceError: INVALID_STATE_TRANSITION when the quotation is not
                ACCEPTED, the lead is already converted, or the unit is taken
        """
        try:
            quotation = self._get_quotation_or_raise(quotation_id)
            if quotation.status != QuotationStatus.ACCEPTED.value:
                raise invalid_state(
                    "Only ACCEPTED quotations can be converted to tenant",
                    quotation_id=quotation_id,
                    status=quotation.status,
                )
            lead = self._get_lead_or_raise(quotation.lead_id)
            if lead.status == LeadStatus.CONVERTED.value:
                raise invalid_state(
                    "Lead has already been converted to tenant", lead_id=lead.id
                )

            unit = self.session.get(Unit, quotation.unit_id) if quotation.unit_id else None
            if unit is not None:
                if unit.status not in (UnitStatus.AVAILABLE.value, UnitStatus.RESERVED.value):
                    raise invalid_state(
                        "Unit is not available for reservation",
                        unit_id=unit.id,
                        status=unit.status,
                    )
                unit.status = UnitStatus.RESERVED.value

            quotation.status = QuotationStatus.CONVERTED.value
            quotation.converted_at = utc_now()
            self._set_lead_status(
                lead, LeadStatus.CONVERTED, converted_by, quotationId=quotation.id
            )
            self.session.flush()

            self.logger.info(f"Converted lead to tenant: lead_id={lead.id}, quotation_id={quotation.id}")
            return LeadConversion(
                lead_id=lead.id,
                quotation_id=quotation.id,
                lead_number=lead.lead_number,
                quotation_number=quotation.quotation_number,
                full_name=lead.full_name,
                email=lead.email,
                contact_number=lead.contact_number,
                emirates_id=lead.emirates_id,
                passport_number=lead.passport_number,
                passport_expiry_date=lead.passport_expiry_date,
                nationality=lead.home_country,
                property_id=quotation.property_id,
                unit_id=quotation.unit_id,
                base_rent=quotation.base_rent,
                service_charge=quotation.service_charges,
                admin_fee=quotation.admin_fee,
                security_deposit=quotation.security_deposit,
                parking_spots=quotation.parking_spots,
                parking_fee_per_spot=quotation.parking_fee,
                number_of_cheques=quotation.number_of_cheques,
                first_month_payment_method=quotation.first_month_payment_method,
                message="Lead converted successfully. Complete tenant onboarding to finish.",
            )
        except Exception as e:
            if isinstance(e, BaseError):
                raise
            self._handle_service_exception("convert_lead_to_tenant", e, quotation_id)

    @operation()
    def delete_quotation(self, quotation_id: str) -> None:
        quotation = self._get_quotation_or_raise(quotation_id)
        if quotation.status == QuotationStatus.CONVERTED.value:
            raise invalid_state("Converted quotations cannot be deleted", quotation_id=quotation_id)
        self.session.delete(quotation)
        self.session.flush()
        self.logger.info(f"Deleted quotation: id={quotation_id}")

    @operation()
    def expire_quotations(self, today: Optional[date] = None) -> int:
        """Move SENT quotations past their validity date to EXPIRED."""
        today = today or self.today()
        expired = (
            self.session.query(Quotation)
            .filter(
                Quotation.status == QuotationStatus.SENT.value,
                Quotation.validity_date < today,
            )
            .all()
        )
        for quotation in expired:
            quotation.status = QuotationStatus.EXPIRED.value
        self.session.flush()
        if expired:
            self.logger.info(f"Expired quotations: count={len(expired)}")
        return len(expired)
