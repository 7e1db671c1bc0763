"""
Email notification dispatch with bounded retries.

A notification is rendered and stored as PENDING by ``queue_email``, then
delivered by ``send_notification``. Delivery problems never raise: they are
recorded on the notification (FAILED, ``failure_reason``) and, while
``retry_count`` is below ``max_retries``, a ``next_retry_at`` is scheduled
using exponential backoff. ``process_due_retries`` picks those up.
"""

from datetime import datetime
from typing import Any, Callable, Dict, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..config import NotificationConfig, get_config
from ..context.operation_context import operation
from ..db.db_base import utc_now
from ..db.db_notification_models import EmailNotification
from ..enums import NotificationStatus, NotificationType
from ..exceptions import BaseError, invalid_state, not_found
from ..schemas.notification_schema import NotificationRead, NotificationStatistics
from ..utils.backoff import next_retry_time
from ..utils.date_utils import to_datetime_range
from ..utils.email_utils import EmailSender, SmtpEmailSender
from ..utils.logger import get_logger
from ..utils.template_utils import TemplateRenderer
from .base_service import SessionManagedService

# Never persisted with the notification record
_SECRET_VARIABLES = frozenset(["temporaryPassword", "resetToken", "resetLink"])


class NotificationService(SessionManagedService):
    def __init__(
        self,
        session: Optional[Session] = None,
        email_sender: Optional[EmailSender] = None,
        template_renderer: Optional[TemplateRenderer] = None,
        config: Optional[NotificationConfig] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        super().__init__(read_schema_class=NotificationRead, logger=get_logger(), session=session)
        self.email_sender = email_sender or SmtpEmailSender()
        self.template_renderer = template_renderer or TemplateRenderer()
        self.config = config or get_config().notifications
        self.clock = clock

    def _base_variables(self, recipient_name: Optional[str]) -> Dict[str, Any]:
        return {
            "recipientName": recipient_name or "",
            "companyName": self.config.company_name,
            "supportEmail": self.config.support_email,
            "frontendUrl": self.config.frontend_url,
        }

    def _get_or_raise(self, notification_id: str) -> EmailNotification:
        notification = self.session.get(EmailNotification, notification_id)
        if notification is None:
            raise not_found("EmailNotification", notification_id=notification_id)
        return notification

    @operation()
    def queue_email(
        self,
        notification_type: NotificationType,
        recipient_email: str,
        recipient_name: Optional[str],
        subject: Optional[str],
        template_name: str,
        variables: Optional[Dict[str, Any]] = None,
        related_entity_type: Optional[str] = None,
        related_entity_id: Optional[str] = None,
    ) -> NotificationRead:
        """
        Render a template and store the notification as PENDING.

        ``subject`` overrides the template's subject line when given.
        Template errors propagate to the caller.
        """
        merged = self._base_variables(recipient_name)
        merged.update(variables or {})
        rendered_subject, body = self.template_renderer.render(template_name, merged)

        notification = EmailNotification(
            notification_type=NotificationType(notification_type).value,
            recipient_email=recipient_email,
            recipient_name=recipient_name,
            subject=subject or rendered_subject,
            body=body,
            template_name=template_name,
            template_variables={
                k: v for k, v in merged.items() if k not in _SECRET_VARIABLES
            },
            status=NotificationStatus.PENDING.value,
            retry_count=0,
            max_retries=self.config.max_retries,
            related_entity_type=related_entity_type,
            related_entity_id=related_entity_id,
        )
        self.session.add(notification)
        self.session.flush()

        self.logger.info(
            f"Queued notification: id={notification.id}, type={notification.notification_type}"
        )
        return NotificationRead.model_validate(notification)

    def _deliver(self, notification: EmailNotification) -> EmailNotification:
        notification.mark_as_queued()
        self.session.flush()

        try:
            self.email_sender.send(
                notification.recipient_email,
                notification.recipient_name,
                notification.subject,
                notification.body,
            )
        except Exception as e:
            # Delivery failures are recorded on the notification, never raised
            notification.mark_as_failed(str(e), now=self.clock())
            if notification.retry_count < notification.max_retries:
                notification.next_retry_at = next_retry_time(
                    notification.retry_count,
                    self.clock(),
                    base_minutes=self.config.retry_base_minutes,
                    multiplier=self.config.retry_multiplier,
                    max_minutes=self.config.retry_max_minutes,
                )
            else:
                notification.next_retry_at = None
            self.logger.warning(
                f"Notification delivery failed: id={notification.id}",
                extra={
                    "retry_count": notification.retry_count,
                    "next_retry_at": notification.next_retry_at,
                    "error_details": str(e),
                },
            )
        else:
            notification.mark_as_sent(now=self.clock())
            self.logger.info(f"Notification sent: id={notification.id}")

        self.session.flush()
        return notification

    @operation()
    def send_notification(self, notification_id: str) -> NotificationRead:
        """
        Deliver a PENDING notification; the outcome is on the returned record.

        Raises:
            ServiceError: INVALID_STATE_TRANSITION when the notification is not PENDING
        """
        try:
            notification = self._get_or_raise(notification_id)
            if notification.status != NotificationStatus.PENDING.value:
                raise invalid_state(
                    "Only PENDING notifications can be sent",
                    notification_id=notification_id,
                    status=notification.status,
                )
            return NotificationRead.model_validate(self._deliver(notification))
        except Exception as e:
            if isinstance(e, BaseError):
                raise
            self._handle_service_exception("send_notification", e, notification_id)

    @operation()
    def send_email_immediate(
        self,
        notification_type: NotificationType,
        recipient_email: str,
        recipient_name: Optional[str],
        subject: Optional[str],
        template_name: str,
        variables: Optional[Dict[str, Any]] = None,
        related_entity_type: Optional[str] = None,
        related_entity_id: Optional[str] = None,
    ) -> NotificationRead:
        queued = self.queue_email(
            notification_type,
            recipient_email,
            recipient_name,
            subject,
            template_name,
            variables,
            related_entity_type,
            related_entity_id,
        )
        return self.send_notification(queued.id)

    @operation()
    def retry_notification(self, notification_id: str) -> NotificationRead:
        """
        Retry a FAILED notification.

        Raises:
            RepositoryError: NOT_FOUND for an unknown id
            ServiceError: INVALID_STATE_TRANSITION when not FAILED or out of retries
        """
        try:
            notification = self._get_or_raise(notification_id)
            if notification.status != NotificationStatus.FAILED.value:
                raise invalid_state(
                    "Can only retry failed notifications",
                    notification_id=notification_id,
                    status=notification.status,
                )
            if not notification.can_retry():
                raise invalid_state(
                    "Notification has reached the maximum number of retries",
                    notification_id=notification_id,
                    retry_count=notification.retry_count,
                )
            notification.reset_for_retry()
            return NotificationRead.model_validate(self._deliver(notification))
        except Exception as e:
            if isinstance(e, BaseError):
                raise
            self._handle_service_exception("retry_notification", e, notification_id)

    @operation()
    def process_due_retries(self, now: Optional[datetime] = None) -> int:
        """Retry every FAILED notification whose ``next_retry_at`` has passed."""
        now = now or self.clock()
        due = (
            self.session.query(EmailNotification)
            .filter(
                EmailNotification.status == NotificationStatus.FAILED.value,
                EmailNotification.next_retry_at.isnot(None),
                EmailNotification.next_retry_at <= now,
                EmailNotification.retry_count < EmailNotification.max_retries,
            )
            .order_by(EmailNotification.next_retry_at)
            .all()
        )
        for notification in due:
            notification.reset_for_retry()
            self._deliver(notification)
        if due:
            self.logger.info(f"Processed due notification retries: count={len(due)}")
        return len(due)

    @operation()
    def get_notification(self, notification_id: str) -> NotificationRead:
        return NotificationRead.model_validate(self._get_or_raise(notification_id))

    @operation()
    def get_notifications(
        self,
        status: Optional[NotificationStatus] = None,
        notification_type: Optional[NotificationType] = None,
        recipient: Optional[str] = None,
        date_from: Optional[Any] = None,
        date_to: Optional[Any] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Dict[str, Any]:
        try:
            query = self.session.query(EmailNotification)
            if status:
                query = query.filter(
                    EmailNotification.status == NotificationStatus(status).value
                )
            if notification_type:
                query = query.filter(
                    EmailNotification.notification_type
                    == NotificationType(notification_type).value
                )
            if recipient:
                query = query.filter(EmailNotification.recipient_email.ilike(f"%{recipient}%"))
            start, end = to_datetime_range(date_from, date_to)
            if start:
                query = query.filter(EmailNotification.created_at >= start)
            if end:
                query = query.filter(EmailNotification.created_at <= end)
            query = query.order_by(EmailNotification.created_at.desc())
            return self.paginate_query(query, page, page_size)
        except Exception as e:
            if isinstance(e, BaseError):
                raise
            self._handle_service_exception("get_notifications", e)

    @operation()
    def get_statistics(
        self, date_from: Optional[Any] = None, date_to: Optional[Any] = None
    ) -> NotificationStatistics:
        query = self.session.query(EmailNotification.status, func.count(EmailNotification.id))
        start, end = to_datetime_range(date_from, date_to)
        if start:
            query = query.filter(EmailNotification.created_at >= start)
        if end:
            query = query.filter(EmailNotification.created_at <= end)
        counts = dict(query.group_by(EmailNotification.status).all())
        return NotificationStatistics(
            pending=counts.get(NotificationStatus.PENDING.value, 0),
            queued=counts.get(NotificationStatus.QUEUED.value, 0),
            sent=counts.get(NotificationStatus.SENT.value, 0),
            failed=counts.get(NotificationStatus.FAILED.value, 0),
        )

    # Convenience senders used by the domain services

    def send_welcome_email(
        self, email: str, name: str, temporary_password: str, user_id: Optional[str] = None
    ) -> NotificationRead:
        return self.send_email_immediate(
            NotificationType.WELCOME,
            email,
            name,
            None,
            "welcome-email",
            {
                "temporaryPassword": temporary_password,
                "loginUrl": f"{self.config.frontend_url}/login",
            },
            related_entity_type="User",
            related_entity_id=user_id,
        )

    def send_password_reset_email(
        self, email: str, name: str, reset_token: str, user_id: Optional[str] = None
    ) -> NotificationRead:
        return self.send_email_immediate(
            NotificationType.PASSWORD_RESET,
            email,
            name,
            None,
            "password-reset-email",
            {
                "resetLink": f"{self.config.frontend_url}/reset-password?token={reset_token}",
                "resetToken": reset_token,
                "expirationMinutes": self.config.password_reset_expiration_minutes,
            },
            related_entity_type="User",
            related_entity_id=user_id,
        )

    def send_invoice_email(self, invoice: Any, tenant: Any) -> NotificationRead:
        return self.send_email_immediate(
            NotificationType.INVOICE_GENERATED,
            tenant.email,
            tenant.full_name,
            f"New Invoice: {invoice.invoice_number}",
            "invoice-sent",
            {
                "invoiceId": invoice.id,
                "invoiceNumber": invoice.invoice_number,
                "totalAmount": invoice.total_amount,
                "dueDate": invoice.due_date,
            },
            related_entity_type="Invoice",
            related_entity_id=invoice.id,
        )

    def send_payment_received_email(
        self, payment: Any, invoice: Any, tenant: Any
    ) -> NotificationRead:
        return self.send_email_immediate(
            NotificationType.PAYMENT_RECEIVED,
            tenant.email,
            tenant.full_name,
            f"Payment Received - {payment.payment_number}",
            "payment-received",
            {
                "paymentNumber": payment.payment_number,
                "amount": payment.amount,
                "paymentDate": payment.payment_date,
                "invoiceNumber": invoice.invoice_number,
                "balanceDue": invoice.balance_due,
            },
            related_entity_type="Payment",
            related_entity_id=payment.id,
        )

    def send_quotation_accepted_notification(self, lead: Any, quotation: Any) -> NotificationRead:
        return self.send_email_immediate(
            NotificationType.QUOTATION_ACCEPTED,
            lead.email,
            lead.full_name,
            None,
            "quotation-accepted",
            {"quotationNumber": quotation.quotation_number},
            related_entity_type="Quotation",
            related_entity_id=quotation.id,
        )
