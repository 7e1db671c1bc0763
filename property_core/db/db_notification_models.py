"""Email notifications and their delivery state."""

from datetime import datetime
from typing import Optional

from sqlalchemy import Column, Index, Integer, String, Text

from ..constants import Limits
from ..enums import NotificationStatus
from .db_base import JSON, TimestampMixin, UTCDateTime, UUIDMixin, utc_now
from .db_config import Base


class EmailNotification(Base, UUIDMixin, TimestampMixin):
    """
    One email, from rendering through delivery.

    Lifecycle: PENDING -> QUEUED -> SENT or FAILED. A FAILED notification
    goes back to PENDING when retried, until ``max_retries`` failures.
    """

    __tablename__ = "email_notification"

    notification_type = Column(String(40), nullable=False, index=True)
    recipient_email = Column(String(255), nullable=False, index=True)
    recipient_name = Column(String(200), nullable=True)
    subject = Column(String(500), nullable=False)
    body = Column(Text, nullable=False)
    template_name = Column(String(100), nullable=True)
    template_variables = Column(JSON, nullable=True)

    status = Column(String(20), nullable=False, default=NotificationStatus.PENDING.value)
    retry_count = Column(Integer, nullable=False, default=0)
    max_retries = Column(Integer, nullable=False, default=Limits.MAX_NOTIFICATION_RETRIES)
    next_retry_at = Column(UTCDateTime, nullable=True)
    sent_at = Column(UTCDateTime, nullable=True)
    failed_at = Column(UTCDateTime, nullable=True)
    failure_reason = Column(Text, nullable=True)

    related_entity_type = Column(String(50), nullable=True)
    related_entity_id = Column(String(36), nullable=True)

    __table_args__ = (Index("ix_email_notification_retry", "status", "next_retry_at"),)

    def can_retry(self) -> bool:
        return (
            self.status == NotificationStatus.FAILED.value
            and (self.retry_count or 0) < self.max_retries
        )

    def mark_as_queued(self) -> None:
        self.status = NotificationStatus.QUEUED.value

    def mark_as_sent(self, now: Optional[datetime] = None) -> None:
        self.status = NotificationStatus.SENT.value
        self.sent_at = now or utc_now()
        self.failed_at = None
        self.failure_reason = None
        self.next_retry_at = None

    def mark_as_failed(self, reason: str, now: Optional[datetime] = None) -> None:
        self.status = NotificationStatus.FAILED.value
        self.failed_at = now or utc_now()
        self.failure_reason = reason
        self.retry_count = (self.retry_count or 0) + 1

    def reset_for_retry(self) -> None:
        self.status = NotificationStatus.PENDING.value
        self.next_retry_at = None
