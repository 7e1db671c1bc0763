"""Schemas for email notifications."""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel

from ..enums import NotificationStatus, NotificationType
from .mixins import IdMixin, ORMModel, TimestampMixin


class NotificationRead(ORMModel, IdMixin, TimestampMixin):
    notification_type: NotificationType
    recipient_email: str
    recipient_name: Optional[str] = None
    subject: str
    body: str
    template_name: Optional[str] = None
    template_variables: Optional[Dict[str, Any]] = None
    status: NotificationStatus
    retry_count: int
    max_retries: int
    next_retry_at: Optional[datetime] = None
    sent_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None
    failure_reason: Optional[str] = None
    related_entity_type: Optional[str] = None
    related_entity_id: Optional[str] = None

    @property
    def can_retry(self) -> bool:
        return self.status == NotificationStatus.FAILED and self.retry_count < self.max_retries


class NotificationStatistics(BaseModel):
    pending: int = 0
    queued: int = 0
    sent: int = 0
    failed: int = 0

    @property
    def total(self) -> int:
        return self.pending + self.queued + self.sent + self.failed
