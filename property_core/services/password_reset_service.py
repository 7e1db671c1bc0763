"""
Self-service password reset.

``initiate_password_reset`` never reveals whether an email belongs to an
account: unknown and inactive addresses return quietly, but still count
towards the per-email request limit. Tokens are single use, expire after
``notifications.password_reset_expiration_minutes`` and are stored only as
a SHA-256 digest. Requesting a new token invalidates the older ones.
"""

import hashlib
import secrets
from datetime import datetime, timedelta
from typing import Callable, Optional

from passlib.hash import pbkdf2_sha256 as hasher
from sqlalchemy.orm import Session

from ..config import get_config
from ..context.operation_context import operation
from ..db.db_base import utc_now
from ..db.db_user_models import PasswordResetToken, User
from ..enums import AuditAction, UserStatus
from ..exceptions import BaseError, ErrorCode, ServiceError, ValidationError
from ..schemas.user_schema import PasswordResetConfirm, ResetTokenStatus
from ..utils.key_value_store import KeyValueStore
from ..utils.logger import get_logger
from .audit_log_service import AuditLogService
from .base_service import SessionManagedService
from .login_attempt_service import build_default_store
from .notification_service import NotificationService

KEY_PREFIX = "password_reset:"


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


class PasswordResetService(SessionManagedService):
    def __init__(
        self,
        session: Optional[Session] = None,
        notification_service: Optional[NotificationService] = None,
        audit_log_service: Optional[AuditLogService] = None,
        store: Optional[KeyValueStore] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        super().__init__(read_schema_class=ResetTokenStatus, logger=get_logger(), session=session)
        config = get_config()
        self.security = config.security
        self.expiration_minutes = config.notifications.password_reset_expiration_minutes
        self._notification_service = notification_service
        self.audit_log = audit_log_service or AuditLogService(session=self.session)
        self.store = store if store is not None else build_default_store()
        self.clock = clock

    @property
    def notifications(self) -> NotificationService:
        if self._notification_service is None:
            self._notification_service = NotificationService(session=self.session)
        return self._notification_service

    def _check_rate_limit(self, email: str) -> None:
        count = self.store.increment(
            f"{KEY_PREFIX}{email}", ttl_seconds=self.security.password_reset_window_minutes * 60
        )
        if count > self.security.password_reset_max_requests:
            self.logger.warning(
                "Password reset rate limit exceeded",
                extra={"requests": count, "max_requests": self.security.password_reset_max_requests},
            )
            raise ServiceError(
                "Too many password reset requests. Please try again later.",
                error_code=ErrorCode.BUSINESS_RULE_VIOLATION,
                operation="initiate_password_reset",
            )

    def _find_token(self, token: str) -> Optional[PasswordResetToken]:
        if not token:
            return None
        return (
            self.session.query(PasswordResetToken)
            .filter(PasswordResetToken.token_hash == hash_token(token))
            .first()
        )

    def _token_problem(self, record: Optional[PasswordResetToken]) -> Optional[str]:
        if record is None:
            return "Reset link is invalid or expired"
        if record.used:
            return "Reset link has already been used"
        if record.expires_at <= self.clock():
            return "Reset link is expired"
        return None

    @operation()
    def initiate_password_reset(self, email: str, ip_address: Optional[str] = None) -> None:
        """
        Issue a reset token and email the link.

        Raises:
            ServiceError: BUSINESS_RULE_VIOLATION when the email has made too
                many requests within the window
        """
        email = (email or "").strip().lower()
        self._check_rate_limit(email)
        try:
            user = self.session.query(User).filter(User.email == email).first()
            if user is None or user.status != UserStatus.ACTIVE.value:
                self.logger.info("Password reset requested for unknown or inactive account")
                return

            now = self.clock()
            self.session.query(PasswordResetToken).filter(
                PasswordResetToken.user_id == user.id, PasswordResetToken.used.is_(False)
            ).update({"used": True, "used_at": now}, synchronize_session="fetch")

            token = secrets.token_hex(32)
            self.session.add(
                PasswordResetToken(
                    user_id=user.id,
                    token_hash=hash_token(token),
                    expires_at=now + timedelta(minutes=self.expiration_minutes),
                    used=False,
                    ip_address=ip_address,
                )
            )
            self.audit_log.log_event(
                user.id, AuditAction.PASSWORD_RESET_REQUESTED, ip_address=ip_address
            )
            self.session.flush()

            self.notifications.send_password_reset_email(
                user.email, user.full_name, token, user_id=user.id
            )
            self.logger.info(f"Password reset initiated: user_id={user.id}")
        except Exception as e:
            if isinstance(e, BaseError):
                raise
            self._handle_service_exception("initiate_password_reset", e)

    @operation()
    def validate_reset_token(self, token: str) -> ResetTokenStatus:
        record = self._find_token(token)
        problem = self._token_problem(record)
        if problem:
            return ResetTokenStatus(valid=False, message=problem)
        return ResetTokenStatus(valid=True, user_id=record.user_id)

    @operation()
    def reset_password(self, data: PasswordResetConfirm, ip_address: Optional[str] = None) -> None:
        """Set a new password with a valid token and consume the token."""
        try:
            record = self._find_token(data.token)
            problem = self._token_problem(record)
            if problem:
                raise ValidationError(problem, field="token")

            user = self.session.get(User, record.user_id)
            if user is None or user.status != UserStatus.ACTIVE.value:
                raise ValidationError("Reset link is invalid or expired", field="token")

            now = self.clock()
            user.password_hash = hasher.hash(data.new_password)
            user.must_change_password = False
            record.used = True
            record.used_at = now
            self.audit_log.log_event(
                user.id, AuditAction.PASSWORD_RESET_COMPLETED, ip_address=ip_address
            )
            self.session.flush()
            self.store.delete(f"{KEY_PREFIX}{user.email}")
            self.logger.info(f"Password reset completed: user_id={user.id}")
        except Exception as e:
            if isinstance(e, BaseError):
                raise
            self._handle_service_exception("reset_password", e)
