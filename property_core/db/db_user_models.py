"""User accounts and the audit trail of administrative actions."""

from sqlalchemy import Boolean, Column, Index, String

from ..enums import UserStatus
from .db_base import JSON, TimestampMixin, UTCDateTime, UUIDMixin
from .db_config import Base


class User(Base, UUIDMixin, TimestampMixin):
    """Application user. ``role`` holds a UserRole value."""

    __tablename__ = "user"

    email = Column(String(255), nullable=False, unique=True, index=True)
    first_name = Column(String(100), nullable=False)
    last_name = Column(String(100), nullable=False)
    phone = Column(String(30), nullable=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(40), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=UserStatus.ACTIVE.value)
    must_change_password = Column(Boolean, nullable=False, default=True)
    created_by = Column(String(36), nullable=True)
    last_login_at = Column(UTCDateTime, nullable=True)

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}"


class AuditLog(Base, UUIDMixin, TimestampMixin):
    """Fire-and-forget record of who did what, from where."""

    __tablename__ = "audit_log"

    user_id = Column(String(36), nullable=True, index=True)  # actor
    action = Column(String(50), nullable=False)
    ip_address = Column(String(45), nullable=True)
    details = Column(JSON, nullable=True)

    __table_args__ = (Index("ix_audit_log_user_action", "user_id", "action"),)


class PasswordResetToken(Base, UUIDMixin, TimestampMixin):
    """One-time reset token. Only a SHA-256 digest of the token is stored."""

    __tablename__ = "password_reset_token"

    user_id = Column(String(36), nullable=False, index=True)
    token_hash = Column(String(64), nullable=False, unique=True)
    expires_at = Column(UTCDateTime, nullable=False)
    used = Column(Boolean, nullable=False, default=False)
    used_at = Column(UTCDateTime, nullable=True)
    ip_address = Column(String(45), nullable=True)
