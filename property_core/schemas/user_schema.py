"""Schemas for admin user management and the audit log."""

from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..enums import UserRole, UserStatus
from ..exceptions import ErrorCode, ValidationError
from .mixins import IdMixin, ORMModel, TimestampMixin


def _check_email(field: str, v: Optional[str]) -> Optional[str]:
    if v is not None and ("@" not in v or v.startswith("@") or v.endswith("@")):
        raise ValidationError(
            "Invalid email address", error_code=ErrorCode.INVALID_FORMAT, field=field, value=v
        )
    return v.strip().lower() if v else v


class UserCreate(BaseModel):
    email: str = Field(min_length=3, max_length=255)
    first_name: str = Field(min_length=1, max_length=100)
    last_name: str = Field(min_length=1, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=30)
    role: UserRole
    password: str = Field(min_length=8, max_length=128)

    model_config = ConfigDict(extra="ignore")

    @field_validator("email")
    def validate_email(cls, v: str) -> str:
        return _check_email("email", v)


class UserUpdate(BaseModel):
    """Partial update. ``email`` is accepted only to reject changes to it."""

    email: Optional[str] = None
    first_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    last_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=30)
    role: Optional[UserRole] = None

    model_config = ConfigDict(extra="ignore")

    @field_validator("email")
    def validate_email(cls, v: Optional[str]) -> Optional[str]:
        return _check_email("email", v)


class UserRead(ORMModel, IdMixin, TimestampMixin):
    email: str
    first_name: str
    last_name: str
    phone: Optional[str] = None
    role: UserRole
    status: UserStatus
    must_change_password: bool
    created_by: Optional[str] = None
    last_login_at: Optional[datetime] = None


class AuditLogRead(ORMModel, IdMixin):
    user_id: Optional[str] = None
    action: str
    ip_address: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    created_at: datetime


class PasswordResetRequest(BaseModel):
    email: str = Field(min_length=3, max_length=255)

    @field_validator("email")
    def validate_email(cls, v: str) -> str:
        return _check_email("email", v)


class PasswordResetConfirm(BaseModel):
    token: str = Field(min_length=1)
    new_password: str = Field(min_length=8, max_length=128)

    @field_validator("new_password")
    def validate_strength(cls, v: str) -> str:
        checks = (str.isupper, str.islower, str.isdigit)
        if not all(any(check(c) for c in v) for check in checks):
            raise ValidationError(
                "Password must contain upper case, lower case and numeric characters",
                error_code=ErrorCode.VALIDATION_FAILED,
                field="new_password",
            )
        return v


class ResetTokenStatus(BaseModel):
    valid: bool
    message: Optional[str] = None
    user_id: Optional[str] = None
