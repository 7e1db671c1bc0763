"""
Administrative user management.

Who may grant which role is decided by ``ROLE_ASSIGNMENT_RULES``; every
change made here is written to the audit log.
"""

from typing import Any, Dict, Optional

from passlib.hash import pbkdf2_sha256 as hasher
from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..config import get_config
from ..context.operation_context import operation
from ..db.db_user_models import User
from ..enums import AuditAction, UserRole, UserStatus, can_assign_role
from ..exceptions import (
    BaseError,
    ErrorCode,
    ValidationError,
    duplicate,
    invalid_state,
    not_found,
    permission_denied,
)
from ..schemas.user_schema import UserCreate, UserRead, UserUpdate
from ..utils.crud_helpers import apply_updates, record_exists
from ..utils.logger import get_logger
from .audit_log_service import AuditLogService
from .base_service import SessionManagedService
from .notification_service import NotificationService


class AdminUserService(SessionManagedService):
    def __init__(
        self,
        session: Optional[Session] = None,
        audit_log_service: Optional[AuditLogService] = None,
        notification_service: Optional[NotificationService] = None,
        send_welcome_emails: Optional[bool] = None,
    ):
        super().__init__(read_schema_class=UserRead, logger=get_logger(), session=session)
        self.audit_log = audit_log_service or AuditLogService(session=self.session)
        self._notification_service = notification_service
        self.send_welcome_emails = (
            send_welcome_emails
            if send_welcome_emails is not None
            else get_config().features.enable_welcome_emails
        )

    @property
    def notifications(self) -> NotificationService:
        if self._notification_service is None:
            self._notification_service = NotificationService(session=self.session)
        return self._notification_service

    def _get_user_or_raise(self, user_id: str, resource: str = "User") -> User:
        user = self.session.get(User, user_id) if user_id else None
        if user is None:
            raise not_found(resource, user_id=user_id)
        return user

    def _send_welcome_email(self, user: User, temporary_password: str) -> None:
        if not self.send_welcome_emails:
            return
        try:
            self.notifications.send_welcome_email(
                user.email, user.full_name, temporary_password, user_id=user.id
            )
        except Exception as e:
            # The account exists either way; the email can be resent
            self.logger.warning(
                f"Welcome email could not be queued: user_id={user.id}",
                extra={"error_details": str(e)},
            )

    @operation()
    def list_users(
        self,
        search: Optional[str] = None,
        role: Optional[UserRole] = None,
        status: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Dict[str, Any]:
        try:
            query = self.session.query(User)
            if search:
                pattern = f"%{search.strip()}%"
                query = query.filter(
                    or_(
                        User.first_name.ilike(pattern),
                        User.last_name.ilike(pattern),
                        User.email.ilike(pattern),
                    )
                )
            if role:
                query = query.filter(User.role == UserRole(role).value)
            if status:
                try:
                    query = query.filter(User.status == UserStatus(str(status).upper()).value)
                except ValueError:
                    self.logger.warning(f"Ignoring invalid user status filter: {status}")
            query = query.order_by(User.created_at.desc())
            return self.paginate_query(query, page, page_size)
        except Exception as e:
            if isinstance(e, BaseError):
                raise
            self._handle_service_exception("list_users", e)

    @operation()
    def get_user(self, user_id: str) -> UserRead:
        return UserRead.model_validate(self._get_user_or_raise(user_id))

    @operation()
    def create_user(
        self, data: UserCreate, creator_id: str, ip_address: Optional[str] = None
    ) -> UserRead:
        """
        Create a user on behalf of ``creator_id``.

        Raises:
            RepositoryError: DUPLICATE email, NOT_FOUND creator
            BaseError: PERMISSION_DENIED when the creator may not grant the role
        """
        try:
            if record_exists(self.session, User, {"email": data.email}):
                raise duplicate("User", message=f"Email already exists: {data.email}", email=data.email)

            creator = self._get_user_or_raise(creator_id, resource="Creator")
            if not can_assign_role(creator.role, data.role):
                raise permission_denied(
                    "assign_role",
                    "User",
                    message=f"Role {creator.role} cannot assign role {data.role.value}",
                    actor_role=creator.role,
                    target_role=data.role.value,
                )

            user = User(
                email=data.email,
                first_name=data.first_name,
                last_name=data.last_name,
                phone=data.phone,
                password_hash=hasher.hash(data.password),
                role=data.role.value,
                status=UserStatus.ACTIVE.value,
                must_change_password=True,
                created_by=creator.id,
            )
            self.session.add(user)
            self.session.flush()

            self._send_welcome_email(user, data.password)
            self.audit_log.log_event(
                creator.id,
                AuditAction.CREATE_USER,
                ip_address,
                {"targetUserId": user.id, "targetEmail": user.email, "roleAssigned": user.role},
            )

            self.logger.info(f"Created user: id={user.id}, role={user.role}")
            return UserRead.model_validate(user)
        except Exception as e:
            if isinstance(e, BaseError):
                raise
            self._handle_service_exception("create_user", e)

    @operation()
    def update_user(
        self, user_id: str, data: UserUpdate, updater_id: str, ip_address: Optional[str] = None
    ) -> UserRead:
        try:
            user = self._get_user_or_raise(user_id)
            updater = self._get_user_or_raise(updater_id, resource="Updater")

            if data.email is not None and data.email != user.email:
                raise ValidationError(
                    "Email address cannot be changed",
                    field="email",
                    error_code=ErrorCode.VALIDATION_FAILED,
                    value=data.email,
                )

            if (
                data.role is not None
                and data.role.value != user.role
                and not can_assign_role(updater.role, data.role)
            ):
                raise permission_denied(
                    "assign_role",
                    "User",
                    message=f"Role {updater.role} cannot assign role {data.role.value}",
                    actor_role=updater.role,
                    target_role=data.role.value,
                )

            updates = data.model_dump(exclude_unset=True, exclude_none=True, exclude={"email"})
            changes = apply_updates(user, updates)
            self.session.flush()

            if changes:
                self.audit_log.log_event(
                    updater.id,
                    AuditAction.UPDATE_USER,
                    ip_address,
                    {"targetUserId": user.id, "changes": changes},
                )
                self.logger.info(f"Updated user: id={user.id}, fields={sorted(changes)}")
            return UserRead.model_validate(user)
        except Exception as e:
            if isinstance(e, BaseError):
                raise
            self._handle_service_exception("update_user", e, user_id)

    @operation()
    def deactivate_user(
        self, user_id: str, actor_id: str, ip_address: Optional[str] = None
    ) -> UserRead:
        try:
            if user_id == actor_id:
                raise invalid_state("Cannot deactivate your own account", user_id=user_id)
            user = self._get_user_or_raise(user_id)
            if user.status == UserStatus.INACTIVE.value:
                raise invalid_state("User is already inactive", user_id=user_id)

            user.status = UserStatus.INACTIVE.value
            self.session.flush()
            self.audit_log.log_event(
                actor_id,
                AuditAction.DEACTIVATE_USER,
                ip_address,
                {"targetUserId": user.id, "targetEmail": user.email},
            )
            self.logger.info(f"Deactivated user: id={user.id}")
            return UserRead.model_validate(user)
        except Exception as e:
            if isinstance(e, BaseError):
                raise
            self._handle_service_exception("deactivate_user", e, user_id)

    @operation()
    def reactivate_user(
        self, user_id: str, actor_id: str, ip_address: Optional[str] = None
    ) -> UserRead:
        try:
            user = self._get_user_or_raise(user_id)
            if user.status == UserStatus.ACTIVE.value:
                raise invalid_state("User is already active", user_id=user_id)

            user.status = UserStatus.ACTIVE.value
            self.session.flush()
            self.audit_log.log_event(
                actor_id,
                AuditAction.REACTIVATE_USER,
                ip_address,
                {"targetUserId": user.id, "targetEmail": user.email},
            )
            self.logger.info(f"Reactivated user: id={user.id}")
            return UserRead.model_validate(user)
        except Exception as e:
            if isinstance(e, BaseError):
                raise
            self._handle_service_exception("reactivate_user", e, user_id)

    def can_assign_role(self, actor_id: str, target_role: UserRole) -> bool:
        actor = self.session.get(User, actor_id) if actor_id else None
        if actor is None:
            return False
        return can_assign_role(actor.role, target_role)

    def verify_password(self, user_id: str, password: str) -> bool:
        user = self._get_user_or_raise(user_id)
        return hasher.verify(password, user.password_hash)
