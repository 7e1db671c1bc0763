"""
Tests for AdminUserService.

Real SQLite session; only the email transport is mocked.
"""

import pytest

from property_core.db import AuditLog, EmailNotification
from property_core.enums import AuditAction, NotificationStatus, UserRole, UserStatus
from property_core.exceptions import BaseError, ErrorCode, RepositoryError, ServiceError, ValidationError
from property_core.schemas.user_schema import UserCreate, UserUpdate
from tests.fixtures.factories import UserFactory


def _user_create(email="new.user@example.com", role=UserRole.PROPERTY_MANAGER):
    return UserCreate(
        email=email,
        first_name="Amal",
        last_name="Haddad",
        phone="+971500000000",
        role=role,
        password="TempPass123",
    )


class TestAdminUserCreate:
    """User creation, role rules and side effects."""

    def test_create_user_success(self, admin_user_service, db_session):
        """Creator's audit event and welcome email are recorded with the user."""
        creator = UserFactory(role=UserRole.ADMIN)

        result = admin_user_service.create_user(_user_create(), creator.id, ip_address="10.0.0.1")

        assert result.email == "new.user@example.com"
        assert result.role == UserRole.PROPERTY_MANAGER
        assert result.status == UserStatus.ACTIVE
        assert result.must_change_password is True
        assert result.created_by == creator.id

        audit = db_session.query(AuditLog).one()
        assert audit.user_id == creator.id
        assert audit.action == AuditAction.CREATE_USER.value
        assert audit.ip_address == "10.0.0.1"
        assert audit.details["targetUserId"] == result.id

        notification = db_session.query(EmailNotification).one()
        assert notification.recipient_email == "new.user@example.com"
        assert notification.status == NotificationStatus.SENT.value

    def test_password_is_hashed(self, admin_user_service):
        """The stored hash verifies against the temporary password."""
        creator = UserFactory(role=UserRole.ADMIN)
        result = admin_user_service.create_user(_user_create(), creator.id)

        assert admin_user_service.verify_password(result.id, "TempPass123")
        assert not admin_user_service.verify_password(result.id, "wrong-password")

    def test_temporary_password_not_persisted_with_notification(
        self, admin_user_service, db_session
    ):
        """The welcome email body has the password, the stored variables do not."""
        creator = UserFactory(role=UserRole.ADMIN)
        admin_user_service.create_user(_user_create(), creator.id)

        notification = db_session.query(EmailNotification).one()
        assert "TempPass123" in notification.body
        assert "temporaryPassword" not in notification.template_variables

    def test_duplicate_email_rejected(self, admin_user_service):
        """Email addresses are unique across users."""
        creator = UserFactory(role=UserRole.ADMIN, email="taken@example.com")

        with pytest.raises(RepositoryError) as exc_info:
            admin_user_service.create_user(_user_create(email="taken@example.com"), creator.id)

        assert exc_info.value.error_code == ErrorCode.DUPLICATE

    def test_unknown_creator(self, admin_user_service):
        with pytest.raises(RepositoryError) as exc_info:
            admin_user_service.create_user(_user_create(), "missing-id")

        assert exc_info.value.error_code == ErrorCode.NOT_FOUND

    @pytest.mark.parametrize(
        "creator_role,target_role,allowed",
        [
            (UserRole.SUPER_ADMIN, UserRole.SUPER_ADMIN, True),
            (UserRole.SUPER_ADMIN, UserRole.ADMIN, True),
            (UserRole.ADMIN, UserRole.SUPER_ADMIN, False),
            (UserRole.ADMIN, UserRole.FINANCE_MANAGER, True),
            (UserRole.PROPERTY_MANAGER, UserRole.SUPER_ADMIN, False),
            (UserRole.PROPERTY_MANAGER, UserRole.TENANT, True),
        ],
    )
    def test_role_assignment_rules(
        self, admin_user_service, creator_role, target_role, allowed
    ):
        """Only a SUPER_ADMIN may grant SUPER_ADMIN."""
        creator = UserFactory(role=creator_role)

        if allowed:
            result = admin_user_service.create_user(_user_create(role=target_role), creator.id)
            assert result.role == target_role
        else:
            with pytest.raises(BaseError) as exc_info:
                admin_user_service.create_user(_user_create(role=target_role), creator.id)
            assert exc_info.value.error_code == ErrorCode.PERMISSION_DENIED
            assert exc_info.value.status_code == 403

    def test_email_failure_does_not_block_creation(
        self, admin_user_service, email_sender, db_session
    ):
        """SMTP failures leave a FAILED notification and the user still exists."""
        email_sender.send.side_effect = ConnectionError("smtp down")
        creator = UserFactory(role=UserRole.ADMIN)

        result = admin_user_service.create_user(_user_create(), creator.id)

        assert result.id
        notification = db_session.query(EmailNotification).one()
        assert notification.status == NotificationStatus.FAILED.value
        assert "smtp down" in notification.failure_reason

    def test_welcome_email_can_be_disabled(self, db_session, audit_log_service):
        from property_core.services import AdminUserService

        service = AdminUserService(
            session=db_session, audit_log_service=audit_log_service, send_welcome_emails=False
        )
        creator = UserFactory(role=UserRole.ADMIN)

        service.create_user(_user_create(), creator.id)

        assert db_session.query(EmailNotification).count() == 0


class TestAdminUserUpdate:
    def test_update_names_and_audit(self, admin_user_service, db_session):
        """Changed fields are written to the audit log as old/new pairs."""
        updater = UserFactory(role=UserRole.ADMIN)
        target = UserFactory(role=UserRole.PROPERTY_MANAGER)

        result = admin_user_service.update_user(
            target.id, UserUpdate(first_name="Layla"), updater.id
        )

        assert result.first_name == "Layla"
        audit = (
            db_session.query(AuditLog)
            .filter(AuditLog.action == AuditAction.UPDATE_USER.value)
            .one()
        )
        assert audit.details["changes"]["first_name"]["new"] == "Layla"

    def test_email_change_rejected(self, admin_user_service):
        updater = UserFactory(role=UserRole.ADMIN)
        target = UserFactory(role=UserRole.PROPERTY_MANAGER)

        with pytest.raises(ValidationError) as exc_info:
            admin_user_service.update_user(
                target.id, UserUpdate(email="other@example.com"), updater.id
            )

        assert exc_info.value.message == "Email address cannot be changed"

    def test_same_email_is_accepted(self, admin_user_service):
        """Submitting the unchanged email is not a change."""
        updater = UserFactory(role=UserRole.ADMIN)
        target = UserFactory(role=UserRole.PROPERTY_MANAGER)

        result = admin_user_service.update_user(
            target.id, UserUpdate(email=target.email, last_name="Nasser"), updater.id
        )

        assert result.last_name == "Nasser"

    def test_role_escalation_denied(self, admin_user_service):
        updater = UserFactory(role=UserRole.ADMIN)
        target = UserFactory(role=UserRole.PROPERTY_MANAGER)

        with pytest.raises(BaseError) as exc_info:
            admin_user_service.update_user(
                target.id, UserUpdate(role=UserRole.SUPER_ADMIN), updater.id
            )

        assert exc_info.value.error_code == ErrorCode.PERMISSION_DENIED

    def test_no_changes_writes_no_audit(self, admin_user_service, db_session):
        updater = UserFactory(role=UserRole.ADMIN)
        target = UserFactory(role=UserRole.PROPERTY_MANAGER)

        admin_user_service.update_user(target.id, UserUpdate(), updater.id)

        assert db_session.query(AuditLog).count() == 0


class TestAdminUserActivation:
    def test_deactivate_and_reactivate(self, admin_user_service, db_session):
        actor = UserFactory(role=UserRole.ADMIN)
        target = UserFactory(role=UserRole.FINANCE_MANAGER)

        assert admin_user_service.deactivate_user(target.id, actor.id).status == UserStatus.INACTIVE
        assert admin_user_service.reactivate_user(target.id, actor.id).status == UserStatus.ACTIVE

        actions = {a.action for a in db_session.query(AuditLog).all()}
        assert actions == {AuditAction.DEACTIVATE_USER.value, AuditAction.REACTIVATE_USER.value}

    def test_cannot_deactivate_self(self, admin_user_service):
        actor = UserFactory(role=UserRole.ADMIN)

        with pytest.raises(ServiceError) as exc_info:
            admin_user_service.deactivate_user(actor.id, actor.id)

        assert exc_info.value.error_code == ErrorCode.INVALID_STATE_TRANSITION

    def test_deactivate_inactive_user(self, admin_user_service):
        actor = UserFactory(role=UserRole.ADMIN)
        target = UserFactory(role=UserRole.VENDOR, status=UserStatus.INACTIVE)

        with pytest.raises(ServiceError):
            admin_user_service.deactivate_user(target.id, actor.id)

    def test_reactivate_active_user(self, admin_user_service):
        actor = UserFactory(role=UserRole.ADMIN)
        target = UserFactory(role=UserRole.VENDOR)

        with pytest.raises(ServiceError):
            admin_user_service.reactivate_user(target.id, actor.id)


class TestAdminUserQueries:
    def test_list_users_filters(self, admin_user_service):
        UserFactory(role=UserRole.ADMIN, email="admin@example.com")
        UserFactory(role=UserRole.TENANT, email="tenant@example.com")
        UserFactory(role=UserRole.TENANT, email="former@example.com", status=UserStatus.INACTIVE)

        tenants = admin_user_service.list_users(role=UserRole.TENANT)
        active_tenants = admin_user_service.list_users(role=UserRole.TENANT, status="active")
        searched = admin_user_service.list_users(search="admin@")

        assert tenants["pagination"]["total_count"] == 2
        assert active_tenants["pagination"]["total_count"] == 1
        assert [u.email for u in searched["data"]] == ["admin@example.com"]

    def test_invalid_status_filter_is_ignored(self, admin_user_service):
        UserFactory(role=UserRole.ADMIN)
        UserFactory(role=UserRole.TENANT)

        result = admin_user_service.list_users(status="not-a-status")

        assert result["pagination"]["total_count"] == 2

    def test_pagination(self, admin_user_service):
        for _ in range(5):
            UserFactory(role=UserRole.TENANT)

        result = admin_user_service.list_users(page=2, page_size=2)

        assert len(result["data"]) == 2
        assert result["pagination"] == {
            "page": 2,
            "page_size": 2,
            "total_count": 5,
            "total_pages": 3,
            "has_previous": True,
            "has_next": True,
        }

    def test_can_assign_role_unknown_actor(self, admin_user_service):
        assert admin_user_service.can_assign_role("missing", UserRole.TENANT) is False
