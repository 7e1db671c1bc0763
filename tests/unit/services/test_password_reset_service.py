"""Tests for PasswordResetService over an in-memory throttle store."""

import re
from datetime import UTC, datetime, timedelta

import pytest
from passlib.hash import pbkdf2_sha256 as hasher

from property_core.db import AuditLog, EmailNotification, PasswordResetToken
from property_core.enums import AuditAction, NotificationType, UserRole, UserStatus
from property_core.exceptions import ErrorCode, ServiceError, ValidationError
from property_core.schemas.user_schema import PasswordResetConfirm
from property_core.services import PasswordResetService
from property_core.utils.key_value_store import InMemoryKeyValueStore
from tests.fixtures.factories import UserFactory

NOW = datetime(2026, 3, 18, 9, 0, tzinfo=UTC)


class FakeClock:
    def __init__(self):
        self.now = NOW

    def __call__(self):
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def service(db_session, notification_service, audit_log_service, clock):
    return PasswordResetService(
        session=db_session,
        notification_service=notification_service,
        audit_log_service=audit_log_service,
        store=InMemoryKeyValueStore(),
        clock=clock,
    )


@pytest.fixture
def user():
    return UserFactory(role=UserRole.TENANT, email="reset.me@example.com")


def _sent_token(email_sender):
    html_body = email_sender.send.call_args.args[3]
    return re.search(r"token=([0-9a-f]{64})", html_body).group(1)


class TestInitiatePasswordReset:
    def test_sends_reset_link(self, service, user, email_sender, db_session):
        service.initiate_password_reset(" Reset.Me@example.com ", ip_address="10.0.0.1")

        email_sender.send.assert_called_once()
        token = _sent_token(email_sender)
        notification = db_session.query(EmailNotification).one()
        assert notification.notification_type == NotificationType.PASSWORD_RESET.value
        assert notification.related_entity_id == user.id
        stored = db_session.query(PasswordResetToken).one()
        assert stored.token_hash != token
        assert stored.expires_at == NOW + timedelta(minutes=15)
        assert db_session.query(AuditLog).filter_by(
            action=AuditAction.PASSWORD_RESET_REQUESTED.value, user_id=user.id
        ).count() == 1

    @pytest.mark.parametrize("status", [None, UserStatus.INACTIVE])
    def test_unknown_or_inactive_account_is_silent(
        self, service, email_sender, db_session, status
    ):
        if status:
            UserFactory(email="reset.me@example.com", status=status)

        service.initiate_password_reset("reset.me@example.com")

        email_sender.send.assert_not_called()
        assert db_session.query(PasswordResetToken).count() == 0

    def test_new_request_invalidates_previous_token(self, service, user, email_sender):
        service.initiate_password_reset(user.email)
        first = _sent_token(email_sender)
        service.initiate_password_reset(user.email)
        second = _sent_token(email_sender)

        assert service.validate_reset_token(first).message == "Reset link has already been used"
        assert service.validate_reset_token(second).valid

    def test_fourth_request_in_window_is_refused(self, service, email_sender):
        for _ in range(3):
            service.initiate_password_reset("nobody@example.com")

        with pytest.raises(ServiceError) as exc_info:
            service.initiate_password_reset("nobody@example.com")
        assert exc_info.value.error_code == ErrorCode.BUSINESS_RULE_VIOLATION


class TestResetPassword:
    def test_reset_password(self, service, user, email_sender, db_session):
        service.initiate_password_reset(user.email)
        token = _sent_token(email_sender)

        service.reset_password(PasswordResetConfirm(token=token, new_password="NewSecret9"))

        assert hasher.verify("NewSecret9", user.password_hash)
        assert db_session.query(PasswordResetToken).one().used is True
        assert db_session.query(AuditLog).filter_by(
            action=AuditAction.PASSWORD_RESET_COMPLETED.value
        ).count() == 1

    def test_token_is_single_use(self, service, user, email_sender):
        service.initiate_password_reset(user.email)
        token = _sent_token(email_sender)
        service.reset_password(PasswordResetConfirm(token=token, new_password="NewSecret9"))

        with pytest.raises(ValidationError) as exc_info:
            service.reset_password(PasswordResetConfirm(token=token, new_password="Another1x"))
        assert exc_info.value.message == "Reset link has already been used"

    def test_expired_token(self, service, user, email_sender, clock):
        service.initiate_password_reset(user.email)
        token = _sent_token(email_sender)
        clock.now = NOW + timedelta(minutes=15)

        status = service.validate_reset_token(token)

        assert not status.valid
        assert status.message == "Reset link is expired"
        with pytest.raises(ValidationError):
            service.reset_password(PasswordResetConfirm(token=token, new_password="NewSecret9"))

    def test_unknown_token(self, service):
        status = service.validate_reset_token("f" * 64)

        assert status.message == "Reset link is invalid or expired"

    @pytest.mark.parametrize("password", ["alllower1", "ALLUPPER1", "NoDigitsHere"])
    def test_weak_password_rejected(self, password):
        with pytest.raises(ValidationError):
            PasswordResetConfirm(token="abc", new_password=password)
