"""
Unit test fixtures.

Services run against the real SQLite session from the root conftest. Only
external collaborators (SMTP, Textract, Redis) are replaced with mocks. Rows a
test needs up front come from the factories in tests/fixtures/factories.py.
"""

from datetime import date
from unittest.mock import Mock

import pytest

from property_core.config import StorageConfig
from property_core.services import (
    AdminUserService,
    AuditLogService,
    ComplianceRequirementService,
    DocumentService,
    ExpenseService,
    FinanceDashboardService,
    InvoiceService,
    LeadService,
    NotificationService,
    OccupancyDashboardService,
    PdcService,
    PropertyService,
    QuotationService,
    TenantService,
    WorkOrderService,
)
from property_core.utils.email_utils import EmailSender
from property_core.utils.file_storage import LocalFileStorage

# Pinned "today" so date-dependent rules are deterministic
TODAY = date(2026, 3, 18)


def fixed_today() -> date:
    return TODAY


# ==================== EXTERNAL COLLABORATORS ====================


@pytest.fixture
def email_sender():
    """SMTP replacement; set ``side_effect`` to simulate delivery failures."""
    return Mock(spec=EmailSender)


@pytest.fixture
def file_storage(tmp_path):
    """Local storage rooted in the test's temporary directory."""
    return LocalFileStorage(StorageConfig(base_path=str(tmp_path / "storage")))


# ==================== SERVICE FIXTURES ====================


@pytest.fixture(scope="function")
def notification_service(db_session, email_sender):
    return NotificationService(session=db_session, email_sender=email_sender)


@pytest.fixture(scope="function")
def audit_log_service(db_session):
    return AuditLogService(session=db_session, enabled=True)


@pytest.fixture(scope="function")
def admin_user_service(db_session, audit_log_service, notification_service):
    return AdminUserService(
        session=db_session,
        audit_log_service=audit_log_service,
        notification_service=notification_service,
        send_welcome_emails=True,
    )


@pytest.fixture(scope="function")
def property_service(db_session):
    return PropertyService(session=db_session)


@pytest.fixture(scope="function")
def tenant_service(db_session):
    return TenantService(session=db_session, today=fixed_today)


@pytest.fixture(scope="function")
def lead_service(db_session, file_storage):
    return LeadService(session=db_session, file_storage=file_storage, today=fixed_today)


@pytest.fixture(scope="function")
def quotation_service(db_session, notification_service):
    return QuotationService(
        session=db_session, notification_service=notification_service, today=fixed_today
    )


@pytest.fixture(scope="function")
def expense_service(db_session):
    return ExpenseService(session=db_session, today=fixed_today)


@pytest.fixture(scope="function")
def document_service(db_session, file_storage):
    return DocumentService(session=db_session, file_storage=file_storage, today=fixed_today)


@pytest.fixture(scope="function")
def compliance_service(db_session):
    return ComplianceRequirementService(session=db_session, today=fixed_today)


@pytest.fixture(scope="function")
def finance_dashboard_service(db_session):
    return FinanceDashboardService(session=db_session, today=fixed_today)


@pytest.fixture(scope="function")
def occupancy_dashboard_service(db_session):
    return OccupancyDashboardService(session=db_session, today=fixed_today)



@pytest.fixture(scope="function")
def invoice_service(db_session, notification_service):
    return InvoiceService(
        session=db_session, notification_service=notification_service, today=fixed_today
    )


@pytest.fixture(scope="function")
def pdc_service(db_session, invoice_service):
    return PdcService(session=db_session, invoice_service=invoice_service, today=fixed_today)


@pytest.fixture(scope="function")
def work_order_service(db_session, expense_service):
    return WorkOrderService(session=db_session, expense_service=expense_service, today=fixed_today)
