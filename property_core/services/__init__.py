"""Service layer for business logic."""

from .admin_user_service import AdminUserService
from .audit_log_service import AuditLogService
from .base_service import BaseService, SessionManagedService
from .compliance_service import ComplianceRequirementService
from .document_service import DocumentService
from .expense_service import ExpenseService
from .finance_dashboard_service import FinanceDashboardService
from .identity_document_service import IdentityDocumentService
from .invoice_service import InvoiceService
from .lead_service import LeadService
from .login_attempt_service import LoginAttemptService
from .notification_service import NotificationService
from .occupancy_dashboard_service import OccupancyDashboardService
from .password_reset_service import PasswordResetService
from .pdc_service import PdcService
from .property_service import PropertyService
from .quotation_service import QuotationService
from .tenant_service import TenantService
from .work_order_service import WorkOrderService

__all__ = [
    "AdminUserService",
    "AuditLogService",
    "BaseService",
    "SessionManagedService",
    "ComplianceRequirementService",
    "DocumentService",
    "ExpenseService",
    "FinanceDashboardService",
    "IdentityDocumentService",
    "InvoiceService",
    "LeadService",
    "LoginAttemptService",
    "NotificationService",
    "OccupancyDashboardService",
    "PasswordResetService",
    "PdcService",
    "PropertyService",
    "QuotationService",
    "TenantService",
    "WorkOrderService",
]
