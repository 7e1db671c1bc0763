"""
SQLAlchemy models and database configuration.

Importing this package registers every model with ``Base.metadata``.
"""

from .db_base import JSON, SoftDeleteMixin, TimestampMixin, UTCDateTime, UUIDMixin, utc_now
from .db_compliance_models import ComplianceRequirement
from .db_config import (
    Base,
    DatabaseConfig,
    DatabaseManager,
    close_db,
    get_db_manager,
    get_development_config,
    get_production_config,
    import_all_models,
    initialize_db,
    set_db_manager,
)
from .db_document_models import Document, DocumentVersion
from .db_finance_models import Expense, Invoice, Payment, PostDatedCheque, Vendor
from .db_lead_models import Lead, LeadDocument, LeadHistory, Quotation
from .db_maintenance_models import WorkOrder
from .db_notification_models import EmailNotification
from .db_property_models import Property, Unit
from .db_tenant_models import Tenant
from .db_user_models import AuditLog, PasswordResetToken, User

__all__ = [
    "Base",
    "JSON",
    "UTCDateTime",
    "SoftDeleteMixin",
    "TimestampMixin",
    "UUIDMixin",
    "utc_now",
    "DatabaseConfig",
    "DatabaseManager",
    "close_db",
    "get_db_manager",
    "get_development_config",
    "get_production_config",
    "import_all_models",
    "initialize_db",
    "set_db_manager",
    "AuditLog",
    "ComplianceRequirement",
    "Document",
    "DocumentVersion",
    "EmailNotification",
    "Expense",
    "Invoice",
    "Lead",
    "LeadDocument",
    "LeadHistory",
    "PasswordResetToken",
    "Payment",
    "PostDatedCheque",
    "Property",
    "Quotation",
    "Tenant",
    "Unit",
    "User",
    "Vendor",
    "WorkOrder",
]
