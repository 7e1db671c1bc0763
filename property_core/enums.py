"""
Enums shared by models, schemas and services.

Values are stored as plain strings in the database; every enum mixes in
``str`` so comparisons against column values work directly.
"""

from enum import Enum
from typing import Dict, FrozenSet


class UserRole(str, Enum):
    SUPER_ADMIN = "SUPER_ADMIN"
    ADMIN = "ADMIN"
    PROPERTY_MANAGER = "PROPERTY_MANAGER"
    MAINTENANCE_SUPERVISOR = "MAINTENANCE_SUPERVISOR"
    FINANCE_MANAGER = "FINANCE_MANAGER"
    TENANT = "TENANT"
    VENDOR = "VENDOR"


_ALL_ROLES: FrozenSet[UserRole] = frozenset(UserRole)
_NON_SUPER_ROLES: FrozenSet[UserRole] = _ALL_ROLES - {UserRole.SUPER_ADMIN}

# Which roles each role may hand out when creating or updating a user
ROLE_ASSIGNMENT_RULES: Dict[UserRole, FrozenSet[UserRole]] = {
    role: (_ALL_ROLES if role is UserRole.SUPER_ADMIN else _NON_SUPER_ROLES) for role in UserRole
}


def can_assign_role(actor_role: UserRole, target_role: UserRole) -> bool:
    """True when a user holding ``actor_role`` may assign ``target_role``."""
    return UserRole(target_role) in ROLE_ASSIGNMENT_RULES[UserRole(actor_role)]


class UserStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class AuditAction(str, Enum):
    CREATE_USER = "CREATE_USER"
    UPDATE_USER = "UPDATE_USER"
    DEACTIVATE_USER = "DEACTIVATE_USER"
    REACTIVATE_USER = "REACTIVATE_USER"
    PASSWORD_RESET_REQUESTED = "PASSWORD_RESET_REQUESTED"
    PASSWORD_RESET_COMPLETED = "PASSWORD_RESET_COMPLETED"


class PropertyType(str, Enum):
    RESIDENTIAL = "RESIDENTIAL"
    COMMERCIAL = "COMMERCIAL"
    MIXED_USE = "MIXED_USE"


class PropertyStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"
    UNDER_CONSTRUCTION = "UNDER_CONSTRUCTION"


class UnitStatus(str, Enum):
    AVAILABLE = "AVAILABLE"
    OCCUPIED = "OCCUPIED"
    UNDER_MAINTENANCE = "UNDER_MAINTENANCE"
    RESERVED = "RESERVED"


class TenantStatus(str, Enum):
    PENDING = "PENDING"
    ACTIVE = "ACTIVE"
    EXPIRED = "EXPIRED"
    TERMINATED = "TERMINATED"


class PaymentFrequency(str, Enum):
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    SEMI_ANNUALLY = "SEMI_ANNUALLY"
    YEARLY = "YEARLY"


class PaymentMethod(str, Enum):
    CASH = "CASH"
    BANK_TRANSFER = "BANK_TRANSFER"
    CHEQUE = "CHEQUE"
    PDC = "PDC"
    CREDIT_CARD = "CREDIT_CARD"
    ONLINE = "ONLINE"


class LeadSource(str, Enum):
    WEBSITE = "WEBSITE"
    REFERRAL = "REFERRAL"
    WALK_IN = "WALK_IN"
    PHONE_CALL = "PHONE_CALL"
    EMAIL = "EMAIL"
    SOCIAL_MEDIA = "SOCIAL_MEDIA"
    OTHER = "OTHER"


class LeadStatus(str, Enum):
    NEW = "NEW"
    CONTACTED = "CONTACTED"
    QUOTATION_SENT = "QUOTATION_SENT"
    ACCEPTED = "ACCEPTED"
    CONVERTED = "CONVERTED"
    LOST = "LOST"


class LeadEventType(str, Enum):
    CREATED = "CREATED"
    UPDATED = "UPDATED"
    STATUS_CHANGED = "STATUS_CHANGED"
    DOCUMENT_UPLOADED = "DOCUMENT_UPLOADED"
    QUOTATION_CREATED = "QUOTATION_CREATED"
    QUOTATION_SENT = "QUOTATION_SENT"


class LeadDocumentType(str, Enum):
    EMIRATES_ID = "EMIRATES_ID"
    PASSPORT = "PASSPORT"
    VISA = "VISA"
    OTHER = "OTHER"


class QuotationStatus(str, Enum):
    DRAFT = "DRAFT"
    SENT = "SENT"
    ACCEPTED = "ACCEPTED"
    REJECTED = "REJECTED"
    EXPIRED = "EXPIRED"
    CONVERTED = "CONVERTED"


# Lifecycle edges; CONVERTED, REJECTED and EXPIRED are terminal
QUOTATION_TRANSITIONS: Dict[QuotationStatus, FrozenSet[QuotationStatus]] = {
    QuotationStatus.DRAFT: frozenset([QuotationStatus.SENT]),
    QuotationStatus.SENT: frozenset(
        [QuotationStatus.ACCEPTED, QuotationStatus.REJECTED, QuotationStatus.EXPIRED]
    ),
    QuotationStatus.ACCEPTED: frozenset([QuotationStatus.CONVERTED]),
    QuotationStatus.REJECTED: frozenset(),
    QuotationStatus.EXPIRED: frozenset(),
    QuotationStatus.CONVERTED: frozenset(),
}


def can_transition_quotation(current: QuotationStatus, target: QuotationStatus) -> bool:
    return QuotationStatus(target) in QUOTATION_TRANSITIONS[QuotationStatus(current)]


class StayType(str, Enum):
    STUDIO = "STUDIO"
    ONE_BHK = "ONE_BHK"
    TWO_BHK = "TWO_BHK"
    THREE_BHK = "THREE_BHK"
    VILLA = "VILLA"


class ExpenseCategory(str, Enum):
    MAINTENANCE = "MAINTENANCE"
    UTILITIES = "UTILITIES"
    SALARIES = "SALARIES"
    SUPPLIES = "SUPPLIES"
    INSURANCE = "INSURANCE"
    TAXES = "TAXES"
    PROFESSIONAL_SERVICES = "PROFESSIONAL_SERVICES"
    MARKETING = "MARKETING"
    OTHER = "OTHER"


class ExpensePaymentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"


class WorkOrderCategory(str, Enum):
    PLUMBING = "PLUMBING"
    ELECTRICAL = "ELECTRICAL"
    HVAC = "HVAC"
    APPLIANCE = "APPLIANCE"
    CARPENTRY = "CARPENTRY"
    PEST_CONTROL = "PEST_CONTROL"
    CLEANING = "CLEANING"
    PAINTING = "PAINTING"
    LANDSCAPING = "LANDSCAPING"
    INSPECTION = "INSPECTION"
    OTHER = "OTHER"


class WorkOrderStatus(str, Enum):
    OPEN = "OPEN"
    ASSIGNED = "ASSIGNED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CLOSED = "CLOSED"


WORK_ORDER_TRANSITIONS: Dict[WorkOrderStatus, FrozenSet[WorkOrderStatus]] = {
    WorkOrderStatus.OPEN: frozenset([WorkOrderStatus.ASSIGNED]),
    WorkOrderStatus.ASSIGNED: frozenset([WorkOrderStatus.IN_PROGRESS]),
    WorkOrderStatus.IN_PROGRESS: frozenset([WorkOrderStatus.COMPLETED]),
    WorkOrderStatus.COMPLETED: frozenset([WorkOrderStatus.CLOSED]),
    WorkOrderStatus.CLOSED: frozenset(),
}


def can_transition_work_order(current: WorkOrderStatus, target: WorkOrderStatus) -> bool:
    return WorkOrderStatus(target) in WORK_ORDER_TRANSITIONS[WorkOrderStatus(current)]


class InvoiceStatus(str, Enum):
    DRAFT = "DRAFT"
    SENT = "SENT"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    CANCELLED = "CANCELLED"


class PdcStatus(str, Enum):
    RECEIVED = "RECEIVED"
    DUE = "DUE"
    DEPOSITED = "DEPOSITED"
    CLEARED = "CLEARED"
    BOUNCED = "BOUNCED"
    CANCELLED = "CANCELLED"
    WITHDRAWN = "WITHDRAWN"
    REPLACED = "REPLACED"


# A bounced cheque is closed by recording its replacement
PDC_TRANSITIONS: Dict[PdcStatus, FrozenSet[PdcStatus]] = {
    PdcStatus.RECEIVED: frozenset(
        [PdcStatus.DUE, PdcStatus.DEPOSITED, PdcStatus.CANCELLED, PdcStatus.WITHDRAWN]
    ),
    PdcStatus.DUE: frozenset([PdcStatus.DEPOSITED, PdcStatus.WITHDRAWN]),
    PdcStatus.DEPOSITED: frozenset([PdcStatus.CLEARED, PdcStatus.BOUNCED]),
    PdcStatus.BOUNCED: frozenset([PdcStatus.REPLACED]),
    PdcStatus.CLEARED: frozenset(),
    PdcStatus.CANCELLED: frozenset(),
    PdcStatus.WITHDRAWN: frozenset(),
    PdcStatus.REPLACED: frozenset(),
}


def can_transition_pdc(current: PdcStatus, target: PdcStatus) -> bool:
    return PdcStatus(target) in PDC_TRANSITIONS[PdcStatus(current)]


class DocumentType(str, Enum):
    LEASE_AGREEMENT = "LEASE_AGREEMENT"
    ID_DOCUMENT = "ID_DOCUMENT"
    INSURANCE = "INSURANCE"
    CERTIFICATE = "CERTIFICATE"
    CONTRACT = "CONTRACT"
    INVOICE = "INVOICE"
    PERMIT = "PERMIT"
    OTHER = "OTHER"


class DocumentEntityType(str, Enum):
    PROPERTY = "PROPERTY"
    TENANT = "TENANT"
    VENDOR = "VENDOR"
    ASSET = "ASSET"
    GENERAL = "GENERAL"


class DocumentAccessLevel(str, Enum):
    PUBLIC = "PUBLIC"
    INTERNAL = "INTERNAL"
    RESTRICTED = "RESTRICTED"


class ExpiryStatus(str, Enum):
    NO_EXPIRY = "NO_EXPIRY"
    VALID = "VALID"
    EXPIRING_SOON = "EXPIRING_SOON"
    EXPIRED = "EXPIRED"


class ComplianceCategory(str, Enum):
    SAFETY = "SAFETY"
    FIRE = "FIRE"
    ELECTRICAL = "ELECTRICAL"
    PLUMBING = "PLUMBING"
    STRUCTURAL = "STRUCTURAL"
    ENVIRONMENTAL = "ENVIRONMENTAL"
    LICENSING = "LICENSING"
    OTHER = "OTHER"


class ComplianceFrequency(str, Enum):
    ONE_TIME = "ONE_TIME"
    MONTHLY = "MONTHLY"
    QUARTERLY = "QUARTERLY"
    SEMI_ANNUALLY = "SEMI_ANNUALLY"
    ANNUALLY = "ANNUALLY"
    BIANNUALLY = "BIANNUALLY"


class RequirementStatus(str, Enum):
    ACTIVE = "ACTIVE"
    INACTIVE = "INACTIVE"


class NotificationType(str, Enum):
    WELCOME = "WELCOME"
    PASSWORD_RESET = "PASSWORD_RESET"
    INVOICE_GENERATED = "INVOICE_GENERATED"
    PAYMENT_RECEIVED = "PAYMENT_RECEIVED"
    PAYMENT_REMINDER = "PAYMENT_REMINDER"
    QUOTATION_ACCEPTED = "QUOTATION_ACCEPTED"
    DOCUMENT_EXPIRY = "DOCUMENT_EXPIRY"
    GENERAL = "GENERAL"


class NotificationStatus(str, Enum):
    PENDING = "PENDING"
    QUEUED = "QUEUED"
    SENT = "SENT"
    FAILED = "FAILED"


class ExtractionStatus(str, Enum):
    """Outcome of OCR on a single document or cheque."""

    SUCCESS = "SUCCESS"
    PARTIAL = "PARTIAL"
    FAILED = "FAILED"


class ProcessingStatus(str, Enum):
    """Outcome of a whole OCR request."""

    SUCCESS = "SUCCESS"
    PARTIAL_SUCCESS = "PARTIAL_SUCCESS"
    FAILED = "FAILED"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    PROCESSING_ERROR = "PROCESSING_ERROR"
