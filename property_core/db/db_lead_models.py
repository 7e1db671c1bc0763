"""Sales pipeline: leads, their history and documents, and quotations."""

from sqlalchemy import Column, Date, ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.orm import relationship

from ..enums import LeadStatus, QuotationStatus
from .db_base import JSON, TimestampMixin, UTCDateTime, UUIDMixin
from .db_config import Base


class Lead(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "lead"

    lead_number = Column(String(20), nullable=False, unique=True)
    full_name = Column(String(200), nullable=False)
    emirates_id = Column(String(20), nullable=False, unique=True)
    passport_number = Column(String(20), nullable=False, unique=True)
    passport_expiry_date = Column(Date, nullable=False)
    home_country = Column(String(100), nullable=False)
    email = Column(String(255), nullable=False, index=True)
    contact_number = Column(String(30), nullable=False)
    lead_source = Column(String(30), nullable=False)
    status = Column(String(30), nullable=False, default=LeadStatus.NEW.value, index=True)
    notes = Column(Text, nullable=True)
    property_interest = Column(String(200), nullable=True)
    created_by = Column(String(36), nullable=True)

    history = relationship(
        "LeadHistory", back_populates="lead", cascade="all, delete-orphan", lazy="select"
    )
    documents = relationship(
        "LeadDocument", back_populates="lead", cascade="all, delete-orphan", lazy="select"
    )


class LeadHistory(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "lead_history"

    lead_id = Column(String(36), ForeignKey("lead.id"), nullable=False, index=True)
    event_type = Column(String(30), nullable=False)
    event_data = Column(JSON, nullable=True)
    created_by = Column(String(36), nullable=True)

    lead = relationship("Lead", back_populates="history")


class LeadDocument(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "lead_document"

    lead_id = Column(String(36), ForeignKey("lead.id"), nullable=False, index=True)
    document_type = Column(String(30), nullable=False)
    file_name = Column(String(255), nullable=False)
    file_path = Column(String(500), nullable=False)
    file_size = Column(Integer, nullable=False)
    content_type = Column(String(100), nullable=True)
    uploaded_by = Column(String(36), nullable=True)

    lead = relationship("Lead", back_populates="documents")


class Quotation(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "quotation"

    quotation_number = Column(String(20), nullable=False, unique=True)
    lead_id = Column(String(36), nullable=False, index=True)
    property_id = Column(String(36), nullable=True)
    unit_id = Column(String(36), nullable=True)
    stay_type = Column(String(20), nullable=True)

    issue_date = Column(Date, nullable=False)
    validity_date = Column(Date, nullable=False)

    base_rent = Column(Numeric(12, 2), nullable=False)
    service_charges = Column(Numeric(12, 2), nullable=False, default=0)
    parking_spots = Column(Integer, nullable=False, default=0)
    parking_fee = Column(Numeric(12, 2), nullable=False, default=0)
    security_deposit = Column(Numeric(12, 2), nullable=False, default=0)
    admin_fee = Column(Numeric(12, 2), nullable=False, default=0)
    total_first_payment = Column(Numeric(12, 2), nullable=False)

    number_of_cheques = Column(Integer, nullable=True)
    first_month_payment_method = Column(String(20), nullable=True)
    payment_terms = Column(Text, nullable=True)
    special_terms = Column(Text, nullable=True)

    status = Column(String(20), nullable=False, default=QuotationStatus.DRAFT.value, index=True)
    sent_at = Column(UTCDateTime, nullable=True)
    accepted_at = Column(UTCDateTime, nullable=True)
    rejected_at = Column(UTCDateTime, nullable=True)
    rejection_reason = Column(Text, nullable=True)
    converted_at = Column(UTCDateTime, nullable=True)
    created_by = Column(String(36), nullable=True)
