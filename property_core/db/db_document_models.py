"""Stored documents with version history and expiry tracking."""

from sqlalchemy import Boolean, Column, Date, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import relationship

from ..enums import DocumentAccessLevel
from .db_base import JSON, SoftDeleteMixin, TimestampMixin, UUIDMixin
from .db_config import Base


class Document(Base, UUIDMixin, TimestampMixin, SoftDeleteMixin):
    __tablename__ = "document"

    document_number = Column(String(20), nullable=False, unique=True)
    document_type = Column(String(30), nullable=False)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    file_name = Column(String(255), nullable=False)
    file_path = Column(String(500), nullable=False)
    file_size = Column(Integer, nullable=False)
    file_type = Column(String(100), nullable=False)
    entity_type = Column(String(20), nullable=False)
    entity_id = Column(String(36), nullable=True)
    expiry_date = Column(Date, nullable=True, index=True)
    tags = Column(JSON, nullable=True)
    access_level = Column(
        String(20), nullable=False, default=DocumentAccessLevel.INTERNAL.value
    )
    version_number = Column(Integer, nullable=False, default=1)
    uploaded_by = Column(String(36), nullable=True)
    expiry_notification_sent = Column(Boolean, nullable=False, default=False)

    versions = relationship(
        "DocumentVersion",
        back_populates="document",
        order_by="DocumentVersion.version_number.desc()",
        lazy="select",
    )

    __table_args__ = (Index("ix_document_entity", "entity_type", "entity_id"),)


class DocumentVersion(Base, UUIDMixin, TimestampMixin):
    """One file a document has held; the highest version is the current one."""

    __tablename__ = "document_version"

    document_id = Column(String(36), ForeignKey("document.id"), nullable=False, index=True)
    version_number = Column(Integer, nullable=False)
    file_name = Column(String(255), nullable=False)
    file_path = Column(String(500), nullable=False)
    file_size = Column(Integer, nullable=False)
    uploaded_by = Column(String(36), nullable=True)
    notes = Column(Text, nullable=True)

    document = relationship("Document", back_populates="versions")
