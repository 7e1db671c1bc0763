"""Schemas for stored documents and their versions."""

from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..enums import DocumentAccessLevel, DocumentEntityType, DocumentType, ExpiryStatus
from .mixins import IdMixin, ORMModel, SoftDeleteMixin, TimestampMixin


class DocumentCreate(BaseModel):
    document_type: DocumentType
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = None
    entity_type: DocumentEntityType = DocumentEntityType.GENERAL
    entity_id: Optional[str] = None
    expiry_date: Optional[date] = None
    tags: List[str] = Field(default_factory=list)
    access_level: DocumentAccessLevel = DocumentAccessLevel.INTERNAL

    model_config = ConfigDict(extra="ignore")


class DocumentUpdate(BaseModel):
    document_type: Optional[DocumentType] = None
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    description: Optional[str] = None
    expiry_date: Optional[date] = None
    tags: Optional[List[str]] = None
    access_level: Optional[DocumentAccessLevel] = None

    model_config = ConfigDict(extra="ignore")


class DocumentRead(ORMModel, IdMixin, TimestampMixin, SoftDeleteMixin):
    document_number: str
    document_type: DocumentType
    title: str
    description: Optional[str] = None
    file_name: str
    file_path: str
    file_size: int
    file_type: str
    entity_type: DocumentEntityType
    entity_id: Optional[str] = None
    expiry_date: Optional[date] = None
    tags: Optional[List[str]] = None
    access_level: DocumentAccessLevel
    version_number: int
    uploaded_by: Optional[str] = None
    expiry_notification_sent: bool
    expiry_status: ExpiryStatus = ExpiryStatus.NO_EXPIRY
    days_until_expiry: Optional[int] = None


class DocumentVersionRead(ORMModel, IdMixin):
    document_id: str
    version_number: int
    file_name: str
    file_path: str
    file_size: int
    uploaded_by: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime


class DocumentDownload(BaseModel):
    document_id: str
    file_name: str
    file_type: str
    download_url: str
    expires_in_seconds: int
