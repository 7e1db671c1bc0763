"""
Document storage with version history, expiry tracking and access levels.

Every file a document has ever held is kept as a DocumentVersion; the
document row always describes the latest one.
"""

from datetime import date, timedelta
from pathlib import PurePath
from typing import Any, Callable, Dict, Iterable, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..config import get_config
from ..constants import Limits
from ..context.operation_context import operation
from ..db.db_document_models import Document, DocumentVersion
from ..db.db_finance_models import Vendor
from ..db.db_property_models import Property
from ..db.db_tenant_models import Tenant
from ..enums import (
    DocumentAccessLevel,
    DocumentEntityType,
    DocumentType,
    ExpiryStatus,
    UserRole,
)
from ..exceptions import BaseError, ErrorCode, ValidationError, not_found
from ..schemas.document_schema import (
    DocumentCreate,
    DocumentDownload,
    DocumentRead,
    DocumentUpdate,
    DocumentVersionRead,
)
from ..utils.crud_helpers import apply_updates, get_record, get_record_by_id, next_sequence_number
from ..utils.file_storage import FileStorage, LocalFileStorage
from ..utils.logger import get_logger
from .base_service import SessionManagedService

ALLOWED_CONTENT_TYPES = frozenset(
    [
        "application/pdf",
        "image/jpeg",
        "image/png",
        "application/msword",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
        "application/vnd.ms-excel",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    ]
)

_ENTITY_MODELS = {
    DocumentEntityType.PROPERTY: Property,
    DocumentEntityType.TENANT: Tenant,
    DocumentEntityType.VENDOR: Vendor,
}

_INTERNAL_EXCLUDED_ROLES = frozenset([UserRole.TENANT, UserRole.VENDOR])
_RESTRICTED_ROLES = frozenset([UserRole.SUPER_ADMIN, UserRole.PROPERTY_MANAGER])


def expiry_status_for(
    expiry_date: Optional[date], today: date, warning_days: int = Limits.DOCUMENT_EXPIRY_WARNING_DAYS
) -> ExpiryStatus:
    if expiry_date is None:
        return ExpiryStatus.NO_EXPIRY
    if expiry_date < today:
        return ExpiryStatus.EXPIRED
    if (expiry_date - today).days <= warning_days:
        return ExpiryStatus.EXPIRING_SOON
    return ExpiryStatus.VALID


def roles_can_access(access_level: DocumentAccessLevel, user_roles: Iterable[UserRole]) -> bool:
    roles = {UserRole(r) for r in user_roles}
    level = DocumentAccessLevel(access_level)
    if level == DocumentAccessLevel.PUBLIC:
        return True
    if level == DocumentAccessLevel.INTERNAL:
        return bool(roles - _INTERNAL_EXCLUDED_ROLES)
    return bool(roles & _RESTRICTED_ROLES)


class DocumentService(SessionManagedService):
    def __init__(
        self,
        session: Optional[Session] = None,
        file_storage: Optional[FileStorage] = None,
        today: Callable[[], date] = date.today,
    ):
        super().__init__(read_schema_class=DocumentRead, logger=get_logger(), session=session)
        self.file_storage = file_storage or LocalFileStorage()
        self.today = today

    def _to_read(self, document: Document) -> DocumentRead:
        today = self.today()
        days = (document.expiry_date - today).days if document.expiry_date else None
        return DocumentRead.model_validate(document).model_copy(
            update={
                "expiry_status": expiry_status_for(document.expiry_date, today),
                "days_until_expiry": days,
            }
        )

    def _get_document_or_raise(self, document_id: str) -> Document:
        document = get_record_by_id(self.session, Document, document_id)
        if document is None:
            raise not_found("Document", document_id=document_id)
        return document

    @staticmethod
    def _validate_file(file_name: str, content: bytes, content_type: Optional[str]) -> str:
        if not content:
            raise ValidationError("File is empty", field="file")
        if len(content) > Limits.MAX_DOCUMENT_BYTES:
            raise ValidationError(
                "File size exceeds maximum limit of 10MB",
                field="file",
                error_code=ErrorCode.FILE_TOO_LARGE,
                size=len(content),
            )
        normalized = (content_type or "").lower()
        if normalized not in ALLOWED_CONTENT_TYPES:
            raise ValidationError(
                "Invalid file type. Allowed types: PDF, JPG, PNG, DOC, DOCX, XLS, XLSX",
                field="file",
                error_code=ErrorCode.UNSUPPORTED_FILE_TYPE,
                content_type=content_type,
            )
        return PurePath(file_name).name or "document"

    def _check_entity(self, entity_type: DocumentEntityType, entity_id: Optional[str]) -> None:
        entity_type = DocumentEntityType(entity_type)
        if entity_type == DocumentEntityType.GENERAL:
            return
        if not entity_id:
            raise ValidationError(
                f"Entity id is required for {entity_type.value} documents", field="entity_id"
            )
        model = _ENTITY_MODELS.get(entity_type)
        if model is not None and get_record_by_id(self.session, model, entity_id) is None:
            raise not_found(entity_type.value.title(), entity_id=entity_id)

    def _store(
        self,
        document_number: str,
        version: int,
        file_name: str,
        content: bytes,
        content_type: Optional[str],
    ) -> str:
        key = f"documents/{document_number}/v{version}_{file_name}"
        return self.file_storage.upload(key, content, content_type)

    @operation()
    def upload_document(
        self,
        data: DocumentCreate,
        file_name: str,
        content: bytes,
        content_type: Optional[str],
        uploaded_by: Optional[str] = None,
    ) -> DocumentRead:
        """
        Store a new document and record it as version 1.

        Raises:
            ValidationError: empty, oversized or unsupported file
            RepositoryError: NOT_FOUND when the owning entity does not exist
        """
        try:
            safe_name = self._validate_file(file_name, content, content_type)
            self._check_entity(data.entity_type, data.entity_id)

            document_number = next_sequence_number(
                self.session, Document, "document_number", "DOC", self.today().year
            )
            stored_path = self._store(document_number, 1, safe_name, content, content_type)

            document = Document(
                document_number=document_number,
                document_type=data.document_type.value,
                title=data.title,
                description=data.description,
                file_name=safe_name,
                file_path=stored_path,
                file_size=len(content),
                file_type=content_type.lower(),
                entity_type=data.entity_type.value,
                entity_id=data.entity_id,
                expiry_date=data.expiry_date,
                tags=list(data.tags),
                access_level=data.access_level.value,
                version_number=1,
                uploaded_by=uploaded_by,
                expiry_notification_sent=False,
            )
            self.session.add(document)
            self.session.flush()

            self.session.add(
                DocumentVersion(
                    document_id=document.id,
                    version_number=1,
                    file_name=safe_name,
                    file_path=stored_path,
                    file_size=len(content),
                    uploaded_by=uploaded_by,
                )
            )
            self.session.flush()
            self.logger.info(
                f"Uploaded document: id={document.id}, number={document.document_number}"
            )
            return self._to_read(document)
        except Exception as e:
            if isinstance(e, BaseError):
                raise
            self._handle_service_exception("upload_document", e)

    @operation()
    def get_document(self, document_id: str) -> DocumentRead:
        return self._to_read(self._get_document_or_raise(document_id))

    @operation()
    def get_document_by_number(self, document_number: str) -> DocumentRead:
        document = get_record(self.session, Document, {"document_number": document_number})
        if document is None:
            raise not_found("Document", document_number=document_number)
        return self._to_read(document)

    @operation()
    def update_document(self, document_id: str, data: DocumentUpdate) -> DocumentRead:
        """Update metadata. Moving the expiry date re-arms the expiry notification."""
        document = self._get_document_or_raise(document_id)
        updates = data.model_dump(exclude_unset=True)
        # Only expiry_date may be cleared explicitly
        updates = {k: v for k, v in updates.items() if v is not None or k == "expiry_date"}
        changes = apply_updates(document, updates)
        if "expiry_date" in changes:
            document.expiry_notification_sent = False
        self.session.flush()
        self.logger.info(f"Updated document: id={document.id}, fields={sorted(changes)}")
        return self._to_read(document)

    @operation()
    def replace_document(
        self,
        document_id: str,
        file_name: str,
        content: bytes,
        content_type: Optional[str],
        notes: Optional[str] = None,
        uploaded_by: Optional[str] = None,
    ) -> DocumentRead:
        try:
            document = self._get_document_or_raise(document_id)
            safe_name = self._validate_file(file_name, content, content_type)

            new_version = document.version_number + 1
            stored_path = self._store(
                document.document_number, new_version, safe_name, content, content_type
            )
            self.session.add(
                DocumentVersion(
                    document_id=document.id,
                    version_number=new_version,
                    file_name=safe_name,
                    file_path=stored_path,
                    file_size=len(content),
                    uploaded_by=uploaded_by,
                    notes=notes,
                )
            )
            document.version_number = new_version
            document.file_name = safe_name
            document.file_path = stored_path
            document.file_size = len(content)
            document.file_type = content_type.lower()
            self.session.flush()
            self.logger.info(f"Replaced document file: id={document.id}, version={new_version}")
            return self._to_read(document)
        except Exception as e:
            if isinstance(e, BaseError):
                raise
            self._handle_service_exception("replace_document", e, document_id)

    @operation()
    def delete_document(self, document_id: str, deleted_by: Optional[str] = None) -> None:
        document = self._get_document_or_raise(document_id)
        document.mark_deleted(deleted_by)
        self.session.flush()
        self.logger.info(f"Deleted document: id={document.id}")

    @operation()
    def list_documents(
        self,
        entity_type: Optional[DocumentEntityType] = None,
        entity_id: Optional[str] = None,
        document_type: Optional[DocumentType] = None,
        access_level: Optional[DocumentAccessLevel] = None,
        expiry_status: Optional[ExpiryStatus] = None,
        search: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Dict[str, Any]:
        try:
            query = self.session.query(Document).filter(Document.is_deleted.is_(False))
            if entity_type:
                query = query.filter(Document.entity_type == DocumentEntityType(entity_type).value)
            if entity_id:
                query = query.filter(Document.entity_id == entity_id)
            if document_type:
                query = query.filter(Document.document_type == DocumentType(document_type).value)
            if access_level:
                query = query.filter(
                    Document.access_level == DocumentAccessLevel(access_level).value
                )
            if expiry_status:
                query = self._filter_expiry_status(query, ExpiryStatus(expiry_status))
            if search:
                pattern = f"%{search.strip()}%"
                query = query.filter(
                    or_(
                        Document.title.ilike(pattern),
                        Document.document_number.ilike(pattern),
                        Document.file_name.ilike(pattern),
                    )
                )
            total_count = query.count()
            page, page_size = max(page, 1), max(page_size, 1)
            documents = (
                query.order_by(Document.created_at.desc())
                .offset((page - 1) * page_size)
                .limit(page_size)
                .all()
            )
            return self.paginate_results(
                [self._to_read(d) for d in documents], total_count, page, page_size
            )
        except Exception as e:
            if isinstance(e, BaseError):
                raise
            self._handle_service_exception("list_documents", e)

    def _filter_expiry_status(self, query, status: ExpiryStatus):
        today = self.today()
        warning_end = today + timedelta(days=Limits.DOCUMENT_EXPIRY_WARNING_DAYS)
        if status == ExpiryStatus.NO_EXPIRY:
            return query.filter(Document.expiry_date.is_(None))
        if status == ExpiryStatus.EXPIRED:
            return query.filter(Document.expiry_date < today)
        if status == ExpiryStatus.EXPIRING_SOON:
            return query.filter(Document.expiry_date >= today, Document.expiry_date <= warning_end)
        return query.filter(Document.expiry_date > warning_end)

    @operation()
    def get_version_history(self, document_id: str) -> List[DocumentVersionRead]:
        document = self._get_document_or_raise(document_id)
        versions = (
            self.session.query(DocumentVersion)
            .filter(DocumentVersion.document_id == document.id)
            .order_by(DocumentVersion.version_number.desc())
            .all()
        )
        return [DocumentVersionRead.model_validate(v) for v in versions]

    @operation()
    def get_download_url(self, document_id: str) -> DocumentDownload:
        document = self._get_document_or_raise(document_id)
        expires_in = get_config().storage.download_url_expiry_seconds
        return DocumentDownload(
            document_id=document.id,
            file_name=document.file_name,
            file_type=document.file_type,
            download_url=self.file_storage.get_download_url(document.file_path, expires_in),
            expires_in_seconds=expires_in,
        )

    def _expiring_query(self, days: int):
        today = self.today()
        return (
            self.session.query(Document)
            .filter(
                Document.is_deleted.is_(False),
                Document.expiry_date.isnot(None),
                Document.expiry_date >= today,
                Document.expiry_date <= today + timedelta(days=days),
            )
            .order_by(Document.expiry_date)
        )

    @operation()
    def get_expiring_documents(
        self, days: int = Limits.DOCUMENT_EXPIRY_WARNING_DAYS
    ) -> List[DocumentRead]:
        return [self._to_read(d) for d in self._expiring_query(days).all()]

    @operation()
    def get_documents_pending_expiry_notification(
        self, days: int = Limits.DOCUMENT_EXPIRY_WARNING_DAYS
    ) -> List[DocumentRead]:
        documents = (
            self._expiring_query(days).filter(Document.expiry_notification_sent.is_(False)).all()
        )
        return [self._to_read(d) for d in documents]

    @operation()
    def mark_expiry_notifications_sent(self, document_ids: List[str]) -> int:
        if not document_ids:
            return 0
        documents = (
            self.session.query(Document)
            .filter(Document.id.in_(list(document_ids)), Document.is_deleted.is_(False))
            .all()
        )
        for document in documents:
            document.expiry_notification_sent = True
        self.session.flush()
        return len(documents)

    @operation()
    def has_access(self, document_id: str, user_roles: Iterable[UserRole]) -> bool:
        document = self._get_document_or_raise(document_id)
        return roles_can_access(document.access_level, user_roles)
