"""
Sales leads, their documents, and the event history kept for each lead.

Every state-changing call appends a LeadHistory row in the same
transaction as the change itself.
"""

import uuid
from datetime import date
from pathlib import PurePath
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..config import get_config
from ..constants import Limits
from ..context.operation_context import operation
from ..db.db_lead_models import Lead, LeadDocument, LeadHistory
from ..enums import LeadDocumentType, LeadEventType, LeadSource, LeadStatus
from ..exceptions import BaseError, ErrorCode, ValidationError, duplicate, not_found
from ..schemas.lead_schema import (
    LeadCreate,
    LeadDocumentRead,
    LeadHistoryRead,
    LeadRead,
    LeadUpdate,
)
from ..utils.crud_helpers import apply_updates, next_sequence_number, record_exists
from ..utils.file_storage import FileStorage, LocalFileStorage
from ..utils.logger import get_logger
from .base_service import SessionManagedService


def record_lead_event(
    session: Session,
    lead_id: str,
    event_type: LeadEventType,
    event_data: Optional[Dict[str, Any]] = None,
    created_by: Optional[str] = None,
) -> LeadHistory:
    """Append a history entry for ``lead_id``; shared with QuotationService."""
    entry = LeadHistory(
        lead_id=lead_id,
        event_type=LeadEventType(event_type).value,
        event_data=event_data or {},
        created_by=created_by,
    )
    session.add(entry)
    return entry


class LeadService(SessionManagedService):
    def __init__(
        self,
        session: Optional[Session] = None,
        file_storage: Optional[FileStorage] = None,
        today: Callable[[], date] = date.today,
    ):
        super().__init__(read_schema_class=LeadRead, logger=get_logger(), session=session)
        self.file_storage = file_storage or LocalFileStorage()
        self.today = today

    def _get_lead_or_raise(self, lead_id: str) -> Lead:
        lead = self.session.get(Lead, lead_id) if lead_id else None
        if lead is None:
            raise not_found("Lead", lead_id=lead_id)
        return lead

    def _check_identity_unique(
        self,
        emirates_id: Optional[str],
        passport_number: Optional[str],
        exclude_id: Optional[str] = None,
    ) -> None:
        if emirates_id and record_exists(
            self.session, Lead, {"emirates_id": emirates_id}, exclude_id=exclude_id
        ):
            raise duplicate(
                "Lead", message="Lead with this Emirates ID already exists", emirates_id=emirates_id
            )
        if passport_number and record_exists(
            self.session, Lead, {"passport_number": passport_number}, exclude_id=exclude_id
        ):
            raise duplicate(
                "Lead",
                message="Lead with this passport number already exists",
                passport_number=passport_number,
            )

    @operation()
    def create_lead(self, data: LeadCreate, created_by: Optional[str] = None) -> LeadRead:
        try:
            self._check_identity_unique(data.emirates_id, data.passport_number)

            lead = Lead(
                **data.model_dump(exclude={"lead_source"}),
                lead_source=data.lead_source.value,
                lead_number=next_sequence_number(
                    self.session, Lead, "lead_number", "LEAD", self.today().year
                ),
                status=LeadStatus.NEW.value,
                created_by=created_by,
            )
            self.session.add(lead)
            self.session.flush()

            record_lead_event(
                self.session,
                lead.id,
                LeadEventType.CREATED,
                {
                    "leadNumber": lead.lead_number,
                    "fullName": lead.full_name,
                    "leadSource": lead.lead_source,
                },
                created_by,
            )
            self.session.flush()
            self.logger.info(f"Created lead: id={lead.id}, number={lead.lead_number}")
            return LeadRead.model_validate(lead)
        except Exception as e:
            if isinstance(e, BaseError):
                raise
            self._handle_service_exception("create_lead", e)

    @operation()
    def get_lead(self, lead_id: str) -> LeadRead:
        return LeadRead.model_validate(self._get_lead_or_raise(lead_id))

    @operation()
    def update_lead(
        self, lead_id: str, data: LeadUpdate, updated_by: Optional[str] = None
    ) -> LeadRead:
        try:
            lead = self._get_lead_or_raise(lead_id)
            updates = data.model_dump(exclude_unset=True, exclude_none=True)

            changed_emirates_id = updates.get("emirates_id")
            if changed_emirates_id == lead.emirates_id:
                changed_emirates_id = None
            changed_passport = updates.get("passport_number")
            if changed_passport == lead.passport_number:
                changed_passport = None
            self._check_identity_unique(changed_emirates_id, changed_passport, exclude_id=lead.id)

            changes = apply_updates(lead, updates)
            if changes:
                record_lead_event(
                    self.session,
                    lead.id,
                    LeadEventType.UPDATED,
                    {"changedFields": sorted(changes)},
                    updated_by,
                )
            self.session.flush()
            return LeadRead.model_validate(lead)
        except Exception as e:
            if isinstance(e, BaseError):
                raise
            self._handle_service_exception("update_lead", e, lead_id)

    @operation()
    def search_leads(
        self,
        status: Optional[LeadStatus] = None,
        source: Optional[LeadSource] = None,
        search: Optional[str] = None,
        page: int = 1,
        page_size: int = 20,
    ) -> Dict[str, Any]:
        try:
            query = self.session.query(Lead)
            if status:
                query = query.filter(Lead.status == LeadStatus(status).value)
            if source:
                query = query.filter(Lead.lead_source == LeadSource(source).value)
            if search:
                pattern = f"%{search.strip()}%"
                query = query.filter(
                    or_(
                        Lead.full_name.ilike(pattern),
                        Lead.email.ilike(pattern),
                        Lead.contact_number.ilike(pattern),
                        Lead.lead_number.ilike(pattern),
                    )
                )
            query = query.order_by(Lead.created_at.desc())
            return self.paginate_query(query, page, page_size)
        except Exception as e:
            if isinstance(e, BaseError):
                raise
            self._handle_service_exception("search_leads", e)

    @operation()
    def update_lead_status(
        self, lead_id: str, status: LeadStatus, updated_by: Optional[str] = None
    ) -> LeadRead:
        lead = self._get_lead_or_raise(lead_id)
        old_status = lead.status
        new_status = LeadStatus(status).value
        if old_status != new_status:
            lead.status = new_status
            record_lead_event(
                self.session,
                lead.id,
                LeadEventType.STATUS_CHANGED,
                {"oldStatus": old_status, "newStatus": new_status},
                updated_by,
            )
            self.session.flush()
            self.logger.info(f"Lead status changed: id={lead.id}, {old_status} -> {new_status}")
        return LeadRead.model_validate(lead)

    @operation()
    def upload_document(
        self,
        lead_id: str,
        document_type: LeadDocumentType,
        file_name: str,
        content: bytes,
        content_type: Optional[str] = None,
        uploaded_by: Optional[str] = None,
    ) -> LeadDocumentRead:
        """
        Store a supporting document for a lead.

        Raises:
            ValidationError: empty file or larger than 5MB
        """
        try:
            lead = self._get_lead_or_raise(lead_id)
            if not content:
                raise ValidationError("File is empty", field="file")
            if len(content) > Limits.MAX_LEAD_DOCUMENT_BYTES:
                raise ValidationError(
                    "File size exceeds maximum limit of 5MB",
                    field="file",
                    error_code=ErrorCode.FILE_TOO_LARGE,
                    size=len(content),
                )

            safe_name = PurePath(file_name).name or "document"
            key = f"leads/{lead.id}/{uuid.uuid4().hex}_{safe_name}"
            stored_path = self.file_storage.upload(key, content, content_type)

            document = LeadDocument(
                lead_id=lead.id,
                document_type=LeadDocumentType(document_type).value,
                file_name=safe_name,
                file_path=stored_path,
                file_size=len(content),
                content_type=content_type,
                uploaded_by=uploaded_by,
            )
            self.session.add(document)
            self.session.flush()

            record_lead_event(
                self.session,
                lead.id,
                LeadEventType.DOCUMENT_UPLOADED,
                {
                    "documentId": document.id,
                    "documentType": document.document_type,
                    "fileName": safe_name,
                },
                uploaded_by,
            )
            self.session.flush()
            self.logger.info(f"Uploaded lead document: lead_id={lead.id}, document_id={document.id}")
            return LeadDocumentRead.model_validate(document)
        except Exception as e:
            if isinstance(e, BaseError):
                raise
            self._handle_service_exception("upload_document", e, lead_id)

    @operation()
    def get_lead_documents(self, lead_id: str) -> List[LeadDocumentRead]:
        lead = self._get_lead_or_raise(lead_id)
        documents = (
            self.session.query(LeadDocument)
            .filter(LeadDocument.lead_id == lead.id)
            .order_by(LeadDocument.created_at.desc())
            .all()
        )
        return [LeadDocumentRead.model_validate(d) for d in documents]

    def _get_document_or_raise(self, document_id: str) -> LeadDocument:
        document = self.session.get(LeadDocument, document_id) if document_id else None
        if document is None:
            raise not_found("LeadDocument", document_id=document_id)
        return document

    @operation()
    def get_document_download_url(self, document_id: str) -> str:
        document = self._get_document_or_raise(document_id)
        return self.file_storage.get_download_url(
            document.file_path, get_config().storage.download_url_expiry_seconds
        )

    @operation()
    def delete_document(self, document_id: str) -> None:
        document = self._get_document_or_raise(document_id)
        self.file_storage.delete(document.file_path)
        self.session.delete(document)
        self.session.flush()
        self.logger.info(f"Deleted lead document: id={document_id}")

    @operation()
    def get_lead_history(self, lead_id: str, page: int = 1, page_size: int = 20) -> Dict[str, Any]:
        lead = self._get_lead_or_raise(lead_id)
        query = (
            self.session.query(LeadHistory)
            .filter(LeadHistory.lead_id == lead.id)
            .order_by(LeadHistory.created_at.desc())
        )
        return self.paginate_query(query, page, page_size, LeadHistoryRead)

    @operation()
    def delete_lead(self, lead_id: str) -> None:
        """Remove the lead together with its stored files, documents and history."""
        lead = self._get_lead_or_raise(lead_id)
        for document in list(lead.documents):
            self.file_storage.delete(document.file_path)
        # documents and history go with the lead via the delete-orphan cascade
        self.session.delete(lead)
        self.session.flush()
        self.logger.info(f"Deleted lead: id={lead_id}")
