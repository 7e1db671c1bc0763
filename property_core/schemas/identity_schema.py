"""Inputs and results of identity document and cheque OCR."""

from datetime import date
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..enums import ExtractionStatus, ProcessingStatus


class UploadedFile(BaseModel):
    file_name: str
    content_type: str
    content: bytes

    model_config = ConfigDict(arbitrary_types_allowed=True)

    @property
    def size(self) -> int:
        return len(self.content)


class ExtractedIdentityFields(BaseModel):
    document_number: Optional[str] = None
    full_name: Optional[str] = None
    nationality: Optional[str] = None
    date_of_birth: Optional[str] = None  # ISO date
    expiry_date: Optional[str] = None  # ISO date


class DocumentExtractionDetail(BaseModel):
    document_type: str  # PASSPORT or EMIRATES_ID
    status: ExtractionStatus
    confidence: float = 0.0
    fields: ExtractedIdentityFields = Field(default_factory=ExtractedIdentityFields)
    raw_text: Optional[str] = None
    message: Optional[str] = None


class IdentityExtractionResult(BaseModel):
    status: ProcessingStatus
    message: str
    passport_number: Optional[str] = None
    passport_expiry_date: Optional[str] = None
    emirates_id_number: Optional[str] = None
    emirates_id_expiry_date: Optional[str] = None
    full_name: Optional[str] = None
    nationality: Optional[str] = None
    date_of_birth: Optional[str] = None
    passport_details: Optional[DocumentExtractionDetail] = None
    emirates_id_details: Optional[DocumentExtractionDetail] = None


class ChequeDetail(BaseModel):
    cheque_index: int
    file_name: str
    status: ExtractionStatus
    bank_name: Optional[str] = None
    cheque_number: Optional[str] = None
    amount: Optional[Decimal] = None
    cheque_date: Optional[date] = None
    pay_to: Optional[str] = None
    cheque_from: Optional[str] = None
    confidence: float = 0.0
    message: Optional[str] = None


class ChequeProcessingResult(BaseModel):
    status: ProcessingStatus
    message: str
    expected_cheque_count: int
    received_cheque_count: int
    successful_count: int = 0
    failed_count: int = 0
    total_amount: Decimal = Decimal("0")
    cheques: List[ChequeDetail] = Field(default_factory=list)
