"""
Field extraction from scanned passports, Emirates IDs and post-dated cheques.

Text comes from a TextDetectionClient as a list of lines. Each field is
looked up on the line holding its keyword, then on the line after it, then
anywhere in the text. Nothing is persisted; callers review the extracted
values before they are saved on a tenant or quotation.
"""

import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Callable, Iterable, List, Optional, Sequence

from sqlalchemy.orm import Session

from ..config import OcrConfig, get_config
from ..constants import Limits
from ..context.operation_context import operation
from ..db.db_lead_models import Quotation
from ..enums import ExtractionStatus, PaymentMethod, ProcessingStatus
from ..exceptions import ErrorCode, ValidationError, not_found
from ..schemas.identity_schema import (
    ChequeDetail,
    ChequeProcessingResult,
    DocumentExtractionDetail,
    ExtractedIdentityFields,
    IdentityExtractionResult,
    UploadedFile,
)
from ..utils.date_utils import add_months
from ..utils.logger import get_logger
from ..utils.ocr_client import TextDetectionClient, TextractTextDetectionClient
from .base_service import SessionManagedService

PASSPORT = "PASSPORT"
EMIRATES_ID = "EMIRATES_ID"

EMIRATES_ID_PATTERN = re.compile(r"(784[-\s]?\d{4}[-\s]?\d{7}[-\s]?\d)", re.IGNORECASE)
PASSPORT_NUMBER_PATTERN = re.compile(
    r"(?:Passport\s*(?:No\.?|Number|#)|Pass\.?\s*No\.?|P/?N)\s*:?\s*([A-Z0-9]{6,12})"
    r"|Passport\s*:\s*([A-Z0-9]{6,12})",
    re.IGNORECASE,
)
PASSPORT_NUMBER_FALLBACK = re.compile(r"\b([A-Z]{1,2}\d{6,9})\b")
DATE_PATTERN = re.compile(r"(\d{1,2}[/.-]\d{1,2}[/.-]\d{2,4}|\d{4}[/.-]\d{1,2}[/.-]\d{1,2})")
DATE_FORMATS = ("%d/%m/%Y", "%d-%m-%Y", "%d.%m.%Y", "%Y/%m/%d", "%Y-%m-%d")

CHEQUE_NUMBER_PATTERN = re.compile(
    r"(?:Cheque\s*(?:No\.?|Number|#)?|CHQ|Check\s*No\.?)\s*:?\s*(\d{6,12})", re.IGNORECASE
)
CHEQUE_NUMBER_FALLBACK = re.compile(r"\b(\d{6,12})\b")
AMOUNT_PATTERN = re.compile(r"(?:AED|Dhs?\.?|Dirhams?)?\s*([\d,]+(?:\.\d{2})?)", re.IGNORECASE)
MIN_CHEQUE_AMOUNT = Decimal("100")
MAX_CHEQUE_AMOUNT = Decimal("10000000")

NATIONALITY_KEYWORDS = ("NATIONALITY", "NATIONAL", "CITIZEN OF", "COUNTRY", "CITIZENSHIP")
NAME_KEYWORDS = ("NAME", "GIVEN NAMES", "SURNAME", "FAMILY NAME", "FULL NAME", "الاسم")
DOB_KEYWORDS = ("DATE OF BIRTH", "DOB", "BIRTH DATE", "BORN", "D.O.B", "تاريخ الميلاد")
EXPIRY_KEYWORDS = (
    "DATE OF EXPIRY",
    "EXPIRY",
    "VALID UNTIL",
    "EXPIRES",
    "EXP DATE",
    "تنتهي صلاحيته",
    "تاريخ الانتهاء",
    "DATE D'EXPIRATION",
)
NON_NAME_WORDS = ("PASSPORT", "EMIRATES", "UNITED", "AUTHORITY", "GOVERNMENT", "IDENTITY")
CHEQUE_LABEL_WORDS = ("DATE", "AMOUNT", "PAY TO", "A/C", "CHEQUE", "BANK")

KNOWN_NATIONALITIES = (
    "EMIRATI", "INDIAN", "PAKISTANI", "FILIPINO", "EGYPTIAN", "BANGLADESHI",
    "BRITISH", "AMERICAN", "CANADIAN", "AUSTRALIAN", "FRENCH", "GERMAN",
    "CHINESE", "JAPANESE", "KOREAN", "INDONESIAN", "MALAYSIAN", "THAI",
    "JORDANIAN", "LEBANESE", "SYRIAN", "IRAQI", "IRANIAN", "SAUDI",
    "KUWAITI", "QATARI", "BAHRAINI", "OMANI", "YEMENI", "SUDANESE",
    "MOROCCAN", "TUNISIAN", "ALGERIAN", "NIGERIAN", "SOUTH AFRICAN",
    "RUSSIAN", "UKRAINIAN", "POLISH", "ITALIAN", "SPANISH", "PORTUGUESE",
    "DUTCH", "BELGIAN", "SWISS", "AUSTRIAN", "SWEDISH", "NORWEGIAN",
    "DANISH", "FINNISH", "IRISH", "SCOTTISH", "WELSH", "NEW ZEALANDER",
)

UAE_BANKS = (
    "Emirates NBD", "ENBD", "Abu Dhabi Commercial Bank", "ADCB",
    "First Abu Dhabi Bank", "FAB", "Dubai Islamic Bank", "DIB",
    "Mashreq", "Commercial Bank of Dubai", "CBD", "RAK Bank",
    "RAKBANK", "Sharjah Islamic Bank", "SIB", "Emirates Islamic",
    "Abu Dhabi Islamic Bank", "ADIB", "National Bank of Fujairah",
    "NBF", "United Arab Bank", "UAB", "Arab Bank", "HSBC", "Citibank",
    "Standard Chartered", "Barclays",
)

_NATIONALITY_RE = re.compile(r"^[A-Za-z\s-]+$")
_NAME_RE = re.compile(r"^[^\W\d_]+(?:[\s\-'][^\W\d_]*)*$")
_UNSAFE_CHARS = re.compile(r"[<>\"'&;`]")


def parse_date(value: str) -> Optional[date]:
    for fmt in DATE_FORMATS:
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    return None


def title_case(value: str) -> str:
    return " ".join(word.capitalize() for word in value.lower().split())


def sanitize(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return _UNSAFE_CHARS.sub("", value).strip()


def is_valid_nationality(value: Optional[str]) -> bool:
    return bool(value) and 3 <= len(value) <= 30 and bool(_NATIONALITY_RE.match(value))


def is_valid_name(value: Optional[str]) -> bool:
    return bool(value) and 2 <= len(value) <= 100 and bool(_NAME_RE.match(value))


def value_after_keyword(line: str, keyword: str) -> Optional[str]:
    """``"Nationality: British"`` -> ``"British"``"""
    index = line.upper().find(keyword.upper())
    if index < 0:
        return None
    after = re.sub(r"^[:\s]+", "", line[index + len(keyword) :].strip()).strip()
    if not after:
        return None
    first = re.split(r"[,;/|]", after)[0].strip()
    return first or None


def value_after_colon(line: str) -> Optional[str]:
    """``"Pay To: John Doe"`` -> ``"John Doe"``"""
    colon = line.find(":")
    if 0 < colon < len(line) - 1:
        return line[colon + 1 :].strip() or None
    return None


class IdentityDocumentService(SessionManagedService):
    def __init__(
        self,
        session: Optional[Session] = None,
        text_detector: Optional[TextDetectionClient] = None,
        config: Optional[OcrConfig] = None,
        today: Callable[[], date] = date.today,
    ):
        super().__init__(logger=get_logger(), session=session)
        self.config = config or get_config().ocr
        self.text_detector = text_detector or TextractTextDetectionClient(config=self.config)
        self.today = today

    # Identity documents

    def _validate_files(self, files: Iterable[Optional[UploadedFile]]) -> None:
        allowed = {t.lower() for t in self.config.allowed_content_types}
        for upload in files:
            if upload is None:
                continue
            if (upload.content_type or "").lower() not in allowed:
                raise ValidationError(
                    f"Invalid file format for {upload.file_name}. "
                    "Only JPEG and PNG images are allowed.",
                    field="file",
                    error_code=ErrorCode.UNSUPPORTED_FILE_TYPE,
                    content_type=upload.content_type,
                )
            if upload.size > self.config.max_file_size_bytes:
                raise ValidationError(
                    f"File {upload.file_name} exceeds maximum size of 5MB.",
                    field="file",
                    error_code=ErrorCode.FILE_TOO_LARGE,
                    size=upload.size,
                )

    def _is_valid_expiry(self, value: date) -> bool:
        today = self.today()
        return add_months(today, -6) < value < add_months(today, 12 * 20)

    def _is_valid_birth_date(self, value: date) -> bool:
        today = self.today()
        return add_months(today, -12 * 120) < value < add_months(today, -12 * 16)

    def _keyword_date(
        self,
        lines: Sequence[str],
        keywords: Sequence[str],
        is_valid: Callable[[date], bool],
    ) -> Optional[date]:
        for i, line in enumerate(lines):
            upper = line.upper()
            for keyword in keywords:
                if keyword not in upper:
                    continue
                candidates = [upper] + ([lines[i + 1]] if i + 1 < len(lines) else [])
                for text in candidates:
                    match = DATE_PATTERN.search(text)
                    found = parse_date(match.group(1)) if match else None
                    if found is not None and is_valid(found):
                        return found
        return None

    def _all_valid_dates(self, raw_text: str, is_valid: Callable[[date], bool]) -> List[date]:
        dates = (parse_date(m.group(1)) for m in DATE_PATTERN.finditer(raw_text))
        return [d for d in dates if d is not None and is_valid(d)]

    def extract_expiry_date(self, raw_text: str, lines: Sequence[str]) -> Optional[str]:
        found = self._keyword_date(lines, EXPIRY_KEYWORDS, self._is_valid_expiry)
        if found is None:
            # the latest plausible date on a card is usually its expiry
            candidates = self._all_valid_dates(raw_text, self._is_valid_expiry)
            found = max(candidates) if candidates else None
        return found.isoformat() if found else None

    def extract_date_of_birth(self, raw_text: str, lines: Sequence[str]) -> Optional[str]:
        found = self._keyword_date(lines, DOB_KEYWORDS, self._is_valid_birth_date)
        if found is None:
            candidates = self._all_valid_dates(raw_text, self._is_valid_birth_date)
            found = min(candidates) if candidates else None
        return found.isoformat() if found else None

    @staticmethod
    def extract_passport_number(raw_text: str) -> Optional[str]:
        match = PASSPORT_NUMBER_PATTERN.search(raw_text)
        if match:
            number = match.group(1) or match.group(2)
            if number:
                return sanitize(number.upper())
        fallback = PASSPORT_NUMBER_FALLBACK.search(raw_text)
        return sanitize(fallback.group(1).upper()) if fallback else None

    @staticmethod
    def extract_emirates_id_number(raw_text: str) -> Optional[str]:
        match = EMIRATES_ID_PATTERN.search(raw_text)
        if not match:
            return None
        digits = re.sub(r"[\s-]", "", match.group(1))
        if len(digits) == 15:
            return f"{digits[:3]}-{digits[3:7]}-{digits[7:14]}-{digits[14]}"
        return sanitize(digits)

    @staticmethod
    def extract_nationality(raw_text: str, lines: Sequence[str]) -> Optional[str]:
        for i, line in enumerate(lines):
            upper = line.upper()
            for keyword in NATIONALITY_KEYWORDS:
                if keyword not in upper:
                    continue
                value = value_after_keyword(line, keyword)
                if is_valid_nationality(value):
                    return sanitize(title_case(value))
                if i + 1 < len(lines) and is_valid_nationality(lines[i + 1].strip()):
                    return sanitize(title_case(lines[i + 1].strip()))

        upper_text = raw_text.upper()
        for nationality in KNOWN_NATIONALITIES:
            if nationality in upper_text:
                return title_case(nationality)
        return None

    @staticmethod
    def extract_full_name(lines: Sequence[str]) -> Optional[str]:
        for i, line in enumerate(lines):
            upper = line.upper()
            for keyword in NAME_KEYWORDS:
                if keyword not in upper:
                    continue
                value = value_after_keyword(line, keyword)
                if is_valid_name(value):
                    return sanitize(title_case(value))
                if i + 1 < len(lines) and is_valid_name(lines[i + 1].strip()):
                    return sanitize(title_case(lines[i + 1].strip()))

        for line in lines:
            candidate = line.strip()
            if not is_valid_name(candidate) or len(candidate.split()) < 2:
                continue
            if any(word in candidate.upper() for word in NON_NAME_WORDS):
                continue
            return sanitize(title_case(candidate))
        return None

    def _process_identity_document(
        self, document_type: str, front: Optional[UploadedFile], label: str
    ) -> DocumentExtractionDetail:
        lines: List[str] = []
        if front is not None:
            try:
                lines = self.text_detector.detect_lines(front.content)
            except Exception as e:
                self.logger.error(f"Failed to process {label} front: {e}")
                lines = []

        raw_text = " ".join(lines)
        if not raw_text.strip():
            return DocumentExtractionDetail(
                document_type=document_type,
                status=ExtractionStatus.FAILED,
                message=f"No text could be extracted from {label} images",
            )

        if document_type == PASSPORT:
            number = self.extract_passport_number(raw_text)
        else:
            number = self.extract_emirates_id_number(raw_text)
        fields = ExtractedIdentityFields(
            document_number=number,
            expiry_date=self.extract_expiry_date(raw_text, lines),
            nationality=self.extract_nationality(raw_text, lines),
            full_name=self.extract_full_name(lines),
            date_of_birth=self.extract_date_of_birth(raw_text, lines),
        )

        found = sum(1 for value in fields.model_dump().values() if value is not None)
        confidence = found / 5 * 100
        if confidence >= 70:
            status, message = ExtractionStatus.SUCCESS, None
        elif found >= 2:
            status = ExtractionStatus.PARTIAL
            message = f"Some {label} fields could not be extracted. Please verify and complete."
        else:
            status = ExtractionStatus.FAILED
            message = f"Limited text extracted from {label}. Please enter details manually."

        self.logger.info(
            f"Processed {label}: status={status.value}, fields_found={found}",
            extra={"document_type": document_type, "confidence": confidence},
        )
        return DocumentExtractionDetail(
            document_type=document_type,
            status=status,
            confidence=confidence,
            fields=fields,
            raw_text=raw_text,
            message=message,
        )

    @operation()
    def process_identity_documents(
        self,
        passport_front: Optional[UploadedFile] = None,
        passport_back: Optional[UploadedFile] = None,
        emirates_id_front: Optional[UploadedFile] = None,
        emirates_id_back: Optional[UploadedFile] = None,
    ) -> IdentityExtractionResult:
        """
        Extract identity fields from passport and Emirates ID scans.

        Only the front sides are read; back sides are validated and ignored.

        Raises:
            ValidationError: nothing uploaded, wrong image type or over 5MB
        """
        uploads = (passport_front, passport_back, emirates_id_front, emirates_id_back)
        if all(upload is None for upload in uploads):
            raise ValidationError("At least one identity document must be provided")
        self._validate_files(uploads)

        passport = None
        if passport_front is not None or passport_back is not None:
            passport = self._process_identity_document(PASSPORT, passport_front, "passport")
        emirates_id = None
        if emirates_id_front is not None or emirates_id_back is not None:
            emirates_id = self._process_identity_document(
                EMIRATES_ID, emirates_id_front, "Emirates ID"
            )

        provided = [detail for detail in (passport, emirates_id) if detail is not None]
        if all(detail.status == ExtractionStatus.SUCCESS for detail in provided):
            status = ProcessingStatus.SUCCESS
            message = "All documents processed successfully. Please verify the extracted details."
        elif len(provided) == 2 and all(d.status == ExtractionStatus.FAILED for d in provided):
            status = ProcessingStatus.FAILED
            message = "Failed to process documents. Please enter details manually."
        else:
            status = ProcessingStatus.PARTIAL_SUCCESS
            message = "Some fields could not be extracted. Please verify and complete missing details."

        def first_found(field: str) -> Optional[str]:
            for detail in provided:
                value = getattr(detail.fields, field)
                if value:
                    return value
            return None

        return IdentityExtractionResult(
            status=status,
            message=message,
            passport_number=passport.fields.document_number if passport else None,
            passport_expiry_date=passport.fields.expiry_date if passport else None,
            emirates_id_number=emirates_id.fields.document_number if emirates_id else None,
            emirates_id_expiry_date=emirates_id.fields.expiry_date if emirates_id else None,
            full_name=first_found("full_name"),
            nationality=first_found("nationality"),
            date_of_birth=first_found("date_of_birth"),
            passport_details=passport,
            emirates_id_details=emirates_id,
        )

    # Cheques

    @staticmethod
    def extract_bank_name(lines: Sequence[str]) -> Optional[str]:
        for line in lines:
            upper = line.upper()
            for bank in UAE_BANKS:
                if bank.upper() in upper:
                    return bank
        return None

    @staticmethod
    def extract_cheque_number(raw_text: str) -> Optional[str]:
        match = CHEQUE_NUMBER_PATTERN.search(raw_text) or CHEQUE_NUMBER_FALLBACK.search(raw_text)
        return match.group(1) if match else None

    @staticmethod
    def extract_amount(raw_text: str) -> Optional[Decimal]:
        """Largest amount in the plausible cheque range."""
        largest = None
        for match in AMOUNT_PATTERN.finditer(raw_text):
            try:
                amount = Decimal(match.group(1).replace(",", ""))
            except InvalidOperation:
                continue
            if MIN_CHEQUE_AMOUNT <= amount <= MAX_CHEQUE_AMOUNT and (
                largest is None or amount > largest
            ):
                largest = amount
        return largest

    def extract_cheque_date(self, raw_text: str) -> Optional[date]:
        today = self.today()
        for match in DATE_PATTERN.finditer(raw_text):
            found = parse_date(match.group(1))
            if found is not None and add_months(today, -12) < found < add_months(today, 24):
                return found
        return None

    @staticmethod
    def _labelled_value(lines: Sequence[str], labels: Sequence[str]) -> Optional[str]:
        for i, line in enumerate(lines):
            upper = line.upper()
            if not any(label in upper for label in labels):
                continue
            value = value_after_colon(line)
            if value:
                return value
            if i + 1 < len(lines):
                next_line = lines[i + 1].strip()
                if next_line and not any(w in next_line.upper() for w in CHEQUE_LABEL_WORDS):
                    return next_line
        return None

    def _process_cheque(self, upload: UploadedFile, index: int) -> ChequeDetail:
        try:
            lines = self.text_detector.detect_lines(upload.content)
        except Exception as e:
            self.logger.error(f"Text extraction failed for cheque {upload.file_name}: {e}")
            return ChequeDetail(
                cheque_index=index,
                file_name=upload.file_name,
                status=ExtractionStatus.FAILED,
                message=f"Text extraction failed: {e}",
            )

        raw_text = "\n".join(lines)
        detail = ChequeDetail(
            cheque_index=index,
            file_name=upload.file_name,
            status=ExtractionStatus.PARTIAL,
            bank_name=self.extract_bank_name(lines),
            cheque_number=self.extract_cheque_number(raw_text),
            amount=self.extract_amount(raw_text),
            cheque_date=self.extract_cheque_date(raw_text),
            pay_to=self._labelled_value(lines, ("PAY TO", "PAYEE", "PAY:")),
            cheque_from=self._labelled_value(lines, ("A/C", "ACCOUNT", "NAME:")),
        )
        found = sum(
            1
            for value in (
                detail.bank_name,
                detail.cheque_number,
                detail.amount,
                detail.cheque_date,
                detail.pay_to,
                detail.cheque_from,
            )
            if value is not None
        )
        detail.confidence = found / 6 * 100
        if found >= 4:
            detail.status = ExtractionStatus.SUCCESS
        elif found >= 2:
            detail.message = "Some fields could not be extracted. Please verify and complete."
        else:
            detail.message = "Limited text extracted. Please enter details manually."
        return detail

    @operation()
    def process_cheque_images(
        self, cheque_images: Sequence[UploadedFile], quotation_id: str
    ) -> ChequeProcessingResult:
        """
        Read the post-dated cheques collected for an accepted quotation.

        Raises:
            RepositoryError: quotation not found
        """
        quotation = self.session.get(Quotation, quotation_id) if quotation_id else None
        if quotation is None:
            raise not_found("Quotation", quotation_id=quotation_id)

        expected = quotation.number_of_cheques or Limits.DEFAULT_CHEQUE_COUNT
        received = len(cheque_images)
        if received != expected:
            self.logger.warning(f"Cheque count mismatch: expected {expected}, received {received}")
            cash_note = (
                " (First payment will be by cash)"
                if quotation.first_month_payment_method == PaymentMethod.CASH.value
                else ""
            )
            return ChequeProcessingResult(
                status=ProcessingStatus.VALIDATION_ERROR,
                message=(
                    f"Expected {expected} cheques but received {received}.{cash_note} "
                    f"Please upload exactly {expected} cheque images."
                ),
                expected_cheque_count=expected,
                received_cheque_count=received,
            )

        cheques = [self._process_cheque(upload, i) for i, upload in enumerate(cheque_images, 1)]
        readable = [c for c in cheques if c.status != ExtractionStatus.FAILED]
        failed = len(cheques) - len(readable)
        total = sum((c.amount for c in readable if c.amount is not None), Decimal("0"))

        if failed == 0:
            status = ProcessingStatus.SUCCESS
            message = "All cheques processed successfully. Please verify the extracted details."
        elif readable:
            status = ProcessingStatus.PARTIAL_SUCCESS
            message = (
                f"{failed} of {received} cheques need review. "
                "Please verify and complete the missing details."
            )
        else:
            status = ProcessingStatus.PROCESSING_ERROR
            message = "Failed to process cheques. Please try again or enter details manually."

        self.logger.info(
            f"Processed cheques: quotation_id={quotation_id}, successful={len(readable)}, "
            f"failed={failed}, total={total}"
        )
        return ChequeProcessingResult(
            status=status,
            message=message,
            expected_cheque_count=expected,
            received_cheque_count=received,
            successful_count=len(readable),
            failed_count=failed,
            total_amount=total,
            cheques=cheques,
        )
