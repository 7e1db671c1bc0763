"""
Tests for IdentityDocumentService.

Text detection is mocked: each uploaded file's bytes map to the lines the
detector "reads" from it. "Today" is 2026-03-18.
"""

from datetime import date
from decimal import Decimal
from unittest.mock import Mock

import pytest

from property_core.config import OcrConfig
from property_core.enums import ExtractionStatus, PaymentMethod, ProcessingStatus
from property_core.exceptions import ErrorCode, ExternalServiceError, RepositoryError, ValidationError
from property_core.schemas.identity_schema import UploadedFile
from property_core.services.identity_document_service import IdentityDocumentService
from property_core.utils.ocr_client import TextDetectionClient
from tests.fixtures.factories import QuotationFactory

PASSPORT_LINES = [
    "Passport No: N1234567",
    "Name: JOHN SMITH",
    "Nationality: British",
    "Date of Birth: 15/06/1985",
    "Date of Expiry: 20/05/2030",
]
EMIRATES_ID_LINES = [
    "784-1985-1234567-1",
    "Name: Jane Doe",
    "Expiry Date: 01/01/2029",
]
GOOD_CHEQUE_LINES = [
    "Emirates NBD",
    "Cheque No: 004512",
    "Date: 01/04/2026",
    "Pay To: Marina Heights LLC",
    "AED 60,000.00",
    "A/C Name: John Smith",
]
SPARSE_CHEQUE_LINES = ["RAK Bank", "AED 60,000.00"]


def _image(name, content, content_type="image/jpeg"):
    return UploadedFile(file_name=name, content_type=content_type, content=content)


@pytest.fixture
def pages():
    """Bytes -> detected lines; bytes not listed make the detector fail."""
    return {
        b"passport-front": PASSPORT_LINES,
        b"eid-front": EMIRATES_ID_LINES,
        b"cheque-1": GOOD_CHEQUE_LINES,
        b"cheque-2": SPARSE_CHEQUE_LINES,
    }


@pytest.fixture
def text_detector(pages):
    def _detect(content):
        if content not in pages:
            raise ExternalServiceError("Text detection failed", service_name="textract")
        return pages[content]

    detector = Mock(spec=TextDetectionClient)
    detector.detect_lines.side_effect = _detect
    return detector


@pytest.fixture
def identity_service(db_session, text_detector):
    return IdentityDocumentService(
        session=db_session,
        text_detector=text_detector,
        config=OcrConfig(),
        today=lambda: date(2026, 3, 18),
    )


class TestIdentityDocuments:
    def test_passport_fully_extracted(self, identity_service):
        result = identity_service.process_identity_documents(
            passport_front=_image("front.jpg", b"passport-front")
        )

        assert result.status == ProcessingStatus.SUCCESS
        assert result.passport_number == "N1234567"
        assert result.passport_expiry_date == "2030-05-20"
        assert result.full_name == "John Smith"
        assert result.nationality == "British"
        assert result.date_of_birth == "1985-06-15"
        assert result.passport_details.confidence == 100.0
        assert result.emirates_id_details is None

    def test_both_documents(self, identity_service):
        result = identity_service.process_identity_documents(
            passport_front=_image("front.jpg", b"passport-front"),
            emirates_id_front=_image("eid.png", b"eid-front", "image/png"),
        )

        assert result.status == ProcessingStatus.PARTIAL_SUCCESS
        assert result.emirates_id_number == "784-1985-1234567-1"
        assert result.emirates_id_expiry_date == "2029-01-01"
        # passport values win where both documents carry a field
        assert result.full_name == "John Smith"
        details = result.emirates_id_details
        assert details.status == ExtractionStatus.PARTIAL
        assert details.confidence == 60.0
        assert details.fields.full_name == "Jane Doe"
        assert details.fields.date_of_birth is None

    def test_back_only_is_read_as_empty(self, identity_service, text_detector):
        result = identity_service.process_identity_documents(
            emirates_id_back=_image("back.jpg", b"eid-back")
        )

        text_detector.detect_lines.assert_not_called()
        assert result.emirates_id_details.status == ExtractionStatus.FAILED
        assert result.emirates_id_details.message == (
            "No text could be extracted from Emirates ID images"
        )

    def test_both_unreadable(self, identity_service):
        result = identity_service.process_identity_documents(
            passport_front=_image("front.jpg", b"blurry-1"),
            emirates_id_front=_image("eid.jpg", b"blurry-2"),
        )

        assert result.status == ProcessingStatus.FAILED
        assert result.message == "Failed to process documents. Please enter details manually."

    def test_nothing_uploaded(self, identity_service):
        with pytest.raises(ValidationError) as exc_info:
            identity_service.process_identity_documents()

        assert exc_info.value.message == "At least one identity document must be provided"

    def test_rejects_pdf(self, identity_service):
        with pytest.raises(ValidationError) as exc_info:
            identity_service.process_identity_documents(
                passport_front=_image("scan.pdf", b"passport-front", "application/pdf")
            )

        assert exc_info.value.error_code == ErrorCode.UNSUPPORTED_FILE_TYPE

    def test_rejects_large_image(self, identity_service):
        with pytest.raises(ValidationError) as exc_info:
            identity_service.process_identity_documents(
                passport_back=_image("back.jpg", b"x" * (5 * 1024 * 1024 + 1))
            )

        assert exc_info.value.error_code == ErrorCode.FILE_TOO_LARGE


class TestFieldExtraction:
    @pytest.mark.parametrize(
        "text,expected",
        [
            ("Passport Number: ab123456", "AB123456"),
            ("Surname DOE P 12345678", None),
            ("Document K9876543 issued", "K9876543"),
        ],
    )
    def test_passport_number(self, text, expected):
        assert IdentityDocumentService.extract_passport_number(text) == expected

    @pytest.mark.parametrize(
        "text,expected",
        [
            ("ID 784 1990 7654321 2", "784-1990-7654321-2"),
            ("784199076543212", "784-1990-7654321-2"),
            ("no number here", None),
        ],
    )
    def test_emirates_id_number(self, text, expected):
        assert IdentityDocumentService.extract_emirates_id_number(text) == expected

    def test_nationality_on_next_line(self):
        lines = ["NATIONALITY", "INDIAN"]

        assert IdentityDocumentService.extract_nationality("NATIONALITY INDIAN", lines) == "Indian"

    def test_implausible_expiry_is_ignored(self, identity_service):
        lines = ["Expiry: 01/01/2001"]

        assert identity_service.extract_expiry_date(" ".join(lines), lines) is None


class TestChequeImages:
    def test_all_cheques_readable(self, identity_service):
        quotation = QuotationFactory()

        result = identity_service.process_cheque_images(
            [_image("c1.jpg", b"cheque-1"), _image("c2.jpg", b"cheque-2")], quotation.id
        )

        assert result.status == ProcessingStatus.SUCCESS
        assert (result.successful_count, result.failed_count) == (2, 0)
        assert result.total_amount == Decimal("120000")

        first, second = result.cheques
        assert first.status == ExtractionStatus.SUCCESS
        assert first.bank_name == "Emirates NBD"
        assert first.cheque_number == "004512"
        assert first.amount == Decimal("60000")
        assert first.cheque_date == date(2026, 4, 1)
        assert first.pay_to == "Marina Heights LLC"
        assert first.cheque_from == "John Smith"
        assert second.status == ExtractionStatus.PARTIAL
        assert second.bank_name == "RAK Bank"
        assert second.cheque_number is None

    def test_unreadable_cheque(self, identity_service):
        quotation = QuotationFactory()

        result = identity_service.process_cheque_images(
            [_image("c1.jpg", b"cheque-1"), _image("c2.jpg", b"smudged")], quotation.id
        )

        assert result.status == ProcessingStatus.PARTIAL_SUCCESS
        assert result.failed_count == 1
        assert result.total_amount == Decimal("60000")
        assert result.cheques[1].status == ExtractionStatus.FAILED
        assert result.message.startswith("1 of 2 cheques need review.")

    def test_cheque_count_mismatch(self, identity_service):
        quotation = QuotationFactory(first_month_payment_method=PaymentMethod.CASH)

        result = identity_service.process_cheque_images(
            [_image("c1.jpg", b"cheque-1")], quotation.id
        )

        assert result.status == ProcessingStatus.VALIDATION_ERROR
        assert (result.expected_cheque_count, result.received_cheque_count) == (2, 1)
        assert "(First payment will be by cash)" in result.message
        assert result.cheques == []

    def test_unknown_quotation(self, identity_service):
        with pytest.raises(RepositoryError) as exc_info:
            identity_service.process_cheque_images([], "missing")

        assert exc_info.value.error_code == ErrorCode.NOT_FOUND
