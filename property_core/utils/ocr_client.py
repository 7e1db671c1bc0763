"""Text detection for scanned identity documents and cheques."""

from abc import ABC, abstractmethod
from typing import Any, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from ..config import OcrConfig, get_config
from ..exceptions import ErrorCode, ExternalServiceError


class TextDetectionClient(ABC):
    @abstractmethod
    def detect_lines(self, image_bytes: bytes) -> List[str]:
        """Text lines found in the image, top to bottom."""


class TextractTextDetectionClient(TextDetectionClient):
    """AWS Textract ``DetectDocumentText``; only LINE blocks are kept."""

    def __init__(self, client: Optional[Any] = None, config: Optional[OcrConfig] = None):
        self.config = config or get_config().ocr
        self.client = client or boto3.client("textract", region_name=self.config.aws_region)

    def detect_lines(self, image_bytes: bytes) -> List[str]:
        try:
            response = self.client.detect_document_text(Document={"Bytes": image_bytes})
        except (BotoCoreError, ClientError) as e:
            raise ExternalServiceError(
                f"Text detection failed: {e}",
                service_name="textract",
                error_code=ErrorCode.OCR_ERROR,
                cause=e,
            ) from e
        return [
            block["Text"]
            for block in response.get("Blocks", [])
            if block.get("BlockType") == "LINE" and block.get("Text")
        ]
