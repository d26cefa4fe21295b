from __future__ import annotations

from dataclasses import dataclass
import io
import logging
import shutil
from typing import Literal

import fitz
from PIL import Image, UnidentifiedImageError
import pytesseract

from rfm_intake.services.file_store import RawFile

LOGGER = logging.getLogger(__name__)

PDF_TEXT_LAYER_CONFIDENCE = 99.0

ExtractionMethod = Literal["pdf_text", "pdf_ocr", "image_ocr", "unsupported", "unavailable"]


@dataclass(frozen=True)
class ExtractedText:
    text: str
    confidence: float
    method: ExtractionMethod
    ocr_pages: int = 0

    @property
    def is_empty(self) -> bool:
        return not self.text.strip()


def _normalize_signature(payload_bytes: bytes) -> bytes:
    normalized = payload_bytes.lstrip(b"\x00\t\r\n\f ")
    if normalized.startswith(b"\xef\xbb\xbf"):
        return normalized[3:]
    return normalized


def _looks_like_pdf(payload_bytes: bytes) -> bool:
    normalized = _normalize_signature(payload_bytes)
    return normalized.startswith(b"%PDF-") or b"%PDF-" in normalized[:16]


def is_pdf(raw_file: RawFile) -> bool:
    return raw_file.content_type.lower() == "application/pdf" or raw_file.name.lower().endswith(".pdf")


def is_image(raw_file: RawFile) -> bool:
    return raw_file.content_type.lower().startswith("image/")


def is_text_bearing(raw_file: RawFile) -> bool:
    return is_pdf(raw_file) or is_image(raw_file)


def _word_confidences(image: Image.Image) -> list[float]:
    data = pytesseract.image_to_data(image, output_type=pytesseract.Output.DICT)
    confidences: list[float] = []
    for raw_conf in data.get("conf", []):
        try:
            value = float(raw_conf)
        except (TypeError, ValueError):
            continue
        if value >= 0:
            confidences.append(value)
    return confidences


def _mean(values: list[float]) -> float:
    if not values:
        return 0.0
    return sum(values) / len(values)


class TextExtractor:
    """Acquire plain text from uploaded PDFs and images.

    PDFs use the embedded text layer first. Pages without one, and image
    uploads, go through Tesseract when it is enabled and installed.
    """

    def __init__(self, *, enable_ocr: bool = True, ocr_page_limit: int = 16) -> None:
        self._enable_ocr = enable_ocr
        self._ocr_page_limit = max(ocr_page_limit, 0)

    @property
    def ocr_available(self) -> bool:
        return self._enable_ocr and shutil.which("tesseract") is not None

    def extract(self, raw_file: RawFile) -> ExtractedText:
        if not raw_file.payload_bytes:
            raise ValueError("empty payload")
        if is_pdf(raw_file):
            return self._extract_pdf(raw_file.payload_bytes)
        if is_image(raw_file):
            return self._extract_image(raw_file.payload_bytes)
        return ExtractedText(text="", confidence=0.0, method="unsupported")

    def _ocr_image(self, image: Image.Image) -> tuple[str, list[float]]:
        text = str(pytesseract.image_to_string(image) or "")
        return text, _word_confidences(image)

    def _extract_image(self, payload_bytes: bytes) -> ExtractedText:
        if not self.ocr_available:
            return ExtractedText(text="", confidence=0.0, method="unavailable")
        try:
            with Image.open(io.BytesIO(payload_bytes)) as image:
                image.load()
                text, confidences = self._ocr_image(image)
        except (UnidentifiedImageError, OSError) as exc:
            raise ValueError("unreadable_image_payload") from exc
        return ExtractedText(text=text.strip(), confidence=_mean(confidences), method="image_ocr")

    def _ocr_pdf_page(self, page: fitz.Page) -> tuple[str, list[float]]:
        # Render at 2x to improve OCR quality on scanned uploads.
        image_bytes = page.get_pixmap(matrix=fitz.Matrix(2, 2), alpha=False).tobytes("png")
        with Image.open(io.BytesIO(image_bytes)) as image:
            return self._ocr_image(image)

    def _extract_pdf(self, payload_bytes: bytes) -> ExtractedText:
        if not _looks_like_pdf(payload_bytes):
            raise ValueError("unreadable_document_payload")
        try:
            document = fitz.open(stream=payload_bytes, filetype="pdf")
        except Exception as exc:
            raise ValueError("unreadable_document_payload") from exc

        fragments: list[str] = []
        ocr_confidences: list[float] = []
        ocr_pages = 0
        can_ocr = self.ocr_available
        try:
            for page_index in range(document.page_count):
                try:
                    page = document.load_page(page_index)
                    page_text = page.get_text("text") or ""
                except Exception as exc:
                    raise ValueError("unreadable_document_payload") from exc

                if not page_text.strip() and can_ocr and ocr_pages < self._ocr_page_limit:
                    try:
                        ocr_text, confidences = self._ocr_pdf_page(page)
                    except (pytesseract.TesseractError, OSError):
                        LOGGER.warning(
                            "OCR failed for PDF page",
                            extra={"page_number": page_index + 1},
                            exc_info=True,
                        )
                        ocr_text, confidences = "", []
                    ocr_pages += 1
                    ocr_confidences.extend(confidences)
                    page_text = ocr_text.strip()

                if page_text.strip():
                    fragments.append(page_text)
        finally:
            document.close()

        text = "\n".join(fragments)
        if ocr_pages:
            return ExtractedText(
                text=text,
                confidence=_mean(ocr_confidences),
                method="pdf_ocr",
                ocr_pages=ocr_pages,
            )
        return ExtractedText(text=text, confidence=PDF_TEXT_LAYER_CONFIDENCE, method="pdf_text")


__all__ = [
    "PDF_TEXT_LAYER_CONFIDENCE",
    "ExtractedText",
    "TextExtractor",
    "is_image",
    "is_pdf",
    "is_text_bearing",
]
