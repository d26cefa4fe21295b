from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Literal, Protocol

from starlette.concurrency import run_in_threadpool

from rfm_intake.schemas import (
    ChecklistItem,
    DocTypeDetectionResult,
    ParsedMDF,
    ParsedTradeLicense,
    UploadedFile,
    UploadOutcomeView,
)
from rfm_intake.services.case_repository import (
    CaseRepository,
    DocumentRecord,
    ShareholderDocumentRecord,
    call_repository,
)
from rfm_intake.services.doc_type_detector import detect_document_type, has_expected_doc_types
from rfm_intake.services.document_extraction import ExtractedText, TextExtractor, is_text_bearing
from rfm_intake.services.file_store import RawFile, ShareholderDocKey, SlotKey, StoreKey
from rfm_intake.services.mdf_parser import parse_mdf_text
from rfm_intake.services.trade_license_parser import parse_trade_license_text
from rfm_intake.telemetry.intake_metrics import IntakeMetrics


LOGGER = logging.getLogger(__name__)

MDF_SLOT_ID = "mdf"
TRADE_LICENSE_SLOT_ID = "trade-license"

ParsedKind = Literal["mdf", "trade_license"]


class ExtractionSink(Protocol):
    @property
    def case_id(self) -> str: ...

    def find_item(self, slot_id: str) -> ChecklistItem: ...

    def replace_mdf_extraction(self, parsed: ParsedMDF, confidence: float) -> None: ...

    def replace_trade_license_extraction(
        self,
        parsed: ParsedTradeLicense,
        confidence: float,
    ) -> None: ...


@dataclass
class UploadOutcome:
    upload_id: str
    key: StoreKey
    file_name: str
    storage_path: str | None = None
    extraction_confidence: float | None = None
    parsed_kind: ParsedKind | None = None
    detection: DocTypeDetectionResult | None = None
    error: str | None = None

    @property
    def is_doc_type_mismatch(self) -> bool:
        return self.detection is not None and not self.detection.is_match

    def to_view(self) -> UploadOutcomeView:
        return UploadOutcomeView(
            upload_id=self.upload_id,
            file_name=self.file_name,
            storage_path=self.storage_path,
            extraction_confidence=self.extraction_confidence,
            parsed_kind=self.parsed_kind,
            detection=self.detection,
            error=self.error,
        )


def storage_folder_for(key: StoreKey) -> str:
    if isinstance(key, ShareholderDocKey):
        return f"kyc/{key.shareholder_id}"
    return key.slot_id


def needs_text(key: StoreKey, raw_file: RawFile) -> bool:
    if not isinstance(key, SlotKey):
        return False
    slot_id = key.slot_id
    wants_text = slot_id in (MDF_SLOT_ID, TRADE_LICENSE_SLOT_ID) or has_expected_doc_types(slot_id)
    return wants_text and is_text_bearing(raw_file)


class UploadPipeline:
    """Best-effort post-upload processing for one file.

    Storage, text acquisition, parsing and document-type detection each run
    in their own guard; a failure is recorded on the outcome and processing
    moves on. Nothing here raises into the caller.
    """

    def __init__(
        self,
        *,
        repository: CaseRepository,
        extractor: TextExtractor,
        metrics: IntakeMetrics | None = None,
    ) -> None:
        self.repository = repository
        self.extractor = extractor
        self.metrics = metrics or IntakeMetrics()

    async def process(
        self,
        session: ExtractionSink,
        key: StoreKey,
        upload: UploadedFile,
        raw_file: RawFile,
    ) -> UploadOutcome:
        outcome = UploadOutcome(upload_id=upload.id, key=key, file_name=upload.name)
        case_id = session.case_id
        log_extra = {"case_id": case_id, "slot_key": key.display_id, "upload_id": upload.id}

        outcome.storage_path = await run_in_threadpool(
            call_repository,
            "upload_file",
            self.repository.upload_file,
            case_id,
            storage_folder_for(key),
            raw_file,
            case_id=case_id,
            metrics=self.metrics,
        )
        if outcome.storage_path:
            await run_in_threadpool(
                self._record_document,
                session,
                key,
                upload,
                outcome.storage_path,
            )

        if not isinstance(key, SlotKey) or not needs_text(key, raw_file):
            return outcome

        try:
            extracted: ExtractedText = await run_in_threadpool(self.extractor.extract, raw_file)
        except Exception as exc:
            LOGGER.warning("Text extraction failed", exc_info=True, extra=log_extra)
            self.metrics.increment("extraction_failed")
            outcome.error = f"extraction_failed: {exc}"
            return outcome
        outcome.extraction_confidence = extracted.confidence
        self.metrics.increment("extraction_completed")

        if not extracted.is_empty and key.slot_id in (MDF_SLOT_ID, TRADE_LICENSE_SLOT_ID):
            try:
                if key.slot_id == MDF_SLOT_ID:
                    session.replace_mdf_extraction(parse_mdf_text(extracted.text), extracted.confidence)
                    outcome.parsed_kind = "mdf"
                else:
                    session.replace_trade_license_extraction(
                        parse_trade_license_text(extracted.text),
                        extracted.confidence,
                    )
                    outcome.parsed_kind = "trade_license"
            except Exception as exc:
                LOGGER.warning("Structured parsing failed", exc_info=True, extra=log_extra)
                outcome.error = f"parse_failed: {exc}"

        if has_expected_doc_types(key.slot_id):
            try:
                outcome.detection = detect_document_type(extracted.text, key.slot_id)
            except Exception as exc:
                LOGGER.warning("Document type detection failed", exc_info=True, extra=log_extra)
                outcome.error = outcome.error or f"detection_failed: {exc}"
            if outcome.is_doc_type_mismatch:
                self.metrics.increment("doc_type_mismatch")

        return outcome

    def _record_document(
        self,
        session: ExtractionSink,
        key: StoreKey,
        upload: UploadedFile,
        storage_path: str,
    ) -> None:
        case_id = session.case_id
        if isinstance(key, ShareholderDocKey):
            call_repository(
                "add_shareholder_document",
                self.repository.add_shareholder_document,
                ShareholderDocumentRecord(
                    case_id=case_id,
                    shareholder_id=key.shareholder_id,
                    doc_type=key.doc_type,
                    file_name=upload.name,
                    file_size=upload.size,
                    storage_path=storage_path,
                ),
                case_id=case_id,
                metrics=self.metrics,
            )
            return
        try:
            item = session.find_item(key.slot_id)
        except KeyError:
            # The checklist was rebuilt while this upload was in flight.
            label, category = key.slot_id, ""
        else:
            label, category = item.label, item.category
        call_repository(
            "add_document",
            self.repository.add_document,
            DocumentRecord(
                case_id=case_id,
                item_id=key.slot_id,
                label=label,
                category=category,
                file_name=upload.name,
                file_size=upload.size,
                content_type=upload.content_type,
                storage_path=storage_path,
            ),
            case_id=case_id,
            metrics=self.metrics,
        )


__all__ = [
    "MDF_SLOT_ID",
    "TRADE_LICENSE_SLOT_ID",
    "ExtractionSink",
    "UploadOutcome",
    "UploadPipeline",
    "needs_text",
    "storage_folder_for",
]
