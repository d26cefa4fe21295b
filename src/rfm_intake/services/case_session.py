from __future__ import annotations

import asyncio
from datetime import date
import logging
import re
from threading import Lock
import uuid

from rfm_intake.errors import CaseNotFoundError, ExportFailedError
from rfm_intake.policy.case_validation import validate_case
from rfm_intake.policy.checklist_templates import (
    BranchMode,
    CaseType,
    ChecklistSlotTemplate,
    active_conditional_keys,
    get_checklist_for_case,
    normalize_branch_mode,
    normalize_case_type,
)
from rfm_intake.policy.mdf_validation import validate_mdf_fields
from rfm_intake.schemas import (
    CaseStatus,
    ChecklistItem,
    DuplicateWarning,
    MDFValidationResult,
    MerchantInfo,
    ParsedMDF,
    ParsedTradeLicense,
    ShareholderKYC,
    UploadedFile,
    ValidationWarning,
)
from rfm_intake.services.archive_assembler import CasePackage, build_package
from rfm_intake.services.case_repository import CaseRecord, CaseRepository, call_repository
from rfm_intake.services.duplicate_detector import detect_duplicates
from rfm_intake.services.file_store import (
    RawFile,
    RawFileStore,
    ShareholderDocKey,
    SlotKey,
    StoreKey,
)
from rfm_intake.services.rename_engine import RenameMapping, generate_rename_mappings
from rfm_intake.services.upload_pipeline import UploadOutcome, UploadPipeline
from rfm_intake.telemetry.intake_metrics import IntakeMetrics


LOGGER = logging.getLogger(__name__)

SHAREHOLDER_DOC_TYPES: tuple[str, ...] = ("passport", "eid")

_CONDITIONAL_KEY = re.compile(r"^[A-Za-z][A-Za-z0-9_]{0,63}$")


def _new_id() -> str:
    return uuid.uuid4().hex


def _checklist_items(templates: list[ChecklistSlotTemplate]) -> list[ChecklistItem]:
    return [
        ChecklistItem(
            id=template.id,
            label=template.label,
            category=template.category.value,
            required=template.required,
            conditional_key=template.conditional_key,
            conditional_label=template.conditional_label,
            multi_file=template.multi_file,
            notes=list(template.notes),
            section_header=template.section_header,
        )
        for template in templates
    ]


def _uploaded_files(raw_files: list[RawFile]) -> list[UploadedFile]:
    return [
        UploadedFile(
            id=_new_id(),
            name=raw_file.name,
            size=raw_file.size,
            content_type=raw_file.content_type,
        )
        for raw_file in raw_files
    ]


def _index_of(files: list[UploadedFile], file_id: str) -> int:
    for index, uploaded in enumerate(files):
        if uploaded.id == file_id:
            return index
    raise KeyError(f"file {file_id!r} not found")


class CaseSession:
    """State of one case being assembled.

    Upload metadata on the checklist and shareholders mirrors the raw file
    store index for index. Post-upload work runs as one asyncio task per
    file; ``settle`` is the only way to wait for those results.
    """

    def __init__(
        self,
        *,
        case_id: str,
        merchant_info: MerchantInfo,
        pipeline: UploadPipeline,
        repository: CaseRepository,
        metrics: IntakeMetrics | None = None,
    ) -> None:
        self._case_id = case_id
        self.merchant_info = merchant_info
        self.pipeline = pipeline
        self.repository = repository
        self.metrics = metrics or pipeline.metrics
        self.status: CaseStatus = "draft"
        self.file_store = RawFileStore()
        self._templates: list[ChecklistSlotTemplate] = []
        self.checklist: list[ChecklistItem] = []
        self.conditionals: dict[str, bool] = {}
        self.shareholders: list[ShareholderKYC] = []
        self.mdf: ParsedMDF | None = None
        self.mdf_confidence: float | None = None
        self.trade_license: ParsedTradeLicense | None = None
        self.trade_license_confidence: float | None = None
        self._outcomes: dict[str, UploadOutcome] = {}
        self._pending: dict[str, tuple[StoreKey, asyncio.Task[UploadOutcome]]] = {}
        self._rebuild_checklist()

    @property
    def case_id(self) -> str:
        return self._case_id

    @property
    def conditional_options(self) -> list[tuple[str, str]]:
        return active_conditional_keys(self._templates)

    @property
    def outcomes(self) -> list[UploadOutcome]:
        return list(self._outcomes.values())

    @property
    def pending_count(self) -> int:
        return sum(1 for _, task in self._pending.values() if not task.done())

    def _call(self, action: str, operation, *args) -> object | None:
        return call_repository(action, operation, *args, case_id=self.case_id, metrics=self.metrics)

    def _case_record(self) -> CaseRecord:
        branch_mode = self.merchant_info.branch_mode
        return CaseRecord(
            case_id=self.case_id,
            legal_name=self.merchant_info.legal_name,
            dba=self.merchant_info.dba,
            case_type=self.merchant_info.case_type.value,
            branch_mode=branch_mode.value if branch_mode is not None else None,
            status=self.status,
            conditionals=dict(self.conditionals),
        )

    def persist_case(self) -> None:
        self._call("save_case", self.repository.save_case, self._case_record())

    def _persist_shareholders(self) -> None:
        self._call(
            "replace_shareholders",
            self.repository.replace_shareholders,
            self.case_id,
            list(self.shareholders),
        )

    def _set_status(self, status: CaseStatus) -> None:
        if self.status == status:
            return
        self.status = status
        self._call("update_case_status", self.repository.update_case_status, self.case_id, status)

    def _rebuild_checklist(self) -> None:
        self._templates = get_checklist_for_case(
            self.merchant_info.case_type,
            self.merchant_info.branch_mode,
        )
        self.checklist = _checklist_items(self._templates)

    def _cancel_pending(self) -> None:
        for _, task in self._pending.values():
            task.cancel()
        self._pending.clear()

    def _reset_case_state(self) -> None:
        self._cancel_pending()
        self._rebuild_checklist()
        self.conditionals = {}
        self.shareholders = []
        self.file_store.clear()
        self.mdf = None
        self.mdf_confidence = None
        self.trade_license = None
        self.trade_license_confidence = None
        self._outcomes.clear()

    # Merchant and conditionals

    def update_merchant(
        self,
        *,
        legal_name: str | None = None,
        dba: str | None = None,
        case_type: CaseType | str | None = None,
        branch_mode: BranchMode | str | None = None,
    ) -> MerchantInfo:
        current = self.merchant_info
        new_case_type = normalize_case_type(case_type) if case_type is not None else current.case_type
        if new_case_type != CaseType.BRANCH:
            new_branch_mode = None
        elif branch_mode is not None:
            new_branch_mode = normalize_branch_mode(branch_mode) or BranchMode.WITH_MAIN
        else:
            new_branch_mode = current.branch_mode or BranchMode.WITH_MAIN

        structural_change = (
            new_case_type != current.case_type or new_branch_mode != current.branch_mode
        )
        self.merchant_info = MerchantInfo(
            legal_name=legal_name if legal_name is not None else current.legal_name,
            dba=dba if dba is not None else current.dba,
            case_type=new_case_type,
            branch_mode=new_branch_mode,
        )
        if structural_change:
            LOGGER.info(
                "Case type changed; checklist rebuilt and case state reset",
                extra={"case_id": self.case_id, "case_type": new_case_type.value},
            )
            self._reset_case_state()
            self._persist_shareholders()
        self.persist_case()
        return self.merchant_info

    def set_conditional(self, key: str, value: bool) -> dict[str, bool]:
        if not _CONDITIONAL_KEY.match(key or ""):
            raise ValueError(f"invalid conditional key {key!r}")
        self.conditionals[key] = bool(value)
        self._call(
            "update_case_conditionals",
            self.repository.update_case_conditionals,
            self.case_id,
            dict(self.conditionals),
        )
        return dict(self.conditionals)

    def toggle_conditional(self, key: str) -> dict[str, bool]:
        return self.set_conditional(key, not self.conditionals.get(key, False))

    # Slot uploads

    def find_item(self, slot_id: str) -> ChecklistItem:
        for item in self.checklist:
            if item.id == slot_id:
                return item
        raise KeyError(f"slot {slot_id!r} is not on this checklist")

    def _schedule(self, key: StoreKey, uploads: list[UploadedFile], raw_files: list[RawFile]) -> None:
        for upload, raw_file in zip(uploads, raw_files):
            task = asyncio.create_task(self._run_pipeline(key, upload, raw_file))
            self._pending[upload.id] = (key, task)

    async def _run_pipeline(self, key: StoreKey, upload: UploadedFile, raw_file: RawFile) -> UploadOutcome:
        outcome = await self.pipeline.process(self, key, upload, raw_file)
        self._outcomes[upload.id] = outcome
        return outcome

    async def add_slot_files(self, slot_id: str, raw_files: list[RawFile]) -> list[UploadedFile]:
        item = self.find_item(slot_id)
        if not raw_files:
            raise ValueError("no files supplied")
        if not item.multi_file and len(raw_files) > 1:
            raise ValueError(f"slot {slot_id!r} accepts one file per upload")

        uploads = _uploaded_files(raw_files)
        item.files.extend(uploads)
        key = SlotKey(slot_id)
        self.file_store.append(key, list(raw_files))
        self._set_status("in_progress")
        self._schedule(key, uploads, list(raw_files))
        return uploads

    def remove_slot_file(self, slot_id: str, file_id: str) -> None:
        item = self.find_item(slot_id)
        index = _index_of(item.files, file_id)
        item.files.pop(index)
        self.file_store.remove_at(SlotKey(slot_id), index)
        self._forget_upload(file_id)

    def _forget_upload(self, upload_id: str) -> None:
        self._outcomes.pop(upload_id, None)
        pending = self._pending.pop(upload_id, None)
        if pending is not None:
            pending[1].cancel()

    # Shareholders

    def find_shareholder(self, shareholder_id: str) -> ShareholderKYC:
        for shareholder in self.shareholders:
            if shareholder.id == shareholder_id:
                return shareholder
        raise KeyError(f"shareholder {shareholder_id!r} not found")

    def add_shareholder(self, name: str = "", percentage: str = "") -> ShareholderKYC:
        shareholder = ShareholderKYC(id=_new_id(), name=name, percentage=percentage)
        self.shareholders.append(shareholder)
        self._persist_shareholders()
        return shareholder

    def update_shareholder(
        self,
        shareholder_id: str,
        *,
        name: str | None = None,
        percentage: str | None = None,
    ) -> ShareholderKYC:
        shareholder = self.find_shareholder(shareholder_id)
        if name is not None:
            shareholder.name = name
        if percentage is not None:
            shareholder.percentage = percentage
        self._persist_shareholders()
        return shareholder

    def remove_shareholder(self, shareholder_id: str) -> None:
        shareholder = self.find_shareholder(shareholder_id)
        self.shareholders.remove(shareholder)
        for uploaded in shareholder.passport_files + shareholder.eid_files:
            self._forget_upload(uploaded.id)
        self.file_store.drop_shareholder(shareholder_id)
        self._persist_shareholders()

    def shareholder_files(self, shareholder: ShareholderKYC, doc_type: str) -> list[UploadedFile]:
        if doc_type == "passport":
            return shareholder.passport_files
        if doc_type == "eid":
            return shareholder.eid_files
        raise ValueError(f"unknown KYC document type {doc_type!r}")

    async def add_shareholder_files(
        self,
        shareholder_id: str,
        doc_type: str,
        raw_files: list[RawFile],
    ) -> list[UploadedFile]:
        shareholder = self.find_shareholder(shareholder_id)
        files = self.shareholder_files(shareholder, doc_type)
        if not raw_files:
            raise ValueError("no files supplied")

        uploads = _uploaded_files(raw_files)
        files.extend(uploads)
        key = ShareholderDocKey(shareholder_id, doc_type)  # type: ignore[arg-type]
        self.file_store.append(key, list(raw_files))
        self._set_status("in_progress")
        self._persist_shareholders()
        self._schedule(key, uploads, list(raw_files))
        return uploads

    def remove_shareholder_file(self, shareholder_id: str, doc_type: str, file_id: str) -> None:
        shareholder = self.find_shareholder(shareholder_id)
        files = self.shareholder_files(shareholder, doc_type)
        index = _index_of(files, file_id)
        files.pop(index)
        self.file_store.remove_at(ShareholderDocKey(shareholder_id, doc_type), index)  # type: ignore[arg-type]
        self._forget_upload(file_id)
        self._persist_shareholders()

    # Upload results

    async def settle(self, key: StoreKey | None = None) -> list[UploadOutcome]:
        selected = [
            (upload_id, task)
            for upload_id, (task_key, task) in self._pending.items()
            if key is None or task_key == key
        ]
        if not selected:
            return []
        results = await asyncio.gather(*(task for _, task in selected), return_exceptions=True)

        outcomes: list[UploadOutcome] = []
        for (upload_id, _), result in zip(selected, results):
            self._pending.pop(upload_id, None)
            if isinstance(result, UploadOutcome):
                outcomes.append(result)
            elif not isinstance(result, asyncio.CancelledError):
                LOGGER.warning(
                    "Upload processing task failed",
                    exc_info=result,
                    extra={"case_id": self.case_id, "upload_id": upload_id},
                )
        return outcomes

    def replace_mdf_extraction(self, parsed: ParsedMDF, confidence: float) -> None:
        self.mdf = parsed
        self.mdf_confidence = confidence
        self._call(
            "upsert_mdf_extraction",
            self.repository.upsert_mdf_extraction,
            self.case_id,
            parsed,
            confidence,
        )

    def replace_trade_license_extraction(self, parsed: ParsedTradeLicense, confidence: float) -> None:
        self.trade_license = parsed
        self.trade_license_confidence = confidence
        self._call(
            "upsert_trade_license_extraction",
            self.repository.upsert_trade_license_extraction,
            self.case_id,
            parsed,
            confidence,
        )

    def doc_type_alerts(self) -> list[UploadOutcome]:
        return [outcome for outcome in self._outcomes.values() if outcome.is_doc_type_mismatch]

    # Review and export

    @property
    def mdf_validation(self) -> MDFValidationResult | None:
        if self.mdf is None:
            return None
        return validate_mdf_fields(self.mdf)

    def duplicates(self) -> list[DuplicateWarning]:
        return detect_duplicates(self.file_store)

    def validate(self) -> list[ValidationWarning]:
        return validate_case(self.merchant_info, self.checklist, self.conditionals, self.shareholders)

    def rename_mappings(self, export_date: date | None = None) -> list[RenameMapping]:
        return generate_rename_mappings(
            self.merchant_info,
            self.checklist,
            self.file_store,
            self.shareholders,
            export_date=export_date,
        )

    def export_package(self, export_date: date | None = None) -> CasePackage:
        try:
            package = build_package(
                self.merchant_info,
                self.checklist,
                self.file_store,
                self.shareholders,
                self.mdf_validation,
                self.validate(),
                export_date=export_date,
            )
        except Exception as exc:
            LOGGER.exception("Case package export failed", extra={"case_id": self.case_id})
            self.metrics.increment("export_failed")
            raise ExportFailedError() from exc

        self.metrics.increment("export_completed")
        self._set_status("complete")
        LOGGER.info(
            "Case package exported",
            extra={"case_id": self.case_id, "package": package.filename, "files": len(package.mappings)},
        )
        return package


class CaseSessionRegistry:
    def __init__(
        self,
        *,
        pipeline: UploadPipeline,
        repository: CaseRepository,
        metrics: IntakeMetrics | None = None,
    ) -> None:
        self._lock = Lock()
        self._sessions: dict[str, CaseSession] = {}
        self.pipeline = pipeline
        self.repository = repository
        self.metrics = metrics or pipeline.metrics

    def create(self, merchant_info: MerchantInfo) -> CaseSession:
        if merchant_info.case_type == CaseType.BRANCH and merchant_info.branch_mode is None:
            merchant_info = merchant_info.model_copy(update={"branch_mode": BranchMode.WITH_MAIN})
        if merchant_info.case_type != CaseType.BRANCH and merchant_info.branch_mode is not None:
            merchant_info = merchant_info.model_copy(update={"branch_mode": None})
        session = CaseSession(
            case_id=_new_id(),
            merchant_info=merchant_info,
            pipeline=self.pipeline,
            repository=self.repository,
            metrics=self.metrics,
        )
        with self._lock:
            self._sessions[session.case_id] = session
        session.persist_case()
        LOGGER.info(
            "Case session created",
            extra={"case_id": session.case_id, "case_type": merchant_info.case_type.value},
        )
        return session

    def get(self, case_id: str) -> CaseSession:
        with self._lock:
            session = self._sessions.get(case_id)
        if session is None:
            raise CaseNotFoundError()
        return session

    def remove(self, case_id: str) -> None:
        with self._lock:
            self._sessions.pop(case_id, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)


__all__ = [
    "SHAREHOLDER_DOC_TYPES",
    "CaseSession",
    "CaseSessionRegistry",
]
