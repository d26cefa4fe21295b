from __future__ import annotations

from dataclasses import asdict, dataclass, field, replace
import json
import logging
import re
from threading import Lock
import time
from typing import Any, Callable, Protocol, TypeVar

from rfm_intake.schemas import (
    CaseStatus,
    ParsedMDF,
    ParsedTradeLicense,
    ShareholderDocType,
    ShareholderKYC,
)
from rfm_intake.services.file_store import RawFile
from rfm_intake.telemetry.intake_metrics import IntakeMetrics


LOGGER = logging.getLogger(__name__)

_UNSAFE_STORAGE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


@dataclass(frozen=True)
class CaseRecord:
    case_id: str
    legal_name: str
    dba: str
    case_type: str
    branch_mode: str | None = None
    status: CaseStatus = "draft"
    conditionals: dict[str, bool] = field(default_factory=dict)


@dataclass(frozen=True)
class DocumentRecord:
    case_id: str
    item_id: str
    label: str
    category: str
    file_name: str
    file_size: int
    content_type: str
    storage_path: str


@dataclass(frozen=True)
class ShareholderDocumentRecord:
    case_id: str
    shareholder_id: str
    doc_type: ShareholderDocType
    file_name: str
    file_size: int
    storage_path: str


def storage_path_for(case_id: str, folder: str, file_name: str, *, timestamp_ms: int | None = None) -> str:
    stamp = timestamp_ms if timestamp_ms is not None else int(time.time() * 1000)
    safe_name = _UNSAFE_STORAGE_CHARS.sub("_", file_name) or "file"
    return f"{case_id}/{folder}/{stamp}_{safe_name}"


class CaseRepository(Protocol):
    def save_case(self, record: CaseRecord) -> None: ...

    def update_case_status(self, case_id: str, status: CaseStatus) -> None: ...

    def update_case_conditionals(self, case_id: str, conditionals: dict[str, bool]) -> None: ...

    def add_document(self, record: DocumentRecord) -> None: ...

    def upsert_mdf_extraction(self, case_id: str, parsed: ParsedMDF, confidence: float) -> None: ...

    def upsert_trade_license_extraction(
        self,
        case_id: str,
        parsed: ParsedTradeLicense,
        confidence: float,
    ) -> None: ...

    def replace_shareholders(self, case_id: str, shareholders: list[ShareholderKYC]) -> None: ...

    def add_shareholder_document(self, record: ShareholderDocumentRecord) -> None: ...

    def upload_file(self, case_id: str, folder: str, raw_file: RawFile) -> str | None: ...


class InMemoryCaseRepository:
    def __init__(self) -> None:
        self._lock = Lock()
        self._cases: dict[str, CaseRecord] = {}
        self._documents: dict[str, list[DocumentRecord]] = {}
        self._shareholder_documents: dict[str, list[ShareholderDocumentRecord]] = {}
        self._mdf_extractions: dict[str, tuple[ParsedMDF, float]] = {}
        self._trade_license_extractions: dict[str, tuple[ParsedTradeLicense, float]] = {}
        self._shareholders: dict[str, list[ShareholderKYC]] = {}
        self._files: dict[str, bytes] = {}

    def save_case(self, record: CaseRecord) -> None:
        with self._lock:
            self._cases[record.case_id] = record

    def update_case_status(self, case_id: str, status: CaseStatus) -> None:
        with self._lock:
            record = self._cases.get(case_id)
            if record is not None:
                self._cases[case_id] = replace(record, status=status)

    def update_case_conditionals(self, case_id: str, conditionals: dict[str, bool]) -> None:
        with self._lock:
            record = self._cases.get(case_id)
            if record is not None:
                self._cases[case_id] = replace(record, conditionals=dict(conditionals))

    def add_document(self, record: DocumentRecord) -> None:
        with self._lock:
            self._documents.setdefault(record.case_id, []).append(record)

    def upsert_mdf_extraction(self, case_id: str, parsed: ParsedMDF, confidence: float) -> None:
        with self._lock:
            self._mdf_extractions[case_id] = (parsed, confidence)

    def upsert_trade_license_extraction(
        self,
        case_id: str,
        parsed: ParsedTradeLicense,
        confidence: float,
    ) -> None:
        with self._lock:
            self._trade_license_extractions[case_id] = (parsed, confidence)

    def replace_shareholders(self, case_id: str, shareholders: list[ShareholderKYC]) -> None:
        with self._lock:
            self._shareholders[case_id] = [
                shareholder.model_copy(deep=True) for shareholder in shareholders
            ]

    def add_shareholder_document(self, record: ShareholderDocumentRecord) -> None:
        with self._lock:
            self._shareholder_documents.setdefault(record.case_id, []).append(record)

    def upload_file(self, case_id: str, folder: str, raw_file: RawFile) -> str | None:
        path = storage_path_for(case_id, folder, raw_file.name)
        with self._lock:
            self._files[path] = raw_file.payload_bytes
        return path

    def get_case(self, case_id: str) -> CaseRecord | None:
        with self._lock:
            return self._cases.get(case_id)

    def documents(self, case_id: str) -> list[DocumentRecord]:
        with self._lock:
            return list(self._documents.get(case_id, ()))

    def shareholder_documents(self, case_id: str) -> list[ShareholderDocumentRecord]:
        with self._lock:
            return list(self._shareholder_documents.get(case_id, ()))

    def shareholders(self, case_id: str) -> list[ShareholderKYC]:
        with self._lock:
            return list(self._shareholders.get(case_id, ()))

    def mdf_extraction(self, case_id: str) -> tuple[ParsedMDF, float] | None:
        with self._lock:
            return self._mdf_extractions.get(case_id)

    def trade_license_extraction(self, case_id: str) -> tuple[ParsedTradeLicense, float] | None:
        with self._lock:
            return self._trade_license_extractions.get(case_id)

    def stored_file(self, path: str) -> bytes | None:
        with self._lock:
            return self._files.get(path)


class RedisCaseRepository:
    """Case persistence on Redis.

    Records are JSON strings written with ``setex``; document records are
    appended to per-case lists. Failures are logged and swallowed so a flaky
    store never blocks intake.
    """

    def __init__(
        self,
        redis_client,
        *,
        prefix: str = "rfm:cases",
        ttl_seconds: int = 7 * 24 * 60 * 60,
    ) -> None:
        self.redis_client = redis_client
        self.prefix = prefix
        self.ttl_seconds = max(int(ttl_seconds), 1)

    def _key(self, case_id: str, suffix: str) -> str:
        return f"{self.prefix}:{case_id}:{suffix}"

    def _file_key(self, path: str) -> str:
        return f"{self.prefix}:files:{path}"

    def _setex_json(self, key: str, payload: Any, *, case_id: str) -> None:
        try:
            self.redis_client.setex(key, self.ttl_seconds, json.dumps(payload))
        except Exception:
            LOGGER.warning(
                "Unable to persist case record in Redis",
                exc_info=True,
                extra={"key": key, "case_id": case_id},
            )

    def _append_json(self, key: str, payload: Any, *, case_id: str) -> None:
        try:
            self.redis_client.rpush(key, json.dumps(payload))
            self.redis_client.expire(key, self.ttl_seconds)
        except Exception:
            LOGGER.warning(
                "Unable to append case record in Redis",
                exc_info=True,
                extra={"key": key, "case_id": case_id},
            )

    def get_case(self, case_id: str) -> CaseRecord | None:
        key = self._key(case_id, "case")
        try:
            payload = self.redis_client.get(key)
        except Exception:
            LOGGER.warning(
                "Unable to read case record from Redis",
                exc_info=True,
                extra={"key": key, "case_id": case_id},
            )
            return None
        if not payload:
            return None
        try:
            if isinstance(payload, bytes):
                payload = payload.decode("utf-8")
            return CaseRecord(**json.loads(payload))
        except Exception:
            LOGGER.warning("Unable to decode stored case record", exc_info=True)
            return None

    def save_case(self, record: CaseRecord) -> None:
        self._setex_json(self._key(record.case_id, "case"), asdict(record), case_id=record.case_id)

    def update_case_status(self, case_id: str, status: CaseStatus) -> None:
        record = self.get_case(case_id)
        if record is None:
            return
        self.save_case(replace(record, status=status))

    def update_case_conditionals(self, case_id: str, conditionals: dict[str, bool]) -> None:
        record = self.get_case(case_id)
        if record is None:
            return
        self.save_case(replace(record, conditionals=dict(conditionals)))

    def add_document(self, record: DocumentRecord) -> None:
        self._append_json(self._key(record.case_id, "documents"), asdict(record), case_id=record.case_id)

    def upsert_mdf_extraction(self, case_id: str, parsed: ParsedMDF, confidence: float) -> None:
        self._setex_json(
            self._key(case_id, "mdf"),
            {"confidence": confidence, "parsed": parsed.model_dump(mode="json")},
            case_id=case_id,
        )

    def upsert_trade_license_extraction(
        self,
        case_id: str,
        parsed: ParsedTradeLicense,
        confidence: float,
    ) -> None:
        self._setex_json(
            self._key(case_id, "trade_license"),
            {"confidence": confidence, "parsed": parsed.model_dump(mode="json")},
            case_id=case_id,
        )

    def replace_shareholders(self, case_id: str, shareholders: list[ShareholderKYC]) -> None:
        self._setex_json(
            self._key(case_id, "shareholders"),
            [shareholder.model_dump(mode="json") for shareholder in shareholders],
            case_id=case_id,
        )

    def add_shareholder_document(self, record: ShareholderDocumentRecord) -> None:
        self._append_json(
            self._key(record.case_id, "shareholder_documents"),
            asdict(record),
            case_id=record.case_id,
        )

    def upload_file(self, case_id: str, folder: str, raw_file: RawFile) -> str | None:
        path = storage_path_for(case_id, folder, raw_file.name)
        try:
            self.redis_client.setex(self._file_key(path), self.ttl_seconds, raw_file.payload_bytes)
        except Exception:
            LOGGER.warning(
                "Unable to store uploaded file in Redis",
                exc_info=True,
                extra={"case_id": case_id, "folder": folder, "file_name": raw_file.name},
            )
            return None
        return path


_T = TypeVar("_T")


def call_repository(
    action: str,
    operation: Callable[..., _T],
    *args: Any,
    case_id: str,
    metrics: IntakeMetrics | None = None,
) -> _T | None:
    """Run one repository call; failures are logged and reported as ``None``."""
    try:
        return operation(*args)
    except Exception:
        LOGGER.warning(
            "Case repository call failed",
            exc_info=True,
            extra={"action": action, "case_id": case_id},
        )
        if metrics is not None:
            metrics.increment("persistence_failed")
        return None


def build_case_repository(
    *,
    redis_url: str | None,
    ttl_seconds: int = 7 * 24 * 60 * 60,
) -> CaseRepository:
    if not redis_url:
        LOGGER.info("Using in-memory case repository (redis_url not configured)")
        return InMemoryCaseRepository()

    try:
        import redis

        redis_client = redis.Redis.from_url(
            redis_url,
            socket_timeout=0.5,
            socket_connect_timeout=0.5,
        )
        redis_client.ping()
        LOGGER.info("Using Redis-backed case repository")
        return RedisCaseRepository(redis_client, ttl_seconds=ttl_seconds)
    except Exception:
        LOGGER.warning(
            "Redis case repository unavailable; falling back to in-memory repository",
            exc_info=True,
        )
        return InMemoryCaseRepository()


__all__ = [
    "CaseRecord",
    "CaseRepository",
    "DocumentRecord",
    "InMemoryCaseRepository",
    "RedisCaseRepository",
    "ShareholderDocumentRecord",
    "build_case_repository",
    "call_repository",
    "storage_path_for",
]
