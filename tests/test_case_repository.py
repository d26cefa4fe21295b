from __future__ import annotations

import json

from rfm_intake.schemas import ParsedMDF, ParsedTradeLicense, ShareholderKYC
from rfm_intake.services.case_repository import (
    CaseRecord,
    DocumentRecord,
    InMemoryCaseRepository,
    RedisCaseRepository,
    build_case_repository,
    call_repository,
    storage_path_for,
)
from rfm_intake.services.file_store import RawFile
from rfm_intake.telemetry import IntakeMetrics


def _record(case_id: str = "case-1") -> CaseRecord:
    return CaseRecord(
        case_id=case_id,
        legal_name="Falcon Trading LLC",
        dba="Falcon Mart",
        case_type="low-risk",
    )


def _raw() -> RawFile:
    return RawFile(name="Trade License (1).pdf", content_type="application/pdf", payload_bytes=b"%PDF")


class _FakeRedis:
    def __init__(self) -> None:
        self._store: dict[str, bytes] = {}
        self._lists: dict[str, list[str]] = {}
        self.setex_calls: list[tuple[str, int]] = []

    def setex(self, key: str, ttl_seconds: int, value) -> None:
        payload = value.encode("utf-8") if isinstance(value, str) else value
        self._store[key] = payload
        self.setex_calls.append((key, ttl_seconds))

    def get(self, key: str):
        return self._store.get(key)

    def rpush(self, key: str, value: str) -> None:
        self._lists.setdefault(key, []).append(value)

    def expire(self, key: str, ttl_seconds: int) -> None:
        del key, ttl_seconds

    def lrange(self, key: str) -> list[str]:
        return list(self._lists.get(key, ()))


class _FailingRedis:
    def setex(self, key: str, ttl_seconds: int, value) -> None:
        del key, ttl_seconds, value
        raise RuntimeError("redis unavailable")

    def get(self, key: str):
        del key
        raise RuntimeError("redis unavailable")

    def rpush(self, key: str, value: str) -> None:
        del key, value
        raise RuntimeError("redis unavailable")

    def expire(self, key: str, ttl_seconds: int) -> None:
        del key, ttl_seconds
        raise RuntimeError("redis unavailable")


def test_storage_path_is_scoped_and_sanitized() -> None:
    path = storage_path_for("case-1", "trade-license", "Trade License (1).pdf", timestamp_ms=1700)

    assert path == "case-1/trade-license/1700_Trade_License__1_.pdf"


def test_in_memory_repository_tracks_case_lifecycle() -> None:
    repository = InMemoryCaseRepository()
    repository.save_case(_record())

    repository.update_case_conditionals("case-1", {"noVat": True})
    repository.update_case_status("case-1", "complete")

    stored = repository.get_case("case-1")
    assert stored is not None
    assert stored.status == "complete"
    assert stored.conditionals == {"noVat": True}


def test_in_memory_repository_ignores_updates_for_unknown_case() -> None:
    repository = InMemoryCaseRepository()

    repository.update_case_status("missing", "complete")

    assert repository.get_case("missing") is None


def test_in_memory_repository_stores_uploads_and_extractions() -> None:
    repository = InMemoryCaseRepository()

    path = repository.upload_file("case-1", "mdf", _raw())
    assert path is not None and path.startswith("case-1/mdf/")
    assert repository.stored_file(path) == b"%PDF"

    repository.add_document(
        DocumentRecord(
            case_id="case-1",
            item_id="mdf",
            label="Merchant Details Form (MDF)",
            category="Forms",
            file_name="mdf.pdf",
            file_size=4,
            content_type="application/pdf",
            storage_path=path,
        )
    )
    repository.upsert_mdf_extraction("case-1", ParsedMDF(dba="First"), 80.0)
    repository.upsert_mdf_extraction("case-1", ParsedMDF(dba="Second"), 99.0)

    assert [document.item_id for document in repository.documents("case-1")] == ["mdf"]
    assert repository.documents("case-1")[0].category == "Forms"
    parsed, confidence = repository.mdf_extraction("case-1")
    assert parsed.dba == "Second"
    assert confidence == 99.0


def test_in_memory_repository_replaces_shareholder_snapshot() -> None:
    repository = InMemoryCaseRepository()
    shareholder = ShareholderKYC(id="sh-1", name="Ahmed Khan")

    repository.replace_shareholders("case-1", [shareholder])
    shareholder.name = "Changed"
    repository.replace_shareholders("case-2", [])

    assert [item.name for item in repository.shareholders("case-1")] == ["Ahmed Khan"]
    assert repository.shareholders("case-2") == []


def test_redis_repository_round_trips_case_record() -> None:
    redis_client = _FakeRedis()
    repository = RedisCaseRepository(redis_client, ttl_seconds=60)

    repository.save_case(_record())
    repository.update_case_status("case-1", "in_progress")

    stored = repository.get_case("case-1")
    assert stored is not None
    assert stored.status == "in_progress"
    assert all(ttl == 60 for _, ttl in redis_client.setex_calls)


def test_redis_repository_writes_extractions_and_documents() -> None:
    redis_client = _FakeRedis()
    repository = RedisCaseRepository(redis_client, prefix="test")

    repository.upsert_trade_license_extraction(
        "case-1",
        ParsedTradeLicense(license_number="123456"),
        99.0,
    )
    repository.add_document(
        DocumentRecord(
            case_id="case-1",
            item_id="trade-license",
            label="Trade License",
            category="Legal",
            file_name="tl.pdf",
            file_size=4,
            content_type="application/pdf",
            storage_path="case-1/trade-license/1_tl.pdf",
        )
    )
    path = repository.upload_file("case-1", "trade-license", _raw())

    stored = json.loads(redis_client.get("test:case-1:trade_license"))
    assert stored["confidence"] == 99.0
    assert stored["parsed"]["license_number"] == "123456"
    documents = [json.loads(item) for item in redis_client.lrange("test:case-1:documents")]
    assert documents[0]["item_id"] == "trade-license"
    assert (documents[0]["label"], documents[0]["category"]) == ("Trade License", "Legal")
    assert path is not None
    assert redis_client.get(f"test:files:{path}") == b"%PDF"


def test_redis_repository_swallows_failures() -> None:
    repository = RedisCaseRepository(_FailingRedis())

    repository.save_case(_record())
    repository.update_case_status("case-1", "complete")
    repository.replace_shareholders("case-1", [])

    assert repository.get_case("case-1") is None
    assert repository.upload_file("case-1", "mdf", _raw()) is None


def test_build_case_repository_defaults_to_in_memory() -> None:
    assert isinstance(build_case_repository(redis_url=None), InMemoryCaseRepository)


def test_build_case_repository_falls_back_when_redis_is_unreachable(monkeypatch) -> None:
    import redis

    def _raise_from_url(*args, **kwargs):
        raise redis.exceptions.ConnectionError("unreachable")

    monkeypatch.setattr(redis.Redis, "from_url", _raise_from_url)

    repository = build_case_repository(redis_url="redis://localhost:6399/0")

    assert isinstance(repository, InMemoryCaseRepository)


def test_call_repository_reports_failures_as_none() -> None:
    metrics = IntakeMetrics()

    def _boom(*args):
        raise RuntimeError("database offline")

    result = call_repository("save_case", _boom, _record(), case_id="case-1", metrics=metrics)

    assert result is None
    assert metrics.snapshot()["persistence_failed"] == 1
