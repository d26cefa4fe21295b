from __future__ import annotations

from datetime import date
import io
import zipfile

from rfm_intake.policy.case_validation import validate_case
from rfm_intake.policy.checklist_templates import CaseType, get_checklist_for_case
from rfm_intake.policy.mdf_validation import validate_mdf_fields
from rfm_intake.schemas import (
    ChecklistItem,
    MerchantInfo,
    ParsedMDF,
    ShareholderKYC,
    UploadedFile,
    ValidationWarning,
)
from rfm_intake.services.archive_assembler import (
    PACKAGE_FOLDERS,
    VERDICT_COMPLETE,
    VERDICT_MINOR_GAPS,
    VERDICT_SIGNIFICANT_GAPS,
    build_case_summary,
    build_package,
    package_folder_for,
    select_verdict,
)
from rfm_intake.services.file_store import RawFile, RawFileStore, ShareholderDocKey, SlotKey
from rfm_intake.services.rename_engine import RenameMapping


EXPORT_DATE = date(2026, 10, 17)
ROOT = "Falcon_Trading_LLC_CasePackage_20261017"


def _raw(name: str, payload: bytes = b"%PDF-1.4 sample") -> RawFile:
    return RawFile(name=name, content_type="application/pdf", payload_bytes=payload)


def _merchant(legal_name: str = "Falcon Trading LLC") -> MerchantInfo:
    return MerchantInfo(legal_name=legal_name, dba="Falcon Mart", case_type=CaseType.LOW_RISK)


def _checklist_with(store: RawFileStore, uploads: dict[str, list[str]]) -> list[ChecklistItem]:
    items: list[ChecklistItem] = []
    for template in get_checklist_for_case(CaseType.LOW_RISK):
        names = uploads.get(template.id, [])
        raw_files = [_raw(name) for name in names]
        if raw_files:
            store.append(SlotKey(template.id), raw_files)
        items.append(
            ChecklistItem(
                id=template.id,
                label=template.label,
                category=template.category.value,
                required=template.required,
                conditional_key=template.conditional_key,
                files=[
                    UploadedFile(id=f"{template.id}-{index}", name=raw.name, size=raw.size)
                    for index, raw in enumerate(raw_files)
                ],
            )
        )
    return items


def _entries(payload: bytes) -> dict[str, bytes]:
    with zipfile.ZipFile(io.BytesIO(payload)) as archive:
        return {name: archive.read(name) for name in archive.namelist()}


def test_package_has_skeleton_summary_and_redirected_files() -> None:
    store = RawFileStore()
    checklist = _checklist_with(
        store,
        {"mdf": ["mdf.pdf"], "trade-license": ["tl.pdf"], "bank-statement": ["bs.pdf"]},
    )

    package = build_package(_merchant(), checklist, store, [], export_date=EXPORT_DATE)
    entries = _entries(package.payload)

    assert package.filename == f"{ROOT}.zip"
    assert package.root_folder == ROOT
    assert package.media_type == "application/zip"
    for folder in PACKAGE_FOLDERS:
        assert f"{ROOT}/{folder}/" in entries
    assert f"{ROOT}/01_MDF/Falcon_Trading_LLC_MDF_20261017.pdf" in entries
    assert f"{ROOT}/02_TradeLicense/Falcon_Trading_LLC_TradeLicense_20261017.pdf" in entries
    assert f"{ROOT}/04_BankDocuments/Falcon_Trading_LLC_BankStatement_1M_20261017.pdf" in entries
    assert f"{ROOT}/CaseSummary.txt" in entries
    assert entries[f"{ROOT}/01_MDF/Falcon_Trading_LLC_MDF_20261017.pdf"] == b"%PDF-1.4 sample"


def test_folder_override_sniffs_generated_name() -> None:
    mapping = RenameMapping(
        original_name="form.pdf",
        new_name="Acme_MDF_2_20261017.pdf",
        folder="07_Forms",
        raw_file=_raw("form.pdf"),
    )
    other = RenameMapping(
        original_name="tl.pdf",
        new_name="Acme_TradeLicense_20261017.pdf",
        folder="06_LegalDocuments",
        raw_file=_raw("tl.pdf"),
    )
    plain = RenameMapping(
        original_name="poa.pdf",
        new_name="Acme_POA_20261017.pdf",
        folder="06_LegalDocuments",
        raw_file=_raw("poa.pdf"),
    )

    assert package_folder_for(mapping) == "01_MDF"
    assert package_folder_for(other) == "02_TradeLicense"
    assert package_folder_for(plain) == "06_LegalDocuments"


def test_shareholder_documents_land_in_kyc_folder() -> None:
    store = RawFileStore()
    shareholder = ShareholderKYC(id="sh-1", name="Ahmed Khan", percentage="100")
    store.append(ShareholderDocKey("sh-1", "passport"), [_raw("passport.pdf")])

    package = build_package(_merchant(), [], store, [shareholder], export_date=EXPORT_DATE)

    assert f"{ROOT}/03_KYC/Falcon_Trading_LLC_Passport_Ahmed_Khan_20261017.pdf" in _entries(
        package.payload
    )


def test_archive_is_reproducible_for_identical_state() -> None:
    store = RawFileStore()
    checklist = _checklist_with(store, {"mdf": ["mdf.pdf"], "shop-photos-geotag": ["a.jpg", "b.jpg"]})

    first = build_package(_merchant(), checklist, store, [], export_date=EXPORT_DATE)
    second = build_package(_merchant(), checklist, store, [], export_date=EXPORT_DATE)

    assert first.payload == second.payload


def test_empty_case_still_exports_with_significant_gaps_verdict() -> None:
    merchant = MerchantInfo(legal_name="", dba="", case_type=CaseType.LOW_RISK)
    store = RawFileStore()
    checklist = _checklist_with(store, {})
    warnings = validate_case(merchant, checklist, {}, [])

    messages = [warning.message for warning in warnings]
    assert "Merchant Legal Name is missing" in messages
    assert any(message.startswith("No shareholders added") for message in messages)
    for item in checklist:
        if item.required:
            assert f"Missing required: {item.label}" in messages

    package = build_package(merchant, checklist, store, [], None, warnings, export_date=EXPORT_DATE)
    root = "Merchant_CasePackage_20261017"
    summary = _entries(package.payload)[f"{root}/CaseSummary.txt"].decode("utf-8")

    assert package.filename == f"{root}.zip"
    assert VERDICT_SIGNIFICANT_GAPS in summary
    assert "MISSING REQUIRED DOCUMENTS:" in summary
    assert "No MDF field scan was performed." in summary


def test_summary_sections_appear_in_order() -> None:
    store = RawFileStore()
    checklist = _checklist_with(store, {"mdf": ["mdf-1.pdf", "mdf-2.pdf"]})
    shareholder = ShareholderKYC(id="sh-1", name="", percentage="50")
    warnings = [
        ValidationWarning(type="major", message="Main problem"),
        ValidationWarning(type="minor", message="Small problem"),
    ]

    summary = build_case_summary(
        _merchant(),
        checklist,
        store,
        [shareholder],
        validate_mdf_fields(ParsedMDF(merchant_legal_name="Falcon", dba="Falcon")),
        warnings,
        export_date=EXPORT_DATE,
    )

    lines = summary.splitlines()
    assert lines[0] == "Case Summary - Falcon Trading LLC"
    assert lines[1] == "Date: 2026-10-17"
    assert lines[2] == "Case Type: LOW-RISK"
    assert any(line.endswith("(2 files)") and line.startswith("  1. MDF") for line in lines)
    assert "  1. Unnamed (50%) - Passport: 0, EID: 0" in lines
    assert "  Completeness: 2/16 fields (13%) - BELOW THRESHOLD" in lines
    assert "  - Shareholder 1: name missing, passport missing, EID missing" in lines
    assert "MAJOR (1):" in lines
    assert "MINOR (1):" in lines

    order = [
        summary.index("Documents Included:"),
        summary.index("Shareholder KYC:"),
        summary.index("MISSING REQUIRED DOCUMENTS:"),
        summary.index("PROCESSING TEAM NOTES"),
        summary.index("MDF Field Scan:"),
        summary.index("Incomplete Shareholder KYC:"),
        summary.index("MAJOR (1):"),
        summary.index(VERDICT_SIGNIFICANT_GAPS),
        summary.index("Total Documents:"),
    ]
    assert order == sorted(order)
    required_total = sum(1 for item in checklist if item.required)
    assert lines[-1] == f"Total Documents: 1 / {required_total} required"


def test_verdict_thresholds() -> None:
    failing_scan = validate_mdf_fields(ParsedMDF())
    assert failing_scan.is_acceptable is False

    assert (
        select_verdict(missing_required_count=0, major_warning_count=0, mdf_validation=None)
        == VERDICT_COMPLETE
    )
    assert (
        select_verdict(missing_required_count=0, major_warning_count=0, mdf_validation=failing_scan)
        == VERDICT_MINOR_GAPS
    )
    assert (
        select_verdict(missing_required_count=3, major_warning_count=0, mdf_validation=None)
        == VERDICT_MINOR_GAPS
    )
    assert (
        select_verdict(missing_required_count=4, major_warning_count=0, mdf_validation=None)
        == VERDICT_SIGNIFICANT_GAPS
    )
    assert (
        select_verdict(missing_required_count=0, major_warning_count=1, mdf_validation=None)
        == VERDICT_SIGNIFICANT_GAPS
    )
