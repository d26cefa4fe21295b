from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
import io
from typing import Sequence
import zipfile

from rfm_intake.policy.checklist_templates import CaseType
from rfm_intake.schemas import (
    ChecklistItem,
    MDFValidationResult,
    MerchantInfo,
    ShareholderKYC,
    ValidationWarning,
)
from rfm_intake.services.file_store import RawFileStore, SlotKey
from rfm_intake.services.rename_engine import (
    RenameMapping,
    date_stamp,
    generate_rename_mappings,
    merchant_display_name,
    merchant_file_token,
)


MDF_FOLDER = "01_MDF"
TRADE_LICENSE_FOLDER = "02_TradeLicense"
PACKAGE_FOLDERS: tuple[str, ...] = (
    MDF_FOLDER,
    TRADE_LICENSE_FOLDER,
    "03_KYC",
    "04_BankDocuments",
    "05_ShopDocuments",
    "06_LegalDocuments",
    "07_Forms",
)
SUMMARY_FILENAME = "CaseSummary.txt"

# Redirects match on the generated file name, not on the slot id.
_NAME_TOKEN_FOLDER_OVERRIDES: tuple[tuple[str, str], ...] = (
    ("_MDF_", MDF_FOLDER),
    ("_TradeLicense_", TRADE_LICENSE_FOLDER),
)

VERDICT_COMPLETE = "VERDICT: Case appears complete, standard processing"
VERDICT_SIGNIFICANT_GAPS = "VERDICT: Case has significant gaps, review with sales before processing"
VERDICT_MINOR_GAPS = "VERDICT: Case has minor gaps, may proceed with noted exceptions"
SIGNIFICANT_MISSING_THRESHOLD = 3

_RULE = "─" * 50
_HEAVY_RULE = "=" * 50
_ZIP_COMPRESS_LEVEL = 6
# Zip entry timestamps cannot represent dates outside this range.
EXPORT_YEAR_RANGE: tuple[int, int] = (1980, 2107)


@dataclass(frozen=True)
class CasePackage:
    filename: str
    root_folder: str
    payload: bytes = field(repr=False)
    mappings: tuple[RenameMapping, ...] = ()

    @property
    def media_type(self) -> str:
        return "application/zip"


def package_folder_for(mapping: RenameMapping) -> str:
    for token, folder in _NAME_TOKEN_FOLDER_OVERRIDES:
        if token in mapping.new_name:
            return folder
    return mapping.folder


def _missing_required_items(checklist: Sequence[ChecklistItem]) -> list[ChecklistItem]:
    return [item for item in checklist if item.required and item.status == "missing"]


def _incomplete_shareholder_lines(shareholders: Sequence[ShareholderKYC]) -> list[str]:
    lines: list[str] = []
    for position, shareholder in enumerate(shareholders, start=1):
        gaps: list[str] = []
        if not shareholder.name.strip():
            gaps.append("name missing")
        if not shareholder.passport_files:
            gaps.append("passport missing")
        if not shareholder.eid_files:
            gaps.append("EID missing")
        if gaps:
            label = shareholder.name.strip() or f"Shareholder {position}"
            lines.append(f"  - {label}: {', '.join(gaps)}")
    return lines


def select_verdict(
    *,
    missing_required_count: int,
    major_warning_count: int,
    mdf_validation: MDFValidationResult | None,
) -> str:
    mdf_ok = mdf_validation is None or mdf_validation.is_acceptable
    if missing_required_count == 0 and major_warning_count == 0 and mdf_ok:
        return VERDICT_COMPLETE
    if major_warning_count > 0 or missing_required_count > SIGNIFICANT_MISSING_THRESHOLD:
        return VERDICT_SIGNIFICANT_GAPS
    return VERDICT_MINOR_GAPS


def build_case_summary(
    merchant_info: MerchantInfo,
    checklist: Sequence[ChecklistItem],
    file_store: RawFileStore,
    shareholders: Sequence[ShareholderKYC] | None = None,
    mdf_validation: MDFValidationResult | None = None,
    warnings: Sequence[ValidationWarning] | None = None,
    *,
    export_date: date | None = None,
) -> str:
    shareholders = list(shareholders or ())
    warnings = list(warnings or ())
    export_day = export_date or date.today()
    uploaded = [item for item in checklist if item.status == "uploaded"]
    missing_required = _missing_required_items(checklist)

    lines = [
        f"Case Summary - {merchant_display_name(merchant_info)}",
        f"Date: {export_day.isoformat()}",
        f"Case Type: {merchant_info.case_type.value.upper()}",
    ]
    if merchant_info.case_type == CaseType.BRANCH and merchant_info.branch_mode is not None:
        lines.append(f"Branch Mode: {merchant_info.branch_mode.value.upper()}")
    lines.extend(["", "Documents Included:", _RULE])
    for position, item in enumerate(uploaded, start=1):
        file_count = len(file_store.get(SlotKey(item.id)))
        plural = "s" if file_count > 1 else ""
        lines.append(f"  {position}. {item.label} ({file_count} file{plural})")

    if shareholders:
        lines.extend(["", "Shareholder KYC:", _RULE])
        for position, shareholder in enumerate(shareholders, start=1):
            lines.append(
                f"  {position}. {shareholder.name.strip() or 'Unnamed'} "
                f"({shareholder.percentage.strip() or '?'}%) - "
                f"Passport: {len(shareholder.passport_files)}, EID: {len(shareholder.eid_files)}"
            )

    if missing_required:
        lines.extend(["", "MISSING REQUIRED DOCUMENTS:", _RULE])
        for position, item in enumerate(missing_required, start=1):
            lines.append(f"  {position}. {item.label}")

    lines.extend(["", _HEAVY_RULE, "PROCESSING TEAM NOTES", _HEAVY_RULE, ""])

    lines.append(f"Missing Documents ({len(missing_required)}):")
    if missing_required:
        lines.extend(f"  - {item.label}" for item in missing_required)
    else:
        lines.append("  None")

    lines.extend(["", "MDF Field Scan:"])
    if mdf_validation is None:
        lines.append("  No MDF field scan was performed.")
    else:
        status = "ACCEPTABLE" if mdf_validation.is_acceptable else "BELOW THRESHOLD"
        lines.append(
            f"  Completeness: {mdf_validation.total_present}/{mdf_validation.total_checked} "
            f"fields ({mdf_validation.percentage}%) - {status}"
        )
        missing_fields = mdf_validation.missing_fields
        if missing_fields:
            lines.append("  Missing fields:")
            lines.extend(
                f"    - {check.label} ({check.group})" for check in missing_fields
            )

    incomplete_shareholders = _incomplete_shareholder_lines(shareholders)
    lines.extend(["", "Incomplete Shareholder KYC:"])
    if incomplete_shareholders:
        lines.extend(incomplete_shareholders)
    elif shareholders:
        lines.append("  None")
    else:
        lines.append("  No shareholders added")

    major_warnings = [warning for warning in warnings if warning.type == "major"]
    minor_warnings = [warning for warning in warnings if warning.type == "minor"]
    lines.extend(["", f"MAJOR ({len(major_warnings)}):"])
    lines.extend(f"  - {warning.message}" for warning in major_warnings)
    lines.append(f"MINOR ({len(minor_warnings)}):")
    lines.extend(f"  - {warning.message}" for warning in minor_warnings)

    lines.extend(
        [
            "",
            select_verdict(
                missing_required_count=len(missing_required),
                major_warning_count=len(major_warnings),
                mdf_validation=mdf_validation,
            ),
            "",
            f"Total Documents: {len(uploaded)} / "
            f"{sum(1 for item in checklist if item.required)} required",
        ]
    )
    return "\n".join(lines)


def _zip_entry(name: str, export_day: date, *, is_dir: bool = False) -> zipfile.ZipInfo:
    info = zipfile.ZipInfo(name, date_time=(export_day.year, export_day.month, export_day.day, 0, 0, 0))
    if is_dir:
        info.external_attr = (0o40755 << 16) | 0x10
        info.compress_type = zipfile.ZIP_STORED
    else:
        info.external_attr = 0o644 << 16
        info.compress_type = zipfile.ZIP_DEFLATED
    return info


def build_package(
    merchant_info: MerchantInfo,
    checklist: Sequence[ChecklistItem],
    file_store: RawFileStore,
    shareholders: Sequence[ShareholderKYC] | None = None,
    mdf_validation: MDFValidationResult | None = None,
    warnings: Sequence[ValidationWarning] | None = None,
    *,
    export_date: date | None = None,
) -> CasePackage:
    """Assemble the downloadable case archive.

    The archive is byte-identical for identical state and export date: entry
    order follows the rename mappings and every timestamp is the export day.
    """
    export_day = export_date or date.today()
    root_folder = f"{merchant_file_token(merchant_info)}_CasePackage_{date_stamp(export_day)}"
    mappings = generate_rename_mappings(
        merchant_info,
        checklist,
        file_store,
        shareholders,
        export_date=export_day,
    )
    summary = build_case_summary(
        merchant_info,
        checklist,
        file_store,
        shareholders,
        mdf_validation,
        warnings,
        export_date=export_day,
    )

    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        archive.writestr(_zip_entry(f"{root_folder}/", export_day, is_dir=True), b"")
        for folder in PACKAGE_FOLDERS:
            archive.writestr(_zip_entry(f"{root_folder}/{folder}/", export_day, is_dir=True), b"")
        for mapping in mappings:
            archive.writestr(
                _zip_entry(f"{root_folder}/{package_folder_for(mapping)}/{mapping.new_name}", export_day),
                mapping.raw_file.payload_bytes,
                compresslevel=_ZIP_COMPRESS_LEVEL,
            )
        archive.writestr(
            _zip_entry(f"{root_folder}/{SUMMARY_FILENAME}", export_day),
            summary.encode("utf-8"),
            compresslevel=_ZIP_COMPRESS_LEVEL,
        )

    return CasePackage(
        filename=f"{root_folder}.zip",
        root_folder=root_folder,
        payload=buffer.getvalue(),
        mappings=tuple(mappings),
    )


__all__ = [
    "EXPORT_YEAR_RANGE",
    "PACKAGE_FOLDERS",
    "SUMMARY_FILENAME",
    "VERDICT_COMPLETE",
    "VERDICT_MINOR_GAPS",
    "VERDICT_SIGNIFICANT_GAPS",
    "CasePackage",
    "build_case_summary",
    "build_package",
    "package_folder_for",
    "select_verdict",
]
