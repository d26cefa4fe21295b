from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
import re
from typing import Sequence

from rfm_intake.policy.checklist_templates import (
    DOCUMENT_TYPE_MAP,
    FALLBACK_FOLDER,
    FOLDER_MAP,
)
from rfm_intake.schemas import ChecklistItem, MerchantInfo, ShareholderKYC
from rfm_intake.services.file_store import (
    RawFile,
    RawFileStore,
    ShareholderDocKey,
    SlotKey,
)


KYC_FOLDER = FOLDER_MAP["KYC"]
DEFAULT_MERCHANT_NAME = "Merchant"

_SHAREHOLDER_DOC_TOKENS: tuple[tuple[str, str], ...] = (
    ("passport", "Passport"),
    ("eid", "EmiratesID"),
)


@dataclass(frozen=True)
class RenameMapping:
    original_name: str
    new_name: str
    folder: str
    raw_file: RawFile = field(repr=False)


def sanitize_name(name: str) -> str:
    stripped = re.sub(r"[^a-zA-Z0-9\s]", "", name.strip())
    return re.sub(r"\s+", "_", stripped.strip())


def file_extension(file_name: str) -> str:
    if "." not in file_name:
        return ""
    return "." + file_name.rsplit(".", 1)[1].lower()


def date_stamp(export_date: date | None = None) -> str:
    return (export_date or date.today()).strftime("%Y%m%d")


def merchant_display_name(merchant_info: MerchantInfo) -> str:
    return merchant_info.legal_name.strip() or merchant_info.dba.strip()


def merchant_file_token(merchant_info: MerchantInfo) -> str:
    return sanitize_name(merchant_display_name(merchant_info)) or DEFAULT_MERCHANT_NAME


def _index_suffix(index: int, total: int) -> str:
    return f"_{index + 1}" if total > 1 else ""


def generate_rename_mappings(
    merchant_info: MerchantInfo,
    checklist: Sequence[ChecklistItem],
    file_store: RawFileStore,
    shareholders: Sequence[ShareholderKYC] | None = None,
    *,
    export_date: date | None = None,
) -> list[RenameMapping]:
    merchant_token = merchant_file_token(merchant_info)
    stamp = date_stamp(export_date)
    mappings: list[RenameMapping] = []

    for item in checklist:
        if item.status != "uploaded":
            continue
        raw_files = file_store.get(SlotKey(item.id))
        if not raw_files:
            continue

        doc_type = DOCUMENT_TYPE_MAP.get(item.id) or sanitize_name(item.label)
        folder = FOLDER_MAP.get(item.category, FALLBACK_FOLDER)
        for index, raw_file in enumerate(raw_files):
            suffix = _index_suffix(index, len(raw_files))
            mappings.append(
                RenameMapping(
                    original_name=raw_file.name,
                    new_name=(
                        f"{merchant_token}_{doc_type}{suffix}_{stamp}"
                        f"{file_extension(raw_file.name)}"
                    ),
                    folder=folder,
                    raw_file=raw_file,
                )
            )

    for position, shareholder in enumerate(shareholders or (), start=1):
        shareholder_token = sanitize_name(shareholder.name.strip() or f"Shareholder{position}")
        for doc_type, token in _SHAREHOLDER_DOC_TOKENS:
            raw_files = file_store.get(ShareholderDocKey(shareholder.id, doc_type))
            for index, raw_file in enumerate(raw_files):
                suffix = _index_suffix(index, len(raw_files))
                mappings.append(
                    RenameMapping(
                        original_name=raw_file.name,
                        new_name=(
                            f"{merchant_token}_{token}_{shareholder_token}{suffix}_{stamp}"
                            f"{file_extension(raw_file.name)}"
                        ),
                        folder=KYC_FOLDER,
                        raw_file=raw_file,
                    )
                )

    return mappings


__all__ = [
    "DEFAULT_MERCHANT_NAME",
    "KYC_FOLDER",
    "RenameMapping",
    "date_stamp",
    "file_extension",
    "generate_rename_mappings",
    "merchant_display_name",
    "merchant_file_token",
    "sanitize_name",
]
