from __future__ import annotations

from datetime import date

import pytest

from rfm_intake.policy.checklist_templates import CaseType
from rfm_intake.schemas import ChecklistItem, MerchantInfo, ShareholderKYC, UploadedFile
from rfm_intake.services.file_store import RawFile, RawFileStore, ShareholderDocKey, SlotKey
from rfm_intake.services.rename_engine import (
    file_extension,
    generate_rename_mappings,
    merchant_file_token,
    sanitize_name,
)


EXPORT_DATE = date(2026, 10, 17)


def _raw(name: str) -> RawFile:
    return RawFile(name=name, content_type="application/pdf", payload_bytes=name.encode("utf-8"))


def _uploaded(raw: RawFile, index: int = 0) -> UploadedFile:
    return UploadedFile(id=f"{raw.name}-{index}", name=raw.name, size=raw.size)


def _slot(
    store: RawFileStore,
    slot_id: str,
    label: str,
    category: str,
    names: list[str],
) -> ChecklistItem:
    raw_files = [_raw(name) for name in names]
    store.append(SlotKey(slot_id), raw_files)
    return ChecklistItem(
        id=slot_id,
        label=label,
        category=category,
        required=True,
        files=[_uploaded(raw, index) for index, raw in enumerate(raw_files)],
    )


def _merchant(legal_name: str = "Falcon Trading LLC", dba: str = "Falcon Mart") -> MerchantInfo:
    return MerchantInfo(legal_name=legal_name, dba=dba, case_type=CaseType.LOW_RISK)


@pytest.mark.parametrize(
    ("legal_name", "dba", "token"),
    [
        ("Falcon Trading LLC", "Falcon Mart", "Falcon_Trading_LLC"),
        ("", "Falcon Mart", "Falcon_Mart"),
        ("  ", "", "Merchant"),
        ("Al-Noor & Sons  (FZE)", "", "AlNoor_Sons_FZE"),
        ("***", "", "Merchant"),
    ],
)
def test_merchant_file_token(legal_name: str, dba: str, token: str) -> None:
    assert merchant_file_token(_merchant(legal_name, dba)) == token


def test_sanitize_and_extension_helpers() -> None:
    assert sanitize_name("  Tenancy / Ejari (signed) ") == "Tenancy_Ejari_signed"
    assert file_extension("Scan.Final.PDF") == ".pdf"
    assert file_extension("no-extension") == ""


def test_multi_file_slot_gets_index_suffix_and_single_file_does_not() -> None:
    store = RawFileStore()
    checklist = [
        _slot(store, "bank-statement", "Bank Statement", "Bank", ["jan.pdf", "feb.pdf"]),
        _slot(store, "shop-photos-geotag", "Shop Photos", "Shop", ["front.jpg"]),
    ]

    mappings = generate_rename_mappings(_merchant(), checklist, store, [], export_date=EXPORT_DATE)
    names = [mapping.new_name for mapping in mappings]

    assert names == [
        "Falcon_Trading_LLC_BankStatement_1M_1_20261017.pdf",
        "Falcon_Trading_LLC_BankStatement_1M_2_20261017.pdf",
        "Falcon_Trading_LLC_ShopPhoto_Geotag_20261017.jpg",
    ]
    assert [mapping.folder for mapping in mappings] == [
        "04_BankDocuments",
        "04_BankDocuments",
        "05_ShopDocuments",
    ]
    assert mappings[0].original_name == "jan.pdf"
    assert mappings[0].raw_file.payload_bytes == b"jan.pdf"


def test_unknown_slot_falls_back_to_label_token_and_other_folder() -> None:
    store = RawFileStore()
    checklist = [_slot(store, "custom-slot", "Custom Doc (v2)", "Misc", ["x.docx"])]

    (mapping,) = generate_rename_mappings(_merchant(), checklist, store, export_date=EXPORT_DATE)

    assert mapping.new_name == "Falcon_Trading_LLC_Custom_Doc_v2_20261017.docx"
    assert mapping.folder == "08_Other"


def test_missing_items_and_empty_raw_lists_are_skipped() -> None:
    store = RawFileStore()
    orphan = ChecklistItem(
        id="mdf",
        label="MDF",
        category="Forms",
        required=True,
        files=[UploadedFile(id="ghost", name="ghost.pdf", size=1)],
    )
    missing = ChecklistItem(id="trade-license", label="Trade License", category="Legal", required=True)

    assert generate_rename_mappings(_merchant(), [orphan, missing], store, export_date=EXPORT_DATE) == []


def test_shareholder_documents_go_to_kyc_folder() -> None:
    store = RawFileStore()
    named = ShareholderKYC(id="sh-1", name="Ahmed Khan", percentage="60")
    unnamed = ShareholderKYC(id="sh-2", name="", percentage="40")
    store.append(ShareholderDocKey("sh-1", "passport"), [_raw("p1.jpg"), _raw("p2.jpg")])
    store.append(ShareholderDocKey("sh-1", "eid"), [_raw("eid.pdf")])
    store.append(ShareholderDocKey("sh-2", "eid"), [_raw("eid2.PNG")])

    mappings = generate_rename_mappings(
        _merchant(),
        [],
        store,
        [named, unnamed],
        export_date=EXPORT_DATE,
    )

    assert [mapping.new_name for mapping in mappings] == [
        "Falcon_Trading_LLC_Passport_Ahmed_Khan_1_20261017.jpg",
        "Falcon_Trading_LLC_Passport_Ahmed_Khan_2_20261017.jpg",
        "Falcon_Trading_LLC_EmiratesID_Ahmed_Khan_20261017.pdf",
        "Falcon_Trading_LLC_EmiratesID_Shareholder2_20261017.png",
    ]
    assert {mapping.folder for mapping in mappings} == {"03_KYC"}


def test_mappings_are_deterministic_for_one_export_date() -> None:
    store = RawFileStore()
    checklist = [_slot(store, "mdf", "MDF", "Forms", ["mdf.pdf"])]

    first = generate_rename_mappings(_merchant(), checklist, store, export_date=EXPORT_DATE)
    second = generate_rename_mappings(_merchant(), checklist, store, export_date=EXPORT_DATE)

    assert [m.new_name for m in first] == [m.new_name for m in second]
    assert first[0].new_name == "Falcon_Trading_LLC_MDF_20261017.pdf"
    assert first[0].folder == "07_Forms"
