from __future__ import annotations

from dataclasses import dataclass
from typing import Mapping, Sequence

from rfm_intake.schemas import (
    ChecklistItem,
    MerchantInfo,
    ShareholderKYC,
    ValidationWarning,
    WarningType,
)


FREEZONE_SLOT_IDS: tuple[str, ...] = (
    "articles-assoc",
    "share-cert",
    "cert-incumbency",
    "board-resolution",
)

_CRITICAL_SLOT_MESSAGES: tuple[tuple[str, str], ...] = (
    (
        "mdf",
        "MDF (Merchant Details Form) not uploaded: critical for case processing. "
        "Ensure all pages and sections are filled.",
    ),
    (
        "trade-license",
        "Trade License not uploaded: check all pages are included and verify expiry date",
    ),
    (
        "main-moa",
        "Main MOA (Memorandum of Association) missing: authorized signatory must be mentioned",
    ),
)


@dataclass(frozen=True)
class ConditionalPairingRule:
    conditional_key: str
    slot_id: str
    severity: WarningType
    message: str
    # True: an item absent from the checklist counts as missing.
    absent_counts_as_missing: bool = True


CONDITIONAL_PAIRING_RULES: tuple[ConditionalPairingRule, ...] = (
    ConditionalPairingRule(
        conditional_key="tenancyExpired",
        slot_id="electricity-bill",
        severity="minor",
        message="Tenancy is expired but Electricity Bill not uploaded",
    ),
    ConditionalPairingRule(
        conditional_key="noVat",
        slot_id="vat-declaration",
        severity="minor",
        message="Merchant has no VAT but VAT Declaration Email not uploaded (common discrepancy)",
    ),
    ConditionalPairingRule(
        conditional_key="noBankAccount",
        slot_id="poh-email",
        severity="minor",
        message=(
            "No bank account indicated but POH Email (Proof of Holding) not uploaded "
            "(common discrepancy)"
        ),
    ),
    ConditionalPairingRule(
        conditional_key="nonResidentPartner",
        slot_id="non-resident-address",
        severity="minor",
        message="Non-resident partner indicated but home country address proof not uploaded",
    ),
    ConditionalPairingRule(
        conditional_key="nonResidentPartner",
        slot_id="non-resident-mdf-note",
        severity="minor",
        message="Non-resident status should be mentioned in the MDF",
        absent_counts_as_missing=False,
    ),
    ConditionalPairingRule(
        conditional_key="sanctionCountryPartner",
        slot_id="uae-address-proof",
        severity="major",
        message="Partners from Sanction Countries: UAE address proof / DEWA bill is mandatory",
    ),
    ConditionalPairingRule(
        conditional_key="poaSigning",
        slot_id="poa",
        severity="major",
        message=(
            "POA (Power of Attorney) required: someone else is signing the MDF on behalf "
            "of the authorized signatory"
        ),
    ),
    ConditionalPairingRule(
        conditional_key="shareholderChanges",
        slot_id="amended-moa",
        severity="minor",
        message=(
            "Changes in shareholders/signatory/trade name indicated but Amended MOA not uploaded"
        ),
    ),
)


def _is_missing(item: ChecklistItem | None) -> bool:
    return item is None or item.status == "missing"


def _merchant_warnings(merchant_info: MerchantInfo) -> list[ValidationWarning]:
    warnings: list[ValidationWarning] = []
    if not merchant_info.legal_name.strip():
        warnings.append(
            ValidationWarning(type="major", message="Merchant Legal Name is missing")
        )
    if not merchant_info.dba.strip():
        warnings.append(
            ValidationWarning(type="minor", message="Doing Business As (DBA) name is missing")
        )
    return warnings


def _shareholder_warnings(shareholders: Sequence[ShareholderKYC]) -> list[ValidationWarning]:
    if not shareholders:
        return [
            ValidationWarning(
                type="major",
                message=(
                    "No shareholders added: Passport & Emirates ID (EID) required for ALL "
                    "partners with % in Trade License"
                ),
            )
        ]

    warnings: list[ValidationWarning] = []
    for position, shareholder in enumerate(shareholders, start=1):
        name = shareholder.name.strip()
        label = name or f"Shareholder {position}"
        if not name:
            warnings.append(
                ValidationWarning(type="minor", message=f"Shareholder {position}: Name is missing")
            )
        if not shareholder.passport_files:
            warnings.append(
                ValidationWarning(
                    type="major",
                    message=f"{label}: Passport not uploaded (expired KYC is a major discrepancy)",
                )
            )
        if not shareholder.eid_files:
            warnings.append(
                ValidationWarning(
                    type="major",
                    message=(
                        f"{label}: Emirates ID (EID) not uploaded "
                        "(expired KYC is a major discrepancy)"
                    ),
                )
            )
    return warnings


def _conditional_warnings(
    items_by_id: Mapping[str, ChecklistItem],
    conditionals: Mapping[str, bool],
) -> list[ValidationWarning]:
    warnings: list[ValidationWarning] = []
    for rule in CONDITIONAL_PAIRING_RULES:
        if not conditionals.get(rule.conditional_key):
            continue
        item = items_by_id.get(rule.slot_id)
        if item is None and not rule.absent_counts_as_missing:
            continue
        if _is_missing(item):
            warnings.append(
                ValidationWarning(type=rule.severity, message=rule.message, item_id=rule.slot_id)
            )

    if conditionals.get("isFreezone"):
        missing_count = sum(
            1 for slot_id in FREEZONE_SLOT_IDS if _is_missing(items_by_id.get(slot_id))
        )
        if missing_count > 0:
            warnings.append(
                ValidationWarning(
                    type="minor",
                    message=f"Freezone company: {missing_count} Freezone document(s) still missing",
                )
            )
    return warnings


def validate_case(
    merchant_info: MerchantInfo,
    checklist: Sequence[ChecklistItem],
    conditionals: Mapping[str, bool],
    shareholders: Sequence[ShareholderKYC] | None = None,
) -> list[ValidationWarning]:
    """Recompute every case warning from scratch.

    Rules never short-circuit each other. Warnings with identical message
    text collapse to the first occurrence. ``shareholders=None`` skips the
    shareholder rules entirely, while an empty list reports that none were added.
    """
    items_by_id: dict[str, ChecklistItem] = {}
    for item in checklist:
        items_by_id.setdefault(item.id, item)

    warnings = _merchant_warnings(merchant_info)

    for item in checklist:
        if item.is_active_requirement(dict(conditionals)) and item.status == "missing":
            warnings.append(
                ValidationWarning(
                    type="major",
                    message=f"Missing required: {item.label}",
                    item_id=item.id,
                )
            )

    for slot_id, message in _CRITICAL_SLOT_MESSAGES:
        item = items_by_id.get(slot_id)
        if item is not None and item.status == "missing":
            warnings.append(ValidationWarning(type="major", message=message, item_id=slot_id))

    if shareholders is not None:
        warnings.extend(_shareholder_warnings(shareholders))

    warnings.extend(_conditional_warnings(items_by_id, conditionals))

    seen_messages: set[str] = set()
    deduplicated: list[ValidationWarning] = []
    for warning in warnings:
        if warning.message in seen_messages:
            continue
        seen_messages.add(warning.message)
        deduplicated.append(warning)
    return deduplicated


__all__ = [
    "CONDITIONAL_PAIRING_RULES",
    "FREEZONE_SLOT_IDS",
    "ConditionalPairingRule",
    "validate_case",
]
