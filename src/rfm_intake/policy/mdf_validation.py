from __future__ import annotations

from dataclasses import dataclass
import math
from typing import Callable

from rfm_intake.schemas import MDFFieldCheck, MDFValidationResult, ParsedMDF


ACCEPTABLE_PERCENTAGE = 60


def _has_text(value: str | None) -> bool:
    return bool(value and value.strip())


@dataclass(frozen=True)
class CriticalField:
    field: str
    label: str
    group: str
    is_present: Callable[[ParsedMDF], bool]


CRITICAL_FIELDS: tuple[CriticalField, ...] = (
    CriticalField("merchant_legal_name", "Legal Name", "Merchant Info",
                  lambda mdf: _has_text(mdf.merchant_legal_name)),
    CriticalField("dba", "DBA / Trading Name", "Merchant Info",
                  lambda mdf: _has_text(mdf.dba)),
    CriticalField("emirate", "Emirate", "Merchant Info",
                  lambda mdf: _has_text(mdf.emirate)),
    CriticalField("country", "Country", "Merchant Info",
                  lambda mdf: _has_text(mdf.country)),
    CriticalField("address", "Address", "Merchant Info",
                  lambda mdf: _has_text(mdf.address)),
    CriticalField("mobile_no", "Mobile Number", "Merchant Info",
                  lambda mdf: _has_text(mdf.mobile_no)),
    CriticalField("email1", "Email Address", "Merchant Info",
                  lambda mdf: _has_text(mdf.email1)),
    CriticalField("contact_name", "Contact Name", "Contact",
                  lambda mdf: _has_text(mdf.contact_name)),
    CriticalField("contact_title", "Contact Title", "Contact",
                  lambda mdf: _has_text(mdf.contact_title)),
    CriticalField("contact_mobile", "Contact Mobile", "Contact",
                  lambda mdf: _has_text(mdf.contact_mobile)),
    CriticalField("account_no_or_iban", "Account No / IBAN", "Settlement",
                  lambda mdf: _has_text(mdf.account_no) or _has_text(mdf.iban)),
    CriticalField("bank_name", "Bank Name", "Settlement",
                  lambda mdf: _has_text(mdf.bank_name)),
    CriticalField("shareholders", "Shareholders", "KYC",
                  lambda mdf: len(mdf.shareholders) >= 1),
    CriticalField("projected_monthly_volume", "Projected Monthly Volume", "KYC",
                  lambda mdf: _has_text(mdf.projected_monthly_volume)),
    CriticalField("source_of_income", "Source of Income", "KYC",
                  lambda mdf: _has_text(mdf.source_of_income)),
    CriticalField("fee_schedule", "Fee Schedule", "Fees",
                  lambda mdf: len(mdf.fee_schedule) >= 1),
)


def validate_mdf_fields(parsed: ParsedMDF) -> MDFValidationResult:
    checks = [
        MDFFieldCheck(
            field=critical.field,
            label=critical.label,
            group=critical.group,
            present=critical.is_present(parsed),
        )
        for critical in CRITICAL_FIELDS
    ]
    total_checked = len(checks)
    total_present = sum(1 for check in checks if check.present)
    # Half-up rounding: 2 of 16 reports as 13%.
    percentage = int(math.floor(total_present / total_checked * 100 + 0.5))

    return MDFValidationResult(
        total_checked=total_checked,
        total_present=total_present,
        percentage=percentage,
        is_acceptable=percentage >= ACCEPTABLE_PERCENTAGE,
        all_fields=checks,
    )


__all__ = [
    "ACCEPTABLE_PERCENTAGE",
    "CRITICAL_FIELDS",
    "CriticalField",
    "validate_mdf_fields",
]
