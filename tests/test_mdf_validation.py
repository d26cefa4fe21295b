from __future__ import annotations

import pytest

from rfm_intake.policy.mdf_validation import (
    ACCEPTABLE_PERCENTAGE,
    CRITICAL_FIELDS,
    validate_mdf_fields,
)
from rfm_intake.schemas import ExtractedShareholder, FeeScheduleEntry, ParsedMDF


def _full_mdf() -> ParsedMDF:
    return ParsedMDF(
        merchant_legal_name="Falcon Trading LLC",
        dba="Falcon Mart",
        emirate="Dubai",
        country="United Arab Emirates",
        address="Shop 12, Al Quoz",
        mobile_no="+971 50 123 4567",
        email1="info@falcon.ae",
        contact_name="Sara Ahmed",
        contact_title="Finance Manager",
        contact_mobile="0501112222",
        iban="AE070331234567890123456",
        bank_name="Emirates NBD",
        shareholders=[ExtractedShareholder(name="Ahmed Khan", shares_percentage="100")],
        projected_monthly_volume="250000",
        source_of_income="Retail sales",
        fee_schedule=[FeeScheduleEntry(card_type="Visa", pos_rate="1.75")],
    )


def test_critical_field_list_is_fixed() -> None:
    assert len(CRITICAL_FIELDS) == 16
    assert [field.group for field in CRITICAL_FIELDS][:7] == ["Merchant Info"] * 7
    assert ACCEPTABLE_PERCENTAGE == 60


def test_two_present_fields_are_below_threshold() -> None:
    result = validate_mdf_fields(ParsedMDF(merchant_legal_name="Falcon Trading LLC", dba="Falcon"))

    assert result.total_checked == 16
    assert result.total_present == 2
    assert result.percentage == 13
    assert result.is_acceptable is False
    assert [check.field for check in result.present_fields] == ["merchant_legal_name", "dba"]


def test_fully_populated_record_is_acceptable() -> None:
    result = validate_mdf_fields(_full_mdf())

    assert result.total_present == 16
    assert result.percentage == 100
    assert result.is_acceptable is True
    assert result.missing_fields == []


def test_blank_strings_and_empty_lists_count_as_missing() -> None:
    result = validate_mdf_fields(
        ParsedMDF(merchant_legal_name="   ", dba="\t", shareholders=[], fee_schedule=[])
    )

    assert result.total_present == 0
    assert result.percentage == 0


@pytest.mark.parametrize(
    ("account_no", "iban", "present"),
    [
        ("1012345678", None, True),
        (None, "AE070331234567890123456", True),
        ("  ", "", False),
        (None, None, False),
    ],
)
def test_account_or_iban_is_a_composite_field(
    account_no: str | None,
    iban: str | None,
    present: bool,
) -> None:
    result = validate_mdf_fields(ParsedMDF(account_no=account_no, iban=iban))
    check = next(check for check in result.all_fields if check.field == "account_no_or_iban")

    assert check.present is present
    assert check.group == "Settlement"


@pytest.mark.parametrize(
    ("present_count", "percentage", "acceptable"),
    [(9, 56, False), (10, 63, True), (16, 100, True)],
)
def test_acceptance_threshold_boundaries(
    present_count: int,
    percentage: int,
    acceptable: bool,
) -> None:
    full = _full_mdf()
    cleared = {
        "merchant_legal_name": None,
        "dba": None,
        "emirate": None,
        "country": None,
        "address": None,
        "mobile_no": None,
        "email1": None,
    }
    keep = 16 - present_count
    update = dict(list(cleared.items())[:keep])
    result = validate_mdf_fields(full.model_copy(update=update))

    assert result.total_present == present_count
    assert result.percentage == percentage
    assert result.is_acceptable is acceptable
