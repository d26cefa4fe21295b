from __future__ import annotations

from rfm_intake.policy.mdf_validation import validate_mdf_fields
from rfm_intake.services.mdf_parser import parse_mdf_text


SAMPLE_MDF = """
Merchant Details Form
Merchant Legal Name: Falcon Trading LLC
Doing Business As: Falcon Mart
Emirate: Dubai
Country: United Arab Emirates
Address
Shop 12, Al Quoz Industrial Area 3
Mobile No: +971 50 123 4567
Email Address 1: info@falcon.ae

Contact Person
Name: Sara Ahmed
Position: Finance Manager
Mobile: 0501112222

Card Rates
Visa 1.75% 2.10%
Mastercard 1.80%

Settlement Details
Bank Name: Emirates NBD
IBAN: AE070331234567890123456
SWIFT Code: EBILAEAD

Shareholder Name    Shares %    Nationality
Ahmed Khan 60% Pakistani  Resident  Pakistan
Business Profile
Projected Monthly Transaction Volume: 250000
Source of Income: Retail sales
"""


def test_parses_merchant_identity_and_contact() -> None:
    parsed = parse_mdf_text(SAMPLE_MDF)

    assert parsed.merchant_legal_name == "Falcon Trading LLC"
    assert parsed.dba == "Falcon Mart"
    assert parsed.emirate == "Dubai"
    assert parsed.country == "United Arab Emirates"
    assert parsed.address == "Shop 12, Al Quoz Industrial Area 3"
    assert parsed.mobile_no == "+971 50 123 4567"
    assert parsed.email1 == "info@falcon.ae"
    assert parsed.contact_name == "Sara Ahmed"
    assert parsed.contact_title == "Finance Manager"
    assert parsed.contact_mobile == "0501112222"


def test_parses_settlement_details() -> None:
    parsed = parse_mdf_text(SAMPLE_MDF)

    assert parsed.bank_name == "Emirates NBD"
    assert parsed.iban == "AE070331234567890123456"
    assert parsed.swift_code == "EBILAEAD"


def test_card_rates_record_pos_and_optional_ecom() -> None:
    parsed = parse_mdf_text(SAMPLE_MDF)
    rates = {entry.card_type: (entry.pos_rate, entry.ecom_rate) for entry in parsed.fee_schedule}

    assert rates["Visa"] == ("1.75", "2.10")
    assert rates["Mastercard"] == ("1.80", None)


def test_shareholder_rows_split_at_percentage() -> None:
    parsed = parse_mdf_text(SAMPLE_MDF)

    assert len(parsed.shareholders) == 1
    shareholder = parsed.shareholders[0]
    assert shareholder.name == "Ahmed Khan"
    assert shareholder.shares_percentage == "60"
    assert shareholder.nationality == "Pakistani"
    assert shareholder.residence_status == "Resident"
    assert shareholder.country_of_birth == "Pakistan"


def test_business_profile_fields() -> None:
    parsed = parse_mdf_text(SAMPLE_MDF)

    assert parsed.projected_monthly_volume == "250000"
    assert parsed.source_of_income == "Retail sales"


def test_sample_form_passes_field_validation() -> None:
    result = validate_mdf_fields(parse_mdf_text(SAMPLE_MDF))

    assert result.total_present == 16
    assert result.is_acceptable is True


def test_value_on_following_line_is_used_when_label_has_none() -> None:
    parsed = parse_mdf_text("Merchant Legal Name\nDesert Rose Perfumes LLC\nDoing Business As:\nDesert Rose")

    assert parsed.merchant_legal_name == "Desert Rose Perfumes LLC"
    assert parsed.dba == "Desert Rose"


def test_terminal_fee_category_comes_from_preceding_lines() -> None:
    parsed = parse_mdf_text(
        "mPOS Terminal\nSetup Fee: 500\nRefund Fee: 5\nChargeback Handling Fee: 75"
    )

    assert len(parsed.terminal_fees) == 1
    fee = parsed.terminal_fees[0]
    assert (fee.category, fee.label, fee.amount) == ("mpos", "Setup Fee", "500")
    assert parsed.refund_fee == "5"
    assert parsed.chargeback_fee == "75"


def test_setup_fee_without_category_cue_is_other() -> None:
    parsed = parse_mdf_text("Setup Fee: 250")

    assert parsed.terminal_fees[0].category == "other"


def test_product_flags_need_a_check_mark_on_the_same_line() -> None:
    parsed = parse_mdf_text("POS ☑\nE-Commerce\nMOTO ✓")

    assert parsed.product_pos is True
    assert parsed.product_ecom is False
    assert parsed.product_moto is True
    assert parsed.product_mpos is False


def test_sanction_exposure_is_deduplicated_per_country() -> None:
    parsed = parse_mdf_text("Iran  Yes  10%  Electronics\nRussia No\nIran Yes 20%")

    countries = [row.country for row in parsed.sanctions_exposure]
    assert countries == ["Iran", "Russia"]
    iran, russia = parsed.sanctions_exposure
    assert iran.has_business is True
    assert iran.percentage == "10"
    assert russia.has_business is False
    assert russia.percentage is None


def test_malformed_input_never_raises() -> None:
    for text in ("", "   \n\n  ", "Merchant Legal Name", "IBAN", "Owner shares %", ":::"):
        parsed = parse_mdf_text(text)
        assert parsed.raw_text == text

    assert parse_mdf_text("Merchant Legal Name").merchant_legal_name is None


def test_line_matching_two_labels_fills_both_fields() -> None:
    parsed = parse_mdf_text("Merchant Legal Name / Doing Business As: Oasis Cafe")

    assert parsed.merchant_legal_name is not None
    assert parsed.dba == "Oasis Cafe"


def test_inline_value_starts_after_the_first_label_match() -> None:
    parsed = parse_mdf_text(
        "Doing Business As: Oasis Cafe\nMerchant Legal Name: Nameer General Trading LLC"
    )

    assert parsed.dba == "Oasis Cafe"
    assert parsed.merchant_legal_name == "Nameer General Trading LLC"
