from __future__ import annotations

from rfm_intake.services.trade_license_parser import parse_trade_license_text


SAMPLE_LICENSE = """
Government of Dubai
Department of Economic Development
Trade License
License No: 123456
Trade Name: Falcon Trading LLC
Legal Form: Limited Liability Company
Issue Date: 01/02/2024
Expiry Date: 31/01/2025
Activities: General Trading
Partner Details
Ahmed Khan - 60%
Sara Ahmed - 40%
Capital: 300000
"""


def test_parses_license_fields() -> None:
    parsed = parse_trade_license_text(SAMPLE_LICENSE)

    assert parsed.license_number == "123456"
    assert parsed.business_name == "Falcon Trading LLC"
    assert parsed.legal_form == "Limited Liability Company"
    assert parsed.issue_date == "01/02/2024"
    assert parsed.expiry_date == "31/01/2025"
    assert parsed.activities == "General Trading"
    assert parsed.authority == "DED"
    assert parsed.raw_text == SAMPLE_LICENSE


def test_partner_listing_stops_at_next_section() -> None:
    parsed = parse_trade_license_text(SAMPLE_LICENSE)

    assert parsed.partners_listed == "Ahmed Khan - 60%; Sara Ahmed - 40%"


def test_date_on_following_line() -> None:
    parsed = parse_trade_license_text("Expiry Date\n15-06-2026")

    assert parsed.expiry_date == "15-06-2026"


def test_last_matching_authority_line_wins() -> None:
    parsed = parse_trade_license_text("Trade License\nAuthority: DMCC\nJebel Ali Free Zone JAFZA")

    assert parsed.authority == "JAFZA"


def test_empty_text_yields_empty_record() -> None:
    parsed = parse_trade_license_text("")

    assert parsed.license_number is None
    assert parsed.authority is None
    assert parsed.partners_listed is None
    assert parsed.raw_text == ""


def test_partner_label_without_following_lines_leaves_listing_empty() -> None:
    parsed = parse_trade_license_text("Partner Details\nActivities: Retail")

    assert parsed.partners_listed is None
    assert parsed.activities == "Retail"


def test_business_name_value_may_repeat_label_words() -> None:
    parsed = parse_trade_license_text("Trade Name: Business Name Holdings\nActivities: Retail Trading")

    assert parsed.business_name == "Business Name Holdings"
    assert parsed.activities == "Retail Trading"
