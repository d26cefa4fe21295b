from __future__ import annotations

import pytest

from rfm_intake.services.doc_type_detector import (
    SLOT_TO_DOC_TYPES,
    detect_document_type,
    has_expected_doc_types,
)


TRADE_LICENSE_TEXT = "Trade License Number: 12345\nIssued by DED Dubai"


def test_trade_license_text_in_mdf_slot_is_flagged() -> None:
    result = detect_document_type(TRADE_LICENSE_TEXT, "mdf")

    assert result.detected == "trade-license"
    assert result.detected_label == "Trade License"
    assert result.is_match is False
    assert result.confidence == 44
    assert result.suggestion is not None
    assert "Trade License" in result.suggestion
    assert "MDF (Merchant Details Form)" in result.suggestion


def test_trade_license_text_in_trade_license_slot_matches() -> None:
    result = detect_document_type(TRADE_LICENSE_TEXT, "trade-license")

    assert result.detected == "trade-license"
    assert result.is_match is True
    assert result.suggestion is None


def test_slot_without_mapping_always_matches() -> None:
    assert has_expected_doc_types("shop-photos-geotag") is False

    result = detect_document_type(TRADE_LICENSE_TEXT, "shop-photos-geotag")

    assert result.is_match is True
    assert result.suggestion is None
    assert result.detected == "trade-license"


@pytest.mark.parametrize("text", [None, "", "   ", "Trade License"])
def test_short_or_empty_text_has_no_opinion(text: str | None) -> None:
    result = detect_document_type(text, "mdf")

    assert result.detected is None
    assert result.is_match is True
    assert result.confidence == 0
    assert result.suggestion is None


def test_low_scoring_text_has_no_opinion() -> None:
    result = detect_document_type("hello world, this is a longer note without keywords", "mdf")

    assert result.detected is None
    assert result.is_match is True


def test_keyword_matching_is_case_insensitive() -> None:
    result = detect_document_type(
        "STATEMENT OF ACCOUNT\nOPENING BALANCE 1,000.00\nCLOSING BALANCE 2,000.00",
        "bank-statement",
    )

    assert result.detected == "bank-statement"
    assert result.is_match is True


def test_mismatch_below_suggestion_confidence_has_no_suggestion() -> None:
    # "vat" alone scores 2 of 12 possible points.
    result = detect_document_type("please attach the vat file for this merchant", "main-moa")

    assert result.detected == "vat-certificate"
    assert result.is_match is False
    assert result.confidence == 17
    assert result.suggestion is None


def test_bank_statement_variants_share_expectations() -> None:
    for slot_id in ("bank-statement", "bank-statement-3m", "personal-statement"):
        assert SLOT_TO_DOC_TYPES[slot_id] == ("bank-statement",)
