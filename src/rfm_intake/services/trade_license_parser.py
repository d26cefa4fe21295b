from __future__ import annotations

import re

from rfm_intake.schemas import ParsedTradeLicense
from rfm_intake.services.field_extraction import (
    extract_date,
    extract_field,
    line_at,
    split_lines,
)


PARTNER_SCAN_WINDOW = 10

_I = re.IGNORECASE

_LICENSE_NUMBER_LABEL = re.compile(r"licen[cs]e.*(?:no|number)", _I)
_LICENSE_NUMBER_VALUE = re.compile(r"[\d\-/]*\d[\d\-/]*")
_EXPIRY = re.compile(r"expir", _I)
_ISSUE_DATE = re.compile(r"issue.*date", _I)
_BUSINESS_NAME = re.compile(r"(?:trade|business|company).*name", _I)
_LEGAL_FORM_LINE = re.compile(r"legal.*form|legal.*type", _I)
_LEGAL_FORM = re.compile(r"legal.*(?:form|type)", _I)
_ACTIVITIES = re.compile(r"activit", _I)
_PARTNER_LABEL = re.compile(r"(?:partner|shareholder|owner).*(?:name|detail)", _I)
_PARTNER_SECTION_END = re.compile(r"activit|section|legal.*form|capital", _I)

# Checked in this order on every line; each hit overwrites the previous value.
ISSUING_AUTHORITIES: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("DED", re.compile(r"DED|department.*economic", _I)),
    ("JAFZA", re.compile(r"JAFZA|jebel.*ali", _I)),
    ("DMCC", re.compile(r"DMCC", _I)),
    ("DIFC", re.compile(r"DIFC", _I)),
    ("ADGM", re.compile(r"ADGM", _I)),
    ("RAKEZ", re.compile(r"RAKEZ|ras.*al.*khaim", _I)),
    ("SAIF Zone", re.compile(r"SAIF.*zone|sharjah.*airport", _I)),
)


def _collect_partner_lines(lines: list[str], index: int) -> str | None:
    collected: list[str] = []
    for j in range(index + 1, min(index + PARTNER_SCAN_WINDOW, len(lines))):
        if _PARTNER_SECTION_END.search(lines[j]):
            break
        collected.append(lines[j])
    return "; ".join(collected) if collected else None


def parse_trade_license_text(text: str) -> ParsedTradeLicense:
    data = ParsedTradeLicense(raw_text=text or "")
    lines = split_lines(text)

    for index, line in enumerate(lines):
        if _LICENSE_NUMBER_LABEL.search(line):
            match = _LICENSE_NUMBER_VALUE.search(line) or _LICENSE_NUMBER_VALUE.search(
                line_at(lines, index + 1)
            )
            if match:
                data.license_number = match.group(0)
        if _EXPIRY.search(line):
            data.expiry_date = extract_date(lines, index)
        if _ISSUE_DATE.search(line):
            data.issue_date = extract_date(lines, index)
        if _BUSINESS_NAME.search(line):
            data.business_name = extract_field(lines, index, _BUSINESS_NAME)
        if _LEGAL_FORM_LINE.search(line):
            data.legal_form = extract_field(lines, index, _LEGAL_FORM)
        if _ACTIVITIES.search(line):
            data.activities = extract_field(lines, index, _ACTIVITIES)

        # TODO: confirm against issued licenses whether the first or the most
        # specific authority should win instead of the last matching line.
        for authority, pattern in ISSUING_AUTHORITIES:
            if pattern.search(line):
                data.authority = authority

        if _PARTNER_LABEL.search(line):
            partners = _collect_partner_lines(lines, index)
            if partners:
                data.partners_listed = partners

    return data


__all__ = ["ISSUING_AUTHORITIES", "parse_trade_license_text"]
