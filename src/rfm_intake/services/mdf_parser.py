from __future__ import annotations

import re

from rfm_intake.schemas import (
    ExtractedShareholder,
    FeeScheduleEntry,
    ParsedMDF,
    SanctionExposure,
    TerminalFee,
)
from rfm_intake.services.field_extraction import (
    extract_email,
    extract_field,
    extract_number,
    extract_phone,
    find_percentage,
    line_at,
    preceding_text,
    split_lines,
)


SANCTION_COUNTRIES: tuple[str, ...] = (
    "Iran",
    "Sudan",
    "Syria",
    "North Korea",
    "Russia",
    "Cuba",
    "Ghana",
    "Nigeria",
    "South Sudan",
    "St. Kitts",
    "St. Vincent",
)

CARD_TYPES: tuple[str, ...] = (
    "Visa",
    "Mastercard",
    "Discover",
    "Diners",
    "JCB",
    "China UnionPay",
    "UnionPay",
    "Premium",
    "International",
    "Alipay",
    "Debit",
    "DCC",
)

SHAREHOLDER_SCAN_WINDOW = 20
CONTACT_SCAN_WINDOW = 8

_I = re.IGNORECASE

_MERCHANT_LEGAL_NAME = re.compile(r"merchant.*legal.*name", _I)
_DBA = re.compile(r"doing.*business.*as", _I)
_EMIRATE_LINE = re.compile(r"^emirate\b|\bemirate\s*[:\-]", _I)
_EMIRATE = re.compile(r"emirate", _I)
_COUNTRY_LINE = re.compile(r"^country\b", _I)
_COUNTRY = re.compile(r"country", _I)
_ADDRESS_LINE = re.compile(r"^address\b", _I)
_PO_BOX = re.compile(r"p\.?\s*o\.?\s*box", _I)
_PO_BOX_VALUE = re.compile(r"p\.?\s*o\.?\s*box\s*[:\-]?\s*(\d+)", _I)
_MOBILE_NO = re.compile(r"mobile.*no", _I)
_TELEPHONE_NO = re.compile(r"telephone.*no", _I)
_EMAIL_1 = re.compile(r"email.*address.*1", _I)
_EMAIL_2 = re.compile(r"email.*address.*2", _I)
_SHOP_LOCATION = re.compile(r"shop.*location", _I)
_BUSINESS_TYPE = re.compile(r"(?:type|nature).*business", _I)
_WEB_ADDRESS = re.compile(r"web.*address", _I)

_CONTACT_PERSON = re.compile(r"contact.*person", _I)
_CONTACT_NAME_LINE = re.compile(r"^name\b", _I)
_CONTACT_NAME = re.compile(r"name", _I)
_CONTACT_TITLE_LINE = re.compile(r"title.*position|position", _I)
_CONTACT_TITLE = re.compile(r"(?:title|position)", _I)
_WORK_TELEPHONE = re.compile(r"work.*telephone", _I)

_RATE_TOKEN = re.compile(r"(\d+\.?\d*)\s*%?")
_CARD_TYPE_PATTERNS = tuple((card, re.compile(re.escape(card), _I)) for card in CARD_TYPES)

_ONE_OFF_FEE = re.compile(r"one.?off.*fee", _I)
_ANNUAL_RENT = re.compile(r"annual.*rent", _I)
_SETUP_FEE = re.compile(r"set.*up.*fee", _I)
_ANNUAL_MAINTENANCE = re.compile(r"annual.*maintenance", _I)
_SECURITY_COLLATERAL = re.compile(r"security.*collateral", _I)
_REFUND_FEE = re.compile(r"refund.*fee", _I)
_MSV_SHORTFALL = re.compile(r"msv.*shortfall", _I)
_CHARGEBACK_FEE = re.compile(r"chargeback.*(?:handling|fee)", _I)
_PORTAL_FEE = re.compile(r"merchant.*portal.*fee", _I)
_BUSINESS_INSIGHT = re.compile(r"business.*insight", _I)

_NUMBER_OF_TERMINALS = re.compile(r"number.*terminal", _I)
_CHECK_CUE = re.compile(r"check|tick|☑|☒|✓|✔|x\b", _I)
_PRODUCT_POS = re.compile(r"\bpos\b", _I)
_PRODUCT_ECOM = re.compile(r"e.?commerce", _I)
_PRODUCT_MPOS = re.compile(r"mpos", _I)
_PRODUCT_MOTO = re.compile(r"moto", _I)

_IBAN_LABEL = re.compile(r"\biban\b", _I)
_IBAN_INLINE = re.compile(r"[A-Z]{2}\d{2}[\w\s]{10,30}")
_IBAN_NEXT_LINE = re.compile(r"[A-Z]{2}\d{2}\w{10,30}")
_ACCOUNT_NO = re.compile(r"account.*no", _I)
_ACCOUNT_DIGITS = re.compile(r"[\d\s]{5,}")
_ACCOUNT_TITLE = re.compile(r"account.*title", _I)
_BANK_NAME = re.compile(r"bank.*name", _I)
_SWIFT = re.compile(r"[A-Z]{4}[A-Z]{2}[A-Z0-9]{2,5}")
_BRANCH_NAME = re.compile(r"branch.*name", _I)
_PAYMENT_PLAN = re.compile(r"payment.*plan", _I)

_SHAREHOLDER_TRIGGER = re.compile(r"owner|partner|shareholder", _I)
_SHARES_CUE = re.compile(r"shares|%", _I)
_SHAREHOLDER_HEADER = re.compile(r"owner|partner|shareholder|name|nationality", _I)
_SECTION_BREAK = re.compile(r"section|schedule|business", _I)
_COLUMN_SPLIT = re.compile(r"\s{2,}|\t")

_PROJECTED_VOLUME = re.compile(r"projected.*transaction.*volume", _I)
_PROJECTED_COUNT = re.compile(r"projected.*transaction.*count", _I)
_SOURCE_OF_INCOME = re.compile(r"source.*income", _I)
_SOURCE_OF_CAPITAL = re.compile(r"source.*(?:initial|capital)", _I)
_ACTIVITY_DETAILS = re.compile(r"details.*activit", _I)
_YEARS_IN_UAE_LINE = re.compile(r"how.*long.*(?:company|business).*uae", _I)
_YEARS_IN_UAE = re.compile(r"how.*long", _I)
_EXACT_NATURE_LINE = re.compile(r"exact.*nature.*business", _I)
_EXACT_NATURE = re.compile(r"exact.*nature", _I)

_SANCTION_COUNTRY_PATTERNS = tuple(
    (country, re.compile(re.escape(country), _I)) for country in SANCTION_COUNTRIES
)
_YES = re.compile(r"\byes\b", _I)
_YES_NO_SPLIT = re.compile(r"\b(?:yes|no)\b", _I)

_OTHER_ACQUIRER = re.compile(r"other.*(?:relationship|acquirer)", _I)
_ACQUIRER_NAME = re.compile(r"name.*acquirer", _I)
_ACQUIRER_YEARS = re.compile(r"length.*(?:business|relationship)", _I)
_SWITCH_REASON_LINE = re.compile(r"reason.*(?:approaching|switching|magnati)", _I)
_SWITCH_REASON = re.compile(r"reason", _I)


def _scan_merchant_info(lines: list[str], index: int, data: ParsedMDF) -> None:
    line = lines[index]
    next_line = line_at(lines, index + 1)

    if _MERCHANT_LEGAL_NAME.search(line):
        data.merchant_legal_name = extract_field(lines, index, _MERCHANT_LEGAL_NAME)
    if _DBA.search(line):
        data.dba = extract_field(lines, index, _DBA)
    if _EMIRATE_LINE.search(line):
        data.emirate = extract_field(lines, index, _EMIRATE)
    if (
        _COUNTRY_LINE.search(line)
        and not re.search(r"sanction", line, _I)
        and not re.search(r"birth", line, _I)
    ):
        data.country = extract_field(lines, index, _COUNTRY)
    if (
        _ADDRESS_LINE.search(line)
        and not re.search(r"email", line, _I)
        and not re.search(r"web", line, _I)
    ):
        data.address = next_line or None
    if _PO_BOX.search(line):
        match = _PO_BOX_VALUE.search(line)
        data.po_box = match.group(1) if match else (next_line or None)

    recent_lines = f"{line_at(lines, index - 1)} {line_at(lines, index - 2)}"
    if _MOBILE_NO.search(line) and not re.search(r"contact", recent_lines, _I):
        data.mobile_no = extract_phone(f"{line} {next_line}")
    if _TELEPHONE_NO.search(line) and "work" not in line.lower():
        data.telephone_no = extract_phone(f"{line} {next_line}")
    if _EMAIL_1.search(line):
        data.email1 = extract_email(line) or extract_email(next_line)
    if _EMAIL_2.search(line):
        data.email2 = extract_email(line) or extract_email(next_line)
    if _SHOP_LOCATION.search(line):
        data.shop_location = extract_field(lines, index, _SHOP_LOCATION)
    if _BUSINESS_TYPE.search(line):
        data.business_type = extract_field(lines, index, _BUSINESS_TYPE)
    if _WEB_ADDRESS.search(line):
        data.web_address = extract_field(lines, index, _WEB_ADDRESS)


def _scan_contact_person(lines: list[str], index: int, data: ParsedMDF) -> None:
    if not _CONTACT_PERSON.search(lines[index]):
        return

    for j in range(index + 1, min(index + CONTACT_SCAN_WINDOW, len(lines))):
        contact_line = lines[j]
        if _CONTACT_NAME_LINE.search(contact_line):
            data.contact_name = extract_field(lines, j, _CONTACT_NAME)
        if _CONTACT_TITLE_LINE.search(contact_line):
            data.contact_title = extract_field(lines, j, _CONTACT_TITLE)
        if re.search(r"mobile", contact_line, _I):
            data.contact_mobile = extract_phone(f"{contact_line} {line_at(lines, j + 1)}")
        if _WORK_TELEPHONE.search(contact_line):
            data.contact_work_phone = extract_phone(f"{contact_line} {line_at(lines, j + 1)}")


def _scan_fees(lines: list[str], index: int, data: ParsedMDF) -> None:
    line = lines[index]

    if re.search(r"\d", line):
        for card_type, pattern in _CARD_TYPE_PATTERNS:
            if not pattern.search(line):
                continue
            rates = _RATE_TOKEN.findall(line)
            if rates:
                data.fee_schedule.append(
                    FeeScheduleEntry(
                        card_type=card_type,
                        pos_rate=rates[0],
                        ecom_rate=rates[1] if len(rates) > 1 else None,
                    )
                )

    if _ONE_OFF_FEE.search(line):
        data.terminal_fees.append(
            TerminalFee(category="pos", label="One-off Fee", amount=extract_number(lines, index))
        )
    if _ANNUAL_RENT.search(line) and re.search(r"pos", preceding_text(lines, index, 3), _I):
        data.terminal_fees.append(
            TerminalFee(category="pos", label="Annual Rent", amount=extract_number(lines, index))
        )
    if _SETUP_FEE.search(line):
        window = preceding_text(lines, index, 5)
        if re.search(r"mpos", window, _I):
            category = "mpos"
        elif re.search(r"ecom", window, _I):
            category = "ecom"
        else:
            category = "other"
        data.terminal_fees.append(
            TerminalFee(category=category, label="Setup Fee", amount=extract_number(lines, index))
        )
    if _ANNUAL_MAINTENANCE.search(line):
        data.terminal_fees.append(
            TerminalFee(
                category="ecom",
                label="Annual Maintenance Fee",
                amount=extract_number(lines, index),
            )
        )
    if _SECURITY_COLLATERAL.search(line):
        data.terminal_fees.append(
            TerminalFee(
                category="ecom",
                label="Security Collateral",
                amount=extract_number(lines, index),
            )
        )
    if _REFUND_FEE.search(line):
        data.refund_fee = extract_number(lines, index)
    if _MSV_SHORTFALL.search(line):
        data.msv_shortfall = extract_number(lines, index)
    if _CHARGEBACK_FEE.search(line):
        data.chargeback_fee = extract_number(lines, index)
    if _PORTAL_FEE.search(line):
        data.portal_fee = extract_number(lines, index)
    if _BUSINESS_INSIGHT.search(line):
        data.business_insight_fee = extract_number(lines, index)


def _scan_pos_details(lines: list[str], index: int, data: ParsedMDF) -> None:
    line = lines[index]

    if _NUMBER_OF_TERMINALS.search(line):
        data.num_terminals = extract_number(lines, index)

    if not _CHECK_CUE.search(line):
        return
    if _PRODUCT_POS.search(line):
        data.product_pos = True
    if _PRODUCT_ECOM.search(line):
        data.product_ecom = True
    if _PRODUCT_MPOS.search(line):
        data.product_mpos = True
    if _PRODUCT_MOTO.search(line):
        data.product_moto = True


def _scan_settlement(lines: list[str], index: int, data: ParsedMDF) -> None:
    line = lines[index]
    next_line = line_at(lines, index + 1)

    if _IBAN_LABEL.search(line):
        match = _IBAN_INLINE.search(line) or _IBAN_NEXT_LINE.search(next_line)
        if match:
            data.iban = re.sub(r"\s", "", match.group(0))
    if _ACCOUNT_NO.search(line) and "iban" not in line.lower():
        match = _ACCOUNT_DIGITS.search(next_line)
        if match and match.group(0).strip():
            data.account_no = match.group(0).strip()
    if _ACCOUNT_TITLE.search(line):
        data.account_title = extract_field(lines, index, _ACCOUNT_TITLE)
    if _BANK_NAME.search(line) and not re.search(
        r"existing", preceding_text(lines, index, 3), _I
    ):
        data.bank_name = extract_field(lines, index, _BANK_NAME)
    if re.search(r"swift", line, _I):
        match = _SWIFT.search(line) or _SWIFT.search(next_line)
        if match:
            data.swift_code = match.group(0)
    if _BRANCH_NAME.search(line):
        data.branch_name = extract_field(lines, index, _BRANCH_NAME)
    if _PAYMENT_PLAN.search(line):
        data.payment_plan = extract_field(lines, index, _PAYMENT_PLAN)


def _scan_shareholders(lines: list[str], index: int, data: ParsedMDF) -> None:
    line = lines[index]
    if not (_SHAREHOLDER_TRIGGER.search(line) and _SHARES_CUE.search(line)):
        return

    for j in range(index + 1, min(index + SHAREHOLDER_SCAN_WINDOW, len(lines))):
        row = lines[j]
        if _SHAREHOLDER_HEADER.search(row) and not re.search(r"\d", row):
            continue
        if _SECTION_BREAK.search(row):
            break

        percentage = find_percentage(row)
        if percentage is None:
            continue
        name = row[: percentage.start()].strip()
        columns = _COLUMN_SPLIT.split(row[percentage.end() :].strip())
        data.shareholders.append(
            ExtractedShareholder(
                name=name or None,
                shares_percentage=percentage.group(1),
                nationality=(columns[0] if len(columns) > 0 else "") or None,
                residence_status=(columns[1] if len(columns) > 1 else "") or None,
                country_of_birth=(columns[2] if len(columns) > 2 else "") or None,
            )
        )


def _scan_business_profile(lines: list[str], index: int, data: ParsedMDF) -> None:
    line = lines[index]

    if _PROJECTED_VOLUME.search(line):
        data.projected_monthly_volume = extract_field(lines, index, _PROJECTED_VOLUME)
    if _PROJECTED_COUNT.search(line):
        data.projected_monthly_count = extract_field(lines, index, _PROJECTED_COUNT)
    if _SOURCE_OF_INCOME.search(line) and not re.search(r"capital", line, _I):
        data.source_of_income = extract_field(lines, index, _SOURCE_OF_INCOME)
    if _SOURCE_OF_CAPITAL.search(line):
        data.source_of_capital = extract_field(lines, index, _SOURCE_OF_CAPITAL)
    if _ACTIVITY_DETAILS.search(line):
        data.activity_details = extract_field(lines, index, _ACTIVITY_DETAILS)
    if _YEARS_IN_UAE_LINE.search(line):
        data.years_in_uae = extract_field(lines, index, _YEARS_IN_UAE)
    if _EXACT_NATURE_LINE.search(line):
        data.exact_business_nature = extract_field(lines, index, _EXACT_NATURE)


def _scan_sanctions_exposure(lines: list[str], index: int, data: ParsedMDF) -> None:
    line = lines[index]
    for country, pattern in _SANCTION_COUNTRY_PATTERNS:
        if not pattern.search(line):
            continue
        if any(row.country.lower() == country.lower() for row in data.sanctions_exposure):
            continue
        has_business = bool(_YES.search(line))
        percentage = find_percentage(line)
        data.sanctions_exposure.append(
            SanctionExposure(
                country=country,
                has_business=has_business,
                percentage=percentage.group(1) if percentage else None,
                goods=_YES_NO_SPLIT.split(line)[-1].strip() if has_business else None,
            )
        )


def _scan_other_acquirer(lines: list[str], index: int, data: ParsedMDF) -> None:
    line = lines[index]

    if _OTHER_ACQUIRER.search(line):
        data.has_other_acquirer = bool(
            _YES.search(line) or _YES.search(line_at(lines, index + 1))
        )
    if _ACQUIRER_NAME.search(line):
        data.other_acquirer_names = extract_field(lines, index, _ACQUIRER_NAME)
    if _ACQUIRER_YEARS.search(line):
        data.other_acquirer_years = extract_field(lines, index, _ACQUIRER_YEARS)
    if _SWITCH_REASON_LINE.search(line):
        data.reason_for_switching = extract_field(lines, index, _SWITCH_REASON)


_LINE_SCANNERS = (
    _scan_merchant_info,
    _scan_contact_person,
    _scan_fees,
    _scan_pos_details,
    _scan_settlement,
    _scan_shareholders,
    _scan_business_profile,
    _scan_sanctions_exposure,
    _scan_other_acquirer,
)


def parse_mdf_text(text: str) -> ParsedMDF:
    """Extract a best-effort merchant details record from raw form text.

    Each line is offered to every scanner; scanners do not claim lines, so a
    line matching two labels fills both fields. Later matches overwrite
    earlier ones for scalar fields.
    """
    data = ParsedMDF(raw_text=text or "")
    lines = split_lines(text)
    for index in range(len(lines)):
        for scanner in _LINE_SCANNERS:
            scanner(lines, index, data)
    return data


__all__ = ["CARD_TYPES", "SANCTION_COUNTRIES", "parse_mdf_text"]
