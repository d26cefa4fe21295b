"""Line-oriented helpers shared by the form parsers.

Form values sit either inline after their label (optionally separated by a
colon or dash) or on the following line. Every helper takes the full line
list and the index of the label line, and never raises on short input.
"""

from __future__ import annotations

import re


_DATE_PATTERN = re.compile(r"\d{1,2}[/-]\d{1,2}[/-]\d{2,4}")
_NUMBER_PATTERN = re.compile(r"[\d,.]*\d[\d,.]*")
_EMAIL_PATTERN = re.compile(r"[\w.%+-]+@[\w.-]+\.[a-zA-Z]{2,}")
_PHONE_PATTERN = re.compile(r"[\d\s+\-()]{7,}")
_PERCENT_PATTERN = re.compile(r"(\d+\.?\d*)\s*%")
_GREEDY_GAP = re.compile(r"(?<!\\)\.\*(?!\?)")
_WORD_TAIL = re.compile(r"\w*")
_LABEL_SEPARATOR = re.compile(r"^\s*[:\-]?\s*")

_LAZY_LABELS: dict[tuple[str, int], re.Pattern[str]] = {}


def split_lines(text: str) -> list[str]:
    return [line.strip() for line in (text or "").split("\n") if line.strip()]


def line_at(lines: list[str], index: int) -> str:
    if 0 <= index < len(lines):
        return lines[index]
    return ""


def preceding_text(lines: list[str], index: int, window: int) -> str:
    return " ".join(lines[max(0, index - window) : index])


def _lazy_label(label: re.Pattern[str]) -> re.Pattern[str]:
    """Return ``label`` with every ``.*`` gap made lazy.

    With greedy gaps the last label word can match inside the value:
    ``doing.*business.*as`` stops at the "as" of "Oasis Cafe".
    """
    key = (label.pattern, label.flags)
    lazy = _LAZY_LABELS.get(key)
    if lazy is None:
        lazy = re.compile(_GREEDY_GAP.sub(".*?", label.pattern), label.flags | re.IGNORECASE)
        _LAZY_LABELS[key] = lazy
    return lazy


def extract_field(lines: list[str], index: int, label: re.Pattern[str]) -> str | None:
    line = lines[index]
    match = _lazy_label(label).search(line)
    if match:
        end = match.end()
        # A stem label ("activit") stops mid-word; the rest of that word is label text.
        if 0 < end < len(line) and line[end - 1].isalnum() and line[end].isalnum():
            end = _WORD_TAIL.match(line, end).end()
        value = _LABEL_SEPARATOR.sub("", line[end:], count=1).strip()
        if value:
            return value

    next_line = line_at(lines, index + 1)
    return next_line or None


def extract_date(lines: list[str], index: int) -> str | None:
    match = _DATE_PATTERN.search(lines[index]) or _DATE_PATTERN.search(line_at(lines, index + 1))
    return match.group(0) if match else None


def extract_number(lines: list[str], index: int) -> str | None:
    match = _NUMBER_PATTERN.search(lines[index]) or _NUMBER_PATTERN.search(
        line_at(lines, index + 1)
    )
    return match.group(0) if match else None


def extract_email(text: str) -> str | None:
    match = _EMAIL_PATTERN.search(text)
    return match.group(0) if match else None


def extract_phone(text: str) -> str | None:
    match = _PHONE_PATTERN.search(text)
    if not match:
        return None
    return match.group(0).strip() or None


def find_percentage(text: str) -> re.Match[str] | None:
    return _PERCENT_PATTERN.search(text)


__all__ = [
    "extract_date",
    "extract_email",
    "extract_field",
    "extract_number",
    "extract_phone",
    "find_percentage",
    "line_at",
    "preceding_text",
    "split_lines",
]
