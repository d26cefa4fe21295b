from __future__ import annotations

from dataclasses import dataclass
import math

from rfm_intake.schemas import DocTypeDetectionResult


MIN_TEXT_LENGTH = 20
MIN_MATCH_SCORE = 2
SUGGESTION_MIN_CONFIDENCE = 30


@dataclass(frozen=True)
class DocTypeKeywords:
    id: str
    label: str
    keywords: tuple[tuple[str, int], ...]

    @property
    def max_score(self) -> int:
        return sum(weight for _, weight in self.keywords)

    def score(self, lowered_text: str) -> int:
        return sum(weight for phrase, weight in self.keywords if phrase.lower() in lowered_text)


_DOC_TYPES: tuple[DocTypeKeywords, ...] = (
    DocTypeKeywords(
        id="trade-license",
        label="Trade License",
        keywords=(
            ("trade license", 3),
            ("license number", 2),
            ("DED", 2),
            ("JAFZA", 2),
            ("DMCC", 2),
            ("RAKEZ", 2),
            ("activities", 1),
            ("expiry", 1),
            ("legal form", 1),
        ),
    ),
    DocTypeKeywords(
        id="passport",
        label="Passport",
        keywords=(
            ("passport", 3),
            ("nationality", 2),
            ("date of birth", 2),
            ("machine readable", 2),
            ("surname", 1),
            ("given names", 1),
        ),
    ),
    DocTypeKeywords(
        id="emirates-id",
        label="Emirates ID",
        keywords=(
            ("emirates id", 3),
            ("identity card", 2),
            ("ICA", 2),
            ("resident", 1),
            ("id number", 1),
            ("united arab emirates", 1),
        ),
    ),
    DocTypeKeywords(
        id="mdf",
        label="MDF (Merchant Details Form)",
        keywords=(
            ("merchant details form", 3),
            ("doing business as", 2),
            ("fee schedule", 2),
            ("settlement", 1),
            ("merchant legal name", 2),
            ("contact person", 1),
            ("magnati", 1),
        ),
    ),
    DocTypeKeywords(
        id="moa",
        label="Memorandum of Association",
        keywords=(
            ("memorandum of association", 3),
            ("articles", 1),
            ("shareholders", 1),
            ("capital", 1),
            ("authorized signatory", 2),
            ("incorporation", 1),
        ),
    ),
    DocTypeKeywords(
        id="bank-statement",
        label="Bank Statement",
        keywords=(
            ("statement of account", 3),
            ("opening balance", 2),
            ("closing balance", 2),
            ("debit", 1),
            ("credit", 1),
            ("account number", 1),
            ("transaction", 1),
        ),
    ),
    DocTypeKeywords(
        id="vat-certificate",
        label="VAT Certificate",
        keywords=(
            ("vat", 2),
            ("tax registration", 3),
            ("TRN", 2),
            ("federal tax authority", 3),
            ("value added tax", 2),
        ),
    ),
)

# Slots without an entry are never flagged.
SLOT_TO_DOC_TYPES: dict[str, tuple[str, ...]] = {
    "trade-license": ("trade-license",),
    "mdf": ("mdf",),
    "main-moa": ("moa",),
    "amended-moa": ("moa",),
    "bank-statement": ("bank-statement",),
    "bank-statement-3m": ("bank-statement",),
    "sister-company-bs": ("bank-statement",),
    "personal-statement": ("bank-statement",),
    "signatory-statement": ("bank-statement",),
    "home-country-statement": ("bank-statement",),
    "vat-cert": ("vat-certificate",),
}


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def has_expected_doc_types(slot_id: str) -> bool:
    return slot_id in SLOT_TO_DOC_TYPES


def detect_document_type(text: str | None, expected_slot_id: str) -> DocTypeDetectionResult:
    if not text or len(text.strip()) < MIN_TEXT_LENGTH:
        return DocTypeDetectionResult()

    lowered_text = text.lower()
    best = _DOC_TYPES[0]
    best_score = best.score(lowered_text)
    for doc_type in _DOC_TYPES[1:]:
        score = doc_type.score(lowered_text)
        if score > best_score:
            best, best_score = doc_type, score

    if best_score < MIN_MATCH_SCORE:
        return DocTypeDetectionResult()

    confidence = min(100, _round_half_up(best_score / best.max_score * 100))

    expected_types = SLOT_TO_DOC_TYPES.get(expected_slot_id)
    is_match = expected_types is None or best.id in expected_types

    suggestion = None
    if not is_match and confidence >= SUGGESTION_MIN_CONFIDENCE:
        expected_label = next(
            (doc_type.label for doc_type in _DOC_TYPES if doc_type.id in (expected_types or ())),
            expected_slot_id,
        )
        suggestion = f"This looks like a {best.label}, not a {expected_label}"

    return DocTypeDetectionResult(
        detected=best.id,
        detected_label=best.label,
        confidence=confidence,
        is_match=is_match,
        suggestion=suggestion,
    )


__all__ = [
    "SLOT_TO_DOC_TYPES",
    "DocTypeKeywords",
    "detect_document_type",
    "has_expected_doc_types",
]
