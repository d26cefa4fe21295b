from __future__ import annotations

import pytest

from rfm_intake.policy.checklist_templates import (
    CATEGORIES_ORDER,
    DOCUMENT_TYPE_MAP,
    FOLDER_MAP,
    BranchMode,
    CaseType,
    active_conditional_keys,
    get_checklist_for_case,
    group_by_category,
    normalize_case_type,
)


def _ids(case_type, branch_mode=None) -> list[str]:
    return [template.id for template in get_checklist_for_case(case_type, branch_mode)]


def test_low_risk_checklist_starts_with_forms_and_has_unique_ids() -> None:
    ids = _ids(CaseType.LOW_RISK)

    assert ids[:2] == ["ack-form", "mdf"]
    assert len(ids) == len(set(ids))
    assert "trade-license" in ids
    assert "main-moa" in ids


@pytest.mark.parametrize(
    ("case_type", "extra_ids"),
    [
        (CaseType.HIGH_RISK, ["bank-statement-3m", "pep-form", "goaml-screenshot"]),
        (CaseType.ECOM, ["ecom-template", "sanction-undertaking-ecom"]),
    ],
)
def test_extended_case_types_append_to_low_risk(case_type: CaseType, extra_ids: list[str]) -> None:
    low_risk = _ids(CaseType.LOW_RISK)
    ids = _ids(case_type)

    assert ids[: len(low_risk)] == low_risk
    for slot_id in extra_ids:
        assert slot_id in ids[len(low_risk) :]


def test_branch_with_main_is_reduced_set_without_mdf() -> None:
    ids = _ids(CaseType.BRANCH, BranchMode.WITH_MAIN)

    assert ids[0] == "branch-form"
    assert "mdf" not in ids
    assert "trade-license" in ids


def test_branch_separate_adds_forms_after_with_main_set() -> None:
    with_main = _ids(CaseType.BRANCH, BranchMode.WITH_MAIN)
    separate = _ids(CaseType.BRANCH, BranchMode.SEPARATE)

    assert separate[: len(with_main)] == with_main
    assert separate[len(with_main) :] == ["checklist-doc", "seq", "dual-goods"]


def test_branch_without_mode_behaves_like_with_main() -> None:
    assert _ids(CaseType.BRANCH) == _ids(CaseType.BRANCH, BranchMode.WITH_MAIN)


@pytest.mark.parametrize("raw_value", ["unknown", "", None, "LOW-RISK "])
def test_unknown_case_type_falls_back_to_low_risk(raw_value) -> None:
    assert normalize_case_type(raw_value) == CaseType.LOW_RISK
    assert _ids(raw_value) == _ids(CaseType.LOW_RISK)


def test_checklist_templates_are_fresh_lists() -> None:
    first = get_checklist_for_case(CaseType.LOW_RISK)
    first.clear()

    assert get_checklist_for_case(CaseType.LOW_RISK)


def test_active_conditional_keys_are_unique_and_ordered() -> None:
    keys = active_conditional_keys(get_checklist_for_case(CaseType.LOW_RISK))
    names = [key for key, _ in keys]

    assert len(names) == len(set(names))
    assert "isFreezone" in names
    assert all(label for _, label in keys)


def test_group_by_category_follows_category_order() -> None:
    grouped = group_by_category(get_checklist_for_case(CaseType.HIGH_RISK))
    categories = [category for category, _ in grouped]

    expected = [category.value for category in CATEGORIES_ORDER if category.value in categories]
    assert categories == expected
    assert sum(len(items) for _, items in grouped) == len(get_checklist_for_case(CaseType.HIGH_RISK))


def test_every_slot_has_a_document_type_token_and_folder() -> None:
    for case_type in CaseType:
        for template in get_checklist_for_case(case_type, BranchMode.SEPARATE):
            assert template.id in DOCUMENT_TYPE_MAP
            assert template.category.value in FOLDER_MAP

    assert DOCUMENT_TYPE_MAP["mdf"] == "MDF"
    assert DOCUMENT_TYPE_MAP["trade-license"] == "TradeLicense"
