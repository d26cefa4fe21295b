from rfm_intake.policy.checklist_templates import (
    CATEGORIES_ORDER,
    DOCUMENT_TYPE_MAP,
    FOLDER_MAP,
    BranchMode,
    CaseType,
    ChecklistSlotTemplate,
    DocumentCategory,
    active_conditional_keys,
    get_checklist_for_case,
    group_by_category,
)

__all__ = [
    "CATEGORIES_ORDER",
    "DOCUMENT_TYPE_MAP",
    "FOLDER_MAP",
    "BranchMode",
    "CaseType",
    "ChecklistSlotTemplate",
    "DocumentCategory",
    "active_conditional_keys",
    "get_checklist_for_case",
    "group_by_category",
]
