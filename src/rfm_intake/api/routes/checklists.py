from __future__ import annotations

from fastapi import APIRouter, Request, Response

from rfm_intake.policy.checklist_templates import (
    CATEGORIES_ORDER,
    IMPORTANT_REMINDERS,
    MAJOR_DISCREPANCIES,
    MINOR_DISCREPANCIES,
    BranchMode,
    CaseType,
    active_conditional_keys,
    get_checklist_for_case,
    normalize_branch_mode,
    normalize_case_type,
)
from rfm_intake.schemas import (
    ChecklistResponse,
    ChecklistTemplateView,
    ConditionalOption,
    ReferenceResponse,
)


def build_checklists_router() -> APIRouter:
    router = APIRouter(prefix="/api/checklists", tags=["checklists"])

    @router.get("/reference", response_model=ReferenceResponse)
    async def get_reference_lists(request: Request, response: Response) -> ReferenceResponse:
        response.headers["x-trace-id"] = getattr(request.state, "trace_id", "")
        return ReferenceResponse(
            categories_order=[category.value for category in CATEGORIES_ORDER],
            minor_discrepancies=list(MINOR_DISCREPANCIES),
            major_discrepancies=list(MAJOR_DISCREPANCIES),
            important_reminders=list(IMPORTANT_REMINDERS),
        )

    @router.get("/{case_type}", response_model=ChecklistResponse)
    async def get_checklist(
        case_type: str,
        request: Request,
        response: Response,
        branch_mode: str | None = None,
    ) -> ChecklistResponse:
        response.headers["x-trace-id"] = getattr(request.state, "trace_id", "")
        resolved_case_type = normalize_case_type(case_type)
        resolved_branch_mode = None
        if resolved_case_type == CaseType.BRANCH:
            resolved_branch_mode = normalize_branch_mode(branch_mode) or BranchMode.WITH_MAIN
        templates = get_checklist_for_case(resolved_case_type, resolved_branch_mode)
        return ChecklistResponse(
            case_type=resolved_case_type,
            branch_mode=resolved_branch_mode,
            templates=[
                ChecklistTemplateView(
                    id=template.id,
                    label=template.label,
                    category=template.category.value,
                    required=template.required,
                    conditional_key=template.conditional_key,
                    conditional_label=template.conditional_label,
                    multi_file=template.multi_file,
                    notes=list(template.notes),
                    section_header=template.section_header,
                )
                for template in templates
            ],
            conditionals=[
                ConditionalOption(key=key, label=label)
                for key, label in active_conditional_keys(templates)
            ],
        )

    return router


__all__ = ["build_checklists_router"]
