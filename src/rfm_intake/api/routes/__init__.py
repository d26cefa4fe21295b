from rfm_intake.api.routes.cases import build_cases_router
from rfm_intake.api.routes.checklists import build_checklists_router

__all__ = ["build_cases_router", "build_checklists_router"]
