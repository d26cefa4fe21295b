from __future__ import annotations

import logging
import secrets

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from rfm_intake import __version__
from rfm_intake.api.routes import build_cases_router, build_checklists_router
from rfm_intake.errors import ApiError, AuthError
from rfm_intake.schemas import ErrorEnvelope
from rfm_intake.services import (
    CaseRepository,
    CaseSessionRegistry,
    InMemoryCaseRepository,
    RedisCaseRepository,
    TextExtractor,
    UploadPipeline,
    build_case_repository,
)
from rfm_intake.settings import Settings, is_hardened_environment, load_settings
from rfm_intake.telemetry import IntakeMetrics, generate_trace_id

LOGGER = logging.getLogger(__name__)


def _error_response(
    *,
    status_code: int,
    trace_id: str,
    code: str,
    message: str,
    policy_reason: str | None = None,
) -> JSONResponse:
    payload = ErrorEnvelope(
        error={
            "code": code,
            "message": message,
            "trace_id": trace_id,
            "policy_reason": policy_reason,
        }
    )
    return JSONResponse(
        status_code=status_code,
        content=payload.model_dump(mode="json"),
        headers={"x-trace-id": trace_id},
    )


def _repository_backend(repository: CaseRepository) -> str:
    if isinstance(repository, RedisCaseRepository):
        return "redis"
    if isinstance(repository, InMemoryCaseRepository):
        return "in_memory"
    return "unknown"


def create_app(
    settings: Settings | None = None,
    *,
    repository: CaseRepository | None = None,
    extractor: TextExtractor | None = None,
) -> FastAPI:
    settings = settings or load_settings()
    metrics = IntakeMetrics()
    repository = repository or build_case_repository(
        redis_url=settings.redis_url,
        ttl_seconds=settings.repository_ttl_seconds,
    )
    extractor = extractor or TextExtractor(
        enable_ocr=settings.enable_tesseract_ocr,
        ocr_page_limit=settings.ocr_page_limit,
    )
    pipeline = UploadPipeline(repository=repository, extractor=extractor, metrics=metrics)
    registry = CaseSessionRegistry(pipeline=pipeline, repository=repository, metrics=metrics)
    repository_backend = _repository_backend(repository)
    has_api_bearer_token = bool(settings.api_bearer_token)

    app = FastAPI(title=settings.app_name, version=__version__)
    app.state.registry = registry
    app.state.metrics = metrics
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_allowed_origins),
        allow_credentials=False,
        allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "Accept"],
        expose_headers=["x-trace-id", "Content-Disposition"],
        max_age=600,
    )

    @app.middleware("http")
    async def trace_middleware(request: Request, call_next):
        request.state.trace_id = generate_trace_id()
        request_path = request.url.path
        requires_bearer_auth = has_api_bearer_token and (
            request_path.startswith("/api") or request_path.startswith("/ops")
        )
        if requires_bearer_auth:
            auth_header = request.headers.get("authorization", "")
            expected = f"Bearer {settings.api_bearer_token}"
            if not secrets.compare_digest(auth_header, expected):
                error = AuthError("Missing or invalid bearer token")
                return _error_response(
                    status_code=error.status_code,
                    trace_id=request.state.trace_id,
                    code=error.code,
                    message=error.message,
                )

        response = await call_next(request)
        response.headers["x-trace-id"] = request.state.trace_id
        return response

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        trace_id = getattr(request.state, "trace_id", generate_trace_id())
        return _error_response(
            status_code=422,
            trace_id=trace_id,
            code="VALIDATION_ERROR",
            message="Request validation failed",
        )

    @app.exception_handler(ApiError)
    async def api_exception_handler(request: Request, exc: ApiError):
        trace_id = getattr(request.state, "trace_id", generate_trace_id())
        return _error_response(
            status_code=exc.status_code,
            trace_id=trace_id,
            code=exc.code,
            message=exc.message,
            policy_reason=exc.policy_reason,
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        trace_id = getattr(request.state, "trace_id", generate_trace_id())
        LOGGER.exception("Unhandled API exception", exc_info=exc)
        message = "Unexpected server error"
        if not is_hardened_environment(settings.environment):
            message = str(exc) or message
        return _error_response(
            status_code=500,
            trace_id=trace_id,
            code="INTERNAL_ERROR",
            message=message,
        )

    app.include_router(build_checklists_router())
    app.include_router(
        build_cases_router(
            registry=registry,
            metrics=metrics,
            upload_max_bytes=settings.upload_max_bytes,
            upload_max_files=settings.upload_max_files,
            allowed_content_types=settings.allowed_content_types,
        )
    )

    @app.get("/healthz", tags=["health"])
    async def healthz() -> dict[str, str]:
        return {"status": "ok", "service": settings.app_name}

    @app.get("/ops/metrics", tags=["ops"])
    async def ops_metrics() -> dict[str, object]:
        return {
            "intake_metrics": metrics.snapshot(),
            "case_repository": {"backend": repository_backend},
            "open_cases": len(registry),
            "ocr_available": extractor.ocr_available,
        }

    return app


app = create_app()
