from __future__ import annotations

from datetime import date
from typing import Any, Callable, TypeVar

from fastapi import APIRouter, File, Request, Response, UploadFile
from starlette.concurrency import run_in_threadpool

from rfm_intake.errors import ApiError, IntakeValidationError
from rfm_intake.schemas import (
    CaseStateResponse,
    ConditionalOption,
    ConditionalUpdateRequest,
    CreateCaseRequest,
    FileUploadResponse,
    MerchantInfo,
    MerchantUpdateRequest,
    RenameMappingView,
    ReviewResponse,
    ShareholderCreateRequest,
    ShareholderKYC,
    ShareholderUpdateRequest,
    UploadedFile,
)
from rfm_intake.services.archive_assembler import EXPORT_YEAR_RANGE
from rfm_intake.services.case_session import CaseSession, CaseSessionRegistry
from rfm_intake.services.file_store import RawFile, ShareholderDocKey, SlotKey, StoreKey
from rfm_intake.services.upload_pipeline import UploadOutcome
from rfm_intake.settings import DEFAULT_ALLOWED_CONTENT_TYPES
from rfm_intake.telemetry import IntakeMetrics


_T = TypeVar("_T")


def _state_response(session: CaseSession) -> CaseStateResponse:
    return CaseStateResponse(
        case_id=session.case_id,
        merchant=session.merchant_info,
        checklist=session.checklist,
        conditionals=dict(session.conditionals),
        conditional_options=[
            ConditionalOption(key=key, label=label) for key, label in session.conditional_options
        ],
        shareholders=session.shareholders,
    )


def _domain_call(operation: Callable[..., _T], *args: Any, **kwargs: Any) -> _T:
    try:
        return operation(*args, **kwargs)
    except KeyError as exc:
        raise ApiError(
            code="NOT_FOUND",
            message=str(exc.args[0]) if exc.args else "Item was not found",
            status_code=404,
            policy_reason="case_item_not_found",
        ) from exc
    except ValueError as exc:
        raise IntakeValidationError(str(exc), policy_reason="case_input_invalid") from exc


def _checked_export_date(export_date: date | None) -> date | None:
    if export_date is None:
        return None
    first_year, last_year = EXPORT_YEAR_RANGE
    if not first_year <= export_date.year <= last_year:
        raise IntakeValidationError(
            f"export_date must fall between {first_year} and {last_year}",
            policy_reason="export_date_out_of_range",
        )
    return export_date


def build_cases_router(
    *,
    registry: CaseSessionRegistry,
    metrics: IntakeMetrics | None = None,
    upload_max_bytes: int = 10 * 1024 * 1024,
    upload_max_files: int = 25,
    allowed_content_types: tuple[str, ...] = DEFAULT_ALLOWED_CONTENT_TYPES,
) -> APIRouter:
    router = APIRouter(prefix="/api/cases", tags=["cases"])
    metrics = metrics or registry.metrics
    allowed_content_type_set = {
        content_type.strip().lower() for content_type in allowed_content_types
    }

    def _reject(message: str, *, policy_reason: str, status_code: int = 422) -> IntakeValidationError:
        metrics.increment("upload_rejected")
        return IntakeValidationError(message, policy_reason=policy_reason, status_code=status_code)

    async def _read_uploads(files: list[UploadFile] | None) -> list[RawFile]:
        if not files:
            raise _reject("At least one file upload is required", policy_reason="upload_files_missing")
        if len(files) > upload_max_files:
            raise _reject(
                "Too many files submitted in one request",
                policy_reason="upload_file_count_exceeded",
            )

        raw_files: list[RawFile] = []
        for upload in files:
            content_type = (upload.content_type or "").strip().lower()
            if content_type not in allowed_content_type_set:
                raise _reject(
                    "Unsupported uploaded file content type",
                    policy_reason="unsupported_file_type",
                )
            payload_bytes = await upload.read()
            if len(payload_bytes) > upload_max_bytes:
                raise _reject(
                    "Uploaded file exceeds configured maximum size",
                    policy_reason="upload_size_exceeded",
                    status_code=413,
                )
            raw_files.append(
                RawFile(
                    name=upload.filename or "uploaded-file",
                    content_type=content_type,
                    payload_bytes=payload_bytes,
                )
            )
        return raw_files

    async def _upload_response(
        session: CaseSession,
        key: StoreKey,
        uploads: list[UploadedFile],
    ) -> FileUploadResponse:
        metrics.increment("upload_accepted", len(uploads))
        upload_ids = {upload.id for upload in uploads}
        outcomes: list[UploadOutcome] = await session.settle(key)
        return FileUploadResponse(
            case_id=session.case_id,
            files=uploads,
            outcomes=[outcome.to_view() for outcome in outcomes if outcome.upload_id in upload_ids],
        )

    @router.post("", response_model=CaseStateResponse, status_code=201)
    async def create_case(payload: CreateCaseRequest, request: Request, response: Response) -> CaseStateResponse:
        response.headers["x-trace-id"] = getattr(request.state, "trace_id", "")
        session = registry.create(
            MerchantInfo(
                legal_name=payload.legal_name,
                dba=payload.dba,
                case_type=payload.case_type,
                branch_mode=payload.branch_mode,
            )
        )
        return _state_response(session)

    @router.get("/{case_id}", response_model=CaseStateResponse)
    async def get_case(case_id: str, request: Request, response: Response) -> CaseStateResponse:
        response.headers["x-trace-id"] = getattr(request.state, "trace_id", "")
        return _state_response(registry.get(case_id))

    @router.patch("/{case_id}/merchant", response_model=CaseStateResponse)
    async def update_merchant(
        case_id: str,
        payload: MerchantUpdateRequest,
        request: Request,
        response: Response,
    ) -> CaseStateResponse:
        response.headers["x-trace-id"] = getattr(request.state, "trace_id", "")
        session = registry.get(case_id)
        session.update_merchant(
            legal_name=payload.legal_name,
            dba=payload.dba,
            case_type=payload.case_type,
            branch_mode=payload.branch_mode,
        )
        return _state_response(session)

    @router.post("/{case_id}/conditionals/{key}", response_model=CaseStateResponse)
    async def update_conditional(
        case_id: str,
        key: str,
        request: Request,
        response: Response,
        payload: ConditionalUpdateRequest | None = None,
    ) -> CaseStateResponse:
        response.headers["x-trace-id"] = getattr(request.state, "trace_id", "")
        session = registry.get(case_id)
        if payload is None or payload.value is None:
            _domain_call(session.toggle_conditional, key)
        else:
            _domain_call(session.set_conditional, key, payload.value)
        return _state_response(session)

    @router.post("/{case_id}/slots/{slot_id}/files", response_model=FileUploadResponse)
    async def upload_slot_files(
        case_id: str,
        slot_id: str,
        request: Request,
        response: Response,
        files: list[UploadFile] | None = File(default=None),
    ) -> FileUploadResponse:
        response.headers["x-trace-id"] = getattr(request.state, "trace_id", "")
        session = registry.get(case_id)
        _domain_call(session.find_item, slot_id)
        raw_files = await _read_uploads(files)
        try:
            uploads = await session.add_slot_files(slot_id, raw_files)
        except ValueError as exc:
            raise _reject(str(exc), policy_reason="case_input_invalid") from exc
        return await _upload_response(session, SlotKey(slot_id), uploads)

    @router.delete("/{case_id}/slots/{slot_id}/files/{file_id}", response_model=CaseStateResponse)
    async def delete_slot_file(
        case_id: str,
        slot_id: str,
        file_id: str,
        request: Request,
        response: Response,
    ) -> CaseStateResponse:
        response.headers["x-trace-id"] = getattr(request.state, "trace_id", "")
        session = registry.get(case_id)
        _domain_call(session.remove_slot_file, slot_id, file_id)
        return _state_response(session)

    @router.post("/{case_id}/shareholders", response_model=ShareholderKYC, status_code=201)
    async def add_shareholder(
        case_id: str,
        payload: ShareholderCreateRequest,
        request: Request,
        response: Response,
    ) -> ShareholderKYC:
        response.headers["x-trace-id"] = getattr(request.state, "trace_id", "")
        return registry.get(case_id).add_shareholder(payload.name, payload.percentage)

    @router.patch("/{case_id}/shareholders/{shareholder_id}", response_model=ShareholderKYC)
    async def update_shareholder(
        case_id: str,
        shareholder_id: str,
        payload: ShareholderUpdateRequest,
        request: Request,
        response: Response,
    ) -> ShareholderKYC:
        response.headers["x-trace-id"] = getattr(request.state, "trace_id", "")
        session = registry.get(case_id)
        return _domain_call(
            session.update_shareholder,
            shareholder_id,
            name=payload.name,
            percentage=payload.percentage,
        )

    @router.delete("/{case_id}/shareholders/{shareholder_id}", response_model=CaseStateResponse)
    async def delete_shareholder(
        case_id: str,
        shareholder_id: str,
        request: Request,
        response: Response,
    ) -> CaseStateResponse:
        response.headers["x-trace-id"] = getattr(request.state, "trace_id", "")
        session = registry.get(case_id)
        _domain_call(session.remove_shareholder, shareholder_id)
        return _state_response(session)

    @router.post(
        "/{case_id}/shareholders/{shareholder_id}/{doc_type}/files",
        response_model=FileUploadResponse,
    )
    async def upload_shareholder_files(
        case_id: str,
        shareholder_id: str,
        doc_type: str,
        request: Request,
        response: Response,
        files: list[UploadFile] | None = File(default=None),
    ) -> FileUploadResponse:
        response.headers["x-trace-id"] = getattr(request.state, "trace_id", "")
        session = registry.get(case_id)
        shareholder = _domain_call(session.find_shareholder, shareholder_id)
        _domain_call(session.shareholder_files, shareholder, doc_type)
        raw_files = await _read_uploads(files)
        try:
            uploads = await session.add_shareholder_files(shareholder_id, doc_type, raw_files)
        except ValueError as exc:
            raise _reject(str(exc), policy_reason="case_input_invalid") from exc
        key = ShareholderDocKey(shareholder_id, doc_type)  # type: ignore[arg-type]
        return await _upload_response(session, key, uploads)

    @router.delete(
        "/{case_id}/shareholders/{shareholder_id}/{doc_type}/files/{file_id}",
        response_model=CaseStateResponse,
    )
    async def delete_shareholder_file(
        case_id: str,
        shareholder_id: str,
        doc_type: str,
        file_id: str,
        request: Request,
        response: Response,
    ) -> CaseStateResponse:
        response.headers["x-trace-id"] = getattr(request.state, "trace_id", "")
        session = registry.get(case_id)
        _domain_call(session.remove_shareholder_file, shareholder_id, doc_type, file_id)
        return _state_response(session)

    @router.get("/{case_id}/review", response_model=ReviewResponse)
    async def review_case(
        case_id: str,
        request: Request,
        response: Response,
        export_date: date | None = None,
    ) -> ReviewResponse:
        response.headers["x-trace-id"] = getattr(request.state, "trace_id", "")
        export_date = _checked_export_date(export_date)
        session = registry.get(case_id)
        await session.settle()
        return ReviewResponse(
            case_id=session.case_id,
            warnings=session.validate(),
            mdf_validation=session.mdf_validation,
            mdf_confidence=session.mdf_confidence,
            trade_license=session.trade_license,
            duplicates=session.duplicates(),
            doc_type_alerts=[outcome.to_view() for outcome in session.doc_type_alerts()],
            rename_mappings=[
                RenameMappingView(
                    original_name=mapping.original_name,
                    new_name=mapping.new_name,
                    folder=mapping.folder,
                )
                for mapping in session.rename_mappings(export_date)
            ],
        )

    @router.post("/{case_id}/export", response_model=None)
    async def export_case(
        case_id: str,
        request: Request,
        export_date: date | None = None,
    ) -> Response:
        trace_id = getattr(request.state, "trace_id", "")
        export_date = _checked_export_date(export_date)
        session = registry.get(case_id)
        await session.settle()
        package = await run_in_threadpool(session.export_package, export_date)
        return Response(
            content=package.payload,
            media_type=package.media_type,
            headers={
                "Content-Disposition": f'attachment; filename="{package.filename}"',
                "x-trace-id": trace_id,
            },
        )

    return router


__all__ = ["build_cases_router"]
