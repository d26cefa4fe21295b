from __future__ import annotations

from dataclasses import dataclass


@dataclass
class ApiError(Exception):
    code: str
    message: str
    status_code: int
    policy_reason: str | None = None

    def __post_init__(self) -> None:
        Exception.__init__(self, self.message)


class AuthError(ApiError):
    def __init__(self, message: str = "Unauthorized") -> None:
        super().__init__(code="UNAUTHORIZED", message=message, status_code=401)


class CaseNotFoundError(ApiError):
    def __init__(self, message: str = "Case was not found") -> None:
        super().__init__(
            code="NOT_FOUND",
            message=message,
            status_code=404,
            policy_reason="case_not_found",
        )


class IntakeValidationError(ApiError):
    def __init__(
        self,
        message: str = "Request validation failed",
        *,
        policy_reason: str | None = None,
        status_code: int = 422,
    ) -> None:
        super().__init__(
            code="VALIDATION_ERROR",
            message=message,
            status_code=status_code,
            policy_reason=policy_reason,
        )


class ExportFailedError(ApiError):
    def __init__(self, message: str = "Case package export failed") -> None:
        super().__init__(
            code="EXPORT_FAILED",
            message=message,
            status_code=500,
            policy_reason="case_export_failed",
        )
