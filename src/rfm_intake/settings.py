from __future__ import annotations

from dataclasses import dataclass
import os


_HARDENED_ENVIRONMENTS = frozenset({"production", "prod", "ci"})

DEFAULT_ALLOWED_CONTENT_TYPES: tuple[str, ...] = (
    "application/pdf",
    "image/png",
    "image/jpeg",
    "image/tiff",
    "image/webp",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
)


@dataclass(frozen=True)
class Settings:
    app_name: str
    environment: str
    redis_url: str | None
    repository_ttl_seconds: int
    upload_max_bytes: int
    upload_max_files: int
    allowed_content_types: tuple[str, ...]
    enable_tesseract_ocr: bool
    ocr_page_limit: int
    api_bearer_token: str | None
    cors_allowed_origins: tuple[str, ...]


def parse_str_env(name: str, default: str | None = None) -> str | None:
    raw = os.getenv(name)
    if raw is None:
        return default
    normalized = raw.strip()
    if not normalized:
        return default
    return normalized


def parse_int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer value, got {raw!r}") from exc


def parse_bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def parse_csv_env(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    values = tuple(item.strip() for item in raw.split(",") if item.strip())
    if not values:
        return default
    return values


def is_hardened_environment(environment: str) -> bool:
    return environment.strip().lower() in _HARDENED_ENVIRONMENTS


def load_settings() -> Settings:
    environment = parse_str_env("ENVIRONMENT", "development") or "development"

    upload_max_bytes = parse_int_env("RFM_UPLOAD_MAX_BYTES", 10 * 1024 * 1024)
    if upload_max_bytes <= 0:
        raise ValueError("RFM_UPLOAD_MAX_BYTES must be positive")
    upload_max_files = parse_int_env("RFM_UPLOAD_MAX_FILES", 25)
    if upload_max_files <= 0:
        raise ValueError("RFM_UPLOAD_MAX_FILES must be positive")
    ocr_page_limit = parse_int_env("RFM_OCR_PAGE_LIMIT", 16)
    if ocr_page_limit <= 0:
        raise ValueError("RFM_OCR_PAGE_LIMIT must be positive")

    allowed_content_types = tuple(
        content_type.lower()
        for content_type in parse_csv_env(
            "RFM_ALLOWED_CONTENT_TYPES",
            DEFAULT_ALLOWED_CONTENT_TYPES,
        )
    )

    return Settings(
        app_name=parse_str_env("RFM_APP_NAME", "rfm-case-intake") or "rfm-case-intake",
        environment=environment.lower(),
        redis_url=parse_str_env("RFM_REDIS_URL"),
        repository_ttl_seconds=max(
            parse_int_env("RFM_REPOSITORY_TTL_SECONDS", 7 * 24 * 60 * 60), 1
        ),
        upload_max_bytes=upload_max_bytes,
        upload_max_files=upload_max_files,
        allowed_content_types=allowed_content_types,
        enable_tesseract_ocr=parse_bool_env("RFM_ENABLE_TESSERACT_OCR", True),
        ocr_page_limit=ocr_page_limit,
        api_bearer_token=parse_str_env("RFM_API_BEARER_TOKEN"),
        cors_allowed_origins=parse_csv_env(
            "RFM_CORS_ALLOWED_ORIGINS",
            ("http://localhost:3000",),
        ),
    )


__all__ = [
    "DEFAULT_ALLOWED_CONTENT_TYPES",
    "Settings",
    "is_hardened_environment",
    "load_settings",
    "parse_bool_env",
    "parse_csv_env",
    "parse_int_env",
    "parse_str_env",
]
