from rfm_intake.services.archive_assembler import CasePackage, build_package
from rfm_intake.services.case_repository import (
    CaseRepository,
    InMemoryCaseRepository,
    RedisCaseRepository,
    build_case_repository,
)
from rfm_intake.services.case_session import CaseSession, CaseSessionRegistry
from rfm_intake.services.document_extraction import ExtractedText, TextExtractor
from rfm_intake.services.file_store import RawFile, RawFileStore, ShareholderDocKey, SlotKey
from rfm_intake.services.upload_pipeline import UploadOutcome, UploadPipeline

__all__ = [
    "CasePackage",
    "CaseRepository",
    "CaseSession",
    "CaseSessionRegistry",
    "ExtractedText",
    "InMemoryCaseRepository",
    "RawFile",
    "RawFileStore",
    "RedisCaseRepository",
    "ShareholderDocKey",
    "SlotKey",
    "TextExtractor",
    "UploadOutcome",
    "UploadPipeline",
    "build_case_repository",
    "build_package",
]
