from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, computed_field

from rfm_intake.policy.checklist_templates import BranchMode, CaseType


DocumentStatus = Literal["missing", "uploaded"]
WarningType = Literal["minor", "major"]
ShareholderDocType = Literal["passport", "eid"]
CaseStatus = Literal["draft", "in_progress", "complete"]


class MerchantInfo(BaseModel):
    legal_name: str = ""
    dba: str = ""
    case_type: CaseType = CaseType.LOW_RISK
    branch_mode: BranchMode | None = None


class UploadedFile(BaseModel):
    id: str
    name: str
    size: int = Field(ge=0)
    content_type: str = ""


class ChecklistItem(BaseModel):
    id: str
    label: str
    category: str
    required: bool
    conditional_key: str | None = None
    conditional_label: str | None = None
    multi_file: bool = False
    notes: list[str] = Field(default_factory=list)
    section_header: str | None = None
    files: list[UploadedFile] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def status(self) -> DocumentStatus:
        return "uploaded" if self.files else "missing"

    def is_active_requirement(self, conditionals: dict[str, bool]) -> bool:
        if self.required:
            return True
        return bool(self.conditional_key and conditionals.get(self.conditional_key))


class ShareholderKYC(BaseModel):
    id: str
    name: str = ""
    percentage: str = ""
    passport_files: list[UploadedFile] = Field(default_factory=list)
    eid_files: list[UploadedFile] = Field(default_factory=list)

    @property
    def is_kyc_complete(self) -> bool:
        return bool(self.name.strip()) and bool(self.passport_files) and bool(self.eid_files)


class ValidationWarning(BaseModel):
    type: WarningType
    message: str
    item_id: str | None = None


class FeeScheduleEntry(BaseModel):
    card_type: str
    pos_rate: str | None = None
    ecom_rate: str | None = None


class TerminalFee(BaseModel):
    category: str
    label: str
    amount: str | None = None


class ExtractedShareholder(BaseModel):
    name: str | None = None
    shares_percentage: str | None = None
    nationality: str | None = None
    residence_status: str | None = None
    country_of_birth: str | None = None


class SanctionExposure(BaseModel):
    country: str
    has_business: bool
    percentage: str | None = None
    goods: str | None = None


class ParsedMDF(BaseModel):
    # Merchant information
    merchant_legal_name: str | None = None
    dba: str | None = None
    emirate: str | None = None
    country: str | None = None
    address: str | None = None
    po_box: str | None = None
    mobile_no: str | None = None
    telephone_no: str | None = None
    email1: str | None = None
    email2: str | None = None
    shop_location: str | None = None
    business_type: str | None = None
    web_address: str | None = None

    # Contact person
    contact_name: str | None = None
    contact_title: str | None = None
    contact_mobile: str | None = None
    contact_work_phone: str | None = None

    # Fees
    fee_schedule: list[FeeScheduleEntry] = Field(default_factory=list)
    terminal_fees: list[TerminalFee] = Field(default_factory=list)
    refund_fee: str | None = None
    msv_shortfall: str | None = None
    chargeback_fee: str | None = None
    portal_fee: str | None = None
    business_insight_fee: str | None = None

    # POS details
    num_terminals: str | None = None
    product_pos: bool = False
    product_ecom: bool = False
    product_mpos: bool = False
    product_moto: bool = False

    # Settlement
    account_no: str | None = None
    iban: str | None = None
    account_title: str | None = None
    bank_name: str | None = None
    swift_code: str | None = None
    branch_name: str | None = None
    payment_plan: str | None = None

    # KYC
    shareholders: list[ExtractedShareholder] = Field(default_factory=list)
    projected_monthly_volume: str | None = None
    projected_monthly_count: str | None = None
    source_of_income: str | None = None
    source_of_capital: str | None = None
    activity_details: str | None = None
    years_in_uae: str | None = None
    exact_business_nature: str | None = None
    sanctions_exposure: list[SanctionExposure] = Field(default_factory=list)

    # Other acquirer
    has_other_acquirer: bool = False
    other_acquirer_names: str | None = None
    other_acquirer_years: str | None = None
    reason_for_switching: str | None = None

    raw_text: str = ""


class ParsedTradeLicense(BaseModel):
    license_number: str | None = None
    issue_date: str | None = None
    expiry_date: str | None = None
    business_name: str | None = None
    legal_form: str | None = None
    activities: str | None = None
    authority: str | None = None
    partners_listed: str | None = None
    raw_text: str = ""


class MDFFieldCheck(BaseModel):
    field: str
    label: str
    group: str
    present: bool


class MDFValidationResult(BaseModel):
    total_checked: int
    total_present: int
    percentage: int
    is_acceptable: bool
    all_fields: list[MDFFieldCheck]

    @property
    def present_fields(self) -> list[MDFFieldCheck]:
        return [check for check in self.all_fields if check.present]

    @property
    def missing_fields(self) -> list[MDFFieldCheck]:
        return [check for check in self.all_fields if not check.present]


class DocTypeDetectionResult(BaseModel):
    detected: str | None = None
    detected_label: str | None = None
    confidence: int = 0
    is_match: bool = True
    suggestion: str | None = None


class DuplicateWarning(BaseModel):
    file_name: str
    file_size: int
    slots: list[str]


class CreateCaseRequest(BaseModel):
    legal_name: str = Field(default="", max_length=300)
    dba: str = Field(default="", max_length=300)
    case_type: CaseType = CaseType.LOW_RISK
    branch_mode: BranchMode | None = None


class MerchantUpdateRequest(BaseModel):
    legal_name: str | None = Field(default=None, max_length=300)
    dba: str | None = Field(default=None, max_length=300)
    case_type: CaseType | None = None
    branch_mode: BranchMode | None = None


class ConditionalUpdateRequest(BaseModel):
    value: bool | None = None


class ShareholderCreateRequest(BaseModel):
    name: str = Field(default="", max_length=300)
    percentage: str = Field(default="", max_length=16)


class ShareholderUpdateRequest(BaseModel):
    name: str | None = Field(default=None, max_length=300)
    percentage: str | None = Field(default=None, max_length=16)


class ChecklistTemplateView(BaseModel):
    id: str
    label: str
    category: str
    required: bool
    conditional_key: str | None = None
    conditional_label: str | None = None
    multi_file: bool = False
    notes: list[str] = Field(default_factory=list)
    section_header: str | None = None


class ConditionalOption(BaseModel):
    key: str
    label: str


class ChecklistResponse(BaseModel):
    case_type: CaseType
    branch_mode: BranchMode | None = None
    templates: list[ChecklistTemplateView]
    conditionals: list[ConditionalOption]


class ReferenceResponse(BaseModel):
    categories_order: list[str]
    minor_discrepancies: list[str]
    major_discrepancies: list[str]
    important_reminders: list[str]


class CaseStateResponse(BaseModel):
    case_id: str
    merchant: MerchantInfo
    checklist: list[ChecklistItem]
    conditionals: dict[str, bool]
    conditional_options: list[ConditionalOption]
    shareholders: list[ShareholderKYC]


class UploadOutcomeView(BaseModel):
    upload_id: str
    file_name: str
    storage_path: str | None = None
    extraction_confidence: float | None = None
    parsed_kind: Literal["mdf", "trade_license"] | None = None
    detection: DocTypeDetectionResult | None = None
    error: str | None = None


class FileUploadResponse(BaseModel):
    case_id: str
    files: list[UploadedFile]
    outcomes: list[UploadOutcomeView]


class RenameMappingView(BaseModel):
    original_name: str
    new_name: str
    folder: str


class ReviewResponse(BaseModel):
    case_id: str
    warnings: list[ValidationWarning]
    mdf_validation: MDFValidationResult | None = None
    mdf_confidence: float | None = None
    trade_license: ParsedTradeLicense | None = None
    duplicates: list[DuplicateWarning]
    doc_type_alerts: list[UploadOutcomeView]
    rename_mappings: list[RenameMappingView]


class ErrorBody(BaseModel):
    code: Literal[
        "VALIDATION_ERROR",
        "NOT_FOUND",
        "EXPORT_FAILED",
        "UNAUTHORIZED",
        "INTERNAL_ERROR",
    ]
    message: str
    trace_id: str
    policy_reason: str | None = None


class ErrorEnvelope(BaseModel):
    error: ErrorBody
