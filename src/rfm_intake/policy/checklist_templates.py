from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Protocol, TypeVar


class CaseType(str, Enum):
    LOW_RISK = "low-risk"
    HIGH_RISK = "high-risk"
    ECOM = "ecom"
    BRANCH = "branch"


class BranchMode(str, Enum):
    WITH_MAIN = "with-main"
    SEPARATE = "separate"


class DocumentCategory(str, Enum):
    FORMS = "Forms"
    LEGAL = "Legal"
    KYC = "KYC"
    BANK = "Bank"
    SHOP = "Shop"


CATEGORIES_ORDER: tuple[DocumentCategory, ...] = (
    DocumentCategory.FORMS,
    DocumentCategory.LEGAL,
    DocumentCategory.KYC,
    DocumentCategory.BANK,
    DocumentCategory.SHOP,
)


@dataclass(frozen=True)
class ChecklistSlotTemplate:
    id: str
    label: str
    category: DocumentCategory
    required: bool
    conditional_key: str | None = None
    conditional_label: str | None = None
    multi_file: bool = False
    notes: tuple[str, ...] = ()
    section_header: str | None = None


_LOW_RISK: tuple[ChecklistSlotTemplate, ...] = (
    # Forms
    ChecklistSlotTemplate(
        id="ack-form",
        label="Acknowledgment Form",
        category=DocumentCategory.FORMS,
        required=True,
    ),
    ChecklistSlotTemplate(
        id="mdf",
        label="MDF - Merchant Details Form (w/ Business Insight Fee - 99 AED)",
        category=DocumentCategory.FORMS,
        required=True,
        notes=(
            "Ensure all pages are checked and all sections are properly filled in",
            "Make sure no sections are skipped or missing",
        ),
    ),
    ChecklistSlotTemplate(
        id="signed-fvr",
        label="Signed FVR (Field Verification Report)",
        category=DocumentCategory.FORMS,
        required=True,
    ),
    ChecklistSlotTemplate(
        id="checklist-doc",
        label="Checklist (Use the correct document as per Legal Entity)",
        category=DocumentCategory.FORMS,
        required=True,
    ),
    ChecklistSlotTemplate(
        id="seq",
        label="SEQ - Sanctions Exposure Questionnaire (Must be filled)",
        category=DocumentCategory.FORMS,
        required=True,
    ),
    ChecklistSlotTemplate(
        id="dual-goods",
        label="Dual Goods Questionnaire (Must be filled)",
        category=DocumentCategory.FORMS,
        required=True,
    ),
    # Legal
    ChecklistSlotTemplate(
        id="trade-license",
        label="Trade License",
        category=DocumentCategory.LEGAL,
        required=True,
        notes=(
            "Ensure all pages of the Trade License are included",
            "Check expiry date: an expired TL is a major discrepancy",
            "Review shareholder information: verify each shareholder is listed properly",
        ),
    ),
    ChecklistSlotTemplate(
        id="trademark-cert",
        label="Trademark Certificate",
        category=DocumentCategory.LEGAL,
        required=False,
        conditional_key="signboardDifferent",
        conditional_label="Signboard name is different from the Trade License",
    ),
    ChecklistSlotTemplate(
        id="main-moa",
        label="Main MOA - Memorandum of Association",
        category=DocumentCategory.LEGAL,
        required=True,
        notes=(
            "Authorized signatory should be mentioned",
            "Always check if Main MOA is attached: a missing MOA is a major discrepancy",
        ),
    ),
    ChecklistSlotTemplate(
        id="amended-moa",
        label="Amended MOA (Memorandum of Association)",
        category=DocumentCategory.LEGAL,
        required=False,
        conditional_key="shareholderChanges",
        conditional_label="Changes in shareholders / signatory / trade name",
    ),
    ChecklistSlotTemplate(
        id="poa",
        label="POA - Power of Attorney",
        category=DocumentCategory.LEGAL,
        required=False,
        conditional_key="poaSigning",
        conditional_label="Someone else signs the MDF on behalf of the authorized signatory",
    ),
    ChecklistSlotTemplate(
        id="articles-assoc",
        label="Articles of Association",
        category=DocumentCategory.LEGAL,
        required=False,
        section_header="For Freezone Companies",
        conditional_key="isFreezone",
        conditional_label="This is a Freezone company",
    ),
    ChecklistSlotTemplate(
        id="share-cert",
        label="Share Certificate",
        category=DocumentCategory.LEGAL,
        required=False,
        conditional_key="isFreezone",
        conditional_label="This is a Freezone company",
    ),
    ChecklistSlotTemplate(
        id="cert-incumbency",
        label="Certificate of Incumbency",
        category=DocumentCategory.LEGAL,
        required=False,
        conditional_key="isFreezone",
        conditional_label="This is a Freezone company",
    ),
    ChecklistSlotTemplate(
        id="board-resolution",
        label="Board of Resolution",
        category=DocumentCategory.LEGAL,
        required=False,
        conditional_key="isFreezone",
        conditional_label="This is a Freezone company",
    ),
    ChecklistSlotTemplate(
        id="vat-cert",
        label="VAT Certificate",
        category=DocumentCategory.LEGAL,
        required=True,
    ),
    ChecklistSlotTemplate(
        id="vat-declaration",
        label="VAT Declaration Email",
        category=DocumentCategory.LEGAL,
        required=False,
        conditional_key="noVat",
        conditional_label="Merchant doesn't have VAT",
        notes=("Missing VAT email / VAT cert is a common discrepancy",),
    ),
    # KYC: passport and Emirates ID are collected per shareholder, not as flat slots.
    # Bank
    ChecklistSlotTemplate(
        id="bank-statement",
        label="Latest 1 Month Bank Statement (For accounts more than 1 month old)",
        category=DocumentCategory.BANK,
        required=True,
        notes=(
            "Bank account name mismatch is a common discrepancy",
            "Ensure scanned docs are clear and legible",
        ),
    ),
    ChecklistSlotTemplate(
        id="welcome-letter",
        label="Welcome Letter",
        category=DocumentCategory.BANK,
        required=False,
        conditional_key="newAccount",
        conditional_label="Newly opened bank account",
    ),
    ChecklistSlotTemplate(
        id="poh-email",
        label="POH Email (Proof of Holding)",
        category=DocumentCategory.BANK,
        required=False,
        conditional_key="noBankAccount",
        conditional_label="Company doesn't have a bank account",
        notes=("Missing POH email / IBAN proof is a common discrepancy",),
    ),
    ChecklistSlotTemplate(
        id="supplier-invoice",
        label="Latest Supplier Invoice - Major Suppliers (1 or 2 invoices)",
        category=DocumentCategory.BANK,
        required=True,
        multi_file=True,
        notes=("Name on invoice should be addressed as per the Trade License name",),
    ),
    # Shop
    ChecklistSlotTemplate(
        id="shop-photos-geotag",
        label="Shop Photos w/ Geotag",
        category=DocumentCategory.SHOP,
        required=True,
        multi_file=True,
    ),
    ChecklistSlotTemplate(
        id="colored-photos",
        label="Colored Photos (Rate Approval Purpose)",
        category=DocumentCategory.SHOP,
        required=True,
        multi_file=True,
        notes=("Specific for supermarket merchants: 2 photos needed only",),
    ),
    ChecklistSlotTemplate(
        id="photo-inside",
        label="Inside Photo (Counters are showing)",
        category=DocumentCategory.SHOP,
        required=True,
    ),
    ChecklistSlotTemplate(
        id="photo-outside",
        label="Outside Photo (Full shop showing & signboard should be clear)",
        category=DocumentCategory.SHOP,
        required=True,
    ),
    ChecklistSlotTemplate(
        id="tenancy-ejari",
        label="Shop Tenancy Contract or Ejari",
        category=DocumentCategory.SHOP,
        required=True,
        notes=("Check expiry date: an expired tenancy is a major discrepancy",),
    ),
    ChecklistSlotTemplate(
        id="electricity-bill",
        label="Electricity Bill",
        category=DocumentCategory.SHOP,
        required=False,
        conditional_key="tenancyExpired",
        conditional_label="Tenancy is expired",
    ),
    ChecklistSlotTemplate(
        id="lease-agreement",
        label="Lease Agreement",
        category=DocumentCategory.SHOP,
        required=False,
        conditional_key="insideHotelMall",
        conditional_label="Shop is situated inside Hotel / Mall",
    ),
    ChecklistSlotTemplate(
        id="kiosk-permit",
        label="Kiosk Permit",
        category=DocumentCategory.SHOP,
        required=False,
        conditional_key="isKiosk",
        conditional_label="Shop is a kiosk",
    ),
)

_BRANCH_WITH_MAIN: tuple[ChecklistSlotTemplate, ...] = (
    ChecklistSlotTemplate(
        id="branch-form",
        label="Branch Form (Make sure everything is properly filled)",
        category=DocumentCategory.FORMS,
        required=True,
    ),
    ChecklistSlotTemplate(
        id="trade-license",
        label="Trade License",
        category=DocumentCategory.LEGAL,
        required=True,
        notes=("Ensure all pages are included", "Check expiry date"),
    ),
    ChecklistSlotTemplate(
        id="trademark-cert",
        label="Trademark Certificate",
        category=DocumentCategory.LEGAL,
        required=False,
        conditional_key="signboardDifferent",
        conditional_label="Signboard name is different from the Trade License",
    ),
    ChecklistSlotTemplate(
        id="signed-fvr",
        label="Signed FVR (Field Verification Report)",
        category=DocumentCategory.FORMS,
        required=True,
    ),
    ChecklistSlotTemplate(
        id="shop-photos-geotag",
        label="Shop Photos w/ Geotag",
        category=DocumentCategory.SHOP,
        required=True,
        multi_file=True,
    ),
    ChecklistSlotTemplate(
        id="tenancy-ejari",
        label="Shop Tenancy Contract or Ejari",
        category=DocumentCategory.SHOP,
        required=True,
        notes=("Check expiry date: an expired tenancy is a major discrepancy",),
    ),
    ChecklistSlotTemplate(
        id="electricity-bill",
        label="Electricity Bill",
        category=DocumentCategory.SHOP,
        required=False,
        conditional_key="tenancyExpired",
        conditional_label="Tenancy is expired",
    ),
    ChecklistSlotTemplate(
        id="lease-agreement",
        label="Lease Agreement",
        category=DocumentCategory.SHOP,
        required=False,
        conditional_key="insideHotelMall",
        conditional_label="Shop is situated inside Hotel / Mall",
    ),
    ChecklistSlotTemplate(
        id="kiosk-permit",
        label="Kiosk Permit",
        category=DocumentCategory.SHOP,
        required=False,
        conditional_key="isKiosk",
        conditional_label="Shop is a kiosk",
    ),
)

_BRANCH_SEPARATE_ADDITIONAL: tuple[ChecklistSlotTemplate, ...] = (
    ChecklistSlotTemplate(
        id="checklist-doc",
        label="Checklist (Use the correct document as per Legal Entity)",
        category=DocumentCategory.FORMS,
        required=True,
    ),
    ChecklistSlotTemplate(
        id="seq",
        label="SEQ (Must be the filled one)",
        category=DocumentCategory.FORMS,
        required=True,
    ),
    ChecklistSlotTemplate(
        id="dual-goods",
        label="DUAL GOODS (Must be the filled one)",
        category=DocumentCategory.FORMS,
        required=True,
    ),
)

_HIGH_RISK_ADDITIONAL: tuple[ChecklistSlotTemplate, ...] = (
    # Bank statement chain: each fallback applies when the previous source is unavailable.
    ChecklistSlotTemplate(
        id="bank-statement-3m",
        label="Latest 3 Months Bank Statement",
        category=DocumentCategory.BANK,
        required=True,
        section_header="Latest 3 Months Bank Statement",
    ),
    ChecklistSlotTemplate(
        id="sister-company-bs",
        label="3 Months Bank Statement of Sister Company (Provide the TL also)",
        category=DocumentCategory.BANK,
        required=False,
        conditional_key="newCompany",
        conditional_label="New company account - no 3-month company history",
    ),
    ChecklistSlotTemplate(
        id="personal-statement",
        label="3 Months Personal Statement of the Highest Shareholder",
        category=DocumentCategory.BANK,
        required=False,
        conditional_key="noSisterCompany",
        conditional_label="No sister company available",
    ),
    ChecklistSlotTemplate(
        id="signatory-statement",
        label="3 Months Personal Statement of the Signatory",
        category=DocumentCategory.BANK,
        required=False,
        conditional_key="noShareholderAccount",
        conditional_label="Highest shareholder doesn't have a bank account",
    ),
    ChecklistSlotTemplate(
        id="home-country-statement",
        label="3 Months Personal Statement from Home Country",
        category=DocumentCategory.BANK,
        required=False,
        conditional_key="noPersonalAccount",
        conditional_label="No personal bank account in UAE",
    ),
    ChecklistSlotTemplate(
        id="partner-visa-tl",
        label="Trade License (of the other company)",
        category=DocumentCategory.LEGAL,
        required=False,
        conditional_key="partnerVisaOther",
        conditional_label="Partner visa belongs to another company",
    ),
    ChecklistSlotTemplate(
        id="uae-address-proof",
        label="UAE Address Proof / DEWA Bill",
        category=DocumentCategory.KYC,
        required=False,
        conditional_key="sanctionCountryPartner",
        conditional_label="Other partners are from Sanction Countries",
        notes=("Mandatory for partners from sanction countries",),
    ),
    ChecklistSlotTemplate(
        id="non-resident-address",
        label="Latest Address Proof from Home Country",
        category=DocumentCategory.KYC,
        required=False,
        conditional_key="nonResidentPartner",
        conditional_label="Partners who are non-resident",
    ),
    ChecklistSlotTemplate(
        id="non-resident-mdf-note",
        label="Mention as Non-Resident in MDF",
        category=DocumentCategory.KYC,
        required=False,
        conditional_key="nonResidentPartner",
        conditional_label="Partners who are non-resident",
        notes=("Non-resident status should be clearly mentioned in the MDF",),
    ),
    ChecklistSlotTemplate(
        id="sanction-undertaking",
        label="Sanction Undertaking (w/ Company Stamp & Signatory Signature)",
        category=DocumentCategory.FORMS,
        required=False,
        section_header="If High Risk Due to Nationality",
        conditional_key="highRiskNationality",
        conditional_label="High risk due to nationality",
    ),
    ChecklistSlotTemplate(
        id="pep-ecdd",
        label="PEP ECDD - Enhanced Customer Due Diligence (Word Format)",
        category=DocumentCategory.FORMS,
        required=False,
        section_header="If High Risk Due to PEP (Politically Exposed Person)",
        conditional_key="highRiskPep",
        conditional_label="High risk due to PEP",
    ),
    ChecklistSlotTemplate(
        id="pep-form",
        label="PEP Form (Filled)",
        category=DocumentCategory.FORMS,
        required=False,
        conditional_key="highRiskPep",
        conditional_label="High risk due to PEP",
    ),
    ChecklistSlotTemplate(
        id="ecdd-normal",
        label="ECDD - Enhanced Customer Due Diligence (Word Format)",
        category=DocumentCategory.FORMS,
        required=False,
        section_header="If High Risk Due to Other Categories",
        conditional_key="highRiskOther",
        conditional_label="High risk due to other categories",
    ),
    ChecklistSlotTemplate(
        id="seq-word",
        label="SEQ - Sanctions Exposure Questionnaire (Word Format)",
        category=DocumentCategory.FORMS,
        required=True,
        notes=("Required for all high risk cases regardless of category",),
    ),
    ChecklistSlotTemplate(
        id="goaml-screenshot",
        label="GoAML Screenshot",
        category=DocumentCategory.FORMS,
        required=False,
        section_header="For Jewellery and Real Estate - Additional Documents",
        conditional_key="jewelleryRealEstate",
        conditional_label="Jewellery or Real Estate merchant",
    ),
    ChecklistSlotTemplate(
        id="aml-policy",
        label="AML Policy",
        category=DocumentCategory.FORMS,
        required=False,
        conditional_key="jewelleryRealEstate",
        conditional_label="Jewellery or Real Estate merchant",
    ),
)

_ECOM_ADDITIONAL: tuple[ChecklistSlotTemplate, ...] = (
    ChecklistSlotTemplate(
        id="ecom-template",
        label="ECOM Template (Word Format)",
        category=DocumentCategory.FORMS,
        required=True,
        notes=(
            "All pages & boxes highlighted in yellow should be filled",
            "All documents should be the same as the standard checklist",
        ),
    ),
    ChecklistSlotTemplate(
        id="sanction-undertaking-ecom",
        label="Sanction Undertaking",
        category=DocumentCategory.FORMS,
        required=True,
        notes=("Mandatory for ALL E-Commerce merchants (high or low risk)",),
    ),
)

_TEMPLATES_BY_CASE_TYPE: dict[CaseType, tuple[ChecklistSlotTemplate, ...]] = {
    CaseType.LOW_RISK: _LOW_RISK,
    CaseType.HIGH_RISK: _LOW_RISK + _HIGH_RISK_ADDITIONAL,
    CaseType.ECOM: _LOW_RISK + _ECOM_ADDITIONAL,
}

DOCUMENT_TYPE_MAP: dict[str, str] = {
    "ack-form": "AcknowledgmentForm",
    "mdf": "MDF",
    "trade-license": "TradeLicense",
    "shop-photos-geotag": "ShopPhoto_Geotag",
    "trademark-cert": "TrademarkCert",
    "colored-photos": "ColoredPhoto",
    "photo-inside": "ShopPhoto_Inside",
    "photo-outside": "ShopPhoto_Outside",
    "signed-fvr": "FVR",
    "tenancy-ejari": "Tenancy",
    "electricity-bill": "ElectricityBill",
    "lease-agreement": "LeaseAgreement",
    "kiosk-permit": "KioskPermit",
    "main-moa": "MOA_Main",
    "amended-moa": "MOA_Amended",
    "poa": "POA",
    "articles-assoc": "ArticlesOfAssociation",
    "share-cert": "ShareCertificate",
    "cert-incumbency": "CertIncumbency",
    "board-resolution": "BoardResolution",
    "bank-statement": "BankStatement_1M",
    "bank-statement-3m": "BankStatement_3M",
    "welcome-letter": "WelcomeLetter",
    "poh-email": "POH_Email",
    "supplier-invoice": "SupplierInvoice",
    "checklist-doc": "Checklist",
    "seq": "SEQ",
    "dual-goods": "DualGoods",
    "vat-cert": "VAT_Certificate",
    "vat-declaration": "VAT_Declaration",
    "branch-form": "BranchForm",
    "sister-company-bs": "BankStatement_Sister",
    "personal-statement": "PersonalStatement",
    "signatory-statement": "SignatoryStatement",
    "home-country-statement": "HomeCountryStatement",
    "partner-visa-tl": "PartnerVisa_TL",
    "uae-address-proof": "UAE_AddressProof",
    "non-resident-address": "NonResident_Address",
    "non-resident-mdf-note": "NonResident_MDF_Note",
    "sanction-undertaking": "SanctionUndertaking",
    "pep-ecdd": "PEP_ECDD",
    "pep-form": "PEP_Form",
    "ecdd-normal": "ECDD",
    "seq-word": "SEQ_Word",
    "goaml-screenshot": "GoAML",
    "aml-policy": "AML_Policy",
    "ecom-template": "ECOM_Template",
    "sanction-undertaking-ecom": "SanctionUndertaking_ECOM",
}

FOLDER_MAP: dict[str, str] = {
    DocumentCategory.FORMS.value: "07_Forms",
    DocumentCategory.LEGAL.value: "06_LegalDocuments",
    DocumentCategory.KYC.value: "03_KYC",
    DocumentCategory.BANK.value: "04_BankDocuments",
    DocumentCategory.SHOP.value: "05_ShopDocuments",
}
FALLBACK_FOLDER = "08_Other"

MINOR_DISCREPANCIES: tuple[str, ...] = (
    "Rate mismatch between MDF and Business Review",
    "Rental mismatch between MDF and Business Review",
    "DCC mismatch between MDF and Business Review",
    "Number of terminals incorrect or missing",
    "POH email / IBAN proof missing or mismatched",
    "VAT email / VAT certificate missing or mismatched",
    "Email address incomplete or missing",
    "Address incomplete",
    "Incomplete pages of Trade License",
    "Bank account name mismatch",
    "1 month bank statement not provided",
    "Scanned docs are not clear",
    "Stamps & collection dates missing in documents",
)

MAJOR_DISCREPANCIES: tuple[str, ...] = (
    "Expired Trade License",
    "Expired Tenancy / Ejari",
    "Expired KYC documents (Passport / Emirates ID)",
    "Signature mismatch across documents",
    "Main MOA not attached or signatory not mentioned",
    "Authorized signatory not mentioned in documents",
)

IMPORTANT_REMINDERS: tuple[str, ...] = (
    "Always open and review every document and attach a printout to track what has been reviewed",
    "Track which documents have been missed during the review",
    "Review the MDF thoroughly: all pages checked, all sections filled, nothing skipped",
    "Check KYC expirations and ensure every KYC document is up to date",
    "Review shareholder information in the Trade License and confirm KYC is attached for each one",
)


def normalize_case_type(value: CaseType | str | None) -> CaseType:
    if isinstance(value, CaseType):
        return value
    try:
        return CaseType(str(value or "").strip().lower())
    except ValueError:
        return CaseType.LOW_RISK


def normalize_branch_mode(value: BranchMode | str | None) -> BranchMode | None:
    if value is None or isinstance(value, BranchMode):
        return value
    try:
        return BranchMode(str(value).strip().lower())
    except ValueError:
        return None


def get_checklist_for_case(
    case_type: CaseType | str,
    branch_mode: BranchMode | str | None = None,
) -> list[ChecklistSlotTemplate]:
    normalized_case_type = normalize_case_type(case_type)
    if normalized_case_type == CaseType.BRANCH:
        if normalize_branch_mode(branch_mode) == BranchMode.SEPARATE:
            return list(_BRANCH_WITH_MAIN + _BRANCH_SEPARATE_ADDITIONAL)
        return list(_BRANCH_WITH_MAIN)
    return list(_TEMPLATES_BY_CASE_TYPE[normalized_case_type])


def active_conditional_keys(
    templates: Iterable[ChecklistSlotTemplate],
) -> list[tuple[str, str]]:
    """Return each conditional flag once, in first-appearance order, with its label."""
    seen: dict[str, str] = {}
    for template in templates:
        if template.conditional_key and template.conditional_key not in seen:
            seen[template.conditional_key] = template.conditional_label or template.conditional_key
    return list(seen.items())


class _Categorized(Protocol):
    @property
    def category(self) -> str: ...


_CategorizedT = TypeVar("_CategorizedT", bound=_Categorized)


def group_by_category(items: Iterable[_CategorizedT]) -> list[tuple[str, list[_CategorizedT]]]:
    grouped: dict[str, list[_CategorizedT]] = {}
    for item in items:
        grouped.setdefault(str(getattr(item.category, "value", item.category)), []).append(item)

    ordered: list[tuple[str, list[_CategorizedT]]] = []
    for category in CATEGORIES_ORDER:
        if category.value in grouped:
            ordered.append((category.value, grouped.pop(category.value)))
    ordered.extend(grouped.items())
    return ordered


__all__ = [
    "CATEGORIES_ORDER",
    "DOCUMENT_TYPE_MAP",
    "FALLBACK_FOLDER",
    "FOLDER_MAP",
    "IMPORTANT_REMINDERS",
    "MAJOR_DISCREPANCIES",
    "MINOR_DISCREPANCIES",
    "BranchMode",
    "CaseType",
    "ChecklistSlotTemplate",
    "DocumentCategory",
    "active_conditional_keys",
    "get_checklist_for_case",
    "group_by_category",
    "normalize_branch_mode",
    "normalize_case_type",
]
