"""Document type registry and the mandatory-completeness policy.

The catalog is static: nine monthly-mandatory types, one annual type that is
mandatory only for January periods, seven one-time optional types and a
catch-all ``ADDITIONAL_DOCUMENT``.
"""


from collections.abc import Iterable
from enum import Enum

from pydantic import BaseModel

from portal.core.exceptions import ValidationError

# ---------------------------------------------------------------------------
# Types and categories
# ---------------------------------------------------------------------------

class DocumentCategory(str, Enum):
    MONTHLY_MANDATORY = "monthly_mandatory"
    ANNUAL_MANDATORY = "annual_mandatory"
    ONE_TIME_OPTIONAL = "one_time_optional"
    ADDITIONAL = "additional"

class DocumentType(str, Enum):
    # Monthly mandatory
    INVOICE = "INVOICE"
    FORM_T_MUSTER_ROLL = "FORM_T_MUSTER_ROLL"
    BANK_STATEMENT = "BANK_STATEMENT"
    ECR = "ECR"
    PF_COMBINED_CHALLAN = "PF_COMBINED_CHALLAN"
    PF_TRRN_DETAILS = "PF_TRRN_DETAILS"
    ESI_CONTRIBUTION_HISTORY = "ESI_CONTRIBUTION_HISTORY"
    ESI_CHALLAN = "ESI_CHALLAN"
    PROFESSIONAL_TAX_RETURNS = "PROFESSIONAL_TAX_RETURNS"
    # Annual mandatory (January)
    LABOUR_WELFARE_FUND = "LABOUR_WELFARE_FUND"
    # One-time optional
    VENDOR_AGREEMENT = "VENDOR_AGREEMENT"
    EPF_CODE_LETTER = "EPF_CODE_LETTER"
    EPF_FORM_5A = "EPF_FORM_5A"
    ESIC_REGISTRATION = "ESIC_REGISTRATION"
    PT_REGISTRATION = "PT_REGISTRATION"
    PT_ENROLLMENT = "PT_ENROLLMENT"
    CONTRACT_LABOUR_LICENSE = "CONTRACT_LABOUR_LICENSE"
    # Anything else the consultant asks for
    ADDITIONAL_DOCUMENT = "ADDITIONAL_DOCUMENT"

class DocumentTypeInfo(BaseModel):
    code: DocumentType
    label: str
    description: str
    category: DocumentCategory

    model_config = {"frozen": True}

def _info(code: DocumentType, label: str, description: str, category: DocumentCategory) -> DocumentTypeInfo:
    return DocumentTypeInfo(code=code, label=label, description=description, category=category)

# Registry order is the order checklists are rendered in
DOCUMENT_TYPES: dict[DocumentType, DocumentTypeInfo] = {
    info.code: info
    for info in (
        _info(DocumentType.INVOICE, "Invoice", "Monthly invoice document",
              DocumentCategory.MONTHLY_MANDATORY),
        _info(DocumentType.FORM_T_MUSTER_ROLL, "Form T Muster Roll",
              "Combined Muster Roll Cum Register of Wages for previous month",
              DocumentCategory.MONTHLY_MANDATORY),
        _info(DocumentType.BANK_STATEMENT, "Bank Statement",
              "Bank statement for previous month", DocumentCategory.MONTHLY_MANDATORY),
        _info(DocumentType.ECR, "ECR",
              "Electronic Challan Cum Return for previous month",
              DocumentCategory.MONTHLY_MANDATORY),
        _info(DocumentType.PF_COMBINED_CHALLAN, "PF Combined Challan",
              "EPFO Combined Challan for previous month", DocumentCategory.MONTHLY_MANDATORY),
        _info(DocumentType.PF_TRRN_DETAILS, "PF TRRN Details",
              "Provident Fund TRRN Details for previous month",
              DocumentCategory.MONTHLY_MANDATORY),
        _info(DocumentType.ESI_CONTRIBUTION_HISTORY, "ESIC Contribution History",
              "ESIC Contribution History Statement for previous month",
              DocumentCategory.MONTHLY_MANDATORY),
        _info(DocumentType.ESI_CHALLAN, "ESIC Challan",
              "ESIC Challan for previous month", DocumentCategory.MONTHLY_MANDATORY),
        _info(DocumentType.PROFESSIONAL_TAX_RETURNS, "Professional Tax Returns",
              "Professional Tax Returns Form 5A for previous month",
              DocumentCategory.MONTHLY_MANDATORY),
        _info(DocumentType.LABOUR_WELFARE_FUND, "Labour Welfare Fund",
              "Labour Welfare Fund Form-D with December data",
              DocumentCategory.ANNUAL_MANDATORY),
        _info(DocumentType.VENDOR_AGREEMENT, "Vendor Agreement",
              "Copy of Agreement document for vendors", DocumentCategory.ONE_TIME_OPTIONAL),
        _info(DocumentType.EPF_CODE_LETTER, "EPF Code Letter",
              "EPF Code Allotment Letter", DocumentCategory.ONE_TIME_OPTIONAL),
        _info(DocumentType.EPF_FORM_5A, "EPF Form 5A",
              "EPF Form 5A document", DocumentCategory.ONE_TIME_OPTIONAL),
        _info(DocumentType.ESIC_REGISTRATION, "ESIC Registration",
              "ESIC Registration Certificate Form C11", DocumentCategory.ONE_TIME_OPTIONAL),
        _info(DocumentType.PT_REGISTRATION, "PT Registration",
              "Professional Tax Registration Certificate Form 3",
              DocumentCategory.ONE_TIME_OPTIONAL),
        _info(DocumentType.PT_ENROLLMENT, "PT Enrollment",
              "Professional Tax Enrollment Certificate Form 4",
              DocumentCategory.ONE_TIME_OPTIONAL),
        _info(DocumentType.CONTRACT_LABOUR_LICENSE, "Contract Labour License",
              "Contract Labour License document (if applicable)",
              DocumentCategory.ONE_TIME_OPTIONAL),
        _info(DocumentType.ADDITIONAL_DOCUMENT, "Additional Document",
              "Any further document requested during review", DocumentCategory.ADDITIONAL),
    )
}

def _codes(category: DocumentCategory) -> tuple[DocumentType, ...]:
    return tuple(code for code, info in DOCUMENT_TYPES.items() if info.category is category)

MONTHLY_MANDATORY_TYPES: tuple[DocumentType, ...] = _codes(DocumentCategory.MONTHLY_MANDATORY)
ANNUAL_MANDATORY_TYPES: tuple[DocumentType, ...] = _codes(DocumentCategory.ANNUAL_MANDATORY)
ONE_TIME_OPTIONAL_TYPES: tuple[DocumentType, ...] = _codes(DocumentCategory.ONE_TIME_OPTIONAL)

# Annual documents join the mandatory set for this month only
ANNUAL_MANDATORY_MONTH = 1

# ---------------------------------------------------------------------------
# Months
# ---------------------------------------------------------------------------

MONTH_ABBREVIATIONS: tuple[str, ...] = (
    "Jan", "Feb", "Mar", "Apr", "May", "Jun",
    "Jul", "Aug", "Sep", "Oct", "Nov", "Dec",
)
_MONTH_NAMES: tuple[str, ...] = (
    "january", "february", "march", "april", "may", "june",
    "july", "august", "september", "october", "november", "december",
)

def parse_month(value: int | str) -> int:
    """Normalise 3, "3", "Mar", "mar" or "March" to 3."""
    if isinstance(value, int) and not isinstance(value, bool):
        month = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.isdigit():
            month = int(text)
        else:
            lowered = text.lower()
            month = 0
            for index, name in enumerate(_MONTH_NAMES, start=1):
                if lowered == name or lowered == name[:3]:
                    month = index
                    break
    else:
        raise ValidationError(f"Invalid month: {value!r}")

    if not 1 <= month <= 12:
        raise ValidationError(f"Invalid month: {value!r}")
    return month

def month_label(month: int) -> str:
    return MONTH_ABBREVIATIONS[parse_month(month) - 1]

# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------

def parse_document_type(value: str | DocumentType) -> DocumentType:
    """Accept registry codes and the lower-case aliases the upload form sends."""
    if isinstance(value, DocumentType):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("Document type is required")
    try:
        return DocumentType(value.strip().upper())
    except ValueError:
        raise ValidationError(f"Unknown document type: {value}") from None

def label_for(document_type: str | DocumentType) -> str:
    try:
        return DOCUMENT_TYPES[DocumentType(document_type)].label
    except ValueError:
        return str(document_type)

def mandatory_types_for(month: int | str) -> frozenset[DocumentType]:
    """Monthly-mandatory set, plus the annual set when *month* is January."""
    month_number = parse_month(month)
    required = set(MONTHLY_MANDATORY_TYPES)
    if month_number == ANNUAL_MANDATORY_MONTH:
        required.update(ANNUAL_MANDATORY_TYPES)
    return frozenset(required)

def is_mandatory(document_type: str | DocumentType, month: int | str) -> bool:
    return parse_document_type(document_type) in mandatory_types_for(month)

def missing_mandatory_types(
    month: int | str, present_types: Iterable[str | DocumentType]
) -> list[DocumentType]:
    """``mandatory_types_for(month) - present``, in registry order."""
    present: set[DocumentType] = set()
    for raw in present_types:
        try:
            present.add(DocumentType(raw))
        except ValueError:
            continue
    required = mandatory_types_for(month)
    return [code for code in DOCUMENT_TYPES if code in required and code not in present]

def available_types_for(month: int | str) -> dict[DocumentCategory, list[DocumentTypeInfo]]:
    """Catalog grouped by category; the annual group is empty outside January."""
    month_number = parse_month(month)
    grouped: dict[DocumentCategory, list[DocumentTypeInfo]] = {c: [] for c in DocumentCategory}
    for info in DOCUMENT_TYPES.values():
        if (
            info.category is DocumentCategory.ANNUAL_MANDATORY
            and month_number != ANNUAL_MANDATORY_MONTH
        ):
            continue
        grouped[info.category].append(info)
    return grouped
