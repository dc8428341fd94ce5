"""Document type catalog for the upload checklist."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Query

from portal.core.response import DataResponse
from portal.domain.mixins import utcnow
from portal.schemas.document import DocumentTypeCatalogOut, DocumentTypeOut
from portal.services.document_types import (
    DOCUMENT_TYPES,
    available_types_for,
    mandatory_types_for,
    month_label,
    parse_month,
)

router = APIRouter(prefix="/document-types", tags=["Document Types"])


@router.get("", response_model=DataResponse[DocumentTypeCatalogOut])
async def document_catalog(
    month: Optional[str] = Query(default=None, description="1-12, 'Mar' or 'March'; defaults to now"),
):
    """Catalog grouped by category, with the mandatory set for *month*."""
    month_number = parse_month(month) if month else utcnow().month
    required = mandatory_types_for(month_number)
    return {
        "data": DocumentTypeCatalogOut(
            period_month=month_number,
            month_label=month_label(month_number),
            mandatory=[code for code in DOCUMENT_TYPES if code in required],
            categories={
                category: [DocumentTypeOut.model_validate(info) for info in infos]
                for category, infos in available_types_for(month_number).items()
            },
        )
    }
