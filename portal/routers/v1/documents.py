"""Document-centric routes resolved through the reconciliation adapter.

Ids here may name a legacy flat record, a submission, or a document nested
inside a submission; callers never need to know which store holds it.
"""

from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from portal.core.actor import SUBMITTER_ROLES, Actor, get_actor, require_roles
from portal.core.response import DataResponse
from portal.db.base import get_db
from portal.routers.v1.side_effects import commit_and_schedule
from portal.schemas.common import ArtifactIn
from portal.schemas.document import DocumentOwnerOut, DocumentView
from portal.schemas.submission import DocumentOut, ResubmitIn
from portal.services.submission import SubmissionService

router = APIRouter(prefix="/documents", tags=["Documents"])


@router.get("/{ref}", response_model=DataResponse[DocumentView])
async def get_document(
    ref: str,
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(get_db),
):
    view = await SubmissionService(session).get_document(ref, viewer=actor)
    return {"data": view}


@router.get("/{document_id}/owner", response_model=DataResponse[DocumentOwnerOut])
async def find_document_owner(
    document_id: str,
    actor: Actor = Depends(get_actor),
    session: AsyncSession = Depends(get_db),
):
    """The submission a nested document belongs to."""
    owner = await SubmissionService(session).find_document_owner(document_id, viewer=actor)
    return {"data": owner}


@router.post("/{document_id}/resubmit", response_model=DataResponse[DocumentOut])
async def resubmit_by_document_id(
    document_id: str,
    body: ArtifactIn,
    request: Request,
    background: BackgroundTasks,
    actor: Actor = Depends(require_roles(SUBMITTER_ROLES)),
    session: AsyncSession = Depends(get_db),
):
    """Resubmit when only the document id is known; the owning submission is looked up."""
    payload = ResubmitIn(document_id=document_id, **body.model_dump())
    outcome = await SubmissionService(session).resubmit_document(None, actor, payload)
    await commit_and_schedule(request, background, session, outcome)
    return {"data": DocumentOut.model_validate(outcome.value)}
