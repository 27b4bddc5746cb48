"""
Leads API routes - view projections of persisted leads.
"""
import uuid

from fastapi import APIRouter, Depends, Query

from lead_engine.api.deps import get_projection_service
from lead_engine.config import settings
from lead_engine.models.branch import ProjectionView
from lead_engine.schemas.common import ErrorResponse
from lead_engine.schemas.projection import EmailPayload, ProjectionResponse
from lead_engine.services.projection_service import ProjectionService

router = APIRouter(
    prefix=f"{settings.API_PREFIX}/leads",
    tags=["leads"],
    responses={404: {"model": ErrorResponse}},
)


@router.get("/{lead_id}/projection", response_model=ProjectionResponse)
async def get_projection(
    lead_id: uuid.UUID,
    view: ProjectionView = Query(ProjectionView.DETAIL),
    projections: ProjectionService = Depends(get_projection_service)
):
    """Ordered fields of a lead for the list, detail or email view."""
    return await projections.project_lead(lead_id, view)


@router.get("/{lead_id}/email", response_model=EmailPayload)
async def get_email_payload(
    lead_id: uuid.UUID,
    projections: ProjectionService = Depends(get_projection_service)
):
    """Email view of a lead, rendered for the notification template."""
    return await projections.email_payload(lead_id)
