"""
Projection schemas.
"""
import uuid
from typing import Any, List, Optional

from pydantic import BaseModel

from lead_engine.models.branch import ProjectionView


class ProjectedField(BaseModel):
    """One (label, value) entry of a view projection."""
    field_key: str
    label: str
    value: Optional[Any] = None


class ProjectionResponse(BaseModel):
    lead_id: uuid.UUID
    branch_id: uuid.UUID
    view: ProjectionView
    fields: List[ProjectedField]


class EmailField(BaseModel):
    label: str
    value: str


class EmailPayload(BaseModel):
    """Email view of a lead, handed to the notification component."""
    template_id: str
    branch_id: uuid.UUID
    lead_id: Optional[uuid.UUID] = None
    fields: List[EmailField]
