"""
Lead-form webhook schemas.
"""
import uuid
from typing import List, Optional

from pydantic import BaseModel

from lead_engine.schemas.ingestion import IngestionReport


class FormIngestion(BaseModel):
    """Ingestion result for the leads of one routed form."""
    form_id: str
    branch_id: uuid.UUID
    report: IngestionReport


class UnroutedLead(BaseModel):
    """Lead whose form is unknown or inactive."""
    lead_id: Optional[str] = None
    form_id: Optional[str] = None
    reason: str


class WebhookResult(BaseModel):
    received: int
    routed: List[FormIngestion] = []
    unrouted: List[UnroutedLead] = []
