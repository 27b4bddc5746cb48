"""
Lead form model - routes external lead-form submissions to a branch.
"""
import uuid
from datetime import datetime
from typing import Optional

from sqlmodel import SQLModel, Field


class LeadForm(SQLModel, table=True):
    """External lead form (e.g. a Meta lead ad form) bound to one branch."""
    __tablename__ = "lead_form"

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    form_id: str = Field(index=True, unique=True)
    branch_id: uuid.UUID = Field(foreign_key="branch.id", index=True)
    name: Optional[str] = None
    is_active: bool = Field(default=True)

    # Stats
    total_leads_received: int = Field(default=0)
    last_lead_received_at: Optional[datetime] = None

    created_at: datetime = Field(default_factory=datetime.utcnow)
