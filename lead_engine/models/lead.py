"""
Lead models - persisted output of branch-driven ingestion.
Leads are written once and never mutated in place.
"""
import uuid
from datetime import datetime
from typing import Optional, Dict, Any

from sqlmodel import SQLModel, Field
from sqlalchemy import Column, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB


class Lead(SQLModel, table=True):
    """
    Normalized lead for one branch.
    `data` holds field_key -> typed value (JSON encoded).
    """
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    branch_id: uuid.UUID = Field(foreign_key="branch.id", index=True)

    data: Dict[str, Any] = Field(default={}, sa_column=Column(JSONB))

    # Source tracking
    origin_type: str = Field(default="sheet", index=True)  # sheet, webhook, api
    origin_id: Optional[str] = Field(default=None, index=True)

    ingested_at: datetime = Field(default_factory=datetime.utcnow)


class LeadUniqueKey(SQLModel, table=True):
    """
    Normalized value of a unique field for a persisted lead.
    Uniqueness is scoped per branch per field.
    """
    __tablename__ = "lead_unique_key"
    __table_args__ = (UniqueConstraint("branch_id", "field_key", "value", name="uq_lead_unique_key"),)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    branch_id: uuid.UUID = Field(foreign_key="branch.id", index=True)
    lead_id: uuid.UUID = Field(foreign_key="lead.id", index=True)
    field_key: str
    value: str
