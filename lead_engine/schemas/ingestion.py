"""
Ingestion schemas - raw input records, normalized leads and batch reports.
"""
import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field, computed_field


class OriginType(str, Enum):
    SHEET = "sheet"
    WEBHOOK = "webhook"
    API = "api"


class RawRecord(BaseModel):
    """
    One external input unit.
    A list is read by column index (spreadsheet row), a dict by source key
    (webhook payload).
    """
    values: Union[List[Any], Dict[str, Any]]
    origin_type: OriginType = OriginType.API
    origin_id: Optional[str] = None
    row_number: Optional[int] = None

    @classmethod
    def from_row(
        cls,
        cells: List[Any],
        row_number: Optional[int] = None,
        sheet_id: Optional[str] = None,
    ) -> "RawRecord":
        origin_id = None
        if sheet_id and row_number is not None:
            origin_id = f"{sheet_id}:{row_number}"
        elif row_number is not None:
            origin_id = f"row:{row_number}"
        return cls(
            values=list(cells),
            origin_type=OriginType.SHEET,
            origin_id=origin_id,
            row_number=row_number,
        )

    @classmethod
    def from_payload(cls, payload: Dict[str, Any], origin_id: Optional[str] = None) -> "RawRecord":
        return cls(values=dict(payload), origin_type=OriginType.WEBHOOK, origin_id=origin_id)


class FailureReason(str, Enum):
    REQUIRED = "required"
    TYPE_MISMATCH = "type_mismatch"
    PATTERN = "pattern"
    STORE_UNAVAILABLE = "store_unavailable"


class FieldFailure(BaseModel):
    """First failing rule for one field of one row."""
    field_key: str
    raw_value: Optional[Any] = None
    reason: FailureReason
    message: str


class NormalizedLead(BaseModel):
    """Validated, typed output of mapping one raw record against a branch."""
    # Fixed before the first write; persisting the same lead_id again is a no-op
    lead_id: uuid.UUID = Field(default_factory=uuid.uuid4)
    branch_id: uuid.UUID
    fields: Dict[str, Any] = {}
    # field_key -> normalized value, for fields marked unique
    unique_keys: Dict[str, str] = {}

    # Source metadata
    origin_type: OriginType = OriginType.API
    origin_id: Optional[str] = None
    row_number: Optional[int] = None
    ingested_at: datetime = Field(default_factory=datetime.utcnow)

    class Config:
        frozen = True


class Accepted(BaseModel):
    kind: Literal["accepted"] = "accepted"
    lead: NormalizedLead


class Rejected(BaseModel):
    kind: Literal["rejected"] = "rejected"
    failures: List[FieldFailure]


MapResult = Union[Accepted, Rejected]


class RowStatus(str, Enum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    DUPLICATE = "duplicate"


class DuplicateScope(str, Enum):
    BATCH = "batch"
    STORE = "store"


class RowOutcome(BaseModel):
    """Outcome of one input row; exactly one status per row."""
    index: int
    row_number: Optional[int] = None
    status: RowStatus
    lead_id: Optional[uuid.UUID] = None
    lead: Optional[NormalizedLead] = None
    failures: List[FieldFailure] = []
    duplicate_field: Optional[str] = None
    duplicate_scope: Optional[DuplicateScope] = None


class IngestionReport(BaseModel):
    """Per-row outcome record of one batch run, in input order."""
    branch_id: Optional[uuid.UUID] = None
    started_at: datetime = Field(default_factory=datetime.utcnow)
    finished_at: Optional[datetime] = None
    cancelled: bool = False
    outcomes: List[RowOutcome] = []

    @computed_field
    @property
    def total(self) -> int:
        return len(self.outcomes)

    @computed_field
    @property
    def accepted(self) -> int:
        return self._count(RowStatus.ACCEPTED)

    @computed_field
    @property
    def rejected(self) -> int:
        return self._count(RowStatus.REJECTED)

    @computed_field
    @property
    def duplicates(self) -> int:
        return self._count(RowStatus.DUPLICATE)

    def _count(self, status: RowStatus) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == status)


class IngestBatchRequest(BaseModel):
    """Batch of raw records for one branch."""
    records: List[RawRecord]

    class Config:
        json_schema_extra = {
            "example": {
                "records": [
                    {"values": {"email": "jan@example.com", "phone": "06-12345678", "name": "Jan"},
                     "origin_type": "webhook", "origin_id": "form-123"}
                ]
            }
        }


class SheetIngestRequest(BaseModel):
    """Spreadsheet rows as read from a sheet range."""
    rows: List[List[Any]]
    has_header: bool = True
    sheet_id: Optional[str] = None
