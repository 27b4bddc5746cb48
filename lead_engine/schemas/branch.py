"""
Branch and field mapping schemas.
"""
import uuid
from typing import Optional, List
from datetime import datetime
from pydantic import BaseModel

from lead_engine.models.branch import FieldType


class BranchCreate(BaseModel):
    """Create a new branch. The machine name is derived from display_name."""
    display_name: str
    description: Optional[str] = None
    icon: Optional[str] = None
    email_template_id: Optional[str] = None

    class Config:
        json_schema_extra = {
            "example": {
                "display_name": "Solar Panels",
                "description": "Residential solar leads",
                "icon": "☀️"
            }
        }


class BranchResponse(BaseModel):
    """Branch response."""
    id: uuid.UUID
    name: str
    display_name: str
    description: Optional[str]
    icon: str
    is_active: bool
    email_template_id: Optional[str]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class FieldMappingInput(BaseModel):
    """One field mapping as submitted by an administrator."""
    column_letter: Optional[str] = None
    column_index: Optional[int] = None
    header_name: Optional[str] = None
    source_key: Optional[str] = None
    field_key: str
    field_label: str
    field_type: FieldType = FieldType.TEXT
    is_required: bool = False
    is_unique: bool = False
    validation_pattern: Optional[str] = None
    date_format: Optional[str] = None
    show_in_list: bool = True
    show_in_detail: bool = True
    include_in_email: bool = False
    email_priority: int = 0
    help_text: Optional[str] = None
    placeholder: Optional[str] = None
    sort_order: Optional[int] = None  # defaults to the column index


class FieldMappingResponse(BaseModel):
    """Field mapping response."""
    id: uuid.UUID
    branch_id: uuid.UUID
    column_letter: Optional[str]
    column_index: Optional[int]
    header_name: Optional[str]
    source_key: Optional[str]
    field_key: str
    field_label: str
    field_type: str
    is_required: bool
    is_unique: bool
    validation_pattern: Optional[str]
    date_format: Optional[str]
    show_in_list: bool
    show_in_detail: bool
    include_in_email: bool
    email_priority: int
    help_text: Optional[str]
    placeholder: Optional[str]
    sort_order: int

    class Config:
        from_attributes = True


class MappingsReplaceRequest(BaseModel):
    mappings: List[FieldMappingInput]


class DetectMappingsRequest(BaseModel):
    """Spreadsheet header row to detect mappings for."""
    headers: List[str]


class DetectedMapping(BaseModel):
    """Suggested mapping for one spreadsheet column."""
    column_index: int
    column_letter: str
    header_name: str
    field_key: str
    field_label: str
    field_type: FieldType
    confidence: int  # 0-100
    suggestion: str
    is_required: bool
    is_unique: bool
    show_in_list: bool
    include_in_email: bool
    email_priority: int
