"""
Branch models - business verticals and their field mapping schema.
A branch owns an ordered list of field mappings that drives lead ingestion.
"""
import re
import uuid
from datetime import datetime
from enum import Enum
from typing import Optional

from sqlmodel import SQLModel, Field
from sqlalchemy import UniqueConstraint


class FieldType(str, Enum):
    """Declared type of a mapped field. Closed set; coercion dispatches on it."""
    TEXT = "text"
    EMAIL = "email"
    PHONE = "phone"
    NUMBER = "number"
    CURRENCY = "currency"
    DATE = "date"
    BOOLEAN = "boolean"
    URL = "url"
    ENUM = "enum"


class ProjectionView(str, Enum):
    """Downstream views a lead can be projected into."""
    LIST = "list"
    DETAIL = "detail"
    EMAIL = "email"


class Branch(SQLModel, table=True):
    """
    Business vertical with its own lead schema.
    Soft-deactivated only; leads keep referencing it by id.
    """
    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)

    # Machine name is derived from display_name once, at creation
    name: str = Field(index=True, unique=True)
    display_name: str
    description: Optional[str] = None
    icon: str = Field(default="📋")
    is_active: bool = Field(default=True, index=True)

    # Notification template handed to the outbound email component
    email_template_id: Optional[str] = None

    # Timestamps
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow)


class FieldMapping(SQLModel, table=True):
    """
    One column/field definition owned by exactly one branch.
    field_key is unique within the branch; sort_order orders presentation.
    """
    __tablename__ = "field_mapping"
    __table_args__ = (UniqueConstraint("branch_id", "field_key", name="uq_field_mapping_branch_key"),)

    id: uuid.UUID = Field(default_factory=uuid.uuid4, primary_key=True)
    branch_id: uuid.UUID = Field(foreign_key="branch.id", index=True)

    # Source location: spreadsheet column or webhook payload key
    column_letter: Optional[str] = None
    column_index: Optional[int] = None
    header_name: Optional[str] = None
    source_key: Optional[str] = None

    # Target field
    field_key: str
    field_label: str
    field_type: str = Field(default=FieldType.TEXT.value)  # one of FieldType

    # Validation
    is_required: bool = Field(default=False)
    is_unique: bool = Field(default=False)
    validation_pattern: Optional[str] = None  # regex, or allowed values for enum fields
    date_format: Optional[str] = None  # strptime format accepted besides ISO-8601

    # Display settings
    show_in_list: bool = Field(default=True)
    show_in_detail: bool = Field(default=True)
    include_in_email: bool = Field(default=False)
    email_priority: int = Field(default=0)

    # Metadata
    help_text: Optional[str] = None
    placeholder: Optional[str] = None
    sort_order: int = Field(default=0)

    created_at: datetime = Field(default_factory=datetime.utcnow)

    @property
    def resolved_column_index(self) -> Optional[int]:
        """Column index, derived from the column letter when not stored."""
        if self.column_index is not None:
            return self.column_index
        if self.column_letter:
            return column_letter_to_index(self.column_letter)
        return None

    @property
    def resolved_source_key(self) -> str:
        return self.source_key or self.field_key


def slugify(display_name: str) -> str:
    """Derive a branch machine name: "Solar Panels" -> "solar_panels"."""
    slug = re.sub(r"[^a-z0-9]+", "_", display_name.strip().lower())
    return slug.strip("_")


def index_to_column_letter(index: int) -> str:
    """Convert a 0-based column index to a sheet letter (0 = A, 26 = AA)."""
    letter = ""
    while index >= 0:
        letter = chr(65 + index % 26) + letter
        index = index // 26 - 1
    return letter


def column_letter_to_index(letter: str) -> int:
    """Convert a sheet column letter to a 0-based index (A = 0, AA = 26)."""
    index = 0
    for char in letter.strip().upper():
        if not "A" <= char <= "Z":
            raise ValueError(f"Invalid column letter: {letter!r}")
        index = index * 26 + (ord(char) - 64)
    return index - 1
