"""
Schema registry - branch definitions and their ordered field mappings.
"""
import logging
import re
import uuid
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from lead_engine.core.exceptions import AlreadyExistsError, NotFoundError, ValidationError
from lead_engine.models.branch import (
    Branch, FieldMapping, FieldType, column_letter_to_index, index_to_column_letter, slugify
)
from lead_engine.schemas.branch import BranchCreate, FieldMappingInput
from lead_engine.services.coercion import enum_values
from lead_engine.services.integrations.base import SchemaSource

logger = logging.getLogger(__name__)


def mapping_order(mapping: FieldMapping) -> Tuple[int, str]:
    """Presentation order: sort_order, ties broken by field_key."""
    return (mapping.sort_order, mapping.field_key)


def check_mapping_rules(item: FieldMappingInput) -> None:
    """Reject rules that would make every row fail for this field."""
    if item.field_type == FieldType.ENUM:
        if not enum_values(item.validation_pattern):
            raise ValidationError("enum fields need at least one allowed value", item.field_key)
    elif item.validation_pattern:
        try:
            re.compile(item.validation_pattern)
        except re.error as e:
            raise ValidationError(f"invalid validation pattern: {e}", item.field_key)

    if item.date_format and "%y" in item.date_format:
        raise ValidationError("date format must use a four-digit year (%Y)", item.field_key)


class MappingCache:
    """
    Opt-in cache of mapping lists keyed by branch id.
    The registry invalidates an entry on every write to that branch.
    """

    def __init__(self):
        self._entries: Dict[uuid.UUID, Tuple[FieldMapping, ...]] = {}

    def get(self, branch_id: uuid.UUID) -> Optional[List[FieldMapping]]:
        entry = self._entries.get(branch_id)
        return list(entry) if entry is not None else None

    def set(self, branch_id: uuid.UUID, mappings: List[FieldMapping]) -> None:
        self._entries[branch_id] = tuple(mappings)

    def invalidate(self, branch_id: uuid.UUID) -> None:
        self._entries.pop(branch_id, None)

    def clear(self) -> None:
        self._entries.clear()


class SchemaRegistry:
    """Read access to branch schemas, plus the write paths that must invalidate caches."""

    def __init__(self, source: SchemaSource, cache: Optional[MappingCache] = None):
        self.source = source
        self.cache = cache

    async def get_branch(self, identifier) -> Branch:
        """Get a branch by id or machine name."""
        branch = await self.source.get_branch(str(identifier))
        if branch is None:
            raise NotFoundError("Branch", str(identifier))
        return branch

    async def get_mappings(self, branch_id: uuid.UUID) -> List[FieldMapping]:
        """
        Field mappings of a branch ordered by sort order.
        An empty list means the branch is not configured yet; that is not an error.
        """
        if self.cache is not None:
            cached = self.cache.get(branch_id)
            if cached is not None:
                return cached

        mappings = sorted(await self.source.fetch_mappings(branch_id), key=mapping_order)
        if self.cache is not None:
            self.cache.set(branch_id, mappings)
        return mappings

    async def list_branches(self, active_only: bool = True) -> List[Branch]:
        return await self.source.list_branches(active_only=active_only)

    async def list_configured_branches(self) -> List[Branch]:
        """Active branches with at least one field mapping."""
        configured = []
        for branch in await self.source.list_branches(active_only=True):
            if await self.get_mappings(branch.id):
                configured.append(branch)
        return sorted(configured, key=lambda b: b.display_name)

    async def create_branch(self, data: BranchCreate) -> Branch:
        """Create a branch; its machine name is derived here and never recomputed."""
        name = slugify(data.display_name)
        if not name:
            raise ValidationError("display name must contain letters or digits", "display_name")
        if await self.source.get_branch(name) is not None:
            raise AlreadyExistsError("Branch", "name", name)

        branch = Branch(
            name=name,
            display_name=data.display_name,
            description=data.description,
            icon=data.icon or "📋",
            email_template_id=data.email_template_id,
        )
        branch = await self.source.create_branch(branch)
        logger.info(f"Created branch '{branch.name}' ({branch.id})")
        return branch

    async def deactivate_branch(self, identifier) -> Branch:
        """Soft-deactivate a branch. Its mappings and leads are kept."""
        branch = await self.get_branch(identifier)
        branch.is_active = False
        branch.updated_at = datetime.utcnow()
        branch = await self.source.update_branch(branch)
        self._invalidate(branch.id)
        logger.info(f"Deactivated branch '{branch.name}'")
        return branch

    async def replace_mappings(
        self, identifier, inputs: List[FieldMappingInput]
    ) -> List[FieldMapping]:
        """Replace a branch's whole mapping list."""
        branch = await self.get_branch(identifier)

        seen = set()
        for item in inputs:
            if item.field_key in seen:
                raise ValidationError(f"duplicate field key '{item.field_key}'", "mappings")
            seen.add(item.field_key)
            check_mapping_rules(item)

        mappings = [
            self._build_mapping(branch.id, item, position)
            for position, item in enumerate(inputs)
        ]
        saved = await self.source.replace_mappings(branch.id, mappings)
        self._invalidate(branch.id)
        logger.info(f"Saved {len(saved)} field mappings for branch '{branch.name}'")
        return sorted(saved, key=mapping_order)

    def _build_mapping(
        self, branch_id: uuid.UUID, item: FieldMappingInput, position: int
    ) -> FieldMapping:
        data = item.model_dump()
        data["field_type"] = item.field_type.value

        try:
            if data["column_index"] is None and data["column_letter"]:
                data["column_index"] = column_letter_to_index(data["column_letter"])
        except ValueError as e:
            raise ValidationError(str(e), item.field_key)
        if data["column_letter"] is None and data["column_index"] is not None:
            data["column_letter"] = index_to_column_letter(data["column_index"])

        if data["sort_order"] is None:
            data["sort_order"] = data["column_index"] if data["column_index"] is not None else position

        return FieldMapping(branch_id=branch_id, **data)

    def _invalidate(self, branch_id: uuid.UUID) -> None:
        if self.cache is not None:
            self.cache.invalidate(branch_id)
