"""
Branch and field mapping repositories.
"""
import uuid
from typing import List, Optional

from sqlmodel import select
from sqlalchemy import delete
from sqlmodel.ext.asyncio.session import AsyncSession

from lead_engine.models.branch import Branch, FieldMapping
from lead_engine.repositories.base import BaseRepository


class BranchRepository(BaseRepository[Branch]):
    """Repository for Branch operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(Branch, session)

    async def get_by_name(self, name: str) -> Optional[Branch]:
        return await self.get_by_field("name", name)

    async def get_by_identifier(self, identifier: str) -> Optional[Branch]:
        """Branch by UUID string or machine name."""
        try:
            branch_id = uuid.UUID(identifier)
        except ValueError:
            return await self.get_by_name(identifier)
        return await self.get(branch_id)

    async def list_branches(self, active_only: bool = True) -> List[Branch]:
        filters = {"is_active": True} if active_only else None
        return await self.list(filters=filters, order_by="display_name", order_desc=False)


class FieldMappingRepository(BaseRepository[FieldMapping]):
    """Repository for FieldMapping operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(FieldMapping, session)

    async def list_for_branch(self, branch_id: uuid.UUID) -> List[FieldMapping]:
        query = (
            select(FieldMapping)
            .where(FieldMapping.branch_id == branch_id)
            .order_by(FieldMapping.sort_order, FieldMapping.field_key)
        )
        result = await self.session.exec(query)
        return result.all()

    async def replace_for_branch(
        self, branch_id: uuid.UUID, mappings: List[FieldMapping]
    ) -> List[FieldMapping]:
        """Delete the branch's mappings and insert the new list in one transaction."""
        await self.session.execute(delete(FieldMapping).where(FieldMapping.branch_id == branch_id))
        for mapping in mappings:
            self.session.add(mapping)
        await self.session.commit()

        for mapping in mappings:
            await self.session.refresh(mapping)
        return mappings
