"""
Lead repository with unique-key lookups.
"""
import uuid
from typing import Dict, Optional

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from lead_engine.models.lead import Lead, LeadUniqueKey
from lead_engine.repositories.base import BaseRepository


class LeadRepository(BaseRepository[Lead]):
    """Repository for Lead operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(Lead, session)

    async def get_by_unique_value(
        self, branch_id: uuid.UUID, field_key: str, value: str
    ) -> Optional[LeadUniqueKey]:
        """Unique-key row holding `value` for a branch field (for deduplication)."""
        query = select(LeadUniqueKey).where(
            LeadUniqueKey.branch_id == branch_id,
            LeadUniqueKey.field_key == field_key,
            LeadUniqueKey.value == value,
        )
        result = await self.session.exec(query)
        return result.first()

    async def create_with_keys(self, lead: Lead, unique_keys: Dict[str, str]) -> Lead:
        """
        Insert a lead and its unique-key rows in one transaction.
        Raises IntegrityError when another lead already holds one of the keys.
        """
        self.session.add(lead)
        await self.session.flush()
        for field_key, value in unique_keys.items():
            self.session.add(LeadUniqueKey(
                branch_id=lead.branch_id,
                lead_id=lead.id,
                field_key=field_key,
                value=value,
            ))
        await self.session.commit()
        await self.session.refresh(lead)
        return lead
