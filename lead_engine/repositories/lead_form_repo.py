"""
Lead form repository.
"""
from datetime import datetime
from typing import Optional

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from lead_engine.models.lead_form import LeadForm
from lead_engine.repositories.base import BaseRepository


class LeadFormRepository(BaseRepository[LeadForm]):
    """Repository for LeadForm operations."""

    def __init__(self, session: AsyncSession):
        super().__init__(LeadForm, session)

    async def get_active_by_form_id(self, form_id: str) -> Optional[LeadForm]:
        query = select(LeadForm).where(LeadForm.form_id == form_id, LeadForm.is_active == True)  # noqa: E712
        result = await self.session.exec(query)
        return result.first()

    async def record_received(self, form_id: str, count: int) -> Optional[LeadForm]:
        """Update form stats."""
        form = await self.get_by_field("form_id", form_id)
        if not form:
            return None
        form.total_leads_received += count
        form.last_lead_received_at = datetime.utcnow()
        return await self.save(form)
