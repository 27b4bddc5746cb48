"""
SQL implementations of the schema source, lead store and lead-form table.
"""
import functools
import logging
import uuid
from typing import List, Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlmodel.ext.asyncio.session import AsyncSession

from lead_engine.core.exceptions import AlreadyExistsError, StoreUnavailableError
from lead_engine.models.branch import Branch, FieldMapping
from lead_engine.models.lead import Lead
from lead_engine.models.lead_form import LeadForm
from lead_engine.repositories.branch_repo import BranchRepository, FieldMappingRepository
from lead_engine.repositories.lead_form_repo import LeadFormRepository
from lead_engine.repositories.lead_repo import LeadRepository
from lead_engine.schemas.ingestion import NormalizedLead
from lead_engine.services.integrations.base import LeadFormSource, LeadStore, SchemaSource

logger = logging.getLogger(__name__)


def store_call(method):
    """Turn database errors into StoreUnavailableError after rolling back the session."""
    @functools.wraps(method)
    async def wrapper(self, *args, **kwargs):
        try:
            return await method(self, *args, **kwargs)
        except SQLAlchemyError as e:
            await self.session.rollback()
            logger.error(f"{type(self).__name__}.{method.__name__} failed: {e}")
            raise StoreUnavailableError(
                f"Database error in {method.__name__}",
                transient=not isinstance(e, IntegrityError),
            ) from e
    return wrapper


class SqlSchemaSource(SchemaSource):
    """Branches and field mappings in the application database."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.branches = BranchRepository(session)
        self.mappings = FieldMappingRepository(session)

    @store_call
    async def get_branch(self, identifier: str) -> Optional[Branch]:
        return await self.branches.get_by_identifier(identifier)

    @store_call
    async def fetch_mappings(self, branch_id: uuid.UUID) -> List[FieldMapping]:
        return list(await self.mappings.list_for_branch(branch_id))

    @store_call
    async def list_branches(self, active_only: bool = True) -> List[Branch]:
        return list(await self.branches.list_branches(active_only))

    async def create_branch(self, branch: Branch) -> Branch:
        try:
            return await self._save_branch(branch)
        except StoreUnavailableError as e:
            if isinstance(e.__cause__, IntegrityError):
                raise AlreadyExistsError("Branch", "name", branch.name) from e
            raise

    @store_call
    async def update_branch(self, branch: Branch) -> Branch:
        return await self.branches.save(branch)

    @store_call
    async def replace_mappings(
        self, branch_id: uuid.UUID, mappings: List[FieldMapping]
    ) -> List[FieldMapping]:
        return await self.mappings.replace_for_branch(branch_id, mappings)

    @store_call
    async def _save_branch(self, branch: Branch) -> Branch:
        return await self.branches.save(branch)


class SqlLeadStore(LeadStore):
    """Persisted leads with per-branch unique keys."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.leads = LeadRepository(session)

    @store_call
    async def check_unique(self, branch_id: uuid.UUID, field_key: str, value: str) -> bool:
        return await self.leads.get_by_unique_value(branch_id, field_key, value) is None

    async def persist(self, lead: NormalizedLead) -> uuid.UUID:
        # An earlier attempt whose reply was lost may already have stored this lead
        if await self._already_stored(lead):
            return lead.lead_id
        try:
            return await self._insert(lead)
        except StoreUnavailableError as e:
            if not isinstance(e.__cause__, IntegrityError):
                raise
            if await self._already_stored(lead):
                return lead.lead_id
            # Another writer took a unique value between check and insert
            for field_key, value in lead.unique_keys.items():
                if not await self.check_unique(lead.branch_id, field_key, value):
                    raise AlreadyExistsError("Lead", field_key, value) from e
            raise StoreUnavailableError("Lead insert violated a constraint", transient=False) from e

    @store_call
    async def get_lead(self, lead_id: uuid.UUID) -> Optional[Lead]:
        return await self.leads.get(lead_id)

    async def _already_stored(self, lead: NormalizedLead) -> bool:
        if await self.get_lead(lead.lead_id) is None:
            return False
        logger.info(f"Lead {lead.lead_id} is already stored; not writing it again")
        return True

    @store_call
    async def _insert(self, lead: NormalizedLead) -> uuid.UUID:
        record = Lead(
            id=lead.lead_id,
            branch_id=lead.branch_id,
            data=lead.model_dump(mode="json")["fields"],
            origin_type=lead.origin_type.value,
            origin_id=lead.origin_id,
            ingested_at=lead.ingested_at,
        )
        record = await self.leads.create_with_keys(record, lead.unique_keys)
        return record.id


class SqlLeadFormSource(LeadFormSource):
    """Lead-form routing table in the application database."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.forms = LeadFormRepository(session)

    @store_call
    async def get_active_form(self, form_id: str) -> Optional[LeadForm]:
        return await self.forms.get_active_by_form_id(form_id)

    @store_call
    async def record_received(self, form_id: str, count: int) -> None:
        await self.forms.record_received(form_id, count)
