"""Shared fixtures: in-memory store collaborators and a configured "solar" branch."""
import asyncio
import uuid
from typing import Dict, List, Optional

import pytest

from lead_engine.core.exceptions import AlreadyExistsError, StoreUnavailableError
from lead_engine.models.branch import Branch, FieldMapping
from lead_engine.models.lead import Lead
from lead_engine.models.lead_form import LeadForm
from lead_engine.schemas.ingestion import NormalizedLead
from lead_engine.services.ingestion_service import BatchIngestor
from lead_engine.services.integrations.base import LeadFormSource, LeadStore, SchemaSource
from lead_engine.services.schema_registry import SchemaRegistry


class InMemorySchemaSource(SchemaSource):
    def __init__(self):
        self.branches: Dict[uuid.UUID, Branch] = {}
        self.mappings: Dict[uuid.UUID, List[FieldMapping]] = {}
        self.fetch_calls = 0
        self.unavailable = False

    def add_branch(self, branch: Branch, mappings: Optional[List[FieldMapping]] = None) -> Branch:
        self.branches[branch.id] = branch
        self.mappings[branch.id] = list(mappings or [])
        return branch

    async def get_branch(self, identifier: str) -> Optional[Branch]:
        if self.unavailable:
            raise StoreUnavailableError("schema source down")
        for branch in self.branches.values():
            if str(branch.id) == identifier or branch.name == identifier:
                return branch
        return None

    async def fetch_mappings(self, branch_id: uuid.UUID) -> List[FieldMapping]:
        self.fetch_calls += 1
        return list(self.mappings.get(branch_id, []))

    async def list_branches(self, active_only: bool = True) -> List[Branch]:
        return [b for b in self.branches.values() if b.is_active or not active_only]

    async def create_branch(self, branch: Branch) -> Branch:
        return self.add_branch(branch)

    async def update_branch(self, branch: Branch) -> Branch:
        self.branches[branch.id] = branch
        return branch

    async def replace_mappings(self, branch_id: uuid.UUID, mappings: List[FieldMapping]) -> List[FieldMapping]:
        self.mappings[branch_id] = list(mappings)
        return list(mappings)


class InMemoryLeadStore(LeadStore):
    """
    Lead store double.
    `check_failures` / `persist_failures` make the next N calls raise a
    transient StoreUnavailableError; `hang_checks` makes uniqueness checks
    never return; `stall_after_persist` makes the next N persists store the
    lead and then never reply.
    """

    def __init__(self):
        self.leads: Dict[uuid.UUID, Lead] = {}
        self.keys: Dict[tuple, uuid.UUID] = {}
        self.check_calls = 0
        self.persist_calls = 0
        self.check_failures = 0
        self.persist_failures = 0
        self.persist_transient = True
        self.hang_checks = False
        self.stall_after_persist = 0
        # Keys taken by a concurrent writer between check and persist
        self.race_keys: Dict[tuple, uuid.UUID] = {}

    async def check_unique(self, branch_id: uuid.UUID, field_key: str, value: str) -> bool:
        self.check_calls += 1
        if self.hang_checks:
            await asyncio.sleep(3600)
        if self.check_failures:
            self.check_failures -= 1
            raise StoreUnavailableError("lead store timeout")
        return (branch_id, field_key, value) not in self.keys

    async def persist(self, lead: NormalizedLead) -> uuid.UUID:
        self.persist_calls += 1
        if self.persist_failures:
            self.persist_failures -= 1
            raise StoreUnavailableError("lead store write failed", transient=self.persist_transient)
        if lead.lead_id in self.leads:
            return lead.lead_id
        for field_key, value in lead.unique_keys.items():
            key = (lead.branch_id, field_key, value)
            if key in self.keys or key in self.race_keys:
                raise AlreadyExistsError("Lead", field_key, value)

        record = Lead(
            id=lead.lead_id,
            branch_id=lead.branch_id,
            data=lead.model_dump(mode="json")["fields"],
            origin_type=lead.origin_type.value,
            origin_id=lead.origin_id,
        )
        self.leads[record.id] = record
        for field_key, value in lead.unique_keys.items():
            self.keys[(lead.branch_id, field_key, value)] = record.id
        if self.stall_after_persist:
            self.stall_after_persist -= 1
            await asyncio.sleep(3600)
        return record.id

    async def get_lead(self, lead_id: uuid.UUID) -> Optional[Lead]:
        return self.leads.get(lead_id)


class InMemoryLeadFormSource(LeadFormSource):
    """`lookup_failures` / `stats_failures` make the next N calls raise a transient StoreUnavailableError."""

    def __init__(self):
        self.forms: Dict[str, LeadForm] = {}
        self.lookup_failures = 0
        self.stats_failures = 0

    async def get_active_form(self, form_id: str) -> Optional[LeadForm]:
        if self.lookup_failures:
            self.lookup_failures -= 1
            raise StoreUnavailableError("form table unreachable")
        form = self.forms.get(form_id)
        return form if form is not None and form.is_active else None

    async def record_received(self, form_id: str, count: int) -> None:
        if self.stats_failures:
            self.stats_failures -= 1
            raise StoreUnavailableError("stats write failed")
        self.forms[form_id].total_leads_received += count


def make_mapping(branch_id: uuid.UUID, field_key: str, **kwargs) -> FieldMapping:
    kwargs.setdefault("field_label", field_key.replace("_", " ").title())
    return FieldMapping(branch_id=branch_id, field_key=field_key, **kwargs)


@pytest.fixture
def schema_source() -> InMemorySchemaSource:
    return InMemorySchemaSource()


@pytest.fixture
def lead_store() -> InMemoryLeadStore:
    return InMemoryLeadStore()


@pytest.fixture
def form_source() -> InMemoryLeadFormSource:
    return InMemoryLeadFormSource()


@pytest.fixture
def registry(schema_source) -> SchemaRegistry:
    return SchemaRegistry(schema_source)


@pytest.fixture
def ingestor(registry, lead_store) -> BatchIngestor:
    return BatchIngestor(registry, lead_store, retry_attempts=3, retry_backoff=0, timeout=1.0)


@pytest.fixture
def solar_mappings():
    branch_id = uuid.uuid4()
    return branch_id, [
        make_mapping(branch_id, "email", column_index=0, field_type="email",
                     is_required=True, is_unique=True, sort_order=0,
                     include_in_email=True, email_priority=2),
        make_mapping(branch_id, "phone", column_index=1, field_type="phone",
                     is_required=True, sort_order=1,
                     include_in_email=True, email_priority=1),
        make_mapping(branch_id, "name", column_index=2, field_type="text", sort_order=2,
                     show_in_list=False),
    ]


@pytest.fixture
def solar(schema_source, solar_mappings) -> Branch:
    branch_id, mappings = solar_mappings
    branch = Branch(id=branch_id, name="solar", display_name="Solar", email_template_id="solar_new_lead")
    return schema_source.add_branch(branch, mappings)
