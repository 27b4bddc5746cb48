"""
Base interfaces for the engine's external collaborators.
Abstract base classes for the schema source, the lead record store and
the lead-form routing table.
"""
import uuid
from abc import ABC, abstractmethod
from typing import List, Optional

from lead_engine.models.branch import Branch, FieldMapping
from lead_engine.models.lead import Lead
from lead_engine.models.lead_form import LeadForm
from lead_engine.schemas.ingestion import NormalizedLead


class SchemaSource(ABC):
    """Where branch definitions and their field mappings live."""

    @abstractmethod
    async def get_branch(self, identifier: str) -> Optional[Branch]:
        """
        Look up a branch by id or machine name.

        Returns None when no branch matches.
        """
        pass

    @abstractmethod
    async def fetch_mappings(self, branch_id: uuid.UUID) -> List[FieldMapping]:
        """Field mappings of a branch; empty for an unconfigured branch."""
        pass

    @abstractmethod
    async def list_branches(self, active_only: bool = True) -> List[Branch]:
        """All branches, optionally only the active ones."""
        pass

    @abstractmethod
    async def create_branch(self, branch: Branch) -> Branch:
        """Persist a new branch."""
        pass

    @abstractmethod
    async def update_branch(self, branch: Branch) -> Branch:
        """Persist changes to an existing branch."""
        pass

    @abstractmethod
    async def replace_mappings(
        self, branch_id: uuid.UUID, mappings: List[FieldMapping]
    ) -> List[FieldMapping]:
        """Replace the whole mapping list of a branch."""
        pass


class LeadStore(ABC):
    """Persistence collaborator for normalized leads."""

    @abstractmethod
    async def check_unique(self, branch_id: uuid.UUID, field_key: str, value: str) -> bool:
        """
        True when no persisted lead of the branch has `value` for `field_key`.

        Raises:
            StoreUnavailableError: the store could not be reached.
        """
        pass

    @abstractmethod
    async def persist(self, lead: NormalizedLead) -> uuid.UUID:
        """
        Store a normalized lead and return its identifier (`lead.lead_id`).
        Persisting a lead whose id is already stored returns that id
        without writing again.

        Raises:
            AlreadyExistsError: a unique value was taken in the meantime.
            StoreUnavailableError: the store could not be reached.
        """
        pass

    @abstractmethod
    async def get_lead(self, lead_id: uuid.UUID) -> Optional[Lead]:
        """Fetch a persisted lead."""
        pass


class LeadFormSource(ABC):
    """Routing table from external lead forms to branches."""

    @abstractmethod
    async def get_active_form(self, form_id: str) -> Optional[LeadForm]:
        """Active form registration for `form_id`, or None."""
        pass

    @abstractmethod
    async def record_received(self, form_id: str, count: int) -> None:
        """Add `count` to the form's received-lead statistics."""
        pass
