"""
Projection builder - view-specific, ordered field lists of a lead.
"""
import uuid
from datetime import date, datetime
from typing import Any, Dict, List, Optional, Sequence, Union

from lead_engine.config import settings
from lead_engine.core.exceptions import NotFoundError
from lead_engine.models.branch import Branch, FieldMapping, FieldType, ProjectionView
from lead_engine.models.lead import Lead
from lead_engine.schemas.ingestion import NormalizedLead
from lead_engine.schemas.projection import EmailField, EmailPayload, ProjectedField, ProjectionResponse
from lead_engine.services.coercion import is_empty
from lead_engine.services.integrations.base import LeadStore
from lead_engine.services.schema_registry import SchemaRegistry

LeadLike = Union[NormalizedLead, Lead, Dict[str, Any]]


def lead_fields(lead: LeadLike) -> Dict[str, Any]:
    if isinstance(lead, NormalizedLead):
        return lead.fields
    if isinstance(lead, Lead):
        return lead.data or {}
    return lead


def is_visible(mapping: FieldMapping, view: ProjectionView) -> bool:
    if view == ProjectionView.LIST:
        return mapping.show_in_list
    if view == ProjectionView.DETAIL:
        return mapping.show_in_detail
    return mapping.include_in_email


def view_order(mapping: FieldMapping, view: ProjectionView):
    if view == ProjectionView.EMAIL:
        return (mapping.email_priority, mapping.sort_order, mapping.field_key)
    return (mapping.sort_order, mapping.field_key)


def project(lead: LeadLike, mappings: Sequence[FieldMapping], view: ProjectionView) -> List[ProjectedField]:
    """
    Project a lead into a view.

    List and detail views follow sort order and keep empty fields (as None);
    the email view follows email priority (ascending) and leaves empty
    fields out. Same input always gives the same output.
    """
    view = ProjectionView(view)
    values = lead_fields(lead)

    projected = []
    for mapping in sorted((m for m in mappings if is_visible(m, view)), key=lambda m: view_order(m, view)):
        value = values.get(mapping.field_key)
        if view == ProjectionView.EMAIL and is_empty(value):
            continue
        projected.append(ProjectedField(field_key=mapping.field_key, label=mapping.field_label, value=value))
    return projected


def format_value(value: Any, field_type: str) -> str:
    """Render a stored value as display text for outbound messages."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if field_type == FieldType.DATE.value:
        value = _as_date(value)
    if isinstance(value, datetime):
        return value.strftime("%d-%m-%Y %H:%M")
    if isinstance(value, date):
        return value.strftime("%d-%m-%Y")
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def build_email_payload(
    lead: LeadLike,
    branch: Branch,
    mappings: Sequence[FieldMapping],
    lead_id: Optional[uuid.UUID] = None,
) -> EmailPayload:
    """Email view plus the branch's template id, ready for the notification component."""
    types = {m.field_key: m.field_type for m in mappings}
    fields = [
        EmailField(label=item.label, value=format_value(item.value, types[item.field_key]))
        for item in project(lead, mappings, ProjectionView.EMAIL)
    ]
    return EmailPayload(
        template_id=branch.email_template_id or settings.DEFAULT_EMAIL_TEMPLATE_ID,
        branch_id=branch.id,
        lead_id=lead_id,
        fields=fields,
    )


def _as_date(value: Any) -> Any:
    # Persisted leads hold dates as ISO strings
    if isinstance(value, str):
        for parse in (date.fromisoformat, datetime.fromisoformat):
            try:
                return parse(value)
            except ValueError:
                pass
    return value


class ProjectionService:
    """Projection of persisted leads by id."""

    def __init__(self, registry: SchemaRegistry, store: LeadStore):
        self.registry = registry
        self.store = store

    async def project_lead(self, lead_id: uuid.UUID, view: ProjectionView) -> ProjectionResponse:
        lead = await self._get_lead(lead_id)
        mappings = await self.registry.get_mappings(lead.branch_id)
        return ProjectionResponse(
            lead_id=lead.id,
            branch_id=lead.branch_id,
            view=view,
            fields=project(lead, mappings, view),
        )

    async def email_payload(self, lead_id: uuid.UUID) -> EmailPayload:
        lead = await self._get_lead(lead_id)
        branch = await self.registry.get_branch(lead.branch_id)
        mappings = await self.registry.get_mappings(lead.branch_id)
        return build_email_payload(lead, branch, mappings, lead_id=lead.id)

    async def _get_lead(self, lead_id: uuid.UUID) -> Lead:
        lead = await self.store.get_lead(lead_id)
        if lead is None:
            raise NotFoundError("Lead", str(lead_id))
        return lead
