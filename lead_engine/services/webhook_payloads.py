"""
Lead-form webhook payloads - flatten Meta lead-ad notifications into raw records.
"""
import logging
from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from lead_engine.schemas.ingestion import RawRecord

logger = logging.getLogger(__name__)

LEADGEN_FIELD = "leadgen"


class FormLead(BaseModel):
    """One submitted lead-form entry, keyed by form field name."""
    lead_id: Optional[str] = None
    form_id: Optional[str] = None
    record: RawRecord


def flatten_field_data(field_data: List[Dict[str, Any]]) -> Dict[str, Any]:
    """
    [{"name": "email", "values": ["a@b.nl"]}] -> {"email": "a@b.nl"}
    Only the first value of each field is kept; fields without values map to None.
    """
    flat = {}
    for item in field_data or []:
        name = item.get("name")
        if not name:
            continue
        values = item.get("values") or []
        flat[name] = values[0] if values else None
    return flat


def parse_meta_payload(payload: Dict[str, Any]) -> List[FormLead]:
    """Extract every leadgen change of a webhook notification, in payload order."""
    leads = []
    for entry in payload.get("entry") or []:
        for change in entry.get("changes") or []:
            if change.get("field") != LEADGEN_FIELD:
                continue
            value = change.get("value") or {}
            lead_id = value.get("leadgen_id") or value.get("id")
            leads.append(FormLead(
                lead_id=str(lead_id) if lead_id is not None else None,
                form_id=str(value["form_id"]) if value.get("form_id") is not None else None,
                record=RawRecord.from_payload(
                    flatten_field_data(value.get("field_data")),
                    origin_id=str(lead_id) if lead_id is not None else None,
                ),
            ))

    logger.debug(f"Parsed {len(leads)} leadgen changes from webhook payload")
    return leads


def group_by_form(leads: List[FormLead]) -> Dict[Optional[str], List[FormLead]]:
    """Group leads by form id, keeping first-seen form order and per-form lead order."""
    groups: Dict[Optional[str], List[FormLead]] = {}
    for lead in leads:
        groups.setdefault(lead.form_id, []).append(lead)
    return groups
