"""
Row mapper - apply a branch's mapping list to one raw record.
"""
import logging
import uuid
from typing import Any, List, Sequence

from lead_engine.models.branch import FieldMapping
from lead_engine.schemas.ingestion import (
    Accepted, FieldFailure, MapResult, NormalizedLead, RawRecord, Rejected
)
from lead_engine.services.validation import ValidField, validate_field

logger = logging.getLogger(__name__)


def extract_raw_value(record: RawRecord, mapping: FieldMapping) -> Any:
    """
    Read the value a mapping points at.
    A missing column or key reads as empty; only a required field turns
    that into a failure.
    """
    values = record.values
    if isinstance(values, dict):
        return values.get(mapping.resolved_source_key)

    index = mapping.resolved_column_index
    if index is None or index < 0 or index >= len(values):
        return None
    return values[index]


def map_row(record: RawRecord, mappings: Sequence[FieldMapping], branch_id: uuid.UUID) -> MapResult:
    """
    Map one raw record to a normalized lead.
    Every field is evaluated; a rejected row carries the failures of all
    fields, not just the first one.
    """
    fields = {}
    unique_keys = {}
    failures: List[FieldFailure] = []

    for mapping in mappings:
        result = validate_field(extract_raw_value(record, mapping), mapping)
        if isinstance(result, ValidField):
            fields[mapping.field_key] = result.value
            if mapping.is_unique and result.comparable:
                unique_keys[mapping.field_key] = result.comparable
        else:
            failures.append(result)

    if failures:
        logger.debug(
            f"Row {record.row_number or record.origin_id} rejected: "
            f"{', '.join(f.field_key for f in failures)}"
        )
        return Rejected(failures=failures)

    return Accepted(lead=NormalizedLead(
        branch_id=branch_id,
        fields=fields,
        unique_keys=unique_keys,
        origin_type=record.origin_type,
        origin_id=record.origin_id,
        row_number=record.row_number,
    ))
