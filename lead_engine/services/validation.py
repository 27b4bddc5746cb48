"""
Validation rule engine.

Per field the rule chain is: required -> type coercion -> pattern. The
first failing rule is reported and later rules for that field are skipped.
Uniqueness is the last rule of the chain but needs batch and store
context, so it is enforced by the batch ingestor on the `comparable`
values produced here.
"""
import re
from dataclasses import dataclass
from typing import Any, Optional, Union

from lead_engine.models.branch import FieldMapping, FieldType
from lead_engine.schemas.ingestion import FailureReason, FieldFailure
from lead_engine.services.coercion import TypeMismatch, coerce, is_empty, to_text


@dataclass(frozen=True)
class ValidField:
    field_key: str
    value: Any
    # Normalized form for uniqueness; None when the field is empty
    comparable: Optional[str]


FieldResult = Union[ValidField, FieldFailure]


def validate_field(raw: Any, mapping: FieldMapping) -> FieldResult:
    """Run the rule chain for one field and return its value or first failure."""
    if is_empty(raw):
        if mapping.is_required:
            return _failure(mapping, raw, FailureReason.REQUIRED, f"{mapping.field_label} is required")
        empty = "" if mapping.field_type == FieldType.TEXT.value else None
        return ValidField(mapping.field_key, empty, None)

    coerced = coerce(raw, mapping)
    if isinstance(coerced, TypeMismatch):
        return _failure(mapping, raw, FailureReason.TYPE_MISMATCH, coerced.reason)

    pattern_failure = check_pattern(raw, mapping)
    if pattern_failure is not None:
        return pattern_failure

    return ValidField(mapping.field_key, coerced.value, coerced.comparable)


def check_pattern(raw: Any, mapping: FieldMapping) -> Optional[FieldFailure]:
    """Match the declared validation pattern against the trimmed raw text."""
    # Enum fields carry their allowed values in the pattern column
    if not mapping.validation_pattern or mapping.field_type == FieldType.ENUM.value:
        return None

    text = to_text(raw)
    try:
        matched = re.search(mapping.validation_pattern, text)
    except re.error as e:
        return _failure(
            mapping, raw, FailureReason.PATTERN,
            f"invalid validation pattern '{mapping.validation_pattern}': {e}",
        )
    if matched is None:
        return _failure(
            mapping, raw, FailureReason.PATTERN,
            f"'{text}' does not match pattern '{mapping.validation_pattern}'",
        )
    return None


def _failure(mapping: FieldMapping, raw: Any, reason: FailureReason, message: str) -> FieldFailure:
    return FieldFailure(field_key=mapping.field_key, raw_value=raw, reason=reason, message=message)
