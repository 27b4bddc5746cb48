"""
Field coercion - interpret a raw cell/payload value against a declared field type.

Coercers never raise. Each returns either Coerced(value, comparable) or
TypeMismatch(reason) so the row mapper can collect every failing field of
a row in one pass. `comparable` is the normalized form used for uniqueness
checks (lowercased email, digits-only phone, ...).
"""
import math
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional, Union

from pydantic import AnyUrl, TypeAdapter, ValidationError
from pydantic.networks import validate_email

from lead_engine.models.branch import FieldMapping, FieldType


@dataclass(frozen=True)
class Coerced:
    value: Any
    comparable: str


@dataclass(frozen=True)
class TypeMismatch:
    reason: str


CoercionResult = Union[Coerced, TypeMismatch]

TRUE_VALUES = {"true", "yes", "1"}
FALSE_VALUES = {"false", "no", "0"}

# Accepted besides ISO-8601 when the mapping declares no format
DEFAULT_DATE_FORMATS = ("%d-%m-%Y", "%d/%m/%Y", "%d.%m.%Y")

MIN_PHONE_DIGITS = 10

_EMAIL_SHAPE = re.compile(r"^[^@\s<>]+@[^@\s<>]+$")
_DATE_PARTS = re.compile(r"^(\d+)[-/.](\d+)[-/.](\d+)$")
_ENUM_SEPARATORS = re.compile(r"[|,;]")
_URL_ADAPTER = TypeAdapter(AnyUrl)


def is_empty(raw: Any) -> bool:
    """None and whitespace-only strings count as empty."""
    if raw is None:
        return True
    if isinstance(raw, str):
        return not raw.strip()
    return False


def to_text(raw: Any) -> str:
    """Trimmed string form of a raw value. Integral floats lose their '.0'."""
    if raw is None:
        return ""
    if isinstance(raw, float) and raw.is_integer():
        raw = int(raw)
    return str(raw).strip()


def coerce(raw: Any, mapping: FieldMapping) -> CoercionResult:
    """Coerce `raw` according to `mapping.field_type`."""
    try:
        field_type = FieldType(mapping.field_type)
    except ValueError:
        return TypeMismatch(f"unsupported field type '{mapping.field_type}'")
    return _COERCERS[field_type](raw, mapping)


def coerce_text(raw: Any, mapping: FieldMapping) -> CoercionResult:
    text = to_text(raw)
    return Coerced(text, text)


def coerce_email(raw: Any, mapping: FieldMapping) -> CoercionResult:
    text = to_text(raw)
    if not _EMAIL_SHAPE.match(text):
        return TypeMismatch(f"'{text}' is not an email address")
    try:
        _, normalized = validate_email(text)
    except ValueError as e:
        return TypeMismatch(f"'{text}' is not a valid email address: {e}")
    value = normalized.lower()
    return Coerced(value, value)


def coerce_phone(raw: Any, mapping: FieldMapping) -> CoercionResult:
    text = to_text(raw)
    digits = re.sub(r"\D", "", text)
    if len(digits) < MIN_PHONE_DIGITS:
        return TypeMismatch(
            f"'{text}' has {len(digits)} digits, at least {MIN_PHONE_DIGITS} are required"
        )
    # Stored with its original formatting; digits only for comparison
    return Coerced(text, digits)


def coerce_number(raw: Any, mapping: FieldMapping) -> CoercionResult:
    if isinstance(raw, bool):
        return TypeMismatch(f"'{raw}' is a boolean, not a number")
    if isinstance(raw, (int, float)):
        number = float(raw)
    else:
        text = to_text(raw)
        try:
            number = float(text)
        except ValueError:
            return TypeMismatch(f"'{text}' is not a number")
    return _finite(number)


def coerce_currency(raw: Any, mapping: FieldMapping) -> CoercionResult:
    if isinstance(raw, bool):
        return TypeMismatch(f"'{raw}' is a boolean, not an amount")
    if isinstance(raw, (int, float)):
        return _finite(float(raw))

    text = to_text(raw)
    normalized = re.sub(r"[^\d,.\-]", "", text)

    # European decimals use a comma ("1.234,56"); otherwise commas group thousands
    if re.search(r",\d{1,2}$", normalized):
        normalized = normalized.replace(".", "").replace(",", ".")
    else:
        normalized = normalized.replace(",", "")

    try:
        number = float(normalized)
    except ValueError:
        return TypeMismatch(f"'{text}' is not an amount")
    return _finite(number)


def coerce_date(raw: Any, mapping: FieldMapping) -> CoercionResult:
    if isinstance(raw, (date, datetime)):
        return Coerced(raw, raw.isoformat())

    text = to_text(raw)
    parts = _DATE_PARTS.match(text)
    if parts and not any(len(part) == 4 for part in parts.groups()):
        return TypeMismatch(f"'{text}' has an ambiguous two-digit year")

    for parse in (date.fromisoformat, datetime.fromisoformat):
        try:
            value = parse(text)
            return Coerced(value, value.isoformat())
        except ValueError:
            pass

    if mapping.date_format:
        if "%y" in mapping.date_format:
            return TypeMismatch(
                f"declared date format '{mapping.date_format}' uses an ambiguous two-digit year"
            )
        formats = (mapping.date_format,)
    else:
        formats = DEFAULT_DATE_FORMATS

    for fmt in formats:
        try:
            parsed = datetime.strptime(text, fmt)
        except ValueError:
            continue
        value = parsed if _has_time(fmt) else parsed.date()
        return Coerced(value, value.isoformat())

    return TypeMismatch(f"'{text}' is not a date")


def coerce_boolean(raw: Any, mapping: FieldMapping) -> CoercionResult:
    if isinstance(raw, bool):
        return Coerced(raw, str(raw).lower())
    text = to_text(raw).lower()
    if text in TRUE_VALUES:
        return Coerced(True, "true")
    if text in FALSE_VALUES:
        return Coerced(False, "false")
    return TypeMismatch(f"'{to_text(raw)}' is not a yes/no value")


def coerce_url(raw: Any, mapping: FieldMapping) -> CoercionResult:
    text = to_text(raw)
    try:
        _URL_ADAPTER.validate_python(text)
    except ValidationError:
        return TypeMismatch(f"'{text}' is not an absolute URL")
    return Coerced(text, text)


def coerce_enum(raw: Any, mapping: FieldMapping) -> CoercionResult:
    allowed = enum_values(mapping.validation_pattern)
    if not allowed:
        return TypeMismatch(f"no allowed values configured for '{mapping.field_key}'")

    text = to_text(raw)
    for member in allowed:
        if member.casefold() == text.casefold():
            return Coerced(member, member.casefold())
    return TypeMismatch(f"'{text}' is not one of: {', '.join(allowed)}")


def enum_values(pattern: Optional[str]) -> List[str]:
    """Allowed values of an enum field, carried as a delimited list."""
    if not pattern:
        return []
    return [value.strip() for value in _ENUM_SEPARATORS.split(pattern) if value.strip()]


def _finite(number: float) -> CoercionResult:
    if not math.isfinite(number):
        return TypeMismatch(f"'{number}' is not a finite number")
    return Coerced(number, repr(number))


def _has_time(fmt: str) -> bool:
    return any(token in fmt for token in ("%H", "%I", "%M", "%S"))


_COERCERS: Dict[FieldType, Callable[[Any, FieldMapping], CoercionResult]] = {
    FieldType.TEXT: coerce_text,
    FieldType.EMAIL: coerce_email,
    FieldType.PHONE: coerce_phone,
    FieldType.NUMBER: coerce_number,
    FieldType.CURRENCY: coerce_currency,
    FieldType.DATE: coerce_date,
    FieldType.BOOLEAN: coerce_boolean,
    FieldType.URL: coerce_url,
    FieldType.ENUM: coerce_enum,
}
