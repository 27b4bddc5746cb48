"""Tests for per-type field coercion."""
import math
import uuid
from datetime import date, datetime

import pytest

from lead_engine.services.coercion import Coerced, TypeMismatch, coerce, enum_values, is_empty, to_text
from tests.conftest import make_mapping


def _mapping(field_type, **kwargs):
    return make_mapping(uuid.uuid4(), "field", field_type=field_type, **kwargs)


def test_email_is_trimmed_and_lowercased():
    result = coerce("  A@B.COM ", _mapping("email"))

    assert result == Coerced("a@b.com", "a@b.com")


@pytest.mark.parametrize("raw", ["not-an-email", "a@", "@b.com", "a b@c.com"])
def test_email_rejects_malformed_addresses(raw):
    assert isinstance(coerce(raw, _mapping("email")), TypeMismatch)


def test_phone_keeps_formatting_and_compares_digits():
    result = coerce(" 06-1234 5678 ", _mapping("phone"))

    assert isinstance(result, Coerced)
    assert result.value == "06-1234 5678"
    assert result.comparable == "0612345678"


def test_phone_requires_ten_digits():
    result = coerce("06-123", _mapping("phone"))

    assert isinstance(result, TypeMismatch)
    assert "10" in result.reason


def test_number_parses_text_and_scalars():
    assert coerce("42.5", _mapping("number")).value == 42.5
    assert coerce(7, _mapping("number")).value == 7.0


@pytest.mark.parametrize("raw", ["abc", "inf", "nan", True, math.inf])
def test_number_rejects_non_finite_or_non_numeric(raw):
    assert isinstance(coerce(raw, _mapping("number")), TypeMismatch)


@pytest.mark.parametrize("raw, expected", [
    ("€ 1.234,56", 1234.56),
    ("1,234.56", 1234.56),
    ("2500", 2500.0),
    (99.5, 99.5),
])
def test_currency_handles_separators(raw, expected):
    assert coerce(raw, _mapping("currency")).value == expected


def test_date_accepts_iso_8601():
    assert coerce("2024-03-01", _mapping("date")).value == date(2024, 3, 1)
    assert coerce("2024-03-01T10:30:00", _mapping("date")).value == datetime(2024, 3, 1, 10, 30)


def test_date_accepts_day_first_formats():
    assert coerce("01-03-2024", _mapping("date")).value == date(2024, 3, 1)
    assert coerce("01/03/2024", _mapping("date")).value == date(2024, 3, 1)


def test_date_uses_declared_format():
    result = coerce("2024|03|01", _mapping("date", date_format="%Y|%m|%d"))

    assert result.value == date(2024, 3, 1)


@pytest.mark.parametrize("raw", ["01-03-24", "1/3/24"])
def test_date_rejects_two_digit_years(raw):
    result = coerce(raw, _mapping("date"))

    assert isinstance(result, TypeMismatch)
    assert "two-digit year" in result.reason


def test_date_rejects_declared_two_digit_year_format():
    result = coerce("01-03-24", _mapping("date", date_format="%d-%m-%y"))

    assert isinstance(result, TypeMismatch)


def test_date_passes_through_date_objects():
    assert coerce(date(2024, 1, 2), _mapping("date")).value == date(2024, 1, 2)


@pytest.mark.parametrize("raw, expected", [
    ("TRUE", True), ("yes", True), ("1", True), (1, True),
    ("False", False), ("NO", False), ("0", False), (False, False),
])
def test_boolean_accepts_known_spellings(raw, expected):
    assert coerce(raw, _mapping("boolean")).value is expected


@pytest.mark.parametrize("raw", ["ja", "maybe", "2"])
def test_boolean_rejects_other_values(raw):
    assert isinstance(coerce(raw, _mapping("boolean")), TypeMismatch)


def test_url_requires_scheme():
    assert coerce("https://example.com/form", _mapping("url")).value == "https://example.com/form"
    assert isinstance(coerce("example.com", _mapping("url")), TypeMismatch)


def test_enum_matches_case_insensitively_and_keeps_declared_spelling():
    mapping = _mapping("enum", validation_pattern="Koop|Huur|Lease")

    assert coerce("huur", mapping).value == "Huur"
    assert isinstance(coerce("gift", mapping), TypeMismatch)


def test_enum_without_allowed_values_is_a_mismatch():
    assert isinstance(coerce("x", _mapping("enum")), TypeMismatch)


def test_unknown_field_type_is_a_mismatch():
    assert isinstance(coerce("x", _mapping("geo")), TypeMismatch)


def test_enum_values_split_on_common_delimiters():
    assert enum_values("a, b;c|d") == ["a", "b", "c", "d"]
    assert enum_values(None) == []


def test_empty_and_text_helpers():
    assert is_empty(None)
    assert is_empty("   ")
    assert not is_empty(0)
    assert to_text(12.0) == "12"
    assert to_text("  x ") == "x"
