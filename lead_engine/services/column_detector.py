"""
Column detector - suggest field mappings from a spreadsheet header row.
"""
import re
from typing import Dict, List, Optional, Tuple

from lead_engine.models.branch import FieldType, index_to_column_letter
from lead_engine.schemas.branch import DetectedMapping

# More specific patterns come first: "datum interesse klant" is datumInteresse, not customerName
KNOWN_PATTERNS: Dict[str, List[str]] = {
    "datumInteresse": ["datum interesse klant", "datum interesse", "interesse datum", "datum van interesse"],
    "date": ["datum", "date", "created", "aangemaakt", "aangemeld"],
    "customerName": ["naam klant", "naam", "name", "klant", "customer", "contact", "persoon"],
    "phone": ["telefoonnummer", "telefoon", "phone", "tel", "mobiel", "gsm", "nummer"],
    "postalCode": ["postcode", "postal", "zip", "zipcode"],
    "houseNumber": ["huisnummer", "house", "nummer", "huis"],
    "city": ["plaatsnaam", "plaats", "stad", "city", "woonplaats", "gemeente"],
    "address": ["adres", "address", "straat", "street"],
    "email": ["e-mail", "email", "mail", "emailadres"],
    "company": ["bedrijf", "company", "organisatie", "firma"],
    "budget": ["budget", "prijs", "investering", "kosten"],
    "dealValue": ["dealvalue", "deal", "omzet", "waarde", "value"],
    "profit": ["profit", "winst", "marge", "verdienste"],
    "status": ["status", "staat", "fase", "state"],
    "notes": ["opmerkingenveld", "opmerkingen", "notities", "notes", "resultaat", "gesprek"],
}

# Checked in order; the first type with a matching pattern wins
TYPE_PATTERNS: List[Tuple[FieldType, List[re.Pattern]]] = [
    (FieldType.EMAIL, [re.compile(r"@"), re.compile(r"email", re.I), re.compile(r"mail", re.I)]),
    (FieldType.PHONE, [re.compile(r"\d{10}"), re.compile(r"telefoon", re.I),
                       re.compile(r"phone", re.I), re.compile(r"mobiel", re.I)]),
    (FieldType.DATE, [re.compile(r"datum", re.I), re.compile(r"date", re.I),
                      re.compile(r"\d{2}-\d{2}-\d{4}"), re.compile(r"\d{4}-\d{2}-\d{2}")]),
    (FieldType.CURRENCY, [re.compile(r"€"), re.compile(r"\d+[.,]\d{2}"), re.compile(r"budget", re.I),
                          re.compile(r"prijs", re.I), re.compile(r"bedrag", re.I),
                          re.compile(r"waarde", re.I), re.compile(r"profit", re.I)]),
    (FieldType.BOOLEAN, [re.compile(r"ja/nee", re.I), re.compile(r"yes/no", re.I),
                         re.compile(r"true/false", re.I), re.compile(r"waar/onwaar", re.I)]),
    (FieldType.URL, [re.compile(r"https?://"), re.compile(r"www\."),
                     re.compile(r"\.com"), re.compile(r"\.nl")]),
]

EXACT_MATCH = 100
PREFIX_MATCH = 80
SUBSTRING_MATCH = 60

# Email view is ordered by ascending priority
EMAIL_PRIORITIES = {
    "customerName": 1,
    "datumInteresse": 2,
    "date": 2,
    "phone": 3,
    "email": 4,
    "status": 9,
}
DEFAULT_EMAIL_PRIORITY = 5

REQUIRED_FIELDS = {"customerName", "email", "phone"}
UNIQUE_FIELDS = {"email"}
LIST_FIELDS = {"customerName", "email", "phone", "status", "datumInteresse", "date"}
EMAIL_FIELDS = {
    "customerName", "email", "phone", "date", "datumInteresse",
    "city", "status", "budget", "postalCode", "houseNumber",
}
LIST_COLUMN_LIMIT = 7


def sanitize_key(header: str) -> str:
    """'Datum interesse klant' -> 'datum_interesse_klant'"""
    return re.sub(r"[^a-z0-9]+", "_", header.lower()).strip("_")


def match_known_field(header: str) -> Tuple[Optional[str], int]:
    """Best known field for a header and the match confidence (0 when none)."""
    normalized = header.lower().strip()
    best_key, best_confidence = None, 0

    for field_key, patterns in KNOWN_PATTERNS.items():
        for pattern in patterns:
            if normalized == pattern:
                return field_key, EXACT_MATCH
            if normalized.startswith(pattern) and best_confidence < PREFIX_MATCH:
                best_key, best_confidence = field_key, PREFIX_MATCH
            elif pattern in normalized and best_confidence < SUBSTRING_MATCH:
                best_key, best_confidence = field_key, SUBSTRING_MATCH

    return best_key, best_confidence


def detect_field_type(header: str) -> FieldType:
    for field_type, patterns in TYPE_PATTERNS:
        if any(p.search(header) for p in patterns):
            return field_type
    return FieldType.TEXT


def suggestion_for(field_key: Optional[str], field_type: FieldType, confidence: int) -> str:
    if field_key is None:
        return f"New custom field ({field_type.value})"
    if confidence == EXACT_MATCH:
        return f"Exact match: {field_key}"
    if confidence >= PREFIX_MATCH:
        return f"Likely: {field_key}"
    return f"Possible: {field_key}"


def detect_column_mappings(headers: List[str]) -> List[DetectedMapping]:
    """
    Suggest one mapping per header, in column order.

    Headers that match no known field get a key derived from the header
    text and zero confidence. Suggestions are a starting point for an
    administrator; nothing is saved here.
    """
    detected = []
    for index, header in enumerate(headers):
        known_key, confidence = match_known_field(header)
        field_type = detect_field_type(header)
        field_key = known_key or sanitize_key(header) or f"column_{index_to_column_letter(index).lower()}"

        detected.append(DetectedMapping(
            column_index=index,
            column_letter=index_to_column_letter(index),
            header_name=header,
            field_key=field_key,
            field_label=header.strip() or field_key,
            field_type=field_type,
            confidence=confidence,
            suggestion=suggestion_for(known_key, field_type, confidence),
            is_required=field_key in REQUIRED_FIELDS,
            is_unique=field_key in UNIQUE_FIELDS,
            show_in_list=index < LIST_COLUMN_LIMIT or field_key in LIST_FIELDS,
            include_in_email=field_key in EMAIL_FIELDS,
            email_priority=EMAIL_PRIORITIES.get(field_key, DEFAULT_EMAIL_PRIORITY),
        ))
    return detected
