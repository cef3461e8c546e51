"""
GS1 Application Identifier parser for stock-count barcodes.

Tokenizes the AI-delimited text emitted by GS1-128 / DataMatrix scanners into
an ordered list of decoded elements, normalizing scanner quirks (symbology
identifiers, textual GS placeholders, parenthesized AIs) first.
"""

import calendar
import enum
import re
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, InvalidOperation

from stockscan.services.barcode_errors import GS1ParseError

# GS separator character (ASCII 29) used to delimit variable-length AIs
GS = "\x1d"

# "-" as it arrives from keyboard-wedge scanners on some non-US layouts
MISENCODED_HYPHEN = "ยง"


class AIType(str, enum.Enum):
    NUMERIC = "numeric"
    ALPHANUMERIC = "alphanumeric"
    DATE = "date"
    DECIMAL = "decimal"


@dataclass(frozen=True)
class AIDescriptor:
    code: str
    title: str
    length: int | None  # None = variable-length, terminated by GS or end-of-string
    type: AIType = AIType.ALPHANUMERIC
    unit: str | None = None
    decimals: int = 0
    field: str | None = None  # NormalizedScan attribute this AI feeds, if any


@dataclass(frozen=True)
class DecodedElement:
    ai: str
    raw_value: str
    typed_value: str | int | Decimal | date | None
    known: bool = True


_N, _X, _D = AIType.NUMERIC, AIType.ALPHANUMERIC, AIType.DATE

_DESCRIPTORS = [
    # Identification
    AIDescriptor("00", "SSCC", 18, _N),
    AIDescriptor("01", "GTIN", 14, _N, field="gtin"),
    AIDescriptor("02", "GTIN of contained items", 14, _N),
    # Lot, serial, variant
    AIDescriptor("10", "Batch/Lot number", None, _X, field="batch_lot"),
    AIDescriptor("20", "Internal product variant", 2, _N),
    AIDescriptor("21", "Serial number", None, _X, field="serial_number"),
    AIDescriptor("22", "Consumer product variant", None, _X),
    # Dates (all YYMMDD)
    AIDescriptor("11", "Production date", 6, _D),
    AIDescriptor("12", "Due date", 6, _D),
    AIDescriptor("13", "Packaging date", 6, _D),
    AIDescriptor("15", "Best before date", 6, _D),
    AIDescriptor("16", "Sell by date", 6, _D),
    AIDescriptor("17", "Expiration date", 6, _D, field="expiration_date"),
    # Quantity / counts
    AIDescriptor("30", "Variable count of items", None, _N, unit="EA", field="quantity"),
    AIDescriptor("37", "Count of trade items", None, _N, unit="EA"),
    # Additional identification
    AIDescriptor("240", "Additional product ID", None, _X),
    AIDescriptor("241", "Customer part number", None, _X),
    AIDescriptor("242", "Made-to-order variation", None, _N),
    AIDescriptor("250", "Secondary serial number", None, _X),
    AIDescriptor("251", "Reference to source entity", None, _X),
    AIDescriptor("400", "Customer purchase order number", None, _X),
    AIDescriptor("410", "Ship to GLN", 13, _N),
    AIDescriptor("414", "Physical location GLN", 13, _N),
    AIDescriptor("422", "Country of origin", 3, _N),
    # Healthcare reimbursement numbers
    AIDescriptor("710", "NHRN Germany (PZN)", None, _X),
    AIDescriptor("711", "NHRN France (CIP)", None, _X),
    AIDescriptor("712", "NHRN Spain", None, _X),
    AIDescriptor("713", "NHRN Brazil (ANVISA)", None, _X),
    AIDescriptor("714", "NHRN Portugal (AIM)", None, _X),
    AIDescriptor("7003", "Expiration date and time", 10, _N),
    # Mutually agreed / company internal
    AIDescriptor("90", "Mutually agreed info", None, _X),
    *[AIDescriptor(f"9{n}", f"Company internal info {n}", None, _X) for n in range(1, 10)],
    # Trade measures: last AI digit is the implied decimal position
    *[
        AIDescriptor(f"310{n}", "Net weight", 6, AIType.DECIMAL, unit="kg", decimals=n)
        for n in range(6)
    ],
    *[
        AIDescriptor(f"311{n}", "Length", 6, AIType.DECIMAL, unit="m", decimals=n)
        for n in range(6)
    ],
]

GS1_AI_TABLE: dict[str, AIDescriptor] = {d.code: d for d in _DESCRIPTORS}

# Longest first so "240" is never read as "24" + "0..."
_SORTED_CODES = sorted(GS1_AI_TABLE, key=len, reverse=True)

# Symbology identifier prefixes that scanners prepend (ISO/IEC 15424)
_SYMBOLOGY_PREFIX = re.compile(r"^\][A-Za-z]\d")

# Format indicators some scanners send without the leading "]"
_BARE_SYMBOLOGY_PREFIX = re.compile(r"^(?:C1|d2)")

# Common GS placeholder patterns that some scanners emit instead of ASCII 29
_GS_PLACEHOLDERS = re.compile(r"\{GS}|<GS>|\u241d", re.IGNORECASE)

_TWO_DIGITS = re.compile(r"^[0-9]{2}$")

# str.isdigit() also accepts non-ASCII digits such as "²", which int() rejects
_ASCII_DIGITS = re.compile(r"[0-9]+")

# "(17)" style AI markers; other parentheses are payload
_PARENTHESIZED_AI = re.compile(r"\(([0-9]{2,4})\)")


def century_year(yy: int) -> int:
    """Expand a two-digit year: 00-49 -> 2000-2049, 50-99 -> 1950-1999."""
    return 2000 + yy if yy < 50 else 1900 + yy


def normalize_barcode(raw: str) -> str:
    """Normalize raw scanner output into a bare AI stream.

    - Strips leading/trailing whitespace, CR, LF
    - Removes symbology identifier prefixes (]C1, ]d2, ]e0, or bare C1/d2)
    - Maps the mis-encoded hyphen back to "-"
    - Replaces textual GS placeholders with ASCII 29
    - Drops the parentheses of human-readable AIs such as "(17)"; one after
      the first position also ends the preceding field. Parentheses inside
      a value ("10LOT(A)") are kept.
    """
    s = raw.strip()
    if _SYMBOLOGY_PREFIX.match(s):
        s = s[3:]
    else:
        s = _BARE_SYMBOLOGY_PREFIX.sub("", s)
    s = s.replace(MISENCODED_HYPHEN, "-")
    s = _GS_PLACEHOLDERS.sub(GS, s)
    return _PARENTHESIZED_AI.sub(
        lambda m: m.group(1) if m.start() == 0 else GS + m.group(1), s
    )


def parse_yymmdd(value: str) -> date | None:
    """Convert a GS1 YYMMDD string to a date.

    DD=00 means the last day of the month. Returns None for anything that is
    not a real calendar date.
    """
    if len(value) != 6 or not _ASCII_DIGITS.fullmatch(value):
        return None

    year = century_year(int(value[0:2]))
    mm = int(value[2:4])
    dd = int(value[4:6])

    if mm < 1 or mm > 12:
        return None

    if dd == 0:
        dd = calendar.monthrange(year, mm)[1]

    try:
        return date(year, mm, dd)
    except ValueError:
        return None


def convert_value(descriptor: AIDescriptor, value: str) -> str | int | Decimal | date | None:
    """Typed value for a raw AI payload, per the descriptor's data type."""
    if descriptor.type is AIType.DATE:
        return parse_yymmdd(value)
    if descriptor.type is AIType.NUMERIC:
        return int(value) if _ASCII_DIGITS.fullmatch(value) else None
    if descriptor.type is AIType.DECIMAL:
        if not _ASCII_DIGITS.fullmatch(value):
            return None
        try:
            return Decimal(value).scaleb(-descriptor.decimals)
        except InvalidOperation:
            return None
    return value


def _match_descriptor(s: str, pos: int) -> AIDescriptor | None:
    for code in _SORTED_CODES:
        if s.startswith(code, pos):
            return GS1_AI_TABLE[code]
    return None


def _read_variable(s: str, start: int) -> tuple[str, int]:
    gs_pos = s.find(GS, start)
    if gs_pos == -1:
        return s[start:], len(s)
    return s[start:gs_pos], gs_pos + 1


def _read_element(s: str, pos: int) -> tuple[DecodedElement | None, int]:
    """Read one AI + value at ``pos``; returns the element and the next position.

    Returns (None, pos) when nothing decodable starts at ``pos``.
    """
    descriptor = _match_descriptor(s, pos)

    if descriptor is None:
        code = s[pos:pos + 2]
        if not _TWO_DIGITS.match(code):
            return None, pos
        # Unknown AI: keep it as a variable-length field rather than abort
        value, end = _read_variable(s, pos + 2)
        return DecodedElement(ai=code, raw_value=value, typed_value=value, known=False), end

    start = pos + len(descriptor.code)
    if descriptor.length is not None:
        end = start + descriptor.length
        if end > len(s):
            return None, pos
        value = s[start:end]
    else:
        value, end = _read_variable(s, start)

    return DecodedElement(
        ai=descriptor.code,
        raw_value=value,
        typed_value=convert_value(descriptor, value),
    ), end


def decode_gs1(raw: str) -> list[DecodedElement]:
    """Decode a GS1 AI string into elements, in order of occurrence.

    Raises GS1ParseError when no AI from the table could be read. Data that
    cannot be tokenized after at least one valid AI is dropped and the
    elements decoded so far are returned.
    """
    s = normalize_barcode(raw)
    elements: list[DecodedElement] = []
    pos = 0

    while pos < len(s):
        # Skip GS separators (also found between fixed-length AIs)
        if s[pos] == GS:
            pos += 1
            continue

        element, pos = _read_element(s, pos)
        if element is None:
            break
        elements.append(element)

    if not any(e.known for e in elements):
        raise GS1ParseError("No valid GS1 elements found")
    return elements


def extract_fields(elements: list[DecodedElement]) -> dict:
    """Map decoded elements onto the normalized scan fields.

    Returns a dict with gtin, batch_lot, expiration_date (ISO string),
    serial_number, quantity and extras (every other AI keyed "ai<code>").
    A repeated AI overwrites the earlier value.
    """
    fields: dict = {
        "gtin": None,
        "batch_lot": None,
        "expiration_date": None,
        "serial_number": None,
        "quantity": None,
        "extras": {},
    }
    for element in elements:
        descriptor = GS1_AI_TABLE.get(element.ai) if element.known else None
        if descriptor is None or descriptor.field is None:
            fields["extras"][f"ai{element.ai}"] = element.raw_value
            continue

        if descriptor.field == "expiration_date":
            typed = element.typed_value
            fields["expiration_date"] = typed.isoformat() if isinstance(typed, date) else None
        elif descriptor.field == "quantity":
            fields["quantity"] = element.typed_value
        else:
            fields[descriptor.field] = element.raw_value

    return fields
