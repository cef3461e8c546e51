"""
HIBC (Health Industry Bar Code) decoder.

Handles the primary (Line1: labeler + product + UOM + check), secondary
(Line2: date / lot / serial / quantity + link + check) and concatenated
("+Line1/Line2") forms. Failures are returned as HIBCDecodeError values, not
raised, so the dispatcher can inspect them and fall back to another decoder.

    +A99912341/$$525001LOT12X    concatenated, $$ lot with embedded YYDDD date
    +A99912341B                  Line1 only
    +$$00725LOT12AQ              Line2 only, MMYY date (link "A", check "Q")
"""

import enum
import string
from dataclasses import dataclass, replace
from datetime import datetime, timedelta

from stockscan.services.gs1_parser import century_year

_DIGITS = "0123456789"
_LETTERS = set(string.ascii_letters)


class HIBCErrorKind(enum.IntEnum):
    BARCODE_NOT_A_STRING = 1
    EMPTY_BARCODE = 2
    BARCODE_NOT_HIBC = 3
    INVALID_BARCODE = 4
    INVALID_DATE = 5
    EMPTY_CHECK_CHARACTER = 6
    EMPTY_LINK_CHARACTER = 7
    INVALID_QUANTITY = 8
    INVALID_LINE1 = 9


_ERROR_MESSAGES = {
    HIBCErrorKind.BARCODE_NOT_A_STRING: "Barcode is not a string",
    HIBCErrorKind.EMPTY_BARCODE: "Barcode is empty",
    HIBCErrorKind.BARCODE_NOT_HIBC: "Not a HIBC barcode (missing leading '+')",
    HIBCErrorKind.INVALID_BARCODE: "Invalid HIBC barcode structure",
    HIBCErrorKind.INVALID_DATE: "Invalid HIBC date",
    HIBCErrorKind.EMPTY_CHECK_CHARACTER: "HIBC check character is missing",
    HIBCErrorKind.EMPTY_LINK_CHARACTER: "HIBC link character is missing",
    HIBCErrorKind.INVALID_QUANTITY: "Invalid HIBC quantity",
    HIBCErrorKind.INVALID_LINE1: "Invalid HIBC primary data (Line 1)",
}


class HIBCType(enum.IntEnum):
    CONCATENATED = 1
    LINE1 = 2
    LINE2 = 3


@dataclass(frozen=True)
class HIBCDecodeError:
    kind: HIBCErrorKind
    barcode: object = None

    @property
    def message(self) -> str:
        return _ERROR_MESSAGES[self.kind]


@dataclass(frozen=True)
class DecodedHIBC:
    barcode: str
    type: HIBCType
    labeler_id: str | None = None
    product: str | None = None
    uom: int | None = None
    check: str | None = None
    link: str | None = None
    date: datetime | None = None
    lot: str | None = None
    serial: str | None = None
    quantity: int | None = None


def _is_digits(value: str) -> bool:
    return bool(value) and all(c in _DIGITS for c in value)


class _Failed(Exception):
    """Internal short-circuit; converted to an HIBCDecodeError by decode_hibc."""

    def __init__(self, kind: HIBCErrorKind):
        super().__init__(kind)
        self.kind = kind


def decode_hibc(barcode: object) -> DecodedHIBC | HIBCDecodeError:
    """Decode an HIBC barcode string.

    Returns a DecodedHIBC on success or an HIBCDecodeError describing the
    structural defect.
    """
    if not isinstance(barcode, str):
        return HIBCDecodeError(HIBCErrorKind.BARCODE_NOT_A_STRING, barcode)

    s = barcode.strip()

    # Optional "*" framing (Code 39 start/stop characters)
    if s.startswith("*"):
        s = s[1:]
        if not s:
            return HIBCDecodeError(HIBCErrorKind.EMPTY_BARCODE, barcode)
    if s.endswith("*"):
        s = s[:-1]
        if not s:
            return HIBCDecodeError(HIBCErrorKind.EMPTY_BARCODE, barcode)
    if not s:
        return HIBCDecodeError(HIBCErrorKind.EMPTY_BARCODE, barcode)

    if not s.startswith("+"):
        return HIBCDecodeError(HIBCErrorKind.BARCODE_NOT_HIBC, barcode)
    s = s[1:]

    if len(s) < 4:
        return HIBCDecodeError(HIBCErrorKind.INVALID_BARCODE, barcode)

    # Check and link characters may themselves be "/", so keep them out of the split
    tail = s[-2:]
    segments = s[:-2].split("/")

    try:
        if len(segments) == 1:
            if segments[0][:1] in _LETTERS:
                return _decode_line1(barcode, HIBCType.LINE1, segments[0] + tail)
            return _decode_line2(barcode, HIBCType.LINE2, segments[0] + tail)
        if len(segments) == 2:
            line1 = _decode_line1(barcode, HIBCType.CONCATENATED, segments[0])
            line2 = _decode_line2(barcode, HIBCType.CONCATENATED, segments[1] + tail)
            return replace(
                line2,
                labeler_id=line1.labeler_id,
                product=line1.product,
                uom=line1.uom,
            )
    except _Failed as exc:
        return HIBCDecodeError(exc.kind, barcode)

    return HIBCDecodeError(HIBCErrorKind.INVALID_BARCODE, barcode)


def _decode_line1(barcode: str, hibc_type: HIBCType, data: str) -> DecodedHIBC:
    """Labeler ID (4) + product + UOM digit (+ check char unless concatenated)."""
    if len(data) < 4:
        raise _Failed(HIBCErrorKind.INVALID_LINE1)

    labeler_id, rest = data[:4], data[4:]
    if not rest:
        raise _Failed(HIBCErrorKind.INVALID_LINE1)

    check = None
    # In the concatenated form the check character ends Line2 instead
    if hibc_type is not HIBCType.CONCATENATED:
        check, rest = rest[-1], rest[:-1]
        if not rest:
            raise _Failed(HIBCErrorKind.INVALID_LINE1)

    uom_char, product = rest[-1], rest[:-1]
    if not product:
        raise _Failed(HIBCErrorKind.INVALID_LINE1)

    return DecodedHIBC(
        barcode=barcode,
        type=hibc_type,
        labeler_id=labeler_id,
        product=product,
        uom=int(uom_char) if uom_char in _DIGITS else None,
        check=check,
    )


def _decode_line2(barcode: str, hibc_type: HIBCType, data: str) -> DecodedHIBC:
    """Dispatch on the Line2 lead-in: YYDDD, $, $+, $$, $$+."""
    if data[:1] and data[0] in _DIGITS:
        if len(data) < 5:
            raise _Failed(HIBCErrorKind.INVALID_DATE)
        expiry = _julian(data[0:2], data[2:5])
        fields = _lot_serial_check_link(data[5:], hibc_type, "lot")
        return DecodedHIBC(barcode=barcode, type=hibc_type, date=expiry, **fields)

    if len(data) > 2 and data[0] == "$" and data[1] in _DIGITS:
        fields = _lot_serial_check_link(data[1:], hibc_type, "lot")
        return DecodedHIBC(barcode=barcode, type=hibc_type, **fields)

    if len(data) > 3 and data.startswith("$+") and data[2] in _DIGITS:
        fields = _lot_serial_check_link(data[2:], hibc_type, "serial")
        return DecodedHIBC(barcode=barcode, type=hibc_type, **fields)

    if len(data) > 3 and data.startswith("$$") and data[2] in _DIGITS:
        fields = _lot_serial_check_link(data[2:], hibc_type, "lot")
        fields["lot"], expiry = _split_embedded_date(fields["lot"])
        return DecodedHIBC(barcode=barcode, type=hibc_type, date=expiry, **fields)

    if len(data) > 3 and data.startswith("$$+"):
        fields = _lot_serial_check_link(data[3:], hibc_type, "serial")
        fields["serial"], expiry = _split_embedded_date(fields["serial"])
        return DecodedHIBC(barcode=barcode, type=hibc_type, date=expiry, **fields)

    raise _Failed(HIBCErrorKind.INVALID_BARCODE)


def _lot_serial_check_link(data: str, hibc_type: HIBCType, target: str) -> dict:
    """Split [quantity] + lot/serial + [link] + check from the end of Line2."""
    if not data:
        raise _Failed(HIBCErrorKind.EMPTY_CHECK_CHARACTER)

    quantity, data = _extract_quantity(data)
    if not data:
        raise _Failed(HIBCErrorKind.EMPTY_CHECK_CHARACTER)

    check, data = data[-1], data[:-1]
    fields: dict = {"quantity": quantity, "check": check}

    if hibc_type is HIBCType.LINE2:
        if not data:
            raise _Failed(HIBCErrorKind.EMPTY_LINK_CHARACTER)
        fields["link"], data = data[-1], data[:-1]

    fields[target] = data
    return fields


def _extract_quantity(data: str) -> tuple[int | None, str]:
    """Leading "8" = 2-digit quantity, "9" = 5-digit quantity, else none."""
    width = {"8": 2, "9": 5}.get(data[0])
    if width is None:
        return None, data

    digits, rest = data[1:1 + width], data[1 + width:]
    if len(digits) < width or not _is_digits(digits):
        raise _Failed(HIBCErrorKind.INVALID_QUANTITY)
    return int(digits), rest


def _split_embedded_date(value: str) -> tuple[str, datetime | None]:
    """Strip a leading date-format code + date from a $$ lot/serial.

    Format codes: 0/1 MMYY, 2 MMDDYY, 3 YYMMDD, 4 YYMMDDHH, 5 YYDDD,
    6 YYDDDHH, 7 no date. Any other digit leaves the value untouched.
    """
    if not value:
        return value, None

    code, rest = value[0], value[1:]
    if code not in _DIGITS:
        raise _Failed(HIBCErrorKind.INVALID_DATE)

    if code == "7":
        return rest, None

    width = {"0": 4, "1": 4, "2": 6, "3": 6, "4": 8, "5": 5, "6": 7}.get(code)
    if width is None:
        return value, None
    if len(rest) < width:
        raise _Failed(HIBCErrorKind.INVALID_DATE)

    text, remainder = rest[:width], rest[width:]
    if not _is_digits(text):
        raise _Failed(HIBCErrorKind.INVALID_DATE)

    if code in ("0", "1"):
        expiry = _calendar(text[2:4], text[0:2], "01")
    elif code == "2":
        expiry = _calendar(text[4:6], text[0:2], text[2:4])
    elif code == "3":
        expiry = _calendar(text[0:2], text[2:4], text[4:6])
    elif code == "4":
        expiry = _calendar(text[0:2], text[2:4], text[4:6], text[6:8])
    elif code == "5":
        expiry = _julian(text[0:2], text[2:5])
    else:
        expiry = _julian(text[0:2], text[2:5], text[5:7])

    return remainder, expiry


def _calendar(yy: str, mm: str, dd: str, hh: str = "00") -> datetime:
    try:
        return datetime(century_year(int(yy)), int(mm), int(dd), int(hh))
    except ValueError:
        raise _Failed(HIBCErrorKind.INVALID_DATE)


def _julian(yy: str, ddd: str, hh: str = "00") -> datetime:
    """Year + day-of-year (001 = 1 January), optional hour."""
    if not _is_digits(yy + ddd + hh):
        raise _Failed(HIBCErrorKind.INVALID_DATE)
    hour = int(hh)
    if hour > 23:
        raise _Failed(HIBCErrorKind.INVALID_DATE)
    start = datetime(century_year(int(yy)), 1, 1, hour)
    return start + timedelta(days=int(ddd) - 1)


def is_hibc_match(line1: DecodedHIBC | HIBCDecodeError, line2: DecodedHIBC | HIBCDecodeError) -> bool:
    """True when a separately scanned Line1 and Line2 belong to the same label."""
    if not isinstance(line1, DecodedHIBC) or not isinstance(line2, DecodedHIBC):
        return False
    if line1.type is not HIBCType.LINE1 or line2.type is not HIBCType.LINE2:
        return False
    return line1.check == line2.link


def expiration_iso(decoded: DecodedHIBC) -> str | None:
    """Date part of the decoded expiry as YYYY-MM-DD."""
    if decoded.date is None:
        return None
    return decoded.date.date().isoformat()
