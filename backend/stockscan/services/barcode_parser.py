"""
Barcode format detection and dispatch.

Supports:
- GS1 AI strings (via gs1_parser.py)
- HIBC primary/secondary/concatenated (via hibc_parser.py)

Both decoders are mapped onto one NormalizedScan shape for reconciliation.
"""
import enum
import logging
import re
from dataclasses import dataclass, field

from stockscan.services.barcode_errors import BarcodeParseError, GS1ParseError, HIBCParseError
from stockscan.services.gs1_parser import decode_gs1, extract_fields
from stockscan.services.hibc_parser import DecodedHIBC, decode_hibc, expiration_iso

logger = logging.getLogger(__name__)

# Synthetic GTIN prefix so HIBC labeler+product never collides with a real GTIN
HIBC_GTIN_PREFIX = "HIBC:"


class BarcodeFormat(str, enum.Enum):
    GS1 = "gs1"
    HIBC = "hibc"
    UNKNOWN = "unknown"


@dataclass
class NormalizedScan:
    """Decoder-independent scan data consumed by the reconciliation engine."""
    barcode_format: BarcodeFormat = BarcodeFormat.UNKNOWN
    gtin: str | None = None
    ref: str | None = None  # Never in the barcode; filled from the GTIN->REF mapping or by hand
    batch_lot: str | None = None
    expiration_date: str | None = None  # YYYY-MM-DD
    serial_number: str | None = None
    quantity: int | None = None
    extras: dict[str, str] = field(default_factory=dict)


# AI (01) GTIN opener, parenthesized or not
_GS1_GTIN_OPENER = re.compile(r"^\(?01\)?")


def _strip_framing(barcode: str) -> str:
    """Remove one leading and one trailing "*" (Code 39 start/stop)."""
    cleaned = barcode.strip()
    if cleaned.startswith("*"):
        cleaned = cleaned[1:]
    if cleaned.endswith("*"):
        cleaned = cleaned[:-1]
    return cleaned


def detect_barcode_format(barcode: str) -> BarcodeFormat:
    """
    Detect the format of a barcode string.

    Returns:
        HIBC    - starts with "+" (after "*" framing is removed)
        GS1     - symbology identifier ("]..."), bare "C1"/"d2", or an AI 01 opener
        UNKNOWN - anything else
    """
    if not barcode:
        return BarcodeFormat.UNKNOWN

    cleaned = _strip_framing(barcode)

    if cleaned.startswith("+"):
        return BarcodeFormat.HIBC

    if cleaned.startswith(("]", "C1", "d2")):
        return BarcodeFormat.GS1

    if _GS1_GTIN_OPENER.match(cleaned):
        return BarcodeFormat.GS1

    return BarcodeFormat.UNKNOWN


def _parse_gs1(barcode: str) -> NormalizedScan:
    fields = extract_fields(decode_gs1(barcode))
    return NormalizedScan(barcode_format=BarcodeFormat.GS1, **fields)


def _parse_hibc(barcode: str) -> NormalizedScan:
    decoded = decode_hibc(barcode)
    if not isinstance(decoded, DecodedHIBC):
        raise HIBCParseError(decoded)
    return hibc_to_normalized(decoded)


def hibc_to_normalized(decoded: DecodedHIBC) -> NormalizedScan:
    extras = {
        name: str(value)
        for name, value in (
            ("labeler_id", decoded.labeler_id),
            ("product", decoded.product),
            ("uom", decoded.uom),
            ("check", decoded.check),
            ("link", decoded.link),
        )
        if value is not None
    }
    gtin = None
    if decoded.labeler_id and decoded.product:
        gtin = f"{HIBC_GTIN_PREFIX}{decoded.labeler_id}{decoded.product}"

    return NormalizedScan(
        barcode_format=BarcodeFormat.HIBC,
        gtin=gtin,
        batch_lot=decoded.lot,
        expiration_date=expiration_iso(decoded),
        serial_number=decoded.serial,
        quantity=decoded.quantity,
        extras=extras,
    )


def parse_barcode(barcode: str) -> NormalizedScan:
    """Detect the format and decode.

    Raises BarcodeParseError (GS1ParseError / HIBCParseError). For input of
    unknown format GS1 is tried first, then HIBC; if both fail the GS1 error
    is the one raised.
    """
    barcode_format = detect_barcode_format(barcode)

    if barcode_format is BarcodeFormat.GS1:
        return _parse_gs1(barcode)
    if barcode_format is BarcodeFormat.HIBC:
        return _parse_hibc(barcode)

    try:
        return _parse_gs1(barcode)
    except GS1ParseError as gs1_error:
        try:
            return _parse_hibc(barcode)
        except BarcodeParseError:
            logger.debug("Barcode %r matched neither GS1 nor HIBC", barcode)
            raise gs1_error
