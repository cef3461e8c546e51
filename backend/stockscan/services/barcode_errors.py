"""Exceptions raised when a scanned string cannot be decoded."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from stockscan.services.hibc_parser import HIBCDecodeError


class BarcodeParseError(ValueError):
    """Base class for decode failures surfaced to the scanning user."""

    barcode_format = "unknown"


class GS1ParseError(BarcodeParseError):
    barcode_format = "gs1"


class HIBCParseError(BarcodeParseError):
    barcode_format = "hibc"

    def __init__(self, error: HIBCDecodeError):
        super().__init__(error.message)
        self.error = error
