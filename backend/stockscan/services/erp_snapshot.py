"""
ERP stock snapshot: parsing and scanned-vs-ERP comparison.

The ERP exports its book stock as semicolon-separated lines; only "S" lines
carry stock:

    S;REF;LOT;LOCATION;QUANTITY
"""

import enum
import logging
from dataclasses import dataclass

from stockscan.services.reconciliation import ScanRecord

logger = logging.getLogger(__name__)

STOCK_LINE_MARKER = "S"
STOCK_LINE_FIELDS = 5


@dataclass(frozen=True)
class ErpStockRow:
    ref: str
    lot_number: str
    location: str
    quantity: int


class ComparisonStatus(str, enum.Enum):
    MISSING = "missing"
    PARTIAL = "partial"
    SURPLUS = "surplus"
    MATCH = "match"


_STATUS_ORDER = {
    ComparisonStatus.MISSING: 0,
    ComparisonStatus.PARTIAL: 1,
    ComparisonStatus.SURPLUS: 2,
    ComparisonStatus.MATCH: 3,
}


@dataclass(frozen=True)
class StockComparisonItem:
    status: ComparisonStatus
    ref: str
    lot_number: str
    location: str
    erp_quantity: int
    scanned_quantity: int

    @property
    def difference(self) -> int:
        return self.scanned_quantity - self.erp_quantity


@dataclass(frozen=True)
class StockComparison:
    items: list[StockComparisonItem]

    @property
    def summary(self) -> dict[str, int]:
        counts = {status.value: 0 for status in ComparisonStatus}
        for item in self.items:
            counts[item.status.value] += 1
        counts["total"] = len(self.items)
        return counts


def parse_erp_snapshot(text: str) -> list[ErpStockRow]:
    """Parse the ERP stock export into rows.

    Non-"S" lines (headers, blank lines) are ignored. Malformed "S" lines are
    skipped with a warning rather than failing the whole file.
    """
    rows: list[ErpStockRow] = []
    for line_number, line in enumerate(text.splitlines(), start=1):
        fields = line.strip().split(";")
        if fields[0] != STOCK_LINE_MARKER:
            continue

        if len(fields) != STOCK_LINE_FIELDS:
            logger.warning(
                "ERP line %d skipped: expected %d fields, got %d",
                line_number, STOCK_LINE_FIELDS, len(fields),
            )
            continue

        _, ref, lot_number, location, quantity = (f.strip() for f in fields)
        try:
            qty = int(quantity)
        except ValueError:
            logger.warning("ERP line %d skipped: quantity %r is not an integer", line_number, quantity)
            continue

        rows.append(ErpStockRow(ref=ref, lot_number=lot_number, location=location, quantity=qty))
    return rows


def reference_set(rows: list[ErpStockRow]) -> frozenset[str]:
    """Every REF the ERP knows about."""
    return frozenset(row.ref for row in rows if row.ref)


def _stock_key(ref: str, lot: str | None, location: str) -> tuple[str, str, str]:
    return ref, lot or "", location


def compare_stock(
    ledger: list[ScanRecord],
    rows: list[ErpStockRow],
    default_location: str,
) -> StockComparison:
    """Compare counted quantities with ERP book stock, for scanned REFs only.

    ERP lots of a scanned REF that were never counted come out as "missing";
    counted lots absent from the ERP come out as "surplus".
    """
    scanned: dict[tuple[str, str, str], int] = {}
    for record in ledger:
        if not record.ref:
            continue
        key = _stock_key(record.ref, record.batch_lot, record.location or default_location)
        scanned[key] = scanned.get(key, 0) + record.quantity

    scanned_refs = {key[0] for key in scanned}
    items: list[StockComparisonItem] = []

    for row in rows:
        if row.ref not in scanned_refs:
            continue
        key = _stock_key(row.ref, row.lot_number, row.location)
        counted = scanned.pop(key, 0)

        if counted == 0:
            status = ComparisonStatus.MISSING
        elif counted == row.quantity:
            status = ComparisonStatus.MATCH
        elif counted < row.quantity:
            status = ComparisonStatus.PARTIAL
        else:
            status = ComparisonStatus.SURPLUS

        items.append(StockComparisonItem(
            status=status,
            ref=row.ref,
            lot_number=row.lot_number,
            location=row.location,
            erp_quantity=row.quantity,
            scanned_quantity=counted,
        ))

    for (ref, lot_number, location), counted in scanned.items():
        if counted <= 0:
            continue
        items.append(StockComparisonItem(
            status=ComparisonStatus.SURPLUS,
            ref=ref,
            lot_number=lot_number,
            location=location,
            erp_quantity=0,
            scanned_quantity=counted,
        ))

    items.sort(key=lambda item: (_STATUS_ORDER[item.status], item.ref))
    return StockComparison(items=items)
