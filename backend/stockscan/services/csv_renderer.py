"""CSV rendering for ledger exports. Uses Python stdlib csv + io."""

import csv
import io
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from stockscan.services.erp_snapshot import ErpStockRow, StockComparison
    from stockscan.services.reconciliation import ScanRecord, SessionConfig


def _render(headers: list[str] | None, rows: list[list[str]], **fmtparams) -> bytes:
    buf = io.StringIO()
    writer = csv.writer(buf, **fmtparams)
    if headers:
        writer.writerow(headers)
    writer.writerows(rows)
    return buf.getvalue().encode("utf-8")


def _compact_date(value: str | None) -> str:
    return value.replace("-", "") if value else ""


def render_stock_count_csv(
    ledger: list["ScanRecord"],
    config: "SessionConfig",
    erp_rows: list["ErpStockRow"],
) -> bytes:
    """ERP stock-count import file (semicolon separated, CRLF).

    One E (session) and one L (worksheet) header line, an S line per ledger
    record, then an S line with zero stock for every ERP lot of a scanned REF
    that has no ledger record.
    """
    site = config.storage_site
    movement = config.movement_code or "Stock Count"

    lines = [
        ["E", "", movement, "1", site, "", "", "", site, "", "", "", "", "", ""],
        ["L", "", "", "5", site, "", "", "", "", "", "", "", "", "", ""],
    ]

    counted_keys = set()
    for record in ledger:
        location = record.location or config.location
        counted_keys.add((record.ref, record.batch_lot or "", location))
        quantity = str(record.quantity)
        lines.append([
            "S", "", "", "", site, quantity, quantity,
            "2" if record.quantity == 0 else "1",
            record.ref or "", record.batch_lot or "", location,
            "A", "UN", "1", _compact_date(record.expiration_date),
        ])

    scanned_refs = {record.ref for record in ledger if record.ref}
    for row in erp_rows:
        if row.ref not in scanned_refs:
            continue
        if (row.ref, row.lot_number, row.location) in counted_keys:
            continue
        lines.append([
            "S", "", "", "", site, "0", "0", "2",
            row.ref, row.lot_number, row.location,
            "A", "UN", "1", "",
        ])

    return _render(None, lines, delimiter=";", lineterminator="\r\n")


def render_receipt_csv(ledger: list["ScanRecord"]) -> bytes:
    return _render(
        ["Timestamp", "Storage Site", "Supplier", "GTIN", "Ref",
         "Batch/Lot", "Expiration Date", "Quantity"],
        [[
            record.timestamp, record.storage_site, record.supplier,
            record.gtin or "", record.ref or "", record.batch_lot or "",
            record.expiration_date or "", str(record.quantity),
        ] for record in ledger],
    )


def render_comparison_csv(comparison: "StockComparison") -> bytes:
    rows = [[
        item.status.value, item.ref, item.lot_number, item.location,
        str(item.erp_quantity), str(item.scanned_quantity), str(item.difference),
    ] for item in comparison.items]
    rows.append([
        "TOTAL", "", "", "",
        str(sum(item.erp_quantity for item in comparison.items)),
        str(sum(item.scanned_quantity for item in comparison.items)),
        str(sum(item.difference for item in comparison.items)),
    ])
    return _render(
        ["Status", "REF", "Lot/Batch", "Location", "ERP Qty", "Scanned Qty", "Difference"],
        rows,
    )


def render_mapping_csv(mappings: list[dict[str, str]]) -> bytes:
    return _render(
        ["GTIN", "REF"],
        [[m["gtin"], m["ref"]] for m in mappings],
    )
