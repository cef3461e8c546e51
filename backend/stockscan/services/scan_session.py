"""
The live scan session: ledger, setup, ERP snapshot and GTIN->REF mappings.

One session per process. Every method runs to completion without awaiting,
and the routers call them from ``async def`` endpoints, so mutations are
serialized on the event loop.
"""

import logging
from collections.abc import Callable
from dataclasses import replace
from datetime import datetime, timezone

from fastapi import HTTPException

from stockscan.services import csv_renderer
from stockscan.services.barcode_errors import BarcodeParseError
from stockscan.services.barcode_parser import BarcodeFormat, NormalizedScan, parse_barcode
from stockscan.services.blob_store import BlobStore
from stockscan.services.erp_snapshot import (
    ErpStockRow,
    StockComparison,
    compare_stock,
    parse_erp_snapshot,
    reference_set,
)
from stockscan.services.mapping_store import GtinRefStore
from stockscan.services.reconciliation import (
    ReconcileResult,
    ScanRecord,
    SessionConfig,
    merge_zero_counts,
    reconcile,
)

logger = logging.getLogger(__name__)

# ScanRecord fields an operator may correct by hand
EDITABLE_FIELDS = {
    "gtin", "ref", "batch_lot", "expiration_date", "serial_number",
    "quantity", "location", "storage_site", "movement_code", "supplier",
}

# Plain str on ScanRecord; may be emptied but never set to null
REQUIRED_TEXT_FIELDS = {"storage_site", "movement_code", "supplier"}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ScanSession:
    def __init__(
        self,
        config: SessionConfig,
        mapping_store: GtinRefStore,
        blob_store: BlobStore,
        erp_snapshot_key: str,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.config = config
        self.mapping_store = mapping_store
        self.ledger: list[ScanRecord] = []
        self.erp_rows: list[ErpStockRow] = []
        self._blob_store = blob_store
        self._erp_snapshot_key = erp_snapshot_key
        self._clock = clock
        self._last_scanned_id: str | None = None

    # ── Setup ─────────────────────────────────────────────────────────────

    def configure(self, config: SessionConfig) -> SessionConfig:
        """Replace the session setup. The ledger is kept."""
        self.config = config
        logger.info(
            "Session configured: location=%s site=%s stock_count=%s",
            config.location, config.storage_site, config.stock_count,
        )
        return config

    # ── ERP snapshot ──────────────────────────────────────────────────────

    def restore_erp_snapshot(self) -> int:
        """Reload the last uploaded snapshot from the blob store (startup)."""
        text = self._blob_store.get(self._erp_snapshot_key)
        self.erp_rows = parse_erp_snapshot(text) if text else []
        return len(self.erp_rows)

    def load_erp_snapshot(self, text: str) -> int:
        rows = parse_erp_snapshot(text)
        if not rows:
            raise HTTPException(status_code=400, detail="No stock lines found in ERP snapshot")
        self._blob_store.put(self._erp_snapshot_key, text)
        self.erp_rows = rows
        logger.info("Loaded ERP snapshot: %d stock lines", len(rows))
        return len(rows)

    def reference_set(self) -> frozenset[str]:
        """ERP REFs used to flag unknown items; empty outside stock-count mode."""
        if not self.config.stock_count:
            return frozenset()
        return reference_set(self.erp_rows)

    # ── Scanning ──────────────────────────────────────────────────────────

    def decode(self, raw: str) -> NormalizedScan:
        """Decode a raw scan and attach the mapped REF, without touching the ledger."""
        barcode = raw.strip()
        if not barcode:
            raise HTTPException(status_code=400, detail="Please enter a barcode")
        try:
            scan = parse_barcode(barcode)
        except BarcodeParseError as exc:
            logger.info("Rejected %s scan %r: %s", exc.barcode_format, barcode, exc)
            raise HTTPException(status_code=422, detail=str(exc))

        scan.ref = self.mapping_store.ref_for_gtin(scan.gtin)
        return scan

    def handle_scan(self, raw: str) -> ReconcileResult:
        scan = self.decode(raw)
        if not scan.gtin:
            raise HTTPException(status_code=400, detail="Invalid barcode: No GTIN found")
        return self._apply(scan)

    def add_manual(
        self,
        gtin: str | None = None,
        ref: str | None = None,
        batch_lot: str | None = None,
        expiration_date: str | None = None,
        serial_number: str | None = None,
    ) -> ReconcileResult:
        """Add an item typed in by the operator; goes through the same rules as a scan."""
        gtin = (gtin or "").strip() or None
        ref = (ref or "").strip() or None
        if not gtin and not ref:
            raise HTTPException(status_code=400, detail="REF or GTIN is required")

        if ref is None:
            ref = self.mapping_store.ref_for_gtin(gtin)

        scan = NormalizedScan(
            barcode_format=BarcodeFormat.UNKNOWN,
            gtin=gtin,
            ref=ref,
            batch_lot=(batch_lot or "").strip() or None,
            expiration_date=expiration_date or None,
            serial_number=serial_number or None,
        )
        return self._apply(scan)

    def _apply(self, scan: NormalizedScan) -> ReconcileResult:
        result = reconcile(scan, self.ledger, self.config, self.reference_set(), self._clock())
        self.ledger = result.ledger
        self._last_scanned_id = result.record.id
        logger.info(
            "Scan %s: ref=%s gtin=%s lot=%s location=%s qty=%d",
            result.outcome.value, result.record.ref, result.record.gtin,
            result.record.batch_lot, result.record.location, result.record.quantity,
        )
        return result

    def last_scanned(self) -> ScanRecord | None:
        if self._last_scanned_id is None:
            return None
        return next((r for r in self.ledger if r.id == self._last_scanned_id), None)

    # ── Ledger maintenance ────────────────────────────────────────────────

    def _index_of(self, record_id: str) -> int:
        for index, record in enumerate(self.ledger):
            if record.id == record_id:
                return index
        raise HTTPException(status_code=404, detail="Scan record not found")

    def get_record(self, record_id: str) -> ScanRecord:
        return self.ledger[self._index_of(record_id)]

    def edit_record(self, record_id: str, changes: dict) -> ScanRecord:
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise HTTPException(status_code=400, detail=f"Fields not editable: {', '.join(sorted(unknown))}")
        if "quantity" in changes and (changes["quantity"] is None or changes["quantity"] < 0):
            raise HTTPException(status_code=400, detail="Quantity must be zero or more")
        if "location" in changes and not changes["location"]:
            raise HTTPException(status_code=400, detail="Location is required")
        cleared = sorted(f for f in REQUIRED_TEXT_FIELDS if f in changes and changes[f] is None)
        if cleared:
            raise HTTPException(status_code=400, detail=f"Fields cannot be null: {', '.join(cleared)}")

        index = self._index_of(record_id)
        ledger = list(self.ledger)
        ledger[index] = replace(ledger[index], **changes)
        self.ledger = ledger
        return ledger[index]

    def delete_record(self, record_id: str) -> None:
        index = self._index_of(record_id)
        self.ledger = self.ledger[:index] + self.ledger[index + 1:]

    def set_is_set(self, record_id: str, is_set: bool) -> ScanRecord:
        """Mark a record as part of a set (kit) or not."""
        index = self._index_of(record_id)
        ledger = list(self.ledger)
        ledger[index] = replace(ledger[index], is_set=is_set)
        self.ledger = ledger
        return ledger[index]

    def clear(self) -> int:
        cleared = len(self.ledger)
        self.ledger = []
        self._last_scanned_id = None
        logger.info("Cleared %d scan records", cleared)
        return cleared

    def add_zero_counts(self, rows: list[ErpStockRow]) -> int:
        """Record the given ERP lots as counted and absent (quantity 0)."""
        self.ledger = merge_zero_counts(self.ledger, rows, self.config, self._clock())
        return len(rows)

    # ── Reports ───────────────────────────────────────────────────────────

    def comparison(self) -> StockComparison:
        return compare_stock(self.ledger, self.erp_rows, self.config.location)

    def export_stock_count(self) -> bytes:
        if not self.ledger:
            raise HTTPException(status_code=400, detail="No scans to export")
        return csv_renderer.render_stock_count_csv(self.ledger, self.config, self.erp_rows)

    def export_receipt(self) -> bytes:
        if not self.ledger:
            raise HTTPException(status_code=400, detail="No scans to export")
        return csv_renderer.render_receipt_csv(self.ledger)

    def export_comparison(self) -> bytes:
        return csv_renderer.render_comparison_csv(self.comparison())
