"""
Scan reconciliation: folds one normalized scan into the scan ledger.

Matching key is (REF or GTIN, batch/lot, location). Expired stock is routed
to the quarantine location; quarantine entries absorb every later scan of the
same item. Functions here never mutate their inputs and never read the clock:
callers pass ``now``.
"""

import calendar
import enum
import uuid
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from typing import TYPE_CHECKING

from stockscan.services.barcode_parser import NormalizedScan

if TYPE_CHECKING:
    from stockscan.services.erp_snapshot import ErpStockRow


class ScanOutcome(str, enum.Enum):
    CREATED = "created"
    CREATED_EXPIRED = "created-expired"
    UPDATED = "updated"
    RELOCATED_EXPIRED = "relocated-expired"
    UPDATED_QUARANTINE = "updated-quarantine"


class ScanSignal(str, enum.Enum):
    """Cue for the UI: which sound / notification to play."""
    SUCCESS = "success"
    EXPIRED = "expired"
    MISSING_REF = "missing-ref"
    NOT_IN_ERP = "not-in-erp"


@dataclass(frozen=True)
class SessionConfig:
    location: str
    storage_site: str = ""
    movement_code: str = ""
    supplier: str = ""
    quarantine_location: str = "MMPER"
    expiry_threshold_months: int = 6
    require_ref: bool = False  # new items without a REF get ref="" for manual completion
    stock_count: bool = False


@dataclass(frozen=True)
class ScanRecord:
    timestamp: str
    location: str
    quantity: int
    storage_site: str = ""
    movement_code: str = ""
    supplier: str = ""
    gtin: str | None = None
    ref: str | None = None
    batch_lot: str | None = None
    expiration_date: str | None = None
    serial_number: str | None = None
    not_in_erp: bool = False
    is_set: bool = False
    id: str = field(default_factory=lambda: uuid.uuid4().hex)


@dataclass(frozen=True)
class ReconcileResult:
    ledger: list[ScanRecord]
    outcome: ScanOutcome
    record: ScanRecord
    signals: list[ScanSignal] = field(default_factory=list)


def add_months(day: date, months: int) -> date:
    """Shift by whole months, clamping to the last day of the target month."""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def is_date_expired(expiration_date: str | None, threshold_months: int, now: datetime) -> bool:
    """True if the date falls before today + threshold months.

    With a threshold of 0 only dates strictly before today are expired.
    Missing or unparseable dates are never expired.
    """
    if not expiration_date:
        return False
    try:
        expiry = date.fromisoformat(expiration_date[:10])
    except ValueError:
        return False
    cutoff = add_months(now.date(), max(threshold_months, 0))
    return expiry < cutoff


def _find_match(
    ledger: list[ScanRecord],
    ref: str | None,
    gtin: str | None,
    batch_lot: str | None,
    location: str,
) -> int:
    """Index of the ledger entry for this item at ``location``, or -1.

    REF is the match key when present; otherwise GTIN.
    """
    lot = batch_lot or ""
    for index, record in enumerate(ledger):
        if record.location != location or (record.batch_lot or "") != lot:
            continue
        if ref:
            if record.ref == ref:
                return index
        elif gtin and record.gtin == gtin:
            return index
    return -1


def _apply_reference_gate(
    record: ScanRecord,
    reference_set: frozenset[str] | set[str],
    signals: list[ScanSignal],
) -> ScanRecord:
    if not record.ref or not reference_set:
        return record
    if record.ref in reference_set:
        return replace(record, not_in_erp=False) if record.not_in_erp else record
    signals.append(ScanSignal.NOT_IN_ERP)
    return replace(record, not_in_erp=True)


def reconcile(
    scan: NormalizedScan,
    ledger: list[ScanRecord],
    config: SessionConfig,
    reference_set: frozenset[str] | set[str],
    now: datetime,
) -> ReconcileResult:
    """Apply one scan to the ledger and classify what happened.

    The scan must carry a REF or a GTIN; callers reject anything else before
    reaching this point.
    """
    quarantine = config.quarantine_location
    # Quarantine is a sink: scanning directly into it never triggers relocation
    in_quarantine = config.location == quarantine
    threshold = config.expiry_threshold_months

    is_expired = not in_quarantine and is_date_expired(scan.expiration_date, threshold, now)

    quarantine_index = _find_match(ledger, scan.ref, scan.gtin, scan.batch_lot, quarantine)
    current_index = _find_match(ledger, scan.ref, scan.gtin, scan.batch_lot, config.location)

    updated = list(ledger)
    signals: list[ScanSignal] = []
    timestamp = now.isoformat()

    if quarantine_index >= 0:
        record = updated[quarantine_index]
        record = replace(record, quantity=record.quantity + 1)
        record = _apply_reference_gate(record, reference_set, signals)
        updated[quarantine_index] = record
        signals.insert(0, ScanSignal.EXPIRED)
        return ReconcileResult(updated, ScanOutcome.UPDATED_QUARANTINE, record, signals)

    if current_index >= 0:
        existing = updated[current_index]

        # The existing entry's own expiry decides, not the incoming scan's
        if not in_quarantine and is_date_expired(existing.expiration_date, threshold, now):
            # Zeroed entry stays in the ledger for the zero-count export
            updated[current_index] = replace(existing, quantity=0)

            merge_index = _find_match(updated, existing.ref, existing.gtin, existing.batch_lot, quarantine)
            if merge_index >= 0:
                moved = replace(updated[merge_index], quantity=updated[merge_index].quantity + 1)
                moved = _apply_reference_gate(moved, reference_set, signals)
                updated[merge_index] = moved
            else:
                moved = replace(
                    existing,
                    id=uuid.uuid4().hex,
                    timestamp=timestamp,
                    location=quarantine,
                    quantity=1,
                )
                moved = _apply_reference_gate(moved, reference_set, signals)
                updated.append(moved)

            signals.insert(0, ScanSignal.EXPIRED)
            return ReconcileResult(updated, ScanOutcome.RELOCATED_EXPIRED, moved, signals)

        record = replace(existing, quantity=existing.quantity + 1)
        record = _apply_reference_gate(record, reference_set, signals)
        updated[current_index] = record
        signals.insert(0, ScanSignal.SUCCESS)
        return ReconcileResult(updated, ScanOutcome.UPDATED, record, signals)

    ref = scan.ref
    if config.require_ref and not ref:
        ref = ""

    record = ScanRecord(
        timestamp=timestamp,
        location=quarantine if is_expired else config.location,
        quantity=1,
        storage_site=config.storage_site,
        movement_code=config.movement_code,
        supplier=config.supplier,
        gtin=scan.gtin,
        ref=ref,
        batch_lot=scan.batch_lot,
        expiration_date=scan.expiration_date,
        serial_number=scan.serial_number,
    )
    record = _apply_reference_gate(record, reference_set, signals)
    updated.append(record)

    if is_expired:
        signals.insert(0, ScanSignal.EXPIRED)
        return ReconcileResult(updated, ScanOutcome.CREATED_EXPIRED, record, signals)

    signals.insert(0, ScanSignal.MISSING_REF if ref == "" else ScanSignal.SUCCESS)
    return ReconcileResult(updated, ScanOutcome.CREATED, record, signals)


def merge_zero_counts(
    ledger: list[ScanRecord],
    rows: "list[ErpStockRow]",
    config: SessionConfig,
    now: datetime,
) -> list[ScanRecord]:
    """Add confirmed-absent (quantity 0) records for selected ERP stock rows.

    Each row becomes a record at its own location (the configured location
    when the row has none). Any ledger entry with the same (ref, lot,
    location) as a new record is replaced rather than double-counted.
    """
    timestamp = now.isoformat()
    zero_records = [
        ScanRecord(
            timestamp=timestamp,
            location=row.location or config.location,
            quantity=0,
            storage_site=config.storage_site,
            movement_code=config.movement_code,
            supplier=config.supplier,
            gtin="",
            ref=row.ref,
            batch_lot=row.lot_number,
            expiration_date="",
        )
        for row in rows
    ]
    replaced_keys = {(r.ref, r.batch_lot or "", r.location) for r in zero_records}
    kept = [
        record
        for record in ledger
        if (record.ref, record.batch_lot or "", record.location) not in replaced_keys
    ]
    return kept + zero_records
