from fastapi import APIRouter, Depends, HTTPException

from stockscan.core.session import get_scan_session
from stockscan.schemas.schemas import (
    CountResult,
    ManualScanCreate,
    ScanRecordOut,
    ScanRecordUpdate,
    ScanResult,
    SetFlagUpdate,
    ZeroCountRequest,
)
from stockscan.services.erp_snapshot import ErpStockRow
from stockscan.services.scan_session import ScanSession

router = APIRouter(prefix="/api/ledger", tags=["ledger"])


@router.get("", response_model=list[ScanRecordOut])
async def list_records(scan_session: ScanSession = Depends(get_scan_session)):
    return scan_session.ledger


@router.post("", response_model=ScanResult)
async def add_manual_record(
    body: ManualScanCreate,
    scan_session: ScanSession = Depends(get_scan_session),
):
    result = scan_session.add_manual(**body.model_dump())
    return ScanResult(
        outcome=result.outcome,
        signals=result.signals,
        record=ScanRecordOut.model_validate(result.record),
    )


@router.delete("", response_model=CountResult)
async def clear_records(scan_session: ScanSession = Depends(get_scan_session)):
    return CountResult(count=scan_session.clear())


@router.get("/last", response_model=ScanRecordOut)
async def last_scanned(scan_session: ScanSession = Depends(get_scan_session)):
    record = scan_session.last_scanned()
    if record is None:
        raise HTTPException(status_code=404, detail="Nothing scanned yet")
    return record


@router.post("/zero-count", response_model=CountResult)
async def add_zero_counts(
    body: ZeroCountRequest,
    scan_session: ScanSession = Depends(get_scan_session),
):
    """Record selected ERP lots as counted and absent (quantity 0)."""
    rows = [
        ErpStockRow(ref=row.ref, lot_number=row.lot_number, location=row.location, quantity=0)
        for row in body.rows
    ]
    return CountResult(count=scan_session.add_zero_counts(rows))


@router.put("/{record_id}", response_model=ScanRecordOut)
async def update_record(
    record_id: str,
    body: ScanRecordUpdate,
    scan_session: ScanSession = Depends(get_scan_session),
):
    return scan_session.edit_record(record_id, body.model_dump(exclude_unset=True))


@router.delete("/{record_id}")
async def delete_record(
    record_id: str,
    scan_session: ScanSession = Depends(get_scan_session),
):
    scan_session.delete_record(record_id)
    return {"detail": "Scan record deleted"}


@router.put("/{record_id}/set", response_model=ScanRecordOut)
async def set_record_flag(
    record_id: str,
    body: SetFlagUpdate,
    scan_session: ScanSession = Depends(get_scan_session),
):
    return scan_session.set_is_set(record_id, body.is_set)
