from fastapi import APIRouter, Depends

from stockscan.core.config import settings
from stockscan.core.session import get_scan_session
from stockscan.schemas.schemas import DecodeResult, ScanRecordOut, ScanRequest, ScanResult
from stockscan.services.catalog_lookup import suggest_refs
from stockscan.services.scan_session import ScanSession

router = APIRouter(prefix="/api/scan", tags=["scan"])


@router.post("", response_model=ScanResult)
async def scan_barcode(
    body: ScanRequest,
    scan_session: ScanSession = Depends(get_scan_session),
):
    """
    Core workflow: decode the scanned string, resolve its REF and fold it into
    the ledger. The outcome and signals tell the UI which cue to play.
    """
    result = scan_session.handle_scan(body.barcode)
    return ScanResult(
        outcome=result.outcome,
        signals=result.signals,
        record=ScanRecordOut.model_validate(result.record),
    )


@router.post("/decode", response_model=DecodeResult)
async def decode_barcode(
    body: ScanRequest,
    scan_session: ScanSession = Depends(get_scan_session),
):
    """Decode without recording. Unmapped GTINs get catalog REF suggestions."""
    scan = scan_session.decode(body.barcode)

    suggestions = []
    if scan.gtin and not scan.ref and settings.CATALOG_LOOKUP_ENABLED:
        suggestions = await suggest_refs(scan.gtin)

    return DecodeResult(
        barcode_format=scan.barcode_format.value,
        gtin=scan.gtin,
        ref=scan.ref,
        batch_lot=scan.batch_lot,
        expiration_date=scan.expiration_date,
        serial_number=scan.serial_number,
        quantity=scan.quantity,
        extras=scan.extras,
        ref_suggestions=suggestions,
    )
