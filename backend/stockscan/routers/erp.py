from fastapi import APIRouter, Depends, File, UploadFile

from stockscan.core.session import get_scan_session
from stockscan.schemas.schemas import CountResult, ErpStockRowOut, StockComparisonOut
from stockscan.services.scan_session import ScanSession

router = APIRouter(prefix="/api/erp", tags=["erp"])


@router.post("/snapshot", response_model=CountResult)
async def upload_snapshot(
    file: UploadFile = File(...),
    scan_session: ScanSession = Depends(get_scan_session),
):
    """Replace the ERP book stock with an uploaded ``S;REF;LOT;LOCATION;QUANTITY`` export."""
    # The whole file is read before the session is touched
    text = (await file.read()).decode("utf-8-sig", errors="replace")
    return CountResult(count=scan_session.load_erp_snapshot(text))


@router.get("/stock", response_model=list[ErpStockRowOut])
async def list_stock(
    ref: str | None = None,
    scan_session: ScanSession = Depends(get_scan_session),
):
    rows = scan_session.erp_rows
    if ref:
        rows = [row for row in rows if row.ref == ref]
    return rows


@router.get("/comparison", response_model=StockComparisonOut)
async def stock_comparison(scan_session: ScanSession = Depends(get_scan_session)):
    return StockComparisonOut.model_validate(scan_session.comparison())
