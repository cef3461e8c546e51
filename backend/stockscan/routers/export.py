from datetime import date

from fastapi import APIRouter, Depends
from fastapi.responses import Response

from stockscan.core.session import get_scan_session
from stockscan.services.scan_session import ScanSession

router = APIRouter(prefix="/api/export", tags=["export"])


def _file_response(content: bytes, media_type: str, filename: str):
    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


def _export_filename(prefix: str, *parts: str) -> str:
    name_parts = [prefix, *(p.replace(" ", "_") for p in parts if p)]
    name_parts.append(date.today().strftime("%Y%m%d"))
    return f"{'_'.join(name_parts)}.csv"


@router.get("/stock-count")
async def export_stock_count(scan_session: ScanSession = Depends(get_scan_session)):
    """ERP stock-count import file for the current session."""
    config = scan_session.config
    return _file_response(
        scan_session.export_stock_count(), "text/csv; charset=utf-8",
        _export_filename("stock_count", config.movement_code),
    )


@router.get("/receipt")
async def export_receipt(scan_session: ScanSession = Depends(get_scan_session)):
    config = scan_session.config
    return _file_response(
        scan_session.export_receipt(), "text/csv",
        _export_filename("stock_receipt", config.storage_site, config.supplier),
    )


@router.get("/comparison")
async def export_comparison(scan_session: ScanSession = Depends(get_scan_session)):
    return _file_response(
        scan_session.export_comparison(), "text/csv",
        _export_filename("stock_comparison", scan_session.config.movement_code),
    )
