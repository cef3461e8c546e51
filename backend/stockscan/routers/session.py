from dataclasses import asdict

from fastapi import APIRouter, Depends

from stockscan.core.session import get_scan_session
from stockscan.schemas.schemas import SessionSetup
from stockscan.services.reconciliation import SessionConfig
from stockscan.services.scan_session import ScanSession

router = APIRouter(prefix="/api/session", tags=["session"])


@router.get("/setup", response_model=SessionSetup)
async def get_setup(scan_session: ScanSession = Depends(get_scan_session)):
    return SessionSetup(**asdict(scan_session.config))


@router.put("/setup", response_model=SessionSetup)
async def update_setup(
    body: SessionSetup,
    scan_session: ScanSession = Depends(get_scan_session),
):
    config = scan_session.configure(SessionConfig(**body.model_dump()))
    return SessionSetup(**asdict(config))
