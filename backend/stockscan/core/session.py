from collections.abc import Callable

from fastapi import Request
from sqlalchemy.orm import Session

from stockscan.core.config import settings
from stockscan.services.blob_store import BlobStore
from stockscan.services.mapping_store import GtinRefStore
from stockscan.services.reconciliation import SessionConfig
from stockscan.services.scan_session import ScanSession


def default_session_config() -> SessionConfig:
    return SessionConfig(
        location=settings.DEFAULT_LOCATION,
        storage_site=settings.DEFAULT_STORAGE_SITE,
        movement_code=settings.DEFAULT_MOVEMENT_CODE,
        quarantine_location=settings.QUARANTINE_LOCATION,
        expiry_threshold_months=settings.EXPIRY_THRESHOLD_MONTHS,
    )


def build_scan_session(session_factory: Callable[[], Session]) -> ScanSession:
    """Wire the process-wide scan session and load its persisted state."""
    blob_store = BlobStore(session_factory)
    mapping_store = GtinRefStore(blob_store, settings.MAPPING_BLOB_KEY)
    mapping_store.load()

    scan_session = ScanSession(
        config=default_session_config(),
        mapping_store=mapping_store,
        blob_store=blob_store,
        erp_snapshot_key=settings.ERP_SNAPSHOT_BLOB_KEY,
    )
    scan_session.restore_erp_snapshot()
    return scan_session


def get_scan_session(request: Request) -> ScanSession:
    return request.app.state.scan_session
