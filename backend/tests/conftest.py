"""Shared fixtures.

Uses an in-memory SQLite database for the blob store and a fixed clock so
expiry classification does not depend on the day the suite runs.
"""

from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from stockscan.core.database import Base, get_db
from stockscan.core.session import get_scan_session
from stockscan.main import app
from stockscan.services.blob_store import BlobStore
from stockscan.services.mapping_store import GtinRefStore
from stockscan.services.reconciliation import SessionConfig
from stockscan.services.scan_session import ScanSession

# Fresh expiry is well past now + 6 months; expired is inside the window
FIXED_NOW = datetime(2025, 1, 15, 10, 0, tzinfo=timezone.utc)
GTIN = "04912345678881"
FRESH_BARCODE = f"]C101{GTIN}1726123110LOT1"
EXPIRED_BARCODE = f"]C101{GTIN}1725030110LOT1"


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


# ── SQLite test database ────────────────────────────────────────────────────

@pytest.fixture()
def session_factory():
    """Session factory bound to a fresh in-memory SQLite database."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    try:
        yield TestingSession
    finally:
        Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


# ── Services ────────────────────────────────────────────────────────────────

@pytest.fixture()
def blob_store(session_factory):
    return BlobStore(session_factory)


@pytest.fixture()
def mapping_store(blob_store):
    return GtinRefStore(blob_store, "gtin-ref-mapping.json")


@pytest.fixture()
def clock():
    return FakeClock(FIXED_NOW)


@pytest.fixture()
def session_config():
    return SessionConfig(location="A1", storage_site="SITE1", movement_code="MV01", supplier="ACME")


@pytest.fixture()
def scan_session(session_config, mapping_store, blob_store, clock):
    return ScanSession(
        config=session_config,
        mapping_store=mapping_store,
        blob_store=blob_store,
        erp_snapshot_key="erp-stock-count.csv",
        clock=clock,
    )


@pytest.fixture()
def client(db, scan_session):
    """FastAPI test client with the DB session and scan session overridden."""
    def _override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_scan_session] = lambda: scan_session

    # Not used as a context manager: the lifespan would build the real session
    c = TestClient(app)
    yield c

    app.dependency_overrides.clear()
