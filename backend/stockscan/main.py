import json
import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.orm import Session

from stockscan.core.config import settings
from stockscan.core.database import IS_SQLITE, Base, SessionLocal, engine, get_db
from stockscan.core.session import build_scan_session, get_scan_session
from stockscan.routers import erp, export, ledger, mappings, scan, session
from stockscan.services.scan_session import ScanSession

# ── Structured JSON logging ──────────────────────────────────────────────

logger = logging.getLogger("stockscan")


class JSONFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        log = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info and record.exc_info[0]:
            log["exception"] = self.formatException(record.exc_info)
        return json.dumps(log)


def configure_logging() -> None:
    handler = logging.StreamHandler()
    handler.setFormatter(JSONFormatter())
    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(settings.LOG_LEVEL.upper())
    # Reduce noise from third-party libs
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)


configure_logging()


# ── App setup ─────────────────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI):
    if IS_SQLITE:
        # Local single-file deployments skip Alembic
        Base.metadata.create_all(bind=engine)
    app.state.scan_session = build_scan_session(SessionLocal)
    logger.info(
        "Scan session ready: %d mappings, %d ERP stock lines",
        len(app.state.scan_session.mapping_store),
        len(app.state.scan_session.erp_rows),
    )
    yield


app = FastAPI(title="StockScan - Medical Device Stock Count", version="1.0.0", lifespan=lifespan)


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception: %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"detail": "Internal server error"})


app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in settings.CORS_ORIGINS.split(",")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(session.router)
app.include_router(scan.router)
app.include_router(ledger.router)
app.include_router(mappings.router)
app.include_router(erp.router)
app.include_router(export.router)


@app.get("/api/health")
async def health(
    db: Session = Depends(get_db),
    scan_session: ScanSession = Depends(get_scan_session),
):
    checks: dict = {}

    # Database connectivity
    try:
        db.execute(text("SELECT 1"))
        checks["database"] = "ok"
    except Exception:
        logger.warning("Health check: database unreachable", exc_info=True)
        checks["database"] = "error"

    checks["erp_snapshot"] = "loaded" if scan_session.erp_rows else "empty"

    overall = "ok" if checks["database"] == "ok" else "degraded"
    return {"status": overall, "checks": checks, "ledger_size": len(scan_session.ledger)}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.PORT, log_config=None)
