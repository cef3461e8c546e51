from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker

from stockscan.core.config import settings

# The default deployment is a single SQLite file beside the app
IS_SQLITE = settings.DATABASE_URL.startswith("sqlite")

_engine_kwargs = {"pool_pre_ping": True}
if IS_SQLITE:
    # Blob writes come from the event loop thread, health checks from the threadpool
    _engine_kwargs["connect_args"] = {"check_same_thread": False}
else:
    _engine_kwargs.update(
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        pool_recycle=settings.DB_POOL_RECYCLE,
    )
engine = create_engine(settings.DATABASE_URL, **_engine_kwargs)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    """Request-scoped session, used by the health check."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
