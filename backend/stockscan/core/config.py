from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    DATABASE_URL: str = "sqlite:///./stockscan.db"
    DATABASE_URL_MIGRATE: str | None = None  # Alembic uses this if set, falls back to DATABASE_URL

    # CORS
    CORS_ORIGINS: str = "http://localhost:5173"

    # Database pool (ignored for SQLite)
    DB_POOL_SIZE: int = 5
    DB_MAX_OVERFLOW: int = 10
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800

    # Server
    PORT: int = 8000  # python -m stockscan.main
    LOG_LEVEL: str = "INFO"

    # Scan session defaults
    QUARANTINE_LOCATION: str = "MMPER"
    EXPIRY_THRESHOLD_MONTHS: int = 6
    DEFAULT_LOCATION: str = ""
    DEFAULT_STORAGE_SITE: str = ""
    DEFAULT_MOVEMENT_CODE: str = ""

    # Blob store keys
    MAPPING_BLOB_KEY: str = "gtin-ref-mapping.json"
    ERP_SNAPSHOT_BLOB_KEY: str = "erp-stock-count.csv"

    # FDA AccessGUDID REF suggestions on /api/scan/decode
    CATALOG_LOOKUP_ENABLED: bool = True

    class Config:
        env_file = ".env"


settings = Settings()
