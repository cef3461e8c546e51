from datetime import date

from pydantic import BaseModel, Field, field_validator

from stockscan.services.erp_snapshot import ComparisonStatus
from stockscan.services.reconciliation import ScanOutcome, ScanSignal


# ── Session setup ──────────────────────────────────────────────────────────


class SessionSetup(BaseModel):
    location: str = Field(min_length=1)
    storage_site: str = ""
    movement_code: str = ""
    supplier: str = ""
    quarantine_location: str = Field(default="MMPER", min_length=1)
    expiry_threshold_months: int = Field(default=6, ge=0)
    require_ref: bool = False
    stock_count: bool = False

    class Config:
        from_attributes = True


# ── Ledger ─────────────────────────────────────────────────────────────────


class ScanRecordOut(BaseModel):
    id: str
    timestamp: str
    location: str
    quantity: int
    storage_site: str
    movement_code: str
    supplier: str
    gtin: str | None
    ref: str | None
    batch_lot: str | None
    expiration_date: str | None
    serial_number: str | None
    not_in_erp: bool
    is_set: bool

    class Config:
        from_attributes = True


class ManualScanCreate(BaseModel):
    gtin: str | None = None
    ref: str | None = None
    batch_lot: str | None = None
    expiration_date: str | None = None
    serial_number: str | None = None

    @field_validator("expiration_date")
    @classmethod
    def check_expiration_date(cls, value: str | None) -> str | None:
        # Stored as YYYY-MM-DD, the format the decoders produce
        if value:
            date.fromisoformat(value)
        return value


class ScanRecordUpdate(BaseModel):
    gtin: str | None = None
    ref: str | None = None
    batch_lot: str | None = None
    expiration_date: str | None = None
    serial_number: str | None = None
    quantity: int | None = Field(default=None, ge=0)
    location: str | None = None
    storage_site: str | None = None
    movement_code: str | None = None
    supplier: str | None = None

    @field_validator("expiration_date")
    @classmethod
    def check_expiration_date(cls, value: str | None) -> str | None:
        if value:
            date.fromisoformat(value)
        return value


class SetFlagUpdate(BaseModel):
    is_set: bool


class ZeroCountRow(BaseModel):
    ref: str = Field(min_length=1)
    lot_number: str
    location: str = ""


class ZeroCountRequest(BaseModel):
    rows: list[ZeroCountRow]


class CountResult(BaseModel):
    count: int


# ── Scan ───────────────────────────────────────────────────────────────────


class ScanRequest(BaseModel):
    barcode: str


class ScanResult(BaseModel):
    outcome: ScanOutcome
    signals: list[ScanSignal]
    record: ScanRecordOut


class RefSuggestion(BaseModel):
    ref: str
    company_name: str
    brand_name: str
    description: str


class DecodeResult(BaseModel):
    barcode_format: str
    gtin: str | None = None
    ref: str | None = None
    batch_lot: str | None = None
    expiration_date: str | None = None
    serial_number: str | None = None
    quantity: int | None = None
    extras: dict[str, str] = {}
    ref_suggestions: list[RefSuggestion] = []


# ── GTIN -> REF mappings ───────────────────────────────────────────────────


class MappingOut(BaseModel):
    gtin: str
    ref: str


class MappingCreate(BaseModel):
    gtin: str = Field(min_length=1)
    ref: str = Field(min_length=1)


class MappingReplace(BaseModel):
    mappings: list[MappingCreate]


# ── ERP ────────────────────────────────────────────────────────────────────


class ErpStockRowOut(BaseModel):
    ref: str
    lot_number: str
    location: str
    quantity: int

    class Config:
        from_attributes = True


class StockComparisonItemOut(BaseModel):
    status: ComparisonStatus
    ref: str
    lot_number: str
    location: str
    erp_quantity: int
    scanned_quantity: int
    difference: int

    class Config:
        from_attributes = True


class StockComparisonOut(BaseModel):
    items: list[StockComparisonItemOut]
    summary: dict[str, int]

    class Config:
        from_attributes = True
