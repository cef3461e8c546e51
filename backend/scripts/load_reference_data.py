#!/usr/bin/env python3
"""
Load reference data into the StockScan database.

Seeds the GTIN->REF mapping document and/or the ERP stock snapshot from files,
so a new scanning station starts with the same data as the others.

Usage:
    python scripts/load_reference_data.py --mappings gtin-ref-mapping.csv
    python scripts/load_reference_data.py --erp erp-stock-count.csv
    python scripts/load_reference_data.py --mappings map.csv --erp stock.csv

Uses DATABASE_URL from the environment / .env, like the API.
"""
from __future__ import annotations

import argparse
import os
import sys
from pathlib import Path

# Add parent to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from stockscan.core.config import settings
from stockscan.core.database import Base, SessionLocal, engine
from stockscan.services.blob_store import BlobStore
from stockscan.services.erp_snapshot import parse_erp_snapshot
from stockscan.services.mapping_store import GtinRefStore


def load_mappings(blob_store: BlobStore, path: Path) -> int:
    store = GtinRefStore(blob_store, settings.MAPPING_BLOB_KEY)
    store.load()
    before = len(store)
    imported = store.import_csv(path.read_text(encoding="utf-8-sig"))
    print(f"Mappings: {imported} lines applied ({before} -> {len(store)} GTINs)")
    return imported


def load_erp(blob_store: BlobStore, path: Path) -> int:
    text = path.read_text(encoding="utf-8-sig")
    rows = parse_erp_snapshot(text)
    if not rows:
        print(f"ERROR: no S;REF;LOT;LOCATION;QUANTITY lines in {path}", file=sys.stderr)
        return 0
    blob_store.put(settings.ERP_SNAPSHOT_BLOB_KEY, text)
    refs = {row.ref for row in rows}
    print(f"ERP snapshot: {len(rows)} stock lines, {len(refs)} REFs")
    return len(rows)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Load GTIN->REF mappings and ERP stock into StockScan")
    parser.add_argument("--mappings", type=Path, help="GTIN,REF CSV file (header line first)")
    parser.add_argument("--erp", type=Path, help="ERP stock export (S;REF;LOT;LOCATION;QUANTITY)")
    args = parser.parse_args(argv)

    if not args.mappings and not args.erp:
        parser.error("nothing to load: pass --mappings and/or --erp")

    print(f"Connecting to: {settings.DATABASE_URL[:50]}...")
    if settings.DATABASE_URL.startswith("sqlite"):
        Base.metadata.create_all(bind=engine)
    blob_store = BlobStore(SessionLocal)

    ok = True
    if args.mappings:
        load_mappings(blob_store, args.mappings)
    if args.erp:
        ok = load_erp(blob_store, args.erp) > 0
    return 0 if ok else 1


if __name__ == "__main__":
    sys.exit(main())
