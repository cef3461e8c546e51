"""
GTIN -> REF mapping store.

Barcodes carry a GTIN but the ERP counts by manufacturer REF, so the operator
teaches the store which REF each GTIN belongs to. The document is kept in the
blob store as JSON and is loaded / flushed explicitly:

    {"gtinToRef": {"04912345678881": "REF-1"},
     "refToGtins": {"REF-1": ["04912345678881"]}}
"""

import csv
import io
import json
import logging

from stockscan.services.blob_store import BlobStore
from stockscan.services.csv_renderer import render_mapping_csv

logger = logging.getLogger(__name__)


class GtinRefStore:
    def __init__(self, blob_store: BlobStore, key: str) -> None:
        self._blob_store = blob_store
        self._key = key
        self._gtin_to_ref: dict[str, str] = {}
        self._ref_to_gtins: dict[str, set[str]] = {}

    def load(self) -> int:
        """Replace the in-memory mapping with the stored document.

        Returns the number of GTINs loaded. A missing document leaves the
        store empty; a corrupt one is logged and ignored.
        """
        self._gtin_to_ref = {}
        self._ref_to_gtins = {}

        contents = self._blob_store.get(self._key)
        if not contents:
            return 0

        try:
            data = json.loads(contents)
            gtin_to_ref = data.get("gtinToRef") or {}
        except (ValueError, AttributeError):
            logger.warning("Mapping document %s is not valid JSON; starting empty", self._key)
            return 0

        # refToGtins is derived data; rebuild it from gtinToRef
        for gtin, ref in gtin_to_ref.items():
            self.add_mapping(gtin, ref, save=False)
        logger.info("Loaded %d GTIN->REF mappings", len(self._gtin_to_ref))
        return len(self._gtin_to_ref)

    def flush(self) -> None:
        data = {
            "gtinToRef": dict(self._gtin_to_ref),
            "refToGtins": {ref: sorted(gtins) for ref, gtins in self._ref_to_gtins.items()},
        }
        self._blob_store.put(self._key, json.dumps(data))

    def add_mapping(self, gtin: str, ref: str, save: bool = True) -> None:
        """Point ``gtin`` at ``ref``, detaching it from any previous REF."""
        old_ref = self._gtin_to_ref.get(gtin)
        if old_ref is not None and old_ref != ref:
            bucket = self._ref_to_gtins.get(old_ref)
            if bucket is not None:
                bucket.discard(gtin)
                if not bucket:
                    del self._ref_to_gtins[old_ref]

        self._gtin_to_ref[gtin] = ref
        self._ref_to_gtins.setdefault(ref, set()).add(gtin)

        if save:
            self.flush()

    def ref_for_gtin(self, gtin: str | None) -> str | None:
        if not gtin:
            return None
        return self._gtin_to_ref.get(gtin)

    def gtins_for_ref(self, ref: str) -> list[str]:
        return sorted(self._ref_to_gtins.get(ref, ()))

    def all_mappings(self) -> list[dict[str, str]]:
        return [{"gtin": gtin, "ref": ref} for gtin, ref in self._gtin_to_ref.items()]

    def set_mappings(self, mappings: list[tuple[str, str]]) -> None:
        """Replace every mapping at once and persist the result."""
        self._gtin_to_ref = {}
        self._ref_to_gtins = {}
        for gtin, ref in mappings:
            self.add_mapping(gtin, ref, save=False)
        self.flush()

    def import_csv(self, text: str) -> int:
        """Merge ``GTIN,REF`` lines into the store. The first line is a header.

        Lines missing either value are skipped. Returns the number of mappings
        applied; the document is flushed once at the end.
        """
        imported = 0
        reader = csv.reader(io.StringIO(text))
        next(reader, None)
        for row in reader:
            if len(row) < 2:
                continue
            gtin, ref = row[0].strip(), row[1].strip()
            if not gtin or not ref:
                continue
            self.add_mapping(gtin, ref, save=False)
            imported += 1

        if imported:
            self.flush()
        logger.info("Imported %d GTIN->REF mappings", imported)
        return imported

    def export_csv(self) -> bytes:
        return render_mapping_csv(self.all_mappings())

    def __len__(self) -> int:
        return len(self._gtin_to_ref)
