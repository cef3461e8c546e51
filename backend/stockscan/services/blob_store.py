import logging
from collections.abc import Callable

from sqlalchemy.orm import Session

from stockscan.models.models import StoredBlob

logger = logging.getLogger(__name__)


class BlobStore:
    """Keyed text documents in the ``stored_blobs`` table.

    Holds the GTIN->REF mapping document and the last ERP snapshot. Each call
    opens and commits its own session, so callers never share one.
    """

    def __init__(self, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def get(self, key: str) -> str | None:
        """Return the stored text, or None when the key was never written."""
        db = self._session_factory()
        try:
            blob = db.get(StoredBlob, key)
            return blob.content if blob else None
        finally:
            db.close()

    def put(self, key: str, content: str) -> None:
        """Create or overwrite the document under ``key``."""
        db = self._session_factory()
        try:
            blob = db.get(StoredBlob, key)
            if blob is None:
                db.add(StoredBlob(key=key, content=content))
            else:
                blob.content = content
            db.commit()
            logger.info("Stored blob %s (%d chars)", key, len(content))
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
