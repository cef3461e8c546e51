from stockscan.models.models import StoredBlob

__all__ = [
    "StoredBlob",
]
