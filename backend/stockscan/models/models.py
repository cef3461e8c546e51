from sqlalchemy import Column, DateTime, String, Text, func

from stockscan.core.database import Base


class StoredBlob(Base):
    """Opaque text blob keyed by name (mapping file, ERP snapshot)."""

    __tablename__ = "stored_blobs"

    key = Column(String(255), primary_key=True)
    content = Column(Text, nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )
