"""SQLAlchemy models for database tables.

Documents are stored as JSON blobs keyed by collection path and document id,
which mirrors the document-database layout the rest of the service expects.
"""

from datetime import datetime, timezone

from sqlalchemy import JSON, Column, DateTime, Float, String
from sqlalchemy.dialects.postgresql import JSONB

from podbridge.infrastructure.database import Base


class DocumentModel(Base):
    """A single document inside a (sub)collection.

    ``collection`` is the full path, e.g. ``shopify_pod/acme.myshopify.com/orders``.
    """

    __tablename__ = "documents"

    collection = Column(String(512), primary_key=True)
    document_id = Column(String(255), primary_key=True)
    data = Column(JSON().with_variant(JSONB, "postgresql"), nullable=False)

    # Cursor field for pagination (unix seconds, copied from data["created_at"])
    created_at = Column(Float, nullable=False, default=0.0, index=True)
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        return f"<DocumentModel {self.collection}/{self.document_id}>"
