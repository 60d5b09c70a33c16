"""Document storage.

Root documents are keyed by merchant domain; each merchant has ``orders``,
``products``, ``daily_analytics`` and ``monthly_analytics`` subcollections.
Writes are whole-document replacements, except ``update`` which merges
top-level fields.
"""

import copy
from abc import ABC, abstractmethod
from typing import Any, Literal

import structlog
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from podbridge.infrastructure.config import settings
from podbridge.infrastructure.database import get_session_factory
from podbridge.infrastructure.models import DocumentModel

logger = structlog.get_logger()

MERCHANTS = "shopify_pod"
DOMAIN_MAP = "domain_map"

ORDERS = "orders"
PRODUCTS = "products"
DAILY_ANALYTICS = "daily_analytics"
MONTHLY_ANALYTICS = "monthly_analytics"

CURSOR_FIELD = "created_at"

PageDirection = Literal["next", "prev"]


def subcollection(domain: str, name: str) -> str:
    """Build the path of a merchant subcollection."""
    return f"{MERCHANTS}/{domain}/{name}"


def _cursor_value(data: dict[str, Any]) -> float:
    try:
        return float(data.get(CURSOR_FIELD) or 0)
    except (TypeError, ValueError):
        return 0.0


class DocumentStore(ABC):
    """Interface to the document database."""

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        """Fetch a document, or None if it does not exist."""

    @abstractmethod
    async def create(self, collection: str, doc_id: str, data: dict[str, Any]) -> bool:
        """Insert a document only if it does not exist yet.

        Returns:
            True if the document was created, False if it already existed.
        """

    @abstractmethod
    async def set(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        """Create or replace a document."""

    @abstractmethod
    async def update(self, collection: str, doc_id: str, fields: dict[str, Any]) -> bool:
        """Merge top-level fields into an existing document.

        Returns:
            False if the document does not exist.
        """

    @abstractmethod
    async def delete(self, collection: str, doc_id: str) -> bool:
        """Delete a document. Returns False if it did not exist."""

    @abstractmethod
    async def scan(self, collection: str) -> list[dict[str, Any]]:
        """Return every document in a collection, newest first."""

    @abstractmethod
    async def page(
        self,
        collection: str,
        cursor: float,
        direction: PageDirection,
        limit: int,
    ) -> list[dict[str, Any]]:
        """Return a page of documents ordered by ``created_at`` descending.

        ``next`` returns documents older than the cursor, ``prev`` returns the
        documents newer than the cursor closest to it.
        """


# ============================================================================
# In-Memory Store
# ============================================================================


class InMemoryDocumentStore(DocumentStore):
    """In-memory document store.

    Used for local runs and tests. Documents are deep-copied on the way in
    and out so callers never share state with the store.
    """

    def __init__(self) -> None:
        self._collections: dict[str, dict[str, dict[str, Any]]] = {}

    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        doc = self._collections.get(collection, {}).get(doc_id)
        return copy.deepcopy(doc) if doc is not None else None

    async def create(self, collection: str, doc_id: str, data: dict[str, Any]) -> bool:
        docs = self._collections.setdefault(collection, {})
        if doc_id in docs:
            return False
        docs[doc_id] = copy.deepcopy(data)
        return True

    async def set(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        self._collections.setdefault(collection, {})[doc_id] = copy.deepcopy(data)

    async def update(self, collection: str, doc_id: str, fields: dict[str, Any]) -> bool:
        doc = self._collections.get(collection, {}).get(doc_id)
        if doc is None:
            return False
        doc.update(copy.deepcopy(fields))
        return True

    async def delete(self, collection: str, doc_id: str) -> bool:
        return self._collections.get(collection, {}).pop(doc_id, None) is not None

    async def scan(self, collection: str) -> list[dict[str, Any]]:
        docs = [copy.deepcopy(d) for d in self._collections.get(collection, {}).values()]
        docs.sort(key=_cursor_value, reverse=True)
        return docs

    async def page(
        self,
        collection: str,
        cursor: float,
        direction: PageDirection,
        limit: int,
    ) -> list[dict[str, Any]]:
        docs = await self.scan(collection)
        if direction == "next":
            return [d for d in docs if _cursor_value(d) < cursor][:limit]
        newer = [d for d in docs if _cursor_value(d) > cursor]
        return newer[-limit:] if limit else []


# ============================================================================
# SQL Store
# ============================================================================


class SqlDocumentStore(DocumentStore):
    """Document store backed by the ``documents`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, collection: str, doc_id: str) -> dict[str, Any] | None:
        async with self._session_factory() as session:
            row = await session.get(DocumentModel, (collection, doc_id))
            return copy.deepcopy(row.data) if row is not None else None

    async def create(self, collection: str, doc_id: str, data: dict[str, Any]) -> bool:
        async with self._session_factory() as session:
            session.add(
                DocumentModel(
                    collection=collection,
                    document_id=doc_id,
                    data=data,
                    created_at=_cursor_value(data),
                )
            )
            try:
                await session.commit()
            except IntegrityError:
                await session.rollback()
                return False
        return True

    async def set(self, collection: str, doc_id: str, data: dict[str, Any]) -> None:
        async with self._session_factory() as session:
            row = await session.get(DocumentModel, (collection, doc_id))
            if row is None:
                session.add(
                    DocumentModel(
                        collection=collection,
                        document_id=doc_id,
                        data=data,
                        created_at=_cursor_value(data),
                    )
                )
            else:
                row.data = data
                row.created_at = _cursor_value(data)
            await session.commit()

    async def update(self, collection: str, doc_id: str, fields: dict[str, Any]) -> bool:
        async with self._session_factory() as session:
            row = await session.get(DocumentModel, (collection, doc_id))
            if row is None:
                return False
            # Reassign so the JSON column is flagged dirty
            row.data = {**row.data, **fields}
            await session.commit()
        return True

    async def delete(self, collection: str, doc_id: str) -> bool:
        async with self._session_factory() as session:
            result = await session.execute(
                delete(DocumentModel).where(
                    DocumentModel.collection == collection,
                    DocumentModel.document_id == doc_id,
                )
            )
            await session.commit()
            return result.rowcount > 0

    async def scan(self, collection: str) -> list[dict[str, Any]]:
        async with self._session_factory() as session:
            result = await session.execute(
                select(DocumentModel)
                .where(DocumentModel.collection == collection)
                .order_by(DocumentModel.created_at.desc())
            )
            return [copy.deepcopy(row.data) for row in result.scalars()]

    async def page(
        self,
        collection: str,
        cursor: float,
        direction: PageDirection,
        limit: int,
    ) -> list[dict[str, Any]]:
        query = select(DocumentModel).where(DocumentModel.collection == collection)
        if direction == "next":
            query = query.where(DocumentModel.created_at < cursor).order_by(
                DocumentModel.created_at.desc()
            )
        else:
            query = query.where(DocumentModel.created_at > cursor).order_by(
                DocumentModel.created_at.asc()
            )

        async with self._session_factory() as session:
            result = await session.execute(query.limit(limit))
            docs = [copy.deepcopy(row.data) for row in result.scalars()]

        if direction == "prev":
            docs.reverse()
        return docs


# ============================================================================
# Store Factory
# ============================================================================


_document_store: DocumentStore | None = None


def get_document_store() -> DocumentStore:
    """Get the configured document store singleton."""
    global _document_store
    if _document_store is None:
        if settings.document_store == "sql":
            _document_store = SqlDocumentStore(get_session_factory())
        else:
            _document_store = InMemoryDocumentStore()
        logger.info("Document store initialized", backend=settings.document_store)
    return _document_store


def reset_document_store(store: DocumentStore | None = None) -> DocumentStore:
    """Replace the document store singleton (for testing)."""
    global _document_store
    _document_store = store or InMemoryDocumentStore()
    return _document_store
