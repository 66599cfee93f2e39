"""In-process document store used for local development and the test suite."""

import asyncio
import copy
import uuid
from datetime import date, datetime, timedelta
from typing import Any, Callable, Optional, Sequence

import structlog

from assettrack.store.base import (
    STORE_MANAGED_FIELDS,
    DocumentStore,
    OrderBy,
    Predicate,
    StoreConflictError,
    StoreNotFoundError,
    utcnow,
)

logger = structlog.get_logger()


def _order_key(value: Any) -> tuple:
    # Cross-type ordering: null < bool < number < timestamp < string < other
    if value is None:
        return (0, 0)
    if isinstance(value, bool):
        return (1, value)
    if isinstance(value, (int, float)):
        return (2, value)
    if isinstance(value, datetime):
        return (3, value.timestamp())
    if isinstance(value, date):
        return (3, datetime(value.year, value.month, value.day).timestamp())
    if isinstance(value, str):
        return (4, value)
    return (5, str(value))


class InMemoryDocumentStore(DocumentStore):
    """
    Dict-backed store with the same contract as the SQL adapter.

    Every call copies documents in and out so callers can never mutate stored
    state by reference. The lock only covers a single call; a caller's
    read-then-write sequence is not serialized.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._collections: dict[str, dict[str, dict]] = {}
        self._lock = asyncio.Lock()
        self._clock = clock or utcnow
        self._last_stamp: Optional[datetime] = None

    def _stamp(self) -> datetime:
        # Strictly increasing so createdAt ordering is total within a process
        now = self._clock()
        if self._last_stamp is not None and now <= self._last_stamp:
            now = self._last_stamp + timedelta(microseconds=1)
        self._last_stamp = now
        return now

    def _bucket(self, collection: str) -> dict[str, dict]:
        return self._collections.setdefault(collection, {})

    async def create(self, collection: str, record: dict) -> str:
        async with self._lock:
            doc_id = uuid.uuid4().hex
            now = self._stamp()
            doc = {k: copy.deepcopy(v) for k, v in record.items() if k not in STORE_MANAGED_FIELDS}
            doc["createdAt"] = now
            doc["updatedAt"] = now
            self._bucket(collection)[doc_id] = doc
        logger.debug("memory_store_created", collection=collection, doc_id=doc_id)
        return doc_id

    async def seed(self, collection: str, record: dict, doc_id: Optional[str] = None) -> str:
        """Insert a raw document verbatim, including any legacy timestamps."""
        async with self._lock:
            doc_id = doc_id or uuid.uuid4().hex
            doc = copy.deepcopy(record)
            doc.pop("id", None)
            self._bucket(collection)[doc_id] = doc
        return doc_id

    async def get_by_id(self, collection: str, doc_id: str) -> Optional[dict]:
        async with self._lock:
            doc = self._bucket(collection).get(doc_id)
            if doc is None:
                return None
            return {"id": doc_id, **copy.deepcopy(doc)}

    async def query(
        self,
        collection: str,
        predicates: Sequence[Predicate] = (),
        order_by: Optional[OrderBy] = None,
    ) -> list[dict]:
        async with self._lock:
            rows = [
                {"id": doc_id, **copy.deepcopy(doc)}
                for doc_id, doc in self._bucket(collection).items()
                if all(p.matches(doc) for p in predicates)
            ]
        if order_by is not None:
            # Documents without the sort field drop out of an ordered query
            rows = [r for r in rows if r.get(order_by.field) is not None]
            rows.sort(key=lambda r: _order_key(r[order_by.field]), reverse=order_by.descending)
        return rows

    async def update(
        self,
        collection: str,
        doc_id: str,
        partial: dict,
        *,
        expected_updated_at: Optional[datetime] = None,
    ) -> None:
        async with self._lock:
            doc = self._bucket(collection).get(doc_id)
            if doc is None:
                raise StoreNotFoundError(f"No document {doc_id!r} in {collection!r}")
            if expected_updated_at is not None and doc.get("updatedAt") != expected_updated_at:
                raise StoreConflictError(
                    f"Document {doc_id!r} was modified after {expected_updated_at!r}"
                )
            for key, value in partial.items():
                if key in STORE_MANAGED_FIELDS:
                    continue
                doc[key] = copy.deepcopy(value)
            doc["updatedAt"] = self._stamp()

    async def delete(self, collection: str, doc_id: str) -> None:
        async with self._lock:
            self._bucket(collection).pop(doc_id, None)
