"""
Document store contract.

The request engine only ever talks to a ``DocumentStore``: create, read by
id, conjunctive predicate query with a single sort key, partial top-level
update and hard delete. Adapters assign ``id`` and maintain ``createdAt`` /
``updatedAt`` themselves; those three keys are ignored when they appear in a
write payload.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Optional, Sequence

OPERATORS = ("==", "in", "<", ">", "<=", ">=")

# Keys the store owns on every document
STORE_MANAGED_FIELDS = ("id", "createdAt", "updatedAt")


class StoreError(Exception):
    """Any failure talking to the backing store (network, permission, driver)."""


class StoreNotFoundError(StoreError):
    pass


class StoreConflictError(StoreError):
    """Optimistic write rejected: the document changed since it was read."""


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Predicate:
    field: str
    op: str
    value: Any

    def __post_init__(self):
        if self.op not in OPERATORS:
            raise ValueError(f"Unsupported operator {self.op!r}; expected one of {OPERATORS}")
        if self.op == "in" and not isinstance(self.value, (list, tuple, set, frozenset)):
            raise ValueError("'in' predicate requires a collection value")

    def matches(self, record: dict) -> bool:
        if self.field not in record:
            return False
        actual = record[self.field]
        if self.op == "==":
            return actual == self.value
        if self.op == "in":
            return actual in self.value
        try:
            if self.op == "<":
                return actual < self.value
            if self.op == ">":
                return actual > self.value
            if self.op == "<=":
                return actual <= self.value
            return actual >= self.value
        except TypeError:
            # Mixed types never satisfy a range predicate
            return False


@dataclass(frozen=True)
class OrderBy:
    field: str
    descending: bool = False


class DocumentStore(ABC):
    @abstractmethod
    async def create(self, collection: str, record: dict) -> str:
        """Insert a new document and return its store-assigned id."""

    @abstractmethod
    async def get_by_id(self, collection: str, doc_id: str) -> Optional[dict]:
        """Return the document (with ``id``) or None."""

    @abstractmethod
    async def query(
        self,
        collection: str,
        predicates: Sequence[Predicate] = (),
        order_by: Optional[OrderBy] = None,
    ) -> list[dict]:
        """Documents satisfying every predicate, sorted by ``order_by``."""

    @abstractmethod
    async def update(
        self,
        collection: str,
        doc_id: str,
        partial: dict,
        *,
        expected_updated_at: Optional[datetime] = None,
    ) -> None:
        """
        Merge ``partial`` into the document's top-level fields.

        Raises StoreNotFoundError if the document is gone. When
        ``expected_updated_at`` is given and no longer matches the stored
        ``updatedAt``, raises StoreConflictError and writes nothing.
        """

    @abstractmethod
    async def delete(self, collection: str, doc_id: str) -> None:
        """Hard delete. Deleting a missing id is not an error."""

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        return None
