"""
Query/filter engine.

A ``RequestFilter`` is split in two passes:
  * store side: equality and small-set membership (status, priority,
    locationId, department, requesterId), always ordered by createdAt desc;
  * client side: search term and the inclusive createdAt date window, run on
    the normalized records because the store cannot combine them with the
    other predicates in one query.
"""

import itertools
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional, Sequence

import structlog

from assettrack.schemas.filters import RequestFilter
from assettrack.schemas.request import AssetRequest
from assettrack.services.normalizer import decode_date, normalize_request
from assettrack.store.base import DocumentStore, OrderBy, Predicate, StoreError

logger = structlog.get_logger()

NEWEST_FIRST = OrderBy("createdAt", descending=True)


@dataclass
class QueryResult:
    """Outcome of a read: either records or the reason the read failed."""

    records: list[AssetRequest] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def failure(cls, error: str) -> "QueryResult":
        return cls(records=[], error=error)

    def or_empty(self) -> list[AssetRequest]:
        """UI-facing view: a failed read shows as no results."""
        return self.records if self.ok else []


# ---------- predicate construction ----------


def build_store_predicates(filters: Optional[RequestFilter]) -> list[Predicate]:
    if filters is None:
        return []
    predicates: list[Predicate] = []
    if filters.status:
        predicates.append(Predicate("status", "in", list(filters.status)))
    if filters.priority:
        predicates.append(Predicate("priority", "in", list(filters.priority)))
    if filters.location_id:
        predicates.append(Predicate("locationId", "==", filters.location_id))
    if filters.department:
        predicates.append(Predicate("department", "==", filters.department))
    if filters.requester_id:
        predicates.append(Predicate("requesterId", "==", filters.requester_id))
    return predicates


def split_membership(predicates: Sequence[Predicate], limit: int) -> list[list[Predicate]]:
    """
    Expand oversized ``in`` predicates into several store queries.

    Each ``in`` set larger than ``limit`` is chunked; the cartesian product of
    the chunks gives one predicate list per query.
    """
    options: list[list[Predicate]] = []
    for predicate in predicates:
        values = list(predicate.value) if predicate.op == "in" else None
        if values is not None and len(values) > limit:
            options.append([
                Predicate(predicate.field, "in", values[i:i + limit])
                for i in range(0, len(values), limit)
            ])
        else:
            options.append([predicate])
    return [list(combo) for combo in itertools.product(*options)]


# ---------- client-side refinement ----------


def matches_search(request: AssetRequest, term: Optional[str]) -> bool:
    """Case-insensitive substring match on name, code, department, asset type or category."""
    if not term or not term.strip():
        return True
    needle = term.strip().lower()
    haystack = [request.requester_name, request.request_id, request.department]
    for item in request.items:
        haystack.extend([item.asset_type, item.category])
    return any(needle in (value or "").lower() for value in haystack)


def within_date_range(
    request: AssetRequest,
    date_from: Optional[datetime],
    date_to: Optional[datetime],
) -> bool:
    """Inclusive on both bounds; a record without createdAt fails any bound."""
    lower = decode_date(date_from)
    upper = decode_date(date_to)
    if lower is None and upper is None:
        return True
    created = request.created_at
    if created is None:
        return False
    if lower is not None and created < lower:
        return False
    if upper is not None and created > upper:
        return False
    return True


def matches_membership(request: AssetRequest, filters: RequestFilter) -> bool:
    if filters.status and request.status not in filters.status:
        return False
    if filters.priority and request.priority not in filters.priority:
        return False
    if filters.location_id and request.location_id != filters.location_id:
        return False
    if filters.department and request.department != filters.department:
        return False
    if filters.requester_id and request.requester_id != filters.requester_id:
        return False
    return True


def refine(
    requests: Iterable[AssetRequest],
    filters: Optional[RequestFilter],
    include_membership: bool = False,
) -> list[AssetRequest]:
    if filters is None:
        return list(requests)
    return [
        r for r in requests
        if (not include_membership or matches_membership(r, filters))
        and matches_search(r, filters.search_term)
        and within_date_range(r, filters.date_from, filters.date_to)
    ]


def sort_newest_first(requests: Iterable[AssetRequest]) -> list[AssetRequest]:
    requests = list(requests)
    dated = [r for r in requests if r.created_at is not None]
    undated = [r for r in requests if r.created_at is None]
    return sorted(dated, key=lambda r: r.created_at, reverse=True) + undated


# ---------- engine ----------


class RequestQueryEngine:
    def __init__(self, store: DocumentStore, collection: str, in_limit: int = 10):
        self.store = store
        self.collection = collection
        self.in_limit = max(in_limit, 1)

    async def fetch(self, predicates: Sequence[Predicate]) -> list[AssetRequest]:
        """Run the store query (chunked if needed) and normalize. Raises StoreError."""
        batches = split_membership(predicates, self.in_limit)
        if len(batches) == 1:
            raw = await self.store.query(self.collection, batches[0], NEWEST_FIRST)
            # The store orders by raw encoding; legacy date shapes only compare once decoded
            return sort_newest_first(normalize_request(r, doc_id=r.get("id")) for r in raw)

        seen: dict[str, AssetRequest] = {}
        for batch in batches:
            for r in await self.store.query(self.collection, batch, NEWEST_FIRST):
                seen.setdefault(r.get("id"), normalize_request(r, doc_id=r.get("id")))
        return sort_newest_first(seen.values())

    async def run(self, filters: Optional[RequestFilter] = None) -> QueryResult:
        try:
            records = await self.fetch(build_store_predicates(filters))
        except StoreError as e:
            logger.warning("request_query_failed", collection=self.collection, error=str(e))
            return QueryResult.failure(str(e))
        return QueryResult(records=refine(records, filters))

    async def run_scoped(
        self,
        location_ids: Sequence[str],
        filters: Optional[RequestFilter] = None,
    ) -> QueryResult:
        """
        Location-scoped read: only ``locationId in location_ids`` is pushed to
        the store; every other constraint is applied client-side.
        """
        if not location_ids:
            return QueryResult(records=[])
        try:
            records = await self.fetch([Predicate("locationId", "in", list(location_ids))])
        except StoreError as e:
            logger.warning(
                "scoped_request_query_failed",
                collection=self.collection,
                locations=len(location_ids),
                error=str(e),
            )
            return QueryResult.failure(str(e))
        return QueryResult(records=refine(records, filters, include_membership=True))
