"""Read-side helpers for dashboards: counts, grouping and age labels."""

from datetime import datetime
from typing import Iterable, Optional

from assettrack.schemas.common import RequestStats
from assettrack.schemas.request import AssetRequest
from assettrack.services.normalizer import decode_date
from assettrack.store.base import utcnow


def compute_stats(requests: Iterable[AssetRequest]) -> RequestStats:
    stats = RequestStats()
    for request in requests:
        stats.total += 1
        if request.status in ("pending", "under_review"):
            stats.pending += 1
        elif request.status == "approved":
            stats.approved += 1
        elif request.status == "rejected":
            stats.rejected += 1
        elif request.status == "fulfilled":
            stats.fulfilled += 1
        if request.priority == "urgent":
            stats.urgent += 1
    return stats


def group_by_status(requests: Iterable[AssetRequest]) -> dict[str, list[AssetRequest]]:
    groups: dict[str, list[AssetRequest]] = {}
    for request in requests:
        groups.setdefault(request.status, []).append(request)
    return groups


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'' if count == 1 else 's'} ago"


def time_elapsed(created_at, now: Optional[datetime] = None) -> str:
    created = decode_date(created_at)
    if created is None:
        return "Unknown"
    minutes = int(((decode_date(now) or utcnow()) - created).total_seconds() // 60)
    hours, days = minutes // 60, minutes // (60 * 24)
    if minutes < 1:
        return "Just now"
    if minutes < 60:
        return _plural(minutes, "minute")
    if hours < 24:
        return _plural(hours, "hour")
    if days < 30:
        return _plural(days, "day")
    return created.date().isoformat()
