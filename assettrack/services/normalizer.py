"""
Normalizer: turns any stored request document into the canonical model.

Stored documents come from several generations of writers: timestamps may be
native datetimes, exported ``{seconds, nanoseconds}`` mappings, plain dates
or ISO strings; numbers may be strings; whole sub-objects may be missing.
Normalization never raises. It substitutes defaults and is idempotent, so a
canonical request can be fed back through it unchanged.
"""

import math
from collections.abc import Mapping
from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional, Union

import structlog

from assettrack.schemas.request import (
    ADMIN_ROLE,
    APPROVAL_STATUSES,
    ITEM_STATUSES,
    PRIORITIES,
    REQUEST_STATUSES,
    URGENCIES,
    Approval,
    Approver,
    AssetRequest,
    FulfillmentDetail,
    RequestItem,
)
from assettrack.store.base import utcnow

logger = structlog.get_logger()

DATE_FIELDS = frozenset(
    {
        "createdAt",
        "updatedAt",
        "neededBy",
        "requestedAt",
        "rejectedAt",
        "approvedAt",
        "fulfilledAt",
    }
)

# Free-form maps whose keys are caller data, never decoded
OPAQUE_FIELDS = frozenset({"specifications"})

# Computed on the canonical model, never read back from storage
DERIVED_FIELDS = {"item_count", "total_quantity"}


# ---------- date decoding ----------


def _timestamp_from_mapping(value: Mapping) -> Optional[datetime]:
    seconds = value.get("seconds", value.get("_seconds"))
    nanos = value.get("nanoseconds", value.get("_nanoseconds", 0)) or 0
    if isinstance(seconds, bool) or not isinstance(seconds, (int, float)):
        return None
    if isinstance(nanos, bool) or not isinstance(nanos, (int, float)):
        nanos = 0
    try:
        return datetime.fromtimestamp(seconds, tz=timezone.utc) + timedelta(
            microseconds=int(nanos) // 1000
        )
    except (OverflowError, OSError, ValueError):
        return None


def decode_date(value: Any) -> Optional[datetime]:
    """
    Decode a date-like value to an aware UTC datetime.

    Tried in order: native timestamp (datetime or an exported seconds /
    nanoseconds mapping), native date, ISO-8601 string. Anything else,
    including unparseable strings, gives None.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
    if isinstance(value, Mapping):
        return _timestamp_from_mapping(value)
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            return None
        return decode_date(parsed)
    return None


def _walk(value: Any, key: Optional[str] = None) -> Any:
    if key in OPAQUE_FIELDS:
        return value
    if key in DATE_FIELDS:
        return decode_date(value)
    if isinstance(value, Mapping):
        return {k: _walk(v, k) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_walk(v) for v in value]
    return value


# ---------- scalar coercion ----------


def _str(value: Any, default: str = "") -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return str(value)
    return default


def _opt_str(value: Any) -> Optional[str]:
    text = _str(value, "")
    return text or None


def _int(value: Any, default: int) -> int:
    if isinstance(value, bool):
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else default
    if isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return default
        return int(number) if math.isfinite(number) else default
    return default


def _bool(value: Any, default: bool) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    return default


def _choice(value: Any, allowed: tuple, default: Optional[str]) -> Optional[str]:
    if isinstance(value, str) and value.strip().lower() in allowed:
        return value.strip().lower()
    return default


def _mapping(value: Any) -> dict:
    return value if isinstance(value, Mapping) else {}


# ---------- sub-object normalization ----------


def normalize_fulfillment_detail(value: Any) -> FulfillmentDetail:
    data = _mapping(value)
    return FulfillmentDetail(
        fulfilled_by=_str(data.get("fulfilledBy")),
        fulfilled_at=data.get("fulfilledAt"),
        quantity=max(_int(data.get("quantity"), 0), 0),
        notes=_opt_str(data.get("notes")),
    )


def normalize_item(value: Any) -> RequestItem:
    data = _mapping(value)
    quantity = _int(data.get("quantity"), 1)
    details = data.get("fulfillmentDetails")
    specifications = _mapping(data.get("specifications"))
    return RequestItem(
        asset_type=_str(data.get("assetType")),
        category=_str(data.get("category")),
        quantity=quantity if quantity > 0 else 1,
        item_status=_choice(data.get("itemStatus"), ITEM_STATUSES, "pending"),
        purpose=_opt_str(data.get("purpose")),
        specifications={str(k): v for k, v in specifications.items()},
        urgency=_choice(data.get("urgency"), URGENCIES, None),
        fulfillment_details=[
            normalize_fulfillment_detail(d) for d in details
        ] if isinstance(details, list) else [],
    )


def default_approval(now: Optional[datetime] = None) -> Approval:
    return Approval(
        approvers=[Approver(role=ADMIN_ROLE, required=True, approved=False)],
        current_approver_index=0,
        requested_at=now or utcnow(),
        status="pending",
    )


def _approval_status(value: Any, approvers: list[Approver]) -> str:
    # A rejection stands; otherwise the status follows the required approvers
    if _choice(value, APPROVAL_STATUSES, "pending") == "rejected":
        return "rejected"
    if all(a.approved for a in approvers if a.required):
        return "approved"
    return "pending"


def normalize_approval(value: Any, now: Optional[datetime] = None) -> Approval:
    if not isinstance(value, Mapping):
        return default_approval(now)

    raw_approvers = value.get("approvers")
    if isinstance(raw_approvers, list) and raw_approvers:
        approvers = [
            Approver(
                role=_str(_mapping(a).get("role"), ADMIN_ROLE) or ADMIN_ROLE,
                required=_bool(_mapping(a).get("required"), True),
                approved=_bool(_mapping(a).get("approved"), False),
            )
            for a in raw_approvers
        ]
    else:
        approvers = default_approval(now).approvers

    return Approval(
        approvers=approvers,
        current_approver_index=max(_int(value.get("currentApproverIndex"), 0), 0),
        requested_at=value.get("requestedAt") or now or utcnow(),
        status=_approval_status(value.get("status"), approvers),
        rejected_by=_opt_str(value.get("rejectedBy")),
        rejected_at=value.get("rejectedAt"),
        reason=_opt_str(value.get("reason")),
    )


# ---------- public API ----------


def normalize_request(
    raw: Union[Mapping, AssetRequest, None],
    doc_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> AssetRequest:
    """Canonical AssetRequest for a raw document or an already canonical one."""
    if isinstance(raw, AssetRequest):
        raw = raw.model_dump(by_alias=True)
    data = _walk(dict(raw or {}))

    raw_items = data.get("items")
    if raw_items is not None and not isinstance(raw_items, list):
        logger.warning("normalize_items_not_a_list", doc_id=doc_id or data.get("id"))

    return AssetRequest(
        id=_str(doc_id if doc_id is not None else data.get("id")),
        request_id=_str(data.get("requestId")),
        requester_id=_str(data.get("requesterId")),
        requester_name=_str(data.get("requesterName")),
        requester_email=_str(data.get("requesterEmail")),
        location_id=_str(data.get("locationId")),
        location_name=_str(data.get("locationName")),
        department=_str(data.get("department")),
        status=_choice(data.get("status"), REQUEST_STATUSES, "pending"),
        priority=_choice(data.get("priority"), PRIORITIES, "medium"),
        items=[normalize_item(i) for i in raw_items] if isinstance(raw_items, list) else [],
        approval=normalize_approval(data.get("approval"), now),
        notes=_opt_str(data.get("notes")),
        needed_by=data.get("neededBy"),
        expected_duration=max(_int(data.get("expectedDuration"), 0), 0),
        rejection_reason=_opt_str(data.get("rejectionReason")),
        created_at=data.get("createdAt"),
        updated_at=data.get("updatedAt"),
    )


def to_document(request: AssetRequest) -> dict:
    """Persisted layout of a canonical request, without store-managed keys."""
    return request.model_dump(
        by_alias=True,
        exclude={"id", "created_at", "updated_at", *DERIVED_FIELDS},
    )


def items_to_document(items: list[RequestItem]) -> list[dict]:
    return [item.model_dump(by_alias=True) for item in items]
