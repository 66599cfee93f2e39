"""
Lifecycle rules: pure state derivation for requests.

Request states:
  draft → pending → under_review | approved | rejected
  under_review | approved → fulfilled | partially_fulfilled | cancelled
  rejected, fulfilled, cancelled are terminal.

Nothing here touches the store; ``RequestService`` reads a record, runs these
functions on the canonical copy and writes the result back.
"""

import random
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from assettrack.errors import ErrorCode, ServiceError
from assettrack.schemas.request import (
    ADMIN_ROLE,
    TERMINAL_STATUSES,
    Approval,
    AssetRequest,
    FulfillmentDetail,
    FulfillmentLine,
    RequestItem,
)

REQUEST_CODE_PREFIX = "REQ"
CANCELLABLE_BLOCKED = TERMINAL_STATUSES
EDITABLE_STATUSES = ("draft", "pending")


@dataclass
class ApprovalOutcome:
    approval: Approval
    all_approved: bool

    @property
    def request_status(self) -> str:
        return "approved" if self.all_approved else "under_review"


@dataclass
class FulfillmentOutcome:
    items: list[RequestItem]
    request_status: str
    touched: list[int]


def generate_request_code(now: datetime, rng: Optional[random.Random] = None) -> str:
    """REQ-<year>-<NNN>. Display label only; collisions are not checked."""
    suffix = (rng or random).randint(1, 999)
    return f"{REQUEST_CODE_PREFIX}-{now.year}-{suffix:03d}"


# ---------- approval ----------


def is_fully_approved(approval: Approval) -> bool:
    """True iff every required approver has approved."""
    return all(a.approved for a in approval.approvers if a.required)


def apply_admin_approval(approval: Approval) -> ApprovalOutcome:
    """
    Mark every approver whose role is admin as approved.

    Approvers are matched by role, not by ``current_approver_index``; chains
    with non-admin required roles stay under review. Re-applying to an already
    approved chain gives the same outcome.
    """
    updated = approval.model_copy(deep=True)
    for approver in updated.approvers:
        if approver.role == ADMIN_ROLE:
            approver.approved = True
    all_approved = is_fully_approved(updated)
    updated.status = "approved" if all_approved else "pending"
    return ApprovalOutcome(approval=updated, all_approved=all_approved)


def rejected_approval(reason: str, now: datetime, rejected_by: Optional[str] = None) -> dict:
    """
    Replacement approval document written on rejection.

    The prior approver list is not kept; the normalizer re-synthesizes the
    default chain on read while preserving the rejected status.
    """
    approval = {"status": "rejected", "rejectedAt": now, "reason": reason}
    if rejected_by:
        approval["rejectedBy"] = rejected_by
    return approval


# ---------- fulfillment ----------


def total_fulfilled(item: RequestItem) -> int:
    return item.total_fulfilled


def derive_item_status(item: RequestItem) -> str:
    return "fulfilled" if item.total_fulfilled >= item.quantity else "partial"


def derive_request_status(items: list[RequestItem]) -> str:
    if all(item.total_fulfilled >= item.quantity for item in items):
        return "fulfilled"
    return "partially_fulfilled"


def parse_item_index(item_id: str, item_count: int) -> int:
    try:
        index = int(str(item_id).strip())
    except ValueError:
        raise ServiceError(ErrorCode.VALIDATION, f"Item id {item_id!r} is not a position index")
    if index < 0 or index >= item_count:
        raise ServiceError(
            ErrorCode.VALIDATION,
            f"Item id {item_id!r} is out of range for a request with {item_count} item(s)",
        )
    return index


def apply_fulfillment(
    items: list[RequestItem],
    lines: list[FulfillmentLine],
    actor_id: str,
    now: datetime,
    notes: Optional[str] = None,
) -> FulfillmentOutcome:
    """
    Append one FulfillmentDetail per line and re-derive statuses.

    Items are addressed by position (``item_id`` is the stringified index).
    Unreferenced items keep whatever fulfillment state they already had.
    Quantities are not clamped against the remaining need.
    """
    updated = [item.model_copy(deep=True) for item in items]
    # Validate every reference before mutating anything
    indexes = [parse_item_index(line.item_id, len(updated)) for line in lines]

    for index, line in zip(indexes, lines):
        item = updated[index]
        item.fulfillment_details.append(
            FulfillmentDetail(
                fulfilled_by=actor_id,
                fulfilled_at=now,
                quantity=line.fulfilled_quantity,
                notes=line.notes or notes,
            )
        )
        item.item_status = derive_item_status(item)

    return FulfillmentOutcome(
        items=updated,
        request_status=derive_request_status(updated),
        touched=sorted(set(indexes)),
    )


# ---------- cancellation / editing ----------


def is_editable(request: AssetRequest, user_id: str) -> bool:
    return request.requester_id == user_id and request.status in EDITABLE_STATUSES


def is_cancellable(request: AssetRequest, user_id: str) -> bool:
    return request.requester_id == user_id and request.status not in CANCELLABLE_BLOCKED


def cancel_items(items: list[RequestItem]) -> list[RequestItem]:
    updated = [item.model_copy(deep=True) for item in items]
    for item in updated:
        if item.item_status != "fulfilled":
            item.item_status = "cancelled"
    return updated
