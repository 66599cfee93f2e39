"""
Unit tests for assettrack/services/lifecycle.py

Tests: approval aggregation, fulfillment aggregation per item and per request,
       positional item addressing, cancellation rules, request codes.
"""

import random
from datetime import datetime, timezone

import pytest

from assettrack.errors import ErrorCode, ServiceError
from assettrack.schemas.request import (
    Approval,
    Approver,
    AssetRequest,
    FulfillmentDetail,
    FulfillmentLine,
    RequestItem,
)
from assettrack.services import lifecycle

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _item(quantity: int, fulfilled=(), status: str = "pending") -> RequestItem:
    return RequestItem(
        asset_type="Laptop",
        quantity=quantity,
        item_status=status,
        fulfillment_details=[FulfillmentDetail(fulfilled_by="a", quantity=q) for q in fulfilled],
    )


def _line(item_id: str, qty: int) -> FulfillmentLine:
    return FulfillmentLine(item_id=item_id, fulfilled_quantity=qty)


# ---------------------------------------------------------------------------
# approval
# ---------------------------------------------------------------------------


def test_all_required_approved_means_fully_approved():
    approval = Approval(
        approvers=[
            Approver(role="admin", required=True, approved=True),
            Approver(role="finance", required=True, approved=True),
            Approver(role="observer", required=False, approved=False),
        ]
    )
    assert lifecycle.is_fully_approved(approval) is True


def test_unapproved_required_approver_blocks_approval():
    approval = Approval(
        approvers=[
            Approver(role="admin", required=True, approved=True),
            Approver(role="finance", required=True, approved=False),
        ]
    )
    assert lifecycle.is_fully_approved(approval) is False


def test_admin_approval_on_default_chain_approves():
    outcome = lifecycle.apply_admin_approval(Approval(approvers=[Approver()]))
    assert outcome.all_approved is True
    assert outcome.request_status == "approved"
    assert outcome.approval.status == "approved"
    assert outcome.approval.approvers[0].approved is True


def test_admin_approval_leaves_other_roles_under_review():
    approval = Approval(
        approvers=[Approver(role="admin"), Approver(role="finance", required=True)]
    )
    outcome = lifecycle.apply_admin_approval(approval)
    assert outcome.all_approved is False
    assert outcome.request_status == "under_review"
    assert outcome.approval.status == "pending"
    assert outcome.approval.approvers[1].approved is False
    # input is not mutated
    assert approval.approvers[0].approved is False


def test_admin_approval_is_idempotent():
    first = lifecycle.apply_admin_approval(Approval(approvers=[Approver()]))
    second = lifecycle.apply_admin_approval(first.approval)
    assert second.request_status == first.request_status == "approved"
    assert second.approval == first.approval


def test_rejected_approval_shape():
    approval = lifecycle.rejected_approval("No budget", NOW, rejected_by="admin-1")
    assert approval == {
        "status": "rejected",
        "rejectedAt": NOW,
        "reason": "No budget",
        "rejectedBy": "admin-1",
    }
    assert "rejectedBy" not in lifecycle.rejected_approval("No budget", NOW)


# ---------------------------------------------------------------------------
# fulfillment aggregation
# ---------------------------------------------------------------------------


def test_item_with_full_details_is_fulfilled():
    item = _item(5, fulfilled=[2, 3])
    assert lifecycle.total_fulfilled(item) == 5
    assert lifecycle.derive_item_status(item) == "fulfilled"


def test_item_with_short_details_is_partial():
    item = _item(5, fulfilled=[2])
    assert lifecycle.total_fulfilled(item) == 2
    assert lifecycle.derive_item_status(item) == "partial"


def test_request_status_partial_then_full():
    assert lifecycle.derive_request_status([_item(2, [2]), _item(3, [1])]) == "partially_fulfilled"
    assert lifecycle.derive_request_status([_item(2, [2]), _item(3, [1, 2])]) == "fulfilled"


def test_apply_fulfillment_appends_detail_and_rederives():
    items = [_item(3), _item(1)]
    outcome = lifecycle.apply_fulfillment(items, [_line("0", 1)], "admin-1", NOW, notes="first batch")

    first, second = outcome.items
    assert first.item_status == "partial"
    assert first.fulfillment_details[0].fulfilled_by == "admin-1"
    assert first.fulfillment_details[0].fulfilled_at == NOW
    assert first.fulfillment_details[0].notes == "first batch"
    assert second.item_status == "pending"
    assert second.fulfillment_details == []
    assert outcome.request_status == "partially_fulfilled"
    assert outcome.touched == [0]
    # originals untouched
    assert items[0].fulfillment_details == []


def test_apply_fulfillment_over_fulfillment_is_recorded():
    outcome = lifecycle.apply_fulfillment([_item(2)], [_line("0", 5)], "admin-1", NOW)
    assert outcome.items[0].total_fulfilled == 5
    assert outcome.items[0].item_status == "fulfilled"
    assert outcome.request_status == "fulfilled"


def test_apply_fulfillment_line_notes_override_request_notes():
    line = FulfillmentLine(item_id="0", fulfilled_quantity=1, notes="serial 42")
    outcome = lifecycle.apply_fulfillment([_item(1)], [line], "a", NOW, notes="batch")
    assert outcome.items[0].fulfillment_details[0].notes == "serial 42"


@pytest.mark.parametrize("item_id", ["2", "-1", "first", ""])
def test_apply_fulfillment_rejects_bad_item_ids(item_id):
    items = [_item(1), _item(1)]
    # model_construct skips the min_length check so "" reaches the index parser
    bad_line = FulfillmentLine.model_construct(item_id=item_id, fulfilled_quantity=1)
    with pytest.raises(ServiceError) as exc_info:
        lifecycle.apply_fulfillment(items, [_line("0", 1), bad_line], "a", NOW)
    assert exc_info.value.code == ErrorCode.VALIDATION


def test_apply_fulfillment_with_no_lines_still_derives_status():
    outcome = lifecycle.apply_fulfillment([_item(2, [2])], [], "a", NOW)
    assert outcome.request_status == "fulfilled"
    assert outcome.touched == []


# ---------------------------------------------------------------------------
# cancellation / request codes
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "status,expected",
    [("pending", True), ("approved", True), ("rejected", False), ("fulfilled", False), ("cancelled", False)],
)
def test_is_cancellable_by_status(status, expected):
    request = AssetRequest(requester_id="fac-1", status=status)
    assert lifecycle.is_cancellable(request, "fac-1") is expected


def test_is_cancellable_only_by_requester():
    assert lifecycle.is_cancellable(AssetRequest(requester_id="fac-1"), "fac-2") is False


def test_is_editable_only_while_pending():
    assert lifecycle.is_editable(AssetRequest(requester_id="u", status="draft"), "u") is True
    assert lifecycle.is_editable(AssetRequest(requester_id="u", status="approved"), "u") is False


def test_cancel_items_keeps_fulfilled_items():
    items = lifecycle.cancel_items([_item(1, [1], status="fulfilled"), _item(2, [1], status="partial")])
    assert [i.item_status for i in items] == ["fulfilled", "cancelled"]


def test_generate_request_code_format():
    code = lifecycle.generate_request_code(NOW, random.Random(1))
    prefix, year, suffix = code.split("-")
    assert prefix == "REQ"
    assert year == "2026"
    assert len(suffix) == 3 and suffix.isdigit()
    assert 1 <= int(suffix) <= 999
