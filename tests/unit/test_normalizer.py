"""
Unit tests for assettrack/services/normalizer.py

Tests: date decoding across encodings, item and approval defaulting,
       idempotence of normalize_request, persisted document layout.
"""

from datetime import date, datetime, timezone

import pytest

from assettrack.services.normalizer import (
    decode_date,
    normalize_approval,
    normalize_item,
    normalize_request,
    to_document,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _legacy_record() -> dict:
    return {
        "requestId": "REQ-2025-042",
        "requesterId": "fac-9",
        "requesterName": "Sam Ortiz",
        "locationId": "loc-west",
        "status": "Approved",
        "priority": "critical",
        "createdAt": {"seconds": 1735732800, "nanoseconds": 500000000},
        "updatedAt": "2025-01-02T08:30:00Z",
        "neededBy": date(2025, 2, 1),
        "expectedDuration": "14",
        "items": [
            {
                "assetType": "Laptop",
                "quantity": "3",
                "itemStatus": "shipped",
                "fulfillmentDetails": [
                    {"fulfilledBy": "admin-1", "fulfilledAt": {"_seconds": 1735819200}, "quantity": "2"},
                ],
            },
            {"assetType": "Dock", "quantity": -4},
        ],
        "approval": {
            "approvers": [{"role": "admin", "required": "true", "approved": True}],
            "status": "approved",
            "requestedAt": "2025-01-01T12:00:00+00:00",
        },
    }


# ---------------------------------------------------------------------------
# decode_date
# ---------------------------------------------------------------------------


def test_decode_date_native_datetime_becomes_aware_utc():
    naive = datetime(2026, 1, 5, 10, 0)
    assert decode_date(naive) == datetime(2026, 1, 5, 10, 0, tzinfo=timezone.utc)


def test_decode_date_seconds_mapping():
    decoded = decode_date({"seconds": 0, "nanoseconds": 2_000})
    assert decoded == datetime(1970, 1, 1, 0, 0, 0, 2, tzinfo=timezone.utc)


def test_decode_date_underscore_mapping():
    assert decode_date({"_seconds": 86400}) == datetime(1970, 1, 2, tzinfo=timezone.utc)


def test_decode_date_plain_date():
    assert decode_date(date(2026, 4, 30)) == datetime(2026, 4, 30, tzinfo=timezone.utc)


def test_decode_date_iso_string_with_z_suffix():
    assert decode_date("2026-02-10T08:15:00Z") == datetime(2026, 2, 10, 8, 15, tzinfo=timezone.utc)


@pytest.mark.parametrize("value", [None, "", "not a date", 12, {"seconds": "x"}, [2026, 1, 1]])
def test_decode_date_unusable_values_give_none(value):
    assert decode_date(value) is None


# ---------------------------------------------------------------------------
# items
# ---------------------------------------------------------------------------


@pytest.mark.parametrize("raw_status", [None, "", "shipped", 3])
def test_item_status_defaults_to_pending(raw_status):
    item = normalize_item({"assetType": "Chair", "quantity": 1, "itemStatus": raw_status})
    assert item.item_status == "pending"


def test_item_status_case_is_folded():
    assert normalize_item({"itemStatus": "Fulfilled"}).item_status == "fulfilled"


def test_item_quantity_coercion():
    assert normalize_item({"quantity": "4"}).quantity == 4
    assert normalize_item({"quantity": 0}).quantity == 1
    assert normalize_item({"quantity": "many"}).quantity == 1


def test_item_non_mapping_gives_defaults():
    item = normalize_item("garbage")
    assert item.asset_type == ""
    assert item.quantity == 1
    assert item.fulfillment_details == []


def test_item_total_fulfilled_is_rederived():
    item = normalize_item(
        {
            "quantity": 5,
            "totalFulfilled": 99,
            "fulfillmentDetails": [{"quantity": 2}, {"quantity": "3"}, {"quantity": "x"}],
        }
    )
    assert item.total_fulfilled == 5
    assert [d.quantity for d in item.fulfillment_details] == [2, 3, 0]


# ---------------------------------------------------------------------------
# approval
# ---------------------------------------------------------------------------


def test_missing_approval_synthesizes_default_chain():
    approval = normalize_approval(None, NOW)
    assert approval.status == "pending"
    assert approval.current_approver_index == 0
    assert approval.requested_at == NOW
    assert len(approval.approvers) == 1
    assert approval.approvers[0].role == "admin"
    assert approval.approvers[0].required is True
    assert approval.approvers[0].approved is False


def test_rejected_approval_keeps_status_and_gains_default_approvers():
    approval = normalize_approval(
        {"status": "rejected", "reason": "Over budget", "rejectedAt": "2026-02-01T00:00:00Z"},
        NOW,
    )
    assert approval.status == "rejected"
    assert approval.reason == "Over budget"
    assert approval.rejected_at == datetime(2026, 2, 1, tzinfo=timezone.utc)
    assert [a.role for a in approval.approvers] == ["admin"]


# ---------------------------------------------------------------------------
# normalize_request
# ---------------------------------------------------------------------------


def test_empty_record_normalizes_to_defaults():
    request = normalize_request({}, doc_id="abc", now=NOW)
    assert request.id == "abc"
    assert request.status == "pending"
    assert request.priority == "medium"
    assert request.items == []
    assert request.approval.status == "pending"
    assert request.created_at is None


def test_legacy_record_is_coerced():
    request = normalize_request(_legacy_record(), doc_id="doc-1", now=NOW)

    assert request.status == "approved"
    assert request.priority == "medium"
    assert request.created_at == datetime(2025, 1, 1, 12, 0, 0, 500000, tzinfo=timezone.utc)
    assert request.updated_at == datetime(2025, 1, 2, 8, 30, tzinfo=timezone.utc)
    assert request.needed_by == datetime(2025, 2, 1, tzinfo=timezone.utc)
    assert request.expected_duration == 14
    assert request.items[0].quantity == 3
    assert request.items[0].item_status == "pending"
    assert request.items[0].fulfillment_details[0].fulfilled_at == datetime(
        2025, 1, 2, 12, 0, tzinfo=timezone.utc
    )
    assert request.items[1].quantity == 1
    assert request.approval.approvers[0].required is True
    assert request.item_count == 2
    assert request.total_quantity == 4


def test_items_not_a_list_becomes_empty():
    request = normalize_request({"items": {"0": {"assetType": "Desk"}}}, now=NOW)
    assert request.items == []


def test_normalization_is_idempotent():
    once = normalize_request(_legacy_record(), doc_id="doc-1", now=NOW)
    twice = normalize_request(once, now=NOW)
    assert twice == once


def test_normalization_is_idempotent_for_empty_record():
    once = normalize_request({}, doc_id="x", now=NOW)
    assert normalize_request(once, now=NOW) == once


def test_to_document_uses_stored_layout():
    request = normalize_request(_legacy_record(), doc_id="doc-1", now=NOW)
    doc = to_document(request)

    assert "id" not in doc
    assert "createdAt" not in doc
    assert "updatedAt" not in doc
    assert "itemCount" not in doc
    assert doc["requestId"] == "REQ-2025-042"
    assert doc["items"][0]["itemStatus"] == "pending"
    assert doc["approval"]["currentApproverIndex"] == 0


def test_stored_approved_status_with_unapproved_required_approver_is_pending():
    approval = normalize_approval(
        {
            "status": "approved",
            "approvers": [
                {"role": "admin", "required": True, "approved": True},
                {"role": "finance", "required": True, "approved": False},
            ],
        },
        NOW,
    )
    assert approval.status == "pending"


def test_stored_pending_status_with_all_required_approved_is_approved():
    approval = normalize_approval(
        {
            "status": "pending",
            "approvers": [
                {"role": "admin", "required": True, "approved": True},
                {"role": "observer", "required": False, "approved": False},
            ],
        },
        NOW,
    )
    assert approval.status == "approved"


def test_empty_approver_list_gets_default_chain():
    approval = normalize_approval({"approvers": [], "status": "approved"}, NOW)
    assert [a.role for a in approval.approvers] == ["admin"]
    assert approval.status == "pending"


def test_specifications_keys_are_not_date_decoded():
    request = normalize_request(
        {
            "items": [
                {
                    "assetType": "Laptop",
                    "quantity": 1,
                    "specifications": {"neededBy": "docking station first", "createdAt": 2019},
                }
            ]
        },
        now=NOW,
    )
    assert request.items[0].specifications == {
        "neededBy": "docking station first",
        "createdAt": 2019,
    }
