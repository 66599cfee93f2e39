"""
Canonical request shapes.

Attributes are snake_case; every model reads and writes the stored camelCase
names through aliases, so ``model_dump(by_alias=True)`` is the persisted
document layout.
"""

from datetime import date, datetime
from typing import Any, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel

REQUEST_STATUSES = (
    "draft",
    "pending",
    "under_review",
    "approved",
    "rejected",
    "fulfilled",
    "cancelled",
    "partially_fulfilled",
)
TERMINAL_STATUSES = ("rejected", "fulfilled", "cancelled")
PRIORITIES = ("low", "medium", "high", "urgent")
ITEM_STATUSES = ("pending", "fulfilled", "cancelled", "partial")
URGENCIES = ("low", "normal", "high", "urgent")
APPROVAL_STATUSES = ("pending", "approved", "rejected")

RequestStatus = Literal[
    "draft",
    "pending",
    "under_review",
    "approved",
    "rejected",
    "fulfilled",
    "cancelled",
    "partially_fulfilled",
]
Priority = Literal["low", "medium", "high", "urgent"]
ItemStatus = Literal["pending", "fulfilled", "cancelled", "partial"]
Urgency = Literal["low", "normal", "high", "urgent"]
ApprovalStatus = Literal["pending", "approved", "rejected"]

ADMIN_ROLE = "admin"


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------- canonical model ----------


class FulfillmentDetail(CamelModel):
    fulfilled_by: str = ""
    fulfilled_at: Optional[datetime] = None
    quantity: int = 0
    notes: Optional[str] = None


class RequestItem(CamelModel):
    asset_type: str = ""
    category: str = ""
    quantity: int = 1
    item_status: ItemStatus = "pending"
    purpose: Optional[str] = None
    specifications: dict[str, Any] = Field(default_factory=dict)
    urgency: Optional[Urgency] = None
    fulfillment_details: List[FulfillmentDetail] = Field(default_factory=list)

    @property
    def total_fulfilled(self) -> int:
        """Always re-derived from the detail sequence."""
        return sum(d.quantity for d in self.fulfillment_details)


class Approver(CamelModel):
    role: str = ADMIN_ROLE
    required: bool = True
    approved: bool = False


class Approval(CamelModel):
    approvers: List[Approver] = Field(default_factory=list)
    current_approver_index: int = 0
    requested_at: Optional[datetime] = None
    status: ApprovalStatus = "pending"
    rejected_by: Optional[str] = None
    rejected_at: Optional[datetime] = None
    reason: Optional[str] = None


class AssetRequest(CamelModel):
    id: str = ""
    request_id: str = ""
    requester_id: str = ""
    requester_name: str = ""
    requester_email: str = ""
    location_id: str = ""
    location_name: str = ""
    department: str = ""
    status: RequestStatus = "pending"
    priority: Priority = "medium"
    items: List[RequestItem] = Field(default_factory=list)
    approval: Approval = Field(default_factory=Approval)
    notes: Optional[str] = None
    needed_by: Optional[datetime] = None
    expected_duration: int = 0
    rejection_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @computed_field(alias="itemCount")
    @property
    def item_count(self) -> int:
        return len(self.items)

    @computed_field(alias="totalQuantity")
    @property
    def total_quantity(self) -> int:
        return sum(item.quantity for item in self.items)


# ---------- caller input ----------


class RequestItemCreate(CamelModel):
    asset_type: str = Field(..., min_length=1, max_length=200)
    category: str = Field("", max_length=100)
    quantity: int = Field(..., ge=1, le=100000)
    purpose: Optional[str] = Field(None, max_length=1000)
    specifications: dict[str, Any] = Field(default_factory=dict)
    urgency: Optional[Urgency] = None


class RequestCreate(CamelModel):
    requester_id: str = ""
    requester_name: str = ""
    requester_email: str = ""
    location_id: str = Field(..., min_length=1)
    location_name: str = ""
    department: str = ""
    priority: Priority = "medium"
    items: List[RequestItemCreate] = Field(..., min_length=1, max_length=100)
    notes: Optional[str] = Field(None, max_length=2000)
    needed_by: Optional[Union[datetime, date, str]] = None
    expected_duration: int = Field(0, ge=0)


class RequestUpdate(CamelModel):
    """Editable fields accepted over HTTP; the service itself takes any patch."""

    location_id: Optional[str] = None
    location_name: Optional[str] = None
    department: Optional[str] = None
    priority: Optional[Priority] = None
    items: Optional[List[RequestItemCreate]] = None
    notes: Optional[str] = Field(None, max_length=2000)
    needed_by: Optional[Union[datetime, date, str]] = None
    expected_duration: Optional[int] = Field(None, ge=0)


class FulfillmentLine(CamelModel):
    item_id: str = Field(..., min_length=1)
    fulfilled_quantity: int = Field(..., ge=1)
    notes: Optional[str] = Field(None, max_length=1000)


class FulfillRequest(CamelModel):
    notes: Optional[str] = Field(None, max_length=2000)
    items: List[FulfillmentLine] = Field(default_factory=list)


class RejectRequest(CamelModel):
    reason: str = Field(..., min_length=3, max_length=1000)
