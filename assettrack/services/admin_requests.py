"""
Administrative view: unrestricted reads plus every mutation.

Reads degrade to an empty list when the store fails (logged by the query
engine); callers that need to tell "no match" from "failed" use
``query_requests`` which returns the underlying ``QueryResult``.
"""

from datetime import datetime
from typing import Mapping, Optional, Union

from assettrack.schemas.common import RequestStats, ServiceResponse
from assettrack.schemas.filters import RequestFilter
from assettrack.schemas.request import AssetRequest, FulfillRequest
from assettrack.services.query_engine import QueryResult
from assettrack.services.request_helpers import compute_stats
from assettrack.services.request_service import RequestService


class AdminRequestService:
    def __init__(self, requests: RequestService):
        self.requests = requests

    # ---------- reads ----------

    async def query_requests(self, filters: Optional[RequestFilter] = None) -> QueryResult:
        return await self.requests.list_requests(filters)

    async def get_requests(self, filters: Optional[RequestFilter] = None) -> list[AssetRequest]:
        return (await self.query_requests(filters)).or_empty()

    async def get_request(self, request_id: str) -> Optional[AssetRequest]:
        return await self.requests.get_request(request_id)

    async def get_pending_requests(self) -> list[AssetRequest]:
        return await self.get_requests(RequestFilter(status=["pending", "under_review"]))

    async def get_requests_by_status(self, statuses: list[str]) -> list[AssetRequest]:
        return await self.get_requests(RequestFilter(status=statuses))

    async def get_requests_by_location(self, location_id: str) -> list[AssetRequest]:
        return await self.get_requests(RequestFilter(location_id=location_id))

    async def get_requests_by_date_range(
        self, date_from: datetime, date_to: datetime
    ) -> list[AssetRequest]:
        return await self.get_requests(RequestFilter(date_from=date_from, date_to=date_to))

    async def get_stats(self, filters: Optional[RequestFilter] = None) -> RequestStats:
        return compute_stats(await self.get_requests(filters))

    # ---------- mutations ----------

    async def approve_request(self, request_id: str, admin_id: Optional[str] = None) -> ServiceResponse:
        return await self.requests.approve(request_id, approved_by=admin_id)

    async def reject_request(
        self, request_id: str, reason: str, admin_id: Optional[str] = None
    ) -> ServiceResponse:
        return await self.requests.reject(request_id, reason, rejected_by=admin_id)

    async def fulfill_request(
        self,
        request_id: str,
        fulfillment: Union[FulfillRequest, Mapping],
        admin_id: str = "",
    ) -> ServiceResponse:
        return await self.requests.fulfill(request_id, fulfillment, fulfilled_by=admin_id)

    async def update_request(self, request_id: str, updates: Mapping) -> ServiceResponse:
        return await self.requests.update(request_id, updates)

    async def delete_request(self, request_id: str) -> ServiceResponse:
        return await self.requests.delete(request_id)
