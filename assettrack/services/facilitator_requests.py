"""
Facilitator view: everything is scoped to the caller's locations.

Only ``locationId in <locations>`` reaches the store; status, priority,
search and dates are refined on the normalized records. There is no delete
and no read outside the caller's locations.
"""

from typing import Mapping, Optional, Sequence, Union

import structlog

from assettrack.errors import ErrorCode
from assettrack.schemas.common import RequestStats, ServiceResponse
from assettrack.schemas.filters import RequestFilter
from assettrack.schemas.request import AssetRequest, RequestCreate
from assettrack.services.query_engine import QueryResult
from assettrack.services.request_helpers import compute_stats
from assettrack.services.request_service import RequestService

logger = structlog.get_logger()


class FacilitatorRequestService:
    def __init__(self, requests: RequestService):
        self.requests = requests

    # ---------- reads ----------

    async def query_assigned_requests(
        self, location_ids: Sequence[str], filters: Optional[RequestFilter] = None
    ) -> QueryResult:
        return await self.requests.list_for_locations(location_ids, filters)

    async def get_assigned_requests(
        self, location_ids: Sequence[str], filters: Optional[RequestFilter] = None
    ) -> list[AssetRequest]:
        return (await self.query_assigned_requests(location_ids, filters)).or_empty()

    async def get_pending_requests(self, location_ids: Sequence[str]) -> list[AssetRequest]:
        return await self.get_assigned_requests(location_ids, RequestFilter(status=["pending"]))

    async def get_requests_needing_fulfillment(self, location_ids: Sequence[str]) -> list[AssetRequest]:
        return await self.get_assigned_requests(location_ids, RequestFilter(status=["approved"]))

    async def get_my_requests(
        self, requester_id: str, location_ids: Sequence[str]
    ) -> list[AssetRequest]:
        return await self.get_assigned_requests(
            location_ids, RequestFilter(requester_id=requester_id)
        )

    async def get_request(
        self, request_id: str, location_ids: Sequence[str]
    ) -> Optional[AssetRequest]:
        request = await self.requests.get_request(request_id)
        if request is None or request.location_id not in location_ids:
            return None
        return request

    async def get_stats(self, location_ids: Sequence[str]) -> RequestStats:
        return compute_stats(await self.get_assigned_requests(location_ids))

    # ---------- mutations ----------

    async def create_request(
        self,
        payload: Union[RequestCreate, Mapping],
        location_ids: Sequence[str],
    ) -> ServiceResponse:
        location_id = (
            payload.location_id
            if isinstance(payload, RequestCreate)
            else payload.get("locationId", payload.get("location_id"))
        )
        if location_id not in location_ids:
            logger.warning("facilitator_create_out_of_scope", location_id=location_id)
            return ServiceResponse.fail(
                ErrorCode.FORBIDDEN, "Requests can only be raised for your own locations"
            )
        return await self.requests.create(payload)

    async def cancel_request(
        self, request_id: str, actor_id: str, location_ids: Sequence[str]
    ) -> ServiceResponse:
        if await self.get_request(request_id, location_ids) is None:
            return ServiceResponse.fail(ErrorCode.NOT_FOUND, f"Request {request_id} not found")
        return await self.requests.cancel(request_id, actor_id)
