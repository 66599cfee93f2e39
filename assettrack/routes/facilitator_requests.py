"""
Facilitator request routes: everything is limited to the locations carried
in the caller's token. Facilitators raise and cancel requests but cannot
approve, fulfill or delete them.
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
import structlog

from assettrack.container import get_facilitator_service
from assettrack.errors import ErrorCode, error_detail
from assettrack.middleware.authorization import FACILITATOR, require_locations, require_roles
from assettrack.routes.dependencies import envelope, request_filter_params
from assettrack.schemas.common import RequestStats
from assettrack.schemas.filters import RequestFilter
from assettrack.schemas.request import AssetRequest, RequestCreate
from assettrack.services.facilitator_requests import FacilitatorRequestService

logger = structlog.get_logger()
router = APIRouter()


@router.get("", response_model=List[AssetRequest])
async def list_assigned_requests(
    filters: RequestFilter = Depends(request_filter_params),
    current_user: dict = Depends(require_roles(FACILITATOR)),
    service: FacilitatorRequestService = Depends(get_facilitator_service),
):
    locations = require_locations(current_user)
    requests = await service.get_assigned_requests(locations, filters)
    logger.info("facilitator_request_list", count=len(requests), locations=len(locations))
    return requests


@router.get("/pending", response_model=List[AssetRequest])
async def list_pending_requests(
    current_user: dict = Depends(require_roles(FACILITATOR)),
    service: FacilitatorRequestService = Depends(get_facilitator_service),
):
    return await service.get_pending_requests(require_locations(current_user))


@router.get("/awaiting-fulfillment", response_model=List[AssetRequest])
async def list_awaiting_fulfillment(
    current_user: dict = Depends(require_roles(FACILITATOR)),
    service: FacilitatorRequestService = Depends(get_facilitator_service),
):
    return await service.get_requests_needing_fulfillment(require_locations(current_user))


@router.get("/mine", response_model=List[AssetRequest])
async def list_my_requests(
    current_user: dict = Depends(require_roles(FACILITATOR)),
    service: FacilitatorRequestService = Depends(get_facilitator_service),
):
    return await service.get_my_requests(current_user["user_id"], require_locations(current_user))


@router.get("/stats", response_model=RequestStats)
async def request_stats(
    current_user: dict = Depends(require_roles(FACILITATOR)),
    service: FacilitatorRequestService = Depends(get_facilitator_service),
):
    return await service.get_stats(require_locations(current_user))


@router.get("/{request_id}", response_model=AssetRequest)
async def get_request(
    request_id: str,
    current_user: dict = Depends(require_roles(FACILITATOR)),
    service: FacilitatorRequestService = Depends(get_facilitator_service),
):
    request = await service.get_request(request_id, require_locations(current_user))
    if request is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=error_detail(ErrorCode.NOT_FOUND, "Request not found"),
        )
    return request


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_request(
    body: RequestCreate,
    current_user: dict = Depends(require_roles(FACILITATOR)),
    service: FacilitatorRequestService = Depends(get_facilitator_service),
):
    payload = body.model_copy(
        update={
            "requester_id": current_user["user_id"],
            "requester_name": current_user.get("name") or body.requester_name,
            "requester_email": current_user.get("email") or body.requester_email,
        }
    )
    return envelope(await service.create_request(payload, require_locations(current_user)))


@router.post("/{request_id}/cancel")
async def cancel_request(
    request_id: str,
    current_user: dict = Depends(require_roles(FACILITATOR)),
    service: FacilitatorRequestService = Depends(get_facilitator_service),
):
    return envelope(
        await service.cancel_request(
            request_id, current_user["user_id"], require_locations(current_user)
        )
    )
