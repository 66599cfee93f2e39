"""
Admin request routes: unrestricted listing, approval, rejection,
fulfillment, patching and hard delete.
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
import structlog

from assettrack.container import get_admin_service
from assettrack.errors import ErrorCode, error_detail
from assettrack.middleware.authorization import ADMIN, require_roles
from assettrack.routes.dependencies import envelope, request_filter_params
from assettrack.schemas.common import RequestStats
from assettrack.schemas.filters import RequestFilter
from assettrack.schemas.request import (
    AssetRequest,
    FulfillRequest,
    RejectRequest,
    RequestUpdate,
)
from assettrack.services.admin_requests import AdminRequestService

logger = structlog.get_logger()
router = APIRouter()


# ---------- LIST / GET ----------


@router.get("", response_model=List[AssetRequest])
async def list_requests(
    filters: RequestFilter = Depends(request_filter_params),
    current_user: dict = Depends(require_roles(ADMIN)),
    service: AdminRequestService = Depends(get_admin_service),
):
    requests = await service.get_requests(filters)
    logger.info("admin_request_list", count=len(requests), user=current_user["user_id"])
    return requests


@router.get("/pending", response_model=List[AssetRequest])
async def list_pending_requests(
    current_user: dict = Depends(require_roles(ADMIN)),
    service: AdminRequestService = Depends(get_admin_service),
):
    return await service.get_pending_requests()


@router.get("/stats", response_model=RequestStats)
async def request_stats(
    filters: RequestFilter = Depends(request_filter_params),
    current_user: dict = Depends(require_roles(ADMIN)),
    service: AdminRequestService = Depends(get_admin_service),
):
    return await service.get_stats(filters)


@router.get("/{request_id}", response_model=AssetRequest)
async def get_request(
    request_id: str,
    current_user: dict = Depends(require_roles(ADMIN)),
    service: AdminRequestService = Depends(get_admin_service),
):
    request = await service.get_request(request_id)
    if request is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=error_detail(ErrorCode.NOT_FOUND, "Request not found"),
        )
    return request


# ---------- WORKFLOW ----------


@router.post("/{request_id}/approve")
async def approve_request(
    request_id: str,
    current_user: dict = Depends(require_roles(ADMIN)),
    service: AdminRequestService = Depends(get_admin_service),
):
    return envelope(await service.approve_request(request_id, admin_id=current_user["user_id"]))


@router.post("/{request_id}/reject")
async def reject_request(
    request_id: str,
    body: RejectRequest,
    current_user: dict = Depends(require_roles(ADMIN)),
    service: AdminRequestService = Depends(get_admin_service),
):
    return envelope(
        await service.reject_request(request_id, body.reason, admin_id=current_user["user_id"])
    )


@router.post("/{request_id}/fulfill")
async def fulfill_request(
    request_id: str,
    body: FulfillRequest,
    current_user: dict = Depends(require_roles(ADMIN)),
    service: AdminRequestService = Depends(get_admin_service),
):
    return envelope(
        await service.fulfill_request(request_id, body, admin_id=current_user["user_id"])
    )


# ---------- UPDATE / DELETE ----------


@router.patch("/{request_id}")
async def update_request(
    request_id: str,
    body: RequestUpdate,
    current_user: dict = Depends(require_roles(ADMIN)),
    service: AdminRequestService = Depends(get_admin_service),
):
    updates = body.model_dump(by_alias=True, exclude_unset=True)
    return envelope(await service.update_request(request_id, updates))


@router.delete("/{request_id}")
async def delete_request(
    request_id: str,
    current_user: dict = Depends(require_roles(ADMIN)),
    service: AdminRequestService = Depends(get_admin_service),
):
    logger.info("admin_request_delete", request_id=request_id, user=current_user["user_id"])
    return envelope(await service.delete_request(request_id))
