from datetime import datetime
from typing import List, Optional

from fastapi import Query

from assettrack.errors import raise_for_response
from assettrack.schemas.common import ServiceResponse
from assettrack.schemas.filters import RequestFilter


def request_filter_params(
    req_status: Optional[List[str]] = Query(None, alias="status"),
    priority: Optional[List[str]] = Query(None),
    location_id: Optional[str] = Query(None),
    department: Optional[str] = Query(None),
    requester_id: Optional[str] = Query(None),
    search: Optional[str] = Query(None, max_length=200),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
) -> RequestFilter:
    return RequestFilter(
        status=req_status or None,
        priority=priority or None,
        location_id=location_id,
        department=department,
        requester_id=requester_id,
        search_term=search,
        date_from=date_from,
        date_to=date_to,
    )


def envelope(response: ServiceResponse) -> dict:
    """Raise for a failed envelope, otherwise serialize it in the stored camelCase layout."""
    raise_for_response(response)
    return response.model_dump(mode="json", by_alias=True, exclude_none=True)
