from datetime import datetime
from typing import List, Optional

from pydantic import Field

from assettrack.schemas.request import CamelModel


class RequestFilter(CamelModel):
    """Every field is optional; an absent or empty field imposes no constraint."""

    status: Optional[List[str]] = None
    priority: Optional[List[str]] = None
    location_id: Optional[str] = None
    department: Optional[str] = None
    requester_id: Optional[str] = None
    search_term: Optional[str] = Field(None, max_length=200)
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
