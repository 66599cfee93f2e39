import random
from datetime import datetime, timedelta, timezone

import pytest
from httpx import ASGITransport, AsyncClient

from assettrack.container import container_for_store
from assettrack.main import app
from assettrack.services.admin_requests import AdminRequestService
from assettrack.services.auth_service import create_access_token
from assettrack.services.facilitator_requests import FacilitatorRequestService
from assettrack.services.request_service import RequestService
from assettrack.store.memory import InMemoryDocumentStore

BASE_TIME = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


class StepClock:
    """Deterministic clock: every call is one minute after the previous one."""

    def __init__(self, start: datetime = BASE_TIME, step: timedelta = timedelta(minutes=1)):
        self.current = start - step
        self.step = step

    def __call__(self) -> datetime:
        self.current += self.step
        return self.current


@pytest.fixture
def clock():
    return StepClock()


@pytest.fixture
def store(clock):
    return InMemoryDocumentStore(clock=clock)


@pytest.fixture
def request_service(store, clock):
    return RequestService(store, clock=clock, rng=random.Random(7))


@pytest.fixture
def admin_service(request_service):
    return AdminRequestService(request_service)


@pytest.fixture
def facilitator_service(request_service):
    return FacilitatorRequestService(request_service)


def make_payload(items=None, **overrides) -> dict:
    payload = {
        "requesterId": "fac-1",
        "requesterName": "Dana Reyes",
        "requesterEmail": "dana@example.com",
        "locationId": "loc-north",
        "locationName": "North Campus",
        "department": "Engineering",
        "priority": "medium",
        "items": items or [{"assetType": "Monitor", "category": "Display", "quantity": 2}],
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def payload_factory():
    return make_payload


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


@pytest.fixture
def admin_token():
    return create_access_token(
        user_id="admin-1",
        role="admin",
        email="admin@example.com",
        name="Ops Admin",
    )


@pytest.fixture
def facilitator_token():
    return create_access_token(
        user_id="fac-1",
        role="facilitator",
        email="dana@example.com",
        name="Dana Reyes",
        location_ids=["loc-north", "loc-east"],
    )


@pytest.fixture
def admin_headers(admin_token):
    return {"Authorization": f"Bearer {admin_token}"}


@pytest.fixture
def facilitator_headers(facilitator_token):
    return {"Authorization": f"Bearer {facilitator_token}"}


@pytest.fixture
def container(store):
    return container_for_store(store)


@pytest.fixture
async def client(container):
    app.state.container = container
    try:
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
            yield c
    finally:
        app.state.container = None
