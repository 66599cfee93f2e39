"""
Service container.

Built once at process start (``build_container`` in the FastAPI lifespan) and
handed to callers explicitly; routes reach it through ``get_container``.
Tests build their own container around an in-memory store.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncEngine
import structlog

from assettrack.config import Settings, settings as default_settings
from assettrack.database import close_db, create_engine, create_session_factory, init_db
from assettrack.services.admin_requests import AdminRequestService
from assettrack.services.facilitator_requests import FacilitatorRequestService
from assettrack.services.request_service import RequestService
from assettrack.store.base import DocumentStore
from assettrack.store.memory import InMemoryDocumentStore
from assettrack.store.sql import SqlDocumentStore

logger = structlog.get_logger()


@dataclass
class ServiceContainer:
    store: DocumentStore
    requests: RequestService
    admin: AdminRequestService
    facilitator: FacilitatorRequestService
    engine: Optional[AsyncEngine] = None

    async def close(self) -> None:
        await self.store.close()
        if self.engine is not None:
            await close_db(self.engine)


def container_for_store(store: DocumentStore, settings: Settings = default_settings) -> ServiceContainer:
    requests = RequestService(
        store,
        collection=settings.REQUESTS_COLLECTION,
        in_limit=settings.STORE_IN_QUERY_LIMIT,
        optimistic_writes=settings.OPTIMISTIC_WRITES,
    )
    return ServiceContainer(
        store=store,
        requests=requests,
        admin=AdminRequestService(requests),
        facilitator=FacilitatorRequestService(requests),
    )


async def build_container(settings: Settings = default_settings) -> ServiceContainer:
    if settings.STORE_BACKEND == "memory":
        logger.info("store_backend_selected", backend="memory")
        return container_for_store(InMemoryDocumentStore(), settings)

    if settings.STORE_BACKEND != "sql":
        raise ValueError(f"Unknown STORE_BACKEND {settings.STORE_BACKEND!r}")

    engine = create_engine(settings.DATABASE_URL)
    await init_db(engine)
    container = container_for_store(
        SqlDocumentStore(create_session_factory(engine)), settings
    )
    container.engine = engine
    logger.info("store_backend_selected", backend="sql", dialect=engine.dialect.name)
    return container


def get_container(request: Request) -> ServiceContainer:
    """FastAPI dependency: the container attached to the running app."""
    return request.app.state.container


def get_admin_service(request: Request) -> AdminRequestService:
    return get_container(request).admin


def get_facilitator_service(request: Request) -> FacilitatorRequestService:
    return get_container(request).facilitator
