"""
Request service: create, approve, reject, fulfill, update, cancel, delete.

Every mutation is read-modify-write: read the current document, derive the
new state with the lifecycle rules, write the changed sub-structures back.
By default there is no version check, so two writers racing on the same
request are last-writer-wins per written field (a concurrent reject and
fulfill can leave ``status`` and ``approval`` disagreeing). With
``optimistic_writes`` enabled the ``updatedAt`` that was read is sent with the
write and the store rejects it if the document moved on.

Public methods never raise; they return a ``ServiceResponse``.
"""

import random
from collections.abc import Mapping
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional, Sequence, Union

from pydantic import ValidationError
import structlog

from assettrack.errors import ErrorCode, ServiceError
from assettrack.schemas.common import ServiceResponse
from assettrack.schemas.filters import RequestFilter
from assettrack.schemas.request import (
    AssetRequest,
    FulfillRequest,
    RequestCreate,
)
from assettrack.services import lifecycle
from assettrack.services.normalizer import (
    decode_date,
    default_approval,
    items_to_document,
    normalize_item,
    normalize_request,
    to_document,
)
from assettrack.services.query_engine import QueryResult, RequestQueryEngine
from assettrack.store.base import (
    DocumentStore,
    StoreConflictError,
    StoreError,
    StoreNotFoundError,
    utcnow,
)

logger = structlog.get_logger()

IMMUTABLE_FIELDS = ("id", "requestId", "createdAt")


def _camel(key: str) -> str:
    head, *rest = key.split("_")
    return head + "".join(part[:1].upper() + part[1:] for part in rest)


def _validation_message(exc: ValidationError) -> str:
    first = exc.errors()[0] if exc.errors() else {}
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first.get('msg', 'invalid input')}" if location else str(exc)


class RequestService:
    def __init__(
        self,
        store: DocumentStore,
        collection: str = "requests",
        in_limit: int = 10,
        optimistic_writes: bool = False,
        clock: Optional[Callable[[], datetime]] = None,
        rng: Optional[random.Random] = None,
    ):
        self.store = store
        self.collection = collection
        self.optimistic_writes = optimistic_writes
        self.queries = RequestQueryEngine(store, collection, in_limit=in_limit)
        self._clock = clock or utcnow
        self._rng = rng

    # ---------- plumbing ----------

    async def _load(self, request_id: str) -> tuple[dict, AssetRequest]:
        raw = await self.store.get_by_id(self.collection, request_id)
        if raw is None:
            raise ServiceError(ErrorCode.NOT_FOUND, f"Request {request_id} not found")
        return raw, normalize_request(raw, doc_id=request_id)

    async def _write(self, request_id: str, raw: dict, partial: dict) -> None:
        expected = raw.get("updatedAt") if self.optimistic_writes else None
        await self.store.update(
            self.collection, request_id, partial, expected_updated_at=expected
        )

    async def _current(self, request_id: str) -> Optional[AssetRequest]:
        raw = await self.store.get_by_id(self.collection, request_id)
        return normalize_request(raw, doc_id=request_id) if raw else None

    async def _guarded(
        self,
        action: str,
        request_id: Optional[str],
        op: Callable[[], Awaitable[ServiceResponse]],
    ) -> ServiceResponse:
        try:
            return await op()
        except ServiceError as e:
            logger.warning(f"{action}_rejected", request_id=request_id, code=e.code, error=e.message)
            return ServiceResponse.fail(e.code, e.message)
        except ValidationError as e:
            message = _validation_message(e)
            logger.warning(f"{action}_invalid", request_id=request_id, error=message)
            return ServiceResponse.fail(ErrorCode.VALIDATION, message)
        except StoreNotFoundError as e:
            logger.warning(f"{action}_not_found", request_id=request_id, error=str(e))
            return ServiceResponse.fail(ErrorCode.NOT_FOUND, f"Request {request_id} not found")
        except StoreConflictError as e:
            logger.warning(f"{action}_conflict", request_id=request_id, error=str(e))
            return ServiceResponse.fail(ErrorCode.CONFLICT, str(e))
        except StoreError as e:
            logger.error(f"{action}_store_failed", request_id=request_id, error=str(e))
            return ServiceResponse.fail(ErrorCode.STORE_UNAVAILABLE, str(e) or "Store unavailable")
        except Exception as e:
            logger.exception(f"{action}_failed", request_id=request_id)
            return ServiceResponse.fail(ErrorCode.INTERNAL, str(e) or f"Failed to {action.replace('_', ' ')}")

    # ---------- reads ----------

    async def list_requests(self, filters: Optional[RequestFilter] = None) -> QueryResult:
        return await self.queries.run(filters)

    async def list_for_locations(
        self, location_ids: Sequence[str], filters: Optional[RequestFilter] = None
    ) -> QueryResult:
        return await self.queries.run_scoped(location_ids, filters)

    async def get_request(self, request_id: str) -> Optional[AssetRequest]:
        """Canonical request or None. A store failure also reads as None."""
        try:
            return await self._current(request_id)
        except StoreError as e:
            logger.warning("request_get_failed", request_id=request_id, error=str(e))
            return None

    async def get(self, request_id: str) -> ServiceResponse:
        async def op() -> ServiceResponse:
            _, request = await self._load(request_id)
            return ServiceResponse.ok("Request found", data=request)

        return await self._guarded("request_get", request_id, op)

    # ---------- create ----------

    async def create(self, payload: Union[RequestCreate, Mapping]) -> ServiceResponse:
        async def op() -> ServiceResponse:
            body = payload if isinstance(payload, RequestCreate) else RequestCreate.model_validate(payload)
            now = self._clock()
            request = AssetRequest(
                request_id=lifecycle.generate_request_code(now, self._rng),
                requester_id=body.requester_id,
                requester_name=body.requester_name,
                requester_email=body.requester_email,
                location_id=body.location_id,
                location_name=body.location_name,
                department=body.department,
                status="pending",
                priority=body.priority,
                items=[normalize_item(i.model_dump(by_alias=True)) for i in body.items],
                approval=default_approval(now),
                notes=body.notes,
                needed_by=decode_date(body.needed_by),
                expected_duration=body.expected_duration,
            )
            doc_id = await self.store.create(self.collection, to_document(request))
            created = await self._current(doc_id) or request.model_copy(update={"id": doc_id})
            logger.info(
                "request_created",
                request_id=doc_id,
                code=request.request_id,
                location_id=request.location_id,
                items=len(request.items),
            )
            return ServiceResponse.ok(
                "Request submitted successfully. Waiting for admin approval.",
                data={"id": doc_id, "requestId": request.request_id, "request": created},
            )

        return await self._guarded("request_create", None, op)

    # ---------- approval ----------

    async def approve(self, request_id: str, approved_by: Optional[str] = None) -> ServiceResponse:
        async def op() -> ServiceResponse:
            raw, request = await self._load(request_id)
            outcome = lifecycle.apply_admin_approval(request.approval)
            await self._write(
                request_id,
                raw,
                {
                    "status": outcome.request_status,
                    "approval": outcome.approval.model_dump(by_alias=True),
                },
            )
            logger.info(
                "request_approved",
                request_id=request_id,
                status=outcome.request_status,
                approved_by=approved_by,
            )
            message = (
                "Request approved successfully"
                if outcome.all_approved
                else "Approval recorded; waiting on remaining approvers"
            )
            return ServiceResponse.ok(message, data=await self._current(request_id))

        return await self._guarded("request_approve", request_id, op)

    async def reject(
        self, request_id: str, reason: str, rejected_by: Optional[str] = None
    ) -> ServiceResponse:
        async def op() -> ServiceResponse:
            if not reason or not reason.strip():
                raise ServiceError(ErrorCode.VALIDATION, "A rejection reason is required")
            raw, _ = await self._load(request_id)
            now = self._clock()
            await self._write(
                request_id,
                raw,
                {
                    "status": "rejected",
                    "approval": lifecycle.rejected_approval(reason, now, rejected_by),
                    "rejectionReason": reason,
                },
            )
            logger.info("request_rejected", request_id=request_id, rejected_by=rejected_by)
            return ServiceResponse.ok("Request rejected", data=await self._current(request_id))

        return await self._guarded("request_reject", request_id, op)

    # ---------- fulfillment ----------

    async def fulfill(
        self,
        request_id: str,
        payload: Union[FulfillRequest, Mapping],
        fulfilled_by: str = "",
    ) -> ServiceResponse:
        async def op() -> ServiceResponse:
            body = payload if isinstance(payload, FulfillRequest) else FulfillRequest.model_validate(payload)
            raw, request = await self._load(request_id)
            outcome = lifecycle.apply_fulfillment(
                request.items, body.items, fulfilled_by, self._clock(), body.notes
            )
            await self._write(
                request_id,
                raw,
                {
                    "items": items_to_document(outcome.items),
                    "status": outcome.request_status,
                },
            )
            logger.info(
                "request_fulfilled",
                request_id=request_id,
                status=outcome.request_status,
                items_touched=outcome.touched,
                fulfilled_by=fulfilled_by,
            )
            message = (
                "Request fulfilled successfully"
                if outcome.request_status == "fulfilled"
                else "Request partially fulfilled"
            )
            return ServiceResponse.ok(message, data=await self._current(request_id))

        return await self._guarded("request_fulfill", request_id, op)

    # ---------- generic patch / cancel / delete ----------

    def _clean_patch(self, updates: Mapping) -> dict:
        patch: dict[str, Any] = {}
        for key, value in updates.items():
            name = _camel(key)
            if name in IMMUTABLE_FIELDS or name == "updatedAt":
                continue
            patch[name] = value
        if isinstance(patch.get("items"), list):
            patch["items"] = items_to_document([normalize_item(i) for i in patch["items"]])
        if "neededBy" in patch:
            patch["neededBy"] = decode_date(patch["neededBy"])
        return patch

    async def update(self, request_id: str, updates: Mapping) -> ServiceResponse:
        async def op() -> ServiceResponse:
            raw, _ = await self._load(request_id)
            patch = self._clean_patch(updates)
            await self._write(request_id, raw, patch)
            logger.info("request_updated", request_id=request_id, fields=sorted(patch))
            return ServiceResponse.ok(
                "Request updated successfully", data=await self._current(request_id)
            )

        return await self._guarded("request_update", request_id, op)

    async def cancel(self, request_id: str, actor_id: str) -> ServiceResponse:
        async def op() -> ServiceResponse:
            raw, request = await self._load(request_id)
            if request.requester_id != actor_id:
                raise ServiceError(ErrorCode.FORBIDDEN, "Only the requester can cancel this request")
            if not lifecycle.is_cancellable(request, actor_id):
                raise ServiceError(
                    ErrorCode.VALIDATION, f"A {request.status} request cannot be cancelled"
                )
            await self._write(
                request_id,
                raw,
                {
                    "status": "cancelled",
                    "items": items_to_document(lifecycle.cancel_items(request.items)),
                },
            )
            logger.info("request_cancelled", request_id=request_id, actor_id=actor_id)
            return ServiceResponse.ok("Request cancelled", data=await self._current(request_id))

        return await self._guarded("request_cancel", request_id, op)

    async def delete(self, request_id: str) -> ServiceResponse:
        async def op() -> ServiceResponse:
            await self._load(request_id)
            await self.store.delete(self.collection, request_id)
            logger.info("request_deleted", request_id=request_id)
            return ServiceResponse.ok("Request deleted successfully")

        return await self._guarded("request_delete", request_id, op)
