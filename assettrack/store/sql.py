"""
SQLAlchemy-backed document store.

Documents live in a single ``documents`` table: store-managed keys are real
columns, everything else is one JSON blob. Predicates on ``createdAt`` /
``updatedAt`` / ``id`` hit the columns; every other field is compared through
the dialect's JSON accessors.
"""

import uuid
from datetime import date, datetime, timezone
from typing import Any, Optional, Sequence

from fastapi.encoders import jsonable_encoder
from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
import structlog

from assettrack.models.document import Document
from assettrack.store.base import (
    STORE_MANAGED_FIELDS,
    DocumentStore,
    OrderBy,
    Predicate,
    StoreConflictError,
    StoreError,
    StoreNotFoundError,
    utcnow,
)

logger = structlog.get_logger()

COLUMN_FIELDS = {
    "id": Document.id,
    "createdAt": Document.created_at,
    "updatedAt": Document.updated_at,
}


def _to_db_datetime(value: Any) -> Any:
    # Columns hold naive UTC
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    return value


def _from_db_datetime(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    return value.replace(tzinfo=timezone.utc)


def _json_accessor(field: str, sample: Any):
    element = Document.data[field]
    if isinstance(sample, bool):
        return element.as_boolean()
    if isinstance(sample, int):
        return element.as_integer()
    if isinstance(sample, float):
        return element.as_float()
    return element.as_string()


def _column_for(field: str, sample: Any):
    if field in COLUMN_FIELDS:
        return COLUMN_FIELDS[field]
    return _json_accessor(field, sample)


def _clause(predicate: Predicate):
    if predicate.op == "in":
        values = list(predicate.value)
        if predicate.field in COLUMN_FIELDS:
            values = [_to_db_datetime(v) for v in values]
        column = _column_for(predicate.field, values[0] if values else "")
        return column.in_(values)

    value = predicate.value
    if predicate.field in COLUMN_FIELDS:
        value = _to_db_datetime(value)
    elif isinstance(value, (datetime, date)):
        value = jsonable_encoder(value)
    column = _column_for(predicate.field, value)
    if predicate.op == "==":
        return column == value
    if predicate.op == "<":
        return column < value
    if predicate.op == ">":
        return column > value
    if predicate.op == "<=":
        return column <= value
    return column >= value


def _to_record(row: Document) -> dict:
    return {
        **row.data,
        "id": row.id,
        "createdAt": _from_db_datetime(row.created_at),
        "updatedAt": _from_db_datetime(row.updated_at),
    }


def _payload(record: dict) -> dict:
    return jsonable_encoder(
        {k: v for k, v in record.items() if k not in STORE_MANAGED_FIELDS}
    )


class SqlDocumentStore(DocumentStore):
    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def create(self, collection: str, record: dict) -> str:
        now = _to_db_datetime(utcnow())
        doc = Document(
            id=str(uuid.uuid4()),
            collection=collection,
            data=_payload(record),
            created_at=now,
            updated_at=now,
        )
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    session.add(doc)
        except SQLAlchemyError as e:
            logger.error("sql_store_create_failed", collection=collection, error=str(e))
            raise StoreError(str(e)) from e
        return doc.id

    async def get_by_id(self, collection: str, doc_id: str) -> Optional[dict]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(Document).where(
                        Document.collection == collection, Document.id == doc_id
                    )
                )
                row = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error("sql_store_get_failed", collection=collection, doc_id=doc_id, error=str(e))
            raise StoreError(str(e)) from e
        return _to_record(row) if row else None

    async def query(
        self,
        collection: str,
        predicates: Sequence[Predicate] = (),
        order_by: Optional[OrderBy] = None,
    ) -> list[dict]:
        q = select(Document).where(Document.collection == collection)
        for predicate in predicates:
            q = q.where(_clause(predicate))
        if order_by is not None:
            column = _column_for(order_by.field, "")
            q = q.where(column.is_not(None))
            q = q.order_by(column.desc() if order_by.descending else column.asc())
        try:
            async with self._session_factory() as session:
                result = await session.execute(q)
                rows = result.scalars().all()
        except SQLAlchemyError as e:
            logger.error("sql_store_query_failed", collection=collection, error=str(e))
            raise StoreError(str(e)) from e
        return [_to_record(row) for row in rows]

    async def update(
        self,
        collection: str,
        doc_id: str,
        partial: dict,
        *,
        expected_updated_at: Optional[datetime] = None,
    ) -> None:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    result = await session.execute(
                        select(Document)
                        .where(Document.collection == collection, Document.id == doc_id)
                        .with_for_update()
                    )
                    row = result.scalar_one_or_none()
                    if row is None:
                        raise StoreNotFoundError(f"No document {doc_id!r} in {collection!r}")

                    stmt = (
                        update(Document)
                        .where(Document.id == doc_id)
                        .values(
                            data={**row.data, **_payload(partial)},
                            updated_at=_to_db_datetime(utcnow()),
                        )
                    )
                    if expected_updated_at is not None:
                        stmt = stmt.where(
                            Document.updated_at == _to_db_datetime(expected_updated_at)
                        )
                    outcome = await session.execute(stmt)
                    if outcome.rowcount == 0:
                        raise StoreConflictError(
                            f"Document {doc_id!r} was modified by another writer"
                        )
        except SQLAlchemyError as e:
            logger.error("sql_store_update_failed", collection=collection, doc_id=doc_id, error=str(e))
            raise StoreError(str(e)) from e

    async def delete(self, collection: str, doc_id: str) -> None:
        try:
            async with self._session_factory() as session:
                async with session.begin():
                    await session.execute(
                        delete(Document).where(
                            Document.collection == collection, Document.id == doc_id
                        )
                    )
        except SQLAlchemyError as e:
            logger.error("sql_store_delete_failed", collection=collection, doc_id=doc_id, error=str(e))
            raise StoreError(str(e)) from e

    async def ping(self) -> bool:
        try:
            async with self._session_factory() as session:
                await session.execute(select(1))
        except SQLAlchemyError as e:
            logger.error("sql_store_ping_failed", error=str(e))
            return False
        return True
