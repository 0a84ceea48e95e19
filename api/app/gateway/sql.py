"""SQLAlchemy-backed gateway over the users / products / reviews tables.

Design notes:
- All statements are Core-level (insert/update/select on the mapped tables),
  so there is no ORM identity map to go stale between a read and a write.
- increment() is a single column-expression UPDATE ... RETURNING; there is no
  Python-side read-modify-write that could race.
- Outside transaction() every write commits immediately. Inside it, writes
  are flushed only and committed together when the scope exits cleanly.
- Change notifications are published only after a successful commit.
"""

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

from sqlalchemy import insert, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.errors import NotFoundError, WriteError
from app.gateway.base import (
    PRODUCTS,
    REVIEWS,
    USERS,
    Direction,
    OnChange,
    Unsubscribe,
    check_collection,
)
from app.gateway.feed import ChangeFeed
from app.models.product import Product
from app.models.review import Review
from app.models.user import User

MODELS = {
    USERS: User,
    PRODUCTS: Product,
    REVIEWS: Review,
}


def _model(collection: str):
    check_collection(collection)
    return MODELS[collection]


def _order_clause(model, order_field: str, direction: Direction):
    column = getattr(model, order_field)
    return column.desc() if direction == "desc" else column.asc()


class SqlGateway:
    def __init__(self, session: AsyncSession, feed: ChangeFeed) -> None:
        self._session = session
        self.feed = feed
        self._in_transaction = False
        self._touched: set[str] = set()

    async def _write(self, stmt, collection: str, id: str):
        try:
            return await self._session.execute(stmt)
        except SQLAlchemyError as exc:
            await self._session.rollback()
            raise WriteError(f"Write to {collection}/{id} failed") from exc

    async def _committed(self, collection: str) -> None:
        if self._in_transaction:
            self._touched.add(collection)
            return
        try:
            await self._session.commit()
        except SQLAlchemyError as exc:
            await self._session.rollback()
            raise WriteError(f"Commit on {collection} failed") from exc
        await self.feed.publish([collection])

    async def create(self, collection: str, id: str, record: dict) -> None:
        model = _model(collection)
        await self._write(insert(model).values(**{**record, "id": id}), collection, id)
        await self._committed(collection)

    async def update(self, collection: str, id: str, patch: dict) -> None:
        model = _model(collection)
        result = await self._write(
            update(model)
            .where(model.id == id)
            .values(**patch)
            .execution_options(synchronize_session=False),
            collection,
            id,
        )
        if result.rowcount == 0:
            raise NotFoundError(f"{collection}/{id} not found")
        await self._committed(collection)

    async def get(self, collection: str, id: str, for_update: bool = False) -> Optional[dict]:
        model = _model(collection)
        stmt = select(model.__table__).where(model.id == id)
        if for_update:
            stmt = stmt.with_for_update()
        result = await self._session.execute(stmt)
        row = result.mappings().one_or_none()
        return dict(row) if row is not None else None

    async def query_ordered(
        self, collection: str, order_field: str, direction: Direction = "desc"
    ) -> list[dict]:
        model = _model(collection)
        result = await self._session.execute(
            select(model.__table__).order_by(_order_clause(model, order_field, direction))
        )
        return [dict(row) for row in result.mappings().all()]

    async def query(
        self,
        collection: str,
        filters: dict[str, Any],
        order_field: Optional[str] = None,
        direction: Direction = "desc",
    ) -> list[dict]:
        model = _model(collection)
        stmt = select(model.__table__).where(
            *(getattr(model, name) == value for name, value in filters.items())
        )
        if order_field is not None:
            stmt = stmt.order_by(_order_clause(model, order_field, direction))
        result = await self._session.execute(stmt)
        return [dict(row) for row in result.mappings().all()]

    async def array_union(self, collection: str, id: str, field: str, value: Any) -> None:
        # Row lock so concurrent appends to the same list cannot drop each other
        record = await self.get(collection, id, for_update=True)
        if record is None:
            raise NotFoundError(f"{collection}/{id} not found")
        if value in record[field]:
            return
        model = _model(collection)
        await self._write(
            update(model)
            .where(model.id == id)
            .values({field: [*record[field], value]})
            .execution_options(synchronize_session=False),
            collection,
            id,
        )
        await self._committed(collection)

    async def increment(self, collection: str, id: str, field: str, delta: int) -> int:
        model = _model(collection)
        column = getattr(model, field)
        result = await self._write(
            update(model)
            .where(model.id == id)
            .values({field: column + delta})
            .returning(column)
            .execution_options(synchronize_session=False),
            collection,
            id,
        )
        new_value = result.scalar_one_or_none()
        if new_value is None:
            raise NotFoundError(f"{collection}/{id} not found")
        await self._committed(collection)
        return new_value

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        if self._in_transaction:
            yield
            return

        self._in_transaction = True
        try:
            yield
        except BaseException:
            await self._session.rollback()
            self._touched.clear()
            raise
        else:
            try:
                await self._session.commit()
            except SQLAlchemyError as exc:
                await self._session.rollback()
                self._touched.clear()
                raise WriteError("Transaction commit failed") from exc
        finally:
            self._in_transaction = False

        touched, self._touched = self._touched, set()
        if touched:
            await self.feed.publish(touched)

    def subscribe(
        self, collection: str, order_field: str, direction: Direction, on_change: OnChange
    ) -> Unsubscribe:
        check_collection(collection)
        return self.feed.subscribe(collection, order_field, direction, on_change)


def sql_change_feed(session_factory: async_sessionmaker) -> ChangeFeed:
    """Build the app-wide feed; each snapshot is loaded on its own session."""

    async def load(collection: str, order_field: str, direction: str) -> list[dict]:
        async with session_factory() as session:
            return await SqlGateway(session, feed).query_ordered(collection, order_field, direction)

    feed = ChangeFeed(load)
    return feed
