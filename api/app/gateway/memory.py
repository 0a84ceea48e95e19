"""Process-local gateway used for development and the test suite.

Records live in plain dicts and are deep-copied on the way in and out, so
callers never share mutable state with the store. Transactions are
serialized by a single lock and undone from a per-task journal on failure.
"""

import asyncio
import copy
from contextlib import asynccontextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Optional

from app.errors import NotFoundError, WriteError
from app.gateway.base import COLLECTIONS, Direction, OnChange, Unsubscribe, check_collection
from app.gateway.feed import ChangeFeed


@dataclass
class _Journal:
    undo: list[tuple[str, str, Optional[dict]]] = field(default_factory=list)
    touched: set[str] = field(default_factory=set)


_active_journal: ContextVar[Optional[_Journal]] = ContextVar("memory_gateway_journal", default=None)


class MemoryGateway:
    def __init__(self) -> None:
        self._data: dict[str, dict[str, dict]] = {name: {} for name in COLLECTIONS}
        self._lock = asyncio.Lock()
        self.feed = ChangeFeed(self.query_ordered)

    def _table(self, collection: str) -> dict[str, dict]:
        check_collection(collection)
        return self._data[collection]

    def _remember(self, collection: str, id: str) -> None:
        journal = _active_journal.get()
        if journal is None:
            return
        journal.touched.add(collection)
        journal.undo.append((collection, id, copy.deepcopy(self._data[collection].get(id))))

    async def _changed(self, collection: str) -> None:
        # Inside a transaction, notification waits for the commit
        if _active_journal.get() is None:
            await self.feed.publish([collection])

    def _existing(self, collection: str, id: str) -> dict:
        record = self._table(collection).get(id)
        if record is None:
            raise NotFoundError(f"{collection}/{id} not found")
        return record

    async def create(self, collection: str, id: str, record: dict) -> None:
        table = self._table(collection)
        if id in table:
            raise WriteError(f"{collection}/{id} already exists")
        self._remember(collection, id)
        table[id] = copy.deepcopy({**record, "id": id})
        await self._changed(collection)

    async def update(self, collection: str, id: str, patch: dict) -> None:
        record = self._existing(collection, id)
        self._remember(collection, id)
        record.update(copy.deepcopy(patch))
        await self._changed(collection)

    async def get(self, collection: str, id: str, for_update: bool = False) -> Optional[dict]:
        record = self._table(collection).get(id)
        return copy.deepcopy(record) if record is not None else None

    async def query_ordered(
        self, collection: str, order_field: str, direction: Direction = "desc"
    ) -> list[dict]:
        records = sorted(
            self._table(collection).values(),
            key=lambda r: r[order_field],
            reverse=(direction == "desc"),
        )
        return copy.deepcopy(records)

    async def query(
        self,
        collection: str,
        filters: dict[str, Any],
        order_field: Optional[str] = None,
        direction: Direction = "desc",
    ) -> list[dict]:
        if order_field is not None:
            records = await self.query_ordered(collection, order_field, direction)
        else:
            records = copy.deepcopy(list(self._table(collection).values()))
        return [r for r in records if all(r.get(k) == v for k, v in filters.items())]

    async def array_union(self, collection: str, id: str, field: str, value: Any) -> None:
        record = self._existing(collection, id)
        if value in record[field]:
            return
        self._remember(collection, id)
        record[field] = [*record[field], copy.deepcopy(value)]
        await self._changed(collection)

    async def increment(self, collection: str, id: str, field: str, delta: int) -> int:
        record = self._existing(collection, id)
        self._remember(collection, id)
        record[field] = record[field] + delta
        await self._changed(collection)
        return record[field]

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[None]:
        if _active_journal.get() is not None:
            # Nested scopes join the outer transaction
            yield
            return

        async with self._lock:
            journal = _Journal()
            token = _active_journal.set(journal)
            try:
                yield
            except BaseException:
                for collection, id, previous in reversed(journal.undo):
                    if previous is None:
                        self._data[collection].pop(id, None)
                    else:
                        self._data[collection][id] = previous
                raise
            finally:
                _active_journal.reset(token)

        if journal.touched:
            await self.feed.publish(journal.touched)

    def subscribe(
        self, collection: str, order_field: str, direction: Direction, on_change: OnChange
    ) -> Unsubscribe:
        check_collection(collection)
        return self.feed.subscribe(collection, order_field, direction, on_change)
