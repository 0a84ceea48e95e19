"""Process-wide change feed behind Gateway.subscribe.

Writers call publish() after a commit with the collections they touched;
every subscriber of those collections is handed the full, freshly loaded
ordered snapshot (not a diff). snapshots() wraps the same mechanism as an
async iterator for streaming endpoints.
"""

import asyncio
import inspect
import itertools
from collections import defaultdict
from dataclasses import dataclass
from typing import Any, AsyncIterator, Awaitable, Callable, Iterable, Optional

import structlog

log = structlog.get_logger(__name__)

SnapshotLoader = Callable[[str, str, str], Awaitable[list[dict]]]


@dataclass
class _Subscription:
    order_field: str
    direction: str
    on_change: Callable[[list[dict]], Any]


class ChangeFeed:
    def __init__(self, loader: SnapshotLoader) -> None:
        self._loader = loader
        self._subscribers: dict[str, dict[int, _Subscription]] = defaultdict(dict)
        self._ids = itertools.count()

    def subscribe(
        self,
        collection: str,
        order_field: str,
        direction: str,
        on_change: Callable[[list[dict]], Any],
    ) -> Callable[[], None]:
        sub_id = next(self._ids)
        self._subscribers[collection][sub_id] = _Subscription(order_field, direction, on_change)

        def unsubscribe() -> None:
            self._subscribers[collection].pop(sub_id, None)

        return unsubscribe

    def subscriber_count(self, collection: str) -> int:
        return len(self._subscribers[collection])

    async def publish(self, collections: Iterable[str]) -> None:
        for collection in sorted(set(collections)):
            for sub_id, sub in list(self._subscribers[collection].items()):
                # Dropped while an earlier callback was running
                if sub_id not in self._subscribers[collection]:
                    continue
                try:
                    snapshot = await self._loader(collection, sub.order_field, sub.direction)
                except Exception:
                    # The write already committed; only this notification is lost
                    log.exception("subscriber_snapshot_failed", collection=collection)
                    continue
                try:
                    result = sub.on_change(snapshot)
                    if inspect.isawaitable(result):
                        await result
                except Exception:
                    # A broken subscriber must not fail a write that already committed
                    log.exception("subscriber_callback_failed", collection=collection)

    async def snapshots(
        self,
        collection: str,
        order_field: str,
        direction: str,
        heartbeat: Optional[float] = None,
    ) -> AsyncIterator[Optional[list[dict]]]:
        """Yield the current snapshot, then one per change.

        With a heartbeat interval, None is yielded whenever that many seconds
        pass without a change so callers can keep a connection alive. Changes
        that arrive faster than the caller reads collapse into the latest
        snapshot.
        """
        # Only the newest snapshot is kept for a slow reader
        queue: asyncio.Queue = asyncio.Queue(maxsize=1)

        def offer(snapshot: list[dict]) -> None:
            if queue.full():
                queue.get_nowait()
            queue.put_nowait(snapshot)

        unsubscribe = self.subscribe(collection, order_field, direction, offer)
        try:
            yield await self._loader(collection, order_field, direction)
            while True:
                if heartbeat is None:
                    yield await queue.get()
                    continue
                try:
                    yield await asyncio.wait_for(queue.get(), timeout=heartbeat)
                except asyncio.TimeoutError:
                    yield None
        finally:
            unsubscribe()
