"""Persistence gateway contract.

The core only ever talks to storage through this narrow interface: create,
merge-patch update, get, ordered and filtered queries, two atomic helpers
(array_union, increment), a transaction scope, and real-time subscriptions
that deliver the full ordered result set on every committed change.
"""

from typing import Any, AsyncContextManager, Awaitable, Callable, Literal, Optional, Protocol, Union

from app.gateway.feed import ChangeFeed

USERS = "users"
PRODUCTS = "products"
REVIEWS = "reviews"

COLLECTIONS: tuple[str, ...] = (USERS, PRODUCTS, REVIEWS)

Direction = Literal["asc", "desc"]
OnChange = Callable[[list[dict]], Union[None, Awaitable[None]]]
Unsubscribe = Callable[[], None]


class Gateway(Protocol):
    feed: ChangeFeed

    async def create(self, collection: str, id: str, record: dict) -> None:
        """Write a new record. Raises WriteError on failure."""
        ...

    async def update(self, collection: str, id: str, patch: dict) -> None:
        """Merge-patch fields. Raises NotFoundError if the id is unknown."""
        ...

    async def get(self, collection: str, id: str, for_update: bool = False) -> Optional[dict]:
        ...

    async def query_ordered(
        self, collection: str, order_field: str, direction: Direction = "desc"
    ) -> list[dict]:
        ...

    async def query(
        self,
        collection: str,
        filters: dict[str, Any],
        order_field: Optional[str] = None,
        direction: Direction = "desc",
    ) -> list[dict]:
        """Equality-filtered query."""
        ...

    async def array_union(self, collection: str, id: str, field: str, value: Any) -> None:
        """Append value to a list field unless already present."""
        ...

    async def increment(self, collection: str, id: str, field: str, delta: int) -> int:
        """Atomically add delta to a numeric field and return the new value."""
        ...

    def transaction(self) -> AsyncContextManager[None]:
        ...

    def subscribe(
        self, collection: str, order_field: str, direction: Direction, on_change: OnChange
    ) -> Unsubscribe:
        ...


def check_collection(collection: str) -> None:
    if collection not in COLLECTIONS:
        raise ValueError(f"Unknown collection: {collection!r}")
