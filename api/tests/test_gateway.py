"""Tests for the in-memory gateway: writes, transactions and the change feed."""

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from app.errors import NotFoundError, RecordDecodeError, WriteError
from app.gateway.feed import ChangeFeed
from app.gateway.base import PRODUCTS, USERS
from app.gateway.records import UserRecord, decode


def _user(user_id: str, karma: int = 50, minutes: int = 0) -> dict:
    return {
        "id": user_id,
        "email": None,
        "api_key_hash": None,
        "display_name": "",
        "karma_points": karma,
        "product_ids": [],
        "review_ids": [],
        "created_at": datetime(2026, 1, 1, tzinfo=timezone.utc) + timedelta(minutes=minutes),
    }


class TestWrites:
    @pytest.mark.asyncio
    async def test_create_and_get_return_copies(self, gateway):
        record = _user("alice")
        await gateway.create(USERS, "alice", record)
        record["karma_points"] = 999

        stored = await gateway.get(USERS, "alice")
        stored["karma_points"] = 123

        assert (await gateway.get(USERS, "alice"))["karma_points"] == 50

    @pytest.mark.asyncio
    async def test_duplicate_create_fails(self, gateway):
        await gateway.create(USERS, "alice", _user("alice"))
        with pytest.raises(WriteError):
            await gateway.create(USERS, "alice", _user("alice"))

    @pytest.mark.asyncio
    async def test_update_unknown_record(self, gateway):
        with pytest.raises(NotFoundError):
            await gateway.update(USERS, "ghost", {"karma_points": 1})

    @pytest.mark.asyncio
    async def test_increment_returns_new_value(self, gateway):
        await gateway.create(USERS, "alice", _user("alice"))
        assert await gateway.increment(USERS, "alice", "karma_points", -13) == 37

    @pytest.mark.asyncio
    async def test_array_union_is_idempotent(self, gateway):
        await gateway.create(USERS, "alice", _user("alice"))
        await gateway.array_union(USERS, "alice", "review_ids", "r1")
        await gateway.array_union(USERS, "alice", "review_ids", "r1")
        assert (await gateway.get(USERS, "alice"))["review_ids"] == ["r1"]

    @pytest.mark.asyncio
    async def test_query_filters_and_orders(self, gateway):
        await gateway.create(USERS, "a", _user("a", karma=10, minutes=1))
        await gateway.create(USERS, "b", _user("b", karma=50, minutes=2))
        await gateway.create(USERS, "c", _user("c", karma=50, minutes=3))

        rows = await gateway.query(USERS, {"karma_points": 50}, order_field="created_at", direction="asc")

        assert [r["id"] for r in rows] == ["b", "c"]

    @pytest.mark.asyncio
    async def test_unknown_collection(self, gateway):
        with pytest.raises(ValueError):
            await gateway.get("widgets", "x")


class TestTransactions:
    @pytest.mark.asyncio
    async def test_failure_undoes_every_write(self, gateway):
        await gateway.create(USERS, "alice", _user("alice"))

        with pytest.raises(RuntimeError):
            async with gateway.transaction():
                await gateway.increment(USERS, "alice", "karma_points", 10)
                await gateway.create(USERS, "bob", _user("bob"))
                raise RuntimeError("boom")

        assert (await gateway.get(USERS, "alice"))["karma_points"] == 50
        assert await gateway.get(USERS, "bob") is None

    @pytest.mark.asyncio
    async def test_nested_scope_joins_outer(self, gateway):
        with pytest.raises(NotFoundError):
            async with gateway.transaction():
                await gateway.create(USERS, "alice", _user("alice"))
                async with gateway.transaction():
                    await gateway.update(USERS, "ghost", {"karma_points": 1})

        assert await gateway.get(USERS, "alice") is None

    @pytest.mark.asyncio
    async def test_concurrent_increments_are_not_lost(self, gateway):
        await gateway.create(USERS, "alice", _user("alice"))

        async def bump():
            async with gateway.transaction():
                current = (await gateway.get(USERS, "alice", for_update=True))["karma_points"]
                await asyncio.sleep(0)
                await gateway.update(USERS, "alice", {"karma_points": current + 1})

        await asyncio.gather(*(bump() for _ in range(10)))

        assert (await gateway.get(USERS, "alice"))["karma_points"] == 60


class TestSubscriptions:
    @pytest.mark.asyncio
    async def test_subscriber_gets_full_ordered_snapshot(self, gateway):
        snapshots: list[list[dict]] = []
        unsubscribe = gateway.subscribe(USERS, "karma_points", "desc", snapshots.append)

        await gateway.create(USERS, "a", _user("a", karma=10))
        await gateway.create(USERS, "b", _user("b", karma=90))

        assert [[r["id"] for r in s] for s in snapshots] == [["a"], ["b", "a"]]

        unsubscribe()
        await gateway.create(USERS, "c", _user("c"))
        assert len(snapshots) == 2

    @pytest.mark.asyncio
    async def test_transaction_notifies_once_after_commit(self, gateway):
        snapshots: list[list[dict]] = []
        gateway.subscribe(USERS, "created_at", "asc", snapshots.append)

        async with gateway.transaction():
            await gateway.create(USERS, "a", _user("a"))
            await gateway.create(USERS, "b", _user("b", minutes=1))
            assert snapshots == []

        assert [[r["id"] for r in s] for s in snapshots] == [["a", "b"]]

    @pytest.mark.asyncio
    async def test_rolled_back_transaction_notifies_nobody(self, gateway):
        snapshots: list[list[dict]] = []
        gateway.subscribe(USERS, "created_at", "asc", snapshots.append)

        with pytest.raises(RuntimeError):
            async with gateway.transaction():
                await gateway.create(USERS, "a", _user("a"))
                raise RuntimeError("boom")

        assert snapshots == []

    @pytest.mark.asyncio
    async def test_broken_subscriber_does_not_fail_the_write(self, gateway):
        def broken(snapshot):
            raise RuntimeError("subscriber bug")

        gateway.subscribe(USERS, "created_at", "asc", broken)
        await gateway.create(USERS, "a", _user("a"))

        assert await gateway.get(USERS, "a") is not None

    @pytest.mark.asyncio
    async def test_only_touched_collection_is_notified(self, gateway):
        snapshots: list[list[dict]] = []
        gateway.subscribe(PRODUCTS, "created_at", "desc", snapshots.append)
        await gateway.create(USERS, "a", _user("a"))
        assert snapshots == []

    @pytest.mark.asyncio
    async def test_failed_snapshot_load_does_not_fail_the_write(self, gateway):
        async def failing_loader(collection, order_field, direction):
            raise RuntimeError("snapshot load failed")

        gateway.feed = ChangeFeed(failing_loader)
        gateway.feed.subscribe(USERS, "created_at", "asc", lambda snapshot: None)

        async with gateway.transaction():
            await gateway.create(USERS, "u1", _user("u1"))

        assert await gateway.get(USERS, "u1") is not None


class TestSnapshotStream:
    @pytest.mark.asyncio
    async def test_initial_snapshot_then_one_per_change(self, gateway):
        stream = gateway.feed.snapshots(USERS, "created_at", "asc")

        assert await stream.__anext__() == []
        await gateway.create(USERS, "a", _user("a"))
        assert [r["id"] for r in await stream.__anext__()] == ["a"]

        await stream.aclose()
        assert gateway.feed.subscriber_count(USERS) == 0

    @pytest.mark.asyncio
    async def test_heartbeat_when_idle(self, gateway):
        stream = gateway.feed.snapshots(USERS, "created_at", "asc", heartbeat=0.01)

        await stream.__anext__()
        assert await stream.__anext__() is None

        await stream.aclose()

    @pytest.mark.asyncio
    async def test_slow_reader_only_sees_latest_snapshot(self, gateway):
        stream = gateway.feed.snapshots(USERS, "created_at", "asc", heartbeat=0.01)
        await stream.__anext__()

        await gateway.create(USERS, "a", _user("a"))
        await gateway.create(USERS, "b", _user("b", minutes=1))
        await gateway.create(USERS, "c", _user("c", minutes=2))

        assert [r["id"] for r in await stream.__anext__()] == ["a", "b", "c"]
        # Nothing else was queued
        assert await stream.__anext__() is None

        await stream.aclose()


class TestDecode:
    def test_missing_field_is_a_decode_error(self):
        raw = _user("alice")
        del raw["karma_points"]
        with pytest.raises(RecordDecodeError, match="UserRecord alice"):
            decode(UserRecord, raw)
