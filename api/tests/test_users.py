"""Tests for user initialization, display names, leaderboard and karma history."""

import pytest

from app.errors import NotFoundError
from app.services.reviews import rate_review, submit_review
from app.services.users import (
    display_name_for,
    fallback_display_name,
    get_user,
    initialize_user,
    leaderboard,
    user_karma_timeline,
)


class TestInitializeUser:
    @pytest.mark.asyncio
    async def test_new_user_starts_with_fifty_karma(self, gateway):
        user = await initialize_user(gateway, "alice", email="alice@example.com")
        assert user.karma_points == 50
        assert user.product_ids == [] and user.review_ids == []

    @pytest.mark.asyncio
    async def test_second_sign_in_does_not_reset_karma(self, gateway, make_user):
        await make_user("alice", karma=90)
        user = await initialize_user(gateway, "alice", email="alice@example.com")
        assert user.karma_points == 90
        assert (await get_user(gateway, "alice")).karma_points == 90

    @pytest.mark.asyncio
    async def test_unknown_user(self, gateway):
        with pytest.raises(NotFoundError):
            await get_user(gateway, "nobody")


class TestDisplayName:
    def test_fallback_uses_id_prefix(self):
        assert fallback_display_name("abcdef123456") == "User abcdef12"

    @pytest.mark.asyncio
    async def test_stored_name_wins(self, gateway, make_user):
        await make_user("abcdef123456", display_name="Ann")
        assert await display_name_for(gateway, "abcdef123456") == "Ann"

    @pytest.mark.asyncio
    async def test_empty_or_missing_name_falls_back(self, gateway, make_user):
        await make_user("abcdef123456")
        assert await display_name_for(gateway, "abcdef123456") == "User abcdef12"
        assert await display_name_for(gateway, "zyxwvu987654") == "User zyxwvu98"


class TestLeaderboard:
    @pytest.mark.asyncio
    async def test_top_three_by_karma(self, gateway, make_user):
        for user_id, karma in [("a", 10), ("b", 120), ("c", 60), ("d", 200), ("e", 45)]:
            await make_user(user_id, karma=karma)

        top = await leaderboard(gateway)

        assert [u.id for u in top] == ["d", "b", "c"]

    @pytest.mark.asyncio
    async def test_custom_size(self, gateway, make_user):
        for user_id, karma in [("a", 10), ("b", 120)]:
            await make_user(user_id, karma=karma)
        assert [u.id for u in await leaderboard(gateway, 10)] == ["b", "a"]


class TestKarmaTimeline:
    @pytest.mark.asyncio
    async def test_timeline_tracks_ratings(self, gateway, make_user, make_product):
        await make_user("alice")
        await make_user("bob")
        review = await submit_review(gateway, "bob", (await make_product("alice")).id, ["Nice"])
        await rate_review(gateway, review.id, 5)

        points = await user_karma_timeline(gateway, "bob")

        assert [(p.review_id, p.karma) for p in points] == [(review.id, 60)]

    @pytest.mark.asyncio
    async def test_unknown_user(self, gateway):
        with pytest.raises(NotFoundError):
            await user_karma_timeline(gateway, "nobody")
