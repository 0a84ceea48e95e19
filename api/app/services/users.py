"""User accounts, display names, leaderboard and karma history."""

from datetime import datetime, timezone
from typing import Optional

import structlog

from app.config import settings
from app.errors import NotFoundError
from app.gateway.base import USERS, Gateway
from app.gateway.records import UserRecord, decode, encode
from app.services.karma import KarmaPoint, karma_timeline
from app.services.reviews import list_authored_reviews

log = structlog.get_logger(__name__)


async def initialize_user(
    gateway: Gateway,
    user_id: str,
    *,
    email: Optional[str],
    display_name: str = "",
    api_key_hash: Optional[str] = None,
) -> UserRecord:
    """Create the user on first sign-in; an existing user is returned untouched.

    POST /keys always passes a freshly minted id. Callers holding a stable
    id (an external identity provider's uid, say) get the idempotent path.
    """
    raw = await gateway.get(USERS, user_id)
    if raw is not None:
        log.info("user_already_initialized", user_id=user_id)
        return decode(UserRecord, raw)

    user = UserRecord(
        id=user_id,
        email=email,
        api_key_hash=api_key_hash,
        display_name=display_name,
        karma_points=settings.starting_karma,
        product_ids=[],
        review_ids=[],
        created_at=datetime.now(timezone.utc),
    )
    await gateway.create(USERS, user_id, encode(user))
    log.info("user_initialized", user_id=user_id)
    return user


async def get_user(gateway: Gateway, user_id: str) -> UserRecord:
    raw = await gateway.get(USERS, user_id)
    if raw is None:
        raise NotFoundError("User not found")
    return decode(UserRecord, raw)


async def find_user(gateway: Gateway, **filters) -> Optional[UserRecord]:
    """First user matching all equality filters, e.g. find_user(gw, email=...)."""
    rows = await gateway.query(USERS, filters)
    return decode(UserRecord, rows[0]) if rows else None


def fallback_display_name(user_id: str) -> str:
    return f"User {user_id[:8]}"


async def display_name_for(gateway: Gateway, user_id: str) -> str:
    raw = await gateway.get(USERS, user_id)
    if raw is None:
        return fallback_display_name(user_id)
    return decode(UserRecord, raw).display_name or fallback_display_name(user_id)


async def leaderboard(gateway: Gateway, size: Optional[int] = None) -> list[UserRecord]:
    """Users with the most karma, highest first."""
    size = settings.leaderboard_size if size is None else size
    rows = await gateway.query_ordered(USERS, "karma_points", "desc")
    return [decode(UserRecord, row) for row in rows[:size]]


async def user_karma_timeline(gateway: Gateway, user_id: str) -> list[KarmaPoint]:
    await get_user(gateway, user_id)
    reviews = await list_authored_reviews(gateway, user_id)
    return karma_timeline(reviews, settings.starting_karma)
