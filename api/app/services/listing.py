"""Viewer-specific ordering of published products.

A signed-in viewer sees products whose founder shares the viewer's karma
tier first, then everything else. Both groups keep the incoming (store)
order: this is a stable partition, not a sort. Anonymous viewers get the
incoming order untouched.
"""

from typing import Awaitable, Callable, Optional, Sequence

import structlog

from app.errors import NotFoundError
from app.gateway.base import USERS, Gateway
from app.gateway.records import ProductRecord, UserRecord, decode
from app.services.karma import LOWEST_TIER, tier_for_karma

log = structlog.get_logger(__name__)

FounderKarmaLookup = Callable[[str], Awaitable[int]]


def gateway_karma_lookup(gateway: Gateway) -> FounderKarmaLookup:
    """Resolve a founder's current karma from the users collection."""

    async def lookup(user_id: str) -> int:
        raw = await gateway.get(USERS, user_id)
        if raw is None:
            raise NotFoundError(f"User {user_id} not found")
        return decode(UserRecord, raw).karma_points

    return lookup


async def sort_for_viewer(
    products: Sequence[ProductRecord],
    viewer_karma: Optional[int],
    founder_karma: FounderKarmaLookup,
) -> list[ProductRecord]:
    if viewer_karma is None:
        return list(products)

    viewer_tier = tier_for_karma(viewer_karma)
    founder_tiers: dict[str, int] = {}
    same_tier: list[ProductRecord] = []
    other: list[ProductRecord] = []

    # Sequential on purpose: gateway sessions do not allow concurrent statements
    for product in products:
        if product.owner_id not in founder_tiers:
            founder_tiers[product.owner_id] = await _founder_tier(product.owner_id, founder_karma)
        if founder_tiers[product.owner_id] == viewer_tier:
            same_tier.append(product)
        else:
            other.append(product)

    return same_tier + other


async def _founder_tier(owner_id: str, founder_karma: FounderKarmaLookup) -> int:
    try:
        return tier_for_karma(await founder_karma(owner_id))
    except Exception as exc:
        # One unresolvable founder must not fail the whole listing
        log.warning("founder_tier_lookup_failed", owner_id=owner_id, error=str(exc))
        return LOWEST_TIER
