"""Karma policy: rating -> karma delta, karma -> tier.

Pure functions over integers. Thresholds, rewards and the starting balance
come from settings so call sites never hard-code them.

Tiers:
- 1 "Great": karma >= tier_1_threshold (100)
- 2 "Mid":   karma >= tier_2_threshold (40)
- 3 "Bad":   everything below, including negative karma (no floor is applied)
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from app.config import settings
from app.gateway.records import ReviewRecord

LOWEST_TIER = 3

TIER_NAMES = {
    1: "Great",
    2: "Mid",
    3: "Bad",
}


def karma_delta_for_rating(rating: int) -> int:
    """Karma awarded to a reviewer for a quality rating in 1..5.

    4-5 -> reward_excellent (+10), 3 -> reward_neutral (+1),
    1-2 -> reward_poor (-3). A rating of 0 means "unrated" and has no
    delta; callers must not pass it here.

    Raises:
        ValueError: rating is outside 1..5.
    """
    if not 1 <= rating <= 5:
        raise ValueError(f"rating must be in 1..5, got {rating}")
    if rating >= 4:
        return settings.reward_excellent
    if rating == 3:
        return settings.reward_neutral
    return settings.reward_poor


def rollback_delta(previous_rating: int) -> int:
    """Karma change that removes the effect of a previous rating (0 = unrated)."""
    if previous_rating <= 0:
        return 0
    return -karma_delta_for_rating(previous_rating)


def rerating_delta(previous_rating: int, new_rating: int) -> int:
    """Net karma change when a review moves from previous_rating to new_rating."""
    return rollback_delta(previous_rating) + karma_delta_for_rating(new_rating)


def tier_for_karma(karma: int) -> int:
    if karma >= settings.tier_1_threshold:
        return 1
    if karma >= settings.tier_2_threshold:
        return 2
    return LOWEST_TIER


def tier_name(tier: int) -> str:
    return TIER_NAMES.get(tier, TIER_NAMES[LOWEST_TIER])


def rating_band(rating: int) -> str:
    """Label used for metrics: excellent | neutral | poor."""
    delta = karma_delta_for_rating(rating)
    if delta == settings.reward_excellent:
        return "excellent"
    if delta == settings.reward_neutral:
        return "neutral"
    return "poor"


@dataclass(frozen=True)
class KarmaPoint:
    review_id: str
    date: datetime
    rating: int
    delta: int
    karma: int


def karma_timeline(reviews: Iterable[ReviewRecord], starting_karma: int) -> list[KarmaPoint]:
    """Replay rated reviews in creation order into a running karma series.

    Unrated reviews (rating 0) contribute nothing and are skipped.
    """
    points: list[KarmaPoint] = []
    karma = starting_karma
    for review in sorted(reviews, key=lambda r: r.created_at):
        if review.quality_rating <= 0:
            continue
        delta = karma_delta_for_rating(review.quality_rating)
        karma += delta
        points.append(
            KarmaPoint(
                review_id=review.id,
                date=review.created_at,
                rating=review.quality_rating,
                delta=delta,
                karma=karma,
            )
        )
    return points
