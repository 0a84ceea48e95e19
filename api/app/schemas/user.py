"""Pydantic schemas for user profiles, karma and the leaderboard."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel

from app.gateway.records import UserRecord
from app.services.karma import KarmaPoint, tier_for_karma, tier_name


class PublicUserResponse(BaseModel):
    id: str
    display_name: str
    karma_points: int
    tier: int
    tier_name: str

    @classmethod
    def from_record(cls, user: UserRecord, display_name: Optional[str] = None) -> "PublicUserResponse":
        tier = tier_for_karma(user.karma_points)
        return cls(
            id=user.id,
            display_name=display_name if display_name is not None else user.display_name,
            karma_points=user.karma_points,
            tier=tier,
            tier_name=tier_name(tier),
        )


class UserResponse(PublicUserResponse):
    """The signed-in user's own profile."""

    email: Optional[str] = None
    product_ids: list[str]
    review_ids: list[str]
    created_at: datetime

    @classmethod
    def from_record(cls, user: UserRecord, display_name: Optional[str] = None) -> "UserResponse":
        public = PublicUserResponse.from_record(user, display_name)
        return cls(
            **public.model_dump(),
            email=user.email,
            product_ids=user.product_ids,
            review_ids=user.review_ids,
            created_at=user.created_at,
        )


class LeaderboardResponse(BaseModel):
    users: list[PublicUserResponse]


class KarmaTimelinePoint(BaseModel):
    review_id: str
    date: datetime
    rating: int
    delta: int
    karma: int

    @classmethod
    def from_point(cls, point: KarmaPoint) -> "KarmaTimelinePoint":
        return cls(
            review_id=point.review_id,
            date=point.date,
            rating=point.rating,
            delta=point.delta,
            karma=point.karma,
        )


class KarmaTimelineResponse(BaseModel):
    user_id: str
    starting_karma: int
    current_karma: int
    points: list[KarmaTimelinePoint]
