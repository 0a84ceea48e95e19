"""User profile, karma history and leaderboard endpoints.

GET /api/v1/users/me                      -- own profile with karma tier
GET /api/v1/users/{user_id}               -- public profile
GET /api/v1/users/{user_id}/karma-timeline -- karma history from rated reviews
GET /api/v1/leaderboard                   -- top users by karma
"""

from fastapi import APIRouter, Query

from app.config import settings
from app.dependencies import CurrentUser, GatewayDep
from app.middleware.rate_limiter import ReadRateLimit
from app.schemas.user import (
    KarmaTimelinePoint,
    KarmaTimelineResponse,
    LeaderboardResponse,
    PublicUserResponse,
    UserResponse,
)
from app.services.users import (
    display_name_for,
    get_user,
    leaderboard,
    user_karma_timeline,
)

router = APIRouter(prefix="/api/v1", tags=["users"])


@router.get("/users/me", response_model=UserResponse)
async def get_me(user: CurrentUser, gateway: GatewayDep, _rate: ReadRateLimit) -> UserResponse:
    return UserResponse.from_record(user, await display_name_for(gateway, user.id))


@router.get("/users/{user_id}", response_model=PublicUserResponse)
async def get_public_profile(
    user_id: str,
    user: CurrentUser,
    gateway: GatewayDep,
    _rate: ReadRateLimit,
) -> PublicUserResponse:
    """Public profile of any user; an empty display name reads as `User <id prefix>`."""
    target = await get_user(gateway, user_id)
    return PublicUserResponse.from_record(target, await display_name_for(gateway, user_id))


@router.get("/users/{user_id}/karma-timeline", response_model=KarmaTimelineResponse)
async def get_karma_timeline(
    user_id: str,
    user: CurrentUser,
    gateway: GatewayDep,
    _rate: ReadRateLimit,
) -> KarmaTimelineResponse:
    """Karma history replayed from the user's rated reviews, oldest first."""
    target = await get_user(gateway, user_id)
    points = await user_karma_timeline(gateway, user_id)
    return KarmaTimelineResponse(
        user_id=target.id,
        starting_karma=settings.starting_karma,
        current_karma=target.karma_points,
        points=[KarmaTimelinePoint.from_point(point) for point in points],
    )


@router.get("/leaderboard", response_model=LeaderboardResponse)
async def get_leaderboard(
    gateway: GatewayDep,
    size: int = Query(default=settings.leaderboard_size, ge=1, le=100),
) -> LeaderboardResponse:
    users = await leaderboard(gateway, size)
    return LeaderboardResponse(
        users=[
            PublicUserResponse.from_record(u, await display_name_for(gateway, u.id))
            for u in users
        ]
    )
