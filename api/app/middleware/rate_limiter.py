"""Token bucket rate limiter backed by a Redis Lua script.

The bucket is refilled and debited atomically on the Redis side, so
concurrent requests from one user cannot overspend it. Reads and writes use
separate buckets per user.

Key format: rl:{user_id}:{bucket_type}
Bucket types: "read" or "write"
"""
import time
from typing import Annotated

import redis.asyncio as aioredis
from fastapi import Depends, HTTPException

from app.config import Settings, settings
from app.dependencies import CurrentUser, RedisClient
from app.gateway.records import UserRecord

# KEYS[1] = bucket key
# ARGV[1] = capacity, ARGV[2] = refill rate (tokens/second), ARGV[3] = now (unix seconds)
# Returns 1 when a token was consumed, 0 when the bucket is empty.
TOKEN_BUCKET_LUA = """
local capacity = tonumber(ARGV[1])
local refill_rate = tonumber(ARGV[2])
local now = tonumber(ARGV[3])

local state = redis.call('HMGET', KEYS[1], 'tokens', 'last_refill')
local tokens = tonumber(state[1]) or capacity
local last_refill = tonumber(state[2]) or now

tokens = math.min(capacity, tokens + (now - last_refill) * refill_rate)

local allowed = 0
if tokens >= 1 then
    tokens = tokens - 1
    allowed = 1
end

-- 120s TTL: twice the time a bucket needs to refill completely
redis.call('HSET', KEYS[1], 'tokens', tokens, 'last_refill', now)
redis.call('EXPIRE', KEYS[1], 120)

return allowed
"""


def bucket_capacity(bucket_type: str, app_settings: Settings) -> int:
    if bucket_type == "read":
        return app_settings.rate_limit_read_per_minute
    return app_settings.rate_limit_write_per_minute


async def check_rate_limit(
    user: UserRecord,
    redis_client: aioredis.Redis,
    bucket_type: str,
    app_settings: Settings,
) -> None:
    """Consume one token from the user's bucket or raise HTTP 429."""
    capacity = bucket_capacity(bucket_type, app_settings)

    allowed = await redis_client.eval(
        TOKEN_BUCKET_LUA,
        1,  # number of KEYS
        f"rl:{user.id}:{bucket_type}",
        capacity,
        capacity / 60.0,  # refills fully in one minute
        time.time(),
    )

    if not allowed:
        raise HTTPException(
            status_code=429,
            detail="Rate limit exceeded",
            headers={"Retry-After": "60"},
        )


async def enforce_read_limit(user: CurrentUser, redis_client: RedisClient) -> None:
    """FastAPI dependency for read-path rate limiting."""
    await check_rate_limit(user, redis_client, "read", settings)


async def enforce_write_limit(user: CurrentUser, redis_client: RedisClient) -> None:
    """FastAPI dependency for write-path rate limiting."""
    await check_rate_limit(user, redis_client, "write", settings)


# Annotated type aliases for endpoint signatures
ReadRateLimit = Annotated[None, Depends(enforce_read_limit)]
WriteRateLimit = Annotated[None, Depends(enforce_write_limit)]
