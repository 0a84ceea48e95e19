import hashlib
from contextlib import asynccontextmanager
from typing import Annotated, AsyncContextManager, AsyncIterator, Callable, Optional

import redis.asyncio as aioredis
from fastapi import Depends, FastAPI, HTTPException, Request, Security
from fastapi.security import APIKeyHeader

from app.config import settings
from app.database import async_session_factory
from app.gateway.base import Gateway
from app.gateway.records import UserRecord
from app.gateway.sql import SqlGateway
from app.services.users import find_user

# API key security schemes, registered in the OpenAPI security definition
api_key_header = APIKeyHeader(name=settings.api_key_header_name, auto_error=True)
optional_api_key_header = APIKeyHeader(name=settings.api_key_header_name, auto_error=False)


def hash_api_key(raw_key: str) -> str:
    return hashlib.sha256(raw_key.encode()).hexdigest()


@asynccontextmanager
async def open_gateway(app: FastAPI) -> AsyncIterator[Gateway]:
    """Gateway bound to the configured backend (set up during lifespan startup).

    The memory backend is one shared store; the SQL backend gets a fresh
    session per scope, sharing the app-wide change feed.
    """
    memory_gateway = getattr(app.state, "memory_gateway", None)
    if memory_gateway is not None:
        yield memory_gateway
        return
    async with async_session_factory() as session:
        yield SqlGateway(session, app.state.change_feed)


async def get_gateway(request: Request) -> AsyncIterator[Gateway]:
    """FastAPI dependency: yields one gateway per request."""
    async with open_gateway(request.app) as gateway:
        yield gateway


GatewayDep = Annotated[Gateway, Depends(get_gateway)]

GatewayOpener = Callable[[], AsyncContextManager[Gateway]]


def get_gateway_opener(request: Request) -> GatewayOpener:
    """FastAPI dependency for handlers that outlive a single gateway scope.

    Streaming responses open a short scope per read instead of holding one
    session for the whole connection.
    """
    return lambda: open_gateway(request.app)


GatewayOpenerDep = Annotated[GatewayOpener, Depends(get_gateway_opener)]


async def get_redis(request: Request) -> aioredis.Redis:
    """Inject the Redis client from app.state (set during lifespan startup)."""
    return request.app.state.redis


async def user_for_api_key(raw_key: str, gateway: Gateway) -> UserRecord:
    """Look a user up by raw API key. Raises 401 for unknown keys."""
    user = await find_user(gateway, api_key_hash=hash_api_key(raw_key))
    if user is None:
        raise HTTPException(status_code=401, detail="Invalid API key")
    return user


async def get_current_user(
    gateway: GatewayDep,
    raw_key: str = Security(api_key_header),
) -> UserRecord:
    """Authenticate a request via X-API-Key header.

    Computes SHA-256 hash of the raw key and looks it up in the users
    collection. Raises 401 for unknown keys.
    """
    return await user_for_api_key(raw_key, gateway)


async def get_optional_user(
    gateway: GatewayDep,
    raw_key: Optional[str] = Security(optional_api_key_header),
) -> Optional[UserRecord]:
    """Like get_current_user, but anonymous requests yield None.

    A key that is present but wrong is still rejected with 401.
    """
    if not raw_key:
        return None
    return await user_for_api_key(raw_key, gateway)


# Annotated type aliases for clean endpoint signatures
CurrentUser = Annotated[UserRecord, Depends(get_current_user)]
OptionalUser = Annotated[Optional[UserRecord], Depends(get_optional_user)]
RedisClient = Annotated[aioredis.Redis, Depends(get_redis)]
