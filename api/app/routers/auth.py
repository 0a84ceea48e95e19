"""API key generation (first sign-in) and authentication verification endpoints.

POST /api/v1/keys  -- register a user and issue an API key (no auth required)
GET  /api/v1/keys/verify -- verify an existing API key (auth required)
"""

import secrets
import uuid

from fastapi import APIRouter, HTTPException

from app.dependencies import CurrentUser, GatewayDep, hash_api_key
from app.errors import WriteError
from app.schemas.auth import APIKeyCreate, APIKeyResponse
from app.services.users import find_user, initialize_user

router = APIRouter(prefix="/api/v1", tags=["auth"])


@router.post("/keys", response_model=APIKeyResponse, status_code=201)
async def generate_api_key(body: APIKeyCreate, gateway: GatewayDep) -> APIKeyResponse:
    """Register a new user with the starting karma and issue an API key.

    The raw API key is returned exactly once in this response. Only its
    SHA-256 hash is stored; it cannot be retrieved again.

    Every call creates a new account; the API key is the only credential,
    so a returning user signs in again by keeping their key. If an email is
    provided and already registered, 409 Conflict is returned and the
    existing account and key stay as they were. On the astronomically
    unlikely event of a key-hash collision, one automatic retry is performed
    with a freshly generated key.
    """
    if body.email and await find_user(gateway, email=body.email) is not None:
        raise HTTPException(status_code=409, detail="Email already registered")

    async def _register(raw_key: str):
        return await initialize_user(
            gateway,
            str(uuid.uuid4()),
            email=body.email,
            display_name=body.display_name,
            api_key_hash=hash_api_key(raw_key),
        )

    raw_key = secrets.token_urlsafe(32)
    try:
        user = await _register(raw_key)
    except WriteError:
        raw_key = secrets.token_urlsafe(32)
        user = await _register(raw_key)

    return APIKeyResponse(api_key=raw_key, user_id=user.id, karma_points=user.karma_points)


@router.get("/keys/verify")
async def verify_api_key(user: CurrentUser) -> dict:
    """Verify that the provided API key is valid.

    Returns the authenticated user's ID. Primarily for testing that
    authentication is functioning correctly.
    """
    return {"valid": True, "user_id": user.id}
