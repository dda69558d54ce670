"""FastAPI authentication dependencies."""

from __future__ import annotations

import jwt
from fastapi import Depends, HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from codecase.auth.identity import Identity
from codecase.auth.jwt import verify_token
from codecase.config import get_settings

_bearer = HTTPBearer()


async def get_current_identity(
    credentials: HTTPAuthorizationCredentials = Security(_bearer),
) -> Identity:
    """
    Verify the bearer token and return the caller's identity.

    Raises 401 on an invalid or expired token.
    """
    try:
        payload = verify_token(credentials.credentials)
    except jwt.InvalidTokenError as e:
        raise HTTPException(status_code=401, detail=str(e)) from e

    return Identity(user_id=str(payload["sub"]), email=payload.get("email"))


async def get_admin_identity(
    identity: Identity = Depends(get_current_identity),
) -> Identity:
    """Same as get_current_identity but requires a configured admin user id."""
    if identity.user_id not in get_settings().admin_user_ids:
        raise HTTPException(status_code=403, detail="Admin access required")
    return identity
