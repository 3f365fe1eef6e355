"""Relay token checks shared by the websocket endpoint and the REST routes."""

from __future__ import annotations

import secrets

from fastapi import HTTPException, Query, Security, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from config.settings import settings

bearer = HTTPBearer(auto_error=False, description="Relay token (WS_TOKEN)")


def verify_token_value(value: str | None) -> bool:
    # An empty WS_TOKEN leaves the relay open.
    if not settings.ws_token:
        return True
    if value is None:
        return False
    return secrets.compare_digest(value.encode(), settings.ws_token.encode())


def require_token(
    credentials: HTTPAuthorizationCredentials | None = Security(bearer),
    token: str | None = Query(default=None, description="Same token the kiosk sends on /ws"),
) -> str:
    """Accept the relay token as a bearer credential or as ``?token=``."""
    supplied = credentials.credentials if credentials is not None else token
    if not verify_token_value(supplied):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Relay token missing or rejected",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return supplied or ""
