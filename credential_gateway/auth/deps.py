from __future__ import annotations

from typing import Any, Dict, Optional

import jwt
from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .crud import public_account
from .gateway import ACCESS_TOKEN_COOKIE, MSG_INVALID_TOKEN, MSG_NOT_AUTHENTICATED, CredentialGateway


_bearer = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=401, detail=detail, headers={"WWW-Authenticate": "Bearer"})


def get_gateway(request: Request) -> CredentialGateway:
    gateway = getattr(request.app.state, "gateway", None)
    if gateway is None:
        raise HTTPException(status_code=500, detail="server_config_missing")
    return gateway


def get_current_account(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    gateway: CredentialGateway = Depends(get_gateway),
) -> Dict[str, Any]:
    """Authenticate a request for routes that need a logged-in account.

    Supports both:
      - the httpOnly `access_token` cookie set by /auth/login and /auth/register
      - Authorization: Bearer <jwt> (scripts / API clients)
    """

    token: str | None = None

    # Prefer Bearer token when explicitly provided.
    if credentials is not None and credentials.credentials:
        token = credentials.credentials
    if not token:
        token = request.cookies.get(ACCESS_TOKEN_COOKIE)

    if not token:
        raise _unauthorized(MSG_NOT_AUTHENTICATED)

    try:
        payload = gateway.decode_token(token)
    except (jwt.InvalidTokenError, ValueError):
        raise _unauthorized(MSG_INVALID_TOKEN)

    try:
        account_id = int(payload["id"])
    except (TypeError, ValueError):
        raise _unauthorized(MSG_INVALID_TOKEN)

    row = gateway.store.get_by_id(account_id)
    # A token for a deleted or deactivated account is no better than a forged one.
    if row is None or int(row.get("is_active", 1) or 0) != 1:
        raise _unauthorized(MSG_INVALID_TOKEN)
    return public_account(row)
