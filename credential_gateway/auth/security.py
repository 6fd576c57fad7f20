from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import jwt
from passlib.context import CryptContext


_pwd = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
_JWT_ALG = "HS256"

# Session tokens are not refreshable; a client logs in again after this.
TOKEN_TTL = timedelta(hours=1)


def hash_password(password: str) -> str:
    if not password:
        raise ValueError("password_blank")
    return _pwd.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Check a password; raises ValueError if the stored hash is unrecognised."""
    if not password or not password_hash:
        return False
    return _pwd.verify(password, password_hash)


def create_access_token(
    *,
    secret: str,
    account_id: int | str,
    ttl: timedelta = TOKEN_TTL,
    now: datetime | None = None,
) -> str:
    if not secret:
        raise ValueError("token_secret_blank")

    issued = now or datetime.now(timezone.utc)
    payload: Dict[str, Any] = {
        "id": account_id,
        "iat": int(issued.timestamp()),
        "exp": int((issued + ttl).timestamp()),
    }
    return jwt.encode(payload, secret, algorithm=_JWT_ALG)


def decode_access_token(*, token: str, secret: str) -> Dict[str, Any]:
    """Verify signature + expiry. Raises jwt.InvalidTokenError (or ValueError) on failure."""
    if not token:
        raise ValueError("token_blank")
    if not secret:
        raise ValueError("token_secret_blank")
    return jwt.decode(token, secret, algorithms=[_JWT_ALG], options={"require": ["exp", "id"]})
