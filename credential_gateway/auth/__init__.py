"""Authentication for the Credential Gateway.

Auth is intentionally lightweight:

- Users table (email/username/password hash)
- JWT access tokens, valid for one hour, carried in an httpOnly cookie

There is no server-side session table, so there is nothing to revoke on
logout beyond the client's cookie.
"""

from .deps import get_current_account
from .errors import AuthError, AuthErrorKind
from .gateway import ACCESS_TOKEN_COOKIE, CredentialGateway
from .crud import SqlUserStore

__all__ = [
    "ACCESS_TOKEN_COOKIE",
    "AuthError",
    "AuthErrorKind",
    "CredentialGateway",
    "SqlUserStore",
    "get_current_account",
]
