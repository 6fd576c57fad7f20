"""Domain errors raised by the user store, and how each operation classifies them.

The store raises `AuthError(kind)`; the gateway looks the kind up in the
operation's status table. Kinds an operation never expects, and any other
exception, are treated as internal errors (500).
"""

from __future__ import annotations

from enum import Enum
from types import MappingProxyType
from typing import Mapping


class AuthErrorKind(str, Enum):
    EMAIL_EMPTY = "email cannot be empty"
    PASSWORD_EMPTY = "password cannot be empty"
    USERNAME_EMPTY = "username cannot be empty"
    EMAIL_IN_USE = "email already in use"
    USERNAME_IN_USE = "username already in use"
    INVALID_CREDENTIALS = "invalid credentials"
    NOT_REGISTERED = "email not registered"
    CREDENTIALS_MISMATCH = "email or password do not match"
    PASSWORD_MISSING = "password required"
    INTERNAL = "internal server error"

    @property
    def message(self) -> str:
        return self.value


class AuthError(Exception):
    """A business-rule failure with a stable kind (and therefore a stable message)."""

    def __init__(self, kind: AuthErrorKind):
        super().__init__(kind.message)
        self.kind = kind

    @property
    def message(self) -> str:
        return self.kind.message


INTERNAL_STATUS = 500

# Statuses are part of the public contract; clients key off them.
REGISTER_STATUS: Mapping[AuthErrorKind, int] = MappingProxyType(
    {
        AuthErrorKind.EMAIL_EMPTY: 401,
        AuthErrorKind.PASSWORD_EMPTY: 404,
        AuthErrorKind.USERNAME_EMPTY: 401,
        AuthErrorKind.EMAIL_IN_USE: 400,
        AuthErrorKind.USERNAME_IN_USE: 400,
        AuthErrorKind.INTERNAL: INTERNAL_STATUS,
    }
)

LOGIN_STATUS: Mapping[AuthErrorKind, int] = MappingProxyType(
    {
        AuthErrorKind.INVALID_CREDENTIALS: 401,
        AuthErrorKind.NOT_REGISTERED: 404,
        AuthErrorKind.CREDENTIALS_MISMATCH: 401,
        AuthErrorKind.PASSWORD_MISSING: 400,
        AuthErrorKind.INTERNAL: INTERNAL_STATUS,
    }
)


def classify(exc: BaseException, table: Mapping[AuthErrorKind, int]) -> tuple[int, AuthErrorKind]:
    """Return (status, kind) for an exception raised during an operation."""
    if isinstance(exc, AuthError) and exc.kind in table:
        return table[exc.kind], exc.kind
    return INTERNAL_STATUS, AuthErrorKind.INTERNAL
