"""Credential gateway: register, login, logout and token verification.

Each operation writes its status code and cookie changes onto a Starlette
`Response` and returns the JSON body, so the same object works behind a
FastAPI route (as the injected response) or directly in tests.

Sessions are stateless: the token's signature and expiry are the whole
session. Logout only clears the client's cookie; a copy of an unexpired token
held elsewhere stays valid until it expires.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Protocol

import jwt
from starlette.responses import Response

from credential_gateway.config import Config

from .crud import public_account
from .errors import (
    INTERNAL_STATUS,
    LOGIN_STATUS,
    REGISTER_STATUS,
    AuthErrorKind,
    classify,
)
from .security import create_access_token, decode_access_token
from .validation import LoginCredentials, RegisterCredentials, parse_credentials


ACCESS_TOKEN_COOKIE = "access_token"

MSG_VALIDATION_FAILED = "validation failed"
MSG_USER_CREATED = "user created"
MSG_USER_LOGGED_IN = "user logged in"
MSG_USER_LOGGED_OUT = "user logged out"
MSG_NOT_AUTHENTICATED = "not authenticated"
MSG_INVALID_TOKEN = "invalid token"


def _debug(msg: str) -> None:
    print(f"[gateway] {msg}")


class UserStore(Protocol):
    def register(self, *, email: str, password: str, username: str) -> Any: ...

    def get_by_email(self, email: str) -> Optional[Dict[str, Any]]: ...

    def get_by_id(self, user_id: int) -> Optional[Dict[str, Any]]: ...

    def login(self, *, email: str, password: str) -> Dict[str, Any]: ...


class CredentialGateway:
    def __init__(self, cfg: Config, store: UserStore):
        self.cfg = cfg
        self.store = store

    # -----------------------------
    # Cookies / tokens
    # -----------------------------

    def cookie_attributes(self) -> Dict[str, Any]:
        """Attributes shared by set and clear; a clear only works if they match."""
        return {
            "httponly": True,
            "samesite": "none",
            "secure": bool(self.cfg.PRODUCTION),
            "path": self.cfg.AUTH_COOKIE_PATH or "/",
            "domain": self.cfg.AUTH_COOKIE_DOMAIN,
        }

    def issue_token(self, account: Mapping[str, Any]) -> str:
        return create_access_token(secret=self.cfg.TOKEN_SECRET, account_id=account["id"])

    def decode_token(self, token: str) -> Dict[str, Any]:
        return decode_access_token(token=token, secret=self.cfg.TOKEN_SECRET)

    def _start_session(self, response: Response, account: Mapping[str, Any]) -> None:
        token = self.issue_token(account)
        response.set_cookie(ACCESS_TOKEN_COOKIE, token, **self.cookie_attributes())

    # -----------------------------
    # Helpers
    # -----------------------------

    @staticmethod
    def _reply(response: Response, status_code: int, body: Dict[str, Any]) -> Dict[str, Any]:
        response.status_code = status_code
        return body

    def _fail(
        self,
        response: Response,
        exc: BaseException,
        table: Mapping[AuthErrorKind, int],
        operation: str,
    ) -> Dict[str, Any]:
        status, kind = classify(exc, table)
        if status == INTERNAL_STATUS:
            _debug(f"{operation} failed: {exc!r}")
        return self._reply(response, status, {"message": kind.message})

    # -----------------------------
    # Operations
    # -----------------------------

    def register(self, payload: Any, response: Response) -> Dict[str, Any]:
        creds = parse_credentials(RegisterCredentials, payload)
        if creds is None:
            return self._reply(response, 400, {"message": MSG_VALIDATION_FAILED})

        try:
            self.store.register(email=creds.email, password=creds.password, username=creds.username)
            account = self.store.get_by_email(creds.email)
            if account is None:
                raise RuntimeError(f"account not readable after register: {creds.email}")
            self._start_session(response, account)
        except Exception as exc:
            return self._fail(response, exc, REGISTER_STATUS, "register")

        return self._reply(response, 200, {"message": MSG_USER_CREATED, "user": public_account(account)})

    def login(self, payload: Any, response: Response) -> Dict[str, Any]:
        creds = parse_credentials(LoginCredentials, payload)
        if creds is None:
            return self._reply(response, 400, {"message": MSG_VALIDATION_FAILED})

        try:
            account = self.store.login(email=creds.email, password=creds.password)
            self._start_session(response, account)
        except Exception as exc:
            return self._fail(response, exc, LOGIN_STATUS, "login")

        return self._reply(response, 200, {"message": MSG_USER_LOGGED_IN, "user": public_account(account)})

    def logout(self, response: Response) -> Dict[str, Any]:
        try:
            response.delete_cookie(ACCESS_TOKEN_COOKIE, **self.cookie_attributes())
        except Exception as exc:
            _debug(f"logout failed: {exc!r}")
            return self._reply(response, INTERNAL_STATUS, {"message": AuthErrorKind.INTERNAL.message})
        return self._reply(response, 200, {"message": MSG_USER_LOGGED_OUT})

    def verify(self, token: Optional[str], response: Response) -> Dict[str, Any]:
        if not token:
            return self._reply(response, 401, {"message": MSG_NOT_AUTHENTICATED})

        try:
            data = self.decode_token(token)
        except (jwt.InvalidTokenError, ValueError) as exc:
            _debug(f"token verification failed: {exc!r}")
            return self._reply(response, 401, {"message": MSG_INVALID_TOKEN})

        return self._reply(response, 200, {"data": data})
