"""
Tests for CredentialGateway operations, called directly with a Starlette Response.
"""

from dataclasses import replace
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest
from starlette.responses import Response

from credential_gateway.auth.errors import AuthError, AuthErrorKind
from credential_gateway.auth.gateway import ACCESS_TOKEN_COOKIE, CredentialGateway
from credential_gateway.auth.security import create_access_token

from conftest import TEST_SECRET


def _set_cookies(response):
    return [v for k, v in response.raw_headers if k == b"set-cookie"]


def _token_from(response):
    for raw in _set_cookies(response):
        header = raw.decode("latin-1")
        if header.startswith(f"{ACCESS_TOKEN_COOKIE}="):
            return header.split(";", 1)[0].split("=", 1)[1]
    return None


def _cookie_attrs(raw):
    """Lower-cased attributes of a Set-Cookie header, without the name=value pair."""
    parts = [p.strip().lower() for p in raw.decode("latin-1").split(";")]
    return set(parts[1:])


def _failing_store(exc):
    store = MagicMock()
    store.register.side_effect = exc
    store.login.side_effect = exc
    return store


# =============================================================================
# Register
# =============================================================================


@pytest.mark.parametrize(
    "payload",
    [
        None,
        [],
        "alice",
        {},
        {"email": "alice@acme.io", "password": "pw"},
        {"email": "", "password": "pw", "username": "alice"},
        {"email": "not-an-email", "password": "pw", "username": "alice"},
        {"email": "alice@acme.io", "password": "", "username": "alice"},
        {"email": "alice@acme.io", "password": "pw", "username": ""},
        {"email": "alice@acme.io", "password": "pw", "username": "   "},
    ],
)
def test_register_rejects_invalid_payload_without_touching_store(cfg, payload):
    store = MagicMock()
    gateway = CredentialGateway(cfg, store)
    response = Response()

    body = gateway.register(payload, response)

    assert response.status_code == 400
    assert body == {"message": "validation failed"}
    assert store.method_calls == []
    assert _set_cookies(response) == []


def test_register_success_sets_cookie_and_hides_hash(gateway, alice):
    response = Response()
    body = gateway.register(alice, response)

    assert response.status_code == 200
    assert body["message"] == "user created"
    assert body["user"]["email"] == "alice@acme.io"
    assert body["user"]["username"] == "alice"
    assert "password_hash" not in body["user"]
    assert "password" not in body["user"]

    token = _token_from(response)
    assert token
    verify_response = Response()
    verified = gateway.verify(token, verify_response)
    assert verify_response.status_code == 200
    assert verified["data"]["id"] == body["user"]["id"]


def test_register_duplicate_email(gateway, alice):
    gateway.register(alice, Response())

    response = Response()
    body = gateway.register({**alice, "username": "alice2"}, response)

    assert response.status_code == 400
    assert body == {"message": "email already in use"}
    assert _set_cookies(response) == []


def test_register_duplicate_username(gateway, alice):
    gateway.register(alice, Response())

    response = Response()
    body = gateway.register({**alice, "email": "other@acme.io"}, response)

    assert response.status_code == 400
    assert body == {"message": "username already in use"}


@pytest.mark.parametrize(
    "kind,status",
    [
        (AuthErrorKind.EMAIL_EMPTY, 401),
        (AuthErrorKind.PASSWORD_EMPTY, 404),
        (AuthErrorKind.USERNAME_EMPTY, 401),
        (AuthErrorKind.EMAIL_IN_USE, 400),
        (AuthErrorKind.USERNAME_IN_USE, 400),
    ],
)
def test_register_status_table(cfg, alice, kind, status):
    gateway = CredentialGateway(cfg, _failing_store(AuthError(kind)))
    response = Response()

    body = gateway.register(alice, response)

    assert response.status_code == status
    assert body == {"message": kind.message}


def test_register_infrastructure_failure_is_500_and_logged(cfg, alice, capsys):
    gateway = CredentialGateway(cfg, _failing_store(RuntimeError("disk on fire")))
    response = Response()

    body = gateway.register(alice, response)

    assert response.status_code == 500
    assert body == {"message": "internal server error"}
    out = capsys.readouterr().out
    assert "[gateway] register failed" in out
    assert "disk on fire" in out


def test_register_login_only_kind_is_internal(cfg, alice):
    gateway = CredentialGateway(cfg, _failing_store(AuthError(AuthErrorKind.NOT_REGISTERED)))
    response = Response()

    body = gateway.register(alice, response)

    assert response.status_code == 500
    assert body == {"message": "internal server error"}


def test_register_account_missing_after_insert_is_500(cfg, alice):
    store = MagicMock()
    store.get_by_email.return_value = None
    gateway = CredentialGateway(cfg, store)
    response = Response()

    gateway.register(alice, response)

    assert response.status_code == 500
    assert _set_cookies(response) == []


# =============================================================================
# Login
# =============================================================================


def test_login_success(gateway, alice):
    registered = gateway.register(alice, Response())["user"]

    response = Response()
    body = gateway.login({"email": alice["email"], "password": alice["password"]}, response)

    assert response.status_code == 200
    assert body["message"] == "user logged in"
    assert body["user"]["id"] == registered["id"]
    assert "password_hash" not in body["user"]
    assert body["user"]["last_login_at"]

    data = gateway.verify(_token_from(response), Response())["data"]
    assert data["id"] == registered["id"]


def test_login_accepts_register_shaped_body(gateway, alice):
    gateway.register(alice, Response())
    response = Response()
    gateway.login(alice, response)
    assert response.status_code == 200


def test_login_wrong_password(gateway, alice):
    gateway.register(alice, Response())

    response = Response()
    body = gateway.login({"email": alice["email"], "password": "wrong"}, response)

    assert response.status_code == 401
    assert body == {"message": "email or password do not match"}
    assert _set_cookies(response) == []


def test_login_unregistered_email(gateway):
    response = Response()
    body = gateway.login({"email": "ghost@acme.io", "password": "pw"}, response)

    assert response.status_code == 404
    assert body == {"message": "email not registered"}


@pytest.mark.parametrize(
    "payload",
    [
        {"password": "pw"},
        {"email": "alice@acme.io"},
        {"email": "alice@acme.io", "password": ""},
        {"email": "nope", "password": "pw"},
    ],
)
def test_login_rejects_invalid_payload_without_touching_store(cfg, payload):
    store = MagicMock()
    gateway = CredentialGateway(cfg, store)
    response = Response()

    body = gateway.login(payload, response)

    assert response.status_code == 400
    assert body == {"message": "validation failed"}
    store.login.assert_not_called()


@pytest.mark.parametrize(
    "kind,status",
    [
        (AuthErrorKind.INVALID_CREDENTIALS, 401),
        (AuthErrorKind.NOT_REGISTERED, 404),
        (AuthErrorKind.CREDENTIALS_MISMATCH, 401),
        (AuthErrorKind.PASSWORD_MISSING, 400),
        (AuthErrorKind.EMAIL_IN_USE, 500),
    ],
)
def test_login_status_table(cfg, kind, status):
    gateway = CredentialGateway(cfg, _failing_store(AuthError(kind)))
    response = Response()

    gateway.login({"email": "alice@acme.io", "password": "pw"}, response)

    assert response.status_code == status


def test_login_infrastructure_failure_is_500_and_logged(cfg, capsys):
    gateway = CredentialGateway(cfg, _failing_store(ConnectionError("db gone")))
    response = Response()

    body = gateway.login({"email": "alice@acme.io", "password": "pw"}, response)

    assert response.status_code == 500
    assert body == {"message": "internal server error"}
    assert "[gateway] login failed" in capsys.readouterr().out


# =============================================================================
# Cookies
# =============================================================================


def test_cookie_attributes_development(gateway, alice):
    response = Response()
    gateway.register(alice, response)

    attrs = _cookie_attrs(_set_cookies(response)[0])
    assert "httponly" in attrs
    assert "samesite=none" in attrs
    assert "secure" not in attrs


def test_cookie_attributes_production(prod_cfg, store, alice):
    gateway = CredentialGateway(prod_cfg, store)
    response = Response()
    gateway.register(alice, response)

    attrs = _cookie_attrs(_set_cookies(response)[0])
    assert "httponly" in attrs
    assert "samesite=none" in attrs
    assert "secure" in attrs


@pytest.mark.parametrize("production", [False, True])
def test_logout_clears_with_matching_attributes(cfg, store, production):
    gateway = CredentialGateway(replace(cfg, PRODUCTION=production), store)
    response = Response()

    body = gateway.logout(response)

    assert response.status_code == 200
    assert body == {"message": "user logged out"}
    raw = _set_cookies(response)[0]
    assert raw.decode("latin-1").startswith(f"{ACCESS_TOKEN_COOKIE}=")
    attrs = _cookie_attrs(raw)
    assert "max-age=0" in attrs
    assert "httponly" in attrs
    assert "samesite=none" in attrs
    assert ("secure" in attrs) is production


def test_logout_twice_is_fine(gateway):
    first, second = Response(), Response()
    assert gateway.logout(first) == {"message": "user logged out"}
    assert gateway.logout(second) == {"message": "user logged out"}
    assert first.status_code == second.status_code == 200


def test_logout_failure_is_500(gateway, capsys):
    response = MagicMock()
    response.delete_cookie.side_effect = RuntimeError("boom")

    body = gateway.logout(response)

    assert response.status_code == 500
    assert body == {"message": "internal server error"}
    assert "[gateway] logout failed" in capsys.readouterr().out


# =============================================================================
# Verify
# =============================================================================


@pytest.mark.parametrize("token", [None, ""])
def test_verify_without_token(gateway, token, capsys):
    response = Response()
    body = gateway.verify(token, response)

    assert response.status_code == 401
    assert body == {"message": "not authenticated"}
    # No signature check attempted, nothing logged.
    assert "[gateway]" not in capsys.readouterr().out


def test_verify_valid_token(gateway):
    token = create_access_token(secret=TEST_SECRET, account_id=42)
    response = Response()

    body = gateway.verify(token, response)

    assert response.status_code == 200
    assert body["data"]["id"] == 42
    assert body["data"]["exp"] - body["data"]["iat"] == 3600


@pytest.mark.parametrize(
    "token",
    [
        create_access_token(secret="some-other-secret", account_id=42),
        create_access_token(
            secret=TEST_SECRET,
            account_id=42,
            now=datetime.now(timezone.utc) - timedelta(hours=2),
        ),
        "not-a-jwt",
        "a.b.c",
    ],
    ids=["wrong-secret", "expired", "garbage", "malformed"],
)
def test_verify_rejects_bad_tokens(gateway, token, capsys):
    response = Response()
    body = gateway.verify(token, response)

    assert response.status_code == 401
    assert body == {"message": "invalid token"}
    assert "[gateway] token verification failed" in capsys.readouterr().out
