from __future__ import annotations

from typing import Any, Dict, Optional

from credential_gateway.db import connect, is_integrity_error
from credential_gateway.util.time import utcnow_iso

from .errors import AuthError, AuthErrorKind
from .security import hash_password, verify_password


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def normalize_username(username: str) -> str:
    return (username or "").strip().lower()


def public_account(row: Any | Dict[str, Any]) -> Dict[str, Any]:
    d = dict(row)
    d.pop("password_hash", None)
    if "is_active" in d:
        d["is_active"] = bool(int(d["is_active"] or 0))
    return d


def get_user_by_email(conn: Any, email: str) -> Optional[Any]:
    e = normalize_email(email)
    if not e:
        return None
    return conn.execute("SELECT * FROM users WHERE email=?", (e,)).fetchone()


def get_user_by_username(conn: Any, username: str) -> Optional[Any]:
    u = normalize_username(username)
    if not u:
        return None
    return conn.execute("SELECT * FROM users WHERE username=?", (u,)).fetchone()


def get_user_by_id(conn: Any, user_id: int) -> Optional[Any]:
    return conn.execute("SELECT * FROM users WHERE id=?", (int(user_id),)).fetchone()


def _duplicate_kind(exc: BaseException) -> AuthErrorKind:
    # sqlite: "UNIQUE constraint failed: users.email"
    # postgres: 'duplicate key value violates unique constraint "users_email_key"'
    return AuthErrorKind.EMAIL_IN_USE if "email" in str(exc).lower() else AuthErrorKind.USERNAME_IN_USE


def create_user(conn: Any, *, email: str, password: str, username: str) -> Dict[str, Any]:
    e = normalize_email(email)
    u = normalize_username(username)
    if not e:
        raise AuthError(AuthErrorKind.EMAIL_EMPTY)
    if not password:
        raise AuthError(AuthErrorKind.PASSWORD_EMPTY)
    if not u:
        raise AuthError(AuthErrorKind.USERNAME_EMPTY)

    if get_user_by_email(conn, e) is not None:
        raise AuthError(AuthErrorKind.EMAIL_IN_USE)
    if get_user_by_username(conn, u) is not None:
        raise AuthError(AuthErrorKind.USERNAME_IN_USE)

    now = utcnow_iso()
    try:
        conn.execute(
            """
            INSERT INTO users (email, username, password_hash, is_active, created_at, updated_at)
            VALUES (?,?,?,?,?,?)
            """,
            (e, u, hash_password(password), 1, now, now),
        )
    except Exception as exc:
        # Lost a race with a concurrent registration; the UNIQUE constraint caught it.
        if is_integrity_error(exc):
            raise AuthError(_duplicate_kind(exc)) from exc
        raise

    row = get_user_by_email(conn, e)
    assert row is not None
    return public_account(row)


def authenticate_user(conn: Any, *, email: str, password: str) -> Any:
    if not password:
        raise AuthError(AuthErrorKind.PASSWORD_MISSING)

    row = get_user_by_email(conn, email)
    if row is None:
        raise AuthError(AuthErrorKind.NOT_REGISTERED)
    if int(row["is_active"] or 0) != 1:
        raise AuthError(AuthErrorKind.INVALID_CREDENTIALS)

    try:
        ok = verify_password(password, str(row["password_hash"]))
    except ValueError as exc:
        # Stored hash is in a scheme we can't read.
        raise AuthError(AuthErrorKind.INVALID_CREDENTIALS) from exc
    if not ok:
        raise AuthError(AuthErrorKind.CREDENTIALS_MISMATCH)
    return row


def touch_last_login(conn: Any, user_id: int) -> None:
    now = utcnow_iso()
    conn.execute(
        "UPDATE users SET last_login_at=?, updated_at=? WHERE id=?",
        (now, now, int(user_id)),
    )


def set_user_active(conn: Any, user_id: int, active: bool) -> None:
    conn.execute(
        "UPDATE users SET is_active=?, updated_at=? WHERE id=?",
        (1 if active else 0, utcnow_iso(), int(user_id)),
    )


class SqlUserStore:
    """User store backed by `connect()`; one connection (and transaction) per call."""

    def __init__(self, db_dsn: str):
        self.db_dsn = db_dsn

    def register(self, *, email: str, password: str, username: str) -> Dict[str, Any]:
        with connect(self.db_dsn) as conn:
            return create_user(conn, email=email, password=password, username=username)

    def get_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        with connect(self.db_dsn) as conn:
            row = get_user_by_email(conn, email)
            return dict(row) if row is not None else None

    def get_by_id(self, user_id: int) -> Optional[Dict[str, Any]]:
        with connect(self.db_dsn) as conn:
            row = get_user_by_id(conn, user_id)
            return dict(row) if row is not None else None

    def login(self, *, email: str, password: str) -> Dict[str, Any]:
        with connect(self.db_dsn) as conn:
            row = authenticate_user(conn, email=email, password=password)
            touch_last_login(conn, int(row["id"]))
            # Re-read so the returned account reflects last_login_at.
            return dict(get_user_by_id(conn, int(row["id"])))
