from __future__ import annotations

import re
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, List, Sequence
from urllib.parse import urlparse

from credential_gateway.schema import get_schema_sql


def _debug(msg: str) -> None:
    print(f"[db] {msg}")


def detect_dialect(dsn: str) -> str:
    """Return 'postgres' or 'sqlite'."""
    s = (dsn or "").strip()
    if not s:
        return "sqlite"
    try:
        scheme = urlparse(s).scheme.lower()
    except Exception:
        scheme = ""
    if scheme in ("postgres", "postgresql"):
        return "postgres"
    return "sqlite"


# Quoted literals are matched first so a '?' inside them is left alone.
_QMARK_RE = re.compile(r"('(?:[^']|'')*'|\"(?:[^\"]|\"\")*\")|\?")


def qmark_to_pct(sql: str) -> str:
    """Convert SQLite qmark placeholders (?) to psycopg2 placeholders (%s)."""
    return _QMARK_RE.sub(lambda m: m.group(1) or "%s", sql)


class PGConnection:
    """A tiny adapter that makes psycopg2 connections look like sqlite3 connections."""

    dialect = "postgres"

    def __init__(self, conn: Any):
        self._conn = conn

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> Any:
        cur = self._conn.cursor()
        cur.execute(qmark_to_pct(sql), tuple(params or ()))
        return cur

    def commit(self) -> None:
        self._conn.commit()

    def rollback(self) -> None:
        self._conn.rollback()

    def close(self) -> None:
        self._conn.close()


def _sqlite_path(dsn: str) -> str:
    # Support sqlite:///path style
    if dsn.lower().startswith("sqlite:///"):
        return dsn[len("sqlite:///") :]
    return dsn


@contextmanager
def connect(db_dsn: str) -> Iterator[Any]:
    """Connect to SQLite or Postgres and commit on success, roll back on error.

    - SQLite: uses WAL + NORMAL sync.
    - Postgres: uses psycopg2 (RealDictCursor) so rows behave like dicts.
    """
    dsn = (db_dsn or "").strip()

    if detect_dialect(dsn) == "postgres":
        try:
            import psycopg2
            import psycopg2.extras
        except Exception as e:
            raise RuntimeError(
                "Postgres selected but psycopg2 is not installed. "
                "Install credential-gateway[postgres] and try again."
            ) from e

        conn: Any = PGConnection(psycopg2.connect(dsn, cursor_factory=psycopg2.extras.RealDictCursor))
    else:
        path = _sqlite_path(dsn)
        if path != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(path, timeout=30, check_same_thread=False)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL;")
        conn.execute("PRAGMA synchronous=NORMAL;")
        conn.execute("PRAGMA busy_timeout=5000;")  # 5s
        conn.execute("PRAGMA foreign_keys = ON;")

    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def is_integrity_error(exc: BaseException) -> bool:
    """True for sqlite3 / psycopg2 constraint violations (incl. UniqueViolation)."""
    return any(c.__name__ == "IntegrityError" for c in type(exc).__mro__)


def init_db(db_dsn: str) -> None:
    """Create all tables and run lightweight migrations."""
    dialect = detect_dialect(db_dsn)
    _debug(f"Initializing DB ({dialect}) at {db_dsn}")
    with connect(db_dsn) as conn:
        ddl = get_schema_sql(dialect)
        if dialect == "postgres":
            # Ensure only one process runs schema DDL at a time.
            conn.execute("SELECT pg_advisory_lock(2147483646);")
            try:
                for stmt in [s.strip() for s in ddl.split(";") if s.strip()]:
                    conn.execute(stmt)
            finally:
                conn.execute("SELECT pg_advisory_unlock(2147483646);")
        else:
            conn.executescript(ddl)

        _migrate(conn, dialect=dialect)


def table_columns(conn: Any, table: str, *, dialect: str) -> List[str]:
    if dialect == "postgres":
        rows = conn.execute(
            """
            SELECT column_name
            FROM information_schema.columns
            WHERE table_schema='public' AND table_name=?
            ORDER BY ordinal_position
            """,
            (table,),
        ).fetchall()
        return [str(r["column_name"]) for r in rows]

    rows = conn.execute(f"PRAGMA table_info({table})").fetchall()
    return [str(r["name"]) for r in rows]


def _migrate(conn: Any, *, dialect: str) -> None:
    """Lightweight forward-only migrations for existing DBs."""
    cols = table_columns(conn, "users", dialect=dialect)
    # Early databases predate login tracking / account deactivation.
    if "last_login_at" not in cols:
        conn.execute("ALTER TABLE users ADD COLUMN last_login_at TEXT")
    if "is_active" not in cols:
        conn.execute("ALTER TABLE users ADD COLUMN is_active INTEGER NOT NULL DEFAULT 1")
    conn.execute("CREATE INDEX IF NOT EXISTS idx_users_active ON users (is_active)")
