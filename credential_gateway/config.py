import os
from dataclasses import dataclass
from typing import Optional

# Optional: load a local .env file if present.
try:
    from dotenv import load_dotenv

    load_dotenv()
except Exception:
    # If python-dotenv isn't installed or .env isn't present, that's fine.
    pass


def _env_bool(name: str, default: Optional[bool] = None) -> Optional[bool]:
    """Parse a boolean environment variable.

    Returns:
      - True/False if the env var is set to a recognizable value
      - default if unset or unrecognized

    Accepted truthy: 1, true, yes, y, on
    Accepted falsy:  0, false, no, n, off
    """

    raw = os.environ.get(name)
    if raw is None:
        return default
    v = raw.strip().lower()
    if v in ("1", "true", "yes", "y", "on"):
        return True
    if v in ("0", "false", "no", "n", "off"):
        return False
    return default


DEV_TOKEN_SECRET = "dev_change_me"


@dataclass(frozen=True)
class Config:
    """Runtime configuration.

    IMPORTANT: Provide the token secret via environment variables or a .env file.
    Do not hardcode secrets in source code.
    """

    # -----------------
    # Core
    # -----------------
    # Preferred: set GATEWAY_DATABASE_URL (or DATABASE_URL) to use Postgres.
    # Fallback: GATEWAY_DB_PATH for SQLite.
    DB_DSN: str = (
        os.environ.get("GATEWAY_DATABASE_URL")
        or os.environ.get("DATABASE_URL")
        or os.environ.get("GATEWAY_DB_PATH", "./credential_gateway.sqlite")
    )

    # development|production. Only "production" changes behavior (Secure cookies).
    # GATEWAY_PRODUCTION=0/1 overrides the flag explicitly.
    ENVIRONMENT: str = os.environ.get("APP_ENV", "development")
    PRODUCTION: bool = (
        _env_bool("GATEWAY_PRODUCTION", None)
        if _env_bool("GATEWAY_PRODUCTION", None) is not None
        else ENVIRONMENT.strip().lower() == "production"
    )

    # -----------------
    # Auth (JWT)
    # -----------------
    # NOTE: In dev, this defaults to a fixed string so you can get started.
    # In production, you MUST set TOKEN_SECRET to a strong random value.
    TOKEN_SECRET: str = os.environ.get("TOKEN_SECRET", DEV_TOKEN_SECRET)

    # The cookie name, SameSite=None and the 1h lifetime are fixed; only the
    # scope of the cookie is configurable.
    AUTH_COOKIE_DOMAIN: str | None = (os.environ.get("AUTH_COOKIE_DOMAIN") or "").strip() or None
    AUTH_COOKIE_PATH: str = os.environ.get("AUTH_COOKIE_PATH", "/")

    # -----------------
    # CORS
    # -----------------
    # SameSite=None cookies are only useful cross-site, so the SPA origin(s) must
    # be allowed with credentials. Empty string disables CORS entirely.
    CORS_ALLOW_ORIGINS: str = os.environ.get(
        "CORS_ALLOW_ORIGINS",
        "http://localhost:5173,http://127.0.0.1:5173,http://localhost:3000",
    )


def load_config() -> Config:
    return Config()
