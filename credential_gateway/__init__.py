"""Credential Gateway - Backend.

Registers accounts, logs them in, issues one-hour session tokens as httpOnly
cookies, logs them out and verifies tokens on later requests.

Core concepts:
- Accounts live in the user store (SQLite or Postgres); only password hashes are stored.
- Sessions are stateless JWTs; validity is signature + expiry, nothing server-side.
- Domain failures carry a stable error kind that each operation maps to an HTTP status.

See README for setup and usage.
"""

__all__ = ["__version__"]

__version__ = "0.1.0"
