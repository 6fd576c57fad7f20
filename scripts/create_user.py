"""Register an account in the configured DB.

Usage:
  python scripts/create_user.py --email alice@example.com --username alice --password '...'

NOTE: This is intended for local/dev. It goes through the same store (and the
same duplicate checks) as /auth/register, but does not issue a session.
"""

import argparse
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from credential_gateway.auth import AuthError, SqlUserStore
from credential_gateway.config import load_config
from credential_gateway.db import init_db


def main() -> int:
    ap = argparse.ArgumentParser()
    ap.add_argument("--email", required=True)
    ap.add_argument("--username", required=True)
    ap.add_argument("--password", required=True)
    args = ap.parse_args()

    cfg = load_config()
    init_db(cfg.DB_DSN)

    store = SqlUserStore(cfg.DB_DSN)
    try:
        u = store.register(email=args.email, password=args.password, username=args.username)
    except AuthError as e:
        print(f"Could not create user: {e.message}")
        return 1

    print("Created user:")
    print(u)
    return 0


if __name__ == "__main__":
    sys.exit(main())
