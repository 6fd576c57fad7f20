"""Serve the gateway with uvicorn.

Usage:
  python scripts/run_api.py [--host 127.0.0.1] [--port 8000] [--reload]
"""

import argparse
import os
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

import uvicorn


def main() -> None:
    ap = argparse.ArgumentParser()
    ap.add_argument("--host", default=os.environ.get("API_HOST", "0.0.0.0"))
    ap.add_argument("--port", type=int, default=int(os.environ.get("API_PORT", "8000")))
    ap.add_argument("--reload", action="store_true", help="dev only")
    args = ap.parse_args()

    uvicorn.run("credential_gateway.api.server:app", host=args.host, port=args.port, reload=args.reload)


if __name__ == "__main__":
    main()
