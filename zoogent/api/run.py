"""
Server entry point.

Usage:
    python -m zoogent.api.run
    python -m zoogent.api.run --port 8000

For auto-reload during development, use uvicorn directly:
    uvicorn zoogent.api.app:create_app --factory --reload --port 8000
"""

from __future__ import annotations

import argparse
import os

import uvicorn

from zoogent.api.app import create_app
from zoogent.config import configure_logging


def main():
    parser = argparse.ArgumentParser(description="ZooGent API server")
    parser.add_argument("--host", default="0.0.0.0", help="Bind address")
    parser.add_argument(
        "--port", type=int,
        default=int(os.getenv("PORT", "8000")),
        help="Port (defaults to PORT env var, then 8000)",
    )
    args = parser.parse_args()

    configure_logging()

    app = create_app()
    # Sessions live in process memory; more workers would split them.
    uvicorn.run(app, host=args.host, port=args.port, log_level="info")


if __name__ == "__main__":
    main()
