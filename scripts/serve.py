#!/usr/bin/env python3
"""Run the finblog services or dump their API schema.

Usage:
    # Serve the auth API on AUTH_LISTEN_ADDR (default 0.0.0.0:8000):
    python scripts/serve.py auth

    # Write the OpenAPI document:
    python scripts/serve.py openapi --write openapi.json

Environment Variables:
    GH_CLIENT_ID, GH_CLIENT_SECRET, GH_ORG: GitHub OAuth app and required organization
    BASE_URL: public URL of the service, used for the callback and cookie domain
    REDIS_URL: session store (set USE_MEMORY_STORE=true to run without Redis)
"""
from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

# Add project root to path for imports
ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(ROOT))


def _split_listen_addr(addr: str) -> tuple[str, int]:
    host, sep, port = addr.rpartition(":")
    if not sep or not port.isdigit():
        raise ValueError(f"invalid listen address {addr!r}, expected host:port")
    return host or "0.0.0.0", int(port)


def serve_auth() -> int:
    import uvicorn

    from finblog.config import get_settings
    from finblog.logging import get_logger

    logger = get_logger("finblog.serve")
    settings = get_settings()
    try:
        host, port = _split_listen_addr(settings.listen_addr)
    except ValueError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    logger.info("auth_service_starting", host=host, port=port, base_url=settings.base_url)
    uvicorn.run("finblog.app:app", host=host, port=port, log_config=None)
    return 0


def write_openapi(path: str) -> int:
    from finblog.app import app

    document = app.openapi()
    Path(path).write_text(json.dumps(document, indent=2, sort_keys=True) + "\n")
    print(f"Wrote OpenAPI schema to {path}")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="finblog service entry point")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("auth", help="Run the auth service")

    openapi = commands.add_parser("openapi", help="Write the OpenAPI schema")
    openapi.add_argument(
        "--write",
        metavar="PATH",
        default="openapi.json",
        help="Output file (default: openapi.json)",
    )

    args = parser.parse_args()
    if args.command == "auth":
        return serve_auth()
    return write_openapi(args.write)


if __name__ == "__main__":
    sys.exit(main())
