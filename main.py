#!/usr/bin/env python3
"""
Auth Service -- signup, login with optional e-mailed second factor, and
revocable session tokens over HTTP.

Usage:
  python main.py
  python main.py --host 0.0.0.0 --port 3000
  python main.py --reload

Environment variables (see core/config.py for the full list):
  SECRET_KEY            JWT signing key, >= 32 chars. Required unless DEBUG=true.
  DEBUG                 true = dev mode (auto-generated SECRET_KEY).
  USER_STORE_BACKEND    memory | sql            (default sql)
  DATABASE_URL          async SQLAlchemy URL    (default sqlite+aiosqlite:///./auth_service.db)
  TOKEN_STORE_BACKEND   memory | redis          (default memory)
  TWO_FA_STORE_BACKEND  memory | redis          (default memory)
  REDIS_URL             redis://host:port/db
"""

import argparse

import uvicorn


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Run the auth service HTTP API.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--host", default="127.0.0.1", help="Interface to bind (default: 127.0.0.1)")
    parser.add_argument("--port", type=int, default=3000, help="Port to listen on (default: 3000)")
    parser.add_argument("--reload", action="store_true", help="Restart on code changes (development only)")
    args = parser.parse_args()

    uvicorn.run("api.main:app", host=args.host, port=args.port, reload=args.reload)


if __name__ == "__main__":
    main()
