#!/usr/bin/env python3
"""
AccountHub -- account credentials, password reset and live change feed.

Usage:
  python main.py serve
  python main.py serve --host 0.0.0.0 --port 8080 --reload
  python main.py import ./database
  python main.py create-account --email admin@example.com --password secret --role admin

Environment variables (see core/config.py for the full list):
  DATABASE_URL   SQLAlchemy URL of the record store. Default sqlite:///accounthub.db
  PORT           Port for `serve`. Default 3000.
"""

import argparse
import sys
from pathlib import Path

from core.config import get_settings
from core.errors import AccountError


def _serve(args: argparse.Namespace) -> int:
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "asgi:app",
        host=args.host or settings.host,
        port=args.port or settings.port,
        reload=args.reload,
        log_level=settings.log_level.lower(),
    )
    return 0


def _import(args: argparse.Namespace) -> int:
    from store.ingest import IngestError, import_directory
    from store.records import RecordStore

    store = RecordStore(get_settings().database_url)
    try:
        counts = import_directory(store, Path(args.directory))
    except IngestError as e:
        print(f"  [!] Import failed: {e}")
        return 1
    finally:
        store.close()

    if not counts:
        print(f"  [!] No collection files found in '{args.directory}'.")
        return 1
    for name, count in counts.items():
        print(f"  {name}: {count} record(s)")
    return 0


def _create_account(args: argparse.Namespace) -> int:
    from auth.service import AuthService
    from auth.store import AccountStore
    from store.records import RecordStore

    store = RecordStore(get_settings().database_url)
    try:
        account = AuthService(AccountStore(store)).signup(args.email, args.password, name=args.name, role=args.role)
    except AccountError as e:
        print(f"  [!] {e.message}")
        return 1
    finally:
        store.close()
    print(f"  Created {account.id} ({account.email}, role={account.role})")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="accounthub", description="AccountHub server and maintenance commands.")
    sub = parser.add_subparsers(dest="command", required=True)

    serve = sub.add_parser("serve", help="Run the HTTP server.")
    serve.add_argument("--host", default=None)
    serve.add_argument("--port", type=int, default=None)
    serve.add_argument("--reload", action="store_true", help="Reload on code changes (development).")
    serve.set_defaults(func=_serve)

    imp = sub.add_parser("import", help="Load accounts.json / media.json / followers.json from a directory.")
    imp.add_argument("directory")
    imp.set_defaults(func=_import)

    create = sub.add_parser("create-account", help="Create an account from the command line.")
    create.add_argument("--email", required=True)
    create.add_argument("--password", required=True)
    create.add_argument("--name", default=None)
    create.add_argument("--role", default="user")
    create.set_defaults(func=_create_account)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
