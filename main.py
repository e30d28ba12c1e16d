"""Command-line interface for the account proxy service."""

from __future__ import annotations
import argparse
import logging
import os
import sys
from pathlib import Path
from typing import Sequence


def _running_in_virtualenv() -> bool:
    """Return ``True`` when the current interpreter is executing inside a venv."""

    base_prefix = getattr(sys, "base_prefix", sys.prefix)
    return sys.prefix != base_prefix


def _bootstrap_virtualenv() -> None:
    """Re-exec the script using the bundled virtualenv interpreter when available."""

    if _running_in_virtualenv():
        return

    root = Path(__file__).resolve().parent
    venv_dir = root / ".venv"
    if not venv_dir.is_dir():
        return

    candidates = (
        venv_dir / "bin" / "python",
        venv_dir / "bin" / "python3",
        venv_dir / "Scripts" / "python.exe",
        venv_dir / "Scripts" / "python",
    )

    script = str(Path(__file__).resolve())
    for candidate in candidates:
        if candidate.exists():
            os.execv(str(candidate), [str(candidate), script, *sys.argv[1:]])


if __name__ == "__main__":
    _bootstrap_virtualenv()

from accounts.config import ConfigError, ServiceConfig, load_config, resolve_database_path
from accounts.database import Database

logger = logging.getLogger("accounts.main")

_KNOWN_COMMANDS = {"serve", "init-db", "list-users"}


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--db",
        dest="db_path",
        default=None,
        help="Path to the SQLite database (defaults to ACCOUNTS_DB_PATH or data/accounts.sqlite3)",
    )

    parser = argparse.ArgumentParser(description="Account proxy utilities")
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    serve_parser = subparsers.add_parser("serve", parents=[common], help="Start the HTTP API")
    serve_parser.add_argument("--host", default=None, help="Bind address for the API")
    serve_parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Port for the HTTP API (default: PORT or 3000)",
    )

    subparsers.add_parser("init-db", parents=[common], help="Initialise the accounts database")
    subparsers.add_parser("list-users", parents=[common], help="List the mirrored user records")

    args_list = list(argv) if argv is not None else sys.argv[1:]

    if not args_list:
        args_list = ["serve"]
    else:
        first = args_list[0]
        if first in ("-h", "--help"):
            return parser.parse_args(args_list)
        if first not in _KNOWN_COMMANDS:
            if any(flag in args_list for flag in ("-h", "--help")):
                return parser.parse_args(args_list)
            args_list = ["serve", *args_list]

    args = parser.parse_args(args_list)
    if not hasattr(args, "host"):
        args.host = None
        args.port = None
    return args


def _resolve_config(args: argparse.Namespace) -> ServiceConfig:
    config = load_config()
    return config.with_overrides(
        host=args.host,
        port=args.port,
        database_path=resolve_database_path(args.db_path) if args.db_path else None,
    )


def _initialise_database(config: ServiceConfig) -> Database:
    database = Database(config.database_path)
    database.initialize()
    logger.info("Database initialised at %s", config.database_path)
    return database


def _serve(*, config: ServiceConfig, database: Database) -> None:
    from accounts.service import create_app
    import uvicorn

    logger.info("Starting account proxy on http://%s:%s", config.host, config.port)
    logger.info("Forwarding to Cognito app client %s in %s", config.client_id, config.region)

    app = create_app(config=config, database=database)
    uvicorn.run(app, host=config.host, port=config.port, log_level="info")


def _list_users(database: Database) -> None:
    users = database.list_users()
    if not users:
        print("No users are currently registered.")
        return

    print(f"{len(users)} user(s) found:")
    print(f"{'ID':>4}  {'Username':<24}  {'Email':<32}  Confirmed")
    print("-" * 80)
    for user in users:
        if user.confirmed_at is not None:
            confirmed = user.confirmed_at.strftime("%Y-%m-%d %H:%M:%S %Z")
        else:
            confirmed = "pending"
        print(f"{user.id:>4}  {user.username:<24}  {user.email:<32}  {confirmed}")


def main(argv: Sequence[str] | None = None) -> None:
    """Entry point for CLI usage."""

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

    args = _parse_args(argv)
    try:
        config = _resolve_config(args)
    except ConfigError as exc:
        raise SystemExit(f"Invalid configuration: {exc}") from exc

    database = _initialise_database(config)

    if args.command == "serve":
        _serve(config=config, database=database)
    elif args.command == "list-users":
        _list_users(database)
    elif args.command == "init-db":
        print("Database initialisation complete.")


if __name__ == "__main__":
    main()
