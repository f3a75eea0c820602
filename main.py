"""Command-line interface for the payment tracking portal."""

from __future__ import annotations

import argparse
import logging
import sys
from getpass import getpass
from typing import Sequence

from payportal.config import Settings, load_settings
from payportal.errors import PortalError
from payportal.models import AuthenticatedAdmin, PaymentStatus
from payportal.portal import PaymentPortal

logger = logging.getLogger("payportal.main")

_KNOWN_COMMANDS = {"serve", "init-db", "create-user", "list-users", "set-status", "audit"}


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Payment tracking portal utilities")
    parser.add_argument(
        "--db",
        dest="db_path",
        default=None,
        help="Path to the SQLite database (defaults to PAYPORTAL_DB_PATH or data/payportal.sqlite3)",
    )
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve", host="127.0.0.1", port=3000)

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP portal API")
    serve_parser.add_argument("--host", default="127.0.0.1", help="Bind address for the API")
    serve_parser.add_argument(
        "--port",
        type=int,
        default=3000,
        help="Port for the HTTP API (default: 3000)",
    )

    subparsers.add_parser("init-db", help="Initialise the database and bootstrap administrator")

    create_parser = subparsers.add_parser("create-user", help="Register a user and prompt for an access code")
    create_parser.add_argument("name", help="Display name for the user")
    create_parser.add_argument("email", help="Unique email address used for login")
    create_parser.add_argument("--project", default=None, help="Optional project label")

    subparsers.add_parser("list-users", help="List registered users and their status")

    status_parser = subparsers.add_parser("set-status", help="Change a user's payment status")
    status_parser.add_argument("user_id", help="Identifier of the user to update")
    status_parser.add_argument(
        "status",
        help="New status: " + ", ".join(value.value for value in PaymentStatus.ordered()),
    )
    status_parser.add_argument(
        "--admin-email",
        required=True,
        help="Administrator email recorded in the audit log",
    )

    audit_parser = subparsers.add_parser("audit", help="Show the most recent status changes")
    audit_parser.add_argument("--limit", type=int, default=None, help="Number of entries to show")

    args_list = list(argv) if argv is not None else sys.argv[1:]

    if not args_list:
        args_list = ["serve"]
    else:
        first = args_list[0]
        if first in ("-h", "--help"):
            return parser.parse_args(args_list)
        if first not in _KNOWN_COMMANDS and not first.startswith("--db"):
            if any(flag in args_list for flag in ("-h", "--help")):
                return parser.parse_args(args_list)
            args_list = ["serve", *args_list]

    return parser.parse_args(args_list)


def _initialise_portal(settings: Settings) -> PaymentPortal:
    portal = PaymentPortal.from_settings(settings)
    created = portal.initialize()
    logger.info("Database initialised at %s", settings.database_path)
    if created is not None:
        print(f"Created default administrator {created.email}; change its password immediately.")
    return portal


def _serve(portal: PaymentPortal, settings: Settings, *, host: str, port: int) -> None:
    from payportal.api import create_app
    import uvicorn

    logger.info("Starting payment portal API on http://%s:%s", host, port)
    app = create_app(portal=portal, settings=settings)
    uvicorn.run(app, host=host, port=port, log_level="info")


def _prompt_for_code() -> str | None:
    for _ in range(3):
        code = getpass("Access code: ")
        if not code.strip():
            print("Access code must not be empty. Please try again.")
            continue
        confirmation = getpass("Confirm access code: ")
        if code != confirmation:
            print("Access codes do not match. Please try again.")
            continue
        return code
    return None


def _create_user(portal: PaymentPortal, *, name: str, email: str, project: str | None) -> int:
    code = _prompt_for_code()
    if code is None:
        print("Aborted creating user.", file=sys.stderr)
        return 1
    try:
        user = portal.users.create(name, email, code, project=project)
    except PortalError as exc:
        print(f"Failed to create user: {exc}", file=sys.stderr)
        return 1
    print(f"Created user {user.id}: {user.name} <{user.email}>")
    return 0


def _list_users(portal: PaymentPortal) -> int:
    users = portal.users.list()
    if not users:
        print("No users are currently registered.")
        return 0

    print(f"{len(users)} user(s) found:")
    print(f"{'ID':<32}  {'Name':<24}  {'Email':<32}  Status")
    print("-" * 110)
    for user in users:
        print(f"{user.id:<32}  {user.name:<24}  {user.email:<32}  {user.status.label}")
    return 0


def _set_status(portal: PaymentPortal, *, user_id: str, status: str, admin_email: str) -> int:
    admin = portal.admins.find_by_email(admin_email)
    if admin is None:
        print(f"No administrator is registered as {admin_email}.", file=sys.stderr)
        return 1
    try:
        entry = portal.set_user_status(AuthenticatedAdmin(email=admin.email), user_id, status)
    except PortalError as exc:
        print(f"Failed to change status: {exc}", file=sys.stderr)
        return 1
    if entry is None:
        print("Status unchanged; no audit entry recorded.")
    else:
        previous = entry.from_status.label if entry.from_status else "-"
        print(f"Status changed from {previous} to {entry.to_status.label}.")
    return 0


def _show_audit(portal: PaymentPortal, *, limit: int | None) -> int:
    try:
        views = portal.audit.recent_for_admin_view(portal.audit_limit if limit is None else limit)
    except PortalError as exc:
        print(f"Failed to read audit log: {exc}", file=sys.stderr)
        return 1
    if not views:
        print("No status changes have been recorded.")
        return 0
    for view in views:
        entry = view.entry
        previous = entry.from_status.value if entry.from_status else "-"
        stamp = entry.at.strftime("%Y-%m-%d %H:%M:%S %Z")
        print(f"{stamp}  {view.user_name:<24}  {previous} -> {entry.to_status.value}  by {entry.admin_email}")
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for CLI usage."""

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

    args = _parse_args(argv)
    settings = load_settings().with_database_path(args.db_path)
    portal = _initialise_portal(settings)

    if args.command == "serve":
        _serve(portal, settings, host=args.host, port=args.port)
        return 0
    if args.command == "create-user":
        return _create_user(portal, name=args.name, email=args.email, project=args.project)
    if args.command == "list-users":
        return _list_users(portal)
    if args.command == "set-status":
        return _set_status(portal, user_id=args.user_id, status=args.status, admin_email=args.admin_email)
    if args.command == "audit":
        return _show_audit(portal, limit=args.limit)
    print("Database initialisation complete.")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
