"""Register a payment portal user from a shell on the server."""
import argparse
import sys
from pathlib import Path
from typing import Sequence

ROOT = Path(__file__).resolve().parent.parent
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import main as portal_cli


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Register a payment portal user")
    parser.add_argument("name", help="Display name for the user")
    parser.add_argument("email", help="Unique email address for login")
    parser.add_argument("--project", default=None, help="Optional project label")
    parser.add_argument(
        "--db",
        dest="db_path",
        default=None,
        help="Path to the SQLite database (defaults to PAYPORTAL_DB_PATH or data/payportal.sqlite3)",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(argv)

    cli_args = []
    if args.db_path:
        cli_args.extend(["--db", args.db_path])
    cli_args.extend(["create-user", args.name, args.email])
    if args.project:
        cli_args.extend(["--project", args.project])
    return portal_cli.main(cli_args)


if __name__ == "__main__":
    raise SystemExit(main())
