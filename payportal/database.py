"""SQLite-backed persistence for users, administrators, and the audit log."""
from __future__ import annotations

import logging
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Optional

from .errors import DuplicateEmailError, PortalError, StorageError
from .models import PaymentStatus

logger = logging.getLogger("payportal.database")

_BUSY_TIMEOUT_SECONDS = 10.0


def _ensure_directory(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def resolve_database_path(env_value: Optional[str]) -> Path:
    """Resolve the on-disk path for the application database."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    base_dir = Path(__file__).resolve().parent.parent / "data"
    return (base_dir / "payportal.sqlite3").resolve(strict=False)


def current_timestamp() -> datetime:
    return datetime.now(timezone.utc)


def serialize_datetime(value: datetime) -> str:
    return value.isoformat(timespec="microseconds")


def parse_datetime(value: str) -> datetime:
    return datetime.fromisoformat(value)


def generate_id() -> str:
    return uuid.uuid4().hex


def _status_check() -> str:
    members = ", ".join(f"'{status.value}'" for status in PaymentStatus.ordered())
    return f"CHECK (status IN ({members}))"


def _is_email_conflict(exc: sqlite3.IntegrityError) -> bool:
    message = str(exc).lower()
    return "unique" in message and "email" in message


class Database:
    """Thin wrapper around SQLite that owns the schema and transaction scope."""

    def __init__(self, path: Path) -> None:
        _ensure_directory(path)
        self._path = path

    @property
    def path(self) -> Path:
        return self._path

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(
            self._path,
            timeout=_BUSY_TIMEOUT_SECONDS,
            check_same_thread=False,
            isolation_level=None,
        )
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        return conn

    def initialize(self) -> None:
        """Create the required tables if they do not already exist."""

        with self.connection() as conn:
            conn.executescript(
                f"""
                CREATE TABLE IF NOT EXISTS users (
                    id TEXT PRIMARY KEY,
                    name TEXT NOT NULL,
                    email TEXT NOT NULL UNIQUE COLLATE NOCASE,
                    project TEXT,
                    status TEXT NOT NULL DEFAULT '{PaymentStatus.initial().value}'
                        {_status_check()},
                    access_code_hash TEXT NOT NULL,
                    created_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS admins (
                    id TEXT PRIMARY KEY,
                    email TEXT NOT NULL UNIQUE COLLATE NOCASE,
                    password_hash TEXT NOT NULL,
                    created_at TEXT NOT NULL
                );

                CREATE TABLE IF NOT EXISTS audit_log (
                    id TEXT PRIMARY KEY,
                    user_id TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                    admin_email TEXT NOT NULL,
                    from_status TEXT,
                    to_status TEXT NOT NULL,
                    at TEXT NOT NULL
                );

                CREATE INDEX IF NOT EXISTS idx_audit_log_user_id ON audit_log(user_id);
                CREATE INDEX IF NOT EXISTS idx_audit_log_at ON audit_log(at);
                """
            )
        logger.debug("Schema ensured at %s", self._path)

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        """Yield an autocommit connection for read-only queries."""

        conn = self._connect()
        try:
            yield conn
        except sqlite3.DatabaseError as exc:
            raise StorageError(f"Database query failed: {exc}") from exc
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """Run the enclosed statements as one all-or-nothing unit.

        ``BEGIN IMMEDIATE`` takes the write lock up front so that reads made
        inside the block cannot be invalidated by a concurrent writer.
        """

        conn = self._connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.rollback()
                raise
            conn.commit()
        except PortalError:
            raise
        except sqlite3.IntegrityError as exc:
            if _is_email_conflict(exc):
                raise DuplicateEmailError() from exc
            raise StorageError(f"Database constraint violated: {exc}") from exc
        except sqlite3.DatabaseError as exc:
            logger.error("Transaction on %s failed: %s", self._path, exc)
            raise StorageError(f"Database transaction failed: {exc}") from exc
        finally:
            conn.close()


__all__ = [
    "Database",
    "current_timestamp",
    "generate_id",
    "parse_datetime",
    "resolve_database_path",
    "serialize_datetime",
]
