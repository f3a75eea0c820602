"""Administrator accounts and the bootstrap administrator."""
from __future__ import annotations

import logging
import sqlite3
from typing import Optional

from .database import Database, current_timestamp, generate_id, parse_datetime, serialize_datetime
from .directory import normalize_email
from .errors import DuplicateEmailError, InvalidInputError, NotFoundError
from .models import Admin
from .security import CredentialStore

logger = logging.getLogger("payportal.admins")

# Well-known bootstrap credentials; operators are expected to rotate them.
DEFAULT_ADMIN_EMAIL = "admin@local"
DEFAULT_ADMIN_PASSWORD = "Admin123!"


class AdminDirectory:
    """Look up and maintain administrator accounts."""

    def __init__(self, database: Database, credentials: CredentialStore) -> None:
        self._database = database
        self._credentials = credentials

    def create(self, email: str, password: str) -> Admin:
        normalized_email = normalize_email(email)
        if not normalized_email:
            raise InvalidInputError("Email must not be empty")
        if not password or not password.strip():
            raise InvalidInputError("Password must not be empty")

        admin = Admin(id=generate_id(), email=normalized_email, created_at=current_timestamp())
        password_hash = self._credentials.hash(password)

        with self._database.transaction() as conn:
            existing = conn.execute(
                "SELECT 1 FROM admins WHERE email = ?", (normalized_email,)
            ).fetchone()
            if existing is not None:
                raise DuplicateEmailError(normalized_email)
            self._insert(conn, admin, password_hash)

        logger.info("Created administrator %s", admin.email)
        return admin

    def find_by_email(self, email: str) -> Optional[Admin]:
        row = self._fetch_row(email)
        if row is None:
            return None
        return self._row_to_admin(row)

    def password_hash(self, email: str) -> Optional[str]:
        row = self._fetch_row(email)
        if row is None:
            return None
        return str(row["password_hash"])

    def set_password_hash(self, admin_id: str, password_hash: str) -> None:
        with self._database.transaction() as conn:
            cursor = conn.execute(
                "UPDATE admins SET password_hash = ? WHERE id = ?",
                (password_hash, admin_id),
            )
            if cursor.rowcount == 0:
                raise NotFoundError(f"Administrator {admin_id} not found")

    def count(self) -> int:
        with self._database.connection() as conn:
            row = conn.execute("SELECT COUNT(*) AS total FROM admins").fetchone()
        return int(row["total"])

    def ensure_default_admin(self) -> Optional[Admin]:
        """Insert the bootstrap administrator when no administrator exists.

        Safe to call on every start; returns the created admin or ``None``.
        """

        admin = Admin(id=generate_id(), email=DEFAULT_ADMIN_EMAIL, created_at=current_timestamp())
        with self._database.transaction() as conn:
            if conn.execute("SELECT 1 FROM admins LIMIT 1").fetchone() is not None:
                return None
            self._insert(conn, admin, self._credentials.hash(DEFAULT_ADMIN_PASSWORD))

        logger.warning(
            "Created default administrator %s with the well-known bootstrap password; change it now",
            DEFAULT_ADMIN_EMAIL,
        )
        return admin

    def _fetch_row(self, email: str) -> Optional[sqlite3.Row]:
        normalized_email = normalize_email(email)
        if not normalized_email:
            return None
        with self._database.connection() as conn:
            return conn.execute(
                "SELECT * FROM admins WHERE email = ?",
                (normalized_email,),
            ).fetchone()

    def _insert(self, conn: sqlite3.Connection, admin: Admin, password_hash: str) -> None:
        conn.execute(
            "INSERT INTO admins (id, email, password_hash, created_at) VALUES (?, ?, ?, ?)",
            (admin.id, admin.email, password_hash, serialize_datetime(admin.created_at)),
        )

    def _row_to_admin(self, row: sqlite3.Row) -> Admin:
        return Admin(
            id=str(row["id"]),
            email=str(row["email"]),
            created_at=parse_datetime(str(row["created_at"])),
        )


__all__ = ["AdminDirectory", "DEFAULT_ADMIN_EMAIL", "DEFAULT_ADMIN_PASSWORD"]
