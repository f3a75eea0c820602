"""Repository of tracked users and their access codes."""
from __future__ import annotations

import logging
import sqlite3
from typing import List, Optional

from .audit import AuditTrail
from .database import Database, current_timestamp, generate_id, parse_datetime, serialize_datetime
from .errors import DuplicateEmailError, InvalidInputError, NotFoundError
from .models import PaymentStatus, User
from .security import CredentialStore

logger = logging.getLogger("payportal.directory")


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def _require_text(value: Optional[str], field: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise InvalidInputError(f"{field} must not be empty")
    return cleaned


def _clean_project(project: Optional[str]) -> Optional[str]:
    if project is None:
        return None
    return project.strip() or None


class UserDirectory:
    """Create, look up, update, and delete tracked users."""

    def __init__(self, database: Database, credentials: CredentialStore, audit: AuditTrail) -> None:
        self._database = database
        self._credentials = credentials
        self._audit = audit

    def create(
        self,
        name: str,
        email: str,
        code: str,
        *,
        project: Optional[str] = None,
    ) -> User:
        """Create a new user with the initial payment status."""

        cleaned_name = _require_text(name, "Name")
        normalized_email = _require_text(normalize_email(email), "Email")
        _require_text(code, "Access code")

        code_hash = self._credentials.hash(code)
        user = User(
            id=generate_id(),
            name=cleaned_name,
            email=normalized_email,
            project=_clean_project(project),
            status=PaymentStatus.initial(),
            created_at=current_timestamp(),
        )

        with self._database.transaction() as conn:
            if self._email_taken(conn, normalized_email):
                raise DuplicateEmailError(normalized_email)
            conn.execute(
                """
                INSERT INTO users (id, name, email, project, status, access_code_hash, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    user.id,
                    user.name,
                    user.email,
                    user.project,
                    user.status.value,
                    code_hash,
                    serialize_datetime(user.created_at),
                ),
            )

        logger.info("Created user %s <%s>", user.id, user.email)
        return user

    def find_by_id(self, user_id: str) -> Optional[User]:
        with self._database.connection() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def find_by_email(self, email: str) -> Optional[User]:
        normalized = normalize_email(email)
        if not normalized:
            return None
        with self._database.connection() as conn:
            row = conn.execute("SELECT * FROM users WHERE email = ?", (normalized,)).fetchone()
        if row is None:
            return None
        return self._row_to_user(row)

    def get(self, user_id: str) -> User:
        user = self.find_by_id(user_id)
        if user is None:
            raise NotFoundError(f"User {user_id} not found")
        return user

    def list(self) -> List[User]:
        with self._database.connection() as conn:
            rows = conn.execute(
                "SELECT * FROM users ORDER BY name COLLATE NOCASE, email"
            ).fetchall()
        return [self._row_to_user(row) for row in rows]

    def update(
        self,
        user_id: str,
        *,
        name: Optional[str] = None,
        email: Optional[str] = None,
        project: Optional[str] = None,
        code: Optional[str] = None,
    ) -> User:
        """Apply a partial update; ``None`` leaves a field untouched.

        A blank ``project`` clears it. A blank ``code`` keeps the stored hash.
        """

        updates: List[str] = []
        values: List[object] = []

        if name is not None:
            updates.append("name = ?")
            values.append(_require_text(name, "Name"))
        normalized_email: Optional[str] = None
        if email is not None:
            normalized_email = _require_text(normalize_email(email), "Email")
            updates.append("email = ?")
            values.append(normalized_email)
        if project is not None:
            updates.append("project = ?")
            values.append(_clean_project(project))
        if code is not None and code.strip():
            updates.append("access_code_hash = ?")
            values.append(self._credentials.hash(code))

        with self._database.transaction() as conn:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
            if row is None:
                raise NotFoundError(f"User {user_id} not found")
            if (
                normalized_email is not None
                and normalized_email != row["email"]
                and self._email_taken(conn, normalized_email)
            ):
                raise DuplicateEmailError(normalized_email)
            if updates:
                conn.execute(
                    f"UPDATE users SET {', '.join(updates)} WHERE id = ?",
                    (*values, user_id),
                )
                row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()

        if updates:
            logger.info("Updated user %s (%s)", user_id, ", ".join(u.split(" ")[0] for u in updates))
        return self._row_to_user(row)

    def delete(self, user_id: str) -> None:
        """Remove a user together with its audit entries."""

        with self._database.transaction() as conn:
            removed_entries = self._audit.delete_all_for_user(conn, user_id)
            cursor = conn.execute("DELETE FROM users WHERE id = ?", (user_id,))
            if cursor.rowcount == 0:
                raise NotFoundError(f"User {user_id} not found")
        logger.info("Deleted user %s and %d audit entries", user_id, removed_entries)

    def access_code_hash(self, user_id: str) -> Optional[str]:
        with self._database.connection() as conn:
            row = conn.execute(
                "SELECT access_code_hash FROM users WHERE id = ?",
                (user_id,),
            ).fetchone()
        if row is None:
            return None
        return str(row["access_code_hash"])

    def replace_access_code_hash(self, user_id: str, code_hash: str) -> None:
        with self._database.transaction() as conn:
            cursor = conn.execute(
                "UPDATE users SET access_code_hash = ? WHERE id = ?",
                (code_hash, user_id),
            )
            if cursor.rowcount == 0:
                raise NotFoundError(f"User {user_id} not found")

    def _email_taken(self, conn: sqlite3.Connection, email: str) -> bool:
        row = conn.execute("SELECT 1 FROM users WHERE email = ?", (email,)).fetchone()
        return row is not None

    def _row_to_user(self, row: sqlite3.Row) -> User:
        return User(
            id=str(row["id"]),
            name=str(row["name"]),
            email=str(row["email"]),
            project=row["project"],
            status=PaymentStatus.parse(row["status"]),
            created_at=parse_datetime(str(row["created_at"])),
        )


__all__ = ["UserDirectory", "normalize_email"]
