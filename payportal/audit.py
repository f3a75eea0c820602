"""Append-only trail of payment status changes."""
from __future__ import annotations

import sqlite3
from typing import List, Optional

from .database import Database, current_timestamp, generate_id, parse_datetime, serialize_datetime
from .errors import InvalidInputError
from .models import AuditEntry, AuditView, PaymentStatus

DEFAULT_RECENT_LIMIT = 20


class AuditTrail:
    """Read and append audit entries.

    Writes only happen on a connection that already holds an open transaction
    so that an entry is never stored without the status change it describes.
    """

    def __init__(self, database: Database) -> None:
        self._database = database

    def record(
        self,
        conn: sqlite3.Connection,
        user_id: str,
        admin_email: str,
        from_status: Optional[PaymentStatus],
        to_status: PaymentStatus,
    ) -> AuditEntry:
        entry = AuditEntry(
            id=generate_id(),
            user_id=user_id,
            admin_email=admin_email,
            from_status=from_status,
            to_status=to_status,
            at=current_timestamp(),
        )
        conn.execute(
            """
            INSERT INTO audit_log (id, user_id, admin_email, from_status, to_status, at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (
                entry.id,
                entry.user_id,
                entry.admin_email,
                entry.from_status.value if entry.from_status is not None else None,
                entry.to_status.value,
                serialize_datetime(entry.at),
            ),
        )
        return entry

    def recent_for_admin_view(self, limit: int = DEFAULT_RECENT_LIMIT) -> List[AuditView]:
        if limit <= 0:
            raise InvalidInputError("Audit limit must be a positive integer")
        with self._database.connection() as conn:
            rows = conn.execute(
                """
                SELECT audit_log.*, users.name AS user_name
                  FROM audit_log
                  JOIN users ON users.id = audit_log.user_id
                 ORDER BY audit_log.at DESC, audit_log.rowid DESC
                 LIMIT ?
                """,
                (limit,),
            ).fetchall()
        return [AuditView(entry=self._row_to_entry(row), user_name=str(row["user_name"])) for row in rows]

    def history_for_user(self, user_id: str) -> List[AuditEntry]:
        with self._database.connection() as conn:
            rows = conn.execute(
                "SELECT * FROM audit_log WHERE user_id = ? ORDER BY at, rowid",
                (user_id,),
            ).fetchall()
        return [self._row_to_entry(row) for row in rows]

    def count_for_user(self, user_id: str) -> int:
        with self._database.connection() as conn:
            row = conn.execute(
                "SELECT COUNT(*) AS total FROM audit_log WHERE user_id = ?",
                (user_id,),
            ).fetchone()
        return int(row["total"])

    def delete_all_for_user(self, conn: sqlite3.Connection, user_id: str) -> int:
        cursor = conn.execute("DELETE FROM audit_log WHERE user_id = ?", (user_id,))
        return cursor.rowcount

    def _row_to_entry(self, row: sqlite3.Row) -> AuditEntry:
        from_status = row["from_status"]
        return AuditEntry(
            id=str(row["id"]),
            user_id=str(row["user_id"]),
            admin_email=str(row["admin_email"]),
            from_status=PaymentStatus.parse(from_status) if from_status is not None else None,
            to_status=PaymentStatus.parse(row["to_status"]),
            at=parse_datetime(str(row["at"])),
        )


__all__ = ["AuditTrail", "DEFAULT_RECENT_LIMIT"]
