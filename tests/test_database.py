from __future__ import annotations

from pathlib import Path

import pytest

from payportal.database import Database, resolve_database_path
from payportal.errors import DuplicateEmailError, StorageError


def _insert_user(conn, user_id: str, email: str, status: str = "NOT_STARTED") -> None:
    conn.execute(
        """
        INSERT INTO users (id, name, email, project, status, access_code_hash, created_at)
        VALUES (?, 'Someone', ?, NULL, ?, 'hash', '2024-01-01T00:00:00.000000+00:00')
        """,
        (user_id, email, status),
    )


def test_initialize_is_idempotent(database: Database) -> None:
    database.initialize()
    with database.connection() as conn:
        tables = {
            row["name"]
            for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'table'").fetchall()
        }
    assert {"users", "admins", "audit_log"} <= tables


def test_transaction_rolls_back_on_error(database: Database) -> None:
    with pytest.raises(RuntimeError):
        with database.transaction() as conn:
            _insert_user(conn, "u1", "one@example.com")
            raise RuntimeError("boom")

    with database.connection() as conn:
        count = conn.execute("SELECT COUNT(*) FROM users").fetchone()[0]
    assert count == 0


def test_unique_email_constraint_surfaces_as_duplicate(database: Database) -> None:
    with database.transaction() as conn:
        _insert_user(conn, "u1", "ana@x.com")

    with pytest.raises(DuplicateEmailError):
        with database.transaction() as conn:
            _insert_user(conn, "u2", "ANA@x.com")


def test_status_outside_the_set_is_rejected_by_storage(database: Database) -> None:
    with pytest.raises(StorageError):
        with database.transaction() as conn:
            _insert_user(conn, "u1", "one@example.com", status="SOMETHING_ELSE")


def test_resolve_database_path_prefers_explicit_value(tmp_path: Path) -> None:
    explicit = tmp_path / "custom.sqlite3"
    assert resolve_database_path(str(explicit)) == explicit.resolve()
    assert resolve_database_path(None).name == "payportal.sqlite3"
