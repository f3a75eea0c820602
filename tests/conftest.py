from __future__ import annotations

from pathlib import Path

import pytest

from payportal.database import Database
from payportal.portal import PaymentPortal
from payportal.security import CredentialStore


@pytest.fixture()
def credentials() -> CredentialStore:
    return CredentialStore(rounds=4)


@pytest.fixture()
def database(tmp_path: Path) -> Database:
    db = Database(tmp_path / "payportal.sqlite3")
    db.initialize()
    return db


@pytest.fixture()
def portal(database: Database, credentials: CredentialStore) -> PaymentPortal:
    core = PaymentPortal(database, credentials=credentials)
    core.initialize()
    return core
