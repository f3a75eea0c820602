from __future__ import annotations

import importlib.util
from pathlib import Path

import pytest

from main import _parse_args, main
from payportal.database import Database
from payportal.models import PaymentStatus
from payportal.portal import PaymentPortal
from payportal.security import CredentialStore


@pytest.fixture(autouse=True)
def fast_hashing(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PAYPORTAL_HASH_ROUNDS", "4")
    monkeypatch.delenv("PAYPORTAL_CONFIG", raising=False)
    monkeypatch.delenv("PAYPORTAL_DB_PATH", raising=False)


def test_default_command_invokes_serve() -> None:
    args = _parse_args([])
    assert args.command == "serve"


def test_default_command_accepts_options_without_subcommand() -> None:
    args = _parse_args(["--host", "0.0.0.0", "--port", "8080"])
    assert args.command == "serve"
    assert args.host == "0.0.0.0"
    assert args.port == 8080


def test_database_option_precedes_subcommand() -> None:
    args = _parse_args(["--db", "portal.sqlite3", "audit", "--limit", "5"])
    assert args.command == "audit"
    assert args.db_path == "portal.sqlite3"
    assert args.limit == 5


def test_init_db_seeds_default_admin(tmp_path: Path, capsys) -> None:
    db_path = tmp_path / "cli.sqlite3"

    assert main(["--db", str(db_path), "init-db"]) == 0
    assert "Created default administrator admin@local" in capsys.readouterr().out

    assert main(["--db", str(db_path), "init-db"]) == 0
    assert "Created default administrator" not in capsys.readouterr().out


def test_set_status_list_and_audit(tmp_path: Path, capsys) -> None:
    db_path = tmp_path / "cli.sqlite3"
    portal = PaymentPortal(Database(db_path), credentials=CredentialStore(rounds=4))
    portal.initialize()
    user = portal.users.create("Ana", "ana@x.com", "1234")

    assert main(["--db", str(db_path), "set-status", user.id, "receipt_issued", "--admin-email", "admin@local"]) == 0
    assert "Status changed from Not started to Receipt issued." in capsys.readouterr().out
    assert portal.users.get(user.id).status is PaymentStatus.RECEIPT_ISSUED

    assert main(["--db", str(db_path), "set-status", user.id, "RECEIPT_ISSUED", "--admin-email", "admin@local"]) == 0
    assert "Status unchanged" in capsys.readouterr().out

    assert main(["--db", str(db_path), "set-status", user.id, "PAID", "--admin-email", "admin@local"]) == 1
    assert main(["--db", str(db_path), "set-status", user.id, "PAID", "--admin-email", "ghost@local"]) == 1
    capsys.readouterr()

    assert main(["--db", str(db_path), "list-users"]) == 0
    listing = capsys.readouterr().out
    assert "ana@x.com" in listing
    assert "Receipt issued" in listing

    assert main(["--db", str(db_path), "audit"]) == 0
    assert "NOT_STARTED -> RECEIPT_ISSUED  by admin@local" in capsys.readouterr().out


def test_create_user_prompts_for_code(tmp_path: Path, monkeypatch: pytest.MonkeyPatch, capsys) -> None:
    db_path = tmp_path / "cli.sqlite3"
    answers = iter(["4321", "4321"])
    monkeypatch.setattr("main.getpass", lambda prompt="": next(answers))

    assert main(["--db", str(db_path), "create-user", "Bruno", "BRUNO@x.com", "--project", "Beta"]) == 0
    assert "<bruno@x.com>" in capsys.readouterr().out

    portal = PaymentPortal(Database(db_path), credentials=CredentialStore(rounds=4))
    assert portal.login_user("bruno@x.com", "4321").user_id


def test_audit_rejects_non_positive_limit(tmp_path: Path, capsys) -> None:
    db_path = tmp_path / "cli.sqlite3"

    assert main(["--db", str(db_path), "audit", "--limit", "0"]) == 1
    assert "Failed to read audit log" in capsys.readouterr().err


def test_create_user_script_delegates_to_cli(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    script_path = Path(__file__).resolve().parent.parent / "scripts" / "create_user.py"
    spec = importlib.util.spec_from_file_location("create_user_script", script_path)
    script = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(script)

    db_path = tmp_path / "script.sqlite3"
    answers = iter([" 4321 ", " 4321 "])
    monkeypatch.setattr("main.getpass", lambda prompt="": next(answers))

    assert script.main(["Carla", "carla@x.com", "--project", "Gamma", "--db", str(db_path)]) == 0

    portal = PaymentPortal(Database(db_path), credentials=CredentialStore(rounds=4))
    user = portal.users.find_by_email("carla@x.com")
    assert user is not None
    assert user.project == "Gamma"
    assert portal.login_user("carla@x.com", " 4321 ").user_id == user.id
