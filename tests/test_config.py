from __future__ import annotations

from pathlib import Path

import pytest

from payportal.config import Settings, load_settings


def test_defaults_without_file_or_environment(tmp_path: Path) -> None:
    settings = load_settings({"PAYPORTAL_CONFIG": ""})

    assert settings.database_path.name == "payportal.sqlite3"
    assert settings.session_secret is None
    assert settings.session_secure is False
    assert settings.hash_rounds == 12
    assert settings.audit_limit == 20


def test_yaml_file_with_environment_overrides(tmp_path: Path) -> None:
    config_path = tmp_path / "payportal.yaml"
    config_path.write_text(
        "payportal:\n"
        "  database_path: data/portal.sqlite3\n"
        "  session_secret: from-file\n"
        "  hash_rounds: 10\n"
        "  audit_limit: 50\n",
        encoding="utf-8",
    )

    settings = load_settings(
        {
            "PAYPORTAL_CONFIG": str(config_path),
            "PAYPORTAL_SESSION_SECRET": "from-env",
            "PAYPORTAL_SESSION_SECURE": "yes",
        }
    )

    assert settings.database_path == (tmp_path / "data" / "portal.sqlite3").resolve()
    assert settings.session_secret == "from-env"
    assert settings.session_secure is True
    assert settings.hash_rounds == 10
    assert settings.audit_limit == 50


def test_missing_explicit_config_file(tmp_path: Path) -> None:
    with pytest.raises(ValueError):
        load_settings({"PAYPORTAL_CONFIG": str(tmp_path / "absent.yaml")})


@pytest.mark.parametrize(
    "data",
    [
        {"hash_rounds": "two"},
        {"hash_rounds": 3},
        {"audit_limit": 0},
        {"session_secure": "maybe"},
        {"unexpected": "value"},
    ],
)
def test_invalid_values_are_rejected(data) -> None:
    with pytest.raises(ValueError):
        Settings.from_dict(data)


def test_with_database_path(tmp_path: Path) -> None:
    settings = Settings.from_dict({})
    override = settings.with_database_path(str(tmp_path / "other.sqlite3"))

    assert override.database_path == (tmp_path / "other.sqlite3").resolve()
    assert settings.with_database_path(None) is settings
