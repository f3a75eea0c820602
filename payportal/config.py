"""Configuration management for the payment tracking portal."""
from __future__ import annotations

import os
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Dict, Mapping, Optional

import yaml

from .audit import DEFAULT_RECENT_LIMIT
from .database import resolve_database_path
from .security import DEFAULT_HASH_ROUNDS, MIN_HASH_ROUNDS

_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}

_ENV_KEYS = {
    "database_path": "PAYPORTAL_DB_PATH",
    "session_secret": "PAYPORTAL_SESSION_SECRET",
    "session_secure": "PAYPORTAL_SESSION_SECURE",
    "hash_rounds": "PAYPORTAL_HASH_ROUNDS",
    "audit_limit": "PAYPORTAL_AUDIT_LIMIT",
}


@dataclass(frozen=True)
class Settings:
    """Runtime settings shared by the CLI and the HTTP adapter."""

    database_path: Path
    session_secret: Optional[str] = None
    session_secure: bool = False
    hash_rounds: int = DEFAULT_HASH_ROUNDS
    audit_limit: int = DEFAULT_RECENT_LIMIT

    @staticmethod
    def from_dict(data: Mapping[str, object], base_path: Path | None = None) -> "Settings":
        """Create :class:`Settings` from raw key/value data."""

        unknown = set(data.keys()) - set(_ENV_KEYS)
        if unknown:
            raise ValueError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")

        raw_path = data.get("database_path")
        if raw_path:
            candidate = Path(str(raw_path)).expanduser()
            if not candidate.is_absolute() and base_path is not None:
                candidate = base_path / candidate
            database_path = candidate.resolve(strict=False)
        else:
            database_path = resolve_database_path(None)

        secret = data.get("session_secret")
        return Settings(
            database_path=database_path,
            session_secret=str(secret) if secret else None,
            session_secure=_parse_bool("session_secure", data.get("session_secure"), False),
            hash_rounds=_parse_int("hash_rounds", data.get("hash_rounds"), DEFAULT_HASH_ROUNDS, MIN_HASH_ROUNDS),
            audit_limit=_parse_int("audit_limit", data.get("audit_limit"), DEFAULT_RECENT_LIMIT, 1),
        )

    def with_database_path(self, path: Optional[str]) -> "Settings":
        if not path:
            return self
        return replace(self, database_path=resolve_database_path(path))


def _parse_bool(key: str, value: object, default: bool) -> bool:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    lowered = str(value).strip().lower()
    if lowered in _TRUE_VALUES:
        return True
    if lowered in _FALSE_VALUES:
        return False
    raise ValueError(f"Invalid boolean value {value!r} for {key}")


def _parse_int(key: str, value: object, default: int, minimum: int) -> int:
    if value is None or value == "":
        return default
    try:
        parsed = int(str(value).strip())
    except ValueError as exc:
        raise ValueError(f"Invalid integer value {value!r} for {key}") from exc
    if parsed < minimum:
        raise ValueError(f"{key} must be at least {minimum}")
    return parsed


def resolve_config_path(env_value: Optional[str]) -> Path:
    """Resolve the path to the optional YAML configuration file."""

    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    return (Path(__file__).resolve().parent.parent / "config" / "payportal.yaml").resolve(strict=False)


def _load_yaml(config_path: Path) -> Dict[str, object]:
    with config_path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"Configuration file {config_path} must contain a mapping")
    section = raw.get("payportal", {})
    if not isinstance(section, dict):
        raise ValueError("The 'payportal' section of the configuration file must be a mapping")
    return dict(section)


def load_settings(environ: Mapping[str, str] | None = None) -> Settings:
    """Load settings from the YAML file (if any) overlaid with environment variables."""

    env = os.environ if environ is None else environ
    config_path = resolve_config_path(env.get("PAYPORTAL_CONFIG"))

    data: Dict[str, object] = {}
    base_path: Path | None = None
    if config_path.is_file():
        data.update(_load_yaml(config_path))
        base_path = config_path.parent
    elif env.get("PAYPORTAL_CONFIG"):
        raise ValueError(f"Configuration file {config_path} does not exist")

    for key, env_name in _ENV_KEYS.items():
        value = env.get(env_name)
        if value is not None and value.strip() != "":
            data[key] = value

    if "database_path" in data and env.get(_ENV_KEYS["database_path"]):
        # Environment paths are resolved against the working directory.
        base_path = None

    return Settings.from_dict(data, base_path=base_path)


__all__ = ["Settings", "load_settings", "resolve_config_path"]
