"""Configuration utilities for the technology intake service.

This module loads application configuration with the following rules:
- Primary source: `intake_config.json` at the project root.
- Overrides: environment variables, then optional text files under `config/`.
- Validation: Pydantic models enforce required fields and value constraints.

Configuration is read here only; synchronization logic receives the values it
needs as explicit arguments and never consults the environment itself.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, ValidationError as PydanticValidationError, field_validator


CONFIG_DIR = Path("config")
ROOT_CONFIG = Path("intake_config.json")
DEFAULT_ACTOR_ID = "shared-user"
logger = logging.getLogger(__name__)


def _read_config_file(rel_path: str) -> Optional[str]:
    path = CONFIG_DIR / rel_path
    try:
        if path.exists():
            return path.read_text(encoding="utf-8").strip()
    except (OSError, UnicodeDecodeError) as e:
        # Recoverable: log and ignore unreadable override
        logger.warning("Failed to read override %s: %s", path, e)
        return None
    return None


def _env(key: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(key, default)


class DatabaseConfig(BaseModel):
    dsn: str
    auto_apply_migrations: bool = Field(default=False)
    migrations_dir: str = Field(default="migrations")

    @field_validator("dsn")
    @classmethod
    def dsn_must_be_non_empty(cls, v: str) -> str:
        if not isinstance(v, str) or not v.strip():
            raise ValueError("database.dsn must be a non-empty string")
        return v


class SyncConfig(BaseModel):
    default_actor_id: str = Field(default=DEFAULT_ACTOR_ID)

    @field_validator("default_actor_id")
    @classmethod
    def actor_must_be_non_blank(cls, v: str) -> str:
        if not isinstance(v, str) or not v.strip():
            raise ValueError("sync.default_actor_id must be a non-empty string")
        return v.strip()


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO")

    @field_validator("level")
    @classmethod
    def level_must_be_known(cls, v: str) -> str:
        level = str(v or "").strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"logging.level must be a standard level name, got {v!r}")
        return level


class AppConfig(BaseModel):
    database: DatabaseConfig
    sync: SyncConfig
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def _read_json_file(path: Path) -> dict:
    try:
        if path.exists():
            return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.error("Failed to read JSON config %s: %s", path, e)
    return {}


def _truthy(text: Optional[str]) -> bool:
    return str(text or "").strip().lower() in {"1", "true", "yes", "on"}


def load_config() -> AppConfig:
    """Load configuration with validation.

    Precedence (highest first):
    1) Environment variables
    2) Text files in `config/` (optional)
    3) intake_config.json at project root (primary base)
    4) Safe defaults for development
    """

    base = _read_json_file(ROOT_CONFIG)

    def _base(path: str, default: Optional[str] = None) -> Optional[str]:
        cur: object = base
        for key in path.split("."):
            if not isinstance(cur, dict) or key not in cur:
                return default
            cur = cur[key]
        return str(cur) if cur is not None else default

    # Database
    dsn = (
        _env("TEST_DATABASE_URL")
        or _env("DATABASE_URL")
        or _read_config_file("database.url")
        or _base("database.dsn")
        or "sqlite+pysqlite:///:memory:"
    )
    auto_apply_text = _env("AUTO_APPLY_MIGRATIONS") or _read_config_file("database.auto_apply_migrations") or _base("database.auto_apply_migrations", "false")
    migrations_dir = _env("MIGRATIONS_DIR") or _base("database.migrations_dir", "migrations")

    # Synchronization
    actor_id = _env("INTAKE_DEFAULT_ACTOR_ID") or _read_config_file("sync.default_actor_id") or _base("sync.default_actor_id", DEFAULT_ACTOR_ID)

    # Logging
    log_level = _env("LOG_LEVEL") or _base("logging.level", "INFO")

    try:
        return AppConfig(
            database=DatabaseConfig(
                dsn=dsn,
                auto_apply_migrations=_truthy(auto_apply_text),
                migrations_dir=str(migrations_dir),
            ),
            sync=SyncConfig(default_actor_id=str(actor_id)),
            logging=LoggingConfig(level=str(log_level)),
        )
    except PydanticValidationError as e:
        # Surface actionable message before propagating
        logger.error("Invalid application configuration: %s", e)
        raise


__all__ = [
    "AppConfig",
    "DatabaseConfig",
    "SyncConfig",
    "LoggingConfig",
    "DEFAULT_ACTOR_ID",
    "load_config",
]
