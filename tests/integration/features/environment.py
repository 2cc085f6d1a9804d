"""Behave environment hooks for technology intake integration tests.

Scenarios drive the HTTP API and read the database back to check what was
written. When `TEST_BASE_URL` is set the steps talk to that running service
over httpx and `TEST_DATABASE_URL` must point at the same database. Otherwise
the app is booted in-process against a scratch SQLite file.
"""

from __future__ import annotations

import os
import shutil
import tempfile
from pathlib import Path
from typing import Any

import httpx
from sqlalchemy import text

_ROOT = Path(__file__).resolve().parents[3]

_TABLES_IN_DELETE_ORDER = (
    "technology_answer",
    "triage_stage",
    "viability_stage",
    "technology",
    "questionnaire_question",
    "questionnaire_section",
    "questionnaire",
    "question_dictionary",
)


def _local_database_url() -> str:
    db_file = _ROOT / "tmp" / "integration_tests.db"
    db_file.parent.mkdir(parents=True, exist_ok=True)
    if db_file.exists():
        db_file.unlink()
    return f"sqlite:///{db_file}"


def before_all(context: Any) -> None:  # pragma: no cover - executed by Behave
    base_url = os.environ.get("TEST_BASE_URL", "").strip().rstrip("/")
    if base_url:
        assert os.environ.get("TEST_DATABASE_URL", "").strip(), (
            "TEST_DATABASE_URL is required when TEST_BASE_URL targets a running service"
        )
    else:
        os.environ["TEST_DATABASE_URL"] = _local_database_url()
    os.environ.setdefault("DATABASE_URL", os.environ["TEST_DATABASE_URL"])
    os.environ["AUTO_APPLY_MIGRATIONS"] = "0"
    context.api_prefix = os.environ.get("TEST_API_PREFIX", "/api/v1")

    # Imported after the environment is configured
    from intake.db.base import get_engine
    from intake.db.migrations_runner import apply_migrations

    context.engine = get_engine(os.environ["TEST_DATABASE_URL"])

    # Scratch copy keeps the migration journal out of the repository
    context._migrations_dir = tempfile.mkdtemp(prefix="intake-migrations-")
    for sql_file in (_ROOT / "migrations").glob("*.sql"):
        shutil.copy(sql_file, Path(context._migrations_dir) / sql_file.name)
    apply_migrations(context.engine, migrations_dir=context._migrations_dir)

    if base_url:
        context.client = httpx.Client(base_url=base_url, timeout=10.0)
    else:
        from fastapi.testclient import TestClient

        from intake.main import create_app

        context.client = TestClient(create_app(), raise_server_exceptions=False)
    print(f"[env] target={'live ' + base_url if base_url else 'in-process app'}")


def before_scenario(context: Any, scenario: Any) -> None:  # pragma: no cover - executed by Behave
    with context.engine.begin() as conn:
        for table in _TABLES_IN_DELETE_ORDER:
            conn.execute(text(f"DELETE FROM {table}"))
    context.vars = {}
    context.last_response = None


def after_all(context: Any) -> None:  # pragma: no cover - executed by Behave
    client = getattr(context, "client", None)
    if client is not None:
        client.close()
    engine = getattr(context, "engine", None)
    if engine is not None:
        engine.dispose()
    migrations_dir = getattr(context, "_migrations_dir", None)
    if migrations_dir:
        shutil.rmtree(migrations_dir, ignore_errors=True)
