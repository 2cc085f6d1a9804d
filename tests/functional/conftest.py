"""Functional test bootstrap.

Points the service at a file-backed SQLite database before any `intake`
import, applies the project's SQL migrations once per session and empties
every table before each test so tests stay independent.
"""

from __future__ import annotations

import os
import pathlib
import shutil

import pytest

_ROOT = pathlib.Path(__file__).resolve().parents[2]
_DB_FILE = _ROOT / "tmp" / "functional_tests.db"
_DB_FILE.parent.mkdir(parents=True, exist_ok=True)
if _DB_FILE.exists():
    _DB_FILE.unlink()

# Use a file-backed SQLite DB to ensure persistence across connections
os.environ["TEST_DATABASE_URL"] = f"sqlite:///{_DB_FILE}"
os.environ["DATABASE_URL"] = os.environ["TEST_DATABASE_URL"]
# Startup migrations stay off; the session fixture applies them explicitly
os.environ["AUTO_APPLY_MIGRATIONS"] = "0"
os.environ.pop("INTAKE_DEFAULT_ACTOR_ID", None)

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


@pytest.fixture(scope="session")
def engine():
    from intake.db.base import get_engine

    return get_engine(os.environ["TEST_DATABASE_URL"])


@pytest.fixture(scope="session", autouse=True)
def functional_sqlite_bootstrap(engine, tmp_path_factory):
    """Apply migrations from a scratch copy so the repo journal is never written."""
    from intake.db.migrations_runner import apply_migrations

    migrations_dir = tmp_path_factory.mktemp("migrations")
    for sql_file in (_ROOT / "migrations").glob("*.sql"):
        shutil.copy(sql_file, migrations_dir / sql_file.name)
    applied = apply_migrations(engine, migrations_dir=str(migrations_dir))
    assert applied, "expected at least one migration to be applied"
    yield


@pytest.fixture(autouse=True)
def clean_database(engine):
    from sqlalchemy import text as sql_text

    from intake.logic.events import get_buffered_events

    with engine.begin() as conn:
        for table in _TABLES_IN_DELETE_ORDER:
            conn.execute(sql_text(f"DELETE FROM {table}"))
    get_buffered_events(clear=True)
    yield


@pytest.fixture
def questionnaire_id(engine) -> str:
    from seed_data import seed_questionnaire

    with engine.begin() as conn:
        return seed_questionnaire(conn)


@pytest.fixture
def client():
    from fastapi.testclient import TestClient

    from intake.main import create_app

    with TestClient(create_app(), raise_server_exceptions=False) as test_client:
        yield test_client
