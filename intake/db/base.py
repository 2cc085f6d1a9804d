"""SQLAlchemy engine, session and transaction helpers.

The service targets PostgreSQL in production but supports SQLite for local
development and CI. No declarative models are defined here; this module only
manages connection lifecycle. Repositories issue SQL through the `Connection`
handed to them by `transaction()`.
"""

from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)


def _db_url() -> str:
    return (
        os.getenv("TEST_DATABASE_URL")
        or os.getenv("DATABASE_URL")
        or "sqlite+pysqlite:///:memory:"
    )


# Module-level cached Engine to ensure a single shared connection/engine
_ENGINE: Engine | None = None
_ENGINE_URL: str | None = None


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record) -> None:  # type: ignore[no-untyped-def]
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def get_engine(url: str | None = None) -> Engine:
    """Return a singleton SQLAlchemy Engine for the given URL.

    Reuses a module-level Engine so repositories share the same connection
    pool. For SQLite in-memory URLs, use a StaticPool to keep a single
    connection alive across sessions and threads during tests.
    """
    global _ENGINE, _ENGINE_URL
    resolved_url = url or _db_url()

    if _ENGINE is None or _ENGINE_URL != resolved_url:
        kwargs: dict = {"future": True, "pool_pre_ping": True}
        if resolved_url.startswith("sqlite") and ":memory:" in resolved_url:
            # Keep a single in-memory DB connection shared across the process
            kwargs.update({
                "poolclass": StaticPool,
                "connect_args": {"check_same_thread": False},
            })
        _ENGINE = create_engine(resolved_url, **kwargs)
        if resolved_url.startswith("sqlite"):
            # Stage rows reference technology rows; SQLite enforces FKs only when asked
            event.listen(_ENGINE, "connect", _enable_sqlite_foreign_keys)
        _ENGINE_URL = resolved_url

    return _ENGINE


@contextmanager
def transaction(engine: Engine | None = None) -> Generator[Connection, None, None]:
    """Yield a Connection inside one ACID transaction.

    Commits when the block exits normally. Any exception rolls back every
    write made through the connection and is re-raised unchanged so callers
    can distinguish error kinds.
    """
    eng = engine or get_engine()
    with eng.connect() as conn:
        trans = conn.begin()
        try:
            yield conn
            trans.commit()
        except Exception:
            trans.rollback()
            logger.info("transaction_rolled_back", exc_info=True)
            raise

