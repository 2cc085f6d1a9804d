"""Database bootstrap utilities for the technology intake service.

This module exposes convenience imports for engine/transaction construction
and a migrations runner that applies SQL files from the local migrations/
directory. The DB layer is intentionally minimal and does not leak ORM models
into route handlers.
"""

from intake.db.base import get_engine, transaction
from intake.db.migrations_runner import apply_migrations

__all__ = [
    "get_engine",
    "transaction",
    "apply_migrations",
]
