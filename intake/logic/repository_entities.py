"""Technology and stage row data access.

Every helper takes the caller's `Connection` so all writes of one submission
share one transaction. Column names interpolated into SQL come only from the
whitelists in `intake.logic.entity_fields`; values are always bound.
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, Mapping, Optional

from sqlalchemy import text as sql_text
from sqlalchemy.engine import Connection

from intake.logic.entity_fields import (
    TECHNOLOGY_BINDABLE_FIELDS,
    TRIAGE_STAGE_BINDABLE_FIELDS,
    TRIAGE_STAGE_CREATE_DEFAULTS,
    VIABILITY_STAGE_BINDABLE_FIELDS,
    VIABILITY_STAGE_CREATE_DEFAULTS,
)
from intake.models.binding import Destination

logger = logging.getLogger(__name__)

TECHNOLOGY_TABLE = "technology"

_TECHNOLOGY_COLUMNS = frozenset(TECHNOLOGY_BINDABLE_FIELDS.values()) | {
    "tech_id",
    "last_modified_by",
    "last_modified_at",
}

STAGE_TABLES: Dict[Destination, str] = {
    Destination.TRIAGE_STAGE: "triage_stage",
    Destination.VIABILITY_STAGE: "viability_stage",
}

_STAGE_COLUMNS: Dict[str, frozenset] = {
    "triage_stage": frozenset(TRIAGE_STAGE_BINDABLE_FIELDS.values())
    | frozenset(TRIAGE_STAGE_CREATE_DEFAULTS)
    | {"extended_data"},
    "viability_stage": frozenset(VIABILITY_STAGE_BINDABLE_FIELDS.values())
    | frozenset(VIABILITY_STAGE_CREATE_DEFAULTS)
    | {"extended_data"},
}

_STAGE_DEFAULTS: Dict[str, Dict[str, Any]] = {
    "triage_stage": TRIAGE_STAGE_CREATE_DEFAULTS,
    "viability_stage": VIABILITY_STAGE_CREATE_DEFAULTS,
}


def _checked_columns(table: str, data: Mapping[str, Any], allowed: frozenset) -> list[str]:
    unknown = [column for column in data if column not in allowed]
    if unknown:
        raise ValueError(f"Unknown {table} columns: {', '.join(sorted(unknown))}")
    return list(data)


def _set_clause(columns: list[str]) -> str:
    assignments = [f"{column} = :{column}" for column in columns]
    assignments.append("row_version = row_version + 1")
    assignments.append("updated_at = CURRENT_TIMESTAMP")
    return ", ".join(assignments)


def _conditional_update(
    conn: Connection,
    table: str,
    row_id: str,
    columns: list[str],
    data: Mapping[str, Any],
    expected_version: Optional[int],
) -> bool:
    """Run `UPDATE ... row_version = row_version + 1`; False when no row matched.

    With `expected_version` the update only applies while the stored version
    still equals it; without it the write is unconditional.
    """
    params: Dict[str, Any] = {column: data[column] for column in columns}
    params["row_id"] = row_id
    where = "id = :row_id"
    if expected_version is not None:
        where += " AND row_version = :expected_version"
        params["expected_version"] = int(expected_version)
    result = conn.execute(
        sql_text(f"UPDATE {table} SET {_set_clause(columns)} WHERE {where}"),
        params,
    )
    return (result.rowcount or 0) > 0


# Technology ---------------------------------------------------------------


def find_technology_by_tech_id(conn: Connection, tech_id: str) -> Optional[Dict[str, Any]]:
    row = conn.execute(
        sql_text("SELECT * FROM technology WHERE tech_id = :tech_id"),
        {"tech_id": tech_id},
    ).mappings().first()
    return dict(row) if row else None


def get_technology(conn: Connection, technology_id: str) -> Optional[Dict[str, Any]]:
    row = conn.execute(
        sql_text("SELECT * FROM technology WHERE id = :id"),
        {"id": technology_id},
    ).mappings().first()
    return dict(row) if row else None


def insert_technology(conn: Connection, data: Mapping[str, Any]) -> Dict[str, Any]:
    """Insert a technology row at row_version 1 and return the stored row."""
    columns = _checked_columns(TECHNOLOGY_TABLE, data, _TECHNOLOGY_COLUMNS)
    technology_id = str(uuid.uuid4())
    params: Dict[str, Any] = {column: data[column] for column in columns}
    params["id"] = technology_id
    column_sql = ", ".join(["id", *columns, "row_version"])
    value_sql = ", ".join([":id", *[f":{c}" for c in columns], "1"])
    conn.execute(
        sql_text(f"INSERT INTO technology ({column_sql}) VALUES ({value_sql})"),
        params,
    )
    created = get_technology(conn, technology_id)
    if created is None:
        raise RuntimeError("Unable to reload technology record after insert.")
    return created


def update_technology(
    conn: Connection,
    technology_id: str,
    data: Mapping[str, Any],
    expected_version: Optional[int] = None,
) -> bool:
    columns = _checked_columns(TECHNOLOGY_TABLE, data, _TECHNOLOGY_COLUMNS)
    return _conditional_update(conn, TECHNOLOGY_TABLE, technology_id, columns, data, expected_version)


# Stages -------------------------------------------------------------------


def find_stage(conn: Connection, destination: Destination, technology_id: str) -> Optional[Dict[str, Any]]:
    table = STAGE_TABLES[destination]
    row = conn.execute(
        sql_text(f"SELECT * FROM {table} WHERE technology_id = :technology_id"),
        {"technology_id": technology_id},
    ).mappings().first()
    return dict(row) if row else None


def get_stage_row_version(conn: Connection, destination: Destination, stage_id: str) -> Optional[int]:
    table = STAGE_TABLES[destination]
    row = conn.execute(
        sql_text(f"SELECT row_version FROM {table} WHERE id = :id"),
        {"id": stage_id},
    ).fetchone()
    return int(row[0]) if row else None


def insert_stage(
    conn: Connection,
    destination: Destination,
    technology_id: str,
    data: Mapping[str, Any],
) -> Dict[str, Any]:
    """Create a stage row at row_version 1, filling defaults for unset columns."""
    table = STAGE_TABLES[destination]
    merged: Dict[str, Any] = dict(_STAGE_DEFAULTS[table])
    merged.update(data)
    columns = _checked_columns(table, merged, _STAGE_COLUMNS[table])
    params: Dict[str, Any] = {column: merged[column] for column in columns}
    params["id"] = str(uuid.uuid4())
    params["technology_id"] = technology_id
    column_sql = ", ".join(["id", "technology_id", *columns, "row_version"])
    value_sql = ", ".join([":id", ":technology_id", *[f":{c}" for c in columns], "1"])
    conn.execute(sql_text(f"INSERT INTO {table} ({column_sql}) VALUES ({value_sql})"), params)
    created = find_stage(conn, destination, technology_id)
    if created is None:
        raise RuntimeError(f"Unable to reload {table} row after insert.")
    return created


def update_stage(
    conn: Connection,
    destination: Destination,
    stage_id: str,
    data: Mapping[str, Any],
    expected_version: Optional[int] = None,
) -> bool:
    table = STAGE_TABLES[destination]
    columns = _checked_columns(table, data, _STAGE_COLUMNS[table])
    return _conditional_update(conn, table, stage_id, columns, data, expected_version)


__all__ = [
    "STAGE_TABLES",
    "find_technology_by_tech_id",
    "get_technology",
    "insert_technology",
    "update_technology",
    "find_stage",
    "get_stage_row_version",
    "insert_stage",
    "update_stage",
]
