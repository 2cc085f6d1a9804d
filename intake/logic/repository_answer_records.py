"""Per-question answer store (`technology_answer`).

One row per (technology, question key) holding the latest meaningful value
as JSON text, who answered it, when, and the question revision it answered.
"""

from __future__ import annotations

import json
import logging
import uuid
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import text as sql_text
from sqlalchemy.engine import Connection

from intake.logic.answer_values import has_meaningful_value
from intake.logic.binding_values import utc_timestamp
from intake.models.binding import BindingMetadata

logger = logging.getLogger(__name__)


_UPSERT_SQL = """
INSERT INTO technology_answer (id, technology_id, question_key, value, answered_at, answered_by, revision_id)
VALUES (:id, :technology_id, :question_key, :value, :answered_at, :answered_by, :revision_id)
ON CONFLICT (technology_id, question_key)
DO UPDATE SET value = excluded.value,
              answered_at = excluded.answered_at,
              answered_by = excluded.answered_by,
              revision_id = excluded.revision_id
"""


def upsert_answer_records(
    conn: Connection,
    technology_id: str,
    metadata: Mapping[str, BindingMetadata],
    answers: Mapping[str, Any],
    actor_id: str,
) -> int:
    """Write the latest meaningful value of every answered key.

    Covers bound and unbound keys alike; keys without metadata record a NULL
    revision. Empty values are skipped, so an existing record is never
    cleared here. Returns the number of records written.
    """
    answered_at = utc_timestamp()
    written = 0
    for question_key, value in answers.items():
        if not has_meaningful_value(value):
            continue
        meta = metadata.get(question_key)
        conn.execute(
            sql_text(_UPSERT_SQL),
            {
                "id": str(uuid.uuid4()),
                "technology_id": technology_id,
                "question_key": question_key,
                "value": json.dumps(value, ensure_ascii=False),
                "answered_at": answered_at,
                "answered_by": actor_id,
                "revision_id": meta.current_revision_id if meta is not None else None,
            },
        )
        written += 1
    logger.info(
        "answer_records_upserted technology_id=%s written=%s", technology_id, written
    )
    return written


def _decode_value(raw: Any) -> Any:
    if isinstance(raw, str):
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            return raw
    return raw


def _timestamp_text(raw: Any) -> Optional[str]:
    if raw is None:
        return None
    if hasattr(raw, "isoformat"):
        return raw.isoformat()
    return str(raw)


def list_answer_records(conn: Connection, technology_id: str) -> List[Dict[str, Any]]:
    """Return stored answer records with decoded values, ordered by key."""
    rows = conn.execute(
        sql_text(
            """
            SELECT question_key, value, answered_at, answered_by, revision_id
            FROM technology_answer
            WHERE technology_id = :technology_id
            ORDER BY question_key ASC
            """
        ),
        {"technology_id": technology_id},
    ).mappings().all()
    return [
        {
            "question_key": r["question_key"],
            "value": _decode_value(r["value"]),
            "answered_at": _timestamp_text(r["answered_at"]),
            "answered_by": r["answered_by"],
            "revision_id": r["revision_id"],
        }
        for r in rows
    ]


__all__ = ["upsert_answer_records", "list_answer_records"]
