"""Questionnaire definition data access.

Read-only view of the authoring tables: a questionnaire, its ordered sections
and questions, and each question's dictionary entry (LEFT JOIN, so questions
whose dictionary key has no entry surface with `dictionary=None`).
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from sqlalchemy import text as sql_text
from sqlalchemy.engine import Connection

from intake.logic.errors import QuestionnaireNotFoundError
from intake.models.binding import DataSource
from intake.models.questionnaire import (
    DictionaryEntry,
    QuestionDefinition,
    QuestionnaireDefinition,
    SectionDefinition,
)

logger = logging.getLogger(__name__)


def _dictionary_from_row(row: Any) -> DictionaryEntry | None:
    if row["dictionary_id"] is None:
        return None
    current_version = row["current_version"]
    return DictionaryEntry(
        id=str(row["dictionary_id"]),
        key=str(row["dictionary_key_resolved"]),
        label=str(row["dictionary_label"] or ""),
        binding_path=str(row["binding_path"]),
        data_source=DataSource(str(row["data_source"])),
        current_revision_id=row["current_revision_id"],
        current_version=int(current_version) if current_version is not None else None,
    )


def load_questionnaire(conn: Connection, questionnaire_id: str) -> QuestionnaireDefinition:
    head = conn.execute(
        sql_text("SELECT id, name, version FROM questionnaire WHERE id = :id"),
        {"id": questionnaire_id},
    ).mappings().first()
    if head is None:
        raise QuestionnaireNotFoundError(questionnaire_id)

    section_rows = conn.execute(
        sql_text(
            """
            SELECT id, code, title, section_order
            FROM questionnaire_section
            WHERE questionnaire_id = :qid
            ORDER BY section_order ASC, id ASC
            """
        ),
        {"qid": questionnaire_id},
    ).mappings().all()

    question_rows = conn.execute(
        sql_text(
            """
            SELECT q.id, q.section_id, q.label, q.field_type, q.question_order,
                   q.dictionary_key,
                   d.id AS dictionary_id,
                   d.key AS dictionary_key_resolved,
                   d.label AS dictionary_label,
                   d.binding_path, d.data_source,
                   d.current_revision_id, d.current_version
            FROM questionnaire_question q
            JOIN questionnaire_section s ON s.id = q.section_id
            LEFT JOIN question_dictionary d ON d.key = q.dictionary_key
            WHERE s.questionnaire_id = :qid
            ORDER BY q.question_order ASC, q.id ASC
            """
        ),
        {"qid": questionnaire_id},
    ).mappings().all()

    questions_by_section: Dict[str, List[QuestionDefinition]] = {}
    for r in question_rows:
        questions_by_section.setdefault(str(r["section_id"]), []).append(
            QuestionDefinition(
                id=str(r["id"]),
                label=str(r["label"] or ""),
                field_type=str(r["field_type"]),
                order=int(r["question_order"] or 0),
                dictionary_key=r["dictionary_key"] or None,
                dictionary=_dictionary_from_row(r),
            )
        )

    sections = [
        SectionDefinition(
            id=str(s["id"]),
            code=str(s["code"] or ""),
            title=str(s["title"] or ""),
            order=int(s["section_order"] or 0),
            questions=questions_by_section.get(str(s["id"]), []),
        )
        for s in section_rows
    ]
    logger.info(
        "questionnaire_loaded id=%s sections=%s questions=%s",
        questionnaire_id,
        len(sections),
        len(question_rows),
    )
    return QuestionnaireDefinition(
        id=str(head["id"]),
        name=str(head["name"] or ""),
        version=str(head["version"] or ""),
        sections=sections,
    )


def load_active_questionnaire(conn: Connection) -> QuestionnaireDefinition:
    """Load the most recently created active questionnaire."""
    row = conn.execute(
        sql_text(
            """
            SELECT id FROM questionnaire
            WHERE is_active = :active
            ORDER BY created_at DESC, id DESC
            LIMIT 1
            """
        ),
        {"active": True},
    ).fetchone()
    if row is None:
        raise QuestionnaireNotFoundError(None)
    return load_questionnaire(conn, str(row[0]))


__all__ = ["load_questionnaire", "load_active_questionnaire"]
