"""Hydration read path: prefill a questionnaire from a stored technology.

For every keyed, dictionary-linked question the value comes from, in order:

1. the per-question answer record (attributed to `technologyAnswer`),
2. the typed column its binding path points at, classified against the
   stage journal entry for the key (or an unattributed answer, which always
   classifies as UNKNOWN).

Read-only; runs on whatever connection the caller provides.
"""

from __future__ import annotations

import logging
import math
import re
from datetime import date, datetime
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy.engine import Connection

from intake.logic.answer_status import get_answer_status
from intake.logic.answer_values import has_meaningful_value
from intake.logic.binding_metadata import collect_binding_metadata, parse_binding_path
from intake.logic.repository_answer_records import list_answer_records
from intake.logic.repository_entities import find_stage, find_technology_by_tech_id
from intake.logic.versioned_answers import VersionedAnswerMap, parse_versioned_answer_map
from intake.models.binding import (
    STAGE_DESTINATIONS,
    AnswerSource,
    Destination,
    RowVersionSnapshot,
    VersionedAnswer,
)
from intake.models.hydration import HydrationResult, TechnologyContext
from intake.models.questionnaire import FieldType, QuestionDefinition, QuestionnaireDefinition

logger = logging.getLogger(__name__)

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def _column_for_field(field: str) -> str:
    return _CAMEL_BOUNDARY.sub("_", field).lower()


def resolve_binding_value(
    binding_path: str,
    technology: Optional[Mapping[str, Any]],
    stages: Mapping[Destination, Optional[Mapping[str, Any]]],
) -> Any:
    """Read the typed column a binding path points at; None when unresolvable."""
    if technology is None:
        return None
    parsed = parse_binding_path(binding_path)
    if parsed is None:
        return None
    destination, field = parsed
    row = technology if destination == Destination.TECHNOLOGY else stages.get(destination)
    if row is None:
        return None
    return row.get(_column_for_field(field))


def _to_number(value: Any) -> Optional[float | int]:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, (int, float)):
        num = float(value)
    elif isinstance(value, str) and value.strip():
        try:
            num = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(num):
        return None
    return int(num) if num.is_integer() else num


def normalize_value_for_field(field_type: str, value: Any) -> Any:
    """Shape a stored value for the form control of `field_type`.

    Returns None when the value cannot be represented for that control.
    """
    if field_type in (FieldType.MULTI_SELECT, FieldType.CHECKBOX_GROUP):
        if isinstance(value, (list, tuple)):
            return [str(entry) for entry in value]
        if isinstance(value, str):
            return [part.strip() for part in value.split(",") if part.strip()]
        return None

    if field_type in (FieldType.SCORING_0_3, FieldType.INTEGER):
        return _to_number(value)

    if field_type == FieldType.DATE:
        if isinstance(value, (datetime, date)):
            return value.isoformat()[:10]
        if isinstance(value, str):
            return value
        return None

    if field_type == FieldType.REPEATABLE_GROUP:
        if isinstance(value, (list, tuple)):
            rows = [dict(entry) for entry in value if isinstance(entry, Mapping)]
            return rows or None
        return None

    return value


def _fallback_source(destination: Optional[Destination]) -> AnswerSource:
    if destination in STAGE_DESTINATIONS:
        return AnswerSource(destination.value)  # type: ignore[union-attr]
    return AnswerSource.TECHNOLOGY


def build_initial_values(
    questions: List[QuestionDefinition],
    technology: Mapping[str, Any],
    stages: Mapping[Destination, Optional[Mapping[str, Any]]],
    answer_records: List[Mapping[str, Any]],
) -> HydrationResult:
    result = HydrationResult()
    records = {str(r["question_key"]): r for r in answer_records}

    journals: Dict[Destination, VersionedAnswerMap] = {}
    for destination in STAGE_DESTINATIONS:
        stage = stages.get(destination)
        journals[destination] = parse_versioned_answer_map(
            stage.get("extended_data") if stage else None,
            AnswerSource(destination.value),
        )

    for question in questions:
        key = question.dictionary_key
        dictionary = question.dictionary
        if not key or dictionary is None:
            continue

        record = records.get(key)
        if record is not None:
            normalized = normalize_value_for_field(question.field_type, record["value"])
            if question.field_type == FieldType.REPEATABLE_GROUP:
                if normalized is not None:
                    result.repeat_groups[key] = normalized
            else:
                result.responses[key] = normalized if normalized is not None else record["value"]
            result.answer_metadata[key] = get_answer_status(
                question,
                VersionedAnswer(
                    value=record["value"],
                    question_revision_id=record.get("revision_id"),
                    answered_at=record.get("answered_at"),
                    source=AnswerSource.TECHNOLOGY_ANSWER,
                ),
            )
            continue

        raw_value = resolve_binding_value(dictionary.binding_path, technology, stages)
        normalized = normalize_value_for_field(question.field_type, raw_value) if raw_value is not None else None
        if normalized is None:
            result.answer_metadata[key] = get_answer_status(question, None)
            continue

        if question.field_type == FieldType.REPEATABLE_GROUP:
            result.repeat_groups[key] = normalized
            continue
        result.responses[key] = normalized

        parsed = parse_binding_path(dictionary.binding_path)
        destination = parsed[0] if parsed else None
        versioned: Optional[VersionedAnswer] = None
        if destination in journals:
            versioned = journals[destination].get(dictionary.key)  # type: ignore[index]
        if versioned is None and has_meaningful_value(raw_value):
            versioned = VersionedAnswer(value=raw_value, source=_fallback_source(destination))
        result.answer_metadata[key] = get_answer_status(question, versioned)

    return result


def hydrate_technology(
    conn: Connection,
    questionnaire: QuestionnaireDefinition,
    tech_id: Optional[str],
) -> HydrationResult:
    """Build initial values and freshness metadata for `tech_id`.

    An absent or unknown techId yields the questionnaire's bindings with no
    values and no context.
    """
    binding_metadata = collect_binding_metadata(questionnaire)
    technology = find_technology_by_tech_id(conn, tech_id.strip()) if tech_id and tech_id.strip() else None
    if technology is None:
        logger.info("hydration_no_technology tech_id=%s", tech_id)
        return HydrationResult(binding_metadata=binding_metadata)

    stages = {
        destination: find_stage(conn, destination, technology["id"])
        for destination in STAGE_DESTINATIONS
    }
    records = list_answer_records(conn, technology["id"])

    result = build_initial_values(list(questionnaire.iter_questions()), technology, stages, records)
    triage = stages[Destination.TRIAGE_STAGE]
    viability = stages[Destination.VIABILITY_STAGE]
    row_versions = RowVersionSnapshot(
        technology_row_version=int(technology["row_version"]),
        triage_stage_row_version=int(triage["row_version"]) if triage else None,
        viability_stage_row_version=int(viability["row_version"]) if viability else None,
    )
    result.binding_metadata = binding_metadata
    result.row_versions = row_versions
    result.context = TechnologyContext(
        id=str(technology["id"]),
        tech_id=str(technology["tech_id"]),
        has_triage_stage=triage is not None,
        has_viability_stage=viability is not None,
        technology_row_version=row_versions.technology_row_version,
        triage_stage_row_version=row_versions.triage_stage_row_version,
        viability_stage_row_version=row_versions.viability_stage_row_version,
    )
    logger.info(
        "hydration_built tech_id=%s responses=%s repeat_groups=%s",
        technology["tech_id"],
        len(result.responses),
        len(result.repeat_groups),
    )
    return result


__all__ = [
    "resolve_binding_value",
    "normalize_value_for_field",
    "build_initial_values",
    "hydrate_technology",
]
