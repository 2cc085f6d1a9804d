"""Bindable field policy for the technology entity graph.

Each entity exposes a whitelist mapping binding field names (camelCase, the
part after the destination in a binding path) to typed column names. The
sanitizers turn a partition produced by `partition_by_destination` into a
column -> value mapping ready for the repository; anything not whitelisted
or not coercible is dropped.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

from intake.logic.answer_values import (
    coerce_number,
    coerce_string,
    extract_first_string,
    flatten_array_value,
)

logger = logging.getLogger(__name__)


TECHNOLOGY_BINDABLE_FIELDS: Dict[str, str] = {
    "technologyName": "technology_name",
    "shortDescription": "short_description",
    "inventorName": "inventor_name",
    "inventorTitle": "inventor_title",
    "inventorDept": "inventor_dept",
    "reviewerName": "reviewer_name",
    "domainAssetClass": "domain_asset_class",
}

REQUIRED_TECH_FIELDS_FOR_CREATE = (
    "technologyName",
    "inventorName",
    "reviewerName",
    "domainAssetClass",
)

TRIAGE_TEXT_FIELDS: Dict[str, str] = {
    "technologyOverview": "technology_overview",
    "missionAlignmentText": "mission_alignment_text",
    "unmetNeedText": "unmet_need_text",
    "stateOfArtText": "state_of_art_text",
    "marketOverview": "market_overview",
    "recommendation": "recommendation",
    "recommendationNotes": "recommendation_notes",
}

TRIAGE_SCORE_FIELDS: Dict[str, str] = {
    "missionAlignmentScore": "mission_alignment_score",
    "unmetNeedScore": "unmet_need_score",
    "stateOfArtScore": "state_of_art_score",
    "marketScore": "market_score",
}

TRIAGE_STAGE_BINDABLE_FIELDS: Dict[str, str] = {**TRIAGE_TEXT_FIELDS, **TRIAGE_SCORE_FIELDS}

VIABILITY_STAGE_BINDABLE_FIELDS: Dict[str, str] = {
    "technicalFeasibility": "technical_feasibility",
}

# Non-null typed columns need a value when a stage row is first created
TRIAGE_STAGE_CREATE_DEFAULTS: Dict[str, Any] = {
    "technology_overview": "",
    "mission_alignment_text": "",
    "mission_alignment_score": 0,
    "unmet_need_text": "",
    "unmet_need_score": 0,
    "state_of_art_text": "",
    "state_of_art_score": 0,
    "market_overview": "",
    "market_score": 0,
    "impact_score": 0,
    "value_score": 0,
    "recommendation": "",
}

VIABILITY_STAGE_CREATE_DEFAULTS: Dict[str, Any] = {
    "technical_feasibility": "",
    "regulatory_pathway": "",
    "cost_analysis": "",
    "resource_requirements": "",
    "risk_assessment": "",
    "overall_viability": "",
    "technical_score": 0,
    "commercial_score": 0,
}


def summarize_inventor_rows(rows: List[Mapping[str, Any]]) -> Dict[str, str]:
    """Collapse repeatable inventor rows into the technology's text columns.

    Returns a subset of `inventor_name` (one "name | title | dept | email"
    line per named row), `inventor_dept` and `inventor_title` (unique values
    joined by "; " in first-seen order). Rows without a name contribute
    nothing.
    """
    lines: List[str] = []
    departments: List[str] = []
    titles: List[str] = []

    for row in rows:
        if not isinstance(row, Mapping):
            continue
        name = extract_first_string(row, ("name", "inventorName", "value"))
        if not name:
            continue
        title = extract_first_string(row, ("title", "inventorTitle"))
        department = extract_first_string(row, ("department", "dept", "departmentName"))
        email = extract_first_string(row, ("email", "contact"))

        parts = [name]
        if title:
            parts.append(title)
            if title not in titles:
                titles.append(title)
        if department:
            parts.append(department)
            if department not in departments:
                departments.append(department)
        if email:
            parts.append(email)
        lines.append(" | ".join(parts))

    summary: Dict[str, str] = {}
    if lines:
        summary["inventor_name"] = "\n".join(lines)
    if departments:
        summary["inventor_dept"] = "; ".join(departments)
    if titles:
        summary["inventor_title"] = "; ".join(titles)
    return summary


def sanitize_technology_data(
    raw: Mapping[str, Any],
    tech_id: str,
    actor_id: Optional[str],
    modified_at: str,
) -> Dict[str, Any]:
    """Build the technology column map for create or update.

    The result always carries `tech_id`, `last_modified_by` and
    `last_modified_at`, so any identified submission touches the root row.
    """
    data: Dict[str, Any] = {"tech_id": tech_id}

    inventor_rows = raw.get("inventorName")
    has_inventor_rows = isinstance(inventor_rows, list) and any(
        isinstance(row, Mapping) for row in inventor_rows
    )
    if has_inventor_rows:
        data.update(summarize_inventor_rows(inventor_rows))  # type: ignore[arg-type]

    for field, value in raw.items():
        column = TECHNOLOGY_BINDABLE_FIELDS.get(field)
        if column is None or value is None:
            continue
        if field == "inventorName" and has_inventor_rows:
            continue
        if isinstance(value, (list, tuple)):
            flattened = flatten_array_value(value)
            if flattened:
                data[column] = flattened
            continue
        text = coerce_string(value)
        if text is None:
            logger.debug("technology_field_skipped field=%s type=%s", field, type(value).__name__)
            continue
        data[column] = text

    data["last_modified_by"] = actor_id
    data["last_modified_at"] = modified_at
    return data


def get_missing_required_technology_fields(data: Mapping[str, Any]) -> List[str]:
    """Return required binding fields absent or blank in a sanitized column map."""
    missing: List[str] = []
    for field in REQUIRED_TECH_FIELDS_FOR_CREATE:
        value = data.get(TECHNOLOGY_BINDABLE_FIELDS[field])
        if value is None or (isinstance(value, str) and not value.strip()):
            missing.append(field)
    return missing


def sanitize_triage_stage_data(raw: Mapping[str, Any]) -> Dict[str, Any]:
    data: Dict[str, Any] = {}
    for field, value in raw.items():
        if field in TRIAGE_SCORE_FIELDS:
            number = coerce_number(value)
            if number is not None:
                data[TRIAGE_SCORE_FIELDS[field]] = number
        elif field in TRIAGE_TEXT_FIELDS:
            text = coerce_string(value)
            if text is not None:
                data[TRIAGE_TEXT_FIELDS[field]] = text
    return data


def sanitize_viability_stage_data(raw: Mapping[str, Any]) -> Dict[str, Any]:
    data: Dict[str, Any] = {}
    for field, value in raw.items():
        column = VIABILITY_STAGE_BINDABLE_FIELDS.get(field)
        if column is None:
            continue
        text = coerce_string(value)
        if text is not None:
            data[column] = text
    return data


__all__ = [
    "TECHNOLOGY_BINDABLE_FIELDS",
    "REQUIRED_TECH_FIELDS_FOR_CREATE",
    "TRIAGE_TEXT_FIELDS",
    "TRIAGE_SCORE_FIELDS",
    "TRIAGE_STAGE_BINDABLE_FIELDS",
    "VIABILITY_STAGE_BINDABLE_FIELDS",
    "TRIAGE_STAGE_CREATE_DEFAULTS",
    "VIABILITY_STAGE_CREATE_DEFAULTS",
    "summarize_inventor_rows",
    "sanitize_technology_data",
    "get_missing_required_technology_fields",
    "sanitize_triage_stage_data",
    "sanitize_viability_stage_data",
]
