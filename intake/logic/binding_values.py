"""Value extraction and partitioning by destination entity.

All functions are total over arbitrary mappings: a key missing from either
side is skipped, never an error. Unbound answer keys (e.g. computed scores)
are dropped here and handled elsewhere.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Mapping, Optional

from intake.logic.answer_values import has_meaningful_value
from intake.logic.binding_metadata import parse_binding_path
from intake.models.binding import (
    STAGE_DESTINATIONS,
    AnswerSource,
    BindingMetadata,
    DataSource,
    Destination,
    VersionedAnswer,
)

TECH_ID_FIELD = "techId"

Partitions = Dict[Destination, Dict[str, Any]]
ExtendedDataUpdates = Dict[Destination, Dict[str, Optional[VersionedAnswer]]]

_STAGE_SOURCES = {
    Destination.TRIAGE_STAGE: AnswerSource.TRIAGE_STAGE,
    Destination.VIABILITY_STAGE: AnswerSource.VIABILITY_STAGE,
}


def utc_timestamp() -> str:
    """ISO-8601 UTC with milliseconds and trailing Z (2025-11-07T12:34:56.000Z)."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def extract_bound_values(
    metadata: Mapping[str, BindingMetadata],
    answers: Mapping[str, Any],
) -> Dict[str, Any]:
    """Copy each bound answer under its binding path."""
    values: Dict[str, Any] = {}
    for meta in metadata.values():
        if meta.question_key in answers:
            values[meta.binding_path] = answers[meta.question_key]
    return values


def partition_by_destination(values: Mapping[str, Any]) -> Partitions:
    """Split a binding-path map into one field map per destination.

    Every destination is present in the result, possibly empty. Paths whose
    first segment is not a known destination are dropped.
    """
    partitions: Partitions = {destination: {} for destination in Destination}
    for binding_path, value in values.items():
        parsed = parse_binding_path(binding_path)
        if parsed is None:
            continue
        destination, field = parsed
        partitions[destination][field] = value
    return partitions


def build_extended_data_updates(
    metadata: Mapping[str, BindingMetadata],
    answers: Mapping[str, Any],
) -> ExtendedDataUpdates:
    """Compute journal updates for stage-bound answers present in `answers`.

    A meaningful value becomes a VersionedAnswer stamped with the binding's
    current revision; an empty value becomes None, which removes the key from
    the stage journal.
    """
    updates: ExtendedDataUpdates = {destination: {} for destination in STAGE_DESTINATIONS}
    answered_at = utc_timestamp()

    for meta in metadata.values():
        if not meta.question_key or meta.question_key not in answers:
            continue
        if meta.data_source == DataSource.CALCULATED:
            continue
        parsed = parse_binding_path(meta.binding_path)
        if parsed is None or parsed[0] not in updates:
            continue
        destination = parsed[0]

        raw_value = answers[meta.question_key]
        entry: Optional[VersionedAnswer] = None
        if has_meaningful_value(raw_value):
            entry = VersionedAnswer(
                value=raw_value,
                question_revision_id=meta.current_revision_id,
                answered_at=answered_at,
                source=_STAGE_SOURCES[destination],
            )
        updates[destination][meta.question_key] = entry

    return updates


def resolve_tech_id(partitions: Partitions) -> Optional[str]:
    raw = partitions.get(Destination.TECHNOLOGY, {}).get(TECH_ID_FIELD)
    if isinstance(raw, str) and raw.strip():
        return raw.strip()
    return None


def extract_tech_id(
    answers: Mapping[str, Any],
    metadata: Mapping[str, BindingMetadata],
) -> Optional[str]:
    """Return the trimmed technology identifier carried by the answers, if any."""
    return resolve_tech_id(partition_by_destination(extract_bound_values(metadata, answers)))


__all__ = [
    "TECH_ID_FIELD",
    "Partitions",
    "ExtendedDataUpdates",
    "utc_timestamp",
    "extract_bound_values",
    "partition_by_destination",
    "build_extended_data_updates",
    "resolve_tech_id",
    "extract_tech_id",
]
