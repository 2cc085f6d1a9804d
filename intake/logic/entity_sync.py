"""Binding-aware entity synchronization.

Writes one submission's answers to the technology entity graph inside the
caller's transaction:

1. resolve the technology by the `technology.techId` binding (no usable id
   means nothing to do),
2. update it, or create it once the required fields are present,
3. upsert the triage and viability stages, typed columns plus the
   versioned-answer journal,
4. upsert per-question answer records.

Each conditional write checks the caller's expected row version and raises
`LockConflictError` on mismatch; the caller's transaction then rolls back
everything written so far. Conflicts are never retried here.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

from sqlalchemy.engine import Connection

from intake.logic.binding_values import (
    build_extended_data_updates,
    extract_bound_values,
    partition_by_destination,
    resolve_tech_id,
    utc_timestamp,
)
from intake.logic.entity_fields import (
    get_missing_required_technology_fields,
    sanitize_technology_data,
    sanitize_triage_stage_data,
    sanitize_viability_stage_data,
)
from intake.logic.errors import LockConflictError, MissingRequiredFieldsError
from intake.logic.events import (
    LOCK_CONFLICT,
    STAGE_WRITTEN,
    TECHNOLOGY_CREATED,
    TECHNOLOGY_UPDATED,
    publish,
)
from intake.logic.repository_answer_records import upsert_answer_records
from intake.logic.repository_entities import (
    STAGE_TABLES,
    find_stage,
    find_technology_by_tech_id,
    get_stage_row_version,
    get_technology,
    insert_stage,
    insert_technology,
    update_stage,
    update_technology,
)
from intake.logic.versioned_answers import (
    JOURNAL_UNCHANGED,
    apply_extended_data_patch,
    dump_journal,
)
from intake.models.binding import (
    AnswerSource,
    BindingMetadata,
    BindingWriteOptions,
    BindingWriteResult,
    Destination,
    RowVersionSnapshot,
    VersionedAnswer,
)

logger = logging.getLogger(__name__)

_STAGE_SANITIZERS = {
    Destination.TRIAGE_STAGE: sanitize_triage_stage_data,
    Destination.VIABILITY_STAGE: sanitize_viability_stage_data,
}


def resolve_actor_id(options: BindingWriteOptions) -> str:
    if options.actor_id and options.actor_id.strip():
        return options.actor_id.strip()
    return options.fallback_actor_id


def _conflict(entity: str, tech_id: str, expected_version: Optional[int]) -> LockConflictError:
    logger.warning(
        "lock_conflict entity=%s tech_id=%s expected_version=%s",
        entity,
        tech_id,
        expected_version,
    )
    publish(LOCK_CONFLICT, {"entity": entity, "tech_id": tech_id, "expected_version": expected_version})
    return LockConflictError(entity, expected_version)


def _write_technology(
    conn: Connection,
    existing: Dict[str, Any],
    data: Mapping[str, Any],
    expected_version: Optional[int],
) -> Dict[str, Any]:
    tech_id = str(existing["tech_id"])
    if not update_technology(conn, existing["id"], data, expected_version):
        raise _conflict("technology", tech_id, expected_version)

    reloaded = get_technology(conn, existing["id"])
    if reloaded is None:
        raise RuntimeError("Unable to reload technology record after update.")
    logger.info(
        "technology_updated tech_id=%s row_version=%s", tech_id, reloaded["row_version"]
    )
    publish(TECHNOLOGY_UPDATED, {"tech_id": tech_id, "row_version": reloaded["row_version"]})
    return reloaded


def _write_stage(
    conn: Connection,
    destination: Destination,
    technology: Mapping[str, Any],
    raw_fields: Mapping[str, Any],
    journal_updates: Mapping[str, Optional[VersionedAnswer]],
    expected_version: Optional[int],
) -> Optional[int]:
    """Upsert one stage row and return its row version after the write.

    A stage with neither typed fields nor journal changes is left untouched
    and keeps its prior version (None when the row does not exist).
    """
    entity = STAGE_TABLES[destination]
    existing = find_stage(conn, destination, technology["id"])
    data = _STAGE_SANITIZERS[destination](raw_fields)

    patch = apply_extended_data_patch(
        existing.get("extended_data") if existing else None,
        journal_updates,
        AnswerSource(destination.value),
    )
    if patch is not JOURNAL_UNCHANGED:
        data["extended_data"] = dump_journal(patch)  # type: ignore[arg-type]

    if not data:
        logger.debug("stage_unchanged entity=%s tech_id=%s", entity, technology["tech_id"])
        return int(existing["row_version"]) if existing else None

    if existing is not None:
        if not update_stage(conn, destination, existing["id"], data, expected_version):
            raise _conflict(entity, str(technology["tech_id"]), expected_version)
        row_version = get_stage_row_version(conn, destination, existing["id"])
    else:
        created = insert_stage(conn, destination, technology["id"], data)
        row_version = int(created["row_version"])

    logger.info(
        "stage_written entity=%s tech_id=%s created=%s row_version=%s",
        entity,
        technology["tech_id"],
        existing is None,
        row_version,
    )
    publish(
        STAGE_WRITTEN,
        {"entity": entity, "tech_id": technology["tech_id"], "row_version": row_version},
    )
    return row_version


def apply_binding_writes(
    conn: Connection,
    metadata: Mapping[str, BindingMetadata],
    answers: Mapping[str, Any],
    options: BindingWriteOptions,
) -> BindingWriteResult:
    """Synchronize one submission's answers into the entity graph.

    Returns an empty result when there is nothing to write: no bindings, no
    bound answers, no usable techId, or an incomplete new technology while
    `allow_create_when_incomplete` is False. Raises `MissingRequiredFieldsError`
    for an incomplete new technology when it is True, and `LockConflictError`
    when an expected row version no longer matches.
    """
    if not metadata:
        logger.info("binding_writes_skipped reason=no_bindings")
        return BindingWriteResult()

    bound_values = extract_bound_values(metadata, answers)
    if not bound_values:
        logger.info("binding_writes_skipped reason=no_bound_values")
        return BindingWriteResult()

    partitions = partition_by_destination(bound_values)
    journal_updates = build_extended_data_updates(metadata, answers)
    tech_id = resolve_tech_id(partitions)
    if tech_id is None:
        logger.info("binding_writes_skipped reason=no_tech_id")
        return BindingWriteResult()

    expected = options.expected_versions or RowVersionSnapshot()
    actor_id = resolve_actor_id(options)
    technology_data = sanitize_technology_data(
        partitions[Destination.TECHNOLOGY], tech_id, actor_id, utc_timestamp()
    )

    technology = find_technology_by_tech_id(conn, tech_id)
    if technology is not None:
        technology = _write_technology(
            conn, technology, technology_data, expected.technology_row_version
        )
    else:
        missing = get_missing_required_technology_fields(technology_data)
        if missing:
            if options.allow_create_when_incomplete:
                logger.info(
                    "technology_create_rejected tech_id=%s missing=%s", tech_id, ",".join(missing)
                )
                raise MissingRequiredFieldsError(missing)
            logger.info(
                "binding_writes_skipped reason=incomplete_new_technology tech_id=%s missing=%s",
                tech_id,
                ",".join(missing),
            )
            return BindingWriteResult()
        technology = insert_technology(conn, technology_data)
        logger.info(
            "technology_created tech_id=%s row_version=%s", tech_id, technology["row_version"]
        )
        publish(TECHNOLOGY_CREATED, {"tech_id": tech_id, "technology_id": technology["id"]})

    triage_version = _write_stage(
        conn,
        Destination.TRIAGE_STAGE,
        technology,
        partitions[Destination.TRIAGE_STAGE],
        journal_updates[Destination.TRIAGE_STAGE],
        expected.triage_stage_row_version,
    )
    viability_version = _write_stage(
        conn,
        Destination.VIABILITY_STAGE,
        technology,
        partitions[Destination.VIABILITY_STAGE],
        journal_updates[Destination.VIABILITY_STAGE],
        expected.viability_stage_row_version,
    )

    upsert_answer_records(conn, technology["id"], metadata, answers, actor_id)

    return BindingWriteResult(
        technology_id=str(technology["id"]),
        tech_id=tech_id,
        row_versions=RowVersionSnapshot(
            technology_row_version=int(technology["row_version"]),
            triage_stage_row_version=triage_version,
            viability_stage_row_version=viability_version,
        ),
    )


__all__ = ["apply_binding_writes", "resolve_actor_id"]
