"""Functional tests for binding-aware entity synchronization.

Run against the migrated SQLite database; each test drives
`apply_binding_writes` inside `transaction()` exactly as the submission
service does.
"""

from __future__ import annotations

import json

import pytest
from sqlalchemy import text as sql_text

from seed_data import binding_metadata, complete_answers, fetch_one

from intake.db.base import transaction
from intake.logic.entity_sync import apply_binding_writes
from intake.logic.errors import LockConflictError, MissingRequiredFieldsError
from intake.logic.events import LOCK_CONFLICT, TECHNOLOGY_CREATED, get_buffered_events
from intake.models.binding import BindingWriteOptions, RowVersionSnapshot

FALLBACK_ACTOR = "shared-user"


def _options(**kwargs) -> BindingWriteOptions:
    kwargs.setdefault("fallback_actor_id", FALLBACK_ACTOR)
    return BindingWriteOptions(**kwargs)


def _write(engine, answers, metadata=None, **option_kwargs):
    with transaction(engine) as conn:
        return apply_binding_writes(
            conn,
            metadata if metadata is not None else binding_metadata(),
            answers,
            _options(**option_kwargs),
        )


def _technology(engine, tech_id="D25-0001"):
    with engine.connect() as conn:
        return fetch_one(conn, "SELECT * FROM technology WHERE tech_id = :tid", tid=tech_id)


def _stage(engine, table, technology_id):
    with engine.connect() as conn:
        return fetch_one(conn, f"SELECT * FROM {table} WHERE technology_id = :tid", tid=technology_id)


def _answer_records(engine, technology_id):
    with engine.connect() as conn:
        rows = conn.execute(
            sql_text("SELECT * FROM technology_answer WHERE technology_id = :tid"),
            {"tid": technology_id},
        ).mappings().all()
    return {r["question_key"]: dict(r) for r in rows}


# --------------------------------------------------------------------------
# No-op paths
# --------------------------------------------------------------------------


def test_empty_metadata_is_a_no_op(engine):
    result = _write(engine, complete_answers(), metadata={}, allow_create_when_incomplete=True)
    assert result.is_empty
    assert _technology(engine) is None


def test_missing_tech_id_is_a_no_op_even_for_explicit_submit(engine):
    answers = complete_answers()
    answers["tech.techId"] = "   "
    result = _write(engine, answers, allow_create_when_incomplete=True)
    assert result.is_empty
    with engine.connect() as conn:
        assert conn.execute(sql_text("SELECT COUNT(*) FROM technology")).scalar() == 0
        assert conn.execute(sql_text("SELECT COUNT(*) FROM technology_answer")).scalar() == 0


def test_incomplete_draft_does_not_create_technology(engine):
    result = _write(
        engine,
        {"tech.techId": "D25-0001", "tech.name": "Widget"},
        allow_create_when_incomplete=False,
    )
    assert result.is_empty
    assert _technology(engine) is None


def test_incomplete_submit_names_missing_fields(engine):
    with pytest.raises(MissingRequiredFieldsError) as excinfo:
        _write(
            engine,
            {"tech.techId": "D25-0001", "tech.name": "Widget"},
            allow_create_when_incomplete=True,
        )
    assert excinfo.value.missing_fields == ["inventorName", "reviewerName", "domainAssetClass"]
    assert "inventorName, reviewerName, domainAssetClass" in str(excinfo.value)
    assert _technology(engine) is None


# --------------------------------------------------------------------------
# Create and update
# --------------------------------------------------------------------------


def test_complete_submit_creates_technology_and_answer_records(engine):
    result = _write(engine, complete_answers(), allow_create_when_incomplete=True, actor_id="alice")

    assert result.tech_id == "D25-0001"
    assert result.row_versions.technology_row_version == 1
    assert result.row_versions.triage_stage_row_version is None
    assert result.row_versions.viability_stage_row_version is None

    row = _technology(engine)
    assert row["id"] == result.technology_id
    assert row["row_version"] == 1
    assert row["technology_name"] == "Widget"
    assert row["inventor_name"] == "Ada Lovelace | Professor | Mathematics | ada@example.edu"
    assert row["last_modified_by"] == "alice"

    records = _answer_records(engine, result.technology_id)
    assert {"tech.techId", "tech.name"} <= set(records)
    assert json.loads(records["tech.name"]["value"]) == "Widget"
    assert records["tech.name"]["revision_id"] == "rev-name-1"
    assert records["tech.name"]["answered_by"] == "alice"

    events = get_buffered_events()
    assert [e["type"] for e in events].count(TECHNOLOGY_CREATED) == 1


def test_update_bumps_technology_version_and_uses_fallback_actor(engine):
    first = _write(engine, complete_answers(), allow_create_when_incomplete=True)
    second = _write(
        engine,
        {"tech.techId": "D25-0001", "tech.name": "Widget Mk II"},
        actor_id="   ",
        expected_versions=RowVersionSnapshot(technology_row_version=1),
    )

    assert second.technology_id == first.technology_id
    assert second.row_versions.technology_row_version == 2
    row = _technology(engine)
    assert row["technology_name"] == "Widget Mk II"
    assert row["reviewer_name"] == "Grace Hopper"
    assert row["last_modified_by"] == FALLBACK_ACTOR


def test_stage_created_with_defaults_and_journal(engine):
    result = _write(
        engine,
        complete_answers(**{"triage.overview": "A new sensor", "triage.missionScore": 2}),
        allow_create_when_incomplete=True,
    )
    assert result.row_versions.triage_stage_row_version == 1
    assert result.row_versions.viability_stage_row_version is None

    stage = _stage(engine, "triage_stage", result.technology_id)
    assert stage["technology_overview"] == "A new sensor"
    assert stage["mission_alignment_score"] == 2
    assert stage["market_overview"] == ""
    journal = json.loads(stage["extended_data"])
    assert set(journal) == {"triage.overview", "triage.missionScore"}
    assert journal["triage.overview"]["questionRevisionId"] == "rev-overview-1"
    assert journal["triage.overview"]["source"] == "triageStage"
    assert _stage(engine, "viability_stage", result.technology_id) is None


def test_untouched_stage_keeps_prior_version(engine):
    first = _write(
        engine,
        complete_answers(**{"triage.overview": "A new sensor"}),
        allow_create_when_incomplete=True,
    )
    second = _write(engine, {"tech.techId": "D25-0001", "tech.name": "Renamed"})

    assert second.row_versions.technology_row_version == 2
    assert second.row_versions.triage_stage_row_version == first.row_versions.triage_stage_row_version == 1
    assert second.row_versions.viability_stage_row_version is None


def test_stage_journal_merges_updates(engine):
    """Replacing one key and adding another bumps the stage version once."""
    first = _write(
        engine,
        complete_answers(**{"triage.overview": "old"}),
        allow_create_when_incomplete=True,
    )
    metadata = binding_metadata(**{"triage.missionScore": "rev-2"})
    second = _write(
        engine,
        {"tech.techId": "D25-0001", "triage.overview": "new", "triage.missionScore": 1},
        metadata=metadata,
    )

    assert second.row_versions.triage_stage_row_version == first.row_versions.triage_stage_row_version + 1
    stage = _stage(engine, "triage_stage", first.technology_id)
    journal = json.loads(stage["extended_data"])
    assert journal["triage.overview"]["value"] == "new"
    assert journal["triage.overview"]["questionRevisionId"] == "rev-overview-1"
    assert journal["triage.missionScore"]["questionRevisionId"] == "rev-2"


def test_cleared_stage_answer_leaves_journal_and_keeps_answer_record(engine):
    first = _write(
        engine,
        complete_answers(**{"triage.overview": "old"}),
        allow_create_when_incomplete=True,
    )
    _write(engine, {"tech.techId": "D25-0001", "triage.overview": ""})

    stage = _stage(engine, "triage_stage", first.technology_id)
    assert stage["extended_data"] is None
    assert stage["technology_overview"] == ""
    # Empty values never clear the stored answer record
    records = _answer_records(engine, first.technology_id)
    assert json.loads(records["triage.overview"]["value"]) == "old"


def test_unbound_answers_are_recorded_without_revision(engine):
    result = _write(
        engine,
        complete_answers(**{"legacy.notes": "free text", "empty.key": "  "}),
        allow_create_when_incomplete=True,
    )
    records = _answer_records(engine, result.technology_id)
    assert records["legacy.notes"]["revision_id"] is None
    assert "empty.key" not in records


def test_calculated_binding_is_kept_out_of_the_journal(engine):
    result = _write(
        engine,
        complete_answers(**{"triage.impactScore": 3}),
        allow_create_when_incomplete=True,
    )
    assert result.row_versions.triage_stage_row_version is None
    assert "triage.impactScore" in _answer_records(engine, result.technology_id)


# --------------------------------------------------------------------------
# Optimistic concurrency
# --------------------------------------------------------------------------


def test_concurrent_writer_loses_with_lock_conflict(engine):
    _write(engine, complete_answers(), allow_create_when_incomplete=True)
    with engine.begin() as conn:
        conn.execute(sql_text("UPDATE technology SET row_version = 5 WHERE tech_id = 'D25-0001'"))

    snapshot = RowVersionSnapshot(technology_row_version=5)
    winner = _write(engine, {"tech.techId": "D25-0001", "tech.name": "First"}, expected_versions=snapshot)
    assert winner.row_versions.technology_row_version == 6

    with pytest.raises(LockConflictError) as excinfo:
        _write(engine, {"tech.techId": "D25-0001", "tech.name": "Second"}, expected_versions=snapshot)

    assert excinfo.value.entity == "technology"
    assert str(excinfo.value) == "Technology record was modified by another user."
    row = _technology(engine)
    assert row["row_version"] == 6
    assert row["technology_name"] == "First"
    assert LOCK_CONFLICT in [e["type"] for e in get_buffered_events()]


def test_stage_conflict_rolls_back_the_whole_submission(engine):
    first = _write(
        engine,
        complete_answers(**{"triage.overview": "original"}),
        allow_create_when_incomplete=True,
    )
    assert first.row_versions.triage_stage_row_version == 1

    with pytest.raises(LockConflictError) as excinfo:
        _write(
            engine,
            {"tech.techId": "D25-0001", "tech.name": "Changed", "triage.overview": "changed"},
            expected_versions=RowVersionSnapshot(
                technology_row_version=1, triage_stage_row_version=99
            ),
        )

    assert excinfo.value.entity == "triage_stage"
    row = _technology(engine)
    assert row["row_version"] == 1
    assert row["technology_name"] == "Widget"
    stage = _stage(engine, "triage_stage", first.technology_id)
    assert stage["row_version"] == 1
    assert stage["technology_overview"] == "original"
    records = _answer_records(engine, first.technology_id)
    assert json.loads(records["tech.name"]["value"]) == "Widget"


def test_out_of_range_score_is_dropped_instead_of_failing_the_write(engine):
    result = _write(
        engine,
        complete_answers(**{"triage.overview": "A new sensor", "triage.missionScore": 1e20}),
        allow_create_when_incomplete=True,
    )

    stage = _stage(engine, "triage_stage", result.technology_id)
    assert stage["technology_overview"] == "A new sensor"
    assert stage["mission_alignment_score"] == 0


# --------------------------------------------------------------------------
# Viability stage
# --------------------------------------------------------------------------


def test_viability_stage_created_with_defaults_and_journal(engine):
    result = _write(
        engine,
        complete_answers(**{"viability.feasibility": "  Prototype validated "}),
        allow_create_when_incomplete=True,
    )

    assert result.row_versions.viability_stage_row_version == 1
    assert result.row_versions.triage_stage_row_version is None
    stage = _stage(engine, "viability_stage", result.technology_id)
    assert stage["technical_feasibility"] == "Prototype validated"
    assert stage["regulatory_pathway"] == ""
    assert stage["overall_viability"] == ""
    journal = json.loads(stage["extended_data"])
    assert set(journal) == {"viability.feasibility"}
    assert journal["viability.feasibility"]["value"] == "  Prototype validated "
    assert journal["viability.feasibility"]["questionRevisionId"] == "rev-feasibility-1"
    assert journal["viability.feasibility"]["source"] == "viabilityStage"
    assert _stage(engine, "triage_stage", result.technology_id) is None


def test_viability_journal_merges_under_new_revision(engine):
    first = _write(
        engine,
        complete_answers(**{"viability.feasibility": "Early"}),
        allow_create_when_incomplete=True,
    )
    second = _write(
        engine,
        {"tech.techId": "D25-0001", "viability.feasibility": "Proven"},
        metadata=binding_metadata(**{"viability.feasibility": "rev-feasibility-2"}),
        expected_versions=RowVersionSnapshot(technology_row_version=1, viability_stage_row_version=1),
    )

    assert second.row_versions.viability_stage_row_version == 2
    assert second.row_versions.technology_row_version == 2
    stage = _stage(engine, "viability_stage", first.technology_id)
    assert stage["technical_feasibility"] == "Proven"
    journal = json.loads(stage["extended_data"])
    assert journal["viability.feasibility"]["value"] == "Proven"
    assert journal["viability.feasibility"]["questionRevisionId"] == "rev-feasibility-2"
    assert journal["viability.feasibility"]["source"] == "viabilityStage"


def test_viability_conflict_rolls_back_triage_written_in_same_submission(engine):
    first = _write(
        engine,
        complete_answers(**{"triage.overview": "original", "viability.feasibility": "Early"}),
        allow_create_when_incomplete=True,
    )
    assert first.row_versions.triage_stage_row_version == 1
    assert first.row_versions.viability_stage_row_version == 1

    with pytest.raises(LockConflictError) as excinfo:
        _write(
            engine,
            {
                "tech.techId": "D25-0001",
                "triage.overview": "changed",
                "viability.feasibility": "Proven",
            },
            expected_versions=RowVersionSnapshot(
                technology_row_version=1,
                triage_stage_row_version=1,
                viability_stage_row_version=7,
            ),
        )

    assert excinfo.value.entity == "viability_stage"
    assert str(excinfo.value) == "Viability stage was modified by another user."
    assert _technology(engine)["row_version"] == 1
    triage = _stage(engine, "triage_stage", first.technology_id)
    assert triage["row_version"] == 1
    assert triage["technology_overview"] == "original"
    viability = _stage(engine, "viability_stage", first.technology_id)
    assert viability["row_version"] == 1
    assert viability["technical_feasibility"] == "Early"
    conflicts = [e for e in get_buffered_events() if e["type"] == LOCK_CONFLICT]
    assert conflicts[-1]["payload"]["entity"] == "viability_stage"
