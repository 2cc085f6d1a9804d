"""Functional tests for the extended-data journal codec and merge patcher."""

from __future__ import annotations

import json

from intake.logic.versioned_answers import (
    JOURNAL_UNCHANGED,
    apply_extended_data_patch,
    dump_journal,
    merge_versioned_answer_maps,
    parse_versioned_answer_map,
)
from intake.models.binding import AnswerSource, VersionedAnswer

TRIAGE = AnswerSource.TRIAGE_STAGE


def _entry(value, revision="rev-1", source=None) -> VersionedAnswer:
    return VersionedAnswer(
        value=value,
        question_revision_id=revision,
        answered_at="2025-11-07T12:34:56.000Z",
        source=source,
    )


def test_no_updates_leaves_journal_unchanged():
    assert apply_extended_data_patch({"q1": {"value": "a"}}, {}, TRIAGE) is JOURNAL_UNCHANGED
    assert apply_extended_data_patch(None, None, TRIAGE) is JOURNAL_UNCHANGED


def test_parse_tags_legacy_entries_and_drops_non_objects():
    raw = json.dumps({"q1": {"value": "old", "questionRevisionId": "rev-1"}, "q2": "not-an-entry"})
    parsed = parse_versioned_answer_map(raw, TRIAGE)
    assert list(parsed) == ["q1"]
    assert parsed["q1"].source == TRIAGE
    assert parsed["q1"].question_revision_id == "rev-1"


def test_null_update_removes_key_and_empty_result_clears_journal():
    existing = {"q1": {"value": "old", "questionRevisionId": "rev-1", "source": "triageStage"}}
    assert apply_extended_data_patch(existing, {"q1": None}, TRIAGE) is None


def test_null_update_for_absent_key_is_a_no_op():
    existing = {"q1": {"value": "old", "questionRevisionId": "rev-1"}}
    result = apply_extended_data_patch(existing, {"missing": None}, TRIAGE)
    assert result == {
        "q1": {"value": "old", "questionRevisionId": "rev-1", "answeredAt": None, "source": "triageStage"}
    }


def test_replace_and_add_preserves_untouched_keys():
    existing = {
        "q1": {"value": "old", "questionRevisionId": "rev-1", "source": "triageStage"},
        "keep": {"value": "kept", "questionRevisionId": "rev-1", "source": "triageStage"},
    }
    result = apply_extended_data_patch(
        existing,
        {"q1": _entry("new", source=TRIAGE), "q2": _entry("x", revision="rev-2", source=TRIAGE)},
        TRIAGE,
    )
    assert set(result) == {"q1", "q2", "keep"}
    assert result["q1"]["value"] == "new"
    assert result["q2"]["questionRevisionId"] == "rev-2"
    assert result["keep"]["value"] == "kept"


def test_update_without_source_inherits_prior_source():
    base = {"q1": _entry("old", source=AnswerSource.VIABILITY_STAGE)}
    merged = merge_versioned_answer_maps(base, {"q1": _entry("new")})
    assert merged["q1"].source == AnswerSource.VIABILITY_STAGE
    assert merged["q1"].value == "new"


def test_patch_is_idempotent_without_deltas():
    updates = {"q1": _entry("same", source=TRIAGE)}
    once = apply_extended_data_patch(None, updates, TRIAGE)
    twice = apply_extended_data_patch(dump_journal(once), updates, TRIAGE)
    assert once == twice


def test_dump_journal_keeps_null_as_sql_null():
    assert dump_journal(None) is None
    assert json.loads(dump_journal({"q1": {"value": 1}})) == {"q1": {"value": 1}}
