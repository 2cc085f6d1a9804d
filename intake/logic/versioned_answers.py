"""Extended-data journal codec and merge patcher.

A stage's `extended_data` column holds a JSON object mapping question keys to
versioned answers:

    {"triage.notes": {"value": "...", "questionRevisionId": "rev-3",
                      "answeredAt": "2025-11-07T12:34:56.000Z",
                      "source": "triageStage"}}

In memory the journal is a `dict[str, VersionedAnswer]`. Updates use
merge-patch semantics: a `VersionedAnswer` replaces its key, `None` removes
it. Keys not mentioned in an update are preserved untouched, which is what
keeps answers to questions still in the questionnaire across edits that do
not touch them, while answers to retired questions age out once cleared.
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Mapping, Optional, Union

from intake.models.binding import AnswerSource, VersionedAnswer

logger = logging.getLogger(__name__)

VersionedAnswerMap = Dict[str, VersionedAnswer]
JournalUpdates = Mapping[str, Optional[VersionedAnswer]]


class _JournalUnchanged:
    def __repr__(self) -> str:
        return "JOURNAL_UNCHANGED"


# Returned by apply_extended_data_patch when there is nothing to write; compare with `is`
JOURNAL_UNCHANGED = _JournalUnchanged()


def _coerce_source(raw: Any, default_source: Optional[AnswerSource]) -> Optional[AnswerSource]:
    if isinstance(raw, AnswerSource):
        return raw
    if isinstance(raw, str):
        try:
            return AnswerSource(raw)
        except ValueError:
            logger.warning("journal_unknown_source source=%s", raw)
            return default_source
    return default_source


def normalize_versioned_answer(
    raw: Any,
    default_source: Optional[AnswerSource] = None,
) -> Optional[VersionedAnswer]:
    """Build a VersionedAnswer from one persisted journal entry.

    Non-object entries are rejected (None). Missing or malformed revision ids
    and timestamps become None; a missing source falls back to
    `default_source` so legacy rows written before sources were recorded still
    attribute to their stage.
    """
    if isinstance(raw, VersionedAnswer):
        if raw.source is None and default_source is not None:
            return raw.model_copy(update={"source": default_source})
        return raw
    if not isinstance(raw, Mapping):
        return None

    revision = raw.get("questionRevisionId")
    answered_at = raw.get("answeredAt")
    return VersionedAnswer(
        value=raw.get("value"),
        question_revision_id=revision if isinstance(revision, str) else None,
        answered_at=answered_at if isinstance(answered_at, str) else None,
        source=_coerce_source(raw.get("source"), default_source),
    )


def load_journal(raw: Any) -> Any:
    """Decode a journal column value (JSON text, bytes or already-decoded)."""
    if isinstance(raw, (bytes, bytearray)):
        raw = raw.decode("utf-8", errors="replace")
    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            logger.error("journal_decode_failed length=%s", len(text), exc_info=True)
            return None
    return raw


def parse_versioned_answer_map(raw: Any, default_source: AnswerSource) -> VersionedAnswerMap:
    decoded = load_journal(raw)
    if not isinstance(decoded, Mapping):
        return {}
    result: VersionedAnswerMap = {}
    for key, entry in decoded.items():
        normalized = normalize_versioned_answer(entry, default_source)
        if normalized is not None:
            result[str(key)] = normalized
    return result


def serialize_versioned_answer(answer: VersionedAnswer) -> Dict[str, Any]:
    return {
        "value": answer.value,
        "questionRevisionId": answer.question_revision_id,
        "answeredAt": answer.answered_at,
        "source": answer.source.value if answer.source is not None else None,
    }


def serialize_versioned_answer_map(journal: Mapping[str, VersionedAnswer]) -> Dict[str, Dict[str, Any]]:
    return {key: serialize_versioned_answer(entry) for key, entry in journal.items()}


def dump_journal(journal: Optional[Mapping[str, Any]]) -> Optional[str]:
    """Encode a JSON-ready journal for the TEXT column; None stays SQL NULL."""
    if journal is None:
        return None
    return json.dumps(journal, ensure_ascii=False, sort_keys=True)


def merge_versioned_answer_maps(
    base: Mapping[str, VersionedAnswer],
    updates: Optional[JournalUpdates],
) -> VersionedAnswerMap:
    if not updates:
        return dict(base)

    merged: VersionedAnswerMap = dict(base)
    for key, update in updates.items():
        if update is None:
            merged.pop(key, None)
            continue
        prior = base.get(key)
        source = update.source if update.source is not None else (prior.source if prior else None)
        merged[key] = update.model_copy(update={"source": source})
    return merged


def apply_extended_data_patch(
    existing: Any,
    updates: Optional[JournalUpdates],
    default_source: AnswerSource,
) -> Union[Dict[str, Dict[str, Any]], None, _JournalUnchanged]:
    """Merge journal updates into an existing journal value.

    Returns JOURNAL_UNCHANGED when there are no updates at all, None when the
    merged journal is empty (the column is cleared rather than storing `{}`),
    otherwise the JSON-ready journal.
    """
    if not updates:
        return JOURNAL_UNCHANGED

    base = parse_versioned_answer_map(existing, default_source)
    merged = merge_versioned_answer_maps(base, updates)
    if not merged:
        return None
    return serialize_versioned_answer_map(merged)


__all__ = [
    "VersionedAnswerMap",
    "JournalUpdates",
    "JOURNAL_UNCHANGED",
    "normalize_versioned_answer",
    "load_journal",
    "parse_versioned_answer_map",
    "serialize_versioned_answer",
    "serialize_versioned_answer_map",
    "dump_journal",
    "merge_versioned_answer_maps",
    "apply_extended_data_patch",
]
