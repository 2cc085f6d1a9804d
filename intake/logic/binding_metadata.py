"""Binding metadata resolution.

Projects a questionnaire definition onto `{question_key: BindingMetadata}`.
Questions without a loaded dictionary link are skipped entirely: an unlinked
question is not part of the structured data model and gets neither a binding
nor freshness tracking.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional, Tuple

from intake.models.binding import BindingMetadata, Destination
from intake.models.questionnaire import QuestionnaireDefinition

logger = logging.getLogger(__name__)


def parse_binding_path(binding_path: str | None) -> Optional[Tuple[Destination, str]]:
    """Split `<destination>.<field>`; None when the destination is unknown."""
    if not binding_path or not isinstance(binding_path, str):
        return None
    root, sep, field = binding_path.partition(".")
    if not sep or not field:
        return None
    try:
        return Destination(root), field
    except ValueError:
        return None


def binding_destination(meta: BindingMetadata) -> Optional[Destination]:
    parsed = parse_binding_path(meta.binding_path)
    return parsed[0] if parsed else None


def collect_binding_metadata(questionnaire: QuestionnaireDefinition) -> Dict[str, BindingMetadata]:
    bindings: Dict[str, BindingMetadata] = {}
    skipped = 0

    for question in questionnaire.iter_questions():
        dictionary = question.dictionary
        if dictionary is None or not question.dictionary_key:
            skipped += 1
            continue

        bindings[question.dictionary_key] = BindingMetadata(
            question_id=question.id,
            question_key=question.dictionary_key,
            binding_path=dictionary.binding_path,
            data_source=dictionary.data_source,
            dictionary_id=dictionary.id,
            current_revision_id=dictionary.current_revision_id,
            current_version=dictionary.current_version,
        )

    logger.info(
        "binding_metadata_resolved questionnaire_id=%s bound=%s skipped=%s",
        questionnaire.id,
        len(bindings),
        skipped,
    )
    return bindings


__all__ = ["parse_binding_path", "binding_destination", "collect_binding_metadata"]
