"""Answer freshness classification.

Pure and total: compares the question revision an answer was recorded
against with the question's current revision. Used when hydrating a form for
editing and when building historical views; never writes.
"""

from __future__ import annotations

from typing import Optional, Union

from intake.logic.answer_values import has_meaningful_value
from intake.models.binding import AnswerStatus, AnswerStatusDetail, BindingMetadata, VersionedAnswer
from intake.models.questionnaire import QuestionDefinition


QuestionLike = Union[QuestionDefinition, BindingMetadata]


def _question_identity(question: QuestionLike) -> tuple[Optional[str], Optional[str]]:
    """Return (question_key, current_revision_id) for either question shape."""
    if isinstance(question, BindingMetadata):
        return question.question_key, question.current_revision_id
    dictionary = question.dictionary
    key = dictionary.key if dictionary is not None else question.dictionary_key
    current = dictionary.current_revision_id if dictionary is not None else None
    return key, current


def get_answer_status(
    question: QuestionLike,
    answer: Optional[VersionedAnswer],
) -> AnswerStatusDetail:
    """Classify one stored answer as MISSING, UNKNOWN, FRESH or STALE.

    - no answer, or no meaningful value          -> MISSING
    - question has no current revision id        -> UNKNOWN
    - answer carries no revision id (legacy)     -> UNKNOWN
    - saved revision equals current revision     -> FRESH
    - otherwise                                  -> STALE
    """
    question_key, current_revision_id = _question_identity(question)
    current_revision_id = current_revision_id or None

    if answer is None or not has_meaningful_value(answer.value):
        return AnswerStatusDetail(
            status=AnswerStatus.MISSING,
            question_key=question_key,
            saved_revision_id=answer.question_revision_id if answer is not None else None,
            current_revision_id=current_revision_id,
            answered_at=answer.answered_at if answer is not None else None,
            source=answer.source if answer is not None else None,
        )

    saved_revision_id = answer.question_revision_id or None

    if current_revision_id is None or saved_revision_id is None:
        status = AnswerStatus.UNKNOWN
    elif saved_revision_id == current_revision_id:
        status = AnswerStatus.FRESH
    else:
        status = AnswerStatus.STALE

    return AnswerStatusDetail(
        status=status,
        question_key=question_key,
        saved_revision_id=saved_revision_id,
        current_revision_id=current_revision_id,
        answered_at=answer.answered_at,
        source=answer.source,
    )


__all__ = ["get_answer_status"]
