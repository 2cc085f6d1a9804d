"""Error types raised by the synchronization core.

Callers distinguish a lock conflict (offer reload and retry) from other
failures by type. Silent no-op outcomes are not errors and return an empty
`BindingWriteResult` instead.
"""

from __future__ import annotations

from typing import Iterable, List


class SyncError(Exception):
    pass


_ENTITY_LABELS = {
    "technology": "Technology record",
    "triage_stage": "Triage stage",
    "viability_stage": "Viability stage",
}


class LockConflictError(SyncError):
    """A conditional update matched zero rows: the stored row version moved."""

    def __init__(self, entity: str, expected_version: int | None = None) -> None:
        self.entity = entity
        self.expected_version = expected_version
        label = _ENTITY_LABELS.get(entity, entity)
        super().__init__(f"{label} was modified by another user.")


class MissingRequiredFieldsError(SyncError, ValueError):
    def __init__(self, missing_fields: Iterable[str]) -> None:
        self.missing_fields: List[str] = list(missing_fields)
        super().__init__(
            f"Missing required technology fields: {', '.join(self.missing_fields)}"
        )


class TechIdRequiredError(SyncError, ValueError):
    """An explicit submit carried no usable technology identifier."""

    def __init__(self) -> None:
        super().__init__("A technology identifier (techId) is required to submit.")


class QuestionnaireNotFoundError(SyncError, LookupError):
    def __init__(self, questionnaire_id: str | None) -> None:
        self.questionnaire_id = questionnaire_id
        if questionnaire_id:
            super().__init__(f"Questionnaire not found for id {questionnaire_id}")
        else:
            super().__init__("No active questionnaire found")


__all__ = [
    "SyncError",
    "LockConflictError",
    "MissingRequiredFieldsError",
    "TechIdRequiredError",
    "QuestionnaireNotFoundError",
]
