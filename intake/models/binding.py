"""Binding and synchronization types shared by the sync core.

Destinations form a closed enumeration: a binding path is
`<destination>.<field>` and every routing decision switches on `Destination`
rather than on raw string prefixes.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


class Destination(str, Enum):
    TECHNOLOGY = "technology"
    TRIAGE_STAGE = "triageStage"
    VIABILITY_STAGE = "viabilityStage"


STAGE_DESTINATIONS = (Destination.TRIAGE_STAGE, Destination.VIABILITY_STAGE)


class DataSource(str, Enum):
    TECHNOLOGY = "TECHNOLOGY"
    TRIAGE_STAGE = "TRIAGE_STAGE"
    VIABILITY_STAGE = "VIABILITY_STAGE"
    CALCULATED = "CALCULATED"


class AnswerSource(str, Enum):
    TECHNOLOGY = "technology"
    TRIAGE_STAGE = "triageStage"
    VIABILITY_STAGE = "viabilityStage"
    SUBMISSION = "submission"
    TECHNOLOGY_ANSWER = "technologyAnswer"


class AnswerStatus(str, Enum):
    MISSING = "MISSING"
    FRESH = "FRESH"
    STALE = "STALE"
    UNKNOWN = "UNKNOWN"


class BindingMetadata(BaseModel):
    """Resolved binding for one question key; immutable per resolution."""

    model_config = ConfigDict(frozen=True)

    question_id: str
    question_key: str
    binding_path: str
    data_source: DataSource
    dictionary_id: Optional[str] = None
    current_revision_id: Optional[str] = None
    current_version: Optional[int] = None


class RowVersionSnapshot(BaseModel):
    """Optimistic-concurrency token; an absent field means "don't check"."""

    model_config = ConfigDict(populate_by_name=True)

    technology_row_version: Optional[int] = Field(default=None, alias="technologyRowVersion")
    triage_stage_row_version: Optional[int] = Field(default=None, alias="triageStageRowVersion")
    viability_stage_row_version: Optional[int] = Field(default=None, alias="viabilityStageRowVersion")


class VersionedAnswer(BaseModel):
    """One journal entry: a value plus the question revision it answered."""

    model_config = ConfigDict(populate_by_name=True)

    value: Any = None
    question_revision_id: Optional[str] = Field(default=None, alias="questionRevisionId")
    answered_at: Optional[str] = Field(default=None, alias="answeredAt")
    source: Optional[AnswerSource] = None


class AnswerStatusDetail(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    status: AnswerStatus
    question_key: Optional[str] = Field(default=None, alias="questionKey")
    saved_revision_id: Optional[str] = Field(default=None, alias="savedRevisionId")
    current_revision_id: Optional[str] = Field(default=None, alias="currentRevisionId")
    answered_at: Optional[str] = Field(default=None, alias="answeredAt")
    source: Optional[AnswerSource] = None


class BindingWriteOptions(BaseModel):
    actor_id: Optional[str] = None
    fallback_actor_id: str
    allow_create_when_incomplete: bool = False
    expected_versions: Optional[RowVersionSnapshot] = None


class BindingWriteResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    technology_id: Optional[str] = Field(default=None, alias="technologyId")
    tech_id: Optional[str] = Field(default=None, alias="techId")
    row_versions: Optional[RowVersionSnapshot] = Field(default=None, alias="rowVersions")

    @property
    def is_empty(self) -> bool:
        return self.technology_id is None and self.tech_id is None and self.row_versions is None


__all__ = [
    "Destination",
    "STAGE_DESTINATIONS",
    "DataSource",
    "AnswerSource",
    "AnswerStatus",
    "BindingMetadata",
    "RowVersionSnapshot",
    "VersionedAnswer",
    "AnswerStatusDetail",
    "BindingWriteOptions",
    "BindingWriteResult",
]
