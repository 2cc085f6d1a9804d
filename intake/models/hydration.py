"""Read-side models returned when prefilling a questionnaire for a technology."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from intake.models.binding import AnswerStatusDetail, BindingMetadata, RowVersionSnapshot


class TechnologyContext(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    tech_id: str = Field(alias="techId")
    has_triage_stage: bool = Field(default=False, alias="hasTriageStage")
    has_viability_stage: bool = Field(default=False, alias="hasViabilityStage")
    technology_row_version: Optional[int] = Field(default=None, alias="technologyRowVersion")
    triage_stage_row_version: Optional[int] = Field(default=None, alias="triageStageRowVersion")
    viability_stage_row_version: Optional[int] = Field(default=None, alias="viabilityStageRowVersion")


class HydrationResult(BaseModel):
    """Initial form values plus per-question freshness for one technology.

    `context` is None when no technology matched; every map is then empty.
    """

    model_config = ConfigDict(populate_by_name=True)

    binding_metadata: Dict[str, BindingMetadata] = Field(default_factory=dict, alias="bindingMetadata")
    responses: Dict[str, Any] = Field(default_factory=dict)
    repeat_groups: Dict[str, List[Dict[str, Any]]] = Field(default_factory=dict, alias="repeatGroups")
    answer_metadata: Dict[str, AnswerStatusDetail] = Field(default_factory=dict, alias="answerMetadata")
    context: Optional[TechnologyContext] = None
    row_versions: RowVersionSnapshot = Field(default_factory=RowVersionSnapshot, alias="rowVersions")


__all__ = ["TechnologyContext", "HydrationResult"]
