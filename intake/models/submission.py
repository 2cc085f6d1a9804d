"""Request and response bodies for the submission routes."""

from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from intake.models.binding import RowVersionSnapshot


class SubmissionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    answers: Dict[str, Any] = Field(default_factory=dict)
    row_versions: Optional[RowVersionSnapshot] = Field(default=None, alias="rowVersions")
    actor_id: Optional[str] = Field(default=None, alias="actorId")

    @field_validator("actor_id")
    @classmethod
    def blank_actor_is_absent(cls, v: Optional[str]) -> Optional[str]:
        if v is None or not v.strip():
            return None
        return v.strip()


class SubmissionResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    tech_id: Optional[str] = Field(default=None, alias="techId")
    technology_id: Optional[str] = Field(default=None, alias="technologyId")
    row_versions: Optional[RowVersionSnapshot] = Field(default=None, alias="rowVersions")


__all__ = ["SubmissionRequest", "SubmissionResponse"]
