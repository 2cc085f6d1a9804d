"""Hydration route: prefill a questionnaire from a stored technology."""

from __future__ import annotations

import logging

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from intake.config import load_config
from intake.logic.submissions import load_technology_form

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get(
    "/questionnaires/{questionnaire_id}/technologies/{tech_id}",
    summary="Load initial values and answer freshness for a technology",
)
def get_technology_form(questionnaire_id: str, tech_id: str) -> JSONResponse:
    result = load_technology_form(questionnaire_id, tech_id, config=load_config())
    body = result.model_dump(mode="json", by_alias=True)
    return JSONResponse(body, status_code=200, media_type="application/json")


__all__ = ["router"]
