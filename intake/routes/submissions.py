"""Submission routes: explicit submit and draft save.

Both routes delegate to the submission service; error translation to
problem+json happens in the globally registered handlers.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request

from intake.config import load_config
from intake.logic.submissions import save_submission
from intake.models.submission import SubmissionRequest, SubmissionResponse

router = APIRouter()
logger = logging.getLogger(__name__)


def _save(request: Request, questionnaire_id: str, payload: SubmissionRequest, final: bool) -> SubmissionResponse:
    logger.info(
        "submission_received questionnaire_id=%s final=%s answers=%s request_id=%s",
        questionnaire_id,
        final,
        len(payload.answers),
        request.scope.get("state", {}).get("request_id"),
    )
    result = save_submission(
        questionnaire_id,
        payload.answers,
        final=final,
        expected_versions=payload.row_versions,
        actor_id=payload.actor_id,
        config=load_config(),
    )
    return SubmissionResponse(
        tech_id=result.tech_id,
        technology_id=result.technology_id,
        row_versions=result.row_versions,
    )


@router.post(
    "/questionnaires/{questionnaire_id}/submissions",
    summary="Submit answers and synchronize the technology record",
    response_model=SubmissionResponse,
    response_model_by_alias=True,
)
def submit_answers(questionnaire_id: str, payload: SubmissionRequest, request: Request) -> SubmissionResponse:
    return _save(request, questionnaire_id, payload, final=True)


@router.post(
    "/questionnaires/{questionnaire_id}/drafts",
    summary="Save a draft; creates the technology only once it is complete",
    response_model=SubmissionResponse,
    response_model_by_alias=True,
)
def save_draft(questionnaire_id: str, payload: SubmissionRequest, request: Request) -> SubmissionResponse:
    return _save(request, questionnaire_id, payload, final=False)


__all__ = ["router"]
