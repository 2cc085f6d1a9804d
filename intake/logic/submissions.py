"""Submission service: the calling layer around the synchronization core.

Opens one transaction per submission, resolves the questionnaire's bindings,
supplies the configured fallback actor and decides between explicit submit
(create allowed, techId mandatory) and draft save (silent no-op when the
technology cannot be created yet).
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from sqlalchemy.engine import Engine

from intake.config import AppConfig, load_config
from intake.db.base import get_engine, transaction
from intake.logic.binding_metadata import collect_binding_metadata
from intake.logic.binding_values import extract_tech_id
from intake.logic.entity_sync import apply_binding_writes
from intake.logic.errors import TechIdRequiredError
from intake.logic.hydration import hydrate_technology
from intake.logic.repository_questionnaires import load_questionnaire
from intake.models.binding import BindingWriteOptions, BindingWriteResult, RowVersionSnapshot
from intake.models.hydration import HydrationResult

logger = logging.getLogger(__name__)


def _engine(config: AppConfig, engine: Optional[Engine]) -> Engine:
    return engine or get_engine(config.database.dsn)


def save_submission(
    questionnaire_id: str,
    answers: Mapping[str, Any],
    *,
    final: bool,
    expected_versions: Optional[RowVersionSnapshot] = None,
    actor_id: Optional[str] = None,
    config: Optional[AppConfig] = None,
    engine: Optional[Engine] = None,
) -> BindingWriteResult:
    """Persist one submission atomically.

    `final=True` is an explicit submit: a missing techId raises
    `TechIdRequiredError` and an incomplete new technology raises
    `MissingRequiredFieldsError`. `final=False` is a draft save, which
    returns an empty result in both cases. Lock conflicts propagate and roll
    the whole submission back.
    """
    cfg = config or load_config()
    with transaction(_engine(cfg, engine)) as conn:
        questionnaire = load_questionnaire(conn, questionnaire_id)
        metadata = collect_binding_metadata(questionnaire)
        if final and extract_tech_id(answers, metadata) is None:
            logger.info("submission_rejected questionnaire_id=%s reason=no_tech_id", questionnaire_id)
            raise TechIdRequiredError()

        options = BindingWriteOptions(
            actor_id=actor_id,
            fallback_actor_id=cfg.sync.default_actor_id,
            allow_create_when_incomplete=final,
            expected_versions=expected_versions,
        )
        result = apply_binding_writes(conn, metadata, answers, options)

    logger.info(
        "submission_saved questionnaire_id=%s final=%s tech_id=%s",
        questionnaire_id,
        final,
        result.tech_id,
    )
    return result


def load_technology_form(
    questionnaire_id: str,
    tech_id: str,
    *,
    config: Optional[AppConfig] = None,
    engine: Optional[Engine] = None,
) -> HydrationResult:
    cfg = config or load_config()
    with _engine(cfg, engine).connect() as conn:
        questionnaire = load_questionnaire(conn, questionnaire_id)
        return hydrate_technology(conn, questionnaire, tech_id)


__all__ = ["save_submission", "load_technology_form"]
