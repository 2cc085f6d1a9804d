"""Central error mapping for synchronization failures.

Single source of truth for mapping core error types to problem+json codes
and HTTP statuses. Route modules and handlers import from here instead of
hardcoding strings or numbers.
"""

from __future__ import annotations

from intake.logic.errors import (
    LockConflictError,
    MissingRequiredFieldsError,
    QuestionnaireNotFoundError,
    TechIdRequiredError,
)

# Stored row version moved since the client loaded the form (retry after reload)
LOCK_CONFLICT = {
    "code": "SYNC_LOCK_CONFLICT",
    "status": 409,
    "title": "Conflict",
}

# Explicit submit for a new technology without its required fields
REQUIRED_FIELDS_MISSING = {
    "code": "SYNC_REQUIRED_FIELDS_MISSING",
    "status": 422,
    "title": "Unprocessable Entity",
}

# Explicit submit without a technology identifier
TECH_ID_REQUIRED = {
    "code": "SYNC_TECH_ID_REQUIRED",
    "status": 422,
    "title": "Unprocessable Entity",
}

QUESTIONNAIRE_NOT_FOUND = {
    "code": "QUESTIONNAIRE_NOT_FOUND",
    "status": 404,
    "title": "Not Found",
}

SYNC_ERROR_MAP = {
    LockConflictError: LOCK_CONFLICT,
    MissingRequiredFieldsError: REQUIRED_FIELDS_MISSING,
    TechIdRequiredError: TECH_ID_REQUIRED,
    QuestionnaireNotFoundError: QUESTIONNAIRE_NOT_FOUND,
}

__all__ = [
    "LOCK_CONFLICT",
    "REQUIRED_FIELDS_MISSING",
    "TECH_ID_REQUIRED",
    "QUESTIONNAIRE_NOT_FOUND",
    "SYNC_ERROR_MAP",
]
