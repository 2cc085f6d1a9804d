"""APIRouter registration for the technology intake service."""

from __future__ import annotations

from fastapi import APIRouter

from intake.routes.submissions import router as submissions_router
from intake.routes.technologies import router as technologies_router

api_router = APIRouter()
api_router.include_router(submissions_router, tags=["Submissions"])
api_router.include_router(technologies_router, tags=["Hydration"])

__all__ = ["api_router"]
