"""FastAPI application package init for the technology intake service.

This package exposes a small FastAPI application factory used to receive
questionnaire submissions and project them onto the technology entity graph.
It wires only cross-cutting middleware (request-id) and mounts the API
routers. Synchronization logic lives in `intake/logic/` and route handlers in
`intake/routes/`.
"""

from __future__ import annotations

from intake.main import create_app

__all__ = ["create_app"]
