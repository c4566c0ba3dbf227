"""
Dependencies that hand the long-lived generation services to the routers.

The orchestrator and the content provider are built once in the application
lifespan and stored on ``app.state``; tests replace ``get_orchestrator`` via
``app.dependency_overrides``.
"""
from __future__ import annotations

from fastapi import HTTPException, Request, status

from app.services.orchestrator import GenerationOrchestrator


def get_orchestrator(request: Request) -> GenerationOrchestrator:
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Generation service is not initialised.",
        )
    return orchestrator
