"""Request-scoped access to the application context."""

from fastapi import HTTPException, Request

from ..memory.integrate import MemoryIntegration


def get_integration(request: Request) -> MemoryIntegration:
    """Dependency returning the MemoryIntegration stored on ``app.state``."""
    integration = getattr(request.app.state, "memory", None)
    if integration is None:
        raise HTTPException(status_code=503, detail="Memory stores not initialized")
    return integration
