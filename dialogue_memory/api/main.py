"""Main FastAPI application and server startup."""

from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import structlog
import uvicorn

from .. import __version__
from ..config.settings import Settings
from ..errors import StorageError
from ..memory.integrate import create_memory_integration
from ..telemetry import configure_logging
from .knowledge import router as knowledge_router
from .memory import router as memory_router
from .schemas import HealthResponse


logger = structlog.get_logger(__name__)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the API with its own stores.

    Args:
        settings: Application settings (environment-derived defaults if omitted)

    Returns:
        FastAPI app with the MemoryIntegration on ``app.state.memory``
    """
    settings = settings or Settings.from_env()

    app = FastAPI(
        title="Dialogue Memory API",
        description="Fact store and summary memory for conversational agents",
        version=__version__,
    )
    app.state.settings = settings
    app.state.memory = create_memory_integration(settings)

    app.include_router(knowledge_router)
    app.include_router(memory_router)

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError):
        logger.error("storage_error", path=request.url.path, error=str(exc))
        return JSONResponse(status_code=500, content={"detail": f"Storage failure: {exc}"})

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    @app.get("/health", response_model=HealthResponse)
    async def health():
        """Health check endpoint."""
        return HealthResponse(
            status="ok",
            version=__version__,
            data_dir=str(settings.data_root),
        )

    return app


def main():
    """Run the server (development entrypoint)."""
    settings = Settings.from_env()
    configure_logging(settings.log_level, json=settings.log_json)
    uvicorn.run(create_app(settings), host="0.0.0.0", port=8000)


if __name__ == "__main__":
    main()
