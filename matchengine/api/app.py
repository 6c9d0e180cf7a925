"""FastAPI application entry point for matchengine."""

from __future__ import annotations

from fastapi import FastAPI

from matchengine.api.rank_service import RankService
from matchengine.api.routes import router
from matchengine.config.settings import EngineConfig
from matchengine.telemetry.logging_config import configure_logging

VERSION = "1.0.0"


def create_app(config: EngineConfig | None = None) -> FastAPI:
    """Factory function for creating the FastAPI application."""
    config = config or EngineConfig()
    configure_logging(config.log_level)

    app = FastAPI(
        title="matchengine",
        description="Attribute fusion and ranking engine for shopping matches",
        version=VERSION,
    )
    app.state.config = config
    app.state.rank_service = RankService(config)
    app.include_router(router, prefix="/api/v1")

    @app.get("/health")
    async def health_check() -> dict[str, str]:
        return {"status": "healthy", "service": "matchengine", "version": VERSION}

    return app


app = create_app()
