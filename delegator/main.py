# =============================================================================
# Application Entry Point — FastAPI App Factory
# =============================================================================
#
# Run locally with:
#   uvicorn delegator.main:app --reload
#
# Logging is configured here, once, from settings.log_level. Every other
# module only does `logger = logging.getLogger(__name__)`.
#
# With SEED_ON_STARTUP=true the demo knowledge base is loaded before the
# first request; the in-process Chroma store is empty otherwise.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI

from delegator.api.ask import router as ask_router
from delegator.config import Settings, get_settings, settings
from delegator.models.responses import HealthResponse

logger = logging.getLogger(__name__)


def _seed_demo_data() -> None:
    from delegator.services.embedder import OpenAIEmbedder
    from delegator.services.seed import seed_vector_store
    from delegator.services.vectorstore import get_vector_store

    written = seed_vector_store(get_vector_store(), OpenAIEmbedder())
    logger.info("Seeded demo knowledge base: %s", written)


@asynccontextmanager
async def lifespan(application: FastAPI):
    if settings.seed_on_startup:
        try:
            await asyncio.to_thread(_seed_demo_data)
        except Exception as e:
            logger.error("Seeding on startup failed: %s", e)
    yield


def create_app() -> FastAPI:
    """Build the FastAPI application with logging and all routers wired."""
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    application = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan,
        description=(
            "Routes natural-language queries to chart generation and "
            "tenant-scoped document retrieval, then synthesizes one answer."
        ),
    )
    application.include_router(ask_router)

    @application.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health(config: Settings = Depends(get_settings)) -> HealthResponse:
        return HealthResponse(
            version=config.app_version, service=config.app_name,
        )

    return application


app = create_app()
