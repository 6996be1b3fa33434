# =============================================================================
# FastAPI Application Entry Point
# =============================================================================
#
#   1. Configure logging
#   2. Create the FastAPI app with CORS for the dashboard
#   3. Register routers
#   4. Lifespan: optional table creation on startup, engine disposal on
#      shutdown
#
# Run:
#   uvicorn app.main:app --reload --host 0.0.0.0 --port 8000
#
# API docs:
#   - Swagger UI: http://localhost:8000/docs
#   - ReDoc: http://localhost:8000/redoc
# =============================================================================

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api import agents
from app.config import settings
from app.db.engine import async_engine, create_tables
from app.models.responses import HealthResponse

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting %s v%s", settings.app_name, settings.app_version)
    if settings.database_create_tables:
        await create_tables()
        logger.info("Database tables ensured")
    yield
    await async_engine.dispose()
    logger.info("Shutdown complete")


def create_app() -> FastAPI:
    application = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_allow_origins,
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
    )

    application.include_router(agents.router)

    @application.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health() -> HealthResponse:
        return HealthResponse(version=settings.app_version, service=settings.app_name)

    return application


app = create_app()
