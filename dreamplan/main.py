# =============================================================================
# DreamPlan Agents — FastAPI Application
# =============================================================================
#
# STARTUP (lifespan):
#   1. Configure logging from settings.log_level
#   2. Create tables (development convenience; use migrations in prod)
#   3. Seed the five default agents if missing
#   4. Build the AgentManager (loads agents, decrypts credentials)
#   5. Build the GoalCoach with its generation fallback ring
#
# SHUTDOWN:
#   Close the shared httpx client, dispose the database engine.
#
# Run locally:
#   uvicorn dreamplan.main:app --reload
# =============================================================================

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

from dreamplan.api import agents, chat
from dreamplan.config import settings
from dreamplan.db.engine import async_engine
from dreamplan.db.models import Base
from dreamplan.db.seed import seed_default_agents
from dreamplan.db.store import SqlAlchemyAgentStore
from dreamplan.services.agent_manager import AgentManager
from dreamplan.services.coach import GoalCoach
from dreamplan.services.vault import CredentialVault

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    configure_logging()
    logger.info("Starting %s v%s", settings.app_name, settings.app_version)

    async with async_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    store = SqlAlchemyAgentStore()
    await seed_default_agents(store)

    http_client = httpx.AsyncClient(timeout=15.0)
    app.state.agent_manager = await AgentManager.create(
        store, CredentialVault(), http_client,
    )
    app.state.coach = GoalCoach()
    logger.info("Application startup complete")

    yield

    logger.info("Shutting down")
    await http_client.aclose()
    await async_engine.dispose()


def create_app() -> FastAPI:
    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Domain agents, task routing and a goal coach for DreamPlan",
        lifespan=lifespan,
    )
    app.include_router(agents.router)
    app.include_router(chat.router)

    @app.get("/health", tags=["Health"])
    async def health() -> dict[str, str]:
        return {"status": "healthy", "version": settings.app_version}

    return app


app = create_app()
