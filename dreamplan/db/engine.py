# =============================================================================
# Database Engine & Session Management
# =============================================================================
#
# DESIGN DECISION: Async SQLAlchemy Engine
# FastAPI is an async framework, so every query goes through SQLAlchemy's
# async engine on the asyncpg driver. There is no sync engine: the agent
# layer never runs outside the event loop.
#
# SESSION LIFECYCLE:
# The AgentManager outlives any request, so SqlAlchemyAgentStore opens one
# short-lived session per operation from `async_session_factory` and
# commits it explicitly. Route handlers never touch sessions directly.
# =============================================================================

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from dreamplan.config import settings

# ---------------------------------------------------------------------------
# Async Engine
# ---------------------------------------------------------------------------
# - echo (debug mode): logs every SQL statement.
# - pool_size / max_overflow: sized for a single API process.
# ---------------------------------------------------------------------------
async_engine = create_async_engine(
    settings.database_url,
    echo=settings.debug,
    pool_size=5,
    max_overflow=10,
)

# ---------------------------------------------------------------------------
# Session Factory
# ---------------------------------------------------------------------------
# expire_on_commit=False: loaded rows stay readable after commit. Without
# it, touching an attribute after commit triggers a lazy load, which fails
# outside the async context.
# ---------------------------------------------------------------------------
async_session_factory = async_sessionmaker(
    bind=async_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

