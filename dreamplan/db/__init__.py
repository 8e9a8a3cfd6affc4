# =============================================================================
# Database Package
# =============================================================================
# Provides the async SQLAlchemy engine, ORM models and the AgentStore port.
#
# Key exports:
#   - async_engine / async_session_factory: asyncpg-backed engine and sessions
#   - Base: SQLAlchemy declarative base for ORM models
#   - AgentStore / SqlAlchemyAgentStore: persistence used by the AgentManager
# =============================================================================
