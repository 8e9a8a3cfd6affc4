# =============================================================================
# Database Models — SQLAlchemy ORM
# =============================================================================
#
# SCHEMA OVERVIEW:
#
# ┌──────────────────────┐       ┌────────────────────────────────────┐
# │  agents              │       │  agent_api_keys                    │
# ├──────────────────────┤       ├────────────────────────────────────┤
# │ id (PK, uuid str)    │──1:N─▶│ id (PK)                            │
# │ name, type           │       │ agent_id (FK → agents.id)          │
# │ description, version │       │ provider, key_name                 │
# │ capabilities (jsonb) │       │ encrypted_value  (iv:tag:ct hex)   │
# │ is_active            │       │ is_active, expires_at              │
# │ success_rate         │       │ monthly_limit (carried only)       │
# │ average_response_time│       └────────────────────────────────────┘
# │ total_executions     │
# │ last_executed        │──1:N─▶ agent_monitors   (inert descriptors)
# └──────────────────────┘──1:N─▶ agent_task_runs  (one row per task)
#
# goals: minimal table holding the agent assignment of each goal.
#
# DESIGN DECISIONS:
#
# 1. String(36) UUID primary keys: agent ids are handed to API clients
#    and stored inside goals.assigned_agents, so they must not be
#    guessable sequence numbers.
#
# 2. `agents.type` is a plain string, not a database enum. A row whose
#    type the code does not know is skipped at load time instead of
#    failing the whole query.
#
# 3. Metrics live as columns on `agents` (not a separate table). They are
#    overwritten after every execution; history is in agent_task_runs.
#
# 4. Agents are never deleted, only deactivated with `is_active`.
# =============================================================================

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _uuid() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """SQLAlchemy declarative base class."""

    pass


class Agent(Base):
    """A registered domain agent and its rolling performance metrics."""

    __tablename__ = "agents"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(200), nullable=False)

    # AgentType value ("travel", "financial", ...)
    type: Mapped[str] = mapped_column(String(50), nullable=False)

    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    version: Mapped[str] = mapped_column(String(20), nullable=False, default="1.0.0")

    # List of {"name", "description", "parameters"} dicts
    capabilities: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # --- Performance metrics (unrounded running means) ---
    success_rate: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    average_response_time: Mapped[float] = mapped_column(
        Float, nullable=False, default=0.0,
    )
    total_executions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_executed: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    api_keys: Mapped[list["AgentApiKey"]] = relationship(
        "AgentApiKey",
        back_populates="agent",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Agent(id={self.id}, name='{self.name}', type={self.type})>"


class AgentApiKey(Base):
    """An encrypted provider credential owned by one agent."""

    __tablename__ = "agent_api_keys"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    agent_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("agents.id", ondelete="CASCADE"),
        nullable=False,
    )

    # Provider name the agent looks credentials up by ("amadeus", "newsapi")
    provider: Mapped[str] = mapped_column(String(100), nullable=False)
    key_name: Mapped[str] = mapped_column(String(100), nullable=False)

    # CredentialVault token; never the plaintext
    encrypted_value: Mapped[str] = mapped_column(Text, nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    monthly_limit: Mapped[int | None] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    agent: Mapped["Agent"] = relationship("Agent", back_populates="api_keys")

    def __repr__(self) -> str:
        return f"<AgentApiKey(id={self.id}, agent_id={self.agent_id}, provider={self.provider})>"


class AgentMonitor(Base):
    """A polling-monitor descriptor. Stored only; nothing schedules it."""

    __tablename__ = "agent_monitors"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    goal_id: Mapped[str] = mapped_column(String(36), nullable=False)
    agent_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("agents.id", ondelete="CASCADE"),
        nullable=False,
    )
    monitor_type: Mapped[str] = mapped_column(String(100), nullable=False)
    parameters: Mapped[dict] = mapped_column(JSONB, nullable=False, default=dict)

    # "hourly" | "daily" | "weekly"
    frequency: Mapped[str] = mapped_column(String(20), nullable=False, default="daily")
    threshold: Mapped[float | None] = mapped_column(Float, nullable=True)

    # "above" | "below" | "change_percent"
    threshold_type: Mapped[str | None] = mapped_column(String(20), nullable=True)

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )


class AgentTaskRun(Base):
    """Execution metadata for one task. Written after every execution."""

    __tablename__ = "agent_task_runs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    agent_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("agents.id", ondelete="CASCADE"),
        nullable=False,
    )
    goal_id: Mapped[str] = mapped_column(String(36), nullable=False)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    task_type: Mapped[str] = mapped_column(String(100), nullable=False)
    priority: Mapped[str] = mapped_column(String(10), nullable=False, default="medium")
    success: Mapped[bool] = mapped_column(Boolean, nullable=False)
    confidence: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    execution_time_ms: Mapped[float] = mapped_column(Float, nullable=False)
    error: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )


class Goal(Base):
    """The slice of a user goal the agent layer reads and writes."""

    __tablename__ = "goals"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)
    title: Mapped[str] = mapped_column(String(500), nullable=False)

    # Agent ids, in the order the agent types were requested
    assigned_agents: Mapped[list] = mapped_column(JSONB, nullable=False, default=list)
    last_agent_update: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )


# B-tree indexes for the lookups the store performs
agent_type_idx = Index("idx_agent_type_active", Agent.type, Agent.is_active)
api_key_agent_idx = Index("idx_agent_api_key_agent_id", AgentApiKey.agent_id)
task_run_agent_idx = Index(
    "idx_agent_task_run_agent_created", AgentTaskRun.agent_id, AgentTaskRun.created_at,
)
