# =============================================================================
# Agent Store — Persistence Boundary for the Agent Layer
# =============================================================================
#
# The AgentManager talks to storage only through the AgentStore protocol.
# SqlAlchemyAgentStore implements it over PostgreSQL; tests use an
# in-memory fake with the same methods.
#
# Rows are converted to the plain dataclasses in dreamplan.agents.types at
# this boundary, so ORM objects never leak into the manager or the agents.
#
# DESIGN DECISION: Protocol (structural typing) rather than an ABC.
# Any object with the right async methods is a store; the fake in the test
# suite does not need to inherit anything.
#
# DESIGN DECISION: One short session per call, committed explicitly.
# The manager is long-lived and not tied to a request, so sessions are
# scoped to a single store operation rather than to an HTTP request.
# =============================================================================

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime
from typing import Protocol

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dreamplan.agents.types import (
    AgentCapability,
    AgentRecord,
    MonitoringParams,
    PerformanceMetrics,
    StoredCredential,
    TaskRun,
)
from dreamplan.db.models import Agent, AgentApiKey, AgentMonitor, AgentTaskRun, Goal

logger = logging.getLogger(__name__)


class GoalNotFoundError(LookupError):
    """Raised when an operation targets a goal that does not exist."""

    def __init__(self, goal_id: str) -> None:
        super().__init__(f"Goal not found: {goal_id}")
        self.goal_id = goal_id


class AgentStore(Protocol):
    """Storage operations the AgentManager depends on."""

    async def list_agents(self, *, active_only: bool = False) -> list[AgentRecord]: ...

    async def get_agent(self, agent_id: str) -> AgentRecord | None: ...

    async def create_agent(
        self,
        name: str,
        type: str,
        description: str,
        capabilities: Sequence[AgentCapability],
        version: str = "1.0.0",
    ) -> AgentRecord: ...

    async def update_metrics(self, agent_id: str, metrics: PerformanceMetrics) -> None: ...

    async def assign_agents(
        self, goal_id: str, agent_ids: list[str], at: datetime,
    ) -> None: ...

    async def create_monitor(self, params: MonitoringParams) -> str: ...

    async def add_credential(
        self,
        agent_id: str,
        provider: str,
        key_name: str,
        encrypted_value: str,
        expires_at: datetime | None = None,
        monthly_limit: int | None = None,
    ) -> StoredCredential: ...

    async def record_task_run(self, run: TaskRun) -> None: ...

    async def list_task_runs(self, agent_id: str, limit: int = 20) -> list[TaskRun]: ...


# ---------------------------------------------------------------------------
# Row → dataclass conversion
# ---------------------------------------------------------------------------


def _credential(row: AgentApiKey) -> StoredCredential:
    return StoredCredential(
        id=row.id,
        provider=row.provider,
        key_name=row.key_name,
        encrypted_value=row.encrypted_value,
        is_active=row.is_active,
        expires_at=row.expires_at,
        monthly_limit=row.monthly_limit,
    )


def _record(row: Agent) -> AgentRecord:
    return AgentRecord(
        id=row.id,
        name=row.name,
        type=row.type,
        description=row.description,
        capabilities=[AgentCapability.from_dict(c) for c in row.capabilities or []],
        is_active=row.is_active,
        version=row.version,
        metrics=PerformanceMetrics(
            total_executions=row.total_executions,
            average_response_time=row.average_response_time,
            success_rate=row.success_rate,
            last_executed=row.last_executed,
        ),
        credentials=[_credential(key) for key in row.api_keys],
    )


def _task_run(row: AgentTaskRun) -> TaskRun:
    return TaskRun(
        agent_id=row.agent_id,
        goal_id=row.goal_id,
        user_id=row.user_id,
        task_type=row.task_type,
        priority=row.priority,
        success=row.success,
        confidence=row.confidence,
        execution_time_ms=row.execution_time_ms,
        error=row.error,
        created_at=row.created_at,
    )


# ---------------------------------------------------------------------------
# SQLAlchemy implementation
# ---------------------------------------------------------------------------


class SqlAlchemyAgentStore:
    """
    AgentStore over async SQLAlchemy.

    Args:
        session_factory: Produces AsyncSessions. Defaults to the app-wide
            factory in dreamplan.db.engine.
    """

    def __init__(
        self, session_factory: async_sessionmaker[AsyncSession] | None = None,
    ) -> None:
        if session_factory is None:
            from dreamplan.db.engine import async_session_factory

            session_factory = async_session_factory
        self._session_factory = session_factory

    async def list_agents(self, *, active_only: bool = False) -> list[AgentRecord]:
        stmt = select(Agent).order_by(Agent.created_at)
        if active_only:
            stmt = stmt.where(Agent.is_active.is_(True))
        async with self._session_factory() as session:
            rows = (await session.execute(stmt)).scalars().all()
            return [_record(row) for row in rows]

    async def get_agent(self, agent_id: str) -> AgentRecord | None:
        async with self._session_factory() as session:
            row = await session.get(Agent, agent_id)
            return _record(row) if row else None

    async def create_agent(
        self,
        name: str,
        type: str,
        description: str,
        capabilities: Sequence[AgentCapability],
        version: str = "1.0.0",
    ) -> AgentRecord:
        async with self._session_factory() as session:
            row = Agent(
                name=name,
                type=type,
                description=description,
                capabilities=[c.to_dict() for c in capabilities],
                version=version,
                is_active=True,
                api_keys=[],
            )
            session.add(row)
            await session.commit()
            logger.info("Created agent %s (%s) as %s", name, type, row.id)
            return _record(row)

    async def update_metrics(self, agent_id: str, metrics: PerformanceMetrics) -> None:
        async with self._session_factory() as session:
            await session.execute(
                update(Agent)
                .where(Agent.id == agent_id)
                .values(
                    success_rate=metrics.success_rate,
                    average_response_time=metrics.average_response_time,
                    total_executions=metrics.total_executions,
                    last_executed=metrics.last_executed,
                )
            )
            await session.commit()

    async def assign_agents(
        self, goal_id: str, agent_ids: list[str], at: datetime,
    ) -> None:
        async with self._session_factory() as session:
            goal = await session.get(Goal, goal_id)
            if goal is None:
                raise GoalNotFoundError(goal_id)
            goal.assigned_agents = list(agent_ids)
            goal.last_agent_update = at
            await session.commit()

    async def create_monitor(self, params: MonitoringParams) -> str:
        async with self._session_factory() as session:
            row = AgentMonitor(
                goal_id=params.goal_id,
                agent_id=params.agent_id,
                monitor_type=params.monitor_type,
                parameters=dict(params.parameters),
                frequency=params.frequency,
                threshold=params.threshold,
                threshold_type=params.threshold_type,
            )
            session.add(row)
            await session.commit()
            return row.id

    async def add_credential(
        self,
        agent_id: str,
        provider: str,
        key_name: str,
        encrypted_value: str,
        expires_at: datetime | None = None,
        monthly_limit: int | None = None,
    ) -> StoredCredential:
        async with self._session_factory() as session:
            row = AgentApiKey(
                agent_id=agent_id,
                provider=provider,
                key_name=key_name,
                encrypted_value=encrypted_value,
                expires_at=expires_at,
                monthly_limit=monthly_limit,
                is_active=True,
            )
            session.add(row)
            await session.commit()
            return _credential(row)

    async def record_task_run(self, run: TaskRun) -> None:
        async with self._session_factory() as session:
            session.add(AgentTaskRun(
                agent_id=run.agent_id,
                goal_id=run.goal_id,
                user_id=run.user_id,
                task_type=run.task_type,
                priority=run.priority,
                success=run.success,
                confidence=run.confidence,
                execution_time_ms=run.execution_time_ms,
                error=run.error,
            ))
            await session.commit()

    async def list_task_runs(self, agent_id: str, limit: int = 20) -> list[TaskRun]:
        stmt = (
            select(AgentTaskRun)
            .where(AgentTaskRun.agent_id == agent_id)
            .order_by(AgentTaskRun.created_at.desc(), AgentTaskRun.id.desc())
            .limit(limit)
        )
        async with self._session_factory() as session:
            rows = (await session.execute(stmt)).scalars().all()
            return [_task_run(row) for row in rows]
