# =============================================================================
# API Response Models — Pydantic V2 Schemas
# =============================================================================
#
# These models define the shape of data going OUT of the API. They are
# built from the agent-layer dataclasses (AgentRecord, AgentResult,
# TaskRun) in the route handlers; nothing here touches the ORM.
#
# Credentials are exposed only as provider names and expiry. Secret
# values never leave the manager.
# =============================================================================

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel

from dreamplan.agents.types import AgentRecord, AgentResult, TaskRun


class PerformanceOut(BaseModel):
    success_rate: float
    average_response_time: float
    total_executions: int
    last_executed: datetime | None = None


class CapabilityOut(BaseModel):
    name: str
    description: str
    parameters: dict[str, dict[str, Any]]


class CredentialOut(BaseModel):
    provider: str
    key_name: str
    is_active: bool
    expires_at: datetime | None = None


class AgentResponse(BaseModel):
    """One agent, as returned by GET /agents and GET /agents/{id}."""

    id: str
    name: str
    type: str
    description: str
    version: str
    is_active: bool
    loaded: bool
    capabilities: list[CapabilityOut]
    performance: PerformanceOut
    credentials: list[CredentialOut]

    @classmethod
    def from_record(cls, record: AgentRecord, loaded: bool) -> AgentResponse:
        return cls(
            id=record.id,
            name=record.name,
            type=record.type,
            description=record.description,
            version=record.version,
            is_active=record.is_active,
            loaded=loaded,
            capabilities=[CapabilityOut(**c.to_dict()) for c in record.capabilities],
            performance=PerformanceOut(
                success_rate=record.metrics.success_rate,
                average_response_time=record.metrics.average_response_time,
                total_executions=record.metrics.total_executions,
                last_executed=record.metrics.last_executed,
            ),
            credentials=[
                CredentialOut(
                    provider=c.provider,
                    key_name=c.key_name,
                    is_active=c.is_active,
                    expires_at=c.expires_at,
                )
                for c in record.credentials
            ],
        )


class AgentListResponse(BaseModel):
    agents: list[AgentResponse]
    total: int


class AgentResultResponse(BaseModel):
    """Envelope for POST /agents/execute-task."""

    success: bool
    data: Any = None
    confidence: float
    metadata: dict[str, Any] | None = None
    error: str | None = None

    @classmethod
    def from_result(cls, result: AgentResult) -> AgentResultResponse:
        return cls(**result.to_dict())


class TaskRunOut(BaseModel):
    goal_id: str
    user_id: str
    task_type: str
    priority: str
    success: bool
    confidence: float
    execution_time_ms: float
    error: str | None = None
    created_at: datetime | None = None

    @classmethod
    def from_run(cls, run: TaskRun) -> TaskRunOut:
        return cls(
            goal_id=run.goal_id,
            user_id=run.user_id,
            task_type=run.task_type,
            priority=run.priority,
            success=run.success,
            confidence=run.confidence,
            execution_time_ms=run.execution_time_ms,
            error=run.error,
            created_at=run.created_at,
        )


class TaskRunListResponse(BaseModel):
    agent_id: str
    tasks: list[TaskRunOut]


class AssignAgentsResponse(BaseModel):
    goal_id: str
    agent_ids: list[str]


class IdResponse(BaseModel):
    id: str


class ChatResponse(BaseModel):
    reply: str


class FeasibilityResponse(BaseModel):
    analysis: dict[str, Any]
    plan: Any = None
