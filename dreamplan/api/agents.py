# =============================================================================
# Agents API — Registry, Task Execution, Monitoring, Credentials
# =============================================================================
#
# ENDPOINTS:
#   GET  /agents                      — list every stored agent
#   POST /agents                      — register (and load) a new agent
#   GET  /agents/{id}                 — one agent's status and metrics
#   GET  /agents/{id}/tasks           — recent task runs for an agent
#   POST /agents/assign-to-goal       — attach one agent per type to a goal
#   POST /agents/execute-task         — route and run a task
#   POST /agents/setup-monitoring     — store a monitor descriptor
#   POST /agents/{id}/credentials     — encrypt and attach a provider key
#
# This router is thin by design: request validation, error mapping and
# response shaping. All behaviour lives in the AgentManager.
#
# Task execution failures are NOT HTTP errors. A failed task is a 200 with
# `success: false` and an `error` string, exactly as the manager returns it.
# =============================================================================

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query

from dreamplan.agents.types import MonitoringParams, TaskParameters
from dreamplan.api.deps import get_agent_manager
from dreamplan.db.store import GoalNotFoundError
from dreamplan.models.requests import (
    AddCredentialsRequest,
    AssignAgentsRequest,
    ExecuteTaskRequest,
    RegisterAgentRequest,
    SetupMonitoringRequest,
)
from dreamplan.models.responses import (
    AgentListResponse,
    AgentResponse,
    AgentResultResponse,
    AssignAgentsResponse,
    IdResponse,
    TaskRunListResponse,
    TaskRunOut,
)
from dreamplan.services.agent_manager import AgentManager, AgentNotFoundError
from dreamplan.services.vault import VaultError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Agents"])


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------


@router.get(
    "/agents",
    response_model=AgentListResponse,
    summary="List agents",
)
async def list_agents(
    manager: AgentManager = Depends(get_agent_manager),
) -> AgentListResponse:
    records = await manager.get_all_agents()
    agents = [AgentResponse.from_record(r, manager.is_loaded(r.id)) for r in records]
    return AgentListResponse(agents=agents, total=len(agents))


@router.post(
    "/agents",
    response_model=IdResponse,
    status_code=201,
    summary="Register a new agent",
    description=(
        "Persist a new active agent of a known type and load it immediately. "
        "Capabilities default to the ones the agent type declares."
    ),
)
async def register_agent(
    request: RegisterAgentRequest,
    manager: AgentManager = Depends(get_agent_manager),
) -> IdResponse:
    agent_id = await manager.register_agent(
        name=request.name,
        type=request.type,
        description=request.description,
        capabilities=(
            None if request.capabilities is None
            else [c.to_capability() for c in request.capabilities]
        ),
    )
    return IdResponse(id=agent_id)


@router.get(
    "/agents/{agent_id}",
    response_model=AgentResponse,
    summary="Get agent status",
)
async def get_agent_status(
    agent_id: str,
    manager: AgentManager = Depends(get_agent_manager),
) -> AgentResponse:
    record = await manager.get_agent_status(agent_id)
    if record is None:
        raise HTTPException(status_code=404, detail=f"Agent {agent_id} not found")
    return AgentResponse.from_record(record, manager.is_loaded(agent_id))


@router.get(
    "/agents/{agent_id}/tasks",
    response_model=TaskRunListResponse,
    summary="List recent task runs for an agent",
)
async def list_agent_tasks(
    agent_id: str,
    limit: int = Query(default=20, ge=1, le=200),
    manager: AgentManager = Depends(get_agent_manager),
) -> TaskRunListResponse:
    try:
        runs = await manager.list_agent_tasks(agent_id, limit)
    except AgentNotFoundError:
        raise HTTPException(status_code=404, detail=f"Agent {agent_id} not found")
    return TaskRunListResponse(
        agent_id=agent_id, tasks=[TaskRunOut.from_run(run) for run in runs],
    )


# ---------------------------------------------------------------------------
# Goals & Tasks
# ---------------------------------------------------------------------------


@router.post(
    "/agents/assign-to-goal",
    response_model=AssignAgentsResponse,
    summary="Assign agents to a goal",
)
async def assign_agents_to_goal(
    request: AssignAgentsRequest,
    manager: AgentManager = Depends(get_agent_manager),
) -> AssignAgentsResponse:
    try:
        agent_ids = await manager.assign_agents_to_goal(request.goal_id, request.agent_types)
    except GoalNotFoundError:
        raise HTTPException(status_code=404, detail=f"Goal {request.goal_id} not found")
    return AssignAgentsResponse(goal_id=request.goal_id, agent_ids=agent_ids)


@router.post(
    "/agents/execute-task",
    response_model=AgentResultResponse,
    summary="Execute an agent task",
    description=(
        "Route the task to the agent that serves its type and run it. "
        "Failures are reported in the body (`success: false`), not as HTTP errors."
    ),
)
async def execute_task(
    request: ExecuteTaskRequest,
    manager: AgentManager = Depends(get_agent_manager),
) -> AgentResultResponse:
    result = await manager.execute_task(TaskParameters(
        goal_id=request.goal_id,
        user_id=request.user_id,
        type=request.type,
        parameters=request.parameters,
        priority=request.priority,
    ))
    return AgentResultResponse.from_result(result)


@router.post(
    "/agents/setup-monitoring",
    response_model=IdResponse,
    status_code=201,
    summary="Create a monitor descriptor",
)
async def setup_monitoring(
    request: SetupMonitoringRequest,
    manager: AgentManager = Depends(get_agent_manager),
) -> IdResponse:
    if await manager.get_agent_status(request.agent_id) is None:
        raise HTTPException(status_code=404, detail=f"Agent {request.agent_id} not found")

    monitor_id = await manager.setup_monitoring(MonitoringParams(
        goal_id=request.goal_id,
        agent_id=request.agent_id,
        monitor_type=request.monitor_type,
        parameters=request.parameters,
        frequency=request.frequency,
        threshold=request.threshold,
        threshold_type=request.threshold_type,
    ))
    return IdResponse(id=monitor_id)


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------


@router.post(
    "/agents/{agent_id}/credentials",
    response_model=IdResponse,
    status_code=201,
    summary="Attach a provider credential",
    description="The value is encrypted at rest and is never returned by the API.",
)
async def add_api_credentials(
    agent_id: str,
    request: AddCredentialsRequest,
    manager: AgentManager = Depends(get_agent_manager),
) -> IdResponse:
    try:
        credential_id = await manager.add_api_credentials(
            agent_id=agent_id,
            provider=request.provider,
            key_name=request.key_name,
            value=request.value,
            expires_at=request.expires_at,
            monthly_limit=request.monthly_limit,
        )
    except AgentNotFoundError:
        raise HTTPException(status_code=404, detail=f"Agent {agent_id} not found")
    except VaultError:
        logger.exception("Credential vault unavailable")
        raise HTTPException(status_code=500, detail="Could not store credential")
    return IdResponse(id=credential_id)
