# =============================================================================
# LangGraph Orchestrator — Task Execution Pipeline
# =============================================================================
#
# AgentManager.execute_task() runs every task through this graph:
#
# GRAPH TOPOLOGY:
#   START ──▶ resolve ──▶ dispatch ──▶ record ──▶ END
#
#   resolve:  task type → AgentType (static map, unknown → research)
#             → first active loaded agent of that type
#   dispatch: agent.execute_task(), timed. Any exception, or a missing
#             agent, becomes a failure AgentResult. Nothing escapes.
#   record:   metrics update + task-run row, via the manager
#
# DESIGN DECISION: Linear graph (no conditional edges).
# A missing agent is handled inside dispatch rather than by routing
# around it, so every path ends in record and the graph stays
# debuggable. record is a no-op when no agent was found.
#
# DESIGN DECISION: Manager object in state, typed as the TaskRouter
# protocol so this module does not import the manager. Nodes need its
# registry and its per-agent locks; passing the object keeps them free of
# globals.
# NOTE: Not JSON-serialisable. Safe as long as no checkpointer is
# configured on the graph (current: no checkpointer).
#
# DESIGN DECISION: Graph compiled once at module level.
# =============================================================================

from __future__ import annotations

import logging
import time
from typing import Protocol

from langgraph.graph import END, START, StateGraph
from typing_extensions import TypedDict

from dreamplan.agents.base import BaseAgent
from dreamplan.agents.registry import resolve_agent_type
from dreamplan.agents.types import AgentResult, AgentType, TaskParameters

logger = logging.getLogger(__name__)


class TaskRouter(Protocol):
    """What the graph needs from the AgentManager."""

    def find_agent(self, agent_type: AgentType) -> BaseAgent | None: ...

    async def record_execution(
        self,
        agent: BaseAgent,
        task: TaskParameters,
        result: AgentResult,
        execution_time_ms: float,
    ) -> None: ...


# ---------------------------------------------------------------------------
# Task State Schema
# ---------------------------------------------------------------------------


class TaskState(TypedDict, total=False):
    """
    State that flows through the task graph.

    Uses total=False so nodes only need to return the keys they update.
    """

    # --- Input (set by caller) ---
    task: TaskParameters
    manager: TaskRouter

    # --- Intermediate (set by nodes) ---
    agent_type: AgentType
    agent: BaseAgent | None

    # --- Output ---
    result: AgentResult
    execution_time_ms: float


# ---------------------------------------------------------------------------
# Node Functions
# ---------------------------------------------------------------------------


async def resolve_node(state: TaskState) -> dict:
    """Pick the agent type for the task, then a loaded agent of that type."""
    task = state["task"]
    agent_type = resolve_agent_type(task.type)
    agent = state["manager"].find_agent(agent_type)

    if agent is None:
        logger.warning(
            "No active %s agent loaded for task type %s", agent_type.value, task.type,
        )
    else:
        logger.info("Routing %s to %s (%s)", task.type, agent.name, agent.id)
    return {"agent_type": agent_type, "agent": agent}


async def dispatch_node(state: TaskState) -> dict:
    """Execute the task. Converts every failure into an AgentResult."""
    task = state["task"]
    agent = state.get("agent")
    metadata = {"agentType": state["agent_type"].value, "taskType": task.type}

    if agent is None:
        result = AgentResult.failure(
            f"No suitable agent found for task type: {task.type}",
            metadata={**metadata, "executionTime": 0.0},
        )
        return {"result": result, "execution_time_ms": 0.0}

    start = time.perf_counter()
    try:
        result = await agent.execute_task(task)
    except Exception as e:
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.exception("%s failed task %s", agent.name, task.type)
        result = AgentResult.failure(
            str(e) or type(e).__name__,
            metadata={**metadata, "executionTime": round(elapsed_ms, 3)},
        )
        return {"result": result, "execution_time_ms": elapsed_ms}

    elapsed_ms = (time.perf_counter() - start) * 1000
    return {"result": result, "execution_time_ms": elapsed_ms}


async def record_node(state: TaskState) -> dict:
    """Fold the execution into the agent's metrics and log a task run."""
    agent = state.get("agent")
    if agent is None:
        return {}

    await state["manager"].record_execution(
        agent, state["task"], state["result"], state["execution_time_ms"],
    )
    return {}


# ---------------------------------------------------------------------------
# Graph Assembly
# ---------------------------------------------------------------------------

_builder = StateGraph(TaskState)
_builder.add_node("resolve", resolve_node)
_builder.add_node("dispatch", dispatch_node)
_builder.add_node("record", record_node)

_builder.add_edge(START, "resolve")
_builder.add_edge("resolve", "dispatch")
_builder.add_edge("dispatch", "record")
_builder.add_edge("record", END)

graph = _builder.compile()


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def run_task(task: TaskParameters, manager: TaskRouter) -> AgentResult:
    """Invoke the task graph and return its AgentResult."""
    logger.info(
        "Invoking task graph: type=%s, goal=%s, priority=%s",
        task.type, task.goal_id, task.priority,
    )
    final = await graph.ainvoke({"task": task, "manager": manager})
    result: AgentResult = final["result"]

    logger.info(
        "Task graph complete: type=%s, success=%s, confidence=%.2f",
        task.type, result.success, result.confidence,
    )
    return result
