# =============================================================================
# Shared Test Fixtures
# =============================================================================
#
# FakeAgentStore keeps everything in dictionaries so the AgentManager can be
# exercised without PostgreSQL. It implements the full AgentStore protocol.
# =============================================================================

from __future__ import annotations

import itertools
from collections.abc import Sequence
from dataclasses import replace
from datetime import datetime

import httpx
import pytest

from dreamplan.agents.types import (
    AgentCapability,
    AgentRecord,
    MonitoringParams,
    PerformanceMetrics,
    StoredCredential,
    TaskRun,
)
from dreamplan.config import settings
from dreamplan.db.store import GoalNotFoundError
from dreamplan.services.vault import CredentialVault

TEST_SECRET = "unit-test-vault-secret"


class FakeAgentStore:
    """In-memory AgentStore."""

    def __init__(self) -> None:
        self.agents: dict[str, AgentRecord] = {}
        self.goals: dict[str, dict] = {}
        self.monitors: dict[str, MonitoringParams] = {}
        self.task_runs: list[TaskRun] = []
        self.metric_writes: list[tuple[str, PerformanceMetrics]] = []
        self.fail_metric_writes = False
        self._ids = itertools.count(1)

    def _next_id(self, prefix: str) -> str:
        return f"{prefix}-{next(self._ids)}"

    # --- test helpers ---

    def add_record(
        self,
        type: str,
        name: str | None = None,
        is_active: bool = True,
        credentials: list[StoredCredential] | None = None,
    ) -> AgentRecord:
        record = AgentRecord(
            id=self._next_id("agent"),
            name=name or f"{type} agent",
            type=type,
            description=f"{type} test agent",
            capabilities=[],
            is_active=is_active,
            version="1.0.0",
            credentials=list(credentials or []),
        )
        self.agents[record.id] = record
        return record

    def add_goal(self, goal_id: str) -> None:
        self.goals[goal_id] = {"assigned_agents": [], "last_agent_update": None}

    # --- AgentStore protocol ---

    async def list_agents(self, *, active_only: bool = False) -> list[AgentRecord]:
        return [r for r in self.agents.values() if r.is_active or not active_only]

    async def get_agent(self, agent_id: str) -> AgentRecord | None:
        return self.agents.get(agent_id)

    async def create_agent(
        self,
        name: str,
        type: str,
        description: str,
        capabilities: Sequence[AgentCapability],
        version: str = "1.0.0",
    ) -> AgentRecord:
        record = AgentRecord(
            id=self._next_id("agent"),
            name=name,
            type=type,
            description=description,
            capabilities=list(capabilities),
            is_active=True,
            version=version,
        )
        self.agents[record.id] = record
        return record

    async def update_metrics(self, agent_id: str, metrics: PerformanceMetrics) -> None:
        if self.fail_metric_writes:
            raise RuntimeError("database unavailable")
        self.metric_writes.append((agent_id, metrics))
        self.agents[agent_id] = replace(self.agents[agent_id], metrics=metrics)

    async def assign_agents(self, goal_id: str, agent_ids: list[str], at: datetime) -> None:
        if goal_id not in self.goals:
            raise GoalNotFoundError(goal_id)
        self.goals[goal_id] = {"assigned_agents": list(agent_ids), "last_agent_update": at}

    async def create_monitor(self, params: MonitoringParams) -> str:
        monitor_id = self._next_id("monitor")
        self.monitors[monitor_id] = params
        return monitor_id

    async def add_credential(
        self,
        agent_id: str,
        provider: str,
        key_name: str,
        encrypted_value: str,
        expires_at: datetime | None = None,
        monthly_limit: int | None = None,
    ) -> StoredCredential:
        credential = StoredCredential(
            id=self._next_id("cred"),
            provider=provider,
            key_name=key_name,
            encrypted_value=encrypted_value,
            expires_at=expires_at,
            monthly_limit=monthly_limit,
        )
        record = self.agents[agent_id]
        self.agents[agent_id] = replace(
            record, credentials=[*record.credentials, credential],
        )
        return credential

    async def record_task_run(self, run: TaskRun) -> None:
        self.task_runs.append(run)

    async def list_task_runs(self, agent_id: str, limit: int = 20) -> list[TaskRun]:
        runs = [r for r in self.task_runs if r.agent_id == agent_id]
        return list(reversed(runs))[:limit]


@pytest.fixture
def offline_http() -> httpx.AsyncClient:
    """An httpx client that fails every request, proving nothing went live."""

    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError(f"network disabled in tests: {request.url}")

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


@pytest.fixture(autouse=True)
def _isolated_provider_settings(monkeypatch):
    """Tests never pick up provider keys from the developer's environment."""
    monkeypatch.setattr(settings, "rapidapi_key", "")
    monkeypatch.setattr(settings, "keyless_providers_enabled", False)
    monkeypatch.setattr(settings, "credential_encryption_key", TEST_SECRET)


@pytest.fixture
def store() -> FakeAgentStore:
    return FakeAgentStore()


@pytest.fixture(scope="session")
def vault() -> CredentialVault:
    # scrypt derivation is slow; share one vault across the session
    return CredentialVault(secret=TEST_SECRET)
