# =============================================================================
# Agent Manager — Registry, Routing, Credentials and Metrics
# =============================================================================
#
# The single long-lived object that owns every loaded agent.
#
# LIFECYCLE:
#   manager = await AgentManager.create(store, vault, http_client)
#     └─ initialize():
#          for each active agent record in the store
#            ├─ unknown type      → warning, skipped
#            ├─ instantiate via AGENT_CLASSES with the shared httpx client
#            ├─ decrypt + inject each active, unexpired credential
#            │    (a VaultError skips that credential only)
#            └─ registry[agent.id] = agent
#
# TASK EXECUTION (see dreamplan/agents/orchestrator.py):
#   resolve → dispatch → record. execute_task() never raises; any failure
#   comes back as AgentResult(success=False, confidence=0, error=...).
#
# METRICS:
#   Held in memory per agent and persisted after every execution. Updates
#   for one agent are serialised with an asyncio.Lock, so concurrent tasks
#   on the same agent each contribute exactly one sample. A persistence
#   failure is logged and never changes the task result.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from collections.abc import Iterable, Sequence
from dataclasses import replace
from datetime import UTC, datetime

import httpx

from dreamplan.agents.base import BaseAgent
from dreamplan.agents.orchestrator import run_task
from dreamplan.agents.registry import AGENT_CLASSES, parse_agent_type
from dreamplan.agents.types import (
    AgentApiCredentials,
    AgentCapability,
    AgentConfig,
    AgentRecord,
    AgentResult,
    AgentType,
    MonitoringParams,
    PerformanceMetrics,
    StoredCredential,
    TaskParameters,
    TaskRun,
    as_utc,
)
from dreamplan.db.store import AgentStore
from dreamplan.services.vault import CredentialVault, VaultError

logger = logging.getLogger(__name__)


class AgentNotFoundError(LookupError):
    """Raised when an operation names an agent id the store does not have."""

    def __init__(self, agent_id: str) -> None:
        super().__init__(f"Agent not found: {agent_id}")
        self.agent_id = agent_id


class AgentManager:
    """
    Loads agents from the store and routes tasks to them.

    Args:
        store: Persistence backend (SqlAlchemyAgentStore in production).
        vault: Decrypts stored credentials. Defaults to one built from settings.
        http_client: Shared by every agent. One is created if omitted and
            closed by aclose().
    """

    def __init__(
        self,
        store: AgentStore,
        vault: CredentialVault | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.store = store
        self.vault = vault or CredentialVault()
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=15.0)
        self._agents: dict[str, BaseAgent] = {}
        self._metrics: dict[str, PerformanceMetrics] = {}
        self._locks: dict[str, asyncio.Lock] = {}

    @classmethod
    async def create(
        cls,
        store: AgentStore,
        vault: CredentialVault | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> AgentManager:
        manager = cls(store, vault, http_client)
        await manager.initialize()
        return manager

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    # -----------------------------------------------------------------------
    # Loading
    # -----------------------------------------------------------------------

    async def initialize(self) -> None:
        """Load every active agent record into the in-memory registry."""
        records = await self.store.list_agents(active_only=True)
        for record in records:
            try:
                self._load(record)
            except Exception:
                logger.exception("Failed to load agent %s (%s)", record.name, record.id)

        logger.info("Initialized %d of %d active agents", len(self._agents), len(records))

    def _load(self, record: AgentRecord) -> BaseAgent | None:
        agent_type = parse_agent_type(record.type)
        if agent_type is None:
            logger.warning(
                "Skipping agent %s (%s): unknown agent type %r",
                record.name, record.id, record.type,
            )
            return None

        config = AgentConfig(
            id=record.id,
            name=record.name,
            type=agent_type,
            description=record.description,
            capabilities=list(record.capabilities),
            is_active=record.is_active,
            version=record.version,
        )
        agent = AGENT_CLASSES[agent_type](config, http_client=self._http)
        for credential in record.credentials:
            self._inject(agent, credential)

        self._agents[agent.id] = agent
        self._metrics[agent.id] = record.metrics
        logger.info("Loaded agent %s (%s, %s)", agent.name, agent_type.value, agent.id)
        return agent

    def _inject(self, agent: BaseAgent, credential: StoredCredential) -> None:
        if not credential.is_active:
            return
        try:
            value = self.vault.decrypt(credential.encrypted_value)
        except VaultError:
            logger.warning(
                "Skipping %s credential %s for agent %s: decryption failed",
                credential.provider, credential.id, agent.id,
            )
            return

        creds = AgentApiCredentials(
            provider=credential.provider,
            key_name=credential.key_name,
            value=value,
            expires_at=credential.expires_at,
            monthly_limit=credential.monthly_limit,
        )
        if creds.is_expired():
            logger.info(
                "Skipping expired %s credential for agent %s", credential.provider, agent.id,
            )
            return
        agent.set_api_credentials(credential.provider, creds)

    # -----------------------------------------------------------------------
    # Registry
    # -----------------------------------------------------------------------

    @property
    def agents(self) -> dict[str, BaseAgent]:
        return dict(self._agents)

    def get_agent(self, agent_id: str) -> BaseAgent | None:
        return self._agents.get(agent_id)

    def find_agent(self, agent_type: AgentType) -> BaseAgent | None:
        """First active loaded agent of a type. No load balancing."""
        for agent in self._agents.values():
            if agent.agent_type is agent_type and agent.is_active:
                return agent
        return None

    async def register_agent(
        self,
        name: str,
        type: AgentType | str,
        description: str,
        capabilities: Sequence[AgentCapability] | None = None,
    ) -> str:
        """
        Persist a new active agent and load it. Returns its id.

        Capabilities default to the ones the agent class declares.

        Raises:
            ValueError: `type` is not a known AgentType.
        """
        agent_type = AgentType(type)
        if capabilities is None:
            capabilities = AGENT_CLASSES[agent_type].CAPABILITIES

        record = await self.store.create_agent(
            name=name,
            type=agent_type.value,
            description=description,
            capabilities=list(capabilities),
            version="1.0.0",
        )
        self._load(record)
        logger.info("Registered agent %s (%s) as %s", name, agent_type.value, record.id)
        return record.id

    # -----------------------------------------------------------------------
    # Goals & Tasks
    # -----------------------------------------------------------------------

    async def assign_agents_to_goal(
        self, goal_id: str, agent_types: Iterable[AgentType | str],
    ) -> list[str]:
        """
        Attach the first active agent of each requested type to a goal.

        Types with no loaded agent are skipped. Raises GoalNotFoundError
        (from the store) if the goal does not exist.
        """
        assigned = []
        for requested in agent_types:
            agent_type = parse_agent_type(
                requested.value if isinstance(requested, AgentType) else requested,
            )
            agent = self.find_agent(agent_type) if agent_type else None
            if agent is None:
                logger.warning("No active agent of type %s for goal %s", requested, goal_id)
                continue
            assigned.append(agent.id)

        await self.store.assign_agents(goal_id, assigned, datetime.now(UTC))
        logger.info("Assigned %d agents to goal %s", len(assigned), goal_id)
        return assigned

    async def execute_task(self, task: TaskParameters) -> AgentResult:
        """Route a task to an agent and run it. Never raises."""
        return await run_task(task, self)

    async def record_execution(
        self,
        agent: BaseAgent,
        task: TaskParameters,
        result: AgentResult,
        execution_time_ms: float,
    ) -> None:
        """Fold one execution into the agent's metrics and persist it."""
        async with self._lock(agent.id):
            metrics = self._metrics.get(agent.id, PerformanceMetrics()).record(
                execution_time_ms, result.success,
            )
            self._metrics[agent.id] = metrics
            try:
                await self.store.update_metrics(agent.id, metrics)
            except Exception:
                logger.exception("Failed to persist metrics for agent %s", agent.id)

        try:
            await self.store.record_task_run(TaskRun(
                agent_id=agent.id,
                goal_id=task.goal_id,
                user_id=task.user_id,
                task_type=task.type,
                priority=task.priority,
                success=result.success,
                confidence=result.confidence,
                execution_time_ms=execution_time_ms,
                error=result.error,
            ))
        except Exception:
            logger.exception("Failed to record task run for agent %s", agent.id)

    def _lock(self, agent_id: str) -> asyncio.Lock:
        lock = self._locks.get(agent_id)
        if lock is None:
            lock = self._locks[agent_id] = asyncio.Lock()
        return lock

    def get_metrics(self, agent_id: str) -> PerformanceMetrics | None:
        return self._metrics.get(agent_id)

    async def setup_monitoring(self, params: MonitoringParams) -> str:
        """Persist a monitor descriptor. Nothing polls it."""
        monitor_id = await self.store.create_monitor(params)
        logger.info(
            "Created %s monitor %s for goal %s (%s)",
            params.monitor_type, monitor_id, params.goal_id, params.frequency,
        )
        return monitor_id

    # -----------------------------------------------------------------------
    # Credentials
    # -----------------------------------------------------------------------

    async def add_api_credentials(
        self,
        agent_id: str,
        provider: str,
        key_name: str,
        value: str,
        expires_at: datetime | None = None,
        monthly_limit: int | None = None,
    ) -> str:
        """
        Encrypt and store a credential, then hand it to the loaded agent.

        Raises:
            AgentNotFoundError: No agent with this id exists.
            VaultError: The vault has no usable secret.
        """
        if await self.store.get_agent(agent_id) is None:
            raise AgentNotFoundError(agent_id)

        expires_at = as_utc(expires_at)
        stored = await self.store.add_credential(
            agent_id=agent_id,
            provider=provider,
            key_name=key_name,
            encrypted_value=self.vault.encrypt(value),
            expires_at=expires_at,
            monthly_limit=monthly_limit,
        )

        agent = self._agents.get(agent_id)
        if agent is not None:
            agent.set_api_credentials(provider, AgentApiCredentials(
                provider=provider,
                key_name=key_name,
                value=value,
                expires_at=expires_at,
                monthly_limit=monthly_limit,
            ))
        logger.info("Added %s credential %s for agent %s", provider, stored.id, agent_id)
        return stored.id

    # -----------------------------------------------------------------------
    # Read models
    # -----------------------------------------------------------------------

    def _with_live_metrics(self, record: AgentRecord) -> AgentRecord:
        metrics = self._metrics.get(record.id)
        return replace(record, metrics=metrics) if metrics else record

    async def get_agent_status(self, agent_id: str) -> AgentRecord | None:
        record = await self.store.get_agent(agent_id)
        return self._with_live_metrics(record) if record else None

    async def get_all_agents(self) -> list[AgentRecord]:
        return [self._with_live_metrics(r) for r in await self.store.list_agents()]

    async def list_agent_tasks(self, agent_id: str, limit: int = 20) -> list[TaskRun]:
        if await self.store.get_agent(agent_id) is None:
            raise AgentNotFoundError(agent_id)
        return await self.store.list_task_runs(agent_id, limit)

    def is_loaded(self, agent_id: str) -> bool:
        return agent_id in self._agents
