# =============================================================================
# Capability Contract — BaseAgent
# =============================================================================
#
# Every domain agent (travel, financial, research, learning, weather)
# subclasses BaseAgent and declares a table of TaskSpecs:
#
#   task type ──▶ TaskSpec(handler, params_model, confidence)
#
# BaseAgent.execute_task() is a template method:
#   1. Resolve the task type (aliases included) to a TaskSpec
#   2. Validate the parameter bag with the TaskSpec's Pydantic model
#   3. Await the handler, timing it
#   4. Wrap the payload in an AgentResult with the static confidence
#
# Structural problems RAISE (UnsupportedTaskError, pydantic.ValidationError).
# The AgentManager is the single place that turns exceptions into failure
# results, so agents never build failure envelopes themselves.
#
# Credentials are injected by the AgentManager via set_api_credentials().
# Agents never read provider keys from the environment, with one exception:
# the shared RapidAPI key (settings.rapidapi_key) when none was injected.
# =============================================================================

from __future__ import annotations

import logging
import time
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any, ClassVar

import httpx
from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel

from dreamplan.agents.types import (
    AgentApiCredentials,
    AgentCapability,
    AgentConfig,
    AgentResult,
    AgentType,
    TaskParameters,
)
from dreamplan.config import settings

logger = logging.getLogger(__name__)


class UnsupportedTaskError(Exception):
    """Raised when an agent is asked to run a task type it does not know."""

    def __init__(self, agent_name: str, task_type: str) -> None:
        super().__init__(f"Unsupported task type: {task_type}")
        self.agent_name = agent_name
        self.task_type = task_type


class TaskParams(BaseModel):
    """
    Base for per-task parameter models.

    Wire names are camelCase (`fromCurrency`); attributes are snake_case.
    Either spelling is accepted on input. Unknown keys are ignored.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


@dataclass(frozen=True)
class TaskSpec:
    """How one task type is validated, executed and scored."""

    handler: Callable[[Any], Awaitable[dict[str, Any]]]
    params_model: type[TaskParams]
    confidence: float


class BaseAgent(ABC):
    """
    Abstract domain agent.

    Subclasses set `agent_type`, `CAPABILITIES` and optionally
    `TASK_ALIASES`, and implement `task_specs()`.

    Args:
        config: Identity loaded from the store.
        http_client: Shared httpx client. One is created if omitted.
    """

    agent_type: ClassVar[AgentType]
    CAPABILITIES: ClassVar[list[AgentCapability]] = []
    TASK_ALIASES: ClassVar[dict[str, str]] = {}

    def __init__(
        self,
        config: AgentConfig,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.config = config
        self._http = http_client or httpx.AsyncClient(timeout=15.0)
        self._credentials: dict[str, AgentApiCredentials] = {}
        self._specs = self.task_specs()

    # -----------------------------------------------------------------------
    # Identity
    # -----------------------------------------------------------------------

    @property
    def id(self) -> str:
        return self.config.id

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def is_active(self) -> bool:
        return self.config.is_active

    def __repr__(self) -> str:
        return f"<{type(self).__name__}(id={self.id!r}, name={self.name!r})>"

    # -----------------------------------------------------------------------
    # Contract
    # -----------------------------------------------------------------------

    @abstractmethod
    def task_specs(self) -> dict[str, TaskSpec]:
        """Map each canonical task type to its TaskSpec."""

    def get_capabilities(self) -> list[AgentCapability]:
        return list(self.CAPABILITIES)

    def supported_task_types(self) -> list[str]:
        return [*self._specs, *self.TASK_ALIASES]

    def resolve_task_type(self, task_type: str) -> str:
        return self.TASK_ALIASES.get(task_type, task_type)

    def validate_parameters(
        self,
        parameters: Any,
        task_type: str | None = None,
    ) -> bool:
        """
        Return True if the parameter bag is acceptable.

        Without a task type only the shape is checked (must be a mapping).
        With one, the task's parameter model must accept it.
        """
        if not isinstance(parameters, Mapping):
            return False
        if task_type is None:
            return True

        spec = self._specs.get(self.resolve_task_type(task_type))
        if spec is None:
            return False
        try:
            spec.params_model.model_validate(dict(parameters))
        except ValidationError:
            return False
        return True

    async def execute_task(self, task: TaskParameters) -> AgentResult:
        """
        Run one task and wrap its payload in an AgentResult.

        Raises:
            UnsupportedTaskError: The task type is not handled by this agent.
            pydantic.ValidationError: The parameters do not fit the task.
            TypeError: The parameter bag is not a mapping.
        """
        canonical = self.resolve_task_type(task.type)
        spec = self._specs.get(canonical)
        if spec is None:
            raise UnsupportedTaskError(self.name, task.type)

        if not isinstance(task.parameters, Mapping):
            raise TypeError("Task parameters must be a mapping")
        params = spec.params_model.model_validate(dict(task.parameters))

        logger.info(
            "%s executing %s for goal %s", self.name, task.type, task.goal_id,
        )
        start = time.perf_counter()
        data = await spec.handler(params)
        elapsed_ms = (time.perf_counter() - start) * 1000

        metadata: dict[str, Any] = {
            "executionTime": round(elapsed_ms, 3),
            "agentType": self.agent_type.value,
            "taskType": task.type,
        }
        if isinstance(data, dict) and data.get("fallback"):
            metadata["fallback"] = True
            metadata["dataSource"] = data.get("dataSource")

        return AgentResult(
            success=True,
            data=data,
            confidence=spec.confidence,
            metadata=metadata,
        )

    # -----------------------------------------------------------------------
    # Credentials
    # -----------------------------------------------------------------------

    def set_api_credentials(self, provider: str, credentials: AgentApiCredentials) -> None:
        self._credentials[provider] = credentials

    def get_api_credentials(self, provider: str) -> AgentApiCredentials | None:
        return self._credentials.get(provider)

    def credential_value(self, provider: str) -> str | None:
        """The injected secret for a provider, if present and unexpired."""
        creds = self._credentials.get(provider)
        if creds is None or creds.is_expired():
            return None
        return creds.value

    def rapidapi_key(self) -> str | None:
        return self.credential_value("rapidapi") or settings.rapidapi_key or None

    @staticmethod
    def keyless_enabled() -> bool:
        return settings.keyless_providers_enabled

    @property
    def http(self) -> httpx.AsyncClient:
        return self._http
