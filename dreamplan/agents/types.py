# =============================================================================
# Agent Types — Shared Data Structures for the Agent Layer
# =============================================================================
#
# Plain dataclasses passed between the AgentManager, the domain agents and
# the store. API-facing Pydantic schemas live in dreamplan/models/ and are
# built from these.
#
# Payload dictionaries returned by agents keep camelCase keys (`finalAmount`,
# `rateType`, `dataSource`) because they are returned to API clients as-is.
# =============================================================================

from __future__ import annotations

import enum
from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import Any, Literal

from pydantic import BaseModel

Priority = Literal["high", "medium", "low"]


class AgentType(str, enum.Enum):
    """The fixed set of domains an agent can serve."""

    TRAVEL = "travel"
    FINANCIAL = "financial"
    RESEARCH = "research"
    LEARNING = "learning"
    WEATHER = "weather"


# ---------------------------------------------------------------------------
# Capabilities
# ---------------------------------------------------------------------------

_JSON_TYPE_NAMES = {
    "string": "string",
    "integer": "number",
    "number": "number",
    "boolean": "boolean",
    "array": "array",
    "object": "object",
}


@dataclass(frozen=True)
class AgentCapability:
    """
    One named operation an agent supports.

    `parameters` maps each camelCase parameter name to a descriptor:
        {"type": "string", "required": True}
        {"type": "number", "required": False, "default": 1}
    """

    name: str
    description: str
    parameters: dict[str, dict[str, Any]] = field(default_factory=dict)

    @classmethod
    def from_model(
        cls, name: str, description: str, model: type[BaseModel],
    ) -> AgentCapability:
        """Build the parameter descriptors from a task parameter model."""
        schema = model.model_json_schema(by_alias=True)
        required = set(schema.get("required", []))

        parameters: dict[str, dict[str, Any]] = {}
        for param, prop in schema.get("properties", {}).items():
            descriptor: dict[str, Any] = {
                "type": _descriptor_type(prop),
                "required": param in required,
            }
            if "default" in prop and prop["default"] is not None:
                descriptor["default"] = prop["default"]
            parameters[param] = descriptor

        return cls(name=name, description=description, parameters=parameters)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> AgentCapability:
        return cls(
            name=data["name"],
            description=data.get("description", ""),
            parameters=dict(data.get("parameters") or {}),
        )


def _descriptor_type(prop: dict[str, Any]) -> str:
    """Collapse a JSON-schema property to one descriptor type name."""
    if "type" in prop:
        return _JSON_TYPE_NAMES.get(prop["type"], "object")
    for option in prop.get("anyOf", []):
        if option.get("type") not in (None, "null"):
            return _JSON_TYPE_NAMES.get(option["type"], "object")
    return "object"


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------


def as_utc(moment: datetime | None) -> datetime | None:
    """Treat an offset-less timestamp as UTC."""
    if moment is None or moment.tzinfo is not None:
        return moment
    return moment.replace(tzinfo=UTC)


@dataclass(frozen=True)
class AgentApiCredentials:
    """Decrypted provider credential. Exists only in process memory."""

    provider: str
    key_name: str
    value: str
    expires_at: datetime | None = None
    monthly_limit: int | None = None  # carried, not enforced

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        return as_utc(self.expires_at) <= as_utc(now or datetime.now(UTC))


@dataclass(frozen=True)
class StoredCredential:
    """Credential row as persisted (value still encrypted)."""

    id: str
    provider: str
    key_name: str
    encrypted_value: str
    is_active: bool = True
    expires_at: datetime | None = None
    monthly_limit: int | None = None


# ---------------------------------------------------------------------------
# Performance Metrics
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PerformanceMetrics:
    """
    Rolling execution statistics for one agent.

    Values are kept unrounded so that N successive updates equal the
    closed form: average = sum(durations) / N, rate = successes / N.
    """

    total_executions: int = 0
    average_response_time: float = 0.0  # milliseconds
    success_rate: float = 0.0
    last_executed: datetime | None = None

    def record(
        self,
        duration_ms: float,
        success: bool,
        at: datetime | None = None,
    ) -> PerformanceMetrics:
        """Return new metrics with one more sample incorporated."""
        n = self.total_executions
        sample = 1.0 if success else 0.0
        return replace(
            self,
            total_executions=n + 1,
            average_response_time=(self.average_response_time * n + duration_ms) / (n + 1),
            success_rate=(self.success_rate * n + sample) / (n + 1),
            last_executed=at or datetime.now(UTC),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "successRate": self.success_rate,
            "averageResponseTime": self.average_response_time,
            "totalExecutions": self.total_executions,
            "lastExecuted": self.last_executed.isoformat() if self.last_executed else None,
        }


# ---------------------------------------------------------------------------
# Agent Records & Config
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class AgentConfig:
    """Identity handed to a domain agent at construction."""

    id: str
    name: str
    type: AgentType
    description: str
    capabilities: list[AgentCapability] = field(default_factory=list)
    is_active: bool = True
    version: str = "1.0.0"


@dataclass
class AgentRecord:
    """An agent row as returned by the store, with its credentials."""

    id: str
    name: str
    type: str  # raw string; may not be a known AgentType
    description: str
    capabilities: list[AgentCapability]
    is_active: bool
    version: str
    metrics: PerformanceMetrics = field(default_factory=PerformanceMetrics)
    credentials: list[StoredCredential] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Tasks & Results
# ---------------------------------------------------------------------------


@dataclass
class TaskParameters:
    """One unit of work submitted to the AgentManager."""

    goal_id: str
    user_id: str
    type: str
    parameters: dict[str, Any] = field(default_factory=dict)
    priority: Priority = "medium"


@dataclass
class AgentResult:
    """Uniform response envelope for every task execution."""

    success: bool
    data: Any
    confidence: float
    metadata: dict[str, Any] | None = None
    error: str | None = None

    @classmethod
    def failure(
        cls, error: str, metadata: dict[str, Any] | None = None,
    ) -> AgentResult:
        return cls(
            success=False, data=None, confidence=0.0,
            metadata=metadata, error=error,
        )

    @property
    def used_fallback(self) -> bool:
        return bool(self.metadata and self.metadata.get("fallback"))

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "success": self.success,
            "data": self.data,
            "confidence": self.confidence,
        }
        if self.metadata is not None:
            result["metadata"] = self.metadata
        if self.error is not None:
            result["error"] = self.error
        return result


@dataclass
class MonitoringParams:
    """Polling-monitor descriptor. Persisted only; nothing polls it."""

    goal_id: str
    agent_id: str
    monitor_type: str
    parameters: dict[str, Any] = field(default_factory=dict)
    frequency: Literal["hourly", "daily", "weekly"] = "daily"
    threshold: float | None = None
    threshold_type: Literal["above", "below", "change_percent"] | None = None


@dataclass(frozen=True)
class TaskRun:
    """Execution metadata row written after each task."""

    agent_id: str
    goal_id: str
    user_id: str
    task_type: str
    priority: str
    success: bool
    confidence: float
    execution_time_ms: float
    error: str | None = None
    created_at: datetime | None = None
