# =============================================================================
# API Request Models — Pydantic V2 Schemas
# =============================================================================
#
# These models define the shape of data coming INTO the API.
# FastAPI uses them for request validation (automatic 422s) and for the
# OpenAPI documentation at /docs.
#
# DESIGN DECISION: snake_case fields on the wire.
# Agent task `parameters` stay camelCase (they are handed to the agents
# untouched), but the envelopes here follow Python naming.
# =============================================================================

from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, Field

from dreamplan.agents.types import AgentCapability, AgentType


class ExecuteTaskRequest(BaseModel):
    """
    Request body for POST /agents/execute-task.

    Example:
        {
            "goal_id": "5f0c...",
            "user_id": "a1b2...",
            "type": "convertCurrency",
            "parameters": {"amount": 1000, "fromCurrency": "USD", "toCurrency": "EUR"}
        }
    """

    goal_id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    type: str = Field(
        ...,
        min_length=1,
        description="Task type, e.g. searchFlights or convertCurrency",
        examples=["convertCurrency"],
    )
    parameters: dict[str, Any] = Field(default_factory=dict)
    priority: Literal["high", "medium", "low"] = "medium"


class AssignAgentsRequest(BaseModel):
    """Request body for POST /agents/assign-to-goal."""

    goal_id: str = Field(..., min_length=1)
    agent_types: list[AgentType] = Field(..., min_length=1)


class SetupMonitoringRequest(BaseModel):
    """Request body for POST /agents/setup-monitoring."""

    goal_id: str = Field(..., min_length=1)
    agent_id: str = Field(..., min_length=1)
    monitor_type: str = Field(..., min_length=1, examples=["price_drop"])
    parameters: dict[str, Any] = Field(default_factory=dict)
    frequency: Literal["hourly", "daily", "weekly"] = "daily"
    threshold: float | None = None
    threshold_type: Literal["above", "below", "change_percent"] | None = None


class AddCredentialsRequest(BaseModel):
    """
    Request body for POST /agents/{agent_id}/credentials.

    The value is encrypted before it is stored and never returned.
    """

    provider: str = Field(..., min_length=1, examples=["amadeus"])
    key_name: str = Field(..., min_length=1, examples=["api_key"])
    value: str = Field(..., min_length=1)
    expires_at: datetime | None = None
    monthly_limit: int | None = Field(default=None, ge=1)


class CapabilityIn(BaseModel):
    """One capability declared at registration."""

    name: str = Field(..., min_length=1, examples=["searchFlights"])
    description: str = ""
    parameters: dict[str, dict[str, Any]] = Field(
        default_factory=dict,
        examples=[{"origin": {"type": "string", "required": True}}],
    )

    def to_capability(self) -> AgentCapability:
        return AgentCapability(
            name=self.name, description=self.description, parameters=self.parameters,
        )


class RegisterAgentRequest(BaseModel):
    """
    Request body for POST /agents.

    Omit `capabilities` to use the ones the agent type declares.
    """

    name: str = Field(..., min_length=1, max_length=200)
    type: AgentType
    description: str = Field(default="", max_length=2000)
    capabilities: list[CapabilityIn] | None = None


class UserContextIn(BaseModel):
    """Personal context used to tailor coach responses."""

    location: str = "Unknown"
    age_range: str = "Unknown"
    interests: list[str] = Field(default_factory=list)
    goals: str = ""


class ChatMessageIn(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    """Request body for POST /chat and POST /chat/stream."""

    message: str = Field(..., min_length=1, max_length=4000)
    history: list[ChatMessageIn] = Field(default_factory=list)
    context: UserContextIn = Field(default_factory=UserContextIn)
    session_type: str = "general"


class FeasibilityRequest(BaseModel):
    """Request body for POST /feasibility."""

    goal_description: str = Field(..., min_length=3, max_length=4000)
    context: UserContextIn = Field(default_factory=UserContextIn)
    include_plan: bool = Field(
        default=False,
        description="Also generate an implementation plan from the analysis",
    )
