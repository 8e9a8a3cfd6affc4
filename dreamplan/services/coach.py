# =============================================================================
# Goal Coach — Chat, Feasibility Analysis and Goal Plans
# =============================================================================
#
# Every generation call goes through one shared GenerationFallbackRing:
#
#   coach.chat()                ─┐
#   coach.chat_stream()          ├──▶ ring.run(op) ──▶ llm.complete/stream(model=...)
#   coach.analyze_feasibility() ─┤
#   coach.generate_goal_plan()  ─┘
#
# WHEN EVERY MODEL FAILS:
#   chat / chat_stream   → degraded_message(error) (status-specific text)
#   analyze_feasibility  → static fallback analysis
#   generate_goal_plan   → None
#
# Model replies that should be JSON are often wrapped in ``` fences; those
# are stripped before parsing. A reply that still is not JSON counts as a
# failure of the whole call, not of one model.
# =============================================================================

from __future__ import annotations

import json
import logging
from collections.abc import AsyncIterator, Sequence
from dataclasses import dataclass, field
from typing import Any

from dreamplan.services.fallback_ring import GenerationFallbackRing, degraded_message
from dreamplan.services.llm import LLMProvider, get_llm_provider

logger = logging.getLogger(__name__)

HISTORY_WINDOW = 10

_ROLE_MAP = {"user": "user", "assistant": "assistant", "ai": "assistant", "model": "assistant"}


@dataclass
class UserContext:
    """What the coach knows about the person it is talking to."""

    location: str = "Unknown"
    age_range: str = "Unknown"
    interests: list[str] = field(default_factory=list)
    goals: str = ""


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------


def _chat_system_prompt(context: UserContext, session_type: str) -> str:
    return f"""You are an expert AI goal coach helping users achieve their dreams. You provide personalized, encouraging, and actionable advice.

USER CONTEXT:
- Location: {context.location}
- Age Range: {context.age_range}
- Interests: {', '.join(context.interests)}
- Initial Goals: {context.goals}

SESSION TYPE: {session_type}

INSTRUCTIONS:
- Be encouraging, supportive, and practical
- Ask clarifying questions when needed
- Provide specific, actionable advice
- Use the user's context to personalize your response
- Keep responses conversational but informative
- If helping with goal creation, guide them step by step
- If analyzing feasibility, be realistic but optimistic
- Include relevant resources, tips, or strategies when helpful

Respond as a helpful AI coach (keep it under 300 words)."""


def _feasibility_prompt(goal_description: str, context: UserContext) -> str:
    return f"""You are an expert life coach and goal achievement analyst. Analyze the feasibility of the following goal and provide a comprehensive assessment.

USER CONTEXT:
- Location: {context.location}
- Age Range: {context.age_range}
- Interests: {', '.join(context.interests)}
- Goal: {goal_description}

Please provide a detailed feasibility analysis in the following JSON format (respond ONLY with valid JSON, no additional text):
{{
  "feasibilityScore": [0-100 integer representing how achievable this goal is],
  "category": "[auto-detect category: travel, financial, learning, health, career, creative, personal, business, or other]",
  "estimatedTimeframe": "[realistic timeframe like '3-6 months', '1-2 years', etc.]",
  "estimatedCost": {{"min": [minimum cost in USD], "max": [maximum cost in USD], "currency": "USD"}},
  "redFlags": ["[potential obstacle]", ...],
  "successFactors": ["[key success factor]", ...],
  "alternatives": ["[alternative approach]", ...],
  "actionSteps": [
    {{"step": "[specific actionable step]", "timeframe": "[when]", "cost": [estimated cost or 0], "priority": "high|medium|low"}}
  ],
  "resources": [
    {{"type": "course|book|tool|service|community", "name": "[name]", "description": "[brief description]", "url": "[optional]", "cost": [cost in USD or 0]}}
  ]
}}

Consider the user's location for local opportunities, their age range for relevant life stage factors, and their interests for potential synergies. Be realistic but encouraging. Provide at least 3-5 action steps and 3-5 resources."""


def _plan_prompt(
    goal_description: str, analysis: dict[str, Any], context: UserContext,
) -> str:
    return f"""Based on the following goal and feasibility analysis, create a detailed implementation plan.

GOAL: {goal_description}
FEASIBILITY SCORE: {analysis.get('feasibilityScore')}
ESTIMATED TIMEFRAME: {analysis.get('estimatedTimeframe')}
USER CONTEXT: {context.location}, {context.age_range}, interested in {', '.join(context.interests)}

Create a comprehensive plan in JSON format with:
- Weekly milestones for the first month
- Monthly milestones for the duration
- Specific actionable tasks
- Success metrics
- Contingency plans

Respond ONLY with valid JSON."""


# ---------------------------------------------------------------------------
# JSON helpers
# ---------------------------------------------------------------------------


def strip_json_fence(text: str) -> str:
    """Remove a surrounding ```json ... ``` (or bare ```) fence."""
    clean = text.strip()
    if clean.startswith("```") and clean.endswith("```") and len(clean) >= 6:
        clean = clean[3:-3]
        if clean.startswith("json"):
            clean = clean[4:]
        clean = clean.strip()
    return clean


def validate_analysis(analysis: dict[str, Any]) -> dict[str, Any]:
    """Fill gaps in a model-produced analysis with sensible defaults."""
    cost = analysis.get("estimatedCost") or {}

    def _list(key: str, default: list[Any]) -> list[Any]:
        value = analysis.get(key)
        return value if isinstance(value, list) else default

    return {
        "feasibilityScore": min(100, max(0, analysis.get("feasibilityScore") or 50)),
        "category": analysis.get("category") or "personal",
        "estimatedTimeframe": analysis.get("estimatedTimeframe") or "3-6 months",
        "estimatedCost": {
            "min": cost.get("min") or 0,
            "max": cost.get("max") or 500,
            "currency": "USD",
        },
        "redFlags": _list("redFlags", ["Requires dedication and consistency"]),
        "successFactors": _list(
            "successFactors", ["Clear planning", "Regular progress tracking"],
        ),
        "alternatives": _list("alternatives", ["Break into smaller goals"]),
        "actionSteps": _list("actionSteps", [
            {
                "step": "Define specific objectives and success criteria",
                "timeframe": "Week 1",
                "cost": 0,
                "priority": "high",
            },
        ]),
        "resources": _list("resources", [
            {
                "type": "book",
                "name": "Goal Setting Guide",
                "description": "Comprehensive guide to achieving your objectives",
                "cost": 0,
            },
        ]),
    }


def fallback_analysis() -> dict[str, Any]:
    """Static analysis returned when no model could produce one."""
    return {
        "feasibilityScore": 75,
        "category": "personal",
        "estimatedTimeframe": "3-6 months",
        "estimatedCost": {"min": 100, "max": 1000, "currency": "USD"},
        "redFlags": [
            "May require significant time investment",
            "Success depends on consistent effort",
            "External factors could impact timeline",
        ],
        "successFactors": [
            "Clear goal definition and planning",
            "Regular progress tracking and adjustment",
            "Building supportive habits and routines",
        ],
        "alternatives": [
            "Break the goal into smaller, manageable milestones",
            "Find a mentor or accountability partner",
            "Consider online courses or workshops",
        ],
        "actionSteps": [
            {
                "step": "Research and gather information about your goal",
                "timeframe": "Week 1-2",
                "cost": 0,
                "priority": "high",
            },
            {
                "step": "Create a detailed action plan with milestones",
                "timeframe": "Week 3",
                "cost": 0,
                "priority": "high",
            },
            {
                "step": "Identify required resources and tools",
                "timeframe": "Week 3-4",
                "cost": 200,
                "priority": "medium",
            },
        ],
        "resources": [
            {
                "type": "book",
                "name": "Goal Achievement Handbook",
                "description": "Practical strategies for reaching your objectives",
                "cost": 25,
            },
            {
                "type": "tool",
                "name": "Goal Tracking App",
                "description": "Digital tool for monitoring progress",
                "cost": 0,
            },
        ],
    }


def _history_messages(
    history: Sequence[dict[str, str]], message: str,
) -> list[dict[str, str]]:
    messages = [
        {"role": _ROLE_MAP.get(item.get("role", "user"), "user"), "content": item["content"]}
        for item in list(history)[-HISTORY_WINDOW:]
        if item.get("content")
    ]
    messages.append({"role": "user", "content": message})
    return messages


# ---------------------------------------------------------------------------
# Coach
# ---------------------------------------------------------------------------


class GoalCoach:
    """
    Conversational goal coach backed by the generation fallback ring.

    Args:
        llm: Provider to call. Defaults to the configured singleton,
            resolved on first use.
        ring: Shared fallback ring. One is built from settings if omitted.
    """

    def __init__(
        self,
        llm: LLMProvider | None = None,
        ring: GenerationFallbackRing | None = None,
    ) -> None:
        self._llm = llm
        self.ring = ring or GenerationFallbackRing()

    @property
    def llm(self) -> LLMProvider:
        if self._llm is None:
            self._llm = get_llm_provider()
        return self._llm

    async def _complete_text(
        self, messages: list[dict[str, str]], system: str | None = None,
    ) -> str:
        llm = self.llm

        async def _call(model: str) -> str:
            response = await llm.complete(messages, model=model, system=system)
            return response.content

        return await self.ring.run(_call)

    async def chat(
        self,
        message: str,
        history: Sequence[dict[str, str]],
        context: UserContext,
        session_type: str = "general",
    ) -> str:
        """Reply to a chat message. Never raises."""
        try:
            reply = await self._complete_text(
                _history_messages(history, message),
                system=_chat_system_prompt(context, session_type),
            )
        except Exception as e:
            logger.error("AI chat failed on every model: %s", e)
            return degraded_message(e)

        logger.info("AI chat response generated")
        return reply

    async def chat_stream(
        self,
        message: str,
        history: Sequence[dict[str, str]],
        context: UserContext,
        session_type: str = "general",
    ) -> AsyncIterator[str]:
        """
        Stream a chat reply as text chunks.

        Model failover only covers opening the stream. If every model
        fails, a single degraded message is yielded instead.
        """
        messages = _history_messages(history, message)
        system = _chat_system_prompt(context, session_type)

        try:
            llm = self.llm
            chunks = await self.ring.run(
                lambda model: llm.stream(messages, model=model, system=system),
            )
        except Exception as e:
            logger.error("AI chat stream failed on every model: %s", e)
            yield degraded_message(e)
            return

        async for chunk in chunks:
            if chunk:
                yield chunk
        logger.info("AI chat stream completed")

    async def analyze_feasibility(
        self, goal_description: str, context: UserContext,
    ) -> dict[str, Any]:
        """Score how achievable a goal is. Falls back to a static analysis."""
        try:
            text = await self._complete_text(
                [{"role": "user", "content": _feasibility_prompt(goal_description, context)}],
            )
            analysis = json.loads(strip_json_fence(text))
            if not isinstance(analysis, dict):
                raise ValueError("Feasibility reply is not a JSON object")
            result = validate_analysis(analysis)
        except Exception as e:
            logger.error("Feasibility analysis failed, using fallback: %s", e)
            return fallback_analysis()

        logger.info("Feasibility analysis received")
        return result

    async def generate_goal_plan(
        self,
        goal_description: str,
        analysis: dict[str, Any],
        context: UserContext,
    ) -> Any | None:
        """Ask for an implementation plan. Returns None if none could be made."""
        try:
            text = await self._complete_text(
                [{
                    "role": "user",
                    "content": _plan_prompt(goal_description, analysis, context),
                }],
            )
            return json.loads(strip_json_fence(text))
        except Exception as e:
            logger.error("Goal plan generation failed: %s", e)
            return None
