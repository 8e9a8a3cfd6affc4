# =============================================================================
# Unit Tests — Goal Coach
# =============================================================================
#
# Uses a mock LLM provider; the fallback ring gets a no-op sleep so
# failover tests run instantly.
# =============================================================================

from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

from dreamplan.services.coach import (
    GoalCoach,
    UserContext,
    _history_messages,
    fallback_analysis,
    strip_json_fence,
    validate_analysis,
)
from dreamplan.services.fallback_ring import (
    GENERIC_MESSAGE,
    RATE_LIMITED_MESSAGE,
    GenerationFallbackRing,
)
from dreamplan.services.llm import LLMResponse


def _run(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


async def _no_sleep(seconds):
    return None


class StatusError(Exception):
    def __init__(self, status_code):
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code


def _response(content, model="m0"):
    return LLMResponse(content=content, model=model, input_tokens=10, output_tokens=20)


def _coach(llm, models=("m0", "m1")):
    return GoalCoach(llm=llm, ring=GenerationFallbackRing(models, delay=0, sleep=_no_sleep))


def _llm(*outcomes):
    """Mock provider whose complete() yields each outcome in turn."""
    llm = MagicMock()
    llm.complete = AsyncMock(side_effect=list(outcomes))
    return llm


async def _chunks(*parts):
    for part in parts:
        yield part


async def _collect(stream):
    return [chunk async for chunk in stream]


CONTEXT = UserContext(location="Lisbon", age_range="25-34", interests=["surfing"])


# ---------------------------------------------------------------------------
# Test: Helpers
# ---------------------------------------------------------------------------


class TestJsonHelpers:
    def test_strip_fenced_json(self):
        assert strip_json_fence('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_strip_bare_fence(self):
        assert strip_json_fence('```\n[1]\n```') == "[1]"

    def test_unfenced_text_untouched(self):
        assert strip_json_fence('  {"a": 1} ') == '{"a": 1}'

    def test_validate_analysis_fills_gaps(self):
        result = validate_analysis({"feasibilityScore": 140, "redFlags": "not a list"})
        assert result["feasibilityScore"] == 100
        assert result["category"] == "personal"
        assert result["estimatedCost"] == {"min": 0, "max": 500, "currency": "USD"}
        assert result["redFlags"] == ["Requires dedication and consistency"]

    def test_history_window_and_roles(self):
        history = [{"role": "ai", "content": f"m{i}"} for i in range(15)]
        messages = _history_messages(history, "hello")
        assert len(messages) == 11
        assert messages[0] == {"role": "assistant", "content": "m5"}
        assert messages[-1] == {"role": "user", "content": "hello"}


# ---------------------------------------------------------------------------
# Test: Chat
# ---------------------------------------------------------------------------


class TestChat:
    def test_reply_passes_context_in_system_prompt(self):
        llm = _llm(_response("Let's plan your surf trip!"))
        reply = _run(_coach(llm).chat("Help me surf", [], CONTEXT))

        assert reply == "Let's plan your surf trip!"
        kwargs = llm.complete.call_args.kwargs
        assert kwargs["model"] == "m0"
        assert "Location: Lisbon" in kwargs["system"]

    def test_fails_over_to_second_model(self):
        llm = _llm(StatusError(503), _response("from backup", model="m1"))
        reply = _run(_coach(llm).chat("hi", [], CONTEXT))

        assert reply == "from backup"
        models = [c.kwargs["model"] for c in llm.complete.call_args_list]
        assert models == ["m0", "m1"]

    def test_degraded_message_when_every_model_fails(self):
        llm = _llm(StatusError(503), StatusError(429))
        assert _run(_coach(llm).chat("hi", [], CONTEXT)) == RATE_LIMITED_MESSAGE

    def test_unknown_error_gets_generic_message(self):
        llm = _llm(RuntimeError("boom"), RuntimeError("boom"))
        assert _run(_coach(llm).chat("hi", [], CONTEXT)) == GENERIC_MESSAGE


class TestChatStream:
    def test_streams_chunks(self):
        llm = MagicMock()
        llm.stream = AsyncMock(return_value=_chunks("Hel", "", "lo"))
        chunks = _run(_collect(_coach(llm).chat_stream("hi", [], CONTEXT)))
        assert chunks == ["Hel", "lo"]

    def test_open_failure_fails_over(self):
        llm = MagicMock()
        llm.stream = AsyncMock(side_effect=[StatusError(503), _chunks("ok")])
        chunks = _run(_collect(_coach(llm).chat_stream("hi", [], CONTEXT)))
        assert chunks == ["ok"]
        assert llm.stream.call_args.kwargs["model"] == "m1"

    def test_yields_degraded_message_once(self):
        llm = MagicMock()
        llm.stream = AsyncMock(side_effect=StatusError(429))
        chunks = _run(_collect(_coach(llm).chat_stream("hi", [], CONTEXT)))
        assert chunks == [RATE_LIMITED_MESSAGE]


# ---------------------------------------------------------------------------
# Test: Feasibility & Plans
# ---------------------------------------------------------------------------


class TestFeasibility:
    def test_parses_fenced_analysis(self):
        analysis = {"feasibilityScore": 82, "category": "travel", "estimatedTimeframe": "6 months"}
        llm = _llm(_response(f"```json\n{json.dumps(analysis)}\n```"))
        result = _run(_coach(llm).analyze_feasibility("Surf in Bali", CONTEXT))
        assert result["feasibilityScore"] == 82
        assert result["category"] == "travel"
        assert result["estimatedCost"]["currency"] == "USD"

    def test_malformed_reply_uses_fallback(self):
        llm = _llm(_response("I think this is very doable!"))
        result = _run(_coach(llm).analyze_feasibility("Surf in Bali", CONTEXT))
        assert result == fallback_analysis()
        assert llm.complete.await_count == 1

    def test_non_object_reply_uses_fallback(self):
        llm = _llm(_response("[1, 2, 3]"))
        result = _run(_coach(llm).analyze_feasibility("Surf in Bali", CONTEXT))
        assert result["feasibilityScore"] == 75

    def test_all_models_down_uses_fallback(self):
        llm = _llm(StatusError(503), StatusError(503))
        result = _run(_coach(llm).analyze_feasibility("Surf in Bali", CONTEXT))
        assert result == fallback_analysis()

    def test_goal_plan(self):
        llm = _llm(_response('{"weeklyMilestones": ["Book lessons"]}'))
        plan = _run(_coach(llm).generate_goal_plan("Surf", fallback_analysis(), CONTEXT))
        assert plan == {"weeklyMilestones": ["Book lessons"]}

    def test_goal_plan_failure_returns_none(self):
        llm = _llm(_response("not json"))
        assert _run(_coach(llm).generate_goal_plan("Surf", {}, CONTEXT)) is None
