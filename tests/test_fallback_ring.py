# =============================================================================
# Unit Tests — Generation Fallback Ring
# =============================================================================

from __future__ import annotations

import asyncio

import pytest

from dreamplan.services.fallback_ring import (
    BAD_REQUEST_MESSAGE,
    GENERIC_MESSAGE,
    HIGH_DEMAND_MESSAGE,
    RATE_LIMITED_MESSAGE,
    GenerationFallbackRing,
    degraded_message,
    error_status,
)


def _run(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


class StatusError(Exception):
    def __init__(self, status_code):
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code


class Sleeps:
    def __init__(self):
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)


def _ring(models=("m0", "m1", "m2"), delay=0.5):
    sleeps = Sleeps()
    return GenerationFallbackRing(models, delay=delay, sleep=sleeps), sleeps


def _operation(failing, calls):
    async def op(model):
        calls.append(model)
        if model in failing:
            raise StatusError(503)
        return f"reply from {model}"

    return op


class TestFailover:
    def test_primary_success(self):
        ring, sleeps = _ring()
        calls = []
        assert _run(ring.run(_operation(set(), calls))) == "reply from m0"
        assert calls == ["m0"]
        assert sleeps.calls == []

    def test_fails_over_to_next_model(self):
        ring, sleeps = _ring()
        calls = []
        assert _run(ring.run(_operation({"m0"}, calls))) == "reply from m1"
        assert calls == ["m0", "m1"]
        assert sleeps.calls == [0.5]

    def test_success_resets_cursor_to_primary(self):
        ring, _ = _ring()
        _run(ring.run(_operation({"m0"}, [])))
        assert ring.current_model == "m0"

    def test_all_models_fail(self):
        ring, sleeps = _ring()
        calls = []
        with pytest.raises(StatusError):
            _run(ring.run(_operation({"m0", "m1", "m2"}, calls)))
        assert calls == ["m0", "m1", "m2"]
        assert sleeps.calls == [0.5, 0.5]

    def test_only_third_model_succeeds(self):
        ring, sleeps = _ring()
        calls = []
        assert _run(ring.run(_operation({"m0", "m1"}, calls))) == "reply from m2"
        assert calls == ["m0", "m1", "m2"]
        assert sleeps.calls == [0.5, 0.5]

        calls.clear()
        _run(ring.run(_operation(set(), calls)))
        assert calls == ["m0"]

    def test_exhaustion_wraps_cursor_around(self):
        ring, _ = _ring()
        with pytest.raises(StatusError):
            _run(ring.run(_operation({"m0", "m1", "m2"}, [])))
        assert ring.current_model == "m0"

    def test_last_error_is_raised(self):
        ring, _ = _ring(models=("m0", "m1"))

        async def op(model):
            raise StatusError(429 if model == "m1" else 503)

        with pytest.raises(StatusError) as excinfo:
            _run(ring.run(op))
        assert excinfo.value.status_code == 429

    def test_requires_models(self):
        with pytest.raises(ValueError):
            GenerationFallbackRing([], delay=0)

    def test_defaults_from_settings(self):
        ring = GenerationFallbackRing()
        assert ring.models[0] == "gemini-2.5-flash"
        assert ring.delay == 0.5


class TestConcurrentCalls:
    def test_interleaved_calls_each_reach_the_working_model(self):
        async def yield_once(seconds):
            await asyncio.sleep(0)

        ring = GenerationFallbackRing(("m0", "m1", "m2"), delay=0.5, sleep=yield_once)
        attempts = {"a": [], "b": []}

        def op_for(caller):
            async def op(model):
                attempts[caller].append(model)
                if model != "m2":
                    raise RuntimeError(model)
                return model

            return op

        async def both():
            return await asyncio.gather(
                ring.run(op_for("a")), ring.run(op_for("b")), return_exceptions=True,
            )

        assert _run(both()) == ["m2", "m2"]
        for models in attempts.values():
            assert models[-1] == "m2"
            assert len(models) == len(set(models))
        assert ring.current_model == "m0"


class TestDegradedMessage:
    @pytest.mark.parametrize("status, message", [
        (503, HIGH_DEMAND_MESSAGE),
        (429, RATE_LIMITED_MESSAGE),
        (400, BAD_REQUEST_MESSAGE),
        (500, GENERIC_MESSAGE),
    ])
    def test_status_specific_text(self, status, message):
        assert degraded_message(StatusError(status)) == message

    def test_plain_exception_gets_generic_text(self):
        assert degraded_message(RuntimeError("boom")) == GENERIC_MESSAGE

    def test_status_attribute_is_also_read(self):
        error = RuntimeError("aiohttp style")
        error.status = 429
        assert error_status(error) == 429

    def test_non_integer_status_is_ignored(self):
        error = RuntimeError("odd")
        error.status_code = "503"
        assert error_status(error) is None
