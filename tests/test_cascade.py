# =============================================================================
# Unit Tests — Retrieval Cascade
# =============================================================================

from __future__ import annotations

import asyncio

import httpx
import pytest

from dreamplan.agents.cascade import (
    ProviderError,
    ProviderTier,
    RetrievalCascade,
    get_json,
    require,
)


def _run(coro):
    """Helper to run async functions in sync tests."""
    return asyncio.run(coro)


def _tier(name, payload=None, error=None, enabled=True, calls=None):
    async def fetch():
        if calls is not None:
            calls.append(name)
        if error is not None:
            raise error
        return dict(payload)

    return ProviderTier(name, fetch, enabled=enabled)


def _cascade(*tiers):
    return RetrievalCascade(
        "testOperation",
        tiers=tiers,
        fallback=lambda: {"value": "synthetic"},
        fallback_source="synthetic data",
    )


class TestCascadeOrder:
    def test_first_tier_wins(self):
        calls = []
        outcome = _run(_cascade(
            _tier("a", {"value": 1}, calls=calls),
            _tier("b", {"value": 2}, calls=calls),
        ).run())
        assert outcome.payload == {"value": 1}
        assert outcome.source == "a"
        assert not outcome.used_fallback
        assert calls == ["a"]

    def test_failing_tier_falls_through(self):
        outcome = _run(_cascade(
            _tier("a", error=ProviderError("empty")),
            _tier("b", {"value": 2}),
        ).run())
        assert outcome.payload == {"value": 2}
        assert outcome.attempted == ["a", "b"]
        assert outcome.errors == {"a": "empty"}

    def test_disabled_tier_is_not_attempted(self):
        calls = []
        outcome = _run(_cascade(
            _tier("a", {"value": 1}, enabled=False, calls=calls),
            _tier("b", {"value": 2}, calls=calls),
        ).run())
        assert calls == ["b"]
        assert outcome.attempted == ["b"]

    def test_transport_and_decode_errors_are_tier_local(self):
        outcome = _run(_cascade(
            _tier("a", error=httpx.ConnectError("down")),
            _tier("b", error=ValueError("bad json")),
            _tier("c", error=KeyError("rates")),
        ).run())
        assert outcome.used_fallback
        assert outcome.attempted == ["a", "b", "c"]


class TestFallback:
    def test_fallback_is_tagged(self):
        outcome = _run(_cascade().run())
        assert outcome.payload == {
            "value": "synthetic",
            "fallback": True,
            "dataSource": "synthetic data",
        }
        assert outcome.source == "synthetic data"
        assert outcome.attempted == []

    def test_unexpected_errors_propagate(self):
        with pytest.raises(RuntimeError):
            _run(_cascade(_tier("a", error=RuntimeError("bug"))).run())


class TestHttpHelpers:
    def test_get_json_raises_on_non_2xx(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(503, json={}))

        async def call():
            async with httpx.AsyncClient(transport=transport) as client:
                await get_json(client, "https://example.test/rates")

        with pytest.raises(httpx.HTTPStatusError):
            _run(call())

    def test_get_json_sends_params_and_headers(self):
        seen = {}

        def handler(request):
            seen["query"] = dict(request.url.params)
            seen["key"] = request.headers.get("X-Api-Key")
            return httpx.Response(200, json={"ok": True})

        async def call():
            async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
                return await get_json(
                    client, "https://example.test/x",
                    params={"q": "ai"}, headers={"X-Api-Key": "k"},
                )

        assert _run(call()) == {"ok": True}
        assert seen == {"query": {"q": "ai"}, "key": "k"}


class TestRequire:
    def test_walks_nested_path(self):
        assert require({"data": [{"price": {"total": "12.5"}}]}, "data", 0, "price", "total") == "12.5"

    @pytest.mark.parametrize("body", [{}, {"data": []}, {"data": None}, {"data": [None]}])
    def test_gaps_raise_provider_error(self, body):
        with pytest.raises(ProviderError):
            require(body, "data", 0, "price")

    def test_none_leaf_is_an_error(self):
        with pytest.raises(ProviderError, match="Empty field"):
            require({"rate": None}, "rate")
