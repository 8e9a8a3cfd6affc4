# =============================================================================
# Retrieval Cascade — Ordered Provider Tiers with a Synthetic Floor
# =============================================================================
#
# Every agent operation that talks to the outside world runs through a
# RetrievalCascade:
#
#   tier 1 ──fail──▶ tier 2 ──fail──▶ ... ──fail──▶ synthetic fallback
#      │                │                                  │
#      └── ok ──────────┴──────────────────────────────────┴──▶ CascadeOutcome
#
# RULES:
#   - Tiers run strictly in order, each at most once. No retries, no racing.
#   - A disabled tier (no credential, or keyless tiers switched off) is
#     skipped without being attempted.
#   - Any tier-local failure (non-2xx, transport error, bad JSON, missing or
#     malformed field) is logged at WARNING and the next tier runs.
#   - The fallback always runs last when nothing live answered. It never
#     fails, and its payload is tagged `fallback: True` + `dataSource`.
#
# Structural errors raised OUTSIDE fetch functions (bad parameters, an
# unsupported task) are not the cascade's business. They propagate to the
# AgentManager, which turns them into failure results.
# =============================================================================

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

import httpx

logger = logging.getLogger(__name__)

Payload = dict[str, Any]
FetchFn = Callable[[], Awaitable[Payload]]
FallbackFn = Callable[[], Payload]


class ProviderError(Exception):
    """A provider answered, but not with anything usable."""


# Exceptions that mean "this tier did not work, try the next one"
TIER_ERRORS: tuple[type[BaseException], ...] = (
    httpx.HTTPError,          # HTTPStatusError (non-2xx) + all transport errors
    json.JSONDecodeError,
    ProviderError,
    KeyError,
    IndexError,
    AttributeError,
    TypeError,
    ValueError,
)


@dataclass(frozen=True)
class ProviderTier:
    """One live data source in a cascade."""

    name: str
    fetch: FetchFn
    enabled: bool = True


@dataclass
class CascadeOutcome:
    """What a cascade run produced, and how it got there."""

    payload: Payload
    source: str
    used_fallback: bool
    attempted: list[str] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)


class RetrievalCascade:
    """
    Try live providers in order, then fall back to synthetic data.

    Args:
        operation: Label used in log lines (e.g., "convertCurrency").
        tiers: Live providers, highest preference first.
        fallback: Synchronous builder for the synthetic payload.
        fallback_source: `dataSource` value stamped on the synthetic payload.
    """

    def __init__(
        self,
        operation: str,
        tiers: Sequence[ProviderTier],
        fallback: FallbackFn,
        fallback_source: str,
    ) -> None:
        self.operation = operation
        self.tiers = list(tiers)
        self.fallback = fallback
        self.fallback_source = fallback_source

    async def run(self) -> CascadeOutcome:
        attempted: list[str] = []
        errors: dict[str, str] = {}

        for tier in self.tiers:
            if not tier.enabled:
                logger.debug("%s: skipping %s (not configured)", self.operation, tier.name)
                continue

            attempted.append(tier.name)
            try:
                payload = await tier.fetch()
            except TIER_ERRORS as e:
                errors[tier.name] = str(e) or type(e).__name__
                logger.warning(
                    "%s: provider %s failed (%s: %s), trying next tier",
                    self.operation, tier.name, type(e).__name__, e,
                )
                continue

            logger.info("%s: served by %s", self.operation, tier.name)
            return CascadeOutcome(
                payload=payload,
                source=tier.name,
                used_fallback=False,
                attempted=attempted,
                errors=errors,
            )

        logger.info(
            "%s: no live provider answered (attempted=%s), using %s",
            self.operation, attempted or "none", self.fallback_source,
        )
        payload = self.fallback()
        payload["fallback"] = True
        payload["dataSource"] = self.fallback_source
        return CascadeOutcome(
            payload=payload,
            source=self.fallback_source,
            used_fallback=True,
            attempted=attempted,
            errors=errors,
        )


# ---------------------------------------------------------------------------
# HTTP Helpers
# ---------------------------------------------------------------------------


async def get_json(
    client: httpx.AsyncClient,
    url: str,
    *,
    params: dict[str, Any] | None = None,
    headers: dict[str, str] | None = None,
) -> Any:
    """GET a URL and decode JSON. Non-2xx raises httpx.HTTPStatusError."""
    response = await client.get(url, params=params, headers=headers)
    response.raise_for_status()
    return response.json()


async def post_form(
    client: httpx.AsyncClient,
    url: str,
    data: dict[str, str],
) -> Any:
    """POST a urlencoded form and decode the JSON reply."""
    response = await client.post(url, data=data)
    response.raise_for_status()
    return response.json()


def require(data: Any, *path: str | int) -> Any:
    """
    Walk into a decoded JSON document, raising ProviderError on a gap.

        require(body, "data", 0, "price", "total")
    """
    current = data
    for key in path:
        try:
            current = current[key]
        except (KeyError, IndexError, TypeError):
            raise ProviderError(f"Missing field: {'.'.join(map(str, path))}") from None
    if current is None:
        raise ProviderError(f"Empty field: {'.'.join(map(str, path))}")
    return current
