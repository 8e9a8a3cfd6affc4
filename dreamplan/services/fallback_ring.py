# =============================================================================
# Generation Fallback Ring — Model Failover for the Goal Coach
# =============================================================================
#
# One long-lived ring owns an ordered list of models and a cursor:
#
#   cursor ──▶ [m0, m1, m2, m3, m4, m5]
#
#   run(op):  op(models[cursor])
#             ├─ ok   → cursor = 0, return
#             └─ fail → cursor = (attempted index + 1) % len
#                       sleep(delay), try again on the new model
#             at most len(models) attempts; then re-raise the last error
#
# A call starts wherever the previous call left the cursor. After a
# failure streak, the next request goes straight to the model that was
# next in line instead of retrying the known-bad primary.
#
# CONCURRENCY: each call reads the cursor once and walks its own
# sequence from there, so a concurrent call moving the cursor during a
# sleep never makes this call repeat a model or skip one. Writes to the
# cursor happen without an `await` in between.
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from typing import TypeVar

from dreamplan.config import settings

logger = logging.getLogger(__name__)

T = TypeVar("T")

HIGH_DEMAND_MESSAGE = (
    "I'm experiencing high demand across all my AI models right now. Please try "
    "again in a few moments. In the meantime, you can create goals using the "
    "dashboard!"
)
RATE_LIMITED_MESSAGE = (
    "I've hit my rate limit on all available models. Please wait a moment before "
    "sending another message."
)
BAD_REQUEST_MESSAGE = (
    "There seems to be an issue with your message format. Could you please "
    "rephrase your question?"
)
GENERIC_MESSAGE = (
    "I'm sorry, I'm having trouble with all my AI models right now. Please try "
    "again in a moment, or use the goal creation feature on the dashboard!"
)

_STATUS_MESSAGES = {
    503: HIGH_DEMAND_MESSAGE,
    429: RATE_LIMITED_MESSAGE,
    400: BAD_REQUEST_MESSAGE,
}


def error_status(error: BaseException) -> int | None:
    """HTTP status carried by an SDK error, if any."""
    status = getattr(error, "status_code", None)
    if status is None:
        status = getattr(error, "status", None)
    return status if isinstance(status, int) else None


def degraded_message(error: BaseException) -> str:
    """User-facing text for a request every model failed."""
    return _STATUS_MESSAGES.get(error_status(error), GENERIC_MESSAGE)


class GenerationFallbackRing:
    """
    Round-robin failover across generative models.

    Args:
        models: Model names, most preferred first. Defaults to settings.llm_models.
        delay: Seconds to wait between attempts.
        sleep: Awaitable sleep, injectable for tests.
    """

    def __init__(
        self,
        models: Sequence[str] | None = None,
        delay: float | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.models = list(models if models is not None else settings.llm_models)
        if not self.models:
            raise ValueError("GenerationFallbackRing needs at least one model")
        self.delay = settings.llm_fallback_delay_seconds if delay is None else delay
        self._sleep = sleep
        self._cursor = 0

    @property
    def current_model(self) -> str:
        return self.models[self._cursor]

    async def run(self, operation: Callable[[str], Awaitable[T]]) -> T:
        """
        Call `operation(model)` until one model succeeds.

        The call walks the ring from wherever the cursor stood when it
        started. Each model is tried at most once per call, whatever
        concurrent calls do to the cursor meanwhile.

        Raises:
            The last model's exception once every model has failed.
        """
        total = len(self.models)
        start = self._cursor

        for attempt in range(total):
            index = (start + attempt) % total
            model = self.models[index]
            if attempt == 0:
                logger.info("Using model %s", model)
            else:
                logger.info(
                    "Trying fallback model %s (attempt %d/%d)", model, attempt + 1, total,
                )

            try:
                result = await operation(model)
            except Exception as e:
                logger.warning("Model %s failed: %s", model, e)
                self._cursor = (index + 1) % total
                if attempt == total - 1:
                    logger.error("All %d models failed", total)
                    raise
                await self._sleep(self.delay)
                continue

            if self._cursor != 0:
                logger.info("Model %s succeeded, resetting to primary model", model)
            self._cursor = 0
            return result

        raise RuntimeError("GenerationFallbackRing has no models")
