# =============================================================================
# LLM Providers — Model-Agnostic Text Generation for the Goal Coach
# =============================================================================
#
# The coach never talks to an SDK directly. It hands a model name to one of
# the providers below through the GenerationFallbackRing:
#
#   ring.run(op) ──▶ op(model) ──▶ provider.complete(messages, model=model)
#                                  provider.stream(messages, model=model)
#
# PROVIDERS:
#   anthropic          AsyncAnthropic, system prompt as a `system=` kwarg
#   openai_compatible  AsyncOpenAI pointed at any OpenAI-style endpoint
#                      (Gemini's by default), system prompt as the first
#                      {"role": "system"} message
#
# DESIGN DECISION: The model is chosen per call, never at construction.
# One provider instance serves the whole ring of models.
#
# DESIGN DECISION: Protocol (structural typing), like AgentStore.
# Tests pass a MagicMock with AsyncMock methods.
#
# SDK errors (anthropic.APIStatusError, openai.APIStatusError) propagate
# untouched. Their `status_code` picks the ring's degraded message.
# =============================================================================

from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass
from typing import Any, Protocol

from dreamplan.config import settings

logger = logging.getLogger(__name__)

Messages = list[dict[str, str]]


@dataclass
class LLMResponse:
    """One finished completion."""

    content: str
    model: str
    input_tokens: int
    output_tokens: int


class LLMProvider(Protocol):
    async def complete(
        self, messages: Messages, model: str, system: str | None = None,
    ) -> LLMResponse:
        """
        Run one completion on `model`.

        Args:
            messages: "user" / "assistant" turns. The system prompt goes in
                `system`, never as a message.
            model: Model name, normally supplied by the fallback ring.
            system: Optional system prompt.
        """
        ...

    async def stream(
        self, messages: Messages, model: str, system: str | None = None,
    ) -> AsyncIterator[str]:
        """
        Send a streaming request and return its text chunks.

        The request is made before this returns, so a refused or failed
        request raises here and the ring can move to the next model.
        """
        ...


def _require_key(hint: str, *candidates: str | None) -> str:
    for candidate in candidates:
        if candidate:
            return candidate
    raise ValueError(f"LLM provider has no API key; set {hint}")


# ---------------------------------------------------------------------------
# Anthropic
# ---------------------------------------------------------------------------


class AnthropicProvider:
    """Claude models through the native Anthropic SDK."""

    def __init__(self, api_key: str | None = None) -> None:
        from anthropic import AsyncAnthropic

        key = _require_key(
            "LLM_API_KEY or ANTHROPIC_API_KEY",
            api_key, settings.llm_api_key, settings.anthropic_api_key,
        )
        self._client = AsyncAnthropic(api_key=key)
        logger.info("LLM provider ready: anthropic")

    def _request(
        self, messages: Messages, model: str, system: str | None,
    ) -> dict[str, Any]:
        request: dict[str, Any] = {
            "model": model,
            "messages": messages,
            "max_tokens": settings.llm_max_tokens,
            "temperature": settings.llm_temperature,
        }
        if system:
            request["system"] = system
        return request

    async def complete(
        self, messages: Messages, model: str, system: str | None = None,
    ) -> LLMResponse:
        response = await self._client.messages.create(
            **self._request(messages, model, system),
        )
        text = next(
            (block.text for block in response.content if block.type == "text"), "",
        )
        return LLMResponse(
            content=text,
            model=response.model,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )

    async def stream(
        self, messages: Messages, model: str, system: str | None = None,
    ) -> AsyncIterator[str]:
        events = await self._client.messages.create(
            **self._request(messages, model, system), stream=True,
        )

        async def _deltas() -> AsyncIterator[str]:
            async for event in events:
                if event.type == "content_block_delta" and event.delta.type == "text_delta":
                    yield event.delta.text

        return _deltas()


# ---------------------------------------------------------------------------
# OpenAI-compatible (Gemini, OpenAI, DeepSeek, ...)
# ---------------------------------------------------------------------------


class OpenAICompatibleProvider:
    """
    Chat-completions provider for any OpenAI-style endpoint.

    The default settings target Gemini:
        LLM_PROVIDER=openai_compatible
        LLM_BASE_URL=https://generativelanguage.googleapis.com/v1beta/openai/
    """

    def __init__(self, api_key: str | None = None, base_url: str | None = None) -> None:
        from openai import AsyncOpenAI

        key = _require_key(
            "LLM_API_KEY or OPENAI_API_KEY",
            api_key, settings.llm_api_key, settings.openai_api_key,
        )
        endpoint = base_url or settings.llm_base_url
        self._client = (
            AsyncOpenAI(api_key=key, base_url=endpoint) if endpoint
            else AsyncOpenAI(api_key=key)
        )
        logger.info("LLM provider ready: openai_compatible (%s)", endpoint or "default endpoint")

    def _request(
        self, messages: Messages, model: str, system: str | None,
    ) -> dict[str, Any]:
        prompt = [{"role": "system", "content": system}] if system else []
        return {
            "model": model,
            "messages": prompt + list(messages),
            "max_tokens": settings.llm_max_tokens,
            "temperature": settings.llm_temperature,
        }

    async def complete(
        self, messages: Messages, model: str, system: str | None = None,
    ) -> LLMResponse:
        response = await self._client.chat.completions.create(
            **self._request(messages, model, system),
        )
        usage = response.usage
        return LLMResponse(
            content=response.choices[0].message.content or "",
            model=response.model or model,
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
        )

    async def stream(
        self, messages: Messages, model: str, system: str | None = None,
    ) -> AsyncIterator[str]:
        chunks = await self._client.chat.completions.create(
            **self._request(messages, model, system), stream=True,
        )

        async def _deltas() -> AsyncIterator[str]:
            async for chunk in chunks:
                if chunk.choices and chunk.choices[0].delta.content:
                    yield chunk.choices[0].delta.content

        return _deltas()


# ---------------------------------------------------------------------------
# Factory
# ---------------------------------------------------------------------------

_PROVIDER_CLASSES: dict[str, type[AnthropicProvider] | type[OpenAICompatibleProvider]] = {
    "anthropic": AnthropicProvider,
    "openai_compatible": OpenAICompatibleProvider,
}

_provider: LLMProvider | None = None


def get_llm_provider() -> LLMProvider:
    """Return the process-wide provider named by `settings.llm_provider`."""
    global _provider
    if _provider is None:
        provider_class = _PROVIDER_CLASSES.get(settings.llm_provider)
        if provider_class is None:
            raise ValueError(
                f"Unknown LLM provider {settings.llm_provider!r}; "
                f"expected one of {sorted(_PROVIDER_CLASSES)}"
            )
        _provider = provider_class()
    return _provider
