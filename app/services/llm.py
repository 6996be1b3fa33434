# =============================================================================
# Completion Client — Pluggable Chat-Completion Backend
# =============================================================================
#
# One call in, one string out:
#
#   text = await llm.complete(messages, model="google/gemini-2.5-flash")
#
# Failures surface as:
#   - UpstreamError      — non-success status (429, 402, 4xx, 5xx) or a
#                          transport or other SDK failure (status_code=None)
#   - EmptyResponseError — success status, but no text in the reply
#
# No retries happen here (SDK clients are built with max_retries=0).
# Callers decide whether a failure is fatal: the executor records it on
# the step, the synthesizer falls back to concatenation, the direct-chat
# endpoint maps it to an HTTP error.
#
# ARCHITECTURE:
#   LLMProvider (Protocol)
#   ├── OpenAICompatibleProvider — any OpenAI-style gateway (default)
#   │   └── complete()          — system prompt stays a message
#   ├── AnthropicProvider       — Claude via native Anthropic SDK
#   │   └── complete()          — system messages lifted to `system=`
#   └── get_llm_provider()      — lazy singleton, reads from config
# =============================================================================

from __future__ import annotations

import logging
from typing import Protocol

from app.config import settings
from app.errors import EmptyResponseError, UpstreamError

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Protocol Definition
# ---------------------------------------------------------------------------


class LLMProvider(Protocol):
    """
    Protocol defining the completion client interface.

    Anything with an async `complete()` of this shape can drive the
    planner, executor and synthesizer, including test doubles.
    """

    async def complete(
        self,
        messages: list[dict[str, str]],
        model: str | None = None,
    ) -> str:
        """
        Generate a completion.

        Args:
            messages: Ordered chat messages as {"role", "content"} dicts.
                Roles: "system", "user", "assistant".
            model: Model identifier. Defaults to the configured llm_model.

        Returns:
            The generated text (never empty).

        Raises:
            UpstreamError: Endpoint returned a failure status.
            EmptyResponseError: Endpoint returned no usable content.
        """
        ...


# ---------------------------------------------------------------------------
# Implementation 1: OpenAI-Compatible Gateway
# ---------------------------------------------------------------------------


class OpenAICompatibleProvider:
    """
    Provider for any endpoint that follows the OpenAI chat-completions API.

    The gateway is addressed over HTTPS with bearer-token auth; the SDK
    sends `Authorization: Bearer <api_key>` to `{base_url}/chat/completions`.

        LLM_PROVIDER=openai_compatible
        LLM_BASE_URL=https://ai.gateway.lovable.dev/v1
        LLM_API_KEY=your-key
        LLM_MODEL=google/gemini-2.5-flash
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
    ) -> None:
        from openai import AsyncOpenAI

        resolved_key = api_key or settings.llm_api_key or settings.openai_api_key
        if not resolved_key:
            raise ValueError(
                "No API key configured for OpenAI-compatible provider. "
                "Set LLM_API_KEY in .env"
            )

        client_kwargs: dict = {
            "api_key": resolved_key,
            "max_retries": 0,
            "timeout": settings.llm_timeout_seconds,
        }
        resolved_base_url = base_url or settings.llm_base_url
        if resolved_base_url:
            client_kwargs["base_url"] = resolved_base_url

        self._client = AsyncOpenAI(**client_kwargs)
        self._model = model or settings.llm_model
        self._temperature = settings.llm_temperature
        self._max_tokens = settings.llm_max_tokens

        logger.info(
            "Initialized OpenAICompatibleProvider (model=%s, base_url=%s)",
            self._model,
            resolved_base_url or "https://api.openai.com/v1",
        )

    async def complete(
        self,
        messages: list[dict[str, str]],
        model: str | None = None,
    ) -> str:
        """Generate a completion through the OpenAI-compatible endpoint."""
        import openai

        resolved_model = model or self._model
        kwargs: dict = {
            "model": resolved_model,
            "messages": messages,
            "max_tokens": self._max_tokens,
        }
        if self._temperature is not None:
            kwargs["temperature"] = self._temperature

        try:
            response = await self._client.chat.completions.create(**kwargs)
        except openai.APIStatusError as e:
            logger.error(
                "Completion endpoint error: status=%s model=%s",
                e.status_code, resolved_model,
            )
            raise UpstreamError(e.status_code, e.response.text) from e
        except openai.APIConnectionError as e:
            logger.error("Completion endpoint unreachable: %s", e)
            raise UpstreamError(None, str(e)) from e
        except openai.APIError as e:
            # e.g. APIResponseValidationError: reply did not match the schema
            logger.error("Completion endpoint error: %s", e)
            raise UpstreamError(None, str(e)) from e

        content = ""
        if response.choices:
            content = response.choices[0].message.content or ""
        if not content.strip():
            raise EmptyResponseError(resolved_model)

        return content


# ---------------------------------------------------------------------------
# Implementation 2: Anthropic (Claude)
# ---------------------------------------------------------------------------


class AnthropicProvider:
    """
    Anthropic Claude provider using the native SDK.

    Anthropic takes system prompts as a top-level `system=` kwarg, NOT as
    a message with role "system". Any system messages in the incoming
    list are joined and moved there.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
    ) -> None:
        from anthropic import AsyncAnthropic

        resolved_key = api_key or settings.llm_api_key or settings.anthropic_api_key
        if not resolved_key:
            raise ValueError(
                "No Anthropic API key configured. Set LLM_API_KEY or "
                "ANTHROPIC_API_KEY in .env"
            )

        self._client = AsyncAnthropic(
            api_key=resolved_key,
            max_retries=0,
            timeout=settings.llm_timeout_seconds,
        )
        self._model = model or settings.llm_model
        self._temperature = settings.llm_temperature
        self._max_tokens = settings.llm_max_tokens

        logger.info(
            "Initialized AnthropicProvider (model=%s)", self._model
        )

    async def complete(
        self,
        messages: list[dict[str, str]],
        model: str | None = None,
    ) -> str:
        """Generate a completion using Claude."""
        import anthropic

        resolved_model = model or self._model
        system_parts = [m["content"] for m in messages if m["role"] == "system"]
        chat_messages = [m for m in messages if m["role"] != "system"]

        kwargs: dict = {
            "model": resolved_model,
            "messages": chat_messages,
            "max_tokens": self._max_tokens,
        }
        if system_parts:
            kwargs["system"] = "\n\n".join(system_parts)
        if self._temperature is not None:
            kwargs["temperature"] = self._temperature

        try:
            response = await self._client.messages.create(**kwargs)
        except anthropic.APIStatusError as e:
            logger.error(
                "Completion endpoint error: status=%s model=%s",
                e.status_code, resolved_model,
            )
            raise UpstreamError(e.status_code, e.response.text) from e
        except anthropic.APIConnectionError as e:
            logger.error("Completion endpoint unreachable: %s", e)
            raise UpstreamError(None, str(e)) from e
        except anthropic.APIError as e:
            logger.error("Completion endpoint error: %s", e)
            raise UpstreamError(None, str(e)) from e

        # Extract text from the first text block
        content = ""
        for block in response.content:
            if block.type == "text":
                content = block.text
                break
        if not content.strip():
            raise EmptyResponseError(resolved_model)

        return content


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------

# Lazy singleton — avoid re-creating client on every request
_provider: OpenAICompatibleProvider | AnthropicProvider | None = None


def get_llm_provider() -> OpenAICompatibleProvider | AnthropicProvider:
    """
    Factory that returns the configured completion provider.

    Reads `llm_provider` from settings:
    - "openai_compatible" → OpenAICompatibleProvider (gateway, default)
    - "anthropic" → AnthropicProvider (Claude)

    The SDK clients manage their own connection pools and are safe to
    share between concurrent requests.

    Raises:
        ValueError: No API key configured for the selected provider.
    """
    global _provider
    if _provider is None:
        if settings.llm_provider == "anthropic":
            _provider = AnthropicProvider()
        else:
            _provider = OpenAICompatibleProvider()
    return _provider
