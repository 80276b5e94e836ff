"""Anthropic (Claude) completion adapter."""

from __future__ import annotations

import contextlib
import functools
import logging
import time
from typing import TYPE_CHECKING, Any

import anthropic

from sleuth.core.errors import (
    ModelNotFoundError,
    ProviderAuthError,
    ProviderOverloadedError,
    ProviderRateLimitError,
    ProviderTimeoutError,
)
from sleuth.providers.base import CompletionResponse, TokenUsage

if TYPE_CHECKING:
    from sleuth.core.ratelimit import RateLimiter
    from sleuth.providers.base import PromptMessage

PROVIDER_ID = "anthropic"

logger = logging.getLogger(__name__)


def _map_error(e: anthropic.APIError) -> Exception:
    """Map Anthropic SDK errors to the sleuth error hierarchy."""
    if isinstance(e, anthropic.AuthenticationError):
        return ProviderAuthError(PROVIDER_ID, str(e))
    if isinstance(e, anthropic.RateLimitError):
        retry_after = None
        if hasattr(e, "response") and e.response is not None:
            raw = e.response.headers.get("retry-after")
            if raw is not None:
                with contextlib.suppress(ValueError):
                    retry_after = float(raw)
        return ProviderRateLimitError(PROVIDER_ID, retry_after=retry_after)
    if isinstance(e, anthropic.APITimeoutError):
        return ProviderTimeoutError(PROVIDER_ID, str(e))
    if isinstance(e, anthropic.InternalServerError):
        return ProviderOverloadedError(PROVIDER_ID, str(e))
    if isinstance(e, anthropic.NotFoundError):
        return ModelNotFoundError(PROVIDER_ID, str(e))
    # Fallback for unknown API errors
    return ProviderOverloadedError(PROVIDER_ID, str(e))


def _build_messages(
    messages: list[PromptMessage],
) -> tuple[str | anthropic.NotGiven, list[dict[str, str]]]:
    """Split PromptMessages into Anthropic's system + messages format."""
    system: str | anthropic.NotGiven = anthropic.NOT_GIVEN
    api_messages: list[dict[str, str]] = []

    for msg in messages:
        if msg.role == "system":
            system = msg.content
        else:
            api_messages.append({"role": msg.role, "content": msg.content})

    return system, api_messages


class AnthropicCompletionProvider:
    """Completion adapter for Anthropic's Claude models.

    Implements the :class:`CompletionProvider` protocol.
    """

    def __init__(
        self,
        api_key: str | None = None,
        *,
        client: anthropic.AsyncAnthropic | None = None,
        rate_limiter: RateLimiter | None = None,
    ) -> None:
        self._client = client or anthropic.AsyncAnthropic(api_key=api_key)
        self._rate_limiter = rate_limiter

    @property
    def provider_id(self) -> str:
        return PROVIDER_ID

    async def complete(
        self,
        messages: list[PromptMessage],
        *,
        model: str,
        max_tokens: int = 4096,
        temperature: float = 1.0,
    ) -> CompletionResponse:
        if not messages:
            msg = "Messages list cannot be empty"
            raise ValueError(msg)

        system, api_messages = _build_messages(messages)

        kwargs: dict[str, Any] = {
            "model": model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "system": system,
            "messages": api_messages,
        }

        create = functools.partial(self._client.messages.create, **kwargs)
        start = time.monotonic()
        try:
            if self._rate_limiter is not None:
                response = await self._rate_limiter.execute(create)
            else:
                response = await create()
        except anthropic.APIError as e:
            logger.debug("Completion failed for %s: %s", model, e)
            raise _map_error(e) from e

        latency_ms = (time.monotonic() - start) * 1000

        content = "".join(
            block.text for block in response.content if hasattr(block, "text")
        )
        usage = TokenUsage(
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
        )
        logger.debug(
            "Completion from %s: %d in / %d out tokens in %.0fms",
            model,
            usage.input_tokens,
            usage.output_tokens,
            latency_ms,
        )

        return CompletionResponse(
            content=content,
            model=model,
            usage=usage,
            stop_reason=response.stop_reason or "end_turn",
            latency_ms=latency_ms,
            raw_response=response,
        )

    def extract_text(self, response: CompletionResponse) -> str:
        return response.content
