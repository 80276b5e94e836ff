"""Completion provider interface and data classes.

Tools that need an LLM depend only on the ``CompletionProvider``
protocol, so any conforming implementation can be substituted.
Data classes are immutable where possible (frozen dataclasses with slots).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable


@dataclass(frozen=True, slots=True)
class PromptMessage:
    """A single message in a prompt sequence."""

    role: str  # "system", "user", "assistant"
    content: str


@dataclass(frozen=True, slots=True)
class TokenUsage:
    """Token counts from a single model call."""

    input_tokens: int
    output_tokens: int

    @property
    def total_tokens(self) -> int:
        """Total tokens consumed (input + output)."""
        return self.input_tokens + self.output_tokens


@dataclass(slots=True)
class CompletionResponse:
    """Complete response from a model call."""

    content: str
    model: str
    usage: TokenUsage
    stop_reason: str  # "end_turn", "max_tokens", "stop_sequence"
    latency_ms: float  # Wall-clock time for the call
    raw_response: object = field(default=None, repr=False)


@runtime_checkable
class CompletionProvider(Protocol):
    """Protocol that all completion adapters must satisfy."""

    @property
    def provider_id(self) -> str:
        """Unique identifier for this provider (e.g. 'anthropic')."""
        ...

    async def complete(
        self,
        messages: list[PromptMessage],
        *,
        model: str,
        max_tokens: int = 4096,
        temperature: float = 1.0,
    ) -> CompletionResponse:
        """Send a prompt and wait for the complete response.

        Raises ProviderError on failure.
        """
        ...

    def extract_text(self, response: CompletionResponse) -> str:
        """Return the raw text of a response."""
        ...
