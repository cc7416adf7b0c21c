"""Abstract base class for LLM providers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True, slots=True)
class ToolCallRequest:
    """A function call requested by the model.

    ``arguments`` is the raw JSON string the model produced.
    """

    id: str
    name: str
    arguments: str


@dataclass(frozen=True, slots=True)
class ChatCompletion:
    content: str | None
    tool_calls: tuple[ToolCallRequest, ...] = field(default_factory=tuple)


class LLMProvider(ABC):
    """Abstract base class for LLM providers.

    This interface allows pluggable LLM backends (OpenAI, LLaMA, etc.)
    Messages use the OpenAI chat format (``role``/``content`` dicts, plus
    ``tool_calls`` and ``tool_call_id`` for function calling).
    """

    @abstractmethod
    def complete(
        self,
        messages: list[dict[str, Any]],
        *,
        tools: list[dict[str, Any]] | None = None,
        response_format: dict[str, Any] | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> ChatCompletion:
        """Run one chat completion round.

        Args:
            messages: Conversation so far.
            tools: Function specs the model may call.
            response_format: ``{"name": ..., "schema": ...}`` to request a JSON
                answer matching a JSON schema.
            temperature: Sampling temperature.
            max_tokens: Maximum tokens to generate.

        Returns:
            The assistant message: text content and/or requested tool calls.
        """

    def chat(
        self,
        messages: list[dict[str, Any]],
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> str:
        """Generate a plain chat response from messages."""
        completion = self.complete(messages, temperature=temperature, max_tokens=max_tokens)
        return completion.content or ""

    def generate(
        self,
        prompt: str,
        max_tokens: int | None = None,
        temperature: float | None = None,
    ) -> str:
        """Generate text completion from a single prompt."""
        return self.chat(
            [{"role": "user", "content": prompt}], max_tokens=max_tokens, temperature=temperature
        )

    def embed(self, texts: list[str]) -> list[list[float]]:
        """Embed texts for vector memory.

        Raises:
            NotImplementedError: If the provider has no embedding model.
        """
        raise NotImplementedError(f"{type(self).__name__} does not support embeddings")

    @abstractmethod
    def count_tokens(self, text: str) -> int:
        """Count the number of tokens in text."""
