"""OpenAI LLM provider implementation."""

import logging
from typing import Any

from openai import OpenAI

from planning_agent_orchestrator.core.config import LLMConfig
from planning_agent_orchestrator.llm.provider import ChatCompletion, LLMProvider, ToolCallRequest

logger = logging.getLogger(__name__)


class OpenAIProvider(LLMProvider):
    """OpenAI API provider implementation."""

    def __init__(self, config: LLMConfig, *, client: OpenAI | None = None) -> None:
        """Initialize the OpenAI provider.

        Args:
            config: LLM configuration.
            client: Pre-built client (tests inject a mock here).

        Raises:
            ValueError: If API key is not provided.
        """
        if client is None and not config.openai_api_key:
            raise ValueError("OpenAI API key is required")

        self.config = config
        self.client = client or OpenAI(api_key=config.openai_api_key, base_url=config.openai_base_url)
        self.model = config.openai_model
        self.temperature = config.openai_temperature

        logger.info("OpenAI provider initialized", extra={"model": self.model})

    def complete(
        self,
        messages: list[dict[str, Any]],
        *,
        tools: list[dict[str, Any]] | None = None,
        response_format: dict[str, Any] | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> ChatCompletion:
        kwargs: dict[str, Any] = {}
        if tools:
            kwargs["tools"] = tools
        if response_format is not None:
            kwargs["response_format"] = {"type": "json_schema", "json_schema": response_format}
        if max_tokens is not None:
            kwargs["max_tokens"] = max_tokens

        logger.debug(
            "Requesting chat completion",
            extra={"messages": len(messages), "tools": len(tools or [])},
        )

        response = self.client.chat.completions.create(
            model=self.model,
            messages=messages,  # type: ignore[arg-type]
            temperature=temperature if temperature is not None else self.temperature,
            **kwargs,
        )

        message = response.choices[0].message
        tool_calls = tuple(
            ToolCallRequest(id=call.id, name=call.function.name, arguments=call.function.arguments)
            for call in (message.tool_calls or [])
        )
        logger.debug(
            "Chat completion received",
            extra={"chars": len(message.content or ""), "tool_calls": len(tool_calls)},
        )
        return ChatCompletion(content=message.content, tool_calls=tool_calls)

    def embed(self, texts: list[str]) -> list[list[float]]:
        response = self.client.embeddings.create(
            model=self.config.openai_embedding_model, input=texts
        )
        return [list(item.embedding) for item in response.data]

    def count_tokens(self, text: str) -> int:
        """Count tokens using a simple approximation.

        Note:
            This is a rough approximation (about four characters per token).
        """
        return len(text) // 4
