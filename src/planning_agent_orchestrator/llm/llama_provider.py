"""Local LLaMA LLM provider implementation."""

import json
import logging
import uuid
from typing import Any

from planning_agent_orchestrator.core.config import LLMConfig
from planning_agent_orchestrator.llm.provider import ChatCompletion, LLMProvider, ToolCallRequest

logger = logging.getLogger(__name__)


class LLaMAProvider(LLMProvider):
    """Local LLaMA model provider implementation.

    Requires llama-cpp-python to be installed:
        pip install 'planning-agent-orchestrator[llama]'
    """

    def __init__(self, config: LLMConfig) -> None:
        """Initialize the LLaMA provider.

        Args:
            config: LLM configuration.

        Raises:
            ValueError: If model path is not provided.
            ImportError: If llama-cpp-python is not installed.
        """
        if not config.llama_model_path:
            raise ValueError("LLaMA model path is required")

        try:
            from llama_cpp import Llama
        except ImportError as e:
            raise ImportError(
                "llama-cpp-python is required for LLaMA provider. "
                "Install it with: pip install llama-cpp-python"
            ) from e

        self.config = config

        logger.info("Loading LLaMA model", extra={"path": str(config.llama_model_path)})

        self.llm = Llama(
            model_path=str(config.llama_model_path),
            n_ctx=config.llama_n_ctx,
            n_threads=config.llama_n_threads,
            embedding=True,
            verbose=False,
        )

        logger.info("LLaMA model loaded successfully")

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
            kwargs["response_format"] = {
                "type": "json_object",
                "schema": response_format.get("schema", {}),
            }

        result = self.llm.create_chat_completion(
            messages=messages,
            max_tokens=max_tokens or 1024,
            temperature=temperature if temperature is not None else self.config.openai_temperature,
            **kwargs,
        )

        message = result["choices"][0]["message"]
        tool_calls = tuple(
            ToolCallRequest(
                id=call.get("id") or uuid.uuid4().hex,
                name=call["function"]["name"],
                arguments=_as_json_text(call["function"].get("arguments")),
            )
            for call in (message.get("tool_calls") or [])
        )
        return ChatCompletion(content=message.get("content"), tool_calls=tool_calls)

    def embed(self, texts: list[str]) -> list[list[float]]:
        result = self.llm.create_embedding(texts)
        return [list(item["embedding"]) for item in result["data"]]

    def count_tokens(self, text: str) -> int:
        """Count tokens using LLaMA tokenizer."""
        tokens = self.llm.tokenize(text.encode("utf-8"))
        return len(tokens)


def _as_json_text(arguments: Any) -> str:
    if isinstance(arguments, str):
        return arguments
    return json.dumps(arguments or {})
