"""LLM package initialization."""

from planning_agent_orchestrator.llm.factory import LLMFactory
from planning_agent_orchestrator.llm.provider import ChatCompletion, LLMProvider, ToolCallRequest

__all__ = [
    "ChatCompletion",
    "LLMFactory",
    "LLMProvider",
    "ToolCallRequest",
]
