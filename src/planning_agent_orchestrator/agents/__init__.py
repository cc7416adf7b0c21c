"""Agents: LLM + instructions + tools + optional working memory."""

from planning_agent_orchestrator.agents.agent import (
    Agent,
    AgentConfig,
    AgentOutputError,
    AgentRegistry,
    AgentResult,
    MemoryConfig,
    ToolCallRecord,
)
from planning_agent_orchestrator.agents.catalog import ALL_AGENTS, build_agents

__all__ = [
    "ALL_AGENTS",
    "Agent",
    "AgentConfig",
    "AgentOutputError",
    "AgentRegistry",
    "AgentResult",
    "MemoryConfig",
    "ToolCallRecord",
    "build_agents",
]
