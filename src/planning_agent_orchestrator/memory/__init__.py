"""Agent memory."""

from planning_agent_orchestrator.memory.store import DocumentMatch, MemoryStore

__all__ = ["DocumentMatch", "MemoryStore"]
