"""Tools agents can call."""

from planning_agent_orchestrator.tools.base import Tool, ToolContext, ToolError, ToolRegistry, create_tool

__all__ = [
    "Tool",
    "ToolContext",
    "ToolError",
    "ToolRegistry",
    "create_tool",
]
