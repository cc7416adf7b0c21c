"""Tool definitions and the tool registry.

A tool is a named capability an agent can call: it declares its input and
output shapes and runs synchronously. Tools are registered once at startup and
resolved by id; agents only see the subset they are configured with.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from planning_agent_orchestrator.orchestrator.workflow.errors import SchemaValidationError
from planning_agent_orchestrator.orchestrator.workflow.schema import Schema, as_schema

logger = logging.getLogger(__name__)


class ToolError(Exception):
    """A tool could not complete (bad arguments or an external service failure)."""

    def __init__(self, tool_id: str, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.tool_id = tool_id
        self.status_code = status_code

    def __str__(self) -> str:
        return f"Tool {self.tool_id!r} failed: {super().__str__()}"


@dataclass(frozen=True, slots=True)
class ToolContext:
    """Who is calling a tool, and with which shared services."""

    agent_id: str | None = None
    session_id: str | None = None
    runtime: Mapping[str, Any] = field(default_factory=dict)
    memory: Any = None


@dataclass(frozen=True, slots=True)
class Tool:
    id: str
    description: str
    input_schema: Schema
    output_schema: Schema
    execute: Callable[[Any, ToolContext], Any]

    def run(self, raw_args: Any, ctx: ToolContext) -> Any:
        """Validate arguments, execute, validate and dump the result.

        Raises:
            ToolError: invalid arguments, invalid result, or a tool failure.
        """

        if isinstance(raw_args, str):
            try:
                raw_args = json.loads(raw_args or "{}")
            except json.JSONDecodeError as e:
                raise ToolError(self.id, f"arguments are not valid JSON: {e}") from e
        try:
            args = self.input_schema.validate(raw_args)
        except SchemaValidationError as e:
            raise ToolError(self.id, f"invalid arguments: {e.errors}") from e

        logger.debug("Running tool", extra={"tool_id": self.id, "agent_id": ctx.agent_id})
        result = self.execute(args, ctx)

        try:
            return self.output_schema.dump(self.output_schema.validate(result))
        except SchemaValidationError as e:
            raise ToolError(self.id, f"invalid result: {e.errors}") from e

    def function_spec(self) -> dict[str, Any]:
        """OpenAI function-calling spec for this tool."""

        return {
            "type": "function",
            "function": {
                "name": self.id,
                "description": self.description,
                "parameters": self.input_schema.json_schema(),
            },
        }


def create_tool(
    *,
    id: str,
    description: str,
    input_schema: Any,
    output_schema: Any,
    execute: Callable[[Any, ToolContext], Any],
) -> Tool:
    return Tool(
        id=id,
        description=description,
        input_schema=as_schema(input_schema),
        output_schema=as_schema(output_schema),
        execute=execute,
    )


class ToolRegistry:
    """Tools by id."""

    def __init__(self, tools: Iterable[Tool] = ()) -> None:
        self._tools: dict[str, Tool] = {}
        for tool in tools:
            self.register(tool)

    def register(self, tool: Tool) -> None:
        if tool.id in self._tools:
            raise ValueError(f"Duplicate tool id: {tool.id}")
        self._tools[tool.id] = tool

    def get(self, tool_id: str) -> Tool:
        try:
            return self._tools[tool_id]
        except KeyError:
            raise KeyError(f"Unknown tool: {tool_id}") from None

    def __contains__(self, tool_id: object) -> bool:
        return tool_id in self._tools

    def ids(self) -> list[str]:
        return sorted(self._tools)

    def subset(self, tool_ids: Iterable[str]) -> list[Tool]:
        """Tools for ``tool_ids`` that are registered; missing ids are skipped."""

        selected = []
        for tool_id in tool_ids:
            if tool_id in self._tools:
                selected.append(self._tools[tool_id])
            else:
                logger.warning("Tool not registered; skipping", extra={"tool_id": tool_id})
        return selected
