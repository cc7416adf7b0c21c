"""LLM-backed agents.

An agent is a static configuration (instructions, tool ids, optional working
memory) bound to an LLM provider, the tool registry and the memory store.
``generate`` runs the chat/tool-call loop until the model produces a final
answer, optionally parsed into a pydantic model.
"""

from __future__ import annotations

import json
import logging
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from planning_agent_orchestrator.llm.provider import ChatCompletion, LLMProvider, ToolCallRequest
from planning_agent_orchestrator.memory.store import MemoryStore
from planning_agent_orchestrator.tools.base import (
    Tool,
    ToolContext,
    ToolError,
    ToolRegistry,
    create_tool,
)

logger = logging.getLogger(__name__)

UPDATE_WORKING_MEMORY = "update_working_memory"
DEFAULT_SESSION = "default"

_FENCED_JSON_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


class AgentOutputError(Exception):
    """The model's final answer did not match the requested output shape."""

    def __init__(self, agent_id: str, message: str, *, raw: str | None = None) -> None:
        super().__init__(message)
        self.agent_id = agent_id
        self.raw = raw

    def __str__(self) -> str:
        return f"Agent {self.agent_id!r}: {super().__str__()}"


@dataclass(frozen=True, slots=True)
class MemoryConfig:
    """Working memory settings; the template seeds an empty scratchpad."""

    template: str = ""


@dataclass(frozen=True, slots=True)
class AgentConfig:
    id: str
    name: str
    instructions: str
    tool_ids: tuple[str, ...] = ()
    memory: MemoryConfig | None = None
    temperature: float | None = None


@dataclass(frozen=True, slots=True)
class ToolCallRecord:
    tool_id: str
    arguments: Any
    result: Any = None
    error: str | None = None


@dataclass(frozen=True, slots=True)
class AgentResult:
    text: str
    object: Any = None
    tool_calls: tuple[ToolCallRecord, ...] = field(default_factory=tuple)


class _WorkingMemoryUpdate(BaseModel):
    memory: str = Field(description="The complete updated working memory, in the template's format")


class _WorkingMemoryAck(BaseModel):
    success: bool


def _strip_fences(text: str) -> str:
    stripped = text.strip()
    match = _FENCED_JSON_RE.match(stripped)
    return match.group(1) if match else stripped


class Agent:
    def __init__(
        self,
        config: AgentConfig,
        *,
        llm: LLMProvider,
        tools: ToolRegistry | None = None,
        memory: MemoryStore | None = None,
        max_tool_rounds: int = 8,
    ) -> None:
        if config.memory is not None and memory is None:
            raise ValueError(f"Agent {config.id!r} uses working memory but no memory store was given")
        self.config = config
        self.llm = llm
        self.memory = memory
        self.max_tool_rounds = max_tool_rounds
        self._tools: dict[str, Tool] = {
            t.id: t for t in (tools.subset(config.tool_ids) if tools is not None else [])
        }
        if config.memory is not None:
            self._tools[UPDATE_WORKING_MEMORY] = self._working_memory_tool()

    @property
    def id(self) -> str:
        return self.config.id

    @property
    def tool_ids(self) -> list[str]:
        return list(self._tools)

    def _working_memory_tool(self) -> Tool:
        memory = self.memory
        if memory is None:
            raise ValueError(f"Agent {self.config.id!r} has no memory store for working memory")

        def update(args: _WorkingMemoryUpdate, ctx: ToolContext) -> _WorkingMemoryAck:
            memory.set_working_memory(
                self.config.id, ctx.session_id or DEFAULT_SESSION, args.memory
            )
            return _WorkingMemoryAck(success=True)

        return create_tool(
            id=UPDATE_WORKING_MEMORY,
            description="Replace your working memory with an updated version.",
            input_schema=_WorkingMemoryUpdate,
            output_schema=_WorkingMemoryAck,
            execute=update,
        )

    def _system_messages(self, session_id: str) -> list[dict[str, Any]]:
        messages: list[dict[str, Any]] = [{"role": "system", "content": self.config.instructions.strip()}]
        if self.config.memory is not None and self.memory is not None:
            current = self.memory.get_working_memory(self.config.id, session_id)
            content = current if current is not None else self.config.memory.template.strip()
            messages.append(
                {
                    "role": "system",
                    "content": (
                        "Working memory (keep it current by calling "
                        f"{UPDATE_WORKING_MEMORY} when you learn something new):\n{content}"
                    ),
                }
            )
        return messages

    def generate(
        self,
        prompt: str | Iterable[Mapping[str, Any]],
        *,
        output: type[BaseModel] | None = None,
        session_id: str | None = None,
        runtime: Mapping[str, Any] | None = None,
    ) -> AgentResult:
        """Run the model (and any tools it calls) to a final answer.

        Args:
            prompt: User prompt, or a list of chat messages.
            output: Pydantic model the final answer must parse into.
            session_id: Memory session; defaults to a shared session.
            runtime: Caller-supplied values handed to tools.

        Returns:
            The final text, the parsed object when ``output`` is given, and a
            record of every tool call made.

        Raises:
            AgentOutputError: the answer does not match ``output`` or the tool
                round limit was hit.
        """

        session = session_id or DEFAULT_SESSION
        messages = self._system_messages(session)
        if isinstance(prompt, str):
            messages.append({"role": "user", "content": prompt})
        else:
            messages.extend(dict(m) for m in prompt)

        tool_ctx = ToolContext(
            agent_id=self.config.id,
            session_id=session,
            runtime=dict(runtime or {}),
            memory=self.memory,
        )
        specs = [t.function_spec() for t in self._tools.values()] or None
        response_format = (
            {"name": output.__name__, "schema": output.model_json_schema()} if output else None
        )
        records: list[ToolCallRecord] = []

        logger.debug(
            "Agent generating",
            extra={"agent_id": self.config.id, "session_id": session, "tools": len(self._tools)},
        )
        for _ in range(self.max_tool_rounds + 1):
            completion = self.llm.complete(
                messages,
                tools=specs,
                response_format=response_format,
                temperature=self.config.temperature,
            )
            if not completion.tool_calls:
                return self._finish(completion, output, records)

            messages.append(_assistant_message(completion))
            for call in completion.tool_calls:
                record = self._call_tool(call, tool_ctx)
                records.append(record)
                messages.append(
                    {
                        "role": "tool",
                        "tool_call_id": call.id,
                        "content": json.dumps(
                            {"error": record.error} if record.error else record.result,
                            default=str,
                        ),
                    }
                )

        raise AgentOutputError(
            self.config.id, f"no final answer after {self.max_tool_rounds} tool rounds"
        )

    def _call_tool(self, call: ToolCallRequest, ctx: ToolContext) -> ToolCallRecord:
        tool = self._tools.get(call.name)
        if tool is None:
            logger.warning(
                "Model requested an unknown tool",
                extra={"agent_id": self.config.id, "tool_id": call.name},
            )
            return ToolCallRecord(call.name, call.arguments, error=f"Unknown tool: {call.name}")
        try:
            result = tool.run(call.arguments, ctx)
        except ToolError as e:
            logger.warning(
                "Tool call failed",
                extra={"agent_id": self.config.id, "tool_id": call.name, "error": str(e)},
            )
            return ToolCallRecord(call.name, call.arguments, error=str(e))
        return ToolCallRecord(call.name, call.arguments, result=result)

    def _finish(
        self,
        completion: ChatCompletion,
        output: type[BaseModel] | None,
        records: list[ToolCallRecord],
    ) -> AgentResult:
        text = completion.content or ""
        parsed: Any = None
        if output is not None:
            try:
                parsed = output.model_validate_json(_strip_fences(text))
            except ValidationError as e:
                raise AgentOutputError(
                    self.config.id,
                    f"answer does not match {output.__name__}: {e.error_count()} error(s)",
                    raw=text,
                ) from e
        logger.debug(
            "Agent finished", extra={"agent_id": self.config.id, "tool_calls": len(records)}
        )
        return AgentResult(text=text, object=parsed, tool_calls=tuple(records))

    def __repr__(self) -> str:
        return f"Agent(id={self.config.id!r}, tools={self.tool_ids})"


def _assistant_message(completion: ChatCompletion) -> dict[str, Any]:
    return {
        "role": "assistant",
        "content": completion.content,
        "tool_calls": [
            {
                "id": call.id,
                "type": "function",
                "function": {"name": call.name, "arguments": call.arguments},
            }
            for call in completion.tool_calls
        ],
    }


class AgentRegistry:
    """Agents by id, built once at startup."""

    def __init__(self, agents: Iterable[Agent] = ()) -> None:
        self._agents: dict[str, Agent] = {}
        for agent in agents:
            self.register(agent)

    def register(self, agent: Agent) -> None:
        if agent.id in self._agents:
            raise ValueError(f"Duplicate agent id: {agent.id}")
        self._agents[agent.id] = agent

    def get(self, agent_id: str) -> Agent:
        try:
            return self._agents[agent_id]
        except KeyError:
            raise KeyError(f"Unknown agent: {agent_id}") from None

    def __contains__(self, agent_id: object) -> bool:
        return agent_id in self._agents

    def ids(self) -> list[str]:
        return sorted(self._agents)
