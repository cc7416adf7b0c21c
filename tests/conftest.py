"""Test configuration and fixtures."""

from __future__ import annotations

import json
from collections.abc import Callable, Iterator
from pathlib import Path
from typing import Any

import pytest

from planning_agent_orchestrator.agents.agent import AgentResult
from planning_agent_orchestrator.core.config import (
    GitHubConfig,
    JiraConfig,
    LLMConfig,
    MemoryConfig,
    OrchestratorConfig,
    WorkflowConfig,
)
from planning_agent_orchestrator.llm.provider import ChatCompletion, LLMProvider, ToolCallRequest
from planning_agent_orchestrator.memory.store import MemoryStore


class FakeLLM(LLMProvider):
    """Provider that replays scripted completions and records every request."""

    def __init__(self, script: list[ChatCompletion | str] | None = None) -> None:
        self.script = list(script or [])
        self.requests: list[dict[str, Any]] = []

    def complete(
        self,
        messages: list[dict[str, Any]],
        *,
        tools: list[dict[str, Any]] | None = None,
        response_format: dict[str, Any] | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> ChatCompletion:
        self.requests.append(
            {
                "messages": [dict(m) for m in messages],
                "tools": tools,
                "response_format": response_format,
            }
        )
        if not self.script:
            raise AssertionError("FakeLLM script exhausted")
        item = self.script.pop(0)
        return ChatCompletion(content=item) if isinstance(item, str) else item

    def embed(self, texts: list[str]) -> list[list[float]]:
        # Letter-frequency vectors: similar words land close together.
        vectors = []
        for text in texts:
            lowered = text.lower()
            vectors.append([float(lowered.count(c)) for c in "abcdefghijklmnopqrstuvwxyz"])
        return vectors

    def count_tokens(self, text: str) -> int:
        return len(text.split())


def tool_call(name: str, arguments: dict[str, Any], call_id: str = "call-1") -> ChatCompletion:
    return ChatCompletion(
        content=None,
        tool_calls=(ToolCallRequest(id=call_id, name=name, arguments=json.dumps(arguments)),),
    )


Responder = dict[str, Any] | Callable[[str], dict[str, Any]]


class FakeAgent:
    def __init__(self, agent_id: str, responder: Responder, calls: list[tuple[str, str]]) -> None:
        self.id = agent_id
        self._responder = responder
        self._calls = calls

    def generate(
        self,
        prompt: str,
        *,
        output: Any = None,
        session_id: str | None = None,
        runtime: Any = None,
    ) -> AgentResult:
        self._calls.append((self.id, prompt))
        data = self._responder(prompt) if callable(self._responder) else self._responder
        obj = output.model_validate(data) if output is not None else None
        return AgentResult(text=json.dumps(data), object=obj)


class FakeAgents:
    """Agent registry stand-in: answers each agent id with canned JSON."""

    def __init__(self, responses: dict[str, Responder]) -> None:
        self.responses = responses
        self.calls: list[tuple[str, str]] = []

    def get(self, agent_id: str) -> FakeAgent:
        if agent_id not in self.responses:
            raise KeyError(f"Unknown agent: {agent_id}")
        return FakeAgent(agent_id, self.responses[agent_id], self.calls)

    def __contains__(self, agent_id: object) -> bool:
        return agent_id in self.responses

    def ids(self) -> list[str]:
        return sorted(self.responses)

    def called(self, agent_id: str) -> list[str]:
        return [prompt for aid, prompt in self.calls if aid == agent_id]


class FakeServices:
    def __init__(self, agents: FakeAgents) -> None:
        self.agents = agents


@pytest.fixture
def fake_llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def memory() -> Iterator[MemoryStore]:
    store = MemoryStore(":memory:", embed=FakeLLM().embed)
    yield store
    store.close()


@pytest.fixture
def temp_state_dir(tmp_path: Path) -> Path:
    """Provide a temporary state directory."""
    state_dir = tmp_path / ".state"
    state_dir.mkdir()
    return state_dir


@pytest.fixture
def llm_config() -> LLMConfig:
    """Provide a test LLM configuration."""
    return LLMConfig(
        provider="openai",
        openai_api_key="test-key",
        openai_model="gpt-4o-mini",
    )


@pytest.fixture
def orchestrator_config(llm_config: LLMConfig, temp_state_dir: Path) -> OrchestratorConfig:
    """Provide a test orchestrator configuration without GitHub or Jira."""
    return OrchestratorConfig(
        log_level="DEBUG",
        debug=True,
        llm=llm_config,
        github=GitHubConfig(token=None),
        jira=JiraConfig(base_url=None, email=None, token=None),
        memory=MemoryConfig(db_path=temp_state_dir / "memory.db"),
        workflow=WorkflowConfig(runs_path=temp_state_dir / "runs.json"),
    )
