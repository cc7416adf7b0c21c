"""Helpers shared by the planning workflows."""

from __future__ import annotations

from typing import TypeVar

from pydantic import BaseModel

from planning_agent_orchestrator.orchestrator.workflow.steps import StepContext

T = TypeVar("T", bound=BaseModel)


def session_id(ctx: StepContext) -> str:
    """Memory session for agents called from a run: the caller's, else the run id."""

    return str(ctx.runtime.get("session_id") or ctx.run_id)


def ask(ctx: StepContext, agent_id: str, prompt: str, output: type[T]) -> T:
    """Ask an agent for a structured answer."""

    agent = ctx.services.agents.get(agent_id)
    result = agent.generate(
        prompt.strip(), output=output, session_id=session_id(ctx), runtime=ctx.runtime
    )
    return result.object


def bullet_list(items: list[str], *, empty: str = "(none)") -> str:
    return "\n".join(f"- {item}" for item in items) if items else empty
