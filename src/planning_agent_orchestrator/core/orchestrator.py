"""Main orchestrator implementation.

Builds every shared dependency once (LLM provider, memory, GitHub and Jira
clients, tools, agents) and hands them to workflow runs through an explicit
:class:`Services` container.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from planning_agent_orchestrator.agents.agent import AgentRegistry, AgentResult
from planning_agent_orchestrator.agents.catalog import build_agents
from planning_agent_orchestrator.core.config import OrchestratorConfig
from planning_agent_orchestrator.llm.factory import LLMFactory
from planning_agent_orchestrator.llm.provider import LLMProvider
from planning_agent_orchestrator.memory.store import MemoryStore
from planning_agent_orchestrator.orchestrator.github.client import GitHubClient
from planning_agent_orchestrator.orchestrator.jira.client import JiraClient
from planning_agent_orchestrator.orchestrator.workflow import (
    RunStore,
    Workflow,
    WorkflowRunner,
    WorkflowRunRecord,
    WorkflowRunResult,
)
from planning_agent_orchestrator.planning import build_workflows
from planning_agent_orchestrator.tools.base import ToolRegistry
from planning_agent_orchestrator.tools.github import github_tools
from planning_agent_orchestrator.tools.hallucination import hallucination_tool
from planning_agent_orchestrator.tools.jira import current_project_tools, jira_tools

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class Services:
    """Dependencies available to steps as ``ctx.services``."""

    llm: LLMProvider
    tools: ToolRegistry
    memory: MemoryStore
    agents: AgentRegistry
    github: GitHubClient | None = None
    jira: JiraClient | None = None


def build_tools(
    llm: LLMProvider,
    *,
    github: GitHubClient | None = None,
    jira: JiraClient | None = None,
) -> ToolRegistry:
    """Register the tools whose backing services are configured."""

    registry = ToolRegistry([hallucination_tool(llm), *current_project_tools()])
    if github is not None:
        for tool in github_tools(github):
            registry.register(tool)
    if jira is not None:
        for tool in jira_tools(jira):
            registry.register(tool)
    logger.info("Tools registered", extra={"tools": registry.ids()})
    return registry


class Orchestrator:
    """Entry point for running planning workflows and talking to agents."""

    def __init__(
        self,
        config: OrchestratorConfig | None = None,
        *,
        llm: LLMProvider | None = None,
        memory: MemoryStore | None = None,
        github: GitHubClient | None = None,
        jira: JiraClient | None = None,
        store: RunStore | None = None,
        workflows: Mapping[str, Workflow] | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            config: Configuration object. If None, loads from environment.
            llm: Provider override; built from ``config.llm`` when omitted.
            memory: Memory store override.
            github: GitHub client override.
            jira: Jira client override.
            store: Run store override.
            workflows: Workflows by id; defaults to the planning workflows.
        """
        self.config = config or OrchestratorConfig()

        logger.info("Initializing planning agent orchestrator")

        llm = llm or LLMFactory.create(self.config.llm)
        if memory is None:
            memory = MemoryStore(self.config.memory.db_path, embed=llm.embed)
        if github is None and self.config.github.token:
            github = GitHubClient(token=self.config.github.token, base_url=self.config.github.base_url)
        if jira is None and self.config.jira.configured:
            jira = JiraClient(
                base_url=self.config.jira.base_url or "",
                email=self.config.jira.email or "",
                token=self.config.jira.token or "",
            )

        tools = build_tools(llm, github=github, jira=jira)
        agents = build_agents(llm, tools, memory, max_tool_rounds=self.config.llm.max_tool_rounds)
        self.services = Services(
            llm=llm, tools=tools, memory=memory, agents=agents, github=github, jira=jira
        )
        self.workflows: dict[str, Workflow] = dict(workflows or build_workflows())
        self.runner = WorkflowRunner(
            services=self.services,
            store=store or RunStore(self.config.workflow.runs_path),
            default_concurrency=self.config.workflow.default_concurrency,
            workflows=self.workflows,
        )

        logger.info("Orchestrator initialized successfully")

    def get_workflow(self, workflow_id: str) -> Workflow:
        try:
            return self.workflows[workflow_id]
        except KeyError:
            raise KeyError(f"Unknown workflow: {workflow_id}") from None

    def run_workflow(
        self,
        workflow_id: str,
        payload: Any,
        *,
        runtime: Mapping[str, Any] | None = None,
        run_id: str | None = None,
    ) -> WorkflowRunResult:
        return self.runner.start(
            self.get_workflow(workflow_id), payload, runtime=runtime, run_id=run_id
        )

    def resume_run(
        self,
        run_id: str,
        resume_data: dict[str, Any] | None = None,
        *,
        step_path: str | None = None,
        runtime: Mapping[str, Any] | None = None,
    ) -> WorkflowRunResult:
        return self.runner.resume(run_id, resume_data, step_path=step_path, runtime=runtime)

    def get_run(self, run_id: str) -> WorkflowRunRecord:
        return self.runner.store.require(run_id)

    def list_runs(self, *, workflow_id: str | None = None) -> list[WorkflowRunRecord]:
        return self.runner.store.list(workflow_id=workflow_id)

    def ask(self, agent_id: str, prompt: str, *, session_id: str | None = None) -> AgentResult:
        """Send a single prompt to an agent (tools and memory included)."""

        return self.services.agents.get(agent_id).generate(prompt, session_id=session_id)

    def close(self) -> None:
        if self.services.github is not None:
            self.services.github.close()
        if self.services.jira is not None:
            self.services.jira.close()
        self.services.memory.close()
