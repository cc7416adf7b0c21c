"""Planning Agent Orchestrator.

LLM-driven planning workflows built on a small typed step/workflow engine:
- story mapping, epic mapping, role contributions and project planning
- GitHub and Jira tools for agents
- sqlite-backed working memory
"""

__version__ = "0.1.0"

from planning_agent_orchestrator.core.config import OrchestratorConfig

__all__ = ["__version__", "OrchestratorConfig"]
