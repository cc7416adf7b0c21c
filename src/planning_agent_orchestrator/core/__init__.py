"""Core package initialization."""

from planning_agent_orchestrator.core.config import OrchestratorConfig
from planning_agent_orchestrator.core.orchestrator import Orchestrator, Services

__all__ = [
    "Orchestrator",
    "OrchestratorConfig",
    "Services",
]
