"""FastAPI server adapter for planning-agent-orchestrator.

This module exposes a REST API over the orchestrator.

Design intent:
- Keep workflow and agent logic in `planning_agent_orchestrator.*`
- Keep server-specific concerns (routing, CORS, background runs) here
"""

from __future__ import annotations

__all__ = ["create_app"]

from planning_agent_orchestrator.server.app import create_app
