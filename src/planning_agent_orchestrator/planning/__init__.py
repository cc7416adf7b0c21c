"""Planning workflows built on the step/workflow engine."""

from planning_agent_orchestrator.orchestrator.workflow import Workflow
from planning_agent_orchestrator.planning.epic_mapping import build_epic_mapping_workflow
from planning_agent_orchestrator.planning.project_planning import build_project_workflow
from planning_agent_orchestrator.planning.role_contributions import (
    build_role_contributions_workflow,
)
from planning_agent_orchestrator.planning.story_mapping import build_story_mapping_workflow


def build_workflows() -> dict[str, Workflow]:
    """Fresh, committed instances of every planning workflow, by id."""

    workflows = [
        build_story_mapping_workflow(),
        build_epic_mapping_workflow(),
        build_role_contributions_workflow(),
        build_project_workflow(),
    ]
    return {w.id: w for w in workflows}


WORKFLOWS: dict[str, Workflow] = build_workflows()

__all__ = [
    "WORKFLOWS",
    "build_epic_mapping_workflow",
    "build_project_workflow",
    "build_role_contributions_workflow",
    "build_story_mapping_workflow",
    "build_workflows",
]
