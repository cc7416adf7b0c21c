"""Unit tests for the planning workflows, with canned agent answers."""

from __future__ import annotations

import json
from typing import Any

import pytest
from conftest import FakeAgents, FakeServices

from planning_agent_orchestrator.orchestrator.workflow import StepExecutionError, WorkflowRunner
from planning_agent_orchestrator.planning import WORKFLOWS, build_workflows
from planning_agent_orchestrator.planning.epic_mapping import build_epic_mapping_workflow
from planning_agent_orchestrator.planning.project_planning import build_project_workflow
from planning_agent_orchestrator.planning.role_contributions import (
    ROLE_AGENTS,
    build_role_contributions_workflow,
)
from planning_agent_orchestrator.planning.story_mapping import build_story_mapping_workflow


def _facilitator(prompt: str) -> dict[str, Any]:
    if "Answers to your questions" in prompt:
        return {
            "goal_statement": "As a tenant in Leeds, I want to report repairs online so that they get fixed.",
            "major_questions": [],
            "research_tasks": ["Check landlord APIs"],
        }
    return {
        "goal_statement": "As a tenant, I want to report repairs online so that they get fixed.",
        "major_questions": ["Which cities?"],
        "research_tasks": ["Survey tenants"],
    }


STORY_AGENTS: dict[str, Any] = {
    "story-mapping-facilitator": _facilitator,
    "identify-personas": {"personas": [{"name": "Tenant", "description": "Rents a flat"}]},
    "map-activities": {"activities": ["Report repair", "Track repair"]},
    "break-down-stories": {
        "activity_stories": [
            {"activity": "Report repair", "stories": ["Submit a form", "Attach a photo"]},
            {"activity": "Track repair", "stories": ["See status"]},
        ]
    },
    "prioritize-flow": {
        "prioritized_stories": [
            {
                "activity": "Report repair",
                "stories": [
                    {"story": "Submit a form", "priority": 1},
                    {"story": "Attach a photo", "priority": 2, "flow": "alternate"},
                ],
            }
        ]
    },
    "spot-gaps": {"gaps": ["Out of hours"], "dependencies": ["Landlord system"], "risks": ["Spam"]},
    "slice-releases": {
        "releases": [
            {"name": "MVP", "stories": ["Submit a form"]},
            {"name": "V2", "stories": ["Attach a photo", "See status"]},
        ]
    },
    "collaborate": {"participants": ["Product owner", "Developer"], "facilitator": "Product owner"},
    "iterate-refine": {"updated_map": "Moved photos to V2."},
}


def test_every_planning_workflow_is_committed() -> None:
    assert set(WORKFLOWS) == {
        "story-mapping-workflow",
        "epic-mapping-workflow",
        "role-contributions-workflow",
        "project-workflow",
    }
    assert all(w.committed for w in build_workflows().values())


def test_story_mapping_pauses_for_questions_then_completes() -> None:
    agents = FakeAgents(STORY_AGENTS)
    runner = WorkflowRunner(services=FakeServices(agents))
    runtime = {"start_date": "2025-03-03", "session_id": "workshop"}

    suspended = runner.start(
        build_story_mapping_workflow(),
        {"goal_statement": "Tenants report repairs"},
        runtime=runtime,
    )

    assert suspended.is_suspended
    (entry,) = suspended.suspended
    assert entry.path == "clarify-goal"
    assert entry.payload["major_questions"] == ["Which cities?"]
    assert agents.called("identify-personas") == []

    result = runner.resume(
        suspended.run_id, {"answers": {"Which cities?": "Leeds"}}, runtime=runtime
    )

    assert result.status == "succeeded"
    story_map = result.output["story_map"]
    assert story_map["goal_statement"].startswith("As a tenant in Leeds")
    assert story_map["research_tasks"] == ["Survey tenants", "Check landlord APIs"]
    assert [p["name"] for p in story_map["personas"]] == ["Tenant"]
    assert story_map["session_blocks"] == [
        {"date": "2025-03-03", "duration_hours": 2.0, "focus": "Release: MVP"},
        {"date": "2025-03-04", "duration_hours": 2.0, "focus": "Release: V2"},
    ]
    assert story_map["updated_map"] == "Moved photos to V2."
    assert json.loads(result.output["document"]) == story_map
    assert "Q: Which cities?\nA: Leeds" in agents.called("story-mapping-facilitator")[1]


def test_story_mapping_clear_goal_skips_clarification() -> None:
    responses = dict(STORY_AGENTS)
    responses["story-mapping-facilitator"] = {
        "goal_statement": "As a tenant, I want to report repairs online.",
        "major_questions": [],
    }
    agents = FakeAgents(responses)

    result = WorkflowRunner(services=FakeServices(agents)).start(
        build_story_mapping_workflow(), {"goal_statement": "Tenants report repairs"}
    )

    assert result.status == "succeeded"
    assert len(agents.called("story-mapping-facilitator")) == 1
    assert result.output["story_map"]["goal_statement"] == "As a tenant, I want to report repairs online."


def _section(name: str) -> dict[str, Any]:
    return {"description": f"{name} plan", "gherkin_requirements": [f"Given {name}, then done"]}


def test_epic_mapping_gathers_all_sections() -> None:
    responses: dict[str, Any] = {
        "identify-personas": {"personas": [{"name": "Tenant", "description": "rents"}]},
        "research": {"research_tasks": ["Audit the current form"]},
    }
    for name in ("usability", "implementation", "onboarding", "logging", "integration", "testing"):
        responses[f"{name}-plan"] = _section(name)

    result = WorkflowRunner(services=FakeServices(FakeAgents(responses))).start(
        build_epic_mapping_workflow(), {"epic_statement": "Online repairs"}
    )

    document = result.output["document"]
    assert document.startswith("# Epic Mapping Document")
    headings = [line for line in document.splitlines() if line.startswith("## ")]
    assert headings == [
        "## Personas",
        "## Research",
        "## Usability",
        "## Implementation",
        "## Onboarding",
        "## Logging",
        "## Integration",
        "## Testing",
    ]
    assert "Given a user persona named Tenant" in document
    assert "then complete the task: Audit the current form" in document


def test_epic_mapping_fails_when_a_section_agent_returns_garbage() -> None:
    responses: dict[str, Any] = {
        "identify-personas": {"personas": []},
        "research": {"research_tasks": []},
    }
    for name in ("usability", "implementation", "onboarding", "logging", "integration"):
        responses[f"{name}-plan"] = _section(name)
    responses["testing-plan"] = {"nope": True}

    with pytest.raises(StepExecutionError) as exc:
        WorkflowRunner(services=FakeServices(FakeAgents(responses))).start(
            build_epic_mapping_workflow(), {"epic_statement": "Online repairs"}
        )

    assert exc.value.step_id == "testing"


def _role_responder(agent_id: str):
    def respond(prompt: str) -> dict[str, Any]:
        revised = "Your previous:" in prompt
        return {"role": agent_id, "contribution": f"{agent_id} {'revised' if revised else 'first'}"}

    return respond


def test_role_contributions_collects_revised_feedback() -> None:
    agents = FakeAgents({a: _role_responder(a) for a in ROLE_AGENTS.values()})

    result = WorkflowRunner(services=FakeServices(agents)).start(
        build_role_contributions_workflow(), {"epic_statement": "Online repairs"}
    )

    document = result.output["document"]
    assert document.startswith("# Role Contributions")
    sections = [line[3:] for line in document.splitlines() if line.startswith("## ")]
    assert sections == list(ROLE_AGENTS.values())
    assert document.count(" revised") == len(ROLE_AGENTS)
    feedback_prompt = agents.called("role-qa")[1]
    assert "Epic: Online repairs" in feedback_prompt
    assert "role-developer first" in feedback_prompt


def _research(prompt: str) -> dict[str, Any]:
    if "Question: q1" in prompt:
        return {"answer": "a1"}
    return {"could_not_answer": True}


PROJECT_AGENTS: dict[str, Any] = {
    "project-manager": {"tasks": ["t1"], "dependencies": ["d1"], "open_questions": ["q0"]},
    "engineering-lead": {
        "open_questions": ["q1", "q2"],
        "user_questions": ["Budget?"],
        "data_sources": ["Tenant survey"],
        "technical_notes": "Use the existing API.",
    },
    "research": _research,
}


def test_project_workflow_waits_for_user_answers_then_researches() -> None:
    agents = FakeAgents(PROJECT_AGENTS)
    runner = WorkflowRunner(services=FakeServices(agents))

    suspended = runner.start(build_project_workflow(), {"idea": "  Online repairs  "})

    assert suspended.suspended[0].path == "collect-user-answers"
    assert suspended.suspended[0].payload == {"user_questions": ["Budget?"]}

    result = runner.resume(suspended.run_id, {"answers": {"Budget?": "10k"}})

    output = result.output
    assert output["answers"] == {"Budget?": "10k", "q1": "a1"}
    assert output["open_questions"] == ["q2"]
    assert output["tasks"] == ["t1"]
    assert output["data_sources"] == ["Tenant survey"]
    assert "Project Idea: Online repairs" in output["summary"]
    assert "- q2" in output["summary"]
    assert len(agents.called("research")) == 2


def test_project_workflow_without_open_questions_keeps_the_review() -> None:
    responses = dict(PROJECT_AGENTS)
    responses["engineering-lead"] = {
        "open_questions": [],
        "user_questions": [],
        "data_sources": ["Repairs log"],
        "technical_notes": "Reuse the portal.",
    }
    agents = FakeAgents(responses)

    result = WorkflowRunner(services=FakeServices(agents)).start(
        build_project_workflow(), {"idea": "Online repairs"}
    )

    assert result.status == "succeeded"
    assert result.output["tasks"] == ["t1"]
    assert result.output["data_sources"] == ["Repairs log"]
    assert result.output["technical_notes"] == "Reuse the portal."
    assert result.output["open_questions"] == []
    assert "Project Idea: Online repairs" in result.output["summary"]
    assert agents.called("research") == []


def test_project_workflow_keeps_user_answers_when_nothing_needs_research() -> None:
    responses = dict(PROJECT_AGENTS)
    responses["engineering-lead"] = {
        "open_questions": [],
        "user_questions": ["Budget?"],
        "data_sources": ["Tenant survey"],
    }
    runner = WorkflowRunner(services=FakeServices(FakeAgents(responses)))

    suspended = runner.start(build_project_workflow(), {"idea": "Online repairs"})
    result = runner.resume(suspended.run_id, {"answers": {"Budget?": "10k"}})

    output = result.output
    assert output["answers"] == {"Budget?": "10k"}
    assert output["user_questions"] == ["Budget?"]
    assert output["tasks"] == ["t1"]
    assert output["data_sources"] == ["Tenant survey"]
    assert "- Budget?: 10k" in output["summary"]


def test_project_research_respects_concurrency_setting() -> None:
    workflow = build_project_workflow(research_concurrency=1)

    assert workflow.nodes[5].concurrency == 1
