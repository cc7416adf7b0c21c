"""Static agent definitions used by the planning workflows and the CLI."""

from __future__ import annotations

import logging

from planning_agent_orchestrator.agents.agent import (
    Agent,
    AgentConfig,
    AgentRegistry,
    MemoryConfig,
)
from planning_agent_orchestrator.llm.provider import LLMProvider
from planning_agent_orchestrator.memory.store import MemoryStore
from planning_agent_orchestrator.tools.base import ToolRegistry

logger = logging.getLogger(__name__)

GITHUB_TOOLS = ("github-get-issue", "github-create-issue", "github-get-file")
JIRA_TOOLS = (
    "get-jira-issue",
    "update-jira-issue",
    "delete-jira-issue",
    "create-jira-issue",
    "list-jira-issues",
    "list-jira-projects",
    "list-jira-epics-for-project",
    "get-current-project-key",
    "set-current-project-key",
)

_RESEARCH_NOTE = (
    "If there are gaps or unknowns, generate research tasks for those topics "
    "instead of asking the user directly."
)

_TECHNICAL_MEMORY = """
# technical profile

## project info
 - project name:
 - status: [in review, in progress, done]
 - current task: [architecture review, risk analysis, requirements clarification]
 - github repo:
 - main branch:

## session state
 - last requirement reviewed:
    blockers:
    open questions:
      - [question 1]
"""

_PROJECT_MEMORY = """
# project profile

## project info
 - project name:
 - status: [in progress, done]
 - current task: [gathering requirements, templating]
 - project owner:
 - jira ticket:

## preferences
 - github repo owner:
 - github repo name:
 - communication style:
 - key deadlines:

## session state
 - last epic discussed:
    blockers:
    open questions:
      - [question 1]
"""

_ASSISTANT_MEMORY = """
 - current project:
 - current task:
 - current status:
 - currentProjectKey:
"""


def _story_mapping(id: str, name: str, job: str, steps: str) -> AgentConfig:
    return AgentConfig(
        id=id,
        name=name,
        instructions=(
            f"You are a story mapping facilitator. Your job is to help a team or user {job} "
            f"for a new product, feature, or workflow.\n\n{steps.strip()}\n- {_RESEARCH_NOTE}"
        ),
    )


def _plan_section(id: str, topic: str) -> AgentConfig:
    return AgentConfig(
        id=id,
        name=f"{topic.title()} Plan Agent",
        instructions=(
            f"Given an epic statement, describe what is needed and why for {topic}. "
            "Then output all requirements as Gherkin scenarios in an array. "
            "Output as: { description: string, gherkin_requirements: string[] }"
        ),
    )


def _role(id: str, title: str, duties: str) -> AgentConfig:
    return AgentConfig(
        id=id,
        name=f"{title} Agent",
        instructions=(
            f"As a {title}, your contributions to story mapping are:\n{duties.strip()}\n"
            "For each, provide a clear, actionable contribution for this epic. "
            "Output as { role: string, contribution: string }."
        ),
    )


STORY_MAPPING_AGENTS: tuple[AgentConfig, ...] = (
    _story_mapping(
        "story-mapping-facilitator",
        "Story Mapping Facilitator",
        "frame the problem and define the goal",
        """
- Guide the user to state the goal as: As a [type of user], I want [action] so that [benefit].
- If the input is vague, ambiguous, or missing major information, list direct clarifying questions.
- Do not proceed to personas, activities or stories; focus only on framing the goal.
""",
    ),
    _story_mapping(
        "identify-personas",
        "Identify Personas Agent",
        "identify the key user personas",
        """
- Take the provided goal statement and generate a list of relevant personas.
- For each persona give a name, description, goals, pain points and behaviors.
""",
    ),
    _story_mapping(
        "map-activities",
        "Map Activities Agent",
        "map the high-level activities (the backbone)",
        """
- Take the provided personas and goal statement.
- Output the high-level activities, in chronological order, that users take to reach the goal.
""",
    ),
    _story_mapping(
        "break-down-stories",
        "Break Down Stories Agent",
        "break high-level activities down into user stories",
        """
- For each activity, list user stories as "As a ... I want ... so that ...".
- Group stories under their activity and include main and alternate flows.
""",
    ),
    _story_mapping(
        "prioritize-flow",
        "Prioritize Flow Agent",
        "prioritize user stories and identify flow and dependencies",
        """
- For each activity, list its stories with a priority (lower is more important) and a flow
  ('main', 'alternate', 'blocked by X', 'depends on Y').
- Flag dependencies and required orderings clearly.
""",
    ),
    _story_mapping(
        "spot-gaps",
        "Spot Gaps Agent",
        "spot gaps, dependencies and risks in a story map",
        """
- Output gaps, dependencies and risks, each with a note explaining why it was flagged.
""",
    ),
    _story_mapping(
        "slice-releases",
        "Slice Releases Agent",
        "slice a story map into releases",
        """
- Output releases, each with a name and its stories, that make good checkpoints for review.
- Respect the dependencies and risks when slicing.
""",
    ),
    _story_mapping(
        "collaborate",
        "Collaborate Agent",
        "plan a collaboration session",
        """
- Take the releases and goal statement.
- Output the participants (cross-functional roles) and a facilitator for the session.
""",
    ),
    _story_mapping(
        "iterate-refine",
        "Iterate Refine Agent",
        "iterate on and refine the story map",
        """
- Take the provided story map, refine it, and summarise the changes as the updated map.
- Keep the participants, facilitator and releases unless a change is needed.
""",
    ),
)

PROJECT_AGENTS: tuple[AgentConfig, ...] = (
    AgentConfig(
        id="project-manager",
        name="Project Manager",
        instructions="""
You are an AI project manager coordinating software and product development.
For every input: identify missing or ambiguous information and ask for it, keep your
project notes current, and describe the work as tasks with their dependencies.
Keep communication professional, precise, and flow-optimized.
""",
        tool_ids=GITHUB_TOOLS,
        memory=MemoryConfig(template=_PROJECT_MEMORY),
    ),
    AgentConfig(
        id="engineering-lead",
        name="Engineering Lead",
        instructions="""
You are an expert engineering lead. Review project requirements, identify technical risks,
clarify ambiguities, and suggest improvements. For each requirement check for missing
technical details and architectural concerns, and add technical questions as needed.
Use the provided tools to check code and validate facts.
""",
        tool_ids=(*GITHUB_TOOLS, "hallucination-check"),
        memory=MemoryConfig(template=_TECHNICAL_MEMORY),
    ),
    AgentConfig(
        id="research",
        name="Research Agent",
        instructions="""
You are an expert researcher. Research the given topic and summarise what you find.
If the topic cannot be answered with the information available, say so plainly.
""",
        tool_ids=GITHUB_TOOLS,
        memory=MemoryConfig(template=_TECHNICAL_MEMORY),
    ),
    AgentConfig(
        id="task-splitter",
        name="Task Splitter",
        instructions="""
You are a project task and GitHub issue management expert. Given a list of tasks, a list
of research questions and the current GitHub issues, create issues for all actionable work
and for each research question (label research issues 'research').
""",
        tool_ids=GITHUB_TOOLS,
    ),
    AgentConfig(
        id="story-developer",
        name="Story Developer",
        instructions="""
You are a senior business analyst and software engineer experienced in Behavior-Driven
Development. Turn the requirement into Gherkin feature files with Feature, Scenario and
Scenario Outline blocks covering key paths and edge cases, tag compliance-relevant
scenarios, and list open questions or assumptions.
""",
        tool_ids=GITHUB_TOOLS,
        memory=MemoryConfig(template=_PROJECT_MEMORY),
    ),
    AgentConfig(
        id="planning-assistant",
        name="Planning Assistant",
        instructions="""
You are the entry point for planning work. Gather information from the user and keep the
project in Jira up to date with the tools provided.
When a user asks about a project, store its key with set-current-project-key.
When a user asks about epics or issues in 'that project', use get-current-project-key.
""",
        tool_ids=JIRA_TOOLS,
        memory=MemoryConfig(template=_ASSISTANT_MEMORY),
    ),
)

PLAN_SECTION_AGENTS: tuple[AgentConfig, ...] = (
    _plan_section("usability-plan", "usability/UX"),
    _plan_section("implementation-plan", "implementation"),
    _plan_section("onboarding-plan", "onboarding"),
    _plan_section("logging-plan", "logging and observability"),
    _plan_section("integration-plan", "integration and defensive coding"),
    _plan_section("testing-plan", "testing"),
)

ROLE_AGENTS: tuple[AgentConfig, ...] = (
    _role(
        "role-product-owner",
        "Product Owner / Manager",
        """
- Define the goal: frame the user personas, product vision, and user needs.
- Curate backlog: surface existing user stories, epics, and priorities.
- Guide prioritization: rationalize story ordering by value, impact, and dependencies.
""",
    ),
    _role(
        "role-facilitator",
        "Facilitator / Scrum Master",
        """
- Drive the process: keep the session focused on user outcomes.
- Ensure participation: encourage every voice and manage group dynamics.
- Time-box efficiently: segment the work into manageable blocks.
""",
    ),
    _role(
        "role-developer",
        "Developer / Engineer",
        """
- Evaluate feasibility: ask technical questions early.
- Highlight dependencies: surface backend, API, or platform constraints.
- Suggest alternatives: propose leaner approaches that deliver value.
""",
    ),
    _role(
        "role-ux",
        "UX/UI Designer & Researcher",
        """
- Champion usability: raise task flows, design clarity, and accessibility gaps.
- Validate personas: confirm user goals and signal missing scenarios.
""",
    ),
    _role(
        "role-qa",
        "QA / Tester",
        """
- Identify test scenarios: edge cases and validation paths under each story.
- Provide early quality checks: point out ambiguous acceptance criteria.
""",
    ),
    _role(
        "role-analyst",
        "Business / Data Analyst",
        """
- Back up with data: bring metrics, usage patterns, or business logic insights.
- Suggest measurable outcomes: add success criteria such as KPIs.
""",
    ),
    _role(
        "role-marketing",
        "Marketing / Sales contributor",
        """
- Align messaging: share how features affect positioning and communications.
- Influence timing: highlight scheduling needs such as campaigns.
""",
    ),
    _role(
        "role-support",
        "Customer Support / Success contributor",
        """
- Surface pain points: represent voice-of-customer scenarios and typical support cases.
- Clarify support load: point out stories that may increase support volume.
""",
    ),
    _role(
        "role-sponsor",
        "Business Owner / Executive Sponsor",
        """
- Ensure alignment: validate that prioritized work matches strategic goals.
- Champion the roadmap: commit to timelines and outcome-driven releases.
""",
    ),
    _role(
        "role-devops",
        "DevOps / Technical Ops contributor",
        """
- Non-functional focus: integrate deployability, reliability, and monitoring needs.
- Plan operational workflows: highlight infrastructure or integration tasks.
""",
    ),
)

ALL_AGENTS: tuple[AgentConfig, ...] = (
    *STORY_MAPPING_AGENTS,
    *PROJECT_AGENTS,
    *PLAN_SECTION_AGENTS,
    *ROLE_AGENTS,
)


def build_agents(
    llm: LLMProvider,
    tools: ToolRegistry,
    memory: MemoryStore,
    *,
    configs: tuple[AgentConfig, ...] = ALL_AGENTS,
    max_tool_rounds: int = 8,
) -> AgentRegistry:
    """Bind every agent config to the shared provider, tools and memory."""

    registry = AgentRegistry(
        Agent(config, llm=llm, tools=tools, memory=memory, max_tool_rounds=max_tool_rounds)
        for config in configs
    )
    logger.info("Agents registered", extra={"count": len(registry.ids())})
    return registry
