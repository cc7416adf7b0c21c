"""Story mapping workflow.

Frames the goal (pausing for answers when the goal is unclear), then walks the
classic story mapping stages: personas, activity backbone, stories,
prioritisation, gaps, release slicing, collaboration, time-boxing and a final
refinement. Every stage carries the earlier stages forward so the last step
holds the whole map.
"""

from __future__ import annotations

import json
from datetime import date, timedelta
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from planning_agent_orchestrator.orchestrator.workflow import StepContext, Workflow, step
from planning_agent_orchestrator.planning.common import ask, bullet_list

FACILITATOR = "story-mapping-facilitator"
SESSION_HOURS = 2.0


class GoalInput(BaseModel):
    goal_statement: str = Field(description="As a [type of user], I want [action] so that [benefit].")


class FrameProblem(BaseModel):
    goal_statement: str = ""
    major_questions: list[str] = Field(default_factory=list)
    research_tasks: list[str] = Field(default_factory=list)


class ClarifyGoalInput(FrameProblem):
    answers: dict[str, str] = Field(default_factory=dict)


class MapState(BaseModel):
    goal_statement: str
    research_tasks: list[str] = Field(default_factory=list)


class FramedGoal(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    clarify_goal: MapState | None = Field(default=None, alias="clarify-goal")
    goal_ready: MapState | None = Field(default=None, alias="goal-ready")


class Persona(BaseModel):
    name: str
    description: str
    goals: list[str] = Field(default_factory=list)
    pain_points: list[str] = Field(default_factory=list)
    behaviors: list[str] = Field(default_factory=list)


class ActivityStories(BaseModel):
    activity: str
    stories: list[str]


class PrioritizedStory(BaseModel):
    story: str
    priority: int
    flow: str = ""


class PrioritizedActivity(BaseModel):
    activity: str
    stories: list[PrioritizedStory]


class Release(BaseModel):
    name: str
    stories: list[str]


class SessionBlock(BaseModel):
    date: str
    duration_hours: float
    focus: str


class PersonasStage(MapState):
    personas: list[Persona]


class ActivitiesStage(PersonasStage):
    activities: list[str]


class StoriesStage(ActivitiesStage):
    activity_stories: list[ActivityStories]


class PrioritizedStage(StoriesStage):
    prioritized_stories: list[PrioritizedActivity]


class GapsStage(PrioritizedStage):
    gaps: list[str]
    dependencies: list[str]
    risks: list[str]


class ReleasesStage(GapsStage):
    releases: list[Release]


class CollaborationStage(ReleasesStage):
    participants: list[str]
    facilitator: str


class TimeboxStage(CollaborationStage):
    session_blocks: list[SessionBlock]


class StoryMap(TimeboxStage):
    updated_map: str = Field(description="Summary of changes or refinements.")


class StoryMapDocument(BaseModel):
    document: str
    story_map: StoryMap


# What each agent is asked to return; the step merges it into the running map.


class _Draft(BaseModel):
    research_tasks: list[str] = Field(default_factory=list)


class PersonasDraft(_Draft):
    personas: list[Persona]


class ActivitiesDraft(_Draft):
    activities: list[str]


class StoriesDraft(_Draft):
    activity_stories: list[ActivityStories]


class PrioritizedDraft(_Draft):
    prioritized_stories: list[PrioritizedActivity]


class GapsDraft(_Draft):
    gaps: list[str]
    dependencies: list[str]
    risks: list[str]


class ReleasesDraft(_Draft):
    releases: list[Release]


class CollaborationDraft(_Draft):
    participants: list[str]
    facilitator: str


class RefinementDraft(BaseModel):
    updated_map: str


def _advance(current: BaseModel, stage: type[MapState], draft: BaseModel) -> Any:
    data = current.model_dump()
    additions = draft.model_dump()
    tasks = [*data.get("research_tasks", []), *additions.pop("research_tasks", [])]
    return stage(**{**data, **additions, "research_tasks": tasks})


def _personas_text(personas: list[Persona]) -> str:
    return "\n".join(f"Persona: {p.name} - {p.description}" for p in personas)


@step("frame-problem", input_schema=GoalInput, output_schema=FrameProblem)
def frame_problem(inputs: GoalInput, ctx: StepContext) -> FrameProblem:
    """Frame the problem and define the goal."""
    framed = ask(ctx, FACILITATOR, inputs.goal_statement, FrameProblem)
    return FrameProblem(
        goal_statement=framed.goal_statement or inputs.goal_statement,
        major_questions=framed.major_questions,
        research_tasks=framed.research_tasks,
    )


@step("clarify-goal", input_schema=ClarifyGoalInput, output_schema=MapState)
def clarify_goal(inputs: ClarifyGoalInput, ctx: StepContext) -> MapState:
    """Pause for answers to the major questions, then reframe the goal."""
    if not inputs.answers:
        ctx.suspend(
            {"goal_statement": inputs.goal_statement, "major_questions": inputs.major_questions}
        )

    answered = "\n".join(
        f"Q: {question}\nA: {inputs.answers.get(question, '(no answer)')}"
        for question in inputs.major_questions
    )
    extra = "\n".join(
        f"{key}: {value}" for key, value in inputs.answers.items() if key not in inputs.major_questions
    )
    reframed = ask(
        ctx,
        FACILITATOR,
        f"""
Goal: {inputs.goal_statement}

Answers to your questions:
{answered}
{extra}

Restate the goal with these answers. Only list major questions that are still open.
""",
        FrameProblem,
    )
    return MapState(
        goal_statement=reframed.goal_statement or inputs.goal_statement,
        research_tasks=[*inputs.research_tasks, *reframed.research_tasks],
    )


@step("goal-ready", input_schema=FrameProblem, output_schema=MapState)
def goal_ready(inputs: FrameProblem, ctx: StepContext) -> MapState:
    """Pass a clear goal through unchanged."""
    return MapState(goal_statement=inputs.goal_statement, research_tasks=inputs.research_tasks)


@step("unwrap-goal", input_schema=FramedGoal, output_schema=MapState)
def unwrap_goal(inputs: FramedGoal, ctx: StepContext) -> MapState:
    """Take the goal from whichever branch ran."""
    chosen = inputs.clarify_goal or inputs.goal_ready
    if chosen is None:
        raise ValueError("No framed goal to unwrap")
    return chosen


@step("identify-personas", input_schema=MapState, output_schema=PersonasStage)
def identify_personas(inputs: MapState, ctx: StepContext) -> PersonasStage:
    """Identify key user personas."""
    draft = ask(ctx, "identify-personas", inputs.goal_statement, PersonasDraft)
    return _advance(inputs, PersonasStage, draft)


@step("map-activities", input_schema=PersonasStage, output_schema=ActivitiesStage)
def map_activities(inputs: PersonasStage, ctx: StepContext) -> ActivitiesStage:
    """Map high-level activities (backbone)."""
    prompt = f"{_personas_text(inputs.personas)}\n{inputs.goal_statement}"
    draft = ask(ctx, "map-activities", prompt, ActivitiesDraft)
    return _advance(inputs, ActivitiesStage, draft)


@step("break-down-stories", input_schema=ActivitiesStage, output_schema=StoriesStage)
def break_down_stories(inputs: ActivitiesStage, ctx: StepContext) -> StoriesStage:
    """Break down activities into user stories."""
    activities = "\n".join(f"Activity: {a}" for a in inputs.activities)
    prompt = f"{activities}\n{_personas_text(inputs.personas)}\n{inputs.goal_statement}"
    draft = ask(ctx, "break-down-stories", prompt, StoriesDraft)
    return _advance(inputs, StoriesStage, draft)


@step("prioritize-flow", input_schema=StoriesStage, output_schema=PrioritizedStage)
def prioritize_flow(inputs: StoriesStage, ctx: StepContext) -> PrioritizedStage:
    """Prioritize stories and identify flow."""
    stories = "\n".join(
        f"Activity: {group.activity}\n{bullet_list(group.stories)}" for group in inputs.activity_stories
    )
    prompt = f"{stories}\n{_personas_text(inputs.personas)}\n{inputs.goal_statement}"
    draft = ask(ctx, "prioritize-flow", prompt, PrioritizedDraft)
    return _advance(inputs, PrioritizedStage, draft)


def _prioritized_text(groups: list[PrioritizedActivity]) -> str:
    return "\n".join(
        f"Activity: {group.activity}\n"
        + "\n".join(f"- [{s.priority}] {s.story} ({s.flow or 'main'})" for s in group.stories)
        for group in groups
    )


@step("spot-gaps", input_schema=PrioritizedStage, output_schema=GapsStage)
def spot_gaps(inputs: PrioritizedStage, ctx: StepContext) -> GapsStage:
    """Spot gaps, dependencies, and risks."""
    prompt = (
        f"{_prioritized_text(inputs.prioritized_stories)}\n"
        f"{_personas_text(inputs.personas)}\n{inputs.goal_statement}"
    )
    draft = ask(ctx, "spot-gaps", prompt, GapsDraft)
    return _advance(inputs, GapsStage, draft)


@step("slice-releases", input_schema=GapsStage, output_schema=ReleasesStage)
def slice_releases(inputs: GapsStage, ctx: StepContext) -> ReleasesStage:
    """Slice into releases or sprints."""
    prompt = f"""
{_prioritized_text(inputs.prioritized_stories)}
Gaps:
{bullet_list(inputs.gaps)}
Dependencies:
{bullet_list(inputs.dependencies)}
Risks:
{bullet_list(inputs.risks)}
{_personas_text(inputs.personas)}
{inputs.goal_statement}
"""
    draft = ask(ctx, "slice-releases", prompt, ReleasesDraft)
    return _advance(inputs, ReleasesStage, draft)


@step("collaborate", input_schema=ReleasesStage, output_schema=CollaborationStage)
def collaborate(inputs: ReleasesStage, ctx: StepContext) -> CollaborationStage:
    """Plan who collaborates on the map and who facilitates."""
    releases = "\n".join(f"Release: {r.name}\n{bullet_list(r.stories)}" for r in inputs.releases)
    prompt = f"{releases}\n{_personas_text(inputs.personas)}\n{inputs.goal_statement}"
    draft = ask(ctx, "collaborate", prompt, CollaborationDraft)
    return _advance(inputs, CollaborationStage, draft)


@step("timebox", input_schema=CollaborationStage, output_schema=TimeboxStage)
def timebox(inputs: CollaborationStage, ctx: StepContext) -> TimeboxStage:
    """Schedule one working session per release on consecutive days.

    The first session is on ``runtime["start_date"]`` (ISO date) or today.
    """
    start = ctx.runtime.get("start_date")
    first = date.fromisoformat(start) if start else date.today()
    blocks = [
        SessionBlock(
            date=(first + timedelta(days=i)).isoformat(),
            duration_hours=SESSION_HOURS,
            focus=f"Release: {release.name}",
        )
        for i, release in enumerate(inputs.releases)
    ]
    return TimeboxStage(**inputs.model_dump(), session_blocks=blocks)


@step("iterate-refine", input_schema=TimeboxStage, output_schema=StoryMap)
def iterate_refine(inputs: TimeboxStage, ctx: StepContext) -> StoryMap:
    """Iterate and refine the map."""
    draft = ask(
        ctx,
        "iterate-refine",
        f"Refine this story map and summarise the changes:\n{inputs.model_dump_json(indent=2)}",
        RefinementDraft,
    )
    return StoryMap(**inputs.model_dump(), updated_map=draft.updated_map)


@step("full-story-mapping", input_schema=StoryMap, output_schema=StoryMapDocument)
def full_story_mapping(inputs: StoryMap, ctx: StepContext) -> StoryMapDocument:
    """Render the finished map as a JSON document."""
    return StoryMapDocument(
        document=json.dumps(inputs.model_dump(mode="json"), indent=2), story_map=inputs
    )


def _has_questions(payload: Any) -> bool:
    return bool(payload.get("major_questions"))


def build_story_mapping_workflow() -> Workflow:
    return (
        Workflow(
            id="story-mapping-workflow",
            description="Build a user story map from a goal statement.",
            input_schema=GoalInput,
            output_schema=StoryMapDocument,
        )
        .then(frame_problem)
        .branch(
            [
                (_has_questions, clarify_goal),
                (lambda payload: not _has_questions(payload), goal_ready),
            ]
        )
        .then(unwrap_goal)
        .then(identify_personas)
        .then(map_activities)
        .then(break_down_stories)
        .then(prioritize_flow)
        .then(spot_gaps)
        .then(slice_releases)
        .then(collaborate)
        .then(timebox)
        .then(iterate_refine)
        .then(full_story_mapping)
        .commit()
    )
