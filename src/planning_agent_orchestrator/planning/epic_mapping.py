"""Epic mapping workflow: eight plan sections drafted in parallel, then
gathered into a single markdown document."""

from __future__ import annotations

from pydantic import BaseModel, Field

from planning_agent_orchestrator.orchestrator.workflow import (
    Step,
    StepContext,
    Workflow,
    create_step,
    step,
)
from planning_agent_orchestrator.planning.common import ask


class EpicInput(BaseModel):
    epic_statement: str = Field(description="The epic or goal statement to map.")


class PlanSection(BaseModel):
    description: str
    gherkin_requirements: list[str]


class EpicPlan(BaseModel):
    personas: PlanSection
    research: PlanSection
    usability: PlanSection
    implementation: PlanSection
    onboarding: PlanSection
    logging: PlanSection
    integration: PlanSection
    testing: PlanSection


class EpicMappingDocument(BaseModel):
    document: str


class _PersonaSketch(BaseModel):
    name: str
    description: str


class _PersonaList(BaseModel):
    personas: list[_PersonaSketch]


class _ResearchTasks(BaseModel):
    research_tasks: list[str]


@step("personas", input_schema=EpicInput, output_schema=PlanSection)
def personas(inputs: EpicInput, ctx: StepContext) -> PlanSection:
    """Generate user personas."""
    result = ask(ctx, "identify-personas", inputs.epic_statement, _PersonaList)
    return PlanSection(
        description="Personas relevant to this epic.",
        gherkin_requirements=[
            f"Given a user persona named {p.name}, when they interact with the system, "
            f"then their needs ({p.description}) should be addressed."
            for p in result.personas
        ],
    )


@step("research", input_schema=EpicInput, output_schema=PlanSection)
def research(inputs: EpicInput, ctx: StepContext) -> PlanSection:
    """Generate research tasks for the current state."""
    result = ask(ctx, "research", inputs.epic_statement, _ResearchTasks)
    return PlanSection(
        description="Research tasks needed to understand the current state.",
        gherkin_requirements=[
            f"Given the need to understand the current state, when researching, "
            f"then complete the task: {task}"
            for task in result.research_tasks
        ],
    )


def _plan_section_step(id: str, agent_id: str, description: str) -> Step:
    def execute(inputs: EpicInput, ctx: StepContext) -> PlanSection:
        return ask(ctx, agent_id, inputs.epic_statement, PlanSection)

    return create_step(
        id=id,
        input_schema=EpicInput,
        output_schema=PlanSection,
        execute=execute,
        description=description,
    )


SECTION_STEPS: tuple[Step, ...] = (
    personas,
    research,
    _plan_section_step("usability", "usability-plan", "Make a plan for usability/UX."),
    _plan_section_step("implementation", "implementation-plan", "Make an implementation plan."),
    _plan_section_step("onboarding", "onboarding-plan", "Generate onboarding tasks."),
    _plan_section_step("logging", "logging-plan", "List logging requirements."),
    _plan_section_step("integration", "integration-plan", "Plan integration and defensive coding."),
    _plan_section_step("testing", "testing-plan", "Lay out a testing plan."),
)


def render_epic_plan(plan: EpicPlan) -> str:
    sections = []
    for name, section in plan:
        requirements = "\n".join(f"- {req}" for req in section.gherkin_requirements)
        sections.append(
            f"## {name.capitalize()}\n{section.description}\n\n### Gherkin Requirements\n{requirements}"
        )
    return "# Epic Mapping Document\n\n" + "\n\n".join(sections)


@step("gather", input_schema=EpicPlan, output_schema=EpicMappingDocument)
def gather(inputs: EpicPlan, ctx: StepContext) -> EpicMappingDocument:
    """Gather all outputs into a single document."""
    return EpicMappingDocument(document=render_epic_plan(inputs))


def build_epic_mapping_workflow() -> Workflow:
    return (
        Workflow(
            id="epic-mapping-workflow",
            description="Map an epic to plan sections with Gherkin requirements.",
            input_schema=EpicInput,
            output_schema=EpicMappingDocument,
        )
        .parallel(SECTION_STEPS)
        .then(gather)
        .commit()
    )
