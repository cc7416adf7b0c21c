"""Role contributions workflow.

Ten role agents contribute to an epic in parallel; each then sees everyone's
contribution and revises its own, and the revisions are gathered into a
markdown document.
"""

from __future__ import annotations

import json

from pydantic import BaseModel

from planning_agent_orchestrator.orchestrator.workflow import (
    Step,
    StepContext,
    Workflow,
    create_step,
    step,
)
from planning_agent_orchestrator.planning.common import ask

ROLE_AGENTS: dict[str, str] = {
    "product_owner": "role-product-owner",
    "facilitator": "role-facilitator",
    "developer": "role-developer",
    "ux": "role-ux",
    "qa": "role-qa",
    "analyst": "role-analyst",
    "marketing": "role-marketing",
    "support": "role-support",
    "sponsor": "role-sponsor",
    "devops": "role-devops",
}


class EpicInput(BaseModel):
    epic_statement: str


class RoleContribution(BaseModel):
    role: str
    contribution: str


class RoleResponses(BaseModel):
    product_owner: RoleContribution
    facilitator: RoleContribution
    developer: RoleContribution
    ux: RoleContribution
    qa: RoleContribution
    analyst: RoleContribution
    marketing: RoleContribution
    support: RoleContribution
    sponsor: RoleContribution
    devops: RoleContribution


class WrappedResponses(BaseModel):
    epic_statement: str
    responses: dict[str, RoleContribution]


class FeedbackRequest(BaseModel):
    role_id: str
    epic_statement: str
    all_responses: dict[str, RoleContribution]
    previous: RoleContribution


class RoleFeedback(RoleContribution):
    role_id: str


class RoleContributionsDocument(BaseModel):
    document: str


def _role_step(role_id: str, agent_id: str) -> Step:
    def execute(inputs: EpicInput, ctx: StepContext) -> RoleContribution:
        return ask(ctx, agent_id, inputs.epic_statement, RoleContribution)

    return create_step(
        id=role_id,
        input_schema=EpicInput,
        output_schema=RoleContribution,
        execute=execute,
        description=f"Initial contribution from {agent_id}.",
    )


ROLE_STEPS: tuple[Step, ...] = tuple(_role_step(r, a) for r, a in ROLE_AGENTS.items())


@step("wrap-responses", input_schema=RoleResponses, output_schema=WrappedResponses)
def wrap_responses(inputs: RoleResponses, ctx: StepContext) -> WrappedResponses:
    """Pair the parallel contributions with the epic statement."""
    return WrappedResponses(
        epic_statement=ctx.workflow_input["epic_statement"],
        responses=dict(inputs),
    )


@step("fan-out-for-feedback", input_schema=WrappedResponses, output_schema=list[FeedbackRequest])
def fan_out_for_feedback(inputs: WrappedResponses, ctx: StepContext) -> list[FeedbackRequest]:
    """One feedback request per role, each with every response."""
    return [
        FeedbackRequest(
            role_id=role_id,
            epic_statement=inputs.epic_statement,
            all_responses=inputs.responses,
            previous=previous,
        )
        for role_id, previous in inputs.responses.items()
    ]


@step("role-feedback", input_schema=FeedbackRequest, output_schema=RoleFeedback)
def role_feedback(inputs: FeedbackRequest, ctx: StepContext) -> RoleFeedback:
    """Let a role revise its contribution after reading the others."""
    responses = {k: v.model_dump() for k, v in inputs.all_responses.items()}
    prompt = (
        f"Epic: {inputs.epic_statement}\n"
        f"All responses: {json.dumps(responses, indent=2)}\n"
        f"Your previous: {inputs.previous.contribution}"
    )
    revised = ask(ctx, ROLE_AGENTS[inputs.role_id], prompt, RoleContribution)
    return RoleFeedback(role_id=inputs.role_id, role=revised.role, contribution=revised.contribution)


@step("gather-final", input_schema=list[RoleFeedback], output_schema=RoleContributionsDocument)
def gather_final(inputs: list[RoleFeedback], ctx: StepContext) -> RoleContributionsDocument:
    """Render the revised contributions as markdown."""
    body = "\n\n".join(f"## {item.role}\n{item.contribution}" for item in inputs)
    return RoleContributionsDocument(document=f"# Role Contributions\n\n{body}")


def build_role_contributions_workflow() -> Workflow:
    return (
        Workflow(
            id="role-contributions-workflow",
            description="Collect and cross-review contributions from ten product roles.",
            input_schema=EpicInput,
            output_schema=RoleContributionsDocument,
        )
        .parallel(ROLE_STEPS)
        .then(wrap_responses)
        .then(fan_out_for_feedback)
        .foreach(role_feedback)
        .then(gather_final)
        .commit()
    )
