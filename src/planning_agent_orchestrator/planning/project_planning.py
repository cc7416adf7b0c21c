"""Project planning workflow.

A project manager breaks the idea into tasks, dependencies and open questions;
an engineering lead reviews them and may have questions only the user can
answer (the run pauses for those). Open questions are then researched in
parallel and everything is merged into a summary.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from planning_agent_orchestrator.orchestrator.workflow import StepContext, Workflow, step
from planning_agent_orchestrator.planning.common import ask, bullet_list


class ProjectIdea(BaseModel):
    idea: str = Field(description="The overall project idea or goal")


class ProjectManagerReview(ProjectIdea):
    tasks: list[str] = Field(default_factory=list, description="A list of major tasks")
    dependencies: list[str] = Field(default_factory=list, description="A list of dependencies")
    open_questions: list[str] = Field(default_factory=list, description="A list of open questions")


class EngineeringReview(ProjectManagerReview):
    user_questions: list[str] = Field(default_factory=list)
    data_sources: list[str] = Field(default_factory=list)
    technical_notes: str = ""
    answers: dict[str, str] = Field(default_factory=dict)


class ResearchQuestion(BaseModel):
    question: str
    review: EngineeringReview


class ResearchResult(ResearchQuestion):
    answer: str | None = None
    could_not_answer: bool = False


class ProjectState(EngineeringReview):
    unanswered_questions: list[str] = Field(default_factory=list)


class ProjectSummary(BaseModel):
    summary: str
    tasks: list[str]
    open_questions: list[str]
    user_questions: list[str]
    answers: dict[str, str]
    data_sources: list[str]
    technical_notes: str = ""


class _PlanDraft(BaseModel):
    tasks: list[str]
    dependencies: list[str]
    open_questions: list[str]


class _EngineeringDraft(BaseModel):
    open_questions: list[str]
    user_questions: list[str]
    data_sources: list[str]
    technical_notes: str = ""


class _ResearchAnswer(BaseModel):
    answer: str | None = None
    could_not_answer: bool = False


@step("get-project-idea", input_schema=ProjectIdea, output_schema=ProjectIdea)
def get_project_idea(inputs: ProjectIdea, ctx: StepContext) -> ProjectIdea:
    """Collect the high-level project idea from the user."""
    return ProjectIdea(idea=inputs.idea.strip())


@step("project-manager-review", input_schema=ProjectIdea, output_schema=ProjectManagerReview)
def project_manager_review(inputs: ProjectIdea, ctx: StepContext) -> ProjectManagerReview:
    """Project manager lists tasks, dependencies and open questions."""
    draft = ask(ctx, "project-manager", inputs.idea, _PlanDraft)
    return ProjectManagerReview(idea=inputs.idea, **draft.model_dump())


@step("engineering-lead-review", input_schema=ProjectManagerReview, output_schema=EngineeringReview)
def engineering_lead_review(inputs: ProjectManagerReview, ctx: StepContext) -> EngineeringReview:
    """Engineering lead adds technical questions, data sources and notes."""
    prompt = f"""
{inputs.idea}
Tasks:
{bullet_list(inputs.tasks, empty="no tasks yet")}
Dependencies:
{bullet_list(inputs.dependencies, empty="no dependencies yet")}
Open Questions:
{bullet_list(inputs.open_questions, empty="no open questions yet")}

List technical questions still open, questions only the user can answer, and data sources.
"""
    draft = ask(ctx, "engineering-lead", prompt, _EngineeringDraft)
    return EngineeringReview(
        idea=inputs.idea,
        tasks=inputs.tasks,
        dependencies=inputs.dependencies,
        open_questions=draft.open_questions,
        user_questions=draft.user_questions,
        data_sources=draft.data_sources,
        technical_notes=draft.technical_notes,
    )


@step("collect-user-answers", input_schema=EngineeringReview, output_schema=EngineeringReview)
def collect_user_answers(inputs: EngineeringReview, ctx: StepContext) -> EngineeringReview:
    """Pause until the user answers the engineering lead's questions.

    Resume with ``{"answers": {question: answer}}``.
    """
    if inputs.user_questions and not inputs.answers:
        ctx.suspend({"user_questions": inputs.user_questions})
    return inputs


@step("split-questions", input_schema=EngineeringReview, output_schema=list[ResearchQuestion])
def split_questions(inputs: EngineeringReview, ctx: StepContext) -> list[ResearchQuestion]:
    """One research item per open question."""
    return [ResearchQuestion(question=q, review=inputs) for q in inputs.open_questions]


@step("research-question", input_schema=ResearchQuestion, output_schema=ResearchResult)
def research_question(inputs: ResearchQuestion, ctx: StepContext) -> ResearchResult:
    """Research a single open question."""
    review = inputs.review
    prompt = f"""
Idea: {review.idea}
Technical Notes: {review.technical_notes or "no notes yet"}
Data Sources:
{bullet_list(review.data_sources)}
Question: {inputs.question}

Answer the question, or set could_not_answer when the information is not available.
"""
    result = ask(ctx, "research", prompt, _ResearchAnswer)
    return ResearchResult(
        question=inputs.question,
        review=review,
        answer=result.answer or None,
        could_not_answer=result.could_not_answer or not result.answer,
    )


@step("merge-research-results", input_schema=list[ResearchResult], output_schema=ProjectState)
def merge_research_results(inputs: list[ResearchResult], ctx: StepContext) -> ProjectState:
    """Fold research answers back into the reviewed project state."""
    review = EngineeringReview.model_validate(ctx.step_result("collect-user-answers"))
    answers = dict(review.answers)
    unanswered: list[str] = []
    for result in inputs:
        if result.answer:
            answers[result.question] = result.answer
        else:
            unanswered.append(result.question)
    return ProjectState(
        **review.model_dump(exclude={"answers", "open_questions"}),
        answers=answers,
        open_questions=unanswered,
        unanswered_questions=unanswered,
    )


@step("output-summary", input_schema=ProjectState, output_schema=ProjectSummary)
def output_summary(inputs: ProjectState, ctx: StepContext) -> ProjectSummary:
    """Summarise resolved information, open questions and data sources."""
    answered = "\n".join(f"- {q}: {a}" for q, a in inputs.answers.items()) or "(none)"
    summary = f"""Project Idea: {inputs.idea}

Tasks:
{bullet_list(inputs.tasks)}

Dependencies:
{bullet_list(inputs.dependencies)}

Data Sources: {", ".join(inputs.data_sources) or "(none)"}

Technical Notes: {inputs.technical_notes or "(none)"}

Answers:
{answered}

User Questions:
{bullet_list(inputs.user_questions)}

Unanswered Questions:
{bullet_list(inputs.unanswered_questions)}
"""
    return ProjectSummary(
        summary=summary,
        tasks=inputs.tasks,
        open_questions=inputs.open_questions,
        user_questions=inputs.user_questions,
        answers=inputs.answers,
        data_sources=inputs.data_sources,
        technical_notes=inputs.technical_notes,
    )


def build_project_workflow(*, research_concurrency: int | None = None) -> Workflow:
    return (
        Workflow(
            id="project-workflow",
            description="Turn a project idea into reviewed tasks with researched answers.",
            input_schema=ProjectIdea,
            output_schema=ProjectSummary,
        )
        .then(get_project_idea)
        .then(project_manager_review)
        .then(engineering_lead_review)
        .then(collect_user_answers)
        .then(split_questions)
        .foreach(research_question, concurrency=research_concurrency)
        .then(merge_research_results)
        .then(output_summary)
        .commit()
    )
