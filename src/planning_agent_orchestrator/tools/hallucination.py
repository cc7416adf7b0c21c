"""LLM-judged hallucination check of an answer against supplied context."""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field, ValidationError

from planning_agent_orchestrator.llm.provider import LLMProvider
from planning_agent_orchestrator.tools.base import Tool, ToolContext, ToolError, create_tool

logger = logging.getLogger(__name__)

_JUDGE_PROMPT = """You judge whether an answer contains claims not supported by the context.
Score from 0 (every claim is supported by the context) to 1 (every claim is unsupported).
Return JSON with "score" and "explanation".

Context:
{context}

Question:
{question}

Answer:
{answer}
"""


class HallucinationInput(BaseModel):
    answer: str = Field(description="The answer to check for hallucinations")
    question: str = Field(default="", description="The question that was asked")
    context: list[str] = Field(default_factory=list, description="Statements the answer may rely on")


class HallucinationVerdict(BaseModel):
    score: float = Field(ge=0.0, le=1.0, description="Hallucination score (lower is better)")
    explanation: str = Field(description="Explanation of the score")


def hallucination_tool(llm: LLMProvider) -> Tool:
    def check(args: HallucinationInput, ctx: ToolContext) -> HallucinationVerdict:
        if not args.answer.strip():
            return HallucinationVerdict(score=1.0, explanation="No answer provided.")

        prompt = _JUDGE_PROMPT.format(
            context="\n".join(f"- {c}" for c in args.context) or "(none)",
            question=args.question or "(not given)",
            answer=args.answer,
        )
        completion = llm.complete(
            [{"role": "user", "content": prompt}],
            response_format={
                "name": "hallucination_verdict",
                "schema": HallucinationVerdict.model_json_schema(),
            },
            temperature=0.0,
        )
        try:
            verdict = HallucinationVerdict.model_validate_json(completion.content or "")
        except ValidationError as e:
            raise ToolError("hallucination-check", f"judge returned an invalid verdict: {e}") from e
        logger.debug("Hallucination check scored", extra={"score": verdict.score})
        return verdict

    return create_tool(
        id="hallucination-check",
        description=(
            "Evaluates whether an answer states facts that are not present in the provided context."
        ),
        input_schema=HallucinationInput,
        output_schema=HallucinationVerdict,
        execute=check,
    )
