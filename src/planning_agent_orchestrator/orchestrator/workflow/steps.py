"""Step definitions and the single-step executor.

A step is the smallest validated unit of work in a workflow graph. It declares
the shape of its input and output and provides an execute function mapping the
validated input to an output (or to a suspension).
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

from .errors import SchemaValidationError, StepExecutionError
from .schema import Schema, as_schema

logger = logging.getLogger(__name__)


class StepSuspended(Exception):
    """Control-flow signal raised by :meth:`StepContext.suspend`.

    Not an error: the runner catches it and records a suspended run.
    """

    def __init__(self, payload: dict[str, Any]) -> None:
        super().__init__("step suspended")
        self.payload = payload


@dataclass(slots=True)
class StepContext:
    """Per-execution context handed to a step's execute function."""

    run_id: str
    workflow_id: str
    step_id: str
    workflow_input: Any
    runtime: Mapping[str, Any] = field(default_factory=dict)
    services: Any = None
    resume_data: dict[str, Any] | None = None
    suspend_payload: dict[str, Any] | None = None
    # Outputs of nodes already completed in this run, keyed by step id.
    step_results: Mapping[str, Any] = field(default_factory=dict)

    @property
    def resumed(self) -> bool:
        return self.resume_data is not None

    def suspend(self, payload: dict[str, Any] | None = None) -> None:
        """Pause the workflow until external input arrives.

        Raises:
            StepSuspended: always; the runner turns it into a suspended run.
        """

        raise StepSuspended(dict(payload or {}))

    def step_result(self, step_id: str) -> Any:
        """Output of an earlier step of this run, as plain data.

        A foreach step maps to the list of its element outputs.

        Raises:
            KeyError: The step has not completed in this run.
        """

        try:
            return self.step_results[step_id]
        except KeyError:
            raise KeyError(f"Step {step_id!r} has not completed in this run") from None


ExecuteFn = Callable[[Any, StepContext], Any]


@dataclass(frozen=True, slots=True)
class Step:
    """Immutable step definition."""

    id: str
    input_schema: Schema
    output_schema: Schema
    execute: ExecuteFn
    description: str = ""

    def __post_init__(self) -> None:
        if not self.id.strip():
            raise ValueError("Step id is required")


def create_step(
    *,
    id: str,
    input_schema: Any,
    output_schema: Any,
    execute: ExecuteFn,
    description: str = "",
) -> Step:
    return Step(
        id=id,
        input_schema=as_schema(input_schema),
        output_schema=as_schema(output_schema),
        execute=execute,
        description=description,
    )


def step(
    id: str,
    *,
    input_schema: Any,
    output_schema: Any,
    description: str = "",
) -> Callable[[ExecuteFn], Step]:
    """Decorator turning ``fn(inputs, ctx)`` into a :class:`Step`."""

    def decorator(fn: ExecuteFn) -> Step:
        doc = (inspect.getdoc(fn) or "").strip()
        return create_step(
            id=id,
            input_schema=input_schema,
            output_schema=output_schema,
            execute=fn,
            description=description or doc.split("\n", 1)[0],
        )

    return decorator


async def execute_step(step: Step, raw_input: Any, ctx: StepContext) -> Any:
    """Validate input, run the step, validate output.

    Returns the output as plain data.

    Raises:
        SchemaValidationError: input or output has the wrong shape.
        StepExecutionError: the execute function raised.
        StepSuspended: the step asked to suspend.
    """

    try:
        typed_input = step.input_schema.validate(raw_input)
    except SchemaValidationError as e:
        e.step_id, e.direction = step.id, "input"
        raise

    logger.debug("Executing step", extra={"run_id": ctx.run_id, "step_id": step.id})
    started = time.monotonic()
    try:
        if inspect.iscoroutinefunction(step.execute):
            result = await step.execute(typed_input, ctx)
        else:
            result = await asyncio.to_thread(step.execute, typed_input, ctx)
    except StepSuspended:
        logger.info("Step suspended", extra={"run_id": ctx.run_id, "step_id": step.id})
        raise
    except Exception as e:
        logger.warning(
            "Step failed",
            extra={"run_id": ctx.run_id, "step_id": step.id, "error": str(e)},
        )
        raise StepExecutionError(step.id, f"{type(e).__name__}: {e}") from e

    try:
        typed_output = step.output_schema.validate(result)
    except SchemaValidationError as e:
        e.step_id, e.direction = step.id, "output"
        raise

    logger.debug(
        "Step completed",
        extra={
            "run_id": ctx.run_id,
            "step_id": step.id,
            "duration_ms": round((time.monotonic() - started) * 1000, 1),
        },
    )
    return step.output_schema.dump(typed_output)
