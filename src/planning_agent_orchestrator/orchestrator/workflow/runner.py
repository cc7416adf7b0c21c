"""Workflow execution.

The runner walks a committed workflow node by node. Sequential nodes feed
their output to the next node; parallel and foreach nodes dispatch their
members as concurrent tasks and wait for all of them; branch nodes run the
first step whose condition matches.

A step may suspend. The runner then persists the run (payload entering the
node, completed sibling outputs and every suspended member) and returns a
suspended result. ``resume`` re-executes one suspended member and, once the
node has no suspended members left, continues with the next node.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Literal

from .errors import (
    NoBranchMatchedError,
    RunNotSuspendedError,
    SchemaValidationError,
    StepExecutionError,
    WorkflowDefinitionError,
)
from .graph import BranchNode, ForEachNode, GraphNode, ParallelNode, SequentialNode, Workflow
from .run_store import RunStore, SuspendedStep, WorkflowRunRecord
from .steps import Step, StepContext, StepSuspended, execute_step

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class WorkflowRunResult:
    run_id: str
    workflow_id: str
    status: Literal["succeeded", "suspended"]
    output: Any = None
    suspended: tuple[SuspendedStep, ...] = ()

    @property
    def is_suspended(self) -> bool:
        return self.status == "suspended"


@dataclass(slots=True)
class ExecutionContext:
    """State shared by every step of a single run."""

    run_id: str
    workflow: Workflow
    workflow_input: Any
    runtime: Mapping[str, Any] = field(default_factory=dict)
    services: Any = None
    step_results: dict[str, Any] = field(default_factory=dict)

    def step_context(
        self,
        step_id: str,
        *,
        resume_data: dict[str, Any] | None = None,
        suspend_payload: dict[str, Any] | None = None,
    ) -> StepContext:
        return StepContext(
            run_id=self.run_id,
            workflow_id=self.workflow.id,
            step_id=step_id,
            workflow_input=self.workflow_input,
            runtime=self.runtime,
            services=self.services,
            resume_data=resume_data,
            suspend_payload=suspend_payload,
            step_results=self.step_results,
        )


class _NodeSuspended(Exception):
    def __init__(self, suspended: list[SuspendedStep], partial_outputs: dict[str, Any]) -> None:
        super().__init__("node suspended")
        self.suspended = suspended
        self.partial_outputs = partial_outputs


def _item_path(step_id: str, index: int) -> str:
    return f"{step_id}[{index}]"


def _merge_resume_input(step_input: Any, resume_data: dict[str, Any]) -> Any:
    if isinstance(step_input, dict):
        return {**step_input, **resume_data}
    if step_input is None:
        return dict(resume_data)
    return step_input


class WorkflowRunner:
    """Executes committed workflows and persists their runs.

    Args:
        services: Dependency container handed to every step as ``ctx.services``.
        store: Run store; defaults to an in-memory store.
        default_concurrency: Bound for foreach nodes that set none. ``None``
            means unbounded.
        workflows: Workflows that can be resumed by run id. Workflows passed to
            :meth:`start` are added automatically.
    """

    def __init__(
        self,
        *,
        services: Any = None,
        store: RunStore | None = None,
        default_concurrency: int | None = None,
        workflows: Mapping[str, Workflow] | None = None,
    ) -> None:
        if default_concurrency is not None and default_concurrency < 1:
            raise ValueError("default_concurrency must be >= 1")
        self.services = services
        self.store = store or RunStore()
        self.default_concurrency = default_concurrency
        self._workflows: dict[str, Workflow] = dict(workflows or {})

    def register(self, workflow: Workflow) -> None:
        self._workflows[workflow.id] = workflow

    def start(
        self,
        workflow: Workflow,
        payload: Any,
        *,
        runtime: Mapping[str, Any] | None = None,
        run_id: str | None = None,
    ) -> WorkflowRunResult:
        """Run ``workflow`` to completion or suspension (blocking)."""

        return asyncio.run(self.start_async(workflow, payload, runtime=runtime, run_id=run_id))

    def resume(
        self,
        run_id: str,
        resume_data: dict[str, Any] | None = None,
        *,
        step_path: str | None = None,
        runtime: Mapping[str, Any] | None = None,
    ) -> WorkflowRunResult:
        """Resume a suspended run (blocking)."""

        return asyncio.run(
            self.resume_async(run_id, resume_data, step_path=step_path, runtime=runtime)
        )

    def execute(
        self, record: WorkflowRunRecord, *, runtime: Mapping[str, Any] | None = None
    ) -> WorkflowRunResult:
        """Execute a run created with :meth:`create_run` (blocking)."""

        return asyncio.run(self.execute_async(record, runtime=runtime))

    def create_run(
        self, workflow: Workflow, payload: Any, *, run_id: str | None = None
    ) -> WorkflowRunRecord:
        """Validate the workflow input and persist a new ``running`` record.

        Raises:
            WorkflowDefinitionError: The workflow is not committed.
            SchemaValidationError: ``payload`` does not match the input schema.
        """

        if not workflow.committed:
            raise WorkflowDefinitionError(f"Workflow {workflow.id!r} must be committed before running")
        self.register(workflow)

        data = workflow.input_schema.dump(workflow.input_schema.validate(payload))
        record = self.store.create(
            run_id=run_id or uuid.uuid4().hex, workflow_id=workflow.id, input=data
        )
        logger.info(
            "Workflow run created", extra={"run_id": record.run_id, "workflow_id": workflow.id}
        )
        return record

    async def start_async(
        self,
        workflow: Workflow,
        payload: Any,
        *,
        runtime: Mapping[str, Any] | None = None,
        run_id: str | None = None,
    ) -> WorkflowRunResult:
        record = self.create_run(workflow, payload, run_id=run_id)
        return await self.execute_async(record, runtime=runtime)

    async def execute_async(
        self, record: WorkflowRunRecord, *, runtime: Mapping[str, Any] | None = None
    ) -> WorkflowRunResult:
        workflow = self._workflow_for(record)
        ctx = ExecutionContext(
            run_id=record.run_id,
            workflow=workflow,
            workflow_input=record.input,
            runtime=dict(runtime or {}),
            services=self.services,
            step_results=record.step_results,
        )
        return await self._drive(ctx, record, start_index=0, payload=record.input)

    def _workflow_for(self, record: WorkflowRunRecord) -> Workflow:
        workflow = self._workflows.get(record.workflow_id)
        if workflow is None:
            raise WorkflowDefinitionError(
                f"Workflow {record.workflow_id!r} is not registered with this runner"
            )
        return workflow

    async def resume_async(
        self,
        run_id: str,
        resume_data: dict[str, Any] | None = None,
        *,
        step_path: str | None = None,
        runtime: Mapping[str, Any] | None = None,
    ) -> WorkflowRunResult:
        record = self.store.require(run_id)
        if record.status != "suspended" or not record.suspended:
            raise RunNotSuspendedError(f"Run {run_id} is {record.status}, not suspended")

        workflow = self._workflow_for(record)

        if step_path is None:
            entry = record.suspended[0]
        else:
            matches = [s for s in record.suspended if s.path == step_path]
            if not matches:
                raise RunNotSuspendedError(f"Run {run_id} has no suspended step at {step_path!r}")
            entry = matches[0]

        ctx = ExecutionContext(
            run_id=record.run_id,
            workflow=workflow,
            workflow_input=record.input,
            runtime=dict(runtime or {}),
            services=self.services,
            step_results=record.step_results,
        )
        node = workflow.nodes[entry.node_index]
        step = _find_step(node, entry.step_id)
        data = dict(resume_data or {})
        logger.info(
            "Resuming workflow run",
            extra={"run_id": run_id, "workflow_id": workflow.id, "step_path": entry.path},
        )

        record.status = "running"
        remaining = [s for s in record.suspended if s.path != entry.path]
        partial = dict(record.partial_outputs)
        step_input = _merge_resume_input(entry.step_input, data)
        try:
            output = await execute_step(
                step,
                step_input,
                ctx.step_context(step.id, resume_data=data, suspend_payload=entry.payload),
            )
        except StepSuspended as s:
            # Resume data given so far stays part of the step input.
            again = entry.model_copy(update={"payload": s.payload, "step_input": step_input})
            record.suspended = [again, *remaining]
            return self._suspend(record, record.suspended, partial)
        except Exception as e:
            self._fail(record, e)
            raise

        partial[entry.path] = output
        if remaining:
            return self._suspend(record, remaining, partial)

        try:
            node_output = _assemble(node, record.payload, partial)
        except Exception as e:
            self._fail(record, e)
            raise
        record.suspended = []
        _record_results(node, node_output, ctx.step_results)
        record.partial_outputs = {}
        return await self._drive(ctx, record, start_index=entry.node_index + 1, payload=node_output)

    async def _drive(
        self, ctx: ExecutionContext, record: WorkflowRunRecord, *, start_index: int, payload: Any
    ) -> WorkflowRunResult:
        nodes = ctx.workflow.nodes
        try:
            for idx in range(start_index, len(nodes)):
                record.node_index = idx
                record.payload = payload
                try:
                    payload = await self._run_node(ctx, nodes[idx], idx, payload)
                except _NodeSuspended as s:
                    return self._suspend(record, s.suspended, s.partial_outputs)
                _record_results(nodes[idx], payload, ctx.step_results)
            output = ctx.workflow.output_schema.dump(ctx.workflow.output_schema.validate(payload))
        except Exception as e:
            self._fail(record, e)
            raise

        record.status = "succeeded"
        record.output = output
        record.node_index = len(nodes)
        record.payload = None
        self.store.save(record)
        logger.info(
            "Workflow run succeeded",
            extra={"run_id": record.run_id, "workflow_id": record.workflow_id},
        )
        return WorkflowRunResult(
            run_id=record.run_id, workflow_id=record.workflow_id, status="succeeded", output=output
        )

    def _suspend(
        self,
        record: WorkflowRunRecord,
        suspended: list[SuspendedStep],
        partial_outputs: dict[str, Any],
    ) -> WorkflowRunResult:
        record.status = "suspended"
        record.suspended = list(suspended)
        record.partial_outputs = dict(partial_outputs)
        self.store.save(record)
        logger.info(
            "Workflow run suspended",
            extra={
                "run_id": record.run_id,
                "workflow_id": record.workflow_id,
                "suspended": [s.path for s in suspended],
            },
        )
        return WorkflowRunResult(
            run_id=record.run_id,
            workflow_id=record.workflow_id,
            status="suspended",
            suspended=tuple(suspended),
        )

    def _fail(self, record: WorkflowRunRecord, error: Exception) -> None:
        record.status = "failed"
        record.error = str(error)
        record.failed_step_id = getattr(error, "step_id", None)
        self.store.save(record)
        logger.error(
            "Workflow run failed",
            extra={
                "run_id": record.run_id,
                "workflow_id": record.workflow_id,
                "step_id": record.failed_step_id,
                "error": record.error,
            },
        )

    async def _run_node(self, ctx: ExecutionContext, node: GraphNode, idx: int, payload: Any) -> Any:
        if isinstance(node, SequentialNode):
            outcome = await _run_member(ctx, node.step, payload, idx, None)
            if isinstance(outcome, SuspendedStep):
                raise _NodeSuspended([outcome], {})
            return outcome

        if isinstance(node, ParallelNode):
            outcomes = await _gather(
                [_run_member(ctx, s, payload, idx, None) for s in node.steps]
            )
            return _collect(node.step_ids, outcomes)

        if isinstance(node, ForEachNode):
            items = _as_items(node.step, payload)
            limit = node.concurrency or self.default_concurrency
            semaphore = asyncio.Semaphore(limit) if limit else None

            async def run_item(i: int, item: Any) -> Any:
                if semaphore is None:
                    return await _run_member(ctx, node.step, item, idx, i)
                async with semaphore:
                    return await _run_member(ctx, node.step, item, idx, i)

            outcomes = await _gather([run_item(i, item) for i, item in enumerate(items)])
            paths = [_item_path(node.step.id, i) for i in range(len(items))]
            collected = _collect(paths, outcomes)
            return [collected[p] for p in paths]

        if isinstance(node, BranchNode):
            chosen = _choose(node, payload)
            outcome = await _run_member(ctx, chosen, payload, idx, None)
            if isinstance(outcome, SuspendedStep):
                raise _NodeSuspended([outcome], {})
            return {chosen.id: outcome}

        raise WorkflowDefinitionError(f"Unknown node type: {type(node).__name__}")


async def _run_member(
    ctx: ExecutionContext, step: Step, step_input: Any, node_index: int, item_index: int | None
) -> Any:
    try:
        return await execute_step(step, step_input, ctx.step_context(step.id))
    except StepSuspended as s:
        path = step.id if item_index is None else _item_path(step.id, item_index)
        return SuspendedStep(
            path=path,
            step_id=step.id,
            node_index=node_index,
            item_index=item_index,
            step_input=step_input,
            payload=s.payload,
        )


async def _gather(coros: Sequence[Any]) -> list[Any]:
    # Every member runs to completion; the first failure in declaration order wins.
    outcomes = await asyncio.gather(*coros, return_exceptions=True)
    for outcome in outcomes:
        if isinstance(outcome, BaseException):
            raise outcome
    return list(outcomes)


def _collect(paths: Sequence[str], outcomes: Sequence[Any]) -> dict[str, Any]:
    suspended = [o for o in outcomes if isinstance(o, SuspendedStep)]
    done = {p: o for p, o in zip(paths, outcomes) if not isinstance(o, SuspendedStep)}
    if suspended:
        raise _NodeSuspended(suspended, done)
    return done


def _as_items(step: Step, payload: Any) -> list[Any]:
    if isinstance(payload, (str, bytes)) or not isinstance(payload, Sequence):
        raise SchemaValidationError(
            f"foreach expects a list, got {type(payload).__name__}",
            step_id=step.id,
            direction="input",
        )
    return list(payload)


def _choose(node: BranchNode, payload: Any) -> Step:
    for condition, candidate in node.conditions:
        try:
            matched = condition(payload)
        except Exception as e:
            raise StepExecutionError(
                candidate.id, f"branch condition raised {type(e).__name__}: {e}"
            ) from e
        if matched:
            return candidate
    raise NoBranchMatchedError(list(node.step_ids))


def _find_step(node: GraphNode, step_id: str) -> Step:
    if isinstance(node, (SequentialNode, ForEachNode)):
        steps: tuple[Step, ...] = (node.step,)
    else:
        steps = node.steps
    for s in steps:
        if s.id == step_id:
            return s
    raise WorkflowDefinitionError(f"Step {step_id!r} not found at its recorded position")


def _assemble(node: GraphNode, node_input: Any, outputs: dict[str, Any]) -> Any:
    if isinstance(node, SequentialNode):
        return outputs[node.step.id]
    if isinstance(node, ParallelNode):
        return {sid: outputs[sid] for sid in node.step_ids}
    if isinstance(node, ForEachNode):
        return [outputs[_item_path(node.step.id, i)] for i in range(len(node_input))]
    (chosen,) = outputs
    return {chosen: outputs[chosen]}


def _record_results(node: GraphNode, output: Any, results: dict[str, Any]) -> None:
    if isinstance(node, (SequentialNode, ForEachNode)):
        results[node.step.id] = output
    else:
        # Parallel and branch outputs are already keyed by step id.
        results.update(output)
