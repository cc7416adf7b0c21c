"""Unit tests for the step/workflow engine."""

from __future__ import annotations

import asyncio
import threading
import time
from typing import Any

import pytest
from pydantic import BaseModel

from planning_agent_orchestrator.orchestrator.workflow import (
    NoBranchMatchedError,
    RunNotSuspendedError,
    SchemaValidationError,
    StepContext,
    StepExecutionError,
    Workflow,
    WorkflowDefinitionError,
    WorkflowRunner,
    create_step,
    step,
)


class X(BaseModel):
    x: int


class Y(BaseModel):
    y: int


class Z(BaseModel):
    z: int


@step("double", input_schema=X, output_schema=Y)
def double(inputs: X, ctx: StepContext) -> Y:
    return Y(y=inputs.x * 2)


@step("add-one", input_schema=Y, output_schema=Z)
def add_one(inputs: Y, ctx: StepContext) -> Z:
    return Z(z=inputs.y + 1)


def _linear() -> Workflow:
    return Workflow(id="linear", input_schema=X, output_schema=Z).then(double).then(add_one).commit()


def test_sequential_steps_feed_each_other() -> None:
    result = WorkflowRunner().start(_linear(), {"x": 3})

    assert result.status == "succeeded"
    assert result.output == {"z": 7}


def test_invalid_workflow_input_fails_before_any_step_runs() -> None:
    calls: list[Any] = []

    def record(inputs: X, ctx: StepContext) -> Y:
        calls.append(inputs)
        return Y(y=inputs.x)

    guarded = create_step(id="guarded", input_schema=X, output_schema=Y, execute=record)
    wf = Workflow(id="guarded", input_schema=Any, output_schema=Y).then(guarded).commit()

    with pytest.raises(SchemaValidationError) as exc:
        WorkflowRunner().start(wf, {"x": "not-a-number"})

    assert exc.value.step_id == "guarded"
    assert exc.value.direction == "input"
    assert calls == []


def test_invalid_step_output_is_a_schema_error() -> None:
    bad = create_step(
        id="bad", input_schema=X, output_schema=Z, execute=lambda inputs, ctx: {"nope": 1}
    )
    wf = Workflow(id="bad", input_schema=X, output_schema=Any).then(bad).commit()

    with pytest.raises(SchemaValidationError) as exc:
        WorkflowRunner().start(wf, {"x": 1})

    assert exc.value.direction == "output"


def test_step_exception_fails_the_run_and_is_recorded() -> None:
    def boom(inputs: X, ctx: StepContext) -> Y:
        raise RuntimeError("kaput")

    failing = create_step(id="boom", input_schema=X, output_schema=Y, execute=boom)
    wf = Workflow(id="failing", input_schema=X, output_schema=Y).then(failing).commit()
    runner = WorkflowRunner()

    with pytest.raises(StepExecutionError) as exc:
        runner.start(wf, {"x": 1}, run_id="run-1")

    assert exc.value.step_id == "boom"
    record = runner.store.require("run-1")
    assert record.status == "failed"
    assert record.failed_step_id == "boom"
    assert "kaput" in (record.error or "")


def test_uncommitted_workflow_cannot_run() -> None:
    wf = Workflow(id="draft", input_schema=X, output_schema=Z).then(double).then(add_one)

    with pytest.raises(WorkflowDefinitionError):
        WorkflowRunner().start(wf, {"x": 1})


def test_committed_workflow_is_frozen() -> None:
    wf = _linear()

    with pytest.raises(WorkflowDefinitionError):
        wf.then(double)


def test_commit_rejects_incompatible_neighbours() -> None:
    wf = Workflow(id="mismatch", input_schema=X, output_schema=Z).then(add_one)

    with pytest.raises(WorkflowDefinitionError, match="requires fields"):
        wf.commit()


def test_commit_rejects_duplicate_step_ids() -> None:
    wf = Workflow(id="dupes", input_schema=X, output_schema=Any).then(double).then(double)

    with pytest.raises(WorkflowDefinitionError, match="Duplicate step id"):
        wf.commit()


def test_commit_requires_merge_step_after_parallel() -> None:
    wf = Workflow(id="dangling", input_schema=X, output_schema=Any).parallel([double])

    with pytest.raises(WorkflowDefinitionError, match="merge step"):
        wf.commit()


def test_branch_routes_to_first_matching_condition() -> None:
    calls: list[str] = []

    def make(id: str, value: int):
        def execute(inputs: X, ctx: StepContext) -> Y:
            calls.append(id)
            return Y(y=value)

        return create_step(id=id, input_schema=X, output_schema=Y, execute=execute)

    merge = create_step(
        id="merge",
        input_schema=dict[str, Y],
        output_schema=dict[str, Y],
        execute=lambda inputs, ctx: inputs,
    )
    wf = (
        Workflow(id="branchy", input_schema=X, output_schema=dict[str, Y])
        .branch(
            [
                (lambda p: p["x"] > 0, make("positive", 1)),
                (lambda p: True, make("default", 0)),
            ]
        )
        .then(merge)
        .commit()
    )

    result = WorkflowRunner().start(wf, {"x": -1})

    assert result.output == {"default": {"y": 0}}
    assert calls == ["default"]


def test_branch_without_match_raises() -> None:
    merge = create_step(id="merge", input_schema=Any, output_schema=Any, execute=lambda i, c: i)
    wf = (
        Workflow(id="no-match", input_schema=X, output_schema=Any)
        .branch([(lambda p: p["x"] > 0, double)])
        .then(merge)
        .commit()
    )
    runner = WorkflowRunner()

    with pytest.raises(NoBranchMatchedError):
        runner.start(wf, {"x": -5}, run_id="r")

    assert runner.store.require("r").status == "failed"


def test_parallel_output_keys_are_the_step_ids() -> None:
    def sleeper(id: str, delay: float):
        def execute(inputs: X, ctx: StepContext) -> Y:
            time.sleep(delay)
            return Y(y=inputs.x)

        return create_step(id=id, input_schema=X, output_schema=Y, execute=execute)

    class Merged(BaseModel):
        a: Y
        b: Y
        c: Y

    merge = create_step(
        id="merge", input_schema=Merged, output_schema=Merged, execute=lambda i, c: i
    )
    wf = (
        Workflow(id="fan", input_schema=X, output_schema=Merged)
        .parallel([sleeper("a", 0.05), sleeper("b", 0.0), sleeper("c", 0.02)])
        .then(merge)
        .commit()
    )

    result = WorkflowRunner().start(wf, {"x": 2})

    assert set(result.output) == {"a", "b", "c"}


def test_parallel_failure_in_one_member_fails_the_node() -> None:
    ok = create_step(id="ok", input_schema=X, output_schema=Y, execute=lambda i, c: Y(y=1))

    def fail(inputs: X, ctx: StepContext) -> Y:
        raise ValueError("no")

    bad = create_step(id="bad", input_schema=X, output_schema=Y, execute=fail)
    merge = create_step(id="merge", input_schema=Any, output_schema=Any, execute=lambda i, c: i)
    wf = (
        Workflow(id="fan-fail", input_schema=X, output_schema=Any)
        .parallel([ok, bad])
        .then(merge)
        .commit()
    )

    with pytest.raises(StepExecutionError) as exc:
        WorkflowRunner().start(wf, {"x": 1})

    assert exc.value.step_id == "bad"


class Numbers(BaseModel):
    values: list[int]


@step("explode", input_schema=Numbers, output_schema=list[X])
def explode(inputs: Numbers, ctx: StepContext) -> list[X]:
    return [X(x=v) for v in inputs.values]


def test_foreach_preserves_input_order() -> None:
    def slow_double(inputs: X, ctx: StepContext) -> Y:
        # Earlier items finish last.
        time.sleep(0.01 * (5 - inputs.x))
        return Y(y=inputs.x * 2)

    each = create_step(id="each", input_schema=X, output_schema=Y, execute=slow_double)
    collect = create_step(
        id="collect", input_schema=list[Y], output_schema=list[Y], execute=lambda i, c: i
    )
    wf = (
        Workflow(id="map", input_schema=Numbers, output_schema=list[Y])
        .then(explode)
        .foreach(each)
        .then(collect)
        .commit()
    )

    result = WorkflowRunner().start(wf, {"values": [1, 2, 3, 4]})

    assert result.output == [{"y": 2}, {"y": 4}, {"y": 6}, {"y": 8}]


def test_foreach_over_empty_list_yields_empty_list() -> None:
    collect = create_step(
        id="collect", input_schema=list[Y], output_schema=list[Y], execute=lambda i, c: i
    )
    wf = (
        Workflow(id="empty", input_schema=Numbers, output_schema=list[Y])
        .then(explode)
        .foreach(double)
        .then(collect)
        .commit()
    )

    assert WorkflowRunner().start(wf, {"values": []}).output == []


def test_foreach_respects_concurrency_bound() -> None:
    lock = threading.Lock()
    active = 0
    peak = 0

    def track(inputs: X, ctx: StepContext) -> Y:
        nonlocal active, peak
        with lock:
            active += 1
            peak = max(peak, active)
        time.sleep(0.02)
        with lock:
            active -= 1
        return Y(y=inputs.x)

    each = create_step(id="each", input_schema=X, output_schema=Y, execute=track)
    wf = (
        Workflow(id="bounded", input_schema=Numbers, output_schema=list[Y])
        .then(explode)
        .foreach(each, concurrency=2)
        .commit()
    )

    result = WorkflowRunner().start(wf, {"values": list(range(6))})

    assert len(result.output) == 6
    assert peak <= 2


def test_foreach_requires_a_list() -> None:
    wf = Workflow(id="not-a-list", input_schema=X, output_schema=Any).foreach(double).commit()

    with pytest.raises(SchemaValidationError, match="foreach expects a list"):
        WorkflowRunner().start(wf, {"x": 1})


def test_rerunning_a_committed_workflow_is_idempotent() -> None:
    wf = _linear()
    runner = WorkflowRunner()

    first = runner.start(wf, {"x": 10})
    second = runner.start(wf, {"x": 10})

    assert first.output == second.output == {"z": 21}
    assert first.run_id != second.run_id


def test_async_steps_are_awaited() -> None:
    async def async_double(inputs: X, ctx: StepContext) -> Y:
        await asyncio.sleep(0)
        return Y(y=inputs.x * 2)

    s = create_step(id="async-double", input_schema=X, output_schema=Y, execute=async_double)
    wf = Workflow(id="async", input_schema=X, output_schema=Y).then(s).commit()

    assert WorkflowRunner().start(wf, {"x": 4}).output == {"y": 8}


def test_steps_see_runtime_services_and_workflow_input() -> None:
    seen: dict[str, Any] = {}

    def peek(inputs: Y, ctx: StepContext) -> Z:
        seen.update(
            runtime=dict(ctx.runtime),
            services=ctx.services,
            workflow_input=ctx.workflow_input,
            workflow_id=ctx.workflow_id,
        )
        return Z(z=inputs.y)

    s = create_step(id="peek", input_schema=Y, output_schema=Z, execute=peek)
    wf = Workflow(id="ctx", input_schema=X, output_schema=Z).then(double).then(s).commit()

    WorkflowRunner(services="svc").start(wf, {"x": 1}, runtime={"session_id": "s-1"})

    assert seen == {
        "runtime": {"session_id": "s-1"},
        "services": "svc",
        "workflow_input": {"x": 1},
        "workflow_id": "ctx",
    }


def test_runner_rejects_invalid_default_concurrency() -> None:
    with pytest.raises(ValueError):
        WorkflowRunner(default_concurrency=0)


def test_resume_requires_a_suspended_run() -> None:
    runner = WorkflowRunner()
    result = runner.start(_linear(), {"x": 1})

    with pytest.raises(RunNotSuspendedError):
        runner.resume(result.run_id, {})


def test_steps_can_read_earlier_step_results() -> None:
    seen: dict[str, Any] = {}

    def summarise(inputs: Z, ctx: StepContext) -> Z:
        seen["double"] = ctx.step_result("double")
        with pytest.raises(KeyError, match="has not completed"):
            ctx.step_result("summarise")
        return inputs

    wf = (
        Workflow(id="lookback", input_schema=X, output_schema=Z)
        .then(double)
        .then(add_one)
        .then(create_step(id="summarise", input_schema=Z, output_schema=Z, execute=summarise))
        .commit()
    )

    result = WorkflowRunner().start(wf, {"x": 2})

    assert result.output == {"z": 5}
    assert seen["double"] == {"y": 4}


def test_commit_rejects_merge_requiring_several_branch_outputs() -> None:
    class BothBranches(BaseModel):
        positive: Y
        negative: Y

    positive = create_step(id="positive", input_schema=X, output_schema=Y, execute=lambda i, c: Y(y=1))
    negative = create_step(id="negative", input_schema=X, output_schema=Y, execute=lambda i, c: Y(y=-1))
    merge = create_step(
        id="merge", input_schema=BothBranches, output_schema=Y, execute=lambda i, c: i.positive
    )
    wf = (
        Workflow(id="bad-branch", input_schema=X, output_schema=Y)
        .branch([(lambda p: p["x"] > 0, positive), (lambda p: True, negative)])
        .then(merge)
    )

    with pytest.raises(WorkflowDefinitionError, match="only one branch runs"):
        wf.commit()
