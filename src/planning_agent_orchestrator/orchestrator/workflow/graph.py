"""Workflow graph builder.

A workflow is an ordered list of nodes built with combinators:

- ``then(step)``: sequential; the previous node's output becomes this input
- ``parallel([steps])``: fan-out/fan-in; produces ``{step_id: output}``
- ``foreach(step)``: maps a step over a sequence, keeping input order
- ``branch([(condition, step), ...])``: first matching condition wins;
  produces ``{step_id: output}`` for the chosen step

``commit()`` validates and freezes the graph. Committed workflows carry no
run state and can be executed any number of times.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any, Union

from .errors import WorkflowDefinitionError
from .schema import Schema, as_schema
from .steps import Step

logger = logging.getLogger(__name__)

Condition = Callable[[Any], bool]


@dataclass(frozen=True, slots=True)
class SequentialNode:
    step: Step

    @property
    def step_ids(self) -> tuple[str, ...]:
        return (self.step.id,)


@dataclass(frozen=True, slots=True)
class ParallelNode:
    steps: tuple[Step, ...]

    @property
    def step_ids(self) -> tuple[str, ...]:
        return tuple(s.id for s in self.steps)


@dataclass(frozen=True, slots=True)
class ForEachNode:
    step: Step
    concurrency: int | None = None

    @property
    def step_ids(self) -> tuple[str, ...]:
        return (self.step.id,)


@dataclass(frozen=True, slots=True)
class BranchNode:
    conditions: tuple[tuple[Condition, Step], ...]

    @property
    def steps(self) -> tuple[Step, ...]:
        return tuple(s for _, s in self.conditions)

    @property
    def step_ids(self) -> tuple[str, ...]:
        return tuple(s.id for _, s in self.conditions)


GraphNode = Union[SequentialNode, ParallelNode, ForEachNode, BranchNode]


class Workflow:
    """A composed graph of steps with declared input and output shapes."""

    def __init__(
        self,
        *,
        id: str,
        input_schema: Any,
        output_schema: Any,
        description: str = "",
    ) -> None:
        if not id.strip():
            raise WorkflowDefinitionError("Workflow id is required")
        self.id = id
        self.description = description
        self.input_schema: Schema = as_schema(input_schema)
        self.output_schema: Schema = as_schema(output_schema)
        self._nodes: list[GraphNode] = []
        self._committed = False

    @property
    def committed(self) -> bool:
        return self._committed

    @property
    def nodes(self) -> tuple[GraphNode, ...]:
        return tuple(self._nodes)

    def _append(self, node: GraphNode) -> Workflow:
        if self._committed:
            raise WorkflowDefinitionError(f"Workflow {self.id!r} is committed and cannot change")
        self._nodes.append(node)
        return self

    def then(self, step: Step) -> Workflow:
        return self._append(SequentialNode(step=step))

    def parallel(self, steps: Sequence[Step]) -> Workflow:
        if not steps:
            raise WorkflowDefinitionError("parallel() requires at least one step")
        return self._append(ParallelNode(steps=tuple(steps)))

    def foreach(self, step: Step, *, concurrency: int | None = None) -> Workflow:
        if concurrency is not None and concurrency < 1:
            raise WorkflowDefinitionError("foreach() concurrency must be >= 1")
        return self._append(ForEachNode(step=step, concurrency=concurrency))

    def branch(self, conditions: Sequence[tuple[Condition, Step]]) -> Workflow:
        if not conditions:
            raise WorkflowDefinitionError("branch() requires at least one condition")
        return self._append(BranchNode(conditions=tuple((c, s) for c, s in conditions)))

    def commit(self) -> Workflow:
        """Validate and freeze the graph.

        Raises:
            WorkflowDefinitionError: on an empty graph, duplicate step ids, a fan-in
                node without a following merge step, or a structural mismatch
                between consecutive model schemas.
        """

        if self._committed:
            return self
        if not self._nodes:
            raise WorkflowDefinitionError(f"Workflow {self.id!r} has no steps")

        seen: set[str] = set()
        for node in self._nodes:
            for step_id in node.step_ids:
                if step_id in seen:
                    raise WorkflowDefinitionError(
                        f"Duplicate step id {step_id!r} in workflow {self.id!r}"
                    )
                seen.add(step_id)

        for idx, node in enumerate(self._nodes):
            if isinstance(node, (ParallelNode, BranchNode)):
                nxt = self._nodes[idx + 1] if idx + 1 < len(self._nodes) else None
                if not isinstance(nxt, SequentialNode):
                    raise WorkflowDefinitionError(
                        f"{type(node).__name__} ({', '.join(node.step_ids)}) must be followed "
                        f"by a merge step in workflow {self.id!r}"
                    )

        produced = self.input_schema.field_names()
        previous: GraphNode | None = None
        for node in self._nodes:
            for consumer in _consumers(node):
                _check_compatible(self.id, produced, consumer)
                if isinstance(previous, BranchNode):
                    _check_branch_merge(self.id, previous, consumer)
            produced = _produced_fields(node)
            previous = node

        self._committed = True
        logger.debug(
            "Workflow committed", extra={"workflow_id": self.id, "nodes": len(self._nodes)}
        )
        return self

    def __repr__(self) -> str:
        return f"Workflow(id={self.id!r}, nodes={len(self._nodes)}, committed={self._committed})"


def _consumers(node: GraphNode) -> tuple[Step, ...]:
    if isinstance(node, SequentialNode):
        return (node.step,)
    if isinstance(node, (ParallelNode, BranchNode)):
        return node.steps
    # foreach consumes sequence elements; element shape is not tracked.
    return ()


def _produced_fields(node: GraphNode) -> set[str] | None:
    if isinstance(node, SequentialNode):
        return node.step.output_schema.field_names()
    if isinstance(node, ParallelNode):
        return set(node.step_ids)
    if isinstance(node, BranchNode):
        return set(node.step_ids)
    return None


def _check_compatible(workflow_id: str, produced: set[str] | None, consumer: Step) -> None:
    required = consumer.input_schema.required_fields()
    if produced is None or required is None:
        return
    missing = required - produced
    if missing:
        raise WorkflowDefinitionError(
            f"Step {consumer.id!r} in workflow {workflow_id!r} requires fields "
            f"{sorted(missing)} not produced by the previous node"
        )


def _check_branch_merge(workflow_id: str, branch: BranchNode, consumer: Step) -> None:
    # A branch produces exactly one of its step ids at run time.
    if len(branch.step_ids) < 2:
        return
    required = consumer.input_schema.required_fields() or set()
    needed = sorted(required & set(branch.step_ids))
    if needed:
        raise WorkflowDefinitionError(
            f"Step {consumer.id!r} in workflow {workflow_id!r} requires branch outputs {needed}, "
            "but only one branch runs; make them optional"
        )
