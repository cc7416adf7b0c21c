"""Errors raised by the workflow engine.

Callers of a workflow receive either a result, a suspended-run descriptor, or
one of these exceptions describing which step failed and why.
"""

from __future__ import annotations

from typing import Any


class WorkflowError(Exception):
    """Base class for workflow engine errors."""


class WorkflowDefinitionError(WorkflowError, ValueError):
    """The workflow graph is malformed, mutated after commit, or not committed."""


class SchemaValidationError(WorkflowError, ValueError):
    """A payload does not match the declared shape."""

    def __init__(
        self,
        message: str,
        *,
        step_id: str | None = None,
        direction: str | None = None,
        errors: list[dict[str, Any]] | None = None,
    ) -> None:
        super().__init__(message)
        self.step_id = step_id
        self.direction = direction
        self.errors = errors or []

    def __str__(self) -> str:
        base = super().__str__()
        if self.step_id is None:
            return base
        return f"Invalid {self.direction or 'payload'} shape for step {self.step_id!r}: {base}"


class StepExecutionError(WorkflowError):
    """A step's execute function raised."""

    def __init__(self, step_id: str, message: str) -> None:
        super().__init__(message)
        self.step_id = step_id

    def __str__(self) -> str:
        return f"Step {self.step_id!r} failed: {super().__str__()}"


class NoBranchMatchedError(WorkflowError):
    """No branch condition matched the current payload."""

    def __init__(self, step_ids: list[str]) -> None:
        super().__init__(f"No branch condition matched (candidates: {', '.join(step_ids)})")
        self.step_ids = step_ids


class RunNotFoundError(WorkflowError, KeyError):
    def __init__(self, run_id: str) -> None:
        super().__init__(run_id)
        self.run_id = run_id

    def __str__(self) -> str:
        return f"Workflow run not found: {self.run_id}"


class RunNotSuspendedError(WorkflowError):
    pass
