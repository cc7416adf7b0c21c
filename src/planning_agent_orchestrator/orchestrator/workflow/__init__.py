"""Typed step/workflow graph engine.

Steps declare their input and output shapes; workflows compose steps with
sequential, parallel, foreach and branch combinators; the runner executes
committed workflows and persists suspended runs so they can be resumed.
"""

from planning_agent_orchestrator.orchestrator.workflow.errors import (
    NoBranchMatchedError,
    RunNotFoundError,
    RunNotSuspendedError,
    SchemaValidationError,
    StepExecutionError,
    WorkflowDefinitionError,
    WorkflowError,
)
from planning_agent_orchestrator.orchestrator.workflow.graph import Workflow
from planning_agent_orchestrator.orchestrator.workflow.run_store import (
    RunStore,
    SuspendedStep,
    WorkflowRunRecord,
)
from planning_agent_orchestrator.orchestrator.workflow.runner import (
    ExecutionContext,
    WorkflowRunner,
    WorkflowRunResult,
)
from planning_agent_orchestrator.orchestrator.workflow.schema import Schema
from planning_agent_orchestrator.orchestrator.workflow.steps import (
    Step,
    StepContext,
    StepSuspended,
    create_step,
    step,
)

__all__ = [
    "ExecutionContext",
    "NoBranchMatchedError",
    "RunNotFoundError",
    "RunNotSuspendedError",
    "RunStore",
    "Schema",
    "SchemaValidationError",
    "Step",
    "StepContext",
    "StepExecutionError",
    "StepSuspended",
    "SuspendedStep",
    "Workflow",
    "WorkflowDefinitionError",
    "WorkflowError",
    "WorkflowRunRecord",
    "WorkflowRunResult",
    "WorkflowRunner",
    "create_step",
    "step",
]
