"""Background thread runner for workflow runs started over HTTP."""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from typing import Any

from planning_agent_orchestrator.orchestrator.workflow import WorkflowRunner, WorkflowRunRecord

logger = logging.getLogger(__name__)


def start_run_job(
    *,
    runner: WorkflowRunner,
    record: WorkflowRunRecord,
    runtime: Mapping[str, Any] | None = None,
) -> threading.Thread:
    """Execute an already-created run on a daemon thread.

    The run record exists before this returns, so clients can poll it at once.
    """

    thread = threading.Thread(
        target=_run_job,
        name=f"workflow-run-{record.workflow_id}-{record.run_id}",
        daemon=True,
        kwargs={"runner": runner, "record": record, "runtime": dict(runtime or {})},
    )
    thread.start()
    return thread


def _run_job(
    *,
    runner: WorkflowRunner,
    record: WorkflowRunRecord,
    runtime: dict[str, Any],
) -> None:
    try:
        runner.execute(record, runtime=runtime)
    except Exception:
        # The runner has already marked the run failed in the store.
        logger.exception(
            "Workflow run job failed",
            extra={"run_id": record.run_id, "workflow_id": record.workflow_id},
        )
