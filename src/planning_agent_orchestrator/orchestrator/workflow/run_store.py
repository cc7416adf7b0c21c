"""Persisted workflow run records.

Runs (including suspended checkpoints) are persisted to a JSON file so a
suspended run can be resumed by a later process. With no path, records are
kept in memory only.
"""

from __future__ import annotations

import json
import logging
import threading
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any, Literal

from pydantic import BaseModel, Field

from .errors import RunNotFoundError

logger = logging.getLogger(__name__)

RunStatus = Literal["running", "suspended", "succeeded", "failed"]


def _utc_iso_now() -> str:
    return datetime.now(tz=UTC).isoformat()


class SuspendedStep(BaseModel):
    """A step waiting for external input.

    ``path`` identifies the step within the run: the step id, with an
    ``[index]`` suffix for foreach elements.
    """

    path: str
    step_id: str
    node_index: int
    item_index: int | None = None
    step_input: Any = None
    payload: dict[str, Any] = Field(default_factory=dict)


class WorkflowRunRecord(BaseModel):
    run_id: str
    workflow_id: str
    status: RunStatus
    created_at: str
    updated_at: str

    input: Any = None
    # Payload entering the node at ``node_index`` (the resume point).
    payload: Any = None
    node_index: int = 0
    suspended: list[SuspendedStep] = Field(default_factory=list)
    # Completed members of a partially suspended parallel/foreach/branch node.
    partial_outputs: dict[str, Any] = Field(default_factory=dict)
    # Outputs of completed nodes by step id, readable through ``ctx.step_result``.
    step_results: dict[str, Any] = Field(default_factory=dict)

    output: Any = None
    error: str | None = None
    failed_step_id: str | None = None


class RunStore:
    """Thread-safe store for :class:`WorkflowRunRecord`."""

    def __init__(self, path: Path | None = None) -> None:
        self._path = path
        self._lock = threading.Lock()
        self._memory: dict[str, WorkflowRunRecord] = {}

    @property
    def path(self) -> Path | None:
        return self._path

    def _load_unlocked(self) -> dict[str, WorkflowRunRecord]:
        if self._path is None:
            return dict(self._memory)
        if not self._path.exists():
            return {}
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            logger.warning(
                "Run state file is not valid JSON; treating as empty",
                extra={"path": str(self._path)},
            )
            return {}
        if not isinstance(raw, list):
            logger.warning(
                "Run state file has unexpected shape; treating as empty",
                extra={"path": str(self._path)},
            )
            return {}
        records = [WorkflowRunRecord.model_validate(item) for item in raw]
        return {r.run_id: r for r in records}

    def _save_unlocked(self, records: dict[str, WorkflowRunRecord]) -> None:
        if self._path is None:
            self._memory = dict(records)
            return
        self._path.parent.mkdir(parents=True, exist_ok=True)
        payload = [r.model_dump(mode="json") for r in records.values()]
        self._path.write_text(
            json.dumps(payload, indent=2, ensure_ascii=False) + "\n", encoding="utf-8"
        )

    def create(self, *, run_id: str, workflow_id: str, input: Any) -> WorkflowRunRecord:
        with self._lock:
            records = self._load_unlocked()
            now = _utc_iso_now()
            record = WorkflowRunRecord(
                run_id=run_id,
                workflow_id=workflow_id,
                status="running",
                created_at=now,
                updated_at=now,
                input=input,
                payload=input,
            )
            records[run_id] = record
            self._save_unlocked(records)
            return record

    def get(self, run_id: str) -> WorkflowRunRecord | None:
        with self._lock:
            return self._load_unlocked().get(run_id)

    def require(self, run_id: str) -> WorkflowRunRecord:
        record = self.get(run_id)
        if record is None:
            raise RunNotFoundError(run_id)
        return record

    def save(self, record: WorkflowRunRecord) -> WorkflowRunRecord:
        with self._lock:
            records = self._load_unlocked()
            updated = record.model_copy(update={"updated_at": _utc_iso_now()})
            records[record.run_id] = updated
            self._save_unlocked(records)
            return updated

    def list(self, *, workflow_id: str | None = None) -> list[WorkflowRunRecord]:
        with self._lock:
            records = list(self._load_unlocked().values())
        if workflow_id is not None:
            records = [r for r in records if r.workflow_id == workflow_id]
        return sorted(records, key=lambda r: r.created_at)

    def prune(self, *, older_than: timedelta, include_suspended: bool = False) -> int:
        """Delete finished runs last updated before ``now - older_than``.

        Suspended runs are kept unless ``include_suspended`` is set; they never
        expire on their own.
        """

        cutoff = datetime.now(tz=UTC) - older_than
        removable = {"succeeded", "failed"} | ({"suspended"} if include_suspended else set())
        with self._lock:
            records = self._load_unlocked()
            keep = {
                run_id: r
                for run_id, r in records.items()
                if not (r.status in removable and datetime.fromisoformat(r.updated_at) < cutoff)
            }
            removed = len(records) - len(keep)
            if removed:
                self._save_unlocked(keep)
        if removed:
            logger.info("Pruned workflow runs", extra={"removed": removed})
        return removed
