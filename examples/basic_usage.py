#!/usr/bin/env python3
"""Programmatic story mapping example.

This demonstrates driving a workflow directly from Python:

* load settings from `.env`
* start the story mapping workflow for a goal
* answer the clarifying questions when the run pauses
* print the resulting story map document

Run state is persisted to `.state/workflow_runs.json`, so a paused run can
also be resumed later with `orchestrator resume-run <run_id> --data ...`.
"""

from __future__ import annotations

import argparse
import json
from typing import Sequence

from planning_agent_orchestrator.core.orchestrator import Orchestrator


def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Build a story map (programmatic example).")
    parser.add_argument("goal", help='Product goal, e.g. "Let tenants report repairs online"')
    parser.add_argument("--session-id", default="example", help="Memory session id")
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)

    orchestrator = Orchestrator()
    orchestrator.config.setup_logging()
    runtime = {"session_id": args.session_id}

    try:
        result = orchestrator.run_workflow(
            "story-mapping-workflow", {"goal_statement": args.goal}, runtime=runtime
        )
        while result.is_suspended:
            pending = result.suspended[0]
            answers = {}
            for question in pending.payload.get("major_questions", []):
                answers[question] = input(f"{question}\n> ")
            result = orchestrator.resume_run(
                result.run_id, {"answers": answers}, step_path=pending.path, runtime=runtime
            )

        print(result.output["document"])
        print(json.dumps(result.output["story_map"], indent=2))
        return 0
    finally:
        orchestrator.close()


if __name__ == "__main__":
    raise SystemExit(main())
