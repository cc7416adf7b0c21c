"""CLI entrypoint for the planning agent orchestrator."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from planning_agent_orchestrator import __version__
from planning_agent_orchestrator.core.config import OrchestratorConfig
from planning_agent_orchestrator.core.orchestrator import Orchestrator
from planning_agent_orchestrator.orchestrator.workflow import (
    NoBranchMatchedError,
    RunNotFoundError,
    RunNotSuspendedError,
    SchemaValidationError,
    StepExecutionError,
    WorkflowRunResult,
)

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_CONFIG = 2
EXIT_RUN_FAILED = 3
EXIT_SUSPENDED = 4


def _load_json(value: str | None, file: str | None) -> Any:
    if file:
        return json.loads(Path(file).read_text(encoding="utf-8"))
    if value:
        return json.loads(value)
    return {}


def _parse_runtime(pairs: list[str] | None) -> dict[str, str]:
    runtime: dict[str, str] = {}
    for pair in pairs or []:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            raise ValueError(f"Runtime values must be KEY=VALUE, got {pair!r}")
        runtime[key.strip()] = value
    return runtime


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


def _report(result: WorkflowRunResult) -> int:
    if result.is_suspended:
        _print_json(
            {
                "run_id": result.run_id,
                "status": result.status,
                "suspended": [s.model_dump(mode="json") for s in result.suspended],
            }
        )
        return EXIT_SUSPENDED
    _print_json({"run_id": result.run_id, "status": result.status, "output": result.output})
    return EXIT_OK


def _add_payload_args(parser: argparse.ArgumentParser, flag: str, what: str) -> None:
    group = parser.add_mutually_exclusive_group()
    group.add_argument(f"--{flag}", dest="payload", default=None, help=f"{what} as a JSON string")
    group.add_argument(
        f"--{flag}-file", dest="payload_file", default=None, help=f"Path to a JSON file with the {what}"
    )
    parser.add_argument(
        "--runtime",
        action="append",
        default=None,
        metavar="KEY=VALUE",
        help="Runtime context value (repeatable), e.g. session_id=abc or start_date=2024-01-01",
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="orchestrator",
        description="Run LLM planning workflows (story maps, epics, role reviews, projects)",
    )
    parser.add_argument(
        "--version", action="version", version=f"planning-agent-orchestrator {__version__}"
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("list-workflows", help="List the available workflows")

    run = subparsers.add_parser("run-workflow", help="Start a workflow run")
    run.add_argument("workflow_id", help="Workflow id, e.g. 'story-mapping-workflow'")
    run.add_argument("--run-id", default=None, help="Explicit run id (defaults to a random id)")
    _add_payload_args(run, "input", "workflow input")

    resume = subparsers.add_parser("resume-run", help="Resume a suspended run")
    resume.add_argument("run_id", help="Id of the suspended run")
    resume.add_argument(
        "--step",
        dest="step_path",
        default=None,
        help="Suspended step path to resume, e.g. 'clarify-goal' or 'research-question[2]'",
    )
    _add_payload_args(resume, "data", "resume data")

    show = subparsers.add_parser("show-run", help="Print a stored run record")
    show.add_argument("run_id", help="Run id")

    runs = subparsers.add_parser("list-runs", help="List stored runs")
    runs.add_argument("--workflow", dest="workflow_id", default=None, help="Filter by workflow id")

    ask = subparsers.add_parser("ask", help="Send a single prompt to an agent")
    ask.add_argument("agent_id", help="Agent id, e.g. 'planning-assistant'")
    ask.add_argument("prompt", help="Prompt text")
    ask.add_argument("--session", dest="session_id", default=None, help="Memory session id")

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    try:
        config = OrchestratorConfig()
    except ValidationError as e:
        # Logging isn't configured yet; keep it simple and actionable.
        print("Configuration error (check your .env):", file=sys.stderr)
        print(e, file=sys.stderr)
        return EXIT_CONFIG

    config.setup_logging()

    try:
        orchestrator = Orchestrator(config)
    except (ValidationError, ValueError, ImportError) as e:
        logger.error("Failed to initialize orchestrator", extra={"error": str(e)})
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG

    try:
        if args.command == "list-workflows":
            for workflow in orchestrator.workflows.values():
                print(f"{workflow.id}\t{workflow.description}")
            return EXIT_OK

        if args.command == "run-workflow":
            payload = _load_json(args.payload, args.payload_file)
            result = orchestrator.run_workflow(
                args.workflow_id,
                payload,
                runtime=_parse_runtime(args.runtime),
                run_id=args.run_id,
            )
            return _report(result)

        if args.command == "resume-run":
            data = _load_json(args.payload, args.payload_file)
            if not isinstance(data, dict):
                raise ValueError("Resume data must be a JSON object")
            result = orchestrator.resume_run(
                args.run_id,
                data,
                step_path=args.step_path,
                runtime=_parse_runtime(args.runtime),
            )
            return _report(result)

        if args.command == "show-run":
            _print_json(orchestrator.get_run(args.run_id).model_dump(mode="json"))
            return EXIT_OK

        if args.command == "list-runs":
            for record in orchestrator.list_runs(workflow_id=args.workflow_id):
                print(f"{record.run_id}\t{record.workflow_id}\t{record.status}\t{record.updated_at}")
            return EXIT_OK

        if args.command == "ask":
            answer = orchestrator.ask(args.agent_id, args.prompt, session_id=args.session_id)
            print(answer.text)
            return EXIT_OK

        logger.error("Unknown command", extra={"command": args.command})
        return EXIT_CONFIG

    except (SchemaValidationError, StepExecutionError, NoBranchMatchedError) as e:
        logger.warning(str(e), extra={"step_id": getattr(e, "step_id", None)})
        print(str(e), file=sys.stderr)
        return EXIT_RUN_FAILED

    except (RunNotFoundError, RunNotSuspendedError, KeyError, ValueError) as e:
        print(str(e), file=sys.stderr)
        return EXIT_RUN_FAILED

    except Exception:
        logger.exception("Command failed")
        return EXIT_ERROR

    finally:
        orchestrator.close()


if __name__ == "__main__":
    raise SystemExit(main())
