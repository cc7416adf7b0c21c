"""Unit tests for the command line entrypoint."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from conftest import FakeLLM
from pydantic import BaseModel

from planning_agent_orchestrator.core.config import OrchestratorConfig
from planning_agent_orchestrator.core.orchestrator import Orchestrator
from planning_agent_orchestrator.orchestrator import main as cli
from planning_agent_orchestrator.orchestrator.workflow import StepContext, Workflow, step


class Question(BaseModel):
    question: str
    answer: str | None = None


class Answered(BaseModel):
    text: str


@step("ask-user", input_schema=Question, output_schema=Answered)
def ask_user(inputs: Question, ctx: StepContext) -> Answered:
    if inputs.answer is None:
        ctx.suspend({"question": inputs.question})
    if inputs.answer == "boom":
        raise RuntimeError("exploded")
    return Answered(text=f"{inputs.question} -> {inputs.answer}")


@pytest.fixture(autouse=True)
def cli_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> FakeLLM:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("ORCHESTRATOR_LLM_OPENAI_API_KEY", "test-key")
    monkeypatch.setenv("ORCHESTRATOR_MEMORY_DB_PATH", str(tmp_path / "memory.db"))
    monkeypatch.setenv("ORCHESTRATOR_WORKFLOW_RUNS_PATH", str(tmp_path / "runs.json"))
    monkeypatch.setattr(OrchestratorConfig, "setup_logging", lambda self: None)

    llm = FakeLLM(["Hello from the assistant."])
    workflow = Workflow(
        id="interview", description="Ask one question", input_schema=Question, output_schema=Answered
    ).then(ask_user).commit()

    def build(config: OrchestratorConfig) -> Orchestrator:
        return Orchestrator(config, llm=llm, workflows={"interview": workflow})

    monkeypatch.setattr(cli, "Orchestrator", build)
    return llm


def _json_out(capsys: pytest.CaptureFixture[str]) -> dict:
    return json.loads(capsys.readouterr().out)


def test_list_workflows(capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main(["list-workflows"]) == cli.EXIT_OK
    assert capsys.readouterr().out == "interview\tAsk one question\n"


def test_run_suspends_then_resume_completes(capsys: pytest.CaptureFixture[str]) -> None:
    code = cli.main(["run-workflow", "interview", "--run-id", "r1", "--input", '{"question": "Colour?"}'])

    assert code == cli.EXIT_SUSPENDED
    out = _json_out(capsys)
    assert out["status"] == "suspended"
    assert out["suspended"][0]["path"] == "ask-user"

    code = cli.main(["resume-run", "r1", "--step", "ask-user", "--data", '{"answer": "blue"}'])

    assert code == cli.EXIT_OK
    assert _json_out(capsys)["output"] == {"text": "Colour? -> blue"}

    assert cli.main(["show-run", "r1"]) == cli.EXIT_OK
    assert _json_out(capsys)["status"] == "succeeded"

    assert cli.main(["list-runs", "--workflow", "interview"]) == cli.EXIT_OK
    assert capsys.readouterr().out.startswith("r1\tinterview\tsucceeded\t")


def test_input_file_and_runtime(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    payload = tmp_path / "input.json"
    payload.write_text('{"question": "Q", "answer": "A"}', encoding="utf-8")

    code = cli.main(["run-workflow", "interview", "--input-file", str(payload), "--runtime", "session_id=s1"])

    assert code == cli.EXIT_OK
    assert _json_out(capsys)["output"] == {"text": "Q -> A"}


def test_bad_runtime_value_is_a_run_error() -> None:
    assert cli.main(["run-workflow", "interview", "--runtime", "novalue"]) == cli.EXIT_RUN_FAILED


def test_invalid_input_and_step_failure_exit_codes(capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main(["run-workflow", "interview", "--input", "{}"]) == cli.EXIT_RUN_FAILED

    code = cli.main(["run-workflow", "interview", "--input", '{"question": "Q", "answer": "boom"}'])

    assert code == cli.EXIT_RUN_FAILED
    assert "ask-user" in capsys.readouterr().err


def test_unknown_workflow_and_run(capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main(["run-workflow", "nope"]) == cli.EXIT_RUN_FAILED
    assert cli.main(["resume-run", "missing"]) == cli.EXIT_RUN_FAILED
    assert "missing" in capsys.readouterr().err


def test_resume_data_must_be_an_object() -> None:
    cli.main(["run-workflow", "interview", "--run-id", "r2", "--input", '{"question": "Q"}'])

    assert cli.main(["resume-run", "r2", "--data", "[1, 2]"]) == cli.EXIT_RUN_FAILED


def test_ask_prints_agent_text(capsys: pytest.CaptureFixture[str]) -> None:
    assert cli.main(["ask", "planning-assistant", "Hi", "--session", "s1"]) == cli.EXIT_OK
    assert capsys.readouterr().out == "Hello from the assistant.\n"


def test_invalid_configuration_exits_with_config_code(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ORCHESTRATOR_LLM_PROVIDER", "unknown")

    assert cli.main(["list-workflows"]) == cli.EXIT_CONFIG


def test_missing_api_key_exits_with_config_code(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("ORCHESTRATOR_LLM_OPENAI_API_KEY")
    monkeypatch.setattr(cli, "Orchestrator", Orchestrator)

    assert cli.main(["list-workflows"]) == cli.EXIT_CONFIG
