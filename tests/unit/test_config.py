"""Unit tests for configuration."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from planning_agent_orchestrator.core.config import (
    GitHubConfig,
    JiraConfig,
    LLMConfig,
    MemoryConfig,
    OrchestratorConfig,
    WorkflowConfig,
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for name in (
        "ORCHESTRATOR_LOG_LEVEL",
        "ORCHESTRATOR_LLM_PROVIDER",
        "ORCHESTRATOR_LLM_OPENAI_API_KEY",
        "ORCHESTRATOR_GITHUB_TOKEN",
        "ORCHESTRATOR_JIRA_BASE_URL",
        "ORCHESTRATOR_JIRA_EMAIL",
        "ORCHESTRATOR_JIRA_TOKEN",
        "ORCHESTRATOR_WORKFLOW_DEFAULT_CONCURRENCY",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)


def test_llm_config_defaults() -> None:
    """Test LLM config default values."""
    config = LLMConfig(openai_api_key="test-key")

    assert config.provider == "openai"
    assert config.openai_model == "gpt-4o-mini"
    assert config.openai_temperature == 0.7
    assert config.llama_n_ctx == 4096
    assert config.max_tool_rounds == 8


def test_llm_config_rejects_unknown_provider() -> None:
    with pytest.raises(ValidationError):
        LLMConfig(provider="claude")


def test_jira_config_needs_all_credentials() -> None:
    assert not JiraConfig().configured
    assert not JiraConfig(base_url="https://acme.atlassian.net", email="a@b.c").configured
    assert JiraConfig(base_url="https://acme.atlassian.net", email="a@b.c", token="t").configured


def test_storage_defaults_live_under_state_dir() -> None:
    assert MemoryConfig().db_path == Path(".state/memory.db")
    assert WorkflowConfig().runs_path == Path(".state/workflow_runs.json")
    assert WorkflowConfig().default_concurrency is None


def test_orchestrator_config_composition() -> None:
    """Test orchestrator config with nested configs."""
    config = OrchestratorConfig(log_level="DEBUG", debug=True)

    assert config.log_level == "DEBUG"
    assert config.debug is True
    assert isinstance(config.llm, LLMConfig)
    assert isinstance(config.github, GitHubConfig)
    assert isinstance(config.jira, JiraConfig)
    assert isinstance(config.workflow, WorkflowConfig)


def test_settings_load_from_env_and_dotenv(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    (tmp_path / ".env").write_text(
        "\n".join(["ORCHESTRATOR_GITHUB_TOKEN=test-token", "ORCHESTRATOR_LOG_LEVEL=WARNING", ""]),
        encoding="utf-8",
    )
    monkeypatch.setenv("ORCHESTRATOR_WORKFLOW_DEFAULT_CONCURRENCY", "3")

    config = OrchestratorConfig()

    assert config.github.token == "test-token"
    assert config.log_level == "WARNING"
    assert config.workflow.default_concurrency == 3


def test_default_concurrency_must_be_positive(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ORCHESTRATOR_WORKFLOW_DEFAULT_CONCURRENCY", "0")

    with pytest.raises(ValidationError):
        WorkflowConfig()
