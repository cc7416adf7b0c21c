"""Core configuration for the orchestrator."""

import logging
from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LLMConfig(BaseSettings):
    """Configuration for LLM providers."""

    provider: Literal["openai", "llama"] = Field(
        default="openai",
        description="LLM provider to use",
    )

    # OpenAI settings
    openai_api_key: str | None = Field(
        default=None,
        description="OpenAI API key",
    )
    openai_base_url: str | None = Field(
        default=None,
        description="Override for OpenAI-compatible endpoints",
    )
    openai_model: str = Field(
        default="gpt-4o-mini",
        description="OpenAI chat model to use",
    )
    openai_embedding_model: str = Field(
        default="text-embedding-3-small",
        description="OpenAI embedding model for vector memory",
    )
    openai_temperature: float = Field(
        default=0.7,
        ge=0.0,
        le=2.0,
        description="Temperature for OpenAI model",
    )

    # LLaMA settings
    llama_model_path: Path | None = Field(
        default=None,
        description="Path to LLaMA model file",
    )
    llama_n_ctx: int = Field(
        default=4096,
        gt=0,
        description="Context window size for LLaMA",
    )
    llama_n_threads: int | None = Field(
        default=None,
        description="Number of threads for LLaMA (None = auto)",
    )

    max_tool_rounds: int = Field(
        default=8,
        ge=1,
        description="Maximum tool-call round trips per agent generation",
    )

    model_config = SettingsConfigDict(
        env_prefix="ORCHESTRATOR_LLM_",
        env_file=".env",
        extra="ignore",
    )


class GitHubConfig(BaseSettings):
    """Configuration for GitHub integration."""

    token: str | None = Field(
        default=None,
        description="GitHub personal access token",
    )
    base_url: str = Field(
        default="https://api.github.com",
        description="GitHub API base URL",
    )

    model_config = SettingsConfigDict(
        env_prefix="ORCHESTRATOR_GITHUB_",
        env_file=".env",
        extra="ignore",
    )


class JiraConfig(BaseSettings):
    """Configuration for Jira Cloud integration."""

    base_url: str | None = Field(
        default=None,
        description="Jira site URL, e.g. https://example.atlassian.net",
    )
    email: str | None = Field(
        default=None,
        description="Account email used for basic auth",
    )
    token: str | None = Field(
        default=None,
        description="Jira API token",
    )

    model_config = SettingsConfigDict(
        env_prefix="ORCHESTRATOR_JIRA_",
        env_file=".env",
        extra="ignore",
    )

    @property
    def configured(self) -> bool:
        return bool(self.base_url and self.email and self.token)


class MemoryConfig(BaseSettings):
    """Configuration for agent memory."""

    db_path: Path = Field(
        default=Path(".state/memory.db"),
        description="SQLite database for working memory, facts and documents",
    )

    model_config = SettingsConfigDict(
        env_prefix="ORCHESTRATOR_MEMORY_",
        env_file=".env",
        extra="ignore",
    )


class WorkflowConfig(BaseSettings):
    """Configuration for workflow execution."""

    runs_path: Path = Field(
        default=Path(".state/workflow_runs.json"),
        description="JSON file holding workflow run records",
    )
    default_concurrency: int | None = Field(
        default=None,
        ge=1,
        description="Default foreach concurrency (None = unbounded)",
    )

    model_config = SettingsConfigDict(
        env_prefix="ORCHESTRATOR_WORKFLOW_",
        env_file=".env",
        extra="ignore",
    )


class OrchestratorConfig(BaseSettings):
    """Main configuration for the orchestrator."""

    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode",
    )

    llm: LLMConfig = Field(
        default_factory=LLMConfig,
        description="LLM configuration",
    )
    github: GitHubConfig = Field(
        default_factory=GitHubConfig,
        description="GitHub configuration",
    )
    jira: JiraConfig = Field(
        default_factory=JiraConfig,
        description="Jira configuration",
    )
    memory: MemoryConfig = Field(
        default_factory=MemoryConfig,
        description="Memory configuration",
    )
    workflow: WorkflowConfig = Field(
        default_factory=WorkflowConfig,
        description="Workflow execution configuration",
    )

    model_config = SettingsConfigDict(
        env_prefix="ORCHESTRATOR_",
        env_file=".env",
        extra="ignore",
    )

    def setup_logging(self) -> None:
        """Configure logging based on settings."""
        from planning_agent_orchestrator.orchestrator.logging import configure_logging

        configure_logging("DEBUG" if self.debug else self.log_level)
