"""Pydantic models for the REST server."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

RunStatus = Literal["running", "suspended", "succeeded", "failed"]


class ApiWorkflow(BaseModel):
    id: str
    description: str
    input_schema: dict[str, Any]
    output_schema: dict[str, Any]


class StartRunRequest(BaseModel):
    input: Any = Field(default_factory=dict)
    runtime: dict[str, Any] = Field(default_factory=dict)
    run_id: str | None = None


class ResumeRunRequest(BaseModel):
    data: dict[str, Any] = Field(default_factory=dict)
    step_path: str | None = None
    runtime: dict[str, Any] = Field(default_factory=dict)


class ApiSuspendedStep(BaseModel):
    path: str
    step_id: str
    payload: dict[str, Any] = Field(default_factory=dict)


class ApiRun(BaseModel):
    run_id: str
    workflow_id: str
    status: RunStatus

    created_at: str
    updated_at: str

    suspended: list[ApiSuspendedStep] = Field(default_factory=list)
    output: Any = None

    error: str | None = None
    failed_step_id: str | None = None


class AskRequest(BaseModel):
    prompt: str
    session_id: str | None = None


class AskResponse(BaseModel):
    agent_id: str
    text: str
