"""FastAPI app factory.

Endpoints are intentionally thin wrappers over :class:`Orchestrator`.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException, status
from fastapi.middleware.cors import CORSMiddleware

from planning_agent_orchestrator import __version__
from planning_agent_orchestrator.agents.agent import AgentOutputError
from planning_agent_orchestrator.core.orchestrator import Orchestrator
from planning_agent_orchestrator.orchestrator.workflow import (
    RunNotFoundError,
    RunNotSuspendedError,
    SchemaValidationError,
    WorkflowError,
    WorkflowRunRecord,
)
from planning_agent_orchestrator.server.config import ServerSettings
from planning_agent_orchestrator.server.models import (
    ApiRun,
    ApiWorkflow,
    AskRequest,
    AskResponse,
    ResumeRunRequest,
    StartRunRequest,
)
from planning_agent_orchestrator.server.run_jobs import start_run_job

logger = logging.getLogger(__name__)


def _to_api_run(record: WorkflowRunRecord) -> ApiRun:
    return ApiRun.model_validate(record.model_dump(mode="json"))


def create_app(orchestrator: Orchestrator | None = None) -> FastAPI:
    settings = ServerSettings()
    if orchestrator is None:
        orchestrator = Orchestrator()
        orchestrator.config.setup_logging()

    app = FastAPI(
        title="Planning Agent Orchestrator",
        version=__version__,
        description="REST API for running LLM planning workflows.",
        openapi_url="/api/openapi.json",
        docs_url="/api/docs",
        redoc_url="/api/redoc",
    )

    app.state.settings = settings
    app.state.orchestrator = orchestrator

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.parsed_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def _require_run(run_id: str) -> WorkflowRunRecord:
        try:
            return orchestrator.get_run(run_id)
        except RunNotFoundError:
            raise HTTPException(status_code=404, detail="Run not found") from None

    @app.get("/api/v1/health")
    def health() -> dict[str, str]:
        return {"status": "ok", "version": __version__}

    @app.get("/api/v1/workflows", response_model=list[ApiWorkflow])
    def list_workflows() -> list[ApiWorkflow]:
        return [
            ApiWorkflow(
                id=w.id,
                description=w.description,
                input_schema=w.input_schema.json_schema(),
                output_schema=w.output_schema.json_schema(),
            )
            for w in orchestrator.workflows.values()
        ]

    @app.post(
        "/api/v1/workflows/{workflow_id}/runs",
        response_model=ApiRun,
        status_code=status.HTTP_202_ACCEPTED,
    )
    def start_run(workflow_id: str, req: StartRunRequest) -> ApiRun:
        workflow = orchestrator.workflows.get(workflow_id)
        if workflow is None:
            raise HTTPException(status_code=404, detail="Workflow not found")
        if req.run_id is not None and orchestrator.runner.store.get(req.run_id) is not None:
            raise HTTPException(status_code=409, detail="Run id already exists")
        try:
            record = orchestrator.runner.create_run(workflow, req.input, run_id=req.run_id)
        except SchemaValidationError as e:
            raise HTTPException(
                status_code=422, detail={"message": str(e), "errors": e.errors}
            ) from None

        start_run_job(runner=orchestrator.runner, record=record, runtime=req.runtime)
        return _to_api_run(record)

    @app.get("/api/v1/runs", response_model=list[ApiRun])
    def list_runs(workflow_id: str | None = None) -> list[ApiRun]:
        return [_to_api_run(r) for r in orchestrator.list_runs(workflow_id=workflow_id)]

    @app.get("/api/v1/runs/{run_id}", response_model=ApiRun)
    def get_run(run_id: str) -> ApiRun:
        return _to_api_run(_require_run(run_id))

    @app.post("/api/v1/runs/{run_id}/resume", response_model=ApiRun)
    def resume_run(run_id: str, req: ResumeRunRequest) -> ApiRun:
        _require_run(run_id)
        try:
            orchestrator.resume_run(
                run_id, req.data, step_path=req.step_path, runtime=req.runtime
            )
        except RunNotSuspendedError as e:
            raise HTTPException(status_code=409, detail=str(e)) from None
        except WorkflowError as e:
            # The failure is recorded on the run; report the record.
            logger.warning(str(e), extra={"run_id": run_id})
        return _to_api_run(_require_run(run_id))

    @app.get("/api/v1/agents", response_model=list[str])
    def list_agents() -> list[str]:
        return orchestrator.services.agents.ids()

    @app.post("/api/v1/agents/{agent_id}/ask", response_model=AskResponse)
    def ask(agent_id: str, req: AskRequest) -> AskResponse:
        if agent_id not in orchestrator.services.agents:
            raise HTTPException(status_code=404, detail="Agent not found")
        try:
            result = orchestrator.ask(agent_id, req.prompt, session_id=req.session_id)
        except AgentOutputError as e:
            raise HTTPException(status_code=502, detail=str(e)) from None
        return AskResponse(agent_id=agent_id, text=result.text)

    return app
