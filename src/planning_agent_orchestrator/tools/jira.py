"""Jira tools: issue CRUD, JQL search, projects, epics and the session's
current project key (kept in memory facts)."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import requests
from pydantic import BaseModel, Field

from planning_agent_orchestrator.orchestrator.jira.client import JiraAPIError, JiraClient, JiraIssue
from planning_agent_orchestrator.tools.base import Tool, ToolContext, ToolError, create_tool

CURRENT_PROJECT_KEY = "currentProjectKey"
DEFAULT_SESSION = "default"

ExecuteFn = Callable[[Any, ToolContext], Any]


class CreateJiraIssueInput(BaseModel):
    project_key: str
    summary: str = Field(min_length=1)
    description: str | None = None
    issue_type: str = "Task"


class JiraIssueRef(BaseModel):
    key: str
    id: str
    url: str


class GetJiraIssueInput(BaseModel):
    issue_key: str


class JiraIssueSummary(BaseModel):
    key: str
    id: str
    summary: str
    status: str
    url: str


class JiraIssueDetails(JiraIssueSummary):
    description: str = ""


class UpdateJiraIssueInput(BaseModel):
    issue_key: str
    summary: str | None = None
    description: str | None = None
    status: str | None = Field(default=None, description="Target status name; applied as a transition.")


class JiraUpdateResult(BaseModel):
    success: bool
    key: str
    url: str = ""


class ListJiraIssuesInput(BaseModel):
    jql: str = Field(description="Jira Query Language string")
    max_results: int = Field(default=20, ge=1, le=100)


class JiraIssueList(BaseModel):
    issues: list[JiraIssueSummary]


class NoInput(BaseModel):
    pass


class JiraProjectInfo(BaseModel):
    id: str
    key: str
    name: str
    url: str


class JiraProjectList(BaseModel):
    projects: list[JiraProjectInfo]


class ListEpicsInput(BaseModel):
    project_key: str | None = Field(
        default=None, description="Jira project key; defaults to the current project key"
    )
    max_results: int = Field(default=50, ge=1, le=100)


class ProjectKeyOutput(BaseModel):
    project_key: str | None = None


class SetProjectKeyInput(BaseModel):
    project_key: str = Field(min_length=1)


def _summary(issue: JiraIssue) -> JiraIssueSummary:
    return JiraIssueSummary(
        key=issue.key, id=issue.id, summary=issue.summary, status=issue.status, url=issue.url
    )


def _guarded(tool_id: str, fn: ExecuteFn) -> ExecuteFn:
    def execute(args: Any, ctx: ToolContext) -> Any:
        try:
            return fn(args, ctx)
        except JiraAPIError as e:
            raise ToolError(tool_id, str(e), status_code=e.status_code) from e
        except requests.RequestException as e:
            raise ToolError(tool_id, f"Jira request failed: {e}") from e

    return execute


def _scope(ctx: ToolContext) -> str:
    return f"session:{ctx.session_id or DEFAULT_SESSION}"


def _current_project_key(ctx: ToolContext) -> str | None:
    if ctx.memory is None:
        return None
    return ctx.memory.get_value(_scope(ctx), CURRENT_PROJECT_KEY)


def current_project_tools() -> list[Tool]:
    """Tools reading/writing the session's current Jira project key."""

    def get_current(args: NoInput, ctx: ToolContext) -> ProjectKeyOutput:
        return ProjectKeyOutput(project_key=_current_project_key(ctx))

    def set_current(args: SetProjectKeyInput, ctx: ToolContext) -> ProjectKeyOutput:
        if ctx.memory is None:
            raise ToolError("set-current-project-key", "No memory store available")
        ctx.memory.set_value(_scope(ctx), CURRENT_PROJECT_KEY, args.project_key)
        return ProjectKeyOutput(project_key=args.project_key)

    return [
        create_tool(
            id="get-current-project-key",
            description="Get the current Jira project key from memory.",
            input_schema=NoInput,
            output_schema=ProjectKeyOutput,
            execute=get_current,
        ),
        create_tool(
            id="set-current-project-key",
            description="Remember the Jira project key the user is working in.",
            input_schema=SetProjectKeyInput,
            output_schema=ProjectKeyOutput,
            execute=set_current,
        ),
    ]


def jira_tools(client: JiraClient) -> list[Tool]:
    def create_issue(args: CreateJiraIssueInput, ctx: ToolContext) -> JiraIssueRef:
        issue = client.create_issue(
            project_key=args.project_key,
            summary=args.summary,
            description=args.description,
            issue_type=args.issue_type,
        )
        return JiraIssueRef(key=issue.key, id=issue.id, url=issue.url)

    def get_issue(args: GetJiraIssueInput, ctx: ToolContext) -> JiraIssueDetails:
        issue = client.get_issue(args.issue_key)
        return JiraIssueDetails(**_summary(issue).model_dump(), description=issue.description)

    def update_issue(args: UpdateJiraIssueInput, ctx: ToolContext) -> JiraUpdateResult:
        client.update_issue(
            args.issue_key, summary=args.summary, description=args.description, status=args.status
        )
        return JiraUpdateResult(success=True, key=args.issue_key, url=client.browse_url(args.issue_key))

    def delete_issue(args: GetJiraIssueInput, ctx: ToolContext) -> JiraUpdateResult:
        client.delete_issue(args.issue_key)
        return JiraUpdateResult(success=True, key=args.issue_key)

    def list_issues(args: ListJiraIssuesInput, ctx: ToolContext) -> JiraIssueList:
        issues = client.search(args.jql, max_results=args.max_results)
        return JiraIssueList(issues=[_summary(i) for i in issues])

    def list_projects(args: NoInput, ctx: ToolContext) -> JiraProjectList:
        return JiraProjectList(
            projects=[
                JiraProjectInfo(id=p.id, key=p.key, name=p.name, url=p.url)
                for p in client.list_projects()
            ]
        )

    def list_epics(args: ListEpicsInput, ctx: ToolContext) -> JiraIssueList:
        project_key = args.project_key or _current_project_key(ctx)
        if not project_key:
            raise ToolError(
                "list-jira-epics-for-project",
                "No project key given and no current project key is set",
            )
        issues = client.list_epics(project_key, max_results=args.max_results)
        return JiraIssueList(issues=[_summary(i) for i in issues])

    specs = [
        ("create-jira-issue", "Create a new Jira issue/card.", CreateJiraIssueInput, JiraIssueRef, create_issue),
        ("get-jira-issue", "Get a Jira issue/card by key.", GetJiraIssueInput, JiraIssueDetails, get_issue),
        ("update-jira-issue", "Update a Jira issue/card.", UpdateJiraIssueInput, JiraUpdateResult, update_issue),
        ("delete-jira-issue", "Delete a Jira issue/card.", GetJiraIssueInput, JiraUpdateResult, delete_issue),
        ("list-jira-issues", "List Jira issues using a JQL query.", ListJiraIssuesInput, JiraIssueList, list_issues),
        ("list-jira-projects", "List all Jira projects.", NoInput, JiraProjectList, list_projects),
        (
            "list-jira-epics-for-project",
            "List all epics for a given Jira project key.",
            ListEpicsInput,
            JiraIssueList,
            list_epics,
        ),
    ]
    return [
        create_tool(
            id=tool_id,
            description=description,
            input_schema=input_schema,
            output_schema=output_schema,
            execute=_guarded(tool_id, fn),
        )
        for tool_id, description, input_schema, output_schema, fn in specs
    ]
