"""GitHub tools: read issues (with acceptance criteria and linked issues),
create issues, and read repository files or directory listings."""

from __future__ import annotations

import logging
import re
from typing import Literal

import requests
from pydantic import BaseModel, Field

from planning_agent_orchestrator.orchestrator.github.client import GitHubClient, RepoFile
from planning_agent_orchestrator.tools.base import Tool, ToolContext, ToolError, create_tool

logger = logging.getLogger(__name__)

_ACCEPTANCE_CRITERIA_RE = re.compile(
    r"Acceptance Criteria:(.*?)(?:\n\n|\n$|$)", re.IGNORECASE | re.DOTALL
)
_ISSUE_REF_RE = re.compile(r"#(\d+)")


class GetIssueInput(BaseModel):
    owner: str
    repo: str
    issue_number: int = Field(gt=0)


class LinkedIssue(BaseModel):
    number: int
    title: str
    url: str


class GetIssueOutput(BaseModel):
    number: int
    title: str
    body: str
    acceptance_criteria: str = ""
    linked_issues: list[LinkedIssue] = Field(default_factory=list)


class CreateIssueInput(BaseModel):
    owner: str
    repo: str
    title: str = Field(min_length=1)
    body: str | None = None
    labels: list[str] | None = None
    assignees: list[str] | None = None


class CreateIssueOutput(BaseModel):
    number: int
    url: str
    title: str


class GetFileInput(BaseModel):
    owner: str
    repo: str
    path: str = Field(default="", description="File or directory path; empty for the root.")
    ref: str = Field(default="", description="Branch, tag or commit; empty for the default branch.")


class FileEntry(BaseModel):
    name: str
    path: str
    type: Literal["file", "dir"]


class GetFileOutput(BaseModel):
    type: Literal["file", "dir"]
    content: str | None = Field(default=None, description="File text; null for binary files.")
    binary: bool = False
    size: int | None = None
    entries: list[FileEntry] | None = None


def extract_acceptance_criteria(body: str) -> str:
    """Text after ``Acceptance Criteria:`` up to the next blank line."""

    match = _ACCEPTANCE_CRITERIA_RE.search(body)
    return match.group(1).strip() if match else ""


def find_issue_references(body: str, *, owner: str, repo: str, exclude: int) -> list[int]:
    """Issue numbers referenced as ``#N`` or by full issue URL, in order, deduplicated."""

    url_re = re.compile(rf"https://github\.com/{re.escape(owner)}/{re.escape(repo)}/issues/(\d+)")
    numbers: list[int] = []
    for pattern in (_ISSUE_REF_RE, url_re):
        for match in pattern.finditer(body):
            number = int(match.group(1))
            if number != exclude and number not in numbers:
                numbers.append(number)
    return numbers


def _request_error(tool_id: str, e: requests.RequestException) -> ToolError:
    # Connection errors and timeouts carry no response.
    status = e.response.status_code if e.response is not None else None
    return ToolError(tool_id, f"GitHub API error: {e}", status_code=status)


def github_tools(client: GitHubClient) -> list[Tool]:
    def get_issue(args: GetIssueInput, ctx: ToolContext) -> GetIssueOutput:
        repository = f"{args.owner}/{args.repo}"
        try:
            issue = client.get_issue(repository=repository, issue_number=args.issue_number)
        except ValueError as e:
            raise ToolError("github-get-issue", str(e)) from e
        except requests.RequestException as e:
            raise _request_error("github-get-issue", e) from e

        linked: list[LinkedIssue] = []
        for number in find_issue_references(
            issue.body, owner=args.owner, repo=args.repo, exclude=issue.number
        ):
            try:
                ref = client.get_issue(repository=repository, issue_number=number)
            except requests.RequestException as e:
                if e.response is not None and e.response.status_code == 404:
                    logger.debug(
                        "Linked issue not found; skipping",
                        extra={"repository": repository, "number": number},
                    )
                    continue
                raise _request_error("github-get-issue", e) from e
            linked.append(LinkedIssue(number=ref.number, title=ref.title, url=ref.url))

        return GetIssueOutput(
            number=issue.number,
            title=issue.title,
            body=issue.body,
            acceptance_criteria=extract_acceptance_criteria(issue.body),
            linked_issues=linked,
        )

    def create_issue(args: CreateIssueInput, ctx: ToolContext) -> CreateIssueOutput:
        try:
            created = client.create_issue(
                repository=f"{args.owner}/{args.repo}",
                title=args.title,
                body=args.body,
                labels=args.labels,
                assignees=args.assignees,
            )
        except Exception as e:
            raise ToolError("github-create-issue", f"GitHub API error: {e}") from e
        return CreateIssueOutput(number=created.number, url=created.url, title=created.title)

    def get_file(args: GetFileInput, ctx: ToolContext) -> GetFileOutput:
        try:
            result = client.get_contents(
                repository=f"{args.owner}/{args.repo}", path=args.path, ref=args.ref
            )
        except FileNotFoundError as e:
            raise ToolError("github-get-file", str(e), status_code=404) from e
        except ValueError as e:
            raise ToolError("github-get-file", str(e)) from e
        except requests.RequestException as e:
            raise _request_error("github-get-file", e) from e

        if isinstance(result, RepoFile):
            return GetFileOutput(
                type="file", content=result.content, binary=result.binary, size=result.size
            )
        return GetFileOutput(
            type="dir",
            entries=[
                FileEntry(name=e.name, path=e.path, type="dir" if e.type == "dir" else "file")
                for e in result
            ],
        )

    return [
        create_tool(
            id="github-get-issue",
            description=(
                "Fetches a GitHub issue, extracts description, acceptance criteria, "
                "and linked issues."
            ),
            input_schema=GetIssueInput,
            output_schema=GetIssueOutput,
            execute=get_issue,
        ),
        create_tool(
            id="github-create-issue",
            description="Creates a new GitHub issue in the specified repository.",
            input_schema=CreateIssueInput,
            output_schema=CreateIssueOutput,
            execute=create_issue,
        ),
        create_tool(
            id="github-get-file",
            description=(
                "Fetches the content of a file from a GitHub repository or returns "
                "the structure of a directory."
            ),
            input_schema=GetFileInput,
            output_schema=GetFileOutput,
            execute=get_file,
        ),
    ]
