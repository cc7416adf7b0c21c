"""GitHub API client wrapper.

Wraps PyGithub (writes) and the REST API via ``requests`` (reads) so GitHub
calls stay out of tool code and tests can inject fakes. Every call names the
repository explicitly since planning agents work across repositories.
"""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import requests
from github import Auth, Github

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CreatedIssue:
    """Minimal issue metadata returned from GitHub."""

    repository: str
    number: int
    title: str
    url: str
    created_at: datetime
    status: str


@dataclass(frozen=True, slots=True)
class IssueDetails:
    repository: str
    number: int
    title: str
    body: str
    state: str
    url: str
    labels: list[str]


@dataclass(frozen=True, slots=True)
class RepoFile:
    """A repository file. Binary files carry no text ``content``."""

    path: str
    sha: str
    content: str | None
    binary: bool = False
    size: int = 0


@dataclass(frozen=True, slots=True)
class RepoEntry:
    name: str
    path: str
    type: str


class GitHubClient:
    """Small wrapper around PyGithub and the GitHub REST API."""

    def __init__(
        self,
        *,
        token: str,
        base_url: str = "https://api.github.com",
        github_api: Github | None = None,
        session: requests.Session | None = None,
    ) -> None:
        if not token:
            raise ValueError("GitHub token is required")

        self._rest_base_url = base_url.rstrip("/")
        self._session = session or requests.Session()
        self._session.headers.update(
            {
                "Authorization": f"Bearer {token}",
                "Accept": "application/vnd.github+json",
                "X-GitHub-Api-Version": "2022-11-28",
                "User-Agent": "planning-agent-orchestrator",
            }
        )
        self._github = github_api or Github(auth=Auth.Token(token), base_url=self._rest_base_url)

    def _repo_url(self, *, repository: str, path: str) -> str:
        repository = repository.strip().strip("/")
        if repository.count("/") != 1:
            raise ValueError(f"Repository must be 'owner/repo', got {repository!r}")
        path = path.lstrip("/")
        return f"{self._rest_base_url}/repos/{repository}/{path}"

    def get_issue(self, *, repository: str, issue_number: int) -> IssueDetails:
        """Fetch an issue by number via REST.

        Raises:
            requests.HTTPError: on any non-2xx response (including 404).
        """

        if issue_number <= 0:
            raise ValueError("issue_number must be a positive integer")
        url = self._repo_url(repository=repository, path=f"issues/{issue_number}")
        resp = self._session.get(url, timeout=30)
        resp.raise_for_status()
        data: dict[str, Any] = resp.json()

        labels = [
            label.get("name", "") if isinstance(label, dict) else str(label)
            for label in data.get("labels") or []
        ]
        return IssueDetails(
            repository=repository,
            number=int(data.get("number") or issue_number),
            title=data.get("title") or "",
            body=data.get("body") or "",
            state=data.get("state") or "",
            url=data.get("html_url") or "",
            labels=[label for label in labels if label],
        )

    def create_issue(
        self,
        *,
        repository: str,
        title: str,
        body: str | None,
        labels: list[str] | None,
        assignees: list[str] | None = None,
    ) -> CreatedIssue:
        if not title.strip():
            raise ValueError("Issue title is required")

        repo = self._github.get_repo(repository)
        issue = repo.create_issue(
            title=title, body=body or "", labels=labels or [], assignees=assignees or []
        )
        logger.info(
            "Created GitHub issue", extra={"repository": repository, "number": issue.number}
        )
        return CreatedIssue(
            repository=repository,
            number=issue.number,
            title=issue.title,
            url=getattr(issue, "html_url", "") or "",
            created_at=issue.created_at,
            status=getattr(issue, "state", "open"),
        )

    def get_contents(
        self,
        *,
        repository: str,
        path: str,
        ref: str = "",
    ) -> RepoFile | list[RepoEntry]:
        """Return a file's text, or the listing when ``path`` is a directory.

        Raises:
            FileNotFoundError: if the path does not exist at ``ref``.
            ValueError: if ``path`` names an entry without content (symlink, submodule).
        """

        url = self._repo_url(repository=repository, path=f"contents/{path.lstrip('/')}")
        params = {"ref": ref} if ref.strip() else None
        resp = self._session.get(url, params=params, timeout=30)
        if resp.status_code == 404:
            raise FileNotFoundError(f"File not found: {path}")
        resp.raise_for_status()
        data = resp.json()

        if isinstance(data, list):
            return [
                RepoEntry(name=item.get("name", ""), path=item.get("path", ""), type=item.get("type", ""))
                for item in data
                if isinstance(item, dict)
            ]

        content = data.get("content")
        file_path = data.get("path") or path
        sha = data.get("sha") or ""
        if data.get("encoding") == "base64" and isinstance(content, str):
            raw = base64.b64decode(content.encode("utf-8"))
            try:
                text = raw.decode("utf-8")
            except UnicodeDecodeError:
                return RepoFile(path=file_path, sha=sha, content=None, binary=True, size=len(raw))
        elif isinstance(content, str):
            text = content
        else:
            # Symlinks and submodules come back without content.
            raise ValueError(f"{path!r} is a {data.get('type') or 'non-file'} entry with no content")
        return RepoFile(path=file_path, sha=sha, content=text, size=len(text.encode("utf-8")))

    def close(self) -> None:
        self._session.close()
        self._github.close()
