"""Jira Cloud REST (v3) client wrapper.

Keeps Jira HTTP calls out of tool code. Authentication is basic auth with the
account email and an API token.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import requests

logger = logging.getLogger(__name__)


class JiraAPIError(RuntimeError):
    """A Jira request returned a non-2xx status."""

    def __init__(self, operation: str, status_code: int, detail: str) -> None:
        super().__init__(f"Jira {operation} failed: {status_code} - {detail}")
        self.operation = operation
        self.status_code = status_code


@dataclass(frozen=True, slots=True)
class JiraIssue:
    key: str
    id: str
    summary: str
    status: str
    url: str
    description: str = ""


@dataclass(frozen=True, slots=True)
class JiraProject:
    id: str
    key: str
    name: str
    url: str


def text_to_adf(text: str) -> dict[str, Any]:
    """Wrap plain text as an Atlassian Document Format document, one paragraph per block."""

    paragraphs = [p for p in text.split("\n\n") if p.strip()] or [""]
    return {
        "type": "doc",
        "version": 1,
        "content": [
            {"type": "paragraph", "content": [{"type": "text", "text": p}] if p else []}
            for p in paragraphs
        ],
    }


def quote_jql(value: str) -> str:
    """Quote a value as a JQL string literal."""

    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def adf_to_text(node: Any) -> str:
    """Flatten an ADF document (or plain string) back into text."""

    if node is None:
        return ""
    if isinstance(node, str):
        return node
    if isinstance(node, dict):
        if node.get("type") == "text":
            return str(node.get("text", ""))
        parts = [adf_to_text(child) for child in node.get("content") or []]
        sep = "\n\n" if node.get("type") == "doc" else ""
        return sep.join(p for p in parts if p)
    return ""


class JiraClient:
    def __init__(
        self,
        *,
        base_url: str,
        email: str,
        token: str,
        session: requests.Session | None = None,
    ) -> None:
        if not (base_url and email and token):
            raise ValueError("Jira base_url, email and token are required")

        self._site_url = base_url.rstrip("/")
        self._api_url = f"{self._site_url}/rest/api/3"
        self._session = session or requests.Session()
        self._session.auth = (email, token)
        self._session.headers.update(
            {"Accept": "application/json", "Content-Type": "application/json"}
        )

    def browse_url(self, key: str) -> str:
        return f"{self._site_url}/browse/{key}"

    def _request(self, method: str, path: str, operation: str, **kwargs: Any) -> Any:
        resp = self._session.request(method, f"{self._api_url}/{path.lstrip('/')}", timeout=30, **kwargs)
        if not resp.ok:
            logger.warning(
                "Jira request failed",
                extra={"operation": operation, "status_code": resp.status_code},
            )
            raise JiraAPIError(operation, resp.status_code, resp.text)
        if resp.status_code == 204 or not resp.content:
            return None
        return resp.json()

    def _issue_from_json(self, data: dict[str, Any]) -> JiraIssue:
        fields = data.get("fields") or {}
        return JiraIssue(
            key=data.get("key", ""),
            id=str(data.get("id", "")),
            summary=fields.get("summary") or "",
            status=(fields.get("status") or {}).get("name", ""),
            url=self.browse_url(data.get("key", "")),
            description=adf_to_text(fields.get("description")),
        )

    def create_issue(
        self,
        *,
        project_key: str,
        summary: str,
        description: str | None = None,
        issue_type: str = "Task",
    ) -> JiraIssue:
        fields: dict[str, Any] = {
            "project": {"key": project_key},
            "summary": summary,
            "issuetype": {"name": issue_type},
        }
        if description:
            fields["description"] = text_to_adf(description)
        data = self._request("POST", "issue", "create issue", json={"fields": fields})
        logger.info("Created Jira issue", extra={"key": data.get("key")})
        return JiraIssue(
            key=data.get("key", ""),
            id=str(data.get("id", "")),
            summary=summary,
            status="",
            url=self.browse_url(data.get("key", "")),
            description=description or "",
        )

    def get_issue(self, key: str) -> JiraIssue:
        return self._issue_from_json(self._request("GET", f"issue/{key}", "get issue"))

    def update_issue(
        self,
        key: str,
        *,
        summary: str | None = None,
        description: str | None = None,
        status: str | None = None,
    ) -> None:
        """Update fields and, when ``status`` is given, move the issue via a transition."""

        fields: dict[str, Any] = {}
        if summary:
            fields["summary"] = summary
        if description:
            fields["description"] = text_to_adf(description)
        if fields:
            self._request("PUT", f"issue/{key}", "update issue", json={"fields": fields})
        if status:
            self.transition_issue(key, status)

    def transition_issue(self, key: str, status: str) -> None:
        data = self._request("GET", f"issue/{key}/transitions", "list transitions")
        wanted = status.strip().lower()
        for transition in (data or {}).get("transitions", []):
            names = {
                str(transition.get("name", "")).lower(),
                str((transition.get("to") or {}).get("name", "")).lower(),
            }
            if wanted in names:
                self._request(
                    "POST",
                    f"issue/{key}/transitions",
                    "transition issue",
                    json={"transition": {"id": transition["id"]}},
                )
                return
        raise JiraAPIError("transition issue", 400, f"No transition to status {status!r}")

    def delete_issue(self, key: str) -> None:
        self._request("DELETE", f"issue/{key}", "delete issue")

    def search(self, jql: str, *, max_results: int = 20) -> list[JiraIssue]:
        data = self._request(
            "GET",
            "search/jql",
            "search issues",
            params={"jql": jql, "maxResults": max_results, "fields": "summary,status,description"},
        )
        return [self._issue_from_json(item) for item in (data or {}).get("issues", [])]

    def list_projects(self) -> list[JiraProject]:
        data = self._request("GET", "project/search", "list projects")
        return [
            JiraProject(
                id=str(p.get("id", "")),
                key=p.get("key", ""),
                name=p.get("name", ""),
                url=self.browse_url(p.get("key", "")),
            )
            for p in (data or {}).get("values", [])
        ]

    def list_epics(self, project_key: str, *, max_results: int = 50) -> list[JiraIssue]:
        return self.search(
            f"project = {quote_jql(project_key)} AND issuetype = Epic", max_results=max_results
        )

    def close(self) -> None:
        self._session.close()
