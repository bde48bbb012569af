"""
GitHub REST API client.

This module handles all interactions with GitHub: fetching issues and
comments, updating issue fields and comments, and resolving an API token
from the environment or the GitHub CLI (gh).
"""

import asyncio
import logging
import os
import shutil
from datetime import UTC, datetime
from typing import Any
from urllib.parse import quote

import httpx

from .exceptions import (
    GitHubAPIError,
    GitHubAuthError,
    GitHubCLINotFoundError,
    GitHubNetworkError,
    GitHubRateLimitError,
    GitHubTimeoutError,
)
from .models import Author, Comment, Issue, IssueTemplate, Label, Milestone, parse_timestamp
from .provider import CommentClient, IssueClient, TemplateClient

logger = logging.getLogger(__name__)

TOKEN_ENV_VARS = ("GITHUB_TOKEN", "GH_TOKEN")

ISSUE_TEMPLATES_QUERY = """
query($owner: String!, $repo: String!) {
  repository(owner: $owner, name: $repo) {
    issueTemplates {
      name
      title
      body
      about
      filename
      labels(first: 100) { nodes { name } }
      assignees(first: 100) { nodes { login } }
    }
  }
}
"""


async def token_from_gh_cli(timeout: int = 10) -> str:
    """
    Read the API token stored by ``gh auth login``.

    Raises:
        GitHubCLINotFoundError: If gh is not installed
        GitHubAuthError: If gh is not authenticated
    """
    if shutil.which("gh") is None:
        raise GitHubCLINotFoundError

    try:
        proc = await asyncio.create_subprocess_exec(
            "gh",
            "auth",
            "token",
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except TimeoutError:
        raise GitHubAuthError("'gh auth token' timed out") from None
    except FileNotFoundError:
        raise GitHubCLINotFoundError from None

    if proc.returncode != 0:
        error_msg = stderr.decode().strip() if stderr else "Unknown error"
        raise GitHubAuthError(error_msg)

    token = stdout.decode().strip()
    if not token:
        raise GitHubAuthError("gh returned an empty token")
    return token


class GitHubClient(IssueClient, CommentClient, TemplateClient):
    """
    Client for the GitHub REST API.

    Implements every client interface so one instance serves
    the whole sync engine.
    """

    DEFAULT_BASE_URL = "https://api.github.com"
    DEFAULT_TIMEOUT = 60  # seconds
    PAGE_SIZE = 100
    GRAPHQL_PATH = "/graphql"

    def __init__(
        self,
        token: str | None = None,
        base_url: str = DEFAULT_BASE_URL,
        timeout: int = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """
        Initialize the GitHub client.

        Args:
            token: API token. If None, GITHUB_TOKEN / GH_TOKEN are used,
                then ``gh auth token``.
            base_url: API root (GitHub Enterprise uses ``https://host/api/v3``)
            timeout: Request timeout in seconds
            transport: Custom httpx transport, used by tests
        """
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _resolve_token(self) -> str:
        if self.token:
            return self.token
        for name in TOKEN_ENV_VARS:
            value = os.environ.get(name)
            if value:
                logger.debug(f"Using token from {name}")
                self.token = value
                return value
        self.token = await token_from_gh_cli()
        return self.token

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            token = await self._resolve_token()
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers={
                    "Authorization": f"Bearer {token}",
                    "Accept": "application/vnd.github+json",
                    "X-GitHub-Api-Version": "2022-11-28",
                },
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        """
        Make an API request with error handling.

        Returns:
            Decoded JSON, or None for empty responses

        Raises:
            Various GitHubClientError subclasses based on failure type
        """
        client = await self._get_client()
        logger.debug(f"{method} {path}")

        try:
            response = await client.request(method, path, params=params, json=json)
        except httpx.TimeoutException as e:
            raise GitHubTimeoutError(self.timeout) from e
        except httpx.TransportError as e:
            raise GitHubNetworkError(str(e)) from e

        if response.status_code == 401:
            raise GitHubAuthError("Invalid or expired API token")

        if response.status_code in (403, 429):
            remaining = response.headers.get("x-ratelimit-remaining")
            if remaining == "0" or "rate limit" in response.text.lower():
                reset = response.headers.get("x-ratelimit-reset")
                reset_time = None
                if reset and reset.isdigit():
                    reset_time = datetime.fromtimestamp(int(reset), UTC).isoformat()
                raise GitHubRateLimitError(reset_time)
            raise GitHubAPIError(f"Access forbidden: {response.text}", response.status_code)

        if response.status_code == 404:
            raise GitHubAPIError(f"Not found: {path}", 404)

        if response.status_code >= 400:
            raise GitHubAPIError(response.text, response.status_code)

        if response.status_code == 204 or not response.content:
            return None
        return response.json()

    def _parse_author(self, data: dict[str, Any] | None) -> Author | None:
        if not data or not data.get("login"):
            return None
        return Author(login=data["login"])

    def _parse_datetime(self, value: str | None) -> datetime:
        return parse_timestamp(value) or datetime.now(UTC)

    def _parse_issue(self, data: dict[str, Any]) -> Issue:
        """Parse REST issue JSON into an Issue model."""
        milestone = data.get("milestone")
        assignees = [self._parse_author(a) for a in data.get("assignees") or []]
        return Issue(
            number=data.get("number", 0),
            title=data.get("title") or "",
            body=data.get("body"),
            state=(data.get("state") or "open").upper(),
            labels=[
                Label(name=lbl["name"], color=lbl.get("color"))
                if isinstance(lbl, dict)
                else Label(name=lbl)
                for lbl in data.get("labels") or []
            ],
            assignees=[a for a in assignees if a is not None],
            milestone=Milestone(title=milestone["title"]) if milestone else None,
            author=self._parse_author(data.get("user")),
            created_at=self._parse_datetime(data.get("created_at")),
            updated_at=self._parse_datetime(data.get("updated_at")),
        )

    def _parse_comment(self, data: dict[str, Any]) -> Comment:
        """Parse REST comment JSON into a Comment model."""
        return Comment(
            id=data.get("node_id", ""),
            database_id=data.get("id", 0),
            author=self._parse_author(data.get("user")),
            created_at=self._parse_datetime(data.get("created_at")),
            body=data.get("body") or "",
        )

    @staticmethod
    def _issue_path(owner: str, repo: str, number: int) -> str:
        return f"/repos/{owner}/{repo}/issues/{number}"

    async def get_current_user(self) -> str:
        """Login of the authenticated user."""
        data = await self._request("GET", "/user")
        return data["login"]

    async def get_issue(self, owner: str, repo: str, number: int) -> Issue:
        data = await self._request("GET", self._issue_path(owner, repo, number))
        if "pull_request" in data:
            raise GitHubAPIError(f"#{number} is a pull request, not an issue")
        return self._parse_issue(data)

    async def get_comments(self, owner: str, repo: str, number: int) -> list[Comment]:
        comments: list[Comment] = []
        page = 1
        while True:
            data = await self._request(
                "GET",
                f"{self._issue_path(owner, repo, number)}/comments",
                params={"per_page": self.PAGE_SIZE, "page": page},
            )
            if not data:
                break
            comments.extend(self._parse_comment(c) for c in data)
            if len(data) < self.PAGE_SIZE:
                break
            page += 1

        logger.debug(f"Fetched {len(comments)} comments for {owner}/{repo}#{number}")
        return sorted(comments, key=lambda c: c.created_at)

    async def update_issue_body(self, owner: str, repo: str, number: int, body: str) -> None:
        await self._request("PATCH", self._issue_path(owner, repo, number), json={"body": body})

    async def update_issue_title(self, owner: str, repo: str, number: int, title: str) -> None:
        await self._request("PATCH", self._issue_path(owner, repo, number), json={"title": title})

    async def add_labels(self, owner: str, repo: str, number: int, labels: list[str]) -> None:
        await self._request(
            "POST",
            f"{self._issue_path(owner, repo, number)}/labels",
            json={"labels": labels},
        )

    async def remove_label(self, owner: str, repo: str, number: int, name: str) -> None:
        await self._request(
            "DELETE",
            f"{self._issue_path(owner, repo, number)}/labels/{quote(name, safe='')}",
        )

    async def create_comment(self, owner: str, repo: str, number: int, body: str) -> Comment:
        data = await self._request(
            "POST",
            f"{self._issue_path(owner, repo, number)}/comments",
            json={"body": body},
        )
        return self._parse_comment(data)

    async def update_comment(self, owner: str, repo: str, database_id: int, body: str) -> None:
        await self._request(
            "PATCH",
            f"/repos/{owner}/{repo}/issues/comments/{database_id}",
            json={"body": body},
        )

    async def delete_comment(self, owner: str, repo: str, database_id: int) -> None:
        await self._request("DELETE", f"/repos/{owner}/{repo}/issues/comments/{database_id}")

    async def create_issue(
        self,
        owner: str,
        repo: str,
        title: str,
        body: str,
        labels: list[str],
        assignees: list[str],
    ) -> Issue:
        payload: dict[str, Any] = {"title": title, "body": body}
        if labels:
            payload["labels"] = labels
        if assignees:
            payload["assignees"] = assignees
        data = await self._request("POST", f"/repos/{owner}/{repo}/issues", json=payload)
        return self._parse_issue(data)

    async def get_issue_templates(self, owner: str, repo: str) -> list[IssueTemplate]:
        """
        Fetch the issue templates configured in the repository.

        The REST API does not expose templates, so this goes through GraphQL.
        """
        data = await self._request(
            "POST",
            self.GRAPHQL_PATH,
            json={
                "query": ISSUE_TEMPLATES_QUERY,
                "variables": {"owner": owner, "repo": repo},
            },
        )
        if data.get("errors"):
            messages = "; ".join(e.get("message", "") for e in data["errors"])
            raise GitHubAPIError(f"GraphQL error: {messages}")

        repository = (data.get("data") or {}).get("repository") or {}
        templates: list[IssueTemplate] = []
        for item in repository.get("issueTemplates") or []:
            labels = (item.get("labels") or {}).get("nodes") or []
            assignees = (item.get("assignees") or {}).get("nodes") or []
            templates.append(
                IssueTemplate(
                    name=item["name"],
                    title=item.get("title"),
                    body=item.get("body"),
                    about=item.get("about"),
                    filename=item.get("filename"),
                    labels=[node["name"] for node in labels],
                    assignees=[node["login"] for node in assignees],
                )
            )
        logger.debug(f"Fetched {len(templates)} issue templates for {owner}/{repo}")
        return templates
