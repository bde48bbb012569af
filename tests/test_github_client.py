"""Tests for the GitHub REST client."""

import asyncio
import json
from collections.abc import Awaitable, Callable
from typing import Any

import httpx
import pytest

from gh_issue_agent.exceptions import (
    GitHubAPIError,
    GitHubAuthError,
    GitHubNetworkError,
    GitHubRateLimitError,
)
from gh_issue_agent.github_client import GitHubClient

Handler = Callable[[httpx.Request], httpx.Response]

ISSUE_JSON: dict[str, Any] = {
    "number": 42,
    "title": "Widget crashes",
    "body": "Body text",
    "state": "open",
    "labels": [{"name": "bug", "color": "d73a4a"}, {"name": "urgent"}],
    "assignees": [{"login": "alice"}],
    "milestone": {"title": "v1.0"},
    "user": {"login": "alice"},
    "created_at": "2024-01-10T09:00:00Z",
    "updated_at": "2024-01-15T14:30:00Z",
}


def comment_json(database_id: int, created_at: str, login: str | None = "bob") -> dict[str, Any]:
    return {
        "id": database_id,
        "node_id": f"IC_{database_id}",
        "user": {"login": login} if login else None,
        "created_at": created_at,
        "body": f"comment {database_id}",
    }


def run_with(handler: Handler, action: Callable[[GitHubClient], Awaitable[Any]]) -> Any:
    """Run ``action`` against a client backed by ``handler``."""

    async def runner() -> Any:
        client = GitHubClient(token="test-token", transport=httpx.MockTransport(handler))
        try:
            return await action(client)
        finally:
            await client.close()

    return asyncio.run(runner())


class TestReads:
    """Tests for fetching issues, comments and the current user."""

    def test_get_issue(self) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json=ISSUE_JSON)

        issue = run_with(handler, lambda c: c.get_issue("octo", "widgets", 42))

        assert requests[0].url.path == "/repos/octo/widgets/issues/42"
        assert requests[0].headers["Authorization"] == "Bearer test-token"
        assert issue.number == 42
        assert issue.state == "OPEN"
        assert issue.label_names == ["bug", "urgent"]
        assert issue.assignee_logins == ["alice"]
        assert issue.milestone is not None
        assert issue.milestone.title == "v1.0"
        assert issue.author_login == "alice"
        assert issue.updated_at.isoformat() == "2024-01-15T14:30:00+00:00"

    def test_get_issue_rejects_pull_request(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={**ISSUE_JSON, "pull_request": {"url": "x"}})

        with pytest.raises(GitHubAPIError, match="pull request"):
            run_with(handler, lambda c: c.get_issue("octo", "widgets", 42))

    def test_get_comments_paginates_and_sorts(self) -> None:
        pages = {
            "1": [
                comment_json(2, "2024-01-12T00:00:00Z"),
                comment_json(1, "2024-01-11T00:00:00Z", login=None),
            ],
            "2": [comment_json(3, "2024-01-13T00:00:00Z")],
        }
        seen_pages: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            page = request.url.params["page"]
            seen_pages.append(page)
            return httpx.Response(200, json=pages.get(page, []))

        async def action(client: GitHubClient):
            client.PAGE_SIZE = 2
            return await client.get_comments("octo", "widgets", 42)

        comments = run_with(handler, action)

        assert seen_pages == ["1", "2"]
        assert [c.database_id for c in comments] == [1, 2, 3]
        assert comments[0].id == "IC_1"
        assert comments[0].author_login == "unknown"
        assert comments[1].author_login == "bob"

    def test_get_current_user(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.path == "/user"
            return httpx.Response(200, json={"login": "alice"})

        assert run_with(handler, lambda c: c.get_current_user()) == "alice"


class TestWrites:
    """Tests for mutating calls."""

    def test_update_title_and_body(self) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json=ISSUE_JSON)

        async def action(client: GitHubClient) -> None:
            await client.update_issue_title("octo", "widgets", 42, "New title")
            await client.update_issue_body("octo", "widgets", 42, "New body")

        run_with(handler, action)

        assert [r.method for r in requests] == ["PATCH", "PATCH"]
        assert json.loads(requests[0].content) == {"title": "New title"}
        assert json.loads(requests[1].content) == {"body": "New body"}

    def test_labels(self) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, json=[])

        async def action(client: GitHubClient) -> None:
            await client.add_labels("octo", "widgets", 42, ["ui", "help wanted"])
            await client.remove_label("octo", "widgets", 42, "help wanted")

        run_with(handler, action)

        add, remove = requests
        assert add.method == "POST"
        assert add.url.path == "/repos/octo/widgets/issues/42/labels"
        assert json.loads(add.content) == {"labels": ["ui", "help wanted"]}
        assert remove.method == "DELETE"
        assert remove.url.raw_path.endswith(b"/labels/help%20wanted")

    def test_comment_calls(self) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            if request.method == "DELETE":
                return httpx.Response(204)
            return httpx.Response(201, json=comment_json(77, "2024-02-01T00:00:00Z", "alice"))

        async def action(client: GitHubClient):
            created = await client.create_comment("octo", "widgets", 42, "Hello")
            await client.update_comment("octo", "widgets", 77, "Hello again")
            deleted = await client.delete_comment("octo", "widgets", 77)
            return created, deleted

        created, deleted = run_with(handler, action)

        assert created.database_id == 77
        assert created.id == "IC_77"
        assert deleted is None
        assert [(r.method, r.url.path) for r in requests] == [
            ("POST", "/repos/octo/widgets/issues/42/comments"),
            ("PATCH", "/repos/octo/widgets/issues/comments/77"),
            ("DELETE", "/repos/octo/widgets/issues/comments/77"),
        ]

    def test_create_issue(self) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(201, json={**ISSUE_JSON, "number": 100, "title": "New"})

        issue = run_with(
            handler,
            lambda c: c.create_issue("octo", "widgets", "New", "Body", ["bug"], []),
        )

        assert requests[0].method == "POST"
        assert requests[0].url.path == "/repos/octo/widgets/issues"
        assert json.loads(requests[0].content) == {
            "title": "New",
            "body": "Body",
            "labels": ["bug"],
        }
        assert issue.number == 100


class TestTemplates:
    """Tests for issue template lookup."""

    def test_get_issue_templates(self) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(
                200,
                json={
                    "data": {
                        "repository": {
                            "issueTemplates": [
                                {
                                    "name": "Bug Report",
                                    "title": "Bug: ",
                                    "body": "Describe the bug",
                                    "about": "Report a bug",
                                    "filename": "bug.md",
                                    "labels": {"nodes": [{"name": "bug"}]},
                                    "assignees": {"nodes": []},
                                },
                                {"name": "Blank", "labels": None, "assignees": None},
                            ]
                        }
                    }
                },
            )

        templates = run_with(handler, lambda c: c.get_issue_templates("octo", "widgets"))

        assert requests[0].method == "POST"
        assert requests[0].url.path == "/graphql"
        assert json.loads(requests[0].content)["variables"] == {
            "owner": "octo",
            "repo": "widgets",
        }
        assert [t.name for t in templates] == ["Bug Report", "Blank"]
        assert templates[0].labels == ["bug"]
        assert templates[0].about == "Report a bug"
        assert templates[1].title is None
        assert templates[1].labels == []

    def test_graphql_errors(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"errors": [{"message": "Could not resolve"}]})

        with pytest.raises(GitHubAPIError, match="Could not resolve"):
            run_with(handler, lambda c: c.get_issue_templates("octo", "widgets"))


class TestErrors:
    """Tests for HTTP error mapping."""

    def test_unauthorized(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(401, json={"message": "Bad credentials"})

        with pytest.raises(GitHubAuthError):
            run_with(handler, lambda c: c.get_current_user())

    def test_rate_limited(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(
                403,
                headers={"x-ratelimit-remaining": "0", "x-ratelimit-reset": "1700000000"},
                json={"message": "API rate limit exceeded"},
            )

        with pytest.raises(GitHubRateLimitError) as exc_info:
            run_with(handler, lambda c: c.get_issue("octo", "widgets", 42))
        assert "2023-11-14" in exc_info.value.hint

    def test_forbidden(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(403, json={"message": "Must have admin rights"})

        with pytest.raises(GitHubAPIError) as exc_info:
            run_with(handler, lambda c: c.delete_comment("octo", "widgets", 1))
        assert exc_info.value.status_code == 403

    def test_not_found(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(404, json={"message": "Not Found"})

        with pytest.raises(GitHubAPIError) as exc_info:
            run_with(handler, lambda c: c.get_issue("octo", "widgets", 999))
        assert exc_info.value.status_code == 404

    def test_server_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(502, text="Bad gateway")

        with pytest.raises(GitHubAPIError) as exc_info:
            run_with(handler, lambda c: c.get_issue("octo", "widgets", 42))
        assert exc_info.value.status_code == 502

    def test_network_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(GitHubNetworkError):
            run_with(handler, lambda c: c.get_issue("octo", "widgets", 42))


class TestToken:
    """Tests for token resolution."""

    def test_token_from_environment(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("GITHUB_TOKEN", "env-token")
        seen: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.headers["Authorization"])
            return httpx.Response(200, json={"login": "alice"})

        async def runner() -> None:
            client = GitHubClient(transport=httpx.MockTransport(handler))
            try:
                await client.get_current_user()
            finally:
                await client.close()

        asyncio.run(runner())
        assert seen == ["Bearer env-token"]

    def test_gh_token_fallback(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("GITHUB_TOKEN", raising=False)
        monkeypatch.setenv("GH_TOKEN", "gh-token")
        client = GitHubClient()
        assert asyncio.run(client._resolve_token()) == "gh-token"
