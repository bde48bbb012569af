"""Pytest configuration and fixtures."""

import io
from datetime import UTC, datetime, timedelta
from pathlib import Path
from typing import Any

import pytest
from rich.console import Console

from gh_issue_agent.diff import PipeSafeConsole
from gh_issue_agent.models import Author, Comment, Issue, IssueTemplate, Label, Milestone
from gh_issue_agent.provider import CommentClient, IssueClient, TemplateClient
from gh_issue_agent.storage import IssueStorage

REPO = "octo/widgets"
ISSUE_NUMBER = 42

READ_CALLS = {"get_issue", "get_comments", "get_current_user", "get_issue_templates"}


class FakeGitHub(IssueClient, CommentClient, TemplateClient):
    """
    In-memory GitHub that records every call.

    Mutations change the stored issue/comments and bump ``updated_at``
    the way GitHub does, so a resync after push sees the new state.
    """

    def __init__(self, issue: Issue, comments: list[Comment], current_user: str = "alice") -> None:
        self.issue = issue
        self.comments = list(comments)
        self.current_user = current_user
        self.calls: list[tuple[Any, ...]] = []
        self._next_database_id = 1000
        self.next_issue_number = 100
        self.templates: list[IssueTemplate] = []
        self.closed = False

    @property
    def mutation_calls(self) -> list[tuple[Any, ...]]:
        return [c for c in self.calls if c[0] not in READ_CALLS]

    def calls_named(self, name: str) -> list[tuple[Any, ...]]:
        return [c for c in self.calls if c[0] == name]

    def _touch(self, **update: Any) -> None:
        update["updated_at"] = self.issue.updated_at + timedelta(minutes=1)
        self.issue = self.issue.model_copy(update=update)

    async def get_current_user(self) -> str:
        self.calls.append(("get_current_user",))
        return self.current_user

    async def get_issue(self, owner: str, repo: str, number: int) -> Issue:
        self.calls.append(("get_issue", owner, repo, number))
        return self.issue

    async def get_comments(self, owner: str, repo: str, number: int) -> list[Comment]:
        self.calls.append(("get_comments", owner, repo, number))
        return list(self.comments)

    async def update_issue_body(self, owner: str, repo: str, number: int, body: str) -> None:
        self.calls.append(("update_issue_body", number, body))
        self._touch(body=body)

    async def update_issue_title(self, owner: str, repo: str, number: int, title: str) -> None:
        self.calls.append(("update_issue_title", number, title))
        self._touch(title=title)

    async def add_labels(self, owner: str, repo: str, number: int, labels: list[str]) -> None:
        self.calls.append(("add_labels", number, list(labels)))
        self._touch(labels=self.issue.labels + [Label(name=name) for name in labels])

    async def remove_label(self, owner: str, repo: str, number: int, name: str) -> None:
        self.calls.append(("remove_label", number, name))
        self._touch(labels=[label for label in self.issue.labels if label.name != name])

    async def create_comment(self, owner: str, repo: str, number: int, body: str) -> Comment:
        self.calls.append(("create_comment", number, body))
        database_id = self._next_database_id
        self._next_database_id += 1
        comment = Comment(
            id=f"IC_created{database_id}",
            database_id=database_id,
            author=Author(login=self.current_user),
            created_at=self.issue.updated_at + timedelta(minutes=1),
            body=body,
        )
        self.comments.append(comment)
        self._touch()
        return comment

    async def update_comment(self, owner: str, repo: str, database_id: int, body: str) -> None:
        self.calls.append(("update_comment", database_id, body))
        self.comments = [
            c.model_copy(update={"body": body}) if c.database_id == database_id else c
            for c in self.comments
        ]

    async def delete_comment(self, owner: str, repo: str, database_id: int) -> None:
        self.calls.append(("delete_comment", database_id))
        self.comments = [c for c in self.comments if c.database_id != database_id]

    async def create_issue(
        self,
        owner: str,
        repo: str,
        title: str,
        body: str,
        labels: list[str],
        assignees: list[str],
    ) -> Issue:
        self.calls.append(("create_issue", title, body, list(labels), list(assignees)))
        number = self.next_issue_number
        self.next_issue_number += 1
        return Issue(
            number=number,
            title=title,
            body=body,
            state="OPEN",
            labels=[Label(name=name) for name in labels],
            assignees=[Author(login=login) for login in assignees],
            author=Author(login=self.current_user),
            created_at=datetime(2024, 2, 1, 12, 0, tzinfo=UTC),
            updated_at=datetime(2024, 2, 1, 12, 0, tzinfo=UTC),
        )

    async def get_issue_templates(self, owner: str, repo: str) -> list[IssueTemplate]:
        self.calls.append(("get_issue_templates", owner, repo))
        return list(self.templates)

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def remote_issue() -> Issue:
    """Create a sample remote issue."""
    return Issue(
        number=ISSUE_NUMBER,
        title="Widget crashes on resize",
        body="Steps to reproduce:\n\n1. Open a widget\n2. Resize it",
        state="OPEN",
        labels=[Label(name="bug", color="d73a4a"), Label(name="urgent")],
        assignees=[Author(login="alice")],
        milestone=Milestone(title="v1.0"),
        author=Author(login="alice"),
        created_at=datetime(2024, 1, 10, 9, 0, tzinfo=UTC),
        updated_at=datetime(2024, 1, 15, 14, 30, tzinfo=UTC),
    )


@pytest.fixture
def remote_comments() -> list[Comment]:
    """One comment by the current user, one by someone else."""
    return [
        Comment(
            id="IC_alice",
            database_id=7,
            author=Author(login="alice"),
            created_at=datetime(2024, 1, 11, 10, 0, tzinfo=UTC),
            body="I can reproduce this.",
        ),
        Comment(
            id="IC_bob",
            database_id=8,
            author=Author(login="bob"),
            created_at=datetime(2024, 1, 12, 11, 0, tzinfo=UTC),
            body="Same here, on Linux.",
        ),
    ]


@pytest.fixture
def fake_github(remote_issue: Issue, remote_comments: list[Comment]) -> FakeGitHub:
    return FakeGitHub(remote_issue, remote_comments)


@pytest.fixture
def storage(tmp_path: Path) -> IssueStorage:
    """Storage for an issue that has not been pulled yet."""
    return IssueStorage(tmp_path / "cache" / REPO / str(ISSUE_NUMBER))


@pytest.fixture
def pulled_storage(
    storage: IssueStorage,
    remote_issue: Issue,
    remote_comments: list[Comment],
) -> IssueStorage:
    """Storage holding an unmodified copy of the remote issue."""
    storage.save_remote(remote_issue, remote_comments)
    return storage


@pytest.fixture
def console() -> Console:
    """Console writing plain text to memory."""
    return Console(file=io.StringIO(), width=120, color_system=None, force_terminal=False)


def console_output(console: Console) -> str:
    return console.file.getvalue()


class ClosedPipe(io.StringIO):
    """Stream whose reader has gone away, like stdout piped into ``head``."""

    def write(self, s: str) -> int:
        raise BrokenPipeError(32, "Broken pipe")


@pytest.fixture
def closed_pipe_console() -> PipeSafeConsole:
    """Pipe-safe console writing to a closed pipe."""
    return PipeSafeConsole(file=ClosedPipe(), width=120, color_system=None, force_terminal=False)
