"""
Abstract capabilities consumed by the sync engine.

The engine never talks to GitHub directly; it calls these interfaces,
which lets tests substitute an in-memory fake.
"""

from abc import ABC, abstractmethod

from .models import Comment, Issue, IssueTemplate


class IssueClient(ABC):
    """Read and update issue-level fields."""

    @abstractmethod
    async def get_issue(self, owner: str, repo: str, number: int) -> Issue:
        """Fetch a single issue."""
        ...

    @abstractmethod
    async def create_issue(
        self,
        owner: str,
        repo: str,
        title: str,
        body: str,
        labels: list[str],
        assignees: list[str],
    ) -> Issue:
        """Create an issue and return it as GitHub stored it."""
        ...

    @abstractmethod
    async def update_issue_body(self, owner: str, repo: str, number: int, body: str) -> None:
        ...

    @abstractmethod
    async def update_issue_title(self, owner: str, repo: str, number: int, title: str) -> None:
        ...

    @abstractmethod
    async def add_labels(self, owner: str, repo: str, number: int, labels: list[str]) -> None:
        ...

    @abstractmethod
    async def remove_label(self, owner: str, repo: str, number: int, name: str) -> None:
        ...


class CommentClient(ABC):
    """Read and mutate issue comments."""

    @abstractmethod
    async def get_comments(self, owner: str, repo: str, number: int) -> list[Comment]:
        """
        Fetch all comments of an issue.

        Returns:
            Comments in display (creation) order
        """
        ...

    @abstractmethod
    async def create_comment(self, owner: str, repo: str, number: int, body: str) -> Comment:
        ...

    @abstractmethod
    async def update_comment(self, owner: str, repo: str, database_id: int, body: str) -> None:
        ...

    @abstractmethod
    async def delete_comment(self, owner: str, repo: str, database_id: int) -> None:
        ...


class TemplateClient(ABC):
    """Read the issue templates of a repository."""

    @abstractmethod
    async def get_issue_templates(self, owner: str, repo: str) -> list[IssueTemplate]:
        ...
