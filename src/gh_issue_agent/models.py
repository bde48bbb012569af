"""
Pydantic models for GitHub issues and their local on-disk copy.

This module defines the data models used throughout the application,
providing strong typing, validation, and serialization capabilities.
Remote models (``Issue``, ``Comment``) are immutable snapshots; local
models mirror the files of one issue directory.
"""

import logging
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)

UNKNOWN_AUTHOR = "unknown"
NEW_COMMENT_PREFIX = "new_"
DEFAULT_NEW_ISSUE_BODY = "Body"
DEFAULT_NEW_COMMENT_BODY = "Comment body"


def format_timestamp(dt: datetime) -> str:
    """Format a datetime the way it is stored in local bookkeeping."""
    return dt.isoformat()


def parse_timestamp(value: str | None) -> datetime | None:
    """
    Parse an ISO-8601 timestamp as written by GitHub or by this tool.

    Returns:
        The parsed datetime, or None if the value is empty or malformed
    """
    if not value:
        return None
    try:
        # Handle both Z suffix and +00:00 format
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        return datetime.fromisoformat(value)
    except (ValueError, TypeError):
        logger.warning(f"Failed to parse datetime: {value}")
        return None


def _as_str(value: Any) -> Any:
    if isinstance(value, datetime):
        return format_timestamp(value)
    if isinstance(value, int | float) and not isinstance(value, bool):
        return str(value)
    return value


def _as_str_list(value: Any) -> Any:
    if value is None:
        return []
    if isinstance(value, list):
        return [_as_str(v) for v in value]
    return value


class Author(BaseModel):
    """GitHub user reference."""

    model_config = ConfigDict(frozen=True)

    login: str


class Label(BaseModel):
    """GitHub issue label."""

    model_config = ConfigDict(frozen=True)

    name: str
    color: str | None = None


class Milestone(BaseModel):
    """GitHub milestone."""

    model_config = ConfigDict(frozen=True)

    title: str


class Issue(BaseModel):
    """
    Remote GitHub issue snapshot.

    Fetched once per operation and never mutated in place.
    """

    model_config = ConfigDict(frozen=True)

    number: int
    title: str
    body: str | None = None
    state: str = "OPEN"
    labels: list[Label] = Field(default_factory=list)
    assignees: list[Author] = Field(default_factory=list)
    milestone: Milestone | None = None
    author: Author | None = None
    created_at: datetime
    updated_at: datetime
    body_last_edited_at: datetime | None = None
    title_last_edited_at: datetime | None = None

    @property
    def label_names(self) -> list[str]:
        """Get list of label names."""
        return [label.name for label in self.labels]

    @property
    def assignee_logins(self) -> list[str]:
        """Get list of assignee login names."""
        return [a.login for a in self.assignees]

    @property
    def author_login(self) -> str:
        """Author login, or ``unknown`` for deleted accounts."""
        return self.author.login if self.author else UNKNOWN_AUTHOR


class Comment(BaseModel):
    """
    Remote issue comment.

    ``id`` is the GraphQL node id and is the identity key when matching
    local and remote comments. ``database_id`` is the numeric handle used
    by the REST update/delete endpoints and in local filenames.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    database_id: int
    author: Author | None = None
    created_at: datetime
    body: str = ""

    @property
    def author_login(self) -> str:
        """Author login, or ``unknown`` for deleted accounts."""
        return self.author.login if self.author else UNKNOWN_AUTHOR


class ReadonlyMetadata(BaseModel):
    """Server-owned fields mirrored in the ``readonly`` frontmatter block."""

    model_config = ConfigDict(populate_by_name=True)

    number: int
    state: str
    author: str
    created_at: str = Field(alias="createdAt")
    updated_at: str = Field(alias="updatedAt")

    @field_validator("state", "author", "created_at", "updated_at", mode="before")
    @classmethod
    def _coerce_str(cls, value: Any) -> Any:
        # YAML may load unquoted timestamps as datetimes
        return _as_str(value)


class IssueMetadata(BaseModel):
    """
    Flattened issue metadata.

    This is the shape of the legacy ``metadata.json`` file and the common
    view of local bookkeeping regardless of on-disk format.
    """

    model_config = ConfigDict(populate_by_name=True)

    number: int
    title: str
    state: str
    labels: list[str] = Field(default_factory=list)
    assignees: list[str] = Field(default_factory=list)
    milestone: str | None = None
    author: str = UNKNOWN_AUTHOR
    created_at: str = Field(alias="createdAt")
    updated_at: str = Field(alias="updatedAt")

    @field_validator("labels", "assignees", mode="before")
    @classmethod
    def _coerce_lists(cls, value: Any) -> Any:
        return _as_str_list(value)

    @classmethod
    def from_issue(cls, issue: Issue) -> "IssueMetadata":
        """Create metadata from an Issue, flattening nested structures."""
        return cls(
            number=issue.number,
            title=issue.title,
            state=issue.state,
            labels=issue.label_names,
            assignees=issue.assignee_logins,
            milestone=issue.milestone.title if issue.milestone else None,
            author=issue.author_login,
            created_at=format_timestamp(issue.created_at),
            updated_at=format_timestamp(issue.updated_at),
        )


class IssueFrontmatter(BaseModel):
    """
    YAML frontmatter of ``issue.md``.

    ``title``, ``labels``, ``assignees`` and ``milestone`` are editable;
    ``readonly`` mirrors server-owned fields and is only refreshed from
    the remote.
    """

    model_config = ConfigDict(populate_by_name=True)

    title: str
    labels: list[str] = Field(default_factory=list)
    assignees: list[str] = Field(default_factory=list)
    milestone: str | None = None
    readonly: ReadonlyMetadata

    @field_validator("title", "milestone", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> Any:
        return _as_str(value)

    @field_validator("labels", "assignees", mode="before")
    @classmethod
    def _coerce_lists(cls, value: Any) -> Any:
        return _as_str_list(value)

    @classmethod
    def from_issue(cls, issue: Issue) -> "IssueFrontmatter":
        """Build frontmatter from a remote issue."""
        return cls(
            title=issue.title,
            labels=issue.label_names,
            assignees=issue.assignee_logins,
            milestone=issue.milestone.title if issue.milestone else None,
            readonly=ReadonlyMetadata(
                number=issue.number,
                state=issue.state,
                author=issue.author_login,
                created_at=format_timestamp(issue.created_at),
                updated_at=format_timestamp(issue.updated_at),
            ),
        )

    def with_readonly_from(self, issue: Issue) -> "IssueFrontmatter":
        """Copy with the readonly block refreshed, editable fields untouched."""
        return self.model_copy(
            update={"readonly": IssueFrontmatter.from_issue(issue).readonly}
        )

    def to_metadata(self) -> IssueMetadata:
        """Flatten into IssueMetadata."""
        return IssueMetadata(
            number=self.readonly.number,
            title=self.title,
            state=self.readonly.state,
            labels=list(self.labels),
            assignees=list(self.assignees),
            milestone=self.milestone,
            author=self.readonly.author,
            created_at=self.readonly.created_at,
            updated_at=self.readonly.updated_at,
        )


class IssueContent(BaseModel):
    """Parsed ``issue.md``: frontmatter plus body."""

    frontmatter: IssueFrontmatter
    body: str


class NewIssue(BaseModel):
    """
    An issue written locally under ``<repo>/new/issue.md``.

    Only the fields GitHub accepts when creating an issue; there is no
    ``readonly`` block until the issue exists.
    """

    title: str = ""
    labels: list[str] = Field(default_factory=list)
    assignees: list[str] = Field(default_factory=list)
    body: str = ""

    @field_validator("title", mode="before")
    @classmethod
    def _coerce_title(cls, value: Any) -> Any:
        if value is None:
            return ""
        return _as_str(value)

    @field_validator("labels", "assignees", mode="before")
    @classmethod
    def _coerce_lists(cls, value: Any) -> Any:
        return _as_str_list(value)


class IssueTemplate(BaseModel):
    """An issue template configured in a repository's ``.github/ISSUE_TEMPLATE``."""

    model_config = ConfigDict(frozen=True)

    name: str
    title: str | None = None
    body: str | None = None
    about: str | None = None
    filename: str | None = None
    labels: list[str] = Field(default_factory=list)
    assignees: list[str] = Field(default_factory=list)

    def to_new_issue(self) -> NewIssue:
        """Starting content for a new issue based on this template."""
        return NewIssue(
            title=self.title or "",
            labels=list(self.labels),
            assignees=list(self.assignees),
            body=self.body if self.body is not None else DEFAULT_NEW_ISSUE_BODY,
        )


class CommentFileMetadata(BaseModel):
    """
    Header block of a synced comment file.

    Every field is optional because draft comments carry no header.
    """

    author: str | None = None
    created_at: str | None = None
    id: str | None = None
    database_id: int | None = None


class LocalComment(BaseModel):
    """A comment read from a file under ``comments/``."""

    filename: str
    metadata: CommentFileMetadata = Field(default_factory=CommentFileMetadata)
    body: str = ""

    @property
    def is_new(self) -> bool:
        """Check if this is a local draft not yet posted to GitHub."""
        return self.filename.startswith(NEW_COMMENT_PREFIX)

    @property
    def author_login(self) -> str:
        """Author recorded in the header, or ``unknown``."""
        return self.metadata.author or UNKNOWN_AUTHOR


class DetectOptions(BaseModel):
    """Permission settings for change detection."""

    model_config = ConfigDict(frozen=True)

    current_user: str
    edit_others: bool = False
    allow_delete: bool = False


class PushOptions(BaseModel):
    """Configuration for push operations."""

    model_config = ConfigDict(frozen=True)

    dry_run: bool = False
    force: bool = False
    edit_others: bool = False
    allow_delete: bool = False

    def detect_options(self, current_user: str) -> DetectOptions:
        """Derive detection options for the given user."""
        return DetectOptions(
            current_user=current_user,
            edit_others=self.edit_others,
            allow_delete=self.allow_delete,
        )
