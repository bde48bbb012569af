"""
Changeset models.

A ChangeSet is the structured difference between the local copy of an
issue and a remote snapshot. It is computed once per operation by
:mod:`gh_issue_agent.detect` and then either rendered, applied to the
remote, or used to guard a pull.
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field


class BodyChange(BaseModel):
    """Issue body differs."""

    model_config = ConfigDict(frozen=True)

    local: str
    remote: str


class TitleChange(BaseModel):
    """Issue title differs."""

    model_config = ConfigDict(frozen=True)

    local: str
    remote: str


class LabelChange(BaseModel):
    """Label sets differ; sorted snapshots of both sides are kept for display."""

    model_config = ConfigDict(frozen=True)

    to_add: list[str] = Field(default_factory=list)
    to_remove: list[str] = Field(default_factory=list)
    local_sorted: list[str] = Field(default_factory=list)
    remote_sorted: list[str] = Field(default_factory=list)


class NewComment(BaseModel):
    """A local draft to be posted."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["new"] = "new"
    filename: str
    body: str


class UpdatedComment(BaseModel):
    """A synced comment whose local body differs from the remote."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["updated"] = "updated"
    filename: str
    local_body: str
    remote_body: str
    database_id: int
    author: str
    current_user: str

    @property
    def is_own(self) -> bool:
        return self.author == self.current_user


class DeletedComment(BaseModel):
    """A remote comment with no local file, presumed deleted by the user."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["deleted"] = "deleted"
    database_id: int
    body: str
    author: str


CommentChange = NewComment | UpdatedComment | DeletedComment


class ChangeSet(BaseModel):
    """All detected changes between local and remote state of one issue."""

    model_config = ConfigDict(frozen=True)

    body: BodyChange | None = None
    title: TitleChange | None = None
    labels: LabelChange | None = None
    comments: list[CommentChange] = Field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        """Check if any field or comment differs."""
        return (
            self.body is not None
            or self.title is not None
            or self.labels is not None
            or bool(self.comments)
        )

    @property
    def new_comments(self) -> list[NewComment]:
        return [c for c in self.comments if isinstance(c, NewComment)]

    @property
    def updated_comments(self) -> list[UpdatedComment]:
        return [c for c in self.comments if isinstance(c, UpdatedComment)]

    @property
    def deleted_comments(self) -> list[DeletedComment]:
        return [c for c in self.comments if isinstance(c, DeletedComment)]

    def local_edits(self) -> "ChangeSet":
        """
        Changes that exist only in the local copy.

        Remote-only comments are dropped: pulling restores them rather
        than losing anything.
        """
        return self.model_copy(
            update={
                "comments": [c for c in self.comments if not isinstance(c, DeletedComment)]
            }
        )

    def summary(self) -> str:
        """Generate a one-line human-readable summary."""
        parts: list[str] = []
        if self.body is not None:
            parts.append("body")
        if self.title is not None:
            parts.append("title")
        if self.labels is not None:
            parts.append(
                f"labels (+{len(self.labels.to_add)}/-{len(self.labels.to_remove)})"
            )
        counts = (
            (len(self.new_comments), "new"),
            (len(self.updated_comments), "updated"),
            (len(self.deleted_comments), "deleted"),
        )
        comment_parts = [f"{n} {label}" for n, label in counts if n]
        if comment_parts:
            parts.append(f"comments ({', '.join(comment_parts)})")
        if not parts:
            return "No changes"
        return "Changes: " + ", ".join(parts)
