"""
Change detection between the local copy and a remote snapshot.

Detection is pure: it reads nothing from disk or network. Permission
rules for comment edits and deletions are enforced here, so callers apply
exactly the decisions made during detection.
"""

import logging
from collections.abc import Iterable, Sequence

from pydantic import BaseModel, ConfigDict

from .changeset import (
    BodyChange,
    ChangeSet,
    CommentChange,
    DeletedComment,
    LabelChange,
    NewComment,
    TitleChange,
    UpdatedComment,
)
from .comment_file import parse_database_id
from .exceptions import (
    CommentMetadataParseError,
    DeleteDeniedError,
    EditOthersDeniedError,
    RemoteChangedError,
)
from .models import (
    Comment,
    DetectOptions,
    Issue,
    IssueMetadata,
    LocalComment,
    parse_timestamp,
)

logger = logging.getLogger(__name__)


class LocalState(BaseModel):
    """Local side of a comparison."""

    model_config = ConfigDict(frozen=True)

    metadata: IssueMetadata
    body: str
    comments: list[LocalComment]


class RemoteState(BaseModel):
    """Remote side of a comparison."""

    model_config = ConfigDict(frozen=True)

    issue: Issue
    comments: list[Comment]


def normalize_body(text: str | None) -> str:
    """Whitespace-insensitive form used for body and comment comparison."""
    return (text or "").strip()


def bodies_equal(a: str | None, b: str | None) -> bool:
    """Check if two bodies are equal after normalization."""
    return normalize_body(a) == normalize_body(b)


def normalize_labels(labels: Iterable[str]) -> set[str]:
    """Label names as a set."""
    return set(labels)


def detect_body_change(local_body: str, remote_issue: Issue) -> BodyChange | None:
    remote_body = remote_issue.body or ""
    if bodies_equal(local_body, remote_body):
        return None
    return BodyChange(local=local_body, remote=remote_body)


def detect_title_change(local_metadata: IssueMetadata, remote_issue: Issue) -> TitleChange | None:
    if local_metadata.title == remote_issue.title:
        return None
    return TitleChange(local=local_metadata.title, remote=remote_issue.title)


def detect_label_change(local_metadata: IssueMetadata, remote_issue: Issue) -> LabelChange | None:
    local_labels = normalize_labels(local_metadata.labels)
    remote_labels = normalize_labels(remote_issue.label_names)
    if local_labels == remote_labels:
        return None
    return LabelChange(
        to_add=sorted(local_labels - remote_labels),
        to_remove=sorted(remote_labels - local_labels),
        local_sorted=sorted(local_labels),
        remote_sorted=sorted(remote_labels),
    )


def check_can_edit_comment(
    comment_author: str,
    current_user: str,
    edit_others: bool,
    filename: str,
) -> None:
    """
    Raise unless the user may edit the comment.

    Raises:
        EditOthersDeniedError: Comment belongs to someone else and
            ``edit_others`` is off
    """
    if comment_author == current_user or edit_others:
        return
    raise EditOthersDeniedError(filename, comment_author)


def check_can_delete_comment(
    comment_author: str,
    current_user: str,
    allow_delete: bool,
    database_id: int,
) -> None:
    """
    Raise unless deletion was explicitly allowed.

    Deleting needs ``allow_delete`` even for the user's own comments.

    Raises:
        DeleteDeniedError: ``allow_delete`` is off
    """
    if allow_delete:
        return
    raise DeleteDeniedError(database_id, comment_author, own_comment=comment_author == current_user)


def check_remote_unchanged(local_updated_at: str, remote_updated_at: str, force: bool) -> None:
    """
    Conflict guard for push.

    Timestamps are compared as instants when both parse, so ``Z`` and
    ``+00:00`` spellings of the same time are equal.

    Raises:
        RemoteChangedError: If the timestamps differ and ``force`` is off
    """
    if force or timestamps_equal(local_updated_at, remote_updated_at):
        return
    raise RemoteChangedError(local_updated_at, remote_updated_at)


def timestamps_equal(a: str, b: str) -> bool:
    if a == b:
        return True
    parsed_a, parsed_b = parse_timestamp(a), parse_timestamp(b)
    if parsed_a is None or parsed_b is None:
        return False
    # naive vs. aware compares unequal
    return parsed_a == parsed_b


def _database_id_of(local_comment: LocalComment) -> int:
    if local_comment.metadata.database_id is not None:
        return local_comment.metadata.database_id
    database_id = parse_database_id(local_comment.filename)
    if database_id is None:
        raise CommentMetadataParseError(local_comment.filename, "missing databaseId")
    return database_id


def detect_comment_changes(
    local_comments: Sequence[LocalComment],
    remote_comments: Sequence[Comment],
    options: DetectOptions,
) -> list[CommentChange]:
    """
    Compare local comment files with remote comments.

    Local comments are matched to remote ones by node ``id``. A local
    comment whose id no longer exists remotely is skipped. A remote
    comment with no local file is reported as deleted.

    Raises:
        EditOthersDeniedError: An edited comment belongs to someone else
        DeleteDeniedError: A deletion was not allowed
    """
    remote_by_id = {c.id: c for c in remote_comments}
    local_ids = {c.metadata.id for c in local_comments if c.metadata.id is not None}

    changes: list[CommentChange] = []

    for local_comment in local_comments:
        if local_comment.is_new:
            changes.append(NewComment(filename=local_comment.filename, body=local_comment.body))
            continue

        comment_id = local_comment.metadata.id
        remote_comment = remote_by_id.get(comment_id) if comment_id else None
        if remote_comment is None:
            logger.debug(f"Skipping {local_comment.filename}: no remote comment with id {comment_id}")
            continue

        if bodies_equal(local_comment.body, remote_comment.body):
            continue

        author = local_comment.author_login
        check_can_edit_comment(
            author, options.current_user, options.edit_others, local_comment.filename
        )
        changes.append(
            UpdatedComment(
                filename=local_comment.filename,
                local_body=local_comment.body,
                remote_body=remote_comment.body,
                database_id=_database_id_of(local_comment),
                author=author,
                current_user=options.current_user,
            )
        )

    for remote_comment in remote_comments:
        if remote_comment.id in local_ids:
            continue
        author = remote_comment.author_login
        check_can_delete_comment(
            author, options.current_user, options.allow_delete, remote_comment.database_id
        )
        changes.append(
            DeletedComment(
                database_id=remote_comment.database_id,
                body=remote_comment.body,
                author=author,
            )
        )

    return changes


def detect(local: LocalState, remote: RemoteState, options: DetectOptions) -> ChangeSet:
    """
    Compute the full changeset between local and remote state.

    Args:
        local: Local copy as read from storage
        remote: Freshly fetched remote snapshot
        options: Current user and permission flags

    Returns:
        ChangeSet; use ``has_changes`` to tell whether anything differs
    """
    changeset = ChangeSet(
        body=detect_body_change(local.body, remote.issue),
        title=detect_title_change(local.metadata, remote.issue),
        labels=detect_label_change(local.metadata, remote.issue),
        comments=detect_comment_changes(local.comments, remote.comments, options),
    )
    logger.debug(changeset.summary())
    return changeset
