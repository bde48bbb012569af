"""
Comment file format and naming.

Synced comments are stored as ``{index:03}_comment_{database_id}.md``
with an HTML-comment header block::

    <!-- author: octocat -->
    <!-- createdAt: 2024-01-01T00:00:00+00:00 -->
    <!-- id: IC_kwDOabc -->
    <!-- databaseId: 12345 -->

    Comment body

Drafts are ``new_{name}.md`` files holding only the raw body.
"""

import re
from pathlib import Path

from .exceptions import CommentMetadataParseError
from .models import (
    NEW_COMMENT_PREFIX,
    Comment,
    CommentFileMetadata,
    LocalComment,
    format_timestamp,
)

COMMENT_FILENAME_PATTERN = re.compile(r"^(?P<index>\d+)_comment_(?P<database_id>\d+)\.md$")

_HEADER_LINE = re.compile(r"^<!-- (?P<key>author|createdAt|id|databaseId): (?P<value>.*) -->$")


def comment_filename(index: int, database_id: int) -> str:
    """Build the filename for the comment at 1-based display ``index``."""
    return f"{index:03d}_comment_{database_id}.md"


def parse_database_id(filename: str) -> int | None:
    """
    Extract the database id from a synced comment filename.

    Returns:
        The id, or None if the filename is not a synced comment file
    """
    match = COMMENT_FILENAME_PATTERN.match(filename)
    if match is None:
        return None
    return int(match.group("database_id"))


def is_draft_filename(filename: str) -> bool:
    """Check if the filename names a local draft comment."""
    return filename.startswith(NEW_COMMENT_PREFIX)


def format_comment_file(comment: Comment) -> str:
    """Render a remote comment as file content."""
    return (
        f"<!-- author: {comment.author_login} -->\n"
        f"<!-- createdAt: {format_timestamp(comment.created_at)} -->\n"
        f"<!-- id: {comment.id} -->\n"
        f"<!-- databaseId: {comment.database_id} -->\n"
        f"\n"
        f"{comment.body}\n"
    )


def _trim_trailing_newline(text: str) -> str:
    return text[:-1] if text.endswith("\n") else text


def parse_comment_file(content: str, filename: str, path: Path | str) -> LocalComment:
    """
    Parse a comment file into a LocalComment.

    Args:
        content: Raw file content
        filename: Bare filename, decides draft vs. synced
        path: Full path, used in error messages

    Raises:
        CommentMetadataParseError: If a synced comment has a malformed
            or incomplete header block
    """
    if is_draft_filename(filename):
        return LocalComment(filename=filename, body=_trim_trailing_newline(content))

    metadata = CommentFileMetadata()
    lines = content.split("\n")
    index = 0
    while index < len(lines):
        match = _HEADER_LINE.match(lines[index])
        if match is None:
            break
        key, value = match.group("key"), match.group("value")
        if key == "author":
            metadata.author = value
        elif key == "createdAt":
            metadata.created_at = value
        elif key == "id":
            metadata.id = value
        else:
            try:
                metadata.database_id = int(value)
            except ValueError:
                raise CommentMetadataParseError(
                    path, f"invalid databaseId: {value}"
                ) from None
        index += 1

    if metadata.id is None:
        raise CommentMetadataParseError(
            path,
            "missing '<!-- id: ... -->' header; "
            f"rename the file to {NEW_COMMENT_PREFIX}*.md to post it as a new comment",
        )

    # Blank line separating header from body
    if index < len(lines) and lines[index] == "":
        index += 1

    body = _trim_trailing_newline("\n".join(lines[index:]))
    return LocalComment(filename=filename, metadata=metadata, body=body)
