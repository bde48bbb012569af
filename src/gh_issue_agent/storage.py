"""
On-disk storage for one GitHub issue.

Directory layout::

    <issue_dir>/
    ├── issue.md                      # frontmatter + body
    ├── metadata.json                 # legacy bookkeeping (read fallback)
    └── comments/
        ├── 001_comment_<databaseId>.md
        └── new_<name>.md             # local drafts
"""

import json
import logging
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path

from pydantic import ValidationError

from .comment_file import (
    comment_filename,
    format_comment_file,
    is_draft_filename,
    parse_comment_file,
    parse_database_id,
)
from .exceptions import (
    InvalidCommentNameError,
    LocalFileExistsError,
    LocalFileNotFoundError,
    ParseError,
    StorageError,
    StorageWriteError,
)
from .frontmatter import format_issue_md, format_new_issue_md, parse_issue_md, parse_new_issue_md
from .models import (
    DEFAULT_NEW_COMMENT_BODY,
    DEFAULT_NEW_ISSUE_BODY,
    NEW_COMMENT_PREFIX,
    Comment,
    Issue,
    IssueContent,
    IssueFrontmatter,
    IssueMetadata,
    IssueTemplate,
    LocalComment,
    NewIssue,
)
from .paths import get_issue_dir, get_new_issue_dir

logger = logging.getLogger(__name__)

ISSUE_FILE = "issue.md"
METADATA_FILE = "metadata.json"
COMMENTS_DIR = "comments"


def _write_atomic(path: Path, content: str) -> None:
    """Write a whole file through a temp file and rename."""
    temp_path = path.with_suffix(path.suffix + ".tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        temp_path.write_text(content, encoding="utf-8")
        temp_path.replace(path)
    except OSError as e:
        temp_path.unlink(missing_ok=True)
        raise StorageWriteError(path, str(e)) from e


def _read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise LocalFileNotFoundError(path) from None
    except (OSError, UnicodeDecodeError) as e:
        raise StorageError(f"Failed to read '{path}': {e}") from e


def validate_comment_name(name: str) -> None:
    """
    Reject draft names that would leave ``comments/``.

    Raises:
        InvalidCommentNameError: If name is empty or holds '/', '\\' or '..'
    """
    if not name or "/" in name or "\\" in name or ".." in name:
        raise InvalidCommentNameError(name)


class IssueStorage:
    """
    Read/write access to the local copy of a single issue.

    The storage never deletes its own directory; it only overwrites
    files inside it.
    """

    def __init__(self, directory: Path | str) -> None:
        self.dir = Path(directory)

    @classmethod
    def for_issue(
        cls,
        repo: str,
        issue_number: int,
        cache_dir: Path | None = None,
    ) -> "IssueStorage":
        """Storage in the default cache location for ``repo`` and ``issue_number``."""
        return cls(get_issue_dir(repo, issue_number, cache_dir))

    @classmethod
    def for_new_issue(cls, repo: str, cache_dir: Path | None = None) -> "IssueStorage":
        """Storage for an issue that will be created from local files."""
        return cls(get_new_issue_dir(repo, cache_dir))

    def __repr__(self) -> str:
        return f"IssueStorage({str(self.dir)!r})"

    @property
    def issue_path(self) -> Path:
        return self.dir / ISSUE_FILE

    @property
    def metadata_path(self) -> Path:
        return self.dir / METADATA_FILE

    @property
    def comments_dir(self) -> Path:
        return self.dir / COMMENTS_DIR

    def exists(self) -> bool:
        """Check whether a local copy directory exists."""
        return self.dir.is_dir()

    # Reading

    def read_issue(self) -> IssueContent:
        """
        Read and parse ``issue.md`` in frontmatter format.

        Raises:
            LocalFileNotFoundError: If issue.md is missing
            ParseError: If issue.md has no valid frontmatter
        """
        content = _read_text(self.issue_path)
        return parse_issue_md(content, self.issue_path)

    def read_body(self) -> str:
        """
        Read the issue body.

        Frontmatter format is tried first; if that fails the whole file is
        treated as a legacy body-only file.
        """
        content = _read_text(self.issue_path)
        try:
            return parse_issue_md(content, self.issue_path).body
        except ParseError:
            logger.debug(f"{self.issue_path} has no frontmatter, reading legacy body")
        return content[:-1] if content.endswith("\n") else content

    def read_metadata(self) -> IssueMetadata:
        """
        Read issue metadata.

        Prefers the ``issue.md`` frontmatter and falls back to the legacy
        ``metadata.json`` file.

        Raises:
            LocalFileNotFoundError: If neither source exists
            ParseError: If the frontmatter is malformed and there is no
                metadata.json, or metadata.json is malformed
        """
        frontmatter_error: ParseError | None = None
        if self.issue_path.exists():
            content = _read_text(self.issue_path)
            try:
                return parse_issue_md(content, self.issue_path).frontmatter.to_metadata()
            except ParseError as e:
                logger.debug(f"{self.issue_path} has no frontmatter, trying {METADATA_FILE}")
                frontmatter_error = e

        if not self.metadata_path.exists():
            if frontmatter_error is not None:
                raise frontmatter_error
            raise LocalFileNotFoundError(self.metadata_path)

        content = _read_text(self.metadata_path)
        try:
            return IssueMetadata.model_validate_json(content)
        except ValidationError as e:
            raise ParseError(self.metadata_path, str(e)) from e

    def read_comments(self) -> list[LocalComment]:
        """
        Read all ``*.md`` files under ``comments/``.

        Returns:
            Comments sorted by filename; empty if the directory is missing

        Raises:
            CommentMetadataParseError: If any comment file is malformed
        """
        if not self.comments_dir.is_dir():
            return []

        comments: list[LocalComment] = []
        for path in self.comments_dir.iterdir():
            if path.suffix != ".md" or not path.is_file():
                continue
            content = _read_text(path)
            comments.append(parse_comment_file(content, path.name, path))

        comments.sort(key=lambda c: c.filename)
        return comments

    # Writing

    def save_issue(self, frontmatter: IssueFrontmatter, body: str) -> None:
        """Write ``issue.md`` with frontmatter and body."""
        _write_atomic(self.issue_path, format_issue_md(frontmatter, body))
        logger.debug(f"Wrote {self.issue_path}")

    def save_body(self, body: str) -> None:
        """Write ``issue.md`` in the legacy body-only format."""
        _write_atomic(self.issue_path, f"{body}\n")

    def save_metadata(self, metadata: IssueMetadata) -> None:
        """Write the legacy ``metadata.json`` file."""
        data = metadata.model_dump(by_alias=True)
        _write_atomic(self.metadata_path, json.dumps(data, indent=2, ensure_ascii=False) + "\n")

    def save_comments(self, comments: Sequence[Comment]) -> None:
        """
        Save remote comments and drop stale synced files.

        Comments are numbered in the given order (1-based). Any previously
        written ``NNN_comment_<id>.md`` file not produced by this call is
        removed, so re-indexed and remotely deleted comments disappear.
        Drafts (``new_*.md``) are never touched.
        """
        try:
            self.comments_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise StorageWriteError(self.comments_dir, str(e)) from e

        # database_id -> display index, recomputed on every save
        display_index = {comment.database_id: i for i, comment in enumerate(comments, 1)}

        saved: set[str] = set()
        for comment in comments:
            filename = comment_filename(display_index[comment.database_id], comment.database_id)
            _write_atomic(self.comments_dir / filename, format_comment_file(comment))
            saved.add(filename)

        self._remove_stale_comment_files(saved)
        logger.debug(f"Saved {len(saved)} comments to {self.comments_dir}")

    def _remove_stale_comment_files(self, saved: set[str]) -> None:
        for path in self.comments_dir.iterdir():
            name = path.name
            if is_draft_filename(name):
                continue
            if parse_database_id(name) is not None and name not in saved:
                try:
                    path.unlink()
                except OSError as e:
                    raise StorageWriteError(path, str(e)) from e
                logger.debug(f"Removed stale comment file {name}")

    def delete_comment_file(self, filename: str) -> None:
        """Remove one file from ``comments/``."""
        path = self.comments_dir / filename
        try:
            path.unlink()
        except FileNotFoundError:
            raise LocalFileNotFoundError(path) from None
        except OSError as e:
            raise StorageWriteError(path, str(e)) from e

    def save_remote(self, issue: Issue, comments: Sequence[Comment]) -> None:
        """Overwrite the local copy with a remote snapshot."""
        self.save_issue(IssueFrontmatter.from_issue(issue), issue.body or "")
        self.save_comments(comments)

    # Boilerplate for new content

    def init_new_issue(self, template: IssueTemplate | None = None) -> Path:
        """
        Write a starting ``issue.md`` for an issue not yet on GitHub.

        Raises:
            LocalFileExistsError: If issue.md already exists
        """
        if self.issue_path.exists():
            raise LocalFileExistsError(self.issue_path)
        new_issue = template.to_new_issue() if template else NewIssue(body=DEFAULT_NEW_ISSUE_BODY)
        _write_atomic(self.issue_path, format_new_issue_md(new_issue))
        return self.issue_path

    def init_new_comment(self, name: str | None = None, now: datetime | None = None) -> Path:
        """
        Write a draft ``comments/new_<name>.md``.

        Without a name the draft is named after the local time, e.g.
        ``new_20240115_143000.md``.

        Raises:
            InvalidCommentNameError: If name contains a path separator or ``..``
            LocalFileExistsError: If the draft already exists
        """
        if name is None:
            name = (now or datetime.now()).strftime("%Y%m%d_%H%M%S")
        validate_comment_name(name)

        path = self.comments_dir / f"{NEW_COMMENT_PREFIX}{name}.md"
        if path.exists():
            raise LocalFileExistsError(path)
        _write_atomic(path, f"{DEFAULT_NEW_COMMENT_BODY}\n")
        return path

    def read_new_issue(self) -> NewIssue:
        """
        Read the ``issue.md`` of an issue not yet on GitHub.

        Raises:
            LocalFileNotFoundError: If issue.md is missing
            ParseError: If the frontmatter is invalid or the title is empty
        """
        content = _read_text(self.issue_path)
        return parse_new_issue_md(content, self.issue_path)

    def refresh_readonly(self, issue: Issue) -> None:
        """
        Update server-owned bookkeeping from ``issue``.

        Editable fields and the body are left as they are. Legacy copies
        get a rewritten ``metadata.json``; frontmatter copies get a new
        ``readonly`` block.
        """
        try:
            content = self.read_issue()
        except ParseError:
            metadata = self.read_metadata()
            refreshed = IssueMetadata.from_issue(issue)
            self.save_metadata(
                metadata.model_copy(
                    update={
                        "state": refreshed.state,
                        "author": refreshed.author,
                        "created_at": refreshed.created_at,
                        "updated_at": refreshed.updated_at,
                    }
                )
            )
            return

        self.save_issue(content.frontmatter.with_readonly_from(issue), content.body)
