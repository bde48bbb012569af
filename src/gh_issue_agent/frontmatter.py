"""
Parser and writer for ``issue.md``.

The file holds a YAML frontmatter block between two ``---`` lines,
followed by a blank line and the issue body::

    ---
    title: Fix the widget
    labels:
    - bug
    ...
    ---

    Body text
"""

import logging
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .exceptions import ParseError
from .models import IssueContent, IssueFrontmatter, NewIssue

logger = logging.getLogger(__name__)

DELIMITER = "---"

# Closing delimiter must sit alone on its line
_CLOSING_DELIMITER = re.compile(r"^---[ \t]*$", re.MULTILINE)


def _strip_one_newline(text: str, leading: bool = False) -> str:
    if leading:
        return text[1:] if text.startswith("\n") else text
    return text[:-1] if text.endswith("\n") else text


def format_issue_md(frontmatter: IssueFrontmatter, body: str) -> str:
    """
    Serialize frontmatter and body into ``issue.md`` content.

    Args:
        frontmatter: Frontmatter to write as YAML
        body: Issue body

    Returns:
        File content ending with exactly one newline after the body
    """
    data = frontmatter.model_dump(by_alias=True)
    yaml_text = yaml.safe_dump(
        data,
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
    )
    return f"{DELIMITER}\n{yaml_text}{DELIMITER}\n\n{body}\n"


def _split_frontmatter(content: str, path: Path | str) -> tuple[dict[str, Any], str]:
    """Split content into the decoded YAML mapping and the body."""
    text = content.lstrip()

    first_newline = text.find("\n")
    if not text.startswith(DELIMITER) or first_newline == -1:
        raise ParseError(path, "missing frontmatter")
    if text[:first_newline].rstrip() != DELIMITER:
        raise ParseError(path, "opening frontmatter delimiter must be on its own line")

    closing = _CLOSING_DELIMITER.search(text, first_newline + 1)
    if closing is None:
        raise ParseError(path, "unclosed frontmatter")

    yaml_text = text[first_newline + 1 : closing.start()]
    rest = text[closing.end() :]

    try:
        data = yaml.safe_load(yaml_text)
    except yaml.YAMLError as e:
        raise ParseError(path, f"invalid frontmatter YAML: {e}") from e

    # An empty block decodes to None
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ParseError(path, "frontmatter must be a YAML mapping")

    # End of the delimiter line, then the separating blank line
    body = _strip_one_newline(rest, leading=True)
    body = _strip_one_newline(body, leading=True)
    body = _strip_one_newline(body)
    return data, body


def parse_issue_md(content: str, path: Path | str = "issue.md") -> IssueContent:
    """
    Parse ``issue.md`` content with YAML frontmatter.

    Args:
        content: Raw file content
        path: File path, used in error messages

    Returns:
        IssueContent with frontmatter and body

    Raises:
        ParseError: If the frontmatter is missing, unclosed or invalid
    """
    data, body = _split_frontmatter(content, path)
    try:
        frontmatter = IssueFrontmatter.model_validate(data)
    except ValidationError as e:
        raise ParseError(path, f"invalid frontmatter fields: {e}") from e
    return IssueContent(frontmatter=frontmatter, body=body)


def format_new_issue_md(issue: NewIssue) -> str:
    """Serialize a not-yet-created issue; same layout without ``readonly``."""
    data = issue.model_dump(include={"title", "labels", "assignees"})
    yaml_text = yaml.safe_dump(
        data,
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
    )
    return f"{DELIMITER}\n{yaml_text}{DELIMITER}\n\n{issue.body}\n"


def parse_new_issue_md(content: str, path: Path | str = "issue.md") -> NewIssue:
    """
    Parse the ``issue.md`` of an issue that does not exist on GitHub yet.

    Raises:
        ParseError: If the frontmatter is invalid or the title is empty
    """
    data, body = _split_frontmatter(content, path)
    try:
        issue = NewIssue.model_validate({**data, "body": body})
    except ValidationError as e:
        raise ParseError(path, f"invalid frontmatter fields: {e}") from e
    if not issue.title.strip():
        raise ParseError(path, "title cannot be empty")
    return issue.model_copy(update={"title": issue.title.strip()})
