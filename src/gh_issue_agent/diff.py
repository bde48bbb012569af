"""
Human-readable rendering of changesets.

Bodies are shown as line diffs from the remote version (``-``) to the
local version (``+``). Output goes through a console that tolerates a
closed pipe, so piping a push into ``head`` does not abort it.
"""

import difflib
import logging
import os
import sys

from rich.console import Console
from rich.text import Text

from .changeset import ChangeSet, DeletedComment, NewComment, UpdatedComment
from .models import NewIssue

logger = logging.getLogger(__name__)

REMOVED_STYLE = "red"
ADDED_STYLE = "green"


class PipeSafeConsole(Console):
    """
    Console that goes quiet when its reader goes away.

    Rich exits with status 1 on a broken pipe (``gh-issue-agent push | head``).
    Here output is dropped instead, so the command still finishes its work.
    """

    def on_broken_pipe(self) -> None:
        if self.quiet:
            return
        self.quiet = True
        logger.debug("Output pipe closed, discarding further output")
        if self.file is not sys.stdout:
            return
        try:
            fd = sys.stdout.fileno()
        except (AttributeError, OSError, ValueError):
            return
        # Keep the interpreter's final flush of stdout from failing again
        devnull = os.open(os.devnull, os.O_WRONLY)
        os.dup2(devnull, fd)
        os.close(devnull)


def diff_lines(old: str, new: str) -> list[str]:
    """
    Line diff between two texts.

    Returns:
        Lines prefixed with ``" "``, ``"-"`` or ``"+"``, without newlines
    """
    old_lines = old.splitlines()
    new_lines = new.splitlines()
    matcher = difflib.SequenceMatcher(None, old_lines, new_lines, autojunk=False)

    result: list[str] = []
    for tag, i1, i2, j1, j2 in matcher.get_opcodes():
        if tag == "equal":
            result.extend(f" {line}" for line in old_lines[i1:i2])
            continue
        if tag in ("replace", "delete"):
            result.extend(f"-{line}" for line in old_lines[i1:i2])
        if tag in ("replace", "insert"):
            result.extend(f"+{line}" for line in new_lines[j1:j2])
    return result


def format_diff(old: str, new: str) -> str:
    """Line diff as a single string, one line per entry."""
    return "".join(f"{line}\n" for line in diff_lines(old, new))


class ChangeSetRenderer:
    """Prints a ChangeSet to a rich console."""

    def __init__(self, console: Console) -> None:
        self.console = console

    def _heading(self, text: str) -> None:
        self.console.print()
        self.console.print(Text(f"=== {text} ===", style="bold"))

    def _line(self, text: str, style: str | None = None) -> None:
        self.console.print(Text(text, style=style or ""), soft_wrap=True)

    def _diff(self, old: str, new: str) -> None:
        for line in diff_lines(old, new):
            style = None
            if line.startswith("-"):
                style = REMOVED_STYLE
            elif line.startswith("+"):
                style = ADDED_STYLE
            self._line(line, style)

    def render(self, changeset: ChangeSet) -> None:
        if changeset.body is not None:
            self._heading("Issue Body")
            self._diff(changeset.body.remote, changeset.body.local)

        if changeset.title is not None:
            self._heading("Title")
            self._line(f"- {changeset.title.remote}", REMOVED_STYLE)
            self._line(f"+ {changeset.title.local}", ADDED_STYLE)

        if changeset.labels is not None:
            self._heading("Labels")
            self._line(f"- {changeset.labels.remote_sorted}", REMOVED_STYLE)
            self._line(f"+ {changeset.labels.local_sorted}", ADDED_STYLE)

        for change in changeset.comments:
            if isinstance(change, NewComment):
                self._heading(f"New Comment: {change.filename}")
                for line in change.body.splitlines():
                    self._line(f"+ {line}", ADDED_STYLE)
            elif isinstance(change, UpdatedComment):
                if change.is_own:
                    self._heading(f"Comment: {change.filename}")
                else:
                    self._heading(f"Comment: {change.filename} (author: {change.author})")
                self._diff(change.remote_body, change.local_body)
            elif isinstance(change, DeletedComment):
                self._heading(
                    f"Delete Comment: database_id={change.database_id} (author: {change.author})"
                )
                for line in change.body.splitlines():
                    self._line(f"- {line}", REMOVED_STYLE)


def print_changeset(changeset: ChangeSet, console: Console) -> None:
    """Print a changeset."""
    ChangeSetRenderer(console).render(changeset)


def print_new_issue(issue: NewIssue, console: Console) -> None:
    """Print an issue that is about to be created."""
    console.print(Text("=== New Issue ===", style="bold"))
    console.print()
    console.print(Text(f"Title: {issue.title}"), soft_wrap=True)
    console.print()
    if issue.labels:
        console.print(Text(f"Labels: {', '.join(issue.labels)}"), soft_wrap=True)
    if issue.assignees:
        console.print(Text(f"Assignees: {', '.join(issue.assignees)}"), soft_wrap=True)
    if issue.labels or issue.assignees:
        console.print()
    console.print("Body:")
    console.print("---")
    console.print(Text(issue.body or "(empty)"), soft_wrap=True)
    console.print("---")
