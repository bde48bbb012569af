"""
Sync orchestrator.

This module coordinates the sync directions for one issue:

- pull: fetch remote, refuse to clobber unpushed local edits, write storage
- refresh: fetch remote and overwrite storage unconditionally
- push: fetch remote, guard against unseen remote updates, apply local
  edits to GitHub, then resync local bookkeeping
- create: post a new-issue directory as an issue and move it under its number

Write calls to GitHub are issued one at a time in a fixed order. A failure
stops the push; calls that already succeeded are not rolled back.
"""

import asyncio
import logging
from pathlib import Path

from pydantic import BaseModel, ConfigDict
from rich.console import Console

from .changeset import ChangeSet, DeletedComment, NewComment, UpdatedComment
from .detect import (
    LocalState,
    RemoteState,
    check_remote_unchanged,
    detect,
    timestamps_equal,
)
from .diff import PipeSafeConsole, print_changeset, print_new_issue
from .exceptions import (
    IssueCreatedError,
    LocalChangesError,
    LocalFileNotFoundError,
    StorageError,
)
from .models import DetectOptions, IssueFrontmatter, PushOptions, format_timestamp
from .provider import CommentClient, IssueClient
from .repo import parse_repo
from .storage import IssueStorage

logger = logging.getLogger(__name__)


class PullResult(BaseModel):
    """Outcome of a pull or refresh."""

    model_config = ConfigDict(frozen=True)

    issue_number: int
    title: str
    directory: Path
    created: bool = False
    discarded: ChangeSet | None = None


class PushResult(BaseModel):
    """Outcome of a push."""

    model_config = ConfigDict(frozen=True)

    changeset: ChangeSet
    dry_run: bool = False
    pushed: bool = False

    @property
    def has_changes(self) -> bool:
        return self.changeset.has_changes

    def summary(self) -> str:
        """Generate human-readable summary."""
        if self.dry_run:
            if self.has_changes:
                return "[dry-run] Changes detected. Run without --dry-run to apply."
            return "[dry-run] No changes detected."
        if self.pushed:
            return "Done! Changes have been pushed to GitHub."
        return "No changes to push."


class DiffResult(BaseModel):
    """Outcome of a diff."""

    model_config = ConfigDict(frozen=True)

    changeset: ChangeSet
    remote_changed: bool = False


class CreateResult(BaseModel):
    """Outcome of pushing a new-issue directory."""

    model_config = ConfigDict(frozen=True)

    title: str
    directory: Path
    dry_run: bool = False
    issue_number: int | None = None
    url: str | None = None

    def summary(self) -> str:
        """Generate human-readable summary."""
        if self.dry_run:
            return "[dry-run] Would create issue. Run without --dry-run to create."
        return f"Done! Created issue #{self.issue_number}"


class IssueAgent:
    """
    Orchestrates sync between a GitHub issue and its local copy.

    This is the main entry point for sync operations, coordinating the
    remote clients, storage, change detector and diff output.
    """

    # Pull guard: every local edit counts, no permission checks
    _PERMISSIVE = DetectOptions(current_user="", edit_others=True, allow_delete=True)

    def __init__(
        self,
        issue_client: IssueClient,
        comment_client: CommentClient | None = None,
        console: Console | None = None,
    ) -> None:
        """
        Initialize the orchestrator.

        Args:
            issue_client: Issue-level GitHub capability
            comment_client: Comment capability. If None, ``issue_client``
                must implement CommentClient as well.
            console: Where diffs are printed (stdout by default)
        """
        if comment_client is None:
            if not isinstance(issue_client, CommentClient):
                raise TypeError("comment_client is required when issue_client has no comment support")
            comment_client = issue_client
        self.issues = issue_client
        self.comments = comment_client
        self.console = console if console else PipeSafeConsole()

    async def fetch_remote(self, owner: str, name: str, number: int) -> RemoteState:
        """Fetch issue and comments concurrently."""
        issue, comments = await asyncio.gather(
            self.issues.get_issue(owner, name, number),
            self.comments.get_comments(owner, name, number),
        )
        return RemoteState(issue=issue, comments=comments)

    def load_local(self, storage: IssueStorage) -> LocalState:
        """Read the local copy into a LocalState."""
        return LocalState(
            metadata=storage.read_metadata(),
            body=storage.read_body(),
            comments=storage.read_comments(),
        )

    @staticmethod
    def _has_local_copy(storage: IssueStorage) -> bool:
        return storage.exists() and (
            storage.issue_path.exists() or storage.metadata_path.exists()
        )

    async def pull(
        self,
        repo: str,
        number: int,
        storage: IssueStorage,
        force: bool = False,
    ) -> PullResult:
        """
        Fetch an issue into local storage.

        Without ``force`` the pull is refused if the local copy holds edits
        that the remote does not have; those edits are printed first. With
        ``force`` the local copy is overwritten even if it cannot be read.

        Raises:
            LocalChangesError: If local edits would be overwritten
            ParseError: If the local copy is malformed and ``force`` is off
            InvalidRepositoryError: If repo format is invalid
        """
        owner, name = parse_repo(repo)
        logger.info(f"Fetching issue #{number} from {repo}...")
        remote = await self.fetch_remote(owner, name, number)

        if not self._has_local_copy(storage):
            logger.info(f"No local copy, writing {storage.dir}")
            storage.save_remote(remote.issue, remote.comments)
            return PullResult(
                issue_number=remote.issue.number,
                title=remote.issue.title,
                directory=storage.dir,
                created=True,
            )

        if force:
            discarded = self._discarded_edits(storage, remote)
            storage.save_remote(remote.issue, remote.comments)
            return PullResult(
                issue_number=remote.issue.number,
                title=remote.issue.title,
                directory=storage.dir,
                discarded=discarded,
            )

        local = self.load_local(storage)
        local_edits = detect(local, remote, self._PERMISSIVE).local_edits()
        if local_edits.has_changes:
            print_changeset(local_edits, self.console)
            raise LocalChangesError

        storage.save_remote(remote.issue, remote.comments)
        return PullResult(
            issue_number=remote.issue.number,
            title=remote.issue.title,
            directory=storage.dir,
        )

    def _discarded_edits(self, storage: IssueStorage, remote: RemoteState) -> ChangeSet | None:
        """Local edits a forced pull throws away; None if there are none or they are unreadable."""
        try:
            local = self.load_local(storage)
        except StorageError as e:
            logger.warning(f"Overwriting unreadable local copy: {e.message}")
            return None
        local_edits = detect(local, remote, self._PERMISSIVE).local_edits()
        if not local_edits.has_changes:
            return None
        logger.warning(f"Discarding local changes: {local_edits.summary()}")
        return local_edits

    async def refresh(self, repo: str, number: int, storage: IssueStorage) -> PullResult:
        """Fetch an issue and overwrite the local copy, discarding local edits."""
        owner, name = parse_repo(repo)
        logger.info(f"Refreshing issue #{number} from {repo}...")
        remote = await self.fetch_remote(owner, name, number)
        created = not self._has_local_copy(storage)
        storage.save_remote(remote.issue, remote.comments)
        return PullResult(
            issue_number=remote.issue.number,
            title=remote.issue.title,
            directory=storage.dir,
            created=created,
        )

    async def push(
        self,
        repo: str,
        number: int,
        storage: IssueStorage,
        current_user: str,
        options: PushOptions | None = None,
    ) -> PushResult:
        """
        Push local edits to GitHub.

        Raises:
            LocalFileNotFoundError: If there is no local copy
            RemoteChangedError: If the remote changed since the last pull
                and ``force`` is off
            PermissionDeniedError: If a comment edit or deletion is not allowed
        """
        options = options or PushOptions()
        owner, name = parse_repo(repo)

        if not storage.exists():
            raise LocalFileNotFoundError(
                storage.dir,
                hint=f"Run 'gh-issue-agent pull {number} -R {repo}' first",
            )

        remote = await self.fetch_remote(owner, name, number)
        local = self.load_local(storage)

        check_remote_unchanged(
            local.metadata.updated_at,
            format_timestamp(remote.issue.updated_at),
            options.force,
        )

        changeset = detect(local, remote, options.detect_options(current_user))
        if not changeset.has_changes:
            logger.info("Nothing to push")
            return PushResult(changeset=changeset, dry_run=options.dry_run)

        print_changeset(changeset, self.console)

        if options.dry_run:
            return PushResult(changeset=changeset, dry_run=True)

        await self.apply(changeset, owner, name, number, storage)

        # Baseline for the next push's conflict guard
        refreshed = await self.fetch_remote(owner, name, number)
        storage.refresh_readonly(refreshed.issue)
        storage.save_comments(refreshed.comments)

        return PushResult(changeset=changeset, pushed=True)

    async def create(self, repo: str, storage: IssueStorage, dry_run: bool = False) -> CreateResult:
        """
        Create a GitHub issue from a new-issue directory.

        On success the directory is renamed from ``new`` to the issue
        number and ``issue.md`` gains its ``readonly`` block, so the copy
        can be pushed and pulled like any other.

        Raises:
            LocalFileNotFoundError: If issue.md is missing
            ParseError: If issue.md is invalid or has an empty title
            IssueCreatedError: If the issue was created but the local
                directory could not be moved or rewritten
        """
        owner, name = parse_repo(repo)
        if not storage.issue_path.exists():
            raise LocalFileNotFoundError(
                storage.issue_path,
                hint=f"Run 'gh-issue-agent init issue -R {repo}' to create it",
            )
        new_issue = storage.read_new_issue()
        print_new_issue(new_issue, self.console)

        if dry_run:
            return CreateResult(title=new_issue.title, directory=storage.dir, dry_run=True)

        logger.info(f"Creating issue in {repo}...")
        created = await self.issues.create_issue(
            owner,
            name,
            new_issue.title,
            new_issue.body,
            new_issue.labels,
            new_issue.assignees,
        )
        number = created.number

        new_dir = storage.dir.parent / str(number)
        if new_dir.exists():
            raise IssueCreatedError(number, f"directory '{new_dir}' already exists locally")
        try:
            storage.dir.rename(new_dir)
        except OSError as e:
            raise IssueCreatedError(number, f"failed to rename local directory: {e}") from e

        try:
            IssueStorage(new_dir).save_issue(IssueFrontmatter.from_issue(created), new_issue.body)
        except StorageError as e:
            raise IssueCreatedError(number, f"failed to save metadata: {e.message}") from e

        return CreateResult(
            title=created.title,
            directory=new_dir,
            issue_number=number,
            url=f"https://github.com/{owner}/{name}/issues/{number}",
        )

    async def apply(
        self,
        changeset: ChangeSet,
        owner: str,
        name: str,
        number: int,
        storage: IssueStorage,
    ) -> None:
        """
        Apply a detected changeset to GitHub.

        Issue fields go first, then comments. Permission decisions were
        already made by the detector and are not re-checked here.
        """
        if changeset.body is not None:
            logger.info("Updating issue body...")
            await self.issues.update_issue_body(owner, name, number, changeset.body.local)

        if changeset.title is not None:
            logger.info("Updating title...")
            await self.issues.update_issue_title(owner, name, number, changeset.title.local)

        if changeset.labels is not None:
            logger.info("Updating labels...")
            for label in changeset.labels.to_remove:
                await self.issues.remove_label(owner, name, number, label)
            if changeset.labels.to_add:
                await self.issues.add_labels(owner, name, number, list(changeset.labels.to_add))

        for change in changeset.comments:
            if isinstance(change, NewComment):
                logger.info(f"Creating comment from {change.filename}...")
                await self.comments.create_comment(owner, name, number, change.body)
                storage.delete_comment_file(change.filename)
            elif isinstance(change, UpdatedComment):
                logger.info(f"Updating comment {change.database_id}...")
                await self.comments.update_comment(owner, name, change.database_id, change.local_body)
            elif isinstance(change, DeletedComment):
                logger.info(f"Deleting comment {change.database_id}...")
                await self.comments.delete_comment(owner, name, change.database_id)

    async def diff(
        self,
        repo: str,
        number: int,
        storage: IssueStorage,
        current_user: str = "",
    ) -> DiffResult:
        """
        Show local changes against the remote without pushing.

        A remote update since the last pull is reported, not raised.
        """
        owner, name = parse_repo(repo)
        if not storage.exists():
            raise LocalFileNotFoundError(
                storage.dir,
                hint=f"Run 'gh-issue-agent pull {number} -R {repo}' first",
            )

        remote = await self.fetch_remote(owner, name, number)
        local = self.load_local(storage)

        remote_changed = not timestamps_equal(
            local.metadata.updated_at, format_timestamp(remote.issue.updated_at)
        )
        if remote_changed:
            logger.debug(
                f"Remote updated since pull: local {local.metadata.updated_at}, "
                f"remote {format_timestamp(remote.issue.updated_at)}"
            )

        options = DetectOptions(current_user=current_user, edit_others=True, allow_delete=True)
        changeset = detect(local, remote, options)
        print_changeset(changeset, self.console)
        return DiffResult(changeset=changeset, remote_changed=remote_changed)


def run_pull(
    client: IssueClient,
    repo: str,
    number: int,
    storage: IssueStorage,
    force: bool = False,
    console: Console | None = None,
) -> PullResult:
    """Synchronous wrapper for IssueAgent.pull()."""
    agent = IssueAgent(client, console=console)
    return asyncio.run(agent.pull(repo, number, storage, force=force))


def run_refresh(
    client: IssueClient,
    repo: str,
    number: int,
    storage: IssueStorage,
    console: Console | None = None,
) -> PullResult:
    """Synchronous wrapper for IssueAgent.refresh()."""
    agent = IssueAgent(client, console=console)
    return asyncio.run(agent.refresh(repo, number, storage))


def run_push(
    client: IssueClient,
    repo: str,
    number: int,
    storage: IssueStorage,
    current_user: str,
    options: PushOptions | None = None,
    console: Console | None = None,
) -> PushResult:
    """Synchronous wrapper for IssueAgent.push()."""
    agent = IssueAgent(client, console=console)
    return asyncio.run(agent.push(repo, number, storage, current_user, options))


def run_diff(
    client: IssueClient,
    repo: str,
    number: int,
    storage: IssueStorage,
    current_user: str = "",
    console: Console | None = None,
) -> DiffResult:
    """Synchronous wrapper for IssueAgent.diff()."""
    agent = IssueAgent(client, console=console)
    return asyncio.run(agent.diff(repo, number, storage, current_user))


def run_create(
    client: IssueClient,
    repo: str,
    storage: IssueStorage,
    dry_run: bool = False,
    console: Console | None = None,
) -> CreateResult:
    """Synchronous wrapper for IssueAgent.create()."""
    agent = IssueAgent(client, console=console)
    return asyncio.run(agent.create(repo, storage, dry_run=dry_run))
