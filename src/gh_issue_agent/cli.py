"""
Command-line interface for gh-issue-agent.

This module provides the Typer-based CLI for editing a GitHub issue as
local files: pull it, edit ``issue.md`` and ``comments/``, review with
``diff`` and send the edits back with ``push``. ``init`` starts new
issues and draft comments from boilerplate.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterator
from contextlib import contextmanager
from enum import Enum
from pathlib import Path
from typing import Annotated, TypeVar

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from . import __version__
from .diff import PipeSafeConsole
from .exceptions import (
    ConfigError,
    InvalidPushTargetError,
    IssueAgentError,
    LocalFileNotFoundError,
)
from .github_client import GitHubClient
from .models import IssueTemplate, PushOptions
from .repo import parse_repo, repo_from_new_issue_dir, resolve_repo
from .storage import IssueStorage
from .sync import IssueAgent, PullResult
from .templates import fetch_templates, select_template

T = TypeVar("T")

# Create Typer app
app = typer.Typer(
    name="gh-issue-agent",
    help="Edit GitHub issues as local files and push the changes back",
    add_completion=False,
    rich_markup_mode="rich",
)
init_app = typer.Typer(
    help="Create boilerplate for new issues and comments",
    rich_markup_mode="rich",
)
app.add_typer(init_app, name="init")

console = PipeSafeConsole()
error_console = Console(stderr=True)


class LogLevel(str, Enum):
    """Log level options."""

    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"


IssueNumber = Annotated[
    int,
    typer.Argument(help="Issue number", min=1, show_default=False),
]
RepoOption = Annotated[
    str | None,
    typer.Option(
        "-R",
        "--repo",
        help="Repository in owner/repo format (default: from git remote)",
        show_default=False,
    ),
]
TimeoutOption = Annotated[
    int,
    typer.Option("--timeout", help="API timeout in seconds", min=10, max=300),
]
CacheDirOption = Annotated[
    Path | None,
    typer.Option(
        "--cache-dir",
        help="Root directory for local copies (default: $XDG_CACHE_HOME/gh-issue-agent)",
        show_default=False,
    ),
]


def setup_logging(level: LogLevel, verbose: bool = False) -> None:
    """Configure logging with Rich handler."""
    log_level = getattr(logging, level.value.upper())

    if verbose:
        log_level = logging.DEBUG

    logging.basicConfig(
        level=log_level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=error_console, show_time=False, show_path=False)],
    )


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        console.print(f"gh-issue-agent version {__version__}")
        raise typer.Exit


@contextmanager
def _handle_errors() -> Iterator[None]:
    """Turn application errors into a message and exit code."""
    try:
        yield
    except IssueAgentError as e:
        error_console.print(f"[red]Error:[/red] {escape(e.message)}")
        if e.hint:
            error_console.print(f"[dim]Hint: {escape(e.hint)}[/dim]")
        raise typer.Exit(1) from None
    except KeyboardInterrupt:
        error_console.print("\n[yellow]Interrupted[/yellow]")
        raise typer.Exit(130) from None


def _run(
    action: Callable[[GitHubClient, IssueAgent], Awaitable[T]],
    timeout: int,
) -> T:
    """Run one async action against GitHub, closing the client afterwards."""
    client = GitHubClient(timeout=timeout)

    async def runner() -> T:
        try:
            return await action(client, IssueAgent(client, console=console))
        finally:
            await client.close()

    return asyncio.run(runner())


def _storage(repo: str, number: int, cache_dir: Path | None) -> IssueStorage:
    return IssueStorage.for_issue(repo, number, cache_dir)


def _print_fetch_success(result: PullResult, storage: IssueStorage) -> None:
    console.print(f"Fetched issue [bold]#{result.issue_number}[/bold]: {escape(result.title)}")
    console.print(f"Saved to: [bold]{storage.dir}[/bold]")
    console.print(f"  {storage.issue_path.name}")
    if storage.comments_dir.is_dir():
        for path in sorted(storage.comments_dir.iterdir()):
            console.print(f"  {storage.comments_dir.name}/{path.name}")


@app.callback()
def main_callback(
    verbose: Annotated[
        bool,
        typer.Option(
            "-v",
            "--verbose",
            help="Enable verbose output",
        ),
    ] = False,
    log_level: Annotated[
        LogLevel,
        typer.Option(
            "--log-level",
            help="Set log level",
        ),
    ] = LogLevel.WARNING,
    _version: Annotated[
        bool | None,
        typer.Option(
            "--version",
            callback=version_callback,
            is_eager=True,
            help="Show version and exit",
        ),
    ] = None,
) -> None:
    """
    Edit GitHub issues as local files.

    Examples:

        gh-issue-agent pull 42 -R owner/repo

        gh-issue-agent diff 42 -R owner/repo

        gh-issue-agent push 42 -R owner/repo --dry-run

        gh-issue-agent init comment 42 -R owner/repo --name reply
    """
    setup_logging(log_level, verbose)


@app.command()
def pull(
    issue: IssueNumber,
    repo: RepoOption = None,
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Discard local changes"),
    ] = False,
    timeout: TimeoutOption = 60,
    cache_dir: CacheDirOption = None,
) -> None:
    """
    Fetch an issue and its comments into the local cache.

    Refuses to overwrite local edits that have not been pushed unless
    --force is given.
    """
    with _handle_errors():
        repo_name = resolve_repo(repo)
        storage = _storage(repo_name, issue, cache_dir)
        result = _run(
            lambda _client, agent: agent.pull(repo_name, issue, storage, force=force),
            timeout,
        )
        if result.discarded is not None:
            console.print("[yellow]Local changes were discarded[/yellow]")
        _print_fetch_success(result, storage)


@app.command()
def refresh(
    issue: IssueNumber,
    repo: RepoOption = None,
    timeout: TimeoutOption = 60,
    cache_dir: CacheDirOption = None,
) -> None:
    """
    Fetch an issue and overwrite the local copy unconditionally.

    Drafts under comments/new_*.md are kept.
    """
    with _handle_errors():
        repo_name = resolve_repo(repo)
        storage = _storage(repo_name, issue, cache_dir)
        result = _run(
            lambda _client, agent: agent.refresh(repo_name, issue, storage),
            timeout,
        )
        _print_fetch_success(result, storage)


@app.command()
def push(
    target: Annotated[
        str,
        typer.Argument(
            help="Issue number, or a new-issue directory created by 'init issue'",
            show_default=False,
        ),
    ],
    repo: RepoOption = None,
    dry_run: Annotated[
        bool,
        typer.Option(
            "--dry-run",
            "-n",
            help="Show what would be pushed without making changes",
        ),
    ] = False,
    force: Annotated[
        bool,
        typer.Option("--force", "-f", help="Push even if the remote changed since pull"),
    ] = False,
    edit_others: Annotated[
        bool,
        typer.Option("--edit-others", help="Allow editing other users' comments"),
    ] = False,
    allow_delete: Annotated[
        bool,
        typer.Option("--allow-delete", help="Allow deleting comments"),
    ] = False,
    timeout: TimeoutOption = 60,
    cache_dir: CacheDirOption = None,
) -> None:
    """
    Push local edits of an issue to GitHub.

    Title, labels, body and comments are compared with the current remote
    state; only the differences are sent. Given a directory instead of a
    number, a new issue is created from its issue.md.
    """
    with _handle_errors():
        if target.isdigit() and int(target) > 0:
            _push_update(
                int(target),
                repo,
                dry_run=dry_run,
                force=force,
                edit_others=edit_others,
                allow_delete=allow_delete,
                timeout=timeout,
                cache_dir=cache_dir,
            )
        elif Path(target).is_dir():
            _push_create(Path(target), repo, dry_run, timeout)
        else:
            raise InvalidPushTargetError(target)


def _push_update(
    issue: int,
    repo: str | None,
    dry_run: bool,
    force: bool,
    edit_others: bool,
    allow_delete: bool,
    timeout: int,
    cache_dir: Path | None,
) -> None:
    options = PushOptions(
        dry_run=dry_run,
        force=force,
        edit_others=edit_others,
        allow_delete=allow_delete,
    )
    repo_name = resolve_repo(repo)
    storage = _storage(repo_name, issue, cache_dir)

    async def action(client: GitHubClient, agent: IssueAgent):
        current_user = await client.get_current_user()
        return await agent.push(repo_name, issue, storage, current_user, options)

    if dry_run:
        console.print("[yellow]Dry run mode - nothing will be pushed[/yellow]")
    result = _run(action, timeout)
    console.print()
    console.print(result.summary(), markup=False)


def _push_create(directory: Path, repo: str | None, dry_run: bool, timeout: int) -> None:
    repo_name = repo_from_new_issue_dir(directory, repo)
    storage = IssueStorage(directory)
    result = _run(
        lambda _client, agent: agent.create(repo_name, storage, dry_run=dry_run),
        timeout,
    )
    console.print()
    console.print(result.summary(), markup=False)
    if not result.dry_run:
        console.print()
        console.print(f"Local files moved to: [bold]{escape(str(result.directory))}/[/bold]")
        console.print(f"View on GitHub: {result.url}", markup=False)


@app.command()
def diff(
    issue: IssueNumber,
    repo: RepoOption = None,
    timeout: TimeoutOption = 60,
    cache_dir: CacheDirOption = None,
) -> None:
    """Show local changes against the current remote state."""

    async def action(client: GitHubClient, agent: IssueAgent):
        current_user = await client.get_current_user()
        return await agent.diff(repo_name, issue, storage, current_user)

    with _handle_errors():
        repo_name = resolve_repo(repo)
        storage = _storage(repo_name, issue, cache_dir)
        result = _run(action, timeout)
        if result.remote_changed:
            error_console.print(
                "[yellow]Warning: Remote has been updated since last pull.[/yellow]"
            )
        if not result.changeset.has_changes:
            console.print("No changes detected.")


@init_app.command("issue")
def init_issue(
    repo: RepoOption = None,
    template: Annotated[
        str | None,
        typer.Option(
            "--template",
            help="Name of the issue template to start from",
            show_default=False,
        ),
    ] = None,
    no_template: Annotated[
        bool,
        typer.Option("--no-template", help="Use the default boilerplate"),
    ] = False,
    list_templates: Annotated[
        bool,
        typer.Option(
            "--list-templates",
            help="List the repository's issue templates and exit",
        ),
    ] = False,
    timeout: TimeoutOption = 60,
    cache_dir: CacheDirOption = None,
) -> None:
    """
    Write issue.md for a new issue under <owner>/<repo>/new.

    Push the directory afterwards to create the issue on GitHub.
    """
    with _handle_errors():
        if template is not None and no_template:
            raise ConfigError(
                "--template and --no-template cannot be used together",
                "Pick one of them",
            )
        repo_name = resolve_repo(repo)
        owner, name = parse_repo(repo_name)

        templates: list[IssueTemplate] = []
        if list_templates or not no_template:
            templates = _run(
                lambda client, _agent: fetch_templates(client, owner, name),
                timeout,
            )

        if list_templates:
            if not templates:
                console.print(f"No issue templates found for {repo_name}")
                return
            console.print(f"Available issue templates for {repo_name}:")
            for t in templates:
                line = f"  - {t.name} - {t.about}" if t.about else f"  - {t.name}"
                console.print(line, markup=False)
            return

        selected = None if no_template else select_template(templates, template)
        if selected is not None:
            console.print(f"Using template: {escape(selected.name)}")

        storage = IssueStorage.for_new_issue(repo_name, cache_dir)
        path = storage.init_new_issue(selected)
        console.print(f"Created: [bold]{escape(str(path))}[/bold]")
        console.print()
        console.print(f"Edit the file, then run: gh-issue-agent push {escape(str(storage.dir))}")


@init_app.command("comment")
def init_comment(
    issue: IssueNumber,
    repo: RepoOption = None,
    name: Annotated[
        str | None,
        typer.Option(
            "--name",
            help="Draft name (default: current timestamp)",
            show_default=False,
        ),
    ] = None,
    cache_dir: CacheDirOption = None,
) -> None:
    """Write a draft comments/new_<name>.md for a pulled issue."""
    with _handle_errors():
        repo_name = resolve_repo(repo)
        storage = _storage(repo_name, issue, cache_dir)
        if not storage.exists():
            raise LocalFileNotFoundError(
                storage.dir,
                hint=f"Run 'gh-issue-agent pull {issue} -R {repo_name}' first",
            )
        path = storage.init_new_comment(name)
        console.print(f"Created: [bold]{escape(str(path))}[/bold]")
        console.print()
        console.print(
            f"Edit the file, then run: gh-issue-agent push {issue} -R {escape(repo_name)}"
        )


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
