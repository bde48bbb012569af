"""
Exception hierarchy for gh-issue-agent.

This module defines custom exceptions with clear messages and
actionable guidance for users.
"""

from pathlib import Path


class IssueAgentError(Exception):
    """Base exception for all gh-issue-agent errors."""

    def __init__(self, message: str, hint: str | None = None) -> None:
        self.message = message
        self.hint = hint
        super().__init__(message)

    def __str__(self) -> str:
        if self.hint:
            return f"{self.message}\n\nHint: {self.hint}"
        return self.message


# GitHub Transport Errors


class GitHubClientError(IssueAgentError):
    """Base class for GitHub transport errors."""


class GitHubCLINotFoundError(GitHubClientError):
    """The gh CLI tool is not installed or not in PATH."""

    def __init__(self) -> None:
        super().__init__(
            "GitHub CLI (gh) not found",
            "Install it from https://cli.github.com/ or set GITHUB_TOKEN",
        )


class GitHubAuthError(GitHubClientError):
    """GitHub authentication failed or not configured."""

    def __init__(self, details: str = "") -> None:
        message = "GitHub authentication failed"
        if details:
            message = f"{message}: {details}"
        super().__init__(
            message,
            "Run 'gh auth login' or set GITHUB_TOKEN",
        )


class GitHubAPIError(GitHubClientError):
    """GitHub API returned an error."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        status_info = f" (HTTP {status_code})" if status_code else ""
        super().__init__(
            f"GitHub API error{status_info}: {message}",
            "Check that the repository and issue exist and you have access to them",
        )


class GitHubNetworkError(GitHubClientError):
    """Network error communicating with GitHub."""

    def __init__(self, details: str = "") -> None:
        message = "Network error connecting to GitHub"
        if details:
            message = f"{message}: {details}"
        super().__init__(
            message,
            "Check your internet connection and try again",
        )


class GitHubRateLimitError(GitHubClientError):
    """GitHub API rate limit exceeded."""

    def __init__(self, reset_time: str | None = None) -> None:
        message = "GitHub API rate limit exceeded"
        hint = "Wait a few minutes and try again"
        if reset_time:
            hint = f"Rate limit resets at {reset_time}. Wait and try again."
        super().__init__(message, hint)


class GitHubTimeoutError(GitHubClientError):
    """GitHub request timed out."""

    def __init__(self, timeout_seconds: int) -> None:
        super().__init__(
            f"GitHub request timed out after {timeout_seconds} seconds",
            "Check your network or raise --timeout",
        )


# Local Storage Errors


class StorageError(IssueAgentError):
    """Base class for local storage errors."""


class LocalFileNotFoundError(StorageError):
    """A required local file or directory is missing."""

    def __init__(self, path: Path | str, hint: str | None = None) -> None:
        self.path = Path(path)
        super().__init__(
            f"File not found: {path}",
            hint or "Run 'gh-issue-agent pull <issue>' to fetch a local copy",
        )


class LocalFileExistsError(StorageError):
    """A file that would be created already exists."""

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        super().__init__(
            f"File already exists: {path}",
            "Edit the existing file or remove it first",
        )


class ParseError(StorageError):
    """A local file could not be parsed."""

    def __init__(self, file_path: Path | str, details: str = "") -> None:
        self.path = Path(file_path)
        message = f"Failed to parse '{file_path}'"
        if details:
            message = f"{message}: {details}"
        super().__init__(
            message,
            "Fix the file by hand or run 'refresh' to discard local edits",
        )


class CommentMetadataParseError(ParseError):
    """The header block of a comment file is malformed."""


class StorageWriteError(StorageError):
    """Failed to write a file of the local copy."""

    def __init__(self, file_path: Path | str, details: str = "") -> None:
        self.path = Path(file_path)
        message = f"Failed to write '{file_path}'"
        if details:
            message = f"{message}: {details}"
        super().__init__(
            message,
            "Check that you have write permissions and enough disk space",
        )


# Sync Errors


class SyncError(IssueAgentError):
    """Base class for pull/push reconciliation errors."""


class PermissionDeniedError(SyncError):
    """A comment change needs an explicit opt-in flag."""


class EditOthersDeniedError(PermissionDeniedError):
    """Editing a comment written by another user without --edit-others."""

    def __init__(self, filename: str, author: str) -> None:
        self.filename = filename
        self.author = author
        super().__init__(
            f"Cannot edit other user's comment: {filename} (author: {author})",
            "Use --edit-others to allow",
        )


class DeleteDeniedError(PermissionDeniedError):
    """Deleting a remote comment without --allow-delete."""

    def __init__(self, database_id: int, author: str, own_comment: bool) -> None:
        self.database_id = database_id
        self.author = author
        if own_comment:
            message = f"Cannot delete comment (database_id: {database_id})"
        else:
            message = (
                f"Cannot delete other user's comment "
                f"(database_id: {database_id}, author: {author})"
            )
        super().__init__(message, "Use --allow-delete to allow")


class RemoteChangedError(SyncError):
    """The remote issue was updated after the local copy was pulled."""

    def __init__(self, local_updated_at: str, remote_updated_at: str) -> None:
        self.local_updated_at = local_updated_at
        self.remote_updated_at = remote_updated_at
        super().__init__(
            "Remote has changed since pull. "
            f"Local: {local_updated_at}, Remote: {remote_updated_at}",
            "Use --force to overwrite, or 'pull --force' to update local copy",
        )


class LocalChangesError(SyncError):
    """Pulling would overwrite local edits that were never pushed."""

    def __init__(self) -> None:
        super().__init__(
            "Local changes would be overwritten",
            "Use 'pull --force' to discard local changes, or 'push' them first",
        )


# Configuration Errors


class ConfigError(IssueAgentError):
    """Configuration error."""


class InvalidRepositoryError(ConfigError):
    """Invalid repository format."""

    def __init__(self, repo: str) -> None:
        super().__init__(
            f"Invalid repository format: '{repo}'",
            "Use format 'owner/repo', e.g., 'octocat/Hello-World'",
        )


class InvalidCommentNameError(ConfigError):
    """A draft comment name that would escape the comments directory."""

    def __init__(self, name: str) -> None:
        super().__init__(
            f"Invalid comment name: '{name}'",
            "Names must not contain '/', '\\' or '..'",
        )


class InvalidPushTargetError(ConfigError):
    """The push target is neither an issue number nor a directory."""

    def __init__(self, target: str) -> None:
        super().__init__(
            f"Invalid target: '{target}' is neither an issue number nor an existing directory",
            "Pass an issue number, or the directory created by 'init issue'",
        )


class TemplateNotFoundError(ConfigError):
    """The requested issue template does not exist."""

    def __init__(self, name: str, available: list[str]) -> None:
        self.available = available
        super().__init__(
            f"Template '{name}' not found. Available templates: {', '.join(available)}",
            "Use 'init issue --list-templates' to see the templates",
        )


class TemplateSelectionError(ConfigError):
    """More than one template exists and none was chosen."""

    def __init__(self, names: list[str]) -> None:
        self.names = names
        super().__init__(
            f"Multiple issue templates found: {', '.join(names)}",
            "Use --template <NAME> to select one, or --no-template for the default",
        )


class UnknownRepositoryError(ConfigError):
    """The repository of a new-issue directory cannot be inferred."""

    def __init__(self, path: Path | str) -> None:
        super().__init__(
            f"Cannot determine repository from path '{path}'",
            "Use -R owner/repo to specify it",
        )


# Issue Creation Errors


class IssueCreatedError(SyncError):
    """The issue was created on GitHub but the local copy could not follow."""

    def __init__(self, number: int, details: str) -> None:
        self.number = number
        super().__init__(
            f"Issue #{number} created on GitHub, but {details}",
            f"Run 'gh-issue-agent pull --force {number}' to fetch it locally",
        )
