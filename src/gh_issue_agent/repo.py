"""Repository name parsing and discovery."""

import logging
import re
import subprocess
from pathlib import Path

from .exceptions import ConfigError, InvalidRepositoryError, UnknownRepositoryError
from .paths import NEW_ISSUE_DIR_NAME

logger = logging.getLogger(__name__)

# git@github.com:owner/repo.git, https://github.com/owner/repo(.git), ssh://git@host/owner/repo
_REMOTE_URL = re.compile(r"[:/](?P<owner>[^/:]+)/(?P<name>[^/]+?)(?:\.git)?/?$")


def parse_repo(repo: str) -> tuple[str, str]:
    """
    Split ``owner/repo`` into its parts.

    Raises:
        InvalidRepositoryError: If the string is not exactly ``owner/repo``
    """
    if repo.count("/") != 1:
        raise InvalidRepositoryError(repo)
    owner, name = repo.split("/")
    if not owner or not name:
        raise InvalidRepositoryError(repo)
    return owner, name


def parse_remote_url(url: str) -> tuple[str, str] | None:
    """Extract ``(owner, repo)`` from a git remote URL."""
    match = _REMOTE_URL.search(url.strip())
    if match is None:
        return None
    return match.group("owner"), match.group("name")


def repo_from_git_remote(remote: str = "origin") -> str | None:
    """Derive ``owner/repo`` from the current directory's git remote."""
    try:
        result = subprocess.run(
            ["git", "remote", "get-url", remote],
            capture_output=True,
            text=True,
            timeout=10,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        logger.debug(f"git remote lookup failed: {e}")
        return None
    if result.returncode != 0:
        return None
    parsed = parse_remote_url(result.stdout)
    if parsed is None:
        return None
    return "/".join(parsed)


def resolve_repo(repo_arg: str | None) -> str:
    """
    Repository from the argument, or from the git remote.

    Raises:
        InvalidRepositoryError: If the given repository is malformed
        ConfigError: If no repository was given and none could be detected
    """
    if repo_arg:
        parse_repo(repo_arg)
        return repo_arg
    detected = repo_from_git_remote()
    if detected is None:
        raise ConfigError(
            "Failed to determine current repository",
            "Use -R owner/repo to specify it",
        )
    return detected


def repo_from_new_issue_dir(path: Path, repo_arg: str | None = None) -> str:
    """
    Repository of a new-issue directory.

    ``-R`` wins; otherwise the directory must be the ``<owner>/<repo>/new``
    layout written by ``init issue``.

    Raises:
        InvalidRepositoryError: If the given repository is malformed
        UnknownRepositoryError: If the path does not reveal a repository
    """
    if repo_arg:
        parse_repo(repo_arg)
        return repo_arg
    path = path.resolve()
    if path.name != NEW_ISSUE_DIR_NAME or not path.parent.parent.name:
        raise UnknownRepositoryError(path)
    return f"{path.parent.parent.name}/{path.parent.name}"
