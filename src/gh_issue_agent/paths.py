"""Locations of local issue copies."""

import os
from pathlib import Path

APP_DIR_NAME = "gh-issue-agent"
NEW_ISSUE_DIR_NAME = "new"


def get_cache_dir(
    xdg_cache_home: str | None = None,
    home_dir: Path | None = None,
) -> Path:
    """
    Return the cache root for local issue copies.

    Uses ``$XDG_CACHE_HOME/gh-issue-agent`` when set, otherwise
    ``~/.cache/gh-issue-agent``, otherwise ``.cache/gh-issue-agent``
    relative to the working directory.
    """
    if xdg_cache_home is None:
        xdg_cache_home = os.environ.get("XDG_CACHE_HOME") or None
    if xdg_cache_home:
        return Path(xdg_cache_home) / APP_DIR_NAME

    if home_dir is None:
        try:
            home_dir = Path.home()
        except RuntimeError:
            home_dir = None
    if home_dir is not None:
        return home_dir / ".cache" / APP_DIR_NAME

    return Path(".cache") / APP_DIR_NAME


def get_issue_dir(repo: str, issue_number: int, cache_dir: Path | None = None) -> Path:
    """Directory of one issue: ``<cache_dir>/<owner>/<repo>/<number>``."""
    root = cache_dir if cache_dir is not None else get_cache_dir()
    return root / repo / str(issue_number)


def get_new_issue_dir(repo: str, cache_dir: Path | None = None) -> Path:
    """Directory of an issue not yet created: ``<cache_dir>/<owner>/<repo>/new``."""
    root = cache_dir if cache_dir is not None else get_cache_dir()
    return root / repo / NEW_ISSUE_DIR_NAME
