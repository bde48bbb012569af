"""
gh-issue-agent: Edit GitHub issues as local files.

This package pulls a GitHub issue and its comments into a local directory,
detects what was edited locally, and pushes exactly those edits back,
guarding against overwriting remote changes made in the meantime.
"""

__version__ = "0.1.0"
