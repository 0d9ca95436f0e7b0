"""Git operations for publish target checkouts.

Usage:
    from relpub.git import Repository

    repo = Repository(Path("../lib"))
    sha = repo.head_sha()
"""

from relpub.git.repository import (
    GitError,
    GitStatus,
    Repository,
    StatusEntry,
    parse_remote_slug,
)

__all__ = [
    "GitError",
    "GitStatus",
    "Repository",
    "StatusEntry",
    "parse_remote_slug",
]
