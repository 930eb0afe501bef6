"""Git operations used by the release pipeline.

Usage:
    from cpr.git import Repository

    repo = Repository(Path("/path/to/cloudypad"))
    if repo.has_local_branch("release-2.3.0"):
        repo.checkout("release-2.3.0")
"""

from cpr.git.repository import (
    GitError,
    GitStatus,
    Repository,
    StatusEntry,
)

__all__ = [
    "GitError",
    "GitStatus",
    "Repository",
    "StatusEntry",
]
