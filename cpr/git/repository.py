"""Git repository abstraction.

This module provides the Repository class for the git operations the release
pipeline drives. All operations that can fail return Result types.

Usage:
    repo = Repository(Path("/path/to/cloudypad"))

    match repo.status():
        case Ok(status):
            if not status.is_clean:
                repo.stash_push("release-create temp")
        case Err(e):
            print(f"Error: {e.message}")
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from cpr.core.result import Err, Ok, Result
from cpr.platform.process import ProcessError
from cpr.platform.process import run as run_process

_GIT_TIMEOUT_SECONDS = 30.0
_GIT_NETWORK_TIMEOUT_SECONDS = 3 * 60.0
_NETWORK_COMMANDS = frozenset({"fetch", "pull", "push", "clone", "ls-remote"})

__all__ = [
    "GitError",
    "GitStatus",
    "Repository",
    "StatusEntry",
]


@dataclass(frozen=True, slots=True)
class GitError:
    """Error from a git operation.

    Attributes:
        command: The git command that failed
        message: Error message
        returncode: Process return code
    """

    command: str
    message: str
    returncode: int = 1


@dataclass(frozen=True, slots=True)
class StatusEntry:
    """A single entry in ``git status --porcelain``.

    Attributes:
        xy: Two-character status code (e.g., "M ", " M", "??")
        path: File path
    """

    xy: str
    path: str


@dataclass(frozen=True, slots=True)
class GitStatus:
    """Parsed working tree status.

    Attributes:
        branch: Current branch name ("" when it cannot be determined)
        upstream: Upstream branch (e.g., "origin/master"), None if not set
        entries: Staged, unstaged and untracked entries
    """

    branch: str
    upstream: str | None = None
    entries: tuple[StatusEntry, ...] = field(default_factory=tuple)

    @property
    def is_clean(self) -> bool:
        """True if there are no tracked or untracked changes."""
        return len(self.entries) == 0


def _git_error(command: str, error: ProcessError, fallback: str) -> GitError:
    return GitError(
        command=command,
        message=error.stderr.strip() or error.stdout.strip() or fallback,
        returncode=error.returncode,
    )


class Repository:
    """Git working tree driven through the ``git`` CLI.

    Attributes:
        path: Path to the repository root
    """

    def __init__(self, path: Path) -> None:
        self.path = path

    def exists(self) -> bool:
        """Check if this is a git checkout (.git dir or worktree file)."""
        return (self.path / ".git").exists()

    # -------------------------------------------------------------------------
    # Status / queries
    # -------------------------------------------------------------------------

    def status(self) -> Result[GitStatus, GitError]:
        """Run ``git status --porcelain=v1 -b`` and parse it."""
        result = self._run(["status", "--porcelain=v1", "-b", "--untracked-files=all"])
        match result:
            case Err(e):
                return Err(_git_error("status", e, "git status failed"))
            case Ok(stdout):
                return Ok(self._parse_status(stdout))

    def current_branch(self) -> str | None:
        """Get current branch name; None on detached HEAD or error."""
        result = self._run(["rev-parse", "--abbrev-ref", "HEAD"])
        match result:
            case Ok(stdout):
                branch = stdout.strip()
                return None if branch == "HEAD" else branch
            case Err(_):
                return None

    def has_upstream(self) -> bool:
        """Check if current branch has an upstream configured."""
        result = self._run(["rev-parse", "--abbrev-ref", "--symbolic-full-name", "@{u}"])
        return isinstance(result, Ok)

    def has_local_branch(self, name: str) -> bool:
        result = self._run(["show-ref", "--verify", "--quiet", f"refs/heads/{name}"])
        return isinstance(result, Ok)

    def has_remote_branch(self, remote: str, name: str) -> Result[bool, GitError]:
        """Query the remote for ``refs/heads/<name>``.

        ``ls-remote --exit-code`` exits 2 when no ref matched; any other failure
        (network, auth) is an error rather than "absent".
        """
        result = self._run(["ls-remote", "--exit-code", "--heads", remote, name])
        match result:
            case Ok(_):
                return Ok(True)
            case Err(e) if e.returncode == 2:
                return Ok(False)
            case Err(e):
                return Err(_git_error("ls-remote", e, f"cannot query {remote}"))

    def has_staged_changes(self) -> Result[bool, GitError]:
        """``git diff --cached --quiet``: exit 1 means something is staged."""
        result = self._run(["diff", "--cached", "--quiet"])
        match result:
            case Ok(_):
                return Ok(False)
            case Err(e) if e.returncode == 1:
                return Ok(True)
            case Err(e):
                return Err(_git_error("diff --cached", e, "git diff failed"))

    def rev_list_tag(self, tag: str) -> Result[str, GitError]:
        """Resolve the commit SHA a tag points to."""
        result = self._run(["rev-list", "-n", "1", tag])
        match result:
            case Err(e):
                return Err(_git_error("rev-list", e, f"unknown tag: {tag}"))
            case Ok(stdout):
                sha = stdout.strip()
                if not sha:
                    return Err(GitError(command="rev-list", message=f"unknown tag: {tag}"))
                return Ok(sha)

    def log_oneline(self, ref: str = "HEAD", *, limit: int = 1) -> Result[list[str], GitError]:
        result = self._run(["log", "--oneline", f"-{limit}", ref])
        match result:
            case Err(e):
                return Err(_git_error("log", e, "git log failed"))
            case Ok(stdout):
                return Ok([ln for ln in stdout.splitlines() if ln.strip()])

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    def stash_push(self, message: str) -> Result[None, GitError]:
        """Stash tracked and untracked changes under a label."""
        return self._simple(["stash", "push", "-u", "-m", message], "stash push")

    def stash_pop(self) -> Result[None, GitError]:
        return self._simple(["stash", "pop"], "stash pop")

    def checkout(self, branch: str) -> Result[None, GitError]:
        return self._simple(["checkout", branch], "checkout")

    def checkout_new(self, branch: str) -> Result[None, GitError]:
        return self._simple(["checkout", "-b", branch], "checkout -b")

    def fetch_branch(self, remote: str, branch: str) -> Result[None, GitError]:
        """Create the local branch from its remote counterpart."""
        return self._simple(["fetch", remote, f"{branch}:{branch}"], "fetch")

    def fetch_tags(self, remote: str) -> Result[None, GitError]:
        return self._simple(["fetch", "--tags", remote], "fetch --tags")

    def add(self, paths: list[str]) -> Result[None, GitError]:
        return self._simple(["add", "--", *paths], "add")

    def commit(self, message: str) -> Result[None, GitError]:
        return self._simple(["commit", "-m", message], "commit")

    def push(self) -> Result[None, GitError]:
        return self._simple(["push"], "push")

    def push_set_upstream(self, remote: str, branch: str) -> Result[None, GitError]:
        return self._simple(["push", "-u", remote, branch], "push -u")

    def pull(self) -> Result[None, GitError]:
        return self._simple(["pull"], "pull")

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _simple(self, args: list[str], label: str) -> Result[None, GitError]:
        result = self._run(args)
        if isinstance(result, Err):
            return Err(_git_error(label, result.error, f"git {label} failed"))
        return Ok(None)

    def _run(self, args: list[str]) -> Result[str, ProcessError]:
        """Run a git command in this repository."""
        command = args[0] if args else ""
        timeout = (
            _GIT_NETWORK_TIMEOUT_SECONDS if command in _NETWORK_COMMANDS else _GIT_TIMEOUT_SECONDS
        )
        return run_process(["git", "-C", str(self.path), *args], cwd=self.path, timeout=timeout)

    def _parse_status(self, output: str) -> GitStatus:
        """Parse git status --porcelain=v1 -b output."""
        lines = [ln for ln in output.splitlines() if ln.strip()]
        if not lines:
            return GitStatus(branch="")

        branch = ""
        upstream: str | None = None
        body = lines
        if lines[0].startswith("##"):
            branch, upstream = self._parse_branch_line(lines[0])
            body = lines[1:]

        entries = [e for e in (self._parse_entry(ln) for ln in body) if e is not None]
        return GitStatus(branch=branch, upstream=upstream, entries=tuple(entries))

    def _parse_branch_line(self, line: str) -> tuple[str, str | None]:
        """Parse branch line: ## branch...upstream [info]"""
        s = line[2:].strip()
        s = s.split(" [", 1)[0].strip()
        if "..." in s:
            left, right = s.split("...", 1)
            return (left.strip(), right.strip())
        return (s, None)

    def _parse_entry(self, line: str) -> StatusEntry | None:
        if len(line) < 4:
            return None
        return StatusEntry(xy=line[:2], path=line[3:])
