from __future__ import annotations

from collections.abc import Callable
from datetime import datetime
from enum import Enum

from cpr.core.result import Err, Ok, Result
from cpr.git.repository import GitError, Repository
from cpr.output.console import ConsoleProtocol, Style
from cpr.services.release.config import DESCRIPTORS, STASH_LABEL_PREFIX, commit_message
from cpr.services.release.errors import ReleaseError
from cpr.services.release.model import PipelineRun


class BranchOrigin(Enum):
    LOCAL = "local"
    REMOTE = "remote"
    CREATED = "created"


def _now_iso() -> str:
    return datetime.now().astimezone().isoformat(timespec="seconds")


def _git_failed(error: GitError, message: str, hint: str | None = None) -> Err[ReleaseError]:
    return Err(
        ReleaseError(
            kind="git_failed",
            message=f"{message}: {error.message}",
            hint=hint,
        )
    )


def resume_command(version: str, *, stage: str) -> str:
    return f"cpr release create {version} --from-stage {stage}"


def stash_if_dirty(
    *,
    repo: Repository,
    run: PipelineRun,
    console: ConsoleProtocol,
    now: Callable[[], str] = _now_iso,
) -> Result[bool, ReleaseError]:
    """Snapshot tracked and untracked changes; True if a stash was created."""
    status = repo.status()
    if isinstance(status, Err):
        return _git_failed(status.error, "failed to read working tree status")

    if status.value.is_clean:
        return Ok(False)

    label = f"{STASH_LABEL_PREFIX} {now()}"
    console.print("Worktree is dirty. Stashing changes temporarily...")
    stashed = repo.stash_push(label)
    if isinstance(stashed, Err):
        return _git_failed(stashed.error, "failed to stash local changes")

    run.stash_label = label
    console.print(f"stash: {label}", Style.DIM)
    return Ok(True)


def resolve_branch(
    *,
    repo: Repository,
    branch: str,
    remote: str,
    console: ConsoleProtocol,
) -> Result[BranchOrigin, ReleaseError]:
    """Reuse the local branch, track the remote one, or create it."""
    if repo.has_local_branch(branch):
        console.print(f"Branch '{branch}' exists locally. Reusing it.")
        checked = repo.checkout(branch)
        if isinstance(checked, Err):
            return _git_failed(checked.error, f"failed to checkout {branch}")
        return Ok(BranchOrigin.LOCAL)

    on_remote = repo.has_remote_branch(remote, branch)
    if isinstance(on_remote, Err):
        return _git_failed(on_remote.error, f"failed to query {remote} for {branch}")

    if on_remote.value:
        console.print(f"Branch '{branch}' exists on {remote}. Creating local tracking branch.")
        fetched = repo.fetch_branch(remote, branch)
        if isinstance(fetched, Err):
            return _git_failed(fetched.error, f"failed to fetch {remote}/{branch}")
        checked = repo.checkout(branch)
        if isinstance(checked, Err):
            return _git_failed(checked.error, f"failed to checkout {branch}")
        return Ok(BranchOrigin.REMOTE)

    console.print(f"Creating new branch '{branch}'...")
    created = repo.checkout_new(branch)
    if isinstance(created, Err):
        return _git_failed(created.error, f"failed to create {branch}")
    return Ok(BranchOrigin.CREATED)


def restore_stash(
    *,
    repo: Repository,
    run: PipelineRun,
    console: ConsoleProtocol,
) -> Result[None, ReleaseError]:
    if run.stash_label is None:
        return Ok(None)

    console.print(f"Restoring stashed changes onto '{run.branch}'...")
    popped = repo.stash_pop()
    if isinstance(popped, Err):
        message = commit_message(run.version.value)
        return Err(
            ReleaseError(
                kind="stash_conflict",
                message=(
                    f"automatic stash pop on {run.branch} resulted in conflicts: "
                    f"{popped.error.message}"
                ),
                hint=(
                    f'resolve the conflicts, then run: git add -A && git commit -m "{message}" '
                    f"&& {resume_command(run.version.value, stage='branch')}"
                ),
            )
        )

    run.stash_label = None
    return Ok(None)


def commit_descriptors(
    *,
    repo: Repository,
    run: PipelineRun,
    console: ConsoleProtocol,
    paths: list[str] | None = None,
) -> Result[bool, ReleaseError]:
    """Stage exactly the descriptors and commit; False when nothing changed."""
    files = paths if paths is not None else [d.path for d in DESCRIPTORS]
    console.print(f"Committing version changes to {run.branch}...")
    added = repo.add(files)
    if isinstance(added, Err):
        return _git_failed(added.error, "failed to stage descriptors")

    staged = repo.has_staged_changes()
    if isinstance(staged, Err):
        return _git_failed(staged.error, "failed to inspect staged changes")
    if not staged.value:
        console.print("No changes to commit.")
        return Ok(False)

    committed = repo.commit(commit_message(run.version.value))
    if isinstance(committed, Err):
        return _git_failed(committed.error, "failed to commit version changes")

    head = repo.log_oneline()
    if isinstance(head, Ok) and head.value:
        console.print(f"commit: {head.value[0]}", Style.DIM)
    return Ok(True)


def push_branch(
    *,
    repo: Repository,
    run: PipelineRun,
    remote: str,
    console: ConsoleProtocol,
) -> Result[None, ReleaseError]:
    if run.dry_run:
        console.print("Dry run enabled: Skipping git push.")
        return Ok(None)

    if repo.has_upstream():
        console.print("git push", Style.DIM)
        pushed = repo.push()
    else:
        console.print(f"git push -u {remote} {run.branch}", Style.DIM)
        pushed = repo.push_set_upstream(remote, run.branch)

    if isinstance(pushed, Err):
        return _git_failed(
            pushed.error,
            f"failed to push {run.branch}",
            hint=f"git push -u {remote} {run.branch} && "
            + resume_command(run.version.value, stage="publish"),
        )
    return Ok(None)


def prepare_release_branch(
    *,
    repo: Repository,
    run: PipelineRun,
    remote: str,
    console: ConsoleProtocol,
    now: Callable[[], str] = _now_iso,
) -> Result[BranchOrigin, ReleaseError]:
    """Check out ``release-<version>`` carrying the committed descriptor rewrite.

    Local modifications are stashed before switching and reapplied after; a
    conflicting reapply stops before committing and leaves the tree for the
    operator to resolve.
    """
    console.print(f"Checking out branch '{run.branch}'...")

    stashed = stash_if_dirty(repo=repo, run=run, console=console, now=now)
    if isinstance(stashed, Err):
        return stashed

    origin = resolve_branch(repo=repo, branch=run.branch, remote=remote, console=console)
    if isinstance(origin, Err):
        if run.stash_label is not None:
            console.warning(f"local changes remain stashed as '{run.stash_label}' (git stash pop)")
        return origin

    restored = restore_stash(repo=repo, run=run, console=console)
    if isinstance(restored, Err):
        return restored

    committed = commit_descriptors(repo=repo, run=run, console=console)
    if isinstance(committed, Err):
        return committed

    pushed = push_branch(repo=repo, run=run, remote=remote, console=console)
    if isinstance(pushed, Err):
        return pushed

    return Ok(origin.value)
