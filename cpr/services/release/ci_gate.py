"""Block until the CI run of the release tag finishes.

Two polling phases share one budget measured from gate entry: waiting for a
workflow run on the tag commit to appear, then waiting for it to complete.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from pathlib import Path

from cpr.core.result import Err, Ok, Result
from cpr.git.repository import Repository
from cpr.output.console import ConsoleProtocol, Style
from cpr.services.release.errors import ReleaseError
from cpr.services.release.gh import list_runs_for_commit, view_run
from cpr.services.release.model import CiOutcome, WorkflowRunStatus
from cpr.services.release.polling import Clock, PollTimeout, Sleeper, poll_until


@dataclass(frozen=True, slots=True)
class GatePolicy:
    timeout_seconds: float = 3600.0
    poll_seconds: float = 15.0
    workflow: str = "Release"  # "" accepts any workflow run on the commit


def resolve_tag_sha(
    *, repo: Repository, tag: str, remote: str, console: ConsoleProtocol
) -> Result[str, ReleaseError]:
    fetched = repo.fetch_tags(remote)
    if isinstance(fetched, Err):
        return Err(
            ReleaseError(
                kind="git_failed",
                message=f"failed to fetch tags from {remote}: {fetched.error.message}",
                hint=f"git fetch --tags {remote}",
            )
        )

    sha = repo.rev_list_tag(tag)
    if isinstance(sha, Err):
        return Err(
            ReleaseError(
                kind="git_failed",
                message=f"cannot resolve {tag}: {sha.error.message}",
                hint=f"gh release view {tag}",
            )
        )
    console.print(f"{tag} -> {sha.value}", Style.DIM)
    return Ok(sha.value)


def _timeout(sha: str, elapsed: float, run_id: int | None = None) -> Ok[CiOutcome]:
    return Ok(
        CiOutcome(
            conclusion="timeout",
            sha=sha,
            run_id=run_id,
            detail=f"no terminal state after {int(elapsed)}s",
        )
    )


def wait_for_release_ci(
    *,
    workspace_root: Path,
    repo: Repository,
    tag: str,
    remote: str,
    policy: GatePolicy,
    console: ConsoleProtocol,
    clock: Clock = time.monotonic,
    sleep: Sleeper = time.sleep,
) -> Result[CiOutcome, ReleaseError]:
    """Return the terminal CI outcome (success, failure or timeout) for ``tag``.

    Only query failures are errors; a failed or timed out run is a normal
    outcome the caller decides on.
    """
    started = clock()
    deadline = started + policy.timeout_seconds

    console.print(f"Waiting for release tag CI jobs to finish on tag {tag}...")
    sha_r = resolve_tag_sha(repo=repo, tag=tag, remote=remote, console=console)
    if isinstance(sha_r, Err):
        return sha_r
    sha = sha_r.value

    def find_run() -> Result[WorkflowRunStatus | None, ReleaseError]:
        runs = list_runs_for_commit(workspace_root=workspace_root, sha=sha)
        if isinstance(runs, Err):
            return runs
        for run in runs.value:
            if policy.workflow and run.name != policy.workflow:
                continue
            return Ok(run)
        console.print(
            f"no workflow run for {sha[:12]} yet (elapsed {int(clock() - started)}s)", Style.DIM
        )
        return Ok(None)

    found = poll_until(
        find_run, deadline=deadline, interval=policy.poll_seconds, clock=clock, sleep=sleep
    )
    if isinstance(found, Err):
        if isinstance(found.error, PollTimeout):
            return _timeout(sha, clock() - started)
        return Err(found.error)

    run_id = found.value.id
    console.print(f"workflow run {run_id} ({found.value.name or 'unnamed'}) found", Style.DIM)

    def completed() -> Result[WorkflowRunStatus | None, ReleaseError]:
        viewed = view_run(workspace_root=workspace_root, run_id=run_id)
        if isinstance(viewed, Err):
            return viewed
        status = viewed.value
        console.print(
            f"Release job status: '{status.status}' (elapsed {int(clock() - started)}s)", Style.DIM
        )
        if status.status == "completed":
            return Ok(status)
        return Ok(None)

    done = poll_until(
        completed, deadline=deadline, interval=policy.poll_seconds, clock=clock, sleep=sleep
    )
    if isinstance(done, Err):
        if isinstance(done.error, PollTimeout):
            return _timeout(sha, clock() - started, run_id)
        return Err(done.error)

    conclusion = done.value.conclusion
    if conclusion == "success":
        console.success(f"Release CI job completed for {tag}")
        return Ok(CiOutcome(conclusion="success", sha=sha, run_id=run_id))

    return Ok(CiOutcome(conclusion="failure", sha=sha, run_id=run_id, detail=conclusion or "unknown"))


def outcome_error(outcome: CiOutcome, *, tag: str, resume: str) -> ReleaseError | None:
    """Fatal error for a non-success outcome; None on success."""
    if outcome.is_success:
        return None
    if outcome.conclusion == "timeout":
        return ReleaseError(
            kind="ci_timeout",
            message=f"Timeout reached: CI jobs for {tag} did not complete ({outcome.detail})",
            hint=resume,
        )
    run_ref = f"gh run view {outcome.run_id}" if outcome.run_id is not None else "gh run list"
    return ReleaseError(
        kind="ci_failed",
        message=f"release CI for {tag} concluded '{outcome.detail}'",
        hint=f"inspect with: {run_ref}; after fixing, run: {resume}",
    )
