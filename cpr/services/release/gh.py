from __future__ import annotations

import json
from pathlib import Path
from time import sleep

from cpr.core.result import Err, Ok, Result
from cpr.core.structured import as_obj_list, as_str_dict, get_int, get_str
from cpr.platform.process import ProcessError, which
from cpr.platform.process import run as run_process
from cpr.services.release.errors import ReleaseError
from cpr.services.release.model import WorkflowRunStatus
from cpr.services.release.timeouts import (
    GH_READ_RETRY_ATTEMPTS,
    GH_READ_RETRY_DELAY_SECONDS,
    GH_TIMEOUT_SECONDS,
)

_TRANSIENT_MARKERS = (
    "timed out",
    "timeout",
    "connection reset",
    "connection refused",
    "temporarily unavailable",
    "service unavailable",
    "bad gateway",
    "gateway timeout",
    "tls handshake timeout",
    "network is unreachable",
    "http 429",
    "http 500",
    "http 502",
    "http 503",
    "http 504",
)

# Failures that mean "already in the desired state". Matched against gh
# output only where the call site opts in.
ALREADY_MERGED_MARKERS = ("already merged", "was already merged")
PR_NOT_FOUND_MARKERS = ("no pull requests found", "could not resolve to a pullrequest")
PR_EXISTS_MARKERS = ("already exists",)


def output_matches(error: ProcessError, markers: tuple[str, ...]) -> bool:
    text = error.output.lower()
    return any(marker in text for marker in markers)


def _is_transient_gh_error(error: ProcessError) -> bool:
    if error.returncode == -1 and "timed out" in error.stderr.lower():
        return True
    return output_matches(error, _TRANSIENT_MARKERS)


def ensure_gh_available() -> Result[None, ReleaseError]:
    if which("gh") is None:
        return Err(
            ReleaseError(
                kind="gh_missing",
                message="gh: missing",
                hint="Install GitHub CLI: https://cli.github.com/",
            )
        )
    return Ok(None)


def run_gh_read(
    *,
    workspace_root: Path,
    cmd: list[str],
    message: str,
    timeout: float = GH_TIMEOUT_SECONDS,
    retry_attempts: int = GH_READ_RETRY_ATTEMPTS,
) -> Result[str, ReleaseError]:
    """Run an idempotent gh query, retrying transient network failures."""
    attempts = max(1, retry_attempts)
    for attempt in range(attempts):
        result = run_process(cmd, cwd=workspace_root, timeout=timeout)
        if isinstance(result, Ok):
            return result

        error = result.error
        if attempt < attempts - 1 and _is_transient_gh_error(error):
            sleep(GH_READ_RETRY_DELAY_SECONDS * (attempt + 1))
            continue

        return Err(ReleaseError(kind="gh_failed", message=message, hint=error.stderr.strip() or None))

    return Err(ReleaseError(kind="gh_failed", message=message))


def run_gh_write(*, workspace_root: Path, cmd: list[str]) -> Result[str, ProcessError]:
    """Run a mutating gh command once; classification is the caller's job."""
    return run_process(cmd, cwd=workspace_root, timeout=GH_TIMEOUT_SECONDS)


def _load_json(payload: str, *, what: str) -> Result[object, ReleaseError]:
    try:
        obj: object = json.loads(payload)
    except json.JSONDecodeError as e:
        return Err(ReleaseError(kind="gh_failed", message=f"invalid JSON from {what}: {e}"))
    return Ok(obj)


def _parse_run(d: dict[str, object]) -> WorkflowRunStatus | None:
    run_id = get_int(d, "databaseId")
    status = get_str(d, "status")
    if run_id is None or status is None:
        return None
    return WorkflowRunStatus(
        id=run_id,
        name=get_str(d, "name") or "",
        status=status,
        conclusion=get_str(d, "conclusion"),
    )


def list_runs_for_commit(
    *,
    workspace_root: Path,
    sha: str,
    limit: int = 20,
) -> Result[list[WorkflowRunStatus], ReleaseError]:
    """Workflow runs whose head commit is exactly ``sha``."""
    cmd = [
        "gh",
        "run",
        "list",
        "--commit",
        sha,
        "--limit",
        str(limit),
        "--json",
        "databaseId,name,status,conclusion,headSha",
    ]
    result = run_gh_read(
        workspace_root=workspace_root, cmd=cmd, message=f"failed to list workflow runs for {sha}"
    )
    if isinstance(result, Err):
        return result

    obj = _load_json(result.value, what="gh run list")
    if isinstance(obj, Err):
        return obj

    raw = as_obj_list(obj.value)
    if raw is None:
        return Err(ReleaseError(kind="gh_failed", message="unexpected gh run list payload"))

    out: list[WorkflowRunStatus] = []
    for item in raw:
        d = as_str_dict(item)
        if d is None or get_str(d, "headSha") != sha:
            continue
        parsed = _parse_run(d)
        if parsed is not None:
            out.append(parsed)
    return Ok(out)


def view_run(*, workspace_root: Path, run_id: int) -> Result[WorkflowRunStatus, ReleaseError]:
    cmd = ["gh", "run", "view", str(run_id), "--json", "databaseId,name,status,conclusion"]
    result = run_gh_read(
        workspace_root=workspace_root, cmd=cmd, message=f"failed to query workflow run {run_id}"
    )
    if isinstance(result, Err):
        return result

    obj = _load_json(result.value, what="gh run view")
    if isinstance(obj, Err):
        return obj

    d = as_str_dict(obj.value)
    parsed = _parse_run(d) if d is not None else None
    if parsed is None:
        return Err(ReleaseError(kind="gh_failed", message=f"unexpected gh run view payload: {run_id}"))
    return Ok(parsed)


def list_release_tags(*, workspace_root: Path, limit: int = 10) -> Result[list[str], ReleaseError]:
    """Tag names of the most recent releases, newest first."""
    cmd = ["gh", "release", "list", "--limit", str(limit), "--json", "tagName"]
    result = run_gh_read(workspace_root=workspace_root, cmd=cmd, message="failed to list releases")
    if isinstance(result, Err):
        return result

    obj = _load_json(result.value, what="gh release list")
    if isinstance(obj, Err):
        return obj

    tags: list[str] = []
    for item in as_obj_list(obj.value) or []:
        d = as_str_dict(item)
        tag = get_str(d, "tagName") if d is not None else None
        if tag is not None:
            tags.append(tag)
    return Ok(tags)


def edit_release(
    *,
    workspace_root: Path,
    tag: str,
    prerelease: bool,
    latest: bool = False,
) -> Result[None, ReleaseError]:
    """Set the publication flags of the release named by ``tag``."""
    cmd = ["gh", "release", "edit", tag]
    if latest:
        cmd.append("--latest")
    cmd.append("--prerelease" if prerelease else "--prerelease=false")

    result = run_gh_write(workspace_root=workspace_root, cmd=cmd)
    if isinstance(result, Err):
        return Err(
            ReleaseError(
                kind="gh_failed",
                message=f"failed to edit release {tag}",
                hint=result.error.stderr.strip() or " ".join(cmd),
            )
        )
    return Ok(None)
