"""Release PR and prerelease tag publication.

The release tool may publish the newest release as ``latest`` even when asked
for a prerelease, so the prerelease flag is re-applied to the exact tag
afterwards. Releases are never looked up by recency.
"""

from __future__ import annotations

from pathlib import Path

from cpr.core.result import Err, Ok, Result
from cpr.git.repository import Repository
from cpr.output.console import ConsoleProtocol, Style
from cpr.services.release.config import release_pr_branch
from cpr.services.release.errors import ReleaseError
from cpr.services.release.gh import (
    ALREADY_MERGED_MARKERS,
    PR_NOT_FOUND_MARKERS,
    edit_release,
    list_release_tags,
    output_matches,
    run_gh_write,
)
from cpr.services.release.model import PipelineRun
from cpr.services.release.release_tool import ReleaseTool


def merge_release_pr(
    *,
    workspace_root: Path,
    pr_branch: str,
    console: ConsoleProtocol,
) -> Result[bool, ReleaseError]:
    """Merge the release tool's PR. Ok(False) when it was already merged or absent."""
    cmd = ["gh", "pr", "merge", pr_branch, "--merge"]
    console.print(" ".join(cmd[:3]) + f" {pr_branch}", Style.DIM)

    result = run_gh_write(workspace_root=workspace_root, cmd=cmd)
    if isinstance(result, Ok):
        return Ok(True)

    e = result.error
    if output_matches(e, ALREADY_MERGED_MARKERS + PR_NOT_FOUND_MARKERS):
        console.warning(f"release PR not merged ({e.stderr.strip() or 'no details'}); continuing")
        return Ok(False)

    return Err(
        ReleaseError(
            kind="gh_failed",
            message=f"failed to merge release PR {pr_branch}",
            hint=e.stderr.strip() or f"gh pr merge {pr_branch} --merge",
        )
    )


def publish_prerelease(
    *,
    workspace_root: Path,
    repo: Repository,
    tool: ReleaseTool | None,
    run: PipelineRun,
    component: str,
    console: ConsoleProtocol,
) -> Result[None, ReleaseError]:
    """Open and merge the release PR, then cut ``v<version>`` as a prerelease."""
    if run.dry_run:
        console.print("Dry run enabled: Skipping release PR creation and merge.")
        return Ok(None)

    if tool is None:
        return Err(
            ReleaseError(kind="tool_missing", message="release tool was not resolved before publish")
        )

    console.print("Creating release PR...")
    created = tool.release_pr(workspace_root=workspace_root, branch=run.branch, console=console)
    if isinstance(created, Err):
        return created

    console.print("Release is ready to be merged in release branch.")
    merged = merge_release_pr(
        workspace_root=workspace_root,
        pr_branch=release_pr_branch(branch=run.branch, component=component),
        console=console,
    )
    if isinstance(merged, Err):
        return merged

    console.print(f"Pulling release changes in {run.branch}...")
    pulled = repo.pull()
    if isinstance(pulled, Err):
        return Err(
            ReleaseError(
                kind="git_failed",
                message=f"failed to pull {run.branch}: {pulled.error.message}",
                hint=f"git pull && cpr release create {run.version} --from-stage publish",
            )
        )

    released = tool.github_release(workspace_root=workspace_root, branch=run.branch, console=console)
    if isinstance(released, Err):
        return released

    recent = list_release_tags(workspace_root=workspace_root)
    if isinstance(recent, Ok) and run.tag not in recent.value:
        console.warning(f"{run.tag} is not among the latest releases yet")

    console.print(f"Marking {run.tag} as prerelease...")
    marked = edit_release(workspace_root=workspace_root, tag=run.tag, prerelease=True)
    if isinstance(marked, Err):
        console.warning(f"{marked.error.message}; run: gh release edit {run.tag} --prerelease")

    console.success(f"published {run.tag} (prerelease)")
    return Ok(None)
