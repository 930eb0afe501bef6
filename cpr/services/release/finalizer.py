from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

from cpr.core.result import Err, Ok, Result
from cpr.git.repository import Repository
from cpr.output.console import ConsoleProtocol, Style
from cpr.services.release.config import finalize_pr_title
from cpr.services.release.errors import ReleaseError
from cpr.services.release.gh import (
    ALREADY_MERGED_MARKERS,
    PR_EXISTS_MARKERS,
    edit_release,
    output_matches,
    run_gh_write,
)
from cpr.services.release.model import PipelineRun

Confirm = Callable[[str], bool]


def open_finalize_pr(
    *,
    workspace_root: Path,
    run: PipelineRun,
    main_branch: str,
    console: ConsoleProtocol,
) -> Result[None, ReleaseError]:
    cmd = [
        "gh",
        "pr",
        "create",
        "--title",
        finalize_pr_title(run.version.value),
        "--body",
        "",
        "--base",
        main_branch,
        "--head",
        run.branch,
    ]
    console.print(f"gh pr create --base {main_branch} --head {run.branch}", Style.DIM)
    created = run_gh_write(workspace_root=workspace_root, cmd=cmd)
    if isinstance(created, Ok):
        url = created.value.strip()
        if url:
            console.print(url, Style.DIM)
        return Ok(None)

    e = created.error
    if output_matches(e, PR_EXISTS_MARKERS):
        console.print(f"PR {run.branch} -> {main_branch} already exists; reusing it")
        return Ok(None)
    return Err(
        ReleaseError(
            kind="gh_failed",
            message=f"failed to open PR {run.branch} -> {main_branch}",
            hint=e.stderr.strip() or None,
        )
    )


def merge_finalize_pr(
    *,
    workspace_root: Path,
    run: PipelineRun,
    console: ConsoleProtocol,
) -> Result[None, ReleaseError]:
    cmd = ["gh", "pr", "merge", run.branch, "--merge"]
    console.print(" ".join(cmd), Style.DIM)
    merged = run_gh_write(workspace_root=workspace_root, cmd=cmd)
    if isinstance(merged, Ok):
        return Ok(None)

    e = merged.error
    if output_matches(e, ALREADY_MERGED_MARKERS):
        console.print(f"{run.branch} already merged")
        return Ok(None)
    return Err(
        ReleaseError(
            kind="gh_failed",
            message=f"failed to merge {run.branch}",
            hint=e.stderr.strip() or " ".join(cmd),
        )
    )


def finalize_release(
    *,
    workspace_root: Path,
    repo: Repository,
    run: PipelineRun,
    main_branch: str,
    confirm: Confirm,
    console: ConsoleProtocol,
) -> Result[None, ReleaseError]:
    """Merge the release branch into the mainline and promote the tag to latest.

    Must only be called after the CI gate reported success.
    """
    if run.dry_run:
        console.print("Dry run enabled: Skipping release branch merge in master.")
        return Ok(None)

    question = (
        f"Merge {run.branch} into {main_branch} and mark {run.tag} as latest release?"
    )
    if not confirm(question):
        return Err(
            ReleaseError(
                kind="aborted",
                message="finalization declined; nothing was merged",
                hint=f"cpr release create {run.version} --from-stage finalize",
            )
        )

    console.print(f"Merging release branch {run.branch} in {main_branch}...")
    opened = open_finalize_pr(
        workspace_root=workspace_root, run=run, main_branch=main_branch, console=console
    )
    if isinstance(opened, Err):
        return opened

    merged = merge_finalize_pr(workspace_root=workspace_root, run=run, console=console)
    if isinstance(merged, Err):
        return merged

    console.print(f"Marking {run.tag} as latest...")
    promoted = edit_release(workspace_root=workspace_root, tag=run.tag, prerelease=False, latest=True)
    if isinstance(promoted, Err):
        return promoted

    console.print(f"Checking out and pulling {main_branch} after release...")
    checked = repo.checkout(main_branch)
    if isinstance(checked, Err):
        return Err(
            ReleaseError(
                kind="git_failed",
                message=f"failed to checkout {main_branch}: {checked.error.message}",
                hint=f"git checkout {main_branch} && git pull",
            )
        )
    pulled = repo.pull()
    if isinstance(pulled, Err):
        return Err(
            ReleaseError(
                kind="git_failed",
                message=f"failed to pull {main_branch}: {pulled.error.message}",
                hint="git pull",
            )
        )

    console.success(f"{run.tag} promoted to latest")
    return Ok(None)
