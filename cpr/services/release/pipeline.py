"""Release orchestration: bump, branch, publish, ci, finalize.

Stages run strictly in order and the first fatal error stops the run; there
is no rollback. Every stage is safe to re-run, so recovery is re-invocation
with ``--from-stage``; resuming at ``finalize`` re-checks CI first.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass, field, replace

from cpr.core.result import Err, Ok, Result
from cpr.git.repository import Repository
from cpr.output.console import ConsoleProtocol, Style
from cpr.platform.process import which
from cpr.services.release.branch import prepare_release_branch, resume_command
from cpr.services.release.ci_gate import GatePolicy, outcome_error, wait_for_release_ci
from cpr.services.release.digest import ensure_digest_available
from cpr.services.release.errors import ReleaseError, StageFailure
from cpr.services.release.finalizer import Confirm, finalize_release
from cpr.services.release.gh import ensure_gh_available
from cpr.services.release.model import PIPELINE_STAGES, PipelineRun, PipelineStage, ReleaseVersion
from cpr.services.release.polling import Clock, Sleeper
from cpr.services.release.publisher import publish_prerelease
from cpr.services.release.release_tool import LAUNCHERS, ReleaseTool, ToolLauncher, resolve_launcher
from cpr.services.release.settings import ReleaseSettings
from cpr.services.release.versions import rewrite_versions


@dataclass(frozen=True, slots=True)
class PipelineDeps:
    """Injectable collaborators; defaults are the real ones."""

    confirm: Confirm
    clock: Clock = time.monotonic
    sleep: Sleeper = time.sleep
    launchers: tuple[ToolLauncher, ...] = field(default=LAUNCHERS)


def preflight(
    *,
    settings: ReleaseSettings,
    repo: Repository,
    run: PipelineRun,
    launchers: tuple[ToolLauncher, ...],
) -> Result[ReleaseTool | None, ReleaseError]:
    """Check every precondition before anything is mutated."""
    if which("git") is None:
        return Err(
            ReleaseError(kind="git_missing", message="git: missing", hint="Install git first")
        )
    if not repo.exists():
        return Err(
            ReleaseError(
                kind="git_failed",
                message=f"{settings.workspace_root} is not a git repository",
                hint="Run from the repository root or pass --workspace",
            )
        )

    digest_ok = ensure_digest_available()
    if isinstance(digest_ok, Err):
        return digest_ok

    if run.dry_run:
        return Ok(None)

    gh_ok = ensure_gh_available()
    if isinstance(gh_ok, Err):
        return gh_ok

    launcher = resolve_launcher(launchers)
    if isinstance(launcher, Err):
        return launcher

    return Ok(
        ReleaseTool(
            launcher=launcher.value,
            repo_url=settings.config.repo_url,
            token=settings.token,
        )
    )


def _ensure_on_branch(
    *, repo: Repository, branch: str, console: ConsoleProtocol
) -> Result[None, ReleaseError]:
    if repo.current_branch() == branch:
        return Ok(None)
    console.print(f"git checkout {branch}", Style.DIM)
    checked = repo.checkout(branch)
    if isinstance(checked, Err):
        return Err(
            ReleaseError(
                kind="git_failed",
                message=f"failed to checkout {branch}: {checked.error.message}",
                hint=f"git checkout {branch}",
            )
        )
    return Ok(None)


def _first_stage(from_stage: PipelineStage) -> PipelineStage:
    # Finalize merges and promotes; it only ever runs behind the CI gate.
    if from_stage == "finalize":
        return "ci"
    return from_stage


def _with_resume(error: ReleaseError, *, version: ReleaseVersion, stage: str) -> ReleaseError:
    """Make sure the hint ends with the command that resumes the failed stage."""
    if error.hint is not None and "--from-stage" in error.hint:
        return error
    resume = resume_command(version.value, stage=stage)
    hint = f"{error.hint}; then run: {resume}" if error.hint else resume
    return replace(error, hint=hint)


def run_release(
    *,
    settings: ReleaseSettings,
    version: ReleaseVersion,
    console: ConsoleProtocol,
    deps: PipelineDeps,
    from_stage: PipelineStage = "bump",
) -> Result[PipelineRun, StageFailure]:
    root = settings.workspace_root
    config = settings.config
    repo = Repository(root)
    run = PipelineRun(version=version, dry_run=settings.dry_run)

    if run.dry_run:
        console.warning("dry run: nothing will be pushed, no PR, tag or merge will be created")

    tool_r = preflight(settings=settings, repo=repo, run=run, launchers=deps.launchers)
    if isinstance(tool_r, Err):
        return Err(StageFailure(stage="preflight", error=tool_r.error))
    tool = tool_r.value

    def bump() -> Result[None, ReleaseError]:
        rewritten = rewrite_versions(root=root, version=version, console=console)
        if isinstance(rewritten, Err):
            return rewritten
        return Ok(None)

    def branch() -> Result[None, ReleaseError]:
        question = (
            f"New version: {version} with release branch '{run.branch}'. Continue? "
            "(If something goes wrong, delete branch and try again)"
        )
        if not deps.confirm(question):
            return Err(
                ReleaseError(
                    kind="aborted",
                    message="release aborted before creating the branch",
                    hint=resume_command(version.value, stage="branch"),
                )
            )
        prepared = prepare_release_branch(
            repo=repo, run=run, remote=config.remote, console=console
        )
        if isinstance(prepared, Err):
            return prepared
        return Ok(None)

    def publish() -> Result[None, ReleaseError]:
        if not run.dry_run:
            on_branch = _ensure_on_branch(repo=repo, branch=run.branch, console=console)
            if isinstance(on_branch, Err):
                return on_branch
        return publish_prerelease(
            workspace_root=root,
            repo=repo,
            tool=tool,
            run=run,
            component=config.component,
            console=console,
        )

    def ci() -> Result[None, ReleaseError]:
        if run.dry_run:
            console.print("Dry run enabled: Skipping release CI wait.")
            return Ok(None)
        outcome = wait_for_release_ci(
            workspace_root=root,
            repo=repo,
            tag=run.tag,
            remote=config.remote,
            policy=GatePolicy(
                timeout_seconds=float(config.ci_timeout_seconds),
                poll_seconds=float(config.ci_poll_seconds),
                workflow=config.ci_workflow,
            ),
            console=console,
            clock=deps.clock,
            sleep=deps.sleep,
        )
        if isinstance(outcome, Err):
            return outcome
        error = outcome_error(
            outcome.value, tag=run.tag, resume=resume_command(version.value, stage="ci")
        )
        if error is not None:
            return Err(error)
        return Ok(None)

    def finalize() -> Result[None, ReleaseError]:
        return finalize_release(
            workspace_root=root,
            repo=repo,
            run=run,
            main_branch=config.main_branch,
            confirm=deps.confirm,
            console=console,
        )

    stages: dict[PipelineStage, Callable[[], Result[None, ReleaseError]]] = {
        "bump": bump,
        "branch": branch,
        "publish": publish,
        "ci": ci,
        "finalize": finalize,
    }

    first = _first_stage(from_stage)
    if first != from_stage:
        console.print(f"{from_stage} requires a green CI run; starting at {first}", Style.DIM)

    for name in PIPELINE_STAGES[PIPELINE_STAGES.index(first):]:
        console.header(f"[{name}] {version}")
        result = stages[name]()
        if isinstance(result, Err):
            error = _with_resume(result.error, version=version, stage=name)
            return Err(StageFailure(stage=name, error=error))

    if run.dry_run:
        console.success(f"dry run for {version} complete")
    else:
        console.success("Release done !")
    return Ok(run)
