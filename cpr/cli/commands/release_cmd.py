from __future__ import annotations

import os
from typing import cast

import typer

from cpr.cli.commands._helpers import exit_on_error, exit_with_code
from cpr.cli.context import build_context
from cpr.core.errors import ErrorCode
from cpr.core.result import Err
from cpr.services.release import (
    PIPELINE_STAGES,
    PipelineDeps,
    build_settings,
    parse_release_version,
    run_release,
)
from cpr.services.release.errors import ReleaseErrorKind
from cpr.services.release.model import PipelineStage

release_app = typer.Typer(add_completion=False, no_args_is_help=True)

_INTERRUPTED_EXIT_CODE = 130


def release_error_code(kind: ReleaseErrorKind) -> ErrorCode:
    if kind in {"invalid_version", "aborted"}:
        return ErrorCode.USER_ERROR
    if kind in {"token_missing", "tool_missing", "gh_missing", "git_missing", "digest_unavailable"}:
        return ErrorCode.ENV_ERROR
    if kind in {"ci_failed", "ci_timeout"}:
        return ErrorCode.CI_ERROR
    if kind in {"descriptor_missing", "pattern_missing", "io_failed"}:
        return ErrorCode.IO_ERROR
    if kind == "stash_conflict":
        return ErrorCode.CONFLICT
    return ErrorCode.NETWORK_ERROR


def _confirm(question: str) -> bool:
    return typer.confirm(question, default=False)


def _assume_yes(question: str) -> bool:
    del question
    return True


@release_app.command("create")
def create(
    version: str | None = typer.Argument(
        None, help="Release version (MAJOR.MINOR.PATCH[-suffix]); prompted if omitted."
    ),
    dry_run: bool | None = typer.Option(
        None,
        "--dry-run/--no-dry-run",
        help="Only rewrite and commit locally (default: $CLOUDYPAD_RELEASE_DRY_RUN).",
    ),
    yes: bool = typer.Option(False, "--yes", "-y", help="Answer yes to every confirmation."),
    from_stage: str = typer.Option(
        "bump",
        "--from-stage",
        help=f"Resume from a stage ({', '.join(PIPELINE_STAGES)}).",
    ),
) -> None:
    """Bump versions, cut release-<version>, publish v<version> and merge it once CI is green."""
    ctx = build_context()

    if from_stage not in PIPELINE_STAGES:
        ctx.console.error(f"unknown stage: {from_stage}")
        exit_with_code(int(ErrorCode.USER_ERROR))

    settings_r = build_settings(
        workspace_root=ctx.workspace_root,
        env=os.environ,
        config=ctx.config,
        dry_run=dry_run,
    )
    settings = exit_on_error(settings_r, ctx, ErrorCode.ENV_ERROR)

    raw_version = version if version is not None else typer.prompt("Release version?")
    release_version = exit_on_error(parse_release_version(raw_version), ctx, ErrorCode.USER_ERROR)

    deps = PipelineDeps(confirm=_assume_yes if yes else _confirm)
    try:
        result = run_release(
            settings=settings,
            version=release_version,
            console=ctx.console,
            deps=deps,
            from_stage=cast(PipelineStage, from_stage),
        )
    except KeyboardInterrupt:
        ctx.console.error("interrupted; completed stages are kept, nothing is rolled back")
        exit_with_code(_INTERRUPTED_EXIT_CODE)

    if isinstance(result, Err):
        exit_on_error(result, ctx, release_error_code(result.error.error.kind))
