from __future__ import annotations

from pathlib import Path

import pytest

from cpr.core.result import Err, Ok, Result
from cpr.git import repository as repo_mod
from cpr.git.repository import Repository
from cpr.output.console import MockConsole
from cpr.services.release import gh as gh_mod
from cpr.services.release import release_tool as tool_mod
from cpr.services.release.errors import ReleaseError
from cpr.services.release.model import PipelineRun, ReleaseVersion
from cpr.services.release.publisher import merge_release_pr, publish_prerelease
from cpr.services.release.release_tool import LAUNCHERS, ReleaseTool
from cpr.test._fakes import FakeRunner, fail, ok

PR_BRANCH = "release-please--branches--release-2.3.0--components--cloudypad"


@pytest.fixture()
def runner(monkeypatch: pytest.MonkeyPatch) -> FakeRunner:
    fake = FakeRunner()
    for module in (repo_mod, gh_mod, tool_mod):
        monkeypatch.setattr(module, "run_process", fake)
    fake.on("release-please")
    fake.on("gh", "pr", "merge")
    fake.on("gh", "release", "edit")
    fake.on(
        "gh", "release", "list", results=[ok('[{"tagName": "v2.3.0"}, {"tagName": "v2.2.0"}]')]
    )
    fake.on("git", "pull")
    return fake


def _publish(
    tmp_path: Path, *, dry_run: bool = False
) -> tuple[Result[None, ReleaseError], MockConsole]:
    console = MockConsole()
    result = publish_prerelease(
        workspace_root=tmp_path,
        repo=Repository(tmp_path),
        tool=ReleaseTool(launcher=LAUNCHERS[0], repo_url="https://example.invalid/r", token="t"),
        run=PipelineRun(version=ReleaseVersion("2.3.0"), dry_run=dry_run),
        component="cloudypad",
        console=console,
    )
    return result, console


def test_full_sequence(tmp_path: Path, runner: FakeRunner) -> None:
    result, console = _publish(tmp_path)

    assert result == Ok(None)
    heads = [c[:2] for c in runner.calls]
    assert heads == [
        ("release-please", "release-pr"),
        ("gh", "pr"),
        ("git", "pull"),
        ("release-please", "github-release"),
        ("gh", "release"),
        ("gh", "release"),
    ]
    assert ("gh", "pr", "merge", PR_BRANCH, "--merge") in runner.calls
    assert ("gh", "release", "edit", "v2.3.0", "--prerelease") in runner.calls
    assert "published v2.3.0" in console.text


def test_dry_run_does_nothing(tmp_path: Path, runner: FakeRunner) -> None:
    result, console = _publish(tmp_path, dry_run=True)

    assert result == Ok(None)
    assert runner.calls == []
    assert "Dry run enabled: Skipping release PR creation and merge." in console.text


def test_tool_failure_stops(tmp_path: Path, runner: FakeRunner) -> None:
    runner.on("release-please", "release-pr", results=[fail("boom")])

    result, _ = _publish(tmp_path)

    assert isinstance(result, Err)
    assert result.error.kind == "tool_failed"
    assert runner.called("gh") == []


def test_edit_failure_is_only_a_warning(tmp_path: Path, runner: FakeRunner) -> None:
    runner.on("gh", "release", "edit", results=[fail("HTTP 500")])

    result, console = _publish(tmp_path)

    assert result == Ok(None)
    assert console.has_warning()


def test_missing_tag_in_release_list_warns(tmp_path: Path, runner: FakeRunner) -> None:
    runner.on("gh", "release", "list", results=[ok('[{"tagName": "v2.2.0"}]')])

    result, console = _publish(tmp_path)

    assert result == Ok(None)
    assert console.find("v2.3.0 is not among the latest releases")
    assert ("gh", "release", "edit", "v2.3.0", "--prerelease") in runner.calls


@pytest.mark.parametrize(
    "stderr",
    [
        "GraphQL: Pull request was already merged",
        "no pull requests found for branch \"release-please--branches--release-2.3.0\"",
    ],
)
def test_merge_benign_failures(tmp_path: Path, runner: FakeRunner, stderr: str) -> None:
    runner.on("gh", "pr", "merge", results=[fail(stderr)])
    console = MockConsole()

    result = merge_release_pr(workspace_root=tmp_path, pr_branch=PR_BRANCH, console=console)

    assert result == Ok(False)
    assert console.has_warning()


def test_merge_other_failure_is_fatal(tmp_path: Path, runner: FakeRunner) -> None:
    runner.on("gh", "pr", "merge", results=[fail("Pull request is not mergeable: checks failing")])

    result = merge_release_pr(workspace_root=tmp_path, pr_branch=PR_BRANCH, console=MockConsole())

    assert isinstance(result, Err)
    assert result.error.kind == "gh_failed"
