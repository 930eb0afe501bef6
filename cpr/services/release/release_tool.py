from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from cpr.core.result import Err, Ok, Result
from cpr.output.console import ConsoleProtocol, Style
from cpr.platform.process import run as run_process
from cpr.platform.process import which
from cpr.services.release.errors import ReleaseError
from cpr.services.release.timeouts import RELEASE_TOOL_TIMEOUT_SECONDS

TOOL_NAME = "release-please"


@dataclass(frozen=True, slots=True)
class ToolLauncher:
    """One way of invoking release-please.

    ``probe`` is the executable that must be on PATH for this launcher to work.
    """

    name: str
    probe: str
    argv: tuple[str, ...]


# Fixed preference order: installed binary, npm's runner, pnpm's runner.
LAUNCHERS: tuple[ToolLauncher, ...] = (
    ToolLauncher(name="direct", probe=TOOL_NAME, argv=(TOOL_NAME,)),
    ToolLauncher(name="npx", probe="npx", argv=("npx", "--yes", TOOL_NAME)),
    ToolLauncher(name="pnpm", probe="pnpm", argv=("pnpm", "dlx", TOOL_NAME)),
)


def resolve_launcher(
    launchers: tuple[ToolLauncher, ...] = LAUNCHERS,
) -> Result[ToolLauncher, ReleaseError]:
    for launcher in launchers:
        if which(launcher.probe) is not None:
            return Ok(launcher)

    probes = ", ".join(launcher.probe for launcher in launchers)
    return Err(
        ReleaseError(
            kind="tool_missing",
            message=f"{TOOL_NAME} is not available (looked for: {probes})",
            hint="Install Node.js (npx) or run: npm install -g release-please",
        )
    )


@dataclass(frozen=True, slots=True)
class ReleaseTool:
    launcher: ToolLauncher
    repo_url: str
    token: str

    def _argv(self, subcommand: str, *, branch: str, extra: tuple[str, ...]) -> list[str]:
        return [
            *self.launcher.argv,
            subcommand,
            "--repo-url",
            self.repo_url,
            f"--token={self.token}",
            "--target-branch",
            branch,
            *extra,
        ]

    def _run(
        self,
        subcommand: str,
        *,
        workspace_root: Path,
        branch: str,
        console: ConsoleProtocol,
        extra: tuple[str, ...] = (),
    ) -> Result[str, ReleaseError]:
        shown = " ".join([*self.launcher.argv, subcommand, "--target-branch", branch, *extra])
        console.print(shown, Style.DIM)

        result = run_process(
            self._argv(subcommand, branch=branch, extra=extra),
            cwd=workspace_root,
            timeout=RELEASE_TOOL_TIMEOUT_SECONDS,
        )
        if isinstance(result, Err):
            e = result.error
            return Err(
                ReleaseError(
                    kind="tool_failed",
                    message=f"{TOOL_NAME} {subcommand} failed (exit {e.returncode})",
                    hint=(e.stderr.strip() or e.stdout.strip() or None),
                )
            )
        return Ok(result.value)

    def release_pr(
        self, *, workspace_root: Path, branch: str, console: ConsoleProtocol
    ) -> Result[str, ReleaseError]:
        return self._run("release-pr", workspace_root=workspace_root, branch=branch, console=console)

    def github_release(
        self, *, workspace_root: Path, branch: str, console: ConsoleProtocol
    ) -> Result[str, ReleaseError]:
        return self._run(
            "github-release",
            workspace_root=workspace_root,
            branch=branch,
            console=console,
            extra=("--prerelease",),
        )
