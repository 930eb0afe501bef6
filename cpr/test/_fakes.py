"""Scripted stand-ins for subprocess-backed collaborators."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from cpr.core.result import Err, Ok, Result
from cpr.platform.process import ProcessError


def ok(stdout: str = "") -> Ok[str]:
    return Ok(stdout)


def fail(stderr: str = "", *, returncode: int = 1, stdout: str = "") -> Err[ProcessError]:
    return Err(ProcessError(command=("fake",), returncode=returncode, stdout=stdout, stderr=stderr))


def _normalize(cmd: list[str]) -> tuple[str, ...]:
    # git -C <path> <args> -> git <args>
    if len(cmd) >= 3 and cmd[0] == "git" and cmd[1] == "-C":
        return ("git", *cmd[3:])
    return tuple(cmd)


def _rules() -> list[tuple[tuple[str, ...], list[Result[str, ProcessError]]]]:
    return []


def _calls() -> list[tuple[str, ...]]:
    return []


@dataclass
class FakeRunner:
    """Replaces ``run_process``; responses are picked by longest matching prefix.

    Each rule holds a queue of responses; the last one repeats once the queue
    is drained. Among equally long prefixes the most recent rule wins.
    """

    rules: list[tuple[tuple[str, ...], list[Result[str, ProcessError]]]] = field(
        default_factory=_rules
    )
    calls: list[tuple[str, ...]] = field(default_factory=_calls)

    def on(self, *prefix: str, results: list[Result[str, ProcessError]] | None = None) -> FakeRunner:
        self.rules.append((tuple(prefix), list(results) if results else [ok()]))
        return self

    def __call__(
        self,
        cmd: list[str],
        cwd: Path,
        env: dict[str, str] | None = None,
        *,
        timeout: float | None = None,
    ) -> Result[str, ProcessError]:
        del cwd, env, timeout
        args = _normalize(cmd)
        self.calls.append(args)

        best: list[Result[str, ProcessError]] | None = None
        best_len = -1
        for prefix, responses in self.rules:
            if args[: len(prefix)] == prefix and len(prefix) >= best_len:
                best = responses
                best_len = len(prefix)
        if best is None:
            raise AssertionError(f"unexpected command: {cmd}")
        if len(best) > 1:
            return best.pop(0)
        return best[0]

    def called(self, *prefix: str) -> list[tuple[str, ...]]:
        return [c for c in self.calls if c[: len(prefix)] == prefix]


class FakeClock:
    """Monotonic clock advanced only by ``sleep``."""

    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
