from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

ReleaseErrorKind = Literal[
    "invalid_version",
    "token_missing",
    "tool_missing",
    "gh_missing",
    "git_missing",
    "descriptor_missing",
    "pattern_missing",
    "digest_unavailable",
    "io_failed",
    "git_failed",
    "stash_conflict",
    "gh_failed",
    "tool_failed",
    "ci_failed",
    "ci_timeout",
    "aborted",
]


@dataclass(frozen=True, slots=True)
class ReleaseError:
    """Canonical release error payload.

    ``hint`` names the command the operator should run to recover or resume.
    """

    kind: ReleaseErrorKind
    message: str
    hint: str | None = None


@dataclass(frozen=True, slots=True)
class StageFailure:
    """A fatal error attributed to the pipeline stage that raised it."""

    stage: str
    error: ReleaseError

    @property
    def message(self) -> str:
        return f"[{self.stage}] {self.error.message}"

    @property
    def hint(self) -> str | None:
        return self.error.hint
