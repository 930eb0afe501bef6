from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Literal

PipelineStage = Literal["bump", "branch", "publish", "ci", "finalize"]
PIPELINE_STAGES: tuple[PipelineStage, ...] = ("bump", "branch", "publish", "ci", "finalize")

CiConclusion = Literal["success", "failure", "timeout"]


@dataclass(frozen=True, slots=True)
class ReleaseVersion:
    value: str

    @property
    def branch(self) -> str:
        return f"release-{self.value}"

    @property
    def tag(self) -> str:
        return f"v{self.value}"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True, slots=True)
class ArtifactDescriptor:
    """A file carrying the release version between a literal prefix and suffix."""

    path: str
    prefix: str
    suffix: str = ""


@dataclass(frozen=True, slots=True)
class ContentHashBinding:
    """``descriptor`` stores the SRI sha256 of ``artifact``'s bytes."""

    artifact: str
    descriptor: str


@dataclass(frozen=True, slots=True)
class RewriteReport:
    changed: tuple[Path, ...]
    digest: str


@dataclass(slots=True)
class PipelineRun:
    """Ephemeral state of one invocation; never persisted."""

    version: ReleaseVersion
    dry_run: bool
    stash_label: str | None = None

    @property
    def branch(self) -> str:
        return self.version.branch

    @property
    def tag(self) -> str:
        return self.version.tag


@dataclass(frozen=True, slots=True)
class WorkflowRunStatus:
    id: int
    name: str
    status: str
    conclusion: str | None


@dataclass(frozen=True, slots=True)
class CiOutcome:
    conclusion: CiConclusion
    sha: str
    run_id: int | None = None
    detail: str | None = None  # raw workflow conclusion for failures

    @property
    def is_success(self) -> bool:
        return self.conclusion == "success"
