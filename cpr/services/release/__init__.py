"""Release orchestration for Cloudy Pad.

Usage:
    from cpr.services.release import run_release

    result = run_release(settings=settings, version=version, console=console, deps=deps)
"""

from cpr.services.release.errors import ReleaseError, StageFailure
from cpr.services.release.model import PIPELINE_STAGES, PipelineRun, ReleaseVersion
from cpr.services.release.pipeline import PipelineDeps, run_release
from cpr.services.release.semver import parse_release_version
from cpr.services.release.settings import ReleaseSettings, build_settings

__all__ = [
    "PIPELINE_STAGES",
    "PipelineDeps",
    "PipelineRun",
    "ReleaseError",
    "ReleaseSettings",
    "ReleaseVersion",
    "StageFailure",
    "build_settings",
    "parse_release_version",
    "run_release",
]
