"""Typed configuration loading and access.

The optional ``release.toml`` at the repository root overrides the defaults
below. Only the ``[release]`` table is read:

    [release]
    repo_url = "https://github.com/ap0ught/cloudypad"
    main_branch = "master"
    ci_workflow = "Release"
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from .result import Err, Ok, Result
from .structured import StrDict, as_str_dict, get_int, get_str, get_table

__all__ = [
    "CONFIG_FILENAME",
    "Config",
    "ConfigError",
    "load_config",
    "load_config_or_default",
]

CONFIG_FILENAME = "release.toml"

DEFAULT_REPO_URL = "https://github.com/ap0ught/cloudypad"
DEFAULT_MAIN_BRANCH = "master"
DEFAULT_REMOTE = "origin"
DEFAULT_COMPONENT = "cloudypad"
DEFAULT_CI_WORKFLOW = "Release"
DEFAULT_CI_TIMEOUT_SECONDS = 3600
DEFAULT_CI_POLL_SECONDS = 15


@dataclass(frozen=True, slots=True)
class ConfigError:
    """Error when config cannot be loaded or parsed."""

    message: str
    path: Path | None = None


@dataclass(frozen=True, slots=True)
class Config:
    """Release configuration (repository coordinates and CI policy)."""

    repo_url: str = DEFAULT_REPO_URL
    main_branch: str = DEFAULT_MAIN_BRANCH
    remote: str = DEFAULT_REMOTE
    component: str = DEFAULT_COMPONENT
    ci_workflow: str = DEFAULT_CI_WORKFLOW
    ci_timeout_seconds: int = DEFAULT_CI_TIMEOUT_SECONDS
    ci_poll_seconds: int = DEFAULT_CI_POLL_SECONDS

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> Config:
        """Create Config from a mapping (parsed TOML)."""
        release: StrDict = get_table(data, "release") or {}

        # ci_workflow may be set to "" to accept any workflow run.
        ci_workflow_obj = release.get("ci_workflow")
        ci_workflow = (
            ci_workflow_obj.strip() if isinstance(ci_workflow_obj, str) else DEFAULT_CI_WORKFLOW
        )

        timeout = get_int(release, "ci_timeout_seconds")
        poll = get_int(release, "ci_poll_seconds")
        if timeout is not None and timeout <= 0:
            raise ValueError("ci_timeout_seconds must be positive")
        if poll is not None and poll <= 0:
            raise ValueError("ci_poll_seconds must be positive")

        return cls(
            repo_url=get_str(release, "repo_url") or DEFAULT_REPO_URL,
            main_branch=get_str(release, "main_branch") or DEFAULT_MAIN_BRANCH,
            remote=get_str(release, "remote") or DEFAULT_REMOTE,
            component=get_str(release, "component") or DEFAULT_COMPONENT,
            ci_workflow=ci_workflow,
            ci_timeout_seconds=timeout or DEFAULT_CI_TIMEOUT_SECONDS,
            ci_poll_seconds=poll or DEFAULT_CI_POLL_SECONDS,
        )


def _parse_toml(path: Path) -> Result[StrDict, ConfigError]:
    """Parse a TOML file, handling read and parse errors."""
    import tomllib

    try:
        content = path.read_bytes()
        data_obj: object = tomllib.loads(content.decode("utf-8"))
        data = as_str_dict(data_obj)
        if data is None:
            return Err(ConfigError("Config root must be a TOML table", path=path))
        return Ok(data)
    except FileNotFoundError:
        return Err(ConfigError(f"Config file not found: {path}", path=path))
    except PermissionError:
        return Err(ConfigError(f"Permission denied reading: {path}", path=path))
    except tomllib.TOMLDecodeError as e:
        return Err(ConfigError(f"Invalid TOML syntax: {e}", path=path))
    except UnicodeDecodeError as e:
        return Err(ConfigError(f"Error reading config: {e}", path=path))


def load_config(path: Path) -> Result[Config, ConfigError]:
    """Load and parse configuration from a TOML file.

    Args:
        path: Path to release.toml

    Returns:
        Ok(Config) on success, Err(ConfigError) on failure
    """
    result = _parse_toml(path)
    if isinstance(result, Err):
        return result

    try:
        return Ok(Config.from_dict(result.value))
    except (KeyError, TypeError, ValueError) as e:
        return Err(ConfigError(f"Invalid config structure: {e}", path=path))


def load_config_or_default(path: Path) -> Result[Config, ConfigError]:
    """Load config if the file exists, otherwise return defaults.

    A present-but-broken file is still an error.
    """
    if not path.exists():
        return Ok(Config())
    return load_config(path)
