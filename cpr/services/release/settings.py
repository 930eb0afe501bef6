from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path

from cpr.core.config import Config
from cpr.core.result import Err, Ok, Result
from cpr.services.release.config import DRY_RUN_ENV, TOKEN_ENV
from cpr.services.release.errors import ReleaseError

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})


@dataclass(frozen=True, slots=True)
class ReleaseSettings:
    """Everything a release run needs from its environment, resolved once.

    Components receive this value explicitly and never consult ``os.environ``.
    """

    workspace_root: Path
    token: str = field(repr=False)
    dry_run: bool
    config: Config


def parse_dry_run(value: str | None) -> bool:
    return value is not None and value.strip().lower() in _TRUE_VALUES


def build_settings(
    *,
    workspace_root: Path,
    env: Mapping[str, str],
    config: Config,
    dry_run: bool | None = None,
) -> Result[ReleaseSettings, ReleaseError]:
    """Build settings from an environment mapping.

    ``dry_run`` (from ``--dry-run``) wins over ``CLOUDYPAD_RELEASE_DRY_RUN``.
    """
    token = env.get(TOKEN_ENV, "").strip()
    if not token:
        return Err(
            ReleaseError(
                kind="token_missing",
                message=f"{TOKEN_ENV} variable must be set",
                hint=(
                    f"export {TOKEN_ENV}=<token with read/write permissions "
                    "on content and pull requests>"
                ),
            )
        )

    effective_dry_run = dry_run if dry_run is not None else parse_dry_run(env.get(DRY_RUN_ENV))
    return Ok(
        ReleaseSettings(
            workspace_root=workspace_root,
            token=token,
            dry_run=effective_dry_run,
            config=config,
        )
    )
