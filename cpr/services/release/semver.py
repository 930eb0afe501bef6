from __future__ import annotations

import re

from cpr.core.result import Err, Ok, Result
from cpr.services.release.errors import ReleaseError
from cpr.services.release.model import ReleaseVersion

# Embedded version as found in descriptors: three numeric components plus an
# optional suffix of letters, digits and hyphens (e.g. 0.12.3-rc1).
VERSION_PATTERN = r"[0-9]+\.[0-9]+\.[0-9]+[-a-zA-Z0-9]*"

_RELEASE_VERSION_RE = re.compile(r"^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)(-[0-9A-Za-z-]+)?$")


def parse_release_version(raw: str) -> Result[ReleaseVersion, ReleaseError]:
    """Validate operator input; a leading ``v`` is accepted and dropped."""
    text = raw.strip()
    if text.startswith("v"):
        text = text[1:]

    if _RELEASE_VERSION_RE.match(text) is None:
        return Err(
            ReleaseError(
                kind="invalid_version",
                message=f"invalid release version: {raw!r}",
                hint="Expected MAJOR.MINOR.PATCH[-suffix], e.g. 2.3.0 or 2.3.0-beta1",
            )
        )
    return Ok(ReleaseVersion(text))
