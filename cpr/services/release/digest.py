from __future__ import annotations

import base64
import hashlib
import re

from cpr.core.result import Err, Ok, Result
from cpr.services.release.errors import ReleaseError

_ALGORITHM = "sha256"

# Either the legacy nix base32 form (hash = "sha256:0abc...";) or SRI
# (hash = "sha256-AbC...=";).
HASH_FIELD_RE = re.compile(r'hash = "sha256[^"]*";')


def ensure_digest_available() -> Result[None, ReleaseError]:
    if _ALGORITHM not in hashlib.algorithms_available:
        return Err(
            ReleaseError(
                kind="digest_unavailable",
                message=f"{_ALGORITHM} digest is not available in this Python build",
                hint="Use a Python linked against OpenSSL with sha256 support",
            )
        )
    return Ok(None)


def sri_sha256(content: bytes) -> str:
    """Subresource-integrity string: ``sha256-<base64 digest>``."""
    digest = hashlib.new(_ALGORITHM, content).digest()
    return f"{_ALGORITHM}-{base64.b64encode(digest).decode('ascii')}"


def replace_hash_field(text: str, sri: str) -> str | None:
    """Rewrite every ``hash = "sha256...";`` field; None if there is none."""
    if HASH_FIELD_RE.search(text) is None:
        return None
    return HASH_FIELD_RE.sub(lambda _m: f'hash = "{sri}";', text)
