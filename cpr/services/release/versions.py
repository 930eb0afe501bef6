"""Version rewriting across the tracked artifact descriptors.

All checks run before anything is written: a missing descriptor, a descriptor
without a version, or a missing digest capability aborts with every file left
untouched. Rewrites are computed in memory, the launcher hash is derived from
the rewritten launcher bytes, and only then are files replaced.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path

from cpr.core.result import Err, Ok, Result
from cpr.output.console import ConsoleProtocol, Style
from cpr.platform.files import atomic_write_bytes
from cpr.services.release.config import DESCRIPTORS, HASH_BINDING
from cpr.services.release.digest import ensure_digest_available, replace_hash_field, sri_sha256
from cpr.services.release.errors import ReleaseError
from cpr.services.release.model import (
    ArtifactDescriptor,
    ContentHashBinding,
    ReleaseVersion,
    RewriteReport,
)
from cpr.services.release.semver import VERSION_PATTERN


@dataclass(frozen=True, slots=True)
class _PendingWrite:
    path: Path
    original: bytes
    updated: bytes


def descriptor_regex(descriptor: ArtifactDescriptor) -> re.Pattern[str]:
    return re.compile(
        re.escape(descriptor.prefix) + f"({VERSION_PATTERN})" + re.escape(descriptor.suffix)
    )


def rewrite_text(text: str, *, descriptor: ArtifactDescriptor, version: str) -> str | None:
    """Replace the first embedded version; None if the pattern is absent."""
    m = descriptor_regex(descriptor).search(text)
    if m is None:
        return None
    return text[: m.start(1)] + version + text[m.end(1) :]


def _read(path: Path) -> Result[str, ReleaseError]:
    if not path.is_file():
        return Err(
            ReleaseError(
                kind="descriptor_missing",
                message=f"{path.name} not found in working tree",
                hint=f"Run the release from the repository root (expected {path})",
            )
        )
    try:
        # Decode bytes directly so line endings survive untouched.
        return Ok(path.read_bytes().decode("utf-8"))
    except (OSError, UnicodeDecodeError) as e:
        return Err(
            ReleaseError(kind="io_failed", message=f"failed to read {path.name}: {e}", hint=str(path))
        )


def plan_rewrites(
    *,
    root: Path,
    version: ReleaseVersion,
    descriptors: tuple[ArtifactDescriptor, ...] = DESCRIPTORS,
    binding: ContentHashBinding = HASH_BINDING,
) -> Result[tuple[list[_PendingWrite], str], ReleaseError]:
    """Compute every rewrite in memory. Returns pending writes and the new SRI hash."""
    digest_ok = ensure_digest_available()
    if isinstance(digest_ok, Err):
        return digest_ok

    texts: dict[str, str] = {}
    originals: dict[str, str] = {}
    for descriptor in descriptors:
        path = root / descriptor.path
        current = texts.get(descriptor.path)
        if current is None:
            read = _read(path)
            if isinstance(read, Err):
                return read
            current = read.value
            originals[descriptor.path] = current

        updated = rewrite_text(current, descriptor=descriptor, version=version.value)
        if updated is None:
            return Err(
                ReleaseError(
                    kind="pattern_missing",
                    message=f"no version found after {descriptor.prefix!r} in {descriptor.path}",
                    hint=f"Check {descriptor.path} still declares {descriptor.prefix}<version>",
                )
            )
        texts[descriptor.path] = updated

    if binding.descriptor not in texts:
        read = _read(root / binding.descriptor)
        if isinstance(read, Err):
            return read
        texts[binding.descriptor] = originals[binding.descriptor] = read.value

    if binding.artifact in texts:
        artifact_bytes = texts[binding.artifact].encode("utf-8")
    else:
        artifact_path = root / binding.artifact
        if not artifact_path.is_file():
            return Err(
                ReleaseError(
                    kind="descriptor_missing",
                    message=f"{binding.artifact} not found in working tree",
                    hint=str(artifact_path),
                )
            )
        artifact_bytes = artifact_path.read_bytes()

    sri = sri_sha256(artifact_bytes)
    hashed = replace_hash_field(texts[binding.descriptor], sri)
    if hashed is None:
        return Err(
            ReleaseError(
                kind="pattern_missing",
                message=f'no hash = "sha256..."; field in {binding.descriptor}',
                hint=f"Check the fetchurl block for {binding.artifact} in {binding.descriptor}",
            )
        )
    texts[binding.descriptor] = hashed

    pending = [
        _PendingWrite(
            path=root / rel,
            original=originals[rel].encode("utf-8"),
            updated=text.encode("utf-8"),
        )
        for rel, text in texts.items()
    ]
    return Ok((pending, sri))


def rewrite_versions(
    *,
    root: Path,
    version: ReleaseVersion,
    console: ConsoleProtocol,
    descriptors: tuple[ArtifactDescriptor, ...] = DESCRIPTORS,
    binding: ContentHashBinding = HASH_BINDING,
) -> Result[RewriteReport, ReleaseError]:
    """Write ``version`` into every descriptor and refresh the launcher hash."""
    console.print("Updating Cloudy Pad version in package files and scripts...")
    planned = plan_rewrites(root=root, version=version, descriptors=descriptors, binding=binding)
    if isinstance(planned, Err):
        return planned

    pending, sri = planned.value
    changed: list[Path] = []
    for item in pending:
        if item.updated == item.original:
            console.print(f"{item.path.name}: already at {version}", Style.DIM)
            continue
        try:
            atomic_write_bytes(item.path, item.updated)
        except OSError as e:
            restore = " ".join(p.name for p in changed)
            return Err(
                ReleaseError(
                    kind="io_failed",
                    message=f"failed to write {item.path.name}: {e}",
                    hint=f"git checkout -- {restore}" if restore else str(item.path),
                )
            )
        console.print(f"{item.path.name}: updated", Style.DIM)
        changed.append(item.path)

    console.print(f"{binding.artifact} hash: {sri}", Style.DIM)
    return Ok(RewriteReport(changed=tuple(changed), digest=sri))
