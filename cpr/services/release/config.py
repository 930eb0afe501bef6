from __future__ import annotations

from cpr.services.release.model import ArtifactDescriptor, ContentHashBinding

TOKEN_ENV = "GITHUB_TOKEN"
DRY_RUN_ENV = "CLOUDYPAD_RELEASE_DRY_RUN"

LAUNCHER_SCRIPT = "cloudypad.sh"
INSTALL_SCRIPT = "install.sh"
PACKAGE_JSON = "package.json"
FLAKE_NIX = "flake.nix"

DESCRIPTORS: tuple[ArtifactDescriptor, ...] = (
    ArtifactDescriptor(path=LAUNCHER_SCRIPT, prefix="CLOUDYPAD_VERSION="),
    ArtifactDescriptor(path=INSTALL_SCRIPT, prefix="DEFAULT_CLOUDYPAD_SCRIPT_REF=v"),
    ArtifactDescriptor(path=PACKAGE_JSON, prefix='"version": "', suffix='"'),
    ArtifactDescriptor(path=FLAKE_NIX, prefix='cloudypadVersion = "', suffix='";'),
)

HASH_BINDING = ContentHashBinding(artifact=LAUNCHER_SCRIPT, descriptor=FLAKE_NIX)

STASH_LABEL_PREFIX = "release-create temp"


def commit_message(version: str) -> str:
    return f"chore: prepare release {version} - update version in package files and scripts"


def release_pr_branch(*, branch: str, component: str) -> str:
    """Head branch name release-please uses for its release PR."""
    return f"release-please--branches--{branch}--components--{component}"


def finalize_pr_title(version: str) -> str:
    return f"Finalize release {version}"
