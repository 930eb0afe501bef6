from __future__ import annotations

import base64
import hashlib
from pathlib import Path

import pytest

from cpr.core.result import Err, Ok
from cpr.output.console import MockConsole
from cpr.services.release import digest as digest_mod
from cpr.services.release.config import DESCRIPTORS
from cpr.services.release.digest import replace_hash_field, sri_sha256
from cpr.services.release.model import ArtifactDescriptor, ReleaseVersion
from cpr.services.release.versions import descriptor_regex, rewrite_text, rewrite_versions

LAUNCHER = """#!/usr/bin/env bash
CLOUDYPAD_VERSION=0.30.0
# keep 1.2.3 elsewhere untouched
"""

INSTALL = """#!/usr/bin/env sh
DEFAULT_CLOUDYPAD_SCRIPT_REF=v0.30.0
"""

PACKAGE_JSON = """{
  "name": "cloudypad",
  "version": "0.30.0",
  "dependencies": {
    "other": { "version": "9.9.9" }
  }
}
"""

FLAKE = """{
  outputs = { self, nixpkgs }: let
    cloudypadVersion = "0.30.0";
    cloudypadScript = pkgs.fetchurl {
      url = "https://raw.githubusercontent.com/ap0ught/cloudypad/v${cloudypadVersion}/cloudypad.sh";
      hash = "sha256:1p3i8xq1anlr5b3dqazqqb3ybqq4bwlpfwc6n7rvrvjf5lc3xa5b";
    };
  in {};
}
"""


def _write_repo(root: Path) -> None:
    (root / "cloudypad.sh").write_text(LAUNCHER, encoding="utf-8")
    (root / "install.sh").write_text(INSTALL, encoding="utf-8")
    (root / "package.json").write_text(PACKAGE_JSON, encoding="utf-8")
    (root / "flake.nix").write_text(FLAKE, encoding="utf-8")


def _snapshot(root: Path) -> dict[str, bytes]:
    return {d.path: (root / d.path).read_bytes() for d in DESCRIPTORS}


def _expected_sri(path: Path) -> str:
    digest = hashlib.sha256(path.read_bytes()).digest()
    return "sha256-" + base64.b64encode(digest).decode("ascii")


class TestRewriteText:
    def test_replaces_first_occurrence_only(self) -> None:
        descriptor = ArtifactDescriptor(path="x", prefix='"version": "', suffix='"')
        out = rewrite_text(PACKAGE_JSON, descriptor=descriptor, version="2.3.0")
        assert out is not None
        assert '"version": "2.3.0"' in out
        assert '"version": "9.9.9"' in out

    def test_replaces_prerelease_suffix(self) -> None:
        descriptor = ArtifactDescriptor(path="x", prefix="CLOUDYPAD_VERSION=")
        out = rewrite_text("CLOUDYPAD_VERSION=0.30.0-rc-1\n", descriptor=descriptor, version="2.3.0")
        assert out == "CLOUDYPAD_VERSION=2.3.0\n"

    def test_missing_pattern(self) -> None:
        descriptor = ArtifactDescriptor(path="x", prefix="CLOUDYPAD_VERSION=")
        assert rewrite_text("nothing here\n", descriptor=descriptor, version="2.3.0") is None


class TestHashField:
    def test_replaces_legacy_form(self) -> None:
        out = replace_hash_field('hash = "sha256:abc";', "sha256-XYZ=")
        assert out == 'hash = "sha256-XYZ=";'

    def test_replaces_sri_form(self) -> None:
        out = replace_hash_field('hash = "sha256-old+/=";', "sha256-new=")
        assert out == 'hash = "sha256-new=";'

    def test_absent(self) -> None:
        assert replace_hash_field('sha256 = "abc";', "sha256-new=") is None

    def test_sri_matches_hashlib(self) -> None:
        expected = "sha256-" + base64.b64encode(hashlib.sha256(b"abc").digest()).decode()
        assert sri_sha256(b"abc") == expected


class TestRewriteVersions:
    def test_updates_all_descriptors(self, tmp_path: Path) -> None:
        _write_repo(tmp_path)
        console = MockConsole()

        result = rewrite_versions(root=tmp_path, version=ReleaseVersion("2.3.0"), console=console)
        assert isinstance(result, Ok)
        assert len(result.value.changed) == 4

        for descriptor in DESCRIPTORS:
            text = (tmp_path / descriptor.path).read_text(encoding="utf-8")
            found = descriptor_regex(descriptor).search(text)
            assert found is not None
            assert found.group(1) == "2.3.0"

        launcher = (tmp_path / "cloudypad.sh").read_text(encoding="utf-8")
        assert "# keep 1.2.3 elsewhere untouched" in launcher
        assert (tmp_path / "install.sh").read_text(encoding="utf-8").endswith("REF=v2.3.0\n")

    def test_flake_hash_matches_launcher_bytes(self, tmp_path: Path) -> None:
        _write_repo(tmp_path)

        result = rewrite_versions(root=tmp_path, version=ReleaseVersion("2.3.0"), console=MockConsole())
        assert isinstance(result, Ok)

        sri = _expected_sri(tmp_path / "cloudypad.sh")
        assert result.value.digest == sri
        assert f'hash = "{sri}";' in (tmp_path / "flake.nix").read_text(encoding="utf-8")

    @pytest.mark.parametrize("version", ["2.3.0", "0.0.1", "1.0.0-beta1"])
    def test_idempotent(self, tmp_path: Path, version: str) -> None:
        _write_repo(tmp_path)
        rewrite_versions(root=tmp_path, version=ReleaseVersion(version), console=MockConsole())
        once = _snapshot(tmp_path)

        result = rewrite_versions(root=tmp_path, version=ReleaseVersion(version), console=MockConsole())
        assert isinstance(result, Ok)
        assert result.value.changed == ()
        assert _snapshot(tmp_path) == once

    def test_preserves_crlf(self, tmp_path: Path) -> None:
        _write_repo(tmp_path)
        (tmp_path / "install.sh").write_bytes(b"#!/bin/sh\r\nDEFAULT_CLOUDYPAD_SCRIPT_REF=v0.30.0\r\n")

        rewrite_versions(root=tmp_path, version=ReleaseVersion("2.3.0"), console=MockConsole())
        assert (tmp_path / "install.sh").read_bytes() == (
            b"#!/bin/sh\r\nDEFAULT_CLOUDYPAD_SCRIPT_REF=v2.3.0\r\n"
        )

    def test_missing_descriptor_writes_nothing(self, tmp_path: Path) -> None:
        _write_repo(tmp_path)
        (tmp_path / "flake.nix").unlink()
        before = {p: (tmp_path / p).read_bytes() for p in ("cloudypad.sh", "install.sh", "package.json")}

        result = rewrite_versions(root=tmp_path, version=ReleaseVersion("2.3.0"), console=MockConsole())
        assert isinstance(result, Err)
        assert result.error.kind == "descriptor_missing"
        assert {p: (tmp_path / p).read_bytes() for p in before} == before

    def test_missing_pattern_writes_nothing(self, tmp_path: Path) -> None:
        _write_repo(tmp_path)
        (tmp_path / "package.json").write_text('{"name": "cloudypad"}\n', encoding="utf-8")
        before = _snapshot(tmp_path)

        result = rewrite_versions(root=tmp_path, version=ReleaseVersion("2.3.0"), console=MockConsole())
        assert isinstance(result, Err)
        assert result.error.kind == "pattern_missing"
        assert "package.json" in result.error.message
        assert _snapshot(tmp_path) == before

    def test_missing_hash_field_writes_nothing(self, tmp_path: Path) -> None:
        _write_repo(tmp_path)
        (tmp_path / "flake.nix").write_text('cloudypadVersion = "0.30.0";\n', encoding="utf-8")
        before = _snapshot(tmp_path)

        result = rewrite_versions(root=tmp_path, version=ReleaseVersion("2.3.0"), console=MockConsole())
        assert isinstance(result, Err)
        assert result.error.kind == "pattern_missing"
        assert _snapshot(tmp_path) == before

    def test_digest_unavailable_is_fatal(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        _write_repo(tmp_path)
        before = _snapshot(tmp_path)
        monkeypatch.setattr(digest_mod.hashlib, "algorithms_available", {"md5"})

        result = rewrite_versions(root=tmp_path, version=ReleaseVersion("2.3.0"), console=MockConsole())
        assert isinstance(result, Err)
        assert result.error.kind == "digest_unavailable"
        assert _snapshot(tmp_path) == before
