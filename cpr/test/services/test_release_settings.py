from __future__ import annotations

from pathlib import Path

import pytest

from cpr.core.config import Config
from cpr.core.result import Err, Ok
from cpr.services.release.settings import build_settings, parse_dry_run


def test_token_is_required(tmp_path: Path) -> None:
    result = build_settings(workspace_root=tmp_path, env={"GITHUB_TOKEN": "  "}, config=Config())

    assert isinstance(result, Err)
    assert result.error.kind == "token_missing"
    assert "GITHUB_TOKEN" in result.error.message


def test_token_not_in_repr(tmp_path: Path) -> None:
    result = build_settings(workspace_root=tmp_path, env={"GITHUB_TOKEN": "s3cret"}, config=Config())

    assert isinstance(result, Ok)
    assert result.value.token == "s3cret"
    assert "s3cret" not in repr(result.value)


@pytest.mark.parametrize(
    ("env_value", "flag", "expected"),
    [
        (None, None, False),
        ("1", None, True),
        ("yes", None, True),
        ("0", None, False),
        ("true", False, False),
        (None, True, True),
    ],
)
def test_dry_run_resolution(
    tmp_path: Path, env_value: str | None, flag: bool | None, expected: bool
) -> None:
    env = {"GITHUB_TOKEN": "t"}
    if env_value is not None:
        env["CLOUDYPAD_RELEASE_DRY_RUN"] = env_value

    result = build_settings(workspace_root=tmp_path, env=env, config=Config(), dry_run=flag)

    assert isinstance(result, Ok)
    assert result.value.dry_run is expected


def test_parse_dry_run() -> None:
    assert parse_dry_run(" TRUE ")
    assert not parse_dry_run("")
    assert not parse_dry_run(None)
