from __future__ import annotations

from cpr.core.errors import ErrorCode


def test_codes_are_stable() -> None:
    assert int(ErrorCode.OK) == 0
    assert int(ErrorCode.USER_ERROR) == 1
    assert int(ErrorCode.ENV_ERROR) == 2
    assert int(ErrorCode.CI_ERROR) == 3
    assert int(ErrorCode.CONFLICT) == 6

