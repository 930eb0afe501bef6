from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TypeVar

from cpr.core.result import Err, Ok, Result

T = TypeVar("T")
E = TypeVar("E")

Clock = Callable[[], float]
Sleeper = Callable[[float], None]


@dataclass(frozen=True, slots=True)
class PollTimeout:
    elapsed: float


def poll_until(
    probe: Callable[[], Result[T | None, E]],
    *,
    deadline: float,
    interval: float,
    clock: Clock,
    sleep: Sleeper,
) -> Result[T, E | PollTimeout]:
    """Call ``probe`` until it yields a value, fails, or ``deadline`` passes.

    ``Ok(None)`` from the probe means "not there yet". The deadline is checked
    before every probe, so a value is only accepted strictly before it.
    """
    started = clock()
    while True:
        now = clock()
        if now >= deadline:
            return Err(PollTimeout(elapsed=now - started))

        result = probe()
        if isinstance(result, Err):
            return result
        if result.value is not None:
            return Ok(result.value)

        remaining = deadline - clock()
        if remaining > 0:
            sleep(min(interval, remaining))
