from __future__ import annotations

from collections.abc import Callable, Sequence


def next_in_rotation(
    order: Sequence[str],
    current: str | None,
    *,
    eligible: Callable[[str], bool] = lambda _pid: True,
    fallback_index: int = 0,
) -> str | None:
    """Return the next eligible player id after `current` in seat order.

    Policy (simple + deterministic): walk the roster round-robin starting just after
    `current`. If `current` has left the roster, start at `fallback_index`, which is the
    seat the departed player used to occupy, so nobody is skipped.
    """

    if not order:
        return None

    n = len(order)
    if current is not None and current in order:
        start = (order.index(current) + 1) % n
    else:
        start = fallback_index % n

    for step in range(n):
        pid = order[(start + step) % n]
        if eligible(pid):
            return pid
    return None


def first_eligible_from(order: Sequence[str], index: int, *, eligible: Callable[[str], bool]) -> str | None:
    """First eligible player id at or after seat `index`, wrapping around."""

    if not order:
        return None
    n = len(order)
    for step in range(n):
        pid = order[(index + step) % n]
        if eligible(pid):
            return pid
    return None
