"""Countdown bookkeeping and the COUNTDOWN exit slot.

Two producers race to leave COUNTDOWN: the wall-clock timer (to FLIGHT)
and the frame consumer on body loss (to ABSENT). Both go through a
TransitionSlot, which accepts exactly one claim.
"""

from __future__ import annotations

import threading

from vertimeter.core.types import PhaseState


class TransitionSlot:
    """Single-assignment slot deciding where COUNTDOWN exits to.

    The first successful ``claim`` wins; later claims return False and
    never override the winner.
    """

    __slots__ = ("_lock", "_target")

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._target: PhaseState | None = None

    def __repr__(self) -> str:
        return f"TransitionSlot(target={self._target})"

    @property
    def target(self) -> PhaseState | None:
        """The winning target phase, or None while unclaimed."""
        return self._target

    @property
    def is_claimed(self) -> bool:
        return self._target is not None

    def claim(self, target: PhaseState) -> bool:
        """Try to claim the slot for ``target``.

        Returns:
            True if this call won the slot
        """
        with self._lock:
            if self._target is not None:
                return False
            self._target = target
            return True


class Countdown:
    """Whole-second countdown values, strictly decreasing to zero."""

    def __init__(self, seconds: int) -> None:
        if seconds < 0:
            raise ValueError(f"Countdown length must be non-negative, got {seconds}")
        self.seconds = seconds
        self._remaining = seconds

    @property
    def remaining(self) -> int:
        return self._remaining

    @property
    def is_expired(self) -> bool:
        return self._remaining == 0

    def tick(self) -> int:
        """Advance one second and return the new remaining value.

        Raises:
            RuntimeError: If the countdown already reached zero
        """
        if self._remaining == 0:
            raise RuntimeError("Countdown already expired")
        self._remaining -= 1
        return self._remaining

    def values(self) -> list[int]:
        """Every value the countdown reports, from the start to zero."""
        return list(range(self.seconds, -1, -1))
