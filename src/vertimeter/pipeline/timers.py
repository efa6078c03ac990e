"""Wall-clock timers that run independently of frame arrival."""

from __future__ import annotations

import threading
from collections.abc import Callable

from vertimeter.analysis.countdown import Countdown
from vertimeter.core.logging import get_logger

logger = get_logger(__name__)


class CountdownTimer:
    """Ticks a countdown on its own thread.

    Calls ``on_tick(seconds)`` immediately, then ``on_tick`` with each lower
    value every ``interval`` seconds down to zero, then ``on_expire()``.
    A cancelled timer makes no further calls.
    """

    def __init__(
        self,
        seconds: int,
        on_tick: Callable[[int], None],
        on_expire: Callable[[], None],
        interval: float = 1.0,
    ) -> None:
        self.seconds = seconds
        self.interval = interval
        self._on_tick = on_tick
        self._on_expire = on_expire
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    @property
    def is_cancelled(self) -> bool:
        return self._stop.is_set()

    def start(self) -> None:
        """Start ticking.

        Raises:
            RuntimeError: If the timer was already started
        """
        if self._thread is not None:
            raise RuntimeError("Countdown timer already started")

        self._thread = threading.Thread(target=self._run, name="countdown-timer", daemon=True)
        self._thread.start()

    def cancel(self, timeout: float | None = 2.0) -> None:
        """Stop the timer and wait for its thread to exit.

        Safe to call repeatedly and from within a timer callback.
        """
        self._stop.set()

        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)

    def _run(self) -> None:
        countdown = Countdown(self.seconds)

        try:
            self._on_tick(countdown.remaining)

            while not countdown.is_expired:
                if self._stop.wait(self.interval):
                    return
                self._on_tick(countdown.tick())

            if not self._stop.is_set():
                self._on_expire()

        except Exception:
            logger.exception("Countdown timer callback failed")


class Watchdog:
    """Calls ``callback`` every ``interval`` seconds until stopped."""

    def __init__(self, callback: Callable[[], None], interval: float = 0.1) -> None:
        self.interval = interval
        self._callback = callback
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start the watchdog thread (no-op if already running)."""
        if self.is_running:
            return

        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="session-watchdog", daemon=True)
        self._thread.start()

    def stop(self, timeout: float | None = 2.0) -> None:
        """Stop the watchdog and wait for its thread to exit."""
        self._stop.set()

        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)
        self._thread = None

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            try:
                self._callback()
            except Exception:
                logger.exception("Watchdog callback failed")
