"""Jump session orchestration.

A JumpSession owns one phase detector, its countdown timer and a watchdog.
Frames arrive on the analysis thread, timer callbacks on their own threads;
a single lock serializes them so observers only ever see committed
transitions, delivered in commit order.
"""

from __future__ import annotations

import threading
import time
from collections import deque
from collections.abc import Callable

from vertimeter.analysis.countdown import TransitionSlot
from vertimeter.analysis.phase import PhaseDetector
from vertimeter.core.config import Settings, get_settings
from vertimeter.core.exceptions import MeasurementError
from vertimeter.core.logging import get_logger
from vertimeter.core.types import (
    AnalysisState,
    AnalysisStateChanged,
    CountdownTick,
    JumpResult,
    KeypointFrame,
    PhaseChanged,
    PhaseState,
    SessionEvent,
)
from vertimeter.pipeline.timers import CountdownTimer, Watchdog
from vertimeter.vision.calibration import ScaleCalibrator

logger = get_logger(__name__)

Observer = Callable[[SessionEvent], None]


class JumpSession:
    """Drives the phase detector and exposes the UI-facing analysis state.

    Coordinates:
    - Frame consumption (``on_frame``)
    - The wall-clock countdown between stillness and flight
    - Timeouts when frames stop arriving (``poll``, run by the watchdog)
    - Reset, the only cancellation mechanism
    """

    def __init__(
        self,
        calibration_height_cm: int | None = None,
        settings: Settings | None = None,
        clock: Callable[[], float] = time.monotonic,
        start_watchdog: bool = True,
    ) -> None:
        """Initialize session.

        Args:
            calibration_height_cm: User's height in cm (settings value if None)
            settings: Application settings (uses cached settings if None)
            clock: Monotonic clock shared with frame timestamps
            start_watchdog: Run the timeout watchdog thread while started

        Raises:
            ValueError: If the calibration height is not positive
        """
        self.settings = settings or get_settings()
        self.calibration_height_cm = (
            calibration_height_cm
            if calibration_height_cm is not None
            else self.settings.session.calibration_height_cm
        )
        self._clock = clock
        self._start_watchdog = start_watchdog

        self._detector = PhaseDetector(
            self.calibration_height_cm,
            settings=self.settings.phase,
            measurement_settings=self.settings.measurement,
            calibrator=ScaleCalibrator(self.settings.calibration),
        )

        self._lock = threading.RLock()
        self._pending: deque[SessionEvent] = deque()
        self._observers: list[Observer] = []
        self._retired: list[CountdownTimer] = []

        self._started = False
        self._dispatching = False
        self._analysis_state = AnalysisState.NOT_STARTED
        self._countdown_timer: CountdownTimer | None = None
        self._countdown_remaining: int | None = None
        self._watchdog = Watchdog(self.poll, self.settings.phase.watchdog_interval_s)

    @property
    def analysis_state(self) -> AnalysisState:
        """Current UI-facing state."""
        return self._analysis_state

    @property
    def phase(self) -> PhaseState:
        """Current detector phase."""
        return self._detector.phase

    @property
    def result(self) -> JumpResult | None:
        """Result of the completed jump, if any."""
        return self._detector.result

    @property
    def last_error(self) -> MeasurementError | None:
        """Why the last attempt was aborted, if it was."""
        return self._detector.last_error

    @property
    def countdown_remaining(self) -> int | None:
        """Seconds left on the running countdown, if any."""
        return self._countdown_remaining

    @property
    def has_pending_countdown(self) -> bool:
        """Whether a countdown timer is still live."""
        timer = self._countdown_timer
        return timer is not None and not timer.is_cancelled

    @property
    def trace_length(self) -> int:
        """Samples recorded by the active measurer (0 outside FLIGHT)."""
        measurer = self._detector.measurer
        return len(measurer.trace) if measurer is not None else 0

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """Register an observer for committed session events.

        Returns:
            Callable that removes the observer
        """
        with self._lock:
            self._observers.append(observer)

        def unsubscribe() -> None:
            with self._lock:
                if observer in self._observers:
                    self._observers.remove(observer)

        return unsubscribe

    def start(self) -> None:
        """Begin waiting for a body."""
        with self._lock:
            if self._started:
                return
            self._started = True
            self._sync_analysis_state()
            logger.info("Jump session started (calibration height %d cm)", self.calibration_height_cm)

        if self._start_watchdog:
            self._watchdog.start()
        self._dispatch()

    def stop(self) -> None:
        """Stop the session; state returns to NOT_STARTED."""
        self._watchdog.stop()

        with self._lock:
            self._reset_locked()
            self._started = False
            self._sync_analysis_state()
            logger.info("Jump session stopped")

        self._dispatch()

    def reset(self) -> None:
        """Abandon the current attempt from any phase.

        Cancels the countdown, discards trace, scale and result. Idempotent.
        """
        with self._lock:
            self._reset_locked()

        self._dispatch()

    def on_frame(self, frame: KeypointFrame | None) -> None:
        """Consume one detector output.

        ``None`` or a malformed value counts as a frame with no body.
        """
        if not isinstance(frame, KeypointFrame):
            if frame is not None:
                logger.debug("Treating malformed frame %r as absent", type(frame).__name__)
            frame = KeypointFrame.absent(self._clock())

        with self._lock:
            if not self._started:
                return
            self._commit(self._detector.update(frame))

        self._dispatch()

    def poll(self, now: float | None = None) -> None:
        """Apply time-based transitions (frames stopped arriving)."""
        with self._lock:
            if not self._started:
                return
            self._commit(self._detector.check_timeouts(self._clock() if now is None else now))

        self._dispatch()

    def close(self) -> None:
        """Stop the session and release its threads."""
        self.stop()

    def _reset_locked(self) -> None:
        self._retire_countdown()
        self._commit(self._detector.reset())
        self._countdown_remaining = None

    def _commit(self, events: list[SessionEvent]) -> None:
        """Apply side effects of detector events and queue them for observers.

        Must be called with the lock held.
        """
        for event in events:
            self._pending.append(event)

            if isinstance(event, PhaseChanged):
                if event.previous == PhaseState.COUNTDOWN:
                    self._retire_countdown()
                slot = self._detector.countdown_slot
                if event.current == PhaseState.COUNTDOWN and slot is not None:
                    self._start_countdown(slot)
                self._sync_analysis_state()

    def _sync_analysis_state(self) -> None:
        current = (
            AnalysisState.from_phase(self._detector.phase)
            if self._started
            else AnalysisState.NOT_STARTED
        )
        if current != self._analysis_state:
            self._pending.append(AnalysisStateChanged(self._analysis_state, current))
            self._analysis_state = current

    def _start_countdown(self, slot: TransitionSlot) -> None:
        timer: CountdownTimer

        def on_tick(remaining: int) -> None:
            self._on_countdown_tick(timer, remaining)

        def on_expire() -> None:
            self._on_countdown_expire(timer, slot)

        timer = CountdownTimer(
            self.settings.phase.countdown_seconds,
            on_tick=on_tick,
            on_expire=on_expire,
            interval=self.settings.phase.countdown_tick_s,
        )
        self._countdown_timer = timer
        timer.start()

    def _retire_countdown(self) -> None:
        """Cancel the live countdown timer; joined later, outside the lock."""
        timer = self._countdown_timer
        if timer is None:
            return

        timer.cancel(timeout=0)
        self._retired.append(timer)
        self._countdown_timer = None
        self._countdown_remaining = None

    def _on_countdown_tick(self, timer: CountdownTimer, remaining: int) -> None:
        with self._lock:
            if timer is not self._countdown_timer:
                return
            self._countdown_remaining = remaining
            self._pending.append(CountdownTick(remaining))

        self._dispatch()

    def _on_countdown_expire(self, timer: CountdownTimer, slot: TransitionSlot) -> None:
        with self._lock:
            if timer is not self._countdown_timer:
                return
            self._commit(self._detector.expire_countdown(slot, self._clock()))

        self._dispatch()

    def _dispatch(self) -> None:
        """Deliver queued events in commit order and join retired timers.

        Only one thread delivers at a time; events queued by other threads
        (or by observers re-entering the session) are drained by it.
        """
        with self._lock:
            retired, self._retired = self._retired, []

        for timer in retired:
            timer.cancel()

        with self._lock:
            if self._dispatching:
                return
            self._dispatching = True

        try:
            while True:
                with self._lock:
                    if not self._pending:
                        self._dispatching = False
                        return
                    event = self._pending.popleft()
                    observers = list(self._observers)

                for observer in observers:
                    try:
                        observer(event)
                    except Exception:
                        logger.exception("Session observer failed on %s", type(event).__name__)
        except BaseException:
            with self._lock:
                self._dispatching = False
            raise

    def __enter__(self) -> JumpSession:
        """Context manager entry."""
        self.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: object,
    ) -> None:
        """Context manager exit."""
        self.close()
