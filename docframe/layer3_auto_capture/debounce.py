"""
Layer 3 - Auto-Capture Debounce
Turns a stream of aligned/misaligned verdicts into a single capture once the
document has stayed aligned for the whole stabilization window.
"""
import logging
import threading
import time
from enum import Enum
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class DebounceState(Enum):
    IDLE = "idle"
    PENDING = "pending"
    CAPTURING = "capturing"


class DebounceController:
    """
    Idle -> Pending on an aligned verdict, Pending -> Idle on a misaligned
    one, Pending -> Capturing when the timer fires while still aligned, and
    Capturing -> Idle once the capture action returns (success or failure).

    All transitions happen under one lock. Verdicts that arrive while
    capturing are ignored.
    """

    def __init__(
        self,
        capture_action: Callable[[], None],
        stabilization_window: float = 1.0,
        pause_frames: Optional[Callable[[], None]] = None,
        resume_frames: Optional[Callable[[], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
        clock: Callable[[], float] = time.monotonic,
        timer_factory=threading.Timer,
        trace=None
    ):
        """
        Initialize debounce controller.

        Args:
            capture_action: Called once per trigger, on the timer thread
            stabilization_window: Seconds of continuous alignment before capture
            pause_frames: Stops frame delivery before the capture action runs
            resume_frames: Called after returning to idle from a capture
            on_error: Receives exceptions raised by the capture action
            clock: Monotonic time source
            timer_factory: Callable (interval, function) returning a startable,
                cancellable timer
            trace: Optional TraceSink receiving state transitions
        """
        if stabilization_window < 0:
            raise ValueError("stabilization_window must not be negative")

        self.capture_action = capture_action
        self.stabilization_window = stabilization_window
        self.pause_frames = pause_frames
        self.resume_frames = resume_frames
        self.on_error = on_error
        self._clock = clock
        self._timer_factory = timer_factory
        self.trace = trace

        self._lock = threading.Lock()
        self._state = DebounceState.IDLE
        self._deadline: Optional[float] = None
        self._timer = None
        self._generation = 0
        self._latest_aligned = False
        self._disposed = False

        self.captures = 0  # capture attempts started, failed ones included

    @property
    def state(self) -> DebounceState:
        return self._state

    @property
    def deadline(self) -> Optional[float]:
        """Clock time at which a pending capture fires, None unless pending."""
        return self._deadline

    @property
    def disposed(self) -> bool:
        return self._disposed

    def _set_state(self, new_state: DebounceState):
        old = self._state
        self._state = new_state
        if new_state != DebounceState.PENDING:
            self._deadline = None
        if old != new_state and self.trace is not None:
            self.trace.transition("debounce", old, new_state)

    def _cancel_timer(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def on_verdict(self, aligned: bool) -> DebounceState:
        """
        Feed the latest verdict.

        Returns:
            DebounceState: State after the verdict was applied
        """
        with self._lock:
            if self._disposed:
                return self._state

            self._latest_aligned = aligned

            if self._state == DebounceState.CAPTURING:
                return self._state

            if aligned and self._state == DebounceState.IDLE:
                self._generation += 1
                generation = self._generation
                self._timer = self._timer_factory(
                    self.stabilization_window,
                    lambda: self._on_timer(generation)
                )
                self._set_state(DebounceState.PENDING)
                self._deadline = self._clock() + self.stabilization_window
                self._timer.start()
                logger.debug(f"Alignment started, capture in {self.stabilization_window:.2f}s")

            elif not aligned and self._state == DebounceState.PENDING:
                self._cancel_timer()
                self._set_state(DebounceState.IDLE)
                logger.debug("Alignment lost, pending capture cancelled")

            return self._state

    def _on_timer(self, generation: int):
        with self._lock:
            if (self._disposed
                    or self._state != DebounceState.PENDING
                    or generation != self._generation
                    or not self._latest_aligned):
                logger.debug("Stale debounce timer ignored")
                return
            self._timer = None
            self._set_state(DebounceState.CAPTURING)

        logger.info("Document stable, capturing")
        self._run_capture()

    def _run_capture(self):
        try:
            if self.pause_frames is not None:
                self.pause_frames()
            self.captures += 1
            self.capture_action()
        except Exception as e:
            logger.error(f"Capture action failed: {e}")
            if self.on_error is not None:
                self.on_error(e)
        finally:
            with self._lock:
                self._latest_aligned = False
                self._set_state(DebounceState.IDLE)
                disposed = self._disposed

        if not disposed and self.resume_frames is not None:
            self.resume_frames()

    def trigger_now(self) -> bool:
        """
        Capture immediately, skipping the stabilization window (manual button).

        Returns:
            bool: False if a capture is already running or the controller is disposed
        """
        with self._lock:
            if self._disposed or self._state == DebounceState.CAPTURING:
                return False
            self._cancel_timer()
            self._set_state(DebounceState.CAPTURING)

        logger.info("Manual capture triggered")
        self._run_capture()
        return True

    def cancel(self):
        """Cancel any pending capture. No-op when nothing is pending."""
        with self._lock:
            self._cancel_timer()
            if self._state == DebounceState.PENDING:
                self._set_state(DebounceState.IDLE)

    def dispose(self):
        """Cancel the timer and force idle; later verdicts are ignored."""
        with self._lock:
            self._disposed = True
            self._cancel_timer()
            self._latest_aligned = False
            self._set_state(DebounceState.IDLE)
        logger.debug("DebounceController disposed")
