"""
Events and Observability
One typed event stream for everything the UI listens to, plus the trace
sink that collects per-frame diagnostics.
"""
import logging
import threading
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Union

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VerdictEvent:
    """Alignment verdict for one evaluated frame (drives border colour and status text)."""
    verdict: Any


@dataclass(frozen=True)
class SideCapturedEvent:
    """A side was captured and cropped."""
    side: Any
    path: str


@dataclass(frozen=True)
class SessionSavedEvent:
    """The session was saved; carries the composed capture data."""
    data: Any


@dataclass(frozen=True)
class ErrorEvent:
    """Adapter, capture or mapping failure."""
    error: Exception

    def to_dict(self):
        from .error_handlers import error_response
        return error_response(self.error)


CaptureEvent = Union[VerdictEvent, SideCapturedEvent, SessionSavedEvent, ErrorEvent]
Listener = Callable[[CaptureEvent], None]


class EventBus:
    """
    Synchronous publish/subscribe channel.

    Listeners are called in subscription order on the publishing thread.
    A listener that raises is logged and skipped.
    """

    def __init__(self):
        self._listeners: List[Listener] = []
        self._lock = threading.Lock()

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """
        Register a listener.

        Returns:
            Callable that removes the listener again
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe():
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def publish(self, event: CaptureEvent):
        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(event)
            except Exception as e:
                logger.error(f"Event listener failed on {type(event).__name__}: {e}")
                logger.exception("Full traceback:")


class TraceSink:
    """
    Observability collaborator for diagnostics.

    Wraps a logger by default; swap in a subclass to collect traces
    elsewhere (tests use a recording sink).
    """

    def __init__(self, target: Optional[logging.Logger] = None):
        self.target = target or logging.getLogger("docframe.trace")

    def verdict(self, verdict):
        self.target.debug(
            f"verdict aligned={verdict.aligned} size={verdict.size_aligned} "
            f"position={verdict.position_aligned} status={verdict.diagnostic.value} "
            f"ratio={verdict.size_ratio:.1%} hints={sorted(d.value for d in verdict.directions)}"
        )

    def transition(self, component: str, old, new):
        self.target.debug(f"{component}: {old.value} -> {new.value}")

    def bounds_violation(self, violation):
        self.target.warning(f"crop clamped: {violation.to_dict()}")

    def event(self, name: str, **fields):
        self.target.info(f"{name} {fields}")
