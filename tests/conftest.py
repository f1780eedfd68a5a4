"""
Pytest configuration and fixtures for docframe tests.
"""
import cv2
import numpy as np
import pytest

from docframe.events import EventBus, TraceSink
from docframe.layer1_capture.frames import (
    BoundingBox,
    DetectionResult,
    FullResImage,
    RawFrame,
)
from docframe.layer2_alignment.geometry import FrameGeometry


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start=100.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


class FakeTimer:
    """Stand-in for threading.Timer that only fires when told to."""

    def __init__(self, interval, function):
        self.interval = interval
        self.function = function
        self.started = False
        self.cancelled = False
        self.fired = False
        self.elapsed = 0.0

    def start(self):
        self.started = True

    def cancel(self):
        self.cancelled = True

    def fire(self):
        if self.cancelled or self.fired:
            return
        self.fired = True
        self.function()


class FakeTimerFactory:
    def __init__(self, clock=None):
        self.timers = []
        self.clock = clock

    def __call__(self, interval, function):
        timer = FakeTimer(interval, function)
        self.timers.append(timer)
        return timer

    @property
    def last(self):
        return self.timers[-1] if self.timers else None

    def advance(self, seconds):
        """Advance the clock and fire every live timer whose deadline passed."""
        self.clock.advance(seconds)
        for timer in list(self.timers):
            if timer.started and not timer.cancelled and not timer.fired:
                timer.elapsed += seconds
                # accumulated float steps (10 x 0.1) land just under 1.0
                if timer.elapsed >= timer.interval - 1e-9:
                    timer.fire()


class RecordingTrace(TraceSink):
    """Trace sink that keeps everything in memory."""

    def __init__(self):
        super().__init__()
        self.verdicts = []
        self.transitions = []
        self.violations = []
        self.events = []

    def verdict(self, verdict):
        self.verdicts.append(verdict)

    def transition(self, component, old, new):
        self.transitions.append((component, old, new))

    def bounds_violation(self, violation):
        self.violations.append(violation)

    def event(self, name, **fields):
        self.events.append((name, fields))


class FakeFrameSource:
    def __init__(self):
        self.callback = None
        self.running = False
        self.starts = 0
        self.stops = 0

    def start(self, callback):
        self.callback = callback
        self.running = True
        self.starts += 1

    def stop(self):
        self.running = False
        self.stops += 1

    def push(self, frame):
        assert self.running, "frame pushed while stream stopped"
        return self.callback(frame)


class FakeLocalizer:
    """Returns whatever box is queued; raises if an exception is queued."""

    def __init__(self, box=None):
        self.box = box
        self.error = None
        self.calls = 0

    def detect(self, frame):
        self.calls += 1
        if self.error is not None:
            raise self.error
        return DetectionResult(box=self.box, confidence=0.9 if self.box else 0.0)


class FakeStillCapture:
    """Writes a synthetic landscape still (PNG) into a directory."""

    def __init__(self, directory, width=3840, height=2160):
        self.directory = directory
        self.width = width
        self.height = height
        self.taken = 0
        self.released = 0
        self.error = None

    def take(self):
        if self.error is not None:
            raise self.error
        self.taken += 1
        image = np.zeros((self.height, self.width, 3), dtype=np.uint8)
        path = self.directory / f"still_{self.taken}.png"
        cv2.imwrite(str(path), image)
        return FullResImage(path=str(path), width=self.width, height=self.height)

    def release(self):
        self.released += 1


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def timers(clock):
    return FakeTimerFactory(clock)


@pytest.fixture
def trace():
    return RecordingTrace()


@pytest.fixture
def bus():
    return EventBus()


@pytest.fixture
def events(bus):
    """List collecting every published event."""
    received = []
    bus.subscribe(received.append)
    return received


@pytest.fixture
def portrait_geometry():
    """900x1400 guide on a 1080x2400 display with no letterboxing."""
    return FrameGeometry(
        display_width=1080,
        display_height=2400,
        frame_width=900,
        frame_height=1400,
        sensor_orientation=90
    )


@pytest.fixture
def landscape_frame():
    """3840x2160 buffer as delivered by a 90-degree sensor."""
    return RawFrame(buffer=b"", width=3840, height=2160, pixel_format="nv21", sensor_orientation=90)


@pytest.fixture
def aligned_box():
    """Box covering ~80% of the guide rect (180, 800, 1800, 2240), centred."""
    # 0.8 area -> scale each side by sqrt(0.8) ~= 0.8944
    w = 1800 * 0.8944
    h = 2240 * 0.8944
    left = 180 + (1800 - w) / 2
    top = 800 + (2240 - h) / 2
    return BoundingBox(left, top, left + w, top + h)


@pytest.fixture
def frame_source():
    return FakeFrameSource()


@pytest.fixture
def localizer():
    return FakeLocalizer()


@pytest.fixture
def still_capture(tmp_path):
    return FakeStillCapture(tmp_path)
