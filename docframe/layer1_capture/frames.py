"""
Layer 1 - Frame Model
Records exchanged with the camera, the localizer and the still capture,
and the contracts those collaborators implement.
"""
from dataclasses import dataclass
from typing import Any, Callable, Optional, Protocol


@dataclass(frozen=True)
class BoundingBox:
    """Detector output in analysis space."""
    left: float
    top: float
    right: float
    bottom: float

    @property
    def width(self) -> float:
        return self.right - self.left

    @property
    def height(self) -> float:
        return self.bottom - self.top

    @property
    def area(self) -> float:
        return self.width * self.height


@dataclass(frozen=True)
class DetectionResult:
    """At most one box of interest; box=None means no document found."""
    box: Optional[BoundingBox] = None
    confidence: float = 0.0

    @property
    def found(self) -> bool:
        return self.box is not None


@dataclass
class RawFrame:
    """One buffer delivered by the frame source."""
    buffer: Any
    width: int
    height: int
    pixel_format: str = "bgr"
    sensor_orientation: int = 0


@dataclass(frozen=True)
class FullResImage:
    """Saved still photo."""
    path: str
    width: int
    height: int


FrameCallback = Callable[[RawFrame], None]


class FrameSource(Protocol):
    def start(self, callback: FrameCallback) -> None: ...
    def stop(self) -> None: ...


class ObjectLocalizer(Protocol):
    def detect(self, frame: RawFrame) -> DetectionResult: ...


class StillCapture(Protocol):
    def take(self) -> FullResImage: ...
