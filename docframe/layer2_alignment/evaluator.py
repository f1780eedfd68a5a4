"""
Layer 2 - Alignment Evaluator
Turns one detector box into an aligned/misaligned verdict against the
capture guide, with a human-readable hint for the user.
"""
import logging
import threading
from dataclasses import dataclass
from enum import Enum
from typing import Callable, FrozenSet, Optional, Tuple

from ..error_handlers import DetectorUnavailableError
from ..layer1_capture.frames import DetectionResult, ObjectLocalizer, RawFrame
from .geometry import FrameGeometry, Rect, analysis_space, target_rect

logger = logging.getLogger(__name__)


class AlignmentStatus(Enum):
    NOT_FOUND = "not_found"
    TOO_FAR = "too_far"
    TOO_CLOSE = "too_close"
    ADJUST_DIRECTION = "adjust_direction"
    ALIGNED = "aligned"


class Direction(Enum):
    """Direction the user should move the document."""
    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"


class ToleranceMode(Enum):
    TOP_ONLY = "top_only"
    SYMMETRIC = "symmetric"


@dataclass
class AlignmentConfig:
    """Thresholds for the alignment checks."""
    min_area_ratio: float = 0.70   # object must cover more than this share of the guide
    max_area_ratio: float = 0.98   # ...and less than this share
    edge_tolerance: float = 0.05   # relaxation of the guide edges
    tolerance_mode: ToleranceMode = ToleranceMode.SYMMETRIC

    def __post_init__(self):
        if isinstance(self.tolerance_mode, str):
            self.tolerance_mode = ToleranceMode(self.tolerance_mode)
        if not 0 <= self.min_area_ratio < self.max_area_ratio:
            raise ValueError("area ratios must satisfy 0 <= min < max")
        if not 0 <= self.edge_tolerance < 1:
            raise ValueError("edge_tolerance must be in [0, 1)")


MESSAGES = {
    AlignmentStatus.NOT_FOUND: "Place the document inside the frame",
    AlignmentStatus.TOO_FAR: "Move the document closer",
    AlignmentStatus.TOO_CLOSE: "Move the document farther away",
    AlignmentStatus.ALIGNED: "Hold still",
}


@dataclass(frozen=True)
class AlignmentVerdict:
    """Outcome of evaluating one frame."""
    aligned: bool
    size_aligned: bool
    position_aligned: bool
    diagnostic: AlignmentStatus
    directions: FrozenSet[Direction] = frozenset()
    size_ratio: float = 0.0
    target: Optional[Rect] = None

    @classmethod
    def not_found(cls, target: Optional[Rect] = None) -> "AlignmentVerdict":
        return cls(
            aligned=False,
            size_aligned=False,
            position_aligned=False,
            diagnostic=AlignmentStatus.NOT_FOUND,
            target=target
        )

    @property
    def message(self) -> str:
        if self.diagnostic == AlignmentStatus.ADJUST_DIRECTION:
            order = [Direction.UP, Direction.DOWN, Direction.LEFT, Direction.RIGHT]
            moves = [d.value for d in order if d in self.directions]
            if not moves:
                return "Center the document in the frame"
            return "Move the document " + " and ".join(moves)
        return MESSAGES[self.diagnostic]

    def to_dict(self):
        return {
            'aligned': self.aligned,
            'size_aligned': self.size_aligned,
            'position_aligned': self.position_aligned,
            'status': self.diagnostic.value,
            'directions': sorted(d.value for d in self.directions),
            'size_ratio': round(self.size_ratio, 4),
            'message': self.message,
        }


@dataclass(frozen=True)
class CaptureContext:
    """
    Geometry snapshot of an evaluated frame.

    The crop mapper must receive this exact snapshot so the cropped area is
    the rectangle the verdict was computed against.
    """
    geometry: FrameGeometry
    buffer_width: int
    buffer_height: int
    rect: Rect
    sensor_orientation: Optional[int] = None

    @property
    def orientation(self) -> int:
        """Orientation reported by the frame, else the one in the geometry."""
        if self.sensor_orientation is not None:
            return self.sensor_orientation
        return self.geometry.sensor_orientation

    @property
    def analysis_size(self) -> Tuple[int, int]:
        w, h, _ = analysis_space(self.buffer_width, self.buffer_height)
        return w, h

    @property
    def rotated(self) -> bool:
        return analysis_space(self.buffer_width, self.buffer_height)[2]


@dataclass
class _Bounds:
    left: float
    top: float
    right: float
    bottom: float


class AlignmentEvaluator:
    """
    Judges whether the detected document sits inside the capture guide.

    evaluate() is pure; process_frame() adds the localizer call and the
    one-at-a-time busy guard used on the live frame stream.
    """

    def __init__(
        self,
        config: Optional[AlignmentConfig] = None,
        localizer: Optional[ObjectLocalizer] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
        trace=None
    ):
        """
        Initialize evaluator.

        Args:
            config: Alignment thresholds (defaults if not provided)
            localizer: Object localizer used by process_frame
            on_error: Callback for localizer and conversion failures
            trace: Optional TraceSink receiving every verdict
        """
        self.config = config or AlignmentConfig()
        self.localizer = localizer
        self.on_error = on_error
        self.trace = trace
        self._busy = threading.Lock()

        logger.info("AlignmentEvaluator initialized")
        logger.debug(f"Config: {self.config}")

    @property
    def busy(self) -> bool:
        return self._busy.locked()

    def relaxed_bounds(self, rect: Rect, analysis_width: float, analysis_height: float) -> _Bounds:
        """Guide edges widened by the configured tolerance."""
        t = self.config.edge_tolerance
        if self.config.tolerance_mode == ToleranceMode.TOP_ONLY:
            return _Bounds(rect.left, rect.top * (1 - t), rect.right, rect.bottom)
        return _Bounds(
            left=rect.left * (1 - t),
            top=rect.top * (1 - t),
            right=rect.right + max(analysis_width - rect.right, 0) * t,
            bottom=rect.bottom + max(analysis_height - rect.bottom, 0) * t
        )

    def evaluate(
        self,
        detection: Optional[DetectionResult],
        geometry: FrameGeometry,
        buffer_width: int,
        buffer_height: int,
        rect: Optional[Rect] = None
    ) -> AlignmentVerdict:
        """
        Evaluate one detection against the capture guide.

        Args:
            detection: Localizer output (None or empty = nothing found)
            geometry: On-screen layout at the time of the frame
            buffer_width: Raw buffer width
            buffer_height: Raw buffer height
            rect: Previously computed guide rectangle to reuse

        Returns:
            AlignmentVerdict: Deterministic for identical inputs
        """
        aw, ah, _ = analysis_space(buffer_width, buffer_height)
        if rect is None:
            rect = target_rect(geometry, aw, ah)

        if detection is None or detection.box is None:
            return AlignmentVerdict.not_found(target=rect)

        cfg = self.config
        box = detection.box
        object_area = box.area
        frame_area = rect.area
        ratio = object_area / frame_area if frame_area > 0 else 0.0

        too_far = object_area <= cfg.min_area_ratio * frame_area
        too_close = object_area >= cfg.max_area_ratio * frame_area
        size_aligned = frame_area > 0 and not too_far and not too_close

        bounds = self.relaxed_bounds(rect, aw, ah)
        over_left = box.left < bounds.left
        over_right = box.right > bounds.right
        over_top = box.top < bounds.top
        over_bottom = box.bottom > bounds.bottom
        position_aligned = not (over_left or over_right or over_top or over_bottom)

        # Overflowing both opposite edges is a size problem, not a direction
        directions = set()
        if over_left and not over_right:
            directions.add(Direction.RIGHT)
        if over_right and not over_left:
            directions.add(Direction.LEFT)
        if over_top and not over_bottom:
            directions.add(Direction.DOWN)
        if over_bottom and not over_top:
            directions.add(Direction.UP)

        aligned = size_aligned and position_aligned
        if aligned:
            status = AlignmentStatus.ALIGNED
        elif not size_aligned:
            status = AlignmentStatus.TOO_CLOSE if too_close else AlignmentStatus.TOO_FAR
        else:
            status = AlignmentStatus.ADJUST_DIRECTION

        return AlignmentVerdict(
            aligned=aligned,
            size_aligned=size_aligned,
            position_aligned=position_aligned,
            diagnostic=status,
            directions=frozenset(directions),
            size_ratio=ratio,
            target=rect
        )

    def process_frame(self, frame: RawFrame, geometry: FrameGeometry) -> Optional[AlignmentVerdict]:
        """
        Run the localizer on a live frame and evaluate the result.

        Frames arriving while an evaluation is in flight are dropped.

        Returns:
            AlignmentVerdict, or None if the frame was dropped
        """
        if not self._busy.acquire(blocking=False):
            logger.debug("Evaluator busy, dropping frame")
            return None

        try:
            aw, ah, _ = analysis_space(frame.width, frame.height)
            rect = target_rect(geometry, aw, ah)

            if self.localizer is None:
                logger.debug("No localizer attached, skipping frame")
                return AlignmentVerdict.not_found(target=rect)

            try:
                detection = self.localizer.detect(frame)
            except DetectorUnavailableError:
                logger.debug("Localizer not ready, skipping frame")
                return AlignmentVerdict.not_found(target=rect)
            except Exception as e:
                logger.warning(f"Localizer failed: {e}")
                if self.on_error is not None:
                    self.on_error(e)
                return AlignmentVerdict.not_found(target=rect)

            verdict = self.evaluate(detection, geometry, frame.width, frame.height, rect=rect)
            if self.trace is not None:
                self.trace.verdict(verdict)
            return verdict
        finally:
            self._busy.release()
