"""
Document Capture Flow
Thin coordinator wiring frame delivery, alignment, debounce, cropping and
the side session together.

frame -> evaluator -> verdict -> debounce -> (trigger) still capture ->
crop mapper -> cropper -> session
"""
import logging
import threading
import time
from typing import Optional

from .config import FlowConfig
from .error_handlers import CaptureError, DocFrameError, handle_error
from .events import ErrorEvent, EventBus, TraceSink, VerdictEvent
from .layer1_capture.frames import FrameSource, ObjectLocalizer, RawFrame, StillCapture
from .layer2_alignment.evaluator import AlignmentEvaluator, AlignmentVerdict, CaptureContext
from .layer2_alignment.geometry import FrameGeometry, analysis_space, target_rect
from .layer3_auto_capture.debounce import DebounceController, DebounceState
from .layer4_cropping.cropper import ImageCropper
from .layer4_cropping.mapper import CaptureCoordinateMapper
from .layer5_session.session import CaptureSession, DocumentCaptureData

logger = logging.getLogger(__name__)


class DocumentCaptureFlow:
    """
    Coordinates one document capture session.

    Owns the frame source for the session: it is stopped while a capture is
    outstanding, restarted when the session shows the live preview again,
    and released on close.
    """

    def __init__(
        self,
        geometry: FrameGeometry,
        frame_source: FrameSource,
        still_capture: StillCapture,
        localizer: Optional[ObjectLocalizer] = None,
        config: Optional[FlowConfig] = None,
        bus: Optional[EventBus] = None,
        trace: Optional[TraceSink] = None,
        cropper: Optional[ImageCropper] = None,
        clock=time.monotonic,
        timer_factory=threading.Timer
    ):
        """
        Initialize the flow.

        Args:
            geometry: Initial on-screen layout
            frame_source: Live frame source
            still_capture: Full-resolution capture
            localizer: Object localizer (auto-capture only)
            config: Flow configuration (defaults if not provided)
            bus: Event channel (a new one if not provided)
            trace: Observability sink (logger-backed if not provided)
            cropper: Image cropper (PNG cropper if not provided)
            clock: Time source for the debounce controller
            timer_factory: Timer factory for the debounce controller
        """
        self.config = config or FlowConfig()
        self.bus = bus or EventBus()
        self.trace = trace or TraceSink()
        self.geometry = geometry
        self.frame_source = frame_source
        self.still_capture = still_capture

        cfg = self.config
        self.session = CaptureSession(
            require_both_sides=cfg.require_both_sides,
            two_sided=cfg.two_sided,
            clear_on_save=cfg.clear_on_save,
            bus=self.bus
        )
        self.evaluator = AlignmentEvaluator(
            config=cfg.alignment,
            localizer=localizer,
            on_error=self._report_error,
            trace=self.trace
        )
        self.mapper = CaptureCoordinateMapper(rotate_180=cfg.rotate_180, trace=self.trace)
        self.cropper = cropper or ImageCropper()
        self.debounce = DebounceController(
            capture_action=self._capture,
            stabilization_window=cfg.stabilization_window,
            pause_frames=self._stop_frames,
            resume_frames=self._resume_if_needed,
            on_error=self._report_error,
            clock=clock,
            timer_factory=timer_factory,
            trace=self.trace
        )

        self._stream_lock = threading.Lock()
        self._streaming = False
        self._closed = False
        self._pending_context: Optional[CaptureContext] = None
        self._frame_orientation: Optional[int] = None

        logger.info("DocumentCaptureFlow initialized")

    # ------------------------------------------------------------------
    # Frame delivery
    # ------------------------------------------------------------------

    @property
    def streaming(self) -> bool:
        return self._streaming

    def start(self):
        """Start live frame delivery when auto-capture is enabled."""
        if self.config.auto_capture:
            self._start_frames()

    def _start_frames(self):
        with self._stream_lock:
            if self._closed or self._streaming or not self.config.auto_capture:
                return
            try:
                self.frame_source.start(self.on_frame)
                self._streaming = True
                logger.debug("Frame stream started")
            except Exception as e:
                self._streaming = False
                self._report_error(e)

    def _stop_frames(self):
        with self._stream_lock:
            if not self._streaming:
                return
            try:
                self.frame_source.stop()
            except Exception as e:
                self._report_error(e)
            finally:
                self._streaming = False
                logger.debug("Frame stream stopped")

    def _resume_if_needed(self):
        if self.session.needs_live_preview:
            self._start_frames()

    def update_geometry(self, geometry: FrameGeometry):
        """
        Layout changed (rotation, resize); later frames use the new geometry.

        A pending auto-capture was aligned against the old guide, so its
        stabilization window is cancelled and alignment must be regained.
        """
        self.debounce.cancel()
        self.geometry = geometry
        self._pending_context = None
        logger.debug(f"Geometry updated: {geometry}")

    def on_frame(self, frame: RawFrame) -> Optional[AlignmentVerdict]:
        """
        Evaluate one live frame and feed the verdict to the debounce controller.

        Returns:
            AlignmentVerdict, or None if the frame was ignored
        """
        if self._closed or not self.session.needs_live_preview:
            return None
        if self.debounce.state == DebounceState.CAPTURING:
            return None

        geometry = self.geometry
        verdict = self.evaluator.process_frame(frame, geometry)
        if verdict is None:
            return None

        self._note_orientation(frame.sensor_orientation, geometry)
        if verdict.aligned:
            self._pending_context = CaptureContext(
                geometry=geometry,
                buffer_width=frame.width,
                buffer_height=frame.height,
                rect=verdict.target,
                sensor_orientation=frame.sensor_orientation
            )
        else:
            self._pending_context = None

        self.bus.publish(VerdictEvent(verdict=verdict))
        self.debounce.on_verdict(verdict.aligned)
        return verdict

    # ------------------------------------------------------------------
    # Capture
    # ------------------------------------------------------------------

    def capture_now(self) -> bool:
        """Manual capture; returns False if a capture is already running."""
        return self.debounce.trigger_now()

    def _note_orientation(self, orientation: int, geometry: FrameGeometry):
        if orientation == self._frame_orientation:
            return
        self._frame_orientation = orientation
        if orientation != geometry.sensor_orientation:
            logger.warning(
                f"Frame orientation {orientation} differs from layout orientation "
                f"{geometry.sensor_orientation}; crops follow the frame"
            )
            self.trace.event(
                "orientation_mismatch",
                frame=orientation,
                geometry=geometry.sensor_orientation
            )

    def _context_for(self, width: int, height: int) -> CaptureContext:
        aw, ah, _ = analysis_space(width, height)
        return CaptureContext(
            geometry=self.geometry,
            buffer_width=width,
            buffer_height=height,
            rect=target_rect(self.geometry, aw, ah),
            sensor_orientation=self._frame_orientation
        )

    def _capture(self):
        context = self._pending_context
        self._pending_context = None
        side = self.session.active_side

        try:
            image = self.still_capture.take()
            if context is None:
                # manual capture without an aligned frame: use the layout as shown now
                context = self._context_for(image.width, image.height)
            crop = self.mapper.map(context, image.width, image.height)
            path = self.cropper.crop(image, crop)
        except Exception as e:
            error = e if isinstance(e, DocFrameError) else CaptureError(e)
            self._report_error(error)
            self._release_camera()
            return

        self.session.capture_completed(side, path)
        self.trace.event(
            "side_captured",
            side=side.value,
            crop=crop.to_dict(),
            clamped=self.mapper.last_clamped
        )
        if self.config.release_camera_after_capture:
            self._release_camera()

    def _release_camera(self):
        release = getattr(self.still_capture, 'release', None)
        if release is None:
            return
        try:
            release()
        except Exception as e:
            logger.warning(f"Camera release failed: {e}")

    def _report_error(self, error: Exception):
        handle_error(error)
        self.bus.publish(ErrorEvent(error=error))

    # ------------------------------------------------------------------
    # Session actions
    # ------------------------------------------------------------------

    def retake(self):
        self._pending_context = None
        self.session.retake()
        self._resume_if_needed()

    def switch_to_back(self):
        self.debounce.cancel()
        self._pending_context = None
        self.session.switch_to_back()
        self._sync_frames()

    def switch_to_front(self):
        self.debounce.cancel()
        self._pending_context = None
        self.session.switch_to_front()
        self._sync_frames()

    def _sync_frames(self):
        if self.session.needs_live_preview:
            self._start_frames()
        else:
            self._stop_frames()

    def save(self) -> DocumentCaptureData:
        data = self.session.save()
        self._resume_if_needed()
        return data

    def reset(self):
        """Start a new document."""
        self.debounce.cancel()
        self._pending_context = None
        self.session.reset()
        self._resume_if_needed()

    # ------------------------------------------------------------------
    # Teardown
    # ------------------------------------------------------------------

    def close(self):
        """Cancel pending capture, stop frames and release the camera on every path."""
        if self._closed:
            return
        self._closed = True
        try:
            self.debounce.dispose()
        finally:
            try:
                self._stop_frames()
            finally:
                self._release_camera()
                logger.info("DocumentCaptureFlow closed")

    def __enter__(self):
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
