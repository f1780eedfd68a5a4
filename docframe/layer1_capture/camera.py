"""
Layer 1 - Camera Handler
OpenCV camera ownership, background frame delivery and still capture.
The camera has a single owner per session and is released on teardown.
"""
import cv2
import logging
import os
import threading
import time
from pathlib import Path
from typing import Optional, Tuple

from ..error_handlers import (
    CameraInitError,
    CameraNotFoundError,
    CaptureError,
    FrameCaptureError,
    FrameReaderBusyError,
)
from .frames import FrameCallback, FullResImage, RawFrame

logger = logging.getLogger(__name__)


class CameraFrameSource:
    """
    USB camera handler with V4L2 backend delivering frames on a reader thread.

    Frames are handed to the callback one at a time; the callback decides
    whether to drop them.
    """

    # Default camera configuration
    DEFAULT_CONFIG = {
        'width': 1920,
        'height': 1080,
        'fps': 30,
        'codec': 'MJPG',
        'buffer_size': 1,  # Minimal buffer for low latency
        'sensor_orientation': 90,
    }

    def __init__(self, camera_index: int = 0, config: Optional[dict] = None,
                 stop_timeout: float = 2.0):
        """
        Initialize camera handler.

        Args:
            camera_index: V4L2 device index (e.g., 2 for /dev/video2)
            config: Optional configuration override
            stop_timeout: Seconds stop() waits for the reader thread to exit
        """
        self.camera_index = camera_index
        self.stop_timeout = stop_timeout
        self.config = {**self.DEFAULT_CONFIG, **(config or {})}
        self.camera: Optional[cv2.VideoCapture] = None
        self._is_initialized = False
        self._lock = threading.Lock()

        self._callback: Optional[FrameCallback] = None
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

        # Actual resolution (may differ from requested)
        self.actual_width = 0
        self.actual_height = 0

        logger.info(f"CameraFrameSource created for /dev/video{camera_index}")

    def _check_device_exists(self) -> bool:
        """Check if camera device file exists."""
        device_path = f"/dev/video{self.camera_index}"
        exists = os.path.exists(device_path)
        if not exists:
            logger.error(f"Camera device not found: {device_path}")
        return exists

    def initialize(self) -> bool:
        """
        Open and configure the camera.

        Returns:
            bool: True if successful

        Raises:
            CameraNotFoundError: If camera device doesn't exist
            CameraInitError: If camera fails to initialize
        """
        if self._is_initialized and self.camera is not None:
            logger.debug("Camera already initialized")
            return True

        if not self._check_device_exists():
            raise CameraNotFoundError(self.camera_index)

        logger.info(f"Initializing camera at /dev/video{self.camera_index}")

        self.camera = cv2.VideoCapture(self.camera_index, cv2.CAP_V4L2)
        if not self.camera.isOpened():
            self.camera.release()
            self.camera = None
            raise CameraInitError(self.camera_index, reason="Failed to open camera device")

        cfg = self.config
        self.camera.set(cv2.CAP_PROP_FOURCC, cv2.VideoWriter_fourcc(*cfg['codec']))
        self.camera.set(cv2.CAP_PROP_FRAME_WIDTH, cfg['width'])
        self.camera.set(cv2.CAP_PROP_FRAME_HEIGHT, cfg['height'])
        self.camera.set(cv2.CAP_PROP_FPS, cfg['fps'])
        self.camera.set(cv2.CAP_PROP_BUFFERSIZE, cfg['buffer_size'])

        self.actual_width = int(self.camera.get(cv2.CAP_PROP_FRAME_WIDTH))
        self.actual_height = int(self.camera.get(cv2.CAP_PROP_FRAME_HEIGHT))
        self._is_initialized = True

        logger.info(f"Camera initialized: {self.actual_width}x{self.actual_height}")
        return True

    def read(self) -> RawFrame:
        """
        Read a single frame.

        Raises:
            FrameCaptureError: If the camera is closed or the read fails
        """
        with self._lock:
            if not self._is_initialized or self.camera is None:
                raise FrameCaptureError()
            ret, image = self.camera.read()

        if not ret or image is None:
            raise FrameCaptureError()

        h, w = image.shape[:2]
        return RawFrame(
            buffer=image,
            width=w,
            height=h,
            pixel_format='bgr',
            sensor_orientation=self.config['sensor_orientation']
        )

    def start(self, callback: FrameCallback):
        """
        Start delivering frames to callback on a background thread.

        Raises:
            FrameReaderBusyError: If a stopped reader is still inside its
                callback, so a second reader would run alongside it
        """
        thread = self._thread
        if thread is not None and thread.is_alive():
            if not self._stop_event.is_set():
                logger.debug("Frame delivery already running")
                return
            if thread is not threading.current_thread():
                thread.join(timeout=self.stop_timeout)
            if thread.is_alive():
                raise FrameReaderBusyError(self.camera_index)

        self.initialize()
        self._callback = callback
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name="docframe-frames", daemon=True)
        self._thread.start()
        logger.info("Frame delivery started")

    def _run(self):
        while not self._stop_event.is_set():
            try:
                frame = self.read()
            except FrameCaptureError as e:
                logger.warning(f"Frame read failed: {e.message}")
                time.sleep(0.05)
                continue
            if self._stop_event.is_set():
                break
            self._callback(frame)

    def stop(self):
        """Stop frame delivery; safe to call when not running."""
        self._stop_event.set()
        thread = self._thread
        if thread is None:
            return
        # the reference is kept while the reader is alive so start() cannot
        # spawn a second one
        if thread is threading.current_thread():
            logger.debug("Frame delivery stopping from its own callback")
            return
        thread.join(timeout=self.stop_timeout)
        if thread.is_alive():
            logger.warning("Frame reader still busy after stop request")
            return
        self._thread = None
        logger.info("Frame delivery stopped")

    def is_streaming(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def get_resolution(self) -> Tuple[int, int]:
        """Get actual camera resolution."""
        return (self.actual_width, self.actual_height)

    def release(self):
        """Release camera resources."""
        self.stop()
        with self._lock:
            if self.camera is not None:
                self.camera.release()
                self.camera = None
            self._is_initialized = False
        logger.info("Camera released")

    def __enter__(self):
        self.initialize()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
        return False


class CameraStillCapture:
    """Takes a full-resolution still from a camera frame source and saves it as JPEG."""

    def __init__(self, source: CameraFrameSource, output_dir: str = "Logs/captures"):
        self.source = source
        self.output_dir = Path(output_dir)

    def take(self) -> FullResImage:
        """
        Grab one frame and write it to disk.

        Raises:
            CaptureError: If the frame cannot be read or written
        """
        self.output_dir.mkdir(parents=True, exist_ok=True)
        self.source.initialize()

        try:
            frame = self.source.read()
        except FrameCaptureError as e:
            raise CaptureError(e.message)

        path = self.output_dir / f"{int(time.time() * 1000)}.jpg"
        if not cv2.imwrite(str(path), frame.buffer):
            raise CaptureError("could not write still image", path=str(path))

        logger.info(f"Still captured: {path} ({frame.width}x{frame.height})")
        return FullResImage(path=str(path), width=frame.width, height=frame.height)

    def release(self):
        self.source.release()
