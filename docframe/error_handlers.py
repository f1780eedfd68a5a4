"""
Error Handling System
Provides consistent error reporting across all capture layers
"""
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional

logger = logging.getLogger(__name__)


class DocFrameError(Exception):
    """Base exception for document capture errors"""
    def __init__(self, message, error_code, details=None):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self):
        """Convert error to JSON-serializable dict"""
        return {
            "success": False,
            "error": self.message,
            "error_code": self.error_code,
            "details": self.details
        }


# Layer 1 Errors - Camera and frame adapters
class CameraError(DocFrameError):
    """Camera-related errors"""
    pass


class CameraNotFoundError(CameraError):
    """Camera device not found"""
    def __init__(self, camera_index):
        super().__init__(
            message=f"Camera not found at /dev/video{camera_index}",
            error_code="CAMERA_NOT_FOUND",
            details={
                "camera_index": camera_index,
                "suggestion": "Check camera connection and device index"
            }
        )


class CameraInitError(CameraError):
    """Camera initialization failed"""
    def __init__(self, camera_index, reason=None):
        super().__init__(
            message=f"Failed to initialize camera at /dev/video{camera_index}",
            error_code="CAMERA_INIT_FAILED",
            details={
                "camera_index": camera_index,
                "reason": reason,
                "suggestion": "Check camera permissions and ensure no other app is using it"
            }
        )


class FrameReaderBusyError(CameraError):
    """A stopped frame reader has not exited yet"""
    def __init__(self, camera_index):
        super().__init__(
            message=f"Frame reader for /dev/video{camera_index} is still running",
            error_code="FRAME_READER_BUSY",
            details={
                "camera_index": camera_index,
                "suggestion": "Wait for the frame callback to return before restarting"
            }
        )


class FrameCaptureError(CameraError):
    """Failed to read a frame"""
    def __init__(self):
        super().__init__(
            message="Failed to capture frame from camera",
            error_code="FRAME_CAPTURE_FAILED",
            details={
                "suggestion": "Check camera connection or restart the camera"
            }
        )


class ConversionError(DocFrameError):
    """Frame could not be converted into the localizer's input format"""
    def __init__(self, pixel_format, reason=None):
        super().__init__(
            message=f"Failed to convert frame with pixel format '{pixel_format}'",
            error_code="FRAME_CONVERSION_FAILED",
            details={
                "pixel_format": pixel_format,
                "reason": reason,
            }
        )


# Layer 2 Errors - Detection
class DetectorUnavailableError(DocFrameError):
    """Localizer is not loaded yet; the frame is skipped silently"""
    def __init__(self, reason=None):
        super().__init__(
            message="Object localizer is not ready",
            error_code="DETECTOR_UNAVAILABLE",
            details={"reason": reason}
        )


# Layer 4 Errors - Capture and crop
class CaptureError(DocFrameError):
    """Still capture or crop failed"""
    def __init__(self, reason, path=None):
        super().__init__(
            message=f"Capture failed: {reason}",
            error_code="CAPTURE_FAILED",
            details={
                "reason": str(reason),
                "path": path,
                "suggestion": "Hold the document steady and try again"
            }
        )


# Layer 5 Errors - Session
class SessionStateError(DocFrameError):
    """Session event not permitted in the current state"""
    def __init__(self, action, reason):
        super().__init__(
            message=f"Cannot {action}: {reason}",
            error_code="SESSION_STATE_INVALID",
            details={"action": action, "reason": reason}
        )


@dataclass(frozen=True)
class BoundsViolation:
    """
    Crop rectangle had to be clamped into the image.

    Never raised; recorded so callers can spot geometry drift between
    evaluation and capture.
    """
    requested: Dict[str, int] = field(default_factory=dict)
    clamped: Dict[str, int] = field(default_factory=dict)
    image_size: Optional[tuple] = None

    def to_dict(self):
        return {
            "error_code": "CROP_CLAMPED",
            "requested": dict(self.requested),
            "clamped": dict(self.clamped),
            "image_size": self.image_size,
        }


# Error response helpers
def error_response(error):
    """JSON-ready dict for an error, without logging."""
    if isinstance(error, DocFrameError):
        return error.to_dict()
    return {
        "success": False,
        "error": "An unexpected error occurred",
        "error_code": "UNEXPECTED_ERROR",
        "details": {
            "error_type": type(error).__name__,
            "error_message": str(error)
        }
    }


def handle_error(error, log_message=None):
    """
    Handle error consistently across the pipeline

    Args:
        error: Exception that occurred
        log_message: Optional custom log message

    Returns:
        dict: Error response for JSON serialization
    """
    if log_message:
        logger.error(log_message)

    if isinstance(error, DocFrameError):
        logger.error(f"{error.error_code}: {error.message}")
        if error.details:
            logger.debug(f"Error details: {error.details}")
    else:
        logger.error(f"Unexpected error: {error}")
        logger.exception("Full traceback:")

    return error_response(error)
