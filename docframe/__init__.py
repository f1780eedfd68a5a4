"""
docframe
Guided document capture: alignment against an on-screen guide, debounced
auto-capture and pixel-exact cropping of the saved photo.
"""
from .config import CameraConfig, DetectorConfig, FlowConfig, configure_logging
from .error_handlers import (
    BoundsViolation,
    CaptureError,
    ConversionError,
    DetectorUnavailableError,
    DocFrameError,
    SessionStateError,
    error_response,
    handle_error,
)
from .events import (
    ErrorEvent,
    EventBus,
    SessionSavedEvent,
    SideCapturedEvent,
    TraceSink,
    VerdictEvent,
)
from .flow import DocumentCaptureFlow

__version__ = "1.0.0"

__all__ = [
    'CameraConfig',
    'DetectorConfig',
    'FlowConfig',
    'configure_logging',
    'BoundsViolation',
    'CaptureError',
    'ConversionError',
    'DetectorUnavailableError',
    'DocFrameError',
    'SessionStateError',
    'error_response',
    'handle_error',
    'ErrorEvent',
    'EventBus',
    'SessionSavedEvent',
    'SideCapturedEvent',
    'TraceSink',
    'VerdictEvent',
    'DocumentCaptureFlow',
]
