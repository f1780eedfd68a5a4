"""
Layer 1 - Capture
Camera frames, frame conversion, still capture and the object localizer.
"""
from .frames import (
    BoundingBox,
    DetectionResult,
    FrameSource,
    FullResImage,
    ObjectLocalizer,
    RawFrame,
    StillCapture,
)
from .converter import convert_frame, to_analysis_image
from .camera import CameraFrameSource, CameraStillCapture
from .localizer import YoloLocalizer

__all__ = [
    'BoundingBox',
    'DetectionResult',
    'FrameSource',
    'FullResImage',
    'ObjectLocalizer',
    'RawFrame',
    'StillCapture',
    'convert_frame',
    'to_analysis_image',
    'CameraFrameSource',
    'CameraStillCapture',
    'YoloLocalizer',
]
