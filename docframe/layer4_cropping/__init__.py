"""
Layer 4 - Cropping
Maps the guide onto the saved photo and crops it.
"""
from .mapper import CaptureCoordinateMapper
from .cropper import ImageCropper

__all__ = [
    'CaptureCoordinateMapper',
    'ImageCropper',
]
