"""
Layer 5 - Session
Front/back capture session.
"""
from .session import CaptureSession, DocumentCaptureData, DocumentSide

__all__ = [
    'CaptureSession',
    'DocumentCaptureData',
    'DocumentSide',
]
