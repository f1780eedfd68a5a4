"""
Layer 1 - Frame Conversion
Turns raw camera buffers into the BGR images the localizer expects.
"""
import cv2
import numpy as np
import logging

from ..error_handlers import ConversionError
from .frames import RawFrame

logger = logging.getLogger(__name__)

# Planar/semi-planar YUV buffers carry 1.5 bytes per pixel
YUV_FORMATS = {
    'nv21': cv2.COLOR_YUV2BGR_NV21,
    'yuv420': cv2.COLOR_YUV2BGR_I420,
}


def _flat_bytes(buffer) -> np.ndarray:
    if isinstance(buffer, np.ndarray):
        return buffer.astype(np.uint8, copy=False).reshape(-1)
    return np.frombuffer(bytes(buffer), dtype=np.uint8)


def convert_frame(frame: RawFrame) -> np.ndarray:
    """
    Convert a raw frame into a BGR image.

    Args:
        frame: Raw frame from the frame source

    Returns:
        numpy.ndarray: BGR image of shape (height, width, 3)

    Raises:
        ConversionError: Unsupported pixel format or malformed buffer
    """
    fmt = (frame.pixel_format or '').lower()
    w, h = frame.width, frame.height

    if w <= 0 or h <= 0:
        raise ConversionError(fmt, reason=f"invalid frame size {w}x{h}")

    try:
        data = _flat_bytes(frame.buffer)
    except (TypeError, ValueError) as e:
        raise ConversionError(fmt, reason=str(e))

    if data.size == 0:
        raise ConversionError(fmt, reason="empty buffer")

    if fmt in YUV_FORMATS:
        expected = w * h * 3 // 2
        if data.size < expected:
            raise ConversionError(fmt, reason=f"buffer has {data.size} bytes, expected {expected}")
        yuv = data[:expected].reshape(h * 3 // 2, w)
        return cv2.cvtColor(yuv, YUV_FORMATS[fmt])

    if fmt == 'bgra8888':
        expected = w * h * 4
        if data.size < expected:
            raise ConversionError(fmt, reason=f"buffer has {data.size} bytes, expected {expected}")
        bgra = data[:expected].reshape(h, w, 4)
        return cv2.cvtColor(bgra, cv2.COLOR_BGRA2BGR)

    if fmt == 'bgr':
        expected = w * h * 3
        if data.size < expected:
            raise ConversionError(fmt, reason=f"buffer has {data.size} bytes, expected {expected}")
        return data[:expected].reshape(h, w, 3)

    logger.debug(f"Unsupported pixel format: {fmt}")
    raise ConversionError(fmt, reason="unsupported pixel format")


def to_analysis_image(frame: RawFrame) -> np.ndarray:
    """
    Convert a frame and rotate it into analysis space.

    Landscape buffers are turned upright using the sensor orientation so
    detector coordinates line up with the portrait UI.
    """
    image = convert_frame(frame)
    if frame.width > frame.height:
        # analysis space is always a quarter turn away from a landscape buffer
        if frame.sensor_orientation == 270:
            image = cv2.rotate(image, cv2.ROTATE_90_COUNTERCLOCKWISE)
        else:
            image = cv2.rotate(image, cv2.ROTATE_90_CLOCKWISE)
    return image
