"""
Layer 2 - Geometry
Pure coordinate mapping between analysis space, the on-screen preview and
the pixel space of the saved photo.

The evaluator and the crop mapper both go through these functions so the
rectangle used to judge alignment is exactly the one that gets cropped.
"""
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from ..layer1_capture.frames import BoundingBox

logger = logging.getLogger(__name__)

VALID_ORIENTATIONS = (0, 90, 180, 270)

# Guide may not be taller than this share of the display
DEFAULT_MAX_GUIDE_HEIGHT_RATIO = 0.45


@dataclass(frozen=True)
class FrameGeometry:
    """On-screen layout of the preview and the capture guide."""
    display_width: float
    display_height: float
    frame_width: float
    frame_height: float
    preview_aspect_ratio: Optional[float] = None  # height / width of the portrait preview
    sensor_orientation: int = 0
    frame_top: Optional[float] = None             # None = centred on the display

    def __post_init__(self):
        if self.sensor_orientation not in VALID_ORIENTATIONS:
            raise ValueError(
                f"sensor_orientation must be one of {VALID_ORIENTATIONS}, "
                f"got {self.sensor_orientation}"
            )
        if self.display_width <= 0 or self.display_height <= 0:
            raise ValueError("display dimensions must be positive")
        if self.frame_width <= 0 or self.frame_height <= 0:
            raise ValueError("frame dimensions must be positive")
        if self.preview_aspect_ratio is not None and self.preview_aspect_ratio <= 0:
            raise ValueError("preview_aspect_ratio must be positive")

    @property
    def fitted_preview_height(self) -> float:
        """Height of the preview once scaled to the display width."""
        if self.preview_aspect_ratio is None:
            return float(self.display_height)
        return self.display_width * self.preview_aspect_ratio

    @property
    def vertical_offset(self) -> float:
        """Letterbox offset between preview and display (positive = preview overflows)."""
        return (self.fitted_preview_height - self.display_height) / 2

    @property
    def frame_top_on_screen(self) -> float:
        if self.frame_top is None:
            return (self.display_height - self.frame_height) / 2
        return float(self.frame_top)


@dataclass(frozen=True)
class Rect:
    """Axis-aligned rectangle in analysis space."""
    left: float
    top: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.left + self.width

    @property
    def bottom(self) -> float:
        return self.top + self.height

    @property
    def area(self) -> float:
        return self.width * self.height

    def as_box(self) -> BoundingBox:
        return BoundingBox(self.left, self.top, self.right, self.bottom)


@dataclass(frozen=True)
class CropRectangle:
    """Integer crop in the saved image's own pixel space."""
    x: int
    y: int
    width: int
    height: int

    def to_dict(self):
        return {'x': self.x, 'y': self.y, 'width': self.width, 'height': self.height}


def analysis_space(buffer_width: int, buffer_height: int) -> Tuple[int, int, bool]:
    """
    Resolve the detector's coordinate space for a portrait UI.

    A landscape buffer is reported by the detector rotated by 90 degrees,
    so its dimensions are swapped.

    Returns:
        Tuple of (analysis_width, analysis_height, rotated)
    """
    if buffer_width > buffer_height:
        return buffer_height, buffer_width, True
    return buffer_width, buffer_height, False


def fit_guide(
    frame_width: float,
    frame_height: float,
    display_width: float,
    display_height: float,
    max_height_ratio: float = DEFAULT_MAX_GUIDE_HEIGHT_RATIO
) -> Tuple[float, float]:
    """Cap a requested guide size to the display width and a share of its height."""
    max_height = max_height_ratio * display_height
    return min(frame_width, display_width), min(frame_height, max_height)


def target_rect(geometry: FrameGeometry, analysis_width: int, analysis_height: int) -> Rect:
    """
    Compute the capture-guide rectangle in analysis-space coordinates.

    The guide's vertical position is measured on the letterbox-corrected
    preview, not on the display, so a preview taller than the screen
    shifts the rectangle down by the hidden overflow.

    Args:
        geometry: Current on-screen layout
        analysis_width: Width of the detector's coordinate space
        analysis_height: Height of the detector's coordinate space

    Returns:
        Rect: Horizontally centred guide rectangle
    """
    fitted = geometry.fitted_preview_height
    top_on_preview = geometry.frame_top_on_screen + geometry.vertical_offset

    width = round(geometry.frame_width / geometry.display_width * analysis_width)
    height = round(geometry.frame_height / fitted * analysis_height)
    left = (analysis_width - width) // 2
    top = round(top_on_preview / fitted * analysis_height)

    return Rect(left=left, top=top, width=width, height=height)


def scale_rect(rect: Rect, from_size: Tuple[float, float], to_size: Tuple[float, float]) -> Rect:
    """Rescale a rectangle between two spaces sharing the same axes."""
    sx = to_size[0] / from_size[0]
    sy = to_size[1] / from_size[1]
    return Rect(
        left=rect.left * sx,
        top=rect.top * sy,
        width=rect.width * sx,
        height=rect.height * sy
    )


def clamp_crop(
    x: float,
    y: float,
    width: float,
    height: float,
    image_width: int,
    image_height: int
) -> Tuple[CropRectangle, bool]:
    """
    Clamp a crop into [0, image_width] x [0, image_height].

    Returns:
        Tuple of (crop, clamped) where clamped reports whether anything moved
    """
    x0 = int(round(x))
    y0 = int(round(y))
    x1 = int(round(x + width))
    y1 = int(round(y + height))

    cx0 = min(max(x0, 0), image_width)
    cy0 = min(max(y0, 0), image_height)
    cx1 = min(max(x1, cx0), image_width)
    cy1 = min(max(y1, cy0), image_height)

    crop = CropRectangle(x=cx0, y=cy0, width=cx1 - cx0, height=cy1 - cy0)
    clamped = (cx0, cy0, cx1, cy1) != (x0, y0, x1, y1)
    return crop, clamped


def rotate_rect(
    rect: Rect,
    sensor_orientation: int,
    rotated_buffer: bool,
    image_width: int,
    image_height: int,
    rotate_180: bool = False
) -> Tuple[float, float, float, float]:
    """Undo the sensor rotation; returns unclamped (x, y, w, h) in image axes."""
    rx, ry, rw, rh = rect.left, rect.top, rect.width, rect.height

    if rotated_buffer and sensor_orientation == 90:
        return ry, image_height - rx - rw, rh, rw
    if rotated_buffer and sensor_orientation == 270:
        return image_width - ry - rh, rx, rh, rw
    if rotate_180 and sensor_orientation == 180:
        return image_width - rx - rw, image_height - ry - rh, rw, rh
    return rx, ry, rw, rh


def map_to_image_pixels(
    rect: Rect,
    sensor_orientation: int,
    rotated_buffer: bool,
    image_width: int,
    image_height: int,
    rotate_180: bool = False
) -> CropRectangle:
    """
    Map an analysis-space rectangle onto the saved image's pixels.

    90 and 270 degree sensors get an explicit inverse rotation when the
    buffer was rotated; 0 and 180 map as identity unless rotate_180 is set.
    The result is always clamped into the image.

    Args:
        rect: Rectangle produced by target_rect (already at image scale)
        sensor_orientation: 0, 90, 180 or 270
        rotated_buffer: Whether analysis space is the buffer rotated by 90 degrees
        image_width: Saved image width in pixels
        image_height: Saved image height in pixels
        rotate_180: Apply a dedicated mapping for 180-degree sensors

    Returns:
        CropRectangle: Crop fully inside the image
    """
    x, y, w, h = rotate_rect(
        rect, sensor_orientation, rotated_buffer,
        image_width, image_height, rotate_180=rotate_180
    )
    crop, _ = clamp_crop(x, y, w, h, image_width, image_height)
    return crop
