"""
Layer 4 - Capture Coordinate Mapper
Projects the guide rectangle of the triggering frame onto the saved
full-resolution photo.
"""
import logging
from typing import Optional

from ..error_handlers import BoundsViolation
from ..layer2_alignment.evaluator import CaptureContext
from ..layer2_alignment.geometry import CropRectangle, clamp_crop, rotate_rect, scale_rect

logger = logging.getLogger(__name__)


class CaptureCoordinateMapper:
    """
    Maps a CaptureContext onto the pixel space of the saved image.

    Out-of-bounds crops are clamped and reported as a BoundsViolation,
    never raised.
    """

    def __init__(self, rotate_180: bool = False, trace=None):
        """
        Initialize mapper.

        Args:
            rotate_180: Use a dedicated mapping for 180-degree sensors
                instead of the identity
            trace: Optional TraceSink receiving bounds violations
        """
        self.rotate_180 = rotate_180
        self.trace = trace
        self.last_violation: Optional[BoundsViolation] = None

    @property
    def last_clamped(self) -> bool:
        return self.last_violation is not None

    def map(self, context: CaptureContext, image_width: int, image_height: int) -> CropRectangle:
        """
        Compute the crop for the saved image.

        The rectangle is first rescaled from analysis space to the image
        resolution. When the analysis space is rotated and the saved image
        is still in sensor orientation (landscape), the inverse rotation is
        applied; an already upright image maps directly.

        Args:
            context: Snapshot taken when the triggering frame was evaluated
            image_width: Saved image width in pixels
            image_height: Saved image height in pixels

        Returns:
            CropRectangle: Crop inside the image
        """
        if image_width <= 0 or image_height <= 0:
            raise ValueError(f"invalid image size {image_width}x{image_height}")

        self.last_violation = None
        orientation = context.orientation
        analysis_w, analysis_h = context.analysis_size

        needs_rotation = (
            context.rotated
            and image_width > image_height
            and orientation in (90, 270)
        )
        if needs_rotation:
            upright_size = (image_height, image_width)
        else:
            upright_size = (image_width, image_height)

        rect = scale_rect(context.rect, (analysis_w, analysis_h), upright_size)
        x, y, w, h = rotate_rect(
            rect, orientation, needs_rotation,
            image_width, image_height, rotate_180=self.rotate_180
        )
        crop, clamped = clamp_crop(x, y, w, h, image_width, image_height)

        logger.debug(
            f"Crop for {image_width}x{image_height} (orientation {orientation}, "
            f"rotated={needs_rotation}): {crop.to_dict()}"
        )

        if clamped:
            violation = BoundsViolation(
                requested={'x': round(x), 'y': round(y), 'width': round(w), 'height': round(h)},
                clamped=crop.to_dict(),
                image_size=(image_width, image_height)
            )
            self.last_violation = violation
            logger.warning(f"Crop exceeded image bounds and was clamped: {violation.to_dict()}")
            if self.trace is not None:
                self.trace.bounds_violation(violation)

        return crop
