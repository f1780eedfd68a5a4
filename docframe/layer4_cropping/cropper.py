"""
Layer 4 - Image Cropper
Cuts the mapped rectangle out of the saved photo and writes it losslessly.
"""
import cv2
import logging
from pathlib import Path

from ..error_handlers import CaptureError
from ..layer1_capture.frames import FullResImage
from ..layer2_alignment.geometry import CropRectangle

logger = logging.getLogger(__name__)


class ImageCropper:
    """Crops saved stills with OpenCV and stores the result as PNG."""

    def __init__(self, suffix: str = "_cropped", extension: str = ".png"):
        self.suffix = suffix
        self.extension = extension

    def output_path(self, source_path: str) -> Path:
        """<dir>/<stem>_cropped.png next to the source image."""
        src = Path(source_path)
        return src.with_name(f"{src.stem}{self.suffix}{self.extension}")

    def crop(self, image: FullResImage, crop: CropRectangle) -> str:
        """
        Crop a saved image and write the result.

        Args:
            image: Saved full-resolution still
            crop: Rectangle in the image's pixel space

        Returns:
            str: Path of the cropped image

        Raises:
            CaptureError: If the image cannot be read or decodes to a size other
                than the reported one, if the crop is empty, or if the result
                cannot be written
        """
        data = cv2.imread(image.path, cv2.IMREAD_COLOR)
        if data is None:
            raise CaptureError("could not read captured image", path=image.path)

        # the crop was mapped against the reported size
        h, w = data.shape[:2]
        if (w, h) != (image.width, image.height):
            raise CaptureError(
                f"decoded size {w}x{h} differs from reported {image.width}x{image.height}",
                path=image.path
            )

        cropped = data[crop.y:crop.y + crop.height, crop.x:crop.x + crop.width]
        if cropped.size == 0:
            raise CaptureError(f"empty crop {crop.to_dict()}", path=image.path)

        out_path = self.output_path(image.path)
        if not cv2.imwrite(str(out_path), cropped):
            raise CaptureError("could not write cropped image", path=str(out_path))

        logger.info(f"Cropped image saved: {out_path} ({cropped.shape[1]}x{cropped.shape[0]})")
        return str(out_path)
