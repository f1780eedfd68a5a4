"""
Layer 1 - Object Localizer
YOLO-based single-document localizer reporting boxes in analysis space.
"""
import logging
from pathlib import Path
from typing import Optional

from ..error_handlers import DetectorUnavailableError
from .converter import to_analysis_image
from .frames import BoundingBox, DetectionResult, RawFrame

logger = logging.getLogger(__name__)


class YoloLocalizer:
    """
    Wraps an ultralytics YOLO detection model.

    The model is loaded on demand; until then detect() raises
    DetectorUnavailableError so the frame is skipped.
    """

    def __init__(
        self,
        model_path: str = "models/document_detector.pt",
        confidence_threshold: float = 0.5,
        device: Optional[str] = None
    ):
        self.model_path = model_path
        self.confidence_threshold = confidence_threshold
        self.device = device
        self.model = None
        self._model_loaded = False

    @property
    def is_ready(self) -> bool:
        return self._model_loaded

    def load_model(self) -> bool:
        """
        Load YOLO model for document detection.

        Returns:
            bool: True if model loaded successfully
        """
        if self._model_loaded:
            return True

        model_path = Path(self.model_path)
        if not model_path.exists():
            logger.error(f"Model not found: {model_path}")
            return False

        try:
            from ultralytics import YOLO
        except ImportError:
            logger.error("ultralytics package not installed. Run: pip install 'docframe[yolo]'")
            return False

        try:
            logger.info(f"Loading YOLO model from {model_path}")
            self.model = YOLO(str(model_path))
            self.model.fuse()
            self._model_loaded = True
            logger.info("YOLO model loaded and fused")
            return True
        except Exception as e:
            logger.error(f"Failed to load model: {e}")
            return False

    def detect(self, frame: RawFrame) -> DetectionResult:
        """
        Detect the most confident document box in a frame.

        Raises:
            DetectorUnavailableError: Model not loaded
            ConversionError: Frame buffer could not be converted
        """
        if not self._model_loaded or self.model is None:
            raise DetectorUnavailableError(reason="model not loaded")

        image = to_analysis_image(frame)

        kwargs = {'conf': self.confidence_threshold, 'verbose': False}
        if self.device is not None:
            kwargs['device'] = self.device
        results = self.model(image, **kwargs)

        best = None
        best_conf = 0.0
        for r in results:
            if r.boxes is None or len(r.boxes) == 0:
                continue
            for xyxy, conf in zip(r.boxes.xyxy.cpu().numpy(), r.boxes.conf.cpu().numpy()):
                if float(conf) > best_conf:
                    best_conf = float(conf)
                    best = BoundingBox(*(float(v) for v in xyxy[:4]))

        return DetectionResult(box=best, confidence=best_conf)

    def close(self):
        self.model = None
        self._model_loaded = False
