"""
Configuration
Dataclass defaults with DOCFRAME_* environment overrides.
"""
import logging
import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from .layer2_alignment.evaluator import AlignmentConfig, ToleranceMode

logger = logging.getLogger(__name__)

ENV_PREFIX = "DOCFRAME_"

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_DATEFMT = '%Y-%m-%d %H:%M:%S'


def configure_logging(level="INFO"):
    """Apply the standard log format to the root logger."""
    logging.basicConfig(
        level=getattr(logging, str(level).upper(), logging.INFO),
        format=LOG_FORMAT,
        datefmt=LOG_DATEFMT
    )


@dataclass
class CameraConfig:
    """Camera and still-capture settings."""
    camera_index: int = 0
    width: int = 1920
    height: int = 1080
    fps: int = 30
    sensor_orientation: int = 90
    output_dir: str = "Logs/captures"

    def as_handler_config(self) -> dict:
        return {
            'width': self.width,
            'height': self.height,
            'fps': self.fps,
            'sensor_orientation': self.sensor_orientation,
        }


@dataclass
class DetectorConfig:
    """Object localizer settings."""
    model_path: str = "models/document_detector.pt"
    confidence_threshold: float = 0.5
    device: Optional[str] = None


@dataclass
class FlowConfig:
    """Configuration for the capture flow."""
    alignment: AlignmentConfig = field(default_factory=AlignmentConfig)
    camera: CameraConfig = field(default_factory=CameraConfig)
    detector: DetectorConfig = field(default_factory=DetectorConfig)

    # Auto-capture
    auto_capture: bool = True
    stabilization_window: float = 1.0   # seconds of continuous alignment

    # Session
    require_both_sides: bool = True
    two_sided: bool = True
    clear_on_save: bool = False

    # Capture
    release_camera_after_capture: bool = False
    rotate_180: bool = False
    max_guide_height_ratio: float = 0.45

    log_level: str = "INFO"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "FlowConfig":
        """
        Build a config from DOCFRAME_* environment variables.

        Unset variables keep their defaults; malformed values raise ValueError.
        """
        env = os.environ if environ is None else environ

        def get(name, cast, default):
            raw = env.get(ENV_PREFIX + name)
            if raw is None or raw == "":
                return default
            try:
                return cast(raw)
            except ValueError:
                raise ValueError(f"Invalid value for {ENV_PREFIX}{name}: {raw!r}")

        defaults = cls()
        alignment = AlignmentConfig(
            min_area_ratio=get('MIN_AREA_RATIO', float, defaults.alignment.min_area_ratio),
            max_area_ratio=get('MAX_AREA_RATIO', float, defaults.alignment.max_area_ratio),
            edge_tolerance=get('EDGE_TOLERANCE', float, defaults.alignment.edge_tolerance),
            tolerance_mode=get('TOLERANCE_MODE', ToleranceMode, defaults.alignment.tolerance_mode),
        )
        camera = CameraConfig(
            camera_index=get('CAMERA_INDEX', int, defaults.camera.camera_index),
            width=get('CAMERA_WIDTH', int, defaults.camera.width),
            height=get('CAMERA_HEIGHT', int, defaults.camera.height),
            fps=get('CAMERA_FPS', int, defaults.camera.fps),
            sensor_orientation=get('SENSOR_ORIENTATION', int, defaults.camera.sensor_orientation),
            output_dir=get('OUTPUT_DIR', str, defaults.camera.output_dir),
        )
        detector = DetectorConfig(
            model_path=get('MODEL_PATH', str, defaults.detector.model_path),
            confidence_threshold=get('CONFIDENCE', float, defaults.detector.confidence_threshold),
            device=get('DEVICE', str, defaults.detector.device),
        )

        config = cls(
            alignment=alignment,
            camera=camera,
            detector=detector,
            auto_capture=get('AUTO_CAPTURE', _parse_bool, defaults.auto_capture),
            stabilization_window=get('STABILIZATION_WINDOW', float, defaults.stabilization_window),
            require_both_sides=get('REQUIRE_BOTH_SIDES', _parse_bool, defaults.require_both_sides),
            two_sided=get('TWO_SIDED', _parse_bool, defaults.two_sided),
            clear_on_save=get('CLEAR_ON_SAVE', _parse_bool, defaults.clear_on_save),
            release_camera_after_capture=get(
                'RELEASE_CAMERA_AFTER_CAPTURE', _parse_bool, defaults.release_camera_after_capture
            ),
            rotate_180=get('ROTATE_180', _parse_bool, defaults.rotate_180),
            max_guide_height_ratio=get('MAX_GUIDE_HEIGHT_RATIO', float, defaults.max_guide_height_ratio),
            log_level=get('LOG_LEVEL', str, defaults.log_level),
        )
        logger.debug(f"Config from environment: {config}")
        return config


def _parse_bool(raw: str) -> bool:
    value = raw.strip().lower()
    if value in ('1', 'true', 'yes', 'on'):
        return True
    if value in ('0', 'false', 'no', 'off'):
        return False
    raise ValueError(raw)
