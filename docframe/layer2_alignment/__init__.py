"""
Layer 2 - Alignment
Coordinate geometry and the per-frame alignment verdict.
"""
from .geometry import (
    CropRectangle,
    FrameGeometry,
    Rect,
    analysis_space,
    clamp_crop,
    fit_guide,
    map_to_image_pixels,
    scale_rect,
    target_rect,
)
from .evaluator import (
    AlignmentConfig,
    AlignmentEvaluator,
    AlignmentStatus,
    AlignmentVerdict,
    CaptureContext,
    Direction,
    ToleranceMode,
)

__all__ = [
    'CropRectangle',
    'FrameGeometry',
    'Rect',
    'analysis_space',
    'clamp_crop',
    'fit_guide',
    'map_to_image_pixels',
    'scale_rect',
    'target_rect',
    'AlignmentConfig',
    'AlignmentEvaluator',
    'AlignmentStatus',
    'AlignmentVerdict',
    'CaptureContext',
    'Direction',
    'ToleranceMode',
]
