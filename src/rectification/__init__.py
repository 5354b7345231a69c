"""
Perspective Rectification Core

Turns the region around a photographed planar object (document, card,
licence plate) into a fronto-parallel rectangular image.

Pipeline stages:
1. Geometry extraction (region -> ordered corners)
2. Transform solving (corners -> output size + homography)
3. Resampling (bilinear warp into the output rectangle)
"""

from src.rectification.config_loader import (
    RectificationConfig,
    get_default_config,
    load_config,
)
from src.rectification.crop import correct_or_crop, crop_region, rotate_to_landscape
from src.rectification.errors import (
    DegenerateRegionError,
    InvalidInputError,
    OutputTooLargeError,
    RectificationError,
    SingularTransformError,
)
from src.rectification.geometry_extractor import extract_corners, order_corners
from src.rectification.processor import RectificationProcessor, correct
from src.rectification.resampler import warp
from src.rectification.transform_solver import (
    apply_homography,
    compute_homography,
    compute_output_size,
    solve,
)
from src.rectification.types import (
    CornerSet,
    CorrectionResult,
    CorrectionStatus,
    ErrorKind,
    PipelineStage,
    TransformSolution,
)

__all__ = [
    "RectificationProcessor",
    "correct",
    "correct_or_crop",
    "crop_region",
    "rotate_to_landscape",
    "extract_corners",
    "order_corners",
    "solve",
    "compute_homography",
    "compute_output_size",
    "apply_homography",
    "warp",
    "load_config",
    "get_default_config",
    "RectificationConfig",
    "CornerSet",
    "CorrectionResult",
    "CorrectionStatus",
    "ErrorKind",
    "PipelineStage",
    "TransformSolution",
    "RectificationError",
    "DegenerateRegionError",
    "SingularTransformError",
    "OutputTooLargeError",
    "InvalidInputError",
]
