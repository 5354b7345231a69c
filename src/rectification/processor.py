"""
Main processor for the Rectification module.

Orchestrates the complete pipeline:
1. Geometry extraction (region -> ordered corners)
2. Transform solving (corners -> output size + homography)
3. Resampling (warp to the output rectangle)

Implements fail-fast strategy: stops at first failure. Every failure is
returned as a CorrectionResult; no exception leaves ``process``.
"""

import logging
from pathlib import Path
from typing import List, Optional, Sequence, Union

import numpy as np

from src.common.types import PixelBuffer, Region
from src.rectification.config_loader import RectificationConfig, load_config
from src.rectification.errors import InvalidInputError, RectificationError
from src.rectification.geometry_extractor import extract_corners
from src.rectification.resampler import warp
from src.rectification.transform_solver import solve
from src.rectification.types import (
    CornerSet,
    CorrectionResult,
    PipelineStage,
    TransformSolution,
)

logger = logging.getLogger(__name__)

ImageInput = Union[PixelBuffer, np.ndarray]
RegionInput = Union[Region, np.ndarray, Sequence[Sequence[float]]]


def _as_pixel_buffer(image: ImageInput) -> PixelBuffer:
    if isinstance(image, PixelBuffer):
        return image
    try:
        return PixelBuffer(data=image)
    except ValueError as e:
        raise InvalidInputError(f"Malformed image buffer: {e}") from e


def _as_region(region: RegionInput) -> Region:
    if isinstance(region, Region):
        return region
    try:
        return Region.from_points(region)
    except (TypeError, ValueError) as e:
        raise InvalidInputError(f"Malformed region: {e}") from e


class RectificationProcessor:
    """
    Main processor for perspective correction of a single image region.

    The processor only holds configuration, so one instance can serve
    concurrent requests from several threads.

    Example:
        >>> processor = RectificationProcessor()
        >>> image = cv2.imread("card.jpg")
        >>> result = processor.process(image, Region.from_rect(40, 30, 400, 250))
        >>> if result.is_success():
        ...     cv2.imwrite("card_flat.jpg", result.image.to_numpy())
    """

    def __init__(
        self,
        config: Optional[RectificationConfig] = None,
        config_path: Optional[Path] = None,
    ):
        """
        Initialize the rectification processor.

        Args:
            config: Pre-loaded configuration object. Takes precedence.
            config_path: Path to a config file, used when config is None.
                If both are None, built-in defaults are used.
        """
        if config is not None:
            self.config = config
            logger.debug("Using provided configuration")
        elif config_path is not None:
            self.config = load_config(config_path)
            logger.info(f"Loaded configuration from {config_path}")
        else:
            self.config = RectificationConfig()

    def process(self, image: ImageInput, region: RegionInput) -> CorrectionResult:
        """
        Execute the complete rectification pipeline.

        Pipeline stages (fail-fast):
        1. Extract ordered corners from the region
        2. Solve output size and homography
        3. Warp the source into the output rectangle

        Args:
            image: Decoded source image (PixelBuffer or numpy array).
            region: Region around the object, or 4 raw corner points.

        Returns:
            CorrectionResult holding either the rectified image or the
            error classification of the first failing stage.
        """
        stages: List[PipelineStage] = [PipelineStage.RECEIVED]
        corners: Optional[CornerSet] = None
        solution: Optional[TransformSolution] = None

        def fail(error: RectificationError) -> CorrectionResult:
            logger.warning(
                f"Pipeline FAILED after {stages[-1].value}: "
                f"{error.kind.value} - {error.message}"
            )
            return CorrectionResult.failure(
                error.kind,
                error.message,
                stages=tuple(stages) + (PipelineStage.FAILED,),
                corners=corners,
                output_width=solution.output_width if solution else None,
                output_height=solution.output_height if solution else None,
            )

        try:
            buffer = _as_pixel_buffer(image)
            target = _as_region(region)
            expected = self.config.input.expected_channels
            if expected is not None and buffer.channels != expected:
                raise InvalidInputError(
                    f"Expected {expected}-channel image, got {buffer.channels}"
                )
        except RectificationError as e:
            return fail(e)

        logger.info(
            f"Starting rectification of {buffer.width}x{buffer.height} image, "
            f"{target.shape.value} region"
        )

        # Stage 1: Geometry Extraction
        logger.debug("[Stage 1/3] Geometry Extraction")
        try:
            corners = extract_corners(
                target,
                buffer.size,
                min_area=self.config.geometry.min_region_area,
            )
        except RectificationError as e:
            return fail(e)
        stages.append(PipelineStage.GEOMETRY_EXTRACTED)

        # Stage 2: Transform Solving
        logger.debug("[Stage 2/3] Transform Solving")
        try:
            solution = solve(corners, epsilon=self.config.transform.singularity_epsilon)
        except RectificationError as e:
            return fail(e)
        stages.append(PipelineStage.TRANSFORM_SOLVED)

        # Stage 3: Resampling
        logger.debug("[Stage 3/3] Resampling")
        try:
            rectified = warp(
                buffer,
                solution.homography,
                solution.output_width,
                solution.output_height,
                self.config.resampling,
            )
        except RectificationError as e:
            return fail(e)
        stages.append(PipelineStage.RESAMPLED)
        stages.append(PipelineStage.DONE)

        logger.info(
            f"Pipeline DONE - rectified to "
            f"{solution.output_width}x{solution.output_height}"
        )

        return CorrectionResult.success(
            rectified,
            message="Perspective corrected",
            stages=tuple(stages),
            corners=corners,
            output_width=solution.output_width,
            output_height=solution.output_height,
        )


def correct(
    image: ImageInput,
    region: RegionInput,
    config: Optional[RectificationConfig] = None,
) -> CorrectionResult:
    """
    Correct the perspective of the object inside ``region``.

    Stateless convenience function for one-shot processing; safe to call
    from several threads at once.

    Args:
        image: Decoded source image.
        region: Region around the object, or 4 raw corner points.
        config: Optional custom configuration. Uses defaults if None.

    Returns:
        CorrectionResult object.

    Example:
        >>> result = correct(image, [[120, 180], [450, 165], [470, 250], [100, 270]])
        >>> if result.is_success():
        ...     flat = result.image.to_numpy()
    """
    processor = RectificationProcessor(config=config)
    return processor.process(image, region)
