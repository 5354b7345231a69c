"""
Caller-side helpers around the rectification core.

A typical caller crops the detected box out of the frame, turns portrait
crops into landscape, tries perspective correction on the crop and keeps
the plain crop when correction fails. These helpers make that fallback an
explicit caller decision; ``correct`` itself never substitutes output.
"""

import logging
import math
from dataclasses import dataclass
from typing import Optional

import numpy as np

from src.common.types import PixelBuffer, Region
from src.rectification.config_loader import RectificationConfig
from src.rectification.errors import DegenerateRegionError, InvalidInputError
from src.rectification.processor import ImageInput, correct
from src.rectification.types import CorrectionResult

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FallbackOutcome:
    """
    Result of correct_or_crop.

    Attributes:
        image: Rectified image, the plain crop, or None if both failed.
        result: The rectification result (always kept for diagnostics).
        used_fallback: True when ``image`` is the plain crop.
    """

    image: Optional[PixelBuffer]
    result: CorrectionResult
    used_fallback: bool


def crop_region(image: PixelBuffer, region: Region) -> PixelBuffer:
    """
    Crop the axis-aligned bounding box of a region out of an image.

    The box is expanded to whole pixels and clipped to the image.

    Raises:
        InvalidInputError: If the region lies entirely outside the image.
        DegenerateRegionError: If nothing is left after clipping.
    """
    x_min, y_min, x_max, y_max = region.bounding_box()
    if x_max < 0 or y_max < 0 or x_min > image.width or y_min > image.height:
        raise InvalidInputError("Region does not overlap the image")

    left = max(int(math.floor(x_min)), 0)
    top = max(int(math.floor(y_min)), 0)
    right = min(int(math.ceil(x_max)), image.width)
    bottom = min(int(math.ceil(y_max)), image.height)

    if right <= left or bottom <= top:
        raise DegenerateRegionError(
            f"Crop ({left}, {top}, {right}, {bottom}) is empty"
        )

    return PixelBuffer(data=image.to_numpy()[top:bottom, left:right].copy())


def rotate_to_landscape(image: PixelBuffer) -> PixelBuffer:
    """Rotate a portrait image 90 degrees clockwise; landscape passes through."""
    if image.height <= image.width:
        return image
    rotated = np.rot90(image.to_numpy(), k=-1)
    return PixelBuffer(data=np.ascontiguousarray(rotated))


def correct_or_crop(
    image: ImageInput,
    region: Region,
    config: Optional[RectificationConfig] = None,
) -> FallbackOutcome:
    """
    Try perspective correction and fall back to the plain crop on failure.

    Args:
        image: Decoded source image.
        region: Region around the object.
        config: Optional rectification configuration.

    Returns:
        FallbackOutcome with the image to use and the correction result.
    """
    result = correct(image, region, config)
    if result.is_success():
        return FallbackOutcome(image=result.image, result=result, used_fallback=False)

    logger.warning(
        f"Perspective correction failed ({result.get_error_message()}), "
        "using the cropped region instead"
    )
    try:
        buffer = image if isinstance(image, PixelBuffer) else PixelBuffer(data=image)
        cropped = crop_region(buffer, region)
    except ValueError as e:
        logger.error(f"Fallback crop failed: {e}")
        return FallbackOutcome(image=None, result=result, used_fallback=True)

    return FallbackOutcome(image=cropped, result=result, used_fallback=True)
