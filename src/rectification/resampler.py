"""
Resampler for the Rectification module.

Warps the source image through the solved homography into a new pixel
buffer. Every destination pixel centre is pulled back through the inverse
homography and sampled with bilinear interpolation (cv2.remap).

Technical Note:
    Continuous coordinates put pixel (i, j) on the square [j, j+1] x
    [i, i+1], so its centre is (j + 0.5, i + 0.5) and a continuous source
    position (x, y) samples array index (x - 0.5, y - 0.5). Indices within
    ``clamp_tolerance`` of the sample grid are clamped onto it; anything
    farther out gets ``border_fill``. Because every index is clamped before
    sampling, no read ever leaves the source array.
"""

import logging
from typing import Optional, Tuple

import cv2
import numpy as np

from src.common.types import PixelBuffer
from src.rectification.config_loader import ResamplingConfig
from src.rectification.errors import (
    DegenerateRegionError,
    InvalidInputError,
    OutputTooLargeError,
    SingularTransformError,
)

logger = logging.getLogger(__name__)

INTERPOLATION_FLAGS = {
    "linear": cv2.INTER_LINEAR,
    "nearest": cv2.INTER_NEAREST,
    "cubic": cv2.INTER_CUBIC,
    "lanczos": cv2.INTER_LANCZOS4,
}

# Neighbourhood radius each interpolation reads around a sample
_KERNEL_RADIUS = {"linear": 1, "nearest": 1, "cubic": 2, "lanczos": 4}

# cv2.remap requires every image side to stay below SHRT_MAX
CV_MAX_SIDE = 32767
TILE_SIZE = 1024


def _border_pixel(fill, channels: int, dtype: np.dtype) -> np.ndarray:
    """Expand the configured border fill to one value per channel."""
    values = np.atleast_1d(np.asarray(fill, dtype=np.float64))
    if values.size == 1:
        values = np.repeat(values, channels)
    if values.size != channels:
        raise InvalidInputError(
            f"border_fill has {values.size} values for a {channels}-channel image"
        )
    if np.issubdtype(dtype, np.integer):
        info = np.iinfo(dtype)
        values = np.clip(np.round(values), info.min, info.max)
    return values.astype(dtype)


def _invert(homography: np.ndarray) -> np.ndarray:
    matrix = np.asarray(homography, dtype=np.float64)
    if matrix.shape != (3, 3) or not np.all(np.isfinite(matrix)):
        raise SingularTransformError(
            f"Expected a finite 3x3 homography, got {matrix.shape}"
        )
    try:
        inverse = np.linalg.inv(matrix)
    except np.linalg.LinAlgError as e:
        raise SingularTransformError(f"Homography is not invertible: {e}") from e
    if not np.all(np.isfinite(inverse)):
        raise SingularTransformError("Homography inverse is not finite")
    return inverse


def source_coordinates(
    inverse: np.ndarray, rows: Tuple[int, int], cols: Tuple[int, int]
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Map destination pixel centres back to source sample indices.

    Args:
        inverse: Inverse homography (destination -> source).
        rows: Half-open destination row range [start, stop).
        cols: Half-open destination column range [start, stop).

    Returns:
        Tuple (map_x, map_y, valid) of float64 index arrays and a mask of
        destination pixels whose mapping is finite and in front of the
        camera.
    """
    xs = np.arange(cols[0], cols[1], dtype=np.float64) + 0.5
    ys = np.arange(rows[0], rows[1], dtype=np.float64) + 0.5
    grid_x, grid_y = np.meshgrid(xs, ys)

    den = inverse[2, 0] * grid_x + inverse[2, 1] * grid_y + inverse[2, 2]
    num_x = inverse[0, 0] * grid_x + inverse[0, 1] * grid_y + inverse[0, 2]
    num_y = inverse[1, 0] * grid_x + inverse[1, 1] * grid_y + inverse[1, 2]

    # Destination origin maps to a real corner, so its denominator sign
    # is the sign of points in front of the camera
    front = np.sign(inverse[2, 2]) if inverse[2, 2] != 0 else 1.0
    with np.errstate(divide="ignore", invalid="ignore"):
        map_x = num_x / den - 0.5
        map_y = num_y / den - 0.5
    valid = (den * front > 0) & np.isfinite(map_x) & np.isfinite(map_y)

    return map_x, map_y, valid


def warp(
    source: PixelBuffer,
    homography: np.ndarray,
    output_width: int,
    output_height: int,
    config: Optional[ResamplingConfig] = None,
) -> PixelBuffer:
    """
    Warp the source image through a homography into a new buffer.

    Args:
        source: Source pixel buffer.
        homography: 3x3 matrix mapping source coordinates to destination
            coordinates.
        output_width: Destination width in pixels.
        output_height: Destination height in pixels.
        config: Resampling settings; defaults are used if None.

    Returns:
        New PixelBuffer of shape (output_height, output_width[, C]) with
        the source's dtype and channel count.

    Raises:
        DegenerateRegionError: If the output size is not positive.
        OutputTooLargeError: If the output exceeds max_output_pixels.
        SingularTransformError: If the homography cannot be inverted.
        InvalidInputError: If border_fill does not match the channels or
            the source is too large for the sampler.

    Example:
        >>> solution = solve(corners)
        >>> out = warp(buffer, solution.homography,
        ...            solution.output_width, solution.output_height)
    """
    config = config or ResamplingConfig()

    if output_width <= 0 or output_height <= 0:
        raise DegenerateRegionError(
            f"Output dimensions {output_width}x{output_height} are not positive"
        )

    pixel_count = int(output_width) * int(output_height)
    if pixel_count > config.max_output_pixels:
        logger.warning(
            f"Refusing {output_width}x{output_height} output: "
            f"{pixel_count} > {config.max_output_pixels} pixels"
        )
        raise OutputTooLargeError(
            f"Output {output_width}x{output_height} ({pixel_count} px) exceeds "
            f"limit of {config.max_output_pixels} px"
        )

    inverse = _invert(homography)
    src = source.to_numpy()
    border = _border_pixel(config.border_fill, source.channels, src.dtype)
    flag = INTERPOLATION_FLAGS[config.interpolation]
    pad = _KERNEL_RADIUS[config.interpolation]
    tol = config.clamp_tolerance
    max_x = source.width - 1
    max_y = source.height - 1

    out_shape = (output_height, output_width) + src.shape[2:]
    output = np.empty(out_shape, dtype=src.dtype)
    filled = 0

    for row in range(0, output_height, TILE_SIZE):
        rows = (row, min(row + TILE_SIZE, output_height))
        for col in range(0, output_width, TILE_SIZE):
            cols = (col, min(col + TILE_SIZE, output_width))
            tile = output[rows[0]:rows[1], cols[0]:cols[1]]

            map_x, map_y, valid = source_coordinates(inverse, rows, cols)
            with np.errstate(invalid="ignore"):
                inside = (
                    valid
                    & (map_x >= -tol)
                    & (map_x <= max_x + tol)
                    & (map_y >= -tol)
                    & (map_y <= max_y + tol)
                )

            tile[...] = border
            filled += int(inside.size - np.count_nonzero(inside))
            if not inside.any():
                continue

            map_x = np.clip(np.where(inside, map_x, 0.0), 0, max_x)
            map_y = np.clip(np.where(inside, map_y, 0.0), 0, max_y)

            # Only the source window this tile reads is handed to OpenCV
            x0 = max(int(np.floor(map_x[inside].min())) - pad, 0)
            x1 = min(int(np.ceil(map_x[inside].max())) + pad, max_x) + 1
            y0 = max(int(np.floor(map_y[inside].min())) - pad, 0)
            y1 = min(int(np.ceil(map_y[inside].max())) + pad, max_y) + 1
            if x1 - x0 >= CV_MAX_SIDE or y1 - y0 >= CV_MAX_SIDE:
                raise InvalidInputError(
                    f"Source window {x1 - x0}x{y1 - y0} exceeds the sampler "
                    f"limit of {CV_MAX_SIDE - 1} px per side"
                )
            window = src[y0:y1, x0:x1].copy()

            sampled = cv2.remap(
                window,
                (map_x - x0).astype(np.float32),
                (map_y - y0).astype(np.float32),
                interpolation=flag,
                borderMode=cv2.BORDER_REPLICATE,
            )
            if sampled.ndim < tile.ndim:
                sampled = sampled[..., np.newaxis]
            tile[inside] = sampled[inside]

    logger.debug(
        f"Warped {source.width}x{source.height} -> {output_width}x{output_height}, "
        f"{filled} border pixels"
    )

    return PixelBuffer(data=output)
