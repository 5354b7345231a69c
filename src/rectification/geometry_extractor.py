"""
Geometry extraction for the Rectification module.

Turns a caller region into four ordered corners inside the image bounds.
No edge or contour detection happens here: the corners are exactly the
(clipped) vertices the caller supplied.
"""

import logging
from typing import Optional, Tuple, Union

import cv2
import numpy as np

from src.common.types import Region, RegionShape
from src.rectification.errors import DegenerateRegionError, InvalidInputError
from src.rectification.types import CornerSet

logger = logging.getLogger(__name__)


def order_corners(pts: Union[np.ndarray, list]) -> np.ndarray:
    """
    Order 4 points consistently: Top-Left, Top-Right, Bottom-Right, Bottom-Left.

    Points are sorted by angle around their centroid. With the y axis
    pointing down, ascending angle walks the quadrilateral clockwise, so the
    resulting polygon is simple for any convex input. The cycle is then
    rotated so the first point is the one with the smallest x + y (ties go
    to the smaller y).

    Args:
        pts: Array of 4 points with shape (4, 2), each point [x, y].

    Returns:
        float64 array of shape (4, 2) in the order [TL, TR, BR, BL].

    Raises:
        ValueError: If input does not contain exactly 4 points.

    Example:
        >>> pts = np.array([[300, 150], [100, 200], [320, 400], [80, 380]])
        >>> order_corners(pts)[0]
        array([100., 200.])
    """
    pts = np.array(pts, dtype=np.float64)

    if pts.shape != (4, 2):
        raise ValueError(
            f"Expected exactly 4 points with shape (4, 2), got shape {pts.shape}"
        )

    centroid = pts.mean(axis=0)
    angles = np.arctan2(pts[:, 1] - centroid[1], pts[:, 0] - centroid[0])
    clockwise = pts[np.argsort(angles, kind="stable")]

    # lexsort sorts by the last key first
    sums = clockwise.sum(axis=1)
    first = int(np.lexsort((clockwise[:, 1], sums))[0])
    ordered = np.roll(clockwise, -first, axis=0)

    logger.debug(
        f"Ordered corners: TL={ordered[0]}, TR={ordered[1]}, "
        f"BR={ordered[2]}, BL={ordered[3]}"
    )

    return ordered


def polygon_area(pts: np.ndarray) -> float:
    """Absolute area of a simple polygon given its vertices in order."""
    x = pts[:, 0]
    y = pts[:, 1]
    return float(abs(np.dot(x, np.roll(y, -1)) - np.dot(y, np.roll(x, -1))) / 2.0)


def overlap_area(pts: np.ndarray, image_size: Tuple[int, int]) -> Optional[float]:
    """
    Area shared by the convex hull of the points and the image rectangle.

    Returns None when the hull itself has no area (point or line), since
    intersection areas say nothing about such shapes.
    """
    width, height = image_size
    hull = cv2.convexHull(np.asarray(pts, dtype=np.float32))
    hull_area = cv2.contourArea(hull, oriented=True)
    if hull_area == 0:
        return None

    bounds = np.array(
        [[0, 0], [width, 0], [width, height], [0, height]], dtype=np.float32
    )
    # intersectConvexConvex expects both polygons wound the same way
    if (cv2.contourArea(bounds, oriented=True) > 0) != (hull_area > 0):
        hull = hull[::-1].copy()

    area, _ = cv2.intersectConvexConvex(hull, bounds)
    return max(float(area), 0.0)


def clip_region(region: Region, image_size: Tuple[int, int]) -> np.ndarray:
    """
    Clip a region to the image bounds [0, width] x [0, height].

    Rectangles are intersected with the bounds. Rotated rectangles and
    quadrilaterals must share area with the image and then have each
    vertex clamped into the bounds.

    Args:
        region: Caller region.
        image_size: (width, height) of the source image.

    Returns:
        (4, 2) float64 array of clipped vertices (unordered).

    Raises:
        InvalidInputError: If the region shares no area with the image.
    """
    width, height = image_size
    x_min, y_min, x_max, y_max = region.bounding_box()

    if x_max < 0 or y_max < 0 or x_min > width or y_min > height:
        raise InvalidInputError(
            f"Region bounds ({x_min:.1f}, {y_min:.1f}, {x_max:.1f}, {y_max:.1f}) "
            f"do not overlap image bounds {width}x{height}"
        )

    if region.shape == RegionShape.RECTANGLE:
        left = min(max(x_min, 0.0), width)
        right = min(max(x_max, 0.0), width)
        top = min(max(y_min, 0.0), height)
        bottom = min(max(y_max, 0.0), height)
        return np.array(
            [[left, top], [right, top], [right, bottom], [left, bottom]],
            dtype=np.float64,
        )

    pts = region.to_numpy()
    overlap = overlap_area(pts, image_size)
    if overlap is not None and overlap <= 0:
        raise InvalidInputError(
            f"{region.shape.value} region shares no area with image bounds "
            f"{width}x{height}"
        )

    pts[:, 0] = np.clip(pts[:, 0], 0.0, width)
    pts[:, 1] = np.clip(pts[:, 1], 0.0, height)
    return pts


def extract_corners(
    region: Region, image_size: Tuple[int, int], min_area: float = 1e-6
) -> CornerSet:
    """
    Derive four ordered corners from a caller region.

    Args:
        region: Caller region (rectangle, rotated rectangle or quadrilateral).
        image_size: (width, height) of the source image.
        min_area: Clipped areas at or below this value are degenerate.

    Returns:
        CornerSet ordered TL, TR, BR, BL.

    Raises:
        InvalidInputError: If the region lies entirely outside the image.
        DegenerateRegionError: If the clipped region has (near-)zero area.

    Example:
        >>> corners = extract_corners(Region.from_rect(10, 20, 300, 200), (640, 480))
        >>> corners.top_left
        array([10., 20.])
    """
    width, height = image_size
    if width <= 0 or height <= 0:
        raise InvalidInputError(f"Invalid image size {width}x{height}")

    clipped = clip_region(region, image_size)
    ordered = order_corners(clipped)
    area = polygon_area(ordered)

    if area <= min_area:
        logger.warning(
            f"Region collapsed to area {area:.3g} after clipping to {width}x{height}"
        )
        raise DegenerateRegionError(
            f"Region has area {area:.3g} after clipping, at most {min_area:.3g}"
        )

    logger.debug(f"Extracted corners with area {area:.1f} from {region.shape.value}")

    return CornerSet(points=ordered)
