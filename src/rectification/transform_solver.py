"""
Transform solver for the Rectification module.

Computes the destination rectangle size from the corner geometry and the
3x3 homography mapping the corners onto that rectangle.

Technical Note:
    With four correspondences the projective model (8 degrees of freedom)
    is exactly determined. Each correspondence (x, y) -> (u, v) gives two
    rows of the linear system A h = b:

        [x, y, 1, 0, 0, 0, -u*x, -u*y] h = u
        [0, 0, 0, x, y, 1, -v*x, -v*y] h = v

    with h the first eight entries of the normalised H (its H[2, 2] fixed to
    1). Both point sets are standardised per axis first so the singularity
    test depends on neither image scale nor the object's aspect ratio. The
    standardised origin is the corner centroid, which a convex quadrilateral
    always maps to a finite point.

    The de-normalised H[2, 2] is zero when the image origin lies on the
    vanishing line of the mapping. Such a homography is valid, so it is
    scaled to unit Frobenius norm instead of to H[2, 2] == 1.
"""

import logging
import math
from itertools import combinations
from typing import Tuple, Union

import numpy as np

from src.rectification.errors import DegenerateRegionError, SingularTransformError
from src.rectification.types import CornerSet, TransformSolution

logger = logging.getLogger(__name__)

# Relative size below which H[2, 2] is treated as zero
_SCALE_TOLERANCE = 1e-10


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def compute_output_size(corners: CornerSet) -> Tuple[int, int]:
    """
    Calculate the rectified output size from the corner geometry.

    Uses the longer of each pair of opposite edges so no content is
    downsampled, which keeps the object's approximate aspect ratio.

    Args:
        corners: Ordered corners TL, TR, BR, BL.

    Returns:
        Tuple of (width, height) in pixels.

    Raises:
        DegenerateRegionError: If either dimension rounds to zero.

    Example:
        >>> corners = CornerSet(np.array([[0, 0], [300, 0], [300, 100], [0, 100]]))
        >>> compute_output_size(corners)
        (300, 100)
    """
    top, right, bottom, left = corners.edge_lengths()

    width = _round_half_up(max(top, bottom))
    height = _round_half_up(max(left, right))

    logger.debug(
        f"Edge lengths - Top: {top:.1f}, Right: {right:.1f}, "
        f"Bottom: {bottom:.1f}, Left: {left:.1f} -> {width}x{height}"
    )

    if width <= 0 or height <= 0:
        raise DegenerateRegionError(
            f"Output dimensions {width}x{height} are not positive"
        )

    return width, height


def _normalization_transform(pts: np.ndarray) -> np.ndarray:
    """Affine map giving the points zero mean and unit spread on each axis."""
    centroid = pts.mean(axis=0)
    spread = pts.std(axis=0)
    if not np.all(np.isfinite(spread)) or np.any(spread <= 0):
        raise SingularTransformError(
            "Corner points are collinear along an image axis"
        )
    sx, sy = 1.0 / spread
    return np.array(
        [
            [sx, 0.0, -sx * centroid[0]],
            [0.0, sy, -sy * centroid[1]],
            [0.0, 0.0, 1.0],
        ]
    )


def apply_homography(
    homography: np.ndarray, points: Union[np.ndarray, list]
) -> np.ndarray:
    """
    Apply a homography to an array of (x, y) points.

    Args:
        homography: 3x3 matrix.
        points: Array-like of shape (N, 2).

    Returns:
        float64 array of shape (N, 2) with the projected points.
    """
    pts = np.asarray(points, dtype=np.float64).reshape(-1, 2)
    homog = np.hstack([pts, np.ones((pts.shape[0], 1))])
    projected = homog @ np.asarray(homography, dtype=np.float64).T
    return projected[:, :2] / projected[:, 2:3]


def check_general_position(pts: np.ndarray, epsilon: float) -> None:
    """
    Reject corner cycles that admit no valid projective mapping.

    Args:
        pts: (4, 2) corners in winding order.
        epsilon: Minimum normalised triangle area for any three corners.

    Raises:
        SingularTransformError: If three corners are collinear or the
            cycle is not convex.
    """
    transform = _normalization_transform(pts)
    norm = apply_homography(transform, pts)

    for i, j, k in combinations(range(4), 3):
        a, b, c = norm[i], norm[j], norm[k]
        doubled_area = (b[0] - a[0]) * (c[1] - a[1]) - (b[1] - a[1]) * (c[0] - a[0])
        if abs(doubled_area) < epsilon:
            raise SingularTransformError(
                f"Corners {i}, {j}, {k} are collinear; no projective solution exists"
            )

    turns = []
    for i in range(4):
        v1 = norm[(i + 1) % 4] - norm[i]
        v2 = norm[(i + 2) % 4] - norm[(i + 1) % 4]
        turns.append(v1[0] * v2[1] - v1[1] * v2[0])

    if not (all(t > 0 for t in turns) or all(t < 0 for t in turns)):
        logger.warning(f"Non-convex corner cycle detected. Turns: {turns}")
        raise SingularTransformError(
            "Corners do not form a convex quadrilateral; "
            "the mapping would fold the image"
        )


def compute_homography(
    src: Union[np.ndarray, list], dst: Union[np.ndarray, list], epsilon: float = 1e-9
) -> np.ndarray:
    """
    Solve the homography mapping four source points onto four destination points.

    Args:
        src: (4, 2) source points.
        dst: (4, 2) destination points, same order as ``src``.
        epsilon: Minimum |det A| / prod(row norms) of the normalised system.

    Returns:
        3x3 float64 homography, scaled so H[2, 2] == 1, or to unit norm
            when H[2, 2] vanishes.

    Raises:
        SingularTransformError: If the system is singular or near-singular.
    """
    src = np.asarray(src, dtype=np.float64)
    dst = np.asarray(dst, dtype=np.float64)
    if src.shape != (4, 2) or dst.shape != (4, 2):
        raise ValueError(
            f"Expected (4, 2) point arrays, got {src.shape} and {dst.shape}"
        )

    t_src = _normalization_transform(src)
    t_dst = _normalization_transform(dst)
    src_n = apply_homography(t_src, src)
    dst_n = apply_homography(t_dst, dst)

    A = np.zeros((8, 8))
    b = np.zeros(8)
    for i, ((x, y), (u, v)) in enumerate(zip(src_n, dst_n)):
        A[2 * i] = [x, y, 1.0, 0.0, 0.0, 0.0, -u * x, -u * y]
        A[2 * i + 1] = [0.0, 0.0, 0.0, x, y, 1.0, -v * x, -v * y]
        b[2 * i] = u
        b[2 * i + 1] = v

    # Hadamard ratio: 1 for orthogonal rows, 0 for a singular system
    row_norms = np.linalg.norm(A, axis=1)
    ratio = abs(np.linalg.det(A)) / float(np.prod(row_norms))
    logger.debug(f"Normalised system determinant ratio: {ratio:.3e}")

    if not np.isfinite(ratio) or ratio < epsilon:
        raise SingularTransformError(
            f"Point correspondence is singular (determinant ratio {ratio:.3e} "
            f"< {epsilon:.1e})"
        )

    try:
        h = np.linalg.solve(A, b)
    except np.linalg.LinAlgError as e:
        raise SingularTransformError(f"Linear solve failed: {e}") from e

    H_n = np.append(h, 1.0).reshape(3, 3)
    H = np.linalg.inv(t_dst) @ H_n @ t_src

    norm = float(np.linalg.norm(H))
    if not np.all(np.isfinite(H)) or norm == 0.0:
        raise SingularTransformError("Homography is not finite")

    if abs(H[2, 2]) > _SCALE_TOLERANCE * norm:
        return H / H[2, 2]

    # Image origin on the vanishing line: keep the first source point in front
    w = H[2, 0] * src[0, 0] + H[2, 1] * src[0, 1] + H[2, 2]
    logger.debug(f"H[2, 2] vanishes ({H[2, 2]:.3e}), scaling by Frobenius norm")
    return H / math.copysign(norm, w)


def solve(corners: CornerSet, epsilon: float = 1e-9) -> TransformSolution:
    """
    Compute the destination size and the homography for a corner set.

    Checks run in order: general position (SingularTransform), output size
    (DegenerateRegion), then the linear solve (SingularTransform).

    Args:
        corners: Ordered corners TL, TR, BR, BL.
        epsilon: Singularity threshold.

    Returns:
        TransformSolution mapping the corners onto (0,0), (W,0), (W,H), (0,H).

    Raises:
        SingularTransformError: If no valid projective solution exists.
        DegenerateRegionError: If the output size rounds to zero.
    """
    src = corners.to_numpy()
    check_general_position(src, epsilon)

    width, height = compute_output_size(corners)

    dst = np.array(
        [[0, 0], [width, 0], [width, height], [0, height]],
        dtype=np.float64,
    )
    homography = compute_homography(src, dst, epsilon)

    logger.info(f"Solved homography for {width}x{height} output rectangle")

    return TransformSolution(
        homography=homography, output_width=width, output_height=height
    )
