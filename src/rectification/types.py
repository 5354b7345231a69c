"""
Data types and structures for the Rectification module.

Provides type-safe containers for corners, transform solutions and the
tagged result returned across the core boundary.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

import numpy as np

from src.common.types import PixelBuffer


class ErrorKind(Enum):
    """Exhaustive failure classification of the rectification core."""

    DEGENERATE_REGION = "DegenerateRegion"  # Zero area after clipping / empty output
    SINGULAR_TRANSFORM = "SingularTransform"  # No valid projective solution
    OUTPUT_TOO_LARGE = "OutputTooLarge"  # Output exceeds the pixel budget
    INVALID_INPUT = "InvalidInput"  # Malformed buffer or region outside image


class CorrectionStatus(Enum):
    """Pipeline outcome."""

    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"


class PipelineStage(Enum):
    """States walked by the orchestrator for a single request."""

    RECEIVED = "Received"
    GEOMETRY_EXTRACTED = "GeometryExtracted"
    TRANSFORM_SOLVED = "TransformSolved"
    RESAMPLED = "Resampled"
    DONE = "Done"
    FAILED = "Failed"


@dataclass(frozen=True)
class CornerSet:
    """
    Four corner points in the fixed winding order TL, TR, BR, BL.

    The winding is clockwise in image coordinates (y axis pointing down).
    Collinearity is not checked here; the transform solver rejects corner
    sets that admit no projective solution.

    Attributes:
        points: float64 array of shape (4, 2).
    """

    points: np.ndarray

    def __post_init__(self) -> None:
        pts = np.array(self.points, dtype=np.float64)
        if pts.shape != (4, 2):
            raise ValueError(
                f"CornerSet needs 4 points with shape (4, 2), got shape {pts.shape}"
            )
        if not np.all(np.isfinite(pts)):
            raise ValueError("CornerSet points must be finite")
        pts.flags.writeable = False
        object.__setattr__(self, "points", pts)

    @property
    def top_left(self) -> np.ndarray:
        return self.points[0]

    @property
    def top_right(self) -> np.ndarray:
        return self.points[1]

    @property
    def bottom_right(self) -> np.ndarray:
        return self.points[2]

    @property
    def bottom_left(self) -> np.ndarray:
        return self.points[3]

    def edge_lengths(self) -> Tuple[float, float, float, float]:
        """
        Calculate the length of all 4 edges.

        Returns:
            Tuple of (top_edge, right_edge, bottom_edge, left_edge) lengths.
        """
        tl, tr, br, bl = self.points
        return (
            float(np.linalg.norm(tr - tl)),
            float(np.linalg.norm(br - tr)),
            float(np.linalg.norm(br - bl)),
            float(np.linalg.norm(bl - tl)),
        )

    def area(self) -> float:
        """Absolute polygon area (shoelace formula)."""
        x = self.points[:, 0]
        y = self.points[:, 1]
        return float(abs(np.dot(x, np.roll(y, -1)) - np.dot(y, np.roll(x, -1))) / 2.0)

    def to_numpy(self) -> np.ndarray:
        return self.points.copy()

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, CornerSet):
            return NotImplemented
        return bool(np.array_equal(self.points, other.points))

    def __hash__(self) -> int:
        return hash(self.points.tobytes())


@dataclass(frozen=True)
class TransformSolution:
    """
    Output of the transform solver.

    Attributes:
        homography: 3x3 matrix mapping source corners onto the destination
            rectangle (0,0), (W,0), (W,H), (0,H); normalised so H[2, 2] == 1,
            or to unit Frobenius norm when H[2, 2] is zero.
        output_width: Destination width W in pixels (>= 1).
        output_height: Destination height H in pixels (>= 1).
    """

    homography: np.ndarray
    output_width: int
    output_height: int


@dataclass(frozen=True)
class CorrectionResult:
    """
    Tagged output of the rectification pipeline.

    Exactly one of ``image`` (success) or ``error`` (failure) is set; there
    is no successful-with-warning state.

    Attributes:
        status: SUCCESS or FAILURE.
        image: Rectified pixel buffer (None on failure).
        error: Failure classification (None on success).
        message: Human-readable detail for logs.
        stages: State machine transitions walked for this request.
        corners: Ordered corners, when geometry extraction got that far.
        output_width: Destination width, when the transform was solved.
        output_height: Destination height, when the transform was solved.
    """

    status: CorrectionStatus
    image: Optional[PixelBuffer] = None
    error: Optional[ErrorKind] = None
    message: str = ""
    stages: Tuple[PipelineStage, ...] = field(default_factory=tuple)
    corners: Optional[CornerSet] = None
    output_width: Optional[int] = None
    output_height: Optional[int] = None

    def __post_init__(self) -> None:
        if self.status == CorrectionStatus.SUCCESS:
            if self.image is None or self.error is not None:
                raise ValueError("A successful result carries an image and no error")
        elif self.error is None or self.image is not None:
            raise ValueError("A failed result carries an error and no image")

    @classmethod
    def success(cls, image: PixelBuffer, **diagnostics) -> "CorrectionResult":
        return cls(status=CorrectionStatus.SUCCESS, image=image, **diagnostics)

    @classmethod
    def failure(
        cls, error: ErrorKind, message: str, **diagnostics
    ) -> "CorrectionResult":
        return cls(
            status=CorrectionStatus.FAILURE, error=error, message=message, **diagnostics
        )

    @property
    def final_stage(self) -> Optional[PipelineStage]:
        return self.stages[-1] if self.stages else None

    def is_success(self) -> bool:
        """Check if the pipeline produced an image."""
        return self.status == CorrectionStatus.SUCCESS

    def is_failure(self) -> bool:
        return self.status == CorrectionStatus.FAILURE

    def unwrap(self) -> PixelBuffer:
        """
        Return the rectified image or raise the error this result carries.

        Raises:
            RectificationError: Subclass matching ``error`` on failure.
        """
        if self.is_success():
            return self.image

        from src.rectification.errors import error_for_kind

        raise error_for_kind(self.error, self.message)

    def get_error_message(self) -> str:
        """Get human-readable error message."""
        if self.is_success():
            return "Perspective corrected"
        if not self.message:
            return self.error.value
        return f"{self.error.value}: {self.message}"
