"""
Common type definitions for the perspective rectification core.

This module provides Pydantic-based type definitions for the data that
crosses the core boundary: pixel buffers, points and caller regions.

These types provide:
- Type validation and conversion
- Consistent interfaces across modules
- Helper methods for common operations
- Integration with numpy arrays and OpenCV
"""

import math
from enum import Enum
from typing import Any, List, Sequence, Tuple, Union

import cv2
import numpy as np
from pydantic import BaseModel, Field, field_validator

SUPPORTED_DTYPES = {
    np.dtype(np.uint8): 8,
    np.dtype(np.uint16): 16,
    np.dtype(np.float32): 32,
}


class PixelBuffer(BaseModel):
    """
    Immutable wrapper for decoded image arrays (numpy.ndarray).

    The wrapped array is stored as a read-only view, so neither the pipeline
    nor the caller can mutate a buffer through this object. The caller's own
    array (and its writeable flag) is left untouched.

    Attributes:
        data: The underlying numpy array containing image data.
            Shape: (H, W, C) for color images, (H, W) for grayscale.
            Dtype: uint8, uint16 or float32.

    Example:
        >>> import cv2
        >>> image = cv2.imread("card.jpg")
        >>> buffer = PixelBuffer(data=image)
        >>> print(buffer.width, buffer.height, buffer.channels)  # 640 480 3
    """

    data: np.ndarray = Field(..., description="Image data as numpy array")

    model_config = {"arbitrary_types_allowed": True, "frozen": True}

    @field_validator("data")
    @classmethod
    def _validate_image(cls, v: np.ndarray) -> np.ndarray:
        """
        Validate that the numpy array is a valid image and freeze it.

        Args:
            v: Numpy array to validate.

        Returns:
            Read-only view of the validated array.

        Raises:
            ValueError: If array is not a valid image format.
        """
        if not isinstance(v, np.ndarray):
            raise ValueError(f"Expected numpy.ndarray, got {type(v)}")

        if v.size == 0:
            raise ValueError("Image array is empty")

        if len(v.shape) not in (2, 3):
            raise ValueError(
                f"Expected 2D (grayscale) or 3D (color) image, got shape {v.shape}"
            )

        if len(v.shape) == 3 and v.shape[2] not in (1, 3, 4):
            raise ValueError(
                f"Expected 1, 3, or 4 channels for color image, got {v.shape[2]}"
            )

        if v.dtype not in SUPPORTED_DTYPES:
            raise ValueError(
                f"Unsupported dtype {v.dtype}. "
                "Expected one of uint8, uint16, float32"
            )

        view = v.view()
        view.flags.writeable = False
        return view

    @property
    def shape(self) -> Tuple[int, ...]:
        """Get image shape (H, W) or (H, W, C)."""
        return self.data.shape

    @property
    def height(self) -> int:
        """Get image height in pixels."""
        return int(self.data.shape[0])

    @property
    def width(self) -> int:
        """Get image width in pixels."""
        return int(self.data.shape[1])

    @property
    def channels(self) -> int:
        """Get number of channels (1 for grayscale, 3 for RGB/BGR, 4 for RGBA)."""
        if len(self.data.shape) == 2:
            return 1
        return int(self.data.shape[2])

    @property
    def dtype(self) -> np.dtype:
        return self.data.dtype

    @property
    def bit_depth(self) -> int:
        """Get bits per channel sample (8, 16 or 32)."""
        return SUPPORTED_DTYPES[self.data.dtype]

    @property
    def size(self) -> Tuple[int, int]:
        """Get (width, height), the order OpenCV and Region use."""
        return (self.width, self.height)

    def to_numpy(self) -> np.ndarray:
        """
        Get underlying numpy array.

        Returns:
            The image data as a read-only numpy array.
        """
        return self.data

    def copy(self) -> "PixelBuffer":
        """
        Create a deep copy of the pixel buffer.

        Returns:
            New PixelBuffer instance with copied data.
        """
        return PixelBuffer(data=self.data.copy())

    def __repr__(self) -> str:
        """String representation of PixelBuffer."""
        return f"PixelBuffer(shape={self.shape}, dtype={self.data.dtype})"


class Point(BaseModel):
    """
    Type-safe representation of a 2D point (x, y) in continuous image
    coordinates.

    Pixel (row i, column j) covers the square [j, j+1] x [i, i+1], so the
    image bounds of a W x H buffer are [0, W] x [0, H].

    Example:
        >>> point = Point(x=100.5, y=200)
        >>> arr = point.to_numpy()  # array([100.5, 200.])
        >>> point2 = Point.from_numpy(np.array([150, 250]))
    """

    x: float = Field(..., description="X-coordinate (horizontal)")
    y: float = Field(..., description="Y-coordinate (vertical)")

    model_config = {"frozen": True}

    @field_validator("x", "y", mode="before")
    @classmethod
    def _convert_to_float(cls, v: Any) -> float:
        """
        Convert coordinate to float, rejecting NaN and infinity.

        Raises:
            ValueError: If the coordinate is not a finite number.
        """
        if isinstance(v, (int, float, np.integer, np.floating)) and not isinstance(
            v, bool
        ):
            value = float(v)
            if not math.isfinite(value):
                raise ValueError(f"Coordinate must be finite, got {value}")
            return value
        raise ValueError(f"Coordinate must be numeric, got {type(v)}")

    @classmethod
    def from_numpy(cls, arr: np.ndarray) -> "Point":
        """
        Create Point from numpy array.

        Args:
            arr: Numpy array of shape (2,) with [x, y] coordinates.

        Returns:
            Point instance.

        Raises:
            ValueError: If array shape is not (2,).
        """
        arr = np.asarray(arr)
        if arr.shape != (2,):
            raise ValueError(f"Expected array of shape (2,), got {arr.shape}")
        return cls(x=float(arr[0]), y=float(arr[1]))

    def to_numpy(self, dtype: type = np.float64) -> np.ndarray:
        """Convert Point to numpy array of shape (2,)."""
        return np.array([self.x, self.y], dtype=dtype)

    def to_tuple(self) -> Tuple[float, float]:
        return (self.x, self.y)

    def distance_to(self, other: "Point") -> float:
        """
        Calculate Euclidean distance to another point.

        Args:
            other: Target point.

        Returns:
            Euclidean distance as float.
        """
        return float(math.hypot(self.x - other.x, self.y - other.y))

    def __repr__(self) -> str:
        """String representation of Point."""
        return f"Point(x={self.x}, y={self.y})"


class RegionShape(str, Enum):
    """How a caller described its region."""

    RECTANGLE = "rectangle"  # Axis-aligned box
    ROTATED_RECTANGLE = "rotated_rectangle"  # Box with an angle (cv2 RotatedRect)
    QUADRILATERAL = "quadrilateral"  # Four arbitrary corners


class Region(BaseModel):
    """
    Caller-supplied region around the object to rectify.

    Every region is stored as four vertices plus the shape tag it was built
    from. Vertices need not be ordered; the geometry extractor orders them.
    Zero-area regions are accepted here and reported as degenerate by the
    pipeline.

    Example:
        >>> box = Region.from_rect(40, 30, 200, 120)
        >>> quad = Region.from_points([[120, 180], [450, 165], [470, 250], [100, 270]])
        >>> tilted = Region.from_rotated_rect((320, 240), (200, 100), 15.0)
    """

    shape: RegionShape
    points: List[Point] = Field(..., description="Four region vertices")

    model_config = {"frozen": True}

    @field_validator("points")
    @classmethod
    def _validate_points(cls, v: List[Point]) -> List[Point]:
        if len(v) != 4:
            raise ValueError(f"Region needs exactly 4 points, got {len(v)}")
        return v

    @classmethod
    def from_rect(
        cls, x: float, y: float, width: float, height: float
    ) -> "Region":
        """
        Create an axis-aligned rectangular region.

        Args:
            x: Left edge.
            y: Top edge.
            width: Rectangle width (>= 0).
            height: Rectangle height (>= 0).

        Returns:
            Region with shape RECTANGLE and vertices TL, TR, BR, BL.

        Raises:
            ValueError: If width or height is negative.
        """
        if width < 0 or height < 0:
            raise ValueError(
                f"Rectangle size must be non-negative, got {width}x{height}"
            )
        x_max = x + width
        y_max = y + height
        return cls(
            shape=RegionShape.RECTANGLE,
            points=[
                Point(x=x, y=y),
                Point(x=x_max, y=y),
                Point(x=x_max, y=y_max),
                Point(x=x, y=y_max),
            ],
        )

    @classmethod
    def from_rotated_rect(
        cls,
        center: Tuple[float, float],
        size: Tuple[float, float],
        angle: float,
    ) -> "Region":
        """
        Create a region from a rotated rectangle (center, (w, h), degrees).

        Uses the same convention as cv2.minAreaRect / cv2.boxPoints.
        """
        box = (
            (float(center[0]), float(center[1])),
            (float(size[0]), float(size[1])),
            float(angle),
        )
        vertices = cv2.boxPoints(box)
        return cls(
            shape=RegionShape.ROTATED_RECTANGLE,
            points=[Point.from_numpy(p) for p in vertices.astype(np.float64)],
        )

    @classmethod
    def from_points(
        cls, points: Union[np.ndarray, Sequence[Sequence[float]]]
    ) -> "Region":
        """
        Create a quadrilateral region from 4 corner points in any order.

        Args:
            points: Array-like of shape (4, 2) with [x, y] coordinates.

        Raises:
            ValueError: If the input does not have shape (4, 2).
        """
        arr = np.asarray(points, dtype=np.float64)
        if arr.shape != (4, 2):
            raise ValueError(
                f"Expected exactly 4 points with shape (4, 2), got shape {arr.shape}"
            )
        return cls(
            shape=RegionShape.QUADRILATERAL,
            points=[Point.from_numpy(p) for p in arr],
        )

    def to_numpy(self) -> np.ndarray:
        """Return the vertices as a (4, 2) float64 array."""
        return np.array([p.to_tuple() for p in self.points], dtype=np.float64)

    def bounding_box(self) -> Tuple[float, float, float, float]:
        """Get (x_min, y_min, x_max, y_max) of the vertices."""
        pts = self.to_numpy()
        x_min, y_min = pts.min(axis=0)
        x_max, y_max = pts.max(axis=0)
        return float(x_min), float(y_min), float(x_max), float(y_max)

    def __repr__(self) -> str:
        coords = ", ".join(f"({p.x:.1f}, {p.y:.1f})" for p in self.points)
        return f"Region(shape={self.shape.value}, points=[{coords}])"
