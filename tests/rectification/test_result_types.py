"""
Unit tests for rectification data types and errors.
"""

import numpy as np
import pytest

from src.common.types import PixelBuffer
from src.rectification.errors import (
    OutputTooLargeError,
    RectificationError,
    SingularTransformError,
    error_for_kind,
)
from src.rectification.types import (
    CornerSet,
    CorrectionResult,
    CorrectionStatus,
    ErrorKind,
    PipelineStage,
)


class TestCornerSet:
    """Test suite for CornerSet."""

    def test_points_copied_and_read_only(self):
        pts = np.array([[0, 0], [4, 0], [4, 3], [0, 3]], dtype=np.int32)

        corners = CornerSet(points=pts)
        pts[0, 0] = 99

        assert corners.points.dtype == np.float64
        assert corners.points[0, 0] == 0
        with pytest.raises(ValueError):
            corners.points[0, 0] = 1

    def test_named_corners_and_edges(self):
        corners = CornerSet(points=np.array([[0, 0], [4, 0], [4, 3], [0, 3]]))

        np.testing.assert_array_equal(corners.top_right, [4, 0])
        np.testing.assert_array_equal(corners.bottom_left, [0, 3])
        assert corners.edge_lengths() == (4.0, 3.0, 4.0, 3.0)
        assert corners.area() == 12.0

    def test_invalid_shape(self):
        with pytest.raises(ValueError, match="4 points"):
            CornerSet(points=np.zeros((3, 2)))

    def test_non_finite(self):
        with pytest.raises(ValueError, match="finite"):
            CornerSet(points=np.array([[0, 0], [1, 0], [1, np.inf], [0, 1]]))

    def test_equality(self):
        pts = np.array([[0, 0], [4, 0], [4, 3], [0, 3]], dtype=np.float64)

        assert CornerSet(points=pts) == CornerSet(points=pts.copy())
        assert hash(CornerSet(points=pts)) == hash(CornerSet(points=pts.copy()))


class TestCorrectionResult:
    """Test suite for CorrectionResult."""

    def test_success(self):
        image = PixelBuffer(data=np.zeros((2, 3), dtype=np.uint8))

        result = CorrectionResult.success(image, stages=(PipelineStage.DONE,))

        assert result.status == CorrectionStatus.SUCCESS
        assert result.is_success()
        assert result.unwrap() is image
        assert result.final_stage == PipelineStage.DONE

    def test_failure(self):
        result = CorrectionResult.failure(
            ErrorKind.SINGULAR_TRANSFORM,
            "corners are collinear",
            stages=(PipelineStage.RECEIVED, PipelineStage.FAILED),
        )

        assert result.is_failure()
        assert result.image is None
        assert result.final_stage == PipelineStage.FAILED
        assert result.get_error_message() == "SingularTransform: corners are collinear"
        with pytest.raises(SingularTransformError, match="collinear"):
            result.unwrap()

    def test_success_without_image_rejected(self):
        with pytest.raises(ValueError):
            CorrectionResult(status=CorrectionStatus.SUCCESS)

    def test_failure_with_image_rejected(self):
        image = PixelBuffer(data=np.zeros((2, 3), dtype=np.uint8))

        with pytest.raises(ValueError):
            CorrectionResult(
                status=CorrectionStatus.FAILURE,
                image=image,
                error=ErrorKind.INVALID_INPUT,
            )

    def test_failure_without_message(self):
        result = CorrectionResult.failure(ErrorKind.OUTPUT_TOO_LARGE, "")

        assert result.get_error_message() == "OutputTooLarge"
        assert result.final_stage is None


class TestErrors:
    """Tests for the exception hierarchy."""

    @pytest.mark.parametrize("kind", list(ErrorKind))
    def test_error_for_kind(self, kind):
        error = error_for_kind(kind, "detail")

        assert isinstance(error, RectificationError)
        assert isinstance(error, ValueError)
        assert error.kind == kind
        assert error.message == "detail"

    def test_subclass_kind(self):
        assert OutputTooLargeError("x").kind == ErrorKind.OUTPUT_TOO_LARGE
