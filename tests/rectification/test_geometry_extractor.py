"""
Unit tests for geometry_extractor module.

Tests corner ordering, clipping to image bounds and degenerate detection.
"""

import numpy as np
import pytest

from src.common.types import Region
from src.rectification.errors import DegenerateRegionError, InvalidInputError
from src.rectification.geometry_extractor import (
    clip_region,
    extract_corners,
    order_corners,
    overlap_area,
    polygon_area,
)


class TestOrderCorners:
    """Test suite for order_corners function."""

    def test_order_scrambled_points(self, sample_quadrilateral_points):
        """Test scrambled points come back as TL, TR, BR, BL."""
        ordered = order_corners(sample_quadrilateral_points)

        np.testing.assert_array_equal(
            ordered, [[100, 200], [300, 150], [320, 400], [80, 380]]
        )

    def test_order_points_list_input(self):
        """Test that function accepts list input and converts it."""
        ordered = order_corners([[300, 150], [100, 200], [320, 400], [80, 380]])

        assert isinstance(ordered, np.ndarray)
        assert ordered.shape == (4, 2)

    def test_already_ordered_points_unchanged(self):
        pts = np.array([[100, 100], [400, 100], [400, 300], [100, 300]], dtype=float)

        np.testing.assert_array_equal(order_corners(pts), pts)

    def test_every_permutation_gives_same_order(self):
        """Test ordering does not depend on the input order."""
        from itertools import permutations

        pts = np.array([[10, 12], [95, 5], [110, 80], [3, 70]], dtype=float)
        expected = order_corners(pts)

        for perm in permutations(range(4)):
            np.testing.assert_array_equal(order_corners(pts[list(perm)]), expected)

    def test_diamond_tie_breaks_on_smaller_y(self):
        """Test a 45-degree diamond starts at its top vertex."""
        diamond = np.array([[0, 50], [50, 100], [100, 50], [50, 0]], dtype=float)

        np.testing.assert_array_equal(
            order_corners(diamond), [[50, 0], [100, 50], [50, 100], [0, 50]]
        )

    def test_ordered_polygon_is_simple(self):
        """Test a bow-tie input is untangled into a simple polygon."""
        bow_tie = np.array([[0, 0], [100, 100], [100, 0], [0, 100]], dtype=float)
        ordered = order_corners(bow_tie)

        assert polygon_area(ordered) == pytest.approx(10000.0)

    def test_invalid_count(self):
        """Test that function raises ValueError for wrong number of points."""
        with pytest.raises(ValueError, match="Expected exactly 4 points"):
            order_corners(np.array([[100, 200], [300, 150]]))


class TestClipRegion:
    """Test suite for clip_region function."""

    def test_rectangle_partially_outside(self):
        """Test rectangles are intersected with the image bounds."""
        clipped = clip_region(Region.from_rect(-20, -10, 100, 50), (80, 60))

        np.testing.assert_array_equal(
            clipped, [[0, 0], [80, 0], [80, 40], [0, 40]]
        )

    def test_quadrilateral_vertices_clamped(self):
        region = Region.from_points([[-10, -10], [50, 0], [50, 50], [0, 50]])
        clipped = clip_region(region, (100, 100))

        np.testing.assert_array_equal(
            clipped, [[0, 0], [50, 0], [50, 50], [0, 50]]
        )

    def test_region_outside_image(self):
        with pytest.raises(InvalidInputError, match="do not overlap"):
            clip_region(Region.from_rect(200, 200, 10, 10), (100, 100))

    def test_rotated_rectangle_outside_despite_bounding_box(self):
        """Test overlap is judged on the shape, not its bounding box."""
        region = Region.from_rotated_rect((-40, -40), (20, 150), 45.0)
        assert region.bounding_box()[2] > 0

        with pytest.raises(InvalidInputError, match="shares no area"):
            clip_region(region, (160, 120))

    def test_quadrilateral_outside_despite_bounding_box(self):
        region = Region.from_points([[-30, 5], [5, -30], [-10, -40], [-40, -10]])

        with pytest.raises(InvalidInputError, match="shares no area"):
            clip_region(region, (160, 120))

    def test_rotated_rectangle_over_image_corner_is_kept(self):
        region = Region.from_rotated_rect((5, 5), (40, 40), 30.0)
        clipped = clip_region(region, (160, 120))

        assert clipped.min() >= 0
        assert polygon_area(order_corners(clipped)) > 0


class TestOverlapArea:
    """Test suite for overlap_area function."""

    def test_fully_inside(self):
        pts = np.array([[10, 10], [30, 10], [30, 20], [10, 20]], dtype=float)
        assert overlap_area(pts, (100, 100)) == pytest.approx(200.0)

    def test_covering_whole_image(self):
        pts = np.array([[-10, -10], [60, -10], [60, 40], [-10, 40]], dtype=float)
        assert overlap_area(pts, (50, 30)) == pytest.approx(1500.0)

    def test_winding_does_not_matter(self):
        pts = np.array([[-10, -10], [20, -10], [20, 20], [-10, 20]], dtype=float)
        assert overlap_area(pts, (100, 100)) == pytest.approx(400.0)
        assert overlap_area(pts[::-1], (100, 100)) == pytest.approx(400.0)

    def test_flat_shape_has_no_overlap_area(self):
        pts = np.array([[10, 10], [40, 40], [70, 70], [90, 90]], dtype=float)
        assert overlap_area(pts, (100, 100)) is None


class TestExtractCorners:
    """Test suite for extract_corners function."""

    def test_rectangle_inside_image(self):
        """Test a plain rectangle yields its axis-aligned extremes."""
        corners = extract_corners(Region.from_rect(10, 20, 300, 200), (640, 480))

        np.testing.assert_array_equal(
            corners.points, [[10, 20], [310, 20], [310, 220], [10, 220]]
        )

    def test_rotated_rectangle(self):
        """Test rotated rectangles keep their own four corners."""
        region = Region.from_rotated_rect((320, 240), (200, 100), 20.0)
        corners = extract_corners(region, (640, 480))

        top, right, bottom, left = corners.edge_lengths()
        assert top == pytest.approx(200, abs=1e-3)
        assert bottom == pytest.approx(200, abs=1e-3)
        assert left == pytest.approx(100, abs=1e-3)
        assert right == pytest.approx(100, abs=1e-3)

    def test_point_region_is_degenerate(self):
        region = Region.from_points([[50, 50]] * 4)

        with pytest.raises(DegenerateRegionError):
            extract_corners(region, (100, 100))

    def test_line_region_is_degenerate(self):
        region = Region.from_points([[10, 10], [40, 40], [70, 70], [90, 90]])

        with pytest.raises(DegenerateRegionError):
            extract_corners(region, (100, 100))

    def test_zero_width_rectangle_is_degenerate(self):
        with pytest.raises(DegenerateRegionError):
            extract_corners(Region.from_rect(10, 10, 0, 30), (100, 100))

    def test_clipping_collapse_is_degenerate(self):
        """Test a rectangle touching only the image edge collapses."""
        with pytest.raises(DegenerateRegionError):
            extract_corners(Region.from_rect(100, 10, 20, 20), (100, 100))

    def test_region_outside_image_is_invalid(self):
        with pytest.raises(InvalidInputError):
            extract_corners(Region.from_rect(-50, -50, 10, 10), (100, 100))

    def test_origin_trapezoid_extracted(self):
        region = Region.from_points([[10, 0], [60, 0], [0, 60], [0, 10]])

        corners = extract_corners(region, (160, 120))

        np.testing.assert_array_equal(
            corners.points, [[10, 0], [60, 0], [0, 60], [0, 10]]
        )

    def test_min_area_threshold(self):
        """Test the configured minimum area is honoured."""
        region = Region.from_rect(0, 0, 2, 2)

        assert extract_corners(region, (10, 10), min_area=3.9).area() == 4.0
        with pytest.raises(DegenerateRegionError):
            extract_corners(region, (10, 10), min_area=4.0)
