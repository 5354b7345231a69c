"""
Pytest Configuration and Shared Fixtures

This file contains pytest configuration and fixtures that are available
to all test modules.
"""

import pytest


@pytest.fixture
def sample_quadrilateral_points():
    """Fixture providing sample 4-corner points in scrambled order."""
    import numpy as np

    return np.array(
        [
            [300, 150],  # Top-right area
            [100, 200],  # Top-left area
            [320, 400],  # Bottom-right area
            [80, 380],  # Bottom-left area
        ],
        dtype=np.float64,
    )


@pytest.fixture
def noise_image():
    """Fixture providing a deterministic 120x160 BGR noise image."""
    import numpy as np

    rng = np.random.default_rng(1234)
    return rng.integers(0, 256, size=(120, 160, 3), dtype=np.uint8)


@pytest.fixture
def ramp_content():
    """
    Fixture providing a 100x200 image whose channels are linear ramps.

    Blue grows with x, green grows with y, red is constant, so any
    bilinear resampling of it can be predicted analytically.
    """
    import numpy as np

    height, width = 100, 200
    xs = (np.arange(width) + 0.5) / width
    ys = (np.arange(height) + 0.5) / height
    image = np.empty((height, width, 3), dtype=np.uint8)
    image[..., 0] = np.round(255 * xs)[np.newaxis, :]
    image[..., 1] = np.round(255 * ys)[:, np.newaxis]
    image[..., 2] = 128
    return image


@pytest.fixture
def sample_test_image():
    """Fixture providing a photo-like image with a dark tilted card."""
    import cv2
    import numpy as np

    # Create white background
    image = np.ones((600, 800, 3), dtype=np.uint8) * 255

    # Draw a rotated rectangle to simulate a photographed card
    pts = np.array([[200, 250], [550, 200], [570, 350], [180, 380]], dtype=np.int32)

    cv2.fillPoly(image, [pts], (50, 50, 50))
    cv2.putText(
        image,
        "ABC 1234",
        (250, 300),
        cv2.FONT_HERSHEY_SIMPLEX,
        1.5,
        (255, 255, 255),
        3,
    )

    return image, pts.astype(np.float64)
