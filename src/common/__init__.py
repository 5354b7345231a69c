"""
Common types shared across the rectification modules.

This module provides the boundary data types for the perspective
rectification core, so callers and pipeline stages agree on how images
and regions are described.
"""

from src.common.types import PixelBuffer, Point, Region, RegionShape

__all__ = ["PixelBuffer", "Point", "Region", "RegionShape"]
