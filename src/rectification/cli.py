"""
Command-line front end for perspective rectification.

Decodes an image file, corrects the region given on the command line and
writes the rectified image.

Usage:
    perspective-rectify photo.jpg --rect 40 30 400 250 --output flat.png
    perspective-rectify photo.jpg --points 120 180 450 165 470 250 100 270 \\
        --output flat.png --fallback-crop
"""

import argparse
import logging
from pathlib import Path
from typing import List, Optional

import cv2
import numpy as np

from src.common.types import PixelBuffer, Region
from src.rectification.config_loader import RectificationConfig, load_config
from src.rectification.crop import correct_or_crop, rotate_to_landscape
from src.rectification.processor import correct

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Correct the perspective of a photographed planar object",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("input", type=Path, help="Path to the source image")
    parser.add_argument(
        "--output", type=Path, required=True, help="Path for the rectified image"
    )
    region = parser.add_mutually_exclusive_group(required=True)
    region.add_argument(
        "--rect",
        type=float,
        nargs=4,
        metavar=("X", "Y", "W", "H"),
        help="Axis-aligned region: left, top, width, height",
    )
    region.add_argument(
        "--points",
        type=float,
        nargs=8,
        metavar="COORD",
        help="Four corners as x1 y1 x2 y2 x3 y3 x4 y4 (any order)",
    )
    parser.add_argument(
        "--config", type=Path, default=None, help="Path to a config YAML file"
    )
    parser.add_argument(
        "--fallback-crop",
        action="store_true",
        help="Write the plain crop when correction fails",
    )
    parser.add_argument(
        "--landscape",
        action="store_true",
        help="Rotate portrait results to landscape",
    )
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser


def parse_region(args: argparse.Namespace) -> Region:
    if args.rect is not None:
        x, y, w, h = args.rect
        return Region.from_rect(x, y, w, h)
    return Region.from_points(np.array(args.points).reshape(4, 2))


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point. Returns the process exit code."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s",
    )

    try:
        config = load_config(args.config) if args.config else RectificationConfig()
        region = parse_region(args)
    except (FileNotFoundError, ValueError) as e:
        logger.error(f"Invalid arguments: {e}")
        return 1

    image = cv2.imread(str(args.input), cv2.IMREAD_UNCHANGED)
    if image is None:
        logger.error(f"Could not decode image: {args.input}")
        return 1

    if args.fallback_crop:
        outcome = correct_or_crop(image, region, config)
        output = outcome.image
        if output is None:
            logger.error(f"Rectification failed: {outcome.result.get_error_message()}")
            return 1
    else:
        result = correct(image, region, config)
        if not result.is_success():
            logger.error(f"Rectification failed: {result.get_error_message()}")
            return 1
        output = result.image

    if args.landscape:
        output = rotate_to_landscape(output)

    args.output.parent.mkdir(parents=True, exist_ok=True)
    try:
        written = cv2.imwrite(str(args.output), _encodable(output))
    except cv2.error as e:
        logger.error(f"Could not encode image {args.output}: {e}")
        return 1
    if not written:
        logger.error(f"Could not write image: {args.output}")
        return 1

    logger.info(f"Wrote {output.width}x{output.height} image to {args.output}")
    return 0


def _encodable(image: PixelBuffer) -> np.ndarray:
    data = image.to_numpy()
    if data.ndim == 3 and data.shape[2] == 1:
        data = data[..., 0]
    return data.copy()


if __name__ == "__main__":
    raise SystemExit(main())
