"""
Configuration loader for the Rectification module.

Loads and validates configuration from a YAML file using Pydantic models
for validation and default values.
"""

import logging
from pathlib import Path
from typing import List, Optional, Union

import yaml
from pydantic import BaseModel, Field, field_validator

logger = logging.getLogger(__name__)

# Default configuration path (relative to this file)
DEFAULT_CONFIG_PATH = Path(__file__).parent / "config.yaml"

VALID_INTERPOLATIONS = ["linear", "nearest", "cubic", "lanczos"]


class GeometryConfig(BaseModel):
    """Geometry extraction settings.

    Attributes:
        min_region_area: Clipped regions with area at or below this value
            (square pixels) are rejected as degenerate.
    """

    min_region_area: float = Field(default=1e-6, ge=0.0)


class TransformConfig(BaseModel):
    """Transform solver settings.

    Attributes:
        singularity_epsilon: Scale-free threshold below which the four-point
            system is treated as singular.
    """

    singularity_epsilon: float = Field(default=1e-9, gt=0.0, lt=1.0)


class ResamplingConfig(BaseModel):
    """Resampler settings.

    Attributes:
        max_output_pixels: Upper bound on output width * height.
        border_fill: Value for destination pixels that map outside the
            source. A scalar or one value per channel.
        clamp_tolerance: Distance (pixels) outside the source sample grid
            that is still clamped to the nearest edge instead of filled.
        interpolation: Sampling method, bilinear ("linear") by default.
    """

    max_output_pixels: int = Field(default=40_000_000, gt=0)
    border_fill: Union[float, List[float]] = 0.0
    clamp_tolerance: float = Field(default=0.5, ge=0.0)
    interpolation: str = "linear"

    @field_validator("interpolation")
    @classmethod
    def _check_interpolation(cls, v: str) -> str:
        if v not in VALID_INTERPOLATIONS:
            raise ValueError(
                f"Invalid interpolation: {v}. Must be one of {VALID_INTERPOLATIONS}"
            )
        return v

    @field_validator("border_fill")
    @classmethod
    def _check_border_fill(
        cls, v: Union[float, List[float]]
    ) -> Union[float, List[float]]:
        if isinstance(v, list) and len(v) not in (1, 3, 4):
            raise ValueError(
                f"border_fill needs 1, 3 or 4 values, got {len(v)}"
            )
        return v


class InputConfig(BaseModel):
    """Input buffer expectations.

    Attributes:
        expected_channels: If set, images with a different channel count
            are rejected as invalid input.
    """

    expected_channels: Optional[int] = None

    @field_validator("expected_channels")
    @classmethod
    def _check_channels(cls, v: Optional[int]) -> Optional[int]:
        if v is not None and v not in (1, 3, 4):
            raise ValueError(f"expected_channels must be 1, 3 or 4, got {v}")
        return v


class RectificationConfig(BaseModel):
    """Complete rectification module configuration."""

    geometry: GeometryConfig = Field(default_factory=GeometryConfig)
    transform: TransformConfig = Field(default_factory=TransformConfig)
    resampling: ResamplingConfig = Field(default_factory=ResamplingConfig)
    input: InputConfig = Field(default_factory=InputConfig)


def load_config(config_path: Path = DEFAULT_CONFIG_PATH) -> RectificationConfig:
    """
    Load rectification configuration from YAML file.

    Sections missing from the file take their default values.

    Args:
        config_path: Path to the configuration YAML file.

    Returns:
        Validated RectificationConfig object.

    Raises:
        FileNotFoundError: If config file doesn't exist.
        ValueError: If config is invalid.

    Example:
        >>> config = load_config()
        >>> print(config.resampling.max_output_pixels)
        40000000
    """
    config_path = Path(config_path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    logger.debug(f"Loading rectification config from {config_path}")

    with open(config_path, "r", encoding="utf-8") as f:
        raw_config = yaml.safe_load(f) or {}

    try:
        if not isinstance(raw_config, dict):
            raise TypeError(
                f"Expected a mapping at top level, got {type(raw_config).__name__}"
            )
        config = RectificationConfig(**raw_config)
        logger.info("Successfully loaded rectification configuration")
        return config
    except (KeyError, TypeError, ValueError) as e:
        raise ValueError(f"Invalid configuration file: {e}") from e


def get_default_config() -> RectificationConfig:
    """Get default configuration from the bundled config.yaml file.

    Falls back to model defaults if the bundled file is missing.
    """
    if DEFAULT_CONFIG_PATH.exists():
        return load_config(DEFAULT_CONFIG_PATH)
    return RectificationConfig()
