"""
Exceptions raised by the rectification stages.

Each stage raises a subclass of RectificationError tagged with its
ErrorKind; the processor turns them into failed CorrectionResults so no
exception crosses the core boundary.
"""

from typing import Dict, Type

from src.rectification.types import ErrorKind


class RectificationError(ValueError):
    """Base class for classified rectification failures."""

    kind: ErrorKind = ErrorKind.INVALID_INPUT

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class DegenerateRegionError(RectificationError):
    kind = ErrorKind.DEGENERATE_REGION


class SingularTransformError(RectificationError):
    kind = ErrorKind.SINGULAR_TRANSFORM


class OutputTooLargeError(RectificationError):
    kind = ErrorKind.OUTPUT_TOO_LARGE


class InvalidInputError(RectificationError):
    kind = ErrorKind.INVALID_INPUT


_ERRORS_BY_KIND: Dict[ErrorKind, Type[RectificationError]] = {
    cls.kind: cls
    for cls in (
        DegenerateRegionError,
        SingularTransformError,
        OutputTooLargeError,
        InvalidInputError,
    )
}


def error_for_kind(kind: ErrorKind, message: str) -> RectificationError:
    """Build the exception matching an ErrorKind."""
    return _ERRORS_BY_KIND[kind](message)
