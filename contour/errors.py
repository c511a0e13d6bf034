"""Exceptions raised while building or querying flatmaps."""

from typing import Optional


class FlatmapError(Exception):
    """Base class for flatmap pipeline errors."""


class FlatmapConfigurationError(FlatmapError, ValueError):
    """The input volume violates a landmark or topology requirement.

    Construction is aborted; no partially valid pipeline is produced.
    """

    def __init__(self, message: str, slice_index: Optional[int] = None):
        if slice_index is not None:
            message = f"Slice #{slice_index}: {message}"
        super().__init__(message)
        self.slice_index = slice_index


class FlatmapNotReadyError(FlatmapError, RuntimeError):
    """A raster or point mapping was requested before contour accumulation finished."""
