"""Per-slice contour extraction and alignment."""

from .errors import FlatmapError, FlatmapConfigurationError, FlatmapNotReadyError
from .table import ContourPoint, ContourTable
from .extraction import ContourExtractor
from .alignment import ContourAligner

__all__ = [
    "FlatmapError",
    "FlatmapConfigurationError",
    "FlatmapNotReadyError",
    "ContourPoint",
    "ContourTable",
    "ContourExtractor",
    "ContourAligner",
]
