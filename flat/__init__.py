"""Flatmap accumulation, rasterization, inverse mapping and composition."""

from contour.errors import FlatmapError, FlatmapConfigurationError, FlatmapNotReadyError
from .accumulator import FlatmapAccumulator, FlatmapBounds
from .channels import (
    FlatmapChannel,
    LabelChannel,
    BorderChannel,
    CurvatureChannel,
    IntensityChannel,
    CoordinateChannel,
    SliceContext,
    get_channel,
)
from .rasterizer import FlatmapRasterizer
from .projection import SurfaceSearchIndex
from .generator import FlatMapGenerator
from .compositor import CompositeLayout, RegionCompositor
from .processing_logger import ProcessingLogger

__all__ = [
    "FlatmapError",
    "FlatmapConfigurationError",
    "FlatmapNotReadyError",
    "FlatmapAccumulator",
    "FlatmapBounds",
    "FlatmapChannel",
    "LabelChannel",
    "BorderChannel",
    "CurvatureChannel",
    "IntensityChannel",
    "CoordinateChannel",
    "SliceContext",
    "get_channel",
    "FlatmapRasterizer",
    "SurfaceSearchIndex",
    "FlatMapGenerator",
    "CompositeLayout",
    "RegionCompositor",
    "ProcessingLogger",
]
