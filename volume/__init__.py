"""Label volume loading and world-space sampling."""

from .sampling import SamplingGrid, sample_volume_nearest
from .loader import (
    load_label_volume,
    load_intensity_volume,
    read_color_table,
    load_world_points,
    validate_label_volume,
)

__all__ = [
    "SamplingGrid",
    "sample_volume_nearest",
    "load_label_volume",
    "load_intensity_volume",
    "read_color_table",
    "load_world_points",
    "validate_label_volume",
]
