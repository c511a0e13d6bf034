"""Rasterization of contour tables into flatmaps."""

from typing import Dict, Iterable
import numpy as np

from contour.errors import FlatmapConfigurationError, FlatmapNotReadyError
from contour.table import ContourTable
from flat.accumulator import FlatmapAccumulator, FlatmapBounds
from flat.channels import FlatmapChannel, SliceContext
from flat.config import VALUE_TYPE_DISCRETE
from volume.sampling import SamplingGrid


def validate_label_ids_to_remove(label_ids: Iterable[int]) -> np.ndarray:
    """Check that suppressed label IDs are positive integers."""
    label_ids = list(label_ids)
    for label_id in label_ids:
        if isinstance(label_id, bool) or not isinstance(label_id, (int, np.integer)) or label_id <= 0:
            raise ValueError(f"Label IDs to remove must be positive integers, got {label_id!r}")
    return np.asarray(label_ids, dtype=np.int64)


class FlatmapRasterizer:
    """Writes per-contour-point channel values into a (rows, columns) raster.

    Row ``offset + bottom_extent`` and column ``slice_index - first_valid``
    hold the value of a contour point.
    """

    def __init__(self, contour_tables: Dict[int, ContourTable], bounds: FlatmapBounds, grid: SamplingGrid):
        self.contour_tables = contour_tables
        self.bounds = bounds
        self.grid = grid

    @classmethod
    def from_accumulator(cls, accumulator: FlatmapAccumulator) -> 'FlatmapRasterizer':
        if not accumulator.is_complete:
            raise FlatmapNotReadyError("Contour accumulation has not run; call run() first")
        return cls(accumulator.contour_tables, accumulator.bounds, accumulator.grid)

    def rasterize(self, channel: FlatmapChannel, label_ids_to_remove: Iterable[int] = ()) -> np.ndarray:
        """Build the raster of one channel.

        Args:
            channel: Value rule applied to every contour point
            label_ids_to_remove: Points carrying these labels get the sentinel

        Returns:
            Read-only raster (height, width) or (height, width, n_channels)
        """
        if self.bounds.is_empty:
            raise FlatmapConfigurationError("No slice holds a valid contour; the flatmap is empty")

        remove = validate_label_ids_to_remove(label_ids_to_remove)
        discrete = channel.value_type == VALUE_TYPE_DISCRETE

        columns = []
        for slice_index in sorted(self.contour_tables):
            table = self.contour_tables[slice_index]
            values = np.asarray(channel.compute_values(table, SliceContext(slice_index, self.grid)))
            values = values.reshape(len(table), channel.n_channels)
            keep = ~np.isin(table.label_ids, remove)
            rows, col = self.bounds.to_raster_position(table.offsets, slice_index)
            columns.append((rows[keep], col, values[keep]))

        if discrete:
            max_value = max((int(v.max()) for _, _, v in columns if v.size), default=0)
            dtype = np.promote_types(np.uint8, np.min_scalar_type(max_value))
            raster = np.full(self.bounds.shape + (channel.n_channels,), channel.sentinel, dtype=dtype)
        else:
            raster = np.full(self.bounds.shape + (channel.n_channels,), np.nan, dtype=float)

        for rows, col, values in columns:
            raster[rows, col] = values

        if channel.n_channels == 1:
            raster = raster[..., 0]
        raster.flags.writeable = False
        return raster
