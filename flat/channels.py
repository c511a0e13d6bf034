"""Per-contour-point value rules for the flatmap channels."""

from typing import Optional, Tuple
import numpy as np

from contour.table import ContourTable
from flat.config import (
    LABEL_ID_BACKGROUND,
    LABEL_ID_BORDER,
    VALUE_TYPE_CONTINUOUS,
    VALUE_TYPE_DISCRETE,
)
from volume.sampling import SamplingGrid, sample_volume_nearest


class SliceContext:
    """World-space view of one slice for channel computations."""

    def __init__(self, slice_index: int, grid: SamplingGrid):
        self.slice_index = slice_index
        self.grid = grid

    @property
    def world_x(self) -> float:
        return float(self.grid.samples_x[self.slice_index])

    def world_yz(self, table: ContourTable) -> Tuple[np.ndarray, np.ndarray]:
        return self.grid.samples_y[table.sample_idx_y], self.grid.samples_z[table.sample_idx_z]

    def world_points(self, table: ContourTable) -> np.ndarray:
        ys, zs = self.world_yz(table)
        return np.column_stack([np.full(len(ys), self.world_x), ys, zs])


class FlatmapChannel:
    """Computes one value (or vector of values) per contour point."""

    name = 'channel'
    value_type = VALUE_TYPE_DISCRETE
    n_channels = 1

    def compute_values(self, table: ContourTable, context: SliceContext) -> np.ndarray:
        raise NotImplementedError

    @property
    def sentinel(self):
        return LABEL_ID_BACKGROUND if self.value_type == VALUE_TYPE_DISCRETE else np.nan


class LabelChannel(FlatmapChannel):
    name = 'label'

    def compute_values(self, table, context):
        return np.asarray(table.label_ids)


class BorderChannel(FlatmapChannel):
    """Marks points whose label differs from a contour neighbour.

    The first and last contour points are always border points.
    """

    name = 'border'

    def compute_values(self, table, context):
        labels = np.asarray(table.label_ids)
        border = np.zeros(len(labels), dtype=bool)
        if len(labels):
            changed = labels[1:] != labels[:-1]
            border[1:] |= changed
            border[:-1] |= changed
            border[0] = border[-1] = True
        return np.where(border, LABEL_ID_BORDER, LABEL_ID_BACKGROUND)


class CurvatureChannel(FlatmapChannel):
    """Signed planar curvature along the contour from world Y/Z differences."""

    name = 'curvature'
    value_type = VALUE_TYPE_CONTINUOUS

    def compute_values(self, table, context):
        if len(table) < 2:
            return np.full(len(table), np.nan)

        ys, zs = context.world_yz(table)
        dy = np.gradient(ys)
        dz = np.gradient(zs)
        d2y = np.gradient(dy)
        d2z = np.gradient(dz)

        with np.errstate(divide='ignore', invalid='ignore'):
            curvature = (dz * d2y - dy * d2z) / (dz ** 2 + dy ** 2) ** 1.5
        curvature[~np.isfinite(curvature)] = np.nan
        return curvature


class IntensityChannel(FlatmapChannel):
    """Values of a co-registered volume at each contour point's world position.

    Points falling outside the intensity volume get NaN.
    """

    name = 'intensity'
    value_type = VALUE_TYPE_CONTINUOUS

    def __init__(self, volume: np.ndarray, affine: Optional[np.ndarray] = None):
        volume = np.asarray(volume)
        if volume.ndim != 3:
            raise ValueError(f"Intensity volume must be 3D, got shape {volume.shape}")
        self.volume = volume
        self.affine = np.eye(4) if affine is None else np.asarray(affine, dtype=float)

    def compute_values(self, table, context):
        values = sample_volume_nearest(self.volume, self.affine, context.world_points(table), fill_value=np.nan)
        return values.astype(float)


class CoordinateChannel(FlatmapChannel):
    """World Y and Z of each contour point, as two channels."""

    name = 'coordinate'
    value_type = VALUE_TYPE_CONTINUOUS
    n_channels = 2

    def compute_values(self, table, context):
        ys, zs = context.world_yz(table)
        return np.column_stack([ys, zs])


CHANNELS = {
    cls.name: cls
    for cls in (LabelChannel, BorderChannel, CurvatureChannel, IntensityChannel, CoordinateChannel)
}


def get_channel(name: str, **kwargs) -> FlatmapChannel:
    """Instantiate a channel rule by name (``label``, ``border``, ...)."""
    if name not in CHANNELS:
        raise ValueError(f"Unknown channel '{name}'. Available: {sorted(CHANNELS)}")
    return CHANNELS[name](**kwargs)
