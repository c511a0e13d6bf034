"""Inverse mapping of world-space points onto the flatmap."""

import logging
from typing import Dict, Optional, Tuple
import numpy as np
from scipy import ndimage
from scipy.spatial import cKDTree

from contour.errors import FlatmapConfigurationError, FlatmapNotReadyError
from contour.table import ContourTable
from flat.accumulator import FlatmapAccumulator, FlatmapBounds
from volume.sampling import SamplingGrid


class SurfaceSearchIndex:
    """Surface and interior masks of the contoured object with a k-d tree.

    Nothing is computed at construction; ``build`` runs on the first query
    and sets ``is_built``.
    """

    def __init__(self, contour_tables: Dict[int, ContourTable], grid: SamplingGrid, bounds: FlatmapBounds,
                 logger: Optional[logging.Logger] = None):
        self.contour_tables = contour_tables
        self.grid = grid
        self.bounds = bounds
        self.logger = logger or logging.getLogger(__name__)

        self.is_built = False
        self.surface_mask: Optional[np.ndarray] = None
        self.interior_mask: Optional[np.ndarray] = None
        self.surface_indices: Optional[np.ndarray] = None
        self.surface_offsets: Optional[np.ndarray] = None
        self.surface_world: Optional[np.ndarray] = None
        self.tree: Optional[cKDTree] = None

    @classmethod
    def from_accumulator(cls, accumulator: FlatmapAccumulator,
                         logger: Optional[logging.Logger] = None) -> 'SurfaceSearchIndex':
        if not accumulator.is_complete:
            raise FlatmapNotReadyError("Contour accumulation has not run; call run() first")
        return cls(accumulator.contour_tables, accumulator.grid, accumulator.bounds, logger)

    def build(self) -> 'SurfaceSearchIndex':
        """Scatter contours into the masks and index the surface voxels."""
        if self.is_built:
            return self

        surface_mask = np.zeros(self.grid.shape, dtype=bool)
        interior_mask = np.zeros(self.grid.shape, dtype=bool)
        indices = []
        offsets = []

        for slice_index in sorted(self.contour_tables):
            table = self.contour_tables[slice_index]
            surface_mask[slice_index, table.sample_idx_y, table.sample_idx_z] = True
            interior_mask[slice_index] = ndimage.binary_fill_holes(surface_mask[slice_index])

            indices.append(np.column_stack([
                np.full(len(table), slice_index, dtype=np.int64),
                table.sample_idx_y,
                table.sample_idx_z,
            ]))
            offsets.append(table.offsets)

        if not indices:
            raise FlatmapConfigurationError("No surface voxels; the search index cannot be built")

        indices = np.concatenate(indices)
        offsets = np.concatenate(offsets)

        # A pixel visited twice by the contour keeps the offset of its first visit
        indices, first = np.unique(indices, axis=0, return_index=True)
        offsets = offsets[first]

        self.surface_mask = surface_mask
        self.interior_mask = interior_mask
        self.surface_indices = indices
        self.surface_offsets = offsets
        self.surface_world = self.grid.sample_indices_to_world(indices[:, 0], indices[:, 1], indices[:, 2])
        self.tree = cKDTree(self.surface_world)
        self.is_built = True

        self.logger.debug(f"Search index built over {len(indices)} surface voxels")
        return self

    def is_inside(self, world_points: np.ndarray) -> np.ndarray:
        """Whether each point snaps to an interior sample (N,)."""
        self.build()
        idx, valid = self.grid.world_to_sample_indices(world_points)
        inside = valid.copy()
        inside[valid] = self.interior_mask[idx[valid, 0], idx[valid, 1], idx[valid, 2]]
        return inside

    def nearest_surface_points(self, world_points: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Nearest surface voxel of each point.

        Returns:
            surface_idx: Row of ``surface_indices`` for each point (N,)
            distances: Euclidean world distance to that voxel (N,)
        """
        self.build()
        world_points = np.asarray(world_points, dtype=float).reshape(-1, 3)
        distances, surface_idx = self.tree.query(world_points)
        return np.asarray(surface_idx, dtype=np.int64), np.asarray(distances, dtype=float)

    def map_points_to_flatmap(self, world_points: np.ndarray, verbose: bool = False) -> Tuple[np.ndarray, np.ndarray]:
        """Flatmap (row, column) of each point; NaN for points outside the object.

        Args:
            world_points: World coordinates (N, 3)
            verbose: Log every skipped point

        Returns:
            rows: Float rows (N,)
            cols: Float columns (N,)
        """
        self.build()
        world_points = np.asarray(world_points, dtype=float).reshape(-1, 3)
        rows = np.full(len(world_points), np.nan)
        cols = np.full(len(world_points), np.nan)

        inside = self.is_inside(world_points)
        if verbose:
            for i in np.flatnonzero(~inside):
                x, y, z = world_points[i]
                self.logger.info(f"Point #{i} ({x:.3f}, {y:.3f}, {z:.3f}) outside the object, skipped")

        if inside.any():
            surface_idx, _ = self.nearest_surface_points(world_points[inside])
            slice_indices = self.surface_indices[surface_idx, 0]
            r, c = self.bounds.to_raster_position(self.surface_offsets[surface_idx], slice_indices)
            rows[inside] = r
            cols[inside] = c

        return rows, cols
