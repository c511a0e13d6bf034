"""World-space sampling grids for slice-wise traversal of a label volume."""

import numpy as np
from typing import Optional, Tuple
from nibabel.affines import apply_affine, voxel_sizes


def sample_volume_nearest(volume: np.ndarray, affine: np.ndarray, world_points: np.ndarray,
                          fill_value: Optional[float] = None) -> np.ndarray:
    """Sample a volume at world-space points using nearest-voxel lookup.

    Args:
        volume: 3D voxel array
        affine: Voxel-to-world affine of ``volume`` (4, 4)
        world_points: World coordinates (..., 3)
        fill_value: Value for points outside the voxel array. When None, the
            indices are clipped to the array instead.

    Returns:
        values: Sampled values with shape ``world_points.shape[:-1]``
    """
    world_points = np.asarray(world_points, dtype=float)
    voxel_points = apply_affine(np.linalg.inv(affine), world_points)
    shape = np.array(volume.shape[:3])

    finite = np.all(np.isfinite(voxel_points), axis=-1)
    idx = np.rint(np.where(finite[..., None], voxel_points, 0)).astype(np.int64)

    if fill_value is None:
        idx = np.clip(idx, 0, shape - 1)
        return volume[idx[..., 0], idx[..., 1], idx[..., 2]]

    valid = finite & np.all((idx >= 0) & (idx < shape), axis=-1)
    values = np.full(idx.shape[:-1], fill_value, dtype=np.result_type(volume.dtype, type(fill_value)))
    values[valid] = volume[idx[valid, 0], idx[valid, 1], idx[valid, 2]]
    return values


def _arange_inclusive(start: float, stop: float, step: float) -> np.ndarray:
    n = int(np.floor((stop - start) / step + 1e-6)) + 1
    return start + step * np.arange(max(n, 1))


class SamplingGrid:
    """Sampling points along the X (slice), Y and Z axes of a volume.

    Slices are taken perpendicular to X. Within a slice, rows follow the Y
    samples and columns follow the Z samples.
    """

    def __init__(self, samples_x: np.ndarray, samples_y: np.ndarray, samples_z: np.ndarray,
                 affine: Optional[np.ndarray] = None):
        self.samples_x = self._freeze(samples_x)
        self.samples_y = self._freeze(samples_y)
        self.samples_z = self._freeze(samples_z)
        self.affine = np.eye(4) if affine is None else np.asarray(affine, dtype=float)

        grid_y, grid_z = np.meshgrid(self.samples_y, self.samples_z, indexing='ij')
        self.grid_y = self._freeze(grid_y)
        self.grid_z = self._freeze(grid_z)

    @staticmethod
    def _freeze(values) -> np.ndarray:
        arr = np.array(values, dtype=float)
        arr.flags.writeable = False
        return arr

    @classmethod
    def from_affine(cls, shape: Tuple[int, ...], affine: np.ndarray) -> 'SamplingGrid':
        """Build the grid spanning the voxel array in world space.

        The first and last voxel centers are transformed to world space and
        each axis is sampled between them with the voxel size as step.
        """
        affine = np.asarray(affine, dtype=float)
        last_voxel = np.array(shape[:3], dtype=float) - 1
        corners = apply_affine(affine, np.vstack([np.zeros(3), last_voxel]))
        lo = corners.min(axis=0)
        hi = corners.max(axis=0)
        steps = voxel_sizes(affine)

        axes = [_arange_inclusive(lo[i], hi[i], steps[i]) for i in range(3)]
        return cls(*axes, affine=affine)

    @classmethod
    def from_shape(cls, shape: Tuple[int, ...]) -> 'SamplingGrid':
        """Voxel-space grid: sample coordinates equal voxel indices."""
        return cls.from_affine(shape, np.eye(4))

    @property
    def shape(self) -> Tuple[int, int, int]:
        return (len(self.samples_x), len(self.samples_y), len(self.samples_z))

    @property
    def slice_shape(self) -> Tuple[int, int]:
        return (len(self.samples_y), len(self.samples_z))

    @property
    def n_slices(self) -> int:
        return len(self.samples_x)

    def slice_world_points(self, slice_index: int) -> np.ndarray:
        """World coordinates of every sample on one slice (ny, nz, 3)."""
        x = np.full(self.slice_shape, self.samples_x[slice_index])
        return np.stack([x, self.grid_y, self.grid_z], axis=-1)

    def sample_slice(self, volume: np.ndarray, slice_index: int, affine: Optional[np.ndarray] = None,
                     fill_value: Optional[float] = None) -> np.ndarray:
        """Values of ``volume`` on the sampling points of one slice."""
        affine = self.affine if affine is None else affine
        return sample_volume_nearest(volume, affine, self.slice_world_points(slice_index), fill_value)

    def sample_indices_to_world(self, idx_x, idx_y, idx_z) -> np.ndarray:
        """Convert integer sample indices to world coordinates (N, 3)."""
        return np.column_stack([
            self.samples_x[np.asarray(idx_x, dtype=np.int64)],
            self.samples_y[np.asarray(idx_y, dtype=np.int64)],
            self.samples_z[np.asarray(idx_z, dtype=np.int64)],
        ])

    def world_to_sample_indices(self, world_points: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Snap world points to their nearest sampling point.

        Returns:
            indices: Integer sample indices (N, 3)
            valid: Whether each point falls within the grid (N,)
        """
        world_points = np.asarray(world_points, dtype=float).reshape(-1, 3)
        indices = np.zeros(world_points.shape, dtype=np.int64)
        valid = np.all(np.isfinite(world_points), axis=1)

        for axis, samples in enumerate((self.samples_x, self.samples_y, self.samples_z)):
            step = samples[1] - samples[0] if len(samples) > 1 else 1.0
            coords = np.where(valid, world_points[:, axis], samples[0])
            idx = np.rint((coords - samples[0]) / step).astype(np.int64)
            valid &= (idx >= 0) & (idx < len(samples))
            indices[:, axis] = np.clip(idx, 0, len(samples) - 1)

        return indices, valid
