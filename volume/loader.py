"""Loaders for label volumes, intensity volumes, color tables and point clouds."""

from pathlib import Path
from typing import Tuple
import pandas as pd
import nibabel as nib
import numpy as np


def load_label_volume(volume_path: str | Path) -> Tuple[np.ndarray, np.ndarray]:
    """Load a 3D NIfTI label volume (NIfTI-1 or NIfTI-2).

    Returns:
        data: Integer label array (X, Y, Z)
        affine: Voxel-to-world affine (4, 4)
    """
    img = nib.load(Path(volume_path))
    data = np.asanyarray(img.dataobj)
    data = validate_label_volume(data, name=str(volume_path))
    return data, img.affine


def validate_label_volume(data: np.ndarray, name: str = "label volume") -> np.ndarray:
    """Reject volumes that are not 3D arrays of non-negative integers."""
    data = np.asarray(data)
    if data.ndim != 3:
        raise ValueError(f"{name} must be 3D, got shape {data.shape}")

    if not np.issubdtype(data.dtype, np.integer):
        if not np.issubdtype(data.dtype, np.floating):
            raise ValueError(f"{name} has unsupported dtype {data.dtype}")
        if not np.all(np.isfinite(data)) or not np.all(data == np.round(data)):
            raise ValueError(f"{name} contains non-integer labels")
        data = data.astype(np.int64)

    if data.size and data.min() < 0:
        raise ValueError(f"{name} contains negative labels")
    return data


def load_intensity_volume(volume_path: str | Path) -> Tuple[np.ndarray, np.ndarray]:
    """Load an intensity volume of arbitrary extents as float data."""
    img = nib.load(Path(volume_path))
    data = img.get_fdata()
    if data.ndim != 3:
        raise ValueError(f"Intensity volume must be 3D, got shape {data.shape}")
    return data, img.affine


def read_color_table(color_table_path: str | Path) -> pd.DataFrame:
    """Read a 3D Slicer color table (.ctbl).

    Each line holds ``id name r g b a`` separated by spaces; lines starting
    with ``#`` are comments.

    Returns:
        DataFrame with columns ``id``, ``label_name`` and ``color`` (uint8 RGB)
    """
    table = pd.read_csv(
        color_table_path,
        sep=r'\s+',
        comment='#',
        header=None,
        engine='python'
    )
    if table.shape[1] < 5:
        raise ValueError(f"Color table needs at least 5 columns (id name r g b): {color_table_path}")

    colors = table.iloc[:, 2:5].to_numpy(dtype=np.uint8)
    return pd.DataFrame({
        'id': table.iloc[:, 0].astype(int).to_numpy(),
        'label_name': table.iloc[:, 1].astype(str).to_numpy(),
        'color': [tuple(int(c) for c in rgb) for rgb in colors]
    })


def load_world_points(points_path: str | Path) -> np.ndarray:
    """Load an (N, 3) world-space point cloud from delimited text."""
    table = pd.read_csv(
        points_path,
        sep=r'[,\s]+',
        comment='#',
        header=None,
        engine='python'
    )
    points = table.dropna(axis=1, how='all').to_numpy(dtype=float)
    if points.ndim != 2 or points.shape[1] != 3:
        raise ValueError(f"Expected 3 columns (X, Y, Z) in {points_path}, got {points.shape}")
    return points
