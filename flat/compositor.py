"""Composition of several independently unrolled regions into one flatmap."""

import logging
from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional, Tuple
import numpy as np

from contour.errors import FlatmapConfigurationError
from flat.accumulator import FlatmapBounds
from flat.config import (
    DEFAULT_LABEL_IDS_TO_REMOVE,
    DEFAULT_VERTICAL_OFFSETS,
    DEFAULT_VERTICAL_PADDING,
    REGION_FLOCCULUS,
    REGION_MAIN,
    REGION_PARAFLOCCULUS,
)
from flat.generator import FlatMapGenerator


def merge_overlay(target: np.ndarray, insert: np.ndarray) -> np.ndarray:
    """Overlay two equally shaped blocks.

    NaN on both sides stays NaN, NaN on one side yields the other value, and
    two real values are summed.
    """
    both_nan = np.isnan(target) & np.isnan(insert)
    return np.where(both_nan, np.nan, np.nan_to_num(target, nan=0.0) + np.nan_to_num(insert, nan=0.0))


class CompositeLayout:
    """Canvas geometry of a composite flatmap.

    Regions are stacked at fixed vertical offsets. Columns are aligned on the
    first valid slice of a reference region, by default the widest region
    other than the primary one.
    """

    def __init__(self,
                 bounds: Mapping[str, FlatmapBounds],
                 primary: str = REGION_MAIN,
                 vertical_offsets: Optional[Mapping[str, int]] = None,
                 vertical_padding: int = DEFAULT_VERTICAL_PADDING,
                 reference: Optional[str] = None):
        if primary not in bounds:
            raise ValueError(f"Primary region '{primary}' is not among {list(bounds)}")
        vertical_offsets = dict(DEFAULT_VERTICAL_OFFSETS if vertical_offsets is None else vertical_offsets)
        missing = [name for name in bounds if name not in vertical_offsets]
        if missing:
            raise ValueError(f"No vertical offset for region(s) {missing}")
        empty = [name for name, b in bounds.items() if b.is_empty]
        if empty:
            raise FlatmapConfigurationError(f"Region(s) {empty} have no valid contour")

        self.bounds = dict(bounds)
        self.primary = primary
        self.vertical_offsets = vertical_offsets
        self.vertical_padding = vertical_padding

        if reference is None:
            satellites = [name for name in self.bounds if name != primary]
            reference = max(satellites, key=lambda name: self.bounds[name].width) if satellites else primary
        elif reference not in self.bounds:
            raise ValueError(f"Reference region '{reference}' is not among {list(bounds)}")
        self.reference = reference

    @property
    def canvas_shape(self) -> Tuple[int, int]:
        return (self.bounds[self.primary].height + self.vertical_padding,
                self.bounds[self.reference].width)

    @property
    def reference_first(self) -> int:
        return self.bounds[self.reference].first_valid

    def placement(self, name: str) -> Tuple[int, int]:
        """Top-left (row, column) of a region on the canvas."""
        return self.vertical_offsets[name], self.bounds[name].first_valid - self.reference_first

    def translate(self, name: str, rows: np.ndarray, cols: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Convert region raster positions to canvas positions."""
        row0, col0 = self.placement(name)
        return np.asarray(rows) + row0, np.asarray(cols) + col0

    def combine(self, flatmaps: Mapping[str, np.ndarray]) -> np.ndarray:
        """Place every region raster on the canvas and overlay them.

        The canvas is NaN-filled when any input holds NaN, otherwise
        zero-filled with the widest dtype among the region rasters.
        """
        arrays = {name: np.asarray(flatmaps[name]) for name in self.bounds}
        trailing = arrays[self.primary].shape[2:]
        shape = self.canvas_shape + trailing

        has_nan = any(np.issubdtype(a.dtype, np.floating) and np.isnan(a).any() for a in arrays.values())
        out_dtype = float if has_nan else np.result_type(*arrays.values())
        canvas = np.full(shape, np.nan) if has_nan else np.zeros(shape, dtype=float)

        for name, flatmap in arrays.items():
            row0, col0 = self.placement(name)
            height, width = flatmap.shape[:2]
            if (row0 < 0 or col0 < 0 or row0 + height > shape[0] or col0 + width > shape[1]
                    or flatmap.shape[2:] != trailing):
                raise FlatmapConfigurationError(
                    f"Region '{name}' of shape {flatmap.shape} at ({row0}, {col0}) "
                    f"does not fit the composite canvas {shape}"
                )
            block = (slice(row0, row0 + height), slice(col0, col0 + width))
            canvas[block] = merge_overlay(canvas[block], flatmap.astype(float))

        if not has_nan and np.issubdtype(out_dtype, np.integer):
            info = np.iinfo(out_dtype)
            canvas = np.clip(canvas, info.min, info.max)
        result = canvas.astype(out_dtype)
        result.flags.writeable = False
        return result


class RegionCompositor:
    """Runs one flatmap pipeline per region and stitches their outputs."""

    def __init__(self,
                 generators: Mapping[str, FlatMapGenerator],
                 primary: str = REGION_MAIN,
                 vertical_offsets: Optional[Mapping[str, int]] = None,
                 vertical_padding: int = DEFAULT_VERTICAL_PADDING,
                 label_ids_to_remove: Iterable[int] = DEFAULT_LABEL_IDS_TO_REMOVE,
                 reference: Optional[str] = None,
                 logger: Optional[logging.Logger] = None):
        self.generators = dict(generators)
        self.label_ids_to_remove = tuple(label_ids_to_remove)
        self.logger = logger or logging.getLogger('label_flatmaps')
        self.layout = CompositeLayout(
            self.bounds_by_region(),
            primary=primary,
            vertical_offsets=vertical_offsets,
            vertical_padding=vertical_padding,
            reference=reference
        )

    @classmethod
    def from_nifti(cls,
                   main_path: str | Path,
                   flocculus_path: str | Path,
                   paraflocculus_path: str | Path,
                   generator_kwargs: Optional[Dict] = None,
                   **kwargs) -> 'RegionCompositor':
        """Build the main/flocculus/paraflocculus composite from NIfTI files."""
        generator_kwargs = generator_kwargs or {}
        paths = {
            REGION_MAIN: main_path,
            REGION_FLOCCULUS: flocculus_path,
            REGION_PARAFLOCCULUS: paraflocculus_path,
        }
        generators = {name: FlatMapGenerator.from_nifti(path, **generator_kwargs) for name, path in paths.items()}
        return cls(generators, primary=REGION_MAIN, **kwargs)

    def bounds_by_region(self) -> Dict[str, FlatmapBounds]:
        return {name: gen.bounds for name, gen in self.generators.items()}

    @property
    def canvas_shape(self) -> Tuple[int, int]:
        return self.layout.canvas_shape

    def _create(self, method_name: str, *args, **kwargs) -> np.ndarray:
        flatmaps = {
            name: getattr(gen, method_name)(*args, label_ids_to_remove=self.label_ids_to_remove, **kwargs)
            for name, gen in self.generators.items()
        }
        return self.layout.combine(flatmaps)

    def create_label_flatmap(self) -> np.ndarray:
        return self._create('create_label_flatmap')

    def create_border_flatmap(self) -> np.ndarray:
        return self._create('create_border_flatmap')

    def create_curvature_flatmap(self) -> np.ndarray:
        return self._create('create_curvature_flatmap')

    def create_coordinate_flatmap(self) -> np.ndarray:
        return self._create('create_coordinate_flatmap')

    def create_intensity_flatmap(self, intensity_volume: np.ndarray,
                                 intensity_affine: Optional[np.ndarray] = None) -> np.ndarray:
        return self._create('create_intensity_flatmap', intensity_volume, intensity_affine)

    def world_x_per_column(self) -> np.ndarray:
        """World X coordinate of each composite column."""
        reference = self.generators[self.layout.reference]
        first = self.layout.reference_first
        return reference.samples_x[first:first + self.canvas_shape[1]]

    def map_world_points_to_flatmap(self, xs, ys, zs, verbose: bool = False) -> Tuple[np.ndarray, np.ndarray]:
        """Map world coordinates onto composite rows and columns.

        Regions are tried in insertion order; a point mapped by more than one
        region keeps the first mapping.
        """
        xs = np.asarray(xs, dtype=float)
        rows = np.full(xs.shape, np.nan)
        cols = np.full(xs.shape, np.nan)
        n_overlapping = 0

        for name, gen in self.generators.items():
            region_rows, region_cols = gen.map_world_points_to_flatmap(xs, ys, zs, verbose=verbose)
            hit = ~np.isnan(region_rows)
            claimed = ~np.isnan(rows)
            n_overlapping += int(np.count_nonzero(hit & claimed))

            take = hit & ~claimed
            r, c = self.layout.translate(name, region_rows[take], region_cols[take])
            rows[take] = r
            cols[take] = c

        if n_overlapping:
            self.logger.warning(f"{n_overlapping} point(s) fall inside more than one region; first region kept")
        return rows, cols
