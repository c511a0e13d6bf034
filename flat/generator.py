"""Flatmap generation from a labeled volume."""

import numpy as np
from pathlib import Path
from typing import Dict, Iterable, Optional, Tuple

from contour.alignment import ContourAligner
from contour.errors import FlatmapConfigurationError
from contour.extraction import ContourExtractor
from contour.table import ContourTable
from flat.accumulator import FlatmapAccumulator, FlatmapBounds
from flat.channels import (
    BorderChannel,
    CoordinateChannel,
    CurvatureChannel,
    FlatmapChannel,
    IntensityChannel,
    LabelChannel,
    get_channel,
)
from flat.config import (
    DEFAULT_CONNECTIVITY,
    LABEL_ID_BACKGROUND,
    LABEL_ID_INCISION,
    LABEL_ID_ORIGIN,
    OFFSET_SIGN,
)
from flat.processing_logger import ProcessingLogger
from flat.projection import SurfaceSearchIndex
from flat.rasterizer import FlatmapRasterizer
from volume.loader import load_label_volume, validate_label_volume
from volume.sampling import SamplingGrid


class FlatMapGenerator:
    """Unrolls the boundary of a labeled object, slice by slice, into a flatmap.

    All contours are extracted and aligned at construction. Rasters are
    produced on demand; the surface search index is built on the first
    point-mapping call.
    """

    def __init__(self,
                 label_volume: np.ndarray,
                 affine: Optional[np.ndarray] = None,
                 label_id_incision: int = LABEL_ID_INCISION,
                 label_id_origin: int = LABEL_ID_ORIGIN,
                 verbose_slice_parsing: bool = False,
                 enable_detailed_logging: bool = True,
                 log_dir: Optional[str | Path] = None,
                 run_label: str = 'flatmap',
                 offset_sign: int = OFFSET_SIGN,
                 connectivity: int = DEFAULT_CONNECTIVITY,
                 max_workers: Optional[int] = None,
                 show_progress: bool = False):
        """
        Args:
            label_volume: 3D array of non-negative integer labels
            affine: Voxel-to-world affine; identity (voxel space) when None
            label_id_incision: Label marking where each contour is cut
            label_id_origin: Label marking offset zero on each contour
            verbose_slice_parsing: Log the outcome of every slice
            enable_detailed_logging: Log and time construction steps
            log_dir: Also write the construction log to this directory
            run_label: Log file name stem when ``log_dir`` is set
            offset_sign: +1 for ``offset = i - o``, -1 for ``offset = o - i``
            connectivity: 4 or 8 pixel connectivity of objects
            max_workers: Threads for slice processing (sequential when None)
            show_progress: Show a tqdm bar over slices
        """
        self.enable_detailed_logging = enable_detailed_logging
        self.processing_logger = ProcessingLogger()
        self.logger = self.processing_logger.logger
        if log_dir is not None:
            self.processing_logger.configure_run(log_dir, run_label)

        try:
            self._build(label_volume, affine, label_id_incision, label_id_origin, verbose_slice_parsing,
                        offset_sign, connectivity, max_workers, show_progress)
        finally:
            if log_dir is not None:
                self.processing_logger.close_run()

        self.rasterizer = FlatmapRasterizer.from_accumulator(self.accumulator)
        self._search_index: Optional[SurfaceSearchIndex] = None

    def _build(self, label_volume, affine, label_id_incision, label_id_origin, verbose_slice_parsing,
               offset_sign, connectivity, max_workers, show_progress):
        """Validate the volume, derive the grid and accumulate every slice contour."""
        self.label_volume = validate_label_volume(label_volume)
        self.affine = np.eye(4) if affine is None else np.asarray(affine, dtype=float)
        self.label_id_incision = label_id_incision
        self.label_id_origin = label_id_origin

        self._start_step("sampling_grid", "Deriving sampling grid from volume extents")
        self.grid = SamplingGrid.from_affine(self.label_volume.shape, self.affine)
        self._log_substep(f"Grid shape {self.grid.shape}")

        self._start_step("contour_extraction", "Extracting and aligning slice contours")
        extractor = ContourExtractor(
            label_id_incision,
            label_id_origin,
            label_id_background=LABEL_ID_BACKGROUND,
            connectivity=connectivity,
            verbose=verbose_slice_parsing,
            logger=self.logger
        )
        aligner = ContourAligner(label_id_incision, label_id_origin, offset_sign=offset_sign, logger=self.logger)
        self.accumulator = FlatmapAccumulator(
            self.label_volume,
            self.grid,
            extractor,
            aligner,
            affine=self.affine,
            max_workers=max_workers,
            show_progress=show_progress,
            logger=self.logger
        )
        self.accumulator.run()

        bounds = self.bounds
        if bounds.is_empty:
            self._log_substep("No valid slices")
        else:
            if self.enable_detailed_logging:
                self.processing_logger.log_slice_counts(self.grid.n_slices, len(self.contour_tables),
                                                        bounds.top_extent, bounds.bottom_extent)
            self._log_substep(f"Valid slices {bounds.first_valid}..{bounds.last_valid}")
            self._log_substep(f"Raster size {bounds.height} x {bounds.width}")

        if self.enable_detailed_logging:
            self.processing_logger.end_step()
            self.processing_logger.log_summary()

    @classmethod
    def from_nifti(cls, volume_path: str | Path, **kwargs) -> 'FlatMapGenerator':
        """Build a generator from a NIfTI label volume."""
        data, affine = load_label_volume(volume_path)
        kwargs.setdefault('run_label', Path(volume_path).name.split('.')[0])
        return cls(data, affine, **kwargs)

    def _start_step(self, name: str, description: str = ""):
        if self.enable_detailed_logging:
            self.processing_logger.start_step(name, description)

    def _log_substep(self, message: str):
        if self.enable_detailed_logging:
            self.processing_logger.log_substep(message)

    @property
    def bounds(self) -> FlatmapBounds:
        return self.accumulator.bounds

    @property
    def contour_tables(self) -> Dict[int, ContourTable]:
        return self.accumulator.contour_tables

    @property
    def sample_idx_x_first(self) -> Optional[int]:
        return self.bounds.first_valid

    @property
    def sample_idx_x_last(self) -> Optional[int]:
        return self.bounds.last_valid

    @property
    def flatmap_height_top(self) -> int:
        return self.bounds.top_extent

    @property
    def flatmap_height_bottom(self) -> int:
        return self.bounds.bottom_extent

    @property
    def samples_x(self) -> np.ndarray:
        return self.grid.samples_x

    @property
    def search_index(self) -> SurfaceSearchIndex:
        if self._search_index is None:
            self._search_index = SurfaceSearchIndex.from_accumulator(self.accumulator, logger=self.logger)
        return self._search_index

    def create_flatmap(self, channel: FlatmapChannel | str, label_ids_to_remove: Iterable[int] = ()) -> np.ndarray:
        """Rasterize any channel rule, given as an instance or by name."""
        if isinstance(channel, str):
            channel = get_channel(channel)
        raster = self.rasterizer.rasterize(channel, label_ids_to_remove)
        if self.enable_detailed_logging:
            self.processing_logger.log_raster(channel.name, raster)
        return raster

    def create_label_flatmap(self, label_ids_to_remove: Iterable[int] = ()) -> np.ndarray:
        return self.create_flatmap(LabelChannel(), label_ids_to_remove)

    def create_border_flatmap(self, label_ids_to_remove: Iterable[int] = ()) -> np.ndarray:
        return self.create_flatmap(BorderChannel(), label_ids_to_remove)

    def create_curvature_flatmap(self, label_ids_to_remove: Iterable[int] = ()) -> np.ndarray:
        return self.create_flatmap(CurvatureChannel(), label_ids_to_remove)

    def create_coordinate_flatmap(self, label_ids_to_remove: Iterable[int] = ()) -> np.ndarray:
        """World (Y, Z) of every flatmap cell, shape (height, width, 2)."""
        return self.create_flatmap(CoordinateChannel(), label_ids_to_remove)

    def create_intensity_flatmap(self,
                                 intensity_volume: np.ndarray,
                                 intensity_affine: Optional[np.ndarray] = None,
                                 label_ids_to_remove: Iterable[int] = (),
                                 require_matching_extents: bool = False) -> np.ndarray:
        """Sample a co-registered volume along every contour.

        Args:
            intensity_volume: 3D array of any extents
            intensity_affine: Its voxel-to-world affine (defaults to the label affine)
            label_ids_to_remove: Labels whose points are set to NaN
            require_matching_extents: Reject volumes whose shape differs from the labels
        """
        intensity_volume = np.asarray(intensity_volume)
        if require_matching_extents and intensity_volume.shape != self.label_volume.shape:
            raise FlatmapConfigurationError(
                f"Intensity volume shape {intensity_volume.shape} does not match "
                f"label volume shape {self.label_volume.shape}"
            )
        affine = self.affine if intensity_affine is None else intensity_affine
        return self.create_flatmap(IntensityChannel(intensity_volume, affine), label_ids_to_remove)

    def map_world_points_to_flatmap(self, xs, ys, zs, verbose: bool = False) -> Tuple[np.ndarray, np.ndarray]:
        """Map world coordinates onto flatmap rows and columns.

        Args:
            xs, ys, zs: Arrays of equal shape holding world coordinates
            verbose: Log points that could not be mapped

        Returns:
            rows, cols: Float arrays of the input shape, NaN where unmapped
        """
        xs, ys, zs = (np.asarray(a, dtype=float) for a in (xs, ys, zs))
        if not (xs.shape == ys.shape == zs.shape):
            raise ValueError(f"Coordinate arrays must have the same shape, got {xs.shape}, {ys.shape}, {zs.shape}")

        points = np.column_stack([xs.ravel(), ys.ravel(), zs.ravel()])
        rows, cols = self.search_index.map_points_to_flatmap(points, verbose=verbose)
        return rows.reshape(xs.shape), cols.reshape(xs.shape)

    def get_slice_contour_world_coords(self, slice_index: int) -> Tuple[np.ndarray, np.ndarray]:
        """World (Y, Z) of the contour on a slice, in traversal order."""
        if slice_index not in self.contour_tables:
            raise ValueError(f"Slice #{slice_index} has no valid contour")
        table = self.contour_tables[slice_index]
        return self.grid.samples_y[table.sample_idx_y], self.grid.samples_z[table.sample_idx_z]
