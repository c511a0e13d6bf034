"""Slice-wise contour accumulation and global flatmap bounds."""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from functools import reduce
from typing import Dict, Optional, Tuple
import numpy as np
from tqdm import tqdm

from contour.alignment import ContourAligner
from contour.extraction import ContourExtractor
from contour.table import ContourTable
from volume.sampling import SamplingGrid


@dataclass(frozen=True)
class FlatmapBounds:
    """Valid slice range and vertical extents of a flatmap.

    ``merge`` is associative and commutative, so per-slice bounds can be
    folded in any order.
    """

    first_valid: Optional[int] = None
    last_valid: Optional[int] = None
    top_extent: int = 0
    bottom_extent: int = 0

    @classmethod
    def from_slice(cls, slice_index: int, top_extent: int, bottom_extent: int) -> 'FlatmapBounds':
        return cls(slice_index, slice_index, top_extent, bottom_extent)

    def merge(self, other: 'FlatmapBounds') -> 'FlatmapBounds':
        if other.is_empty:
            return self
        if self.is_empty:
            return other
        return FlatmapBounds(
            first_valid=min(self.first_valid, other.first_valid),
            last_valid=max(self.last_valid, other.last_valid),
            top_extent=max(self.top_extent, other.top_extent),
            bottom_extent=max(self.bottom_extent, other.bottom_extent),
        )

    @property
    def is_empty(self) -> bool:
        return self.first_valid is None

    @property
    def height(self) -> int:
        return 0 if self.is_empty else self.top_extent + self.bottom_extent + 1

    @property
    def width(self) -> int:
        return 0 if self.is_empty else self.last_valid - self.first_valid + 1

    @property
    def shape(self) -> Tuple[int, int]:
        return (self.height, self.width)

    def to_raster_position(self, offsets, slice_index):
        """Raster (row, column) of contour offsets on a slice."""
        rows = np.asarray(offsets) + self.bottom_extent
        cols = np.asarray(slice_index) - self.first_valid
        return rows, cols


class FlatmapAccumulator:
    """Runs contour extraction and alignment over every slice of a volume."""

    def __init__(self,
                 label_volume: np.ndarray,
                 grid: SamplingGrid,
                 extractor: ContourExtractor,
                 aligner: ContourAligner,
                 affine: Optional[np.ndarray] = None,
                 max_workers: Optional[int] = None,
                 show_progress: bool = False,
                 logger: Optional[logging.Logger] = None):
        self.label_volume = label_volume
        self.grid = grid
        self.extractor = extractor
        self.aligner = aligner
        self.affine = grid.affine if affine is None else affine
        self.max_workers = max_workers
        self.show_progress = show_progress
        self.logger = logger or logging.getLogger(__name__)

        self.contour_tables: Dict[int, ContourTable] = {}
        self.bounds = FlatmapBounds()
        self.is_complete = False

    def process_slice(self, slice_index: int) -> Tuple[int, Optional[ContourTable], FlatmapBounds]:
        """Extract and align the contour of one slice."""
        label_slice = self.grid.sample_slice(self.label_volume, slice_index, self.affine)
        table = self.extractor.extract(label_slice, slice_index)
        if table is None:
            return slice_index, None, FlatmapBounds()

        aligned, top, bottom = self.aligner.align(table, slice_index)
        return slice_index, aligned, FlatmapBounds.from_slice(slice_index, top, bottom)

    def run(self) -> FlatmapBounds:
        """Process all slices and fold their bounds.

        Returns:
            The accumulated bounds (empty when no slice holds a valid contour)
        """
        slice_indices = range(self.grid.n_slices)

        if self.max_workers and self.max_workers > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                results = list(tqdm(executor.map(self.process_slice, slice_indices),
                                    total=len(slice_indices), desc="Slices",
                                    disable=not self.show_progress))
        else:
            results = [self.process_slice(i) for i in tqdm(slice_indices, desc="Slices",
                                                           disable=not self.show_progress)]

        self.contour_tables = {i: table for i, table, _ in results if table is not None}
        self.bounds = reduce(FlatmapBounds.merge, (b for _, _, b in results), FlatmapBounds())
        self.is_complete = True

        if self.bounds.is_empty:
            self.logger.warning("No slice contains a valid contour")
        return self.bounds
