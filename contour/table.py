"""Ordered contour pixels of one slice."""

from dataclasses import dataclass
from typing import Iterator, NamedTuple, Optional
import numpy as np


class ContourPoint(NamedTuple):
    in_slice_row: int
    in_slice_col: int
    label_id: int
    offset: Optional[int]


@dataclass(frozen=True, eq=False)
class ContourTable:
    """Contour pixels of the target object on a slice, in traversal order.

    ``sample_idx_y`` and ``sample_idx_z`` are the row and column of each
    pixel on the slice. ``offsets`` stays None until the table is aligned.
    """

    sample_idx_y: np.ndarray
    sample_idx_z: np.ndarray
    label_ids: np.ndarray
    offsets: Optional[np.ndarray] = None

    def __post_init__(self):
        n = len(self.sample_idx_y)
        columns = [self.sample_idx_z, self.label_ids]
        if self.offsets is not None:
            columns.append(self.offsets)
        if any(len(col) != n for col in columns):
            raise ValueError("Contour table columns must have equal length")

    def __len__(self) -> int:
        return len(self.sample_idx_y)

    def __iter__(self) -> Iterator[ContourPoint]:
        for i in range(len(self)):
            offset = None if self.offsets is None else int(self.offsets[i])
            yield ContourPoint(int(self.sample_idx_y[i]), int(self.sample_idx_z[i]),
                               int(self.label_ids[i]), offset)

    @property
    def is_aligned(self) -> bool:
        return self.offsets is not None

    @property
    def top_extent(self) -> int:
        self._require_offsets()
        return int(self.offsets.max())

    @property
    def bottom_extent(self) -> int:
        self._require_offsets()
        return int(-self.offsets.min())

    def _require_offsets(self):
        if self.offsets is None:
            raise ValueError("Contour table has no offsets; align it first")

    def reordered(self, order: np.ndarray) -> 'ContourTable':
        """Return a copy with rows taken in ``order`` (offsets are dropped)."""
        return ContourTable(
            sample_idx_y=self.sample_idx_y[order],
            sample_idx_z=self.sample_idx_z[order],
            label_ids=self.label_ids[order],
        )

    def with_offsets(self, offsets: np.ndarray) -> 'ContourTable':
        return ContourTable(self.sample_idx_y, self.sample_idx_z, self.label_ids,
                            np.asarray(offsets, dtype=np.int64))

    def find_first(self, label_id: int) -> Optional[int]:
        """Index of the first point carrying ``label_id``, or None."""
        hits = np.flatnonzero(self.label_ids == label_id)
        return int(hits[0]) if hits.size else None
