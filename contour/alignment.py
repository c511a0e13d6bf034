"""Cutting a closed contour at the incision and offsetting it from the origin."""

import logging
from typing import Optional, Tuple
import numpy as np

from contour.errors import FlatmapConfigurationError
from contour.table import ContourTable


class ContourAligner:
    """Rotates a contour to start at the incision and assigns signed offsets.

    With ``offset_sign=1`` the origin gets offset 0, points before it are
    negative and points after it positive. ``offset_sign=-1`` flips this.

    A contour may cross the incision label more than once, e.g. where a
    thick incision line meets the boundary. By default the contour is cut at
    the first such pixel in traversal order and a warning is logged; with
    ``strict_incision=True`` it is rejected with ``FlatmapConfigurationError``.
    """

    def __init__(self,
                 label_id_incision: int,
                 label_id_origin: int,
                 offset_sign: int = 1,
                 strict_incision: bool = False,
                 logger: Optional[logging.Logger] = None):
        if offset_sign not in (1, -1):
            raise ValueError(f"offset_sign must be 1 or -1, got {offset_sign}")

        self.label_id_incision = label_id_incision
        self.label_id_origin = label_id_origin
        self.offset_sign = offset_sign
        self.strict_incision = strict_incision
        self.logger = logger or logging.getLogger(__name__)

    def rotate_to_incision(self, table: ContourTable, slice_index: Optional[int] = None) -> ContourTable:
        """Reorder so the first incision point becomes index 0."""
        k = table.find_first(self.label_id_incision)
        if k is None:
            raise FlatmapConfigurationError(
                f"Contour does not contain the incision label {self.label_id_incision}",
                slice_index=slice_index
            )

        n_incision = int(np.count_nonzero(table.label_ids == self.label_id_incision))
        if n_incision > 1:
            if self.strict_incision:
                raise FlatmapConfigurationError(
                    f"{n_incision} incision pixels on contour, exactly one is required",
                    slice_index=slice_index
                )
            self.logger.warning(
                f"Slice #{slice_index}: {n_incision} incision pixels on contour, cutting at the first"
            )

        n = len(table)
        order = (np.arange(n) + k) % n
        return table.reordered(order)

    def align(self, table: ContourTable, slice_index: Optional[int] = None) -> Tuple[ContourTable, int, int]:
        """Cut the contour and compute offsets.

        Returns:
            table: Rotated table with offsets
            top_extent: max(offset)
            bottom_extent: -min(offset)
        """
        rotated = self.rotate_to_incision(table, slice_index)

        o = rotated.find_first(self.label_id_origin)
        if o is None:
            raise FlatmapConfigurationError(
                f"Contour does not contain the origin label {self.label_id_origin}",
                slice_index=slice_index
            )

        offsets = self.offset_sign * (np.arange(len(rotated), dtype=np.int64) - o)
        aligned = rotated.with_offsets(offsets)
        return aligned, aligned.top_extent, aligned.bottom_extent
