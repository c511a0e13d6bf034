"""Per-slice extraction of the landmark-bearing object and its boundary."""

import logging
from typing import List, Optional
import numpy as np
import cv2
from scipy import ndimage

from contour.errors import FlatmapConfigurationError
from contour.table import ContourTable


class ContourExtractor:
    """Finds the single object carrying both landmarks on a slice and traces it.

    A slice without such an object is skipped (``extract`` returns None).
    Two or more qualifying objects, or an object whose boundary is not a
    single closed loop, abort with ``FlatmapConfigurationError``.
    """

    def __init__(self,
                 label_id_incision: int,
                 label_id_origin: int,
                 label_id_background: int = 0,
                 connectivity: int = 8,
                 verbose: bool = False,
                 logger: Optional[logging.Logger] = None):
        if connectivity not in (4, 8):
            raise ValueError(f"connectivity must be 4 or 8, got {connectivity}")

        self.label_id_incision = label_id_incision
        self.label_id_origin = label_id_origin
        self.label_id_background = label_id_background
        self.connectivity = connectivity
        self.verbose = verbose
        self.logger = logger or logging.getLogger(__name__)

        self.structure = ndimage.generate_binary_structure(2, 1 if connectivity == 4 else 2)

    def _log(self, slice_index: Optional[int], message: str):
        if self.verbose:
            self.logger.info(f"Slice #{slice_index}: {message}")

    def extract(self, label_slice: np.ndarray, slice_index: Optional[int] = None) -> Optional[ContourTable]:
        """Extract the ordered, labeled contour of the target object.

        Args:
            label_slice: 2D label array (rows, cols)
            slice_index: Index used in log and error messages

        Returns:
            ContourTable without offsets, or None when the slice has no
            qualifying object
        """
        label_slice = np.asarray(label_slice)
        foreground = label_slice != self.label_id_background
        if not foreground.any():
            self._log(slice_index, "no object found")
            return None

        filled = ndimage.binary_fill_holes(foreground)
        components, n_components = ndimage.label(filled, structure=self.structure)
        self._log(slice_index, f"{n_components} object(s) found")

        candidates: List[int] = []
        for component_id, box in enumerate(ndimage.find_objects(components), start=1):
            labels = np.unique(label_slice[box][components[box] == component_id])
            if self.label_id_incision in labels and self.label_id_origin in labels:
                candidates.append(component_id)
            else:
                self._log(slice_index, f"object #{component_id} skipped (labels: {labels.tolist()})")

        if not candidates:
            return None
        if len(candidates) > 1:
            raise FlatmapConfigurationError(
                f"{len(candidates)} objects contain both landmark labels "
                f"({self.label_id_incision}, {self.label_id_origin}); at most one is allowed",
                slice_index=slice_index
            )

        rows, cols = self.trace_boundary(components == candidates[0], slice_index)
        self._log(slice_index, f"valid ({len(rows)} contour pixels)")

        return ContourTable(
            sample_idx_y=rows,
            sample_idx_z=cols,
            label_ids=label_slice[rows, cols].astype(np.int64),
        )

    def trace_boundary(self, mask: np.ndarray, slice_index: Optional[int] = None):
        """Trace the single closed boundary of a binary object.

        The first pixel is not repeated at the end of the sequence.

        Returns:
            rows: Row index of each boundary pixel
            cols: Column index of each boundary pixel
        """
        image = np.ascontiguousarray(mask, dtype=np.uint8)
        contours, _ = cv2.findContours(image, cv2.RETR_CCOMP, cv2.CHAIN_APPROX_NONE)

        if len(contours) != 1:
            raise FlatmapConfigurationError(
                f"Multiple boundaries found for a single object ({len(contours)} loops)",
                slice_index=slice_index
            )

        # cv2 points are (x, y) = (col, row)
        points = contours[0].reshape(-1, 2)
        return points[:, 1].astype(np.int64), points[:, 0].astype(np.int64)
