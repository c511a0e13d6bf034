import numpy as np
import pytest

from contour.errors import FlatmapConfigurationError
from contour.extraction import ContourExtractor
from conftest import BODY, INCISION, ORIGIN, square_slice


def make_extractor(**kwargs):
    return ContourExtractor(INCISION, ORIGIN, **kwargs)


def test_empty_slice_has_no_object():
    assert make_extractor().extract(np.zeros((6, 6), dtype=int), 0) is None


def test_square_contour_lies_on_the_boundary(label_slice):
    table = make_extractor().extract(label_slice, 1)

    assert len(table) == 24
    assert not table.is_aligned
    on_edge = np.isin(table.sample_idx_y, [2, 8]) | np.isin(table.sample_idx_z, [2, 8])
    assert on_edge.all()
    assert len({(r, c) for r, c in zip(table.sample_idx_y, table.sample_idx_z)}) == 24
    np.testing.assert_array_equal(table.label_ids, label_slice[table.sample_idx_y, table.sample_idx_z])
    assert np.count_nonzero(table.label_ids == INCISION) == 1
    assert np.count_nonzero(table.label_ids == ORIGIN) == 1


def test_object_without_landmarks_is_skipped():
    label_slice = np.zeros((8, 8), dtype=int)
    label_slice[2:6, 2:6] = BODY
    assert make_extractor(verbose=True).extract(label_slice, 3) is None


def test_unrelated_objects_are_ignored(label_slice):
    label_slice = label_slice.copy()
    label_slice[10:12, 10:12] = BODY
    table = make_extractor().extract(label_slice, 1)
    assert len(table) == 24
    assert table.sample_idx_y.max() == 8


def test_two_landmark_objects_are_rejected():
    label_slice = np.zeros((10, 20), dtype=int)
    label_slice[2:7, 2:7] = BODY
    label_slice[2, 4] = INCISION
    label_slice[6, 4] = ORIGIN
    label_slice[2:7, 12:17] = BODY
    label_slice[2, 14] = INCISION
    label_slice[6, 14] = ORIGIN

    with pytest.raises(FlatmapConfigurationError) as excinfo:
        make_extractor().extract(label_slice, 7)
    assert excinfo.value.slice_index == 7
    assert "Slice #7" in str(excinfo.value)


def test_enclosed_background_is_filled_before_tracing():
    label_slice = square_slice()
    label_slice[4:7, 4:7] = 0
    table = make_extractor().extract(label_slice, 0)
    assert len(table) == 24


def test_diagonal_touch_joins_objects_only_with_8_connectivity():
    label_slice = np.zeros((10, 10), dtype=int)
    label_slice[1:4, 1:4] = BODY
    label_slice[4:7, 4:7] = BODY
    label_slice[1, 2] = INCISION
    label_slice[6, 5] = ORIGIN

    assert make_extractor(connectivity=8).extract(label_slice, 0) is not None
    assert make_extractor(connectivity=4).extract(label_slice, 0) is None


def test_ring_mask_has_multiple_boundaries():
    mask = np.zeros((9, 9), dtype=bool)
    mask[1:8, 1:8] = True
    mask[3:6, 3:6] = False

    with pytest.raises(FlatmapConfigurationError, match="Multiple boundaries"):
        make_extractor().trace_boundary(mask, 4)


def test_invalid_connectivity():
    with pytest.raises(ValueError):
        make_extractor(connectivity=6)


def test_landmark_object_found_among_many_specks(label_slice):
    label_slice = np.pad(label_slice, ((0, 40), (0, 40)))
    label_slice[14::3, 14::3] = BODY
    table = make_extractor().extract(label_slice, 1)

    assert len(table) == 24
    assert table.sample_idx_y.max() == 8
    assert table.sample_idx_z.max() == 8
