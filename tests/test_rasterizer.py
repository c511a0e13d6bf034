import numpy as np
import pytest

from contour.alignment import ContourAligner
from contour.table import ContourTable
from flat.accumulator import FlatmapBounds
from flat.channels import (
    BorderChannel,
    CoordinateChannel,
    CurvatureChannel,
    IntensityChannel,
    LabelChannel,
    SliceContext,
    get_channel,
)
from flat.rasterizer import FlatmapRasterizer
from volume.sampling import SamplingGrid
from conftest import INCISION, ORIGIN

FIVE_POINT_LABELS = [INCISION, 10, ORIGIN, 20, 30]


def five_point_rasterizer(labels=(20, 30, INCISION, 10, ORIGIN)):
    """Five points around a 3x3 square; incision at point 0 and origin at point 2 once aligned."""
    raw = ContourTable(
        sample_idx_y=np.array([2, 1, 0, 0, 2]),
        sample_idx_z=np.array([0, 0, 0, 2, 2]),
        label_ids=np.array(labels),
    )
    aligned, top, bottom = ContourAligner(INCISION, ORIGIN).align(raw, 0)
    grid = SamplingGrid.from_shape((1, 3, 3))
    return FlatmapRasterizer({0: aligned}, FlatmapBounds.from_slice(0, top, bottom), grid), aligned


def test_label_raster_round_trip():
    rasterizer, table = five_point_rasterizer()
    raster = rasterizer.rasterize(LabelChannel())

    assert raster.shape == (5, 1)
    assert raster.dtype == np.uint8
    np.testing.assert_array_equal(table.offsets, [-2, -1, 0, 1, 2])
    for point in table:
        assert raster[point.offset + 2, 0] == point.label_id
    np.testing.assert_array_equal(raster[:, 0], FIVE_POINT_LABELS)


def test_coordinate_raster_has_two_channels():
    rasterizer, _ = five_point_rasterizer()
    raster = rasterizer.rasterize(CoordinateChannel())

    assert raster.shape == (5, 1, 2)
    np.testing.assert_array_equal(raster[:, 0, 0], [0, 0, 2, 2, 1])
    np.testing.assert_array_equal(raster[:, 0, 1], [0, 2, 2, 0, 0])


def test_intensity_raster_samples_world_positions():
    rasterizer, _ = five_point_rasterizer()
    volume = np.arange(9, dtype=float).reshape(1, 3, 3)
    raster = rasterizer.rasterize(IntensityChannel(volume, np.eye(4)))
    np.testing.assert_array_equal(raster[:, 0], [0, 2, 8, 6, 3])


def test_intensity_outside_volume_is_nan():
    rasterizer, _ = five_point_rasterizer()
    volume = np.ones((1, 2, 2))
    raster = rasterizer.rasterize(IntensityChannel(volume))
    assert raster[0, 0] == 1.0
    assert np.isnan(raster[2, 0])


@pytest.mark.parametrize("channel", [
    LabelChannel(),
    BorderChannel(),
    CurvatureChannel(),
    CoordinateChannel(),
    IntensityChannel(np.ones((1, 3, 3))),
])
def test_suppressing_every_label_blanks_the_column(channel):
    rasterizer, _ = five_point_rasterizer()
    raster = rasterizer.rasterize(channel, label_ids_to_remove=FIVE_POINT_LABELS)

    if channel.value_type == 'discrete':
        assert np.all(raster == 0)
    else:
        assert np.all(np.isnan(raster))


def test_suppression_only_hits_listed_labels():
    rasterizer, _ = five_point_rasterizer()
    raster = rasterizer.rasterize(LabelChannel(), label_ids_to_remove=[INCISION, ORIGIN])
    np.testing.assert_array_equal(raster[:, 0], [0, 10, 0, 20, 30])


def test_border_marks_label_changes_and_ends():
    table = ContourTable(np.zeros(5, dtype=int), np.arange(5), np.array([10, 10, 10, 20, 20]))
    context = SliceContext(0, SamplingGrid.from_shape((1, 1, 5)))
    np.testing.assert_array_equal(BorderChannel().compute_values(table, context), [1, 0, 1, 1, 1])


def test_curvature_of_straight_contour_is_zero():
    table = ContourTable(np.arange(5), np.zeros(5, dtype=int), np.full(5, 10))
    context = SliceContext(0, SamplingGrid.from_shape((1, 5, 1)))
    np.testing.assert_allclose(CurvatureChannel().compute_values(table, context), 0.0)


def test_curvature_of_single_point_is_nan():
    table = ContourTable(np.array([0]), np.array([0]), np.array([10]))
    context = SliceContext(0, SamplingGrid.from_shape((1, 1, 1)))
    assert np.isnan(CurvatureChannel().compute_values(table, context)).all()


def test_large_labels_widen_the_dtype():
    rasterizer, _ = five_point_rasterizer(labels=(20, 300, INCISION, 10, ORIGIN))
    raster = rasterizer.rasterize(LabelChannel())
    assert raster.dtype == np.uint16
    assert raster[4, 0] == 300


def test_raster_is_read_only():
    rasterizer, _ = five_point_rasterizer()
    raster = rasterizer.rasterize(LabelChannel())
    with pytest.raises(ValueError):
        raster[0, 0] = 1


@pytest.mark.parametrize("bad_ids", [[0], [-3], [1.5], ["10"]])
def test_invalid_label_ids_to_remove(bad_ids):
    rasterizer, _ = five_point_rasterizer()
    with pytest.raises(ValueError):
        rasterizer.rasterize(LabelChannel(), label_ids_to_remove=bad_ids)


def test_channels_by_name():
    assert isinstance(get_channel('border'), BorderChannel)
    assert get_channel('coordinate').n_channels == 2
    with pytest.raises(ValueError):
        get_channel('thickness')
