import numpy as np
import pytest

from contour.errors import FlatmapConfigurationError
from flat.accumulator import FlatmapBounds
from flat.compositor import CompositeLayout, RegionCompositor, merge_overlay
from flat.generator import FlatMapGenerator
from conftest import INCISION, ORIGIN

# main: 10 rows x 7 columns from slice 2; sat: 3 rows x 10 columns from slice 0
BOUNDS = {
    'main': FlatmapBounds(first_valid=2, last_valid=8, top_extent=4, bottom_extent=5),
    'sat': FlatmapBounds(first_valid=0, last_valid=9, top_extent=1, bottom_extent=1),
}
OFFSETS = {'main': 0, 'sat': 4}


def test_layout_geometry():
    layout = CompositeLayout(BOUNDS, primary='main', vertical_offsets=OFFSETS, vertical_padding=2)
    assert layout.reference == 'sat'
    assert layout.canvas_shape == (12, 10)
    assert layout.placement('main') == (0, 2)
    assert layout.placement('sat') == (4, 0)

    rows, cols = layout.translate('main', np.array([1.0]), np.array([3.0]))
    assert (rows[0], cols[0]) == (1.0, 5.0)


def test_reference_is_the_widest_satellite():
    bounds = dict(BOUNDS, small=FlatmapBounds(3, 5, 0, 0))
    layout = CompositeLayout(bounds, primary='main', vertical_offsets=dict(OFFSETS, small=1))
    assert layout.reference == 'sat'


def test_composite_additive_overlay_discrete():
    layout = CompositeLayout(BOUNDS, primary='main', vertical_offsets=OFFSETS)
    main = np.zeros((10, 7), dtype=np.uint8)
    main[5, 3] = 3
    main[0, 0] = 3
    sat = np.zeros((3, 10), dtype=np.uint8)
    sat[1, 5] = 4
    sat[0, 9] = 4

    composite = layout.combine({'main': main, 'sat': sat})
    assert composite.dtype == np.uint8
    assert composite.shape == (10, 10)
    assert composite[5, 5] == 7
    assert composite[0, 2] == 3
    assert composite[4, 9] == 4
    assert composite[9, 0] == 0
    assert np.count_nonzero(composite) == 3


def test_composite_additive_overlay_with_nan():
    layout = CompositeLayout(BOUNDS, primary='main', vertical_offsets=OFFSETS)
    main = np.full((10, 7), np.nan)
    main[5, 3] = 3.0
    main[0, 0] = 3.0
    sat = np.full((3, 10), np.nan)
    sat[1, 5] = 4.0
    sat[0, 9] = 4.0

    composite = layout.combine({'main': main, 'sat': sat})
    assert composite[5, 5] == 7.0
    assert composite[0, 2] == 3.0
    assert composite[4, 9] == 4.0
    assert np.isnan(composite[9, 0])
    assert np.count_nonzero(~np.isnan(composite)) == 3


def test_merge_overlay_rules():
    target = np.array([np.nan, np.nan, 1.0, 2.0])
    insert = np.array([np.nan, 5.0, np.nan, 3.0])
    merged = merge_overlay(target, insert)
    assert np.isnan(merged[0])
    np.testing.assert_array_equal(merged[1:], [5.0, 1.0, 5.0])


def test_region_outside_canvas_is_rejected():
    layout = CompositeLayout(BOUNDS, primary='main', vertical_offsets={'main': 0, 'sat': 8})
    with pytest.raises(FlatmapConfigurationError):
        layout.combine({'main': np.zeros((10, 7)), 'sat': np.zeros((3, 10))})


def test_layout_argument_errors():
    with pytest.raises(ValueError):
        CompositeLayout(BOUNDS, primary='other', vertical_offsets=OFFSETS)
    with pytest.raises(ValueError):
        CompositeLayout(BOUNDS, primary='main', vertical_offsets={'main': 0})
    with pytest.raises(FlatmapConfigurationError):
        CompositeLayout(dict(BOUNDS, empty=FlatmapBounds()), primary='main',
                        vertical_offsets=dict(OFFSETS, empty=0))


@pytest.fixture
def compositor(label_volume, small_square_volume):
    generators = {
        'main': FlatMapGenerator(label_volume, enable_detailed_logging=False),
        'sat': FlatMapGenerator(small_square_volume, enable_detailed_logging=False),
    }
    return RegionCompositor(
        generators,
        primary='main',
        vertical_offsets={'main': 0, 'sat': 16},
        label_ids_to_remove=(INCISION, ORIGIN),
    )


def test_region_compositor_places_region_flatmaps(compositor):
    main_flat = compositor.generators['main'].create_label_flatmap((INCISION, ORIGIN))
    sat_flat = compositor.generators['sat'].create_label_flatmap((INCISION, ORIGIN))
    composite = compositor.create_label_flatmap()

    assert compositor.layout.reference == 'sat'
    assert composite.shape == (24, 5)
    np.testing.assert_array_equal(composite[:16, 1:4], main_flat[:16])
    np.testing.assert_array_equal(composite[16:, 0], sat_flat[:, 0])
    np.testing.assert_array_equal(composite[16:, 4], sat_flat[:, 4])
    np.testing.assert_array_equal(composite[:16, 0], 0)


def test_region_compositor_continuous_channels(compositor):
    curvature = compositor.create_curvature_flatmap()
    coordinates = compositor.create_coordinate_flatmap()
    assert curvature.shape == (24, 5)
    assert coordinates.shape == (24, 5, 2)
    assert np.isnan(curvature[:16, 0]).all()


def test_region_compositor_world_x(compositor):
    np.testing.assert_array_equal(compositor.world_x_per_column(), np.arange(5))


def test_region_compositor_maps_points(compositor):
    # main incision on slice 2, sat incision on slice 0, and a point outside both
    rows, cols = compositor.map_world_points_to_flatmap([2.0, 0.0, 2.0], [2.0, 2.0, 11.0], [5.0, 3.0, 11.0])
    assert (rows[0], cols[0]) == (0.0, 2.0)
    assert (rows[1], cols[1]) == (16.0, 0.0)
    assert np.isnan(rows[2]) and np.isnan(cols[2])


def test_overlapping_point_keeps_first_region(compositor):
    # inside both squares on slice 2; main is tried first
    rows, cols = compositor.map_world_points_to_flatmap([2.0], [3.0], [3.0])
    main_rows, main_cols = compositor.generators['main'].map_world_points_to_flatmap([2.0], [3.0], [3.0])
    assert rows[0] == main_rows[0]
    assert cols[0] == main_cols[0] + 1


def test_composite_keeps_wide_satellite_labels():
    bounds = {
        'main': FlatmapBounds(first_valid=0, last_valid=1, top_extent=1, bottom_extent=1),
        'sat': FlatmapBounds(first_valid=0, last_valid=1, top_extent=0, bottom_extent=0),
    }
    layout = CompositeLayout(bounds, primary='main', vertical_offsets={'main': 0, 'sat': 0})
    main = np.zeros((3, 2), dtype=np.uint8)
    main[2, 1] = 7
    sat = np.zeros((1, 2), dtype=np.uint16)
    sat[0, 0] = 300

    composite = layout.combine({'main': main, 'sat': sat})
    assert composite.dtype == np.uint16
    assert composite[0, 0] == 300
    assert composite[2, 1] == 7
