import numpy as np
import pytest

from flat.colormaps import create_border_colormap, create_intensity_colormap, create_label_colormap

CTBL = """# Color table
10 lobule_I 255 0 0 255
46 white_matter 255 255 255 255
99 incision 0 255 0 255
120 lobule_II 0 0 255 255
"""


def test_label_colormap_from_color_table(tmp_path):
    path = tmp_path / "labels.ctbl"
    path.write_text(CTBL)

    colormap = create_label_colormap(path, label_ids_to_remove=(46, 99))
    assert colormap['id'].tolist() == [0, 10, 120]
    assert colormap['label_name'].tolist() == ['background', 'lobule_I', 'lobule_II']
    assert colormap['color'].tolist() == [(0, 0, 0), (255, 0, 0), (0, 0, 255)]


def test_label_colormap_background_color(tmp_path):
    path = tmp_path / "labels.ctbl"
    path.write_text(CTBL)
    colormap = create_label_colormap(path, label_ids_to_remove=(), background_color='white')
    assert colormap['color'][0] == (255, 255, 255)
    assert len(colormap) == 5


def test_border_colormap():
    colormap = create_border_colormap()
    assert colormap['id'].tolist() == [0, 1]
    assert colormap['color'].tolist() == [(255, 255, 255), (0, 0, 0)]


def test_intensity_colormap_ranges():
    colormap = create_intensity_colormap()
    values = np.linspace(-7, 7, 256)

    assert colormap.shape == (256, 3)
    np.testing.assert_allclose(colormap[0], [0, 0, 1])
    np.testing.assert_allclose(colormap[-1], [1, 1, 0])
    np.testing.assert_allclose(colormap[np.abs(values) < 3.28], 0.0)

    neg = colormap[values <= -3.28]
    assert np.all(neg[:, 0] == 0) and np.all(np.diff(neg[:, 1]) > 0)
    pos = colormap[values >= 3.28]
    assert np.all(pos[:, 0] == 1) and np.all(np.diff(pos[:, 1]) > 0)


def test_intensity_colormap_rejects_bad_thresholds():
    with pytest.raises(ValueError):
        create_intensity_colormap(neg_threshold=2.0, pos_threshold=1.0)
