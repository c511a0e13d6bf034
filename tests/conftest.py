import numpy as np
import pytest

from flat.generator import FlatMapGenerator

INCISION = 99
ORIGIN = 100
BODY = 10


def square_slice(shape=(12, 12), top=2, bottom=8, left=2, right=8, incision=(2, 5), origin=(8, 5)):
    label_slice = np.zeros(shape, dtype=np.int16)
    label_slice[top:bottom + 1, left:right + 1] = BODY
    label_slice[incision] = INCISION
    label_slice[origin] = ORIGIN
    return label_slice


def square_volume():
    """Slices 1-3 hold a 7x7 square (24 boundary pixels); slices 0 and 4 are empty."""
    volume = np.zeros((5, 12, 12), dtype=np.int16)
    for i in (1, 2, 3):
        volume[i] = square_slice()
    return volume


@pytest.fixture
def label_slice():
    return square_slice()


@pytest.fixture
def label_volume():
    return square_volume()


@pytest.fixture
def small_square_volume():
    """3x3 square with 8 boundary pixels on every slice."""
    volume = np.zeros((5, 12, 12), dtype=np.int16)
    for i in range(5):
        volume[i] = square_slice(top=2, bottom=4, left=2, right=4, incision=(2, 3), origin=(4, 3))
    return volume


@pytest.fixture
def generator(label_volume):
    return FlatMapGenerator(label_volume, enable_detailed_logging=False)

