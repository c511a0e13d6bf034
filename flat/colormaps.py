"""Colormaps for label, border and intensity flatmaps (data only)."""

from pathlib import Path
from typing import Iterable
import numpy as np
import pandas as pd
from matplotlib.colors import to_rgb

from flat.config import (
    COLORMAP_RESOLUTION,
    DEFAULT_LABEL_IDS_TO_REMOVE,
    INTENSITY_NEG_THRESHOLD,
    INTENSITY_POS_THRESHOLD,
    INTENSITY_VMAX,
    INTENSITY_VMIN,
    LABEL_ID_BACKGROUND,
    LABEL_ID_BORDER,
)
from volume.loader import read_color_table


def _to_uint8_rgb(color) -> tuple:
    return tuple(int(round(255 * c)) for c in to_rgb(color))


def _init_colormap(background_color) -> pd.DataFrame:
    return pd.DataFrame({
        'id': [LABEL_ID_BACKGROUND],
        'label_name': ['background'],
        'color': [_to_uint8_rgb(background_color)],
    })


def create_label_colormap(color_table: pd.DataFrame | str | Path,
                          label_ids_to_remove: Iterable[int] = DEFAULT_LABEL_IDS_TO_REMOVE,
                          background_color='black') -> pd.DataFrame:
    """Colormap of a label flatmap: background first, then the color table.

    Args:
        color_table: Output of ``read_color_table`` or a path to a .ctbl file
        label_ids_to_remove: IDs dropped from the colormap
        background_color: Any matplotlib color

    Returns:
        DataFrame with columns ``id``, ``label_name``, ``color``
    """
    if not isinstance(color_table, pd.DataFrame):
        color_table = read_color_table(color_table)

    colormap = pd.concat([_init_colormap(background_color), color_table[['id', 'label_name', 'color']]],
                         ignore_index=True)
    colormap = colormap[~colormap['id'].isin(list(label_ids_to_remove))]
    return colormap.reset_index(drop=True)


def create_border_colormap(background_color='white', border_color='black') -> pd.DataFrame:
    colormap = _init_colormap(background_color)
    border = pd.DataFrame({
        'id': [LABEL_ID_BORDER],
        'label_name': ['border'],
        'color': [_to_uint8_rgb(border_color)],
    })
    return pd.concat([colormap, border], ignore_index=True)


def create_intensity_colormap(neg_threshold: float = INTENSITY_NEG_THRESHOLD,
                              pos_threshold: float = INTENSITY_POS_THRESHOLD,
                              vmin: float = INTENSITY_VMIN,
                              vmax: float = INTENSITY_VMAX,
                              resolution: int = COLORMAP_RESOLUTION,
                              background_color='black') -> np.ndarray:
    """Thresholded diverging colormap (resolution, 3) with RGB in [0, 1].

    Values up to ``neg_threshold`` run blue to cyan, values from
    ``pos_threshold`` run red to yellow, everything between gets the
    background color.
    """
    if not vmin < neg_threshold <= pos_threshold < vmax:
        raise ValueError(f"Expected vmin < neg_threshold <= pos_threshold < vmax, "
                         f"got {vmin}, {neg_threshold}, {pos_threshold}, {vmax}")

    values = np.linspace(vmin, vmax, resolution)
    colormap = np.tile(np.array(to_rgb(background_color)), (resolution, 1))

    neg = values <= neg_threshold
    colormap[neg] = np.column_stack([
        np.zeros(neg.sum()),
        (values[neg] - vmin) / (neg_threshold - vmin),
        np.ones(neg.sum()),
    ])

    pos = values >= pos_threshold
    colormap[pos] = np.column_stack([
        np.ones(pos.sum()),
        (values[pos] - pos_threshold) / (vmax - pos_threshold),
        np.zeros(pos.sum()),
    ])
    return colormap
