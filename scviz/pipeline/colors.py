from __future__ import annotations

import colorsys
from typing import Any, Dict, List, Optional, Sequence

import pandas as pd
from plotly.colors import hex_to_rgb

from scviz.core.exceptions import ShapeMismatchError
from scviz.core.settings import PlotSettings, resolve_settings

# Okabe-Ito colourblind-safe colours, then darker and lighter variants of each
DITTO_COLORS: tuple[str, ...] = (
    "#E69F00", "#56B4E9", "#009E73", "#F0E442",
    "#0072B2", "#D55E00", "#CC79A7", "#666666",
    "#AD7700", "#1C91D4", "#007756", "#D5C711",
    "#005685", "#A04700", "#B14380", "#4D4D4D",
    "#FFBE2D", "#80C7EF", "#00F6B3", "#F4EB71",
    "#06A5FF", "#FF8320", "#D99BBD", "#8C8C8C",
)

LIGHTNESS_STEP = 0.12


def shift_lightness(color: str, amount: float) -> str:
    """Return `color` (hex) with its HLS lightness shifted by `amount`, clamped to [0.05, 0.95]."""
    r, g, b = (c / 255.0 for c in hex_to_rgb(color))
    h, l, s = colorsys.rgb_to_hls(r, g, b)
    l = min(0.95, max(0.05, l + amount))
    r, g, b = colorsys.hls_to_rgb(h, l, s)
    return "#{:02X}{:02X}{:02X}".format(round(r * 255), round(g * 255), round(b * 255))


def extend_palette(palette: Sequence[str], n: int) -> List[str]:
    """
    Return `n` colours: the palette itself, then overflow colours derived by
    lightness shifts of the base palette in the order
    lighter, darker, further lighter, further darker, ...
    """
    palette = list(palette)
    if not palette:
        raise ValueError("Cannot extend an empty palette")

    out = palette[:n]
    i = len(out)
    while i < n:
        cycle = i // len(palette)
        step = (cycle + 1) // 2
        sign = 1 if cycle % 2 == 1 else -1
        out.append(shift_lightness(palette[i % len(palette)], sign * step * LIGHTNESS_STEP))
        i += 1
    return out


def discrete_levels(values: Any) -> List[Any]:
    """
    Level order used for colour binding: declared categories for categorical
    data, otherwise sorted unique non-missing values.
    """
    series = values if isinstance(values, pd.Series) else pd.Series(list(values))
    if isinstance(series.dtype, pd.CategoricalDtype):
        return list(series.cat.categories)
    uniques = series.dropna().unique().tolist()
    try:
        return sorted(uniques)
    except TypeError:
        return sorted(uniques, key=str)


def assign_colors(
    levels: Sequence[Any],
    palette: Optional[Sequence[str]] = None,
    color_order: Optional[Sequence[int]] = None,
    settings: Optional[PlotSettings] = None,
) -> Dict[Any, str]:
    """
    Map each level to a colour.

    - palette: explicit override; replaces the default palette entirely
    - color_order: palette indices used for the levels, in level order
      (e.g. [1, 0] swaps the first two colours); defaults to 0..n-1

    :raises ShapeMismatchError: color_order length differs from the number of levels
    """
    settings = resolve_settings(settings)
    levels = list(levels)
    base = list(palette or settings.palette or DITTO_COLORS)

    if color_order is None:
        indices = list(range(len(levels)))
    else:
        indices = [int(i) for i in color_order]
        if len(indices) != len(levels):
            raise ShapeMismatchError(
                f"color_order has {len(indices)} entries for {len(levels)} levels"
            )
        if min(indices, default=0) < 0:
            raise ShapeMismatchError("color_order indices must be non-negative")

    colors = extend_palette(base, max(indices, default=-1) + 1)
    return {level: colors[i] for level, i in zip(levels, indices)}


def legend_marker_size(point_size: Optional[float] = None, settings: Optional[PlotSettings] = None) -> float:
    """Legend markers are enlarged by a fixed multiplier relative to data points."""
    settings = resolve_settings(settings)
    size = settings.point_size if point_size is None else point_size
    return size * settings.legend_size_multiplier
