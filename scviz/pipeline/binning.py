from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Optional, Tuple

import numpy as np
import pandas as pd

from scviz.core.exceptions import ShapeMismatchError
from scviz.pipeline.summaries import SummaryRegistry, default_summary, summarize

HEX = "hex"
RECT = "rect"

BIN_COLUMN = "bin"


def _padded_range(values: np.ndarray) -> Tuple[float, float]:
    lo, hi = float(np.nanmin(values)), float(np.nanmax(values))
    if lo == hi:
        return lo - 0.5, hi + 0.5
    pad = 1e-9 * (hi - lo)
    return lo - pad, hi + pad


@dataclass(frozen=True)
class BinGrid:
    """
    Regular partition of the 2-D plot plane.

    hex: two interleaved lattices of hexagon centres (the layout used by
         matplotlib's hexbin), `nx` hexagons across and nx / sqrt(3) down
    rect: nx x ny rectangles

    The grid is computed once from the full coordinate extent of a plot, so
    per-facet subsets share bin geometry. Every point, including points outside
    the extent, maps to exactly one bin.
    """

    shape: str
    xmin: float
    xmax: float
    ymin: float
    ymax: float
    nx: int
    ny: int

    @classmethod
    def from_extent(cls, x: Any, y: Any, bins: int = 30, shape: str = HEX) -> "BinGrid":
        x = np.asarray(x, dtype=float)
        y = np.asarray(y, dtype=float)
        if x.shape != y.shape:
            raise ShapeMismatchError(f"x and y must have the same shape, got {x.shape} and {y.shape}")
        if x.size == 0:
            raise ShapeMismatchError("Cannot build a bin grid from zero points")
        if shape not in (HEX, RECT):
            raise ValueError(f"Bin shape must be '{HEX}' or '{RECT}', got '{shape}'")
        if bins < 1:
            raise ValueError("bins must be >= 1")

        xmin, xmax = _padded_range(x)
        ymin, ymax = _padded_range(y)
        ny = max(1, int(bins / math.sqrt(3))) if shape == HEX else bins
        return cls(shape, xmin, xmax, ymin, ymax, int(bins), ny)

    # ------------------------------------------------------------------
    # Geometry
    # ------------------------------------------------------------------
    @property
    def sx(self) -> float:
        return (self.xmax - self.xmin) / self.nx

    @property
    def sy(self) -> float:
        return (self.ymax - self.ymin) / self.ny

    @property
    def _n_primary(self) -> int:
        return (self.nx + 1) * (self.ny + 1)

    @property
    def n_bins(self) -> int:
        if self.shape == HEX:
            return self._n_primary + self.nx * self.ny
        return self.nx * self.ny

    def assign(self, x: Any, y: Any) -> np.ndarray:
        """Bin id per point."""
        x = np.asarray(x, dtype=float)
        y = np.asarray(y, dtype=float)
        if x.shape != y.shape:
            raise ShapeMismatchError(f"x and y must have the same shape, got {x.shape} and {y.shape}")

        ix = (x - self.xmin) / self.sx
        iy = (y - self.ymin) / self.sy

        if self.shape == RECT:
            cx = np.clip(np.floor(ix), 0, self.nx - 1).astype(int)
            cy = np.clip(np.floor(iy), 0, self.ny - 1).astype(int)
            return cx * self.ny + cy

        ix = np.clip(ix, 0, self.nx)
        iy = np.clip(iy, 0, self.ny)

        ix1 = np.round(ix).astype(int)
        iy1 = np.round(iy).astype(int)
        ix2 = np.clip(np.floor(ix), 0, self.nx - 1).astype(int)
        iy2 = np.clip(np.floor(iy), 0, self.ny - 1).astype(int)

        d1 = (ix - ix1) ** 2 + 3.0 * (iy - iy1) ** 2
        d2 = (ix - ix2 - 0.5) ** 2 + 3.0 * (iy - iy2 - 0.5) ** 2

        primary = ix1 * (self.ny + 1) + iy1
        secondary = self._n_primary + ix2 * self.ny + iy2
        return np.where(d1 < d2, primary, secondary)

    def centers(self, ids: Any) -> Tuple[np.ndarray, np.ndarray]:
        ids = np.asarray(ids, dtype=int)

        if self.shape == RECT:
            cx, cy = np.divmod(ids, self.ny)
            return self.xmin + (cx + 0.5) * self.sx, self.ymin + (cy + 0.5) * self.sy

        in_primary = ids < self._n_primary
        p_x, p_y = np.divmod(ids, self.ny + 1)
        s_x, s_y = np.divmod(ids - self._n_primary, max(self.ny, 1))

        x = np.where(in_primary, self.xmin + p_x * self.sx, self.xmin + (s_x + 0.5) * self.sx)
        y = np.where(in_primary, self.ymin + p_y * self.sy, self.ymin + (s_y + 0.5) * self.sy)
        return x, y

    def polygon(self) -> np.ndarray:
        """Vertex offsets of one bin around its centre."""
        if self.shape == RECT:
            return np.array([[-0.5, -0.5], [0.5, -0.5], [0.5, 0.5], [-0.5, 0.5]]) * [self.sx, self.sy]
        return np.array(
            [[0.5, -0.5], [0.5, 0.5], [0.0, 1.0], [-0.5, 0.5], [-0.5, -0.5], [0.0, -1.0]]
        ) * [self.sx, self.sy / 3.0]


def summarize_bins(
    table: pd.DataFrame,
    x: str,
    y: str,
    grid: BinGrid,
    target: Optional[str] = None,
    summary: Optional[str] = None,
    registry: Optional[SummaryRegistry] = None,
) -> pd.DataFrame:
    """
    One row per occupied bin (ascending bin id): bin id, bin centre in `x` / `y`,
    `count` (density) and, with `target`, the target's summary within the bin.
    """
    ids = grid.assign(table[x].to_numpy(), table[y].to_numpy())

    bin_ids, counts = np.unique(ids, return_counts=True)
    cx, cy = grid.centers(bin_ids)
    out = pd.DataFrame({BIN_COLUMN: bin_ids, x: cx, y: cy, "count": counts})

    if target is not None:
        summary = summary or default_summary(table[target])
        binned = pd.DataFrame({BIN_COLUMN: ids, target: table[target].to_numpy()})
        if isinstance(table[target].dtype, pd.CategoricalDtype):
            binned[target] = binned[target].astype(table[target].dtype)
        per_bin = summarize(binned, target, by=BIN_COLUMN, summary=summary, registry=registry)
        out = out.merge(per_bin[[BIN_COLUMN, target]], on=BIN_COLUMN, how="left")
        out.attrs["summary"] = summary

    out = out.sort_values(BIN_COLUMN).reset_index(drop=True)
    out.attrs["grid"] = grid
    out.attrs["target"] = target
    return out
