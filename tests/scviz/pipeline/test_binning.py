import numpy as np
import pandas as pd
import pytest

from scviz.core.exceptions import ShapeMismatchError, TypeMismatchError
from scviz.pipeline.binning import HEX, RECT, BinGrid, summarize_bins


def _make_points():
    """
    Two tight clumps of cells at (0, 0) and (10, 10), labelled by clump
    """
    rng = np.random.default_rng(0)
    a = rng.normal(0.0, 0.1, size=(30, 2))
    b = rng.normal(10.0, 0.1, size=(20, 2))
    xy = np.vstack([a, b])
    return pd.DataFrame(
        {
            "x": xy[:, 0],
            "y": xy[:, 1],
            "clump": ["a"] * 30 + ["b"] * 20,
            "value": [1.0] * 30 + [5.0] * 20,
        }
    )


@pytest.mark.parametrize("shape", [HEX, RECT])
def test_every_point_lands_in_exactly_one_valid_bin(shape):
    table = _make_points()
    grid = BinGrid.from_extent(table["x"], table["y"], bins=10, shape=shape)

    ids = grid.assign(table["x"], table["y"])

    assert ids.shape == (len(table),)
    assert ids.min() >= 0
    assert ids.max() < grid.n_bins


def test_points_outside_the_extent_are_clamped_to_edge_bins():
    grid = BinGrid.from_extent([0.0, 1.0], [0.0, 1.0], bins=4, shape=RECT)

    ids = grid.assign([-5.0, 7.0], [-5.0, 7.0])

    assert ids.tolist() == [0, grid.n_bins - 1]


def test_hex_centres_lie_near_their_points():
    table = _make_points()
    grid = BinGrid.from_extent(table["x"], table["y"], bins=20)

    ids = grid.assign(table["x"], table["y"])
    cx, cy = grid.centers(ids)

    assert np.all(np.abs(cx - table["x"]) <= grid.sx)
    assert np.all(np.abs(cy - table["y"]) <= grid.sy)


def test_summarize_bins_counts_and_target_summaries():
    table = _make_points()
    grid = BinGrid.from_extent(table["x"], table["y"], bins=5, shape=RECT)

    out = summarize_bins(table, "x", "y", grid, target="clump")

    assert list(out.columns) == ["bin", "x", "y", "count", "clump"]
    assert out["count"].sum() == len(table)
    assert out["bin"].is_monotonic_increasing
    assert set(out["clump"]) == {"a", "b"}
    assert out.attrs["summary"] == "mode"
    assert out.attrs["grid"] is grid

    numeric = summarize_bins(table, "x", "y", grid, target="value", summary="mean")
    assert sorted(numeric["value"].tolist()) == [1.0, 5.0]


def test_summarize_bins_rejects_mismatched_summary_type():
    table = _make_points()
    grid = BinGrid.from_extent(table["x"], table["y"])

    with pytest.raises(TypeMismatchError):
        summarize_bins(table, "x", "y", grid, target="clump", summary="median")


def test_grid_from_subset_shares_geometry():
    table = _make_points()
    grid = BinGrid.from_extent(table["x"], table["y"], bins=8)

    sub = table.iloc[:30]
    sub_out = summarize_bins(sub, "x", "y", grid)
    full_out = summarize_bins(table, "x", "y", grid)

    # every bin occupied by the subset is a bin of the full plot, at the same centre
    merged = sub_out.merge(full_out, on="bin", suffixes=("_sub", "_full"))
    assert len(merged) == len(sub_out)
    assert np.allclose(merged["x_sub"], merged["x_full"])


def test_bin_grid_validation():
    with pytest.raises(ShapeMismatchError):
        BinGrid.from_extent([], [])
    with pytest.raises(ShapeMismatchError):
        BinGrid.from_extent([1.0, 2.0], [1.0])
    with pytest.raises(ValueError):
        BinGrid.from_extent([1.0], [1.0], shape="triangle")

    # a single point still yields a usable grid
    grid = BinGrid.from_extent([3.0], [3.0], bins=4)
    assert grid.xmin < 3.0 < grid.xmax
