import numpy as np
import pandas as pd
import pytest

from scviz.core.exceptions import TypeMismatchError, UnknownSummaryError
from scviz.pipeline.summaries import (
    CONTINUOUS,
    DEFAULT_SUMMARIES,
    DISCRETE,
    SummaryRegistry,
    check_summary,
    default_summary,
    group_positions,
    mode,
    mode_share,
    summarize,
    summarize_dots,
)


def _make_table():
    """
    6 cells, two clusters; g1 expressed in cluster A only, g2 everywhere
    """
    return pd.DataFrame(
        {
            "cluster": ["A", "A", "A", "B", "B", "B"],
            "g1": [1.0, 2.0, 0.0, 0.0, 0.0, 0.0],
            "g2": [1.0, 1.0, 1.0, 3.0, 3.0, 3.0],
            "label": ["x", "y", "x", "y", "y", "x"],
        },
        index=[f"c{i}" for i in range(6)],
    )


def test_default_registry_names():
    assert DEFAULT_SUMMARIES.names(CONTINUOUS) == ["median", "mean", "sum", "sd", "mad"]
    assert DEFAULT_SUMMARIES.names(DISCRETE) == ["mode", "mode_share"]
    assert "mean" in DEFAULT_SUMMARIES


def test_unknown_summary_raises():
    with pytest.raises(UnknownSummaryError) as exc:
        DEFAULT_SUMMARIES.get("geomean")

    assert exc.value.name == "geomean"
    assert "mean" in exc.value.registered


def test_register_custom_summary():
    registry = SummaryRegistry()
    registry.register("max", lambda v: float(np.nanmax(v)))

    table = _make_table()
    out = summarize(table, "g2", by="cluster", summary="max", registry=registry)
    assert out["g2"].tolist() == [1.0, 3.0]

    with pytest.raises(ValueError):
        registry.register("max", max)
    with pytest.raises(ValueError):
        registry.register("odd", max, kind="ordinal")


def test_mode_tie_break_is_first_seen():
    for _ in range(5):
        assert mode(["A", "B", "A", "B"]) == "A"
    assert mode(["B", "A", "A", "B"]) == "B"
    assert mode_share(["A", "B", "A", "B"]) == 0.5
    assert np.isnan(mode([]))


def test_continuous_summaries():
    values = np.array([1.0, 2.0, 3.0, 4.0, np.nan])

    assert DEFAULT_SUMMARIES.get("median").fn(values) == 2.5
    assert DEFAULT_SUMMARIES.get("mean").fn(values) == 2.5
    assert DEFAULT_SUMMARIES.get("sum").fn(values) == 10.0
    assert DEFAULT_SUMMARIES.get("sd").fn(values) == pytest.approx(np.std([1, 2, 3, 4], ddof=1))
    assert DEFAULT_SUMMARIES.get("mad").fn(values) == pytest.approx(1.0 * 1.482602218505602)


def test_check_summary_type_mismatch_both_ways():
    table = _make_table()

    with pytest.raises(TypeMismatchError):
        check_summary("mean", table["label"])
    with pytest.raises(TypeMismatchError):
        check_summary("mode", table["g1"])

    assert check_summary("mode", table["label"]).kind == DISCRETE
    assert default_summary(table["g1"]) == "median"
    assert default_summary(table["label"]) == "mode"


def test_group_positions_first_seen_and_missing_values():
    table = pd.DataFrame({"k": ["b", None, "a", "b"]})

    groups = group_positions(table, ["k"])

    assert [key for key, _ in groups] == [("b",), ("NA",), ("a",)]
    assert groups[0][1].tolist() == [0, 3]


def test_summarize_discrete_per_group():
    table = _make_table()

    out = summarize(table, "label", by="cluster")

    assert out.attrs["summary"] == "mode"
    assert out["label"].tolist() == ["x", "y"]


def test_summarize_dots_fraction_expressed_and_scaling():
    table = _make_table()

    dots = summarize_dots(table, ["g1", "g2"], "cluster", summary="mean", scale=True)

    assert list(dots.columns) == [
        "cluster", "group", "variable", "summary", "pct_expressed", "n", "color_value",
    ]
    g1 = dots[dots["variable"] == "g1"].set_index("group")
    assert g1.loc["A", "summary"] == 1.0
    assert g1.loc["A", "pct_expressed"] == pytest.approx(2 / 3)
    assert g1.loc["B", "pct_expressed"] == 0.0
    # two groups -> scaled values are +/- 1/sqrt(2)
    assert g1.loc["A", "color_value"] == pytest.approx(1 / np.sqrt(2))
    assert g1.loc["B", "color_value"] == pytest.approx(-1 / np.sqrt(2))
    assert list(dots["variable"].cat.categories) == ["g1", "g2"]


def test_summarize_dots_zero_spread_scales_to_zero():
    table = _make_table()
    table["flat"] = 2.0

    dots = summarize_dots(table, ["flat"], "cluster", scale=True)
    assert dots["color_value"].tolist() == [0.0, 0.0]

    raw = summarize_dots(table, ["flat"], "cluster", scale=False)
    assert raw["color_value"].tolist() == [2.0, 2.0]
