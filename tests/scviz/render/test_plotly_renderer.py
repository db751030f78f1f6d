import numpy as np
import pandas as pd
import plotly.graph_objects as go
import pytest

from scviz.render.plotly_renderer import BAR, HEATMAP, NA_COLOR, SCATTER, VARS, PlotlyRenderer, RenderStyle


def _make_scatter_table():
    return pd.DataFrame(
        {
            "UMAP 1": [0.0, 0.1, 0.2, 5.0, 5.1, 5.2],
            "UMAP 2": [0.0, 0.2, 0.1, 5.0, 5.2, 5.1],
            "cluster": ["A", "A", "A", "B", "B", "B"],
            "g1": [1.0, 2.0, 3.0, 4.0, 5.0, 6.0],
        },
        index=[f"c{i}" for i in range(6)],
    )


def test_empty_table_renders_placeholder():
    fig = PlotlyRenderer().render(pd.DataFrame(), RenderStyle())

    assert isinstance(fig, go.Figure)
    assert fig.layout.title.text == "No data to show"


def test_unknown_kind_raises():
    with pytest.raises(ValueError):
        PlotlyRenderer().render(_make_scatter_table(), RenderStyle(kind="pie", x="UMAP 1", y="UMAP 2"))


def test_discrete_scatter_has_enlarged_legend_entries():
    style = RenderStyle(
        kind=SCATTER,
        x="UMAP 1",
        y="UMAP 2",
        color="cluster",
        color_map={"A": "#E69F00", "B": "#56B4E9"},
        point_size=2.0,
        legend_marker_size=6.0,
        labels=True,
        ellipse=True,
    )

    fig = PlotlyRenderer().render(_make_scatter_table(), style)

    data_traces = [t for t in fig.data if t.mode == "markers" and t.x[0] is not None]
    legend_traces = [t for t in fig.data if t.showlegend]
    assert [t.name for t in data_traces] == ["A", "B"]
    assert all(t.marker.size == 2.0 for t in data_traces)
    assert [t.name for t in legend_traces] == ["A", "B"]
    assert all(t.marker.size == 6.0 for t in legend_traces)
    assert len(fig.layout.annotations) == 2
    assert fig.layout.xaxis.title.text == "UMAP 1"


def test_missing_discrete_colour_values_are_drawn_as_na():
    table = _make_scatter_table()
    table.loc["c5", "cluster"] = None
    style = RenderStyle(
        kind=SCATTER, x="UMAP 1", y="UMAP 2", color="cluster", color_map={"A": "#E69F00", "B": "#56B4E9"}
    )

    fig = PlotlyRenderer().render(table, style)

    data_traces = [t for t in fig.data if t.showlegend is False]
    assert [t.name for t in data_traces] == ["A", "B", "NA"]
    assert sum(len(t.x) for t in data_traces) == len(table)
    assert data_traces[-1].marker.color == NA_COLOR
    assert [t.name for t in fig.data if t.showlegend] == ["A", "B", "NA"]


def test_continuous_scatter_uses_colour_bar_and_rasterises():
    style = RenderStyle(kind=SCATTER, x="UMAP 1", y="UMAP 2", color="g1", rasterize=True, raster_dpi=150)

    fig = PlotlyRenderer().render(_make_scatter_table(), style)

    assert len(fig.data) == 1
    assert isinstance(fig.data[0], go.Scattergl)
    assert fig.data[0].marker.showscale
    assert fig.layout.meta == {"rasterized": True, "raster_dpi": 150}


def test_trajectory_overlay_draws_arrows_between_centroids():
    table = _make_scatter_table()
    style = RenderStyle(
        kind=SCATTER,
        x="UMAP 1",
        y="UMAP 2",
        trajectory_by="cluster",
        trajectories=[["A", "B"]],
    )

    fig = PlotlyRenderer().render(table, style)

    arrows = [a for a in fig.layout.annotations if a.showarrow]
    assert len(arrows) == 1
    assert arrows[0].x == pytest.approx(5.1)
    assert arrows[0].ax == pytest.approx(0.1)


def test_vars_layers():
    table = _make_scatter_table()
    style = RenderStyle(kind=VARS, x="cluster", y="g1", color="cluster", color_map={"A": "#000000", "B": "#FFFFFF"})

    violins = PlotlyRenderer().render(table, style)
    assert [type(t).__name__ for t in violins.data] == ["Violin", "Violin"]

    style.layers = ("box",)
    boxes = PlotlyRenderer().render(table, style)
    assert [type(t).__name__ for t in boxes.data] == ["Box", "Box"]


def test_bar_and_heatmap():
    bars = pd.DataFrame(
        {
            "cluster": ["A", "A", "B", "B"],
            "sex": ["f", "m", "f", "m"],
            "percent": [0.5, 0.5, 0.25, 0.75],
        }
    )
    fig = PlotlyRenderer().render(
        bars,
        RenderStyle(kind=BAR, x="cluster", y="percent", color="sex", color_map={"f": "#111111", "m": "#222222"}),
    )
    assert fig.layout.barmode == "stack"
    assert [t.name for t in fig.data] == ["f", "m"]

    heat = pd.DataFrame(
        {
            "feature": ["g1", "g1", "g2", "g2"],
            "column": ["A", "B", "A", "B"],
            "value": [1.0, 2.0, 3.0, 4.0],
        }
    )
    fig = PlotlyRenderer().render(heat, RenderStyle(kind=HEATMAP, x="column", y="feature", color="value"))
    assert np.asarray(fig.data[0].z).tolist() == [[1.0, 2.0], [3.0, 4.0]]
