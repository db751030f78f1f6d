import anndata as ad
import numpy as np
import pandas as pd
import plotly.graph_objects as go
import pytest

from scviz.core.dataset import Dataset
from scviz.core.exceptions import VariableNotFoundError
from scviz.core.plot_request import PlotRequest
from scviz.core.settings import PlotSettings
from scviz.pipeline.colors import DITTO_COLORS
from scviz.pipeline.faceting import Facet
from scviz.views.scatter_view import ScatterView


def _make_dataset_for_scatter():
    """
    AnnData with:
    - 6 cells, 2 genes
    - clusters: A, A, B, B, C, C
    - conditions: x, y, x, y, x, y
    - X_umap and X_pca embeddings
    """
    obs = pd.DataFrame(
        {
            "cluster": pd.Categorical(["A", "A", "B", "B", "C", "C"]),
            "condition": ["x", "y", "x", "y", "x", "y"],
        },
        index=pd.Index([f"c{i}" for i in range(1, 7)]),
    )
    var = pd.DataFrame(index=pd.Index(["g1", "g2"]))
    X = np.array(
        [
            [1, 0],
            [2, 0],
            [3, 1],
            [4, 1],
            [5, 2],
            [6, 2],
        ],
        dtype=float,
    )
    adata = ad.AnnData(X=X, obs=obs, var=var)
    adata.obsm["X_pca"] = np.column_stack([np.arange(6), np.arange(6) * 2, np.ones(6)]).astype(float)
    adata.obsm["X_umap"] = np.column_stack([np.arange(6), -np.arange(6)]).astype(float)
    return Dataset(adata=adata, name="ScatterDataset", cluster_key="cluster")


def test_scatter_defaults_to_umap_and_identity_colour():
    ds = _make_dataset_for_scatter()
    view = ScatterView(ds)

    data = view.plot(PlotRequest(data_out=True))

    assert isinstance(data, pd.DataFrame)
    assert list(data.columns) == ["ident", "UMAP 1", "UMAP 2"]
    assert len(data) == 6


def test_scatter_figure_has_one_trace_per_level_plus_legend_entries():
    ds = _make_dataset_for_scatter()
    view = ScatterView(ds)

    fig = view.plot(PlotRequest(size=2.0, colors=[2, 1, 0]))

    assert isinstance(fig, go.Figure)
    data_traces = [t for t in fig.data if not t.showlegend]
    legend_traces = [t for t in fig.data if t.showlegend]
    assert [t.name for t in data_traces] == ["A", "B", "C"]
    assert [t.marker.color for t in data_traces] == [DITTO_COLORS[2], DITTO_COLORS[1], DITTO_COLORS[0]]
    assert all(t.marker.size == 6.0 for t in legend_traces)
    assert fig.layout.xaxis.title.text == "UMAP 1"


def test_scatter_with_pca_dims_and_feature_colour():
    ds = _make_dataset_for_scatter()
    view = ScatterView(ds)

    data = view.plot(PlotRequest(embedding="X_pca", dims=(2, 3), color_by="g1", data_out=True))

    assert list(data.columns) == ["g1", "PC 2", "PC 3"]

    fig = view.plot(PlotRequest(embedding="X_pca", dims=(2, 3), color_by="g1"))
    assert len(fig.data) == 1
    assert fig.data[0].marker.showscale


def test_scatter_axes_mode_with_shape_and_cells_use():
    ds = _make_dataset_for_scatter()
    view = ScatterView(ds)

    request = PlotRequest(x_var="g1", y_var="g2", shape_by="condition", cells_use=["c1", "c2", "c3"])
    data = view.plot(PlotRequest(**{**request.to_dict(), "data_out": True}))
    assert list(data.index) == ["c1", "c2", "c3"]

    fig = view.plot(request)
    symbols = [s for t in fig.data if not t.showlegend for s in t.marker.symbol]
    assert set(symbols) == {"circle", "triangle-up"}


def test_scatter_split_by_returns_one_facet_per_level():
    ds = _make_dataset_for_scatter()
    view = ScatterView(ds)

    facets = view.plot(PlotRequest(split_by=["condition"], data_out=True))

    assert [f.label for f in facets] == ["x", "y"]
    assert all(isinstance(f, Facet) for f in facets)
    assert sum(len(f.data) for f in facets) == 6

    fig = view.plot(PlotRequest(split_by=["condition"], do_label=True))
    assert isinstance(fig, go.Figure)


def test_scatter_split_composite_keeps_legend_and_overlays():
    ds = _make_dataset_for_scatter()
    view = ScatterView(ds)

    fig = view.plot(
        PlotRequest(
            split_by=["condition"],
            do_label=True,
            trajectory_by="cluster",
            trajectories=[["A", "B", "C"]],
        )
    )

    # one enlarged legend entry per cluster, shared across facets
    assert [t.name for t in fig.data if t.showlegend is not False] == ["A", "B", "C"]

    labels = [a for a in fig.layout.annotations if a.text in {"A", "B", "C"}]
    assert sorted((a.text, a.xref) for a in labels) == [
        ("A", "x"), ("A", "x2"), ("B", "x"), ("B", "x2"), ("C", "x"), ("C", "x2"),
    ]

    arrows = [a for a in fig.layout.annotations if a.showarrow and a.text == ""]
    assert len(arrows) == 4
    assert sorted((a.xref, a.axref, a.yref, a.ayref) for a in arrows) == [
        ("x", "x", "y", "y"), ("x", "x", "y", "y"),
        ("x2", "x2", "y2", "y2"), ("x2", "x2", "y2", "y2"),
    ]


def test_scatter_unknown_colour_variable_raises():
    ds = _make_dataset_for_scatter()

    with pytest.raises(VariableNotFoundError):
        ScatterView(ds).plot(PlotRequest(color_by="nope"))


def test_scatter_rasterises_above_threshold():
    ds = _make_dataset_for_scatter()
    view = ScatterView(ds, settings=PlotSettings(raster_threshold=3))

    fig = view.plot(PlotRequest())

    assert fig.layout.meta["rasterized"] is True
    assert type(fig.data[0]).__name__ == "Scattergl"
