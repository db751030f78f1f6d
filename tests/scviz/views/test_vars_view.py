import anndata as ad
import numpy as np
import pandas as pd
import plotly.graph_objects as go
import pytest

from scviz.core.dataset import Dataset
from scviz.core.exceptions import TypeMismatchError
from scviz.core.plot_request import PlotRequest
from scviz.views.vars_view import VarsView


def _make_dataset_for_vars():
    """
    20 cells; G1 = 0..19; group X for the first ten, Y for the rest;
    condition alternates a / b
    """
    n = 20
    obs = pd.DataFrame(
        {
            "group": ["X"] * 10 + ["Y"] * 10,
            "condition": ["a", "b"] * 10,
        },
        index=pd.Index([f"c{i}" for i in range(n)]),
    )
    var = pd.DataFrame(index=pd.Index(["G1"]))
    adata = ad.AnnData(X=np.arange(n, dtype=float).reshape(n, 1), obs=obs, var=var)
    return Dataset(adata=adata, name="VarsDataset", cluster_key="group")


def test_vars_table_groups_by_identity():
    ds = _make_dataset_for_vars()

    data = VarsView(ds).plot(PlotRequest(variables=["G1"], data_out=True))

    assert list(data.columns) == ["G1", "ident"]
    assert data.groupby("ident")["G1"].mean().to_dict() == {"X": 4.5, "Y": 14.5}


def test_vars_default_figure_is_one_violin_per_group():
    ds = _make_dataset_for_vars()

    fig = VarsView(ds).plot(PlotRequest(variables=["G1"]))

    assert isinstance(fig, go.Figure)
    assert [type(t).__name__ for t in fig.data] == ["Violin", "Violin"]
    assert [t.name for t in fig.data] == ["X", "Y"]
    assert fig.data[0].points == "all"


def test_vars_colour_by_other_metadata_and_box_layer():
    ds = _make_dataset_for_vars()

    fig = VarsView(ds).plot(PlotRequest(variables=["G1"], color_by="condition", plots=("box",)))

    assert [type(t).__name__ for t in fig.data] == ["Box", "Box"]
    assert [t.name for t in fig.data] == ["a", "b"]
    assert fig.layout.boxmode == "group"


def test_vars_requires_a_numeric_variable():
    ds = _make_dataset_for_vars()
    view = VarsView(ds)

    with pytest.raises(ValueError):
        view.plot(PlotRequest())
    with pytest.raises(TypeMismatchError):
        view.plot(PlotRequest(variables=["condition"]))
