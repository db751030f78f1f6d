import anndata as ad
import numpy as np
import pandas as pd
import pytest

from scviz.core import accessor
from scviz.core.adapters import FrameBundle
from scviz.core.dataset import Dataset
from scviz.core.exceptions import ConfigError, ShapeMismatchError, TypeMismatchError
from scviz.core.importing import import_dataset


def _make_h5ad_with_dupes(tmp_path):
    """Helper to create a small .h5ad with duplicate obs/var names."""
    obs = pd.DataFrame(
        {"cluster": ["A", "A", "B"]},
        index=pd.Index(["c1", "c1", "c2"]),  # duplicate obs_names on purpose
    )
    var = pd.DataFrame(index=pd.Index(["g1", "g1", "g2"]))  # duplicate var_names on purpose
    X = np.arange(9, dtype=float).reshape(3, 3)

    adata = ad.AnnData(X=X, obs=obs, var=var)

    h5_path = tmp_path / "dupe_test.h5ad"
    adata.write_h5ad(h5_path)
    return h5_path


def _make_matrices():
    obs_names = ["s1", "s2", "s3"]
    counts = pd.DataFrame(
        [[1, 0, 3], [4, 5, 6]],
        index=["g1", "g2"],
        columns=obs_names,
    )
    # same features / observations, different order
    logcounts = np.log1p(counts.loc[["g2", "g1"], ["s3", "s1", "s2"]].astype(float))
    return {"counts": counts, "logcounts": logcounts}


def _make_adata():
    obs = pd.DataFrame(
        {"cluster": ["A", "B"], "batch": ["b1", "b2"]},
        index=["c1", "c2"],
    )
    return ad.AnnData(X=np.ones((2, 2)), obs=obs, var=pd.DataFrame(index=["g1", "g2"]))


def test_import_h5ad_makes_names_unique(tmp_path):
    h5_path = _make_h5ad_with_dupes(tmp_path)

    ds = import_dataset(h5_path, cluster_key="cluster")

    assert isinstance(ds, Dataset)
    assert ds.adata.obs_names.is_unique
    assert ds.adata.var_names.is_unique
    assert ds.n_obs == 3
    assert ds.name == "dupe_test"
    assert ds.file_path == h5_path
    assert accessor.get_metadata("ident", ds).tolist() == ["A", "A", "B"]


def test_import_missing_file_raises_config_error(tmp_path):
    with pytest.raises(ConfigError):
        import_dataset(tmp_path / "nope.h5ad")


def test_import_named_matrices_aligns_assays():
    ds = import_dataset(_make_matrices(), bulk=True, name="bulk")

    assert ds.is_bulk
    assert list(ds.obs_names) == ["s1", "s2", "s3"]
    assert set(accessor.get_assay_names(ds)) == {"counts", "logcounts"}
    assert accessor.default_assay(ds) == "logcounts"
    assert accessor.get_feature("g1", ds, assay="counts").tolist() == [1.0, 0.0, 3.0]
    np.testing.assert_allclose(
        accessor.get_feature("g2", ds).to_numpy(),
        np.log1p([4.0, 5.0, 6.0]),
    )


def test_import_matrix_triple_and_bad_inputs():
    ds = import_dataset({"counts": (np.array([[1, 2]]), ["g1"], ["a", "b"])})
    assert accessor.get_feature("g1", ds).tolist() == [1.0, 2.0]

    with pytest.raises(ShapeMismatchError):
        import_dataset({"counts": (np.array([[1, 2]]), ["g1"], ["a", "b", "c"])})

    with pytest.raises(TypeMismatchError):
        import_dataset({"counts": np.array([[1, 2]])})

    with pytest.raises(TypeMismatchError):
        import_dataset(42)


def test_metadata_overrides_existing_columns_without_touching_input():
    adata = _make_adata()
    metadata = pd.DataFrame({"cluster": ["X", "Y"], "score": [1.0, 2.0]}, index=["c1", "c2"])

    ds = import_dataset(adata, metadata=metadata)

    assert ds.adata.obs["cluster"].tolist() == ["X", "Y"]
    assert ds.adata.obs["batch"].tolist() == ["b1", "b2"]
    assert ds.adata.obs["score"].tolist() == [1.0, 2.0]
    # the caller's AnnData is not modified
    assert adata.obs["cluster"].tolist() == ["A", "B"]


def test_combine_metadata_false_discards_previous_columns():
    metadata = pd.DataFrame({"score": [1.0, 2.0]}, index=["c1", "c2"])

    ds = import_dataset(_make_adata(), metadata=metadata, combine_metadata=False)

    assert list(ds.adata.obs.columns) == ["score"]

    bare = import_dataset(_make_adata(), combine_metadata=False)
    assert list(bare.adata.obs.columns) == []


def test_reductions_are_validated_and_become_embeddings():
    reductions = {"X_umap": pd.DataFrame([[1.0, 2.0], [3.0, 4.0]], index=["c2", "c1"])}

    ds = import_dataset(_make_adata(), reductions=reductions)

    emb = accessor.get_embedding("X_umap", ds)
    assert emb.loc["c1", "UMAP 1"] == 3.0

    with pytest.raises(ShapeMismatchError):
        import_dataset(_make_adata(), reductions={"X_pca": np.zeros((3, 2))})


def test_import_frame_bundle_and_dataset_keep_their_flags():
    obs = pd.DataFrame({"cluster": ["A", "B"]}, index=["s1", "s2"])
    bundle = FrameBundle(
        assays={"counts": pd.DataFrame([[1, 2]], index=["g1"], columns=obs.index)},
        obs=obs,
        reductions={"mds": np.zeros((2, 2))},
        reduction_keys={"mds": "MDS"},
        bulk=True,
        cluster_key="cluster",
    )

    ds = import_dataset(bundle)
    assert ds.is_bulk
    assert ds.cluster_key == "cluster"
    assert accessor.embedding_key("mds", ds) == "MDS"

    again = import_dataset(ds, name="renamed")
    assert again.is_bulk
    assert again.name == "renamed"
    assert again.adata is not ds.adata


def test_unknown_cluster_key_raises_config_error():
    with pytest.raises(ConfigError):
        import_dataset(_make_adata(), cluster_key="leiden")


def test_explicit_bulk_flag_overrides_the_input():
    bulk_ds = import_dataset(_make_adata(), bulk=True)

    assert import_dataset(bulk_ds).is_bulk
    assert not import_dataset(bulk_ds, bulk=False).is_bulk
    assert not import_dataset(_make_matrices()).is_bulk
