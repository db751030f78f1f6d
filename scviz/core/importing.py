from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import anndata as ad
import numpy as np
import pandas as pd

from scviz.core.adapters.frame_adapter import FrameBundle
from scviz.core.dataset import BULK_UNS_KEY, Dataset
from scviz.core.exceptions import ConfigError, ShapeMismatchError, TypeMismatchError

logger = logging.getLogger(__name__)


def _ensure_unique_names(adata: ad.AnnData, name: str) -> ad.AnnData:
    """
    Ensure obs_names and var_names are unique, logging what we do.
    """
    if not adata.obs_names.is_unique:
        logger.warning(
            "Observation names are not unique for dataset '%s'; "
            "calling .obs_names_make_unique() (in-memory fix)",
            name,
        )
        adata.obs_names_make_unique()

    if not adata.var_names.is_unique:
        logger.warning(
            "Feature names are not unique for dataset '%s'; "
            "calling .var_names_make_unique() (in-memory fix)",
            name,
        )
        adata.var_names_make_unique()

    return adata


def _read_h5ad(path: Path) -> ad.AnnData:
    if not path.is_file():
        raise ConfigError(f"AnnData file not found at {path}.")
    logger.info("Reading AnnData file", extra={"path": str(path)})
    return ad.read_h5ad(path)


def _as_matrix_frame(assay: str, value: Any) -> pd.DataFrame:
    """
    A feature x observation DataFrame, or a (matrix, feature_names, obs_names) triple.
    """
    if isinstance(value, pd.DataFrame):
        return value
    if isinstance(value, tuple) and len(value) == 3:
        matrix, features, obs_names = value
        matrix = np.asarray(matrix)
        expected = (len(features), len(obs_names))
        if matrix.shape != expected:
            raise ShapeMismatchError(
                f"Assay '{assay}' has shape {matrix.shape}, expected {expected} from its names"
            )
        return pd.DataFrame(matrix, index=pd.Index(features).astype(str), columns=pd.Index(obs_names).astype(str))
    raise TypeMismatchError(
        assay,
        "a features x observations DataFrame or a (matrix, feature_names, obs_names) tuple",
        type(value).__name__,
    )


def _from_matrices(matrices: Mapping[str, Any]) -> ad.AnnData:
    """
    Build an AnnData from named feature x observation matrices. Every matrix
    becomes a layer under its own name; all must share features and observations.
    """
    if not matrices:
        raise ConfigError("At least one assay matrix is required")

    frames = {str(name): _as_matrix_frame(str(name), value) for name, value in matrices.items()}
    first_name, first = next(iter(frames.items()))
    features = first.index.astype(str)
    obs_names = first.columns.astype(str)

    layers: Dict[str, np.ndarray] = {}
    for name, frame in frames.items():
        frame = frame.copy()
        frame.index = frame.index.astype(str)
        frame.columns = frame.columns.astype(str)
        if set(frame.index) != set(features) or set(frame.columns) != set(obs_names):
            raise ShapeMismatchError(
                f"Assay '{name}' does not share features and observations with assay '{first_name}'"
            )
        if frame.index.is_unique and frame.columns.is_unique:
            frame = frame.loc[features, obs_names]
        layers[name] = frame.to_numpy(dtype=float).T

    return ad.AnnData(
        obs=pd.DataFrame(index=obs_names),
        var=pd.DataFrame(index=features),
        layers=layers,
    )


def _from_bundle(bundle: FrameBundle) -> ad.AnnData:
    adata = _from_matrices(bundle.assays)
    adata.obs = bundle.obs.copy().set_axis(adata.obs_names, axis=0)
    for name, emb in bundle.reductions.items():
        adata.obsm[str(name)] = np.asarray(emb, dtype=float)
    return adata


def _merge_metadata(adata: ad.AnnData, metadata: pd.DataFrame, combine: bool) -> None:
    metadata = metadata.copy()
    metadata.index = metadata.index.astype(str)

    unknown = metadata.index.difference(adata.obs_names)
    if len(unknown):
        logger.warning(
            "Ignoring metadata rows for unknown observations",
            extra={"n_unknown": len(unknown), "example": str(unknown[0])},
        )
    metadata = metadata.reindex(adata.obs_names)

    if combine:
        obs = adata.obs.copy()
        for column in metadata.columns:
            # supplied columns override same-named existing ones
            obs[column] = metadata[column]
        adata.obs = obs
    else:
        adata.obs = metadata


def _add_reductions(adata: ad.AnnData, reductions: Mapping[str, Any]) -> None:
    for name, emb in reductions.items():
        if isinstance(emb, pd.DataFrame):
            if set(emb.index.astype(str)) == set(adata.obs_names):
                emb = emb.set_axis(emb.index.astype(str), axis=0).loc[adata.obs_names]
            emb = emb.to_numpy(dtype=float)
        emb = np.asarray(emb, dtype=float)
        if emb.ndim != 2 or emb.shape[0] != adata.n_obs:
            raise ShapeMismatchError(
                f"Reduction '{name}' has shape {emb.shape}, expected ({adata.n_obs}, k)"
            )
        adata.obsm[str(name)] = emb


def import_dataset(
    raw_inputs: Any,
    metadata: Optional[pd.DataFrame] = None,
    reductions: Optional[Mapping[str, Any]] = None,
    combine_metadata: bool = True,
    bulk: Optional[bool] = None,
    cluster_key: Optional[str] = None,
    name: Optional[str] = None,
) -> Dataset:
    """
    Build a Dataset from any supported raw input.

    raw_inputs may be:
    - a path (str / Path) to an .h5ad file
    - an AnnData, a Dataset or a FrameBundle
    - a mapping of assay name -> features x observations matrix

    The caller's objects are never modified: AnnData inputs are copied.

    :param metadata: observations x columns frame; its columns override same-named ones
    :param reductions: embedding name -> observations x dims array / DataFrame
    :param combine_metadata: keep existing annotation columns (False discards them)
    :param bulk: treat observations as samples rather than cells; None keeps the
        input's own flag (False for plain matrices)
    :param cluster_key: annotation column used for the identity alias
    :param name: dataset name (defaults to the file stem or the input's name)
    """
    file_path: Optional[Path] = None
    embedding_keys: Dict[str, str] = {}

    if isinstance(raw_inputs, (str, Path)):
        file_path = Path(raw_inputs)
        adata = _read_h5ad(file_path)
        name = name or file_path.stem
        if bulk is None:
            bulk = bool(adata.uns.get(BULK_UNS_KEY, False))
    elif isinstance(raw_inputs, Dataset):
        adata = raw_inputs.adata.copy()
        name = name or raw_inputs.name
        if bulk is None:
            bulk = raw_inputs.is_bulk
        cluster_key = cluster_key or raw_inputs.cluster_key
        embedding_keys = dict(raw_inputs.embedding_keys)
        file_path = raw_inputs.file_path
    elif isinstance(raw_inputs, ad.AnnData):
        adata = raw_inputs.copy()
        if bulk is None:
            bulk = bool(adata.uns.get(BULK_UNS_KEY, False))
    elif isinstance(raw_inputs, FrameBundle):
        adata = _from_bundle(raw_inputs)
        if bulk is None:
            bulk = raw_inputs.bulk
        cluster_key = cluster_key or raw_inputs.cluster_key
        embedding_keys = {str(k): v for k, v in raw_inputs.reduction_keys.items()}
    elif isinstance(raw_inputs, Mapping):
        adata = _from_matrices(raw_inputs)
    else:
        raise TypeMismatchError(
            "raw_inputs",
            "a .h5ad path, AnnData, Dataset, FrameBundle or mapping of assay matrices",
            type(raw_inputs).__name__,
        )

    bulk = bool(bulk)
    name = name or "dataset"
    adata = _ensure_unique_names(adata, name)

    if metadata is not None:
        _merge_metadata(adata, metadata, combine_metadata)
    elif not combine_metadata:
        adata.obs = pd.DataFrame(index=adata.obs_names)

    if reductions:
        _add_reductions(adata, reductions)

    if cluster_key is not None and cluster_key not in adata.obs.columns:
        msg = f"Dataset '{name}': cluster_key='{cluster_key}' not found in annotations"
        logger.error(msg, extra={"dataset": name, "cluster_key": cluster_key})
        raise ConfigError(msg)

    dataset = Dataset(
        adata=adata,
        name=name,
        bulk=bulk,
        cluster_key=cluster_key,
        embedding_keys=embedding_keys,
        file_path=file_path,
    )
    logger.info(
        "Imported dataset",
        extra={
            "dataset": name,
            "n_obs": adata.n_obs,
            "n_features": adata.n_vars,
            "assays": list(adata.layers.keys()),
            "embeddings": dataset.embeddings,
            "bulk": bulk,
        },
    )
    return dataset
