from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional

import anndata as ad
import numpy as np
import pandas as pd

from scviz.core.exceptions import ShapeMismatchError

BULK_UNS_KEY = "scviz_bulk"


class Dataset:
    """
    Canonical in-memory container every accessor / pipeline stage operates on.

    Backed by an AnnData object:
    - assays: .X plus .layers (observations x features storage)
    - annotations: .obs
    - embeddings: .obsm, each with a short key prefix for axis labels
    - is_bulk: samples (bulk) vs cells (single-cell) semantics

    A Dataset is treated as immutable: `subset` and `with_bulk` return new
    Dataset values and never touch the caller's object.
    """

    # -------------------------------------------------------------------------
    # Constructor
    # -------------------------------------------------------------------------
    def __init__(
        self,
        adata: ad.AnnData,
        name: str = "dataset",
        bulk: bool = False,
        cluster_key: Optional[str] = None,
        embedding_keys: Optional[Dict[str, str]] = None,
        file_path: Optional[Path] = None,
    ) -> None:
        self.adata = adata
        self.name = name
        self.cluster_key = cluster_key
        self.embedding_keys: Dict[str, str] = dict(embedding_keys or {})
        self.file_path = file_path
        self._bulk = bool(bulk)

        self._validate_embeddings()

    def _validate_embeddings(self) -> None:
        n = self.adata.n_obs
        for key in self.adata.obsm.keys():
            rows = self.adata.obsm[key].shape[0]
            if rows != n:
                raise ShapeMismatchError(
                    f"Embedding '{key}' has {rows} rows but the dataset has {n} observations"
                )

    # -------------------------------------------------------------------------
    # Bulk flag
    # -------------------------------------------------------------------------
    @property
    def is_bulk(self) -> bool:
        return self._bulk

    def with_bulk(self, flag: bool) -> "Dataset":
        """Return a new Dataset sharing this one's data, with the given bulk flag."""
        return self._replace(adata=self.adata, bulk=bool(flag))

    # -------------------------------------------------------------------------
    # Subsetting
    # -------------------------------------------------------------------------
    def subset(self, mask: np.ndarray, *, copy_adata: bool = False) -> "Dataset":
        """
        Return a new Dataset restricted to observations where mask is True.

        Args:
            copy_adata: If True, forces `adata[mask].copy()`.
                       Default False keeps AnnData views (lower memory) assuming read-only usage.
        """
        mask = np.asarray(mask, dtype=bool)
        if mask.shape != (self.adata.n_obs,):
            raise ShapeMismatchError(
                f"Subset mask has shape {mask.shape}, expected ({self.adata.n_obs},)"
            )
        sub_adata = self.adata[mask].copy() if copy_adata else self.adata[mask]
        return self._replace(adata=sub_adata, bulk=self._bulk)

    def _replace(self, adata: ad.AnnData, bulk: bool) -> "Dataset":
        return Dataset(
            adata=adata,
            name=self.name,
            bulk=bulk,
            cluster_key=self.cluster_key,
            embedding_keys=self.embedding_keys,
            file_path=self.file_path,
        )

    # -------------------------------------------------------------------------
    # Properties & getters
    # -------------------------------------------------------------------------
    @property
    def obs_names(self) -> pd.Index:
        return self.adata.obs_names

    @property
    def n_obs(self) -> int:
        return self.adata.n_obs

    @property
    def genes(self) -> pd.Index:
        """Return feature names of the main matrix."""
        return self.adata.var_names

    @property
    def embeddings(self) -> List[str]:
        return [str(k) for k in self.adata.obsm.keys()]

    def __repr__(self) -> str:
        kind = "samples" if self._bulk else "cells"
        return (
            f"Dataset(name={self.name!r}, {self.adata.n_obs} {kind} x "
            f"{self.adata.n_vars} features, layers={list(self.adata.layers.keys())}, "
            f"embeddings={self.embeddings})"
        )
