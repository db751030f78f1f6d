from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

import anndata as ad
import numpy as np
import pandas as pd
import scipy.sparse as sp

from scviz.core.adapters.base import ContainerAdapter, derive_embedding_key
from scviz.core.dataset import BULK_UNS_KEY, Dataset
from scviz.core.exceptions import NotFoundError
from scviz.core.settings import PlotSettings


class AnnDataAdapter(ContainerAdapter):
    """
    Adapter for AnnData-backed containers: a bare `anndata.AnnData` or the
    canonical `Dataset` wrapping one.

    - .X is exposed under PlotSettings.anndata_x_assay (or "X" if a layer already
      uses that name); every layer is an additional assay
    - .obs are the annotations, .obsm the embeddings
    - for a bare AnnData the bulk flag lives in .uns["scviz_bulk"]
    """

    id = "anndata"

    def __init__(self, container: Any, settings: PlotSettings):
        super().__init__(container, settings)
        if isinstance(container, Dataset):
            self._dataset: Optional[Dataset] = container
            self.adata: ad.AnnData = container.adata
        else:
            self._dataset = None
            self.adata = container

    @classmethod
    def can_handle(cls, container: Any) -> bool:
        return isinstance(container, (ad.AnnData, Dataset))

    # -------------------------------------------------------------------------
    # Observations & annotations
    # -------------------------------------------------------------------------
    @property
    def obs_names(self) -> pd.Index:
        return self.adata.obs_names

    @property
    def obs(self) -> pd.DataFrame:
        return self.adata.obs

    @property
    def configured_identity_key(self) -> Optional[str]:
        if self._dataset is not None:
            return self._dataset.cluster_key
        return self.adata.uns.get("scviz_cluster_key")

    # -------------------------------------------------------------------------
    # Assays & features
    # -------------------------------------------------------------------------
    @property
    def x_assay_name(self) -> str:
        name = self.settings.anndata_x_assay
        return "X" if name in self.adata.layers else name

    def _assays(self) -> Dict[str, Any]:
        assays: Dict[str, Any] = {}
        if self.adata.X is not None:
            assays[self.x_assay_name] = self.adata.X
        for key in self.adata.layers.keys():
            assays[str(key)] = self.adata.layers[key]
        return assays

    def assay_names(self) -> List[str]:
        return list(self._assays().keys())

    def feature_names(self, assay: str) -> pd.Index:
        # every AnnData assay shares var_names
        self.resolve_assay(assay)
        return self.adata.var_names

    def expression_frame(self, features: Sequence[str], assay: str) -> pd.DataFrame:
        assay = self.resolve_assay(assay)
        features = [str(f) for f in features]

        var_names = self.adata.var_names
        idx = var_names.get_indexer(features)
        missing = [f for f, i in zip(features, idx) if i < 0]
        if missing:
            raise NotFoundError(missing[0], f"features of assay '{assay}'", list(var_names))

        X = self._assays()[assay][:, idx]  # sparse or dense slice
        if sp.issparse(X):
            X = X.toarray()

        return pd.DataFrame(
            np.asarray(X, dtype=float),
            index=self.adata.obs_names,
            columns=features,
        )

    # -------------------------------------------------------------------------
    # Embeddings
    # -------------------------------------------------------------------------
    def embedding_names(self) -> List[str]:
        return [str(k) for k in self.adata.obsm.keys()]

    def _raw_embedding(self, name: str) -> Any:
        return self.adata.obsm[name]

    def embedding_key(self, name: str) -> str:
        if name not in self.embedding_names():
            raise NotFoundError(name, "embeddings", self.embedding_names())
        if self._dataset is not None and name in self._dataset.embedding_keys:
            return self._dataset.embedding_keys[name]
        return derive_embedding_key(name)

    # -------------------------------------------------------------------------
    # Bulk flag & subsetting
    # -------------------------------------------------------------------------
    @property
    def is_bulk(self) -> bool:
        if self._dataset is not None:
            return self._dataset.is_bulk
        return bool(self.adata.uns.get(BULK_UNS_KEY, False))

    def with_bulk(self, flag: bool) -> Any:
        if self._dataset is not None:
            return self._dataset.with_bulk(flag)
        adata = self.adata.copy()
        adata.uns[BULK_UNS_KEY] = bool(flag)
        return adata

    def subset(self, mask: np.ndarray) -> Any:
        if self._dataset is not None:
            return self._dataset.subset(mask)
        return self.adata[np.asarray(mask, dtype=bool)]
