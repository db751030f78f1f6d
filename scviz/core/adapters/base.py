from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import Any, List, Optional, Sequence

import numpy as np
import pandas as pd

from scviz.core.exceptions import NotFoundError, ShapeMismatchError
from scviz.core.settings import PlotSettings


def derive_embedding_key(name: str) -> str:
    """
    Short axis-label prefix for an embedding name.

    "X_umap" -> "UMAP", "X_pca" -> "PC", "tsne" -> "TSNE"
    """
    key = re.sub(r"^X_", "", str(name)).upper()
    if key == "PCA":
        return "PC"
    return key or str(name)


class ContainerAdapter(ABC):
    """
    Capability interface every container shape is accessed through.

    Contract:
    - expose 'id' and implement 'can_handle' so the AdapterRegistry can pick it
    - matrix lookup: assay_names / feature_names / feature_values / expression_frame
    - annotation lookup: obs / identity_key
    - embedding lookup: embedding_names / embedding_matrix / embedding_key
    - bulk flag: is_bulk / with_bulk
    - subset: return a new container of the same shape restricted to a mask

    Adapters never mutate the wrapped container.
    """

    id: str = None

    def __init__(self, container: Any, settings: PlotSettings):
        self.container = container
        self.settings = settings

    # ------------------------------------------------------------------
    # Selection
    # ------------------------------------------------------------------
    @classmethod
    @abstractmethod
    def can_handle(cls, container: Any) -> bool:
        raise NotImplementedError()

    # ------------------------------------------------------------------
    # Observations & annotations
    # ------------------------------------------------------------------
    @property
    @abstractmethod
    def obs_names(self) -> pd.Index:
        raise NotImplementedError()

    @property
    def n_obs(self) -> int:
        return len(self.obs_names)

    @property
    @abstractmethod
    def obs(self) -> pd.DataFrame:
        raise NotImplementedError()

    @property
    @abstractmethod
    def configured_identity_key(self) -> Optional[str]:
        raise NotImplementedError()

    @property
    def identity_key(self) -> Optional[str]:
        """
        Annotation column aliased as the cluster identity.

        Uses the configured key if present, otherwise the first of
        PlotSettings.identity_candidates found in the annotations.
        """
        key = self.configured_identity_key
        columns = self.obs.columns
        if key is not None and key in columns:
            return key
        return next((c for c in self.settings.identity_candidates if c in columns), None)

    # ------------------------------------------------------------------
    # Assays & features
    # ------------------------------------------------------------------
    @abstractmethod
    def assay_names(self) -> List[str]:
        raise NotImplementedError()

    @abstractmethod
    def feature_names(self, assay: str) -> pd.Index:
        raise NotImplementedError()

    @abstractmethod
    def expression_frame(self, features: Sequence[str], assay: str) -> pd.DataFrame:
        """Observations x features frame of float values for the given assay."""
        raise NotImplementedError()

    def default_assay(self) -> str:
        names = self.assay_names()
        if not names:
            raise NotFoundError("<default assay>", "assays", names)
        for candidate in self.settings.assay_priority:
            if candidate in names:
                return candidate
        return names[0]

    def resolve_assay(self, assay: Optional[str]) -> str:
        if assay is None:
            return self.default_assay()
        names = self.assay_names()
        if assay not in names:
            raise NotFoundError(assay, "assays", names)
        return assay

    def feature_values(self, name: str, assay: str) -> np.ndarray:
        frame = self.expression_frame([name], assay)
        return frame[name].to_numpy(dtype=float)

    # ------------------------------------------------------------------
    # Embeddings
    # ------------------------------------------------------------------
    @abstractmethod
    def embedding_names(self) -> List[str]:
        raise NotImplementedError()

    @abstractmethod
    def _raw_embedding(self, name: str) -> Any:
        raise NotImplementedError()

    @abstractmethod
    def embedding_key(self, name: str) -> str:
        raise NotImplementedError()

    def embedding_matrix(self, name: str) -> np.ndarray:
        if name not in self.embedding_names():
            raise NotFoundError(name, "embeddings", self.embedding_names())

        emb = self._raw_embedding(name)
        arr = emb.to_numpy() if isinstance(emb, pd.DataFrame) else np.asarray(emb)
        if arr.ndim != 2:
            raise ShapeMismatchError(f"Embedding '{name}' must be 2D, got shape {arr.shape}")
        if arr.shape[0] != self.n_obs:
            raise ShapeMismatchError(
                f"Embedding '{name}' has {arr.shape[0]} rows for {self.n_obs} observations"
            )
        return arr.astype(float)

    # ------------------------------------------------------------------
    # Bulk flag & subsetting
    # ------------------------------------------------------------------
    @property
    @abstractmethod
    def is_bulk(self) -> bool:
        raise NotImplementedError()

    @abstractmethod
    def with_bulk(self, flag: bool) -> Any:
        """Return a new container of the same shape carrying the given bulk flag."""
        raise NotImplementedError()

    @abstractmethod
    def subset(self, mask: np.ndarray) -> Any:
        """Return a new container restricted to observations where mask is True."""
        raise NotImplementedError()
