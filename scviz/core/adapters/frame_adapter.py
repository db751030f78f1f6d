from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Mapping, Optional, Sequence

import numpy as np
import pandas as pd

from scviz.core.adapters.base import ContainerAdapter, derive_embedding_key
from scviz.core.exceptions import NotFoundError, ShapeMismatchError
from scviz.core.settings import PlotSettings


@dataclass(frozen=True)
class FrameBundle:
    """
    Experiment held as plain pandas objects:

    - assays: assay name -> features x observations DataFrame
    - obs: observations x annotation-columns DataFrame
    - reductions: embedding name -> observations x dims DataFrame / array
    - reduction_keys: optional axis-label prefixes per reduction
    - bulk: samples (True) vs cells (False)
    """

    assays: Mapping[str, pd.DataFrame]
    obs: pd.DataFrame
    reductions: Mapping[str, Any] = field(default_factory=dict)
    reduction_keys: Mapping[str, str] = field(default_factory=dict)
    bulk: bool = False
    cluster_key: Optional[str] = None

    def __post_init__(self) -> None:
        obs_names = self.obs.index
        for name, frame in self.assays.items():
            if not frame.columns.equals(obs_names):
                raise ShapeMismatchError(
                    f"Assay '{name}' columns do not match the observation index of obs"
                )
        for name, emb in self.reductions.items():
            rows = np.shape(emb)[0]
            if rows != len(obs_names):
                raise ShapeMismatchError(
                    f"Reduction '{name}' has {rows} rows for {len(obs_names)} observations"
                )


class FrameBundleAdapter(ContainerAdapter):
    """
    Adapter for FrameBundle containers (named feature x observation matrices
    plus a metadata frame).
    """

    id = "frame_bundle"

    def __init__(self, container: FrameBundle, settings: PlotSettings):
        super().__init__(container, settings)
        self.bundle = container

    @classmethod
    def can_handle(cls, container: Any) -> bool:
        return isinstance(container, FrameBundle)

    @property
    def obs_names(self) -> pd.Index:
        return self.bundle.obs.index

    @property
    def obs(self) -> pd.DataFrame:
        return self.bundle.obs

    @property
    def configured_identity_key(self) -> Optional[str]:
        return self.bundle.cluster_key

    def assay_names(self) -> List[str]:
        return [str(k) for k in self.bundle.assays.keys()]

    def feature_names(self, assay: str) -> pd.Index:
        return self.bundle.assays[self.resolve_assay(assay)].index

    def expression_frame(self, features: Sequence[str], assay: str) -> pd.DataFrame:
        assay = self.resolve_assay(assay)
        frame = self.bundle.assays[assay]
        features = [str(f) for f in features]

        missing = [f for f in features if f not in frame.index]
        if missing:
            raise NotFoundError(missing[0], f"features of assay '{assay}'", list(frame.index))

        return frame.loc[features].T.astype(float)

    def embedding_names(self) -> List[str]:
        return [str(k) for k in self.bundle.reductions.keys()]

    def _raw_embedding(self, name: str) -> Any:
        return self.bundle.reductions[name]

    def embedding_key(self, name: str) -> str:
        if name not in self.embedding_names():
            raise NotFoundError(name, "embeddings", self.embedding_names())
        return self.bundle.reduction_keys.get(name) or derive_embedding_key(name)

    @property
    def is_bulk(self) -> bool:
        return self.bundle.bulk

    def with_bulk(self, flag: bool) -> FrameBundle:
        return replace(self.bundle, bulk=bool(flag))

    def subset(self, mask: np.ndarray) -> FrameBundle:
        mask = np.asarray(mask, dtype=bool)
        reductions: Dict[str, Any] = {}
        for name, emb in self.bundle.reductions.items():
            reductions[name] = emb.loc[mask] if isinstance(emb, pd.DataFrame) else np.asarray(emb)[mask]

        return replace(
            self.bundle,
            assays={k: v.loc[:, mask] for k, v in self.bundle.assays.items()},
            obs=self.bundle.obs.loc[mask],
            reductions=reductions,
        )
