"""
Container Accessor: resolves gene / metadata / embedding lookups against any
container shape registered in the AdapterRegistry.

Every function takes the container as an argument and an optional
PlotSettings; nothing here mutates the container or holds global state.
"""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Tuple

import pandas as pd

from scviz.core.adapters.registry import as_adapter
from scviz.core.exceptions import NotFoundError, ShapeMismatchError, VariableNotFoundError
from scviz.core.settings import PlotSettings, resolve_settings

logger = logging.getLogger(__name__)

METADATA = "metadata"
FEATURE = "feature"
EMBEDDING = "embedding"

SEARCH_SPACES = ("metadata", "features", "embeddings")


@dataclass(frozen=True)
class Variable:
    """
    A resolved variable.

    - kind: "metadata", "feature" or "embedding" (one embedding component)
    - values: Series aligned to the container's observation order
    - shadowed: other namespaces that also contain this name and lost the tie-break
    """

    name: str
    kind: str
    values: pd.Series
    shadowed: Tuple[str, ...] = ()

    @property
    def is_numeric(self) -> bool:
        return is_numeric_series(self.values)


def is_numeric_series(values: pd.Series) -> bool:
    return pd.api.types.is_numeric_dtype(values) and not pd.api.types.is_bool_dtype(values)


# -------------------------------------------------------------------------
# Metadata
# -------------------------------------------------------------------------
def get_metadata_names(container: Any, settings: Optional[PlotSettings] = None) -> List[str]:
    adapter = as_adapter(container, settings)
    names = [str(c) for c in adapter.obs.columns]
    alias = adapter.settings.identity_alias
    if adapter.identity_key is not None and alias not in names:
        names.append(alias)
    return names


def has_metadata(name: str, container: Any, settings: Optional[PlotSettings] = None) -> bool:
    return name in get_metadata_names(container, settings)


def get_metadata(name: str, container: Any, settings: Optional[PlotSettings] = None) -> pd.Series:
    """
    Return annotation column `name` aligned to observation order.

    The identity alias (default "ident") resolves to the cluster identity column.
    Declared dtypes (numeric, categorical, string) are kept as-is.
    """
    adapter = as_adapter(container, settings)
    obs = adapter.obs

    if name in obs.columns:
        column = name
    elif name == adapter.settings.identity_alias and adapter.identity_key is not None:
        column = adapter.identity_key
    else:
        raise NotFoundError(name, "metadata", get_metadata_names(container, settings))

    return obs[column].rename(name).copy()


# -------------------------------------------------------------------------
# Assays & features
# -------------------------------------------------------------------------
def get_assay_names(container: Any, settings: Optional[PlotSettings] = None) -> List[str]:
    return as_adapter(container, settings).assay_names()


def default_assay(container: Any, settings: Optional[PlotSettings] = None) -> str:
    return as_adapter(container, settings).default_assay()


def get_feature_names(
    container: Any,
    assay: Optional[str] = None,
    settings: Optional[PlotSettings] = None,
) -> List[str]:
    """
    Feature names of `assay`, or of every assay (de-duplicated, first-seen
    order) when no assay is given.
    """
    adapter = as_adapter(container, settings)
    assays = [adapter.resolve_assay(assay)] if assay is not None else adapter.assay_names()

    seen = {}
    for a in assays:
        for f in adapter.feature_names(a):
            seen.setdefault(str(f), None)
    return list(seen)


def has_feature(
    name: str,
    container: Any,
    assay: Optional[str] = None,
    settings: Optional[PlotSettings] = None,
) -> bool:
    return name in get_feature_names(container, assay, settings)


def get_feature(
    name: str,
    container: Any,
    assay: Optional[str] = None,
    settings: Optional[PlotSettings] = None,
) -> pd.Series:
    """Float expression values of one feature in `assay` (default assay if None)."""
    adapter = as_adapter(container, settings)
    assay = adapter.resolve_assay(assay)
    values = adapter.feature_values(name, assay)
    return pd.Series(values, index=adapter.obs_names, name=name, dtype=float)


def get_features(
    names: Sequence[str],
    container: Any,
    assay: Optional[str] = None,
    settings: Optional[PlotSettings] = None,
) -> pd.DataFrame:
    """Observations x features frame of float expression values."""
    adapter = as_adapter(container, settings)
    return adapter.expression_frame(list(names), adapter.resolve_assay(assay))


# -------------------------------------------------------------------------
# Embeddings
# -------------------------------------------------------------------------
def get_embedding_names(container: Any, settings: Optional[PlotSettings] = None) -> List[str]:
    return as_adapter(container, settings).embedding_names()


DEFAULT_EMBEDDING_KEYS = ("UMAP", "TSNE", "PC")


def default_embedding(container: Any, settings: Optional[PlotSettings] = None) -> str:
    """First embedding keyed UMAP, then TSNE, then PC; otherwise the first embedding present."""
    adapter = as_adapter(container, settings)
    names = adapter.embedding_names()
    if not names:
        raise NotFoundError("<default embedding>", "embeddings", names)
    for key in DEFAULT_EMBEDDING_KEYS:
        for name in names:
            if adapter.embedding_key(name) == key:
                return name
    return names[0]


def embedding_key(name: str, container: Any, settings: Optional[PlotSettings] = None) -> str:
    return as_adapter(container, settings).embedding_key(name)


def get_embedding(
    name: str,
    container: Any,
    dims: Optional[Sequence[int]] = None,
    settings: Optional[PlotSettings] = None,
) -> pd.DataFrame:
    """
    Return embedding `name` as a DataFrame with columns "<KEY> <i>" (1-based).

    `dims` selects components by 1-based index, e.g. (1, 2) or (1, 2, 3).
    """
    adapter = as_adapter(container, settings)
    arr = adapter.embedding_matrix(name)
    key = adapter.embedding_key(name)

    dims = list(dims) if dims is not None else list(range(1, arr.shape[1] + 1))
    for d in dims:
        if not 1 <= d <= arr.shape[1]:
            raise ShapeMismatchError(
                f"Embedding '{name}' has {arr.shape[1]} dimensions; requested dimension {d}"
            )

    return pd.DataFrame(
        arr[:, [d - 1 for d in dims]],
        index=adapter.obs_names,
        columns=[f"{key} {d}" for d in dims],
    )


def _embedding_component(name: str, adapter) -> Optional[pd.Series]:
    match = re.match(r"^(.+)_(\d+)$", name)
    if match is None:
        return None

    prefix, dim = match.group(1), int(match.group(2))
    for emb_name in adapter.embedding_names():
        if adapter.embedding_key(emb_name) != prefix:
            continue
        arr = adapter.embedding_matrix(emb_name)
        if 1 <= dim <= arr.shape[1]:
            return pd.Series(arr[:, dim - 1], index=adapter.obs_names, name=name, dtype=float)
    return None


# -------------------------------------------------------------------------
# Unified resolution
# -------------------------------------------------------------------------
def resolve_variable(
    name: str,
    container: Any,
    assay: Optional[str] = None,
    settings: Optional[PlotSettings] = None,
) -> Variable:
    """
    Resolve `name` against metadata, then features, then embedding components
    ("<KEY>_<i>", e.g. "UMAP_1").

    Annotation columns take precedence over features of the same name; the
    losing namespace is reported in Variable.shadowed and logged.

    :raises VariableNotFoundError: if no namespace contains the name
    """
    settings = resolve_settings(settings)
    adapter = as_adapter(container, settings)

    in_metadata = has_metadata(name, adapter, settings)
    in_features = has_feature(name, adapter, assay, settings)

    if in_metadata:
        shadowed: Tuple[str, ...] = ()
        if in_features:
            shadowed = ("features",)
            logger.warning(
                "Name '%s' is both a metadata column and a feature; using metadata",
                name,
                extra={"variable": name},
            )
        return Variable(name, METADATA, get_metadata(name, adapter, settings), shadowed)

    if in_features:
        return Variable(name, FEATURE, get_feature(name, adapter, assay, settings))

    component = _embedding_component(name, adapter)
    if component is not None:
        return Variable(name, EMBEDDING, component)

    raise VariableNotFoundError(name, SEARCH_SPACES)


# -------------------------------------------------------------------------
# Bulk flag & subsetting
# -------------------------------------------------------------------------
def is_bulk(container: Any) -> bool:
    return as_adapter(container).is_bulk


def set_bulk(container: Any, flag: bool) -> Any:
    """Return a new container of the same shape with the given bulk flag."""
    return as_adapter(container).with_bulk(flag)


def observation_label(container: Any, plural: bool = True) -> str:
    """Default axis / legend wording: "samples" for bulk data, "cells" otherwise."""
    word = "sample" if is_bulk(container) else "cell"
    return word + "s" if plural else word


def get_obs_names(container: Any) -> pd.Index:
    return as_adapter(container).obs_names


def subset(container: Any, cells_use: Any) -> Any:
    """Return a new container restricted to `cells_use` (ids, integer indices or boolean mask)."""
    from scviz.pipeline.cells import normalize_cells_use

    adapter = as_adapter(container)
    mask = normalize_cells_use(cells_use, adapter.obs_names)
    return adapter.subset(mask)
