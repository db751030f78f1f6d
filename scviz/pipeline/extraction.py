from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence

import pandas as pd

from scviz.core import accessor
from scviz.core.adapters.registry import as_adapter
from scviz.core.exceptions import TypeMismatchError
from scviz.core.plot_request import as_list
from scviz.core.settings import PlotSettings, resolve_settings
from scviz.pipeline.cells import normalize_cells_use

logger = logging.getLogger(__name__)


def _unique(names: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(names))


def extract_table(
    container: Any,
    variables: Sequence[str] | str,
    cells_use: Any = None,
    assay: Optional[str] = None,
    split_by: Optional[Sequence[str] | str] = None,
    numeric: Iterable[str] = (),
    embedding: Optional[str] = None,
    dims: Sequence[int] = (1, 2),
    settings: Optional[PlotSettings] = None,
) -> pd.DataFrame:
    """
    Build a tidy per-observation table.

    - one row per retained observation, in the container's observation order
    - one column per requested variable (metadata, feature, embedding component,
      or the identity alias); features are floats, metadata keep their dtype
    - one column per `split_by` metadata name
    - optional embedding coordinate columns ("<KEY> <i>") for `dims`

    table.attrs carries:
        kinds:     column -> "metadata" | "feature" | "embedding"
        split_by:  list of split columns
        axes:      embedding coordinate columns (empty without an embedding)
        obs_label: "cells" or "samples"

    :raises TypeMismatchError: a variable listed in `numeric` is categorical
    """
    settings = resolve_settings(settings)
    adapter = as_adapter(container, settings)

    variables = _unique(as_list(variables))
    split_by = _unique(as_list(split_by))
    numeric = set(numeric)

    mask = normalize_cells_use(cells_use, adapter.obs_names)

    columns: Dict[str, pd.Series] = {}
    kinds: Dict[str, str] = {}

    for name in variables:
        var = accessor.resolve_variable(name, adapter, assay=assay, settings=settings)
        if name in numeric and not var.is_numeric:
            raise TypeMismatchError(name, "numeric", "categorical")
        columns[name] = var.values[mask]
        kinds[name] = var.kind

    for name in split_by:
        if name in columns:
            continue
        columns[name] = accessor.get_metadata(name, adapter, settings)[mask]
        kinds[name] = accessor.METADATA

    axes: List[str] = []
    if embedding is not None:
        emb = accessor.get_embedding(embedding, adapter, dims=dims, settings=settings)
        for col in emb.columns:
            columns[col] = emb[col][mask]
            kinds[col] = accessor.EMBEDDING
            axes.append(col)

    table = pd.DataFrame(columns, index=adapter.obs_names[mask])

    table.attrs["kinds"] = kinds
    table.attrs["split_by"] = split_by
    table.attrs["axes"] = axes
    table.attrs["obs_label"] = "samples" if adapter.is_bulk else "cells"

    logger.debug(
        "Extracted tidy table",
        extra={"n_rows": len(table), "columns": list(table.columns)},
    )
    return table
