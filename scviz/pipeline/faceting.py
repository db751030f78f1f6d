from __future__ import annotations

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
import plotly.graph_objects as go
from plotly.subplots import make_subplots

from scviz.core.settings import PlotSettings, resolve_settings
from scviz.pipeline.extraction import extract_table
from scviz.pipeline.summaries import group_positions

logger = logging.getLogger(__name__)

PRODUCT = "product"
EACH = "each"
FIRST_SEEN = "first_seen"
LEXICAL = "lexical"

ALL_LABEL = "All"

FacetKey = Tuple[Tuple[str, Any], ...]


@dataclass(frozen=True)
class Facet:
    """
    One subset of observations sharing a split-level combination.

    key: ((split column, level), ...); empty for the "All" pseudo-facet
    """

    key: FacetKey
    label: str
    obs_names: pd.Index
    data: Any = None

    @property
    def is_all(self) -> bool:
        return not self.key


def _sort_key(values: Tuple[Any, ...]) -> Tuple[Any, ...]:
    return tuple((0, v) if isinstance(v, (int, float, np.number)) else (1, str(v)) for v in values)


def facet_keys(
    table: pd.DataFrame,
    split_by: Sequence[str],
    mode: str = PRODUCT,
    order: str = FIRST_SEEN,
) -> List[Tuple[FacetKey, np.ndarray]]:
    """
    Distinct level combinations of `split_by` present in `table`, with the row
    positions of each.

    mode:
        "product": one facet per combination of levels across all split columns
        "each":    one facet per level of each split column separately
    order:
        "first_seen": order of first appearance in the table
        "lexical":    sorted by level (numbers before strings, strings by text)
    """
    if mode not in (PRODUCT, EACH):
        raise ValueError(f"Facet mode must be '{PRODUCT}' or '{EACH}', got '{mode}'")
    if order not in (FIRST_SEEN, LEXICAL):
        raise ValueError(f"Facet order must be '{FIRST_SEEN}' or '{LEXICAL}', got '{order}'")

    split_by = list(split_by)
    if mode == PRODUCT:
        groups = group_positions(table, split_by)
        if order == LEXICAL:
            groups = sorted(groups, key=lambda g: _sort_key(g[0]))
        return [(tuple(zip(split_by, key)), rows) for key, rows in groups]

    out: List[Tuple[FacetKey, np.ndarray]] = []
    for column in split_by:
        groups = group_positions(table, [column])
        if order == LEXICAL:
            groups = sorted(groups, key=lambda g: _sort_key(g[0]))
        out.extend((((column, key[0]),), rows) for key, rows in groups)
    return out


def facet_label(key: FacetKey) -> str:
    if not key:
        return ALL_LABEL
    return ", ".join(str(level) for _, level in key)


class FacetOrchestrator:
    """
    Re-runs a view's data pipeline once per facet and assembles the results.

    - build(cells_use) -> tidy table for the given observation ids
    - render(table, title) -> plotly Figure for one facet

    Facet tables may be built concurrently (max_workers > 1); render calls are
    always issued one at a time, and facets are returned in facet-key order.
    """

    def __init__(
        self,
        build: Callable[[pd.Index], Any],
        render: Callable[[Any, str], go.Figure],
        max_workers: Optional[int] = None,
        settings: Optional[PlotSettings] = None,
    ) -> None:
        self.build = build
        self.render = render
        self.max_workers = max_workers
        self.settings = resolve_settings(settings)

    def facets(
        self,
        container: Any,
        split_by: Sequence[str],
        cells_use: Any = None,
        mode: str = PRODUCT,
        order: str = FIRST_SEEN,
        include_all: bool = False,
    ) -> List[Facet]:
        split_table = extract_table(
            container,
            [],
            cells_use=cells_use,
            split_by=split_by,
            settings=self.settings,
        )

        plan: List[Tuple[FacetKey, pd.Index]] = []
        if include_all:
            plan.append(((), split_table.index))
        for key, rows in facet_keys(split_table, split_by, mode=mode, order=order):
            plan.append((key, split_table.index[rows]))

        logger.info(
            "Building facets",
            extra={"split_by": list(split_by), "n_facets": len(plan), "mode": mode},
        )

        if self.max_workers and self.max_workers > 1 and len(plan) > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
                tables = list(pool.map(lambda item: self.build(item[1]), plan))
        else:
            tables = [self.build(obs) for _, obs in plan]

        return [
            Facet(key=key, label=facet_label(key), obs_names=obs, data=table)
            for (key, obs), table in zip(plan, tables)
        ]

    def run(
        self,
        container: Any,
        split_by: Sequence[str],
        cells_use: Any = None,
        mode: str = PRODUCT,
        order: str = FIRST_SEEN,
        include_all: bool = False,
        data_out: bool = False,
        ncol: Optional[int] = None,
        title: Optional[str] = None,
    ) -> Any:
        """
        Return the composite Figure (default) or, with data_out, the list of Facets.
        """
        facets = self.facets(container, split_by, cells_use, mode, order, include_all)
        if data_out:
            return facets

        figures = [self.render(f.data, f.label) for f in facets]
        return compose_figures(figures, [f.label for f in facets], ncol=ncol, title=title)


def _subplot_refs(ann, suffix: str) -> Dict[str, str]:
    """Point an annotation's data references at the subplot axes with the given suffix."""
    refs = {
        "xref": _axis_ref(ann.xref, "x", suffix, default="x"),
        "yref": _axis_ref(ann.yref, "y", suffix, default="y"),
    }
    # unset arrow tails are pixel offsets
    if ann.axref is not None:
        refs["axref"] = _axis_ref(ann.axref, "x", suffix)
    if ann.ayref is not None:
        refs["ayref"] = _axis_ref(ann.ayref, "y", suffix)
    return refs


def _axis_ref(ref: Optional[str], letter: str, suffix: str, default: Optional[str] = None) -> Optional[str]:
    ref = ref or default
    if ref == letter:
        return letter + suffix
    return ref


def compose_figures(
    figures: Sequence[go.Figure],
    titles: Sequence[str],
    ncol: Optional[int] = None,
    title: Optional[str] = None,
) -> go.Figure:
    """Lay per-facet figures out on a subplot grid, one legend entry per trace name."""
    n = len(figures)
    if n == 0:
        fig = go.Figure()
        fig.update_layout(title="No data to show", xaxis={"visible": False}, yaxis={"visible": False})
        return fig

    ncol = ncol or math.ceil(math.sqrt(n))
    nrow = math.ceil(n / ncol)

    composite = make_subplots(rows=nrow, cols=ncol, subplot_titles=list(titles))

    seen_legend = set()
    for i, fig in enumerate(figures):
        row, col = divmod(i, ncol)
        for trace in fig.data:
            name = getattr(trace, "name", None)
            if trace.showlegend is False:
                pass
            elif name in seen_legend:
                trace.showlegend = False
            elif name:
                seen_legend.add(name)
            composite.add_trace(trace, row=row + 1, col=col + 1)

        for shape in fig.layout.shapes or ():
            composite.add_shape(shape, row=row + 1, col=col + 1)

        # subplots are numbered row-major: x, x2, x3 ...
        suffix = "" if i == 0 else str(i + 1)
        for ann in fig.layout.annotations or ():
            composite.add_annotation(ann, **_subplot_refs(ann, suffix))

    first = figures[0].layout
    composite.update_xaxes(title_text=first.xaxis.title.text)
    composite.update_yaxes(title_text=first.yaxis.title.text)
    if first.coloraxis is not None and first.coloraxis.colorscale is not None:
        composite.update_layout(coloraxis=first.coloraxis)
    composite.update_layout(
        title=title,
        legend=first.legend,
        height=max(400, 350 * nrow),
        margin=dict(l=40, r=40, t=80, b=40),
    )
    return composite
