from __future__ import annotations

from typing import Any

import numpy as np
import pandas as pd

from scviz.core.base_view import BaseView
from scviz.core.exceptions import TypeMismatchError
from scviz.core.plot_request import PlotRequest
from scviz.pipeline.colors import discrete_levels
from scviz.pipeline.extraction import extract_table
from scviz.pipeline.summaries import group_positions
from scviz.render.plotly_renderer import BAR, RenderStyle


class BarView(BaseView):
    """
    Composition bars: for each group_by level, the count and share of
    observations in each level of a categorical variable.
    """

    id = "bar"
    label = "Composition"

    def _variable(self, request: PlotRequest) -> str:
        if not request.variables:
            raise ValueError("BarView needs one categorical variable in request.variables")
        return request.variables[0]

    def _group_by(self, request: PlotRequest) -> str:
        return request.group_by or self.settings.identity_alias

    def prepare(self, request: PlotRequest) -> PlotRequest:
        request = super().prepare(request)
        var = self._variable(request)
        levels = self.color_levels(var, request)
        if levels is None:
            raise TypeMismatchError(var, "categorical", "numeric")
        return request.with_context(levels=levels, color_map=self.color_map(levels, request))

    def compute_data(self, request: PlotRequest, cells_use: Any = None) -> pd.DataFrame:
        var = self._variable(request)
        group_by = self._group_by(request)

        table = extract_table(
            self.adapter,
            [var, group_by],
            cells_use=cells_use,
            assay=request.assay,
            settings=self.settings,
        )
        levels = request.context.get("levels") or discrete_levels(table[var])

        if isinstance(table[group_by].dtype, pd.CategoricalDtype):
            present = set(table[group_by].dropna())
            groups = [g for g in table[group_by].cat.categories if g in present]
            positions = {
                (g,): np.flatnonzero((table[group_by] == g).to_numpy()) for g in groups
            }
            grouped = [((g,), positions[(g,)]) for g in groups]
        else:
            grouped = group_positions(table, [group_by])

        rows = []
        values = table[var].to_numpy()
        for (group,), idx in grouped:
            group_values = values[idx]
            total = len(idx)
            for level in levels:
                count = int(np.sum(group_values == level))
                rows.append((group, level, count, count / total if total else np.nan, total))

        out = pd.DataFrame(rows, columns=[group_by, var, "count", "percent", "n"])
        out[var] = pd.Categorical(out[var], categories=levels, ordered=True)
        return out

    def style(self, data: pd.DataFrame, request: PlotRequest) -> RenderStyle:
        stack = "percent" if request.scale else "count"
        return self.base_style(
            request,
            kind=BAR,
            x=self._group_by(request),
            y=stack,
            color=self._variable(request),
            color_map=request.context.get("color_map"),
            stack=stack,
        )
