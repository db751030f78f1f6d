from __future__ import annotations

from typing import Any

import pandas as pd

from scviz.core.base_view import BaseView
from scviz.core.plot_request import PlotRequest
from scviz.pipeline.extraction import extract_table
from scviz.pipeline.summaries import check_summary, summarize_dots
from scviz.render.plotly_renderer import DOT, RenderStyle


class DotPlotView(BaseView):
    """
    Dot plot:
    - x-axis: variables (usually genes)
    - y-axis: group_by levels (default: cluster identity)
    - dot-size: fraction of observations in the group with expression > 0
    - dot-color: summarised expression, centred and scaled per variable when request.scale
    """

    id = "dotplot"
    label = "Dot Plot"

    def _group_by(self, request: PlotRequest) -> str:
        return request.group_by or self.settings.identity_alias

    def compute_data(self, request: PlotRequest, cells_use: Any = None) -> pd.DataFrame:
        # No variables selected
        if not request.variables:
            return pd.DataFrame()

        group_by = self._group_by(request)
        table = extract_table(
            self.adapter,
            [*request.variables, group_by],
            cells_use=cells_use,
            assay=request.assay,
            numeric=request.variables,
            settings=self.settings,
        )

        summary = request.summary or "mean"
        if table.empty:
            for var in request.variables:
                check_summary(summary, table[var])
            return pd.DataFrame()

        return summarize_dots(
            table,
            list(request.variables),
            group_by,
            summary=summary,
            scale=request.scale,
        )

    def style(self, data: pd.DataFrame, request: PlotRequest) -> RenderStyle:
        summary = request.summary or "mean"
        color_label = request.legend_title
        if color_label is None:
            color_label = f"scaled {summary}" if request.scale else summary

        return self.base_style(
            request,
            kind=DOT,
            x="variable",
            y="group",
            size="pct_expressed",
            color="color_value",
            color_label=color_label,
            x_label=request.x_label if request.x_label is not None else "Variable",
            y_label=request.y_label if request.y_label is not None else self._group_by(request),
        )
