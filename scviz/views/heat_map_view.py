from __future__ import annotations

from typing import Any

import pandas as pd

from scviz.core import accessor
from scviz.core.base_view import BaseView
from scviz.core.plot_request import PlotRequest
from scviz.pipeline.extraction import extract_table
from scviz.pipeline.summaries import check_summary, group_label, group_positions
from scviz.render.plotly_renderer import HEATMAP, RenderStyle


class HeatmapView(BaseView):
    """
    Heatmap of the selected variables.

    Columns are observations, or with request.group_by one column per group
    holding the group's summary (mean by default). With request.scale each
    variable (row) is z-scored across the columns.
    """

    id = "heatmap"
    label = "Heatmap"

    def compute_data(self, request: PlotRequest, cells_use: Any = None) -> pd.DataFrame:
        # No variables selected → nothing to do
        if not request.variables:
            return pd.DataFrame()

        variables = list(request.variables)
        extra = [request.group_by] if request.group_by else []
        table = extract_table(
            self.adapter,
            [*variables, *extra],
            cells_use=cells_use,
            assay=request.assay,
            numeric=variables,
            settings=self.settings,
        )
        if table.empty:
            return pd.DataFrame()

        if request.group_by:
            summary = request.summary or "mean"
            entry = None
            for var in variables:
                entry = check_summary(summary, table[var])
            rows = {}
            for key, positions in group_positions(table, [request.group_by]):
                rows[group_label(key)] = [
                    entry.fn(table[var].iloc[positions].to_numpy(dtype=float)) for var in variables
                ]
            matrix = pd.DataFrame.from_dict(rows, orient="index", columns=variables)
        else:
            matrix = table[variables].astype(float)
            matrix.index = matrix.index.astype(str)

        if request.scale:
            sd = matrix.std(axis=0, ddof=1)
            matrix = (matrix - matrix.mean(axis=0)) / sd.where(sd > 0)
            matrix = matrix.fillna(0.0)

        # Long-form: feature, column, value
        long_df = (
            matrix.rename_axis("column")
            .reset_index()
            .melt(id_vars="column", var_name="feature", value_name="value")
        )
        long_df["feature"] = pd.Categorical(long_df["feature"], categories=variables, ordered=True)
        long_df["column"] = pd.Categorical(long_df["column"], categories=list(matrix.index), ordered=True)
        return long_df[["feature", "column", "value"]]

    def style(self, data: pd.DataFrame, request: PlotRequest) -> RenderStyle:
        color_label = request.legend_title
        if color_label is None:
            if request.scale:
                color_label = "z-score"
            elif request.group_by:
                color_label = request.summary or "mean"
            else:
                color_label = "value"

        return self.base_style(
            request,
            kind=HEATMAP,
            x="column",
            y="feature",
            color="value",
            color_label=color_label,
            x_label=request.x_label if request.x_label is not None else (
                request.group_by or accessor.observation_label(self.adapter, plural=False)
            ),
            y_label=request.y_label if request.y_label is not None else "Feature",
        )
