from __future__ import annotations

from typing import Any

import pandas as pd

from scviz.core.base_view import BaseView
from scviz.core.plot_request import PlotRequest
from scviz.pipeline.extraction import extract_table
from scviz.render.plotly_renderer import VARS, RenderStyle


class VarsView(BaseView):
    """
    Distribution of one numeric variable per group:
    - x-axis: group_by levels (default: cluster identity)
    - y-axis: the variable (feature expression or numeric metadata)
    - layers: any of violin / box / jitter (request.plots)
    - fill colour: color_by levels (default: group_by)
    """

    id = "vars"
    label = "Distributions"

    def _variable(self, request: PlotRequest) -> str:
        if not request.variables:
            raise ValueError("VarsView needs one variable in request.variables")
        return request.variables[0]

    def _group_by(self, request: PlotRequest) -> str:
        return request.group_by or self.settings.identity_alias

    def prepare(self, request: PlotRequest) -> PlotRequest:
        request = super().prepare(request)
        color_by = request.color_by or self._group_by(request)
        levels = self.color_levels(color_by, request)
        return request.with_context(color_by=color_by, color_map=self.color_map(levels, request))

    def compute_data(self, request: PlotRequest, cells_use: Any = None) -> pd.DataFrame:
        var = self._variable(request)
        group_by = self._group_by(request)
        color_by = request.context.get("color_by", request.color_by or group_by)

        return extract_table(
            self.adapter,
            [var, group_by, color_by],
            cells_use=cells_use,
            assay=request.assay,
            numeric=[var],
            settings=self.settings,
        )

    def style(self, data: pd.DataFrame, request: PlotRequest) -> RenderStyle:
        return self.base_style(
            request,
            kind=VARS,
            x=self._group_by(request),
            y=self._variable(request),
            color=request.context.get("color_by"),
            color_map=request.context.get("color_map"),
            layers=tuple(request.plots),
        )
