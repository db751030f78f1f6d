from __future__ import annotations

from typing import Any, List, Tuple

import pandas as pd

from scviz.core import accessor
from scviz.core.base_view import BaseView
from scviz.core.plot_request import PlotRequest
from scviz.pipeline.extraction import extract_table
from scviz.render.plotly_renderer import SCATTER, SHAPE_SYMBOLS, RenderStyle


class ScatterView(BaseView):
    """
    Embedding (UMAP / tSNE / PCA ...) or variable-vs-variable scatter plot

    - X/Y from embedding components, or from request.x_var / request.y_var
    - Colour by any metadata or feature (default: cluster identity)
    - Optional shape by metadata, label / ellipse / contour / trajectory overlays
    """

    id = "scatter"
    label = "Scatter Plot"

    def _axes_mode(self, request: PlotRequest) -> bool:
        return request.x_var is not None and request.y_var is not None

    def prepare(self, request: PlotRequest) -> PlotRequest:
        request = super().prepare(request)

        if not self._axes_mode(request) and request.embedding is None:
            request = request.with_context(embedding=accessor.default_embedding(self.adapter, self.settings))
        else:
            request = request.with_context(embedding=request.embedding)

        color_by = request.color_by
        if color_by is None and self.adapter.identity_key is not None:
            color_by = self.settings.identity_alias

        levels = self.color_levels(color_by, request)
        shape_levels = self.color_levels(request.shape_by, request)
        return request.with_context(
            color_by=color_by,
            color_map=self.color_map(levels, request),
            shape_levels=shape_levels,
        )

    def compute_data(self, request: PlotRequest, cells_use: Any = None) -> pd.DataFrame:
        color_by = request.context.get("color_by", request.color_by)
        extras = [v for v in (color_by, request.shape_by, request.trajectory_by) if v is not None]

        if self._axes_mode(request):
            return extract_table(
                self.adapter,
                [request.x_var, request.y_var, *extras],
                cells_use=cells_use,
                assay=request.assay,
                numeric=[request.x_var, request.y_var],
                settings=self.settings,
            )

        embedding = request.context.get("embedding") or accessor.default_embedding(self.adapter, self.settings)
        return extract_table(
            self.adapter,
            extras,
            cells_use=cells_use,
            assay=request.assay,
            embedding=embedding,
            dims=request.dims[:2],
            settings=self.settings,
        )

    def _xy(self, data: pd.DataFrame, request: PlotRequest) -> Tuple[str, str]:
        if self._axes_mode(request):
            return request.x_var, request.y_var
        axes: List[str] = data.attrs.get("axes") or []
        return axes[0], axes[1]

    def style(self, data: pd.DataFrame, request: PlotRequest) -> RenderStyle:
        x, y = self._xy(data, request) if not data.empty else (None, None)
        shape_levels = request.context.get("shape_levels")
        shape_map = None
        if shape_levels is not None:
            shape_map = {lvl: SHAPE_SYMBOLS[i % len(SHAPE_SYMBOLS)] for i, lvl in enumerate(shape_levels)}

        return self.base_style(
            request,
            kind=SCATTER,
            x=x,
            y=y,
            color=request.context.get("color_by", request.color_by),
            shape=request.shape_by,
            color_map=request.context.get("color_map"),
            shape_map=shape_map,
            labels=request.do_label,
            ellipse=request.do_ellipse,
            contour=request.do_contour,
            trajectory_by=request.trajectory_by,
            trajectories=request.trajectories,
        )
