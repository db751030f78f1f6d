from __future__ import annotations

from typing import Any

import pandas as pd

from scviz.core import accessor
from scviz.core.base_view import BaseView
from scviz.core.plot_request import PlotRequest
from scviz.pipeline.binning import BinGrid, summarize_bins
from scviz.pipeline.extraction import extract_table
from scviz.pipeline.summaries import check_summary
from scviz.render.plotly_renderer import HEX, RenderStyle


class HexView(BaseView):
    """
    Hex-binned (or rectangle-binned) density plot of an embedding or two variables.

    Bin colour is the bin's observation count, or with request.color_by the
    bin's summary of that variable (median for numeric, mode for categorical
    by default). The grid comes from the full coordinate extent, so every
    facet of one plot shares the same bins.
    """

    id = "hex"
    label = "Hex Density"

    def _axes_mode(self, request: PlotRequest) -> bool:
        return request.x_var is not None and request.y_var is not None

    def _coordinates(self, request: PlotRequest, cells_use: Any, embedding: str) -> pd.DataFrame:
        if self._axes_mode(request):
            table = extract_table(
                self.adapter,
                [request.x_var, request.y_var],
                cells_use=cells_use,
                assay=request.assay,
                numeric=[request.x_var, request.y_var],
                settings=self.settings,
            )
            table.attrs["axes"] = [request.x_var, request.y_var]
            return table
        return extract_table(
            self.adapter,
            [],
            cells_use=cells_use,
            embedding=embedding,
            dims=request.dims[:2],
            settings=self.settings,
        )

    def prepare(self, request: PlotRequest) -> PlotRequest:
        request = super().prepare(request)

        embedding = request.embedding
        if not self._axes_mode(request) and embedding is None:
            embedding = accessor.default_embedding(self.adapter, self.settings)

        # full, pre-filter extent
        full = self._coordinates(request, None, embedding)
        x, y = full.attrs["axes"]
        grid = BinGrid.from_extent(
            full[x].to_numpy(),
            full[y].to_numpy(),
            bins=request.bins or self.settings.hex_bins,
            shape=request.bin_shape,
        )

        summary = request.summary
        color_map = None
        if request.color_by is not None:
            var = accessor.resolve_variable(request.color_by, self.adapter, request.assay, self.settings)
            summary = summary or ("median" if var.is_numeric else "mode")
            check_summary(summary, var.values)
            if summary == "mode":
                color_map = self.color_map(self.color_levels(request.color_by, request), request)

        return request.with_context(embedding=embedding, grid=grid, summary=summary, color_map=color_map)

    def compute_data(self, request: PlotRequest, cells_use: Any = None) -> pd.DataFrame:
        table = self._coordinates(request, cells_use, request.context.get("embedding"))
        x, y = table.attrs["axes"]

        if request.color_by is not None:
            target = extract_table(
                self.adapter,
                [request.color_by],
                cells_use=cells_use,
                assay=request.assay,
                settings=self.settings,
            )
            table[request.color_by] = target[request.color_by]

        if table.empty:
            return pd.DataFrame(columns=["bin", x, y, "count"])

        grid = request.context.get("grid")
        if grid is None:
            grid = BinGrid.from_extent(table[x], table[y], request.bins or self.settings.hex_bins, request.bin_shape)

        binned = summarize_bins(
            table,
            x,
            y,
            grid,
            target=request.color_by,
            summary=request.context.get("summary", request.summary),
        )
        binned.attrs["axes"] = [x, y]
        return binned

    def style(self, data: pd.DataFrame, request: PlotRequest) -> RenderStyle:
        axes = data.attrs.get("axes") or [None, None]
        summary = request.context.get("summary")
        color = request.color_by or "count"
        color_label = request.legend_title
        if color_label is None:
            color_label = f"{summary}({request.color_by})" if request.color_by and summary != "mode" else color

        grid = request.context.get("grid")
        return self.base_style(
            request,
            kind=HEX,
            x=axes[0],
            y=axes[1],
            color=color,
            color_map=request.context.get("color_map"),
            color_label=color_label,
            bin_marker_size=max(6.0, 500.0 / grid.nx) if grid is not None else 12.0,
        )
