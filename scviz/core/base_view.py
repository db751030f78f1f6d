from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import pandas as pd
import plotly.graph_objects as go

from scviz.core import accessor
from scviz.core.adapters.registry import as_adapter
from scviz.core.plot_request import PlotRequest
from scviz.core.settings import PlotSettings, resolve_settings
from scviz.pipeline.cells import normalize_cells_use
from scviz.pipeline.colors import assign_colors, discrete_levels, legend_marker_size
from scviz.pipeline.faceting import FacetOrchestrator
from scviz.render.plotly_renderer import PlotlyRenderer, RenderStyle

logger = logging.getLogger(__name__)


class BaseView(ABC):
    """
    Abstract base class for all plot views.

    Defines the contract that every view must follow
    - expose an 'id' - used by the ViewRegistry
    - expose a 'label' - human-readable name
    - implement 'compute_data' - build the tidy table for a set of observations
    - implement 'style' - describe how the renderer should draw that table

    'plot' composes them: prepare once per plot, then one compute/render per
    facet through the FacetOrchestrator.
    """

    id: str = None
    label: str = None

    def __init__(
        self,
        container: Any,
        settings: Optional[PlotSettings] = None,
        renderer: Optional[PlotlyRenderer] = None,
    ):
        self.container = container
        self.settings = resolve_settings(settings)
        self.renderer = renderer or PlotlyRenderer()
        self.adapter = as_adapter(container, self.settings)

    @abstractmethod
    def compute_data(self, request: PlotRequest, cells_use: Any = None) -> pd.DataFrame:
        """
        Compute the tidy table for the given observations
        :param request: the PlotRequest (after prepare())
        :param cells_use: observations to include; None means request.cells_use
        :return: data: a DataFrame ready for the renderer
        """
        raise NotImplementedError()

    @abstractmethod
    def style(self, data: pd.DataFrame, request: PlotRequest) -> RenderStyle:
        """
        Describe how to draw the data provided by {@link compute_data()}
        """
        raise NotImplementedError()

    def prepare(self, request: PlotRequest) -> PlotRequest:
        """
        Resolve values shared by every facet of one plot (colour levels, bin
        grids, defaults). Views extend this; the base resolves rasterisation.
        """
        if request.rasterize is None:
            n = int(normalize_cells_use(request.cells_use, self.adapter.obs_names).sum())
            request = request.with_context(rasterize=n > self.settings.raster_threshold)
        else:
            request = request.with_context(rasterize=request.rasterize)
        return request

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------
    def plot(self, request: PlotRequest) -> Any:
        """
        Run the full pipeline.

        Returns a Figure, or with request.data_out the tidy table
        (the list of Facets when split_by is set).
        """
        request = self.prepare(request)
        logger.info(
            "Plotting view",
            extra={"view": self.id, "split_by": request.split_by, "data_out": request.data_out},
        )

        if not request.split_by:
            data = self.compute_data(request, request.cells_use)
            if request.data_out:
                return data
            return self.render_figure(data, request)

        orchestrator = FacetOrchestrator(
            build=lambda obs: self.compute_data(request, obs),
            render=lambda data, label: self.render_figure(data, request, title=label),
            max_workers=request.max_workers,
            settings=self.settings,
        )
        return orchestrator.run(
            self.adapter,
            request.split_by,
            cells_use=request.cells_use,
            mode=request.split_mode,
            order=request.split_order,
            include_all=request.split_show_all,
            data_out=request.data_out,
            ncol=request.split_ncol,
            title=request.title,
        )

    def render_figure(self, data: pd.DataFrame, request: PlotRequest, title: Optional[str] = None) -> go.Figure:
        style = self.style(data, request)
        if title is not None:
            style.title = title
        return self.renderer.render(data, style)

    # ------------------------------------------------------------------
    # Common helpers for all views
    # ------------------------------------------------------------------
    def base_style(self, request: PlotRequest, **kwargs: Any) -> RenderStyle:
        point_size = request.size if request.size is not None else self.settings.point_size
        style = RenderStyle(
            point_size=point_size,
            legend_marker_size=legend_marker_size(point_size, self.settings),
            opacity=request.opacity,
            color_scale=request.color_scale,
            title=request.title,
            x_label=request.x_label,
            y_label=request.y_label,
            color_label=request.legend_title,
            rasterize=request.context.get("rasterize", False),
            raster_dpi=self.settings.raster_dpi,
        )
        for key, value in kwargs.items():
            setattr(style, key, value)
        return style

    def color_levels(self, name: Optional[str], request: PlotRequest) -> Optional[list]:
        """
        Discrete levels of `name` over all retained observations, or None if
        `name` is numeric. Computed once per plot so facets share colours.
        """
        if name is None:
            return None
        var = accessor.resolve_variable(name, self.adapter, assay=request.assay, settings=self.settings)
        if var.is_numeric:
            return None
        mask = normalize_cells_use(request.cells_use, self.adapter.obs_names)
        return discrete_levels(var.values[mask])

    def color_map(self, levels: Optional[list], request: PlotRequest) -> Optional[Dict[Any, str]]:
        if levels is None:
            return None
        return assign_colors(
            levels,
            palette=request.color_panel,
            color_order=request.colors,
            settings=self.settings,
        )
