from scviz.core.view_registry import ViewRegistry

from .scatter_view import ScatterView
from .hex_view import HexView
from .vars_view import VarsView
from .bar_view import BarView
from .dot_plot_view import DotPlotView
from .heat_map_view import HeatmapView

__all__ = [
    "ScatterView",
    "HexView",
    "VarsView",
    "BarView",
    "DotPlotView",
    "HeatmapView",
    "create_default_view_registry",
]


def create_default_view_registry() -> ViewRegistry:
    registry = ViewRegistry()
    for view_cls in (ScatterView, HexView, VarsView, BarView, DotPlotView, HeatmapView):
        registry.register(view_cls)
    return registry
