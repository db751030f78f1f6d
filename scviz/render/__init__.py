from .plotly_renderer import PlotlyRenderer, RenderStyle

__all__ = ["PlotlyRenderer", "RenderStyle"]
