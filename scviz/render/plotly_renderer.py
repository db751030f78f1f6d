from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
import plotly.express as px
import plotly.graph_objects as go

logger = logging.getLogger(__name__)

# missing values in a discrete colour column are drawn as their own level
NA_LABEL = "NA"
NA_COLOR = "#BEBEBE"

SCATTER = "scatter"
HEX = "hex"
VARS = "vars"
BAR = "bar"
DOT = "dot"
HEATMAP = "heatmap"

# plotly marker symbols handed out to shape levels, in order
SHAPE_SYMBOLS: Tuple[str, ...] = (
    "circle", "triangle-up", "square", "cross", "diamond", "x",
    "triangle-down", "star", "pentagon", "hexagram", "circle-open", "square-open",
)


@dataclass
class RenderStyle:
    """
    Everything the renderer needs besides the tidy table.

    Fields:

    - kind: "scatter", "hex", "vars", "bar", "dot" or "heatmap"
    - x / y / color / shape / size: table columns mapped to those aesthetics
    - color_map: level -> colour for discrete colour columns
    - color_scale: plotly colour scale for continuous colour columns
    - layers: for "vars" plots, any of "violin", "box", "jitter"
    - labels: draw level names at group medians (scatter)
    - ellipse: draw a 2-sigma covariance ellipse per colour level (scatter)
    - contour: overlay a 2-D density contour (scatter)
    - trajectories: paths of group levels drawn as arrows between centroids of `trajectory_by`
    - rasterize: use WebGL traces; raster_dpi is recorded for static export
    """

    kind: str = SCATTER
    x: Optional[str] = None
    y: Optional[str] = None
    color: Optional[str] = None
    shape: Optional[str] = None
    size: Optional[str] = None
    color_map: Optional[Dict[Any, str]] = None
    shape_map: Optional[Dict[Any, str]] = None
    color_scale: str = "viridis"
    point_size: float = 4.0
    legend_marker_size: float = 12.0
    opacity: float = 1.0
    x_label: Optional[str] = None
    y_label: Optional[str] = None
    color_label: Optional[str] = None
    title: Optional[str] = None
    layers: Tuple[str, ...] = ("violin", "jitter")
    labels: bool = False
    ellipse: bool = False
    contour: bool = False
    trajectory_by: Optional[str] = None
    trajectories: Sequence[Sequence[Any]] = field(default_factory=list)
    rasterize: bool = False
    raster_dpi: int = 300
    bin_marker_size: float = 12.0
    stack: str = "percent"


class PlotlyRenderer:
    """
    Rendering delegate: turns a tidy table plus a RenderStyle into a plotly Figure.

    Each render call builds a fresh Figure; the renderer keeps no state between calls.
    """

    def render(self, data: pd.DataFrame, style: RenderStyle) -> go.Figure:
        if data is None or data.empty:
            return self.empty_figure("No data to show")

        handlers = {
            SCATTER: self._scatter,
            HEX: self._hex,
            VARS: self._vars,
            BAR: self._bar,
            DOT: self._dot,
            HEATMAP: self._heatmap,
        }
        try:
            handler = handlers[style.kind]
        except KeyError:
            raise ValueError(f"Unknown plot kind '{style.kind}'. Known kinds: {sorted(handlers)}") from None

        fig = handler(data, style)
        fig.update_layout(
            title=style.title,
            height=600,
            margin=dict(l=40, r=40, b=40, t=60),
            xaxis_title=style.x_label if style.x_label is not None else style.x,
            yaxis_title=style.y_label if style.y_label is not None else style.y,
            meta={"rasterized": style.rasterize, "raster_dpi": style.raster_dpi},
        )
        return fig

    @staticmethod
    def empty_figure(message: str) -> go.Figure:
        """
        Standardised 'no data' figure.
        """
        fig = go.Figure()
        fig.update_layout(
            title=message,
            xaxis={"visible": False},
            yaxis={"visible": False},
        )
        return fig

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _scatter_cls(style: RenderStyle):
        return go.Scattergl if style.rasterize else go.Scatter

    def _symbols(self, data: pd.DataFrame, style: RenderStyle) -> Any:
        if style.shape is None:
            return "circle"
        shape_map = style.shape_map or {
            level: SHAPE_SYMBOLS[i % len(SHAPE_SYMBOLS)]
            for i, level in enumerate(pd.unique(data[style.shape].dropna()))
        }
        return data[style.shape].map(shape_map).fillna("circle").tolist()

    def _discrete_groups(
        self, data: pd.DataFrame, column: str, style: RenderStyle
    ) -> List[Tuple[str, str, pd.DataFrame]]:
        """(name, colour, rows) per colour level, plus an NA group for missing values"""
        groups = [(str(level), colour, data[data[column] == level]) for level, colour in style.color_map.items()]
        missing = data[data[column].isna()]
        if not missing.empty:
            logger.debug("Drawing missing colour values as NA", extra={"column": column, "n_missing": len(missing)})
            groups.append((NA_LABEL, NA_COLOR, missing))
        return groups

    def _legend_entries(
        self, fig: go.Figure, style: RenderStyle, symbol: str = "circle", include_na: bool = False
    ) -> None:
        # legend-only traces so legend markers are larger than data points
        entries = list((style.color_map or {}).items())
        if include_na:
            entries.append((NA_LABEL, NA_COLOR))
        for level, colour in entries:
            fig.add_trace(
                go.Scatter(
                    x=[None],
                    y=[None],
                    mode="markers",
                    name=str(level),
                    legendgroup=str(level),
                    marker=dict(color=colour, size=style.legend_marker_size, symbol=symbol),
                    showlegend=True,
                )
            )

    def _is_discrete(self, data: pd.DataFrame, column: Optional[str], style: RenderStyle) -> bool:
        return column is not None and style.color_map is not None and column in data.columns

    # ------------------------------------------------------------------
    # Scatter (embeddings or any two numeric variables)
    # ------------------------------------------------------------------
    def _scatter(self, data: pd.DataFrame, style: RenderStyle) -> go.Figure:
        fig = go.Figure()
        trace_cls = self._scatter_cls(style)
        symbols = self._symbols(data, style)

        if self._is_discrete(data, style.color, style):
            symbols = pd.Series(symbols, index=data.index) if isinstance(symbols, list) else None
            groups = self._discrete_groups(data, style.color, style)
            for level, colour, sub in groups:
                if sub.empty:
                    continue
                fig.add_trace(
                    trace_cls(
                        x=sub[style.x],
                        y=sub[style.y],
                        mode="markers",
                        name=level,
                        legendgroup=level,
                        showlegend=False,
                        opacity=style.opacity,
                        marker=dict(
                            color=colour,
                            size=style.point_size,
                            symbol=symbols.loc[sub.index].tolist() if symbols is not None else "circle",
                        ),
                        text=sub.index,
                    )
                )
            self._legend_entries(fig, style, include_na=len(groups) > len(style.color_map))
        else:
            marker: Dict[str, Any] = dict(size=style.point_size, symbol=symbols)
            if style.color is not None:
                marker.update(
                    color=data[style.color],
                    colorscale=style.color_scale,
                    showscale=True,
                    colorbar=dict(title=style.color_label or style.color),
                )
            fig.add_trace(
                trace_cls(
                    x=data[style.x],
                    y=data[style.y],
                    mode="markers",
                    opacity=style.opacity,
                    marker=marker,
                    text=data.index,
                    showlegend=False,
                )
            )

        if style.contour:
            fig.add_trace(
                go.Histogram2dContour(
                    x=data[style.x],
                    y=data[style.y],
                    contours=dict(coloring="none"),
                    line=dict(color="black", width=1),
                    showscale=False,
                    showlegend=False,
                    hoverinfo="skip",
                )
            )

        group_col = style.color if self._is_discrete(data, style.color, style) else None
        if style.ellipse and group_col is not None:
            self._add_ellipses(fig, data, style, group_col)
        if style.labels and group_col is not None:
            self._add_labels(fig, data, style, group_col)
        if style.trajectory_by is not None and style.trajectories:
            self._add_trajectories(fig, data, style)

        fig.update_layout(legend=dict(itemsizing="trace", title=style.color_label or style.color))
        return fig

    def _add_labels(self, fig: go.Figure, data: pd.DataFrame, style: RenderStyle, group_col: str) -> None:
        medians = data.groupby(group_col, observed=True, sort=False)[[style.x, style.y]].median()
        for level, row in medians.iterrows():
            fig.add_annotation(
                x=row[style.x],
                y=row[style.y],
                text=str(level),
                showarrow=False,
                bgcolor="rgba(255,255,255,0.7)",
            )

    def _add_ellipses(self, fig: go.Figure, data: pd.DataFrame, style: RenderStyle, group_col: str) -> None:
        theta = np.linspace(0, 2 * np.pi, 100)
        circle = np.vstack([np.cos(theta), np.sin(theta)])
        for level, colour in style.color_map.items():
            pts = data.loc[data[group_col] == level, [style.x, style.y]].to_numpy(dtype=float)
            if len(pts) < 3:
                continue
            cov = np.cov(pts, rowvar=False)
            vals, vecs = np.linalg.eigh(cov)
            radii = 2.0 * np.sqrt(np.clip(vals, 0, None))
            outline = (vecs @ (radii[:, None] * circle)).T + pts.mean(axis=0)
            fig.add_trace(
                go.Scatter(
                    x=outline[:, 0],
                    y=outline[:, 1],
                    mode="lines",
                    line=dict(color=colour, width=1.5),
                    name=str(level),
                    legendgroup=str(level),
                    showlegend=False,
                    hoverinfo="skip",
                )
            )

    def _add_trajectories(self, fig: go.Figure, data: pd.DataFrame, style: RenderStyle) -> None:
        centroids = data.groupby(style.trajectory_by, observed=True)[[style.x, style.y]].mean()
        for path in style.trajectories:
            steps = [level for level in path if level in centroids.index]
            for start, end in zip(steps[:-1], steps[1:]):
                fig.add_annotation(
                    x=centroids.loc[end, style.x],
                    y=centroids.loc[end, style.y],
                    ax=centroids.loc[start, style.x],
                    ay=centroids.loc[start, style.y],
                    xref="x",
                    yref="y",
                    axref="x",
                    ayref="y",
                    showarrow=True,
                    arrowhead=2,
                    arrowwidth=1.5,
                    text="",
                )

    # ------------------------------------------------------------------
    # Hex / rectangular bins
    # ------------------------------------------------------------------
    def _hex(self, data: pd.DataFrame, style: RenderStyle) -> go.Figure:
        fig = go.Figure()
        symbol = "hexagon" if data.attrs.get("grid") is None or data.attrs["grid"].shape == "hex" else "square"
        trace_cls = self._scatter_cls(style)
        color_col = style.color or "count"

        if self._is_discrete(data, color_col, style):
            groups = self._discrete_groups(data, color_col, style)
            for level, colour, sub in groups:
                if sub.empty:
                    continue
                fig.add_trace(
                    trace_cls(
                        x=sub[style.x],
                        y=sub[style.y],
                        mode="markers",
                        name=level,
                        legendgroup=level,
                        showlegend=False,
                        marker=dict(color=colour, size=style.bin_marker_size, symbol=symbol),
                        customdata=sub[["count"]],
                        hovertemplate="count=%{customdata[0]}<extra>" + str(level) + "</extra>",
                    )
                )
            self._legend_entries(fig, style, symbol=symbol, include_na=len(groups) > len(style.color_map))
        else:
            fig.add_trace(
                trace_cls(
                    x=data[style.x],
                    y=data[style.y],
                    mode="markers",
                    showlegend=False,
                    marker=dict(
                        color=data[color_col],
                        colorscale=style.color_scale,
                        size=style.bin_marker_size,
                        symbol=symbol,
                        showscale=True,
                        colorbar=dict(title=style.color_label or color_col),
                    ),
                    customdata=data[["count"]],
                    hovertemplate="count=%{customdata[0]}<extra></extra>",
                )
            )
        return fig

    # ------------------------------------------------------------------
    # Per-group distributions
    # ------------------------------------------------------------------
    def _vars(self, data: pd.DataFrame, style: RenderStyle) -> go.Figure:
        fig = go.Figure()
        color_col = style.color or style.x
        levels = list((style.color_map or {}).items()) or [(None, None)]

        for level, colour in levels:
            sub = data if level is None else data[data[color_col] == level]
            if sub.empty:
                continue
            common = dict(
                x=sub[style.x].astype(str),
                y=sub[style.y],
                name=str(level) if level is not None else style.y,
                legendgroup=str(level),
            )
            if "violin" in style.layers:
                fig.add_trace(
                    go.Violin(
                        **common,
                        points="all" if "jitter" in style.layers else False,
                        jitter=0.4,
                        pointpos=0,
                        box_visible="box" in style.layers,
                        marker=dict(size=style.point_size, color=colour),
                        scalemode="width",
                    )
                )
            elif "box" in style.layers:
                fig.add_trace(
                    go.Box(
                        **common,
                        boxpoints="all" if "jitter" in style.layers else False,
                        jitter=0.4,
                        pointpos=0,
                        marker=dict(size=style.point_size, color=colour),
                    )
                )
            else:
                fig.add_trace(
                    go.Box(
                        **common,
                        boxpoints="all",
                        jitter=0.4,
                        pointpos=0,
                        fillcolor="rgba(0,0,0,0)",
                        line=dict(width=0),
                        marker=dict(size=style.point_size, color=colour),
                    )
                )

        fig.update_layout(
            violinmode="overlay" if color_col == style.x else "group",
            boxmode="overlay" if color_col == style.x else "group",
            legend=dict(title=style.color_label or color_col),
        )
        return fig

    # ------------------------------------------------------------------
    # Composition bars
    # ------------------------------------------------------------------
    def _bar(self, data: pd.DataFrame, style: RenderStyle) -> go.Figure:
        fig = go.Figure()
        y_col = style.y or style.stack
        for level, colour in (style.color_map or {}).items():
            sub = data[data[style.color] == level]
            if sub.empty:
                continue
            fig.add_trace(
                go.Bar(
                    x=sub[style.x].astype(str),
                    y=sub[y_col],
                    name=str(level),
                    marker_color=colour,
                )
            )
        fig.update_layout(barmode="stack", legend=dict(title=style.color_label or style.color))
        return fig

    # ------------------------------------------------------------------
    # Dot plot
    # ------------------------------------------------------------------
    def _dot(self, data: pd.DataFrame, style: RenderStyle) -> go.Figure:
        fig = px.scatter(
            data,
            x=style.x,
            y=style.y,
            size=style.size,
            color=style.color,
            size_max=20,
            color_continuous_scale=style.color_scale,
            hover_data={c: True for c in ("summary", "pct_expressed", "n") if c in data.columns},
        )
        fig.update_layout(coloraxis_colorbar=dict(title=style.color_label or style.color))
        fig.update_xaxes(tickangle=-45)
        return fig

    # ------------------------------------------------------------------
    # Heatmap
    # ------------------------------------------------------------------
    def _heatmap(self, data: pd.DataFrame, style: RenderStyle) -> go.Figure:
        pivot = data.pivot(index=style.y, columns=style.x, values=style.color)
        fig = px.imshow(
            pivot,
            color_continuous_scale=style.color_scale,
            aspect="auto",
            labels=dict(x=style.x_label or style.x, y=style.y_label or style.y, color=style.color_label or style.color),
        )
        fig.update_xaxes(side="top")
        return fig
