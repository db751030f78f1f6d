from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields, replace
from typing import Any, Dict, List, Optional, Sequence, Tuple


@dataclass
class PlotRequest:
    """
    Represents everything a caller asks of one visualisation.

    Fields:

    - variables: features / metadata to plot (meaning depends on the view)
    - embedding / dims: embedding and 1-based components for spatial views
    - x_var / y_var: plot two variables against each other instead of an embedding
    - color_by / shape_by / group_by: metadata or features mapped to those roles
    - split_by: metadata names to facet by; split_mode "product" | "each";
      split_order "first_seen" | "lexical"; split_show_all adds an "All" facet first
    - cells_use: observation filter (ids, integer positions or boolean mask)
    - assay: assay override for feature lookups
    - summary: named summary for binned / grouped views; scale: centre and scale per variable
    - bins / bin_shape: spatial binning resolution and "hex" | "rect"
    - colors: palette indices per level; color_panel: explicit palette override
    - rasterize: force WebGL traces (None = automatic above the configured threshold)
    - data_out: return tidy tables (or Facets) instead of a Figure
    """

    variables: List[str] = field(default_factory=list)

    embedding: Optional[str] = None
    dims: Tuple[int, ...] = (1, 2)
    x_var: Optional[str] = None
    y_var: Optional[str] = None

    color_by: Optional[str] = None
    shape_by: Optional[str] = None
    group_by: Optional[str] = None

    split_by: List[str] = field(default_factory=list)
    split_mode: str = "product"
    split_order: str = "first_seen"
    split_show_all: bool = False
    split_ncol: Optional[int] = None

    cells_use: Any = None
    assay: Optional[str] = None

    summary: Optional[str] = None
    scale: bool = True
    bins: Optional[int] = None
    bin_shape: str = "hex"

    colors: Optional[List[int]] = None
    color_panel: Optional[List[str]] = None
    color_scale: str = "viridis"
    size: Optional[float] = None
    opacity: float = 1.0
    plots: Tuple[str, ...] = ("violin", "jitter")

    do_label: bool = False
    do_ellipse: bool = False
    do_contour: bool = False
    trajectory_by: Optional[str] = None
    trajectories: List[List[Any]] = field(default_factory=list)

    rasterize: Optional[bool] = None
    data_out: bool = False
    max_workers: Optional[int] = None

    title: Optional[str] = None
    x_label: Optional[str] = None
    y_label: Optional[str] = None
    legend_title: Optional[str] = None

    # values resolved once per plot (colour levels, bin grid, ...) and shared by every facet
    context: Dict[str, Any] = field(default_factory=dict, repr=False, compare=False)

    def with_context(self, **values: Any) -> "PlotRequest":
        return replace(self, context={**self.context, **values})

    def to_dict(self) -> Dict[str, Any]:
        raw = asdict(self)
        raw.pop("context")
        return raw

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PlotRequest":
        known = {f.name for f in fields(cls)} - {"context"}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown plot options: {unknown}")

        kwargs = dict(data)
        for key in ("variables", "split_by"):
            if isinstance(kwargs.get(key), str):
                kwargs[key] = [kwargs[key]]
            elif kwargs.get(key) is not None:
                kwargs[key] = list(kwargs[key])
        for key in ("dims", "plots"):
            if kwargs.get(key) is not None:
                kwargs[key] = tuple(kwargs[key])
        return cls(**kwargs)


def as_list(values: Optional[Sequence[str] | str]) -> List[str]:
    if values is None:
        return []
    if isinstance(values, str):
        return [values]
    return list(values)
