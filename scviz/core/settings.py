from __future__ import annotations

import json
import logging
import os
from dataclasses import asdict, dataclass, fields, replace
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

from scviz.core.exceptions import ConfigError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlotSettings:
    """
    Explicit configuration threaded through every accessor / pipeline call.

    Fields:

    - assay_priority: assay names tried in order when no assay is requested
      (normalised-log > otherwise normalised > raw counts); the first assay
      present is used when none of them exist.
    - anndata_x_assay: assay name under which AnnData's .X is exposed.
    - identity_alias: synthetic metadata name aliasing the cluster identity column.
    - identity_candidates: .obs columns tried, in order, when no cluster key is configured.
    - palette: override for the default discrete palette (None = built-in palette).
    - legend_size_multiplier: legend markers are this many times the data point size.
    - point_size: default marker size for scatter-like views.
    - hex_bins: default number of bins along x for spatial binning.
    - raster_threshold: observation count above which views switch to WebGL traces.
    - raster_dpi: target resolution used when rasterising.
    """

    assay_priority: Tuple[str, ...] = ("logcounts", "normcounts", "counts")
    anndata_x_assay: str = "logcounts"
    identity_alias: str = "ident"
    identity_candidates: Tuple[str, ...] = (
        "leiden",
        "louvain",
        "cluster",
        "clusters",
        "seurat_clusters",
    )
    palette: Optional[Tuple[str, ...]] = None
    legend_size_multiplier: float = 3.0
    point_size: float = 4.0
    hex_bins: int = 30
    raster_threshold: int = 100_000
    raster_dpi: int = 300

    def __post_init__(self) -> None:
        if not self.assay_priority:
            raise ConfigError("assay_priority must name at least one assay")
        if self.legend_size_multiplier <= 0:
            raise ConfigError("legend_size_multiplier must be positive")
        if self.hex_bins < 1:
            raise ConfigError("hex_bins must be >= 1")

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    def with_updates(self, **changes: Any) -> "PlotSettings":
        return replace(self, **changes)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PlotSettings":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigError(f"Unknown settings keys: {unknown}")

        kwargs = dict(data)
        for key in ("assay_priority", "identity_candidates", "palette"):
            if kwargs.get(key) is not None:
                kwargs[key] = tuple(kwargs[key])
        try:
            return cls(**kwargs)
        except TypeError as e:
            raise ConfigError(f"Invalid settings: {e}") from e

    @classmethod
    def from_env(cls, base: Optional["PlotSettings"] = None) -> "PlotSettings":
        """
        Overlay environment variables on top of `base` (or the defaults).

        Recognised variables:
            SCVIZ_ASSAY_PRIORITY   comma separated assay names
            SCVIZ_POINT_SIZE       float
            SCVIZ_HEX_BINS         int
        """
        settings = base or cls()
        changes: Dict[str, Any] = {}

        priority = os.getenv("SCVIZ_ASSAY_PRIORITY")
        if priority:
            changes["assay_priority"] = tuple(p.strip() for p in priority.split(",") if p.strip())

        try:
            if os.getenv("SCVIZ_POINT_SIZE"):
                changes["point_size"] = float(os.environ["SCVIZ_POINT_SIZE"])
            if os.getenv("SCVIZ_HEX_BINS"):
                changes["hex_bins"] = int(os.environ["SCVIZ_HEX_BINS"])
        except ValueError as e:
            raise ConfigError(f"Invalid scviz environment setting: {e}") from e

        if changes:
            logger.info("Settings overridden from environment", extra={"keys": sorted(changes)})
        return settings.with_updates(**changes)


DEFAULT_SETTINGS = PlotSettings()


def resolve_settings(settings: Optional[PlotSettings]) -> PlotSettings:
    return settings if settings is not None else DEFAULT_SETTINGS


def load_settings(path: Path | str) -> PlotSettings:
    """
    Load PlotSettings from a JSON file, e.g.

        {"assay_priority": ["logcounts", "counts"], "hex_bins": 40}
    """
    path = Path(path)
    logger.info("Loading plot settings", extra={"path": str(path)})

    if not path.is_file():
        raise ConfigError(f"Settings file not found at {path}")

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigError(f"Settings file {path} is not valid JSON: {e}") from e

    if not isinstance(raw, dict):
        raise ConfigError(f"Settings file {path} must contain a JSON object")

    return PlotSettings.from_dict(raw)
