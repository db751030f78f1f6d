"""
Core domain layer: the canonical Dataset, container adapters, variable
accessors, plot requests, settings and errors.

The view base class and the view registry live in
scviz.core.base_view / scviz.core.view_registry and are imported from there.
"""

from .dataset import Dataset
from .exceptions import (
    AdapterSelectionError,
    ConfigError,
    NotFoundError,
    ScvizError,
    ShapeMismatchError,
    TypeMismatchError,
    UnknownSummaryError,
    VariableNotFoundError,
)
from .importing import import_dataset
from .plot_request import PlotRequest
from .settings import DEFAULT_SETTINGS, PlotSettings

__all__ = [
    "Dataset",
    "PlotRequest",
    "PlotSettings",
    "DEFAULT_SETTINGS",
    "import_dataset",
    "ScvizError",
    "ConfigError",
    "AdapterSelectionError",
    "NotFoundError",
    "VariableNotFoundError",
    "ShapeMismatchError",
    "TypeMismatchError",
    "UnknownSummaryError",
]
