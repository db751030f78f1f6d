"""
Container adapters: one swappable implementation per supported container shape.
"""

from .base import ContainerAdapter, derive_embedding_key
from .anndata_adapter import AnnDataAdapter
from .frame_adapter import FrameBundle, FrameBundleAdapter
from .registry import AdapterRegistry, DEFAULT_REGISTRY, as_adapter, create_default_registry

__all__ = [
    "ContainerAdapter",
    "derive_embedding_key",
    "AnnDataAdapter",
    "FrameBundle",
    "FrameBundleAdapter",
    "AdapterRegistry",
    "DEFAULT_REGISTRY",
    "as_adapter",
    "create_default_registry",
]
