from __future__ import annotations

from typing import Any, List, Optional, Type

from scviz.core.adapters.anndata_adapter import AnnDataAdapter
from scviz.core.adapters.base import ContainerAdapter
from scviz.core.adapters.frame_adapter import FrameBundleAdapter
from scviz.core.exceptions import AdapterSelectionError
from scviz.core.settings import PlotSettings, resolve_settings


class AdapterRegistry:
    """
    Registry of ContainerAdapter classes for turning container objects into a
    uniform accessor.

    Purpose:
    - Acts as the source of truth for which container shapes are supported
    - Decouples accessor / pipeline code from concrete container types by exposing {@link wrap(container)}
    - New container shapes are supported by registering one more adapter, without changing call sites

    Design Notes:
    - Stores subclasses of {@link ContainerAdapter}; adapters are instantiated per lookup
    - Enforces variants:
        * only {@link ContainerAdapter} subclasses can be registered
        * each adapter 'id' is unique
    - Resolution is first-hit: the first adapter whose can_handle() accepts the object
    """

    def __init__(self) -> None:
        self._adapters: List[Type[ContainerAdapter]] = []

    @property
    def adapters(self) -> List[Type[ContainerAdapter]]:
        return list(self._adapters)

    def register(self, adapter_cls: Type[ContainerAdapter]) -> None:
        """
        Register a new adapter class.

        :raises TypeError: if adapter_cls is not a ContainerAdapter subclass
        :raises ValueError: if an adapter with the same id already exists
        """
        if not (isinstance(adapter_cls, type) and issubclass(adapter_cls, ContainerAdapter)):
            raise TypeError(f"Adapter '{adapter_cls!r}' must be a subclass of ContainerAdapter")

        for existing in self._adapters:
            if existing.id == adapter_cls.id:
                raise ValueError(f"The adapter '{existing.id}' already exists")

        self._adapters.append(adapter_cls)

    def wrap(self, container: Any, settings: Optional[PlotSettings] = None) -> ContainerAdapter:
        """
        Finds the adapter that can handle the given container and wraps it.

        :raises AdapterSelectionError: if no adapter can handle the object
        """
        if isinstance(container, ContainerAdapter):
            return container

        for adapter_cls in self._adapters:
            if adapter_cls.can_handle(container):
                return adapter_cls(container, resolve_settings(settings))

        raise AdapterSelectionError(
            f"No container adapter could handle object of type "
            f"'{type(container).__name__}'. "
            f"Registered adapters: {[a.id for a in self._adapters]}"
        )


def create_default_registry() -> AdapterRegistry:
    """
    Builds a registry with all known container adapters.
    """
    registry = AdapterRegistry()
    registry.register(AnnDataAdapter)
    registry.register(FrameBundleAdapter)
    return registry


DEFAULT_REGISTRY = create_default_registry()


def as_adapter(
    container: Any,
    settings: Optional[PlotSettings] = None,
    registry: Optional[AdapterRegistry] = None,
) -> ContainerAdapter:
    return (registry or DEFAULT_REGISTRY).wrap(container, settings)
