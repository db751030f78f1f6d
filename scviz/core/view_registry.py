from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple, Type

from scviz.core.base_view import BaseView
from scviz.core.settings import PlotSettings
from scviz.render.plotly_renderer import PlotlyRenderer


class ViewRegistry:
    """
    Maps a view id ("scatter", "dotplot", ...) to its BaseView subclass

    Classes are stored rather than instances; every create() binds a fresh
    view to one container. Invariants:
        * only BaseView subclasses with an 'id' are accepted
        * ids are unique
    """

    def __init__(self, renderer: Optional[PlotlyRenderer] = None):
        self._views: Dict[str, Type[BaseView]] = {}
        self.renderer = renderer

    def register(self, view_cls: Type[BaseView]) -> Type[BaseView]:
        """
        Add a view class; returns it so the method also works as a decorator

        Raises:
            TypeError: view_cls is not a BaseView subclass or has no id
            ValueError: the id is taken
        """
        if not (isinstance(view_cls, type) and issubclass(view_cls, BaseView)):
            raise TypeError(f"{view_cls!r} is not a BaseView subclass")
        if not view_cls.id:
            raise TypeError(f"{view_cls.__name__} does not define an id")
        if view_cls.id in self._views:
            raise ValueError(f"View '{view_cls.id}' already registered")

        self._views[view_cls.id] = view_cls
        return view_cls

    def __contains__(self, view_id: str) -> bool:
        return view_id in self._views

    def create(self, view_id: str, container: Any, settings: Optional[PlotSettings] = None) -> BaseView:
        """
        Bind the view registered under view_id to a container

        :raises KeyError: unknown view_id
        """
        if view_id not in self._views:
            raise KeyError(f"View '{view_id}' not found; known views: {self.ids()}")
        return self._views[view_id](container, settings=settings, renderer=self.renderer)

    def all_classes(self) -> List[Type[BaseView]]:
        return list(self._views.values())

    def ids(self) -> List[str]:
        return list(self._views)

    def describe(self) -> List[Tuple[str, str]]:
        """(id, label) pairs in registration order"""
        return [(view_id, cls.label or view_id) for view_id, cls in self._views.items()]
