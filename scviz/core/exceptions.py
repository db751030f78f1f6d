from __future__ import annotations

from typing import Iterable, Optional


class ScvizError(Exception):
    """Base exception for all scviz errors"""
    pass


class ConfigError(ScvizError):
    """Invalid or inconsistent PlotSettings / settings file"""
    pass


class AdapterSelectionError(ScvizError):
    """No registered ContainerAdapter can handle the given object"""
    pass


class NotFoundError(ScvizError, KeyError):
    """
    A name is absent from the namespace that was searched
    (metadata columns, features of an assay, assays, embeddings...)
    """

    def __init__(self, name: str, namespace: str, available: Optional[Iterable[str]] = None):
        self.name = name
        self.namespace = namespace
        self.available = list(available) if available is not None else None
        message = f"'{name}' not found in {namespace}"
        if self.available is not None:
            preview = ", ".join(map(str, self.available[:10]))
            more = "..." if len(self.available) > 10 else ""
            message += f" (available: {preview}{more})"
        super().__init__(message)

    def __str__(self) -> str:
        # KeyError would repr() the message
        return self.args[0]


class VariableNotFoundError(NotFoundError):
    """
    A variable name is absent from every namespace a variable can resolve
    against: metadata, features and embedding components.
    """

    def __init__(self, name: str, searched: Iterable[str]):
        self.searched = list(searched)
        super().__init__(name, " / ".join(self.searched))


class ShapeMismatchError(ScvizError, ValueError):
    """Filter / index length or dimensionality does not match the container"""
    pass


class TypeMismatchError(ScvizError, TypeError):
    """Categorical values used where numeric values are required, or vice versa"""

    def __init__(self, name: str, expected: str, actual: str):
        self.name = name
        self.expected = expected
        self.actual = actual
        super().__init__(f"'{name}' is {actual}, but a {expected} variable is required")


class UnknownSummaryError(ScvizError, KeyError):
    """Summary name is not registered in the SummaryRegistry"""

    def __init__(self, name: str, registered: Iterable[str]):
        self.name = name
        self.registered = sorted(registered)
        super().__init__(
            f"Unknown summary '{name}'. Registered summaries: {self.registered}"
        )

    def __str__(self) -> str:
        return self.args[0]
