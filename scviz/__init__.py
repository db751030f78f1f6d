"""
Top-level package for scviz.

This package exposes a uniform accessor over single-cell / bulk containers and
the shared plot-data pipeline used by every view.
Most code should import from submodules such as:
    scviz.core
    scviz.pipeline
    scviz.views
"""

__all__: list[str] = []
