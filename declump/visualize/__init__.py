"""DECLUMP Visualization Module.

Submodules:
- separation: Diagnostic figures of the cutting passes.
"""

from .separation import (  # noqa: F401
    create_figure,
    plot_perimeter_analysis,
    plot_selection_features,
    plot_separation,
)
