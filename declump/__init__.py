"""DECLUMP: separation of clumped objects in segmentation masks.

Connected pixel regions of a binary mask that represent several touching objects are selected
by shape and cut along lines of low intensity between concave regions of their outline, over
several cutting passes.

Submodules:
    - config: Thresholds and parameter loading.
    - separate: Cutting passes and combination of their results.
    - segmentation: Clump selection, perimeter analysis and cut line search.
    - visualize: Diagnostic figures.

Authors:
    - The DECLUMP development team
"""

from .config import PlotConfig, Thresholds, load_parameters  # noqa: F401
from .separate import (  # noqa: F401
    CalibrationHalt,
    ConfigurationError,
    PassRecord,
    RunError,
    Separated,
    combine_passes,
    separate_clumps,
)
