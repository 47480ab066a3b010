"""Segmentation Module.

Submodules used by the cutting passes.

Submodules:
    - select: Selection of clumps by shape.
    - perimeter: Perimeter analysis of labeled objects.
    - cut: Cut line search.
    - util: Mask and label utilities.


Authors:
    - The DECLUMP development team
"""

from .cut import cut_clumps  # noqa: F401
from .perimeter import analyse_perimeter, concave_regions  # noqa: F401
from .select import calculate_selection_features, select_clumps  # noqa: F401
from .util import remove_small_labels  # noqa: F401
