"""Selection of clumps by shape.

Authors:
    - The DECLUMP development team
"""

import numpy as np
import pandas as pd
from skimage.measure import regionprops_table

from declump.segmentation.util import label_mask


def calculate_selection_features(labels: np.ndarray) -> pd.DataFrame:
    """Compute the shape features used to select clumps.

    ``form_factor`` is reported in its inverted sense, ``1 - 4*pi*area/perimeter**2``, so it
    is close to 0 for round objects and grows with irregularity.

    :param labels: An array of labels, which must be non-negative integers.
    :return: Data frame with the columns `label`, `area`, `solidity` and `form_factor`
    """
    props = regionprops_table(labels, properties=("label", "area", "solidity", "perimeter"))
    df = pd.DataFrame(props)
    perimeter = df["perimeter"].to_numpy(dtype=float)
    area = df["area"].to_numpy(dtype=float)
    with np.errstate(divide="ignore", invalid="ignore"):
        form_factor = 4 * np.pi * area / perimeter**2
    # single pixels and lines have no usable perimeter
    form_factor = np.where(perimeter > 0, form_factor, 1.0)
    df["form_factor"] = 1 - form_factor
    return df[["label", "area", "solidity", "form_factor"]]


def select_clumps(
    mask: np.ndarray,
    max_solidity: float,
    min_formfactor: float,
    min_area: float,
    max_area: float,
) -> tuple[np.ndarray, np.ndarray]:
    """Split the connected components of a mask into clumps and non-clumps.

    A component is a clump if its solidity is below `max_solidity`, its (inverted) form factor
    is at least `min_formfactor` and its area lies within [`min_area`, `max_area`].

    :param mask: Binary mask
    :param max_solidity: Maximal solidity of a clump
    :param min_formfactor: Minimal inverted form factor of a clump
    :param min_area: Minimal area of a clump
    :param max_area: Maximal area of a clump
    :return: Tuple of clump mask and non-clump mask
    """
    mask = np.asarray(mask, dtype=bool)
    labels = label_mask(mask)
    features = calculate_selection_features(labels)
    is_clump = (
        (features["solidity"] < max_solidity)
        & (features["form_factor"] >= min_formfactor)
        & (features["area"] >= min_area)
        & (features["area"] <= max_area)
    )
    selected = np.zeros(labels.max() + 1, dtype=bool)
    selected[features.loc[is_clump, "label"].to_numpy(dtype=int)] = True
    clumps = selected[labels]
    non_clumps = mask & ~clumps
    return clumps, non_clumps
