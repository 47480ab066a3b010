"""Mask and label utilities shared by the cutting passes.

Authors:
    - The DECLUMP development team
"""

import numpy as np
import scipy.ndimage as ndi
from skimage.measure import label
from skimage.morphology import disk, remove_small_objects


def smoothing_disk(filter_size: float) -> np.ndarray:
    """Disk-shaped footprint used to smooth masks.

    :param filter_size: Radius of the disk. Values below 1 are clamped to 1.
    :return: Boolean footprint
    """
    radius = max(int(filter_size), 1)
    return disk(radius).astype(bool)


def open_mask(mask: np.ndarray, footprint: np.ndarray) -> np.ndarray:
    """Morphological opening (erosion followed by dilation) of a binary mask.

    Pixels outside the image are treated as foreground during erosion so that objects
    touching the image border are not eroded from the outside.

    :param mask: Binary mask
    :param footprint: Structuring element
    :return: Opened mask
    """
    eroded = ndi.binary_erosion(mask, structure=footprint, border_value=1)
    return ndi.binary_dilation(eroded, structure=footprint)


def fill_holes(mask: np.ndarray) -> np.ndarray:
    """Fill topological holes in a binary mask.

    :param mask: Binary mask
    :return: Mask without holes
    """
    return ndi.binary_fill_holes(mask)


def has_holes(labels: np.ndarray) -> bool:
    """Whether any labeled object encloses background pixels.

    :param labels: An array of labels, which must be non-negative integers.
    :return: True if at least one object has a hole
    """
    mask = labels > 0
    return bool(np.any(ndi.binary_fill_holes(mask) & ~mask))


def label_mask(mask: np.ndarray) -> np.ndarray:
    """Label 8-connected components.

    :param mask: Binary mask
    :return: Labels numbered from 1
    """
    return label(mask, connectivity=2)


def remove_small_labels(labels: np.ndarray, min_area: float) -> np.ndarray:
    """Remove labels with fewer than `min_area` pixels.

    :param labels: An array of labels, which must be non-negative integers.
    :param min_area: Minimum area to keep
    :return: Filtered labels
    """
    labels = np.asarray(labels)
    if labels.min(initial=0) < 0:
        raise ValueError("Labels must be non-negative integers")
    return remove_small_objects(labels, min_size=min_area)
