"""Separation of clumps along cut lines.

A cut line connects two concave regions of an object perimeter and follows the path of lowest
intensity through the object, so that touching objects are separated along the dim seam between
them.

Authors:
    - The DECLUMP development team
"""

import logging

import numpy as np
import scipy.ndimage as ndi
from skimage.graph import MCP
from skimage.measure import regionprops

from declump.segmentation.perimeter import ConcaveRegion, ObjectPerimeter, concave_regions
from declump.segmentation.util import label_mask

logger = logging.getLogger("declump")


def _cost_surface(image: np.ndarray) -> np.ndarray:
    """Costs between 1 and 2, increasing with intensity."""
    image = np.asarray(image, dtype=float)
    ptp = np.ptp(image) if image.size > 0 else 0
    if ptp > 0:
        return 1 + (image - image.min()) / ptp
    return np.ones(image.shape)


def _select_regions(
    perimeter: ObjectPerimeter,
    max_radius: float,
    min_angle: float,
    max_num_regions: int,
) -> list[ConcaveRegion]:
    regions = [
        r
        for r in concave_regions(perimeter)
        if r.equivalent_angle >= min_angle and r.equivalent_radius <= max_radius
    ]
    regions = sorted(regions, key=lambda r: r.equivalent_angle, reverse=True)
    return regions[:max_num_regions]


def _region_pixels(
    region: ConcaveRegion, offset: tuple[int, int], nearest: np.ndarray
) -> np.ndarray:
    """Snap region points to the closest object pixels of the crop."""
    shape = nearest.shape[1:]
    rows = np.clip(np.rint(region.y - offset[0]).astype(int), 0, shape[0] - 1)
    cols = np.clip(np.rint(region.x - offset[1]).astype(int), 0, shape[1] - 1)
    pixels = np.stack([nearest[0][rows, cols], nearest[1][rows, cols]], axis=1)
    return np.unique(pixels, axis=0)


def _apply_cut(obj: np.ndarray, cut: np.ndarray, min_cut_area: float) -> np.ndarray | None:
    """Validate a cut. Fragments below `min_cut_area` are added to the cut."""
    fragments = label_mask(obj & ~cut)
    areas = np.bincount(fragments.ravel())[1:]
    if np.count_nonzero(areas >= min_cut_area) < 2:
        return None
    small = np.flatnonzero(areas < min_cut_area) + 1
    return cut | np.isin(fragments, small)


def _cut_object(
    obj: np.ndarray,
    costs: np.ndarray,
    pixels: list[np.ndarray],
    min_cut_area: float,
) -> np.ndarray | None:
    """Find the cheapest valid cut between any two concave regions of one object.

    :param obj: Object mask (cropped)
    :param costs: Cost surface (cropped), impassable outside of the object
    :param pixels: Object pixels of each concave region
    :param min_cut_area: Minimal fragment area
    :return: Cut mask (cropped) or None
    """
    best_cost = np.inf
    best_cut = None
    for i in range(len(pixels) - 1):
        mcp = MCP(costs, fully_connected=False)
        cumulative_costs, _ = mcp.find_costs([tuple(p) for p in pixels[i]])
        for end in pixels[i + 1 :]:
            end_costs = cumulative_costs[end[:, 0], end[:, 1]]
            k = int(np.argmin(end_costs))
            if end_costs[k] >= best_cost:
                continue
            path = np.asarray(mcp.traceback(tuple(end[k])))
            cut = np.zeros(obj.shape, dtype=bool)
            cut[path[:, 0], path[:, 1]] = True
            cut = _apply_cut(obj, cut & obj, min_cut_area)
            if cut is not None:
                best_cost = end_costs[k]
                best_cut = cut
    return best_cut


def cut_clumps(
    labels: np.ndarray,
    image: np.ndarray,
    perimeters: list[ObjectPerimeter],
    max_radius: float,
    min_angle: float,
    min_cut_area: float,
    max_num_regions: int,
) -> np.ndarray:
    """Find one cut line per clump.

    Concave regions with an equivalent angle of at least `min_angle` and an equivalent radius
    of at most `max_radius` are candidate end points. For every pair of candidates the path of
    minimal cumulative intensity between them is computed, and the cheapest path that splits the
    object into at least two fragments of `min_cut_area` pixels is kept.

    :param labels: Clump labels. Objects must not contain holes.
    :param image: Intensity image used to place the cut lines
    :param perimeters: Perimeters of the labeled objects
    :param max_radius: Maximal equivalent radius of a concave region
    :param min_angle: Minimal equivalent angle of a concave region, in radians
    :param min_cut_area: Minimal area of a fragment
    :param max_num_regions: Maximal number of concave regions examined per object
    :return: Cut line mask
    """
    if labels.shape != image.shape:
        raise ValueError(f"Image shape {image.shape} != label shape {labels.shape}")
    cut_mask = np.zeros(labels.shape, dtype=bool)
    by_label = {p.label: p for p in perimeters}
    costs = _cost_surface(image)
    for region in regionprops(labels):
        perimeter = by_label.get(region.label)
        if perimeter is None:
            continue
        regions = _select_regions(perimeter, max_radius, min_angle, max_num_regions)
        if len(regions) < 2:
            logger.debug(
                f"Object {region.label}: {len(regions)} concave region(s), not cut"
            )
            continue
        min_row, min_col, max_row, max_col = region.bbox
        sl = (
            slice(max(min_row - 1, 0), min(max_row + 1, labels.shape[0])),
            slice(max(min_col - 1, 0), min(max_col + 1, labels.shape[1])),
        )
        obj = labels[sl] == region.label
        obj_costs = costs[sl].copy()
        # a single outside pixel costs more than any path inside the object
        obj_costs[~obj] = obj_costs[obj].sum() + 1
        _, nearest = ndi.distance_transform_edt(~obj, return_indices=True)
        offset = (sl[0].start, sl[1].start)
        pixels = [_region_pixels(r, offset, nearest) for r in regions]
        cut = _cut_object(obj, obj_costs, pixels, min_cut_area)
        if cut is None:
            logger.debug(f"Object {region.label}: no valid cut")
            continue
        cut_mask[sl] |= cut
    return cut_mask
