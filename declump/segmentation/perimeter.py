"""Perimeter analysis of labeled objects.

The outer boundary of each object is traced and described point by point by its curvature and
by whether it bends inwards (concave) or outwards (convex). Contiguous stretches of concave
boundary are candidate end points of cut lines.

Authors:
    - The DECLUMP development team
"""

from dataclasses import dataclass

import numpy as np
import scipy.ndimage as ndi
from skimage.measure import find_contours, regionprops

from declump.segmentation.util import has_holes

CONCAVE = -1
STRAIGHT = 0
CONVEX = 1


@dataclass(frozen=True)
class ObjectPerimeter:
    """Ordered boundary of one object.

    All arrays have one entry per boundary point.

    :param label: Label of the object
    :param y: Row coordinate (sub-pixel) of the boundary point
    :param x: Column coordinate (sub-pixel) of the boundary point
    :param curvature: Turning angle per boundary step, in radians
    :param concavity: -1 if the boundary bends inwards, 1 if it bends outwards, 0 if straight
    :param region: Id of the run of equal concavity the point belongs to
    """

    label: int
    y: np.ndarray
    x: np.ndarray
    curvature: np.ndarray
    concavity: np.ndarray
    region: np.ndarray

    def __len__(self) -> int:
        return len(self.y)


@dataclass(frozen=True)
class ConcaveRegion:
    """Summary of a concave stretch of boundary.

    :param region: Region id within the object perimeter
    :param y: Row coordinates of the region points
    :param x: Column coordinates of the region points
    :param equivalent_angle: Total turning angle of the region, in radians
    :param equivalent_radius: Radius of the circle with the same mean curvature
    """

    region: int
    y: np.ndarray
    x: np.ndarray
    equivalent_angle: float
    equivalent_radius: float


def _circular_runs(values: np.ndarray) -> np.ndarray:
    """Number the runs of equal values in a circular sequence."""
    n = len(values)
    starts = np.flatnonzero(values != np.roll(values, 1))
    if len(starts) == 0:
        return np.zeros(n, dtype=int)
    runs = np.searchsorted(starts, np.arange(n), side="right") - 1
    # points before the first change belong to the run that wraps around
    runs[runs < 0] = len(starts) - 1
    return runs


def _trace_boundary(image: np.ndarray) -> np.ndarray | None:
    contours = find_contours(image.astype(float), 0.5)
    if len(contours) == 0:
        return None
    contour = max(contours, key=len)
    if np.allclose(contour[0], contour[-1]):
        contour = contour[:-1]
    return contour


def _describe_boundary(
    contour: np.ndarray, image: np.ndarray, window: int
) -> tuple[np.ndarray, np.ndarray]:
    n = len(contour)
    idx = np.arange(n)
    prev = contour[(idx - window) % n]
    nxt = contour[(idx + window) % n]
    a = prev - contour
    b = nxt - contour
    norm = np.linalg.norm(a, axis=1) * np.linalg.norm(b, axis=1)
    with np.errstate(divide="ignore", invalid="ignore"):
        cos = np.where(norm > 0, np.sum(a * b, axis=1) / norm, -1.0)
    turning = np.pi - np.arccos(np.clip(cos, -1, 1))
    curvature = turning / (2 * window)

    midpoints = (prev + nxt) / 2
    inside = ndi.map_coordinates(image.astype(float), midpoints.T, order=1, mode="constant")
    concavity = np.full(n, STRAIGHT, dtype=np.int8)
    concavity[inside > 0.5 + 1e-6] = CONVEX
    concavity[inside < 0.5 - 1e-6] = CONCAVE
    return curvature, concavity


def analyse_perimeter(labels: np.ndarray, window_size: int) -> list[ObjectPerimeter]:
    """Describe the outer boundary of each labeled object.

    For each boundary point the neighbours `window_size` steps before and after it along the
    boundary are used to compute the turning angle at the point and to decide whether the
    boundary is concave there (the midpoint between the neighbours lies outside the object).

    :param labels: An array of labels, which must be non-negative integers. Objects must not
        contain holes.
    :param window_size: Size of the sliding window along the boundary.
    :return: One perimeter per object, in ascending label order
    """
    if has_holes(labels):
        raise ValueError("Perimeter analysis cannot handle objects with holes")
    offset = max(int(window_size), 1)
    perimeters = []
    for region in regionprops(labels):
        image = np.pad(region.image, 1)
        contour = _trace_boundary(image)
        if contour is None or len(contour) < 3:
            continue
        window = min(offset, (len(contour) - 1) // 2)
        curvature, concavity = _describe_boundary(contour, image, window)
        min_row, min_col = region.bbox[:2]
        perimeters.append(
            ObjectPerimeter(
                label=region.label,
                y=contour[:, 0] + min_row - 1,
                x=contour[:, 1] + min_col - 1,
                curvature=curvature,
                concavity=concavity,
                region=_circular_runs(concavity),
            )
        )
    return perimeters


def concave_regions(perimeter: ObjectPerimeter) -> list[ConcaveRegion]:
    """Summarize the concave regions of an object perimeter.

    :param perimeter: Perimeter of one object
    :return: Concave regions ordered by region id
    """
    regions = []
    for region_id in np.unique(perimeter.region[perimeter.concavity == CONCAVE]):
        sel = perimeter.region == region_id
        angle = float(perimeter.curvature[sel].sum())
        radius = sel.sum() / angle if angle > 0 else np.inf
        regions.append(
            ConcaveRegion(
                region=int(region_id),
                y=perimeter.y[sel],
                x=perimeter.x[sel],
                equivalent_angle=angle,
                equivalent_radius=float(radius),
            )
        )
    return regions
