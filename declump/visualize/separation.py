"""Diagnostic figures for clump separation.

Figures are built with the object-oriented matplotlib API from the pass history only; layout is
taken from an explicit :class:`~declump.config.PlotConfig`.

Authors:
    - The DECLUMP development team
"""

from collections.abc import Sequence

import numpy as np
import scipy.ndimage as ndi
from centrosome.outline import outline
from matplotlib import colors
from matplotlib.figure import Figure
from skimage.color import label2rgb
from skimage.morphology import disk
from skimage.transform import resize
from skimage.util import map_array

from declump.config import PlotConfig, Thresholds
from declump.segmentation.perimeter import CONCAVE, CONVEX, concave_regions
from declump.segmentation.select import calculate_selection_features
from declump.segmentation.util import label_mask


def _new_figure(plot_config: PlotConfig) -> tuple[Figure, np.ndarray]:
    fig = Figure(figsize=plot_config.figsize, dpi=plot_config.dpi, constrained_layout=True)
    axes = fig.subplots(2, 2)
    for ax in axes.flat:
        ax.set_axis_off()
    return fig, axes


def _imshow_values(fig: Figure, ax, image: np.ndarray, title: str, cmap: str = "jet"):
    """Show an image of per-object values with a colorbar scaled to the non-zero values."""
    values = image[image > 0]
    vmin = values.min() if values.size > 0 else 0
    vmax = values.max() if values.size > 0 else 1
    masked = np.ma.masked_where(image <= 0, image)
    im = ax.imshow(masked, cmap=cmap, vmin=vmin, vmax=vmax, interpolation="nearest")
    ax.set_title(title)
    fig.colorbar(im, ax=ax, shrink=0.8)


def _clip_intensity(image: np.ndarray, quantiles: tuple[float, float]) -> np.ndarray:
    image = np.asarray(image, dtype=float)
    low, high = np.quantile(image, quantiles)
    if high <= low:
        return np.zeros(image.shape)
    return np.clip((image - low) / (high - low), 0, 1)


def cut_overview(history: Sequence, plot_config: PlotConfig) -> np.ndarray:
    """Downsampled map of selected clumps (1) and cut lines (2) over all passes.

    :param history: Pass records
    :param plot_config: Layout options
    :return: Downsampled overview image
    """
    selected = np.logical_or.reduce([r.selected_clumps for r in history])
    cuts = np.logical_or.reduce([r.cut_mask for r in history])
    if plot_config.cut_dilation_radius > 0:
        cuts = ndi.binary_dilation(cuts, structure=disk(plot_config.cut_dilation_radius))
    overview = selected.astype(np.uint8)
    overview[cuts] = 2
    factor = max(int(plot_config.resize_factor), 1)
    shape = tuple(max(s // factor, 1) for s in overview.shape)
    return resize(
        overview, shape, order=0, preserve_range=True, anti_aliasing=False
    ).astype(np.uint8)


def plot_separation(
    history: Sequence,
    output_mask: np.ndarray,
    image: np.ndarray,
    plot_config: PlotConfig | None = None,
) -> Figure:
    """Plot the result of a separation run.

    Upper left: outlines of the separated objects on the intensity image. Upper right: labeled
    output mask. Lower left: selected clumps and cut lines of all passes. Lower right: clumps
    selected in the first pass.

    :param history: Pass records
    :param output_mask: Output mask
    :param image: Intensity image
    :param plot_config: Layout options
    :return: The figure
    """
    plot_config = plot_config or PlotConfig()
    fig, axes = _new_figure(plot_config)
    labels = label_mask(output_mask)

    overlay = np.repeat(_clip_intensity(image, plot_config.quantiles)[..., None], 3, axis=2)
    overlay[outline(labels) > 0] = (1, 0, 0)
    axes[0, 0].imshow(overlay, interpolation="nearest")
    axes[0, 0].set_title("Outlines of separated mask")

    axes[0, 1].imshow(label2rgb(labels, bg_label=0), interpolation="nearest")
    axes[0, 1].set_title("Labeled separated mask")

    if len(history) > 0:
        cmap = colors.ListedColormap(["black", "white", "red"])
        axes[1, 0].imshow(
            cut_overview(history, plot_config),
            cmap=cmap,
            vmin=0,
            vmax=2,
            interpolation="nearest",
        )
        axes[1, 0].set_title("Cut lines on selected clumps")
        axes[1, 1].imshow(history[0].selected_clumps, cmap="gray", interpolation="nearest")
        axes[1, 1].set_title("Selected clumps in input mask")
    return fig


def plot_selection_features(
    history: Sequence,
    thresholds: Thresholds | None = None,
    plot_config: PlotConfig | None = None,
) -> Figure:
    """Plot the features used to select clumps in the last pass.

    :param history: Pass records
    :param thresholds: Thresholds shown in the titles
    :param plot_config: Layout options
    :return: The figure
    """
    thresholds = thresholds or Thresholds()
    plot_config = plot_config or PlotConfig()
    fig, axes = _new_figure(plot_config)
    if len(history) == 0:
        return fig
    record = history[-1]
    labels = label_mask(record.working_mask)
    features = calculate_selection_features(labels)
    in_vals = features["label"].to_numpy(copy=True)
    for ax, name, title in (
        (axes[0, 0], "solidity", f"Solidity (max {thresholds.max_solidity})"),
        (axes[0, 1], "form_factor", f"Form factor (min {thresholds.min_formfactor})"),
        (axes[1, 0], "area", f"Area ({thresholds.min_area} - {thresholds.max_area})"),
    ):
        out_vals = features[name].to_numpy(dtype=float, copy=True)
        image = map_array(labels, in_vals, out_vals) if len(in_vals) else np.zeros(labels.shape)
        _imshow_values(fig, ax, image, title)
    axes[1, 1].imshow(record.selected_clumps, cmap="jet", interpolation="nearest")
    axes[1, 1].set_title("Selected objects")
    return fig


def perimeter_images(history: Sequence) -> dict[str, np.ndarray]:
    """Rasterize the perimeter analysis of the last pass.

    :param history: Pass records
    :return: Images `curvature`, `concavity`, `angle` (degrees) and `radius`
    """
    shape = history[-1].working_mask.shape
    images = {
        name: np.zeros(shape) for name in ("curvature", "concavity", "angle", "radius")
    }
    for perimeter in history[-1].perimeters:
        rows = np.clip(np.rint(perimeter.y).astype(int), 0, shape[0] - 1)
        cols = np.clip(np.rint(perimeter.x).astype(int), 0, shape[1] - 1)
        images["curvature"][rows, cols] = perimeter.curvature
        images["concavity"][rows, cols] = perimeter.concavity
        for region in concave_regions(perimeter):
            r = np.clip(np.rint(region.y).astype(int), 0, shape[0] - 1)
            c = np.clip(np.rint(region.x).astype(int), 0, shape[1] - 1)
            images["angle"][r, c] = np.degrees(region.equivalent_angle)
            images["radius"][r, c] = region.equivalent_radius
    return images


def plot_perimeter_analysis(
    history: Sequence,
    thresholds: Thresholds | None = None,
    plot_config: PlotConfig | None = None,
) -> Figure:
    """Plot the perimeter analysis of the last pass.

    :param history: Pass records
    :param thresholds: Thresholds shown in the titles
    :param plot_config: Layout options
    :return: The figure
    """
    thresholds = thresholds or Thresholds()
    plot_config = plot_config or PlotConfig()
    fig, axes = _new_figure(plot_config)
    if len(history) == 0:
        return fig
    images = perimeter_images(history)
    _imshow_values(fig, axes[0, 0], images["curvature"], "Curvature")

    concavity = images["concavity"]
    rgb = np.stack(
        [concavity == CONVEX, concavity == CONCAVE, np.zeros(concavity.shape, dtype=bool)],
        axis=2,
    ).astype(float)
    axes[0, 1].imshow(rgb, interpolation="nearest")
    axes[0, 1].set_title("Convex (red) / concave (green)")

    _imshow_values(
        fig,
        axes[1, 0],
        images["angle"],
        f"Equivalent angle in degrees (min {thresholds.min_angle})",
    )
    radius = np.where(np.isfinite(images["radius"]), images["radius"], 0)
    _imshow_values(
        fig, axes[1, 1], radius, f"Equivalent radius (max {thresholds.max_radius})"
    )
    return fig


def create_figure(
    history: Sequence,
    output_mask: np.ndarray,
    image: np.ndarray,
    mode: str | None = None,
    thresholds: Thresholds | None = None,
    plot_config: PlotConfig | None = None,
) -> Figure:
    """Create the figure matching the run mode.

    :param history: Pass records
    :param output_mask: Output mask
    :param image: Intensity image
    :param mode: None, `selection` or `perimeter`
    :param thresholds: Thresholds of the run
    :param plot_config: Layout options
    :return: The figure
    """
    if mode == "selection":
        return plot_selection_features(history, thresholds, plot_config)
    if mode == "perimeter":
        return plot_perimeter_analysis(history, thresholds, plot_config)
    return plot_separation(history, output_mask, image, plot_config)
