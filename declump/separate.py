"""Iterative separation of clumped objects.

Continuous pixel regions of a binary mask that satisfy morphological criteria (size and shape)
are considered clumps of touching objects and are separated along lines of low intensity in a
paired grayscale image connecting two concave regions of their outline. Only one fragment is
cut off a clump per cutting pass, so objects made of more than two touching parts need several
passes.

Based on the "IdentifyPrimaryIterative" CellProfiler module described in Stoeger T, Battich N,
Herrmann MD, Yakimovich Y, Pelkmans L. Computer vision for image-based transcriptomics.
Methods. 2015.

Authors:
    - The DECLUMP development team
"""

import logging
import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Literal

import numpy as np

from declump.config import PlotConfig, Thresholds
from declump.segmentation.cut import cut_clumps
from declump.segmentation.perimeter import ObjectPerimeter, analyse_perimeter
from declump.segmentation.select import select_clumps
from declump.segmentation.util import (
    fill_holes,
    label_mask,
    open_mask,
    remove_small_labels,
    smoothing_disk,
)

logger = logging.getLogger("declump")


class ConfigurationError(ValueError):
    """Invalid combination of run options."""


class RunError(RuntimeError):
    """A processing step failed during a cutting pass.

    :param pass_index: 1-based index of the failing pass
    :param stage: Name of the failing step
    """

    def __init__(self, pass_index: int, stage: str, message: str = ""):
        self.pass_index = pass_index
        self.stage = stage
        super().__init__(f"Cutting pass {pass_index} failed in {stage}: {message}")


def _frozen(a: np.ndarray) -> np.ndarray:
    a = np.array(a, copy=True)
    a.setflags(write=False)
    return a


@dataclass(frozen=True)
class PassRecord:
    """Intermediate results of one cutting pass.

    :param index: 1-based pass index
    :param working_mask: Mask the pass started from
    :param selected_clumps: Regions of `working_mask` selected as clumps
    :param non_clumps: Regions of `working_mask` not selected as clumps
    :param clumps: Smoothed and relabeled clumps that were analysed
    :param perimeters: Perimeter analysis of `clumps`
    :param cut_mask: Cut lines
    :param separated_clumps: `clumps` with the cut lines removed
    """

    index: int
    working_mask: np.ndarray
    selected_clumps: np.ndarray
    non_clumps: np.ndarray
    clumps: np.ndarray
    perimeters: tuple[ObjectPerimeter, ...]
    cut_mask: np.ndarray
    separated_clumps: np.ndarray

    def __post_init__(self):
        for name in (
            "working_mask",
            "selected_clumps",
            "non_clumps",
            "clumps",
            "cut_mask",
            "separated_clumps",
        ):
            object.__setattr__(self, name, _frozen(getattr(self, name)))
        object.__setattr__(self, "perimeters", tuple(self.perimeters))


@dataclass(frozen=True)
class Separated:
    """Result of a completed run.

    :param output_mask: Mask with clumps separated
    :param history: One record per cutting pass
    :param figure: Diagnostic figure, None if plotting is disabled
    """

    output_mask: np.ndarray
    history: tuple[PassRecord, ...]
    figure: object = None
    halted = False


@dataclass(frozen=True)
class CalibrationHalt:
    """Result of a run in a test mode. The host pipeline should stop and report the run as
    stopped for calibration, not as failed.

    :param mode: Either `selection` or `perimeter`
    :param history: One record per cutting pass
    :param output_mask: Mask with clumps separated
    :param figure: Diagnostic figure for the last cutting pass
    """

    mode: Literal["selection", "perimeter"]
    history: tuple[PassRecord, ...]
    output_mask: np.ndarray
    figure: object = None
    halted = True

    @property
    def message(self) -> str:
        return f"Pipeline stopped because clump separation ran in {self.mode} test mode."


def _validate(
    input_mask: np.ndarray,
    input_image: np.ndarray,
    selection_test_mode: bool,
    perimeter_test_mode: bool,
    plot: bool,
) -> None:
    if selection_test_mode and perimeter_test_mode:
        raise ConfigurationError("Only one test mode can be active at a time.")
    if (selection_test_mode or perimeter_test_mode) and not plot:
        raise ConfigurationError("Plotting needs to be activated for test mode to work.")
    if not isinstance(input_mask, np.ndarray) or input_mask.dtype != bool:
        raise TypeError('Argument "input_mask" must have type bool.')
    if not isinstance(input_image, np.ndarray) or not np.issubdtype(
        input_image.dtype, np.integer
    ):
        raise TypeError('Argument "input_image" must have type integer.')
    if input_mask.ndim != 2 or input_mask.shape != input_image.shape:
        raise ValueError(
            f"Mask shape {input_mask.shape} and image shape {input_image.shape} must be "
            "equal and 2-d"
        )


def _call(pass_index: int, stage: str, func: Callable, *args):
    try:
        return func(*args)
    except Exception as e:
        raise RunError(pass_index, stage, str(e)) from e


def _run_pass(
    pass_index: int,
    working_mask: np.ndarray,
    image: np.ndarray,
    thresholds: Thresholds,
    min_angle: float,
    footprint: np.ndarray,
    classifier: Callable,
    perimeter_analyzer: Callable,
    separator: Callable,
    small_object_filter: Callable,
) -> PassRecord:
    """Run a single cutting pass.

    :param pass_index: 1-based pass index
    :param working_mask: Mask to separate
    :param image: Rescaled intensity image
    :param thresholds: Thresholds
    :param min_angle: Minimal angle in radians
    :param footprint: Smoothing structuring element
    :return: The pass record
    """
    # classify pixel regions, only clumps are processed further
    selected, non_clumps = _call(
        pass_index,
        "clump selection",
        classifier,
        working_mask,
        thresholds.max_solidity,
        thresholds.min_formfactor,
        thresholds.min_area,
        thresholds.max_area,
    )
    selected = np.asarray(selected, dtype=bool)
    non_clumps = np.asarray(non_clumps, dtype=bool)

    # raw outlines are too noisy for the perimeter analysis
    # opening can enclose background pixels
    clumps = label_mask(fill_holes(open_mask(selected, footprint)))
    # smoothing occasionally splits off small pieces
    clumps = _call(
        pass_index,
        "small object removal",
        small_object_filter,
        clumps,
        thresholds.min_area,
    )
    clumps = label_mask(clumps > 0)

    perimeters = _call(
        pass_index,
        "perimeter analysis",
        perimeter_analyzer,
        clumps,
        thresholds.sliding_window_size,
    )
    cut_mask = _call(
        pass_index,
        "clump separation",
        separator,
        clumps,
        image,
        perimeters,
        thresholds.max_radius,
        min_angle,
        thresholds.min_cut_area,
        thresholds.max_num_regions,
    )
    cut_mask = np.asarray(cut_mask, dtype=bool)
    separated = np.where(cut_mask, 0, clumps)
    n_cut = np.count_nonzero(np.unique(clumps[cut_mask]))
    logger.info(f"Pass {pass_index}: {clumps.max()} clump(s), {n_cut} cut(s)")
    return PassRecord(
        index=pass_index,
        working_mask=working_mask,
        selected_clumps=selected,
        non_clumps=non_clumps,
        clumps=clumps,
        perimeters=perimeters,
        cut_mask=cut_mask,
        separated_clumps=separated,
    )


def combine_passes(
    history: Sequence[PassRecord], footprint: np.ndarray, input_mask: np.ndarray
) -> np.ndarray:
    """Combine the masks of all cutting passes.

    Regions that were never selected as clumps keep their shape. They are merged with the
    clumps separated in the last pass and the outlines are smoothed once more. Without any
    pass the input mask is only smoothed.

    Objects that become smaller than the area thresholds while being cut are dropped.

    :param history: Pass records in pass order
    :param footprint: Smoothing structuring element
    :param input_mask: Hole-filled input mask
    :return: The output mask
    """
    if len(history) == 0:
        return open_mask(input_mask, footprint)
    all_not_cut = np.logical_or.reduce([r.non_clumps for r in history])
    output_mask = (history[-1].separated_clumps > 0) | all_not_cut
    return open_mask(output_mask, footprint)


def separate_clumps(
    input_mask: np.ndarray,
    input_image: np.ndarray,
    thresholds: Thresholds | None = None,
    *,
    selection_test_mode: bool = False,
    perimeter_test_mode: bool = False,
    plot: bool = False,
    plot_config: PlotConfig | None = None,
    classifier: Callable = select_clumps,
    perimeter_analyzer: Callable = analyse_perimeter,
    separator: Callable = cut_clumps,
    small_object_filter: Callable = remove_small_labels,
    diagnostics: Callable | None = None,
) -> Separated | CalibrationHalt:
    """Separate clumped objects in a binary mask.

    :param input_mask: Binary mask in which clumps should be separated
    :param input_image: Integer grayscale image used to find optimal cut lines
    :param thresholds: Thresholds. Defaults are used if not provided.
    :param selection_test_mode: Whether selected clumps should be plotted in order to
        empirically determine `max_solidity`, `min_formfactor`, `min_area` and `max_area`.
        Results are shown for the last cutting pass and the run halts afterwards.
    :param perimeter_test_mode: Whether the perimeter analysis should be plotted in order to
        empirically determine `min_angle` and `max_radius`. Results are shown for the last
        cutting pass and the run halts afterwards.
    :param plot: Whether a figure should be generated
    :param plot_config: Layout of the figure
    :param classifier: Splits a mask into clumps and non-clumps
    :param perimeter_analyzer: Describes the perimeter of labeled clumps
    :param separator: Computes the cut lines
    :param small_object_filter: Removes small labels
    :param diagnostics: Builds the figure. Defaults to
        :func:`~declump.visualize.separation.create_figure`.
    :return: :class:`Separated` or, in a test mode, :class:`CalibrationHalt`
    """
    _validate(input_mask, input_image, selection_test_mode, perimeter_test_mode, plot)
    if thresholds is None:
        thresholds = Thresholds()
    mode = None
    if selection_test_mode:
        mode = "selection"
    elif perimeter_test_mode:
        mode = "perimeter"

    if not input_mask.any():
        logger.info("Input mask is empty, nothing to separate")
        output_mask = np.zeros(input_mask.shape, dtype=bool)
        if mode is not None:
            return CalibrationHalt(mode=mode, history=(), output_mask=output_mask)
        return Separated(output_mask=output_mask, history=())

    mask = fill_holes(input_mask)
    image = input_image.astype(np.float64)
    min_angle = math.radians(thresholds.min_angle)
    footprint = smoothing_disk(thresholds.filter_size)
    logger.info(f"Separating clumps in {thresholds.cutting_passes} cutting pass(es)")

    history = []
    for i in range(1, thresholds.cutting_passes + 1):
        working_mask = mask if i == 1 else history[-1].separated_clumps > 0
        history.append(
            _run_pass(
                i,
                working_mask,
                image,
                thresholds,
                min_angle,
                footprint,
                classifier,
                perimeter_analyzer,
                separator,
                small_object_filter,
            )
        )
    history = tuple(history)
    output_mask = combine_passes(history, footprint, mask)

    figure = None
    if plot:
        if diagnostics is None:
            from declump.visualize.separation import create_figure

            diagnostics = create_figure
        figure = diagnostics(
            history,
            output_mask,
            input_image,
            mode=mode,
            thresholds=thresholds,
            plot_config=plot_config or PlotConfig(),
        )

    if mode is not None:
        logger.info(f"Stopped for calibration in {mode} test mode")
        return CalibrationHalt(
            mode=mode, history=history, output_mask=output_mask, figure=figure
        )
    return Separated(output_mask=output_mask, history=history, figure=figure)
