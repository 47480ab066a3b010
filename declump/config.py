"""Parameters for clump separation.

Holds the immutable thresholds bound for a single run, the layout options of the
diagnostic figures and a loader for parameter files that follow the module
parameter schema of the host pipeline.

Authors:
    - The DECLUMP development team
"""

import json
from dataclasses import dataclass, fields
from typing import Any

import fsspec

_RUN_OPTIONS = ("selection_test_mode", "perimeter_test_mode", "plot")

# schema name -> field name
_ALIASES = {"min_radius": "max_radius"}


@dataclass(frozen=True)
class Thresholds:
    """Thresholds used by the cutting passes.

    :param cutting_passes: Number of cutting rounds. Only one fragment is cut off a clump
        per round.
    :param min_cut_area: Minimal area of a cut fragment. Cuts that would result in a smaller
        fragment are not performed.
    :param max_solidity: Maximal solidity for a pixel region to be considered a clump.
    :param min_formfactor: Minimal irregularity (``1 - form factor``) for a pixel region to be
        considered a clump.
    :param min_area: Minimal area for a pixel region to be considered a clump. Also used to
        discard fragments created by smoothing.
    :param max_area: Maximal area for a pixel region to be considered a clump.
    :param filter_size: Radius of the disk used to smooth clumps prior to perimeter analysis.
    :param sliding_window_size: Size of the sliding window used for perimeter analysis.
    :param min_angle: Minimal equivalent angle of a concave region, in degrees.
    :param max_radius: Maximal radius of the circle fitting into a concave region. The
        parameter schema calls this ``min_radius``.
    :param max_num_regions: Maximal number of concave regions examined per clump. Bounds the
        runtime of the cut search on very irregular objects.
    """

    cutting_passes: int = 2
    min_cut_area: float = 2000
    max_solidity: float = 0.92
    min_formfactor: float = 0.30
    min_area: float = 5000
    max_area: float = 50000
    filter_size: int = 2
    sliding_window_size: int = 9
    min_angle: float = 6
    max_radius: float = 30
    max_num_regions: int = 30

    def __post_init__(self):
        if int(self.cutting_passes) != self.cutting_passes or self.cutting_passes < 0:
            raise ValueError(
                f"cutting_passes must be a non-negative integer, got {self.cutting_passes}"
            )
        if self.max_num_regions < 2:
            raise ValueError("max_num_regions must be >= 2")

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> "Thresholds":
        """Create thresholds from a dictionary of parameter values.

        :param d: Mapping of parameter names to values. ``min_radius`` is accepted for
            ``max_radius``.
        :return: The thresholds
        """
        names = {f.name for f in fields(cls)}
        kwargs = {}
        for key, value in d.items():
            key = _ALIASES.get(key, key)
            if key not in names:
                raise ValueError(f"Unknown parameter: {key}")
            kwargs[key] = value
        return cls(**kwargs)


@dataclass(frozen=True)
class PlotConfig:
    """Layout of the diagnostic figures.

    :param figsize: Figure size in inches.
    :param dpi: Figure resolution.
    :param resize_factor: Downsampling factor applied to the cut line overview.
    :param cut_dilation_radius: Radius used to thicken cut lines so they are visible
        after downsampling.
    :param quantiles: Lower and upper quantile used to clip the intensity image.
    """

    figsize: tuple[float, float] = (10, 10)
    dpi: int = 100
    resize_factor: int = 4
    cut_dilation_radius: int = 12
    quantiles: tuple[float, float] = (0.001, 0.999)


def load_json(path_or_str: str) -> dict:
    """Load a JSON file into a dictionary for inline JSON or URL.

    :param path_or_str: JSON file URL or inline JSON.
    :return: The dictionary loaded from JSON.
    """
    fs, _ = fsspec.url_to_fs(path_or_str)
    if fs.exists(path_or_str):
        with fs.open(path_or_str, "rt") as fp:
            return json.load(fp)
    return json.loads(path_or_str)


def load_parameters(path_or_str: str) -> tuple[Thresholds, dict[str, bool]]:
    """Load run parameters.

    :param path_or_str: JSON file URL or inline JSON with parameter names as keys.
    :return: Thresholds and run options (``selection_test_mode``, ``perimeter_test_mode``
        and ``plot``).

    :example:

    .. code-block:: python

        from declump.config import load_parameters

        thresholds, options = load_parameters('{"cutting_passes": 3, "plot": true}')
    """
    params = load_json(path_or_str)
    options = {key: bool(params.pop(key, False)) for key in _RUN_OPTIONS}
    return Thresholds.from_dict(params), options
