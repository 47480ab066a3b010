import json

import pytest

from declump.config import PlotConfig, Thresholds, load_parameters


@pytest.mark.config
def test_defaults():
    thresholds = Thresholds()
    assert thresholds.cutting_passes == 2
    assert thresholds.min_cut_area == 2000
    assert thresholds.max_solidity == 0.92
    assert thresholds.min_formfactor == 0.30
    assert (thresholds.min_area, thresholds.max_area) == (5000, 50000)
    assert thresholds.filter_size == 2
    assert thresholds.sliding_window_size == 9
    assert thresholds.min_angle == 6
    assert thresholds.max_radius == 30
    assert thresholds.max_num_regions == 30
    assert PlotConfig().resize_factor == 4


@pytest.mark.config
def test_thresholds_are_frozen():
    with pytest.raises(AttributeError):
        Thresholds().min_area = 1


@pytest.mark.config
def test_from_dict_alias():
    thresholds = Thresholds.from_dict({"min_radius": 12, "cutting_passes": 4})
    assert thresholds.max_radius == 12
    assert thresholds.cutting_passes == 4
    assert thresholds.min_area == 5000


@pytest.mark.config
def test_from_dict_unknown_key():
    with pytest.raises(ValueError, match="Unknown parameter: max_holes"):
        Thresholds.from_dict({"max_holes": 1})


@pytest.mark.config
@pytest.mark.parametrize("passes", [-1, 1.5])
def test_invalid_cutting_passes(passes):
    with pytest.raises(ValueError, match="cutting_passes"):
        Thresholds(cutting_passes=passes)


@pytest.mark.config
def test_invalid_max_num_regions():
    with pytest.raises(ValueError, match="max_num_regions"):
        Thresholds(max_num_regions=1)


@pytest.mark.config
def test_load_parameters_inline():
    thresholds, options = load_parameters(
        '{"cutting_passes": 3, "min_radius": 20, "plot": true}'
    )
    assert thresholds == Thresholds(cutting_passes=3, max_radius=20)
    assert options == {
        "selection_test_mode": False,
        "perimeter_test_mode": False,
        "plot": True,
    }


@pytest.mark.config
def test_load_parameters_file(tmp_path):
    path = tmp_path / "declump.json"
    path.write_text(
        json.dumps({"min_area": 100, "max_area": 900, "perimeter_test_mode": True})
    )
    thresholds, options = load_parameters(str(path))
    assert (thresholds.min_area, thresholds.max_area) == (100, 900)
    assert options["perimeter_test_mode"]
    assert not options["selection_test_mode"]
