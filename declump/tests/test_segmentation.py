import math

import numpy as np
import pytest
from skimage.measure import label

from declump.segmentation.cut import _apply_cut, _select_regions, cut_clumps
from declump.segmentation.perimeter import (
    CONCAVE,
    _circular_runs,
    analyse_perimeter,
    concave_regions,
)
from declump.segmentation.select import calculate_selection_features, select_clumps
from declump.segmentation.util import (
    has_holes,
    open_mask,
    remove_small_labels,
    smoothing_disk,
)


def _qualifying(perimeter, thresholds):
    return _select_regions(
        perimeter,
        thresholds.max_radius,
        math.radians(thresholds.min_angle),
        thresholds.max_num_regions,
    )


@pytest.mark.segmentation
def test_remove_small_labels():
    labels = np.zeros((10, 10), dtype=np.int32)
    labels[0:2, 0:2] = 3
    labels[5:9, 5:9] = 7
    filtered = remove_small_labels(labels, 5)
    assert set(np.unique(filtered)) == {0, 7}
    assert (filtered == 7).sum() == 16
    assert labels[0, 0] == 3, "input must not be modified"
    np.testing.assert_array_equal(remove_small_labels(labels, 4), labels)
    assert filtered.dtype == labels.dtype


@pytest.mark.segmentation
def test_remove_small_labels_negative():
    labels = np.zeros((5, 5), dtype=np.int32)
    labels[0, 0] = -1
    with pytest.raises(ValueError, match="non-negative"):
        remove_small_labels(labels, 2)


@pytest.mark.segmentation
def test_smoothing_disk_clamped():
    assert smoothing_disk(0).shape == (3, 3)
    assert smoothing_disk(-4).shape == (3, 3)
    assert smoothing_disk(2).shape == (5, 5)
    assert smoothing_disk(2).dtype == bool


@pytest.mark.segmentation
def test_open_mask_removes_thin_parts(disk_factory):
    mask = disk_factory((60, 60), (30, 30), 15)
    mask[30, 45:58] = True
    opened = open_mask(mask, smoothing_disk(2))
    assert not np.any(opened & ~mask)
    assert not opened[30, 55]
    assert opened[30, 30]


@pytest.mark.segmentation
def test_select_clumps(scene, thresholds):
    mask, _ = scene
    clumps, non_clumps = select_clumps(
        mask,
        thresholds.max_solidity,
        thresholds.min_formfactor,
        thresholds.min_area,
        thresholds.max_area,
    )
    assert not np.any(clumps & non_clumps)
    np.testing.assert_array_equal(clumps | non_clumps, mask)
    # dumbbell left, round object right
    assert clumps[100, 60] and clumps[100, 150]
    assert non_clumps[100, 265]


@pytest.mark.segmentation
def test_select_clumps_area_range(dumbbell, thresholds):
    mask, _ = dumbbell
    clumps, non_clumps = select_clumps(
        mask, thresholds.max_solidity, thresholds.min_formfactor, 100, 1000
    )
    assert not clumps.any()
    np.testing.assert_array_equal(non_clumps, mask)


@pytest.mark.segmentation
def test_select_clumps_empty():
    mask = np.zeros((20, 20), dtype=bool)
    clumps, non_clumps = select_clumps(mask, 0.9, 0.3, 1, 100)
    assert not clumps.any() and not non_clumps.any()


@pytest.mark.segmentation
def test_calculate_selection_features(scene):
    mask, _ = scene
    features = calculate_selection_features(label(mask, connectivity=2))
    assert list(features.columns) == ["label", "area", "solidity", "form_factor"]
    assert len(features) == 2
    # the dumbbell is the larger object
    disk, dumbbell = features.sort_values("area").itertuples(index=False)
    assert dumbbell.solidity < 0.9 < disk.solidity
    assert dumbbell.form_factor > 0.3 > disk.form_factor


@pytest.mark.segmentation
def test_circular_runs():
    runs = _circular_runs(np.array([1, 1, -1, -1, 1]))
    assert runs[0] == runs[1] == runs[4]
    assert runs[2] == runs[3] != runs[0]
    np.testing.assert_array_equal(_circular_runs(np.ones(4)), np.zeros(4))


@pytest.mark.segmentation
def test_analyse_perimeter_disk(disk_factory, thresholds):
    labels = disk_factory((100, 100), (50, 50), 40).astype(np.int32) * 4
    (perimeter,) = analyse_perimeter(labels, thresholds.sliding_window_size)
    assert perimeter.label == 4
    assert len(perimeter) > 200
    assert np.all(perimeter.curvature >= 0)
    assert np.all(np.abs(perimeter.y - 50) <= 41)
    # the boundary of a disk bends outwards
    assert np.mean(perimeter.concavity == 1) > 0.8
    assert _qualifying(perimeter, thresholds) == []


@pytest.mark.segmentation
def test_analyse_perimeter_dumbbell(dumbbell, thresholds):
    mask, _ = dumbbell
    (perimeter,) = analyse_perimeter(label(mask), thresholds.sliding_window_size)
    regions = _qualifying(perimeter, thresholds)
    assert len(regions) >= 2
    for region in regions:
        # concave regions are at the neck
        assert np.all((region.x > 90) & (region.x < 120))
    rows = np.concatenate([r.y for r in regions])
    assert rows.min() < 95 and rows.max() > 105
    assert all(
        r.equivalent_radius == pytest.approx(len(r.y) / r.equivalent_angle)
        for r in concave_regions(perimeter)
    )
    assert all(
        np.all(perimeter.concavity[perimeter.region == r.region] == CONCAVE)
        for r in concave_regions(perimeter)
    )


@pytest.mark.segmentation
def test_analyse_perimeter_holes(disk_factory):
    labels = disk_factory((60, 60), (30, 30), 20).astype(np.int32)
    labels[28:32, 28:32] = 0
    assert has_holes(labels)
    with pytest.raises(ValueError, match="holes"):
        analyse_perimeter(labels, 9)


@pytest.mark.segmentation
def test_analyse_perimeter_empty():
    assert analyse_perimeter(np.zeros((10, 10), dtype=np.int32), 9) == []


@pytest.mark.segmentation
def test_cut_clumps_dumbbell(dumbbell, thresholds):
    mask, image = dumbbell
    labels = label(mask)
    perimeters = analyse_perimeter(labels, thresholds.sliding_window_size)
    cut = cut_clumps(
        labels,
        image.astype(float),
        perimeters,
        thresholds.max_radius,
        math.radians(thresholds.min_angle),
        thresholds.min_cut_area,
        thresholds.max_num_regions,
    )
    assert cut.dtype == bool
    assert not np.any(cut & ~mask)
    fragments = label(mask & ~cut, connectivity=2)
    assert fragments.max() == 2
    assert np.all(np.bincount(fragments.ravel())[1:] >= thresholds.min_cut_area)
    # the cut follows the dim seam
    assert np.all(image[cut] == 200)


@pytest.mark.segmentation
def test_cut_clumps_min_cut_area(dumbbell, thresholds):
    mask, image = dumbbell
    labels = label(mask)
    perimeters = analyse_perimeter(labels, thresholds.sliding_window_size)
    cut = cut_clumps(
        labels,
        image.astype(float),
        perimeters,
        thresholds.max_radius,
        math.radians(thresholds.min_angle),
        mask.sum() // 2 + 1,
        thresholds.max_num_regions,
    )
    assert not cut.any()


@pytest.mark.segmentation
def test_cut_clumps_without_perimeters(dumbbell):
    mask, image = dumbbell
    cut = cut_clumps(label(mask), image, [], 30, 0.1, 2000, 30)
    assert not cut.any()
    with pytest.raises(ValueError, match="shape"):
        cut_clumps(label(mask), image[1:], [], 30, 0.1, 2000, 30)


@pytest.mark.segmentation
def test_select_regions_limit(dumbbell, thresholds):
    mask, _ = dumbbell
    (perimeter,) = analyse_perimeter(label(mask), thresholds.sliding_window_size)
    regions = _select_regions(perimeter, thresholds.max_radius, 0, 1000)
    limited = _select_regions(perimeter, thresholds.max_radius, 0, 2)
    assert len(limited) == 2
    assert [r.equivalent_angle for r in limited] == [
        r.equivalent_angle for r in regions[:2]
    ]


@pytest.mark.segmentation
def test_apply_cut_folds_small_fragments():
    obj = np.ones((10, 21), dtype=bool)
    cut = np.zeros_like(obj)
    cut[:, 10] = True
    cut[0, 1] = cut[1, 0] = cut[1, 1] = True
    result = _apply_cut(obj, cut, 20)
    assert result is not None
    # the pixel isolated at (0, 0) is added to the cut
    assert result[0, 0] and result[1, 1] and not result[5, 5]
    assert label(obj & ~result, connectivity=2).max() == 2
    assert _apply_cut(obj, cut, 200) is None
