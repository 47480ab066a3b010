import numpy as np
import pytest

from declump.config import Thresholds


def disk_mask(shape, center, radius):
    rr, cc = np.ogrid[: shape[0], : shape[1]]
    return (rr - center[0]) ** 2 + (cc - center[1]) ** 2 <= radius**2


def make_dumbbell(shape=(200, 210), offset=(0, 0)):
    """Two disks of radius 40 joined by a 17 pixel wide neck, with a dim seam at the neck."""
    r0, c0 = offset
    left = disk_mask(shape, (r0 + 100, c0 + 60), 40)
    right = disk_mask(shape, (r0 + 100, c0 + 150), 40)
    neck = np.zeros(shape, dtype=bool)
    neck[r0 + 92 : r0 + 109, c0 + 60 : c0 + 151] = True
    mask = left | right | neck
    image = np.zeros(shape, dtype=np.uint16)
    image[mask] = 200
    image[left | right] = 1000
    return mask, image


@pytest.fixture
def thresholds():
    return Thresholds()


@pytest.fixture
def dumbbell():
    return make_dumbbell()


@pytest.fixture
def single_disk():
    mask = disk_mask((150, 150), (75, 75), 45)
    image = np.zeros(mask.shape, dtype=np.uint16)
    image[mask] = 1000
    return mask, image


@pytest.fixture
def fail_collaborators():
    def fail(*args, **kwargs):
        raise AssertionError("collaborator must not be called")

    return dict(
        classifier=fail,
        perimeter_analyzer=fail,
        separator=fail,
        small_object_filter=fail,
        diagnostics=fail,
    )


@pytest.fixture
def disk_factory():
    return disk_mask


@pytest.fixture
def scene():
    """A dumbbell next to a round object."""
    shape = (200, 320)
    mask, image = make_dumbbell(shape)
    disk = disk_mask(shape, (100, 265), 42)
    image[disk] = 1000
    return mask | disk, image
