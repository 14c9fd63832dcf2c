import numpy as np
import pytest

from core.errors import BrushError
from segmentation.brush import PlainBrush, ThresholdBrush, disk_offsets, get_brush
from segmentation.label_planes import LabelPlaneStore


@pytest.fixture
def store():
    return LabelPlaneStore()


def _neighborhood_image():
    """9x9 image at -1000 HU with a 3x3 block around (4, 4)."""
    image = np.full((9, 9), -1000, dtype=np.int16)
    image[3:6, 3:6] = np.array([
        [150, 210, 220],
        [205, 300, 190],
        [180, 250, 260],
    ])
    return image


def test_get_brush_selects_strategy_once():
    assert isinstance(get_brush(True), ThresholdBrush)
    assert isinstance(get_brush(False), PlainBrush)


def test_disk_offsets_radius_one_is_a_cross():
    di, dj = disk_offsets(1)
    assert sorted(zip(di.tolist(), dj.tolist())) == [(-1, 0), (0, -1), (0, 0), (0, 1), (1, 0)]
    assert len(disk_offsets(0)[0]) == 1
    assert len(disk_offsets(3)[0]) == 29


def test_threshold_gates_the_3x3_neighborhood(store):
    image = _neighborhood_image()
    result = ThresholdBrush().apply(
        store, 0, center=(4, 4), radius=3, pixels=image,
        segment_id=1, threshold=200,
    )

    # 210, 220, 205, 300, 250, 260
    assert result.modified == 6
    plane = store.get(0)
    expected = (image >= 200).astype(np.uint8)
    np.testing.assert_array_equal(plane, expected)
    assert plane[3, 3] == 0  # 150
    assert plane[5, 3] == 0  # 180


def test_rescale_is_applied_before_gating(store):
    image = np.full((5, 5), 1300, dtype=np.int16)
    brush = ThresholdBrush()

    # 1300 - 1024 = 276 HU
    assert brush.apply(store, 0, (2, 2), 1, image, slope=1.0, intercept=-1024.0, threshold=300).modified == 0
    assert brush.apply(store, 0, (2, 2), 1, image, slope=1.0, intercept=-1024.0, threshold=276).modified == 5


def test_below_threshold_paints_nothing_but_creates_plane(store):
    image = np.zeros((6, 6), dtype=np.int16)
    result = ThresholdBrush().apply(store, 2, (3, 3), 2, image, threshold=1)
    assert result.modified == 0
    assert store.labeled_pixels(2) == 0


def test_raising_threshold_never_increases_count():
    rng = np.random.default_rng(7)
    image = rng.integers(-500, 1500, size=(32, 32)).astype(np.int16)
    counts = []
    for threshold in range(-600, 1600, 100):
        result = ThresholdBrush().apply(LabelPlaneStore(), 0, (16, 16), 6, image, threshold=threshold)
        counts.append(result.modified)
    assert counts == sorted(counts, reverse=True)
    assert counts[0] == len(disk_offsets(6)[0])
    assert counts[-1] == 0


def test_corner_brush_stays_in_bounds(store):
    image = np.full((10, 10), 500, dtype=np.int16)
    result = ThresholdBrush().apply(store, 0, (0, 0), 3, image, threshold=0)

    di, dj = disk_offsets(3)
    quadrant = int(np.count_nonzero((di >= 0) & (dj >= 0)))
    assert result.modified == quadrant
    assert store.labeled_pixels(0) == quadrant
    assert store.get(0).shape == (10, 10)


def test_bottom_right_corner_with_fractional_center(store):
    image = np.full((4, 4), 500, dtype=np.int16)
    result = PlainBrush().apply(store, 0, (3.9, 3.2), 1, image)
    # floor -> (3, 3): itself, up, left
    assert result.modified == 3
    assert store.get(0)[3, 3] == 1


def test_center_outside_plane_is_a_noop(store):
    image = np.full((4, 4), 500, dtype=np.int16)
    for center in [(-1, 2), (2, 4), (4, 0), (-0.5, -0.5)]:
        assert ThresholdBrush().apply(store, 0, center, 5, image).modified == 0
    assert 0 not in store


def test_erase_ignores_threshold(store):
    image = _neighborhood_image()
    brush = ThresholdBrush()
    PlainBrush().apply(store, 0, (4, 4), 1, image, segment_id=1)
    assert store.labeled_pixels(0) == 5

    result = brush.apply(store, 0, (4, 4), 1, image, segment_id=0, threshold=10_000)
    assert result.modified == 5
    assert store.labeled_pixels(0) == 0


def test_repainting_counts_only_changed_pixels(store):
    image = np.full((8, 8), 400, dtype=np.int16)
    brush = ThresholdBrush()
    first = brush.apply(store, 0, (4, 4), 2, image, threshold=0)
    second = brush.apply(store, 0, (4, 4), 2, image, threshold=0)
    relabel = brush.apply(store, 0, (4, 4), 2, image, segment_id=2, threshold=0)

    assert first.modified == 13
    assert second.modified == 0
    assert relabel.modified == 13


def test_flat_buffer_requires_shape(store):
    flat = np.full(16, 500, dtype=np.int16)
    with pytest.raises(BrushError):
        ThresholdBrush().apply(store, 0, (1, 1), 1, flat)
    assert ThresholdBrush().apply(store, 0, (1, 1), 1, flat, shape=(4, 4)).modified == 5


def test_missing_source_image_is_an_error(store):
    with pytest.raises(BrushError):
        ThresholdBrush().apply(store, 0, (1, 1), 1, None)
    with pytest.raises(BrushError):
        ThresholdBrush().apply(store, 0, (1, 1), 1, np.zeros(10), shape=(4, 4))
    assert len(store) == 0


def test_plane_shape_mismatch_does_not_partially_apply(store):
    store.get_or_create(0, (3, 3))
    with pytest.raises(BrushError):
        PlainBrush().apply(store, 0, (1, 1), 1, np.zeros((4, 4)))
    assert store.labeled_pixels(0) == 0


def test_invalid_arguments(store):
    image = np.zeros((4, 4))
    with pytest.raises(ValueError):
        PlainBrush().apply(store, 0, (1, 1), -1, image)
    with pytest.raises(ValueError):
        PlainBrush().apply(store, 0, (1, 1), 1, image, segment_id=256)


def test_planes_are_independent_per_slice(store):
    image = np.full((5, 5), 500, dtype=np.int16)
    PlainBrush().apply(store, 0, (2, 2), 1, image)
    PlainBrush().apply(store, 3, (0, 0), 0, image)
    assert store.labeled_pixels(0) == 5
    assert store.labeled_pixels(3) == 1
    assert list(store) == [0, 3]
