import numpy as np
import pytest

pytest.importorskip("PySide6")

from config import BrushConfig
from core.errors import BrushError
from core.session import SegmentationSession
from reconstruction.assembler import VolumeAssembler
from reconstruction.geometry import resolve_geometry


@pytest.fixture
def volume(make_slice):
    slices = []
    for z in (0.0, 1.0, 2.0):
        pixels = np.full((8, 8), 1024, dtype=np.int16)
        pixels[:, 4:] = 1524  # 500 HU on the right half
        slices.append(make_slice(z, rows=8, columns=8, pixels=pixels.ravel(), intercept=-1024.0))
    return VolumeAssembler().assemble(resolve_geometry(slices))


@pytest.fixture
def session(qt_app, volume):
    s = SegmentationSession(BrushConfig(threshold=200.0, radius=2))
    s.set_volume(volume)
    return s


def test_set_volume_emits_signals(qt_app, volume):
    session = SegmentationSession()
    volumes, masks, messages = [], [], []
    session.volume_changed.connect(volumes.append)
    session.mask_changed.connect(masks.append)
    session.status_message.connect(messages.append)

    session.set_volume(volume)

    assert volumes == [volume]
    assert masks == [None]
    assert messages == ["Volume loaded: 3 slices"]
    assert session.has_volume


def test_paint_is_gated_and_consolidates(session):
    result = session.paint(1, 4, 4)
    # Radius 2 disk covers 13 pixels; columns 2 and 3 are 0 HU
    assert result.modified == 9
    assert session.brush_name == "ThresholdBrush"

    mask = session.consolidate_mask()
    assert mask.labeled_voxels == 9
    assert int(mask.data[1].sum()) == 9
    assert session.mask is mask


def test_erase_ignores_threshold(session):
    session.paint(0, 4, 5)
    session.threshold = 10_000
    result = session.erase(0, 4, 5)
    assert result.modified > 0
    assert session.consolidate_mask().labeled_voxels == 0


def test_plain_brush_configuration(qt_app, volume):
    session = SegmentationSession(BrushConfig(radius=1, threshold_gating=False))
    session.set_volume(volume)
    assert session.brush_name == "Brush"
    assert session.paint(0, 4, 1).modified == 5


def test_status_messages_report_counters(session):
    messages = []
    session.status_message.connect(messages.append)
    session.paint(2, 4, 6)
    session.consolidate_mask()
    assert messages[0].startswith("Painted")
    assert messages[1].startswith("Mask updated")


def test_pick_threshold_is_clamped(session):
    assert session.pick_threshold(0, 0, 6) == 500.0
    assert session.threshold == 500.0
    # 0 HU is below the pickable range
    assert session.pick_threshold(0, 0, 0) == 100.0


def test_new_volume_resets_labels(session, volume):
    session.paint(1, 4, 4)
    session.consolidate_mask()
    session.set_volume(volume)
    assert len(session.planes) == 0
    assert session.mask is None


def test_brushing_without_volume_fails(qt_app):
    session = SegmentationSession()
    with pytest.raises(BrushError):
        session.paint(0, 1, 1)
    with pytest.raises(BrushError):
        session.consolidate_mask()


def test_out_of_range_slice_fails(session):
    with pytest.raises(BrushError):
        session.paint(3, 1, 1)


def test_clear(session):
    cleared = []
    session.volume_changed.connect(cleared.append)
    session.paint(0, 4, 4)
    session.clear()
    assert cleared == [None]
    assert not session.has_volume
    assert len(session.planes) == 0


def test_load_directory(qt_app, dicom_series):
    session = SegmentationSession()
    volume = session.load_directory(str(dicom_series))
    assert session.volume is volume
    assert volume.loaded_count == 3


def test_skipped_slice_has_no_source_image(qt_app, make_slice):
    slices = [
        make_slice(0.0, pixels=np.zeros(3, dtype=np.int16)),
        make_slice(1.0, pixels=np.full(16, 500, dtype=np.int16)),
        make_slice(2.0, pixels=np.full(16, 500, dtype=np.int16)),
    ]
    volume = VolumeAssembler().assemble(resolve_geometry(slices))
    assert volume.skipped_indices == [0]

    session = SegmentationSession(BrushConfig(radius=1, threshold_gating=False))
    session.set_volume(volume)

    with pytest.raises(BrushError):
        session.paint(0, 1, 1)
    with pytest.raises(BrushError):
        session.erase(0, 1, 1)
    with pytest.raises(BrushError):
        session.pick_threshold(0, 1, 1)
    assert 0 not in session.planes

    assert session.paint(1, 1, 1).modified == 5
    mask = session.consolidate_mask()
    assert mask.labeled_voxels == 5
    assert not mask.data[0].any()


def test_pick_threshold_rejects_out_of_range_pixels(session):
    session.threshold = 321.0
    for index in [(-1, 0, 0), (3, 0, 0), (0, 8, 0), (0, 0, -1)]:
        with pytest.raises(BrushError):
            session.pick_threshold(*index)
    assert session.threshold == 321.0
