from pathlib import Path

import numpy as np
import pytest

from core.base import Slice


@pytest.fixture
def make_slice():
    """Factory for in-memory slices stacked along z."""

    def _make(z=0.0, rows=4, columns=4, pixels=None, thickness=None,
              slope=1.0, intercept=0.0, spacing=(0.5, 0.5), slice_id=None,
              position=None):
        if pixels is None:
            pixels = np.zeros(rows * columns, dtype=np.int16)
        if position is None and z is not None:
            position = (0.0, 0.0, float(z))
        return Slice(
            slice_id=slice_id or f"slice-{z}",
            rows=rows,
            columns=columns,
            position=position,
            pixel_spacing=spacing,
            thickness=thickness,
            rescale_slope=slope,
            rescale_intercept=intercept,
            pixels=pixels,
        )

    return _make


def write_ct_slice(path: Path, pixels: np.ndarray, z: float, thickness=None,
                   slope=1.0, intercept=-1024.0, spacing=(0.7, 0.7)) -> Path:
    """Write one uncompressed single-frame CT slice with pydicom."""
    from pydicom.dataset import FileDataset, FileMetaDataset
    from pydicom.uid import CTImageStorage, ExplicitVRLittleEndian, generate_uid

    file_meta = FileMetaDataset()
    file_meta.MediaStorageSOPClassUID = CTImageStorage
    file_meta.MediaStorageSOPInstanceUID = generate_uid()
    file_meta.TransferSyntaxUID = ExplicitVRLittleEndian

    ds = FileDataset(str(path), {}, file_meta=file_meta, preamble=b"\x00" * 128)
    ds.SOPClassUID = CTImageStorage
    ds.SOPInstanceUID = file_meta.MediaStorageSOPInstanceUID
    ds.Modality = "CT"
    ds.ImagePositionPatient = [0.0, 0.0, float(z)]
    ds.ImageOrientationPatient = [1, 0, 0, 0, 1, 0]
    ds.PixelSpacing = list(spacing)
    if thickness is not None:
        ds.SliceThickness = thickness
    ds.RescaleSlope = slope
    ds.RescaleIntercept = intercept
    ds.SamplesPerPixel = 1
    ds.PhotometricInterpretation = "MONOCHROME2"
    ds.Rows, ds.Columns = pixels.shape
    ds.BitsAllocated = 16
    ds.BitsStored = 16
    ds.HighBit = 15
    ds.PixelRepresentation = 1
    ds.PixelData = pixels.astype(np.int16).tobytes()
    ds.save_as(path, enforce_file_format=True)
    return path


@pytest.fixture
def dicom_series(tmp_path):
    """Three 6x5 slices written out of order at z = 10, 0, 5."""
    pytest.importorskip("pydicom")
    folder = tmp_path / "series"
    folder.mkdir()
    for name, z in (("a.dcm", 10.0), ("b.dcm", 0.0), ("c.dcm", 5.0)):
        pixels = np.full((6, 5), int(z), dtype=np.int16)
        write_ct_slice(folder / name, pixels, z, thickness=5.0)
    return folder


@pytest.fixture
def ct_writer():
    pytest.importorskip("pydicom")
    return write_ct_slice


@pytest.fixture(scope="session")
def qt_app():
    QtCore = pytest.importorskip("PySide6.QtCore")
    app = QtCore.QCoreApplication.instance()
    if app is None:
        app = QtCore.QCoreApplication([])
    return app
