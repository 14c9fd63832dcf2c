"""
Segmentation Session

Centralized state for one reconstructed series and its label planes.
Engine calls receive their context (geometry, plane store, threshold)
explicitly; the session only owns that context and emits change signals.
"""

import logging
from dataclasses import replace
from typing import Optional

from PySide6.QtCore import QObject, Signal

from config import DEFAULT_BRUSH, DEFAULT_GEOMETRY, DEFAULT_LOADER, BrushConfig, GeometryConfig, LoaderConfig
from core.base import Slice
from core.errors import BrushError
from loaders.dicom_loader import DicomSeriesLoader
from reconstruction.assembler import VolumeAssembler
from reconstruction.geometry import resolve_geometry
from reconstruction.volume import MaskVolume, ReconstructedVolume
from segmentation.brush import ERASE_SEGMENT, BrushResult, get_brush
from segmentation.consolidator import consolidate_mask
from segmentation.label_planes import LabelPlaneStore


class SegmentationSession(QObject):
    """
    Manages the reconstruction and segmentation state.

    Provides a centralized location for:
    - The reconstructed volume and its geometry
    - Per-slice label planes
    - The brush strategy and its settings
    - The last consolidated mask
    - State change notifications via signals
    """

    # Signals
    volume_changed = Signal(object)  # Emits ReconstructedVolume or None
    mask_changed = Signal(object)  # Emits MaskVolume or None
    status_message = Signal(str)  # Per-operation counters for a status bar

    def __init__(
        self,
        brush_config: BrushConfig = DEFAULT_BRUSH,
        geometry_config: GeometryConfig = DEFAULT_GEOMETRY,
        loader_config: LoaderConfig = DEFAULT_LOADER,
        parent=None
    ):
        super().__init__(parent)

        self.brush_config = replace(brush_config)
        self.geometry_config = geometry_config
        self.loader_config = loader_config
        self._brush = get_brush(brush_config.threshold_gating)

        self._volume: Optional[ReconstructedVolume] = None
        self._mask: Optional[MaskVolume] = None
        self._planes = LabelPlaneStore()

    @property
    def volume(self) -> Optional[ReconstructedVolume]:
        """Current reconstructed volume."""
        return self._volume

    @property
    def mask(self) -> Optional[MaskVolume]:
        """Last consolidated mask."""
        return self._mask

    @property
    def planes(self) -> LabelPlaneStore:
        """Label planes of the current volume."""
        return self._planes

    @property
    def has_volume(self) -> bool:
        """Whether a volume is loaded."""
        return self._volume is not None

    @property
    def threshold(self) -> float:
        return self.brush_config.threshold

    @threshold.setter
    def threshold(self, value: float) -> None:
        self.brush_config.threshold = float(value)

    @property
    def brush_name(self) -> str:
        return self._brush.name

    def _report(self, message: str) -> None:
        logging.info(message)
        self.status_message.emit(message)

    def load_directory(self, folder: str) -> ReconstructedVolume:
        """
        Load, resolve and assemble a DICOM series from a directory.

        Raises:
            VolumeBuildError: If no valid volume data could be built
        """
        loader = DicomSeriesLoader(max_workers=self.loader_config.max_workers)
        slices = loader.load(folder)
        series = resolve_geometry(slices, self.geometry_config)
        volume = VolumeAssembler(self.loader_config).assemble(series, loader.load_pixels)
        self.set_volume(volume)
        return volume

    def set_volume(self, volume: Optional[ReconstructedVolume]) -> None:
        """
        Set the current volume, discarding labels painted on the previous one.

        Args:
            volume: ReconstructedVolume instance or None to clear
        """
        self._volume = volume
        self._planes.clear_all()
        self._mask = None
        self.volume_changed.emit(volume)
        self.mask_changed.emit(None)
        if volume is not None:
            message = f"Volume loaded: {volume.loaded_count} slices"
            if volume.skipped_count:
                message += f" ({volume.skipped_count} skipped)"
            self._report(message)

    def _source_slice(self, slice_index: int) -> Slice:
        """Slice backing a stroke or probe; skipped slices have no image."""
        if self._volume is None:
            raise BrushError("No source image: no volume loaded")
        if not 0 <= slice_index < self._volume.num_slices:
            raise BrushError(f"No source image: slice {slice_index} out of range")
        if slice_index in self._volume.skipped_indices:
            raise BrushError(f"No source image: slice {slice_index} was skipped during assembly")
        return self._volume.slices[slice_index]

    def _stroke(self, slice_index: int, row: float, column: float, segment_id: int) -> BrushResult:
        slc = self._source_slice(slice_index)
        result = self._brush.apply(
            self._planes,
            slice_index,
            center=(row, column),
            radius=self.brush_config.radius,
            pixels=self._volume.data[slice_index],
            slope=slc.rescale_slope,
            intercept=slc.rescale_intercept,
            segment_id=segment_id,
            threshold=self.brush_config.threshold,
        )
        verb = "Erased" if segment_id == ERASE_SEGMENT else "Painted"
        self._report(f"{verb} {result.modified} pixels on slice {slice_index}")
        return result

    def paint(self, slice_index: int, row: float, column: float) -> BrushResult:
        """Paint the configured segment at (row, column) of one slice."""
        return self._stroke(slice_index, row, column, self.brush_config.segment_id)

    def erase(self, slice_index: int, row: float, column: float) -> BrushResult:
        """Erase labels inside the brush disk, ignoring the threshold."""
        return self._stroke(slice_index, row, column, ERASE_SEGMENT)

    def pick_threshold(self, slice_index: int, row: int, column: int) -> float:
        """
        Set the brush threshold from the value under a pixel.

        The probed value is clamped to the configured threshold range.

        Returns:
            The new threshold
        """
        self._source_slice(slice_index)
        rows, columns = self._volume.geometry.slice_shape
        if not (0 <= row < rows and 0 <= column < columns):
            raise BrushError(f"Pixel ({row}, {column}) is outside slice {slice_index}")
        hu = self._volume.hu_at(slice_index, row, column)
        clamped = max(self.brush_config.threshold_min, min(self.brush_config.threshold_max, hu))
        self.threshold = clamped
        self._report(f"HU selected: {hu:.1f}, threshold set to {clamped:.1f}")
        return clamped

    def consolidate_mask(self) -> MaskVolume:
        """
        Rebuild the 3D mask from the current label planes.

        Callers must finish all strokes intended for this mask first.
        """
        if self._volume is None:
            raise BrushError("No source image: no volume loaded")
        mask = consolidate_mask(self._volume.slices, self._planes, self._volume.geometry)
        self._mask = mask
        self.mask_changed.emit(mask)
        self._report(f"Mask updated: {mask.labeled_voxels} voxels labeled")
        return mask

    def clear_labels(self) -> None:
        """Drop every label plane and the consolidated mask."""
        self._planes.clear_all()
        self._mask = None
        self.mask_changed.emit(None)
        logging.info("Labels cleared")

    def clear(self) -> None:
        """Clear all data."""
        self._volume = None
        self._planes.clear_all()
        self._mask = None
        self.volume_changed.emit(None)
        self.mask_changed.emit(None)
        logging.info("Data cleared")
