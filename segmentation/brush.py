"""
Threshold Brush Engine

Paints a circular brush stroke into one slice's label plane. The
gated brush only labels pixels whose rescaled value reaches the
threshold; erasing (segment id 0) is never gated.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Tuple
import logging
import math
import numpy as np

from core.errors import BrushError
from .label_planes import LABEL_DTYPE, LabelPlaneStore


ERASE_SEGMENT = 0


@dataclass(frozen=True)
class BrushResult:
    """Outcome of one brush stroke."""
    modified: int  # Pixels whose label value changed
    slice_index: int
    segment_id: int


def disk_offsets(radius: int) -> Tuple[np.ndarray, np.ndarray]:
    """
    Offsets (i, j) of the (2r+1)^2 square with i^2 + j^2 <= r^2.

    Returns:
        (row_offsets, column_offsets) as flat int arrays
    """
    if radius < 0:
        raise ValueError("radius must be non-negative")
    span = np.arange(-radius, radius + 1)
    di, dj = np.meshgrid(span, span, indexing="ij")
    inside = di * di + dj * dj <= radius * radius
    return di[inside], dj[inside]


def _source_image(pixels: Optional[np.ndarray], shape: Optional[Tuple[int, int]]) -> np.ndarray:
    """Validate the backing image and return it as a (rows, columns) array."""
    if pixels is None:
        raise BrushError("No source image: missing pixel buffer")
    image = np.asarray(pixels)

    if shape is None:
        if image.ndim != 2:
            raise BrushError("No source image: plane dimensions unknown")
        shape = image.shape
    rows, columns = shape
    if rows <= 0 or columns <= 0 or image.size != rows * columns:
        raise BrushError(
            f"No source image: buffer of {image.size} pixels does not match "
            f"plane {rows}x{columns}"
        )
    return image.reshape(rows, columns)


class Brush(ABC):
    """Abstract brush stroke applied to a LabelPlaneStore."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Brush name for logging."""
        pass

    @abstractmethod
    def select(
        self,
        raw: np.ndarray,
        slope: float,
        intercept: float,
        threshold: float,
        segment_id: int
    ) -> np.ndarray:
        """
        Choose which disk pixels receive the segment id.

        Args:
            raw: Raw stored values of the in-bounds disk pixels
            slope: Rescale slope
            intercept: Rescale intercept
            threshold: Minimum physical value to paint
            segment_id: Label being written

        Returns:
            Boolean array aligned with ``raw``
        """
        pass

    def apply(
        self,
        store: LabelPlaneStore,
        slice_index: int,
        center: Tuple[float, float],
        radius: int,
        pixels: Optional[np.ndarray],
        slope: float = 1.0,
        intercept: float = 0.0,
        segment_id: int = 1,
        threshold: float = 0.0,
        shape: Optional[Tuple[int, int]] = None
    ) -> BrushResult:
        """
        Paint one disk into the label plane of a slice.

        Args:
            store: Label planes keyed by slice index
            slice_index: Slice being painted
            center: (row, column) in plane pixel space
            radius: Brush radius in pixels
            pixels: Raw stored values of the slice (1D row-major or 2D)
            slope: Rescale slope of the slice
            intercept: Rescale intercept of the slice
            segment_id: Label to write (0 erases)
            threshold: Minimum physical value to paint
            shape: (rows, columns) when ``pixels`` is 1D

        Returns:
            BrushResult with the count of pixels whose label changed

        Raises:
            BrushError: If the source image or plane dimensions are missing
        """
        if not 0 <= segment_id <= np.iinfo(LABEL_DTYPE).max:
            raise ValueError(f"segment_id out of range: {segment_id}")
        image = _source_image(pixels, shape)
        rows, columns = image.shape
        di, dj = disk_offsets(radius)

        existing = store.get(slice_index)
        if existing is not None and existing.shape != image.shape:
            raise BrushError(
                f"No source image: label plane {existing.shape} does not match "
                f"image {image.shape}"
            )

        row, column = center
        if not (0 <= row < rows and 0 <= column < columns):
            return BrushResult(modified=0, slice_index=slice_index, segment_id=segment_id)

        rr = math.floor(row) + di
        cc = math.floor(column) + dj
        in_bounds = (rr >= 0) & (rr < rows) & (cc >= 0) & (cc < columns)
        rr = rr[in_bounds]
        cc = cc[in_bounds]

        selected = self.select(image[rr, cc], slope, intercept, threshold, segment_id)
        rr = rr[selected]
        cc = cc[selected]

        plane = store.get_or_create(slice_index, image.shape)
        changed = plane[rr, cc] != segment_id
        plane[rr[changed], cc[changed]] = segment_id
        modified = int(np.count_nonzero(changed))

        if modified > 0:
            logging.debug(f"{self.name}: painted {modified} pixels on slice {slice_index}")
        else:
            logging.debug(f"{self.name}: no pixels painted on slice {slice_index}")
        return BrushResult(modified=modified, slice_index=slice_index, segment_id=segment_id)


class ThresholdBrush(Brush):
    """Paints only pixels whose rescaled value is >= threshold."""

    @property
    def name(self) -> str:
        return "ThresholdBrush"

    def select(self, raw, slope, intercept, threshold, segment_id):
        if segment_id == ERASE_SEGMENT:
            return np.ones(raw.shape, dtype=bool)
        physical = raw.astype(np.float64) * slope + intercept
        return physical >= threshold


class PlainBrush(Brush):
    """Fills the whole disk regardless of pixel values."""

    @property
    def name(self) -> str:
        return "Brush"

    def select(self, raw, slope, intercept, threshold, segment_id):
        return np.ones(raw.shape, dtype=bool)


def get_brush(threshold_gating: bool = True) -> Brush:
    """
    Get the brush used for painting.

    Args:
        threshold_gating: Whether painting is gated by the HU threshold

    Returns:
        ThresholdBrush if gating is requested, else PlainBrush
    """
    if threshold_gating:
        return ThresholdBrush()
    return PlainBrush()
