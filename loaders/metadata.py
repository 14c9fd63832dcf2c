"""
Slice Metadata Extractor

Reads position, spacing, thickness and rescale parameters from one
slice header. Works on anything exposing ``.get(keyword)``: a pydicom
Dataset or a plain dict of header fields. Missing or malformed fields
are defaulted and reported, never raised.
"""

from dataclasses import dataclass
from typing import Any, Optional, Sequence, Tuple
import math
import numpy as np

from core.base import Slice


# DICOM attribute keywords consumed by the extractor
POSITION_TAG = "ImagePositionPatient"  # (0020,0032)
PIXEL_SPACING_TAG = "PixelSpacing"  # (0028,0030)
THICKNESS_TAG = "SliceThickness"  # (0018,0050)
SLOPE_TAG = "RescaleSlope"  # (0028,1053)
INTERCEPT_TAG = "RescaleIntercept"  # (0028,1052)
ROWS_TAG = "Rows"  # (0028,0010)
COLUMNS_TAG = "Columns"  # (0028,0011)

DEFAULT_PIXEL_SPACING = (1.0, 1.0)
DEFAULT_RESCALE = (1.0, 0.0)


@dataclass(frozen=True)
class SliceMetadata:
    """Geometry and rescale fields for one slice, with defaults applied."""
    position: Optional[Tuple[float, float, float]]
    pixel_spacing: Tuple[float, float]
    thickness: Optional[float]
    rescale_slope: float
    rescale_intercept: float
    rows: Optional[int] = None
    columns: Optional[int] = None
    missing: Tuple[str, ...] = ()  # Names of fields that fell back to defaults

    @property
    def rescale(self) -> Tuple[float, float]:
        return (self.rescale_slope, self.rescale_intercept)


def _parse_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(result):
        return None
    return result


def _split_values(value: Any) -> Optional[Sequence]:
    """Split a backslash-delimited string or pass a sequence through."""
    if value is None:
        return None
    if isinstance(value, bytes):
        value = value.decode("ascii", errors="replace")
    if isinstance(value, str):
        return [part.strip() for part in value.split("\\")]
    try:
        return list(value)
    except TypeError:
        return None


def parse_multi_float(value: Any, count: int) -> Optional[Tuple[float, ...]]:
    """
    Parse exactly ``count`` finite floats from a delimited value.

    Partial or malformed values return None as a whole, so that a bad
    component never leaves the other axes half-applied.
    """
    parts = _split_values(value)
    if parts is None or len(parts) != count:
        return None
    parsed = [_parse_float(p) for p in parts]
    if any(p is None for p in parsed):
        return None
    return tuple(parsed)


def _parse_dimension(value: Any) -> Optional[int]:
    number = _parse_float(value)
    if number is None or number <= 0 or number != int(number):
        return None
    return int(number)


def extract_metadata(header) -> SliceMetadata:
    """
    Extract slice geometry and rescale parameters from a header.

    Args:
        header: Tag lookup exposing ``.get(keyword)`` (pydicom Dataset or dict)

    Returns:
        SliceMetadata with defaults applied; ``missing`` names every
        field that was absent or malformed
    """
    missing = []

    position = parse_multi_float(header.get(POSITION_TAG), 3)
    if position is None:
        missing.append("position")

    pixel_spacing = parse_multi_float(header.get(PIXEL_SPACING_TAG), 2)
    if pixel_spacing is None or min(pixel_spacing) <= 0:
        pixel_spacing = DEFAULT_PIXEL_SPACING
        missing.append("pixel_spacing")

    thickness = _parse_float(header.get(THICKNESS_TAG))
    if thickness is None or thickness <= 0:
        thickness = None
        missing.append("thickness")

    slope = _parse_float(header.get(SLOPE_TAG))
    intercept = _parse_float(header.get(INTERCEPT_TAG))
    if slope is None or intercept is None:
        missing.append("rescale")
    if slope is None:
        slope = DEFAULT_RESCALE[0]
    if intercept is None:
        intercept = DEFAULT_RESCALE[1]

    rows = _parse_dimension(header.get(ROWS_TAG))
    columns = _parse_dimension(header.get(COLUMNS_TAG))
    if rows is None or columns is None:
        missing.append("dimensions")

    return SliceMetadata(
        position=position,
        pixel_spacing=pixel_spacing,
        thickness=thickness,
        rescale_slope=slope,
        rescale_intercept=intercept,
        rows=rows,
        columns=columns,
        missing=tuple(missing),
    )


def build_slice(header, slice_id: str, pixels: Optional[np.ndarray] = None) -> Slice:
    """Build a Slice record from a header and an optional decoded buffer."""
    meta = extract_metadata(header)
    return Slice(
        slice_id=slice_id,
        rows=meta.rows,
        columns=meta.columns,
        position=meta.position,
        pixel_spacing=meta.pixel_spacing,
        thickness=meta.thickness,
        rescale_slope=meta.rescale_slope,
        rescale_intercept=meta.rescale_intercept,
        pixels=pixels,
    )
