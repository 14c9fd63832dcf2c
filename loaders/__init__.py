"""
Loaders Package

Contains slice header extraction and series loading strategies.
"""

from .metadata import (
    SliceMetadata,
    extract_metadata,
    build_slice,
)
from .dicom_loader import DicomSeriesLoader, HAS_PYDICOM

__all__ = [
    'SliceMetadata',
    'extract_metadata',
    'build_slice',
    'DicomSeriesLoader',
    'HAS_PYDICOM',
]
