"""
Core Package

Contains the slice data structure, loader interface, cancellation
token and error types shared by the reconstruction pipeline.

The session and background workers live in ``core.session`` and
``core.workers`` and are imported from there directly.
"""

from .base import (
    Slice,
    BaseLoader,
    CancellationToken,
    check_cancelled,
)
from .errors import (
    ReconstructionError,
    VolumeBuildError,
    BrushError,
    OperationCancelled,
)

__all__ = [
    'Slice',
    'BaseLoader',
    'CancellationToken',
    'check_cancelled',
    'ReconstructionError',
    'VolumeBuildError',
    'BrushError',
    'OperationCancelled',
]
