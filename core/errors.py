"""
Error Types

Terminal failure conditions for reconstruction and segmentation operations.
Recoverable conditions (missing metadata, degenerate spacing, mismatched
slices) are defaulted and logged instead of raised.
"""


class ReconstructionError(Exception):
    """Base class for all terminal operation failures."""


class VolumeBuildError(ReconstructionError):
    """Raised when no valid volume data could be assembled."""


class BrushError(ReconstructionError):
    """Raised when a brush stroke has no usable source image."""


class OperationCancelled(ReconstructionError):
    """Raised when a cancellation token is tripped between per-slice steps."""
