"""
Core Base Classes

Provides the slice data structure, the abstract loader interface and
the cancellation token shared by the reconstruction pipeline.
"""

from dataclasses import dataclass, field
from abc import ABC, abstractmethod
from typing import List, Optional, Tuple
import threading
import numpy as np

from config import THROUGH_PLANE_AXIS
from .errors import OperationCancelled


@dataclass(frozen=True, eq=False)
class Slice:
    """
    One 2D cross-section with the header fields needed for reconstruction.

    This is the single record passed between the Loader, the Resolver
    and the Assembler. Pixel buffers may be attached here or supplied
    later by a decoder keyed by ``slice_id``.

    Attributes:
        slice_id: Opaque identifier (e.g. file path) assigned by the loader
        rows: Row count declared by the header, None if absent
        columns: Column count declared by the header, None if absent
        position: (x, y, z) patient position of the first pixel, None if absent
        pixel_spacing: (row, column) spacing in mm
        thickness: Declared slice thickness in mm, None if absent
        rescale_slope: Slope of the raw -> physical unit transform
        rescale_intercept: Intercept of the raw -> physical unit transform
        pixels: Raw stored pixel values (row-major), None if not yet decoded
    """
    slice_id: str
    rows: Optional[int] = None
    columns: Optional[int] = None
    position: Optional[Tuple[float, float, float]] = None
    pixel_spacing: Tuple[float, float] = (1.0, 1.0)
    thickness: Optional[float] = None
    rescale_slope: float = 1.0
    rescale_intercept: float = 0.0
    pixels: Optional[np.ndarray] = field(default=None, repr=False)

    @property
    def z(self) -> float:
        """Through-plane coordinate used for ordering (0.0 if position is missing)."""
        if self.position is None:
            return 0.0
        return self.position[THROUGH_PLANE_AXIS]

    @property
    def shape(self) -> Optional[Tuple[int, int]]:
        """Declared (rows, columns) if both are known."""
        if self.rows is None or self.columns is None:
            return None
        return (self.rows, self.columns)

    def to_physical(self, raw) -> np.ndarray:
        """Apply the rescale transform to raw stored values."""
        return np.asarray(raw, dtype=np.float64) * self.rescale_slope + self.rescale_intercept


class CancellationToken:
    """
    Cooperative cancellation flag checked between per-slice steps.

    Thread-safe: ``cancel()`` may be called from any thread while a
    pass is running in another.
    """

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise OperationCancelled("Operation cancelled")


def check_cancelled(token: Optional[CancellationToken]) -> None:
    """Raise OperationCancelled if an optional token has been tripped."""
    if token is not None:
        token.raise_if_cancelled()


class BaseLoader(ABC):
    """Abstract base class for slice series loaders."""

    @abstractmethod
    def load(self, source: str) -> List[Slice]:
        """
        Load slice headers from a source.

        Args:
            source: Path or URI to the series

        Returns:
            Unordered list of Slice records
        """
        pass

    @abstractmethod
    def load_pixels(self, slc: Slice) -> np.ndarray:
        """
        Decode the pixel buffer for one slice.

        Args:
            slc: Slice previously returned by ``load``

        Returns:
            Raw stored pixel values
        """
        pass

    def can_load(self, source: str) -> bool:
        """
        Check if this loader can handle the given source.

        Args:
            source: Path or URI to check

        Returns:
            True if this loader can handle the source
        """
        return True
