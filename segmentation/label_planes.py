"""
Label Plane Storage

Per-slice 2D segment-id planes keyed by slice index in the ordered
series. Planes are created lazily on first paint.
"""

from typing import Dict, Iterator, Optional, Tuple
import numpy as np


LABEL_DTYPE = np.uint8


class LabelPlaneStore:
    """
    Mapping of slice index -> uint8 label plane (rows, columns).

    A plane is mutated by one brush stroke at a time; strokes on
    different slices touch independent arrays.
    """

    def __init__(self):
        self._planes: Dict[int, np.ndarray] = {}

    def __len__(self) -> int:
        return len(self._planes)

    def __contains__(self, slice_index: int) -> bool:
        return slice_index in self._planes

    def __iter__(self) -> Iterator[int]:
        return iter(sorted(self._planes))

    def items(self) -> Iterator[Tuple[int, np.ndarray]]:
        for index in sorted(self._planes):
            yield index, self._planes[index]

    def get(self, slice_index: int) -> Optional[np.ndarray]:
        return self._planes.get(slice_index)

    def get_or_create(self, slice_index: int, shape: Tuple[int, int]) -> np.ndarray:
        """
        Return the plane for a slice, creating a zeroed one if absent.

        Raises:
            ValueError: If an existing plane has a different shape
        """
        plane = self._planes.get(slice_index)
        if plane is None:
            plane = np.zeros(shape, dtype=LABEL_DTYPE)
            self._planes[slice_index] = plane
        elif plane.shape != tuple(shape):
            raise ValueError(
                f"Label plane for slice {slice_index} has shape {plane.shape}, "
                f"expected {tuple(shape)}"
            )
        return plane

    def clear(self, slice_index: int) -> None:
        """Drop the plane of one slice (no-op if it was never painted)."""
        self._planes.pop(slice_index, None)

    def clear_all(self) -> None:
        self._planes.clear()

    def labeled_pixels(self, slice_index: int) -> int:
        """Number of non-zero labels on one slice."""
        plane = self._planes.get(slice_index)
        if plane is None:
            return 0
        return int(np.count_nonzero(plane))
