"""
Mask Consolidator

Rebuilds a 3D binary mask from the per-slice label planes. Every call
is a full rebuild, so the result depends only on the current planes.
"""

from typing import Optional, Sequence, Union
import logging
import numpy as np

from core.base import CancellationToken, Slice, check_cancelled
from reconstruction.geometry import VolumeGeometry
from reconstruction.volume import MaskVolume
from .label_planes import LabelPlaneStore


def consolidate_mask(
    slices: Union[int, Sequence[Slice]],
    planes: LabelPlaneStore,
    geometry: VolumeGeometry,
    cancel_token: Optional[CancellationToken] = None
) -> MaskVolume:
    """
    Merge label planes into one mask congruent with the volume.

    A voxel is 1 if its slice's plane carries a non-zero segment id at
    that pixel, otherwise 0. Slices without a plane contribute zeros.

    Args:
        slices: Ordered slice sequence, or the slice count
        planes: Label planes keyed by ordered slice index
        geometry: Geometry of the reconstructed volume
        cancel_token: Optional token checked between slices

    Returns:
        MaskVolume with read-only uint8 data
    """
    num_slices = slices if isinstance(slices, int) else len(slices)
    if num_slices != geometry.num_slices:
        raise ValueError(
            f"Slice count {num_slices} does not match geometry "
            f"({geometry.num_slices} slices)"
        )

    mask = np.zeros(geometry.shape, dtype=np.uint8)

    for index in planes:
        check_cancelled(cancel_token)
        plane = planes.get(index)
        if not 0 <= index < num_slices:
            logging.warning(f"Ignoring label plane for out-of-range slice {index}")
            continue
        if plane.shape != geometry.slice_shape:
            logging.warning(
                f"Ignoring label plane for slice {index}: shape {plane.shape} "
                f"does not match {geometry.slice_shape}"
            )
            continue
        mask[index] = plane != 0

    mask.flags.writeable = False
    labeled_voxels = int(np.count_nonzero(mask))
    logging.info(f"Mask consolidated: {labeled_voxels} voxels labeled across {len(planes)} planes")
    return MaskVolume(data=mask, geometry=geometry, labeled_voxels=labeled_voxels)
