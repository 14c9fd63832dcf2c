"""
Volume Assembler

Streams per-slice pixel buffers into one dense slice-major volume.
Slices whose buffer does not match the resolved in-plane extent are
dropped and counted rather than failing the whole build.
"""

from collections import deque
from itertools import islice
from typing import Callable, Deque, Iterator, List, Optional, Tuple
import concurrent.futures
import logging
import os
import time
import numpy as np

from config import DEFAULT_LOADER, LoaderConfig
from core.base import CancellationToken, Slice, check_cancelled
from core.errors import VolumeBuildError
from .geometry import ResolvedSeries
from .volume import ReconstructedVolume


PixelSource = Callable[[Slice], np.ndarray]


def attached_pixels(slc: Slice) -> np.ndarray:
    """Default pixel source: the buffer already attached to the slice."""
    if slc.pixels is None:
        raise ValueError(f"Slice {slc.slice_id} has no pixel buffer")
    return slc.pixels


class VolumeAssembler:
    """
    Copies ordered slice buffers into a single volume buffer.

    Pixel buffers are fetched per slice, in parallel when
    ``max_workers`` allows it, and copied sequentially in order. At most
    two fetches per worker are held in memory at once.
    No rescale is applied: the buffer holds raw stored values.
    """

    def __init__(self, config: LoaderConfig = DEFAULT_LOADER):
        self.max_workers = config.max_workers
        self.dtype = np.dtype(config.volume_dtype)

    def _fetch(self, pixel_source: PixelSource, slc: Slice) -> Tuple[Optional[np.ndarray], str]:
        try:
            return np.asarray(pixel_source(slc)), ""
        except Exception as e:
            return None, str(e)

    def _out_of_range(self, pixels: np.ndarray) -> bool:
        if pixels.size == 0 or pixels.dtype == self.dtype:
            return False
        if not np.issubdtype(self.dtype, np.integer):
            return False
        limits = np.iinfo(self.dtype)
        return bool(pixels.max() > limits.max or pixels.min() < limits.min)

    def _iter_buffers(
        self,
        slices: List[Slice],
        pixel_source: PixelSource
    ) -> Iterator[Tuple[Optional[np.ndarray], str]]:
        if self.max_workers == 1 or len(slices) == 1:
            for slc in slices:
                yield self._fetch(pixel_source, slc)
            return

        workers = self.max_workers or min(32, (os.cpu_count() or 1) + 4)
        in_flight = workers * 2
        with concurrent.futures.ThreadPoolExecutor(max_workers=workers) as executor:
            remaining = iter(slices)
            pending: Deque[concurrent.futures.Future] = deque(
                executor.submit(self._fetch, pixel_source, slc)
                for slc in islice(remaining, in_flight)
            )
            try:
                while pending:
                    # Results are yielded in order and released once consumed
                    result = pending.popleft().result()
                    for slc in islice(remaining, 1):
                        pending.append(executor.submit(self._fetch, pixel_source, slc))
                    yield result
                    del result
            finally:
                for future in pending:
                    future.cancel()

    def assemble(
        self,
        series: ResolvedSeries,
        pixel_source: PixelSource = attached_pixels,
        progress_callback: Optional[Callable[[float], None]] = None,
        cancel_token: Optional[CancellationToken] = None
    ) -> ReconstructedVolume:
        """
        Build the volume buffer for a resolved series.

        Args:
            series: Ordered slices and resolved geometry
            pixel_source: Callable returning the raw buffer of one slice
            progress_callback: Optional callback(progress: 0.0-1.0)
            cancel_token: Optional token checked between slices

        Returns:
            ReconstructedVolume with loaded/skipped counters

        Raises:
            VolumeBuildError: If no slice could be loaded
            OperationCancelled: If the token is tripped mid-pass
        """
        geometry = series.geometry
        slices = series.slices
        num_slices = len(slices)
        if num_slices == 0:
            raise VolumeBuildError("No valid volume data: empty slice series")

        rows, columns = geometry.slice_shape
        expected_size = rows * columns
        volume = np.zeros(geometry.shape, dtype=self.dtype)

        start_time = time.perf_counter()
        loaded_count = 0
        skipped: List[int] = []

        check_cancelled(cancel_token)
        for i, (pixels, reason) in enumerate(self._iter_buffers(slices, pixel_source)):
            check_cancelled(cancel_token)
            slc = slices[i]

            if pixels is None:
                logging.error(f"Error loading slice {i} ({slc.slice_id}): {reason}. Skipping.")
                skipped.append(i)
            elif pixels.size != expected_size:
                logging.error(
                    f"Slice {i} ({slc.slice_id}) has unexpected size: {pixels.size} "
                    f"(expected {expected_size}). Skipping."
                )
                skipped.append(i)
            else:
                if self._out_of_range(pixels):
                    logging.warning(
                        f"Slice {i} ({slc.slice_id}) has values outside the {self.dtype} range "
                        f"[{pixels.min()}, {pixels.max()}]; they will wrap"
                    )
                volume[i] = pixels.reshape(rows, columns).astype(self.dtype, copy=False)
                loaded_count += 1

            if progress_callback is not None:
                progress_callback((i + 1) / num_slices)

        if loaded_count == 0:
            raise VolumeBuildError(
                f"No valid volume data: all {num_slices} slices were skipped"
            )

        volume.flags.writeable = False
        elapsed = time.perf_counter() - start_time
        logging.info(
            f"Loaded {loaded_count}/{num_slices} slices in {elapsed:.2f}s "
            f"({len(skipped)} skipped)"
        )
        return ReconstructedVolume(
            data=volume,
            geometry=geometry,
            slices=list(slices),
            loaded_count=loaded_count,
            skipped_count=len(skipped),
            skipped_indices=skipped,
        )
