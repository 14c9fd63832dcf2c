"""
DICOM Series Loader

Reads a folder of single-frame DICOM files with pydicom. Headers are
parsed in parallel (one task per file) and joined before ordering;
pixel buffers are decoded on demand per slice.
"""

from pathlib import Path
from typing import Callable, List, Optional
import concurrent.futures
import logging
import numpy as np

try:
    import pydicom
    from pydicom.errors import InvalidDicomError
    HAS_PYDICOM = True
except ImportError:
    HAS_PYDICOM = False

from core.base import BaseLoader, CancellationToken, Slice, check_cancelled
from core.errors import OperationCancelled, VolumeBuildError
from .metadata import build_slice


class DicomSeriesLoader(BaseLoader):
    """
    Loads one axial DICOM series from a directory.

    Files that are not DICOM, or that carry no pixel data, are skipped
    with a warning. The returned slices are unordered; ordering is the
    resolver's job.
    """

    def __init__(self, max_workers: Optional[int] = None):
        """
        Initialize the loader.

        Args:
            max_workers: Thread count for header parsing (None = executor default)
        """
        if not HAS_PYDICOM:
            raise ImportError(
                "pydicom is required for DICOM loading. "
                "Install it with: pip install pydicom"
            )
        self.max_workers = max_workers
        self.skipped_files: List[Path] = []

    def can_load(self, source: str) -> bool:
        return Path(source).is_dir()

    def _read_header(self, path: Path) -> Optional[Slice]:
        try:
            ds = pydicom.dcmread(path, stop_before_pixels=True)
        except InvalidDicomError as e:
            logging.warning(f"Skipping non-DICOM file {path.name}: {e}")
            return None
        except Exception as e:
            logging.warning(f"Failed to read {path.name}: {e}")
            return None
        if "Rows" not in ds:
            logging.warning(f"Skipping {path.name}: no image data")
            return None
        return build_slice(ds, slice_id=str(path))

    def load(
        self,
        source: str,
        progress_callback: Optional[Callable[[float], None]] = None,
        cancel_token: Optional[CancellationToken] = None
    ) -> List[Slice]:
        """
        Parse every file header in a directory.

        Args:
            source: Directory holding the series
            progress_callback: Optional callback(progress: 0.0-1.0)
            cancel_token: Optional token checked as each header completes

        Returns:
            Unordered list of Slice records without pixel buffers

        Raises:
            VolumeBuildError: If the directory holds no readable DICOM slices
        """
        folder = Path(source)
        if not folder.is_dir():
            raise VolumeBuildError(f"Not a directory: {folder}")

        paths = sorted(p for p in folder.iterdir() if p.is_file())
        self.skipped_files = []
        if not paths:
            raise VolumeBuildError(f"No files in {folder}")

        slices: List[Slice] = []
        completed = 0

        with concurrent.futures.ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            future_to_path = {
                executor.submit(self._read_header, path): path
                for path in paths
            }
            try:
                for future in concurrent.futures.as_completed(future_to_path):
                    check_cancelled(cancel_token)
                    slc = future.result()
                    if slc is None:
                        self.skipped_files.append(future_to_path[future])
                    else:
                        slices.append(slc)

                    completed += 1
                    if progress_callback:
                        progress_callback(completed / len(paths))
            except OperationCancelled:
                for future in future_to_path:
                    future.cancel()
                raise

        if not slices:
            raise VolumeBuildError(f"No valid DICOM slices in {folder}")

        # as_completed order is arbitrary; restore file order for a stable sort
        slices.sort(key=lambda s: s.slice_id)
        logging.info(
            f"Read {len(slices)} DICOM headers from {folder} "
            f"({len(self.skipped_files)} files skipped)"
        )
        return slices

    def load_pixels(self, slc: Slice) -> np.ndarray:
        """Decode the stored pixel values of one slice file."""
        if slc.pixels is not None:
            return slc.pixels
        ds = pydicom.dcmread(slc.slice_id)
        return ds.pixel_array
