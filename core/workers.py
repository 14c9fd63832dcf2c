"""
Background Workers

QThread workers for long-running operations (series loading and assembly).
"""

import logging
import time

from PySide6.QtCore import QThread, Signal

from config import DEFAULT_GEOMETRY, DEFAULT_LOADER, GeometryConfig, LoaderConfig
from core.base import CancellationToken
from core.errors import OperationCancelled, ReconstructionError
from loaders.dicom_loader import DicomSeriesLoader
from reconstruction.assembler import VolumeAssembler
from reconstruction.geometry import resolve_geometry

# Share of the progress bar given to header parsing; assembly gets the rest
HEADER_PHASE_WEIGHT = 0.3


class VolumeBuildWorker(QThread):
    """Background worker for loading a DICOM directory into a volume."""

    progress = Signal(float)
    finished = Signal(object)  # Emits ReconstructedVolume
    error = Signal(str)

    def __init__(
        self,
        folder: str,
        geometry_config: GeometryConfig = DEFAULT_GEOMETRY,
        loader_config: LoaderConfig = DEFAULT_LOADER,
        parent=None
    ):
        super().__init__(parent)
        self.folder = folder
        self.geometry_config = geometry_config
        self.loader_config = loader_config
        self._token = CancellationToken()
        self.volume = None

    def cancel(self) -> None:
        """Request cancellation; checked between per-slice steps."""
        self._token.cancel()

    @property
    def cancelled(self) -> bool:
        return self._token.cancelled

    def run(self):
        try:
            start = time.perf_counter()
            self.progress.emit(0.0)

            loader = DicomSeriesLoader(max_workers=self.loader_config.max_workers)
            slices = loader.load(
                self.folder,
                progress_callback=lambda p: self.progress.emit(p * HEADER_PHASE_WEIGHT),
                cancel_token=self._token,
            )

            series = resolve_geometry(slices, self.geometry_config, cancel_token=self._token)

            assembler = VolumeAssembler(self.loader_config)
            self.volume = assembler.assemble(
                series,
                pixel_source=loader.load_pixels,
                progress_callback=lambda p: self.progress.emit(
                    HEADER_PHASE_WEIGHT + p * (1.0 - HEADER_PHASE_WEIGHT)
                ),
                cancel_token=self._token,
            )

            self.progress.emit(1.0)
            logging.info(f"Volume build finished in {time.perf_counter() - start:.2f}s")
            self.finished.emit(self.volume)

        except OperationCancelled:
            logging.info("Volume build cancelled")
            self.error.emit("Volume build cancelled")
        except ReconstructionError as e:
            logging.error(f"Volume build failed: {e}")
            self.error.emit(f"Volume build failed: {e}")
        except Exception as e:
            import traceback
            logging.error(f"Volume build error: {e}\n{traceback.format_exc()}")
            self.error.emit(str(e))
