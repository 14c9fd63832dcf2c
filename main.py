"""
CT Volume Painter

Headless entry point: builds a volume from a DICOM directory and
reports its geometry and slice counters.
"""

import argparse
import sys
import logging

from config import LoaderConfig
from core.errors import VolumeBuildError
from loaders.dicom_loader import DicomSeriesLoader
from reconstruction.assembler import VolumeAssembler
from reconstruction.geometry import resolve_geometry


def setup_logging(verbose: bool = False):
    """Configure logging to stdout."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format='%(asctime)s - %(levelname)s - %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)]
    )


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Assemble a 3D volume from a directory of axial DICOM slices."
    )
    parser.add_argument("folder", help="Directory containing one DICOM series")
    parser.add_argument("--workers", type=int, default=None,
                        help="Threads used for header parsing and pixel loading")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def main(argv=None) -> int:
    """Application entry point."""
    args = parse_args(argv)
    setup_logging(args.verbose)

    config = LoaderConfig(max_workers=args.workers)
    loader = DicomSeriesLoader(max_workers=config.max_workers)

    try:
        slices = loader.load(args.folder)
        series = resolve_geometry(slices)
        volume = VolumeAssembler(config).assemble(series, loader.load_pixels)
    except VolumeBuildError as e:
        logging.error(f"Volume build failed: {e}")
        return 1

    geometry = volume.geometry
    logging.info(f"Dimensions: {geometry.dimensions}")
    logging.info(f"Spacing:    {geometry.spacing}")
    logging.info(f"Origin:     {geometry.origin}")
    logging.info(f"Slices loaded: {volume.loaded_count}, skipped: {volume.skipped_count}")
    for note in series.notes:
        logging.info(f"Note: {note}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
