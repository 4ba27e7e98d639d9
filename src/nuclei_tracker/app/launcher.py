#!/usr/bin/env python3
"""
Main entry point for the Nuclei Tracker.

Each sub-command is a thin dispatcher: it loads parameters and the saved
registry, runs one pass, and writes the result next to its inputs.
"""

import argparse
import logging
import os
import sys
from pathlib import Path

import numpy as np


# Set up logging
def setup_logging(log_level: object = logging.INFO) -> object:
    """Set up console logging for the nuclei tracker."""
    handlers = [logging.StreamHandler(sys.stdout)]

    logging.basicConfig(
        level=log_level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=handlers,
        force=True,
    )

    logger = logging.getLogger(__name__)
    logger.info("Nuclei Tracker starting up...")
    logger.info(f"Python version: {sys.version}")
    logger.info(f"Working directory: {os.getcwd()}")


def parse_arguments(argv=None) -> object:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Nuclei Tracker - link, correct and reshape nucleus tracks in time-lapse images",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  nuclei-tracker detect --input h2b.tif --out results
  nuclei-tracker link --out results --maxdisp 15 --gap 3
  nuclei-tracker resample --out results --channel h2b.tif --channel nls.tif
  nuclei-tracker pivot --out results
  nuclei-tracker ruptures --out results --channel-index 2
        """,
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default="INFO",
        help="Set the logging level (default: INFO)",
    )
    parser.add_argument("--config", type=str, help="JSON file with parameter overrides")
    parser.add_argument("--version", action="version", version="Nuclei Tracker 1.0.0")

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--out", type=str, required=True, help="Results directory")
    common.add_argument("--prefix", type=str, default="nuclei", help="File prefix (default: nuclei)")

    sub = parser.add_subparsers(dest="command", required=True)

    detect = sub.add_parser("detect", parents=[common], help="Run the detection pass")
    detect.add_argument("--input", type=str, required=True, help="Multi-page TIFF of the nuclear channel")
    detect.add_argument("--min-area", type=float, help="Minimum nucleus area in pixels")
    detect.add_argument("--separate", type=float, help="Conditional watershed threshold in [0, 1]")

    link = sub.add_parser("link", parents=[common], help="Run the linkage pass")
    link.add_argument("--maxdisp", type=float, help="Maximum linking distance in pixels")
    link.add_argument("--gap", type=int, help="Frames searched ahead for a successor")

    resample = sub.add_parser("resample", parents=[common], help="Measure channel intensities")
    resample.add_argument(
        "--channel", action="append", required=True, help="Multi-page TIFF per channel (repeatable)"
    )

    pivot = sub.add_parser("pivot", parents=[common], help="Write the per-track intensity matrix")
    pivot.add_argument(
        "--fill-nan", action="store_true", help="Mark missing observations as NaN instead of 0"
    )

    ruptures = sub.add_parser("ruptures", parents=[common], help="Detect rupture events")
    ruptures.add_argument("--channel-index", type=int, default=1, help="1-based channel to analyse")

    return parser.parse_args(argv)


def read_stack(path) -> np.ndarray:
    """Read a multi-page image into a (frames, H, W) array."""
    import cv2

    ok, pages = cv2.imreadmulti(str(path), flags=cv2.IMREAD_UNCHANGED)
    if not ok or not pages:
        raise FileNotFoundError(f"Could not read image stack: {path}")
    return np.stack([p if p.ndim == 2 else cv2.cvtColor(p, cv2.COLOR_BGR2GRAY) for p in pages])


def run_command(args, params) -> int:
    """Dispatch one sub-command. Returns the process exit code."""
    from ..core.detection import NucleusDetector
    from ..core.linkage import TrackLinker
    from ..core.registry import DetectionRegistry
    from ..core.resampling import pivot_tracks, resample_channels
    from ..core.rupture import detect_rupture_events
    from ..data.registry_io import load_registry, save_pivot, save_registry
    from ..utils.image_processing import condition_stack

    logger = logging.getLogger(__name__)
    out = Path(args.out)

    if args.command == "detect":
        raw = read_stack(args.input)
        registry = DetectionRegistry()
        NucleusDetector(params).populate(registry, condition_stack(raw, params), reference_stack=raw)
        save_registry(registry, out, args.prefix)

    elif args.command == "link":
        registry = load_registry(out, args.prefix)
        TrackLinker(params).link(registry)
        save_registry(registry, out, args.prefix)

    elif args.command == "resample":
        registry = load_registry(out, args.prefix)
        channels = [read_stack(path) for path in args.channel]
        resample_channels(registry, channels)
        save_registry(registry, out, args.prefix)

    elif args.command == "pivot":
        registry = load_registry(out, args.prefix)
        fill_value = float("nan") if args.fill_nan else params["PIVOT_FILL_VALUE"]
        save_pivot(pivot_tracks(registry, fill_value=fill_value), out, args.prefix)

    elif args.command == "ruptures":
        import pandas as pd

        pivot = pd.read_csv(out / f"{args.prefix}_tracks.csv", index_col="frame")
        events = detect_rupture_events(pivot, params, channel=args.channel_index)
        path = out / f"{args.prefix}_ruptures.csv"
        events.to_csv(path, index=False)
        logger.info(f"Saved {len(events)} event(s) to {path}")

    return 0


def main(argv=None) -> object:
    """
    Application entry point.

    Parses command line arguments, sets up logging, validates parameters
    before any batch pass starts and runs the requested command.
    """
    args = parse_arguments(argv)

    log_level = getattr(logging, args.log_level.upper())
    setup_logging(log_level=log_level)
    logger = logging.getLogger(__name__)

    from ..config import load_params
    from ..core.errors import ConsistencyError, EmptyStateError, ParameterError

    overrides = {
        "MAX_DISPLACEMENT": getattr(args, "maxdisp", None),
        "GAP_FRAMES": getattr(args, "gap", None),
        "MIN_NUCLEUS_AREA": getattr(args, "min_area", None),
        "SEPARATE": getattr(args, "separate", None),
    }

    try:
        params = load_params(args.config, overrides)
        exit_code = run_command(args, params)

    except ParameterError as e:
        logger.error(f"Invalid parameters: {e}")
        exit_code = 2

    except EmptyStateError as e:
        logger.warning(f"Nothing to do: {e}")
        exit_code = 0

    except ConsistencyError as e:
        logger.error(f"Registry is inconsistent, aborting: {e}", exc_info=True)
        exit_code = 1

    except Exception as e:
        logger.error(f"Unexpected error: {e}", exc_info=True)
        exit_code = 1

    sys.exit(exit_code)


if __name__ == "__main__":
    main()
