"""
Foreground convergence monitor.

Polls an OpenFOAM log and redraws the convergence plots in a figure window
until interrupted with Ctrl+C. With --once a single poll is rendered to a PNG
file instead.
"""

import argparse
import base64
import logging
import sys
import threading
from pathlib import Path
from typing import List, Optional

from pydantic import ValidationError

from foamwatch.config import DEFAULT_FIELDS, MonitorConfig
from foamwatch.monitor.driver import MonitorDriver
from foamwatch.plots.renderer import ConvergenceRenderer

logger = logging.getLogger("FOAMWatch")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Live OpenFOAM residual and Courant number monitor")
    parser.add_argument("log_file", help="Path to the solver log, e.g. log.reactingFoam")
    parser.add_argument(
        "--fields",
        default=", ".join(DEFAULT_FIELDS),
        help="Comma-separated fields to plot residuals for",
    )
    parser.add_argument("--plot-steps", type=int, default=500, help="Number of recent time steps to plot")
    parser.add_argument("--reset-interval", type=int, default=50, help="Poll cycles between full resets")
    parser.add_argument("--poll-interval", type=float, default=20.0, help="Seconds between polls")
    parser.add_argument("--once", action="store_true", help="Poll once and write the plot to --output")
    parser.add_argument("--output", default="convergence.png", help="PNG path used with --once")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def run_once(config: MonitorConfig, output: Path) -> int:
    """Render a single poll to ``output``. Returns a process exit code."""
    driver = MonitorDriver(config, renderer=ConvergenceRenderer(interactive=False))
    driver.poll()
    snapshot = driver.last_snapshot
    driver.renderer.close()

    if snapshot is None or snapshot.image is None:
        logger.error(f"[FOAMWatch] Nothing to plot: {driver.status}")
        return 1

    output.write_bytes(base64.b64decode(snapshot.image))
    logger.info(f"[FOAMWatch] Wrote {output}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
    )

    try:
        config = MonitorConfig(
            log_file=args.log_file,
            fields=args.fields,
            plot_steps=args.plot_steps,
            reset_interval=args.reset_interval,
            poll_interval=args.poll_interval,
        )
    except ValidationError as e:
        logger.error(f"[FOAMWatch] Invalid settings: {e}")
        return 2

    if args.once:
        return run_once(config, Path(args.output))

    logger.info("[FOAMWatch] OpenFOAM Log Monitor: press Ctrl+C to stop.")
    stop_event = threading.Event()
    driver = MonitorDriver(config, renderer=ConvergenceRenderer(interactive=True))
    try:
        driver.run(stop_event)
    except KeyboardInterrupt:
        stop_event.set()
    return 0


if __name__ == "__main__":
    sys.exit(main())
