"""
Neighbourhood Pulse - Command Line Entry Point

Runs the full pipeline once and exits non-zero on a fatal input error.

Usage:
    neighbourhood-pulse --env prod --data-dir data --output-dir data/processed
    python scripts/run_pipeline.py --families walk transit bike
"""

from __future__ import annotations

import argparse
import logging
from datetime import date

from neighbourhood_pulse.pipeline import FAMILIES, NeighbourhoodPulsePipeline
from neighbourhood_pulse.shared.config import get_config
from neighbourhood_pulse.shared.errors import MissingInputError, PipelineError
from neighbourhood_pulse.shared.log_setup import configure_logging

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Compute per-neighbourhood metrics and scores from open data"
    )
    parser.add_argument("--env", choices=["dev", "prod"], default=None, help="Config environment")
    parser.add_argument("--data-dir", default=None, help="Root for relative input paths")
    parser.add_argument("--output-dir", default=None, help="Directory for output tables")
    parser.add_argument(
        "--execution-date",
        default=None,
        help="Run date in YYYY-MM-DD format (default: today)",
    )
    parser.add_argument(
        "--families",
        nargs="+",
        choices=list(FAMILIES),
        default=None,
        help="Metric families to run (default: all)",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Parse arguments, run the pipeline and return the exit code."""
    args = build_parser().parse_args(argv)

    config = get_config(args.env)
    configure_logging(config.logging)

    execution_date = args.execution_date or date.today().isoformat()

    try:
        pipeline = NeighbourhoodPulsePipeline(
            config,
            data_dir=args.data_dir,
            output_dir=args.output_dir,
            families=args.families,
        )
        result = pipeline.run(execution_date)
    except MissingInputError as e:
        logger.error(f"Missing input: {e}", extra={"path": e.path, "column": e.column})
        return 1
    except PipelineError as e:
        logger.error(f"Pipeline failed: {e}")
        return 1

    print(f"Wrote scores for {result.neighbourhoods} neighbourhoods to {result.combined_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
