"""Command line entry point for the trust score job.

Usage:
    python -m eigentrust --seed 1 --credentials postgres.json

Every flag overrides the matching EIGENTRUST_* environment setting.
"""

from __future__ import annotations

import argparse
from collections.abc import Sequence
from typing import Any

from pydantic import ValidationError

from eigentrust.config import Settings
from eigentrust.exceptions import EigenTrustError
from eigentrust.logging import configure_logging, get_logger
from eigentrust.pipeline import run_pipeline

# argparse dest -> Settings field
_OVERRIDES = {
    "seed": "seed_id",
    "reset_prob": "reset_prob",
    "tolerance": "tolerance",
    "max_iterations": "max_iterations",
    "workers": "num_workers",
    "credentials": "credentials_file",
    "database_url": "database_url",
    "scores_table": "scores_table",
    "log_level": "log_level",
    "log_format": "log_format",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="eigentrust",
        description="Compute EigenTrust scores from peer ratings and store them.",
    )
    parser.add_argument("--seed", type=int, help="Trusted peer id")
    parser.add_argument("--reset-prob", type=float, help="Teleport probability in [0, 1]")
    parser.add_argument("--tolerance", type=float, help="Convergence tolerance (>= 0)")
    parser.add_argument("--max-iterations", type=int, help="Superstep cap")
    parser.add_argument("--workers", type=int, help="Worker threads per superstep")
    parser.add_argument("--credentials", help="JSON credentials file")
    parser.add_argument("--database-url", help="SQLAlchemy URL, overrides --credentials")
    parser.add_argument("--scores-table", help="Output table (overwritten)")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING, ...")
    parser.add_argument("--log-format", choices=["json", "text"])
    return parser


def settings_from_args(args: argparse.Namespace) -> Settings:
    overrides: dict[str, Any] = {
        field: getattr(args, dest)
        for dest, field in _OVERRIDES.items()
        if getattr(args, dest) is not None
    }
    return Settings(**overrides)


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = settings_from_args(args)
    except ValidationError as e:
        configure_logging()
        get_logger(__name__).error("invalid_settings", errors=e.errors(include_url=False))
        return 1

    configure_logging(level=settings.log_level, format=settings.log_format)
    logger = get_logger(__name__)
    try:
        result = run_pipeline(settings)
    except EigenTrustError as e:
        logger.error("trust_job_failed", **e.to_dict()["error"])
        return 1

    logger.info(
        "trust_job_complete",
        vertices=len(result),
        converged=result.converged,
        supersteps=result.supersteps,
    )
    return 0
