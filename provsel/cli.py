"""Command-line interfaces for provsel runs."""

from __future__ import annotations

import argparse
from typing import Iterable

from provsel.core.errors import InvalidConfiguration, ReferentialIntegrityError


def collection_main(argv: Iterable[str] | None = None) -> int:
    """Run the collection null models from a JSON config.

    Returns:
        Exit code 0 on success.

    Raises:
        SystemExit: With code 2 when the config or input tables are invalid.
    """
    parser = argparse.ArgumentParser(
        description="Permutation null models for survival across a living collection"
    )
    parser.add_argument(
        "--config",
        default="configs/provsel_collection.json",
        help="Path to collection config",
    )
    parser.add_argument(
        "--n-iter",
        type=int,
        default=None,
        help="Override null.n_iter from the config",
    )
    args = parser.parse_args(list(argv) if argv is not None else None)

    from provsel.pipeline.runs import run_collection_pipeline

    try:
        run_collection_pipeline(args.config, n_iter=args.n_iter)
    except (InvalidConfiguration, ReferentialIntegrityError) as exc:
        parser.exit(2, f"error: {exc}\n")
    return 0


def sweep_main(argv: Iterable[str] | None = None) -> int:
    """Run one or more parameter sweeps from a JSON config.

    Returns:
        Exit code 0 on success.

    Raises:
        SystemExit: With code 2 when the config is invalid.
    """
    parser = argparse.ArgumentParser(description="Demographic-stochasticity parameter sweeps")
    parser.add_argument(
        "--config",
        default="configs/provsel_sweeps.json",
        help="Path to sweep config",
    )
    parser.add_argument(
        "--n-iter",
        type=int,
        default=None,
        help="Override null.n_iter from the config",
    )
    args = parser.parse_args(list(argv) if argv is not None else None)

    from provsel.pipeline.runs import run_sweep_pipeline

    try:
        run_sweep_pipeline(args.config, n_iter=args.n_iter)
    except InvalidConfiguration as exc:
        parser.exit(2, f"error: {exc}\n")
    return 0
