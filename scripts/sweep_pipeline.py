#!/usr/bin/env python3
"""Run demographic-stochasticity parameter sweeps."""

from __future__ import annotations

import argparse

from provsel.pipeline.runs import run_sweep_pipeline


def main() -> int:
    parser = argparse.ArgumentParser(description="provsel parameter sweeps")
    parser.add_argument(
        "--config",
        default="configs/provsel_sweeps.json",
        help="Path to JSON config",
    )
    args = parser.parse_args()
    run_sweep_pipeline(args.config)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
