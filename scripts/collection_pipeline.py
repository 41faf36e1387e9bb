#!/usr/bin/env python3
"""CLI entrypoint for the collection null-model pipeline."""

from __future__ import annotations

import argparse

from provsel.pipeline.runs import run_collection_pipeline


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Run survival null models over a living collection."
    )
    parser.add_argument(
        "--config", required=True, help="Path to JSON config for the collection run."
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    run_collection_pipeline(str(args.config))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
