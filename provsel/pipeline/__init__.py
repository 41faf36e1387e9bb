"""Collection and sweep pipeline entrypoints."""

from provsel.pipeline.io import (
    ensure_dir,
    read_table,
    setup_logger,
    write_json,
    write_table,
)


def run_collection_pipeline(*args, **kwargs):
    from provsel.pipeline.runs import run_collection_pipeline as _run

    return _run(*args, **kwargs)


def run_sweep_pipeline(*args, **kwargs):
    from provsel.pipeline.runs import run_sweep_pipeline as _run

    return _run(*args, **kwargs)


__all__ = [
    "ensure_dir",
    "read_table",
    "run_collection_pipeline",
    "run_sweep_pipeline",
    "setup_logger",
    "write_json",
    "write_table",
]
