"""Deterministic parallel helpers for simulation workloads."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from typing import Any, TypeVar

from joblib import Parallel, delayed

T = TypeVar("T")
R = TypeVar("R")

BACKENDS = ("loky", "multiprocessing", "threading")

logger = logging.getLogger(__name__)


def _item_seed(item: Any) -> int | None:
    if isinstance(item, dict):
        seed = item.get("seed")
        return int(seed) if seed is not None else None
    seed = getattr(item, "seed", None)
    return int(seed) if seed is not None else None


def _validate_items_have_seed(items: list[T]) -> None:
    missing = [idx for idx, item in enumerate(items) if _item_seed(item) is None]
    if missing:
        head = ",".join(str(i) for i in missing[:5])
        raise ValueError(
            "parallel_map requires every item to carry a deterministic `seed` "
            f"(missing at indices: {head}{'...' if len(missing) > 5 else ''})."
        )


def _call_indexed(func: Callable[[T], R], indexed: tuple[int, T]) -> tuple[int, R]:
    idx, item = indexed
    return idx, func(item)


def parallel_map(
    func: Callable[[T], R],
    items: Iterable[T],
    *,
    n_jobs: int = 1,
    backend: str = "loky",
    chunk_size: int = 1,
) -> list[R]:
    """Apply `func` to items with deterministic, order-stable aggregation.

    Notes:
    - Every item must include a deterministic `seed`.
    - Output order is always aligned to input order, independent of scheduling.
    """
    seq = list(items)
    if not seq:
        return []
    _validate_items_have_seed(seq)

    jobs = int(n_jobs)
    if jobs == 0:
        raise ValueError("n_jobs must be non-zero.")
    if backend not in BACKENDS:
        raise ValueError(f"backend must be one of {BACKENDS}, got {backend!r}.")

    if jobs == 1 or len(seq) == 1:
        logger.debug("parallel_map serial execution: n_items=%d", len(seq))
        return [func(item) for item in seq]

    logger.debug(
        "parallel_map n_items=%d n_jobs=%d backend=%s chunk_size=%d",
        len(seq),
        jobs,
        backend,
        max(1, int(chunk_size)),
    )
    rows = Parallel(n_jobs=jobs, backend=backend, batch_size=max(1, int(chunk_size)))(
        delayed(_call_indexed)(func, pair) for pair in enumerate(seq)
    )
    rows.sort(key=lambda x: x[0])
    return [row for _, row in rows]
