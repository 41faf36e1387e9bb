"""Random reassignment of a fixed outcome multiset over grouped positions."""

from __future__ import annotations

import numpy as np

from provsel.core.population import GroupedPopulation


def permute(population: GroupedPopulation, rng: np.random.Generator) -> np.ndarray:
    """Draw one uniform permutation of the population's 0/1 multiset.

    Returns an int8 vector of length `total_draw_population`; positions
    `[0, assigned_size)` belong to groups.
    """
    return rng.permutation(population.outcome_multiset())


def permute_batch(
    population: GroupedPopulation,
    n_iter: int,
    rng: np.random.Generator,
) -> np.ndarray:
    """Draw `n_iter` independent uniform permutations, one per row."""
    n = int(n_iter)
    if n < 0:
        raise ValueError("n_iter must be non-negative.")
    out = np.tile(population.outcome_multiset(), (n, 1))
    rng.permuted(out, axis=1, out=out)
    return out


def group_survivors(outcomes: np.ndarray, population: GroupedPopulation) -> np.ndarray:
    """Sum each group's slice of one outcome vector or of a batch of rows."""
    arr = np.asarray(outcomes)
    if arr.shape[-1] != population.total_draw_population:
        raise ValueError(
            f"Outcome length {arr.shape[-1]} does not match population size "
            f"{population.total_draw_population}."
        )
    assigned = arr[..., : population.assigned_size].astype(np.int64, copy=False)
    return np.add.reduceat(assigned, population.group_starts, axis=-1)


def draw_group_survivors(
    population: GroupedPopulation,
    n_iter: int,
    rng: np.random.Generator,
) -> np.ndarray:
    """Permute `n_iter` times and return the `(n_iter, group_count)` count matrix."""
    return group_survivors(permute_batch(population, n_iter, rng), population)
