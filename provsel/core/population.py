"""Fixed partitions of binary outcomes into labelled groups."""

from __future__ import annotations

from typing import Sequence

import numpy as np

from provsel.core.errors import InvalidConfiguration
from provsel.core.types import ScenarioParams


class GroupedPopulation:
    """N binary outcomes, K of them successes, with the first Nr positions split
    into contiguous groups of fixed size.

    In the whole-collection model the draw population N exceeds Nr and the
    remaining positions carry no group membership. In the region-only model
    N == Nr. Group boundaries are computed once here and shared read-only by
    every permutation.
    """

    def __init__(
        self,
        group_sizes: Sequence[int],
        total_draw_population: int | None = None,
        success_count: int = 0,
        labels: Sequence[str] | None = None,
    ):
        sizes = np.asarray(list(group_sizes))
        if sizes.ndim != 1 or sizes.size == 0:
            raise InvalidConfiguration("At least one group is required.")
        if not np.all(np.isfinite(sizes.astype(float))):
            raise InvalidConfiguration("Group sizes must be finite.")
        if np.any(sizes.astype(float) != np.round(sizes.astype(float))):
            raise InvalidConfiguration("Group sizes must be whole numbers.")
        sizes = sizes.astype(np.int64)
        if np.any(sizes <= 0):
            bad = [int(i) for i in np.flatnonzero(sizes <= 0)[:5]]
            raise InvalidConfiguration(f"Group sizes must be positive (groups {bad}).")

        assigned = int(sizes.sum())
        n_draw = assigned if total_draw_population is None else int(total_draw_population)
        if n_draw < assigned:
            raise InvalidConfiguration(
                f"total_draw_population ({n_draw}) is smaller than the grouped "
                f"population ({assigned})."
            )
        k = int(success_count)
        if k < 0 or k > n_draw:
            raise InvalidConfiguration(
                f"success_count ({k}) must lie in [0, {n_draw}]."
            )

        if labels is None:
            label_tuple = tuple(str(i) for i in range(sizes.size))
        else:
            label_tuple = tuple(str(lab) for lab in labels)
            if len(label_tuple) != sizes.size:
                raise InvalidConfiguration("labels must match group_sizes in length.")
            if len(set(label_tuple)) != len(label_tuple):
                raise InvalidConfiguration("Group labels must be unique.")

        stops = np.cumsum(sizes)
        starts = stops - sizes
        bounds = np.column_stack([starts, stops])
        for arr in (sizes, starts, bounds):
            arr.setflags(write=False)

        self._sizes = sizes
        self._starts = starts
        self._bounds = bounds
        self._n_draw = n_draw
        self._k = k
        self._labels = label_tuple

    @classmethod
    def from_scenario(cls, params: ScenarioParams) -> "GroupedPopulation":
        return cls(
            group_sizes=params.group_sizes(),
            total_draw_population=params.draw_population(),
            success_count=params.success_count(),
        )

    @classmethod
    def from_counts(
        cls,
        labels: Sequence[str],
        initial_plants: Sequence[int],
        survivors: Sequence[int],
        total_draw_population: int | None = None,
    ) -> "GroupedPopulation":
        """Population whose success count is the observed number of survivors."""
        surv = np.asarray(list(survivors), dtype=np.int64)
        sizes = np.asarray(list(initial_plants), dtype=np.int64)
        if surv.shape != sizes.shape:
            raise InvalidConfiguration("survivors must match initial_plants in length.")
        if np.any(surv < 0) or np.any(surv > sizes):
            raise InvalidConfiguration("Survivors must lie in [0, initial_plants].")
        return cls(
            group_sizes=sizes,
            total_draw_population=total_draw_population,
            success_count=int(surv.sum()),
            labels=labels,
        )

    @property
    def group_sizes(self) -> np.ndarray:
        return self._sizes

    @property
    def group_count(self) -> int:
        return int(self._sizes.size)

    @property
    def group_starts(self) -> np.ndarray:
        return self._starts

    @property
    def assigned_size(self) -> int:
        return int(self._bounds[-1, 1])

    @property
    def total_draw_population(self) -> int:
        return self._n_draw

    @property
    def success_count(self) -> int:
        return self._k

    @property
    def is_region_only(self) -> bool:
        return self._n_draw == self.assigned_size

    @property
    def labels(self) -> tuple[str, ...]:
        return self._labels

    def group_boundaries(self) -> np.ndarray:
        """Half-open `[start, stop)` index ranges, one row per group."""
        return self._bounds

    def outcome_multiset(self) -> np.ndarray:
        out = np.zeros(self._n_draw, dtype=np.int8)
        out[: self._k] = 1
        return out

    def __repr__(self) -> str:
        return (
            f"GroupedPopulation(groups={self.group_count}, Nr={self.assigned_size}, "
            f"N={self._n_draw}, K={self._k})"
        )
