"""Parameter sweeps of the demographic-stochasticity null model.

Each grid cell is one `ScenarioParams`; the runner builds its population,
draws the null distribution and keeps summary moments keyed by the cell's
`scenario_id`.
"""

from __future__ import annotations

import inspect
import itertools
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Sequence

import numpy as np
import pandas as pd

from provsel.core.errors import InvalidConfiguration
from provsel.core.population import GroupedPopulation
from provsel.core.types import NullConfig, ScenarioParams
from provsel.parallel import parallel_map
from provsel.seeding import fresh_seed, stable_seed
from provsel.stats.null import NullDistribution, NullDistributionBuilder
from provsel.stats.summary import (
    mean_survival_rate,
    opportunity_for_selection,
    survival_rates,
)

SURVIVAL_GRID = tuple(round(0.1 * i, 1) for i in range(1, 10))
COLLECTION_SIZE = 800


def mean_rate_statistic(counts: np.ndarray, population: GroupedPopulation) -> np.ndarray:
    return mean_survival_rate(survival_rates(counts, population.group_sizes))


def opportunity_statistic(counts: np.ndarray, population: GroupedPopulation) -> np.ndarray:
    return opportunity_for_selection(survival_rates(counts, population.group_sizes))


def mean_and_opportunity_statistic(
    counts: np.ndarray, population: GroupedPopulation
) -> dict[str, np.ndarray]:
    rates = survival_rates(counts, population.group_sizes)
    return {
        "mean_rate": mean_survival_rate(rates),
        "opportunity": opportunity_for_selection(rates),
    }


STATISTICS: dict[str, Callable[[np.ndarray, GroupedPopulation], Any]] = {
    "mean_rate": mean_rate_statistic,
    "opportunity": opportunity_statistic,
    "mean_and_opportunity": mean_and_opportunity_statistic,
}


def expand_grid(**axes: Sequence[Any]) -> list[dict[str, Any]]:
    """Cartesian product of the axes with the first axis varying fastest."""
    names = list(axes)
    if not names:
        return []
    values = [list(axes[name]) for name in names]
    rows = []
    for combo in itertools.product(*reversed(values)):
        rows.append(dict(zip(names, reversed(combo))))
    return rows


def mean_rate_fixed_size_grid(
    survival: Sequence[float] = SURVIVAL_GRID,
    group_counts: Sequence[int] = (10, 20),
    group_sizes: Sequence[int] = (2, 10, 20),
    collection_size: int = COLLECTION_SIZE,
) -> list[ScenarioParams]:
    """Mean survival across lines for fixed line sizes, drawn from the collection."""
    return [
        ScenarioParams(
            overall_survival=row["overall_survival"],
            group_count=row["group_count"],
            group_size=row["group_size"],
            collection_size=collection_size,
        )
        for row in expand_grid(
            overall_survival=survival, group_count=group_counts, group_size=group_sizes
        )
    ]


def _evenness_rows(
    survival: Sequence[float],
    group_counts: Sequence[int],
    region_populations: Sequence[int],
) -> list[dict[str, Any]]:
    return expand_grid(
        overall_survival=survival,
        group_count=group_counts,
        evenness=("even", "skewed"),
        region_population=region_populations,
    )


def mean_rate_evenness_grid(
    survival: Sequence[float] = SURVIVAL_GRID,
    group_counts: Sequence[int] = (10, 50),
    region_populations: Sequence[int] = (100, 200, 400),
    collection_size: int = COLLECTION_SIZE,
) -> list[ScenarioParams]:
    """Mean survival across lines for even vs skewed line sizes."""
    return [
        ScenarioParams(collection_size=collection_size, **row)
        for row in _evenness_rows(survival, group_counts, region_populations)
    ]


def opportunity_grid(
    survival: Sequence[float] = SURVIVAL_GRID,
    group_counts: Sequence[int] = (10, 50),
    region_populations: Sequence[int] = (100, 200, 400),
) -> list[ScenarioParams]:
    """Opportunity for selection with survivors drawn within the region only."""
    return [
        ScenarioParams(**row)
        for row in _evenness_rows(survival, group_counts, region_populations)
    ]


SWEEPS: dict[str, tuple[Callable[..., list[ScenarioParams]], str]] = {
    "mean_rate_fixed_size": (mean_rate_fixed_size_grid, "mean_rate"),
    "mean_rate_evenness": (mean_rate_evenness_grid, "mean_rate"),
    "opportunity": (opportunity_grid, "mean_and_opportunity"),
}


@dataclass(frozen=True)
class _SweepCell:
    scenario: ScenarioParams
    seed: int


class _CellRunner:
    def __init__(self, statistic: str, n_iter: int, batch_size: int):
        self.statistic = statistic
        self.n_iter = n_iter
        self.batch_size = batch_size

    def __call__(self, cell: _SweepCell) -> dict[str, Any]:
        t0 = time.perf_counter()
        population = GroupedPopulation.from_scenario(cell.scenario)
        builder = NullDistributionBuilder(
            n_iter=self.n_iter, seed=cell.seed, batch_size=self.batch_size
        )
        nulls = builder.run(population, STATISTICS[self.statistic], label=self.statistic)
        if isinstance(nulls, NullDistribution):
            nulls = {self.statistic: nulls}

        row: dict[str, Any] = {"scenario_id": cell.scenario.scenario_id}
        row.update(cell.scenario.as_dict())
        row.update(
            {
                "draw_population": population.total_draw_population,
                "success_count": population.success_count,
                "seed": cell.seed,
            }
        )
        for label, dist in nulls.items():
            for key, value in dist.summary().items():
                row[f"{label}_{key}"] = value
        row["runtime_sec"] = time.perf_counter() - t0
        return row


class ParameterSweepRunner:
    """Run one null distribution per scenario and collect summary moments."""

    def __init__(
        self,
        statistic: str = "mean_rate",
        n_iter: int = 10000,
        seed: int | None = 0,
        *,
        batch_size: int = 1000,
        n_jobs: int = 1,
        backend: str = "loky",
        logger: logging.Logger | None = None,
    ):
        if statistic not in STATISTICS:
            raise InvalidConfiguration(
                f"Unknown statistic {statistic!r}; choose from {sorted(STATISTICS)}."
            )
        if int(n_iter) <= 0:
            raise InvalidConfiguration("n_iter must be positive.")
        if int(batch_size) <= 0:
            raise InvalidConfiguration("batch_size must be positive.")
        self.statistic = statistic
        self.n_iter = int(n_iter)
        self.seed = seed
        self.batch_size = int(batch_size)
        self.n_jobs = int(n_jobs)
        self.backend = backend
        self.logger = logger or logging.getLogger(__name__)

    @classmethod
    def from_config(
        cls, statistic: str, config: NullConfig, logger: logging.Logger | None = None
    ) -> "ParameterSweepRunner":
        return cls(
            statistic=statistic,
            n_iter=config.n_iter,
            seed=config.seed,
            batch_size=config.batch_size,
            n_jobs=config.n_jobs,
            backend=config.backend,
            logger=logger,
        )

    def run(self, scenarios: Iterable[ScenarioParams]) -> pd.DataFrame:
        cells_in = list(scenarios)
        if not cells_in:
            raise InvalidConfiguration("A sweep needs at least one scenario.")

        ids = [s.scenario_id for s in cells_in]
        dupes = sorted({i for i in ids if ids.count(i) > 1})
        if dupes:
            raise InvalidConfiguration(f"Duplicate scenarios in sweep: {dupes[:5]}")
        # Fail on malformed cells before any simulation starts.
        for scenario in cells_in:
            GroupedPopulation.from_scenario(scenario)

        master = self.seed
        if master is None:
            master = fresh_seed()
            self.logger.info("No seed configured; drew master seed=%d", master)

        cells = [
            _SweepCell(scenario=s, seed=stable_seed(int(master), "scenario", s.scenario_id))
            for s in cells_in
        ]
        self.logger.info(
            "Sweep start: statistic=%s cells=%d n_iter=%d n_jobs=%d",
            self.statistic,
            len(cells),
            self.n_iter,
            self.n_jobs,
        )
        rows = parallel_map(
            _CellRunner(self.statistic, self.n_iter, self.batch_size),
            cells,
            n_jobs=self.n_jobs,
            backend=self.backend,
        )
        out = pd.DataFrame(rows).set_index("scenario_id")
        self.logger.info("Sweep complete: %d cells", len(out))
        return out


def check_grid_kwargs(name: str, grid_kwargs: dict[str, Any]) -> None:
    """Raise if `grid_kwargs` names a parameter the sweep's grid does not take."""
    if name not in SWEEPS:
        raise InvalidConfiguration(f"Unknown sweep {name!r}; choose from {sorted(SWEEPS)}.")
    accepted = set(inspect.signature(SWEEPS[name][0]).parameters)
    unknown = sorted(set(grid_kwargs) - accepted)
    if unknown:
        raise InvalidConfiguration(
            f"Unknown grid keys for sweep {name!r}: {unknown}; accepted {sorted(accepted)}."
        )


def run_named_sweep(
    name: str,
    config: NullConfig,
    logger: logging.Logger | None = None,
    **grid_kwargs: Any,
) -> pd.DataFrame:
    check_grid_kwargs(name, grid_kwargs)
    grid_fn, statistic = SWEEPS[name]
    runner = ParameterSweepRunner.from_config(statistic, config, logger=logger)
    return runner.run(grid_fn(**grid_kwargs))
