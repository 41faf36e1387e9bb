"""Monte Carlo null distributions built from repeated permutations."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Sequence, Union

import numpy as np

from provsel.core.errors import InvalidConfiguration
from provsel.core.population import GroupedPopulation
from provsel.core.types import NullConfig
from provsel.parallel import parallel_map
from provsel.seeding import fresh_seed, rng_from_seed, stable_seed
from provsel.stats.permutation import draw_group_survivors

SUMMARY_QUANTILES = (0.025, 0.05, 0.5, 0.975)

ExtractorOutput = Union[np.ndarray, Mapping[str, np.ndarray]]
Extractor = Callable[[np.ndarray, GroupedPopulation], ExtractorOutput]


def _quantile_key(p: float) -> str:
    return f"q{int(round(float(p) * 1000)):03d}"


class NullDistribution:
    """Read-only sample of one statistic over k permutations.

    Undefined iterations are kept as NaN so the sample length always equals
    the number of iterations run; aggregates use the defined values only.
    """

    def __init__(self, values: Sequence[float] | np.ndarray, label: str = ""):
        arr = np.array(values, dtype=float).ravel()
        arr.setflags(write=False)
        self._values = arr
        self._defined = arr[np.isfinite(arr)]
        self._defined.setflags(write=False)
        self.label = str(label)

    @property
    def values(self) -> np.ndarray:
        return self._values

    @property
    def defined(self) -> np.ndarray:
        return self._defined

    @property
    def k(self) -> int:
        return int(self._values.size)

    @property
    def n_defined(self) -> int:
        return int(self._defined.size)

    @property
    def n_undefined(self) -> int:
        return self.k - self.n_defined

    def __len__(self) -> int:
        return self.k

    def mean(self) -> float:
        if self.n_defined == 0:
            return float("nan")
        return float(np.mean(self._defined))

    def variance(self) -> float:
        if self.n_defined < 2:
            return float("nan")
        return float(np.var(self._defined, ddof=1))

    def quantile(self, p: float) -> float:
        """Linear-interpolation quantile (R type 7)."""
        prob = float(p)
        if not 0.0 <= prob <= 1.0:
            raise ValueError(f"Quantile probability must lie in [0, 1], got {p!r}.")
        if self.n_defined == 0:
            return float("nan")
        return float(np.quantile(self._defined, prob, method="linear"))

    def quantiles(self, probs: Sequence[float]) -> np.ndarray:
        return np.array([self.quantile(p) for p in probs], dtype=float)

    def median(self) -> float:
        return self.quantile(0.5)

    def ci_width(self, lower: float = 0.025, upper: float = 0.975) -> float:
        if float(lower) > float(upper):
            raise ValueError("lower must not exceed upper.")
        return self.quantile(upper) - self.quantile(lower)

    def summary(self, probs: Sequence[float] = SUMMARY_QUANTILES) -> dict[str, Any]:
        out: dict[str, Any] = {
            "mean": self.mean(),
            "variance": self.variance(),
        }
        for p in probs:
            out[_quantile_key(p)] = self.quantile(p)
        out["ci_width"] = self.ci_width()
        out["k"] = self.k
        out["n_undefined"] = self.n_undefined
        return out

    def __repr__(self) -> str:
        return (
            f"NullDistribution(label={self.label!r}, k={self.k}, "
            f"n_undefined={self.n_undefined})"
        )


@dataclass(frozen=True)
class _BatchJob:
    index: int
    size: int
    seed: int


class _BatchRunner:
    def __init__(self, population: GroupedPopulation, extractor: Extractor):
        self.population = population
        self.extractor = extractor

    def __call__(self, job: _BatchJob) -> dict[str, np.ndarray] | np.ndarray:
        rng = rng_from_seed(job.seed)
        counts = draw_group_survivors(self.population, job.size, rng)
        out = self.extractor(counts, self.population)
        if isinstance(out, Mapping):
            return {str(k): _check_batch(v, job.size, str(k)) for k, v in out.items()}
        return _check_batch(out, job.size, "statistic")


def _check_batch(values: Any, size: int, label: str) -> np.ndarray:
    arr = np.asarray(values, dtype=float).ravel()
    if arr.size != size:
        raise ValueError(
            f"Extractor returned {arr.size} values for '{label}' in a batch of {size}."
        )
    return arr


class NullDistributionBuilder:
    """Run k permutation iterations of a population and collect statistics.

    Iterations are split into fixed-size batches. Batch `b` draws from its own
    generator seeded with `stable_seed(seed, "batch", b)`, so the result for a
    given seed does not depend on `n_jobs` or the backend.
    """

    def __init__(
        self,
        n_iter: int = 10000,
        seed: int | None = None,
        *,
        batch_size: int = 1000,
        n_jobs: int = 1,
        backend: str = "loky",
        logger: logging.Logger | None = None,
    ):
        if int(n_iter) <= 0:
            raise InvalidConfiguration("n_iter must be positive.")
        if int(batch_size) <= 0:
            raise InvalidConfiguration("batch_size must be positive.")
        self.n_iter = int(n_iter)
        self.seed = None if seed is None else int(seed)
        self.batch_size = int(batch_size)
        self.n_jobs = int(n_jobs)
        self.backend = str(backend)
        self.logger = logger or logging.getLogger(__name__)

    @classmethod
    def from_config(
        cls, config: NullConfig, logger: logging.Logger | None = None
    ) -> "NullDistributionBuilder":
        return cls(
            n_iter=config.n_iter,
            seed=config.seed,
            batch_size=config.batch_size,
            n_jobs=config.n_jobs,
            backend=config.backend,
            logger=logger,
        )

    def derive(self, *tokens: Any) -> "NullDistributionBuilder":
        """Same settings with a seed derived from this builder's seed and `tokens`."""
        seed = None if self.seed is None else stable_seed(self.seed, *tokens)
        return NullDistributionBuilder(
            n_iter=self.n_iter,
            seed=seed,
            batch_size=self.batch_size,
            n_jobs=self.n_jobs,
            backend=self.backend,
            logger=self.logger,
        )

    def _jobs(self, n_iter: int, seed: int) -> list[_BatchJob]:
        n_batches = int(math.ceil(n_iter / self.batch_size))
        jobs = []
        for b in range(n_batches):
            size = min(self.batch_size, n_iter - b * self.batch_size)
            jobs.append(_BatchJob(index=b, size=size, seed=stable_seed(seed, "batch", b)))
        return jobs

    def run(
        self,
        population: GroupedPopulation,
        extractor: Extractor,
        n_iter: int | None = None,
        *,
        label: str = "",
    ) -> NullDistribution | dict[str, NullDistribution]:
        k = self.n_iter if n_iter is None else int(n_iter)
        if k <= 0:
            raise InvalidConfiguration("n_iter must be positive.")
        seed = self.seed
        if seed is None:
            seed = fresh_seed()
            self.logger.info("No seed configured; drew seed=%d", seed)

        parts = parallel_map(
            _BatchRunner(population, extractor),
            self._jobs(k, seed),
            n_jobs=self.n_jobs,
            backend=self.backend,
        )

        if isinstance(parts[0], dict):
            labels = list(parts[0].keys())
            result = {
                lab: NullDistribution(np.concatenate([p[lab] for p in parts]), label=lab)
                for lab in labels
            }
            for dist in result.values():
                self._log_undefined(dist, population)
            return result

        dist = NullDistribution(np.concatenate(parts), label=label)
        self._log_undefined(dist, population)
        return dist

    def _log_undefined(self, dist: NullDistribution, population: GroupedPopulation) -> None:
        if dist.n_undefined:
            self.logger.warning(
                "%s: %d of %d null iterations undefined (excluded from aggregates) for %r",
                dist.label or "statistic",
                dist.n_undefined,
                dist.k,
                population,
            )
