"""Typed configuration and result containers for provsel core operations."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

from provsel.core.errors import InvalidConfiguration

EVENNESS_CHOICES = ("even", "skewed")

# Share of the region population placed in the first half of the groups
# when group sizes are skewed.
SKEWED_MAJOR_SHARE = 0.75


@dataclass(frozen=True)
class PlantRecord:
    accession_id: str
    dead: bool


@dataclass(frozen=True)
class Accession:
    """One maternal line: sibling plants grown from a single mother."""

    accession_id: str
    region_id: str
    initial_plants: int
    deaths: int
    latitude: float = float("nan")
    longitude: float = float("nan")

    def __post_init__(self) -> None:
        if self.initial_plants < 1:
            raise InvalidConfiguration(
                f"Accession '{self.accession_id}' must have at least one plant."
            )
        if not 0 <= self.deaths <= self.initial_plants:
            raise InvalidConfiguration(
                f"Accession '{self.accession_id}' has {self.deaths} deaths "
                f"for {self.initial_plants} plants."
            )

    @property
    def survivors(self) -> int:
        return self.initial_plants - self.deaths

    @property
    def survival_rate(self) -> float:
        return self.survivors / self.initial_plants


@dataclass(frozen=True)
class Region:
    region_id: str
    accession_ids: tuple[str, ...]


@dataclass(frozen=True)
class NullConfig:
    """Permutation/null configuration."""

    n_iter: int = 10000
    seed: int | None = 0
    batch_size: int = 1000
    n_jobs: int = 1
    backend: str = "loky"


@dataclass(frozen=True)
class PValues:
    """Two-tailed empirical p-values; both tails are kept."""

    p_lower: float
    p_upper: float
    n: int


def _as_count(name: str, value: float) -> int:
    if value is None or not math.isfinite(float(value)):
        raise InvalidConfiguration(f"{name} must be a finite number, got {value!r}.")
    rounded = round(float(value))
    if abs(float(value) - rounded) > 1e-9:
        raise InvalidConfiguration(f"{name} must be a whole number, got {value!r}.")
    return int(rounded)


@dataclass(frozen=True)
class ScenarioParams:
    """One cell of a simulation grid.

    Exactly one of `group_size` (every group gets that many plants) or
    `region_population` (split across groups according to `evenness`) is set.
    When `collection_size` is given, survivors are drawn from the whole
    collection of that size and only the first `sum(group_sizes)` positions
    belong to groups; otherwise the draw is restricted to the region.
    """

    overall_survival: float
    group_count: int
    group_size: int | None = None
    region_population: int | None = None
    evenness: str = "even"
    collection_size: int | None = None

    def __post_init__(self) -> None:
        if not 0.0 <= float(self.overall_survival) <= 1.0:
            raise InvalidConfiguration("overall_survival must lie in [0, 1].")
        if int(self.group_count) <= 0:
            raise InvalidConfiguration("group_count must be positive.")
        if (self.group_size is None) == (self.region_population is None):
            raise InvalidConfiguration(
                "Provide exactly one of group_size or region_population."
            )
        if self.evenness not in EVENNESS_CHOICES:
            raise InvalidConfiguration(
                f"evenness must be one of {EVENNESS_CHOICES}, got {self.evenness!r}."
            )

    @property
    def region_only(self) -> bool:
        return self.collection_size is None

    def group_sizes(self) -> list[int]:
        m = int(self.group_count)
        if self.group_size is not None:
            size = _as_count("group_size", self.group_size)
            return [size] * m

        nr = float(self.region_population)
        if self.evenness == "even":
            return [_as_count("region_population / group_count", nr / m)] * m

        if m % 2 != 0:
            raise InvalidConfiguration("Skewed group sizes need an even group_count.")
        half = m // 2
        major = _as_count("skewed major group size", SKEWED_MAJOR_SHARE * nr / half)
        minor = _as_count(
            "skewed minor group size", (1.0 - SKEWED_MAJOR_SHARE) * nr / half
        )
        return [major] * half + [minor] * half

    def draw_population(self) -> int:
        if self.collection_size is None:
            return int(sum(self.group_sizes()))
        return _as_count("collection_size", self.collection_size)

    def success_count(self) -> int:
        return int(round(self.draw_population() * float(self.overall_survival)))

    @property
    def scenario_id(self) -> str:
        size_part = (
            f"Nri{int(self.group_size)}"
            if self.group_size is not None
            else f"Nr{int(self.region_population)}_{self.evenness}"
        )
        draw_part = "region" if self.collection_size is None else f"N{int(self.collection_size)}"
        return (
            f"s{float(self.overall_survival):.3f}_nr{int(self.group_count)}_"
            f"{size_part}_{draw_part}"
        )

    def as_dict(self) -> dict[str, Any]:
        return {
            "overall_survival": float(self.overall_survival),
            "group_count": int(self.group_count),
            "group_size": self.group_size,
            "region_population": self.region_population,
            "evenness": self.evenness,
            "collection_size": self.collection_size,
        }
