"""Observed and null survival statistics for a living collection.

A collection is built from two tables: one row per plant (accession id and
whether it died) and one row per accession (region and collection
coordinates). Accessions are ordered by region so each region's maternal
lines occupy a contiguous block of the permuted outcome vector.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import numpy as np
import pandas as pd

from provsel.core.errors import InvalidConfiguration, ReferentialIntegrityError
from provsel.core.population import GroupedPopulation
from provsel.core.types import Accession, NullConfig, PlantRecord, Region
from provsel.stats.null import NullDistribution, NullDistributionBuilder
from provsel.stats.significance import evaluate
from provsel.stats.summary import (
    null_reference_region,
    opportunity_for_selection,
    region_mean_survival,
    selection_coefficients,
    survival_rates,
)
from provsel.sweep import opportunity_statistic

_TRUE_TOKENS = {"true", "t", "1", "yes", "dead"}
_FALSE_TOKENS = {"false", "f", "0", "no", "alive"}

# Interval drawn around survivors per accession in the null model figure.
ACCESSION_INTERVAL = (0.05, 0.975)


@dataclass(frozen=True)
class ColumnSpec:
    accession: str = "AccessionNumber"
    dead: str = "Dead"
    region: str = "GeographicRegion"
    latitude: str = "DDLatitude"
    longitude: str = "DDLongitude"


def _label_sort_key(label: str) -> tuple[int, float, str]:
    try:
        return (0, float(label), label)
    except ValueError:
        return (1, 0.0, label)


def _clean_id(value: Any) -> str:
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()


def parse_dead(values: pd.Series) -> np.ndarray:
    """Coerce a survival column (bool, 0/1 or TRUE/FALSE text) to booleans."""
    missing = int(values.isna().sum())
    if missing:
        raise InvalidConfiguration(f"Survival column has {missing} missing values.")
    if pd.api.types.is_bool_dtype(values):
        return values.to_numpy(dtype=bool)
    out = np.zeros(len(values), dtype=bool)
    bad: list[str] = []
    for i, raw in enumerate(values.tolist()):
        token = str(raw).strip().lower()
        if isinstance(raw, (int, float, np.integer, np.floating)) and not pd.isna(raw):
            token = str(int(raw)) if float(raw) in (0.0, 1.0) else token
        if token in _TRUE_TOKENS:
            out[i] = True
        elif token not in _FALSE_TOKENS:
            bad.append(str(raw))
    if bad:
        raise InvalidConfiguration(
            f"Unrecognised survival values: {sorted(set(bad))[:5]}"
        )
    return out


@dataclass(frozen=True)
class Collection:
    """Validated per-accession and per-region survival tables."""

    accessions: pd.DataFrame
    regions: pd.DataFrame

    @property
    def region_ids(self) -> list[str]:
        return [str(r) for r in self.regions.index]

    @property
    def region_index(self) -> np.ndarray:
        lookup = {r: i for i, r in enumerate(self.region_ids)}
        return np.array([lookup[r] for r in self.accessions["region"]], dtype=np.int64)

    @property
    def n_plants(self) -> int:
        return int(self.accessions["initial_plants"].sum())

    @property
    def n_survivors(self) -> int:
        return int(self.accessions["survivors"].sum())

    def population(self) -> GroupedPopulation:
        """Whole-collection population: every plant, every survivor."""
        return GroupedPopulation.from_counts(
            labels=list(self.accessions.index),
            initial_plants=self.accessions["initial_plants"].to_numpy(),
            survivors=self.accessions["survivors"].to_numpy(),
        )

    def region_population(self, region_id: str) -> GroupedPopulation:
        """Region-only population: the region's plants and survivors."""
        sub = self.accessions[self.accessions["region"] == str(region_id)]
        if sub.empty:
            raise KeyError(f"Region '{region_id}' not in collection.")
        return GroupedPopulation.from_counts(
            labels=list(sub.index),
            initial_plants=sub["initial_plants"].to_numpy(),
            survivors=sub["survivors"].to_numpy(),
        )

    def accession_records(self) -> list[Accession]:
        return [
            Accession(
                accession_id=str(acc),
                region_id=str(row.region),
                initial_plants=int(row.initial_plants),
                deaths=int(row.deaths),
                latitude=float(row.latitude),
                longitude=float(row.longitude),
            )
            for acc, row in self.accessions.iterrows()
        ]

    def region_records(self) -> list[Region]:
        return [
            Region(
                region_id=r,
                accession_ids=tuple(
                    str(a) for a in self.accessions.index[self.accessions["region"] == r]
                ),
            )
            for r in self.region_ids
        ]


def plant_records(survival: pd.DataFrame, columns: ColumnSpec | None = None) -> list[PlantRecord]:
    """One record per row of the survival table."""
    cols = columns or ColumnSpec()
    if survival.empty:
        raise InvalidConfiguration("Survival table has no plants.")
    if survival[cols.accession].isna().any():
        raise ReferentialIntegrityError("Survival table has plants without an accession id.")
    accessions = survival[cols.accession].map(_clean_id)
    dead = parse_dead(survival[cols.dead])
    return [PlantRecord(accession_id=a, dead=bool(d)) for a, d in zip(accessions, dead)]


def build_collection(
    survival: pd.DataFrame,
    provenance: pd.DataFrame,
    columns: ColumnSpec | None = None,
) -> Collection:
    """Aggregate plant outcomes per accession and attach provenance.

    Raises:
        KeyError: If a required column is missing.
        InvalidConfiguration: If survival values cannot be read as booleans.
        ReferentialIntegrityError: If the two tables disagree on accessions.
    """
    cols = columns or ColumnSpec()
    for name, frame, needed in (
        ("survival", survival, [cols.accession, cols.dead]),
        ("provenance", provenance, [cols.accession, cols.region]),
    ):
        missing = [c for c in needed if c not in frame.columns]
        if missing:
            raise KeyError(f"{name} table missing required columns: {missing}")
    records = plant_records(survival, cols)
    plant_acc = [r.accession_id for r in records]
    dead = np.array([r.dead for r in records], dtype=bool)

    prov = provenance.copy()
    if prov[cols.accession].isna().any():
        raise ReferentialIntegrityError("Provenance table has rows without an accession id.")
    prov["_acc"] = prov[cols.accession].map(_clean_id)
    dup = sorted(prov.loc[prov["_acc"].duplicated(), "_acc"].unique())
    if dup:
        raise ReferentialIntegrityError(
            f"Accessions with more than one provenance row: {dup[:10]}", offenders=dup
        )
    no_region = sorted(prov.loc[prov[cols.region].isna(), "_acc"])
    if no_region:
        raise ReferentialIntegrityError(
            f"Accessions without a region: {no_region[:10]}", offenders=no_region
        )

    surv_ids = set(plant_acc)
    prov_ids = set(prov["_acc"])
    only_surv = sorted(surv_ids - prov_ids, key=_label_sort_key)
    only_prov = sorted(prov_ids - surv_ids, key=_label_sort_key)
    if only_surv or only_prov:
        parts = []
        if only_surv:
            parts.append(f"no provenance row for {only_surv[:10]}")
        if only_prov:
            parts.append(f"no plants for {only_prov[:10]}")
        raise ReferentialIntegrityError(
            "Survival and provenance tables disagree: " + "; ".join(parts),
            offenders=only_surv + only_prov,
        )

    plants = pd.DataFrame({"accession": plant_acc, "dead": dead})
    per_acc = plants.groupby("accession")["dead"].agg(["size", "sum"])
    per_acc.columns = ["initial_plants", "deaths"]

    prov = prov.set_index("_acc")
    acc = pd.DataFrame(index=per_acc.index)
    acc["region"] = prov.loc[acc.index, cols.region].map(_clean_id)
    acc["initial_plants"] = per_acc["initial_plants"].astype(int)
    acc["deaths"] = per_acc["deaths"].astype(int)
    acc["survivors"] = acc["initial_plants"] - acc["deaths"]
    acc["survival_rate"] = survival_rates(
        acc["survivors"].to_numpy(), acc["initial_plants"].to_numpy()
    )
    for out_col, src in (("latitude", cols.latitude), ("longitude", cols.longitude)):
        acc[out_col] = (
            pd.to_numeric(prov.loc[acc.index, src], errors="coerce")
            if src in prov.columns
            else np.nan
        )

    order = sorted(
        acc.index, key=lambda a: (_label_sort_key(acc.at[a, "region"]), _label_sort_key(a))
    )
    acc = acc.loc[order]
    acc.index.name = "accession"
    return Collection(accessions=acc, regions=_region_table(acc))


def _region_table(acc: pd.DataFrame) -> pd.DataFrame:
    region_ids = sorted(acc["region"].unique(), key=_label_sort_key)
    rows = []
    for r in region_ids:
        sub = acc[acc["region"] == r]
        rates = sub["survival_rate"].to_numpy(dtype=float)
        rows.append(
            {
                "region": r,
                "maternal_lines": int(len(sub)),
                "plants": int(sub["initial_plants"].sum()),
                "survivors": int(sub["survivors"].sum()),
                "mean_survival_rate": float(np.mean(rates)),
                "sd_survival_rate": float(np.std(rates, ddof=1)) if rates.size > 1 else np.nan,
                "opportunity": opportunity_for_selection(rates),
            }
        )
    return pd.DataFrame(rows).set_index("region")


def resolve_reference_region(collection: Collection, reference_region: str | None) -> str:
    """Configured reference region, else the largest region with survivors."""
    if reference_region is not None:
        ref = _clean_id(reference_region)
        if ref not in collection.region_ids:
            raise InvalidConfiguration(
                f"Reference region '{ref}' not among regions {collection.region_ids}."
            )
        return ref
    idx = null_reference_region(
        collection.regions["mean_survival_rate"].to_numpy(),
        collection.regions["plants"].to_numpy(),
    )
    if idx < 0:
        raise InvalidConfiguration("No region has a positive mean survival rate.")
    return collection.region_ids[idx]


def observed_selection_coefficients(
    collection: Collection, reference_region: str | None = None
) -> pd.Series:
    ref = resolve_reference_region(collection, reference_region)
    coeffs = selection_coefficients(
        collection.regions["mean_survival_rate"].to_numpy(),
        collection.region_ids.index(ref),
    )
    return pd.Series(coeffs, index=collection.regions.index, name="selection_coefficient")


class CollectionNullStatistic:
    """Statistics of one whole-collection permutation, paired across regions.

    Returns per accession survivors, per region mean survival rate, and per
    region selection coefficient against the region that, in that permuted
    replicate, has the most plants among regions with nonzero mean survival.
    """

    def __init__(self, collection: Collection):
        self.accession_ids = [str(a) for a in collection.accessions.index]
        self.region_ids = collection.region_ids
        self.region_index = collection.region_index
        self.region_plants = collection.regions["plants"].to_numpy(dtype=float)

    def __call__(self, counts: np.ndarray, population: GroupedPopulation) -> dict[str, np.ndarray]:
        rates = survival_rates(counts, population.group_sizes)
        means = region_mean_survival(rates, self.region_index, len(self.region_ids))
        ref = null_reference_region(means, self.region_plants)
        coeffs = selection_coefficients(means, ref)

        out: dict[str, np.ndarray] = {}
        for j, acc in enumerate(self.accession_ids):
            out[f"survivors/{acc}"] = counts[:, j]
        for j, r in enumerate(self.region_ids):
            out[f"mean_survival_rate/{r}"] = means[:, j]
            out[f"selection_coefficient/{r}"] = coeffs[:, j]
        return out


def _split_kind(nulls: dict[str, NullDistribution]) -> dict[str, dict[str, NullDistribution]]:
    out: dict[str, dict[str, NullDistribution]] = {}
    for label, dist in nulls.items():
        kind, _, key = label.partition("/")
        out.setdefault(kind, {})[key] = dist
    return out


def null_whole_collection(
    collection: Collection, builder: NullDistributionBuilder
) -> dict[str, dict[str, NullDistribution]]:
    """Permute deaths across every plant of the collection."""
    nulls = builder.derive("collection").run(
        collection.population(), CollectionNullStatistic(collection)
    )
    return _split_kind(nulls)


def null_accession_survivors(
    collection: Collection, builder: NullDistributionBuilder
) -> dict[str, NullDistribution]:
    """Survivors per accession when deaths fall at random across the collection."""
    return null_whole_collection(collection, builder)["survivors"]


def null_region_mean_survival(
    collection: Collection, builder: NullDistributionBuilder
) -> dict[str, NullDistribution]:
    return null_whole_collection(collection, builder)["mean_survival_rate"]


def null_selection_coefficients(
    collection: Collection, builder: NullDistributionBuilder
) -> dict[str, NullDistribution]:
    return null_whole_collection(collection, builder)["selection_coefficient"]


def null_opportunity(
    collection: Collection,
    builder: NullDistributionBuilder,
    logger: logging.Logger | None = None,
) -> dict[str, NullDistribution]:
    """Permute deaths within each region and recompute its opportunity for selection."""
    log = logger or logging.getLogger(__name__)
    out: dict[str, NullDistribution] = {}
    for r in collection.region_ids:
        population = collection.region_population(r)
        if population.group_count < 2:
            log.warning(
                "Region %s has a single maternal line; opportunity for selection undefined.",
                r,
            )
        out[r] = builder.derive("opportunity", r).run(
            population, opportunity_statistic, label=f"opportunity/{r}"
        )
    return out


@dataclass
class CollectionReport:
    reference_region: str
    accessions: pd.DataFrame
    regions: pd.DataFrame
    mean_survival: pd.DataFrame
    selection: pd.DataFrame
    opportunity: pd.DataFrame
    nulls: dict[str, dict[str, NullDistribution]] = field(default_factory=dict, repr=False)

    def tables(self) -> dict[str, pd.DataFrame]:
        return {
            "accessions": self.accessions,
            "regions": self.regions,
            "mean_survival": self.mean_survival,
            "selection_coefficients": self.selection,
            "opportunity": self.opportunity,
        }

    def write(self, outdir: str | Path) -> dict[str, Path]:
        from provsel.pipeline.io import write_json, write_table

        out = Path(outdir)
        paths = {name: write_table(out / f"{name}.csv", df) for name, df in self.tables().items()}
        meta_path = out / "metadata.json"
        write_json(
            meta_path,
            {
                "reference_region": self.reference_region,
                "n_iter": {
                    kind: int(next(iter(d.values())).k) if d else 0
                    for kind, d in self.nulls.items()
                },
            },
        )
        paths["metadata"] = meta_path
        return paths


def analyze_collection(
    collection: Collection,
    null_config: NullConfig | NullDistributionBuilder,
    reference_region: str | None = None,
    logger: logging.Logger | None = None,
) -> CollectionReport:
    """Observed statistics, null summaries and both-tail p-values for every region."""
    log = logger or logging.getLogger(__name__)
    builder = (
        null_config
        if isinstance(null_config, NullDistributionBuilder)
        else NullDistributionBuilder.from_config(null_config, logger=log)
    )
    ref = resolve_reference_region(collection, reference_region)
    log.info(
        "Collection: %d plants, %d survivors, %d accessions, %d regions; reference region %s",
        collection.n_plants,
        collection.n_survivors,
        len(collection.accessions),
        len(collection.regions),
        ref,
    )

    whole = null_whole_collection(collection, builder)
    opp = null_opportunity(collection, builder, logger=log)
    log.info("Null models complete (%d iterations each)", builder.n_iter)

    lo, hi = ACCESSION_INTERVAL
    accessions = collection.accessions.copy()
    surv_null = whole["survivors"]
    accessions["null_mean_survivors"] = [surv_null[a].mean() for a in accessions.index]
    accessions["null_lower"] = [surv_null[a].quantile(lo) for a in accessions.index]
    accessions["null_upper"] = [surv_null[a].quantile(hi) for a in accessions.index]

    regions = collection.regions.copy()
    observed_coeffs = observed_selection_coefficients(collection, ref)
    regions["selection_coefficient"] = observed_coeffs

    mean_survival = evaluate(
        regions["mean_survival_rate"].to_dict(), whole["mean_survival_rate"]
    )
    selection = evaluate(observed_coeffs.to_dict(), whole["selection_coefficient"])
    opportunity = evaluate(regions["opportunity"].to_dict(), opp)
    for df in (mean_survival, selection, opportunity):
        df.index.name = "region"
        df.insert(0, "maternal_lines", regions.loc[df.index, "maternal_lines"].to_numpy())

    return CollectionReport(
        reference_region=ref,
        accessions=accessions,
        regions=regions,
        mean_survival=mean_survival,
        selection=selection,
        opportunity=opportunity,
        nulls={**whole, "opportunity": opp},
    )
