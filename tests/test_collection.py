from __future__ import annotations

import logging
import math

import numpy as np
import pandas as pd
import pytest

from provsel.collection import (
    ColumnSpec,
    analyze_collection,
    build_collection,
    null_accession_survivors,
    null_opportunity,
    null_region_mean_survival,
    null_selection_coefficients,
    observed_selection_coefficients,
    parse_dead,
    plant_records,
    resolve_reference_region,
)
from provsel.core.errors import InvalidConfiguration, ReferentialIntegrityError
from provsel.core.types import NullConfig
from provsel.stats.null import NullDistributionBuilder


def _tables() -> tuple[pd.DataFrame, pd.DataFrame]:
    plants = [
        ("A1", "TRUE"),
        ("A1", "FALSE"),
        ("A1", "FALSE"),
        ("A1", "FALSE"),
        ("A2", "FALSE"),
        ("A2", "FALSE"),
        ("B1", "TRUE"),
        ("B1", "TRUE"),
        ("B1", "TRUE"),
        ("B2", "TRUE"),
        ("B2", "FALSE"),
        ("B2", "FALSE"),
        ("C1", "TRUE"),
        ("C1", "FALSE"),
    ]
    survival = pd.DataFrame(plants, columns=["AccessionNumber", "Dead"])
    provenance = pd.DataFrame(
        {
            "AccessionNumber": ["C1", "B2", "B1", "A2", "A1"],
            "GeographicRegion": [10, 3, 3, 2, 2],
            "DDLatitude": [40.1, 38.2, 38.0, 36.5, 36.4],
            "DDLongitude": [-120.0, -121.0, -121.5, -119.0, -119.2],
        }
    )
    return survival, provenance


def test_build_collection_aggregates_per_accession_and_region():
    collection = build_collection(*_tables())
    acc = collection.accessions
    assert list(acc.index) == ["A1", "A2", "B1", "B2", "C1"]
    assert list(acc["initial_plants"]) == [4, 2, 3, 3, 2]
    assert list(acc["survivors"]) == [3, 2, 0, 2, 1]
    assert acc.loc["A1", "latitude"] == pytest.approx(36.4)

    regions = collection.regions
    assert collection.region_ids == ["2", "3", "10"]
    assert list(regions["maternal_lines"]) == [2, 2, 1]
    assert list(regions["plants"]) == [6, 6, 2]
    np.testing.assert_allclose(regions["mean_survival_rate"], [0.875, 1 / 3, 0.5])
    assert regions.loc["2", "opportunity"] == pytest.approx(0.03125 / 0.875**2)
    assert math.isnan(regions.loc["10", "opportunity"])


def test_regions_are_contiguous_blocks():
    collection = build_collection(*_tables())
    np.testing.assert_array_equal(collection.region_index, [0, 0, 1, 1, 2])
    pop = collection.population()
    assert pop.success_count == 8
    assert pop.is_region_only
    region = collection.region_population("3")
    assert region.labels == ("B1", "B2")
    assert region.success_count == 2


def test_records_round_trip_counts():
    collection = build_collection(*_tables())
    records = collection.accession_records()
    assert records[0].accession_id == "A1" and records[0].deaths == 1
    assert collection.region_records()[1].accession_ids == ("B1", "B2")


def test_parse_dead_accepts_common_encodings():
    np.testing.assert_array_equal(parse_dead(pd.Series([True, False])), [True, False])
    np.testing.assert_array_equal(parse_dead(pd.Series([1, 0, 1])), [True, False, True])
    np.testing.assert_array_equal(parse_dead(pd.Series(["TRUE", "false"])), [True, False])
    with pytest.raises(InvalidConfiguration, match="Unrecognised"):
        parse_dead(pd.Series(["TRUE", "maybe"]))


def test_parse_dead_rejects_missing_values():
    with pytest.raises(InvalidConfiguration, match="missing"):
        parse_dead(pd.Series([True, None], dtype="boolean"))
    with pytest.raises(InvalidConfiguration, match="missing"):
        parse_dead(pd.Series(["TRUE", None]))


def test_plants_without_provenance_rejected():
    survival, provenance = _tables()
    provenance = provenance[provenance["AccessionNumber"] != "B2"]
    with pytest.raises(ReferentialIntegrityError) as excinfo:
        build_collection(survival, provenance)
    assert excinfo.value.offenders == ["B2"]


def test_provenance_without_plants_rejected():
    survival, provenance = _tables()
    survival = survival[survival["AccessionNumber"] != "C1"]
    with pytest.raises(ReferentialIntegrityError, match="no plants"):
        build_collection(survival, provenance)


def test_duplicate_provenance_rows_rejected():
    survival, provenance = _tables()
    provenance = pd.concat([provenance, provenance.iloc[[0]]], ignore_index=True)
    with pytest.raises(ReferentialIntegrityError, match="more than one provenance row"):
        build_collection(survival, provenance)


def test_missing_region_rejected():
    survival, provenance = _tables()
    provenance["GeographicRegion"] = provenance["GeographicRegion"].astype(object)
    provenance.loc[0, "GeographicRegion"] = None
    with pytest.raises(ReferentialIntegrityError, match="without a region"):
        build_collection(survival, provenance)


def test_custom_column_names():
    survival, provenance = _tables()
    survival = survival.rename(columns={"AccessionNumber": "acc", "Dead": "died"})
    provenance = provenance.rename(columns={"AccessionNumber": "acc", "GeographicRegion": "zone"})
    columns = ColumnSpec(accession="acc", dead="died", region="zone")
    collection = build_collection(survival, provenance, columns)
    assert collection.region_ids == ["2", "3", "10"]
    with pytest.raises(KeyError, match="missing required columns"):
        build_collection(survival, provenance)


def test_reference_region_defaults_to_largest_surviving_region():
    collection = build_collection(*_tables())
    assert resolve_reference_region(collection, None) == "2"
    assert resolve_reference_region(collection, 3) == "3"
    with pytest.raises(InvalidConfiguration):
        resolve_reference_region(collection, "8")

    coeffs = observed_selection_coefficients(collection)
    assert coeffs["2"] == pytest.approx(0.0)
    assert coeffs["3"] == pytest.approx((1 / 3) / 0.875 - 1)


def test_fixed_reference_with_no_survivors_gives_nan_coefficients():
    survival, provenance = _tables()
    survival.loc[survival["AccessionNumber"].isin(["A1", "A2"]), "Dead"] = "TRUE"
    collection = build_collection(survival, provenance)
    assert collection.regions.loc["2", "mean_survival_rate"] == 0.0
    coeffs = observed_selection_coefficients(collection, "2")
    assert coeffs.isna().all()
    assert resolve_reference_region(collection, None) == "3"


def test_null_selection_coefficients_keyed_by_region():
    collection = build_collection(*_tables())
    builder = NullDistributionBuilder(n_iter=300, seed=2, batch_size=100)
    nulls = null_selection_coefficients(collection, builder)
    assert set(nulls) == {"2", "3", "10"}
    assert all(d.k == 300 for d in nulls.values())


def test_null_opportunity_warns_for_single_line_region(caplog):
    caplog.set_level(logging.WARNING)
    collection = build_collection(*_tables())
    builder = NullDistributionBuilder(n_iter=100, seed=2)
    nulls = null_opportunity(collection, builder)
    assert nulls["10"].n_defined == 0
    assert "single maternal line" in caplog.text


def test_analyze_collection_report(tmp_path):
    collection = build_collection(*_tables())
    report = analyze_collection(collection, NullConfig(n_iter=400, seed=5, batch_size=100))
    assert report.reference_region == "2"
    assert list(report.mean_survival.index) == ["2", "3", "10"]
    for table in (report.mean_survival, report.selection, report.opportunity):
        assert {"observed", "p_lower", "p_upper", "maternal_lines"} <= set(table.columns)
    defined = report.mean_survival.dropna(subset=["p_lower"])
    assert np.all((defined["p_lower"] + defined["p_upper"]) >= 1.0)
    acc = report.accessions
    assert np.all(acc["null_lower"] <= acc["null_upper"])
    assert np.all(acc["null_upper"] <= acc["initial_plants"])

    paths = report.write(tmp_path)
    assert paths["regions"].exists()
    assert paths["metadata"].exists()


def test_plant_records_one_per_row():
    survival, _ = _tables()
    records = plant_records(survival)
    assert len(records) == len(survival)
    assert records[0].accession_id == "A1" and records[0].dead is True
    assert records[1].dead is False


def test_accession_survivor_and_region_mean_nulls_share_draws():
    collection = build_collection(*_tables())
    builder = NullDistributionBuilder(n_iter=250, seed=8, batch_size=100)
    survivors = null_accession_survivors(collection, builder)
    means = null_region_mean_survival(collection, builder)
    assert set(survivors) == {"A1", "A2", "B1", "B2", "C1"}
    assert set(means) == {"2", "3", "10"}
    sizes = collection.accessions["initial_plants"]
    for acc, dist in survivors.items():
        assert dist.k == 250
        assert 0 <= dist.values.min() <= dist.values.max() <= sizes[acc]
    total = sum(dist.values for dist in survivors.values())
    np.testing.assert_array_equal(total, np.full(250, collection.n_survivors))
    # Region "10" holds only C1, so its mean rate is C1's survivors over 2 plants.
    np.testing.assert_allclose(means["10"].values, survivors["C1"].values / 2)
