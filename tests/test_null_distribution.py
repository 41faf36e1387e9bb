from __future__ import annotations

import logging
import math

import numpy as np
import pytest

from provsel.core.errors import InvalidConfiguration
from provsel.core.population import GroupedPopulation
from provsel.core.types import NullConfig
from provsel.stats.null import NullDistribution, NullDistributionBuilder
from provsel.sweep import mean_and_opportunity_statistic, mean_rate_statistic, opportunity_statistic


def test_quantile_uses_linear_interpolation():
    dist = NullDistribution([1.0, 2.0, 3.0, 4.0, 5.0])
    assert dist.quantile(0.25) == pytest.approx(2.0)
    assert dist.quantile(0.1) == pytest.approx(1.4)
    assert dist.median() == pytest.approx(3.0)
    assert dist.ci_width() == pytest.approx(dist.quantile(0.975) - dist.quantile(0.025))


def test_quantile_probability_bounds():
    dist = NullDistribution([1.0, 2.0])
    with pytest.raises(ValueError):
        dist.quantile(1.5)


def test_undefined_values_excluded_from_aggregates_but_counted():
    dist = NullDistribution([1.0, np.nan, 3.0])
    assert dist.k == 3
    assert dist.n_defined == 2
    assert dist.n_undefined == 1
    assert dist.mean() == pytest.approx(2.0)
    assert dist.variance() == pytest.approx(2.0)
    summary = dist.summary()
    assert set(summary) == {
        "mean",
        "variance",
        "q025",
        "q050",
        "q500",
        "q975",
        "ci_width",
        "k",
        "n_undefined",
    }
    assert summary["k"] == 3


def test_all_undefined_gives_nan_summary():
    dist = NullDistribution([np.nan, np.nan])
    assert math.isnan(dist.mean())
    assert math.isnan(dist.quantile(0.5))


def test_values_are_read_only():
    dist = NullDistribution([1.0, 2.0])
    with pytest.raises(ValueError):
        dist.values[0] = 3.0


def test_builder_returns_k_values():
    pop = GroupedPopulation([2] * 10, total_draw_population=800, success_count=400)
    builder = NullDistributionBuilder(n_iter=1234, seed=0, batch_size=500)
    dist = builder.run(pop, mean_rate_statistic, label="mean_rate")
    assert dist.k == 1234
    assert dist.label == "mean_rate"
    assert 0.0 <= dist.defined.min() <= dist.defined.max() <= 1.0


def test_builder_is_deterministic_across_n_jobs():
    pop = GroupedPopulation([5, 5, 10], total_draw_population=100, success_count=40)
    serial = NullDistributionBuilder(n_iter=900, seed=11, batch_size=200).run(
        pop, mean_rate_statistic
    )
    threaded = NullDistributionBuilder(
        n_iter=900, seed=11, batch_size=200, n_jobs=2, backend="threading"
    ).run(pop, mean_rate_statistic)
    np.testing.assert_array_equal(serial.values, threaded.values)


def test_builder_seed_changes_draws():
    pop = GroupedPopulation([5, 5, 10], total_draw_population=100, success_count=40)
    a = NullDistributionBuilder(n_iter=300, seed=1).run(pop, mean_rate_statistic)
    b = NullDistributionBuilder(n_iter=300, seed=2).run(pop, mean_rate_statistic)
    assert not np.array_equal(a.values, b.values)


def test_builder_without_seed_logs_drawn_seed(caplog):
    caplog.set_level(logging.INFO)
    pop = GroupedPopulation([2, 2], success_count=2)
    NullDistributionBuilder(n_iter=10, seed=None).run(pop, mean_rate_statistic)
    assert "drew seed=" in caplog.text


def test_mapping_extractor_gives_paired_distributions():
    pop = GroupedPopulation([10] * 10, success_count=50)
    out = NullDistributionBuilder(n_iter=200, seed=4).run(pop, mean_and_opportunity_statistic)
    assert set(out) == {"mean_rate", "opportunity"}
    assert out["mean_rate"].k == out["opportunity"].k == 200
    # Region-only draw: every group total is 50, so the mean rate is exactly 0.5.
    np.testing.assert_allclose(out["mean_rate"].values, 0.5)


def test_undefined_iterations_warn(caplog):
    caplog.set_level(logging.WARNING)
    pop = GroupedPopulation([2, 2], total_draw_population=100, success_count=2)
    dist = NullDistributionBuilder(n_iter=500, seed=5).run(
        pop, opportunity_statistic, label="opportunity"
    )
    assert dist.n_undefined > 0
    assert "null iterations undefined" in caplog.text


def test_from_config_and_derive():
    cfg = NullConfig(n_iter=50, seed=7, batch_size=10)
    builder = NullDistributionBuilder.from_config(cfg)
    assert builder.n_iter == 50 and builder.batch_size == 10
    derived = builder.derive("region", "2")
    assert derived.seed != builder.seed
    assert derived.seed == builder.derive("region", "2").seed
    assert NullDistributionBuilder(seed=None).derive("x").seed is None


def test_builder_rejects_bad_settings():
    with pytest.raises(InvalidConfiguration):
        NullDistributionBuilder(n_iter=0)
    with pytest.raises(InvalidConfiguration):
        NullDistributionBuilder(batch_size=0)


def test_extractor_batch_size_mismatch_raises():
    pop = GroupedPopulation([2, 2], success_count=2)
    with pytest.raises(ValueError, match="Extractor returned"):
        NullDistributionBuilder(n_iter=10, seed=0).run(pop, lambda counts, _pop: counts[:1, 0])
