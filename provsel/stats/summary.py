"""Group-level survival statistics for observed and permuted outcomes.

All functions accept either one vector (one assignment of outcomes) or a
2D batch with one row per permutation and groups along the last axis.
Undefined ratio statistics are returned as NaN; they never raise.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np
from scipy.stats import hypergeom


def survival_rates(survivors: np.ndarray, group_sizes: np.ndarray) -> np.ndarray:
    counts = np.asarray(survivors, dtype=float)
    sizes = np.asarray(group_sizes, dtype=float)
    if counts.shape[-1] != sizes.size:
        raise ValueError("survivors and group_sizes must have the same group count.")
    if np.any(sizes <= 0):
        raise ValueError("group_sizes must be positive.")
    return counts / sizes


def mean_survival_rate(rates: np.ndarray) -> np.ndarray | float:
    """Mean of per-group rates; each maternal line weighs the same."""
    arr = np.asarray(rates, dtype=float)
    out = np.mean(arr, axis=-1)
    return float(out) if out.ndim == 0 else out


def survival_rate_variance(rates: np.ndarray) -> np.ndarray | float:
    arr = np.asarray(rates, dtype=float)
    if arr.shape[-1] < 2:
        out = np.full(arr.shape[:-1], np.nan)
    else:
        out = np.var(arr, axis=-1, ddof=1)
    return float(out) if np.ndim(out) == 0 else out


def opportunity_for_selection(rates: np.ndarray) -> np.ndarray | float:
    """Squared coefficient of variation of per-group survival rates.

    NaN where the mean rate is zero or fewer than two groups exist.
    """
    arr = np.asarray(rates, dtype=float)
    mean = np.asarray(np.mean(arr, axis=-1), dtype=float)
    var = np.asarray(survival_rate_variance(arr), dtype=float)
    with np.errstate(divide="ignore", invalid="ignore"):
        out = np.where(mean > 0.0, var / np.square(mean), np.nan)
    return float(out) if out.ndim == 0 else out


def region_mean_survival(
    rates: np.ndarray,
    region_index: np.ndarray,
    n_regions: int,
) -> np.ndarray:
    """Mean-of-ratios of accession survival rates within each region.

    `region_index[i]` is the region position of accession `i`. Regions with no
    accession get NaN.
    """
    arr = np.asarray(rates, dtype=float)
    idx = np.asarray(region_index, dtype=np.int64).ravel()
    if idx.size != arr.shape[-1]:
        raise ValueError("region_index must have one entry per accession.")
    n_reg = int(n_regions)
    if np.any(idx < 0) or np.any(idx >= n_reg):
        raise ValueError("region_index values outside [0, n_regions).")

    membership = np.zeros((idx.size, n_reg), dtype=float)
    membership[np.arange(idx.size), idx] = 1.0
    lines = membership.sum(axis=0)
    sums = arr @ membership
    with np.errstate(divide="ignore", invalid="ignore"):
        return np.where(lines > 0, sums / lines, np.nan)


def selection_coefficients(region_means: np.ndarray, reference: int | np.ndarray) -> np.ndarray:
    """`mean[r] / mean[reference] - 1` for every region r.

    `reference` is a region position, or one position per row for a batch;
    a negative position or a reference mean of zero yields NaN.
    """
    means = np.asarray(region_means, dtype=float)
    ref = np.asarray(reference, dtype=np.int64)
    if means.ndim == 1:
        if int(ref) < 0:
            return np.full(means.shape, np.nan)
        ref_means = means[int(ref)]
    else:
        ref = np.broadcast_to(ref, means.shape[:-1])
        safe = np.where(ref >= 0, ref, 0)
        ref_means = np.take_along_axis(means, safe[:, None], axis=-1)[:, 0]
        ref_means = np.where(ref >= 0, ref_means, np.nan)[:, None]
    ref_means = np.where(ref_means > 0.0, ref_means, np.nan)
    with np.errstate(divide="ignore", invalid="ignore"):
        return means / ref_means - 1.0


def null_reference_region(region_means: np.ndarray, region_plants: np.ndarray) -> np.ndarray | int:
    """Position of the largest region (by plants) whose mean survival is > 0.

    Ties go to the first region in order. Returns -1 when no region has a
    positive mean.
    """
    means = np.asarray(region_means, dtype=float)
    plants = np.asarray(region_plants, dtype=float).ravel()
    if plants.size != means.shape[-1]:
        raise ValueError("region_plants must have one entry per region.")
    eligible = np.nan_to_num(means, nan=0.0) > 0.0
    weights = np.where(eligible, plants, -np.inf)
    ref = np.argmax(weights, axis=-1)
    ref = np.where(np.any(eligible, axis=-1), ref, -1)
    return int(ref) if np.ndim(ref) == 0 else ref.astype(np.int64)


def hypergeometric_mean_rate_moments(
    group_sizes: Sequence[int],
    total_draw_population: int,
    success_count: int,
) -> tuple[float, float]:
    """Exact mean and variance of the mean survival rate across groups.

    Group survivor counts follow a multivariate hypergeometric law: each count
    is hypergeometric and every pair of groups has covariance
    `-n_i n_j p (1 - p) / (N - 1)`.
    """
    sizes = np.asarray(list(group_sizes), dtype=float)
    n_total = int(total_draw_population)
    k = int(success_count)
    m = sizes.size
    if m == 0 or np.any(sizes <= 0) or sizes.sum() > n_total:
        raise ValueError("group_sizes must be positive and fit in the draw population.")
    p = k / n_total
    if n_total == 1:
        return p, 0.0

    var_counts = np.array(
        [hypergeom(n_total, k, int(n)).var() for n in sizes], dtype=float
    )
    var_sum = float(np.sum(var_counts / np.square(sizes)))
    # Cov(X_i/n_i, X_j/n_j) does not depend on the sizes.
    cov_pair = -p * (1.0 - p) / (n_total - 1)
    var_mean = (var_sum + m * (m - 1) * cov_pair) / (m * m)
    return float(p), float(max(var_mean, 0.0))
