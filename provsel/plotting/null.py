"""Null-distribution histograms and sweep summaries."""

from __future__ import annotations

from pathlib import Path
from typing import Sequence

import matplotlib.pyplot as plt
import numpy as np
import pandas as pd

from provsel.plotting.style import (
    DEFAULT_STYLE,
    LABEL_MEAN_RATE,
    LABEL_OPPORTUNITY,
    LABEL_SURVIVAL,
    PlotStyle,
    apply_style,
    finalize_fig,
)
from provsel.stats.null import NullDistribution

VALUE_LABELS = {"mean_rate": LABEL_MEAN_RATE, "opportunity": LABEL_OPPORTUNITY}


def plot_null_distribution(
    null: NullDistribution | np.ndarray,
    observed: float,
    out_png: str | Path,
    *,
    xlabel: str = "Statistic",
    title: str | None = None,
    interval: tuple[float, float] = (0.025, 0.975),
    style: PlotStyle = DEFAULT_STYLE,
) -> Path:
    """Histogram of the defined null values with the observed value marked."""
    dist = null if isinstance(null, NullDistribution) else NullDistribution(null)
    apply_style(style)
    fig, ax = plt.subplots(figsize=style.fig_small)
    if dist.n_defined:
        ax.hist(dist.defined, bins=style.hist_bins, color="steelblue", alpha=0.7, edgecolor="black")
        lo, hi = dist.quantile(interval[0]), dist.quantile(interval[1])
        ax.axvspan(lo, hi, color="grey", alpha=style.alpha_fill, label="Null interval")
    if np.isfinite(observed):
        ax.axvline(observed, color="red", linestyle="--", linewidth=2, label="Observed")
    ax.set_xlabel(xlabel)
    ax.set_ylabel("Count")
    if title:
        ax.set_title(title)
    ax.legend()
    return finalize_fig(fig, out_png, style)


def plot_accession_intervals(
    accessions: pd.DataFrame,
    out_png: str | Path,
    *,
    style: PlotStyle = DEFAULT_STYLE,
) -> Path:
    """Observed survivors per accession against the null interval, grouped by region."""
    apply_style(style)
    fig, ax = plt.subplots(figsize=style.fig_wide)
    x = np.arange(len(accessions))
    lower = accessions["null_lower"].to_numpy(dtype=float)
    upper = accessions["null_upper"].to_numpy(dtype=float)
    ax.vlines(x, lower, upper, color="grey", linewidth=style.line_width, label="Null interval")
    ax.plot(x, accessions["survivors"].to_numpy(dtype=float), "o", color="black", label="Observed")
    regions = accessions["region"].to_numpy()
    edges = np.flatnonzero(regions[1:] != regions[:-1]) + 0.5
    for edge in edges:
        ax.axvline(edge, color="lightgrey", linewidth=0.8)
    ax.set_xticks([])
    ax.set_xlabel("Accession (grouped by region)")
    ax.set_ylabel("Survivors")
    ax.legend()
    return finalize_fig(fig, out_png, style)


def plot_sweep(
    results: pd.DataFrame,
    value: str,
    out_png: str | Path,
    *,
    facet: str = "group_count",
    series: Sequence[str] = ("group_size", "evenness", "region_population"),
    ylabel: str | None = None,
    style: PlotStyle = DEFAULT_STYLE,
) -> Path:
    """Null mean of `value` against overall survival, one line per scenario family.

    The 2.5% and 97.5% null quantiles are drawn as a band when present.
    """
    mean_col = f"{value}_mean"
    if mean_col not in results.columns:
        raise KeyError(f"Sweep results have no column '{mean_col}'.")
    apply_style(style)
    facets = sorted(results[facet].dropna().unique()) if facet in results.columns else [None]
    fig, axes = plt.subplots(1, len(facets), figsize=style.fig_wide, sharey=True, squeeze=False)
    keys = [c for c in series if c in results.columns and results[c].notna().any()]
    for ax, fval in zip(axes[0], facets):
        sub = results if fval is None else results[results[facet] == fval]
        groups = sub.groupby(keys, dropna=False) if keys else [((), sub)]
        for key, grp in groups:
            grp = grp.sort_values("overall_survival")
            key = key if isinstance(key, tuple) else (key,)
            label = ", ".join(f"{k}={v}" for k, v in zip(keys, key) if pd.notna(v))
            x = grp["overall_survival"].to_numpy(dtype=float)
            (line,) = ax.plot(x, grp[mean_col].to_numpy(dtype=float), marker="o", label=label)
            if f"{value}_q025" in grp.columns and f"{value}_q975" in grp.columns:
                ax.fill_between(
                    x,
                    grp[f"{value}_q025"].to_numpy(dtype=float),
                    grp[f"{value}_q975"].to_numpy(dtype=float),
                    color=line.get_color(),
                    alpha=style.alpha_fill,
                )
        if fval is not None:
            ax.set_title(f"{facet}={fval}")
        ax.set_xlabel(LABEL_SURVIVAL)
    axes[0][0].set_ylabel(ylabel or VALUE_LABELS.get(value, value))
    axes[0][-1].legend()
    return finalize_fig(fig, out_png, style)
