"""Empirical two-tailed p-values against a null distribution."""

from __future__ import annotations

import math
from typing import Mapping

import numpy as np
import pandas as pd

from provsel.core.types import PValues
from provsel.stats.null import NullDistribution


def empirical_p_values(observed: float, null: NullDistribution | np.ndarray) -> PValues:
    """Fraction of defined null values at or below, and at or above, `observed`.

    The observed value is compared inclusively in both tails, so
    `p_lower + p_upper >= 1` whenever the null holds at least one value.
    """
    if isinstance(null, NullDistribution):
        values = null.defined
    else:
        arr = np.asarray(null, dtype=float).ravel()
        values = arr[np.isfinite(arr)]
    n = int(values.size)
    obs = float(observed)
    if n == 0 or not math.isfinite(obs):
        return PValues(p_lower=float("nan"), p_upper=float("nan"), n=n)
    p_lower = float(np.count_nonzero(values <= obs)) / n
    p_upper = float(np.count_nonzero(values >= obs)) / n
    return PValues(p_lower=p_lower, p_upper=p_upper, n=n)


def evaluate(
    observed: Mapping[str, float],
    nulls: Mapping[str, NullDistribution],
) -> pd.DataFrame:
    """Observed value, null summary and both tail p-values for each label."""
    missing = sorted(set(observed) - set(nulls))
    if missing:
        raise KeyError(f"No null distribution for: {', '.join(missing)}")
    rows = []
    for label, obs in observed.items():
        null = nulls[label]
        pv = empirical_p_values(obs, null)
        row = {"label": str(label), "observed": float(obs)}
        row.update(null.summary())
        row.update({"p_lower": pv.p_lower, "p_upper": pv.p_upper})
        rows.append(row)
    return pd.DataFrame(rows).set_index("label")
