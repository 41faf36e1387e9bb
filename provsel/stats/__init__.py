"""Statistical utilities for provsel."""

from provsel.stats.null import NullDistribution, NullDistributionBuilder
from provsel.stats.permutation import (
    draw_group_survivors,
    group_survivors,
    permute,
    permute_batch,
)
from provsel.stats.significance import empirical_p_values, evaluate
from provsel.stats.summary import (
    hypergeometric_mean_rate_moments,
    mean_survival_rate,
    null_reference_region,
    opportunity_for_selection,
    region_mean_survival,
    selection_coefficients,
    survival_rate_variance,
    survival_rates,
)

__all__ = [
    "NullDistribution",
    "NullDistributionBuilder",
    "draw_group_survivors",
    "empirical_p_values",
    "evaluate",
    "group_survivors",
    "hypergeometric_mean_rate_moments",
    "mean_survival_rate",
    "null_reference_region",
    "opportunity_for_selection",
    "permute",
    "permute_batch",
    "region_mean_survival",
    "selection_coefficients",
    "survival_rate_variance",
    "survival_rates",
]
