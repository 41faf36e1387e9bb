"""provsel public API."""

from provsel._version import __version__
from provsel.collection import Collection, analyze_collection, build_collection
from provsel.core.errors import InvalidConfiguration, ReferentialIntegrityError
from provsel.core.population import GroupedPopulation
from provsel.core.types import NullConfig, ScenarioParams
from provsel.stats.null import NullDistribution, NullDistributionBuilder
from provsel.stats.significance import empirical_p_values, evaluate
from provsel.sweep import ParameterSweepRunner, run_named_sweep


def run_collection_pipeline(*args, **kwargs):
    """Lazy wrapper to avoid importing plotting dependencies at import time."""
    from provsel.pipeline.runs import run_collection_pipeline as _run

    return _run(*args, **kwargs)


def run_sweep_pipeline(*args, **kwargs):
    from provsel.pipeline.runs import run_sweep_pipeline as _run

    return _run(*args, **kwargs)


__all__ = [
    "__version__",
    "Collection",
    "GroupedPopulation",
    "InvalidConfiguration",
    "NullConfig",
    "NullDistribution",
    "NullDistributionBuilder",
    "ParameterSweepRunner",
    "ReferentialIntegrityError",
    "ScenarioParams",
    "analyze_collection",
    "build_collection",
    "empirical_p_values",
    "evaluate",
    "run_collection_pipeline",
    "run_named_sweep",
    "run_sweep_pipeline",
]
