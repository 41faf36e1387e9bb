"""Core data model subpackage."""

from provsel.core.errors import InvalidConfiguration, ReferentialIntegrityError
from provsel.core.population import GroupedPopulation
from provsel.core.types import (
    Accession,
    NullConfig,
    PlantRecord,
    PValues,
    Region,
    ScenarioParams,
)

__all__ = [
    "Accession",
    "GroupedPopulation",
    "InvalidConfiguration",
    "NullConfig",
    "PlantRecord",
    "PValues",
    "ReferentialIntegrityError",
    "Region",
    "ScenarioParams",
]
