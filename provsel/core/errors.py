"""Error taxonomy for provenance-selection null models."""

from __future__ import annotations


class InvalidConfiguration(ValueError):
    """Malformed scenario or population parameters."""


class ReferentialIntegrityError(ValueError):
    """Survival and provenance tables do not reference the same accessions."""

    def __init__(self, message: str, *, offenders: list[str] | None = None):
        super().__init__(message)
        self.offenders = list(offenders or [])
