"""Configuration loading utilities for provsel pipelines."""

from __future__ import annotations

import json
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

from provsel.collection import ColumnSpec
from provsel.core.errors import InvalidConfiguration
from provsel.core.types import NullConfig
from provsel.parallel import BACKENDS
from provsel.sweep import SWEEPS, check_grid_kwargs


def load_json_config(path: str | Path) -> dict[str, Any]:
    """Load and validate a pipeline config from a JSON file."""
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")
    if config_path.suffix.lower() != ".json":
        raise ValueError(
            f"Unsupported config format for '{config_path}'. Use a .json config file."
        )

    try:
        with open(config_path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
    except json.JSONDecodeError as exc:
        raise ValueError(
            f"Invalid JSON in config '{config_path}' at line {exc.lineno}, "
            f"column {exc.colno}: {exc.msg}"
        ) from exc

    if not isinstance(data, dict):
        raise ValueError(
            f"Invalid config root in '{config_path}': expected JSON object, got {type(data).__name__}."
        )
    return data


def _reject_unknown(section: str, data: dict[str, Any], known: set[str]) -> None:
    unknown = sorted(set(data) - known)
    if unknown:
        raise InvalidConfiguration(f"Unknown keys in '{section}': {unknown}")


def null_config_from_dict(data: dict[str, Any] | None) -> NullConfig:
    raw = dict(data or {})
    _reject_unknown("null", raw, {f.name for f in fields(NullConfig)})
    cfg = NullConfig(
        n_iter=int(raw.get("n_iter", 10000)),
        seed=None if raw.get("seed", 0) is None else int(raw.get("seed", 0)),
        batch_size=int(raw.get("batch_size", 1000)),
        n_jobs=int(raw.get("n_jobs", 1)),
        backend=str(raw.get("backend", "loky")),
    )
    if cfg.n_iter <= 0:
        raise InvalidConfiguration("null.n_iter must be positive.")
    if cfg.batch_size <= 0:
        raise InvalidConfiguration("null.batch_size must be positive.")
    if cfg.n_jobs == 0:
        raise InvalidConfiguration("null.n_jobs must be non-zero.")
    if cfg.backend not in BACKENDS:
        raise InvalidConfiguration(f"null.backend must be one of {BACKENDS}.")
    return cfg


@dataclass(frozen=True)
class CollectionConfig:
    survival_path: Path
    provenance_path: Path
    outdir: Path = Path(".")
    reference_region: str | None = None
    columns: ColumnSpec = field(default_factory=ColumnSpec)
    null: NullConfig = field(default_factory=NullConfig)
    plots: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "CollectionConfig":
        _reject_unknown(
            "collection config",
            data,
            {"survival_path", "provenance_path", "outdir", "reference_region", "columns", "null", "plots"},
        )
        for key in ("survival_path", "provenance_path"):
            if not data.get(key):
                raise InvalidConfiguration(f"'{key}' is required.")
        columns = dict(data.get("columns") or {})
        _reject_unknown("columns", columns, {f.name for f in fields(ColumnSpec)})
        ref = data.get("reference_region")
        return cls(
            survival_path=Path(data["survival_path"]),
            provenance_path=Path(data["provenance_path"]),
            outdir=Path(data.get("outdir", ".")),
            reference_region=None if ref is None else str(ref),
            columns=ColumnSpec(**{k: str(v) for k, v in columns.items()}),
            null=null_config_from_dict(data.get("null")),
            plots=bool(data.get("plots", True)),
        )


@dataclass(frozen=True)
class SweepConfig:
    sweeps: tuple[str, ...] = tuple(SWEEPS)
    outdir: Path = Path(".")
    null: NullConfig = field(default_factory=NullConfig)
    grids: dict[str, dict[str, Any]] = field(default_factory=dict)
    plots: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SweepConfig":
        _reject_unknown("sweep config", data, {"sweeps", "outdir", "null", "grids", "plots"})
        names = tuple(str(s) for s in data.get("sweeps", tuple(SWEEPS)))
        if not names:
            raise InvalidConfiguration("'sweeps' must name at least one sweep.")
        unknown = sorted(set(names) - set(SWEEPS))
        if unknown:
            raise InvalidConfiguration(f"Unknown sweeps {unknown}; choose from {sorted(SWEEPS)}.")
        grids = {str(k): dict(v) for k, v in (data.get("grids") or {}).items()}
        stray = sorted(set(grids) - set(names))
        if stray:
            raise InvalidConfiguration(f"Grid overrides for sweeps not run: {stray}")
        for name, grid_kwargs in grids.items():
            check_grid_kwargs(name, grid_kwargs)
        return cls(
            sweeps=names,
            outdir=Path(data.get("outdir", ".")),
            null=null_config_from_dict(data.get("null")),
            grids=grids,
            plots=bool(data.get("plots", True)),
        )


def load_collection_config(path: str | Path) -> CollectionConfig:
    return CollectionConfig.from_dict(load_json_config(path))


def load_sweep_config(path: str | Path) -> SweepConfig:
    return SweepConfig.from_dict(load_json_config(path))
