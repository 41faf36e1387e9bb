from __future__ import annotations

import json
from pathlib import Path

import matplotlib
import pandas as pd
import pytest

from provsel.cli import collection_main, sweep_main
from provsel.pipeline.runs import run_collection_pipeline, run_sweep_pipeline

matplotlib.use("Agg")


def _write_inputs(tmp_path: Path) -> tuple[Path, Path]:
    survival = pd.DataFrame(
        {
            "AccessionNumber": ["a1"] * 4 + ["a2"] * 4 + ["b1"] * 3 + ["b2"] * 3,
            "Dead": ["TRUE", "FALSE", "FALSE", "FALSE"]
            + ["TRUE", "TRUE", "FALSE", "FALSE"]
            + ["TRUE", "TRUE", "FALSE"]
            + ["FALSE", "FALSE", "FALSE"],
        }
    )
    provenance = pd.DataFrame(
        {
            "AccessionNumber": ["a1", "a2", "b1", "b2"],
            "GeographicRegion": ["2", "2", "5", "5"],
            "DDLatitude": [36.0, 36.1, 39.0, 39.2],
            "DDLongitude": [-119.0, -119.1, -122.0, -122.3],
        }
    )
    s_path = tmp_path / "survival.csv"
    p_path = tmp_path / "provenance.csv"
    survival.to_csv(s_path, index=False)
    provenance.to_csv(p_path, index=False)
    return s_path, p_path


def _collection_config(tmp_path: Path, **overrides) -> Path:
    s_path, p_path = _write_inputs(tmp_path)
    cfg = {
        "survival_path": str(s_path),
        "provenance_path": str(p_path),
        "outdir": str(tmp_path / "out"),
        "null": {"n_iter": 200, "seed": 1, "batch_size": 100},
        "plots": False,
    }
    cfg.update(overrides)
    path = tmp_path / "collection.json"
    path.write_text(json.dumps(cfg), encoding="utf-8")
    return path


def _sweep_config(tmp_path: Path) -> Path:
    cfg = {
        "sweeps": ["opportunity"],
        "outdir": str(tmp_path / "sweep_out"),
        "null": {"n_iter": 100, "seed": 0, "batch_size": 50},
        "grids": {
            "opportunity": {
                "survival": [0.3, 0.6],
                "group_counts": [10],
                "region_populations": [100],
            }
        },
        "plots": True,
    }
    path = tmp_path / "sweeps.json"
    path.write_text(json.dumps(cfg), encoding="utf-8")
    return path


def test_collection_pipeline_writes_tables(tmp_path: Path):
    report = run_collection_pipeline(_collection_config(tmp_path))
    results = tmp_path / "out" / "results"
    for name in ("accessions", "regions", "mean_survival", "selection_coefficients", "opportunity"):
        assert (results / f"{name}.csv").exists()
    assert (tmp_path / "out" / "logs" / "provsel_collection.log").exists()
    assert report.reference_region == "2"
    run_cfg = json.loads((results / "run_config.json").read_text(encoding="utf-8"))
    assert run_cfg["null"]["n_iter"] == 200


def test_collection_pipeline_plots(tmp_path: Path):
    run_collection_pipeline(_collection_config(tmp_path, plots=True), n_iter=50)
    figures = tmp_path / "out" / "figures"
    assert (figures / "accession_survivors.png").exists()
    assert (figures / "opportunity_region5.png").exists()


def test_sweep_pipeline_writes_results_and_figures(tmp_path: Path):
    out = run_sweep_pipeline(_sweep_config(tmp_path))
    results = out["opportunity"]
    assert len(results) == 4
    assert (tmp_path / "sweep_out" / "results" / "sweep_opportunity.csv").exists()
    assert (tmp_path / "sweep_out" / "figures" / "sweep_opportunity_opportunity.png").exists()
    assert (tmp_path / "sweep_out" / "figures" / "sweep_opportunity_mean_rate.png").exists()


def test_cli_entrypoints_return_zero(tmp_path: Path):
    assert collection_main(["--config", str(_collection_config(tmp_path)), "--n-iter", "50"]) == 0
    assert sweep_main(["--config", str(_sweep_config(tmp_path)), "--n-iter", "20"]) == 0


def test_cli_invalid_reference_region_exits_with_code_2(tmp_path: Path):
    cfg = _collection_config(tmp_path, reference_region="8")
    with pytest.raises(SystemExit) as excinfo:
        collection_main(["--config", str(cfg)])
    assert excinfo.value.code == 2


def test_cli_misspelled_grid_key_exits_with_code_2(tmp_path: Path):
    cfg = {
        "sweeps": ["opportunity"],
        "outdir": str(tmp_path / "sweep_out"),
        "grids": {"opportunity": {"region_population": [100]}},
    }
    path = tmp_path / "bad_sweeps.json"
    path.write_text(json.dumps(cfg), encoding="utf-8")
    with pytest.raises(SystemExit) as excinfo:
        sweep_main(["--config", str(path)])
    assert excinfo.value.code == 2
