from __future__ import annotations

import importlib.util
import sys
from pathlib import Path


def _load_script_module(script_name: str):
    root = Path(__file__).resolve().parents[1]
    script_path = root / "scripts" / script_name
    spec = importlib.util.spec_from_file_location(script_name.replace(".py", ""), script_path)
    if spec is None or spec.loader is None:
        raise RuntimeError(f"Unable to load script module: {script_path}")
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_collection_script_calls_pipeline(monkeypatch):
    module = _load_script_module("collection_pipeline.py")
    called: list[str] = []
    monkeypatch.setattr(module, "run_collection_pipeline", called.append)

    rc = module.main(["--config", "tiny.json"])
    assert rc == 0
    assert called == ["tiny.json"]


def test_sweep_script_calls_pipeline(monkeypatch):
    module = _load_script_module("sweep_pipeline.py")
    called: list[str] = []
    monkeypatch.setattr(module, "run_sweep_pipeline", called.append)
    monkeypatch.setattr(sys, "argv", ["sweep_pipeline.py", "--config", "grid.json"])

    rc = module.main()
    assert rc == 0
    assert called == ["grid.json"]
