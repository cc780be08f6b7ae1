import importlib.util
from pathlib import Path

import pytest


def _load_script():
    path = Path(__file__).resolve().parents[2] / "scripts" / "run_action_scan.py"
    spec = importlib.util.spec_from_file_location("run_action_scan", path)
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


def test_build_command_from_inputs(monkeypatch):
    module = _load_script()
    monkeypatch.setenv("INPUT_PATH", "src")
    monkeypatch.setenv("INPUT_LANGUAGE", "go")
    monkeypatch.setenv("INPUT_OUT", "artifacts")
    monkeypatch.setenv("FORMATS", "sarif, json")
    monkeypatch.setenv("INPUT_FAIL_ON_FINDINGS", "true")

    assert module.build_command() == [
        "negpat",
        "--path", "src",
        "--language", "go",
        "--out", "artifacts",
        "--format", "sarif",
        "--format", "json",
        "--fail-on-findings",
    ]


def test_build_command_requires_path(monkeypatch):
    module = _load_script()
    monkeypatch.delenv("INPUT_PATH", raising=False)

    with pytest.raises(KeyError):
        module.build_command()


def test_main_runs_negpat(monkeypatch):
    module = _load_script()
    monkeypatch.setenv("INPUT_PATH", ".")
    monkeypatch.delenv("INPUT_LANGUAGE", raising=False)
    monkeypatch.delenv("INPUT_OUT", raising=False)
    monkeypatch.delenv("FORMATS", raising=False)
    monkeypatch.delenv("INPUT_FAIL_ON_FINDINGS", raising=False)
    calls = []
    monkeypatch.setattr(module.subprocess, "call", lambda cmd: calls.append(cmd) or 1)

    assert module.main() == 1
    assert calls == [["negpat", "--path", "."]]
