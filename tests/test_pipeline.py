import json
from pathlib import Path

import pytest

from adjointnets.training import pipelines


def _recurrent_config(run_dir):
    return {
        "data": {"name": "nonlinear_ar", "options": {"n_samples": 30, "seed": 2}},
        "model": {"hidden": [3], "activation": "tanh", "ny": 1},
        "train": {
            "seed": 11,
            "init_scale": 0.5,
            "method": "lm",
            "resnorm_target": 1e-12,
            "epoch_max": 3,
            "run_dir": str(run_dir),
        },
    }


def test_recurrent_pipeline_produces_artifacts(tmp_path):
    config = _recurrent_config(tmp_path / "run")
    result = pipelines.run_pipeline(config)

    assert result.status == "max_epochs_reached"
    assert result.epochs == 3
    manifest = json.loads(Path(result.manifest_path).read_text())
    assert manifest["config"]["train"]["seed"] == 11
    assert manifest["dataset"]["type"] == "nonlinear_ar"
    assert manifest["outcome"]["epochs"] == 3

    metrics = [
        json.loads(line)
        for line in Path(result.metrics_path).read_text().splitlines()
        if line
    ]
    assert [entry["epoch"] for entry in metrics] == [1, 2, 3]
    assert all("resnorm" in entry and "sha" in entry for entry in metrics)
    assert metrics[0]["seed"] == 11
    assert (tmp_path / "run" / "metrics.csv").exists()
    summary = json.loads(Path(result.summary_path).read_text())
    assert summary["layer_sizes"] == [2, 3, 1]


def test_static_pipeline_with_derivatives(tmp_path):
    config = {
        "data": {"name": "device_surface", "options": {"n_vgs": 3, "n_vds": 5}},
        "model": {"hidden": [3], "derivatives": {"use": True}},
        "train": {"max_iterations": 5, "run_dir": str(tmp_path / "static")},
    }
    result = pipelines.run_pipeline(config)
    assert result.epochs == 1
    assert result.status in {"converged", "target_not_met"}
    summary = json.loads(Path(result.summary_path).read_text())
    assert summary["layer_sizes"] == [2, 3, 1]
    assert "nfev" in summary["solver"]


def test_static_pipeline_reports_missed_target_without_epoch_label(tmp_path):
    config = {
        "data": {"name": "device_surface", "options": {"n_vgs": 3, "n_vds": 5}},
        "model": {"hidden": [1]},
        "train": {
            "max_iterations": 1,
            "resnorm_target": 0.0,
            "run_dir": str(tmp_path / "missed"),
        },
    }
    result = pipelines.run_pipeline(config)
    assert result.status == "target_not_met"
    summary = json.loads(Path(result.summary_path).read_text())
    assert summary["status"] == "target_not_met"
    assert isinstance(summary["solver_status"], int)
    assert summary["solver"]["message"]


def test_static_pipeline_rejects_output_mode_targets(tmp_path):
    config = {
        "data": {"name": "device_surface", "options": {"n_vgs": 3, "n_vds": 5}},
        "model": {"hidden": [3], "derivatives": {"use": True, "mode": "output"}},
        "train": {"run_dir": str(tmp_path / "bad")},
    }
    with pytest.raises(ValueError):
        pipelines.run_pipeline(config)


def test_presets_cover_builtin_and_file_configs():
    names = set(pipelines.presets())
    assert {"iir-highpass-rnn", "pa-memory-rnn", "device-dc-adjoint"} <= names
    assert "iir-lowpass-rnn" in names
    preset = pipelines.load_preset("iir-lowpass-rnn")
    assert preset["data"]["options"]["btype"] == "low"
    with pytest.raises(KeyError):
        pipelines.load_preset("does-not-exist")


def test_load_preset_returns_a_copy():
    first = pipelines.load_preset("iir-highpass-rnn")
    first["model"]["hidden"].append(99)
    assert pipelines.load_preset("iir-highpass-rnn")["model"]["hidden"] == [5]


def test_config_hash_is_stable():
    config = _recurrent_config("runs/x")
    assert pipelines.config_hash(config) == pipelines.config_hash(json.loads(json.dumps(config)))
    config["train"]["seed"] = 12
    assert pipelines.config_hash(config) != pipelines.config_hash(_recurrent_config("runs/x"))
