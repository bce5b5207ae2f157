import json
from pathlib import Path

import pytest

from cli.main import main


def test_cli_basic_preset(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    main(["--preset", "pa-memory-rnn", "--epoch-max", "2"])
    run_dir = Path("runs/pa-memory-rnn")
    assert (run_dir / "metrics.jsonl").exists()
    assert (run_dir / "manifest.json").exists()
    payload = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    assert payload["epochs"] <= 2


def test_cli_config_file_uses_hashed_run_dir(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    config = {
        "data": {"name": "iir_filter", "options": {"n_samples": 24, "nx": 1}},
        "model": {"hidden": [2], "ny": 1},
        "train": {"seed": 0, "epoch_max": 2, "init_scale": 0.3},
    }
    path = tmp_path / "run.json"
    path.write_text(json.dumps(config))
    main(["--config", str(path), "--dump-config", "resolved.json"])

    payload = json.loads(capsys.readouterr().out.strip().splitlines()[-1])
    run_dir = Path(".artifacts") / payload["run_id"]
    assert (run_dir / "manifest.json").exists()
    resolved = json.loads(Path("resolved.json").read_text())
    assert resolved["train"]["run_dir"] == str(run_dir)


def test_cli_partial_override_merges_into_preset(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    override = tmp_path / "override.yaml"
    override.write_text("train:\n  epoch_max: 1\n  run_dir: merged\n")
    main(["--preset", "iir-highpass-rnn", "--config", str(override), "--seed", "4",
          "--dump-config", "resolved.json"])
    resolved = json.loads(Path("resolved.json").read_text())
    assert resolved["model"]["ny"] == 4
    assert resolved["train"]["seed"] == 4
    lines = Path("merged/metrics.jsonl").read_text().splitlines()
    assert len(lines) == 1


def test_cli_lists_presets(capsys):
    with pytest.raises(SystemExit) as excinfo:
        main(["--list-presets"])
    assert excinfo.value.code == 0
    out = capsys.readouterr().out.split()
    assert "device-dc-adjoint" in out
    assert "iir-lowpass-rnn" in out
